import logging

from ..models.data_models import ErrorCode, FieldConnection, FieldWire, ProcessingError, WireObservation
from .config_manager import ConfigManager
from .data_loader import SourceLoader
from .utils import Utils


class FieldSurveyIndex:
    """Read-only lookups over the field survey, keyed by canonical pole id"""

    def __init__(self, connections=None, pole_wires=None):
        self.connections = connections or []
        self.pole_wires = pole_wires or {}
        self._by_pole = {}
        for connection in self.connections:
            for pole_id in connection.pole_ids():
                self._by_pole.setdefault(pole_id, []).append(connection)

    def connections_for(self, pole_id):
        return list(self._by_pole.get(pole_id, []))

    def wires_at(self, pole_id):
        return list(self.pole_wires.get(pole_id, []))

    def span_wires_at(self, pole_id):
        """Wires observed on every connection touching the pole, at either end"""
        return [w for c in self._by_pole.get(pole_id, []) for w in c.wires]

    def has_data_for(self, pole_id):
        wires = self.wires_at(pole_id) + self.span_wires_at(pole_id)
        return any(w.has_heights for w in wires)


class FieldSurveyReader:
    """Builds typed connections and wire observations from a field-survey tree"""

    ENDPOINT_KEYS = (
        ['node_id_1', 'from_node', 'from_node_id', 'from', 'node1', 'start_node'],
        ['node_id_2', 'to_node', 'to_node_id', 'to', 'node2', 'end_node'],
    )
    CONNECTION_TYPE_KEYS = ['button', 'button_type', 'attributes.connection_type',
                            'connection_type', 'type']

    def __init__(self, config=None):
        self.config = ConfigManager.with_defaults(config)
        self.underground_types = [t.lower() for t in self.config['underground_connection_types']]
        self.reference_types = [t.lower() for t in self.config['reference_connection_types']]
        self.errors = []

    def read(self, tree, node_pole_ids, pole_node_ids=None):
        """
        Build the field index

        Args:
            tree (dict): Parsed field survey, or None
            node_pole_ids (dict): Field node id -> canonical pole id
            pole_node_ids (dict, optional): Canonical pole id -> the one node
                whose photos are read for that pole

        Returns:
            FieldSurveyIndex
        """
        self.errors = []
        if not tree:
            return FieldSurveyIndex()

        photos = Utils.get_key(tree, 'photos') or {}
        trace_data = self._trace_data(tree)

        connections = []
        for connection_id, raw in SourceLoader.field_connections(tree):
            try:
                connections.append(self._read_connection(connection_id, raw, node_pole_ids, photos, trace_data))
            except Exception as e:
                logging.warning(f"Skipping field connection {connection_id}: {e}")
                self.errors.append(ProcessingError(
                    ErrorCode.DATA_EXTRACTION_ERROR, f"Skipped field connection {connection_id}",
                    str(e), severity="warning"))

        pole_wires = {}
        for node_id, node in SourceLoader.field_nodes(tree):
            pole_id = node_pole_ids.get(node_id)
            if not pole_id or pole_id in pole_wires:
                continue
            if pole_node_ids is not None and pole_node_ids.get(pole_id) != node_id:
                continue
            try:
                wires = self._wires_from_photos(Utils.get_key(node, 'photos'), photos, trace_data)
            except Exception as e:
                logging.warning(f"Skipping photos of field node {node_id}: {e}")
                self.errors.append(ProcessingError(
                    ErrorCode.DATA_EXTRACTION_ERROR, f"Skipped photos of field node {node_id}",
                    str(e), pole_id=pole_id, severity="warning"))
                continue
            if wires:
                pole_wires[pole_id] = wires

        logging.info(f"Field survey: {len(connections)} connections, "
                     f"{len(pole_wires)} poles with attachment photos")
        return FieldSurveyIndex(connections, pole_wires)

    @staticmethod
    def _trace_data(tree):
        _, trace_data = Utils.lookup_first(tree, ['traces.trace_data', 'trace_data'])
        return trace_data if isinstance(trace_data, dict) else {}

    def connection_type(self, raw):
        _, value = Utils.lookup_first(raw, self.CONNECTION_TYPE_KEYS)
        value = Utils.unwrap_value(value)
        return str(value).strip() if value is not None else ""

    def _read_connection(self, connection_id, raw, node_pole_ids, photos, trace_data):
        _, from_node = Utils.lookup_first(raw, self.ENDPOINT_KEYS[0])
        _, to_node = Utils.lookup_first(raw, self.ENDPOINT_KEYS[1])
        from_node = str(from_node) if from_node is not None else None
        to_node = str(to_node) if to_node is not None else None

        connection = FieldConnection(
            connection_id,
            from_node,
            to_node,
            connection_type=self.connection_type(raw),
            from_pole_id=node_pole_ids.get(from_node),
            to_pole_id=node_pole_ids.get(to_node),
        )
        lowered = connection.connection_type.lower()
        connection.is_underground = lowered in self.underground_types
        connection.is_reference = lowered in self.reference_types

        wires = {}
        sections = Utils.get_key(raw, 'sections')
        for _, section in Utils.as_list(sections):
            section_photos = Utils.get_key(section, 'photos') or Utils.get_key(section, 'photo_summary')
            for wire in self._wires_from_photos(section_photos, photos, trace_data):
                self._merge_wire(wires, wire)

        for wire in self._wires_from_attachments(Utils.get_key(raw, 'attachments')):
            self._merge_wire(wires, wire)

        connection.wires = list(wires.values())
        return connection

    @staticmethod
    def _merge_wire(wires, wire):
        key = wire.trace_id or f"{wire.owner}|{wire.cable_type}".lower()
        if key in wires:
            wires[key].observations.extend(wire.observations)
        else:
            wires[key] = wire

    @staticmethod
    def _main_photo(photo_refs, photos):
        """photofirst_data of the main photo, looked up inline or in the top-level photo map"""
        if not isinstance(photo_refs, dict) or not photo_refs:
            return None
        main_id = next((pid for pid, pdata in photo_refs.items()
                        if isinstance(pdata, dict) and pdata.get('association') == 'main'), None)
        if main_id is None:
            main_id = next(iter(photo_refs))
        inline = photo_refs.get(main_id)
        if isinstance(inline, dict) and 'photofirst_data' in inline:
            return inline['photofirst_data']
        photo = photos.get(main_id) if isinstance(photos, dict) else None
        if isinstance(photo, dict):
            return photo.get('photofirst_data')
        return None

    def _wires_from_photos(self, photo_refs, photos, trace_data):
        photofirst_data = self._main_photo(photo_refs, photos)
        if not isinstance(photofirst_data, dict):
            return []

        wires = {}
        for _, item in Utils.as_list(photofirst_data.get('wire')):
            trace_id = item.get('_trace') or item.get('trace_id')
            trace = trace_data.get(trace_id, {}) if trace_id else {}
            owner = trace.get('company') or item.get('company') or item.get('owner') or ""
            cable_type = trace.get('cable_type') or item.get('cable_type') or item.get('type') or ""

            height = item.get('_measured_height')
            if height is None:
                height = item.get('_manual_height')
            existing = Utils.parse_height_to_inches(height)
            move = Utils.to_number(item.get('mr_move'))
            observation = WireObservation(existing, move, effective_moves=bool(item.get('_effective_moves')))

            wire = FieldWire(trace_id, str(owner).strip(), str(cable_type).strip(),
                             proposed=bool(trace.get('proposed')), observations=[observation])
            self._merge_wire(wires, wire)
        return list(wires.values())

    def _wires_from_attachments(self, attachments):
        """Span-level attachment lists: [{owner, type, height, move|proposed_height}]"""
        wires = {}
        for _, item in Utils.as_list(attachments):
            _, owner = Utils.lookup_first(item, ['owner', 'company'])
            _, cable_type = Utils.lookup_first(item, ['type', 'cable_type', 'description'])
            _, height = Utils.lookup_first(item, ['measured_height', 'existing_height', 'height'])
            existing = Utils.parse_height_to_inches(Utils.unwrap_value(height))

            _, move = Utils.lookup_first(item, ['mr_move', 'move'])
            move = Utils.to_number(move)
            _, proposed = Utils.lookup_first(item, ['proposed_height'])
            proposed = Utils.parse_height_to_inches(Utils.unwrap_value(proposed))
            if move is None and proposed is not None and existing is not None:
                move = proposed - existing

            wire = FieldWire(item.get('trace_id'), Utils.owner_name(owner), str(cable_type or "").strip(),
                             observations=[WireObservation(existing, move)])
            self._merge_wire(wires, wire)
        return list(wires.values())
