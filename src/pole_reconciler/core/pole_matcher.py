import logging

from ..models.data_models import UNKNOWN, ErrorCode, PoleMatch, ProcessingError
from .config_manager import ConfigManager
from .utils import Utils

DESIGN_LABEL_KEYS = ['label', 'name', 'id']


class PoleMatcher:
    """Owns the canonical id maps for both surveys and pairs their poles"""

    def __init__(self, config=None):
        self.config = ConfigManager.with_defaults(config)
        self.prefixes = self.config['pole_id_prefixes']
        self.pole_number_keys = self.config['pole_number_keys']
        self.design_map = {}
        self.field_map = {}
        self.node_pole_ids = {}
        self.matches = {}
        self.errors = []

    def normalize(self, raw):
        return Utils.normalize_pole_id(raw, self.prefixes)

    def design_label(self, location):
        _, label = Utils.lookup_first(location, DESIGN_LABEL_KEYS)
        return str(label).strip() if label is not None else None

    def field_pole_number(self, node):
        """Search a field node exhaustively for a pole-number attribute"""
        for path in self.pole_number_keys:
            matched, value = Utils.lookup_first(node, [path])
            if matched is None:
                continue
            value = Utils.unwrap_value(value)
            if value is None or not str(value).strip():
                continue
            return matched, value
        return None, None

    def build_design_map(self, locations):
        self.design_map = {}
        for index, location in enumerate(locations):
            if not isinstance(location, dict):
                pole_ref = f"location[{index}]"
                logging.error(f"Design location {pole_ref} is not an object")
                self.errors.append(ProcessingError(
                    ErrorCode.POLE_PROCESSING_ERROR, "Design location is not an object",
                    type(location).__name__, pole_id=pole_ref))
                continue

            label = self.design_label(location)
            canonical_id = self.normalize(label)
            if canonical_id == UNKNOWN:
                canonical_id = f"location[{index}]"
                logging.warning(f"Design location {index} has no label, using {canonical_id}")

            if canonical_id in self.design_map:
                logging.warning(f"Duplicate design pole {canonical_id} (label '{label}'), keeping the first")
                self.errors.append(ProcessingError(
                    ErrorCode.POLE_PROCESSING_ERROR, "Duplicate design pole id",
                    f"label '{label}' normalizes to an id already in use",
                    pole_id=canonical_id, severity="warning"))
                continue
            self.design_map[canonical_id] = location
        return self.design_map

    def build_field_map(self, field_nodes):
        """field_nodes: (node_id, node) pairs"""
        self.field_map = {}
        self.node_pole_ids = {}
        for node_id, node in field_nodes:
            matched_key, raw = self.field_pole_number(node)
            if matched_key is None:
                logging.debug(f"Field node {node_id} has no pole number")
                continue
            canonical_id = self.normalize(raw)
            if canonical_id == UNKNOWN:
                continue

            self.node_pole_ids[node_id] = canonical_id
            if canonical_id in self.field_map:
                first_node_id = self.field_map[canonical_id][0]
                logging.warning(f"Field nodes {first_node_id} and {node_id} both normalize to "
                                f"{canonical_id}, keeping {first_node_id}")
                self.errors.append(ProcessingError(
                    ErrorCode.DATA_EXTRACTION_ERROR, "Ambiguous field node for pole",
                    f"nodes {first_node_id} and {node_id} share id {canonical_id}",
                    pole_id=canonical_id, severity="warning"))
                continue
            self.field_map[canonical_id] = (node_id, node, matched_key)
        return self.field_map

    def build(self, locations, field_nodes):
        """
        Match design locations to field nodes by canonical id

        Returns:
            dict: canonical id -> PoleMatch, in design-survey order
        """
        self.errors = []
        self.build_design_map(locations)
        self.build_field_map(field_nodes)

        self.matches = {}
        for canonical_id, location in self.design_map.items():
            field_entry = self.field_map.get(canonical_id)
            if field_entry:
                node_id, node, matched_key = field_entry
                logging.debug(f"Pole {canonical_id} matched field node {node_id} via '{matched_key}'")
                self.matches[canonical_id] = PoleMatch(canonical_id, location, node, node_id, matched_key)
            else:
                self.matches[canonical_id] = PoleMatch(canonical_id, location)

        matched = sum(1 for m in self.matches.values() if m.is_matched)
        logging.info(f"Matched {matched} of {len(self.matches)} design poles to field nodes")
        return self.matches

    @property
    def unmatched_ids(self):
        return [pid for pid, m in self.matches.items() if not m.is_matched]

    @property
    def pole_node_ids(self):
        """Canonical pole id -> the field node that won the match"""
        return {pid: entry[0] for pid, entry in self.field_map.items()}
