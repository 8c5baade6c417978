# Data models shared by the reconciliation engine and its consumers.

UNKNOWN = "Unknown"
NOT_AVAILABLE = "N/A"
UNDERGROUND = "UG"


class AttachmentCategory:
    COMMUNICATION = "Communication"
    POWER = "PowerElectrical"
    OTHER = "Other"


class ErrorCode:
    PARSE_ERROR = "PARSE_ERROR"
    INVALID_STRUCTURE = "INVALID_STRUCTURE"
    POLE_PROCESSING_ERROR = "POLE_PROCESSING_ERROR"
    DATA_EXTRACTION_ERROR = "DATA_EXTRACTION_ERROR"
    PROCESSING_CANCELLED = "PROCESSING_CANCELLED"

    # Codes that stop the whole run
    FATAL = (INVALID_STRUCTURE,)


class ProcessingError:
    def __init__(self, code, message, details=None, pole_id=None, severity="error"):
        self.code = code
        self.message = message
        self.details = details
        self.pole_id = pole_id
        self.severity = severity

    @property
    def is_warning(self):
        return self.severity == "warning"

    def to_dict(self):
        result = {"code": self.code, "message": self.message}
        if self.details:
            result["details"] = self.details
        if self.pole_id:
            result["pole_id"] = self.pole_id
        result["severity"] = self.severity
        return result

    def __repr__(self):
        return f"ProcessingError({self.code!r}, {self.message!r}, pole_id={self.pole_id!r})"


class WireObservation:
    """One photo-derived measurement of a wire, in inches, with an optional move."""

    def __init__(self, existing_height, move=None, effective_moves=False):
        self.existing_height = existing_height
        self.move = move
        self.effective_moves = effective_moves

    @property
    def proposed_height(self):
        if self.existing_height is None:
            return None
        # Effective moves are already folded into the measured height
        if self.effective_moves:
            return self.existing_height
        if self.move:
            return self.existing_height + self.move
        return None


class FieldWire:
    """A physical wire seen in the field survey, with all of its observations."""

    def __init__(self, trace_id, owner="", cable_type="", proposed=False, observations=None):
        self.trace_id = trace_id
        self.owner = owner or ""
        self.cable_type = cable_type or ""
        self.proposed = proposed
        self.observations = observations if observations is not None else []

    @property
    def lowest_existing(self):
        heights = [o.existing_height for o in self.observations if o.existing_height is not None]
        return min(heights) if heights else None

    @property
    def lowest_proposed(self):
        heights = [o.proposed_height for o in self.observations if o.proposed_height is not None]
        return min(heights) if heights else None

    @property
    def has_heights(self):
        return self.lowest_existing is not None or self.lowest_proposed is not None

    def __repr__(self):
        return f"FieldWire({self.trace_id!r}, {self.owner!r}, {self.cable_type!r})"


class FieldConnection:
    def __init__(self, connection_id, from_node_id, to_node_id, connection_type="",
                 from_pole_id=None, to_pole_id=None, wires=None):
        self.connection_id = connection_id
        self.from_node_id = from_node_id
        self.to_node_id = to_node_id
        self.connection_type = connection_type or ""
        self.from_pole_id = from_pole_id
        self.to_pole_id = to_pole_id
        self.wires = wires if wires is not None else []
        self.is_underground = False
        self.is_reference = False

    def pole_ids(self):
        return {p for p in (self.from_pole_id, self.to_pole_id) if p}

    def other_end(self, pole_id):
        if self.from_pole_id == pole_id:
            return self.to_pole_id
        if self.to_pole_id == pole_id:
            return self.from_pole_id
        return None

    def __repr__(self):
        return f"FieldConnection({self.connection_id!r}, {self.from_pole_id!r} -> {self.to_pole_id!r})"


class DesignAttachment:
    """A wire or equipment item from one design state of the structural model."""

    def __init__(self, attachment_id, owner="", usage_group="", attachment_type="",
                 size="", description="", height_inches=None, kind="wire"):
        self.attachment_id = attachment_id
        self.owner = owner or ""
        self.usage_group = usage_group or ""
        self.attachment_type = attachment_type or ""
        self.size = size or ""
        self.description = description or ""
        self.height_inches = height_inches
        self.kind = kind

    def __repr__(self):
        return f"DesignAttachment({self.attachment_id!r}, {self.owner!r}, {self.usage_group!r})"


class PoleMatch:
    def __init__(self, canonical_id, design, field_node=None, field_node_id=None, matched_key=None):
        self.canonical_id = canonical_id
        self.design = design
        self.field_node = field_node
        self.field_node_id = field_node_id
        self.matched_key = matched_key

    @property
    def is_matched(self):
        return self.field_node is not None


class AttachmentRecord:
    def __init__(self, description, category, existing_height_inches=None,
                 proposed_height_inches=None, midspan_proposed_height_inches=None,
                 midspan_is_existing=False, owner="", wire_id=None):
        self.description = description
        self.category = category
        self.existing_height_inches = existing_height_inches
        self.proposed_height_inches = proposed_height_inches
        self.midspan_proposed_height_inches = midspan_proposed_height_inches
        self.midspan_is_existing = midspan_is_existing
        self.owner = owner
        self.wire_id = wire_id

    @property
    def is_unchanged(self):
        return (self.existing_height_inches is not None
                and self.existing_height_inches == self.proposed_height_inches)


class SpanRecord:
    def __init__(self, label, is_reference=False, is_underground=False, attachments=None,
                 direction=None, adjacent_pole_id=None, end_point_type=None):
        self.label = label
        self.is_reference = is_reference
        self.is_underground = is_underground
        self.attachments = attachments if attachments is not None else []
        self.direction = direction
        self.adjacent_pole_id = adjacent_pole_id
        self.end_point_type = end_point_type


class PoleRecord:
    def __init__(self, canonical_id, owner=UNKNOWN, structure_description=NOT_AVAILABLE,
                 riser_count=0, guy_count=0, loading_ratio_percent=None,
                 construction_grade=None, lowest_existing_comm_height_inches=None,
                 lowest_existing_power_height_inches=None, spans=None,
                 from_pole_id=None, to_pole_id=NOT_AVAILABLE, design_label=None,
                 field_node_id=None, has_field_data=False):
        self.canonical_id = canonical_id
        self.owner = owner
        self.structure_description = structure_description
        self.riser_count = riser_count
        self.guy_count = guy_count
        self.loading_ratio_percent = loading_ratio_percent
        self.construction_grade = construction_grade
        self.lowest_existing_comm_height_inches = lowest_existing_comm_height_inches
        self.lowest_existing_power_height_inches = lowest_existing_power_height_inches
        self.spans = spans if spans is not None else []
        self.from_pole_id = from_pole_id if from_pole_id is not None else canonical_id
        self.to_pole_id = to_pole_id
        self.design_label = design_label
        self.field_node_id = field_node_id
        self.has_field_data = has_field_data

    @property
    def has_proposed_riser(self):
        return self.riser_count > 0

    @property
    def has_proposed_guy(self):
        return self.guy_count > 0

    def iter_attachments(self):
        for span in self.spans:
            for attachment in span.attachments:
                yield span, attachment


class ReconciliationResult:
    def __init__(self, poles=None, errors=None):
        self.poles = poles if poles is not None else []
        self.errors = errors if errors is not None else []

    @property
    def has_fatal_error(self):
        return any(e.code in ErrorCode.FATAL for e in self.errors)

    def error_dicts(self):
        return [e.to_dict() for e in self.errors]

    def errors_for(self, pole_id):
        return [e for e in self.errors if e.pole_id == pole_id]

    def summary(self):
        return {
            "poles": len(self.poles),
            "matched_poles": sum(1 for p in self.poles if p.field_node_id is not None),
            "spans": sum(len(p.spans) for p in self.poles),
            "attachments": sum(1 for p in self.poles for _ in p.iter_attachments()),
            "errors": sum(1 for e in self.errors if not e.is_warning),
            "warnings": sum(1 for e in self.errors if e.is_warning),
        }
