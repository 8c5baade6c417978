import logging

from ..models.data_models import (NOT_AVAILABLE, UNKNOWN, AttachmentRecord, PoleRecord, SpanRecord)
from .config_manager import ConfigManager


def fixed_value_strategy(value):
    """Always resolve to the given value"""
    def strategy(extraction, resolved):
        return value
    return strategy


def default_value_strategy(value):
    """Keep the resolved value, using the given one only when nothing was found"""
    def strategy(extraction, resolved):
        if resolved in (None, '', UNKNOWN, NOT_AVAILABLE):
            return value
        return resolved
    return strategy


def describe_attachment(attachment):
    """Owner plus type, e.g. "AT&T Communication" """
    kind = attachment.description or attachment.attachment_type or attachment.usage_group
    kind = str(kind or "").replace('_', ' ').strip()
    if kind.isupper():
        kind = kind.title()
    parts = [p for p in (attachment.owner, kind) if p]
    return " ".join(parts) if parts else UNKNOWN


class PoleRecordAssembler:
    """
    Merges extracted and resolved data into PoleRecords

    Owner and grade resolution can be overridden by passing strategy callables.
    A strategy receives the pole's extraction and the value resolved by the
    default priority rules, and returns the value to use.
    """

    def __init__(self, config=None, owner_strategy=None, grade_strategy=None):
        self.config = ConfigManager.with_defaults(config)
        self.owner_strategy = owner_strategy
        self.grade_strategy = grade_strategy
        self.previous_types = [t.upper() for t in self.config['backspan_end_point_types']]

    def resolve_owner(self, extraction):
        owner = extraction.field_owner or extraction.structural_owner or UNKNOWN
        if self.owner_strategy:
            owner = self.owner_strategy(extraction, owner) or owner
        return owner

    def resolve_grade(self, extraction):
        grade = extraction.construction_grade
        if self.grade_strategy:
            grade = self.grade_strategy(extraction, grade)
        return grade

    def resolve_from_to(self, extraction, field_index):
        pole_id = extraction.canonical_id

        if field_index is not None and extraction.field_node_id is not None:
            connections = [c for c in field_index.connections_for(pole_id)
                           if not c.is_reference and not c.is_underground and c.other_end(pole_id)]
            # Prefer a connection that starts at this pole
            connections.sort(key=lambda c: c.from_pole_id != pole_id)
            if connections:
                return connections[0].from_pole_id, connections[0].to_pole_id

        next_label = previous_label = None
        for end_point in extraction.wire_end_points:
            end_point_type = str(end_point.get('type') or '').upper()
            label = str(end_point.get('structureLabel') or '').strip()
            if not label:
                continue
            if end_point_type == 'NEXT_POLE' and next_label is None:
                next_label = label
            elif end_point_type in self.previous_types and previous_label is None:
                previous_label = label

        if next_label:
            return pole_id, next_label
        if previous_label:
            return previous_label, pole_id
        return pole_id, NOT_AVAILABLE

    @staticmethod
    def existing_height(item, has_field_data):
        """Field-verified height when the pole has field data, else the measured design"""
        if has_field_data and item.field_pole_wire is not None:
            field_height = item.field_pole_wire.lowest_existing
            if field_height is not None:
                return field_height
        if item.measured is not None:
            return item.measured.height_inches
        return None

    def assemble_attachment(self, item, has_field_data):
        recommended = item.recommended
        return AttachmentRecord(
            description=describe_attachment(recommended),
            category=item.category,
            existing_height_inches=self.existing_height(item, has_field_data),
            proposed_height_inches=recommended.height_inches,
            midspan_proposed_height_inches=item.midspan_height,
            midspan_is_existing=item.midspan_is_existing,
            owner=recommended.owner,
            wire_id=recommended.attachment_id,
        )

    def assemble(self, extraction, pole_spans, field_index=None):
        """
        Build the PoleRecord for one pole

        Args:
            extraction (PoleExtraction): Output of the AttachmentExtractor
            pole_spans (PoleSpans): Output of the SpanResolver
            field_index (FieldSurveyIndex, optional): Field connections for From/To

        Returns:
            PoleRecord
        """
        spans = []
        for span in pole_spans.spans:
            spans.append(SpanRecord(
                label=span.label,
                is_reference=span.is_reference,
                is_underground=span.is_underground,
                attachments=[self.assemble_attachment(item, pole_spans.has_field_data)
                             for item in span.attachments],
                direction=span.direction,
                adjacent_pole_id=span.adjacent_pole_id,
                end_point_type=span.end_point_type,
            ))

        from_pole, to_pole = self.resolve_from_to(extraction, field_index)
        record = PoleRecord(
            canonical_id=extraction.canonical_id,
            owner=self.resolve_owner(extraction),
            structure_description=extraction.structure_description,
            riser_count=extraction.riser_count,
            guy_count=extraction.guy_count,
            loading_ratio_percent=extraction.loading_ratio_percent,
            construction_grade=self.resolve_grade(extraction),
            lowest_existing_comm_height_inches=pole_spans.lowest_comm,
            lowest_existing_power_height_inches=pole_spans.lowest_power,
            spans=spans,
            from_pole_id=from_pole,
            to_pole_id=to_pole,
            design_label=extraction.label,
            field_node_id=extraction.field_node_id,
            has_field_data=pole_spans.has_field_data,
        )
        logging.debug(f"Assembled pole {record.canonical_id}: {len(spans)} spans, owner {record.owner}")
        return record
