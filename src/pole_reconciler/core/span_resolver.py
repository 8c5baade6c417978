import logging

from ..models.data_models import AttachmentCategory, UNDERGROUND
from .config_manager import ConfigManager
from .utils import Utils


def _text(value):
    return str(value or "").replace('_', ' ').strip().lower()


def lowest_existing_heights(categorized_heights):
    """
    Pole-wide minimum existing height per category

    Args:
        categorized_heights: iterable of (category, inches) pairs

    Returns:
        dict: {Communication: min or None, PowerElectrical: min or None}
    """
    lowest = {AttachmentCategory.COMMUNICATION: None, AttachmentCategory.POWER: None}
    for category, height in categorized_heights:
        if category not in lowest or height is None:
            continue
        if lowest[category] is None or height < lowest[category]:
            lowest[category] = height
    return lowest


class AttachmentClassifier:
    """Sorts attachments into Communication, PowerElectrical or Other by keyword"""

    def __init__(self, comm_keywords, power_keywords):
        self.comm_keywords = comm_keywords
        self.power_keywords = power_keywords

    def classify_texts(self, texts):
        # Earlier texts are more reliable, so the first text that matches decides
        for text in texts:
            text = _text(text)
            if not text:
                continue
            if Utils.matches_keywords(text, self.comm_keywords):
                return AttachmentCategory.COMMUNICATION
            if Utils.matches_keywords(text, self.power_keywords):
                return AttachmentCategory.POWER
        return AttachmentCategory.OTHER

    def classify(self, attachment):
        return self.classify_texts([attachment.usage_group, attachment.attachment_type,
                                    attachment.description, attachment.owner])

    def classify_field_wire(self, wire):
        return self.classify_texts([wire.cable_type, wire.owner])


class MatchScorer:
    """Weighted similarity between a design attachment and a field wire"""

    def __init__(self, scoring, owner_aliases):
        self.scoring = scoring
        self.owner_aliases = owner_aliases or []

    @property
    def threshold(self):
        return self.scoring['threshold']

    def owner_score(self, design_owner, field_owner):
        a, b = _text(design_owner), _text(field_owner)
        if not a or not b:
            return 0
        if a == b:
            return self.scoring['owner_exact']
        if a in b or b in a:
            return self.scoring['owner_partial']
        return 0

    def type_score(self, attachment, field_type):
        field_type = _text(field_type)
        if not field_type:
            return 0
        candidates = [_text(t) for t in (attachment.usage_group, attachment.attachment_type,
                                         attachment.description)]
        candidates = [c for c in candidates if c]
        if any(c == field_type for c in candidates):
            return self.scoring['type_exact']
        if any(c in field_type or field_type in c for c in candidates):
            return self.scoring['type_partial']
        return 0

    def alias_score(self, design_owner, field_owner):
        a, b = _text(design_owner), _text(field_owner)
        if not a or not b:
            return 0
        score = 0
        for pair in self.owner_aliases:
            names = [_text(n) for n in pair if n]
            if any(n in a for n in names) and any(n in b for n in names):
                score += self.scoring['alias']
        return score

    def height_score(self, design_height, field_height):
        if design_height is None or field_height is None:
            return 0
        window = self.scoring['height_window_inches']
        difference = abs(design_height - field_height)
        if window <= 0 or difference >= window:
            return 0
        return self.scoring['height_max'] * (1 - difference / window)

    def score(self, attachment, wire, design_height=None):
        field_height = wire.lowest_existing
        return (self.owner_score(attachment.owner, wire.owner)
                + self.type_score(attachment, wire.cable_type)
                + self.alias_score(attachment.owner, wire.owner)
                + self.height_score(design_height, field_height))

    def best_match(self, attachment, wires, design_height=None):
        """Highest-scoring wire at or above the threshold; ties keep the first seen"""
        best, best_score = None, None
        for wire in wires:
            score = self.score(attachment, wire, design_height)
            logging.debug(f"Score {score:.1f} for {attachment!r} against {wire!r}")
            if score < self.threshold:
                continue
            if best is None or score > best_score:
                best, best_score = wire, score
        return best, best_score


class ResolvedAttachment:
    def __init__(self, recommended, measured, category):
        self.recommended = recommended
        self.measured = measured
        self.category = category
        self.field_pole_wire = None
        self.midspan_height = None
        self.midspan_is_existing = False


class ResolvedSpan:
    def __init__(self, label, is_reference, is_underground, direction=None,
                 adjacent_label=None, adjacent_pole_id=None, end_point_type=None):
        self.label = label
        self.is_reference = is_reference
        self.is_underground = is_underground
        self.direction = direction
        self.adjacent_label = adjacent_label
        self.adjacent_pole_id = adjacent_pole_id
        self.end_point_type = end_point_type
        self.attachments = []


class PoleSpans:
    def __init__(self, spans, lowest_comm=None, lowest_power=None, has_field_data=False):
        self.spans = spans
        self.lowest_comm = lowest_comm
        self.lowest_power = lowest_power
        self.has_field_data = has_field_data


class SpanResolver:
    """Groups attachments by span and resolves heights for each attachment"""

    def __init__(self, config=None):
        self.config = ConfigManager.with_defaults(config)
        self.classifier = AttachmentClassifier(self.config['comm_keywords'], self.config['power_keywords'])
        self.scorer = MatchScorer(self.config['match_scoring'], self.config['owner_aliases'])
        self.backspan_types = [t.upper() for t in self.config['backspan_end_point_types']]
        self.mainline_types = [t.upper() for t in self.config['mainline_end_point_types']]

    def span_label(self, end_point):
        end_point_type = str(end_point.get('type') or '').upper()
        if end_point_type in self.backspan_types:
            return "Backspan"

        direction = Utils.compass_direction(end_point.get('direction'))
        label = str(end_point.get('structureLabel') or '').strip()
        if direction and label:
            return f"Ref ({direction}) to {label}"
        if direction:
            return f"Ref ({direction})"
        if label:
            return f"Ref to {label}"
        return "Ref"

    def _span(self, end_point):
        end_point_type = str(end_point.get('type') or '').upper()
        label = str(end_point.get('structureLabel') or '').strip() or None
        return ResolvedSpan(
            label=self.span_label(end_point),
            is_reference=end_point_type not in self.mainline_types,
            is_underground='UNDERGROUND' in end_point_type,
            direction=Utils.compass_direction(end_point.get('direction')),
            adjacent_label=label,
            adjacent_pole_id=Utils.normalize_pole_id(label, self.config['pole_id_prefixes']) if label else None,
            end_point_type=end_point_type or None,
        )

    @staticmethod
    def _wire_ids(end_point):
        ids = []
        for wire in end_point.get('wires') or []:
            wire_id = wire.get('id') if isinstance(wire, dict) else wire
            if wire_id is not None:
                ids.append(str(wire_id))
        return ids

    @staticmethod
    def find_measured(recommended, measured_attachments):
        """Measured counterpart by exact id, else by usage group, owner and size"""
        for candidate in measured_attachments:
            if recommended.attachment_id is not None and candidate.attachment_id == recommended.attachment_id:
                return candidate

        similar = [c for c in measured_attachments
                   if c.kind == recommended.kind
                   and _text(c.usage_group or c.attachment_type) == _text(recommended.usage_group or recommended.attachment_type)
                   and _text(c.owner) == _text(recommended.owner)
                   and _text(c.size) == _text(recommended.size)]
        if not similar:
            return None
        if recommended.height_inches is None:
            return similar[0]

        def distance(candidate):
            if candidate.height_inches is None:
                return float('inf')
            return abs(candidate.height_inches - recommended.height_inches)

        # min() keeps the first of equally close candidates
        return min(similar, key=distance)

    def group_spans(self, extraction):
        spans = []
        for end_point in extraction.wire_end_points:
            span = self._span(end_point)
            for wire_id in self._wire_ids(end_point):
                recommended = extraction.recommended_by_id(wire_id)
                if recommended is None:
                    logging.debug(f"Pole {extraction.canonical_id}: wire {wire_id} on {span.label} "
                                  f"not found in recommended design")
                    continue
                measured = self.find_measured(recommended, extraction.measured_attachments)
                category = self.classifier.classify(recommended)
                span.attachments.append(ResolvedAttachment(recommended, measured, category))
            spans.append(span)
        return spans

    def candidate_connections(self, pole_id, span, field_index):
        """Field connections whose wires may match attachments on this span"""
        touching = field_index.connections_for(pole_id)
        if span.is_reference:
            return [c for c in touching if c.is_reference] + [c for c in touching if not c.is_reference]
        if not span.adjacent_pole_id:
            return []
        return [c for c in touching if c.other_end(pole_id) == span.adjacent_pole_id]

    @staticmethod
    def _design_height(item):
        if item.measured is not None and item.measured.height_inches is not None:
            return item.measured.height_inches
        return item.recommended.height_inches

    def resolve_midspan(self, item, candidate_wires):
        """(height, is_existing) of the best-matching field wire, or (None, False)"""
        wire, _ = self.scorer.best_match(item.recommended, candidate_wires, self._design_height(item))
        if wire is None:
            return None, False
        if wire.lowest_proposed is not None:
            return wire.lowest_proposed, False
        if wire.lowest_existing is not None:
            return wire.lowest_existing, True
        return None, False

    def resolve(self, extraction, field_index):
        """
        Build spans for one pole and resolve every attachment's heights

        Returns:
            PoleSpans
        """
        pole_id = extraction.canonical_id
        spans = self.group_spans(extraction)
        pole_wires = field_index.wires_at(pole_id) if field_index else []
        has_field_data = field_index is not None and field_index.has_data_for(pole_id)

        for span in spans:
            connections = self.candidate_connections(pole_id, span, field_index) if field_index else []
            if any(c.is_underground for c in connections):
                span.is_underground = True
            candidate_wires = [w for c in connections for w in c.wires if w.has_heights]

            for item in span.attachments:
                if span.is_underground:
                    item.midspan_height = UNDERGROUND
                try:
                    if has_field_data:
                        item.field_pole_wire, _ = self.scorer.best_match(
                            item.recommended, pole_wires, self._design_height(item))
                    if not span.is_underground:
                        item.midspan_height, item.midspan_is_existing = self.resolve_midspan(item, candidate_wires)
                except Exception as e:
                    logging.error(f"Pole {pole_id}: mid-span height failed for "
                                  f"{item.recommended.attachment_id} on {span.label}: {e}")
                    if not span.is_underground:
                        item.midspan_height, item.midspan_is_existing = None, False

        field_wires = pole_wires + field_index.span_wires_at(pole_id) if field_index else []
        lowest = lowest_existing_heights(self._existing_heights(extraction, field_wires, has_field_data))
        return PoleSpans(spans, lowest[AttachmentCategory.COMMUNICATION],
                         lowest[AttachmentCategory.POWER], has_field_data)

    def _existing_heights(self, extraction, field_wires, has_field_data):
        """(category, inches) pairs over every field wire of the pole, else every measured attachment"""
        if has_field_data:
            for wire in field_wires:
                yield self.classifier.classify_field_wire(wire), wire.lowest_existing
            return
        for attachment in extraction.measured_attachments:
            yield self.classifier.classify(attachment), attachment.height_inches
