import re
import logging

from ..models.data_models import (NOT_AVAILABLE, DesignAttachment, ErrorCode, ProcessingError)
from .config_manager import ConfigManager
from .utils import Utils

_GRADE_PATTERN = re.compile(r"grade[\s_\-]*([A-F])\b", re.IGNORECASE)


def _design_name(design):
    _, name = Utils.lookup_first(design, ['label', 'name'])
    return str(name).lower() if name else ""


def match_by_name(designs, keywords, measured, recommended):
    """Name/label substrings such as "Measured Design" or "Proposed" """
    if measured is None:
        measured = next((d for d in designs
                         if Utils.matches_keywords(_design_name(d), keywords['measured'])), None)
    if recommended is None:
        recommended = next((d for d in designs if d is not measured
                            and Utils.matches_keywords(_design_name(d), keywords['recommended'])), None)
    return measured, recommended


def match_by_layer_type(designs, keywords, measured, recommended):
    if measured is None:
        measured = next((d for d in designs if d is not recommended
                         and Utils.matches_keywords(d.get('layerType'), keywords['measured'])), None)
    if recommended is None:
        recommended = next((d for d in designs if d is not measured
                            and Utils.matches_keywords(d.get('layerType'), keywords['recommended'])), None)
    return measured, recommended


def match_by_position(designs, keywords, measured, recommended):
    """First unclaimed state is measured, the next is recommended; one state serves both"""
    remaining = [d for d in designs if d is not measured and d is not recommended]
    if measured is None:
        measured = remaining.pop(0) if remaining else recommended
    if recommended is None:
        recommended = remaining.pop(0) if remaining else measured
    return measured, recommended


DESIGN_STATE_MATCHERS = [match_by_name, match_by_layer_type, match_by_position]


def identify_design_states(designs, keywords, matchers=None):
    """
    Locate the as-measured and as-recommended states among unordered designs

    Each matcher fills in whichever state is still missing; the chain stops
    as soon as both are found.
    """
    designs = [d for d in designs if isinstance(d, dict)]
    measured = recommended = None
    for matcher in matchers or DESIGN_STATE_MATCHERS:
        measured, recommended = matcher(designs, keywords, measured, recommended)
        if measured is not None and recommended is not None:
            break
    return measured, recommended


class PoleExtraction:
    """Structural facts and attachments pulled from one design-survey location"""

    def __init__(self, canonical_id, label):
        self.canonical_id = canonical_id
        self.label = label
        self.structural_owner = None
        self.field_owner = None
        self.field_node_id = None
        self.structure_description = NOT_AVAILABLE
        self.riser_count = 0
        self.guy_count = 0
        self.loading_ratio_percent = None
        self.construction_grade = None
        self.measured_attachments = []
        self.recommended_attachments = []
        self.wire_end_points = []
        self.errors = []

    def recommended_by_id(self, attachment_id):
        return next((a for a in self.recommended_attachments if a.attachment_id == attachment_id), None)


class AttachmentExtractor:
    """Extracts structural attributes and attachments for a matched pole"""

    def __init__(self, config=None):
        self.config = ConfigManager.with_defaults(config)
        self.state_keywords = self.config['design_state_keywords']
        self.grade_keyword = self.config['grade_keyword']

    def safe_extract(self, match, errors):
        """extract(), recording a POLE_PROCESSING_ERROR and returning None on failure"""
        try:
            return self.extract(match)
        except Exception as e:
            logging.error(f"Failed to extract pole {match.canonical_id}: {e}")
            label = self._label(match.design)
            errors.append(ProcessingError(
                ErrorCode.POLE_PROCESSING_ERROR, f"Failed to process pole {label or match.canonical_id}",
                str(e), pole_id=match.canonical_id))
            return None

    @staticmethod
    def _label(location):
        _, label = Utils.lookup_first(location, ['label', 'name', 'id'])
        return str(label) if label is not None else None

    def extract(self, match):
        location = match.design
        extraction = PoleExtraction(match.canonical_id, self._label(location))
        designs = location.get('designs', [])
        if not isinstance(designs, list):
            raise ValueError(f"'designs' must be a list, got {type(designs).__name__}")

        measured, recommended = identify_design_states(designs, self.state_keywords)
        measured_structure = self._structure(measured)
        recommended_structure = self._structure(recommended)

        pole = measured_structure.get('pole') or recommended_structure.get('pole') or {}
        if not isinstance(pole, dict):
            raise ValueError(f"pole must be an object, got {type(pole).__name__}")

        extraction.structural_owner = self._field(
            extraction, 'owner', lambda: Utils.owner_name(pole.get('owner')) or None)
        extraction.structure_description = self._field(
            extraction, 'structure', lambda: self.structure_description(pole), NOT_AVAILABLE)
        extraction.riser_count = self._field(
            extraction, 'risers', lambda: self.count_risers(recommended_structure), 0)
        extraction.guy_count = self._field(
            extraction, 'guys', lambda: self.count_guys(recommended_structure), 0)

        cases = self._analysis_cases(location, recommended)
        extraction.loading_ratio_percent = self._field(
            extraction, 'loading ratio', lambda: self.loading_ratio(cases))
        extraction.construction_grade = self._field(
            extraction, 'construction grade', lambda: self.construction_grade(cases))

        extraction.measured_attachments = self.attachments(measured_structure)
        extraction.recommended_attachments = self.attachments(recommended_structure)
        end_points = recommended_structure.get('wireEndPoints') or []
        if not isinstance(end_points, list):
            raise ValueError("wireEndPoints must be a list")
        extraction.wire_end_points = [wep for wep in end_points if isinstance(wep, dict)]

        if match.field_node is not None:
            extraction.field_node_id = match.field_node_id
            extraction.field_owner = self._field(
                extraction, 'field owner', lambda: self.field_owner(match.field_node))
        return extraction

    def _field(self, extraction, name, getter, default=None):
        """Run a single field extraction; failures fall back to the default"""
        try:
            value = getter()
        except Exception as e:
            logging.warning(f"Pole {extraction.canonical_id}: could not extract {name}: {e}")
            extraction.errors.append(ProcessingError(
                ErrorCode.DATA_EXTRACTION_ERROR, f"Could not extract {name}", str(e),
                pole_id=extraction.canonical_id, severity="warning"))
            return default
        return default if value is None else value

    @staticmethod
    def _structure(design):
        if design is None:
            return {}
        structure = design.get('structure', {})
        if not isinstance(structure, dict):
            raise ValueError(f"design structure must be an object, got {type(structure).__name__}")
        return structure

    @staticmethod
    def structure_description(pole):
        """e.g. "40-4 Southern Pine" from height, class and species"""
        alias = pole.get('clientItemAlias')
        if alias:
            return str(alias).strip()

        client_item = pole.get('clientItem') or {}
        height = Utils.parse_height_to_inches(client_item.get('height'), 'METRE')
        pole_class = client_item.get('classOfPole')
        species = client_item.get('species')

        size = ""
        if height is not None:
            size = str(int(round(height / 12)))
            if pole_class:
                size = f"{size}-{pole_class}"
        elif pole_class:
            size = f"Class {pole_class}"

        description = " ".join(part for part in (size, species) if part)
        return description or NOT_AVAILABLE

    @staticmethod
    def _equipment_type(equipment):
        client_item = equipment.get('clientItem') or {}
        _, equipment_type = Utils.lookup_first(client_item, ['type', 'equipmentType'])
        if not equipment_type:
            equipment_type = equipment.get('type') or equipment.get('equipmentType')
        return str(equipment_type or "").replace('_', ' ')

    def count_risers(self, structure):
        return sum(1 for e in structure.get('equipments') or []
                   if isinstance(e, dict)
                   and Utils.matches_keywords(self._equipment_type(e), self.config['riser_keywords']))

    def count_guys(self, structure):
        guys = len(structure.get('guys') or []) + len(structure.get('spanGuys') or [])
        guys += sum(1 for e in structure.get('equipments') or []
                    if isinstance(e, dict)
                    and Utils.matches_keywords(self._equipment_type(e), self.config['guy_keywords']))
        return guys

    @staticmethod
    def _analysis_cases(location, recommended):
        cases = []
        for source in (location.get('analysis'), (recommended or {}).get('analysis')):
            if isinstance(source, list):
                cases.extend(c for c in source if isinstance(c, dict))
        return cases

    @staticmethod
    def _case_name(case):
        _, name = Utils.lookup_first(case, ['analysisCaseDetails.name', 'name', 'id'])
        return str(name or "")

    @staticmethod
    def _pole_stress_result(case):
        for result in case.get('results') or []:
            if not isinstance(result, dict):
                continue
            if str(result.get('analysisType', '')).upper() != 'STRESS':
                continue
            if str(result.get('component', '')).lower().startswith('pole'):
                return result
        return None

    def _preferred_case(self, cases):
        keyword = (self.grade_keyword or "").lower()
        if keyword:
            for case in cases:
                if keyword in self._case_name(case).lower() and self._pole_stress_result(case):
                    return case
        return next((c for c in cases if self._pole_stress_result(c)), None)

    def loading_ratio(self, cases):
        """Pole stress percentage, preferring the configured grade case"""
        case = self._preferred_case(cases)
        if case is None:
            return None
        return Utils.to_number(self._pole_stress_result(case).get('actual'))

    def construction_grade(self, cases):
        preferred = self._preferred_case(cases)
        ordered = ([preferred] if preferred else []) + [c for c in cases if c is not preferred]
        for case in ordered:
            grade = Utils.get_key(case.get('analysisCaseDetails') or {}, 'constructionGrade')
            if grade:
                return self.normalize_grade(grade)
        for case in ordered:
            m = _GRADE_PATTERN.search(self._case_name(case))
            if m:
                return f"Grade {m.group(1).upper()}"
        return None

    @staticmethod
    def normalize_grade(grade):
        text = str(grade).strip()
        m = _GRADE_PATTERN.search(text)
        if m:
            return f"Grade {m.group(1).upper()}"
        if re.fullmatch(r"[A-Fa-f]", text):
            return f"Grade {text.upper()}"
        return text

    def field_owner(self, node):
        _, owner = Utils.lookup_first(node, self.config['owner_keys'])
        owner = Utils.unwrap_value(owner)
        return str(owner).strip() if owner not in (None, '') else None

    def attachments(self, structure):
        """Wires then equipment of one design state, in source order"""
        result = []
        for kind, key in (('wire', 'wires'), ('equipment', 'equipments')):
            items = structure.get(key) or []
            if not isinstance(items, list):
                raise ValueError(f"{key} must be a list")
            for item in items:
                if isinstance(item, dict):
                    result.append(self._attachment(item, kind))
        return result

    @staticmethod
    def _attachment(item, kind):
        client_item = item.get('clientItem') or {}
        if not isinstance(client_item, dict):
            client_item = {'description': str(client_item)}
        _, attachment_type = Utils.lookup_first(client_item, ['type', 'specificType'])
        if not attachment_type:
            attachment_type = item.get('type', '')
        return DesignAttachment(
            attachment_id=str(item.get('id')) if item.get('id') is not None else None,
            owner=Utils.owner_name(item.get('owner')),
            usage_group=item.get('usageGroup', ''),
            attachment_type=str(attachment_type or ''),
            size=str(client_item.get('size') or ''),
            description=str(client_item.get('description') or item.get('description') or ''),
            height_inches=Utils.parse_height_to_inches(item.get('attachmentHeight'), 'METRE'),
            kind=kind,
        )
