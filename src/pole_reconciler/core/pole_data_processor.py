import logging

from ..models.data_models import ErrorCode, ProcessingError, ReconciliationResult
from .attachment_extractor import AttachmentExtractor
from .config_manager import ConfigManager
from .data_loader import SourceLoader
from .field_survey_reader import FieldSurveyReader
from .pole_matcher import PoleMatcher
from .record_assembler import PoleRecordAssembler
from .span_resolver import SpanResolver


class PoleDataProcessor:
    """Runs the reconciliation of a design survey against a field survey"""

    def __init__(self, config=None, owner_strategy=None, grade_strategy=None):
        self.config = ConfigManager.with_defaults(config)
        self.extractor = AttachmentExtractor(self.config)
        self.resolver = SpanResolver(self.config)
        self.assembler = PoleRecordAssembler(self.config, owner_strategy, grade_strategy)
        self.field_reader = FieldSurveyReader(self.config)

    def process(self, design_source, field_source=None, progress_callback=None):
        """
        Reconcile the two surveys into per-pole records

        Args:
            design_source: Design-survey tree, JSON text or file path
            field_source: Field-survey tree, JSON text or file path (optional)
            progress_callback (callable, optional): Called as (percent, message);
                returning False stops processing before the next pole

        Returns:
            ReconciliationResult
        """
        if progress_callback:
            progress_callback(5, "Loading surveys...")

        loader = SourceLoader()
        locations = loader.load_design(design_source)
        field_tree = loader.load_field(field_source) if field_source is not None else None
        errors = list(loader.errors)

        if locations is None:
            logging.error("Design survey could not be loaded, no poles to process")
            return ReconciliationResult([], errors)

        if progress_callback:
            if progress_callback(20, "Matching poles...") is False:
                return self._cancelled([], errors)

        matcher = PoleMatcher(self.config)
        matches = matcher.build(locations, SourceLoader.field_nodes(field_tree) if field_tree else [])
        errors.extend(matcher.errors)
        field_index = self.field_reader.read(field_tree, matcher.node_pole_ids, matcher.pole_node_ids)
        errors.extend(self.field_reader.errors)

        if self.config['processing_options'].get('emit_unmatched_warnings', True):
            for pole_id in matcher.unmatched_ids:
                errors.append(ProcessingError(
                    ErrorCode.DATA_EXTRACTION_ERROR, f"No field survey node for pole {pole_id}",
                    "field-sourced values are left empty", pole_id=pole_id, severity="warning"))

        poles = []
        total = len(matches)
        for index, match in enumerate(matches.values()):
            if progress_callback:
                percent = 30 + int(65 * index / total) if total else 95
                if progress_callback(percent, f"Processing pole {match.canonical_id}...") is False:
                    return self._cancelled(poles, errors)

            record = self.process_pole(match, field_index, errors)
            if record is not None:
                poles.append(record)

        if progress_callback:
            progress_callback(100, "Reconciliation complete")

        logging.info(f"Reconciled {len(poles)} of {total} poles with {len(errors)} error entries")
        return ReconciliationResult(poles, errors)

    def process_pole(self, match, field_index, errors):
        """Build one PoleRecord; failures become a POLE_PROCESSING_ERROR and return None"""
        extraction = self.extractor.safe_extract(match, errors)
        if extraction is None:
            return None
        errors.extend(extraction.errors)

        try:
            pole_spans = self.resolver.resolve(extraction, field_index)
            return self.assembler.assemble(extraction, pole_spans, field_index)
        except Exception as e:
            logging.error(f"Failed to process pole {match.canonical_id}: {e}")
            errors.append(ProcessingError(
                ErrorCode.POLE_PROCESSING_ERROR,
                f"Failed to process pole {extraction.label or match.canonical_id}",
                str(e), pole_id=match.canonical_id))
            return None

    @staticmethod
    def _cancelled(poles, errors):
        logging.warning(f"Processing cancelled after {len(poles)} poles")
        errors.append(ProcessingError(
            ErrorCode.PROCESSING_CANCELLED, "Processing cancelled",
            f"{len(poles)} poles completed", severity="warning"))
        return ReconciliationResult(poles, errors)
