import json
import logging
from pathlib import Path

from ..models.data_models import ErrorCode, ProcessingError
from .utils import Utils


class SourceLoader:
    """Parses design-survey and field-survey documents into in-memory trees"""

    DESIGN = "design survey"
    FIELD = "field survey"

    def __init__(self):
        self.errors = []

    def _error(self, code, message, details=None):
        logging.error(f"{message}{': ' + details if details else ''}")
        self.errors.append(ProcessingError(code, message, details))

    def parse(self, source, document_name):
        """
        Parse a document given as a tree, JSON text, bytes or a file path

        Returns:
            dict or None: The parsed tree, None after recording a PARSE_ERROR
        """
        if isinstance(source, (dict, list)):
            return source

        try:
            if isinstance(source, Path) or (isinstance(source, str) and self._looks_like_path(source)):
                with open(source, 'r', encoding='utf-8') as f:
                    tree = json.load(f)
                logging.info(f"Loaded {document_name} from {source}")
            elif isinstance(source, (bytes, bytearray)):
                tree = json.loads(source.decode('utf-8'))
            elif isinstance(source, str):
                tree = json.loads(source)
            else:
                self._error(ErrorCode.PARSE_ERROR, f"Unsupported {document_name} input",
                            type(source).__name__)
                return None
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            self._error(ErrorCode.PARSE_ERROR, f"Malformed {document_name} document", str(e))
            return None
        except OSError as e:
            self._error(ErrorCode.PARSE_ERROR, f"Could not read {document_name} document", str(e))
            return None

        if not isinstance(tree, (dict, list)):
            self._error(ErrorCode.PARSE_ERROR, f"{document_name.capitalize()} document is not a JSON object",
                        type(tree).__name__)
            return None
        return tree

    @staticmethod
    def _looks_like_path(text):
        stripped = text.strip()
        if not stripped or stripped[0] in '{[':
            return False
        try:
            return Path(stripped).exists()
        except (OSError, ValueError):
            return False

    def load_design(self, source):
        """Parse and validate the design survey; returns its location list or None"""
        tree = self.parse(source, self.DESIGN)
        if tree is None:
            return None
        locations = self.design_locations(tree)
        if locations is None:
            self._error(ErrorCode.INVALID_STRUCTURE, "Design survey has no locations array",
                        "expected leads[0].locations")
            return None
        logging.info(f"Design survey contains {len(locations)} locations")
        return locations

    @staticmethod
    def design_locations(tree):
        """Return leads[0].locations, or None when the shape is missing"""
        if isinstance(tree, list):
            return None
        leads = tree.get('leads')
        if isinstance(leads, list) and leads and isinstance(leads[0], dict):
            locations = leads[0].get('locations')
            if isinstance(locations, list):
                return locations
        # Some exports put locations at the top level
        locations = tree.get('locations')
        if isinstance(locations, list):
            return locations
        return None

    def load_field(self, source):
        """Parse the field survey; returns the tree or None after a PARSE_ERROR"""
        tree = self.parse(source, self.FIELD)
        if tree is None:
            return None
        if not isinstance(tree, dict):
            self._error(ErrorCode.PARSE_ERROR, "Field survey document is not a JSON object",
                        type(tree).__name__)
            return None
        nodes = self.field_nodes(tree)
        logging.info(f"Field survey contains {len(nodes)} nodes and "
                     f"{len(self.field_connections(tree))} connections")
        return tree

    @staticmethod
    def field_nodes(tree):
        """(node_id, node) pairs from whichever node collection the document uses"""
        if not isinstance(tree, dict):
            return []
        _, nodes = Utils.lookup_first(tree, ['nodes', 'data.nodes', 'poles', 'features'])
        return Utils.as_list(nodes)

    @staticmethod
    def field_connections(tree):
        """(connection_id, connection) pairs from connections or spans"""
        if not isinstance(tree, dict):
            return []
        _, connections = Utils.lookup_first(tree, ['connections', 'data.connections', 'spans'])
        return Utils.as_list(connections)
