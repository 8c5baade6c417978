import sys
import json
import shutil
import tempfile
import unittest
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent / 'src'))

from pole_reconciler.core.data_loader import SourceLoader
from pole_reconciler.models.data_models import ErrorCode

import sample_data


class TestSourceLoader(unittest.TestCase):

    def setUp(self):
        self.loader = SourceLoader()
        self.temp_dir = Path(tempfile.mkdtemp())

    def tearDown(self):
        shutil.rmtree(self.temp_dir, ignore_errors=True)

    def test_load_design_from_tree_text_and_path(self):
        design, _ = sample_data.sample_surveys()
        self.assertEqual(len(self.loader.load_design(design)), 2)
        self.assertEqual(len(self.loader.load_design(json.dumps(design))), 2)

        path = self.temp_dir / "design.json"
        path.write_text(json.dumps(design), encoding="utf-8")
        self.assertEqual(len(self.loader.load_design(path)), 2)
        self.assertEqual(len(self.loader.load_design(str(path))), 2)
        self.assertEqual(self.loader.errors, [])

    def test_malformed_document_is_parse_error(self):
        self.assertIsNone(self.loader.load_design('{"leads": ['))
        self.assertEqual(len(self.loader.errors), 1)
        self.assertEqual(self.loader.errors[0].code, ErrorCode.PARSE_ERROR)

    def test_non_object_document_is_parse_error(self):
        self.assertIsNone(self.loader.load_field('[1, 2, 3]'))
        self.assertEqual(self.loader.errors[0].code, ErrorCode.PARSE_ERROR)

    def test_missing_locations_is_invalid_structure(self):
        self.assertIsNone(self.loader.load_design({"leads": [{"label": "empty"}]}))
        self.assertEqual(self.loader.errors[0].code, ErrorCode.INVALID_STRUCTURE)

    def test_top_level_locations_are_accepted(self):
        locations = self.loader.load_design({"locations": [{"label": "PL1"}]})
        self.assertEqual(locations, [{"label": "PL1"}])

    def test_missing_file_is_parse_error(self):
        self.assertIsNone(self.loader.load_field(self.temp_dir / "missing.json"))
        self.assertEqual(self.loader.errors[0].code, ErrorCode.PARSE_ERROR)

    def test_field_collections_keyed_or_array(self):
        keyed = {"nodes": {"n1": {"attributes": {}}}, "connections": {"c1": {"node_id_1": "n1"}}}
        arrays = {"nodes": [{"id": "n1"}], "spans": [{"id": "s1", "node_id_1": "n1"}]}
        self.assertEqual([k for k, _ in SourceLoader.field_nodes(keyed)], ["n1"])
        self.assertEqual([k for k, _ in SourceLoader.field_connections(keyed)], ["c1"])
        self.assertEqual([k for k, _ in SourceLoader.field_nodes(arrays)], ["n1"])
        self.assertEqual([k for k, _ in SourceLoader.field_connections(arrays)], ["s1"])
        self.assertEqual(SourceLoader.field_nodes({}), [])


if __name__ == '__main__':
    unittest.main()
