import sys
import unittest
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent / 'src'))

from pole_reconciler.core.utils import Utils
from pole_reconciler.models.data_models import UNKNOWN


class TestNormalizePoleId(unittest.TestCase):

    def test_canonical_ids_pass_through(self):
        self.assertEqual(Utils.normalize_pole_id("PL100"), "PL100")
        self.assertEqual(Utils.normalize_pole_id("pl100"), "PL100")
        self.assertEqual(Utils.normalize_pole_id("  P7 "), "P7")

    def test_prefixes_and_leading_junk_are_stripped(self):
        self.assertEqual(Utils.normalize_pole_id("1-PL100"), "PL100")
        self.assertEqual(Utils.normalize_pole_id("Pole-PL100"), "PL100")
        self.assertEqual(Utils.normalize_pole_id("POLE #  AB12"), "AB12")
        self.assertEqual(Utils.normalize_pole_id("#PL55"), "PL55")
        self.assertEqual(Utils.normalize_pole_id("Pole Number: X9"), "X9")

    def test_embedded_id_is_extracted(self):
        self.assertEqual(Utils.normalize_pole_id("Job 7 / PL200 (field)"), "PL200")

    def test_empty_input_returns_unknown(self):
        self.assertEqual(Utils.normalize_pole_id(""), UNKNOWN)
        self.assertEqual(Utils.normalize_pole_id(None), UNKNOWN)
        self.assertEqual(Utils.normalize_pole_id("   "), UNKNOWN)
        self.assertEqual(Utils.normalize_pole_id("unknown"), UNKNOWN)

    def test_unrecognised_values_are_kept(self):
        self.assertEqual(Utils.normalize_pole_id("12345"), "12345")
        self.assertEqual(Utils.normalize_pole_id("---"), "---")
        self.assertEqual(Utils.normalize_pole_id("ABC123"), "ABC123")

    def test_unrecognised_fallback_is_upper_cased(self):
        self.assertEqual(Utils.normalize_pole_id(" #abc123x "), "ABC123X")
        self.assertEqual(Utils.normalize_pole_id("Pole # tower"), "TOWER")

    def test_custom_prefixes(self):
        self.assertEqual(Utils.normalize_pole_id("SCID-PL9", ["SCID-"]), "PL9")

    def test_normalize_is_idempotent(self):
        samples = [
            "", "PL100", "1-PL100", "Pole-PL100", "POLE #", "POLE#", "---", "12345",
            "Unknown", "pole pole pl1", "ABC123", "  p-12 ", "Job 7 / PL200 (field)",
            "PL100A", "1.2.3", "Pole Number: X9", "x", "ß1", "SCID 118 MISM013",
        ]
        for sample in samples:
            once = Utils.normalize_pole_id(sample)
            self.assertEqual(Utils.normalize_pole_id(once), once, f"not idempotent for {sample!r}")

    def test_normalize_never_raises(self):
        for value in [0, 12, 3.5, object(), ["PL1"], {"a": 1}]:
            self.assertIsInstance(Utils.normalize_pole_id(value), str)


class TestHeights(unittest.TestCase):

    def test_parse_feet_inches_strings(self):
        self.assertEqual(Utils.parse_height_to_inches("21'-5\""), 257)
        self.assertEqual(Utils.parse_height_to_inches("21' 5\""), 257)
        self.assertEqual(Utils.parse_height_to_inches("21'5"), 257)
        self.assertEqual(Utils.parse_height_to_inches("21'"), 252)

    def test_parse_colon_strings(self):
        self.assertEqual(Utils.parse_height_to_inches("21:5"), 257)
        self.assertEqual(Utils.parse_height_to_inches("5:6.5"), 66.5)

    def test_parse_numbers_use_unit(self):
        self.assertEqual(Utils.parse_height_to_inches(300), 300)
        self.assertEqual(Utils.parse_height_to_inches("300"), 300)
        self.assertEqual(Utils.parse_height_to_inches(10, "FOOT"), 120)
        self.assertAlmostEqual(Utils.parse_height_to_inches(1, "METRE"), 39.3701)
        self.assertAlmostEqual(Utils.parse_height_to_inches({"unit": "METRE", "value": 2}), 78.7402)

    def test_parse_unparseable_returns_none(self):
        with self.assertLogs(level='WARNING'):
            self.assertIsNone(Utils.parse_height_to_inches("about twenty feet"))
        with self.assertLogs(level='WARNING'):
            self.assertIsNone(Utils.parse_height_to_inches(5, "FURLONG"))
        self.assertIsNone(Utils.parse_height_to_inches(None))
        self.assertIsNone(Utils.parse_height_to_inches(""))
        self.assertIsNone(Utils.parse_height_to_inches(True))
        self.assertIsNone(Utils.parse_height_to_inches(float('nan')))

    def test_format_inches(self):
        self.assertEqual(Utils.format_inches(0), "0'-0\"")
        self.assertEqual(Utils.format_inches(257), "21'-5\"")
        self.assertEqual(Utils.format_inches(257.4), "21'-5\"")
        self.assertEqual(Utils.format_inches(11.5), "1'-0\"")
        self.assertEqual(Utils.format_inches(23.6), "2'-0\"")
        self.assertEqual(Utils.format_inches(None), "N/A")
        self.assertEqual(Utils.format_inches("tall"), "N/A")

    def test_round_trip(self):
        for inches in range(1000):
            self.assertEqual(Utils.parse_height_to_inches(Utils.format_inches(inches)), inches)

    def test_format_midspan(self):
        self.assertEqual(Utils.format_midspan("UG"), "UG")
        self.assertEqual(Utils.format_midspan(None), "N/A")
        self.assertEqual(Utils.format_midspan(252), "21'-0\"")
        self.assertEqual(Utils.format_midspan(230, unmoved=True), "(19'-2\")")


class TestLookups(unittest.TestCase):

    def test_compass_direction(self):
        self.assertEqual(Utils.compass_direction(0), "N")
        self.assertEqual(Utils.compass_direction(44), "NE")
        self.assertEqual(Utils.compass_direction(90), "E")
        self.assertEqual(Utils.compass_direction(200), "S")
        self.assertEqual(Utils.compass_direction(337.6), "N")
        self.assertEqual(Utils.compass_direction(-90), "W")
        self.assertIsNone(Utils.compass_direction(None))
        self.assertIsNone(Utils.compass_direction("north"))

    def test_lookup_first_returns_first_present_path(self):
        node = {"attributes": {"Pole_Number": "PL1", "scid": "  "}, "label": "L1"}
        self.assertEqual(Utils.lookup_first(node, ["attributes.scid", "attributes.polenumber", "label"]),
                         ("attributes.polenumber", "PL1"))
        self.assertEqual(Utils.lookup_first(node, [("attributes", "missing"), "label"]), ("label", "L1"))
        self.assertEqual(Utils.lookup_first(node, ["nothing"]), (None, None))

    def test_unwrap_value(self):
        self.assertEqual(Utils.unwrap_value({"-Imported": "PL1"}), "PL1")
        self.assertEqual(Utils.unwrap_value({"assessment": "PL2", "-Imported": ""}), "PL2")
        self.assertEqual(Utils.unwrap_value({"tagtext": "PL3"}), "PL3")
        self.assertEqual(Utils.unwrap_value({"abc123": "PL4"}), "PL4")
        self.assertEqual(Utils.unwrap_value([None, {"tagtext": "PL5"}]), "PL5")
        self.assertEqual(Utils.unwrap_value("PL6"), "PL6")

    def test_owner_name(self):
        self.assertEqual(Utils.owner_name({"id": "AT&T", "industry": "COMMUNICATION"}), "AT&T")
        self.assertEqual(Utils.owner_name(" Charter "), "Charter")
        self.assertEqual(Utils.owner_name(None), "")

    def test_as_list_accepts_keyed_and_array_collections(self):
        self.assertEqual(Utils.as_list({"n1": {"a": 1}, "bad": 3}), [("n1", {"a": 1})])
        self.assertEqual(Utils.as_list([{"id": "n2"}, {"b": 2}]), [("n2", {"id": "n2"}), ("1", {"b": 2})])
        self.assertEqual(Utils.as_list(None), [])


if __name__ == '__main__':
    unittest.main()
