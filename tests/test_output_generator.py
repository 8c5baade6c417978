import sys
import shutil
import tempfile
import unittest
from pathlib import Path

from openpyxl import load_workbook

sys.path.insert(0, str(Path(__file__).parent.parent / 'src'))

from pole_reconciler.core.output_generator import OutputGenerator
from pole_reconciler.core.pole_data_processor import PoleDataProcessor
from pole_reconciler.models.data_models import PoleRecord

import sample_data


class TestOutputGenerator(unittest.TestCase):

    def setUp(self):
        design, field = sample_data.sample_surveys()
        field["connections"]["c2"] = sample_data.field_connection("n1", "n9", button="underground_path")
        self.result = PoleDataProcessor().process(design, field)
        self.generator = OutputGenerator()
        self.temp_dir = Path(tempfile.mkdtemp())

    def tearDown(self):
        shutil.rmtree(self.temp_dir, ignore_errors=True)

    def test_one_row_per_attachment(self):
        df = self.generator.to_dataframe(self.result.poles)
        self.assertEqual(len(df), 9)
        self.assertEqual(list(df["Pole"].unique()), ["PL100", "PL102"])
        first = df.iloc[0]
        self.assertEqual(first["Span"], "Backspan")
        self.assertEqual(first["Existing"], "21'-5\"")
        self.assertEqual(first["Midspan"], "N/A")

    def test_midspan_display_values(self):
        df = self.generator.to_dataframe(self.result.poles)
        next_span = df[df["Span"] == "Ref (N) to PL101"]
        self.assertEqual(list(next_span["Midspan"]), ["21'-0\"", "(25'-0\")", "(25'-0\")", "(19'-2\")"])
        # The reference span touches the underground connection
        reference = df[df["Span"] == "Ref (NE) to PL200"]
        self.assertEqual(list(reference["Midspan (in)"]), ["UG"])
        self.assertEqual(list(reference["Midspan"]), ["UG"])

    def test_pole_without_spans_gets_a_row(self):
        df = self.generator.to_dataframe([PoleRecord("PL7")])
        self.assertEqual(len(df), 1)
        self.assertEqual(df.iloc[0]["To Pole"], "N/A")
        self.assertIsNone(df.iloc[0]["Attachment"])

    def test_errors_to_dataframe(self):
        df = self.generator.errors_to_dataframe(self.result.errors)
        self.assertEqual(list(df.columns), ["code", "message", "details", "pole_id", "severity"])
        self.assertEqual(df.iloc[0]["pole_id"], "PL102")

    def test_write_output(self):
        output_file = self.temp_dir / "out" / "reconciled.xlsx"
        self.assertTrue(self.generator.write_output(self.result, output_file))
        wb = load_workbook(output_file)
        self.assertEqual(wb.sheetnames, ["Attachments", "Errors"])
        ws = wb["Attachments"]
        self.assertEqual(ws["A1"].value, "Pole")
        self.assertEqual(ws.max_row, 10)
        self.assertTrue(ws["A1"].font.bold)

    def test_sheet_names_come_from_config(self):
        generator = OutputGenerator({"output_settings": {"attachments_sheet": "Poles"}})
        output_file = self.temp_dir / "custom.xlsx"
        self.assertTrue(generator.write_output(self.result, output_file))
        self.assertEqual(load_workbook(output_file).sheetnames, ["Poles", "Errors"])


if __name__ == '__main__':
    unittest.main()
