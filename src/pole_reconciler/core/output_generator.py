import logging
from pathlib import Path

import pandas as pd
from openpyxl.styles import Font, PatternFill
from openpyxl.utils import get_column_letter

from .config_manager import ConfigManager
from .utils import Utils

POLE_COLUMNS = [
    "Pole", "Design Label", "Owner", "Structure", "Risers", "Guys", "Loading %",
    "Grade", "Lowest Comm (in)", "Lowest Power (in)", "From Pole", "To Pole",
]
ATTACHMENT_COLUMNS = [
    "Span", "Reference", "Underground", "Attachment", "Category",
    "Existing (in)", "Proposed (in)", "Midspan (in)", "Midspan Unmoved",
    "Existing", "Proposed", "Midspan",
]
ERROR_COLUMNS = ["code", "message", "details", "pole_id", "severity"]


class OutputGenerator:
    """Flattens reconciled pole records into tables and writes them to Excel"""

    def __init__(self, config=None):
        self.config = ConfigManager.with_defaults(config)
        self.output_settings = self.config["output_settings"]

    @staticmethod
    def _pole_values(pole):
        return [
            pole.canonical_id,
            pole.design_label,
            pole.owner,
            pole.structure_description,
            pole.riser_count,
            pole.guy_count,
            pole.loading_ratio_percent,
            pole.construction_grade,
            pole.lowest_existing_comm_height_inches,
            pole.lowest_existing_power_height_inches,
            pole.from_pole_id,
            pole.to_pole_id,
        ]

    @staticmethod
    def _attachment_values(span, attachment):
        midspan = attachment.midspan_proposed_height_inches
        return [
            span.label,
            span.is_reference,
            span.is_underground,
            attachment.description,
            attachment.category,
            attachment.existing_height_inches,
            attachment.proposed_height_inches,
            midspan,
            attachment.midspan_is_existing,
            Utils.format_inches(attachment.existing_height_inches),
            Utils.format_inches(attachment.proposed_height_inches),
            Utils.format_midspan(midspan, attachment.midspan_is_existing),
        ]

    def to_dataframe(self, poles):
        """One row per attachment; poles without attachments get a single row"""
        rows = []
        for pole in poles:
            pole_values = self._pole_values(pole)
            emitted = False
            for span in pole.spans:
                for attachment in span.attachments:
                    rows.append(pole_values + self._attachment_values(span, attachment))
                    emitted = True
                if not span.attachments:
                    rows.append(pole_values + [span.label, span.is_reference, span.is_underground]
                                + [None] * (len(ATTACHMENT_COLUMNS) - 3))
                    emitted = True
            if not emitted:
                rows.append(pole_values + [None] * len(ATTACHMENT_COLUMNS))

        df = pd.DataFrame(rows, columns=POLE_COLUMNS + ATTACHMENT_COLUMNS)
        # "UG" shares the column with numeric heights
        df["Midspan (in)"] = df["Midspan (in)"].astype(object)
        return df

    @staticmethod
    def errors_to_dataframe(errors):
        records = [e.to_dict() for e in errors]
        return pd.DataFrame(records, columns=ERROR_COLUMNS)

    @staticmethod
    def _format_sheet(ws):
        header_fill = PatternFill(start_color="D9E1F2", end_color="D9E1F2", fill_type="solid")
        for cell in ws[1]:
            cell.font = Font(bold=True)
            cell.fill = header_fill
        for index, column in enumerate(ws.columns, 1):
            width = max((len(str(c.value)) for c in column if c.value is not None), default=8)
            ws.column_dimensions[get_column_letter(index)].width = min(width + 2, 60)
        ws.freeze_panes = "A2"

    def write_output(self, result, output_file):
        """
        Write the Attachments and Errors sheets of a reconciliation result

        Returns:
            bool: True when the workbook was written
        """
        output_path = Path(output_file)
        try:
            output_path.parent.mkdir(parents=True, exist_ok=True)
            attachments_df = self.to_dataframe(result.poles)
            errors_df = self.errors_to_dataframe(result.errors)

            with pd.ExcelWriter(output_path, engine="openpyxl") as writer:
                attachments_df.to_excel(writer, sheet_name=self.output_settings["attachments_sheet"], index=False)
                errors_df.to_excel(writer, sheet_name=self.output_settings["errors_sheet"], index=False)
                for ws in writer.book.worksheets:
                    self._format_sheet(ws)

            logging.info(f"Wrote {len(attachments_df)} attachment rows and {len(errors_df)} "
                         f"error rows to {output_path}")
            return True
        except (OSError, ValueError) as e:
            logging.error(f"Failed to write output to {output_path}: {e}")
            return False

