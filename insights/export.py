"""
Excel export of stored predictions.

Churn workbooks list the cancellation probability and reason; every other
analysis type adds the suggested product and reads as a sales sheet.
"""

import io
from pathlib import Path
from typing import Optional, Sequence

import pandas as pd
from openpyxl.styles import Font, PatternFill

from .models import AnalysisType, Prediction

SHEET_NAME = "Tahminler"

# (attribute, header, width)
CHURN_COLUMNS = [
    ("customer_name", "Müşteri Adı", 30),
    ("current_product", "Mevcut Ürün", 20),
    ("probability", "İptal Olasılığı (%)", 18),
    ("reason", "Potansiyel İptal Sebebi", 50),
    ("city", "Şehir", 15),
]

SALES_COLUMNS = [
    ("customer_name", "Müşteri Adı", 30),
    ("current_product", "Mevcut Ürün", 20),
    ("suggested_product", "Önerilen Ürün", 20),
    ("probability", "Satış Olasılığı (%)", 18),
    ("reason", "Satış Argümanı", 50),
    ("city", "Şehir", 15),
]

_HEADER_FONT = Font(bold=True)
_HEADER_FILL = PatternFill(fill_type="solid", fgColor="FFE0E0E0")


def export_columns(analysis_type: Optional[str]) -> list[tuple[str, str, int]]:
    if analysis_type == AnalysisType.CHURN.value:
        return CHURN_COLUMNS
    return SALES_COLUMNS


def predictions_sheet(
    predictions: Sequence[Prediction],
    analysis_type: Optional[str] = None,
) -> pd.DataFrame:
    """Export rows with Turkish headers, in the given order."""
    columns = export_columns(analysis_type)
    rows = [
        {header: getattr(p, attribute) for attribute, header, _ in columns}
        for p in predictions
    ]
    return pd.DataFrame(rows, columns=[header for _, header, _ in columns])


def write_predictions_excel(
    predictions: Sequence[Prediction],
    target,
    analysis_type: Optional[str] = None,
):
    """
    Write predictions to an .xlsx workbook.

    Args:
        predictions: Rows to export, already filtered and ordered
        target: File path, or a binary buffer
        analysis_type: Selects the churn or sales column layout

    Returns:
        The target
    """
    columns = export_columns(analysis_type)
    df = predictions_sheet(predictions, analysis_type)

    with pd.ExcelWriter(target, engine="openpyxl") as writer:
        df.to_excel(writer, sheet_name=SHEET_NAME, index=False)
        sheet = writer.sheets[SHEET_NAME]
        for cell in sheet[1]:
            cell.font = _HEADER_FONT
            cell.fill = _HEADER_FILL
        for position, (_, _, width) in enumerate(columns, start=1):
            sheet.column_dimensions[sheet.cell(row=1, column=position).column_letter].width = width

    return target


def predictions_excel_bytes(
    predictions: Sequence[Prediction],
    analysis_type: Optional[str] = None,
) -> bytes:
    buffer = io.BytesIO()
    write_predictions_excel(predictions, buffer, analysis_type)
    return buffer.getvalue()


def export_filename(analysis_type: Optional[str], when: pd.Timestamp) -> Path:
    """tahminler_<type>_<YYYYmmdd_HHMMSS>.xlsx"""
    return Path(f"tahminler_{analysis_type or 'all'}_{when.strftime('%Y%m%d_%H%M%S')}.xlsx")
