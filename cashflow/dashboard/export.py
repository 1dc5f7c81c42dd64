import io
from datetime import datetime
from typing import List

import pandas as pd
from openpyxl.styles import Font, PatternFill
from openpyxl.utils import get_column_letter

from cashflow.expenses.models import Expense


EXPORT_COLUMNS = ["Date", "User", "Title", "Description", "Category", "Amount", "Currency", "Status"]

HEADER_FILL = PatternFill("solid", fgColor="FFE0E0E0")
HEADER_FONT = Font(bold=True)

CSV_MEDIA_TYPE = "text/csv; charset=utf-8"
XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


def expenses_dataframe(expenses: List[Expense]) -> pd.DataFrame:
    rows = [
        {
            "Date": e.created_at.strftime("%Y-%m-%d") if e.created_at else "",
            "User": e.submitted_by.name if e.submitted_by else "",
            "Title": e.title,
            "Description": e.description or "",
            "Category": e.category.name if e.category else "",
            "Amount": round(float(e.amount), 2),
            "Currency": e.currency,
            "Status": e.status.value if hasattr(e.status, "value") else e.status,
        }
        for e in expenses
    ]
    return pd.DataFrame(rows, columns=EXPORT_COLUMNS)


def category_summary(df: pd.DataFrame) -> pd.DataFrame:
    if df.empty:
        return pd.DataFrame(columns=["Category", "Total Amount", "Number of Expenses"])
    summary = (
        df.groupby("Category", sort=True)["Amount"]
        .agg(["sum", "count"])
        .reset_index()
    )
    summary.columns = ["Category", "Total Amount", "Number of Expenses"]
    return summary


def to_csv_bytes(expenses: List[Expense]) -> bytes:
    df = expenses_dataframe(expenses)
    # BOM so spreadsheet tools pick up utf-8
    return df.to_csv(index=False, float_format="%.2f").encode("utf-8-sig")


def _style_sheet(sheet, widths):
    for cell in sheet[1]:
        cell.font = HEADER_FONT
        cell.fill = HEADER_FILL
    for idx, width in enumerate(widths, start=1):
        sheet.column_dimensions[get_column_letter(idx)].width = width


def to_xlsx_bytes(expenses: List[Expense]) -> bytes:
    df = expenses_dataframe(expenses)
    summary = category_summary(df)

    buffer = io.BytesIO()
    with pd.ExcelWriter(buffer, engine="openpyxl") as writer:
        df.to_excel(writer, index=False, sheet_name="Expenses")
        summary.to_excel(writer, index=False, sheet_name="Summary")

        _style_sheet(writer.sheets["Expenses"], [15, 20, 30, 40, 20, 15, 10, 12])
        _style_sheet(writer.sheets["Summary"], [20, 15, 20])

    return buffer.getvalue()


def export_filename(prefix: str, extension: str) -> str:
    return f"{prefix}-{datetime.utcnow().strftime('%Y%m%d_%H%M%S')}.{extension}"
