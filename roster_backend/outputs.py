"""
Output Formatting

Generates Excel workbooks for operator review:
- Staff diff: summary counts plus one row per DiffItem, colored by kind
- Integrity: rows still missing attribution, grouped by person and in detail
"""
from __future__ import annotations

import io
from pathlib import Path
from typing import List, Sequence, Union

from openpyxl import Workbook
from openpyxl.styles import Alignment, Border, Font, PatternFill, Side
from openpyxl.utils import get_column_letter

from .models import DiffKind, DiffResult, IntegrityAlert


# =============================================================================
# Style Constants
# =============================================================================

HEADER_FILL = PatternFill(start_color="366092", end_color="366092", fill_type="solid")
HEADER_FONT = Font(bold=True, color="FFFFFF")

RED_FILL = PatternFill(start_color="FFC7CE", end_color="FFC7CE", fill_type="solid")
ORANGE_FILL = PatternFill(start_color="FCE4D6", end_color="FCE4D6", fill_type="solid")
BLUE_FILL = PatternFill(start_color="DDEBF7", end_color="DDEBF7", fill_type="solid")
CYAN_FILL = PatternFill(start_color="DDF4F7", end_color="DDF4F7", fill_type="solid")
GRAY_FILL = PatternFill(start_color="EDEDED", end_color="EDEDED", fill_type="solid")

THIN_BORDER = Border(
    left=Side(style='thin'),
    right=Side(style='thin'),
    top=Side(style='thin'),
    bottom=Side(style='thin')
)

AMOUNT_FORMAT = '#,##0.00'

KIND_FILLS = {
    DiffKind.CONFLICT: RED_FILL,
    DiffKind.MISSING_PARENT: ORANGE_FILL,
    DiffKind.NEW_PERSON: BLUE_FILL,
    DiffKind.SECONDARY_ONLY: CYAN_FILL,
    DiffKind.INACTIVE: GRAY_FILL,
}

Output = Union[io.BytesIO, Path, str]


def _save(wb: Workbook, output: Output) -> None:
    if isinstance(output, io.BytesIO):
        wb.save(output)
        output.seek(0)
    else:
        wb.save(str(output))


def _write_headers(ws, row: int, headers: Sequence[str]) -> None:
    for col, header in enumerate(headers, 1):
        cell = ws.cell(row=row, column=col, value=header)
        cell.fill = HEADER_FILL
        cell.font = HEADER_FONT
        cell.border = THIN_BORDER
        cell.alignment = Alignment(horizontal="center")


def _border_row(ws, row: int, width: int) -> None:
    for col in range(1, width + 1):
        ws.cell(row=row, column=col).border = THIN_BORDER


def _months(months) -> str:
    return ",".join(str(m) for m in sorted(months))


# =============================================================================
# Staff Diff Workbook
# =============================================================================

def write_diff_xlsx(output: Output, diff: DiffResult) -> None:
    """
    Sheets:
    - Summary: counts by difference kind
    - Differences: one row per person needing review
    """
    wb = Workbook()
    wb.remove(wb.active)

    ws = wb.create_sheet("Summary")
    ws["A1"] = "Staff Hierarchy Reconciliation"
    ws["A1"].font = Font(bold=True, size=14)
    ws["A3"] = "Items to review:"
    ws["B3"] = diff.total_items
    ws["A4"] = "Consistent:"
    ws["B4"] = diff.consistent_count
    row = 6
    _write_headers(ws, row, ["Kind", "Count"])
    for kind, count in diff.counts_by_kind.items():
        row += 1
        ws.cell(row=row, column=1, value=kind.value).fill = KIND_FILLS[kind]
        ws.cell(row=row, column=2, value=count)
        _border_row(ws, row, 2)
    _auto_width(ws)

    ws = wb.create_sheet("Differences")
    headers = [
        "Kind", "Role", "Name", "Code", "Roster Parent", "HR Parent", "Ledger Parent",
        "Ledger Months", "Policies", "Amount", "Suggested Parent", "Description",
    ]
    _write_headers(ws, 1, headers)
    for i, item in enumerate(diff.items, start=2):
        ws.cell(row=i, column=1, value=item.diff_kind.value).fill = KIND_FILLS[item.diff_kind]
        ws.cell(row=i, column=2, value=item.role.label)
        ws.cell(row=i, column=3, value=item.name)
        ws.cell(row=i, column=4, value=item.code)
        ws.cell(row=i, column=5, value=item.system.parent_name if item.system else "-")
        ws.cell(row=i, column=6, value=item.secondary.parent_name if item.secondary else "-")
        ws.cell(row=i, column=7, value=item.ledger.parent_name if item.ledger else "-")
        ws.cell(row=i, column=8, value=_months(item.ledger.months_observed) if item.ledger else "")
        ws.cell(row=i, column=9, value=item.ledger.policy_count if item.ledger else 0)
        ws.cell(row=i, column=10, value=item.ledger.total_amount if item.ledger else 0).number_format = AMOUNT_FORMAT
        ws.cell(row=i, column=11, value=item.suggested_parent)
        ws.cell(row=i, column=12, value=item.description)
        _border_row(ws, i, len(headers))
    ws.freeze_panes = "A2"
    _auto_width(ws)

    _save(wb, output)


# =============================================================================
# Integrity Workbook
# =============================================================================

def write_integrity_xlsx(output: Output, alert: IntegrityAlert) -> None:
    wb = Workbook()
    wb.remove(wb.active)

    ws = wb.create_sheet("Missing by Person")
    ws["A1"] = "Rows Missing Attribution"
    ws["A1"].font = Font(bold=True, size=14)
    ws["A2"] = (f"Total: {alert.total_missing}  (manager: {alert.missing_manager_count}, "
                f"director: {alert.missing_director_count}, both: {alert.missing_both_count})")
    headers = ["Name", "Role", "Missing", "Rows", "Amount", "Months"]
    _write_headers(ws, 4, headers)
    for i, p in enumerate(alert.missing_by_person, start=5):
        ws.cell(row=i, column=1, value=p.name)
        ws.cell(row=i, column=2, value=p.role.label)
        ws.cell(row=i, column=3, value=p.missing_field)
        ws.cell(row=i, column=4, value=p.count)
        ws.cell(row=i, column=5, value=p.total_amount).number_format = AMOUNT_FORMAT
        ws.cell(row=i, column=6, value=_months(p.months))
        _border_row(ws, i, len(headers))
    _auto_width(ws)

    ws = wb.create_sheet("Details")
    headers = ["Policy No", "Customer Manager", "Network", "Bank", "Amount", "Month", "Missing"]
    _write_headers(ws, 1, headers)
    for i, d in enumerate(alert.details, start=2):
        values: List = [d.policy_no, d.customer_manager, d.network_name, d.bank, d.amount, d.month, d.missing_field]
        for col, value in enumerate(values, 1):
            ws.cell(row=i, column=col, value=value)
        ws.cell(row=i, column=5).number_format = AMOUNT_FORMAT
        _border_row(ws, i, len(headers))
    ws.freeze_panes = "A2"
    _auto_width(ws)

    _save(wb, output)


# =============================================================================
# Utility Functions
# =============================================================================

def _auto_width(ws):
    """Auto-adjust column widths"""
    for column in ws.columns:
        max_length = 0
        column_letter = get_column_letter(column[0].column)
        for cell in column:
            if cell.value is not None:
                max_length = max(max_length, len(str(cell.value)))
        ws.column_dimensions[column_letter].width = min(max_length + 2, 50)
