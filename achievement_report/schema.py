"""Sheet schema inference for achievement templates."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

from openpyxl.workbook.workbook import Workbook
from openpyxl.worksheet.worksheet import Worksheet

from achievement_report.keys import normalize_key, normalize_territory_key, serial_text
from achievement_report.tokens import tokenize_item_name

logger = logging.getLogger(__name__)

HEADER_SCAN_ROWS = 10
PRIMARY_HEADER_LABEL = "rmsitems"
FALLBACK_HEADER_LABEL = "itemdescription"
ITEM_HEADER_LABELS = {PRIMARY_HEADER_LABEL, FALLBACK_HEADER_LABEL}
# "tatal" is a recurring typo in the templates
TOTAL_MARKERS = ("total", "tatal")
CUMULATIVE_MARKER = "cum"


@dataclass
class ItemTokenEntry:
    row: int
    label: str
    normalized: str
    tokens: list[str]


@dataclass
class SheetContext:
    sheet_name: str
    worksheet: Worksheet
    header_row: int
    item_column: int
    first_column: int
    last_row: int
    last_column: int
    column_map: dict[str, int]
    total_columns: set[int]
    item_row_map: dict[str, int]
    sr_row_map: dict[str, int]
    item_token_index: list[ItemTokenEntry]
    item_match_cache: dict[str, int | None] = field(default_factory=dict)


def cell_text(worksheet: Worksheet, row: int, column: int) -> str | None:
    cell = worksheet.cell(row=row, column=column)
    if cell.data_type == "f" or not isinstance(cell.value, str):
        return None
    return cell.value


def is_populated(worksheet: Worksheet) -> bool:
    for values in worksheet.iter_rows(values_only=True):
        if any(value is not None for value in values):
            return True
    return False


def find_header_row(worksheet: Worksheet) -> int | None:
    last_scan_row = min(worksheet.min_row + HEADER_SCAN_ROWS, worksheet.max_row)
    for target in (PRIMARY_HEADER_LABEL, FALLBACK_HEADER_LABEL):
        for row in range(worksheet.min_row, last_scan_row + 1):
            for column in range(worksheet.min_column, worksheet.max_column + 1):
                text = cell_text(worksheet, row, column)
                if text is not None and normalize_key(text) == target:
                    return row
    return None


def find_item_column(worksheet: Worksheet, header_row: int) -> int:
    for column in range(worksheet.min_column, worksheet.max_column + 1):
        text = cell_text(worksheet, header_row, column)
        if text is not None and normalize_key(text) in ITEM_HEADER_LABELS:
            return column
    return min(worksheet.min_column + 1, worksheet.max_column)


def is_total_label(normalized: str) -> bool:
    return any(marker in normalized for marker in TOTAL_MARKERS)


def find_cumulative_sheet_name(workbook: Workbook) -> str | None:
    for name in workbook.sheetnames:
        if CUMULATIVE_MARKER in normalize_key(name):
            return name
    return None


def build_sheet_context(workbook: Workbook, sheet_name: str | None) -> SheetContext | None:
    if not sheet_name or sheet_name not in workbook.sheetnames:
        return None
    worksheet = workbook[sheet_name]
    if not is_populated(worksheet):
        logger.debug("Sheet %r has no populated range", sheet_name)
        return None

    header_row = find_header_row(worksheet)
    if header_row is None:
        logger.debug("Sheet %r has no recognizable header row", sheet_name)
        return None

    item_column = find_item_column(worksheet, header_row)
    column_map: dict[str, int] = {}
    total_columns: set[int] = set()
    for column in range(item_column + 1, worksheet.max_column + 1):
        text = cell_text(worksheet, header_row, column)
        if text is None:
            continue
        normalized = normalize_key(text)
        if not normalized:
            continue
        column_map.setdefault(normalized, column)
        territory = normalize_territory_key(text)
        if territory and territory != normalized:
            column_map.setdefault(territory, column)
        if is_total_label(normalized):
            total_columns.add(column)

    item_row_map: dict[str, int] = {}
    sr_row_map: dict[str, int] = {}
    item_token_index: list[ItemTokenEntry] = []
    for row in range(header_row + 1, worksheet.max_row + 1):
        label = cell_text(worksheet, row, item_column)
        normalized_item = normalize_key(label) if label is not None else ""
        if normalized_item and "total" not in normalized_item:
            item_row_map.setdefault(normalized_item, row)
            tokens = tokenize_item_name(label)
            if tokens:
                item_token_index.append(ItemTokenEntry(row, label, normalized_item, tokens))

        serial = worksheet.cell(row=row, column=worksheet.min_column).value
        if serial is None:
            continue
        serial_key = serial_text(serial)
        if serial_key:
            sr_row_map.setdefault(serial_key, row)

    logger.debug(
        "Sheet %r: header row %d, item column %d, %d territory keys, %d item rows",
        sheet_name,
        header_row,
        item_column,
        len(column_map),
        len(item_row_map),
    )
    return SheetContext(
        sheet_name=sheet_name,
        worksheet=worksheet,
        header_row=header_row,
        item_column=item_column,
        first_column=worksheet.min_column,
        last_row=worksheet.max_row,
        last_column=worksheet.max_column,
        column_map=column_map,
        total_columns=total_columns,
        item_row_map=item_row_map,
        sr_row_map=sr_row_map,
        item_token_index=item_token_index,
    )


def describe_sheet_context(context: SheetContext) -> dict[str, Any]:
    territories: dict[int, list[str]] = {}
    for key, column in context.column_map.items():
        territories.setdefault(column, []).append(key)
    return {
        "sheet_name": context.sheet_name,
        "header_row": context.header_row,
        "item_column": context.item_column,
        "territory_columns": [
            {
                "column": column,
                "header": cell_text(context.worksheet, context.header_row, column),
                "keys": keys,
                "total": column in context.total_columns,
            }
            for column, keys in sorted(territories.items())
        ],
        "item_rows": len(context.item_row_map),
        "serial_rows": len(context.sr_row_map),
    }
