"""Turn flattened records into cell writes on a template sheet."""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from datetime import date, datetime, time
from typing import Any, Mapping

from openpyxl.cell.cell import ILLEGAL_CHARACTERS_RE
from openpyxl.worksheet.worksheet import Worksheet

from achievement_report.keys import normalize_key, resolve_territory_key, serial_text
from achievement_report.matcher import resolve_entry_row, resolve_item_row
from achievement_report.records import (
    DATE_KEYS,
    ITEM_KEYS,
    NESTED_VALUE_KEYS,
    SR_KEYS,
    TERRITORY_KEYS,
    VALUE_KEYS,
    Record,
    build_key_index,
    get_record_value,
)
from achievement_report.schema import SheetContext

logger = logging.getLogger(__name__)

EXCLUDED_KEY_SET = {
    normalize_key(key)
    for key in [*DATE_KEYS, *ITEM_KEYS, *TERRITORY_KEYS, *VALUE_KEYS, *SR_KEYS]
}


@dataclass(frozen=True)
class Entry:
    territory_key: str
    value: Any
    item_key: str | None = None
    item_label: str | None = None
    sr_key: str | None = None


def extract_entries(record: Record, context: SheetContext) -> list[Entry]:
    key_index = build_key_index(record)
    item_value = get_record_value(record, key_index, ITEM_KEYS)
    sr_value = get_record_value(record, key_index, SR_KEYS)
    item_key = normalize_key(item_value) or None
    item_label = str(item_value) if item_value is not None else None
    sr_key = serial_text(sr_value) or None

    has_item_row = (item_key or item_label) and resolve_item_row(context, item_key, item_label) is not None
    has_serial_row = sr_key is not None and sr_key in context.sr_row_map
    if not has_item_row and not has_serial_row:
        return []

    def entry(territory_key: str, value: Any) -> Entry:
        return Entry(territory_key, value, item_key, item_label, sr_key)

    territory_value = get_record_value(record, key_index, TERRITORY_KEYS)
    value_value = get_record_value(record, key_index, VALUE_KEYS)
    if territory_value is not None:
        territory_key = resolve_territory_key(territory_value, context.column_map)
        if territory_key and value_value is not None:
            return [entry(territory_key, value_value)]

    nested_values = get_record_value(record, key_index, NESTED_VALUE_KEYS)
    if isinstance(nested_values, Mapping):
        entries = []
        for key, value in nested_values.items():
            territory_key = resolve_territory_key(key, context.column_map)
            if territory_key:
                entries.append(entry(territory_key, value))
        return entries

    entries = []
    for key, value in record.items():
        normalized = normalize_key(key)
        if not normalized or normalized in EXCLUDED_KEY_SET:
            continue
        territory_key = resolve_territory_key(key, context.column_map)
        if territory_key:
            entries.append(entry(territory_key, value))
    return entries


def apply_entries(context: SheetContext, entries: list[Entry]) -> int:
    applied = 0
    for entry in entries:
        row = resolve_entry_row(context, entry)
        if row is None:
            logger.debug("No row in %r for %r", context.sheet_name, entry)
            continue
        column = context.column_map.get(entry.territory_key)
        if column is None or column in context.total_columns:
            continue
        if set_cell_value(context.worksheet, row, column, entry.value):
            applied += 1
    return applied


def is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def set_cell_value(worksheet: Worksheet, row: int, column: int, value: Any) -> bool:
    """
    Write one value; formula cells are left alone.

    A number written over a number is added to it, so several records for the
    same item and territory sum instead of overwriting each other.
    """
    cell_value = to_cell_value(value)
    if cell_value is None:
        return False
    cell = worksheet.cell(row=row, column=column)
    if cell.data_type == "f":
        return False
    if is_number(cell.value) and is_number(cell_value):
        cell.value = cell.value + cell_value
    else:
        cell.value = cell_value
        if isinstance(cell_value, str):
            # payload text starting with "=" stays text
            cell.data_type = "s"
    return True


def to_cell_value(value: Any) -> Any:
    if value is None:
        return None
    if isinstance(value, bool):
        return value
    if is_number(value):
        return value if math.isfinite(value) else None
    if isinstance(value, (datetime, date, time)):
        return value
    if isinstance(value, str):
        text = ILLEGAL_CHARACTERS_RE.sub("", value).strip()
        if not text:
            return None
        numeric = parse_numeric(text)
        return numeric if numeric is not None else text
    return ILLEGAL_CHARACTERS_RE.sub("", str(value)) or None


def parse_numeric(value: Any) -> int | float | None:
    if isinstance(value, bool):
        return None
    if is_number(value):
        return value if math.isfinite(value) else None
    if not isinstance(value, str):
        return None
    text = value.strip().replace(",", "")
    if not text:
        return None
    try:
        return int(text)
    except ValueError:
        pass
    try:
        number = float(text)
    except ValueError:
        return None
    return number if math.isfinite(number) else None
