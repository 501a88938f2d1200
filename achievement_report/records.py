"""
Payload extraction for achievement reports.

Backend payloads arrive in several shapes: a bare list of rows, an object with
daily and cumulative containers, or one entry per day holding its own list of
per-item rows. Everything is reduced to flat record mappings here. The order
of every candidate-key list below decides which container wins when several
are present.
"""

from __future__ import annotations

import math
import re
import warnings
from datetime import date, datetime
from typing import Any, Iterable, Mapping, NamedTuple

import pandas as pd

from achievement_report.keys import normalize_key

Record = Mapping[str, Any]

DATE_KEYS = [
    "date",
    "achievementDate",
    "reportDate",
    "salesDate",
    "day",
    "dayNo",
    "dayNumber",
]
ITEM_KEYS = [
    "itemDescription",
    "itemName",
    "item",
    "productName",
    "skuName",
    "sku",
    "itemDesc",
]
TERRITORY_KEYS = [
    "territory",
    "territoryName",
    "areaName",
    "routeName",
    "clusterName",
    "rmsName",
]
VALUE_KEYS = [
    "soldQty",
    "totalSoldValue",
    "value",
    "qty",
    "quantity",
    "sales",
    "amount",
    "total",
    "achievement",
    "target",
]
SR_KEYS = ["sr", "srNo", "serial", "serialNo", "row", "rowNo"]
NESTED_LIST_KEYS = [
    "achievementReportDTOs",
    "achievementReportDtos",
    "items",
    "rows",
    "details",
    "data",
    "list",
]
NESTED_VALUE_KEYS = ["values", "territories", "territoryValues", "areaValues"]
DAILY_CONTAINER_KEYS = [
    "daily",
    "details",
    "records",
    "rows",
    "list",
    "achievementReportDTOs",
    "achievementReportDtos",
]
CUM_CONTAINER_KEYS = ["cumulative", "cum", "summary"]

ISO_DATE_RE = re.compile(r"^(\d{4})-(\d{2})-(\d{2})$")


class ExtractedRecords(NamedTuple):
    daily_records: list[dict[str, Any]]
    cumulative_records: list[dict[str, Any]]


def extract_records(payload: Any) -> ExtractedRecords:
    if isinstance(payload, list):
        return ExtractedRecords(flatten_records(payload), [])
    if not isinstance(payload, Mapping):
        return ExtractedRecords([], [])

    cumulative_records: list[dict[str, Any]] = []
    for key in CUM_CONTAINER_KEYS:
        value = payload.get(key)
        if isinstance(value, list):
            cumulative_records = flatten_records(value)
            break

    daily_records: list[dict[str, Any]] = []
    for key in DAILY_CONTAINER_KEYS:
        value = payload.get(key)
        if isinstance(value, list):
            daily_records = flatten_records(value)
            break

    if not daily_records:
        fallback = next((value for value in payload.values() if isinstance(value, list)), None)
        if fallback is not None:
            daily_records = flatten_records(fallback)

    return ExtractedRecords(daily_records, cumulative_records)


def flatten_records(values: Iterable[Any]) -> list[dict[str, Any]]:
    flattened: list[dict[str, Any]] = []
    for entry in values:
        if not isinstance(entry, Mapping):
            continue
        nested = find_nested_list(entry)
        if nested is None:
            flattened.append(dict(entry))
            continue
        date_value = extract_date(entry)
        for item in nested:
            if not isinstance(item, Mapping):
                continue
            child = dict(item)
            if date_value is not None and "date" not in child and "day" not in child:
                child["date"] = date_value
            flattened.append(child)
    return flattened


def find_nested_list(record: Record) -> list[Any] | None:
    for key in NESTED_LIST_KEYS:
        value = record.get(key)
        if isinstance(value, list):
            return value
    return None


def build_key_index(record: Record) -> dict[str, str]:
    index: dict[str, str] = {}
    for key in record:
        normalized = normalize_key(key)
        if normalized:
            index.setdefault(normalized, key)
    return index


def get_record_value(record: Record, key_index: Mapping[str, str], candidates: Iterable[str]) -> Any:
    for candidate in candidates:
        key = key_index.get(normalize_key(candidate))
        if key is None:
            continue
        value = record[key]
        if value is not None and value != "":
            return value
    return None


def extract_date(record: Record) -> Any:
    return get_record_value(record, build_key_index(record), DATE_KEYS)


def _day_in_range(number: float) -> int | None:
    if math.isfinite(number) and 1 <= number <= 31:
        return int(number)
    return None


def parse_day_value(value: Any) -> int | None:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return _day_in_range(value)
    if isinstance(value, (date, datetime)):
        return value.day
    if not isinstance(value, str):
        return None

    text = value.strip()
    if not text:
        return None
    iso = ISO_DATE_RE.match(text)
    if iso:
        return _day_in_range(int(iso.group(3)))
    try:
        day = _day_in_range(float(text))
    except ValueError:
        day = None
    if day is not None:
        return day
    with warnings.catch_warnings():
        warnings.simplefilter("ignore")
        try:
            parsed = pd.to_datetime(text, errors="coerce")
        except (ValueError, TypeError, OverflowError):
            return None
    if parsed is None or pd.isna(parsed):
        return None
    return parsed.day


def resolve_day_sheet_name(record: Record, sheet_names: Iterable[str]) -> str | None:
    day = parse_day_value(extract_date(record))
    if day is None:
        return None
    available = set(sheet_names)
    for candidate in (f"{day:02d}", str(day)):
        if candidate in available:
            return candidate
    return None
