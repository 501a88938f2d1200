"""Comparable keys for headers, record fields, items and territories."""

from __future__ import annotations

import re
from typing import Any, Mapping

NON_ALNUM_RE = re.compile(r"[^a-z0-9]+")
PAREN_SUFFIX_RE = re.compile(r"\([A-Za-z]\)$")
LETTER_SUFFIX_RE = re.compile(r"[\s\-/]+[A-Za-z]$")


def normalize_key(value: Any) -> str:
    if value is None:
        return ""
    return NON_ALNUM_RE.sub("", str(value).lower())


def normalize_territory_key(value: Any) -> str:
    # "Colombo (A)", "Colombo - A" and "Colombo/B" all reduce to "colombo"
    if value is None:
        return ""
    raw = str(value).strip()
    if not raw:
        return ""
    without_paren = PAREN_SUFFIX_RE.sub("", raw).strip()
    without_suffix = LETTER_SUFFIX_RE.sub("", without_paren).strip()
    return normalize_key(without_suffix or raw)


def resolve_territory_key(value: Any, column_map: Mapping[str, int]) -> str | None:
    primary = normalize_territory_key(value)
    if primary and primary in column_map:
        return primary
    fallback = normalize_key(value)
    if fallback and fallback in column_map:
        return fallback
    return None


def serial_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value).strip()
