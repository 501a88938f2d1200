"""
Item description tokenizer.

The tables below are a closed, hand-curated normalization for the item names
our source systems emit. Changing any entry changes which historical item
names match a template row.
"""

from __future__ import annotations

import re
from typing import Any, Iterable

ITEM_SYNONYMS = {
    "angle": "angel",
    "suger": "sugar",
    "margerine": "margarine",
    "margareen": "margarine",
    "lable": "label",
    "welcom": "welcome",
    "multy": "multi",
    "purpes": "purpose",
    "yest": "yeast",
}

ITEM_STOP_WORDS = {
    "pack",
    "box",
    "bulk",
    "backet",
    "bucket",
    "pkt",
    "bag",
    "bags",
    "bottle",
    "can",
}

UNIT_SYNONYMS = {
    "gr": "g",
    "gram": "g",
    "grams": "g",
    "kg": "kg",
    "kgs": "kg",
    "l": "l",
    "lt": "l",
    "ltr": "l",
    "litre": "l",
    "liter": "l",
    "ml": "ml",
}

SEPARATOR_RE = re.compile(r"[^a-z0-9]+")
QUANTITY_RE = re.compile(r"^(\d+)([a-z]+)$")
NUMERAL_RE = re.compile(r"^\d+$")


def tokenize_item_name(value: Any) -> list[str]:
    if value is None:
        return []
    raw = SEPARATOR_RE.sub(" ", str(value).lower()).strip()
    if not raw:
        return []
    parts = raw.split()
    tokens: list[str] = []
    i = 0
    while i < len(parts):
        part = parts[i]
        quantity = QUANTITY_RE.match(part)
        if quantity:
            unit = UNIT_SYNONYMS.get(quantity.group(2), quantity.group(2))
            tokens.append(f"{quantity.group(1)}{unit}")
            i += 1
            continue

        if NUMERAL_RE.match(part) and i + 1 < len(parts):
            unit = UNIT_SYNONYMS.get(parts[i + 1])
            if unit:
                tokens.append(f"{part}{unit}")
                i += 2
                continue

        normalized = ITEM_SYNONYMS.get(part, part)
        if normalized and normalized not in ITEM_STOP_WORDS:
            tokens.append(normalized)
        i += 1
    return list(dict.fromkeys(tokens))


def is_numeric_token(token: str) -> bool:
    return token[:1].isdigit()


def has_numeric_token(tokens: Iterable[str]) -> bool:
    return any(is_numeric_token(token) for token in tokens)


def token_similarity(a: Iterable[str], b: Iterable[str]) -> float:
    set_a = set(a)
    set_b = set(b)
    if not set_a or not set_b:
        return 0.0
    intersection = len(set_a & set_b)
    if intersection == 0:
        return 0.0
    return intersection / len(set_a | set_b)


def numeric_token_overlap(a: Iterable[str], b: Iterable[str]) -> int:
    numeric_a = {token for token in a if is_numeric_token(token)}
    if not numeric_a:
        return 0
    return sum(1 for token in set(b) if token in numeric_a)
