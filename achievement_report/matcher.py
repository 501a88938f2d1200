"""Resolve item descriptions to template rows."""

from __future__ import annotations

from typing import TYPE_CHECKING

from achievement_report.keys import normalize_key
from achievement_report.schema import ItemTokenEntry, SheetContext
from achievement_report.tokens import (
    has_numeric_token,
    numeric_token_overlap,
    token_similarity,
    tokenize_item_name,
)

if TYPE_CHECKING:
    from achievement_report.entries import Entry

MATCH_THRESHOLD = 0.5


def resolve_item_row(
    context: SheetContext,
    item_key: str | None = None,
    item_label: str | None = None,
) -> int | None:
    """
    Exact normalized-key lookup first, then token similarity.

    Fuzzy outcomes, including "no match", are cached on the context by the
    normalized label. A candidate that carries size/quantity tokens sharing
    none with the label is never considered.
    """
    if item_key and item_key in context.item_row_map:
        return context.item_row_map[item_key]
    if not item_label:
        return None
    cache_key = normalize_key(item_label)
    if cache_key in context.item_match_cache:
        return context.item_match_cache[cache_key]

    tokens = tokenize_item_name(item_label)
    if not tokens:
        context.item_match_cache[cache_key] = None
        return None

    require_numeric = has_numeric_token(tokens)
    best: ItemTokenEntry | None = None
    best_score = 0.0
    for entry in context.item_token_index:
        if require_numeric and has_numeric_token(entry.tokens):
            if numeric_token_overlap(tokens, entry.tokens) == 0:
                continue
        score = token_similarity(tokens, entry.tokens)
        if score > best_score:
            best_score = score
            best = entry

    row = best.row if best is not None and best_score >= MATCH_THRESHOLD else None
    context.item_match_cache[cache_key] = row
    return row


def resolve_entry_row(context: SheetContext, entry: Entry) -> int | None:
    row = None
    if entry.item_key or entry.item_label:
        row = resolve_item_row(context, entry.item_key, entry.item_label)
    if row is None and entry.sr_key:
        row = context.sr_row_map.get(entry.sr_key)
    return row
