"""
payloads.py: load saved achievement payloads from disk

Supports: .json .jsonl .csv .tsv

Public API:
    result  = load_payload("path/to/payload.json")
    payload = result["payload"]

Result dict keys:
    payload           - list or dict, ready for extract_records()
    detected_format   - "json", "jsonl", "csv" or "tsv"
    detected_encoding - encoding used to decode the file
    warnings          - list of warning strings
"""

from __future__ import annotations

import io
import json
from pathlib import Path
from typing import Any

import chardet
import pandas as pd

from achievement_report.errors import PayloadError

JSON_FORMATS = {".json"}
JSONL_FORMATS = {".jsonl"}
DELIMITED_FORMATS = {".csv", ".tsv"}
ALL_FORMATS = JSON_FORMATS | JSONL_FORMATS | DELIMITED_FORMATS
ENVELOPE_KEYS = {"code", "message", "payload"}


def _decode(raw: bytes) -> tuple[str, str]:
    detected = chardet.detect(raw).get("encoding") or "utf-8"
    for encoding in ("utf-8", detected):
        try:
            return raw.decode(encoding).lstrip("\ufeff"), encoding
        except (LookupError, UnicodeDecodeError):
            continue
    return raw.decode("cp1252", errors="replace"), "cp1252"


def unwrap_envelope(data: Any) -> Any:
    """Return ``payload`` from an API response envelope, or ``data`` unchanged."""
    if isinstance(data, dict) and "payload" in data and set(data) <= ENVELOPE_KEYS:
        return data["payload"]
    return data


def _load_json(text: str) -> tuple[Any, list[str]]:
    try:
        data = json.loads(text)
    except json.JSONDecodeError as exc:
        raise PayloadError(f"Invalid JSON: {exc}") from exc
    warnings: list[str] = []
    payload = unwrap_envelope(data)
    if payload is not data:
        warnings.append("API response envelope detected; used its 'payload' field")
    if not isinstance(payload, (list, dict)):
        raise PayloadError(f"Payload must be an array or object, got {type(payload).__name__}")
    return payload, warnings


def _load_jsonl(text: str) -> tuple[Any, list[str]]:
    records: list[Any] = []
    parse_errors: list[str] = []
    for line_num, line in enumerate(text.splitlines(), start=1):
        line = line.strip()
        if not line:
            continue
        try:
            records.append(json.loads(line))
        except json.JSONDecodeError as exc:
            parse_errors.append(f"line {line_num}: {exc}")
    warnings: list[str] = []
    if parse_errors:
        sample = "; ".join(parse_errors[:3])
        extra = f" (+{len(parse_errors) - 3} more)" if len(parse_errors) > 3 else ""
        warnings.append(f"{len(parse_errors)} lines could not be parsed: {sample}{extra}")
    return records, warnings


def _load_delimited(text: str, suffix: str) -> tuple[Any, list[str]]:
    try:
        df = pd.read_csv(
            io.StringIO(text),
            dtype=str,
            keep_default_na=False,
            sep="\t" if suffix == ".tsv" else ",",
        )
    except (pd.errors.ParserError, pd.errors.EmptyDataError) as exc:
        raise PayloadError(f"Could not parse {suffix} file: {exc}") from exc
    records = [
        {column: (value if value.strip() else None) for column, value in row.items()}
        for row in df.to_dict(orient="records")
    ]
    return records, []


def load_payload(path: str | Path) -> dict[str, Any]:
    path = Path(path)
    suffix = path.suffix.lower()
    if not path.exists():
        raise FileNotFoundError(f"File not found: {path}")
    if suffix not in ALL_FORMATS:
        supported = ", ".join(sorted(ALL_FORMATS))
        raise PayloadError(f"Unsupported payload format '{suffix}'. Supported: {supported}")

    text, encoding = _decode(path.read_bytes())
    if suffix in JSON_FORMATS:
        payload, warnings = _load_json(text)
    elif suffix in JSONL_FORMATS:
        payload, warnings = _load_jsonl(text)
    else:
        payload, warnings = _load_delimited(text, suffix)

    return {
        "payload": payload,
        "detected_format": suffix.lstrip("."),
        "detected_encoding": encoding,
        "warnings": warnings,
    }
