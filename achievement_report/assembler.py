"""Build a completed achievement workbook from a template and a payload."""

from __future__ import annotations

import io
import logging
import re
from dataclasses import dataclass
from typing import Any, Optional

import requests
from openpyxl.workbook.workbook import Workbook

from achievement_report.entries import Entry, apply_entries, extract_entries, parse_numeric
from achievement_report.errors import AchievementReportError, TemplateFormatError
from achievement_report.records import extract_records, resolve_day_sheet_name
from achievement_report.schema import SheetContext, build_sheet_context, find_cumulative_sheet_name
from achievement_report.templates import fetch_template_bytes, load_template_workbook, template_name_from_url

logger = logging.getLogger(__name__)

FILE_PREFIX = "Achievement"
OUTPUT_SUFFIX = ".xlsx"

TotalKey = tuple[Optional[str], Optional[str], str]


@dataclass
class ReportSummary:
    record_count: int
    filled_cells: int
    sheets_updated: int
    skipped_records: int
    template_name: str
    start_date: str | None = None
    end_date: str | None = None

    def to_dict(self) -> dict[str, Any]:
        summary: dict[str, Any] = {
            "recordCount": self.record_count,
            "filledCells": self.filled_cells,
            "sheetsUpdated": self.sheets_updated,
            "skippedRecords": self.skipped_records,
            "templateName": self.template_name,
        }
        if self.start_date:
            summary["startDate"] = self.start_date
        if self.end_date:
            summary["endDate"] = self.end_date
        return summary


@dataclass
class ReportResult:
    workbook_bytes: bytes
    file_name: str
    summary: ReportSummary


def build_report(
    template_url: str,
    payload: Any,
    start_date: str | None = None,
    end_date: str | None = None,
    *,
    session: requests.Session | None = None,
    timeout: float | None = None,
) -> ReportResult:
    if not template_url:
        raise AchievementReportError("Template URL is required.")
    workbook = load_template_workbook(fetch_template_bytes(template_url, session=session, timeout=timeout))
    return build_report_from_workbook(
        workbook,
        payload,
        template_name=template_name_from_url(template_url),
        start_date=start_date,
        end_date=end_date,
    )


def build_report_from_workbook(
    workbook: Workbook,
    payload: Any,
    *,
    template_name: str = "template",
    start_date: str | None = None,
    end_date: str | None = None,
) -> ReportResult:
    """
    Fill ``workbook`` in place and serialize it.

    Daily records go to the sheet named after their day of month and feed a
    running total per (item, serial, territory). The cumulative sheet then
    receives the explicit cumulative block when the payload has one, and the
    running totals otherwise.
    """
    cumulative_name = find_cumulative_sheet_name(workbook)
    cumulative = build_sheet_context(workbook, cumulative_name) or build_sheet_context(
        workbook, workbook.sheetnames[0] if workbook.sheetnames else None
    )
    if cumulative is None:
        raise TemplateFormatError("Template format not recognized.")

    contexts: dict[str, SheetContext | None] = {cumulative.sheet_name: cumulative}

    def get_context(sheet_name: str | None) -> SheetContext | None:
        if not sheet_name:
            return None
        if sheet_name not in contexts:
            contexts[sheet_name] = build_sheet_context(workbook, sheet_name)
        return contexts[sheet_name]

    daily_records, cumulative_records = extract_records(payload)
    running_totals: dict[TotalKey, int | float] = {}
    total_labels: dict[TotalKey, str | None] = {}
    filled_cells = 0
    skipped_records = 0
    touched_sheets: set[str] = set()

    def apply(context: SheetContext, entries: list[Entry]) -> None:
        nonlocal filled_cells
        applied = apply_entries(context, entries)
        if applied > 0:
            filled_cells += applied
            touched_sheets.add(context.sheet_name)

    for record in daily_records:
        day_context = get_context(resolve_day_sheet_name(record, workbook.sheetnames))
        entries = extract_entries(record, day_context or cumulative)
        if not entries:
            logger.debug("Skipped daily record %r", record)
            skipped_records += 1
            continue
        if day_context is not None:
            apply(day_context, entries)

        for entry in entries:
            numeric = parse_numeric(entry.value)
            if numeric is None:
                continue
            key = (entry.item_key, entry.sr_key, entry.territory_key)
            running_totals[key] = running_totals.get(key, 0) + numeric
            total_labels.setdefault(key, entry.item_label)

    if cumulative_records:
        for record in cumulative_records:
            entries = extract_entries(record, cumulative)
            if not entries:
                logger.debug("Skipped cumulative record %r", record)
                skipped_records += 1
                continue
            apply(cumulative, entries)
    elif running_totals:
        synthesized = []
        for key, value in running_totals.items():
            item_key, sr_key, territory_key = key
            synthesized.append(Entry(territory_key, value, item_key, total_labels.get(key), sr_key))
        apply(cumulative, synthesized)

    # Formulas in the template are recalculated by the spreadsheet application.
    workbook.calculation.fullCalcOnLoad = True
    buffer = io.BytesIO()
    workbook.save(buffer)

    summary = ReportSummary(
        record_count=len(daily_records) + len(cumulative_records),
        filled_cells=filled_cells,
        sheets_updated=len(touched_sheets),
        skipped_records=skipped_records,
        template_name=template_name,
        start_date=start_date,
        end_date=end_date,
    )
    logger.info(
        "Built %s: %d records, %d cells filled, %d sheets updated, %d skipped",
        template_name,
        summary.record_count,
        summary.filled_cells,
        summary.sheets_updated,
        summary.skipped_records,
    )
    return ReportResult(
        workbook_bytes=buffer.getvalue(),
        file_name=build_file_name(template_name, start_date, end_date),
        summary=summary,
    )


def build_file_name(template_name: str, start_date: str | None = None, end_date: str | None = None) -> str:
    base = re.sub(r"\s+", "-", re.sub(r"\.[^.]+$", "", template_name)).strip()
    if start_date and end_date:
        date_part = f"{start_date}_to_{end_date}"
    else:
        date_part = start_date or end_date or "report"
    return f"{FILE_PREFIX}_{base or 'report'}_{date_part}{OUTPUT_SUFFIX}"
