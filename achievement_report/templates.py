"""Template retrieval, loading and discovery."""

from __future__ import annotations

import io
import logging
import os
import zipfile
from dataclasses import dataclass, field
from pathlib import Path
from urllib.parse import unquote, urlparse

import requests
from openpyxl import load_workbook
from openpyxl.utils.exceptions import InvalidFileException
from openpyxl.workbook.workbook import Workbook

from achievement_report.errors import AchievementReportError, TemplateFetchError, TemplateFormatError

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 60
TIMEOUT_ENV_VAR = "ACHIEVEMENT_REPORT_TIMEOUT"
MAX_TEMPLATE_MB = 50
MAX_TEMPLATE_BYTES = MAX_TEMPLATE_MB * 1024 * 1024
DEFAULT_CATEGORY = "Templates"


@dataclass
class TemplateOption:
    label: str
    value: str


@dataclass
class TemplateGroup:
    category: str
    options: list[TemplateOption] = field(default_factory=list)


def default_timeout() -> float:
    raw = os.environ.get(TIMEOUT_ENV_VAR)
    if not raw:
        return DEFAULT_TIMEOUT_SECONDS
    try:
        value = float(raw)
    except ValueError as exc:
        raise AchievementReportError(f"{TIMEOUT_ENV_VAR} must be a number of seconds, got {raw!r}") from exc
    return value if value > 0 else DEFAULT_TIMEOUT_SECONDS


def is_remote(locator: str) -> bool:
    return urlparse(locator).scheme.lower() in {"http", "https"}


def fetch_template_bytes(
    locator: str,
    *,
    session: requests.Session | None = None,
    timeout: float | None = None,
) -> bytes:
    if not locator:
        raise AchievementReportError("Template URL is required.")
    if is_remote(locator):
        return _fetch_remote(locator, session=session, timeout=timeout or default_timeout())

    parsed = urlparse(locator)
    path = Path(unquote(parsed.path)) if parsed.scheme == "file" else Path(locator)
    try:
        return path.read_bytes()
    except OSError as exc:
        raise TemplateFetchError(f"Failed to load template ({exc.strerror or exc})") from exc


def _fetch_remote(url: str, *, session: requests.Session | None, timeout: float) -> bytes:
    client = session or requests
    try:
        response = client.get(url, timeout=timeout, allow_redirects=True, stream=True)
    except requests.RequestException as exc:
        raise TemplateFetchError(f"Failed to load template ({exc})") from exc
    try:
        if not response.ok:
            raise TemplateFetchError(
                f"Failed to load template ({response.status_code})",
                status_code=response.status_code,
            )
        chunks: list[bytes] = []
        downloaded = 0
        for chunk in response.iter_content(chunk_size=1024 * 1024):
            if not chunk:
                continue
            downloaded += len(chunk)
            if downloaded > MAX_TEMPLATE_BYTES:
                raise TemplateFetchError(f"Template is larger than {MAX_TEMPLATE_MB} MB.")
            chunks.append(chunk)
    except requests.RequestException as exc:
        raise TemplateFetchError(f"Failed to load template ({exc})") from exc
    finally:
        response.close()
    logger.info("Fetched template %s (%d bytes)", url, downloaded)
    return b"".join(chunks)


def load_template_workbook(data: bytes) -> Workbook:
    try:
        return load_workbook(io.BytesIO(data))
    except (InvalidFileException, zipfile.BadZipFile, KeyError, OSError, ValueError) as exc:
        raise TemplateFormatError(f"Could not read template workbook: {exc}") from exc


def template_name_from_url(locator: str) -> str:
    path = locator.split("?")[0]
    parts = [part for part in path.replace("\\", "/").split("/") if part]
    return parts[-1] if parts else "template"


def discover_templates(root: Path) -> list[TemplateGroup]:
    """Group template files under ``root`` by their folder, sorted for display."""
    options: list[tuple[str, str, str]] = []
    for path in root.rglob("*"):
        if not path.is_file():
            continue
        relative = path.relative_to(root)
        if any(segment.startswith(".") for segment in relative.parts):
            continue
        if not path.suffix:
            continue
        category = " / ".join(relative.parts[:-1]) or DEFAULT_CATEGORY
        options.append((category, path.stem, str(path)))

    groups: dict[str, TemplateGroup] = {}
    for category, label, value in sorted(options, key=lambda item: (item[0].lower(), item[1].lower())):
        groups.setdefault(category, TemplateGroup(category)).options.append(TemplateOption(label, value))
    return list(groups.values())
