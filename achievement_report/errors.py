from __future__ import annotations


class AchievementReportError(Exception):
    """Base class for fatal report build failures."""


class TemplateFetchError(AchievementReportError):
    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class TemplateFormatError(AchievementReportError):
    pass


class PayloadError(AchievementReportError):
    pass
