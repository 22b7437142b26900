from __future__ import annotations


class TriageError(Exception):
    """Base class for failures surfaced as the outcome of an analysis run."""

    status_code = 500


class InputValidationError(TriageError):
    """Raised when the incident narrative is missing, malformed or oversized."""

    status_code = 400


class ConfigurationError(TriageError):
    """Raised at request time when the extraction backend is not configured."""


class ExtractionError(TriageError):
    """Raised when the model output cannot be turned into a structured payload."""


class ReportValidationError(ExtractionError):
    def __init__(self, errors: list[str]) -> None:
        self.errors = errors
        super().__init__("Incident report failed validation: " + "; ".join(errors))


class ExportRenderError(TriageError):
    """Raised when an export cannot be produced. No partial output is returned."""


class AnalysisSupersededError(TriageError):
    """Raised to the caller of a run that was cancelled by a newer analysis."""

    status_code = 409
