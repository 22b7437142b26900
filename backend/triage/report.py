from __future__ import annotations

from dataclasses import dataclass, field
from typing import Literal

from pydantic import BaseModel, ConfigDict, ValidationError

from triage.errors import ReportValidationError


CSF_FUNCTIONS = ("Identify", "Protect", "Detect", "Respond", "Recover")
SEVERITIES = ("Low", "Medium", "High", "Critical")
PRIORITIES = ("P1", "P2", "P3")

Severity = Literal["Low", "Medium", "High", "Critical"]
Priority = Literal["P1", "P2", "P3"]


class _ReportModel(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore")


class CsfMapping(_ReportModel):
    Identify: list[str]
    Protect: list[str]
    Detect: list[str]
    Respond: list[str]
    Recover: list[str]

    def items(self) -> list[tuple[str, list[str]]]:
        return [(name, getattr(self, name)) for name in CSF_FUNCTIONS]


class TimelineEvent(_ReportModel):
    time: str | None = None
    event: str


class RemediationAction(_ReportModel):
    title: str
    owner: str | None = None
    priority: Priority | None = None
    due_window: str | None = None


class IncidentReport(_ReportModel):
    csf: CsfMapping
    timeline: list[TimelineEvent]
    severity: Severity
    root_cause: str
    impacted_assets: list[str]
    mitre: list[str] | None = None
    nist_800_53: list[str] | None = None
    customer_safe_summary: str
    actions: list[RemediationAction]

    def to_payload(self) -> dict[str, object]:
        """Serialize with absent optional fields omitted rather than null."""
        return self.model_dump(exclude_none=True)


@dataclass(frozen=True)
class ValidationOutcome:
    report: IncidentReport | None
    errors: list[str] = field(default_factory=list)
    repaired: bool = False

    @property
    def ok(self) -> bool:
        return self.report is not None

    def unwrap(self) -> IncidentReport:
        if self.report is None:
            raise ReportValidationError(self.errors)
        return self.report


def _canonical(value: object, choices: tuple[str, ...]) -> object:
    if not isinstance(value, str):
        return value
    lookup = {choice.lower(): choice for choice in choices}
    return lookup.get(value.strip().lower(), value)


def _trim(value: object) -> object:
    if isinstance(value, str):
        return value.strip()
    if isinstance(value, list):
        return [_trim(item) for item in value]
    if isinstance(value, dict):
        return {key: _trim(item) for key, item in value.items()}
    return value


def normalize_report_payload(payload: dict[str, object]) -> dict[str, object]:
    """Trim string values and fold enum and framework key casing. Never invents missing fields."""
    normalized = _trim(payload)
    if "severity" in normalized:
        normalized["severity"] = _canonical(normalized["severity"], SEVERITIES)

    csf = normalized.get("csf")
    if isinstance(csf, dict):
        normalized["csf"] = {_canonical(key, CSF_FUNCTIONS): value for key, value in csf.items()}

    actions = normalized.get("actions")
    if isinstance(actions, list):
        repaired_actions: list[object] = []
        for action in actions:
            if isinstance(action, dict) and "priority" in action:
                action = {**action, "priority": _canonical(action["priority"], PRIORITIES)}
            repaired_actions.append(action)
        normalized["actions"] = repaired_actions

    return normalized


def format_validation_errors(err: ValidationError) -> list[str]:
    messages: list[str] = []
    for issue in err.errors():
        location = ".".join(str(part) for part in issue["loc"]) or "<root>"
        messages.append(f"{location}: {issue['msg']}")
    return messages


def validate_report(payload: object) -> ValidationOutcome:
    if not isinstance(payload, dict):
        return ValidationOutcome(report=None, errors=["<root>: Input should be a JSON object"])

    normalized = normalize_report_payload(payload)
    repaired = normalized != payload
    try:
        return ValidationOutcome(report=IncidentReport.model_validate(normalized), repaired=repaired)
    except ValidationError as err:
        return ValidationOutcome(report=None, errors=format_validation_errors(err), repaired=repaired)
