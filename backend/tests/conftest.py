from __future__ import annotations

import copy

import pytest


_REPORT_PAYLOAD: dict[str, object] = {
    "csf": {
        "Identify": ["Inventory accounts with access to the file share"],
        "Protect": ["Enforce MFA for remote logins", "Restrict bulk download permissions"],
        "Detect": ["Alert on impossible-travel sign-ins"],
        "Respond": ["Disable the compromised account", "Preserve access logs"],
        "Recover": [],
    },
    "timeline": [
        {"time": "2024-05-01 02:14 UTC", "event": "Login from new country"},
        {"event": "Mass download of 4,200 files"},
    ],
    "severity": "High",
    "root_cause": "Credential compromise without MFA enforcement.",
    "impacted_assets": ["corp-fileshare-01", "jdoe account"],
    "nist_800_53": ["AC-2", "IA-2", "AU-6"],
    "customer_safe_summary": "An unauthorized party accessed some internal files. We contained it quickly.",
    "actions": [
        {"title": "Reset credentials for jdoe", "owner": "IT Ops", "priority": "P1", "due_window": "24h"},
        {"title": "Roll out MFA to all remote users", "priority": "P2"},
        {"title": "Review DLP thresholds"},
    ],
}


@pytest.fixture
def report_payload() -> dict[str, object]:
    return copy.deepcopy(_REPORT_PAYLOAD)


class ScriptedBackend:
    """Completion backend that replays canned responses and records each call."""

    def __init__(self, *responses: str) -> None:
        self._responses = list(responses)
        self.calls: list[dict[str, object]] = []

    def complete(self, *, system: str, user: str, temperature: float) -> str:
        self.calls.append({"system": system, "user": user, "temperature": temperature})
        if not self._responses:
            raise AssertionError("backend called more times than scripted")
        return self._responses.pop(0)


@pytest.fixture
def scripted_backend():
    return ScriptedBackend
