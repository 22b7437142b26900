from __future__ import annotations

import csv
import io

from triage.report import IncidentReport


CSV_FILENAME = "incident-actions.csv"
CSV_HEADER = ("Title", "Owner", "Priority", "Due Window")


def action_rows(report: IncidentReport) -> list[list[str]]:
    return [
        [action.title, action.owner or "", action.priority or "", action.due_window or ""]
        for action in report.actions
    ]


def render_actions_csv(report: IncidentReport) -> bytes:
    """One quoted header row, then one quoted row per remediation action."""
    buffer = io.StringIO()
    writer = csv.writer(buffer, quoting=csv.QUOTE_ALL, lineterminator="\n")
    writer.writerow(CSV_HEADER)
    writer.writerows(action_rows(report))
    return buffer.getvalue().encode("utf-8")
