from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence

from triage.config import settings
from triage.errors import InputValidationError
from triage.normalizer import AttachmentFragment


SYSTEM_PROMPT = """You are a security incident analyst.
Return ONLY valid JSON matching this type:
{
  "csf": { "Identify": string[], "Protect": string[], "Detect": string[], "Respond": string[], "Recover": string[] },
  "timeline": { "time"?: string, "event": string }[],
  "severity": "Low" | "Medium" | "High" | "Critical",
  "root_cause": string,
  "impacted_assets": string[],
  "mitre"?: string[],
  "nist_800_53"?: string[],
  "customer_safe_summary": string,
  "actions": { "title": string, "owner"?: string, "priority"?: "P1"|"P2"|"P3", "due_window"?: string }[]
}
Guidelines:
- Build a concise timeline (use timestamps if present).
- State likely root cause and severity with a one-sentence justification.
- Map to NIST CSF with 3-6 concise bullets per function, and include relevant NIST 800-53 control IDs (e.g., AC-2, IA-2, AU-6, IR-4, CP-2).
- Include 5-10 concrete follow-up actions.
- Audience for customer_safe_summary is non-technical.
- Output JSON only, no prose."""

REPAIR_SYSTEM_PROMPT = "Fix malformed JSON. Output ONLY valid JSON."


@dataclass(frozen=True)
class PromptPayload:
    system: str
    user: str


def validate_ticket(ticket: object, *, max_chars: int | None = None) -> str:
    limit = max_chars if max_chars is not None else settings.ticket_max_chars
    if not isinstance(ticket, str) or not ticket.strip():
        raise InputValidationError("Invalid ticket description")
    if len(ticket) > limit:
        raise InputValidationError("Ticket description too long")
    return ticket


def truncate_attachment_text(text: str, max_chars: int | None = None) -> str:
    limit = max_chars if max_chars is not None else settings.attachment_max_chars
    return text[:limit]


def build_user_prompt(
    ticket: str,
    attachments: Sequence[AttachmentFragment] = (),
    *,
    attachment_max_chars: int | None = None,
) -> str:
    parts = [f"TICKET:\n{ticket}\n\n"]
    for attachment in attachments:
        text = truncate_attachment_text(attachment.text, attachment_max_chars)
        parts.append(f"ATTACHMENT: {attachment.name} ({attachment.mime})\n{text}\n\n")
    return "".join(parts)


def build_prompt(ticket: object, attachments: Sequence[AttachmentFragment] = ()) -> PromptPayload:
    validated = validate_ticket(ticket)
    return PromptPayload(system=SYSTEM_PROMPT, user=build_user_prompt(validated, attachments))


def build_repair_prompt(malformed_text: str, errors: Sequence[str] = ()) -> PromptPayload:
    user = f"Fix this JSON:\n{malformed_text}"
    if errors:
        problems = "\n".join(f"- {error}" for error in errors)
        user = (
            f"{user}\n\nThe JSON must match this type:\n{_schema_block()}\n\n"
            f"Problems found:\n{problems}"
        )
    return PromptPayload(system=REPAIR_SYSTEM_PROMPT, user=user)


def _schema_block() -> str:
    start = SYSTEM_PROMPT.index("{")
    end = SYSTEM_PROMPT.index("\nGuidelines:")
    return SYSTEM_PROMPT[start:end]
