from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from enum import Enum
import json
import logging
import re
import time
from typing import Any, Protocol

import boto3

from triage.config import Settings, settings as default_settings
from triage.errors import ConfigurationError, ExtractionError, ReportValidationError, TriageError
from triage.prompting import PromptPayload, build_repair_prompt
from triage.report import IncidentReport, ValidationOutcome, validate_report

logger = logging.getLogger("triage.extraction")

_LEADING_FENCE = re.compile(r"^\s*```(?:json)?[^\S\n]*\n?", flags=re.IGNORECASE)
_TRAILING_FENCE = re.compile(r"\n?```\s*$")


class CompletionBackend(Protocol):
    def complete(self, *, system: str, user: str, temperature: float) -> str:
        ...


class BedrockConverseBackend:
    """Text completion over the Bedrock ``converse`` API.

    The boto3 client is created on first use so that missing model
    configuration or credentials surface per request, not at startup.
    """

    def __init__(self, settings: Settings, client: Any | None = None) -> None:
        self._settings = settings
        self._client = client

    @property
    def model_id(self) -> str:
        return self._settings.bedrock_model_id

    def complete(self, *, system: str, user: str, temperature: float) -> str:
        if not self.model_id:
            raise ConfigurationError("Bedrock model ID is not configured.")
        client = self._get_client()

        started = time.perf_counter()
        try:
            response = client.converse(
                modelId=self.model_id,
                system=[{"text": system}],
                messages=[{"role": "user", "content": [{"text": user}]}],
                inferenceConfig={
                    "temperature": temperature,
                    "maxTokens": self._settings.extraction_max_tokens,
                },
            )
        except Exception as exc:
            duration_ms = round((time.perf_counter() - started) * 1000, 2)
            error_text = str(exc)
            logger.warning(
                "bedrock_invoke_failed",
                extra={
                    "event": "bedrock_invoke_failed",
                    "model_id": self.model_id,
                    "duration_ms": duration_ms,
                    "error": error_text,
                },
            )
            if "model identifier is invalid" in error_text.lower():
                raise ConfigurationError(
                    "Bedrock invocation failed: the configured model identifier is invalid "
                    f"(AWS_REGION={self._settings.aws_region}, BEDROCK_MODEL_ID={self.model_id})."
                ) from exc
            raise ExtractionError(f"Bedrock invocation failed for model '{self.model_id}': {exc}") from exc

        return self._extract_text(response)

    def _get_client(self) -> Any:
        if self._client is None:
            session = boto3.Session(region_name=self._settings.aws_region)
            if session.get_credentials() is None:
                raise ConfigurationError("AWS credentials for Bedrock are not configured.")
            self._client = session.client("bedrock-runtime")
        return self._client

    @staticmethod
    def _extract_text(response: Any) -> str:
        outputs = response.get("output", {}).get("message", {}).get("content", [])
        parts: list[str] = []
        for item in outputs:
            text = item.get("text")
            if isinstance(text, str) and text.strip():
                parts.append(text)
        return "\n".join(parts).strip()


class ExtractionState(str, Enum):
    REQUESTED = "requested"
    RAW_RECEIVED = "raw_received"
    REPAIR_REQUESTED = "repair_requested"
    PARSED = "parsed"
    FAILED = "failed"


_TRANSITIONS: dict[ExtractionState, frozenset[ExtractionState]] = {
    ExtractionState.REQUESTED: frozenset({ExtractionState.RAW_RECEIVED, ExtractionState.FAILED}),
    ExtractionState.RAW_RECEIVED: frozenset(
        {ExtractionState.PARSED, ExtractionState.REPAIR_REQUESTED, ExtractionState.FAILED}
    ),
    ExtractionState.REPAIR_REQUESTED: frozenset({ExtractionState.PARSED, ExtractionState.FAILED}),
    ExtractionState.PARSED: frozenset(),
    ExtractionState.FAILED: frozenset(),
}


@dataclass
class ExtractionRun:
    """Lifecycle of one extraction. REPAIR_REQUESTED is only reachable from RAW_RECEIVED."""

    state: ExtractionState = ExtractionState.REQUESTED
    history: list[ExtractionState] = field(default_factory=lambda: [ExtractionState.REQUESTED])
    calls: int = 0

    @property
    def terminal(self) -> bool:
        return not _TRANSITIONS[self.state]

    def advance(self, new_state: ExtractionState) -> None:
        if new_state not in _TRANSITIONS[self.state]:
            raise RuntimeError(f"Illegal extraction transition {self.state.value} -> {new_state.value}")
        self.state = new_state
        self.history.append(new_state)


@dataclass(frozen=True)
class ExtractionResult:
    report: IncidentReport
    repair_issued: bool
    normalized: bool
    calls: int
    history: tuple[ExtractionState, ...]


def strip_code_fence(text: str) -> str:
    cleaned = _LEADING_FENCE.sub("", text, count=1)
    return _TRAILING_FENCE.sub("", cleaned, count=1)


def decode_payload(text: str) -> tuple[ValidationOutcome | None, str | None]:
    """Parse and validate cleaned model text.

    Returns ``(None, parse_error)`` when the text is not a JSON object and
    ``(outcome, None)`` otherwise.
    """
    try:
        payload = json.loads(text)
    except json.JSONDecodeError as exc:
        return None, f"Model response parsing failed: {exc}"
    if not isinstance(payload, dict):
        return None, "Model response parsing failed: top-level JSON value must be an object"
    return validate_report(payload), None


class ExtractionClient:
    def __init__(self, backend: CompletionBackend, *, settings: Settings | None = None) -> None:
        self._backend = backend
        self._settings = settings or default_settings

    async def extract(self, prompt: PromptPayload) -> ExtractionResult:
        run = ExtractionRun()
        raw = await self._call(run, prompt, kind="primary", temperature=self._settings.extraction_temperature)
        run.advance(ExtractionState.RAW_RECEIVED)

        cleaned = strip_code_fence(raw)
        outcome, parse_error = decode_payload(cleaned)
        if outcome is not None and outcome.ok:
            run.advance(ExtractionState.PARSED)
            return self._result(run, outcome, repair_issued=False)

        if outcome is not None and not self._settings.repair_on_schema_errors:
            run.advance(ExtractionState.FAILED)
            raise ReportValidationError(outcome.errors)

        schema_errors = outcome.errors if outcome is not None else []
        run.advance(ExtractionState.REPAIR_REQUESTED)
        logger.info(
            "extraction_repair_requested",
            extra={
                "event": "extraction_repair_requested",
                "reason": "parse_error" if parse_error is not None else "schema_errors",
                "parse_error": parse_error,
                "schema_errors": schema_errors,
            },
        )

        repair_prompt = build_repair_prompt(cleaned, schema_errors)
        repaired_raw = await self._call(
            run, repair_prompt, kind="repair", temperature=self._settings.repair_temperature
        )
        outcome, parse_error = decode_payload(strip_code_fence(repaired_raw))
        if outcome is not None and outcome.ok:
            run.advance(ExtractionState.PARSED)
            return self._result(run, outcome, repair_issued=True)

        run.advance(ExtractionState.FAILED)
        if parse_error is not None:
            raise ExtractionError(parse_error)
        raise ReportValidationError(outcome.errors if outcome is not None else [])

    async def _call(self, run: ExtractionRun, prompt: PromptPayload, *, kind: str, temperature: float) -> str:
        run.calls += 1
        started = time.perf_counter()
        try:
            text = await asyncio.to_thread(
                self._backend.complete,
                system=prompt.system,
                user=prompt.user,
                temperature=temperature,
            )
        except TriageError:
            run.advance(ExtractionState.FAILED)
            raise
        except Exception as exc:
            run.advance(ExtractionState.FAILED)
            raise ExtractionError(f"Extraction backend failed: {exc}") from exc

        logger.info(
            "extraction_call_completed",
            extra={
                "event": "extraction_call_completed",
                "kind": kind,
                "duration_ms": round((time.perf_counter() - started) * 1000, 2),
                "system_prompt_chars": len(prompt.system),
                "user_prompt_chars": len(prompt.user),
                "response_chars": len(text),
            },
        )
        return text

    @staticmethod
    def _result(run: ExtractionRun, outcome: ValidationOutcome, *, repair_issued: bool) -> ExtractionResult:
        return ExtractionResult(
            report=outcome.unwrap(),
            repair_issued=repair_issued,
            normalized=outcome.repaired,
            calls=run.calls,
            history=tuple(run.history),
        )
