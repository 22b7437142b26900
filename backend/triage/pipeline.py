from __future__ import annotations

import asyncio
from dataclasses import dataclass
import logging
import time
from typing import Sequence

from triage.errors import AnalysisSupersededError, ExportRenderError, TriageError
from triage.export import render_actions_csv, render_report_pdf
from triage.extraction import ExtractionClient, ExtractionResult
from triage.normalizer import AttachmentFragment, UploadedFile, normalize_uploads
from triage.observability import fingerprint_text
from triage.parsers import ParserRegistry
from triage.prompting import build_prompt, validate_ticket
from triage.report import IncidentReport

logger = logging.getLogger("triage.pipeline")


@dataclass(frozen=True)
class AnalysisResult:
    report: IncidentReport
    attachments: tuple[AttachmentFragment, ...]
    extraction: ExtractionResult


class AnalysisPipeline:
    """Normalizer -> prompt assembler -> extraction client -> validator."""

    def __init__(
        self,
        extraction_client: ExtractionClient,
        *,
        normalize_concurrency: int | None = None,
        registry: ParserRegistry | None = None,
    ) -> None:
        self._extraction = extraction_client
        self._normalize_concurrency = normalize_concurrency
        self._registry = registry

    async def run(
        self,
        ticket: object,
        *,
        attachments: Sequence[AttachmentFragment] = (),
        uploads: Sequence[UploadedFile] = (),
    ) -> AnalysisResult:
        validated_ticket = validate_ticket(ticket)
        started = time.perf_counter()

        fragments = list(attachments)
        if uploads:
            fragments.extend(
                await normalize_uploads(
                    uploads,
                    concurrency=self._normalize_concurrency,
                    registry=self._registry,
                )
            )

        prompt = build_prompt(validated_ticket, fragments)
        try:
            extraction = await self._extraction.extract(prompt)
        except TriageError as exc:
            logger.warning(
                "analysis_failed",
                extra={
                    "event": "analysis_failed",
                    "error_type": type(exc).__name__,
                    "error": str(exc),
                    "duration_ms": round((time.perf_counter() - started) * 1000, 2),
                },
            )
            raise

        logger.info(
            "analysis_completed",
            extra={
                "event": "analysis_completed",
                "ticket": fingerprint_text(validated_ticket),
                "attachments": len(fragments),
                "severity": extraction.report.severity,
                "actions": len(extraction.report.actions),
                "calls": extraction.calls,
                "repair_issued": extraction.repair_issued,
                "duration_ms": round((time.perf_counter() - started) * 1000, 2),
            },
        )
        return AnalysisResult(report=extraction.report, attachments=tuple(fragments), extraction=extraction)


class AnalysisSession:
    """Holds the single "current report" slot for one user session.

    Starting an analysis clears the slot and cancels any run still in flight.
    The slot is only written by the most recent run once it reaches a terminal
    state.
    """

    def __init__(self, pipeline: AnalysisPipeline) -> None:
        self._pipeline = pipeline
        self._inflight: asyncio.Task[AnalysisResult] | None = None
        self._generation = 0
        self.current_report: IncidentReport | None = None
        self.last_error: TriageError | None = None

    @property
    def busy(self) -> bool:
        return self._inflight is not None and not self._inflight.done()

    def cancel(self) -> bool:
        task = self._inflight
        if task is not None and not task.done():
            task.cancel()
            return True
        return False

    async def analyze(
        self,
        ticket: object,
        *,
        attachments: Sequence[AttachmentFragment] = (),
        uploads: Sequence[UploadedFile] = (),
    ) -> IncidentReport:
        if self.cancel():
            logger.info("analysis_superseded", extra={"event": "analysis_superseded"})
        self.current_report = None
        self.last_error = None
        self._generation += 1
        generation = self._generation

        task = asyncio.create_task(self._pipeline.run(ticket, attachments=attachments, uploads=uploads))
        self._inflight = task
        try:
            result = await task
        except asyncio.CancelledError:
            if generation != self._generation:
                raise AnalysisSupersededError("Analysis was superseded by a newer run.") from None
            raise
        except TriageError as exc:
            if generation == self._generation:
                self.last_error = exc
            raise

        if generation != self._generation:
            raise AnalysisSupersededError("Analysis was superseded by a newer run.")
        self.current_report = result.report
        return result.report

    def _require_report(self) -> IncidentReport:
        if self.current_report is None:
            raise ExportRenderError("No analysis available to export.")
        return self.current_report

    def export_csv(self) -> bytes:
        return render_actions_csv(self._require_report())

    def export_pdf(self) -> bytes:
        return render_report_pdf(self._require_report())
