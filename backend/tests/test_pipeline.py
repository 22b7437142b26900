from __future__ import annotations

import asyncio
import json
import threading

import pytest

from triage.config import Settings
from triage.errors import AnalysisSupersededError, ExportRenderError, ExtractionError, InputValidationError
from triage.extraction import ExtractionClient
from triage.normalizer import AttachmentFragment, UploadedFile
from triage.pipeline import AnalysisPipeline, AnalysisSession


def _session(backend) -> AnalysisSession:
    return AnalysisSession(AnalysisPipeline(ExtractionClient(backend, settings=Settings())))


def test_pipeline_feeds_normalized_uploads_into_prompt(scripted_backend, report_payload) -> None:
    backend = scripted_backend(json.dumps(report_payload))
    pipeline = AnalysisPipeline(ExtractionClient(backend, settings=Settings()))

    result = asyncio.run(
        pipeline.run(
            "Suspicious login",
            attachments=[AttachmentFragment(name="inline.txt", mime="text/plain", text="pasted note")],
            uploads=[
                UploadedFile(name="auth.log", content_type="", content=b"failed login x3"),
                UploadedFile(name="dump.bin", content_type="application/octet-stream", content=b"\x00\x01"),
            ],
        )
    )

    assert [fragment.name for fragment in result.attachments] == ["inline.txt", "auth.log"]
    user_prompt = backend.calls[0]["user"]
    assert user_prompt.startswith("TICKET:\nSuspicious login\n\n")
    assert "ATTACHMENT: inline.txt (text/plain)\npasted note\n\n" in user_prompt
    assert "ATTACHMENT: auth.log (text/plain)\nfailed login x3\n\n" in user_prompt
    assert "dump.bin" not in user_prompt
    assert result.report.to_payload() == report_payload


def test_oversized_ticket_is_rejected_before_any_backend_call(scripted_backend) -> None:
    backend = scripted_backend()
    session = _session(backend)

    with pytest.raises(InputValidationError, match="Ticket description too long"):
        asyncio.run(session.analyze("x" * 10_001))

    assert backend.calls == []
    assert isinstance(session.last_error, InputValidationError)


def test_successful_analysis_fills_the_report_slot(scripted_backend, report_payload) -> None:
    session = _session(scripted_backend(json.dumps(report_payload)))

    report = asyncio.run(session.analyze("Suspicious login"))

    assert session.current_report == report
    assert session.last_error is None
    assert session.busy is False
    assert session.export_csv().startswith(b'"Title","Owner","Priority","Due Window"\n')


def test_failed_analysis_clears_previous_report(scripted_backend, report_payload) -> None:
    session = _session(scripted_backend(json.dumps(report_payload), "garbage", "more garbage"))

    asyncio.run(session.analyze("first incident"))
    assert session.current_report is not None

    with pytest.raises(ExtractionError):
        asyncio.run(session.analyze("second incident"))

    assert session.current_report is None
    assert isinstance(session.last_error, ExtractionError)


def test_export_without_report_is_an_error(scripted_backend) -> None:
    session = _session(scripted_backend())

    with pytest.raises(ExportRenderError, match="No analysis available"):
        session.export_csv()
    with pytest.raises(ExportRenderError, match="No analysis available"):
        session.export_pdf()


class _GatedBackend:
    """Blocks the first call until released; later calls answer immediately."""

    def __init__(self, response: str) -> None:
        self.response = response
        self.started = threading.Event()
        self.release = threading.Event()
        self.users: list[str] = []

    def complete(self, *, system: str, user: str, temperature: float) -> str:
        self.users.append(user)
        if len(self.users) == 1:
            self.started.set()
            self.release.wait(timeout=5)
        return self.response


def test_new_analysis_supersedes_the_inflight_run(report_payload) -> None:
    backend = _GatedBackend(json.dumps(report_payload))
    session = _session(backend)

    async def scenario():
        first = asyncio.create_task(session.analyze("first ticket"))
        try:
            await asyncio.to_thread(backend.started.wait, 5)
            assert session.busy is True
            second_report = await session.analyze("second ticket")
            with pytest.raises(AnalysisSupersededError):
                await first
            return second_report
        finally:
            backend.release.set()

    report = asyncio.run(scenario())

    assert session.current_report == report
    assert session.last_error is None
    assert "second ticket" in backend.users[-1]


def test_cancel_stops_the_inflight_run(report_payload) -> None:
    backend = _GatedBackend(json.dumps(report_payload))
    session = _session(backend)

    async def scenario():
        run = asyncio.create_task(session.analyze("only ticket"))
        try:
            await asyncio.to_thread(backend.started.wait, 5)
            assert session.cancel() is True
            with pytest.raises(asyncio.CancelledError):
                await run
        finally:
            backend.release.set()

    asyncio.run(scenario())

    assert session.current_report is None
    assert session.cancel() is False
