import json
from pathlib import Path

import pytest

from triage.cli import build_parser, main
from triage.config import Settings
from triage.extraction import ExtractionClient
from triage.pipeline import AnalysisPipeline, AnalysisSession


def _session(backend) -> AnalysisSession:
    return AnalysisSession(AnalysisPipeline(ExtractionClient(backend, settings=Settings())))


def test_cli_prints_report_json(scripted_backend, report_payload, capsys) -> None:
    backend = scripted_backend(json.dumps(report_payload))

    exit_code = main(["analyze", "--ticket", "Laptop stolen from car"], session=_session(backend))

    assert exit_code == 0
    assert json.loads(capsys.readouterr().out) == report_payload
    assert backend.calls[0]["user"].startswith("TICKET:\nLaptop stolen from car")


def test_cli_writes_every_export(scripted_backend, report_payload, tmp_path: Path) -> None:
    ticket_file = tmp_path / "ticket.txt"
    ticket_file.write_text("Ransom note on shared drive", encoding="utf-8")
    attachment = tmp_path / "edr.log"
    attachment.write_text("process vssadmin.exe deleted shadows", encoding="utf-8")
    backend = scripted_backend(json.dumps(report_payload))

    exit_code = main(
        [
            "analyze",
            "--ticket-file",
            str(ticket_file),
            "--attach",
            str(attachment),
            "--json",
            str(tmp_path / "report.json"),
            "--csv",
            str(tmp_path / "actions.csv"),
            "--pdf",
            str(tmp_path / "pdf"),
        ],
        session=_session(backend),
    )

    assert exit_code == 0
    assert "ATTACHMENT: edr.log (" in backend.calls[0]["user"]
    assert "process vssadmin.exe deleted shadows" in backend.calls[0]["user"]
    assert json.loads((tmp_path / "report.json").read_text(encoding="utf-8")) == report_payload
    assert (tmp_path / "actions.csv").read_bytes().startswith(b'"Title","Owner","Priority","Due Window"')
    pdfs = list((tmp_path / "pdf").glob("incident-analysis-*.pdf"))
    assert len(pdfs) == 1
    assert pdfs[0].read_bytes().startswith(b"%PDF")


def test_cli_reports_failures_with_exit_code(scripted_backend, capsys) -> None:
    exit_code = main(["analyze", "--ticket", "   "], session=_session(scripted_backend()))

    assert exit_code == 1
    assert capsys.readouterr().out.strip() == "[ERROR] Invalid ticket description"


def test_cli_requires_a_ticket_source() -> None:
    with pytest.raises(SystemExit):
        build_parser().parse_args(["analyze"])
