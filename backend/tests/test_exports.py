from __future__ import annotations

from datetime import datetime
from io import BytesIO

import pytest
from pypdf import PdfReader

from triage.errors import ExportRenderError
from triage.export import (
    CSV_FILENAME,
    pdf_filename,
    plan_page_slices,
    render_actions_csv,
    render_report_image,
    render_report_pdf,
)
from triage.export.pdf_export import CONTENT_HEIGHT_MM, CONTENT_WIDTH_MM
from triage.report import IncidentReport


def _report(payload: dict[str, object], **overrides: object) -> IncidentReport:
    return IncidentReport.model_validate({**payload, **overrides})


def test_csv_has_quoted_header_and_blank_optional_cells(report_payload) -> None:
    csv_bytes = render_actions_csv(_report(report_payload))

    assert CSV_FILENAME == "incident-actions.csv"
    assert csv_bytes.decode("utf-8").splitlines() == [
        '"Title","Owner","Priority","Due Window"',
        '"Reset credentials for jdoe","IT Ops","P1","24h"',
        '"Roll out MFA to all remote users","","P2",""',
        '"Review DLP thresholds","","",""',
    ]


def test_csv_with_no_actions_is_header_only(report_payload) -> None:
    csv_text = render_actions_csv(_report(report_payload, actions=[])).decode("utf-8")

    assert csv_text.splitlines() == ['"Title","Owner","Priority","Due Window"']


def test_csv_escapes_embedded_quotes_commas_and_newlines(report_payload) -> None:
    title = 'Block "evil.example", then notify\nlegal'
    report = _report(report_payload, actions=[{"title": title, "owner": "SecOps, Tier 2"}])

    csv_text = render_actions_csv(report).decode("utf-8")

    assert '"Block ""evil.example"", then notify\nlegal","SecOps, Tier 2","",""' in csv_text


def test_csv_export_is_idempotent(report_payload) -> None:
    report = _report(report_payload)

    assert render_actions_csv(report) == render_actions_csv(report)


def test_report_image_renders_with_empty_timeline_and_unicode(report_payload) -> None:
    report = _report(
        report_payload,
        timeline=[],
        mitre=["T1078 Valid Accounts"],
        root_cause="Phishing \u2192 credential reuse \U0001F512",
    )

    image = render_report_image(report, scale=1)

    assert image.width == 800
    assert image.height > 0


def test_report_image_scale_multiplies_width(report_payload) -> None:
    report = _report(report_payload)

    assert render_report_image(report, scale=2).width == 2 * render_report_image(report, scale=1).width


@pytest.mark.parametrize(
    ("total", "expected"),
    [
        (100, [(0, 100)]),
        (267, [(0, 267)]),
        (534, [(0, 267), (267, 534)]),
        (535, [(0, 267), (267, 534), (534, 535)]),
    ],
)
def test_page_slices_cover_every_row_once(total: int, expected: list[tuple[int, int]]) -> None:
    assert plan_page_slices(total, 267) == expected


def test_page_slices_reject_empty_content() -> None:
    with pytest.raises(ExportRenderError):
        plan_page_slices(0, 267)


def test_pdf_page_count_matches_planned_slices(report_payload) -> None:
    actions = [{"title": f"Follow-up task {index}", "owner": "SecOps", "priority": "P3"} for index in range(80)]
    report = _report(report_payload, actions=actions)

    pdf_bytes = render_report_pdf(report, scale=1)

    assert pdf_bytes.startswith(b"%PDF")
    image = render_report_image(report, scale=1)
    page_height_px = CONTENT_HEIGHT_MM / (CONTENT_WIDTH_MM / image.width)
    expected_pages = len(plan_page_slices(image.height, page_height_px))
    assert expected_pages >= 2
    assert len(PdfReader(BytesIO(pdf_bytes)).pages) == expected_pages


def test_short_report_fits_on_one_page(report_payload) -> None:
    report = _report(
        report_payload,
        csf={name: [] for name in report_payload["csf"]},
        impacted_assets=["corp-fileshare-01"],
        nist_800_53=None,
        actions=[],
        timeline=[],
    )

    pdf_bytes = render_report_pdf(report, scale=1)

    assert len(PdfReader(BytesIO(pdf_bytes)).pages) == 1


def test_pdf_filename_uses_filesystem_safe_timestamp() -> None:
    assert pdf_filename(datetime(2024, 5, 1, 2, 14, 9)) == "incident-analysis-2024-05-01T02-14-09.pdf"


def test_render_failure_surfaces_as_export_error(monkeypatch, report_payload) -> None:
    def explode(*args, **kwargs):
        raise MemoryError("canvas too large")

    monkeypatch.setattr("triage.export.pdf_export.render_report_image", explode)

    with pytest.raises(ExportRenderError, match="Error generating PDF: canvas too large"):
        render_report_pdf(_report(report_payload))
