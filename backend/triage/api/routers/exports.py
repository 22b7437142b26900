from __future__ import annotations

from fastapi import APIRouter
from fastapi.responses import Response

from triage.api.contracts import ExportRequest
from triage.export import CSV_FILENAME, pdf_filename, render_actions_csv, render_report_pdf


router = APIRouter(prefix="/api/export")


def _attachment(filename: str) -> dict[str, str]:
    return {"Content-Disposition": f'attachment; filename="{filename}"'}


@router.post("/csv")
def export_csv(payload: ExportRequest) -> Response:
    return Response(
        content=render_actions_csv(payload.analysis),
        media_type="text/csv",
        headers=_attachment(CSV_FILENAME),
    )


@router.post("/pdf")
def export_pdf(payload: ExportRequest) -> Response:
    content = render_report_pdf(payload.analysis)
    return Response(
        content=content,
        media_type="application/pdf",
        headers=_attachment(pdf_filename()),
    )
