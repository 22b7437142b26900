from __future__ import annotations

from datetime import datetime, timezone
import io
import logging
import math

from PIL import Image
from reportlab.lib.pagesizes import A4
from reportlab.lib.units import mm
from reportlab.lib.utils import ImageReader
from reportlab.pdfgen import canvas

from triage.config import settings
from triage.errors import ExportRenderError
from triage.export.raster import render_report_image
from triage.report import IncidentReport

logger = logging.getLogger("triage.export")

PAGE_WIDTH_MM = 210.0
PAGE_HEIGHT_MM = 297.0
MARGIN_MM = 15.0
CONTENT_WIDTH_MM = PAGE_WIDTH_MM - 2 * MARGIN_MM
CONTENT_HEIGHT_MM = PAGE_HEIGHT_MM - 2 * MARGIN_MM


def pdf_filename(generated_at: datetime | None = None) -> str:
    moment = generated_at or datetime.now(timezone.utc)
    return f"incident-analysis-{moment.strftime('%Y-%m-%dT%H-%M-%S')}.pdf"


def plan_page_slices(total_height: int, page_height: float) -> list[tuple[int, int]]:
    """Split ``total_height`` pixel rows into consecutive ``(top, bottom)`` page slices.

    Slices share edges, so no row is repeated or skipped. Content whose height is
    an exact multiple of ``page_height`` yields exactly that many pages.
    """
    if total_height <= 0 or page_height <= 0:
        raise ExportRenderError("Cannot paginate an empty report image.")
    page_count = max(1, math.ceil(total_height / page_height - 1e-9))
    edges = [min(total_height, int(round(index * page_height))) for index in range(page_count)]
    edges.append(total_height)
    return [(top, bottom) for top, bottom in zip(edges, edges[1:]) if bottom > top]


def paginate_image(image: Image.Image) -> bytes:
    width_px, height_px = image.size
    mm_per_px = CONTENT_WIDTH_MM / width_px
    page_height_px = CONTENT_HEIGHT_MM / mm_per_px

    buffer = io.BytesIO()
    pdf = canvas.Canvas(buffer, pagesize=A4)
    pdf.setTitle("Incident Analysis")
    for top, bottom in plan_page_slices(height_px, page_height_px):
        page_slice = image.crop((0, top, width_px, bottom))
        slice_height_mm = (bottom - top) * mm_per_px
        pdf.drawImage(
            ImageReader(page_slice),
            MARGIN_MM * mm,
            (PAGE_HEIGHT_MM - MARGIN_MM - slice_height_mm) * mm,
            width=CONTENT_WIDTH_MM * mm,
            height=slice_height_mm * mm,
        )
        pdf.showPage()
    pdf.save()
    return buffer.getvalue()


def render_report_pdf(report: IncidentReport, *, scale: int | None = None) -> bytes:
    try:
        image = render_report_image(report, scale=scale or settings.pdf_render_scale)
        payload = paginate_image(image)
    except ExportRenderError:
        raise
    except Exception as exc:
        logger.exception("pdf_export_failed", extra={"event": "pdf_export_failed"})
        raise ExportRenderError(f"Error generating PDF: {exc}") from exc

    logger.info(
        "pdf_export_completed",
        extra={
            "event": "pdf_export_completed",
            "image_width_px": image.width,
            "image_height_px": image.height,
            "bytes": len(payload),
        },
    )
    return payload
