from __future__ import annotations

from contextlib import contextmanager
from functools import lru_cache
from typing import Any, Iterator

from PIL import Image, ImageDraw, ImageFont

from triage.report import IncidentReport


BACKGROUND = "#F8F9FA"
CARD = "#FFFFFF"
BORDER = "#D2D8E2"
TEXT = "#4E5D6C"
HEADING = "#1C3D6F"
ACCENT = "#3FB6A8"
MUTED = "#8A97A6"
SEVERITY_COLORS = {
    "Critical": "#DC2626",
    "High": "#EA580C",
    "Medium": "#CA8A04",
    "Low": "#16A34A",
}
PRIORITY_COLORS = {"P1": "#DC2626", "P2": "#CA8A04", "P3": "#2563EB"}

# Layout units are CSS-like pixels at scale 1.
BASE_WIDTH = 800
PAGE_PADDING = 24
CARD_PADDING = 20
CARD_GAP = 16
LINE_SPACING = 6
ACTION_COLUMNS = (("Title", 0.46), ("Owner", 0.2), ("Priority", 0.12), ("Due Window", 0.22))


@lru_cache(maxsize=32)
def _font(size: int) -> Any:
    return ImageFont.load_default(size=size)


def _renderable(text: str, font: Any) -> str:
    if isinstance(font, ImageFont.FreeTypeFont):
        return text
    # Bitmap fallback fonts only cover latin-1.
    return text.encode("latin-1", errors="replace").decode("latin-1")


class _ReportLayout:
    """Two-pass layout: draw calls are recorded with a running y cursor, then replayed."""

    def __init__(self, scale: int) -> None:
        self.scale = scale
        self.width = BASE_WIDTH * scale
        self.padding = PAGE_PADDING * scale
        self.y = self.padding
        self._ops: list[tuple[str, tuple[Any, ...], dict[str, Any]] | None] = []
        self._measure = ImageDraw.Draw(Image.new("RGB", (1, 1)))

    def px(self, value: int | float) -> int:
        return int(round(value * self.scale))

    def font(self, size: int) -> Any:
        return _font(self.px(size))

    def line_height(self, font: Any) -> int:
        _, top, _, bottom = font.getbbox("Ag")
        return (bottom - top) + self.px(LINE_SPACING)

    def record(self, method: str, *args: Any, **kwargs: Any) -> None:
        self._ops.append((method, args, kwargs))

    def wrap(self, text: str, font: Any, max_width: int) -> list[str]:
        lines: list[str] = []
        for paragraph in _renderable(text, font).splitlines() or [""]:
            current = ""
            for word in paragraph.split():
                for piece in self._split_long_word(word, font, max_width):
                    candidate = f"{current} {piece}" if current else piece
                    if not current or self._measure.textlength(candidate, font=font) <= max_width:
                        current = candidate
                    else:
                        lines.append(current)
                        current = piece
            lines.append(current)
        return lines

    def _split_long_word(self, word: str, font: Any, max_width: int) -> list[str]:
        if self._measure.textlength(word, font=font) <= max_width:
            return [word]
        pieces: list[str] = []
        current = ""
        for char in word:
            if current and self._measure.textlength(current + char, font=font) > max_width:
                pieces.append(current)
                current = ""
            current += char
        if current:
            pieces.append(current)
        return pieces

    def text_block(self, text: str, *, x: int, max_width: int, size: int = 14, fill: str = TEXT) -> None:
        font = self.font(size)
        step = self.line_height(font)
        for line in self.wrap(text, font, max_width):
            self.record("text", (x, self.y), line, fill=fill, font=font)
            self.y += step

    def bullets(self, items: list[str], *, x: int, max_width: int, size: int = 14) -> None:
        indent = self.px(14)
        for item in items:
            font = self.font(size)
            self.record("text", (x, self.y), "-", fill=ACCENT, font=font)
            self.text_block(item, x=x + indent, max_width=max_width - indent, size=size)

    def badge(self, label: str, *, x: int, color: str, size: int = 12) -> int:
        font = self.font(size)
        label = _renderable(label, font)
        pad_x, pad_y = self.px(10), self.px(4)
        width = int(self._measure.textlength(label, font=font)) + 2 * pad_x
        height = self.line_height(font) + 2 * pad_y
        self.record(
            "rounded_rectangle",
            (x, self.y, x + width, self.y + height),
            radius=self.px(8),
            fill=color,
        )
        self.record("text", (x + pad_x, self.y + pad_y), label, fill="#FFFFFF", font=font)
        return height

    @contextmanager
    def card(self, title: str) -> Iterator[tuple[int, int]]:
        top = self.y
        slot = len(self._ops)
        self._ops.append(None)
        left = self.padding
        right = self.width - self.padding
        inner_x = left + self.px(CARD_PADDING)
        inner_width = right - left - 2 * self.px(CARD_PADDING)

        self.y += self.px(CARD_PADDING)
        self.text_block(title, x=inner_x, max_width=inner_width, size=18, fill=HEADING)
        self.y += self.px(6)
        yield inner_x, inner_width
        self.y += self.px(CARD_PADDING)

        self._ops[slot] = (
            "rounded_rectangle",
            ((left, top, right, self.y),),
            {"radius": self.px(12), "fill": CARD, "outline": BORDER, "width": max(1, self.scale)},
        )
        self.y += self.px(CARD_GAP)

    def render(self) -> Image.Image:
        height = self.y + self.padding
        image = Image.new("RGB", (self.width, height), BACKGROUND)
        draw = ImageDraw.Draw(image)
        for op in self._ops:
            if op is None:
                continue
            method, args, kwargs = op
            getattr(draw, method)(*args, **kwargs)
        return image


def _render_header(layout: _ReportLayout, report: IncidentReport) -> None:
    x = layout.padding
    max_width = layout.width - 2 * layout.padding
    layout.text_block("Incident Analysis", x=x, max_width=max_width, size=26, fill=HEADING)
    layout.y += layout.px(4)
    color = SEVERITY_COLORS.get(report.severity, MUTED)
    layout.y += layout.badge(f"{report.severity.upper()} SEVERITY", x=x, color=color, size=13)
    layout.y += layout.px(CARD_GAP)


def _render_actions(layout: _ReportLayout, report: IncidentReport, x: int, width: int) -> None:
    header_font = layout.font(12)
    offsets: list[tuple[int, int]] = []
    cursor = x
    for _, share in ACTION_COLUMNS:
        column_width = int(width * share)
        offsets.append((cursor, column_width - layout.px(8)))
        cursor += column_width

    for (label, _), (column_x, _) in zip(ACTION_COLUMNS, offsets):
        layout.record("text", (column_x, layout.y), label.upper(), fill=MUTED, font=header_font)
    layout.y += layout.line_height(header_font) + layout.px(4)

    for action in report.actions:
        layout.record("line", [(x, layout.y), (x + width, layout.y)], fill=BORDER, width=max(1, layout.scale))
        layout.y += layout.px(6)
        row_top = layout.y
        row_bottom = row_top
        cells = [action.title, action.owner or "", action.priority or "", action.due_window or ""]
        for index, (cell, (column_x, column_width)) in enumerate(zip(cells, offsets)):
            layout.y = row_top
            if index == 2 and cell:
                layout.y += layout.badge(cell, x=column_x, color=PRIORITY_COLORS.get(cell, MUTED), size=11)
            else:
                layout.text_block(cell, x=column_x, max_width=column_width, size=13)
            row_bottom = max(row_bottom, layout.y)
        layout.y = row_bottom + layout.px(2)


def render_report_image(report: IncidentReport, *, scale: int = 2) -> Image.Image:
    """Rasterize the report view. ``scale`` supersamples every layout dimension."""
    layout = _ReportLayout(scale=max(1, scale))
    _render_header(layout, report)

    with layout.card("Root Cause") as (x, width):
        layout.text_block(report.root_cause, x=x, max_width=width)

    with layout.card("Impacted Assets") as (x, width):
        layout.bullets(report.impacted_assets, x=x, max_width=width)

    with layout.card("Customer-Safe Summary") as (x, width):
        layout.text_block(report.customer_safe_summary, x=x, max_width=width)

    with layout.card("NIST CSF Mapping") as (x, width):
        for name, findings in report.csf.items():
            layout.text_block(name, x=x, max_width=width, size=15, fill=ACCENT)
            layout.bullets(findings, x=x, max_width=width, size=13)
            layout.y += layout.px(6)

    if report.nist_800_53:
        with layout.card("NIST 800-53 Controls") as (x, width):
            layout.text_block("   ".join(report.nist_800_53), x=x, max_width=width)

    if report.mitre:
        with layout.card("MITRE ATT&CK") as (x, width):
            layout.text_block("   ".join(report.mitre), x=x, max_width=width)

    with layout.card("Timeline") as (x, width):
        label_width = layout.px(150)
        for event in report.timeline:
            top = layout.y
            layout.text_block(event.time or "", x=x, max_width=label_width - layout.px(8), size=13, fill=HEADING)
            label_bottom = layout.y
            layout.y = top
            layout.text_block(event.event, x=x + label_width, max_width=width - label_width, size=13)
            layout.y = max(layout.y, label_bottom) + layout.px(4)

    with layout.card("Remediation Actions") as (x, width):
        _render_actions(layout, report, x, width)

    return layout.render()
