from __future__ import annotations

import io
from pathlib import Path

from docx import Document

from triage.parsers.base import ParseResult, ParsedPage

DOCX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.wordprocessingml.document"


class DocxDocumentParser:
    parser_id = "docx"
    label = "DOCX"

    def supports(self, *, file_name: str, content_type: str) -> bool:
        if Path(file_name).suffix.lower() == ".docx":
            return True
        return content_type.lower() == DOCX_MEDIA_TYPE

    def parse(self, *, content: bytes, file_name: str, content_type: str) -> ParseResult:
        del file_name, content_type
        try:
            document = Document(io.BytesIO(content))
            lines: list[str] = []

            for paragraph in document.paragraphs:
                text = " ".join(paragraph.text.split()).strip()
                if text:
                    lines.append(text)

            for table in document.tables:
                for row in table.rows:
                    cell_values = [" ".join(cell.text.split()).strip() for cell in row.cells]
                    row_text = " | ".join([value for value in cell_values if value])
                    if row_text:
                        lines.append(row_text)
        except Exception as exc:
            return ParseResult(
                parser_id=self.parser_id,
                media_type=DOCX_MEDIA_TYPE,
                error=f"docx parse failed: {exc}",
            )

        joined = "\n".join(lines).strip()
        pages = [ParsedPage(page=1, text=joined)] if joined else []
        return ParseResult(parser_id=self.parser_id, media_type=DOCX_MEDIA_TYPE, pages=pages)
