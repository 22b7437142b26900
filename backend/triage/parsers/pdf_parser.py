from __future__ import annotations

import io
from pathlib import Path

from pypdf import PdfReader

from triage.parsers.base import ParseResult, ParsedPage

PDF_MEDIA_TYPE = "application/pdf"


class PdfDocumentParser:
    parser_id = "pdf"
    label = "PDF"

    def supports(self, *, file_name: str, content_type: str) -> bool:
        if Path(file_name).suffix.lower() == ".pdf":
            return True
        return content_type.lower() == PDF_MEDIA_TYPE

    def parse(self, *, content: bytes, file_name: str, content_type: str) -> ParseResult:
        del file_name, content_type
        try:
            reader = PdfReader(io.BytesIO(content), strict=False)
            pages: list[ParsedPage] = []
            for index, page in enumerate(reader.pages, start=1):
                extracted = page.extract_text() or ""
                cleaned = " ".join(extracted.split()).strip()
                if cleaned:
                    pages.append(ParsedPage(page=index, text=cleaned))
        except Exception as exc:
            return ParseResult(
                parser_id=self.parser_id,
                media_type=PDF_MEDIA_TYPE,
                error=f"pdf parse failed: {exc}",
            )

        return ParseResult(parser_id=self.parser_id, media_type=PDF_MEDIA_TYPE, pages=pages)
