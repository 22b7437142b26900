from __future__ import annotations

from triage.parsers.base import DocumentParser, ParseResult
from triage.parsers.docx_parser import DocxDocumentParser
from triage.parsers.pdf_parser import PdfDocumentParser
from triage.parsers.text_parser import TextDocumentParser


class ParserRegistry:
    def __init__(self, parsers: list[DocumentParser] | None = None) -> None:
        self._parsers = parsers or [
            DocxDocumentParser(),
            PdfDocumentParser(),
            TextDocumentParser(),
        ]

    def resolve(self, *, file_name: str, content_type: str) -> DocumentParser | None:
        for parser in self._parsers:
            if parser.supports(file_name=file_name, content_type=content_type):
                return parser
        return None

    def parse(self, *, content: bytes, file_name: str, content_type: str) -> ParseResult:
        parser = self.resolve(file_name=file_name, content_type=content_type)
        if parser is None:
            return ParseResult(
                parser_id="none",
                media_type=content_type,
                supported=False,
                error="No parser registered for this file type.",
            )
        return parser.parse(content=content, file_name=file_name, content_type=content_type)
