from __future__ import annotations

from pathlib import Path

from triage.parsers.base import ParseResult, ParsedPage


TEXT_FILE_EXTENSIONS = {".txt", ".log", ".csv"}
DEFAULT_TEXT_MEDIA_TYPE = "text/plain"


class TextDocumentParser:
    parser_id = "text"
    label = "text"

    def supports(self, *, file_name: str, content_type: str) -> bool:
        if content_type.lower().startswith("text/"):
            return True
        return Path(file_name).suffix.lower() in TEXT_FILE_EXTENSIONS

    def parse(self, *, content: bytes, file_name: str, content_type: str) -> ParseResult:
        del file_name
        media_type = content_type or DEFAULT_TEXT_MEDIA_TYPE
        try:
            text = content.decode("utf-8")
        except UnicodeDecodeError:
            # latin-1 maps every byte, so this never fails.
            text = content.decode("latin-1")

        cleaned = text.replace("\r\n", "\n").strip()
        pages = [ParsedPage(page=1, text=cleaned)] if cleaned else []
        return ParseResult(parser_id=self.parser_id, media_type=media_type, pages=pages)
