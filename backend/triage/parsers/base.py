from __future__ import annotations

from dataclasses import dataclass, field
from typing import Protocol


@dataclass(frozen=True)
class ParsedPage:
    page: int
    text: str


@dataclass(frozen=True)
class ParseResult:
    parser_id: str
    media_type: str
    pages: list[ParsedPage] = field(default_factory=list)
    supported: bool = True
    error: str | None = None

    @property
    def text(self) -> str:
        """Page texts in document order, separated by a blank line."""
        return "\n\n".join(page.text for page in self.pages if page.text).strip()


class DocumentParser(Protocol):
    parser_id: str
    label: str

    def supports(self, *, file_name: str, content_type: str) -> bool:
        ...

    def parse(self, *, content: bytes, file_name: str, content_type: str) -> ParseResult:
        ...
