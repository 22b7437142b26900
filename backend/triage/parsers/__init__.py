from triage.parsers.base import ParseResult, ParsedPage
from triage.parsers.registry import ParserRegistry
from triage.parsers.text_parser import TEXT_FILE_EXTENSIONS

__all__ = ["ParseResult", "ParsedPage", "ParserRegistry", "TEXT_FILE_EXTENSIONS"]
