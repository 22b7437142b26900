"""Run the incident analysis pipeline from the command line."""

from __future__ import annotations

import argparse
import asyncio
import json
import mimetypes
from pathlib import Path
from typing import Sequence

from triage.config import settings
from triage.errors import TriageError
from triage.export import CSV_FILENAME, pdf_filename
from triage.extraction import BedrockConverseBackend, ExtractionClient
from triage.normalizer import UploadedFile
from triage.observability import configure_logging
from triage.pipeline import AnalysisPipeline, AnalysisSession


def _read_upload(path: Path) -> UploadedFile:
    content_type, _ = mimetypes.guess_type(path.name)
    return UploadedFile(name=path.name, content_type=content_type or "", content=path.read_bytes())


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="triage-cli", description=__doc__)
    subcommands = parser.add_subparsers(dest="command", required=True)

    analyze = subcommands.add_parser("analyze", help="Analyze an incident narrative and export the report.")
    source = analyze.add_mutually_exclusive_group(required=True)
    source.add_argument("--ticket", help="Incident narrative text.")
    source.add_argument("--ticket-file", type=Path, help="File containing the incident narrative.")
    analyze.add_argument("--attach", type=Path, action="append", default=[], help="Attachment file (repeatable).")
    analyze.add_argument("--json", dest="json_out", type=Path, help="Write the report JSON here.")
    analyze.add_argument("--csv", dest="csv_out", type=Path, help=f"Write the actions CSV here ({CSV_FILENAME}).")
    analyze.add_argument("--pdf", dest="pdf_out", type=Path, help="Write the PDF report into this directory.")
    analyze.add_argument("--log-level", default="WARNING")
    return parser


async def _analyze(args: argparse.Namespace, session: AnalysisSession) -> int:
    ticket = args.ticket if args.ticket is not None else args.ticket_file.read_text(encoding="utf-8")
    uploads = [_read_upload(path) for path in args.attach]

    try:
        report = await session.analyze(ticket, uploads=uploads)
    except TriageError as exc:
        print(f"[ERROR] {exc}")
        return 1

    payload = json.dumps(report.to_payload(), indent=2, ensure_ascii=False)
    if args.json_out is not None:
        args.json_out.write_text(payload + "\n", encoding="utf-8")
        print(f"[OK] Report written to {args.json_out}")
    else:
        print(payload)

    exit_code = 0
    if args.csv_out is not None:
        args.csv_out.write_bytes(session.export_csv())
        print(f"[OK] Actions written to {args.csv_out}")
    if args.pdf_out is not None:
        args.pdf_out.mkdir(parents=True, exist_ok=True)
        destination = args.pdf_out / pdf_filename()
        try:
            destination.write_bytes(session.export_pdf())
            print(f"[OK] PDF written to {destination}")
        except TriageError as exc:
            print(f"[ERROR] {exc}")
            exit_code = 1
    return exit_code


def main(argv: Sequence[str] | None = None, *, session: AnalysisSession | None = None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging(args.log_level)
    if session is None:
        backend = BedrockConverseBackend(settings=settings)
        session = AnalysisSession(AnalysisPipeline(ExtractionClient(backend, settings=settings)))
    return asyncio.run(_analyze(args, session))


if __name__ == "__main__":
    raise SystemExit(main())
