from __future__ import annotations

import asyncio
from dataclasses import dataclass
import logging
from typing import Sequence

from pydantic import BaseModel, ConfigDict

from triage.config import settings
from triage.parsers import ParserRegistry

logger = logging.getLogger("triage.normalizer")

_default_registry = ParserRegistry()


class AttachmentFragment(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    mime: str
    text: str


@dataclass(frozen=True)
class UploadedFile:
    name: str
    content_type: str
    content: bytes


def extraction_placeholder(file_name: str, label: str) -> str:
    return f"[Error reading {file_name}: Could not extract text from {label} file]"


def normalize_upload(upload: UploadedFile, registry: ParserRegistry | None = None) -> AttachmentFragment | None:
    """Convert one uploaded file into an attachment fragment.

    Returns ``None`` for file types with no registered parser. Parser failures
    produce a fragment whose text is a placeholder naming the file.
    """
    active_registry = registry or _default_registry
    parser = active_registry.resolve(file_name=upload.name, content_type=upload.content_type)
    if parser is None:
        logger.debug(
            "attachment_skipped_unsupported",
            extra={
                "event": "attachment_skipped_unsupported",
                "file_name": upload.name,
                "content_type": upload.content_type,
            },
        )
        return None

    result = parser.parse(content=upload.content, file_name=upload.name, content_type=upload.content_type)
    if result.error is not None:
        logger.warning(
            "attachment_extraction_failed",
            extra={
                "event": "attachment_extraction_failed",
                "file_name": upload.name,
                "parser_id": result.parser_id,
                "error": result.error,
            },
        )
        text = extraction_placeholder(upload.name, parser.label)
    else:
        text = result.text

    return AttachmentFragment(name=upload.name, mime=result.media_type, text=text)


async def normalize_uploads(
    uploads: Sequence[UploadedFile],
    *,
    concurrency: int | None = None,
    registry: ParserRegistry | None = None,
) -> list[AttachmentFragment]:
    """Normalize every upload concurrently and join before returning.

    At most ``concurrency`` files are parsed at once. Output order follows
    input order with unsupported files omitted.
    """
    semaphore = asyncio.Semaphore(max(1, concurrency or settings.normalize_concurrency))

    async def normalize_one(upload: UploadedFile) -> AttachmentFragment | None:
        async with semaphore:
            try:
                return await asyncio.to_thread(normalize_upload, upload, registry)
            except Exception:
                logger.exception(
                    "attachment_normalization_crashed",
                    extra={"event": "attachment_normalization_crashed", "file_name": upload.name},
                )
                return AttachmentFragment(
                    name=upload.name,
                    mime=upload.content_type or "application/octet-stream",
                    text=extraction_placeholder(upload.name, "uploaded"),
                )

    results = await asyncio.gather(*(normalize_one(upload) for upload in uploads))
    fragments = [fragment for fragment in results if fragment is not None]
    logger.info(
        "attachments_normalized",
        extra={
            "event": "attachments_normalized",
            "files_total": len(uploads),
            "fragments": len(fragments),
            "skipped": len(uploads) - len(fragments),
        },
    )
    return fragments
