from __future__ import annotations

from pathlib import Path

from fastapi import APIRouter, File, Form, HTTPException, UploadFile

from triage.api.contracts import AnalysisPipelineGetter, AnalyzeRequest
from triage.config import settings
from triage.normalizer import UploadedFile


def build_analysis_router(*, get_analysis_pipeline: AnalysisPipelineGetter) -> APIRouter:
    router = APIRouter(prefix="/api")

    @router.post("/analyze")
    async def analyze(payload: AnalyzeRequest) -> dict[str, object]:
        pipeline = get_analysis_pipeline()
        result = await pipeline.run(payload.ticket, attachments=payload.attachments or [])
        return {"analysis": result.report.to_payload()}

    @router.post("/analyze/upload")
    async def analyze_upload(
        ticket: str | None = Form(default=None),
        files: list[UploadFile] | None = File(default=None),
    ) -> dict[str, object]:
        uploads = files or []
        if len(uploads) > settings.max_upload_files:
            raise HTTPException(
                status_code=413,
                detail=f"Too many files in one upload batch (max {settings.max_upload_files}).",
            )

        buffered: list[UploadedFile] = []
        total_bytes = 0
        for upload in uploads:
            safe_name = Path(upload.filename or "upload.bin").name or "upload.bin"
            content = await upload.read(settings.max_upload_file_bytes + 1)
            if len(content) > settings.max_upload_file_bytes:
                raise HTTPException(
                    status_code=413,
                    detail=f"File '{safe_name}' exceeds max size of {settings.max_upload_file_bytes} bytes.",
                )
            total_bytes += len(content)
            if total_bytes > settings.max_upload_batch_bytes:
                raise HTTPException(
                    status_code=413,
                    detail=f"Upload batch exceeds max size of {settings.max_upload_batch_bytes} bytes.",
                )
            buffered.append(
                UploadedFile(name=safe_name, content_type=upload.content_type or "", content=content)
            )

        pipeline = get_analysis_pipeline()
        result = await pipeline.run(ticket, uploads=buffered)
        return {
            "analysis": result.report.to_payload(),
            "attachments": [
                {"name": fragment.name, "mime": fragment.mime, "chars": len(fragment.text)}
                for fragment in result.attachments
            ],
        }

    return router
