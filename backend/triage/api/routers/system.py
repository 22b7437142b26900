from __future__ import annotations

from fastapi import APIRouter

from triage.config import settings
from triage.parsers import ParserRegistry
from triage.version import APP_VERSION


router = APIRouter()


@router.get("/")
def root() -> dict[str, str]:
    return {"service": "incident-triage", "status": "running", "version": APP_VERSION}


@router.get("/health")
def health() -> dict[str, str]:
    return {"status": "ok", "environment": settings.app_env}


@router.get("/ready")
def ready() -> dict[str, object]:
    registry = ParserRegistry()
    return {
        "status": "ready",
        "environment": settings.app_env,
        "checks": {
            "bedrock_model_configured": bool(settings.bedrock_model_id.strip()),
            "docx_parser": registry.resolve(file_name="probe.docx", content_type="") is not None,
            "pdf_parser": registry.resolve(file_name="probe.pdf", content_type="") is not None,
        },
    }
