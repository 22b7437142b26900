from typing import Any, Callable

from pydantic import BaseModel, Field

from triage.normalizer import AttachmentFragment
from triage.pipeline import AnalysisPipeline
from triage.report import IncidentReport


AnalysisPipelineGetter = Callable[[], AnalysisPipeline]


class AnalyzeRequest(BaseModel):
    # Checked by the prompt assembler so the 400 carries its message.
    ticket: Any = None
    attachments: list[AttachmentFragment] | None = Field(default=None)


class ExportRequest(BaseModel):
    analysis: IncidentReport
