"""Document transformation pipeline: .docx in, IEEE two-column .docx out."""

from services.pipeline.controller import PipelineController
from services.pipeline.models import PipelineRun, RawDocument
from services.pipeline.sessions import PipelineSessionStore


__all__ = ["PipelineController", "PipelineRun", "PipelineSessionStore", "RawDocument"]
