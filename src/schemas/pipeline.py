"""Schemas describing transformation pipeline state, events and manifests."""

from __future__ import annotations

from datetime import datetime
from enum import StrEnum
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from .paper import PaperSummary


class PipelineStage(StrEnum):
    """Pipeline states in strict forward order, plus the absorbing ERROR."""

    IDLE = "IDLE"
    VALIDATING = "VALIDATING"
    PARSING = "PARSING"
    MAPPING = "MAPPING"
    FORMATTING = "FORMATTING"
    VERIFYING = "VERIFYING"
    PACKAGING = "PACKAGING"
    DONE = "DONE"
    ERROR = "ERROR"


# Stages a successful run passes through, in order
WORKING_STAGES: tuple[PipelineStage, ...] = (
    PipelineStage.VALIDATING,
    PipelineStage.PARSING,
    PipelineStage.MAPPING,
    PipelineStage.FORMATTING,
    PipelineStage.VERIFYING,
    PipelineStage.PACKAGING,
)

TERMINAL_STAGES: frozenset[PipelineStage] = frozenset(
    {PipelineStage.DONE, PipelineStage.ERROR}
)


class ErrorKind(StrEnum):
    """Stable error codes for the pipeline error taxonomy."""

    DOCUMENT_PROTECTED = "DOCX_PROTECTED"
    DOCUMENT_CORRUPT = "DOCX_CORRUPT"
    INSUFFICIENT_STRUCTURE = "DOCX_MIN_STRUCTURE"
    TRACKED_CHANGES_PRESENT = "DOCX_TRACKED_CHANGES"
    CONTENT_MISMATCH = "TRANSFORM_CONTENT_MISMATCH"
    TRANSFORMATION_FAILED = "TRANSFORM_FAILED"
    STAGE_TIMEOUT = "STAGE_TIMEOUT"


class ErrorRecord(BaseModel):
    """User-facing description of why a run stopped."""

    kind: ErrorKind
    stage: PipelineStage
    message: str
    retryable: bool = False
    diagnostics: list[str] = Field(default_factory=list)

    model_config = ConfigDict(frozen=True)


class StyleMapping(BaseModel):
    original_style: str
    mapped_style: str

    model_config = ConfigDict(frozen=True)


class CitationEntry(BaseModel):
    original_citation_text: str
    assigned_numeric_index: int = Field(..., ge=1)

    model_config = ConfigDict(frozen=True)


class Manifest(BaseModel):
    """Audit record of a successful run. Immutable once built."""

    original_file_checksum: str
    output_file_checksum: str
    styles_mapped: tuple[StyleMapping, ...]
    citation_map: tuple[CitationEntry, ...]
    errors: tuple[ErrorRecord, ...] = ()
    timestamp: datetime

    model_config = ConfigDict(frozen=True)


class PipelineEvent(BaseModel):
    """One observable stage transition of a run.

    The `to_sse` helper renders the Server-Sent Events wire format used by the
    streaming endpoint. Terminal helpers produce standardized final events.
    """

    run_id: str = Field(..., description="Identifier of the run that emitted it")
    stage: PipelineStage
    status: Literal["started", "complete", "error"]
    progress: float = Field(..., ge=0.0, le=1.0)
    detail: str | None = None
    error_code: ErrorKind | None = None
    success: bool | None = None

    def to_sse(self) -> str:
        return f"data: {self.model_dump_json()}\n\n"

    @classmethod
    def terminal_success(cls, run_id: str) -> "PipelineEvent":
        return cls(
            run_id=run_id,
            stage=PipelineStage.DONE,
            status="complete",
            progress=1.0,
            detail="Transformation complete",
            success=True,
        )

    @classmethod
    def terminal_error(cls, run_id: str, error: ErrorRecord) -> "PipelineEvent":
        return cls(
            run_id=run_id,
            stage=PipelineStage.ERROR,
            status="error",
            progress=1.0,
            detail=error.message,
            error_code=error.kind,
            success=False,
        )


class RunStatus(BaseModel):
    """API view of a session's current run."""

    session_id: str
    run_id: str
    stage: PipelineStage
    filename: str | None = None
    history: list[PipelineStage] = Field(default_factory=list)
    summary: PaperSummary | None = None
    manifest: Manifest | None = None
    error: ErrorRecord | None = None
    output_filename: str | None = None
    started_at: datetime | None = None
    finished_at: datetime | None = None
