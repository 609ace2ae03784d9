"""Run-scoped records owned by the pipeline controller."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from uuid import uuid4

from schemas.paper import PaperSummary, StructuredPaper
from schemas.pipeline import TERMINAL_STAGES, ErrorRecord, Manifest, PipelineStage


@dataclass(frozen=True, slots=True)
class RawDocument:
    """Uploaded file: name plus opaque bytes."""

    filename: str
    content: bytes


@dataclass(slots=True)
class PipelineRun:
    """Mutable state of one transformation run.

    Owned exclusively by a `PipelineController`. A reset replaces the whole
    record, so nothing produced by an earlier run is reachable from the new
    one.
    """

    run_id: str = field(default_factory=lambda: uuid4().hex)
    stage: PipelineStage = PipelineStage.IDLE
    document: RawDocument | None = None
    history: list[PipelineStage] = field(default_factory=list)
    extracted_text: str | None = None
    paper: StructuredPaper | None = None
    summary: PaperSummary | None = None
    rendered: bytes | None = None
    output_filename: str | None = None
    manifest: Manifest | None = None
    error: ErrorRecord | None = None
    started_at: datetime | None = None
    finished_at: datetime | None = None

    @property
    def filename(self) -> str | None:
        return self.document.filename if self.document else None

    @property
    def is_active(self) -> bool:
        return (
            self.stage is not PipelineStage.IDLE
            and self.stage not in TERMINAL_STAGES
        )

    @property
    def output(self) -> bytes | None:
        """Rendered bytes, exposed only once the run is Done."""
        if self.stage is PipelineStage.DONE:
            return self.rendered
        return None
