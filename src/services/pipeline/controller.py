"""Transformation pipeline controller.

Drives one run at a time through the fixed stage sequence

    IDLE -> VALIDATING -> PARSING -> MAPPING -> FORMATTING -> VERIFYING
         -> PACKAGING -> DONE

with ERROR reachable from every working stage. Each transition is emitted as
a `PipelineEvent`. Collaborators are injected through the protocols in
`services.pipeline.interfaces`; the defaults below wrap python-docx and the
pydantic-ai structure agent.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncGenerator, Awaitable, Callable
from datetime import UTC, datetime
from typing import TypeVar

from core.config import Settings, get_settings
from core.exceptions import PipelineBusyError, UnsupportedDocumentError
from schemas.paper import StructuredPaper
from schemas.pipeline import ErrorRecord, PipelineEvent, PipelineStage
from services.pipeline.docx_reader import extract_text, inspect_document, is_docx_filename
from services.pipeline.exceptions import (
    ContentMismatch,
    DocumentCorrupt,
    InsufficientStructure,
    PipelineError,
    ServiceError,
    StageTimeout,
    TransformationFailed,
    Unreadable,
)
from services.pipeline.interfaces import (
    ContentVerifierProtocol,
    DocumentInspectorProtocol,
    DocumentRendererProtocol,
    StructureInferenceProtocol,
    TextExtractorProtocol,
)
from services.pipeline.manifest import build_manifest
from services.pipeline.models import PipelineRun, RawDocument
from services.pipeline.renderer import render_ieee_document
from services.pipeline.validation import build_summary, normalize_paper, output_filename
from services.pipeline.verifier import find_missing_fragments


logger = logging.getLogger(__name__)

T = TypeVar("T")

STAGE_DETAILS: dict[PipelineStage, str] = {
    PipelineStage.VALIDATING: "Checking document policy",
    PipelineStage.PARSING: "Extracting document text",
    PipelineStage.MAPPING: "Identifying paper structure",
    PipelineStage.FORMATTING: "Applying IEEE layout",
    PipelineStage.VERIFYING: "Verifying transformed content",
    PipelineStage.PACKAGING: "Building manifest",
}


class DocxInspectorAdapter(DocumentInspectorProtocol):
    """Adapter running `inspect_document` in a worker thread."""

    async def inspect(self, filename: str, data: bytes) -> None:
        await asyncio.to_thread(inspect_document, filename, data)


class DocxTextExtractorAdapter(TextExtractorProtocol):
    """Adapter running `extract_text` in a worker thread."""

    async def extract_text(self, data: bytes) -> str:
        return await asyncio.to_thread(extract_text, data)


class AgentStructureInference(StructureInferenceProtocol):
    """Adapter over the pydantic-ai structure agent."""

    def __init__(self, agent=None) -> None:
        # Lazy init avoids requiring model credentials until the first run
        self._agent = agent

    async def infer_structure(self, text: str) -> StructuredPaper | None:
        from services.ai.agents import create_structure_agent, run_structure_agent

        if self._agent is None:
            try:
                self._agent = create_structure_agent()
            except ValueError as exc:
                raise ServiceError(str(exc)) from exc
        return await run_structure_agent(text, self._agent)


class DocxRendererAdapter(DocumentRendererProtocol):
    """Adapter running `render_ieee_document` in a worker thread."""

    async def render(self, paper: StructuredPaper) -> bytes:
        return await asyncio.to_thread(render_ieee_document, paper)


class RenderedContentVerifier(ContentVerifierProtocol):
    """Adapter running `find_missing_fragments` in a worker thread."""

    async def verify(self, paper: StructuredPaper, rendered: bytes) -> list[str]:
        return await asyncio.to_thread(find_missing_fragments, paper, rendered)


class _StaleRun(Exception):
    """The run was replaced by a reset while a stage was suspended."""


class PipelineController:
    """Fail-fast state machine owning exactly one `PipelineRun`.

    Accepts optional protocol implementations to make testing and DI easier.
    """

    def __init__(
        self,
        inspector: DocumentInspectorProtocol | None = None,
        extractor: TextExtractorProtocol | None = None,
        inference: StructureInferenceProtocol | None = None,
        renderer: DocumentRendererProtocol | None = None,
        verifier: ContentVerifierProtocol | None = None,
        settings: Settings | None = None,
    ) -> None:
        self._inspector = inspector or DocxInspectorAdapter()
        self._extractor = extractor or DocxTextExtractorAdapter()
        self._inference = inference or AgentStructureInference()
        self._renderer = renderer or DocxRendererAdapter()
        self._verifier = verifier or RenderedContentVerifier()
        self._settings = settings or get_settings()
        self._run = PipelineRun()

    @property
    def run(self) -> PipelineRun:
        return self._run

    @property
    def stage(self) -> PipelineStage:
        return self._run.stage

    def reset(self) -> PipelineRun:
        """Discard the current run, in flight or finished, and return to IDLE.

        Results of a suspended stage belonging to the discarded run are
        dropped when it resumes.
        """
        previous = self._run
        self._run = PipelineRun()
        logger.info(
            "Pipeline reset",
            extra={"previous_run_id": previous.run_id, "previous_stage": previous.stage},
        )
        return self._run

    def start(self, document: RawDocument) -> PipelineRun:
        """Check preconditions and claim the current run for `document`.

        Raises `UnsupportedDocumentError` for non-.docx names and
        `PipelineBusyError` unless the controller is idle. Neither changes
        any state. On success the run enters VALIDATING immediately, so a
        second start is rejected even before the first stream is iterated.
        """
        if not is_docx_filename(document.filename):
            raise UnsupportedDocumentError(
                f"{document.filename or 'upload'} is not a .docx file"
            )
        if self._run.stage is not PipelineStage.IDLE:
            raise PipelineBusyError(f"Current run is {self._run.stage.value}")
        run = self._run
        run.document = document
        run.started_at = datetime.now(UTC)
        run.stage = PipelineStage.VALIDATING
        run.history.append(PipelineStage.VALIDATING)
        return run

    def stream(self, document: RawDocument) -> AsyncGenerator[PipelineEvent, None]:
        """Start a run and return its event stream.

        Preconditions are checked eagerly so callers can map them to HTTP
        errors before any event is sent.
        """
        run = self.start(document)
        return self._execute(run)

    async def run_document(self, document: RawDocument) -> PipelineRun:
        """Run `document` to a terminal stage and return the run record."""
        run = self.start(document)
        async for _event in self._execute(run):
            pass
        return run

    def _is_current(self, run: PipelineRun) -> bool:
        return self._run is run

    def _ensure_current(self, run: PipelineRun) -> None:
        if not self._is_current(run):
            raise _StaleRun()

    async def _bounded(self, stage: PipelineStage, call: Awaitable[T]) -> T:
        try:
            return await asyncio.wait_for(call, timeout=self._settings.stage_timeout)
        except TimeoutError as exc:
            raise StageTimeout(stage.value) from exc

    async def _execute(self, run: PipelineRun) -> AsyncGenerator[PipelineEvent, None]:
        steps: tuple[tuple[PipelineStage, Callable[[PipelineRun], Awaitable[None]]], ...] = (
            (PipelineStage.VALIDATING, self._validate),
            (PipelineStage.PARSING, self._parse),
            (PipelineStage.MAPPING, self._map),
            (PipelineStage.FORMATTING, self._format),
            (PipelineStage.VERIFYING, self._verify),
            (PipelineStage.PACKAGING, self._package),
        )
        logger.info(
            "Pipeline run started",
            extra={"run_id": run.run_id, "source_filename": run.filename},
        )
        try:
            for position, (stage, step) in enumerate(steps):
                if not self._is_current(run):
                    return
                if run.stage is not stage:
                    run.stage = stage
                    run.history.append(stage)
                yield PipelineEvent(
                    run_id=run.run_id,
                    stage=stage,
                    status="started",
                    progress=round(position / len(steps), 3),
                    detail=STAGE_DETAILS[stage],
                )
                try:
                    await step(run)
                    self._ensure_current(run)
                except _StaleRun:
                    logger.info(
                        "Dropping result of discarded run",
                        extra={"run_id": run.run_id, "stage": stage},
                    )
                    return
                except PipelineError as exc:
                    if not self._is_current(run):
                        return
                    self._fail(run, stage, exc)
                    yield PipelineEvent.terminal_error(run.run_id, run.error)
                    return
                except Exception as exc:
                    if not self._is_current(run):
                        return
                    logger.exception(
                        "Unclassified failure during %s",
                        stage.value,
                        extra={"run_id": run.run_id, "error_type": type(exc).__name__},
                    )
                    self._fail(run, stage, TransformationFailed())
                    yield PipelineEvent.terminal_error(run.run_id, run.error)
                    return

            run.stage = PipelineStage.DONE
            run.history.append(PipelineStage.DONE)
            run.finished_at = datetime.now(UTC)
            logger.info(
                "Pipeline run complete",
                extra={"run_id": run.run_id, "output_filename": run.output_filename},
            )
            yield PipelineEvent.terminal_success(run.run_id)
        finally:
            # A consumer that stops iterating early must not leave the
            # session stuck in a working stage
            if self._is_current(run) and run.is_active:
                self._fail(
                    run,
                    run.stage,
                    TransformationFailed(
                        "Transformation was interrupted before completion."
                    ),
                )

    def _fail(self, run: PipelineRun, stage: PipelineStage, exc: PipelineError) -> None:
        run.error = ErrorRecord(
            kind=exc.error_code,
            stage=stage,
            message=exc.message,
            retryable=exc.retryable,
            diagnostics=list(exc.diagnostics),
        )
        run.stage = PipelineStage.ERROR
        run.history.append(PipelineStage.ERROR)
        run.rendered = None
        run.manifest = None
        run.output_filename = None
        run.finished_at = datetime.now(UTC)
        logger.warning(
            "Pipeline run failed",
            extra={
                "run_id": run.run_id,
                "stage": stage,
                "error_code": exc.error_code,
                "diagnostics": exc.diagnostics,
            },
        )

    @staticmethod
    def _require(value: T | None, what: str) -> T:
        """Return a value an earlier stage must have produced."""
        if value is None:
            logger.error("Pipeline run is missing its %s", what)
            raise TransformationFailed()
        return value

    async def _validate(self, run: PipelineRun) -> None:
        document = self._require(run.document, "document")
        await self._bounded(
            PipelineStage.VALIDATING,
            self._inspector.inspect(document.filename, document.content),
        )

    async def _parse(self, run: PipelineRun) -> None:
        document = self._require(run.document, "document")
        try:
            text = await self._bounded(
                PipelineStage.PARSING,
                self._extractor.extract_text(document.content),
            )
        except Unreadable as exc:
            self._ensure_current(run)
            logger.warning("Text extraction failed: %s", exc, extra={"run_id": run.run_id})
            raise DocumentCorrupt() from exc
        self._ensure_current(run)

        trimmed = text.strip()
        if len(trimmed) < self._settings.PIPELINE_MIN_TEXT_LENGTH:
            raise InsufficientStructure()
        run.extracted_text = trimmed

    async def _map(self, run: PipelineRun) -> None:
        document = self._require(run.document, "document")
        text = self._require(run.extracted_text, "extracted text")
        try:
            inferred = await self._bounded(
                PipelineStage.MAPPING,
                self._inference.infer_structure(text),
            )
        except ServiceError as exc:
            self._ensure_current(run)
            logger.warning(
                "Structure inference failed: %s", exc, extra={"run_id": run.run_id}
            )
            raise TransformationFailed() from exc
        self._ensure_current(run)

        paper = normalize_paper(inferred, document.filename)
        run.paper = paper
        run.summary = build_summary(paper, text, document.filename)

    async def _format(self, run: PipelineRun) -> None:
        paper = self._require(run.paper, "structured paper")
        rendered = await self._bounded(
            PipelineStage.FORMATTING, self._renderer.render(paper)
        )
        self._ensure_current(run)
        run.rendered = rendered

    async def _verify(self, run: PipelineRun) -> None:
        paper = self._require(run.paper, "structured paper")
        rendered = self._require(run.rendered, "rendered document")
        if not self._settings.PIPELINE_VERIFY_OUTPUT:
            return
        missing = await self._bounded(
            PipelineStage.VERIFYING, self._verifier.verify(paper, rendered)
        )
        self._ensure_current(run)
        if missing:
            raise ContentMismatch(missing)

    async def _package(self, run: PipelineRun) -> None:
        document = self._require(run.document, "document")
        paper = self._require(run.paper, "structured paper")
        rendered = self._require(run.rendered, "rendered document")
        run.manifest = build_manifest(
            paper,
            document.content,
            rendered,
            preview_chars=self._settings.CITATION_PREVIEW_CHARS,
        )
        run.output_filename = output_filename(
            document.filename, self._settings.OUTPUT_FILENAME_SUFFIX
        )
