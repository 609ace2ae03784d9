"""Document transformation endpoints (.docx -> IEEE two-column .docx)."""

from __future__ import annotations

import logging
from collections.abc import AsyncGenerator
from typing import Annotated

from fastapi import APIRouter, File, UploadFile, status
from fastapi.responses import Response, StreamingResponse

from core.exceptions import OutputNotReadyError
from dependencies.pipeline import ControllerDep, SessionStoreDep
from schemas.api import ApiResponse
from schemas.pipeline import PipelineEvent, PipelineStage, RunStatus
from services.pipeline.models import PipelineRun, RawDocument


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/pipeline", tags=["pipeline"])

DOCX_MEDIA_TYPE = (
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document"
)
RESET_BEFORE_COMPLETION = "Run was reset before completion"

UploadDep = Annotated[UploadFile, File(description="The .docx paper to transform")]


def build_run_status(session_id: str, run: PipelineRun) -> RunStatus:
    return RunStatus(
        session_id=session_id,
        run_id=run.run_id,
        stage=run.stage,
        filename=run.filename,
        history=list(run.history),
        summary=run.summary,
        manifest=run.manifest,
        error=run.error,
        output_filename=run.output_filename,
        started_at=run.started_at,
        finished_at=run.finished_at,
    )


async def _read_upload(file: UploadFile) -> RawDocument:
    content = await file.read()
    return RawDocument(filename=file.filename or "", content=content)


@router.post(
    "/sessions",
    response_model=ApiResponse[RunStatus],
    status_code=status.HTTP_201_CREATED,
)
def create_session(store: SessionStoreDep) -> ApiResponse[RunStatus]:
    """Open a new session with an idle pipeline."""
    session_id = store.create()
    return ApiResponse(
        success=True,
        data=build_run_status(session_id, store.get(session_id).run),
        message="Session created",
    )


@router.get("/sessions/{session_id}", response_model=ApiResponse[RunStatus])
def get_session_status(session_id: str, controller: ControllerDep) -> ApiResponse[RunStatus]:
    return ApiResponse(
        success=True,
        data=build_run_status(session_id, controller.run),
        message="Session status",
    )


@router.post("/sessions/{session_id}/runs", response_model=ApiResponse[RunStatus])
async def run_transformation(
    session_id: str, controller: ControllerDep, file: UploadDep
) -> ApiResponse[RunStatus]:
    """Run the uploaded document through every stage and return the outcome.

    A run that stops in the ERROR stage is still a successful request: the
    returned status carries the error kind and user-facing message. A run
    discarded by a concurrent reset is reported as not completed.
    """
    document = await _read_upload(file)
    run = await controller.run_document(document)
    if run.stage is PipelineStage.DONE:
        message = "Transformation complete"
    elif run.error is not None:
        message = run.error.message
    else:
        message = RESET_BEFORE_COMPLETION
    return ApiResponse(
        success=run.stage is PipelineStage.DONE,
        data=build_run_status(session_id, run),
        message=message,
    )


@router.post("/sessions/{session_id}/runs/stream")
async def stream_transformation(
    session_id: str, controller: ControllerDep, file: UploadDep
) -> StreamingResponse:
    """Run the uploaded document and stream stage transitions as SSE.

    Event JSON schema (sent in `data:` lines):
      run_id: identifier of the run
      stage: VALIDATING|PARSING|MAPPING|FORMATTING|VERIFYING|PACKAGING|DONE|ERROR
      status: started|complete|error
      progress: coarse float 0.0-1.0
      detail: human-readable message (the error message on failure)
      error_code: taxonomy code, only on error
      success: boolean only in the final event
    """
    document = await _read_upload(file)
    # Preconditions raise here, before the response starts
    events = controller.stream(document)

    async def event_source(
        stream: AsyncGenerator[PipelineEvent, None],
    ) -> AsyncGenerator[str, None]:
        async for event in stream:
            yield event.to_sse()

    return StreamingResponse(
        event_source(events),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
    )


@router.get(
    "/sessions/{session_id}/output",
    response_class=Response,
    responses={200: {"content": {DOCX_MEDIA_TYPE: {}}}},
)
def download_output(session_id: str, controller: ControllerDep) -> Response:
    run = controller.run
    output = run.output
    if output is None or run.output_filename is None:
        raise OutputNotReadyError(f"Session is in stage {run.stage.value}")
    return Response(
        content=output,
        media_type=DOCX_MEDIA_TYPE,
        headers={
            "Content-Disposition": f'attachment; filename="{run.output_filename}"'
        },
    )


@router.post("/sessions/{session_id}/reset", response_model=ApiResponse[RunStatus])
def reset_session(session_id: str, controller: ControllerDep) -> ApiResponse[RunStatus]:
    run = controller.reset()
    return ApiResponse(
        success=True,
        data=build_run_status(session_id, run),
        message="Session reset",
    )


@router.delete("/sessions/{session_id}", response_model=ApiResponse[None])
def delete_session(session_id: str, store: SessionStoreDep) -> ApiResponse[None]:
    store.discard(session_id)
    return ApiResponse(success=True, data=None, message="Session deleted")
