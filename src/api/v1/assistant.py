"""Research-paper assistant endpoint."""

from __future__ import annotations

import base64
import binascii

from fastapi import APIRouter, HTTPException, status

from dependencies.pipeline import AssistantDep
from schemas.api import ApiResponse
from schemas.assistant import AssistantQueryRequest, AssistantReply


router = APIRouter(prefix="/assistant", tags=["assistant"])


@router.post("/query", response_model=ApiResponse[AssistantReply])
async def query_assistant(
    request: AssistantQueryRequest, assistant: AssistantDep
) -> ApiResponse[AssistantReply]:
    image: bytes | None = None
    if request.image_base64:
        try:
            image = base64.b64decode(request.image_base64, validate=True)
        except (binascii.Error, ValueError) as exc:
            raise HTTPException(
                status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
                detail="image_base64 is not valid base64",
            ) from exc

    reply = await assistant.query(
        request.query,
        mode=request.mode,
        image=image,
        mime_type=request.image_mime_type,
        image_size=request.image_size,
    )
    return ApiResponse(success=True, data=reply, message="Assistant reply")
