"""Pipeline session and assistant dependencies.

The session store lives for the process; one store is shared by all
requests so a client can upload, poll and download against the same
session id.
"""

from __future__ import annotations

from functools import lru_cache
from typing import Annotated

from fastapi import Depends

from services.assistant import AssistantService, get_assistant_service
from services.pipeline.controller import PipelineController
from services.pipeline.sessions import PipelineSessionStore


@lru_cache
def get_session_store() -> PipelineSessionStore:
    return PipelineSessionStore()


SessionStoreDep = Annotated[PipelineSessionStore, Depends(get_session_store)]
AssistantDep = Annotated[AssistantService, Depends(get_assistant_service)]


def get_controller(session_id: str, store: SessionStoreDep) -> PipelineController:
    """Resolve the path's session id; unknown ids raise `SessionNotFoundError`."""
    return store.get(session_id)


ControllerDep = Annotated[PipelineController, Depends(get_controller)]
