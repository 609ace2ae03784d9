"""In-memory registry of pipeline sessions (one controller per session)."""

from __future__ import annotations

import logging
from collections.abc import Callable
from uuid import uuid4

from core.exceptions import SessionNotFoundError
from services.pipeline.controller import PipelineController


logger = logging.getLogger(__name__)


class PipelineSessionStore:
    """Process-local mapping of session id -> `PipelineController`."""

    def __init__(
        self, controller_factory: Callable[[], PipelineController] | None = None
    ) -> None:
        self._factory = controller_factory or PipelineController
        self._sessions: dict[str, PipelineController] = {}

    def __len__(self) -> int:
        return len(self._sessions)

    def __contains__(self, session_id: object) -> bool:
        return session_id in self._sessions

    def create(self) -> str:
        session_id = uuid4().hex
        self._sessions[session_id] = self._factory()
        logger.info("Pipeline session created", extra={"session_id": session_id})
        return session_id

    def get(self, session_id: str) -> PipelineController:
        try:
            return self._sessions[session_id]
        except KeyError:
            raise SessionNotFoundError(f"Unknown session {session_id}") from None

    def discard(self, session_id: str) -> None:
        """Drop a session; its in-flight run, if any, is reset first."""
        controller = self.get(session_id)
        controller.reset()
        del self._sessions[session_id]
        logger.info("Pipeline session discarded", extra={"session_id": session_id})
