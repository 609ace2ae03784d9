"""Collaborator interfaces for the transformation pipeline.

These protocols let the controller receive its collaborators by dependency
injection, so tests can substitute fakes without patching module globals.
All stage calls are awaitable; implementations wrapping blocking libraries
are expected to offload the work to a thread.
"""

from __future__ import annotations

from typing import Protocol

from schemas.paper import StructuredPaper


class DocumentInspectorProtocol(Protocol):
    """Pre-parse policy checks (protection, unresolved revisions)."""

    async def inspect(self, filename: str, data: bytes) -> None:
        """Raise a pipeline taxonomy error when the document breaks policy."""
        ...


class TextExtractorProtocol(Protocol):
    """Plain-text extraction from raw document bytes."""

    async def extract_text(self, data: bytes) -> str:
        """Return the document text or raise `Unreadable`."""
        ...


class StructureInferenceProtocol(Protocol):
    """Structural segmentation of plain text into a paper."""

    async def infer_structure(self, text: str) -> StructuredPaper | None:
        """Return the segmented paper; None when the response was unusable.

        Raises `ServiceError` on transport or model faults.
        """
        ...


class DocumentRendererProtocol(Protocol):
    """IEEE layout of a structured paper."""

    async def render(self, paper: StructuredPaper) -> bytes:
        """Return the rendered document bytes."""
        ...


class ContentVerifierProtocol(Protocol):
    """Post-render verification policy."""

    async def verify(self, paper: StructuredPaper, rendered: bytes) -> list[str]:
        """Return diagnostics for content missing from the output (empty = ok)."""
        ...
