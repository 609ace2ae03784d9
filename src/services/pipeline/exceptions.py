"""Domain exceptions for the document transformation pipeline.

Every stage failure is converted at the controller boundary into one of the
`PipelineError` subclasses below. Each carries a stable `error_code`
(an `ErrorKind`) and the user-facing message shown when a run stops; raw
fault details only go to the logs.

`Unreadable` and `ServiceError` are raised by the collaborators themselves
(text extractor, structure inference service) and are translated by the
controller.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from schemas.pipeline import ErrorKind


ERROR_MESSAGES: dict[ErrorKind, str] = {
    ErrorKind.TRACKED_CHANGES_PRESENT: (
        "The uploaded document contains tracked changes or comments. "
        "Please accept changes and remove comments, then re-upload."
    ),
    ErrorKind.DOCUMENT_PROTECTED: (
        "The uploaded document is password-protected. "
        "Remove protection and re-upload."
    ),
    ErrorKind.INSUFFICIENT_STRUCTURE: (
        "Document lacks necessary structure (Title or Abstract missing). "
        "Please ensure Title and Abstract are present."
    ),
    ErrorKind.CONTENT_MISMATCH: (
        "Post-transformation content mismatch detected. "
        "Transformation aborted. See manifest for diagnostics."
    ),
    ErrorKind.DOCUMENT_CORRUPT: "Uploaded .docx appears corrupted or unreadable.",
    ErrorKind.TRANSFORMATION_FAILED: (
        "Transformation failed. "
        "Ensure your file is a valid .docx with Title and Abstract."
    ),
    ErrorKind.STAGE_TIMEOUT: (
        "The {stage} step took too long to complete. Please try again."
    ),
}


@dataclass(slots=True)
class PipelineError(Exception):
    """Base class for pipeline taxonomy errors."""

    message: str
    error_code: ErrorKind
    retryable: bool = False
    diagnostics: list[str] = field(default_factory=list)

    def __str__(self) -> str:  # pragma: no cover - trivial
        return f"{self.error_code}: {self.message}"


class DocumentProtected(PipelineError):
    def __init__(self, message: str | None = None) -> None:
        super().__init__(
            message=message or ERROR_MESSAGES[ErrorKind.DOCUMENT_PROTECTED],
            error_code=ErrorKind.DOCUMENT_PROTECTED,
        )


class DocumentCorrupt(PipelineError):
    def __init__(self, message: str | None = None) -> None:
        super().__init__(
            message=message or ERROR_MESSAGES[ErrorKind.DOCUMENT_CORRUPT],
            error_code=ErrorKind.DOCUMENT_CORRUPT,
        )


class InsufficientStructure(PipelineError):
    def __init__(self, message: str | None = None) -> None:
        super().__init__(
            message=message or ERROR_MESSAGES[ErrorKind.INSUFFICIENT_STRUCTURE],
            error_code=ErrorKind.INSUFFICIENT_STRUCTURE,
        )


class TrackedChangesPresent(PipelineError):
    def __init__(self, message: str | None = None) -> None:
        super().__init__(
            message=message or ERROR_MESSAGES[ErrorKind.TRACKED_CHANGES_PRESENT],
            error_code=ErrorKind.TRACKED_CHANGES_PRESENT,
        )


class ContentMismatch(PipelineError):
    def __init__(
        self, missing: list[str] | None = None, message: str | None = None
    ) -> None:
        super().__init__(
            message=message or ERROR_MESSAGES[ErrorKind.CONTENT_MISMATCH],
            error_code=ErrorKind.CONTENT_MISMATCH,
            diagnostics=list(missing or []),
        )


class TransformationFailed(PipelineError):
    def __init__(self, message: str | None = None) -> None:
        super().__init__(
            message=message or ERROR_MESSAGES[ErrorKind.TRANSFORMATION_FAILED],
            error_code=ErrorKind.TRANSFORMATION_FAILED,
        )


class StageTimeout(PipelineError):
    def __init__(self, stage: str) -> None:
        super().__init__(
            message=ERROR_MESSAGES[ErrorKind.STAGE_TIMEOUT].format(
                stage=stage.lower()
            ),
            error_code=ErrorKind.STAGE_TIMEOUT,
            retryable=True,
        )


class Unreadable(Exception):
    """Raised by the text extractor when the bytes are not a readable document."""


class ServiceError(Exception):
    """Raised by the structure inference service on transport or model faults."""
