"""Unit tests for the pipeline error taxonomy."""

from __future__ import annotations

import pytest

from schemas.pipeline import ErrorKind
from services.pipeline.exceptions import (
    ERROR_MESSAGES,
    ContentMismatch,
    DocumentCorrupt,
    DocumentProtected,
    InsufficientStructure,
    PipelineError,
    StageTimeout,
    TrackedChangesPresent,
    TransformationFailed,
)


@pytest.mark.parametrize(
    ("exc_type", "code"),
    [
        (DocumentProtected, "DOCX_PROTECTED"),
        (DocumentCorrupt, "DOCX_CORRUPT"),
        (InsufficientStructure, "DOCX_MIN_STRUCTURE"),
        (TrackedChangesPresent, "DOCX_TRACKED_CHANGES"),
        (TransformationFailed, "TRANSFORM_FAILED"),
    ],
)
def test_error_codes_and_default_messages(exc_type, code):
    exc = exc_type()
    assert isinstance(exc, PipelineError)
    assert exc.error_code == code
    assert exc.message == ERROR_MESSAGES[ErrorKind(code)]
    assert exc.retryable is False
    assert exc.diagnostics == []


def test_protected_message_text():
    assert DocumentProtected().message == (
        "The uploaded document is password-protected. "
        "Remove protection and re-upload."
    )


def test_custom_message_overrides_default():
    exc = TransformationFailed("Interrupted")
    assert exc.message == "Interrupted"
    assert exc.error_code == ErrorKind.TRANSFORMATION_FAILED


def test_content_mismatch_carries_diagnostics():
    exc = ContentMismatch(["title: Missing", "reference 2: Foo"])
    assert exc.error_code == ErrorKind.CONTENT_MISMATCH
    assert exc.diagnostics == ["title: Missing", "reference 2: Foo"]
    assert "content mismatch" in exc.message


def test_stage_timeout_is_retryable_and_names_stage():
    exc = StageTimeout("MAPPING")
    assert exc.retryable is True
    assert exc.error_code == ErrorKind.STAGE_TIMEOUT
    assert exc.message == "The mapping step took too long to complete. Please try again."


def test_pipeline_error_is_raisable():
    with pytest.raises(PipelineError) as info:
        raise DocumentCorrupt()
    assert info.value.error_code == "DOCX_CORRUPT"
