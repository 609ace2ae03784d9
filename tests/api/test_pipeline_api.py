"""HTTP contract tests for the pipeline session endpoints."""

from __future__ import annotations

import asyncio
import io
import json

import pytest
from docx import Document
from fastapi import status
from fastapi.testclient import TestClient
from httpx import ASGITransport, AsyncClient

from core.config import Settings
from dependencies.pipeline import get_session_store
from main import app
from schemas.paper import StructuredPaper
from services.pipeline.controller import PipelineController
from services.pipeline.sessions import PipelineSessionStore
from tests.fixtures.documents import build_docx, build_protected_docx
from tests.fixtures.fakes import BlockingInference


DOCX_MEDIA_TYPE = (
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document"
)


def _upload(filename: str = "paper.docx", content: bytes | None = None) -> dict:
    if content is None:
        content = build_docx()
    return {"file": (filename, content, DOCX_MEDIA_TYPE)}


def _create_session(client: TestClient) -> str:
    response = client.post("/api/v1/pipeline/sessions")
    assert response.status_code == status.HTTP_201_CREATED
    return response.json()["data"]["session_id"]


def _sse_events(body: str) -> list[dict]:
    return [json.loads(line[6:]) for line in body.split("\n") if line.startswith("data: ")]


def test_create_session_starts_idle(client: TestClient):
    response = client.post("/api/v1/pipeline/sessions")
    body = response.json()
    assert response.status_code == status.HTTP_201_CREATED
    assert body["success"] is True
    assert body["data"]["stage"] == "IDLE"
    assert body["data"]["history"] == []


def test_run_to_completion_and_download(client: TestClient):
    session_id = _create_session(client)

    response = client.post(
        f"/api/v1/pipeline/sessions/{session_id}/runs", files=_upload("My Paper.docx")
    )
    assert response.status_code == status.HTTP_200_OK
    body = response.json()
    assert body["success"] is True
    data = body["data"]
    assert data["stage"] == "DONE"
    assert data["history"] == [
        "VALIDATING",
        "PARSING",
        "MAPPING",
        "FORMATTING",
        "VERIFYING",
        "PACKAGING",
        "DONE",
    ]
    assert data["output_filename"] == "My Paper_IEEE.docx"
    assert data["summary"]["filename"] == "My Paper.docx"
    manifest = data["manifest"]
    assert len(manifest["styles_mapped"]) == 3
    assert [c["assigned_numeric_index"] for c in manifest["citation_map"]] == [1, 2]

    download = client.get(f"/api/v1/pipeline/sessions/{session_id}/output")
    assert download.status_code == status.HTTP_200_OK
    assert download.headers["content-type"] == DOCX_MEDIA_TYPE
    assert 'filename="My Paper_IEEE.docx"' in download.headers["content-disposition"]
    document = Document(io.BytesIO(download.content))
    assert any("REFERENCES" in p.text for p in document.paragraphs)


def test_failed_run_is_not_an_http_error(client: TestClient):
    session_id = _create_session(client)
    response = client.post(
        f"/api/v1/pipeline/sessions/{session_id}/runs",
        files=_upload(content=build_protected_docx()),
    )
    assert response.status_code == status.HTTP_200_OK
    body = response.json()
    assert body["success"] is False
    assert body["data"]["stage"] == "ERROR"
    assert body["data"]["error"]["kind"] == "DOCX_PROTECTED"
    assert body["data"]["manifest"] is None
    assert body["message"] == (
        "The uploaded document is password-protected. Remove protection and re-upload."
    )


def test_output_unavailable_until_done(client: TestClient):
    session_id = _create_session(client)
    response = client.get(f"/api/v1/pipeline/sessions/{session_id}/output")
    assert response.status_code == status.HTTP_409_CONFLICT
    assert response.json()["success"] is False

    client.post(
        f"/api/v1/pipeline/sessions/{session_id}/runs",
        files=_upload(content=b"not a docx at all"),
    )
    response = client.get(f"/api/v1/pipeline/sessions/{session_id}/output")
    assert response.status_code == status.HTTP_409_CONFLICT


def test_non_docx_upload_is_unsupported(client: TestClient):
    session_id = _create_session(client)
    response = client.post(
        f"/api/v1/pipeline/sessions/{session_id}/runs",
        files={"file": ("paper.pdf", b"%PDF-1.7", "application/pdf")},
    )
    assert response.status_code == status.HTTP_415_UNSUPPORTED_MEDIA_TYPE
    body = response.json()
    assert body["success"] is False
    assert body["error"]["type"] == "domain_error"
    assert "correlation_id" in body["error"]

    status_response = client.get(f"/api/v1/pipeline/sessions/{session_id}")
    assert status_response.json()["data"]["stage"] == "IDLE"


def test_second_run_requires_reset(client: TestClient):
    session_id = _create_session(client)
    client.post(f"/api/v1/pipeline/sessions/{session_id}/runs", files=_upload())

    busy = client.post(f"/api/v1/pipeline/sessions/{session_id}/runs", files=_upload())
    assert busy.status_code == status.HTTP_409_CONFLICT

    reset = client.post(f"/api/v1/pipeline/sessions/{session_id}/reset")
    assert reset.status_code == status.HTTP_200_OK
    assert reset.json()["data"]["stage"] == "IDLE"
    assert reset.json()["data"]["manifest"] is None

    again = client.post(f"/api/v1/pipeline/sessions/{session_id}/runs", files=_upload())
    assert again.json()["data"]["stage"] == "DONE"


def test_unknown_session_is_404(client: TestClient):
    for response in (
        client.get("/api/v1/pipeline/sessions/nope"),
        client.get("/api/v1/pipeline/sessions/nope/output"),
        client.post("/api/v1/pipeline/sessions/nope/reset"),
        client.delete("/api/v1/pipeline/sessions/nope"),
        client.post("/api/v1/pipeline/sessions/nope/runs", files=_upload()),
    ):
        assert response.status_code == status.HTTP_404_NOT_FOUND
        assert response.json()["success"] is False


def test_delete_session(client: TestClient):
    session_id = _create_session(client)
    assert client.delete(f"/api/v1/pipeline/sessions/{session_id}").status_code == 200
    assert client.get(f"/api/v1/pipeline/sessions/{session_id}").status_code == 404


def test_missing_file_is_validation_error(client: TestClient):
    session_id = _create_session(client)
    response = client.post(f"/api/v1/pipeline/sessions/{session_id}/runs")
    assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY
    assert response.json()["error"]["type"] == "validation_error"


@pytest.mark.asyncio
async def test_stream_order_success(async_client: AsyncClient):
    created = await async_client.post("/api/v1/pipeline/sessions")
    session_id = created.json()["data"]["session_id"]

    response = await async_client.post(
        f"/api/v1/pipeline/sessions/{session_id}/runs/stream", files=_upload()
    )

    assert response.status_code == status.HTTP_200_OK
    assert response.headers["content-type"].startswith("text/event-stream")
    events = _sse_events(response.text)
    assert [e["stage"] for e in events] == [
        "VALIDATING",
        "PARSING",
        "MAPPING",
        "FORMATTING",
        "VERIFYING",
        "PACKAGING",
        "DONE",
    ]
    final = events[-1]
    assert final["success"] is True
    assert final["progress"] == 1.0

    status_response = await async_client.get(f"/api/v1/pipeline/sessions/{session_id}")
    assert status_response.json()["data"]["stage"] == "DONE"


@pytest.mark.asyncio
async def test_stream_error_terminal_event(async_client: AsyncClient):
    created = await async_client.post("/api/v1/pipeline/sessions")
    session_id = created.json()["data"]["session_id"]

    response = await async_client.post(
        f"/api/v1/pipeline/sessions/{session_id}/runs/stream",
        files=_upload(content=b"corrupted bytes"),
    )

    events = _sse_events(response.text)
    assert [e["stage"] for e in events] == ["VALIDATING", "PARSING", "ERROR"]
    final = events[-1]
    assert final["success"] is False
    assert final["error_code"] == "DOCX_CORRUPT"
    assert final["detail"] == "Uploaded .docx appears corrupted or unreadable."


@pytest.mark.asyncio
async def test_stream_rejects_non_docx_before_streaming(async_client: AsyncClient):
    created = await async_client.post("/api/v1/pipeline/sessions")
    session_id = created.json()["data"]["session_id"]

    response = await async_client.post(
        f"/api/v1/pipeline/sessions/{session_id}/runs/stream",
        files={"file": ("notes.txt", b"hello", "text/plain")},
    )
    assert response.status_code == status.HTTP_415_UNSUPPORTED_MEDIA_TYPE


@pytest.mark.asyncio
async def test_run_discarded_by_reset_is_not_reported_complete(
    sample_paper: StructuredPaper, test_settings: Settings
):
    inference = BlockingInference(sample_paper)
    store = PipelineSessionStore(
        lambda: PipelineController(inference=inference, settings=test_settings)
    )
    app.dependency_overrides[get_session_store] = lambda: store
    try:
        transport = ASGITransport(app=app)
        async with AsyncClient(transport=transport, base_url="http://testserver") as client:
            created = await client.post("/api/v1/pipeline/sessions")
            session_id = created.json()["data"]["session_id"]

            pending = asyncio.create_task(
                client.post(f"/api/v1/pipeline/sessions/{session_id}/runs", files=_upload())
            )
            await asyncio.wait_for(inference.entered.wait(), timeout=5)
            reset = await client.post(f"/api/v1/pipeline/sessions/{session_id}/reset")
            assert reset.json()["data"]["stage"] == "IDLE"
            inference.release.set()
            response = await asyncio.wait_for(pending, timeout=5)
    finally:
        app.dependency_overrides.pop(get_session_store, None)

    assert response.status_code == status.HTTP_200_OK
    body = response.json()
    assert body["success"] is False
    assert body["message"] == "Run was reset before completion"
    assert body["data"]["stage"] == "MAPPING"
    assert body["data"]["error"] is None
    assert body["data"]["manifest"] is None


@pytest.mark.asyncio
async def test_second_stream_on_same_session_is_busy(
    sample_paper: StructuredPaper, test_settings: Settings
):
    inference = BlockingInference(sample_paper)
    store = PipelineSessionStore(
        lambda: PipelineController(inference=inference, settings=test_settings)
    )
    app.dependency_overrides[get_session_store] = lambda: store
    try:
        transport = ASGITransport(app=app)
        async with AsyncClient(transport=transport, base_url="http://testserver") as client:
            created = await client.post("/api/v1/pipeline/sessions")
            session_id = created.json()["data"]["session_id"]
            stream_url = f"/api/v1/pipeline/sessions/{session_id}/runs/stream"

            first = asyncio.create_task(client.post(stream_url, files=_upload("first.docx")))
            await asyncio.wait_for(inference.entered.wait(), timeout=5)
            second = await client.post(stream_url, files=_upload("second.docx"))
            inference.release.set()
            first_response = await asyncio.wait_for(first, timeout=5)
    finally:
        app.dependency_overrides.pop(get_session_store, None)

    assert second.status_code == status.HTTP_409_CONFLICT
    events = _sse_events(first_response.text)
    assert events[-1]["stage"] == "DONE"
    assert [e["stage"] for e in events].count("VALIDATING") == 1
