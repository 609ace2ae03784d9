"""HTTP contract tests for the assistant endpoint."""

from __future__ import annotations

import base64
from unittest.mock import AsyncMock, MagicMock

from fastapi import status
from fastapi.testclient import TestClient
from pydantic_ai import Agent
from pydantic_ai.models.test import TestModel

from schemas.assistant import AssistantReply
from services.assistant import GREETING_REPLY, AssistantService


def test_greeting_needs_no_model(client: TestClient, override_assistant):
    chat_agent = MagicMock()
    override_assistant(AssistantService(chat_agent=chat_agent))

    response = client.post("/api/v1/assistant/query", json={"query": "hello"})

    assert response.status_code == status.HTTP_200_OK
    body = response.json()
    assert body["success"] is True
    assert body["data"] == {"content": GREETING_REPLY, "sources": []}
    chat_agent.run.assert_not_called()


def test_chat_query(client: TestClient, override_assistant):
    agent = Agent(TestModel(custom_output_text="Use Roman numerals for headings."))
    override_assistant(AssistantService(chat_agent=agent))

    response = client.post(
        "/api/v1/assistant/query",
        json={"query": "How are IEEE headings numbered?", "mode": "chat"},
    )
    assert response.json()["data"]["content"] == "Use Roman numerals for headings."


def test_image_is_decoded_before_reaching_service(client: TestClient, override_assistant):
    service = MagicMock(spec=AssistantService)
    service.query = AsyncMock(return_value=AssistantReply(content="A scatter plot."))
    override_assistant(service)

    payload = base64.b64encode(b"image-bytes").decode()
    response = client.post(
        "/api/v1/assistant/query",
        json={
            "query": "",
            "mode": "image-analyze",
            "image_base64": payload,
            "image_mime_type": "image/jpeg",
        },
    )

    assert response.status_code == status.HTTP_200_OK
    service.query.assert_awaited_once_with(
        "",
        mode="image-analyze",
        image=b"image-bytes",
        mime_type="image/jpeg",
        image_size="1K",
    )


def test_invalid_base64_is_rejected(client: TestClient, override_assistant):
    override_assistant(AssistantService(chat_agent=MagicMock()))
    response = client.post(
        "/api/v1/assistant/query",
        json={"mode": "image-analyze", "image_base64": "***not base64***"},
    )
    assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY


def test_empty_request_is_rejected(client: TestClient):
    response = client.post("/api/v1/assistant/query", json={"query": "  "})
    assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY
    assert response.json()["error"]["type"] == "validation_error"


def test_unknown_mode_is_rejected(client: TestClient):
    response = client.post(
        "/api/v1/assistant/query", json={"query": "x", "mode": "video"}
    )
    assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY
