"""Shared test fixtures for pytest.

ENVIRONMENT is forced to `test` before the app is imported so settings load
without env files and no model credentials are needed.
"""

import os
from collections.abc import AsyncGenerator, Callable, Generator

import pytest
import pytest_asyncio
from fastapi.testclient import TestClient
from httpx import ASGITransport, AsyncClient
from pydantic_ai import models


os.environ["ENVIRONMENT"] = "test"

# Block any real model requests in tests
models.ALLOW_MODEL_REQUESTS = False

from core.config import Settings
from dependencies.pipeline import get_session_store
from main import app
from schemas.paper import PaperSection, StructuredPaper
from services.assistant import AssistantService, get_assistant_service
from services.pipeline.controller import PipelineController
from services.pipeline.sessions import PipelineSessionStore
from tests.fixtures.documents import build_docx
from tests.fixtures.fakes import FakeStructureInference


@pytest.fixture
def test_settings() -> Settings:
    return Settings(_env_file=None, ENVIRONMENT="test")


@pytest.fixture
def sample_paper() -> StructuredPaper:
    return StructuredPaper(
        title="Adaptive Sampling for Sparse Sensor Networks",
        authors=["Jane Doe", "John Roe"],
        abstract=(
            "We present an adaptive sampling scheme for sparse sensor networks "
            "that reduces energy use while preserving reconstruction quality."
        ),
        keywords=["sensor networks", "sampling", "energy"],
        sections=[
            PaperSection(
                heading="Introduction",
                content="Sensor networks are widely deployed for monitoring.",
            ),
            PaperSection(
                heading="Method",
                content="Sampling rates follow the local signal variance.",
            ),
        ],
        references=[
            "A. Author, Sensor Networks, 2020.",
            "B. Author, Adaptive Sampling, 2021.",
        ],
    )


@pytest.fixture
def sample_docx() -> bytes:
    return build_docx()


@pytest.fixture
def fake_inference(sample_paper: StructuredPaper) -> FakeStructureInference:
    return FakeStructureInference(sample_paper)


@pytest.fixture
def controller(
    fake_inference: FakeStructureInference, test_settings: Settings
) -> PipelineController:
    """Controller with real python-docx stages and canned structure inference."""
    return PipelineController(inference=fake_inference, settings=test_settings)


@pytest.fixture
def session_store(
    fake_inference: FakeStructureInference, test_settings: Settings
) -> PipelineSessionStore:
    return PipelineSessionStore(
        lambda: PipelineController(inference=fake_inference, settings=test_settings)
    )


@pytest.fixture
def client(session_store: PipelineSessionStore) -> Generator[TestClient, None, None]:
    """
    Create a test client for the FastAPI application.
    """
    app.dependency_overrides[get_session_store] = lambda: session_store
    with TestClient(app) as client:
        yield client
    app.dependency_overrides.pop(get_session_store, None)


@pytest_asyncio.fixture
async def async_client(
    session_store: PipelineSessionStore,
) -> AsyncGenerator[AsyncClient, None]:
    """Async client sharing the in-memory session store fixture."""
    app.dependency_overrides[get_session_store] = lambda: session_store
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://testserver") as client:
        yield client
    app.dependency_overrides.pop(get_session_store, None)


@pytest.fixture
def override_assistant() -> Generator[Callable[[AssistantService], None], None, None]:
    """Helper to install a custom AssistantService for API tests."""
    installed: list[AssistantService] = []

    def _install(service: AssistantService) -> None:
        installed.append(service)
        app.dependency_overrides[get_assistant_service] = lambda: service

    yield _install
    app.dependency_overrides.pop(get_assistant_service, None)
