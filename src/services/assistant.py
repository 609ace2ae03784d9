"""Research-paper assistant: chat, search grounding and figure tools.

Chat and image analysis go through pydantic-ai agents (provider chosen by the
model factory). Search grounding and image generation are Gemini-only
features and use the google-genai client directly.

Every external failure is turned into an apologetic reply; nothing is
raised to the caller.
"""

from __future__ import annotations

import base64
import logging
from functools import lru_cache
from typing import Any

from pydantic_ai import Agent
from pydantic_ai.messages import BinaryContent

from core.config import get_settings
from schemas.assistant import AssistantMode, AssistantReply, GroundingSource, ImageSize
from services.ai.model_factory import (
    create_resilient_http_client,
    get_chat_model,
    get_genai_client,
    get_multimodal_model,
)


logger = logging.getLogger(__name__)


GREETINGS = frozenset({"hi", "hello"})
GREETING_REPLY = "Hello! How can I help you with your research paper today?"
DOMAIN_REFUSAL = (
    "I am an AI assistant who can only help you with research papers and their "
    "formats. Other information is not in my memory."
)
ERROR_REPLY = "I encountered an error. Please ask about research paper formats."
MISSING_IMAGE_REPLY = (
    "I could not find an image to analyze. Please attach a figure and try again."
)
IMAGE_ANALYSIS_PROMPT = "Analyze this scientific image."
FIGURE_PROMPT_PREFIX = "Scientific figure: "

ASSISTANT_INSTRUCTIONS = f"""
You are a specialized AI Research Assistant. Your ONLY purpose is to help users
with research paper formatting (specifically IEEE), research standards,
academic writing structure, and understanding scientific content.

RULES:
1. If the user asks for information NOT related to research papers, research
   formats, academic writing, or this application, respond with exactly:
   "{DOMAIN_REFUSAL}"
2. Keep your tone professional and academic.
3. Do not provide information on hobbies, news, entertainment, or general
   life advice.
"""


@lru_cache
def get_assistant_agent() -> Agent[None, str]:
    """Create and cache the domain-restricted chat agent."""
    model = get_chat_model(http_client=create_resilient_http_client())
    return Agent(model, instructions=ASSISTANT_INSTRUCTIONS, name="ResearchAssistant")


@lru_cache
def get_image_analysis_agent() -> Agent[None, str]:
    """Create and cache the multimodal agent used for figure analysis."""
    model = get_multimodal_model(http_client=create_resilient_http_client())
    return Agent(model, instructions=ASSISTANT_INSTRUCTIONS, name="FigureAnalyst")


def is_greeting(text: str) -> bool:
    return text.strip().lower() in GREETINGS


def _grounding_sources(response: Any) -> list[GroundingSource]:
    candidates = getattr(response, "candidates", None) or []
    if not candidates:
        return []
    metadata = getattr(candidates[0], "grounding_metadata", None)
    chunks = getattr(metadata, "grounding_chunks", None) or []
    sources: list[GroundingSource] = []
    for chunk in chunks:
        web = getattr(chunk, "web", None)
        uri = getattr(web, "uri", None)
        if not uri:
            continue
        sources.append(GroundingSource(title=getattr(web, "title", None) or "", uri=uri))
    return sources


def _first_image_uri(response: Any) -> str:
    candidates = getattr(response, "candidates", None) or []
    if not candidates or candidates[0].content is None:
        return ""
    for part in candidates[0].content.parts or []:
        inline = getattr(part, "inline_data", None)
        if inline is not None and inline.data:
            encoded = base64.b64encode(inline.data).decode("ascii")
            return f"data:image/png;base64,{encoded}"
    return ""


class AssistantService:
    """Stateless per-query assistant.

    Accepts optional agents and a google-genai client to make testing and DI
    easier; production objects are created lazily on first use.
    """

    def __init__(
        self,
        chat_agent: Agent[None, str] | None = None,
        image_agent: Agent[None, str] | None = None,
        genai_client: Any | None = None,
    ) -> None:
        self._chat_agent = chat_agent
        self._image_agent = image_agent
        self._genai_client = genai_client
        self._settings = get_settings()

    def _client(self) -> Any:
        if self._genai_client is None:
            self._genai_client = get_genai_client()
        return self._genai_client

    async def query(
        self,
        text: str,
        mode: AssistantMode = "chat",
        image: bytes | None = None,
        mime_type: str | None = None,
        image_size: ImageSize = "1K",
    ) -> AssistantReply:
        """Answer one query; failures become the canned apology."""
        if is_greeting(text):
            return AssistantReply(content=GREETING_REPLY)

        try:
            if mode == "search":
                return await self._search(text)
            if mode == "image-generate":
                return await self._generate_figure(text, image_size)
            if mode == "image-analyze":
                return await self._analyze_image(text, image, mime_type)
            return await self._chat(text)
        except Exception as exc:  # noqa: BLE001 - every failure maps to one reply
            logger.warning(
                "Assistant query failed",
                extra={"mode": mode, "error_type": type(exc).__name__},
                exc_info=True,
            )
            return AssistantReply(content=ERROR_REPLY)

    async def _chat(self, text: str) -> AssistantReply:
        agent = self._chat_agent or get_assistant_agent()
        result = await agent.run(text)
        answer = (result.output or "").strip()
        return AssistantReply(content=answer or DOMAIN_REFUSAL)

    async def _search(self, text: str) -> AssistantReply:
        from google.genai import types

        response = await self._client().aio.models.generate_content(
            model=self._settings.SEARCH_MODEL,
            contents=text,
            config=types.GenerateContentConfig(
                system_instruction=ASSISTANT_INSTRUCTIONS,
                tools=[types.Tool(google_search=types.GoogleSearch())],
            ),
        )
        return AssistantReply(
            content=response.text or "", sources=_grounding_sources(response)
        )

    async def _generate_figure(self, text: str, size: ImageSize) -> AssistantReply:
        from google.genai import types

        response = await self._client().aio.models.generate_content(
            model=self._settings.IMAGE_MODEL,
            contents=f"{FIGURE_PROMPT_PREFIX}{text}",
            config=types.GenerateContentConfig(
                response_modalities=["IMAGE"],
                image_config=types.ImageConfig(aspect_ratio="1:1", image_size=size),
            ),
        )
        return AssistantReply(content=_first_image_uri(response))

    async def _analyze_image(
        self, text: str, image: bytes | None, mime_type: str | None
    ) -> AssistantReply:
        if not image:
            return AssistantReply(content=MISSING_IMAGE_REPLY)
        prompt = IMAGE_ANALYSIS_PROMPT
        if text.strip():
            prompt = f"{IMAGE_ANALYSIS_PROMPT}\n\n{text.strip()}"
        agent = self._image_agent or get_image_analysis_agent()
        result = await agent.run(
            [prompt, BinaryContent(data=image, media_type=mime_type or "image/png")]
        )
        return AssistantReply(content=(result.output or "").strip())


def get_assistant_service() -> AssistantService:
    """FastAPI DI provider."""
    return AssistantService()
