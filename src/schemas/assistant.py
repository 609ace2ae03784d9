"""Schemas for the research-paper assistant endpoint."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator


AssistantMode = Literal["chat", "search", "image-generate", "image-analyze"]
ImageSize = Literal["1K", "2K", "4K"]


class GroundingSource(BaseModel):
    """A web page the search-grounded answer was based on."""

    title: str = ""
    uri: str

    model_config = ConfigDict(frozen=True)


class AssistantReply(BaseModel):
    """Assistant answer; `content` may be text or an image data URI."""

    content: str
    sources: list[GroundingSource] = Field(default_factory=list)


class AssistantQueryRequest(BaseModel):
    query: str = Field(default="", max_length=8000)
    mode: AssistantMode = "chat"
    image_base64: str | None = Field(
        default=None, description="Base64 image payload for image-analyze mode"
    )
    image_mime_type: str = "image/png"
    image_size: ImageSize = "1K"

    @model_validator(mode="after")
    def _require_content(self) -> "AssistantQueryRequest":
        if not self.query.strip() and not self.image_base64:
            raise ValueError("query or image_base64 is required")
        return self
