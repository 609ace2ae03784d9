"""Structured paper schemas shared by the inference agent and the renderer.

`StructuredPaper` is the intermediate representation that flows between the
structure inference stage and the IEEE renderer. It is deliberately lenient on
input because it doubles as the agent's output type: language models return
single strings where lists are expected, `null` for empty lists and sections
without a level. The validators below normalize those shapes without touching
the wording of any text field.
"""

from __future__ import annotations

import re
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator


_KEYWORD_SPLIT = re.compile(r"[;,]")


def _as_text(value: Any) -> str:
    if value is None:
        return ""
    return value if isinstance(value, str) else str(value)


class PaperSection(BaseModel):
    """One body section of a paper, in reading order."""

    heading: str = Field(default="", description="Section heading as written")
    level: int = Field(default=1, ge=1, description="Heading depth, 1 = top level")
    content: str = Field(default="", description="Full, unmodified section text")

    model_config = ConfigDict(extra="ignore")

    @field_validator("heading", "content", mode="before")
    @classmethod
    def _coerce_text(cls, v: Any) -> str:
        return _as_text(v)

    @field_validator("level", mode="before")
    @classmethod
    def _coerce_level(cls, v: Any) -> int:
        try:
            level = int(v)
        except (TypeError, ValueError):
            return 1
        return max(level, 1)


class StructuredPaper(BaseModel):
    """Structural segmentation of a research paper.

    Text fields carry the original wording; inference must segment, never
    summarize or rewrite.
    """

    title: str = Field(default="", description="Exact title from the text")
    authors: list[str] = Field(default_factory=list, description="Author strings")
    abstract: str = Field(default="", description="The exact abstract text")
    keywords: list[str] = Field(default_factory=list, description="Index terms")
    sections: list[PaperSection] = Field(
        default_factory=list, description="Body sections in reading order"
    )
    references: list[str] = Field(
        default_factory=list, description="Reference list entries in order"
    )

    model_config = ConfigDict(extra="ignore")

    @field_validator("title", "abstract", mode="before")
    @classmethod
    def _coerce_text(cls, v: Any) -> str:
        return _as_text(v)

    @field_validator("authors", "references", mode="before")
    @classmethod
    def _coerce_string_list(cls, v: Any) -> list[str]:
        if v is None:
            return []
        if isinstance(v, str):
            return [v] if v.strip() else []
        return [_as_text(item) for item in v if item is not None]

    @field_validator("keywords", mode="before")
    @classmethod
    def _coerce_keywords(cls, v: Any) -> list[str]:
        if v is None:
            return []
        if isinstance(v, str):
            return [k.strip() for k in _KEYWORD_SPLIT.split(v) if k.strip()]
        return [_as_text(item) for item in v if item is not None]

    @field_validator("sections", mode="before")
    @classmethod
    def _coerce_sections(cls, v: Any) -> list[Any]:
        if v is None:
            return []
        if isinstance(v, dict):
            return [v]
        return list(v)


class PaperSummary(BaseModel):
    """Metadata card for a paper once its structure is known."""

    title: str
    abstract_preview: str
    word_count: int = Field(..., ge=0)
    filename: str

    model_config = ConfigDict(frozen=True)
