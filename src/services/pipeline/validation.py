"""Acceptance policy for inferred paper structure, plus naming helpers."""

from __future__ import annotations

from schemas.paper import PaperSummary, StructuredPaper
from services.pipeline.docx_reader import DOCX_EXTENSION
from services.pipeline.exceptions import InsufficientStructure


ABSTRACT_PREVIEW_CHARS = 150


def normalize_paper(paper: StructuredPaper | None, filename: str) -> StructuredPaper:
    """Apply fallbacks and reject a paper that still has no title.

    A missing or unparseable inference result is treated as the empty
    structure; a blank title falls back to the source filename. Sections,
    references, authors and keywords may all be empty.
    """
    paper = paper or StructuredPaper()
    title = paper.title.strip() or filename.strip()
    if not title:
        raise InsufficientStructure()
    if title == paper.title:
        return paper
    return paper.model_copy(update={"title": title})


def build_summary(paper: StructuredPaper, text: str, filename: str) -> PaperSummary:
    return PaperSummary(
        title=paper.title or filename,
        abstract_preview=paper.abstract[:ABSTRACT_PREVIEW_CHARS] + "...",
        word_count=len(text.split()),
        filename=filename,
    )


def output_filename(filename: str, suffix: str = "_IEEE") -> str:
    """`paper.docx` -> `paper_IEEE.docx`."""
    if filename.lower().endswith(DOCX_EXTENSION):
        stem = filename[: -len(DOCX_EXTENSION)]
    else:
        stem = filename
    return f"{stem}{suffix}{DOCX_EXTENSION}"
