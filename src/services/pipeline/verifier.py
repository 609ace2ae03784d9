"""Post-render content verification.

Re-reads the rendered document and confirms that the source text survived
layout: title, abstract, every non-empty section body and every reference
must appear verbatim (ignoring case and whitespace runs). Fragments are
compared in the form the renderer writes them: the title is uppercased.
"""

from __future__ import annotations

import re

from schemas.paper import StructuredPaper
from services.pipeline.docx_reader import open_document


_WHITESPACE = re.compile(r"\s+")
PREVIEW_CHARS = 60


def _normalize(text: str) -> str:
    return _WHITESPACE.sub(" ", text).strip().casefold()


def _as_rendered(label: str, text: str) -> str:
    return text.upper() if label == "title" else text


def _preview(label: str, text: str) -> str:
    snippet = " ".join(text.split())
    if len(snippet) > PREVIEW_CHARS:
        snippet = snippet[:PREVIEW_CHARS] + "..."
    return f"{label}: {snippet}"


def expected_fragments(paper: StructuredPaper) -> list[tuple[str, str]]:
    """(label, text) pairs that must survive rendering."""
    fragments: list[tuple[str, str]] = []
    if paper.title.strip():
        fragments.append(("title", paper.title))
    if paper.abstract.strip():
        fragments.append(("abstract", paper.abstract))
    for number, section in enumerate(paper.sections, start=1):
        if section.content.strip():
            fragments.append((f"section {number}", section.content))
    for number, reference in enumerate(paper.references, start=1):
        if reference.strip():
            fragments.append((f"reference {number}", reference))
    return fragments


def find_missing_fragments(paper: StructuredPaper, rendered: bytes) -> list[str]:
    """Return a diagnostic line for every fragment absent from the output.

    Raises `Unreadable` when the rendered bytes cannot be opened.
    """
    document = open_document(rendered)
    haystack = _normalize("\n".join(p.text for p in document.paragraphs))
    return [
        _preview(label, text)
        for label, text in expected_fragments(paper)
        if _normalize(_as_rendered(label, text)) not in haystack
    ]
