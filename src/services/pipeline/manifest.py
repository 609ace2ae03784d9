"""Manifest construction: pure functions of the structured paper.

The style table is a constant and citation indices are positional (first
reference -> 1). Numbering already present in the reference text is not
parsed or reconciled.
"""

from __future__ import annotations

import hashlib
from collections.abc import Sequence
from datetime import UTC, datetime

from schemas.paper import StructuredPaper
from schemas.pipeline import CitationEntry, ErrorRecord, Manifest, StyleMapping


STYLE_TABLE: tuple[StyleMapping, ...] = (
    StyleMapping(original_style="Raw Text", mapped_style="IEEE Standard Two-Column"),
    StyleMapping(original_style="Headings", mapped_style="Roman Numeral / Small Caps"),
    StyleMapping(original_style="References", mapped_style="IEEE Numeric [n]"),
)

DEFAULT_PREVIEW_CHARS = 50


def checksum(data: bytes) -> str:
    """MD5 hex digest used as the manifest's integrity marker."""
    return hashlib.md5(data, usedforsecurity=False).hexdigest()


def build_style_table() -> tuple[StyleMapping, ...]:
    return STYLE_TABLE


def citation_preview(text: str, max_chars: int = DEFAULT_PREVIEW_CHARS) -> str:
    if len(text) <= max_chars:
        return text
    return text[:max_chars] + "..."


def build_citation_map(
    references: Sequence[str], max_chars: int = DEFAULT_PREVIEW_CHARS
) -> tuple[CitationEntry, ...]:
    return tuple(
        CitationEntry(
            original_citation_text=citation_preview(reference, max_chars),
            assigned_numeric_index=position,
        )
        for position, reference in enumerate(references, start=1)
    )


def build_manifest(
    paper: StructuredPaper,
    original: bytes,
    rendered: bytes,
    *,
    errors: Sequence[ErrorRecord] = (),
    timestamp: datetime | None = None,
    preview_chars: int = DEFAULT_PREVIEW_CHARS,
) -> Manifest:
    """Build the audit record for a completed run."""
    return Manifest(
        original_file_checksum=checksum(original),
        output_file_checksum=checksum(rendered),
        styles_mapped=build_style_table(),
        citation_map=build_citation_map(paper.references, preview_chars),
        errors=tuple(errors),
        timestamp=timestamp or datetime.now(UTC),
    )
