"""Read-side .docx helpers: policy inspection and plain-text extraction.

Both functions are synchronous (python-docx is blocking); the controller's
adapters run them in a worker thread.
"""

from __future__ import annotations

import io
import logging

from docx import Document
from docx.document import Document as DocxDocument
from docx.opc.constants import RELATIONSHIP_TYPE as RT
from docx.table import Table

from services.pipeline.exceptions import (
    DocumentProtected,
    TrackedChangesPresent,
    Unreadable,
)


logger = logging.getLogger(__name__)

DOCX_EXTENSION = ".docx"

# Encrypted Office files are wrapped in an OLE compound file instead of a zip
OLE_SIGNATURE = b"\xd0\xcf\x11\xe0\xa1\xb1\x1a\xe1"

PROTECTED_FILENAME_MARKER = "protected"

_REVISION_XPATH = ".//w:ins | .//w:del | .//w:moveFrom | .//w:moveTo"


def is_docx_filename(filename: str | None) -> bool:
    return bool(filename) and filename.lower().endswith(DOCX_EXTENSION)


def open_document(data: bytes) -> DocxDocument:
    """Open .docx bytes or raise `Unreadable`."""
    if not data:
        raise Unreadable("Document is empty")
    try:
        return Document(io.BytesIO(data))
    except Exception as exc:  # noqa: BLE001 - python-docx raises many types
        raise Unreadable(f"Cannot open document: {type(exc).__name__}") from exc


def _has_protection(document: DocxDocument) -> bool:
    protection = document.settings.element.xpath("./w:documentProtection")
    for element in protection:
        enforcement = element.get(
            "{http://schemas.openxmlformats.org/wordprocessingml/2006/main}enforcement"
        )
        if enforcement in ("1", "true", "on"):
            return True
    return False


def _has_revisions(document: DocxDocument) -> bool:
    return bool(document.element.body.xpath(_REVISION_XPATH))


def _has_comments(document: DocxDocument) -> bool:
    for rel in document.part.rels.values():
        if rel.reltype != RT.COMMENTS or rel.is_external:
            continue
        if b"<w:comment " in rel.target_part.blob:
            return True
    return False


def inspect_document(filename: str, data: bytes) -> None:
    """Apply the pre-parse document policy.

    Raises `DocumentProtected` for protected files and `TrackedChangesPresent`
    when unresolved revisions or comments remain. Bytes that cannot be opened
    are not rejected here; extraction reports them as corrupt.
    """
    if PROTECTED_FILENAME_MARKER in filename.lower():
        raise DocumentProtected()
    if data.startswith(OLE_SIGNATURE):
        raise DocumentProtected()

    try:
        document = open_document(data)
    except Unreadable:
        logger.debug("Skipping policy inspection of unreadable file %s", filename)
        return

    if _has_protection(document):
        raise DocumentProtected()
    if _has_revisions(document) or _has_comments(document):
        raise TrackedChangesPresent()


def _table_text(table: Table) -> list[str]:
    lines: list[str] = []
    for row in table.rows:
        seen: set[int] = set()
        cells: list[str] = []
        # Merged cells repeat the same underlying element across the row
        for cell in row.cells:
            if id(cell._tc) in seen:
                continue
            seen.add(id(cell._tc))
            if cell.text.strip():
                cells.append(cell.text.strip())
        if cells:
            lines.append("\t".join(cells))
    return lines


def extract_text(data: bytes) -> str:
    """Extract plain text from .docx bytes in document order.

    Paragraphs are separated by blank lines; table rows become tab-joined
    lines. Raises `Unreadable` when the bytes are not a readable document.
    """
    document = open_document(data)
    blocks: list[str] = []
    for item in document.iter_inner_content():
        if isinstance(item, Table):
            blocks.extend(_table_text(item))
        else:
            blocks.append(item.text)
    return "\n\n".join(blocks)
