"""IEEE conference layout renderer built on python-docx.

Produces an A4 document with a single-column title block (title, authors)
followed by a continuous two-column body: abstract, index terms, Roman-numeral
small-caps section headings and numbered references. Output bytes are
deterministic for identical input: core properties and zip entry timestamps
are pinned.
"""

from __future__ import annotations

import io
import zipfile
from datetime import datetime

from docx import Document
from docx.enum.section import WD_SECTION
from docx.enum.text import WD_ALIGN_PARAGRAPH
from docx.oxml import OxmlElement
from docx.oxml.ns import qn
from docx.section import Section
from docx.shared import Mm, Pt
from docx.text.paragraph import Paragraph

from schemas.paper import StructuredPaper


FONT_NAME = "Times New Roman"

PAGE_WIDTH = Mm(210)
PAGE_HEIGHT = Mm(297)
PAGE_MARGIN = Mm(19.1)
COLUMN_COUNT = 2
COLUMN_SPACING = Mm(6.35)

# Point sizes of the IEEE conference template
TITLE_SIZE = Pt(24)
AUTHOR_SIZE = Pt(11)
ABSTRACT_SIZE = Pt(9)
BODY_SIZE = Pt(10)
REFERENCE_SIZE = Pt(8)

UNTITLED_PLACEHOLDER = "Untitled Paper"
AUTHORS_PLACEHOLDER = "Authors TBD"
ABSTRACT_PLACEHOLDER = "No abstract provided."
KEYWORDS_PLACEHOLDER = "Keywords not specified"
ABSTRACT_LEAD = "Abstract—"
INDEX_TERMS_LEAD = "Index Terms—"
REFERENCES_HEADING = "REFERENCES"

_FIXED_TIMESTAMP = datetime(2000, 1, 1)
_ZIP_EPOCH = (1980, 1, 1, 0, 0, 0)

_ROMAN_NUMERALS = (
    (1000, "M"),
    (900, "CM"),
    (500, "D"),
    (400, "CD"),
    (100, "C"),
    (90, "XC"),
    (50, "L"),
    (40, "XL"),
    (10, "X"),
    (9, "IX"),
    (5, "V"),
    (4, "IV"),
    (1, "I"),
)


def to_roman(number: int) -> str:
    """Return the Roman numeral for a positive integer."""
    if number < 1:
        raise ValueError("Roman numerals start at 1")
    parts: list[str] = []
    for value, numeral in _ROMAN_NUMERALS:
        count, number = divmod(number, value)
        parts.append(numeral * count)
    return "".join(parts)


def format_reference(reference: str, index: int) -> str:
    """Prefix a reference with its IEEE index unless it already carries one."""
    if reference.strip().startswith("["):
        return reference
    return f"[{index}] {reference}"


def _configure_page(section: Section) -> None:
    section.page_width = PAGE_WIDTH
    section.page_height = PAGE_HEIGHT
    section.top_margin = PAGE_MARGIN
    section.bottom_margin = PAGE_MARGIN
    section.left_margin = PAGE_MARGIN
    section.right_margin = PAGE_MARGIN


def _set_columns(section: Section, count: int) -> None:
    sect_pr = section._sectPr
    cols = sect_pr.find(qn("w:cols"))
    if cols is None:
        cols = OxmlElement("w:cols")
        doc_grid = sect_pr.find(qn("w:docGrid"))
        if doc_grid is not None:
            doc_grid.addprevious(cols)
        else:
            sect_pr.append(cols)
    cols.set(qn("w:num"), str(count))
    cols.set(qn("w:space"), str(COLUMN_SPACING.twips))


def _add_paragraph(
    document,
    alignment: WD_ALIGN_PARAGRAPH,
    space_before: Pt | None = None,
    space_after: Pt | None = None,
) -> Paragraph:
    paragraph = document.add_paragraph()
    paragraph.alignment = alignment
    fmt = paragraph.paragraph_format
    if space_before is not None:
        fmt.space_before = space_before
    if space_after is not None:
        fmt.space_after = space_after
    return paragraph


def _add_run(
    paragraph: Paragraph,
    text: str,
    size: Pt,
    *,
    bold: bool = False,
    italic: bool = False,
    small_caps: bool = False,
) -> None:
    run = paragraph.add_run(text)
    run.font.name = FONT_NAME
    run.font.size = size
    run.font.bold = bold or None
    run.font.italic = italic or None
    if small_caps:
        run.font.small_caps = True


def _pin_zip_timestamps(data: bytes) -> bytes:
    """Rewrite the package with fixed entry timestamps and order."""
    source = zipfile.ZipFile(io.BytesIO(data))
    out = io.BytesIO()
    with zipfile.ZipFile(out, "w", zipfile.ZIP_DEFLATED) as target:
        for info in source.infolist():
            pinned = zipfile.ZipInfo(info.filename, date_time=_ZIP_EPOCH)
            pinned.compress_type = zipfile.ZIP_DEFLATED
            pinned.external_attr = info.external_attr
            target.writestr(pinned, source.read(info.filename))
    return out.getvalue()


def render_ieee_document(paper: StructuredPaper) -> bytes:
    """Lay out a structured paper as an IEEE two-column .docx."""
    document = Document()
    props = document.core_properties
    props.title = paper.title
    props.author = ", ".join(paper.authors)
    props.last_modified_by = ""
    props.revision = 1
    props.created = _FIXED_TIMESTAMP
    props.modified = _FIXED_TIMESTAMP

    title_section = document.sections[0]
    _configure_page(title_section)
    _set_columns(title_section, 1)

    title = _add_paragraph(
        document, WD_ALIGN_PARAGRAPH.CENTER, Pt(12), Pt(6)
    )
    _add_run(title, (paper.title or UNTITLED_PLACEHOLDER).upper(), TITLE_SIZE)

    authors = _add_paragraph(document, WD_ALIGN_PARAGRAPH.CENTER, space_after=Pt(12))
    _add_run(
        authors,
        ", ".join(paper.authors) if paper.authors else AUTHORS_PLACEHOLDER,
        AUTHOR_SIZE,
    )

    body_section = document.add_section(WD_SECTION.CONTINUOUS)
    _configure_page(body_section)
    _set_columns(body_section, COLUMN_COUNT)

    abstract = _add_paragraph(document, WD_ALIGN_PARAGRAPH.JUSTIFY, Pt(5), Pt(4))
    _add_run(abstract, ABSTRACT_LEAD, ABSTRACT_SIZE, bold=True, italic=True)
    _add_run(
        abstract, paper.abstract or ABSTRACT_PLACEHOLDER, ABSTRACT_SIZE, italic=True
    )

    keywords = _add_paragraph(document, WD_ALIGN_PARAGRAPH.JUSTIFY, space_after=Pt(9))
    _add_run(keywords, INDEX_TERMS_LEAD, ABSTRACT_SIZE, bold=True, italic=True)
    _add_run(
        keywords,
        ", ".join(paper.keywords) if paper.keywords else KEYWORDS_PLACEHOLDER,
        ABSTRACT_SIZE,
    )

    for number, section in enumerate(paper.sections, start=1):
        heading = _add_paragraph(document, WD_ALIGN_PARAGRAPH.CENTER, Pt(10), Pt(4))
        _add_run(
            heading,
            f"{to_roman(number)}. {section.heading.upper()}",
            BODY_SIZE,
            small_caps=True,
        )
        body = _add_paragraph(document, WD_ALIGN_PARAGRAPH.JUSTIFY, space_after=Pt(6))
        _add_run(body, section.content, BODY_SIZE)

    references = _add_paragraph(document, WD_ALIGN_PARAGRAPH.CENTER, Pt(15), Pt(7.5))
    _add_run(references, REFERENCES_HEADING, REFERENCE_SIZE, small_caps=True)
    for index, reference in enumerate(paper.references, start=1):
        entry = _add_paragraph(document, WD_ALIGN_PARAGRAPH.JUSTIFY, space_after=Pt(3))
        _add_run(entry, format_reference(reference, index), REFERENCE_SIZE)

    buffer = io.BytesIO()
    document.save(buffer)
    return _pin_zip_timestamps(buffer.getvalue())
