"""Post-render content verification."""

from __future__ import annotations

from schemas.paper import PaperSection, StructuredPaper
from services.pipeline.renderer import render_ieee_document
from services.pipeline.verifier import expected_fragments, find_missing_fragments
from tests.fixtures.documents import build_docx


def test_rendered_paper_has_no_missing_fragments(sample_paper: StructuredPaper):
    assert find_missing_fragments(sample_paper, render_ieee_document(sample_paper)) == []


def test_missing_content_is_reported(sample_paper: StructuredPaper):
    unrelated = build_docx(["Nothing from the paper is here."])
    missing = find_missing_fragments(sample_paper, unrelated)
    assert missing[0].startswith("title: ")
    assert any(line.startswith("abstract: ") for line in missing)
    assert any(line.startswith("reference 2: ") for line in missing)


def test_comparison_ignores_case_and_whitespace_runs():
    paper = StructuredPaper(title="Mixed Case", abstract="two   spaces")
    rendered = build_docx(["MIXED CASE", "two spaces"])
    assert find_missing_fragments(paper, rendered) == []


def test_expected_fragments_skip_blank_parts():
    paper = StructuredPaper(
        title="T",
        sections=[PaperSection(heading="Empty", content="  ")],
        references=["R"],
    )
    assert expected_fragments(paper) == [("title", "T"), ("reference 1", "R")]


def test_long_fragments_are_previewed():
    paper = StructuredPaper(title="x" * 100)
    missing = find_missing_fragments(paper, build_docx(["other"]))
    assert missing == ["title: " + "x" * 60 + "..."]


def test_title_whose_uppercase_does_not_round_trip_is_found():
    paper = StructuredPaper(
        title="Yapay Zeka ile Sınıflandırma",
        abstract="Dotless ı and sharp ß survive rendering.",
        references=["Straße, K. (2021)"],
    )
    assert find_missing_fragments(paper, render_ieee_document(paper)) == []


def test_missing_title_diagnostic_keeps_source_text():
    paper = StructuredPaper(title="Sınıflandırma")
    missing = find_missing_fragments(paper, build_docx(["other"]))
    assert missing == ["title: Sınıflandırma"]
