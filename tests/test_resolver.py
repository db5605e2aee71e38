import logging
import textwrap

import pytest

from ChapterMap import markdown_parser
from ChapterMap.errors import DanglingReferenceError
from ChapterMap.model import Chapter, Document, TocEntry
from ChapterMap.resolver import resolve_references, validate_references


def test_consistent_document_has_no_findings(book_notes):
    report = resolve_references(markdown_parser.parse_markdown(book_notes))
    assert report.is_valid
    assert [s.anchor for s in report.ok] == ["chapter1", "chapter2"]
    assert report.dangling == []
    assert report.orphans == []


def test_dangling_entry_is_named():
    md_text = textwrap.dedent(
        """\
        - [Chapter 1](#chapter1)
        - [Chapter XX](#chapterXX)

        <a name="chapter1"></a>
        ## Chapter 1
        """
    )
    document = markdown_parser.parse_markdown(md_text)
    report = resolve_references(document)
    assert not report.is_valid
    assert [s.anchor for s in report.dangling] == ["chapterXX"]
    assert report.dangling[0].line == 2

    with pytest.raises(DanglingReferenceError, match="chapterXX") as excinfo:
        validate_references(document)
    assert excinfo.value.targets == ["chapterXX"]


def test_orphan_chapter_is_a_warning(caplog):
    document = Document(
        chapters=(
            Chapter(title="Chapter 1", anchor="chapter1"),
            Chapter(title="Chapter 5", anchor="chapter5", line=40),
        ),
        toc=(TocEntry(title="Chapter 1", target="chapter1"),),
    )
    caplog.set_level(logging.WARNING)

    report = validate_references(document)

    assert report.is_valid
    assert [s.anchor for s in report.orphans] == ["chapter5"]
    assert report.orphans[0].is_warning
    assert "chapter5" in caplog.text


def test_duplicate_toc_entry_is_reported():
    document = Document(
        chapters=(Chapter(title="Names", anchor="chapter2"),),
        toc=(
            TocEntry(title="Names", target="chapter2"),
            TocEntry(title="Meaningful Names", target="chapter2"),
        ),
    )
    report = resolve_references(document)
    assert report.is_valid
    assert [s.title for s in report.duplicates] == ["Meaningful Names"]


def test_anchor_matching_is_case_sensitive():
    document = Document(
        chapters=(Chapter(title="One", anchor="Chapter1"),),
        toc=(TocEntry(title="One", target="chapter1"),),
    )
    report = resolve_references(document)
    assert [s.anchor for s in report.dangling] == ["chapter1"]
    assert [s.anchor for s in report.orphans] == ["Chapter1"]


def test_report_as_dict():
    document = Document(chapters=(Chapter(title="One", anchor="one"),), toc=(TocEntry(title="One", target="one"),))
    data = resolve_references(document).as_dict()
    assert data == {
        "valid": True,
        "entries": [{"status": "ok", "anchor": "one", "title": "One", "line": None}],
    }


def test_non_ascii_anchors_resolve():
    md_text = textwrap.dedent(
        """\
        - [Глава 1](#глава1)

        <a name="глава1"></a>
        ## Глава 1
        """
    )
    report = validate_references(markdown_parser.parse_markdown(md_text))
    assert [s.anchor for s in report.ok] == ["глава1"]
    assert report.orphans == []
