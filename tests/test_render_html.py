import textwrap
from pathlib import Path

import pytest

from ChapterMap import markdown_parser
from ChapterMap.config import RenderOptions
from ChapterMap.errors import DanglingReferenceError
from ChapterMap.navigation import read_html_navigation, read_html_sections
from ChapterMap.renderer_html import render_document, render_html


def test_end_to_end_link_to_chapter():
    md_text = textwrap.dedent(
        """\
        - [Chapter 1](#chapter1)

        <a name="chapter1"></a>
        ## Chapter 1

        Clean code reads like well-written prose.
        """
    )
    document = markdown_parser.parse_markdown(md_text)
    html = render_html(document)

    assert '<a href="#chapter1">Chapter 1</a>' in html
    assert '<section id="chapter1">' in html
    assert read_html_sections(html) == ["chapter1"]


def test_render_is_idempotent(book_notes):
    document = markdown_parser.parse_markdown(book_notes)
    assert render_html(document) == render_html(document)
    assert render_html(document) == render_html(markdown_parser.parse_markdown(book_notes))


def test_navigation_round_trip(book_notes):
    document = markdown_parser.parse_markdown(book_notes)
    navigation = read_html_navigation(render_html(document))
    assert {(e.title, e.target) for e in navigation} == {(e.title, e.target) for e in document.toc}


def test_nested_navigation_keeps_levels():
    md_text = textwrap.dedent(
        """\
        - [Part One & Intro](#part1)
          - [Chapter 1](#chapter1)
        - [Part Two](#part2)

        <a name="part1"></a>
        ## Part One & Intro

        <a name="chapter1"></a>
        ### Chapter 1

        <a name="part2"></a>
        ## Part Two
        """
    )
    document = markdown_parser.parse_markdown(md_text)
    navigation = read_html_navigation(render_html(document))
    assert [(e.title, e.target, e.level) for e in navigation] == [
        ("Part One & Intro", "part1", 0),
        ("Chapter 1", "chapter1", 1),
        ("Part Two", "part2", 0),
    ]


def test_code_sample_is_escaped(book_notes):
    html = render_html(markdown_parser.parse_markdown(book_notes))
    assert '<pre><code class="language-java">public class Foo {}\n</code></pre>' in html
    assert "<em>good</em>" in html
    assert "<th>Bad</th>" in html


def test_render_options():
    document = markdown_parser.parse_markdown("## Only <b>chapter</b>\n")
    html = render_html(document, RenderOptions(title="Notes", stylesheet="book.css"))
    assert "<title>Notes</title>" in html
    assert '<link rel="stylesheet" href="book.css">' in html


def test_dangling_reference_blocks_output(tmp_path: Path):
    document = markdown_parser.parse_markdown("- [Missing](#chapterXX)\n")
    output_file = tmp_path / "out.html"
    with pytest.raises(DanglingReferenceError, match="chapterXX"):
        render_document(document, output_file)
    assert not output_file.exists()


def test_render_document_writes_file(tmp_path: Path, book_notes):
    output_file = tmp_path / "site" / "notes.html"
    render_document(markdown_parser.parse_markdown(book_notes), output_file)
    assert output_file.read_text(encoding="utf-8").startswith("<!DOCTYPE html>")
