from pathlib import Path

import pytest
from docx import Document as DocxReader

from ChapterMap import markdown_parser
from ChapterMap.errors import DanglingReferenceError
from ChapterMap.model import Chapter, CodeSample, Document, InlineImage, InlineLink, InlineText, Paragraph, TocEntry
from ChapterMap.renderer_docx import bookmark_names, render_document


def test_render_creates_docx(tmp_path: Path):
    doc = Document(
        chapters=(
            Chapter(
                title="Chapter 1 - Clean Code",
                anchor="chapter1",
                blocks=(
                    Paragraph(inline=(InlineText("Leave the campground cleaner than you found it."),)),
                    CodeSample(language="java", code="int d; // elapsed time in days\n"),
                ),
            ),
        ),
        toc=(TocEntry(title="Chapter 1 - Clean Code", target="chapter1"),),
    )
    output_file = tmp_path / "notes.docx"
    render_document(doc, output_file)
    assert output_file.exists()
    assert output_file.stat().st_size > 0


def test_toc_links_to_chapter_bookmarks(tmp_path: Path, book_notes):
    out = tmp_path / "notes.docx"
    render_document(markdown_parser.parse_markdown(book_notes), out)
    xml = DocxReader(out).element.xml

    assert 'w:name="chapter1"' in xml
    assert 'w:name="chapter2"' in xml
    assert 'w:anchor="chapter1"' in xml
    assert "<w:bookmarkStart" in xml
    assert "<w:hyperlink" in xml
    assert "Courier New" in xml


def test_docx_output_is_byte_identical(tmp_path: Path, book_notes):
    document = markdown_parser.parse_markdown(book_notes)
    first = tmp_path / "first.docx"
    second = tmp_path / "second.docx"
    render_document(document, first)
    render_document(document, second)
    assert first.read_bytes() == second.read_bytes()


def test_dangling_reference_blocks_docx(tmp_path: Path):
    doc = Document(chapters=(), toc=(TocEntry(title="Lost", target="chapterXX"),))
    out = tmp_path / "lost.docx"
    with pytest.raises(DanglingReferenceError):
        render_document(doc, out)
    assert not out.exists()


def test_bookmark_names_are_word_safe():
    names = bookmark_names(["chapter-1", "chapter_1", "1-intro", "x" * 60])
    assert names["chapter-1"] == "chapter_1"
    assert names["chapter_1"] == "chapter_1_1"
    assert names["1-intro"] == "a_1_intro"
    assert len(names["x" * 60]) == 40


def test_unreadable_image_falls_back_to_alt_text(tmp_path: Path):
    (tmp_path / "cover.png").write_bytes(b"not an image")
    doc = Document(
        chapters=(
            Chapter(
                title="Cover",
                anchor="cover",
                blocks=(Paragraph(inline=(InlineImage(src="cover.png", alt="Cover"),)),),
            ),
        ),
        toc=(TocEntry(title="Cover", target="cover"),),
    )
    out = tmp_path / "cover.docx"
    render_document(doc, out, asset_root=tmp_path)
    assert "[Image: Cover]" in DocxReader(out).element.xml


def test_preamble_contents_heading_is_not_repeated(tmp_path: Path, book_notes):
    out = tmp_path / "notes.docx"
    render_document(markdown_parser.parse_markdown(book_notes), out)
    texts = [p.text for p in DocxReader(out).paragraphs]
    assert texts.count("Table of contents") == 1
    assert "Contents" not in texts


def test_contents_heading_added_when_missing(tmp_path: Path):
    doc = Document(chapters=(Chapter(title="One", anchor="one"),), toc=(TocEntry(title="One", target="one"),))
    out = tmp_path / "one.docx"
    render_document(doc, out)
    assert [p.text for p in DocxReader(out).paragraphs].count("Contents") == 1


def test_non_ascii_links_reach_bookmarks(tmp_path: Path):
    doc = Document(
        chapters=(
            Chapter(
                title="Café",
                anchor="café",
                blocks=(Paragraph(inline=(InlineLink(text="see", url="#caf%C3%A9"),)),),
            ),
        ),
        toc=(TocEntry(title="Café", target="café"),),
    )
    out = tmp_path / "cafe.docx"
    render_document(doc, out)
    xml = DocxReader(out).element.xml
    # toc link plus the in-text link
    assert xml.count("<w:hyperlink") == 2
