from __future__ import annotations

import io
import logging
import re
import zipfile
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Iterable

from docx import Document as DocxDocument
from docx.enum.table import WD_TABLE_ALIGNMENT
from docx.enum.text import WD_ALIGN_PARAGRAPH
from docx.image.exceptions import UnrecognizedImageError
from docx.oxml import OxmlElement
from docx.oxml.ns import qn
from docx.shared import Cm, Pt

from . import docx_format
from .config import RenderOptions
from .model import (
    Block,
    Chapter,
    CodeSample,
    Document,
    Heading,
    HorizontalRule,
    InlineElement,
    InlineImage,
    InlineLink,
    InlineText,
    ListBlock,
    Paragraph,
    Quote,
    TableBlock,
)
from .resolver import validate_references

logger = logging.getLogger(__name__)

# Fixed package metadata and zip timestamps keep repeated renders byte-identical.
FIXED_TIMESTAMP = datetime(2000, 1, 1)
FIXED_ZIP_DATE = (1980, 1, 1, 0, 0, 0)
MAX_BOOKMARK_LENGTH = 40


@dataclass
class RenderState:
    bookmarks: dict[str, str] = field(default_factory=dict)
    next_bookmark_id: int = 0
    asset_root: Path | None = None
    quote_depth: int = 0


def render_document(
    doc: Document,
    output_path: str | Path,
    options: RenderOptions | None = None,
    asset_root: Path | None = None,
) -> None:
    options = options or RenderOptions()
    validate_references(doc)

    output_path = Path(output_path)
    state = RenderState(bookmarks=bookmark_names(doc.anchors()), asset_root=asset_root)
    docx = DocxDocument()
    docx_format.apply_page_layout(docx)
    _set_core_properties(docx, options.title or doc.title)

    for block in doc.preamble:
        _dispatch_block(docx, block, state)
    if doc.toc:
        _render_toc(docx, doc, state)
    for chapter in doc.chapters:
        _render_chapter(docx, chapter, state)

    buffer = io.BytesIO()
    docx.save(buffer)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    _write_normalized(buffer.getvalue(), output_path)


def bookmark_names(anchors: Iterable[str]) -> dict[str, str]:
    """Map anchors to Word-safe bookmark names (letters, digits, underscores)."""
    names: dict[str, str] = {}
    used: set[str] = set()
    for anchor in anchors:
        base = re.sub(r"\W", "_", anchor)
        if not base or not base[0].isalpha():
            base = f"a_{base}"
        base = base[:MAX_BOOKMARK_LENGTH]
        candidate = base
        counter = 1
        while candidate in used:
            suffix = f"_{counter}"
            candidate = base[: MAX_BOOKMARK_LENGTH - len(suffix)] + suffix
            counter += 1
        used.add(candidate)
        names[anchor] = candidate
    return names


def _set_core_properties(docx: DocxDocument, title: str | None) -> None:
    props = docx.core_properties
    props.title = title or ""
    props.author = "chaptermap"
    props.last_modified_by = "chaptermap"
    props.revision = 1
    props.created = FIXED_TIMESTAMP
    props.modified = FIXED_TIMESTAMP


def _write_normalized(data: bytes, output_path: Path) -> None:
    with zipfile.ZipFile(io.BytesIO(data)) as source, zipfile.ZipFile(
        output_path, "w", compression=zipfile.ZIP_DEFLATED
    ) as target:
        for info in source.infolist():
            fixed = zipfile.ZipInfo(info.filename, date_time=FIXED_ZIP_DATE)
            fixed.compress_type = zipfile.ZIP_DEFLATED
            fixed.external_attr = info.external_attr
            target.writestr(fixed, source.read(info.filename))


def _render_toc(docx: DocxDocument, doc: Document, state: RenderState) -> None:
    if doc.toc_title is None:
        # a contents heading in the preamble stands in for this one
        title = docx.add_paragraph("Contents")
        docx_format.apply_heading_format(title, level=2)
    for entry in doc.toc:
        paragraph = docx.add_paragraph()
        _append_internal_link(paragraph, entry.title, state.bookmarks[entry.target])
        docx_format.apply_toc_entry_format(paragraph, entry.level)


def _render_chapter(docx: DocxDocument, chapter: Chapter, state: RenderState) -> None:
    paragraph = docx.add_paragraph()
    name = state.bookmarks[chapter.anchor]
    bookmark_id = str(state.next_bookmark_id)
    state.next_bookmark_id += 1

    run = paragraph.add_run(chapter.title)
    docx_format.apply_heading_format(paragraph, level=max(1, min(chapter.level, 6)))
    start = OxmlElement("w:bookmarkStart")
    start.set(qn("w:id"), bookmark_id)
    start.set(qn("w:name"), name)
    end = OxmlElement("w:bookmarkEnd")
    end.set(qn("w:id"), bookmark_id)
    run._r.addprevious(start)
    run._r.addnext(end)

    for block in chapter.blocks:
        _dispatch_block(docx, block, state)


def _dispatch_block(docx: DocxDocument, block: Block, state: RenderState) -> None:
    if isinstance(block, Heading):
        paragraph = docx.add_paragraph(block.text)
        docx_format.apply_heading_format(paragraph, level=block.level)
    elif isinstance(block, Paragraph):
        _render_paragraph(docx, block.inline, state)
    elif isinstance(block, ListBlock):
        _render_list(docx, block, state)
    elif isinstance(block, CodeSample):
        _render_code_sample(docx, block)
    elif isinstance(block, Quote):
        state.quote_depth += 1
        for inner in block.blocks:
            _dispatch_block(docx, inner, state)
        state.quote_depth -= 1
    elif isinstance(block, TableBlock):
        _render_table_block(docx, block)
    elif isinstance(block, HorizontalRule):
        _render_horizontal_rule(docx)


def _render_paragraph(docx: DocxDocument, inline_elements: Iterable[InlineElement], state: RenderState, prefix: str = ""):
    paragraph = docx.add_paragraph()
    docx_format.apply_body_paragraph_format(paragraph)
    if state.quote_depth:
        paragraph.paragraph_format.left_indent = Cm(1.0 * state.quote_depth)
    italic = bool(state.quote_depth)
    if prefix:
        docx_format.set_run_font(paragraph.add_run(prefix), italic=italic)
    for inline in inline_elements:
        if isinstance(inline, InlineText):
            run = paragraph.add_run(inline.text)
            docx_format.set_run_font(run, bold=inline.bold, italic=inline.italic or italic, code=inline.code)
        elif isinstance(inline, InlineLink):
            target = state.bookmarks.get(inline.fragment) if inline.is_internal else None
            if target is not None:
                _append_internal_link(paragraph, inline.text, target)
            else:
                run = paragraph.add_run(inline.text)
                docx_format.set_run_font(run, italic=italic)
                run.font.underline = True
        elif isinstance(inline, InlineImage):
            _add_image(paragraph, inline, state)
    return paragraph


def _render_list(docx: DocxDocument, block: ListBlock, state: RenderState) -> None:
    for idx, item in enumerate(block.items, start=1):
        prefix = f"{idx}. " if block.ordered else "• "
        if item.blocks and isinstance(item.blocks[0], Paragraph):
            paragraph = _render_paragraph(docx, item.blocks[0].inline, state, prefix=prefix)
            remaining_blocks = item.blocks[1:]
        else:
            paragraph = docx.add_paragraph(prefix.strip())
            docx_format.apply_body_paragraph_format(paragraph)
            remaining_blocks = item.blocks
        paragraph.paragraph_format.left_indent = Cm(0.75)
        paragraph.paragraph_format.space_after = Pt(2)

        for sub_block in remaining_blocks:
            _dispatch_block(docx, sub_block, state)


def _render_code_sample(docx: DocxDocument, block: CodeSample) -> None:
    paragraph = docx.add_paragraph()
    run = paragraph.add_run(block.code.rstrip("\n"))
    docx_format.set_run_font(run, code=True)
    docx_format.apply_code_format(paragraph)


def _render_horizontal_rule(docx: DocxDocument) -> None:
    paragraph = docx.add_paragraph()
    run = paragraph.add_run("* * *")
    docx_format.set_run_font(run)
    paragraph.alignment = WD_ALIGN_PARAGRAPH.CENTER
    paragraph.paragraph_format.first_line_indent = Cm(0)


def _render_table_block(docx: DocxDocument, block: TableBlock) -> None:
    row_count = len(block.rows)
    col_count = len(block.header) if block.header else (len(block.rows[0]) if block.rows else 1)
    offset = 1 if block.header else 0
    table = docx.add_table(rows=offset + row_count, cols=col_count)
    table.style = "Table Grid"
    table.alignment = WD_TABLE_ALIGNMENT.LEFT
    for idx, cell_text in enumerate(block.header):
        table.cell(0, idx).text = cell_text
    for r_idx, row in enumerate(block.rows, start=offset):
        for c_idx, cell_text in enumerate(row[:col_count]):
            table.cell(r_idx, c_idx).text = cell_text
    for r_idx, row in enumerate(table.rows):
        for cell in row.cells:
            for paragraph in cell.paragraphs:
                paragraph.paragraph_format.first_line_indent = Cm(0)
                for run in paragraph.runs:
                    docx_format.set_run_font(run, bold=bool(block.header) and r_idx == 0)


def _add_image(paragraph, image: InlineImage, state: RenderState) -> None:
    image_path = Path(image.src)
    if state.asset_root:
        candidate = state.asset_root / image.src
        if candidate.exists():
            image_path = candidate
    run = paragraph.add_run()
    placeholder = True
    if image_path.is_file():
        try:
            run.add_picture(str(image_path), width=Cm(12))
            placeholder = False
        except UnrecognizedImageError:
            logger.warning("Cannot embed image %s; writing its alt text instead", image_path)
    if placeholder:
        run.add_text(f"[Image: {image.alt or image.src}]")
    docx_format.set_run_font(run)


def _append_internal_link(paragraph, text: str, bookmark: str) -> None:
    """Insert a ``w:hyperlink`` pointing at a bookmark in the same document."""
    hyperlink = OxmlElement("w:hyperlink")
    hyperlink.set(qn("w:anchor"), bookmark)
    hyperlink.set(qn("w:history"), "1")

    run = OxmlElement("w:r")
    run_pr = OxmlElement("w:rPr")
    fonts = OxmlElement("w:rFonts")
    fonts.set(qn("w:ascii"), docx_format.FONT_NAME)
    fonts.set(qn("w:hAnsi"), docx_format.FONT_NAME)
    run_pr.append(fonts)
    color = OxmlElement("w:color")
    color.set(qn("w:val"), "1F4E79")
    run_pr.append(color)
    underline = OxmlElement("w:u")
    underline.set(qn("w:val"), "single")
    run_pr.append(underline)
    run.append(run_pr)

    text_el = OxmlElement("w:t")
    text_el.set(qn("xml:space"), "preserve")
    text_el.text = text
    run.append(text_el)
    hyperlink.append(run)
    paragraph._p.append(hyperlink)
