from __future__ import annotations

from docx.enum.text import WD_ALIGN_PARAGRAPH
from docx.shared import Cm, Pt

A4_WIDTH_MM = 210
A4_HEIGHT_MM = 297

FONT_NAME = "Georgia"
CODE_FONT_NAME = "Courier New"
FONT_SIZE_PT = 11
CODE_FONT_SIZE_PT = 9
LINE_SPACING_PT = 15
TOC_INDENT_CM = 0.75

HEADING_SIZES_PT = {1: 20, 2: 16, 3: 14, 4: 12, 5: 11, 6: 11}

MARGIN_LEFT_CM = 2.5
MARGIN_RIGHT_CM = 2.5
MARGIN_TOP_CM = 2.0
MARGIN_BOTTOM_CM = 2.0


def apply_page_layout(doc) -> None:
    """A4 page with book-style margins."""
    section = doc.sections[0]
    section.page_height = Cm(A4_HEIGHT_MM / 10)
    section.page_width = Cm(A4_WIDTH_MM / 10)
    section.left_margin = Cm(MARGIN_LEFT_CM)
    section.right_margin = Cm(MARGIN_RIGHT_CM)
    section.top_margin = Cm(MARGIN_TOP_CM)
    section.bottom_margin = Cm(MARGIN_BOTTOM_CM)


def set_run_font(run, bold: bool = False, italic: bool = False, code: bool = False, size: int | None = None) -> None:
    run.font.name = CODE_FONT_NAME if code else FONT_NAME
    run.font.size = Pt(size or (CODE_FONT_SIZE_PT if code else FONT_SIZE_PT))
    run.bold = bold
    run.italic = italic


def apply_body_paragraph_format(paragraph) -> None:
    paragraph.alignment = WD_ALIGN_PARAGRAPH.LEFT
    paragraph.paragraph_format.space_before = Pt(0)
    paragraph.paragraph_format.space_after = Pt(6)
    paragraph.paragraph_format.line_spacing = Pt(LINE_SPACING_PT)
    paragraph.paragraph_format.first_line_indent = Cm(0)


def apply_heading_format(paragraph, level: int) -> None:
    paragraph.alignment = WD_ALIGN_PARAGRAPH.LEFT
    paragraph.paragraph_format.space_before = Pt(12 if level <= 2 else 6)
    paragraph.paragraph_format.space_after = Pt(6)
    paragraph.paragraph_format.first_line_indent = Cm(0)
    paragraph.paragraph_format.keep_with_next = True
    for run in paragraph.runs:
        set_run_font(run, bold=True, size=HEADING_SIZES_PT.get(level, FONT_SIZE_PT))


def apply_code_format(paragraph) -> None:
    paragraph.alignment = WD_ALIGN_PARAGRAPH.LEFT
    paragraph.paragraph_format.first_line_indent = Cm(0)
    paragraph.paragraph_format.left_indent = Cm(0.5)
    paragraph.paragraph_format.space_before = Pt(0)
    paragraph.paragraph_format.space_after = Pt(LINE_SPACING_PT)
    paragraph.paragraph_format.line_spacing = 1.0


def apply_toc_entry_format(paragraph, level: int) -> None:
    paragraph.alignment = WD_ALIGN_PARAGRAPH.LEFT
    paragraph.paragraph_format.first_line_indent = Cm(0)
    paragraph.paragraph_format.left_indent = Cm(TOC_INDENT_CM * level)
    paragraph.paragraph_format.space_before = Pt(0)
    paragraph.paragraph_format.space_after = Pt(2)
