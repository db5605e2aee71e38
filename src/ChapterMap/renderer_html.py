from __future__ import annotations

from pathlib import Path
from typing import Iterable, Sequence

from markdown_it.common.utils import escapeHtml

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
    TocEntry,
)
from .resolver import validate_references


def render_html(doc: Document, options: RenderOptions | None = None) -> str:
    """Render a validated document as a single HTML page.

    Raises the resolver's error before producing anything if the table of
    contents does not match the chapters.
    """
    options = options or RenderOptions()
    validate_references(doc)

    title = options.title or doc.title or "Document"
    out: list[str] = [
        "<!DOCTYPE html>",
        f'<html lang="{escapeHtml(options.language)}">',
        "<head>",
        '<meta charset="utf-8">',
        f"<title>{escapeHtml(title)}</title>",
    ]
    if options.stylesheet:
        out.append(f'<link rel="stylesheet" href="{escapeHtml(options.stylesheet)}">')
    out.extend(["</head>", "<body>"])

    if doc.preamble:
        out.append("<header>")
        _render_blocks(out, doc.preamble)
        out.append("</header>")
    if doc.toc:
        _render_toc(out, doc.toc)
    for chapter in doc.chapters:
        _render_chapter(out, chapter)

    out.extend(["</body>", "</html>"])
    return "\n".join(out) + "\n"


def render_document(doc: Document, output_path: str | Path, options: RenderOptions | None = None) -> None:
    output_path = Path(output_path)
    html = render_html(doc, options)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    output_path.write_text(html, encoding="utf-8")


def _render_toc(out: list[str], entries: Sequence[TocEntry]) -> None:
    out.append('<nav class="toc">')
    depth = -1
    for entry in entries:
        level = max(0, entry.level)
        if level > depth:
            while depth < level:
                out.append("<ul>")
                depth += 1
        else:
            out.append("</li>")
            while depth > level:
                out.extend(["</ul>", "</li>"])
                depth -= 1
        out.append(f'<li><a href="#{escapeHtml(entry.target)}">{escapeHtml(entry.title)}</a>')
    if depth >= 0:
        out.append("</li>")
        while depth > 0:
            out.extend(["</ul>", "</li>"])
            depth -= 1
        out.append("</ul>")
    out.append("</nav>")


def _render_chapter(out: list[str], chapter: Chapter) -> None:
    level = min(max(chapter.level, 1), 6)
    out.append(f'<section id="{escapeHtml(chapter.anchor)}">')
    out.append(f"<h{level}>{escapeHtml(chapter.title)}</h{level}>")
    _render_blocks(out, chapter.blocks)
    out.append("</section>")


def _render_blocks(out: list[str], blocks: Iterable[Block]) -> None:
    for block in blocks:
        _dispatch_block(out, block)


def _dispatch_block(out: list[str], block: Block) -> None:
    if isinstance(block, Heading):
        level = min(max(block.level, 1), 6)
        out.append(f"<h{level}>{escapeHtml(block.text)}</h{level}>")
    elif isinstance(block, Paragraph):
        out.append(f"<p>{_render_inline(block.inline)}</p>")
    elif isinstance(block, ListBlock):
        tag = "ol" if block.ordered else "ul"
        out.append(f"<{tag}>")
        for item in block.items:
            # tight items: a lone paragraph renders inline
            if len(item.blocks) == 1 and isinstance(item.blocks[0], Paragraph):
                out.append(f"<li>{_render_inline(item.blocks[0].inline)}</li>")
            else:
                out.append("<li>")
                _render_blocks(out, item.blocks)
                out.append("</li>")
        out.append(f"</{tag}>")
    elif isinstance(block, CodeSample):
        _render_code_sample(out, block)
    elif isinstance(block, Quote):
        out.append("<blockquote>")
        _render_blocks(out, block.blocks)
        out.append("</blockquote>")
    elif isinstance(block, TableBlock):
        _render_table(out, block)
    elif isinstance(block, HorizontalRule):
        out.append("<hr>")


def _render_code_sample(out: list[str], block: CodeSample) -> None:
    cls = f' class="language-{escapeHtml(block.language)}"' if block.language else ""
    out.append(f"<pre><code{cls}>{escapeHtml(block.code)}</code></pre>")


def _render_table(out: list[str], block: TableBlock) -> None:
    out.append("<table>")
    if block.header:
        cells = "".join(f"<th>{escapeHtml(cell)}</th>" for cell in block.header)
        out.append(f"<thead><tr>{cells}</tr></thead>")
    out.append("<tbody>")
    for row in block.rows:
        cells = "".join(f"<td>{escapeHtml(cell)}</td>" for cell in row)
        out.append(f"<tr>{cells}</tr>")
    out.append("</tbody>")
    out.append("</table>")


def _render_inline(inline_elements: Iterable[InlineElement]) -> str:
    parts: list[str] = []
    for inline in inline_elements:
        if isinstance(inline, InlineText):
            text = escapeHtml(inline.text)
            if inline.code:
                text = f"<code>{text}</code>"
            if inline.italic:
                text = f"<em>{text}</em>"
            if inline.bold:
                text = f"<strong>{text}</strong>"
            parts.append(text)
        elif isinstance(inline, InlineLink):
            parts.append(f'<a href="{escapeHtml(inline.url)}">{escapeHtml(inline.text)}</a>')
        elif isinstance(inline, InlineImage):
            parts.append(f'<img src="{escapeHtml(inline.src)}" alt="{escapeHtml(inline.alt or "")}">')
    return "".join(parts)
