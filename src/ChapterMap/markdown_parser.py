from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Iterable, List, Sequence

import yaml
from markdown_it import MarkdownIt
from markdown_it.common.utils import unescapeAll
from mdit_py_plugins.anchors import anchors_plugin
from mdit_py_plugins.front_matter import front_matter_plugin

from .config import ParserOptions
from .errors import MalformedDocumentError
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
    ListItem,
    Paragraph,
    Quote,
    TableBlock,
    TocEntry,
)

logger = logging.getLogger(__name__)

_ANCHOR_RE = re.compile(r"""<a\s[^>]*?\b(?:name|id)\s*=\s*["']([^"']+)["'][^>]*>""", re.IGNORECASE)
_ANCHOR_CLOSE_RE = re.compile(r"</a\s*>", re.IGNORECASE)
_HTML_HEADING_RE = re.compile(r"<h([1-6])\b[^>]*>(.*?)</h\1\s*>", re.IGNORECASE | re.DOTALL)
_TAG_RE = re.compile(r"<[^>]+>")
_MISSING_SPACE_RE = re.compile(r"^ {0,3}#{1,6}[^#\s]")
_TOO_DEEP_RE = re.compile(r"^ {0,3}#{7,}(\s|$)")


@dataclass(frozen=True)
class _AnchorMark(Block):
    """Named anchor(s) standing on their own, optionally wrapping an HTML heading."""

    anchors: tuple[str, ...]
    heading: Heading | None = None


@dataclass
class _Located:
    block: Block
    line: int | None
    anchors: tuple[str, ...] = ()
    slug: str | None = None


@dataclass
class _Context:
    lines: list[str]
    options: ParserOptions
    metadata: dict = field(default_factory=dict)


def build_markdown() -> MarkdownIt:
    return (
        MarkdownIt("commonmark")
        .use(front_matter_plugin)
        .use(anchors_plugin, min_level=1, max_level=6)
        .enable(["table"])
    )


def parse_markdown(text: str, options: ParserOptions | None = None) -> Document:
    options = options or ParserOptions()
    tokens = build_markdown().parse(text)
    ctx = _Context(lines=text.splitlines(), options=options)
    located, _ = _parse_blocks(tokens, 0, stop_types=set(), ctx=ctx)
    logger.debug("Parsed %d top-level blocks", len(located))
    return _assemble(located, ctx)


def _parse_blocks(tokens, index: int, stop_types: set[str], ctx: _Context) -> tuple[list[_Located], int]:
    blocks: List[_Located] = []
    i = index
    while i < len(tokens):
        tok = tokens[i]
        if tok.type in stop_types:
            break
        line = tok.map[0] + 1 if tok.map else None
        if tok.type == "front_matter":
            ctx.metadata.update(_load_front_matter(tok.content, line))
            i += 1
        elif tok.type == "heading_open":
            level = int(tok.tag[1])
            inline = tokens[i + 1]
            children = inline.children or []
            anchors = tuple(_anchors_in(child.content for child in children if child.type == "html_inline"))
            text = _inline_text_from_children(children).strip()
            if not children:
                raise MalformedDocumentError(f"empty h{level} heading", line)
            # anchors_plugin slug, used when no explicit anchor is given
            blocks.append(_Located(Heading(level=level, text=text), line, anchors, slug=tok.attrGet("id")))
            i += 3
        elif tok.type == "paragraph_open":
            _check_heading_markers(ctx, tok.map)
            inline = tokens[i + 1]
            children = inline.children or []
            anchors = _anchor_only(children)
            if anchors:
                blocks.append(_Located(_AnchorMark(anchors=anchors), line))
            else:
                blocks.append(_Located(Paragraph(inline=tuple(_parse_inline(children))), line))
            i += 3
        elif tok.type == "html_block":
            mark = _anchor_mark_from_html(tok.content)
            heading = _html_heading(tok.content) if mark is None else None
            if mark is not None:
                blocks.append(_Located(mark, line))
            elif heading is not None:
                # lets a preceding anchor paragraph bind to an <hN> block
                blocks.append(_Located(heading, line))
            else:
                logger.debug("Skipping raw HTML block at line %s", line)
            i += 1
        elif tok.type in ("bullet_list_open", "ordered_list_open"):
            ordered = tok.type == "ordered_list_open"
            close_type = "ordered_list_close" if ordered else "bullet_list_close"
            i += 1
            items: list[ListItem] = []
            while i < len(tokens) and tokens[i].type != close_type:
                if tokens[i].type == "list_item_open":
                    item_line = tokens[i].map[0] + 1 if tokens[i].map else None
                    i += 1
                    item_blocks, i = _parse_blocks(tokens, i, stop_types={"list_item_close"}, ctx=ctx)
                    items.append(ListItem(blocks=_nested(item_blocks), line=item_line))
                    i += 1  # skip list_item_close
                else:
                    i += 1
            blocks.append(_Located(ListBlock(items=tuple(items), ordered=ordered), line))
            i += 1  # skip list close
        elif tok.type == "blockquote_open":
            inner, i = _parse_blocks(tokens, i + 1, stop_types={"blockquote_close"}, ctx=ctx)
            blocks.append(_Located(Quote(blocks=_nested(inner)), line))
            i += 1
        elif tok.type == "fence":
            _check_fence_closed(ctx, tok)
            language = tok.info.strip().split()[0] if tok.info.strip() else None
            blocks.append(_Located(CodeSample(language=language, code=tok.content), line))
            i += 1
        elif tok.type == "code_block":
            blocks.append(_Located(CodeSample(language=None, code=tok.content), line))
            i += 1
        elif tok.type == "hr":
            blocks.append(_Located(HorizontalRule(), line))
            i += 1
        elif tok.type == "table_open":
            table_block, i = _parse_table(tokens, i)
            blocks.append(_Located(table_block, line))
        else:
            i += 1
    return blocks, i


def _nested(located: Sequence[_Located]) -> tuple[Block, ...]:
    """Blocks inside lists and quotes; anchors there do not open chapters."""
    result: list[Block] = []
    for item in located:
        if isinstance(item.block, _AnchorMark):
            if item.block.heading is not None:
                result.append(item.block.heading)
            continue
        result.append(item.block)
    return tuple(result)


def _assemble(located: Sequence[_Located], ctx: _Context) -> Document:
    options = ctx.options
    explicit = _collect_explicit_anchors(located)
    used: set[str] = set(explicit)
    toc_titles = {title.casefold() for title in options.toc_titles}

    preamble: list[_Located] = []
    chapters: list[Chapter] = []
    current: dict | None = None
    pending: _Located | None = None

    def open_chapter(title: str, anchor: str, level: int, line: int | None) -> None:
        nonlocal current
        close_chapter()
        current = {"title": title, "anchor": anchor, "level": level, "line": line, "blocks": []}

    def close_chapter() -> None:
        nonlocal current
        if current is not None:
            chapters.append(
                Chapter(
                    title=current["title"],
                    anchor=current["anchor"],
                    blocks=tuple(current["blocks"]),
                    level=current["level"],
                    line=current["line"],
                )
            )
            current = None

    def open_pending_untitled() -> None:
        nonlocal pending
        if pending is not None:
            anchor = pending.block.anchors[0]
            open_chapter(anchor, anchor, options.chapter_level, pending.line)
            pending = None

    def append(item: _Located) -> None:
        if current is None:
            preamble.append(item)
        else:
            current["blocks"].append(item.block)

    for item in located:
        block = item.block
        if isinstance(block, _AnchorMark):
            open_pending_untitled()
            _log_extra_anchors(block.anchors, item.line)
            if block.heading is not None:
                open_chapter(block.heading.text or block.anchors[0], block.anchors[0], block.heading.level, item.line)
            else:
                pending = item
            continue
        if isinstance(block, Heading):
            if pending is not None:
                anchor = pending.block.anchors[0]
                open_chapter(block.text or anchor, anchor, block.level, pending.line)
                pending = None
                continue
            if item.anchors:
                _log_extra_anchors(item.anchors, item.line)
                open_chapter(block.text or item.anchors[0], item.anchors[0], block.level, item.line)
                continue
            if block.level == options.chapter_level and block.text.casefold() not in toc_titles:
                anchor = _unique(item.slug or _fallback_slug(block.text), used)
                open_chapter(block.text, anchor, block.level, item.line)
                continue
            append(item)
            continue
        open_pending_untitled()
        append(item)

    open_pending_untitled()
    close_chapter()

    toc_index, toc = _find_toc(preamble)
    preamble_blocks = tuple(item.block for idx, item in enumerate(preamble) if idx != toc_index)
    title = ctx.metadata.get("title")
    if title is None:
        title = next(
            (b.text for b in preamble_blocks if isinstance(b, Heading) and b.level == 1),
            None,
        )
    logger.debug("Found %d chapters and %d toc entries", len(chapters), len(toc))
    return Document(
        chapters=tuple(chapters),
        toc=tuple(toc),
        preamble=preamble_blocks,
        title=str(title) if title is not None else None,
        toc_title=next(
            (b.text for b in preamble_blocks if isinstance(b, Heading) and b.text.casefold() in toc_titles),
            None,
        ),
        metadata=MappingProxyType(dict(ctx.metadata)),
    )


def _collect_explicit_anchors(located: Sequence[_Located]) -> set[str]:
    seen: dict[str, int | None] = {}
    for item in located:
        if isinstance(item.block, _AnchorMark):
            names = item.block.anchors[:1]
        elif isinstance(item.block, Heading):
            names = item.anchors[:1]
        else:
            continue
        for name in names:
            if name in seen:
                first = seen[name]
                where = f" (first defined on line {first})" if first is not None else ""
                raise MalformedDocumentError(f"duplicate anchor '{name}'{where}", item.line)
            seen[name] = item.line
    return set(seen)


def _log_extra_anchors(anchors: Sequence[str], line: int | None) -> None:
    for extra in anchors[1:]:
        logger.debug("Ignoring extra anchor '%s' at line %s", extra, line)


def _unique(slug: str, used: set[str]) -> str:
    candidate = slug
    counter = 1
    while candidate in used:
        candidate = f"{slug}-{counter}"
        counter += 1
    used.add(candidate)
    return candidate


def _fallback_slug(text: str) -> str:
    slug = re.sub(r"[^\w\- ]", "", text.strip().lower().replace(" ", "-"))
    return slug or "section"


def _find_toc(preamble: Sequence[_Located]) -> tuple[int | None, list[TocEntry]]:
    for idx, item in enumerate(preamble):
        if isinstance(item.block, ListBlock):
            entries = _toc_entries(item.block, level=0)
            if entries:
                return idx, entries
    return None, []


def _toc_entries(block: ListBlock, level: int) -> list[TocEntry] | None:
    entries: list[TocEntry] = []
    for item in block.items:
        if not item.blocks or not isinstance(item.blocks[0], Paragraph):
            return None
        link = _single_internal_link(item.blocks[0].inline)
        if link is None:
            return None
        entries.append(TocEntry(title=link.text, target=link.fragment, level=level, line=item.line))
        for sub in item.blocks[1:]:
            if not isinstance(sub, ListBlock):
                return None
            nested = _toc_entries(sub, level + 1)
            if nested is None:
                return None
            entries.extend(nested)
    return entries


def _single_internal_link(inline: Sequence[InlineElement]) -> InlineLink | None:
    meaningful = [el for el in inline if not (isinstance(el, InlineText) and not el.text.strip())]
    if len(meaningful) == 1 and isinstance(meaningful[0], InlineLink) and meaningful[0].is_internal:
        return meaningful[0]
    return None


def _parse_table(tokens, index: int) -> tuple[TableBlock, int]:
    header: list[str] = []
    rows: list[tuple[str, ...]] = []
    i = index + 1
    while i < len(tokens):
        tok = tokens[i]
        if tok.type == "thead_open":
            i += 1
            while tokens[i].type != "thead_close":
                if tokens[i].type == "th_open":
                    inline = tokens[i + 1]
                    header.append(_inline_text_from_children(inline.children or []))
                    i += 3  # skip th_open, inline, th_close
                else:
                    i += 1
            i += 1
        elif tok.type == "tbody_open":
            i += 1
            while tokens[i].type != "tbody_close":
                if tokens[i].type == "tr_open":
                    row: list[str] = []
                    i += 1
                    while tokens[i].type != "tr_close":
                        if tokens[i].type in {"td_open", "th_open"}:
                            inline = tokens[i + 1]
                            row.append(_inline_text_from_children(inline.children or []))
                            i += 3
                        else:
                            i += 1
                    rows.append(tuple(row))
                    i += 1  # skip tr_close
                else:
                    i += 1
            i += 1
        elif tok.type == "table_close":
            break
        else:
            i += 1
    return TableBlock(header=tuple(header), rows=tuple(rows)), i + 1


def _parse_inline(children: Iterable) -> List[InlineElement]:
    result: List[InlineElement] = []
    bold = False
    italic = False
    i = 0
    children_list = list(children)
    while i < len(children_list):
        tok = children_list[i]
        if tok.type == "text":
            result.append(InlineText(tok.content, bold=bold, italic=italic))
            i += 1
        elif tok.type in {"softbreak", "hardbreak"}:
            result.append(InlineText(" ", bold=bold, italic=italic))
            i += 1
        elif tok.type == "strong_open":
            bold = True
            i += 1
        elif tok.type == "strong_close":
            bold = False
            i += 1
        elif tok.type == "em_open":
            italic = True
            i += 1
        elif tok.type == "em_close":
            italic = False
            i += 1
        elif tok.type == "code_inline":
            result.append(InlineText(tok.content, bold=bold, italic=italic, code=True))
            i += 1
        elif tok.type == "link_open":
            href = tok.attrGet("href") or ""
            link_text, consumed = _collect_text(children_list, i + 1, "link_close")
            result.append(InlineLink(text=link_text or href, url=href))
            i = consumed + 1
        elif tok.type == "image":
            src = tok.attrGet("src") or ""
            alt = tok.content or tok.attrGet("alt")
            result.append(InlineImage(src=src, alt=alt))
            i += 1
        else:
            i += 1
    return result


def _collect_text(tokens: Sequence, index: int, closing_type: str) -> tuple[str, int]:
    texts: list[str] = []
    i = index
    while i < len(tokens):
        tok = tokens[i]
        if tok.type == closing_type:
            break
        if tok.type in {"text", "code_inline"}:
            texts.append(tok.content)
        elif tok.type == "softbreak":
            texts.append(" ")
        i += 1
    return "".join(texts), i


def _inline_text_from_children(children: Iterable) -> str:
    texts: list[str] = []
    for child in children:
        if child.type == "text":
            texts.append(child.content)
        elif child.type == "code_inline":
            texts.append(child.content)
        elif child.type == "image":
            # alt text
            texts.append(child.content)
    return "".join(texts)


def _anchors_in(fragments: Iterable[str]) -> list[str]:
    names: list[str] = []
    for fragment in fragments:
        names.extend(match.group(1).strip() for match in _ANCHOR_RE.finditer(fragment))
    return names


def _anchor_only(children: Sequence) -> tuple[str, ...]:
    """Anchor names when a paragraph holds nothing but ``<a name=...></a>`` tags."""
    names: list[str] = []
    for child in children:
        if child.type == "html_inline":
            found = _anchors_in([child.content])
            if found:
                names.extend(found)
            elif not _ANCHOR_CLOSE_RE.fullmatch(child.content.strip()):
                return ()
        elif child.type == "softbreak" or (child.type == "text" and not child.content.strip()):
            continue
        else:
            return ()
    return tuple(names)


def _anchor_mark_from_html(content: str) -> _AnchorMark | None:
    names = _anchors_in([content])
    if not names:
        return None
    return _AnchorMark(anchors=tuple(names), heading=_html_heading(content))


def _html_heading(content: str) -> Heading | None:
    heading_match = _HTML_HEADING_RE.search(content)
    if heading_match is None:
        return None
    text = unescapeAll(_TAG_RE.sub("", heading_match.group(2))).strip()
    return Heading(level=int(heading_match.group(1)), text=" ".join(text.split()))


def _load_front_matter(content: str, line: int | None) -> dict:
    try:
        data = yaml.safe_load(content) or {}
    except yaml.YAMLError as exc:
        raise MalformedDocumentError(f"invalid front matter: {exc}", line) from exc
    if not isinstance(data, dict):
        raise MalformedDocumentError("front matter must be a YAML mapping", line)
    return data


def _check_fence_closed(ctx: _Context, tok) -> None:
    if not tok.map:
        return
    start, end = tok.map
    marker = tok.markup
    if end - start >= 2 and end - 1 < len(ctx.lines):
        closing = re.sub(r"^[\s>]*", "", ctx.lines[end - 1]).rstrip()
        if len(closing) >= len(marker) and set(closing) == {marker[0]}:
            return
    raise MalformedDocumentError(f"unterminated code fence opened with '{marker}'", start + 1)


def _check_heading_markers(ctx: _Context, line_map) -> None:
    if not ctx.options.strict_headings or not line_map:
        return
    start, end = line_map
    for offset, text in enumerate(ctx.lines[start:end]):
        if _MISSING_SPACE_RE.match(text):
            raise MalformedDocumentError(f"heading marker needs a space after '#': {text.strip()!r}", start + offset + 1)
        if _TOO_DEEP_RE.match(text):
            raise MalformedDocumentError(f"heading marker deeper than six levels: {text.strip()!r}", start + offset + 1)
