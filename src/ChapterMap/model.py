from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Iterator, Mapping, Optional, Tuple
from urllib.parse import unquote


@dataclass(frozen=True)
class Block:
    """Base class for block-level nodes."""


@dataclass(frozen=True)
class InlineElement:
    """Base class for inline nodes."""


@dataclass(frozen=True)
class InlineText(InlineElement):
    text: str
    bold: bool = False
    italic: bool = False
    code: bool = False


@dataclass(frozen=True)
class InlineLink(InlineElement):
    text: str
    url: str

    @property
    def is_internal(self) -> bool:
        return self.url.startswith("#")

    @property
    def fragment(self) -> str:
        """Target anchor with markdown-it's percent-encoding undone."""
        return unquote(self.url[1:]) if self.is_internal else ""


@dataclass(frozen=True)
class InlineImage(InlineElement):
    src: str
    alt: str | None = None


@dataclass(frozen=True)
class Heading(Block):
    level: int
    text: str


@dataclass(frozen=True)
class Paragraph(Block):
    inline: Tuple[InlineElement, ...]


@dataclass(frozen=True)
class ListItem:
    blocks: Tuple[Block, ...]
    line: int | None = None


@dataclass(frozen=True)
class ListBlock(Block):
    items: Tuple[ListItem, ...]
    ordered: bool


@dataclass(frozen=True)
class CodeSample(Block):
    """Illustrative snippet. Kept verbatim, never executed."""

    language: str | None
    code: str


@dataclass(frozen=True)
class TableBlock(Block):
    header: Tuple[str, ...]
    rows: Tuple[Tuple[str, ...], ...]


@dataclass(frozen=True)
class Quote(Block):
    blocks: Tuple[Block, ...]


@dataclass(frozen=True)
class HorizontalRule(Block):
    """Horizontal rule / thematic break."""


@dataclass(frozen=True)
class Chapter:
    title: str
    anchor: str
    blocks: Tuple[Block, ...] = ()
    level: int = 2
    line: int | None = None

    def code_samples(self) -> Iterator[CodeSample]:
        yield from _iter_code(self.blocks)


@dataclass(frozen=True)
class TocEntry:
    title: str
    target: str
    level: int = 0
    line: int | None = None


@dataclass(frozen=True)
class Document:
    chapters: Tuple[Chapter, ...]
    toc: Tuple[TocEntry, ...] = ()
    preamble: Tuple[Block, ...] = ()
    title: str | None = None
    toc_title: str | None = None
    metadata: Mapping[str, Any] = field(default_factory=lambda: MappingProxyType({}), compare=False)

    def anchors(self) -> list[str]:
        return [chapter.anchor for chapter in self.chapters]

    def chapter_by_anchor(self, anchor: str) -> Optional[Chapter]:
        for chapter in self.chapters:
            if chapter.anchor == anchor:
                return chapter
        return None


def _iter_code(blocks: Tuple[Block, ...]) -> Iterator[CodeSample]:
    for block in blocks:
        if isinstance(block, CodeSample):
            yield block
        elif isinstance(block, Quote):
            yield from _iter_code(block.blocks)
        elif isinstance(block, ListBlock):
            for item in block.items:
                yield from _iter_code(item.blocks)
