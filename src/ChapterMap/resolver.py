"""Cross-reference checks between the table of contents and chapter anchors.

Every TOC entry must land on exactly one chapter. Chapters nobody links to
are allowed (appendices, colophons) but reported so they can be indexed.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List

from .errors import DanglingReferenceError
from .model import Document

logger = logging.getLogger(__name__)

OK = "ok"
DANGLING = "dangling"
ORPHAN = "orphan"
DUPLICATE = "duplicate"


@dataclass(frozen=True)
class ReferenceStatus:
    status: str
    anchor: str
    title: str
    line: int | None = None

    @property
    def is_warning(self) -> bool:
        return self.status in {ORPHAN, DUPLICATE}

    def describe(self) -> str:
        where = f" (line {self.line})" if self.line is not None else ""
        if self.status == OK:
            return f"ok: '{self.title}' -> #{self.anchor}"
        if self.status == DANGLING:
            return f"dangling: toc entry '{self.title}' links to missing #{self.anchor}{where}"
        if self.status == ORPHAN:
            return f"orphan: chapter '{self.title}' (#{self.anchor}) is not in the table of contents{where}"
        return f"duplicate: toc entry '{self.title}' links to #{self.anchor} again{where}"


@dataclass(frozen=True)
class ResolutionReport:
    statuses: tuple[ReferenceStatus, ...]

    def _by(self, status: str) -> List[ReferenceStatus]:
        return [s for s in self.statuses if s.status == status]

    @property
    def ok(self) -> List[ReferenceStatus]:
        return self._by(OK)

    @property
    def dangling(self) -> List[ReferenceStatus]:
        return self._by(DANGLING)

    @property
    def orphans(self) -> List[ReferenceStatus]:
        return self._by(ORPHAN)

    @property
    def duplicates(self) -> List[ReferenceStatus]:
        return self._by(DUPLICATE)

    @property
    def is_valid(self) -> bool:
        return not self.dangling

    def raise_for_dangling(self) -> None:
        if self.dangling:
            raise DanglingReferenceError(s.anchor for s in self.dangling)

    def as_dict(self) -> dict:
        return {
            "valid": self.is_valid,
            "entries": [
                {"status": s.status, "anchor": s.anchor, "title": s.title, "line": s.line}
                for s in self.statuses
            ],
        }


def resolve_references(document: Document) -> ResolutionReport:
    """Classify every TOC entry and every chapter; never raises."""
    chapters = {chapter.anchor: chapter for chapter in document.chapters}
    statuses: list[ReferenceStatus] = []
    referenced: set[str] = set()

    for entry in document.toc:
        if entry.target not in chapters:
            statuses.append(ReferenceStatus(DANGLING, entry.target, entry.title, entry.line))
        elif entry.target in referenced:
            statuses.append(ReferenceStatus(DUPLICATE, entry.target, entry.title, entry.line))
        else:
            referenced.add(entry.target)
            statuses.append(ReferenceStatus(OK, entry.target, entry.title, entry.line))

    for chapter in document.chapters:
        if chapter.anchor not in referenced:
            statuses.append(ReferenceStatus(ORPHAN, chapter.anchor, chapter.title, chapter.line))

    return ResolutionReport(statuses=tuple(statuses))


def validate_references(document: Document) -> ResolutionReport:
    """Resolve, log warnings, and raise ``DanglingReferenceError`` on broken links."""
    report = resolve_references(document)
    for status in report.statuses:
        if status.is_warning:
            logger.warning(status.describe())
    logger.debug(
        "References: %d ok, %d dangling, %d orphan, %d duplicate",
        len(report.ok),
        len(report.dangling),
        len(report.orphans),
        len(report.duplicates),
    )
    report.raise_for_dangling()
    return report
