"""Read the navigation structure back out of rendered HTML."""
from __future__ import annotations

from bs4 import BeautifulSoup

from .model import TocEntry


def read_html_navigation(html: str) -> list[TocEntry]:
    soup = BeautifulSoup(html, "html.parser")
    nav = soup.find("nav", class_="toc")
    if nav is None:
        return []
    entries: list[TocEntry] = []
    for link in nav.find_all("a", href=True):
        href = link["href"]
        if not href.startswith("#"):
            continue
        depth = 0
        for parent in link.parents:
            if parent is nav:
                break
            if parent.name in {"ul", "ol"}:
                depth += 1
        entries.append(TocEntry(title=link.get_text(), target=href[1:], level=max(depth - 1, 0)))
    return entries


def read_html_sections(html: str) -> list[str]:
    """Ids of the chapter sections, in document order."""
    soup = BeautifulSoup(html, "html.parser")
    return [section["id"] for section in soup.find_all("section", id=True)]
