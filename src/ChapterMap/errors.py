from __future__ import annotations

from typing import Iterable


class ChapterMapError(Exception):
    """Base class for errors that end a run."""


class MalformedDocumentError(ChapterMapError):
    """Structural problem in the source text (bad heading, open fence, ...)."""

    def __init__(self, message: str, line: int | None = None) -> None:
        self.line = line
        if line is not None:
            message = f"line {line}: {message}"
        super().__init__(message)


class DanglingReferenceError(ChapterMapError):
    """Table-of-contents entries that point at no chapter anchor."""

    def __init__(self, targets: Iterable[str]) -> None:
        self.targets = list(targets)
        listed = ", ".join(f"#{target}" for target in self.targets)
        super().__init__(f"table of contents links to missing anchor(s): {listed}")


class ConfigError(ChapterMapError):
    """Invalid configuration file or option."""


class InputError(ChapterMapError):
    """Input file that cannot be read as UTF-8 text."""
