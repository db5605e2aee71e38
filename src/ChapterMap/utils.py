from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

from .errors import InputError

FORMAT_SUFFIXES = {"html": ".html", "docx": ".docx"}


def configure_logging(verbose: bool = False) -> None:
    """Configure a simple console logger."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(levelname)s %(message)s",
    )


def infer_format(output_path: Path, requested: Optional[str]) -> str:
    if requested:
        return requested
    return "docx" if output_path.suffix.lower() == ".docx" else "html"


def resolve_output_path(input_path: Path, output: Optional[str], fmt: str = "html") -> Path:
    suffix = FORMAT_SUFFIXES[fmt]
    if output:
        out_path = Path(output)
        if out_path.is_dir():
            out_path = out_path / f"{input_path.stem}{suffix}"
        return out_path
    return input_path.with_suffix(suffix)


def read_markdown(path: Path) -> str:
    try:
        return path.read_text(encoding="utf-8")
    except UnicodeDecodeError as exc:
        raise InputError(f"{path}: not valid UTF-8 text ({exc.reason} at byte {exc.start})") from exc
    except OSError as exc:
        raise InputError(f"{path}: cannot read input: {exc.strerror or exc}") from exc
