from __future__ import annotations

from dataclasses import dataclass, field, fields, replace
from pathlib import Path
from typing import Any, Tuple

import yaml

from .errors import ConfigError

DEFAULT_TOC_TITLES = ("table of contents", "contents", "toc")

_OPTION_TYPES = {
    "chapter_level": int,
    "toc_titles": (list, tuple, str),
    "strict_headings": bool,
    "title": str,
    "stylesheet": str,
    "language": str,
}


@dataclass(frozen=True)
class ParserOptions:
    chapter_level: int = 2
    toc_titles: Tuple[str, ...] = DEFAULT_TOC_TITLES
    strict_headings: bool = True


@dataclass(frozen=True)
class RenderOptions:
    title: str | None = None
    stylesheet: str | None = None
    language: str = "en"


@dataclass(frozen=True)
class Config:
    parser: ParserOptions = field(default_factory=ParserOptions)
    render: RenderOptions = field(default_factory=RenderOptions)


def load_config(path: str | Path | None) -> Config:
    """Load options from a YAML file with optional ``parser`` and ``render`` sections."""
    if path is None:
        return Config()
    path = Path(path)
    if not path.exists():
        return Config()
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as exc:
        raise ConfigError(f"{path}: invalid YAML: {exc}") from exc
    if not isinstance(data, dict):
        raise ConfigError(f"{path}: config root must be a mapping.")

    unknown = set(data) - {"parser", "render"}
    if unknown:
        raise ConfigError(f"{path}: unknown section(s): {', '.join(sorted(unknown))}")

    parser = _build(ParserOptions, data.get("parser"), path)
    render = _build(RenderOptions, data.get("render"), path)
    if parser.chapter_level < 1 or parser.chapter_level > 6:
        raise ConfigError(f"{path}: parser.chapter_level must be between 1 and 6.")
    return Config(parser=parser, render=render)


def _build(cls, section: Any, path: Path):
    if section is None:
        return cls()
    if not isinstance(section, dict):
        raise ConfigError(f"{path}: section for {cls.__name__} must be a mapping.")
    known = {f.name for f in fields(cls)}
    unknown = set(section) - known
    if unknown:
        raise ConfigError(f"{path}: unknown option(s): {', '.join(sorted(unknown))}")
    values = dict(section)
    for name, value in values.items():
        expected = _OPTION_TYPES[name]
        # bool is an int subclass; chapter_level: true is still a mistake
        if not isinstance(value, expected) or (expected is int and isinstance(value, bool)):
            if value is None and getattr(cls(), name) is None:
                continue
            raise ConfigError(f"{path}: option '{name}' has wrong type {type(value).__name__}.")
    if "toc_titles" in values:
        values["toc_titles"] = tuple(str(t).casefold() for t in _normalize_list(values["toc_titles"]))
    return replace(cls(), **values)


def _normalize_list(value) -> list[str]:
    if value is None:
        return []
    if isinstance(value, (list, tuple)):
        return [str(v) for v in value]
    return [str(value)]
