from __future__ import annotations

import argparse
import logging
import sys
from dataclasses import replace
from pathlib import Path

import yaml

from . import markdown_parser, renderer_docx, renderer_html
from .config import Config, load_config
from .errors import ChapterMapError
from .resolver import resolve_references
from .utils import configure_logging, infer_format, read_markdown, resolve_output_path


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="chaptermap",
        description="Parse, cross-check and render multi-chapter Markdown documents.",
    )
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging")
    sub = parser.add_subparsers(dest="command", required=True)

    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("input", type=str, help="Path to Markdown file")
    common.add_argument("--config", type=str, help="YAML file with parser/render options")
    common.add_argument("--chapter-level", type=int, choices=range(1, 7), help="Heading level that opens a chapter")
    common.add_argument(
        "--no-strict-headings",
        action="store_true",
        help="Treat '#word' lines as text instead of failing",
    )

    render = sub.add_parser("render", parents=[common], help="Render to HTML or DOCX")
    render.add_argument("output", type=str, nargs="?", help="Output path (defaults next to input)")
    render.add_argument("--format", choices=["html", "docx"], help="Output format (default: from suffix)")
    render.add_argument("--title", type=str, help="Override the document title")
    render.add_argument("--stylesheet", type=str, help="Stylesheet URL linked from HTML output")

    check = sub.add_parser("check", parents=[common], help="Validate table-of-contents links")
    check.add_argument("--report", choices=["text", "yaml"], default="text", help="Report format")

    sub.add_parser("toc", parents=[common], help="Print the table of contents")
    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging(verbose=args.verbose)
    try:
        return _run(args)
    except ChapterMapError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 1


def _run(args: argparse.Namespace) -> int:
    input_path = Path(args.input).expanduser()
    if not input_path.exists():
        print(f"error: input file not found: {input_path}", file=sys.stderr)
        return 1
    config = _apply_overrides(load_config(args.config), args)

    logging.info("Reading %s", input_path)
    markdown_text = read_markdown(input_path)
    logging.debug("Markdown length: %d chars", len(markdown_text))

    logging.info("Parsing markdown...")
    document = markdown_parser.parse_markdown(markdown_text, config.parser)
    logging.debug("Chapters: %d, toc entries: %d", len(document.chapters), len(document.toc))

    if args.command == "toc":
        for entry in document.toc:
            print(f"{'  ' * entry.level}{entry.title} -> #{entry.target}")
        return 0

    if args.command == "check":
        report = resolve_references(document)
        if args.report == "yaml":
            print(yaml.safe_dump(report.as_dict(), sort_keys=False, allow_unicode=True), end="")
        else:
            for status in report.statuses:
                print(status.describe())
        report.raise_for_dangling()
        return 0

    output_arg = Path(args.output) if args.output else input_path
    fmt = infer_format(output_arg, args.format)
    output_path = resolve_output_path(input_path, args.output, fmt)
    logging.info("Rendering %s to %s", fmt.upper(), output_path)
    if fmt == "docx":
        renderer_docx.render_document(document, output_path, config.render, asset_root=input_path.parent)
    else:
        renderer_html.render_document(document, output_path, config.render)
    logging.info("Done. Saved to %s", output_path)
    return 0


def _apply_overrides(config: Config, args: argparse.Namespace) -> Config:
    parser_options = config.parser
    if args.chapter_level is not None:
        parser_options = replace(parser_options, chapter_level=args.chapter_level)
    if args.no_strict_headings:
        parser_options = replace(parser_options, strict_headings=False)
    render_options = config.render
    if getattr(args, "title", None):
        render_options = replace(render_options, title=args.title)
    if getattr(args, "stylesheet", None):
        render_options = replace(render_options, stylesheet=args.stylesheet)
    return Config(parser=parser_options, render=render_options)


if __name__ == "__main__":
    sys.exit(main())
