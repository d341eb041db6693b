"""Command-line driver: ``tiddlyconv --platform <name> [options]``."""

from __future__ import annotations

import argparse
import logging
import sys
from collections.abc import Sequence

import httpx

from tiddlyconv.config import load_settings
from tiddlyconv.dispatch import BUILDERS, build_source
from tiddlyconv.emitter import DEFAULT_TEMPLATE, generate_html
from tiddlyconv.errors import ConverterError
from tiddlyconv.index import NoteIndex

logger = logging.getLogger(__name__)

PROG = "tiddlyconv"


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog=PROG,
        description="Convert a blog or wiki article into a TiddlyWiki HTML file.",
    )
    parser.add_argument("--platform", help=f"source platform ({', '.join(BUILDERS)})")
    parser.add_argument("--url", help="blog, post or article URL")
    parser.add_argument("--user", dest="username", help="Hashnode username")
    parser.add_argument("--host", help="Hashnode publication host")
    parser.add_argument("--xml_path", help="WordPress WXR export file")
    parser.add_argument("--api_key", help="Blogger API key")
    parser.add_argument("--blog_id", help="Blogger blog id")
    parser.add_argument("--template", help="TiddlyWiki template (default: bundled template)")
    parser.add_argument("--output", help="output file (default: <base>_import.html)")
    parser.add_argument("--config", help="YAML settings file")
    parser.add_argument("-v", "--verbose", action="store_true", help="debug logging")
    return parser


def check_notes(index: NoteIndex) -> None:
    """Log problems that would make the wiki render oddly."""
    for title in index.duplicates:
        logger.warning("Duplicate title %r: later note dropped by TiddlyWiki", title)
    for title, parent in index.dangling():
        logger.warning("Comment %r is tagged with missing parent %r", title, parent)
    if not index.is_forest():
        logger.warning("Parent tags form a cycle; threads will not render as trees")


def run(args: argparse.Namespace) -> int:
    flags = {
        name: getattr(args, name)
        for name in ("platform", "url", "username", "host", "xml_path", "api_key", "blog_id", "template", "output")
    }
    settings = load_settings(flags, config_file=args.config)
    logger.info("Converting from %s", settings.platform or "?")

    source = build_source(settings)
    notes = source.convert()
    logger.info("Converted %d notes", len(notes))

    check_notes(NoteIndex(notes))
    output = generate_html(notes, settings.template or DEFAULT_TEMPLATE, settings.output_path())
    logger.info("Created %s", output)
    return 0


def main(argv: Sequence[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(levelname)s: %(message)s",
    )
    try:
        return run(args)
    except (ConverterError, httpx.HTTPError) as exc:
        print(f"{PROG}: error: {exc}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
