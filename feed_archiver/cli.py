"""Command line interface for Feed Archiver."""

import argparse
import asyncio
import logging
import sys
from pathlib import Path

from feed_archiver import __version__
from feed_archiver.config import ConfigError, load_feed_sources, load_settings
from feed_archiver.logging import setup_logging
from feed_archiver.runner import ExitCode, run

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="feed-archiver",
        description="Archive RSS/Atom feeds and publish an OPML manifest of the archives.",
    )
    parser.add_argument("--config", type=Path, default=None, help="TOML config file (default: config.toml)")
    parser.add_argument("--feeds", type=Path, default=None, help="Feed list, one URL per line")
    parser.add_argument("--archive-dir", type=Path, default=None)
    parser.add_argument("--manifest", type=Path, default=None, help="OPML manifest output path")
    parser.add_argument("--max-items", type=int, default=None, help="Items kept per archive, 0 for unlimited")
    parser.add_argument("-v", "--verbose", action="store_true")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser


def main(argv: list[str] | None = None) -> int:
    """Entry point; returns the process exit status."""
    args = build_parser().parse_args(argv)

    try:
        settings = load_settings(
            args.config,
            feeds_file=args.feeds,
            archive_dir=args.archive_dir,
            manifest_path=args.manifest,
            max_items=args.max_items,
        )
        sources = load_feed_sources(settings.feeds_file)
    except ConfigError as e:
        print(f"feed-archiver: configuration error: {e}", file=sys.stderr)
        return int(ExitCode.CONFIG_ERROR)

    setup_logging(settings, verbose=args.verbose)
    report = asyncio.run(run(settings, sources))

    code = report.exit_code
    if code is not ExitCode.OK:
        logger.error(f"Run finished with exit status {int(code)} ({code.name})")
    return int(code)


if __name__ == "__main__":
    sys.exit(main())
