from __future__ import annotations

import argparse
import dataclasses
import logging
from typing import List, Optional

from plex_to_letterboxd.config import Settings
from plex_to_letterboxd.errors import PlexError
from plex_to_letterboxd.export import ExportStats, find_section_id, iter_export_rows, write_csv
from plex_to_letterboxd.plex_client import PlexClient


logger = logging.getLogger("plex-to-letterboxd")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="plex-to-letterboxd",
        description="Export Plex watch history as a Letterboxd import CSV.",
    )
    parser.add_argument("--url", help="Plex server URL (env PLEX_URL)")
    parser.add_argument("--token", help="Plex auth token (env PLEX_TOKEN)")
    parser.add_argument("--library", help="Library to export (env PLEX_LIBRARY, default Movies)")
    parser.add_argument("--output", help="CSV file to write (env OUTPUT_CSV)")
    parser.add_argument("--timeout", type=float, help="HTTP timeout in seconds (env PLEX_TIMEOUT)")
    parser.add_argument("--page-size", type=int, help="History records per request (env PAGE_SIZE)")
    parser.add_argument("--list-libraries", action="store_true", help="List libraries and exit")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    return parser


def settings_from_args(args: argparse.Namespace, base: Optional[Settings] = None) -> Settings:
    settings = base if base is not None else Settings.from_env()
    overrides = {
        "plex_url": args.url.rstrip("/") if args.url else None,
        "plex_token": args.token,
        "library": args.library,
        "output_csv": args.output,
        "timeout": args.timeout,
        "page_size": args.page_size,
    }
    return dataclasses.replace(settings, **{k: v for k, v in overrides.items() if v is not None})


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    if args.page_size is not None and args.page_size <= 0:
        parser.error("--page-size must be positive")

    stats = ExportStats()
    try:
        settings = settings_from_args(args)
        settings.require_token()
        with PlexClient(settings.plex_url, settings.plex_token, timeout=settings.timeout) as plex:
            if args.list_libraries:
                for section in plex.get_library_sections():
                    print(f"{section.title}\t{section.location_id or '-'}")
                return 0
            section_id = find_section_id(plex, settings.library)
            rows = iter_export_rows(plex, section_id, stats=stats, page_size=settings.page_size)
            write_csv(rows, settings.output_csv)
    except (PlexError, RuntimeError) as exc:
        logger.error("%s", exc)
        if stats.exported:
            logger.error("Export stopped early; %d row(s) were written before the failure", stats.exported)
        return 1

    logger.info(
        "Wrote %d row(s) to %s (%d watch(es) seen, %d skipped)",
        stats.exported, settings.output_csv, stats.processed, stats.skipped,
    )
    return 0
