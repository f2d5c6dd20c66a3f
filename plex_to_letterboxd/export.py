from __future__ import annotations

import csv
import io
import logging
from dataclasses import dataclass
from typing import Dict, Iterable, Iterator, List, Optional, TextIO

from plex_to_letterboxd.errors import NotFoundError
from plex_to_letterboxd.history import DEFAULT_PAGE_SIZE
from plex_to_letterboxd.models import HistoryRecord, LibrarySection, MediaItemMetadata
from plex_to_letterboxd.plex_client import PlexClient


logger = logging.getLogger("export")

CSV_HEADER = ["Title", "imdbID", "tmdbID", "WatchedDate", "Tags"]
DEFAULT_TAGS = "Imported from Plex"


@dataclass(frozen=True)
class LetterboxdRow:
    title: str
    imdb_id: Optional[str]
    tmdb_id: Optional[str]
    watched_date: str
    tags: str = DEFAULT_TAGS

    def as_csv_row(self) -> List[str]:
        return [self.title, self.imdb_id or "", self.tmdb_id or "", self.watched_date, self.tags]


@dataclass
class ExportStats:
    processed: int = 0
    exported: int = 0
    skipped_no_rating_key: int = 0
    skipped_no_external_id: int = 0

    @property
    def skipped(self) -> int:
        return self.skipped_no_rating_key + self.skipped_no_external_id


def resolve_library(sections: Iterable[LibrarySection], name: str) -> LibrarySection:
    """Find a library by its exact title; it must have at least one location."""
    for section in sections:
        if section.title != name:
            continue
        if section.location_id is None:
            raise NotFoundError(f"Library {name!r} has no location id")
        return section
    raise NotFoundError(f"Library {name!r} not found on the Plex server")


def find_section_id(client: PlexClient, name: str) -> str:
    section = resolve_library(client.get_library_sections(), name)
    logger.info("Export: library %r resolved to location id %s", name, section.location_id)
    return section.location_id  # type: ignore[return-value]


def letterboxd_row(record: HistoryRecord, metadata: MediaItemMetadata, tags: str = DEFAULT_TAGS) -> Optional[LetterboxdRow]:
    """Build the import row for one watch, or None when Letterboxd could not match it.

    IMDb and TMDB ids are picked by namespace, never by position in the Guid list.
    """
    imdb_id = metadata.imdb_id
    tmdb_id = metadata.tmdb_id
    if imdb_id is None and tmdb_id is None:
        return None
    return LetterboxdRow(record.title, imdb_id, tmdb_id, record.viewed_at, tags)


def iter_export_rows(
    client: PlexClient,
    section_id: str,
    tags: str = DEFAULT_TAGS,
    stats: Optional[ExportStats] = None,
    page_size: int = DEFAULT_PAGE_SIZE,
) -> Iterator[LetterboxdRow]:
    """Yield one row per exportable watch in the section, newest first.

    Watches with no rating key or no usable external id are skipped; any
    Plex error stops the export and propagates.
    """
    stats = stats if stats is not None else ExportStats()
    # Rewatches share a rating key.
    metadata_cache: Dict[str, MediaItemMetadata] = {}
    for record in client.watch_history(section_id, page_size=page_size):
        stats.processed += 1
        if record.rating_key is None:
            stats.skipped_no_rating_key += 1
            logger.info("Export: skipping %s: missing rating key", record.title)
            continue
        metadata = metadata_cache.get(record.rating_key)
        if metadata is None:
            metadata = client.get_media_item_metadata(record.rating_key)
            metadata_cache[record.rating_key] = metadata
        row = letterboxd_row(record, metadata, tags)
        if row is None:
            stats.skipped_no_external_id += 1
            logger.info("Export: skipping %s: no imdb or tmdb id", record.title)
            continue
        stats.exported += 1
        yield row


def write_rows(rows: Iterable[LetterboxdRow], out: TextIO) -> int:
    writer = csv.writer(out)
    writer.writerow(CSV_HEADER)
    count = 0
    for row in rows:
        writer.writerow(row.as_csv_row())
        count += 1
    return count


def write_csv(rows: Iterable[LetterboxdRow], path: str) -> int:
    """Write rows to a CSV file as they arrive; rows written before an error stay on disk."""
    with open(path, "w", newline="", encoding="utf-8") as f:
        return write_rows(rows, f)


def render_csv(rows: Iterable[LetterboxdRow]) -> str:
    buf = io.StringIO()
    write_rows(rows, buf)
    return buf.getvalue()
