from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Generic, List, Optional, Type, TypeVar

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from plex_to_letterboxd.errors import DecodeError


T = TypeVar("T")


class Envelope(BaseModel, Generic[T]):
    """The `MediaContainer` wrapper every Plex JSON response is nested in."""

    model_config = ConfigDict(frozen=True)

    media_container: T = Field(alias="MediaContainer")


class PlexModel(BaseModel):
    # Plex is inconsistent about ids: sometimes "12", sometimes 12.
    model_config = ConfigDict(frozen=True, populate_by_name=True, coerce_numbers_to_str=True)


def viewed_date(ts: Any) -> str:
    """Convert a unix timestamp (seconds) to a UTC calendar date, YYYY-MM-DD."""
    if isinstance(ts, bool) or not isinstance(ts, int):
        raise ValueError(f"viewedAt must be an integer unix timestamp, got {ts!r}")
    if ts < 0:
        raise ValueError(f"viewedAt must not be negative, got {ts}")
    try:
        return datetime.fromtimestamp(ts, tz=timezone.utc).strftime("%Y-%m-%d")
    except (OverflowError, OSError, ValueError) as exc:
        raise ValueError(f"viewedAt {ts} is not a representable date") from exc


class HistoryRecord(PlexModel):
    """One watch from /status/sessions/history/all."""

    title: str
    # Missing for some legacy and collection entries.
    rating_key: Optional[str] = Field(default=None, alias="ratingKey")
    library_section_id: str = Field(alias="librarySectionID")
    viewed_at: str = Field(alias="viewedAt")

    @field_validator("viewed_at", mode="before")
    @classmethod
    def _normalize_viewed_at(cls, value: Any) -> str:
        return viewed_date(value)


class HistoryPage(PlexModel):
    # Plex drops the Metadata key entirely on an empty page.
    metadata: List[HistoryRecord] = Field(default_factory=list, alias="Metadata")
    # Advisory only; pagination never trusts these.
    size: int = 0
    total_size: int = Field(default=0, alias="totalSize")


class Guid(PlexModel):
    id: str


class MediaItemMetadata(PlexModel):
    rating_key: Optional[str] = Field(default=None, alias="ratingKey")
    title: Optional[str] = None
    year: Optional[int] = None
    # None when the server omits the list, [] when it sends an empty one.
    guids: Optional[List[Guid]] = Field(default=None, alias="Guid")

    def external_id(self, scheme: str) -> Optional[str]:
        """Return the id in the given namespace (imdb, tmdb, tvdb), if the item has one."""
        prefix = f"{scheme}://"
        for guid in self.guids or []:
            if guid.id.startswith(prefix):
                value = guid.id[len(prefix):].strip()
                if value:
                    return value
        return None

    @property
    def imdb_id(self) -> Optional[str]:
        return self.external_id("imdb")

    @property
    def tmdb_id(self) -> Optional[str]:
        return self.external_id("tmdb")


class MediaItem(PlexModel):
    # /library/metadata/{key} always wraps exactly one item.
    metadata: List[MediaItemMetadata] = Field(alias="Metadata", min_length=1, max_length=1)

    @property
    def item(self) -> MediaItemMetadata:
        return self.metadata[0]


class Location(PlexModel):
    id: int
    path: Optional[str] = None


class LibrarySection(PlexModel):
    title: str
    key: Optional[str] = None
    type: Optional[str] = None
    locations: List[Location] = Field(default_factory=list, alias="Location")

    @property
    def location_id(self) -> Optional[str]:
        """Id of the first location; this is what history queries are scoped by."""
        if not self.locations:
            return None
        return str(self.locations[0].id)


class LibrarySections(PlexModel):
    directories: List[LibrarySection] = Field(default_factory=list, alias="Directory")


def _describe(exc: ValidationError) -> str:
    parts = []
    for err in exc.errors()[:3]:
        loc = ".".join(str(p) for p in err.get("loc", ()))
        parts.append(f"{loc}: {err.get('msg')}" if loc else str(err.get("msg")))
    return "; ".join(parts) or str(exc)


def decode_envelope(raw: bytes, payload_type: Type[T], endpoint: str) -> T:
    """Decode a raw Plex response and return the payload inside `MediaContainer`.

    Every endpoint goes through here; a missing wrapper, a payload of the wrong
    shape or bytes that are not JSON all raise DecodeError.
    """
    try:
        envelope = Envelope[payload_type].model_validate_json(raw)  # type: ignore[valid-type]
    except ValidationError as exc:
        raise DecodeError(endpoint, _describe(exc)) from exc
    return envelope.media_container
