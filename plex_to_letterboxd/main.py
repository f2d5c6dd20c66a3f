from __future__ import annotations

import logging
import threading
from contextlib import asynccontextmanager
from itertools import islice
from typing import Any, Dict, List, Optional

from fastapi import FastAPI, Query, Request
from fastapi.responses import JSONResponse, Response

from plex_to_letterboxd.config import Settings
from plex_to_letterboxd.errors import NotFoundError, PlexError
from plex_to_letterboxd.export import ExportStats, iter_export_rows, render_csv, resolve_library
from plex_to_letterboxd.plex_client import PlexClient
from plex_to_letterboxd.store import Cache


logger = logging.getLogger("plex-to-letterboxd")


def create_app(settings: Settings, plex: Optional[PlexClient] = None) -> FastAPI:
    """Build the web front for the exporter around one shared Plex client."""
    owns_client = plex is None
    if plex is None:
        settings.require_token()
        plex = PlexClient(settings.plex_url, settings.plex_token, timeout=settings.timeout)

    cache = Cache()
    # One in-flight Plex request at a time; pagination depends on it.
    plex_lock = threading.Lock()

    @asynccontextmanager
    async def lifespan(_: FastAPI):
        yield
        if owns_client:
            plex.close()

    app = FastAPI(title="Plex to Letterboxd", lifespan=lifespan)

    @app.exception_handler(NotFoundError)
    async def _not_found(_: Request, exc: NotFoundError):
        return JSONResponse({"error": str(exc)}, status_code=404)

    @app.exception_handler(PlexError)
    async def _plex_failed(_: Request, exc: PlexError):
        logger.warning("Plex: request failed: %s", exc)
        return JSONResponse({"error": str(exc), "endpoint": exc.endpoint}, status_code=502)

    def refresh_sections(force: bool = False) -> None:
        if not force and not cache.is_stale(settings.refresh_minutes):
            return
        with plex_lock:
            sections = plex.get_library_sections()
        cache.update(sections)

    def section_id_for(library: str) -> str:
        refresh_sections(force=False)
        return resolve_library(cache.sections, library).location_id  # type: ignore[return-value]

    @app.get("/api/libraries")
    def api_libraries():
        refresh_sections(force=False)
        return JSONResponse(
            {
                "libraries": [
                    {"title": s.title, "key": s.key, "type": s.type, "locationId": s.location_id}
                    for s in cache.sections
                ],
                "lastRefresh": cache.last_refresh_ts,
            }
        )

    @app.post("/api/refresh")
    def api_force_refresh():
        """Force a refresh of the library list (useful after adding a library)."""
        refresh_sections(force=True)
        return JSONResponse({"ok": True, "lastRefresh": cache.last_refresh_ts})

    @app.get("/api/history")
    def api_history(library: str = Query(default=settings.library), limit: int = Query(default=50, ge=1, le=1000)):
        """Return the most recent watches of a library."""
        section_id = section_id_for(library)
        with plex_lock:
            history = plex.watch_history(section_id, page_size=min(limit, settings.page_size))
            records = list(islice(history, limit))
        items: List[Dict[str, Any]] = [
            {
                "title": r.title,
                "ratingKey": r.rating_key,
                "librarySectionId": r.library_section_id,
                "viewedAt": r.viewed_at,
            }
            for r in records
        ]
        return JSONResponse({"library": library, "sectionId": section_id, "items": items})

    @app.get("/api/export.csv")
    def api_export(library: str = Query(default=settings.library)):
        """Return the full Letterboxd import CSV for a library."""
        section_id = section_id_for(library)
        stats = ExportStats()
        with plex_lock:
            body = render_csv(iter_export_rows(plex, section_id, stats=stats, page_size=settings.page_size))
        logger.info(
            "Export: %s: %d row(s), %d skipped of %d watch(es)",
            library, stats.exported, stats.skipped, stats.processed,
        )
        return Response(
            content=body,
            media_type="text/csv",
            headers={"Content-Disposition": 'attachment; filename="plex_watch_history.csv"'},
        )

    return app


def app_from_env() -> FastAPI:
    """Entry point for `uvicorn --factory plex_to_letterboxd.main:app_from_env`."""
    return create_app(Settings.from_env())
