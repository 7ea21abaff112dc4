"""FastAPI application factory for the catalog search service."""
from __future__ import annotations

import logging
from typing import List, Optional

from fastapi import FastAPI, HTTPException, Query
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field

from backend.catalog.config import AppConfig, load_config
from backend.catalog.contracts import AggregationResult, CategoryNode, Record, ZipCity
from backend.catalog.errors import UpstreamError
from backend.catalog.service import CatalogService

LOGGER = logging.getLogger(__name__)


class SearchResponse(BaseModel):
    """Aggregated search payload consumed by the presentation layer."""

    query: str
    records: List[Record] = Field(default_factory=list)
    categories: List[CategoryNode] = Field(default_factory=list)
    total_shards: int = 0
    failed_shards: int = 0
    rejected: int = 0
    all_shards_failed: bool = False


class FilterResponse(BaseModel):
    """Records filed at or below the selected category path."""

    query: str
    path: List[str] = Field(default_factory=list)
    records: List[Record] = Field(default_factory=list)
    count: int = 0


def _search_response(query: str, result: AggregationResult) -> SearchResponse:
    return SearchResponse(
        query=query,
        records=list(result.records),
        categories=list(result.categories),
        total_shards=result.total_shards,
        failed_shards=result.failed_shards,
        rejected=result.rejected,
        all_shards_failed=result.all_shards_failed,
    )


def create_app(
    *,
    config: Optional[AppConfig] = None,
    service: Optional[CatalogService] = None,
) -> FastAPI:
    """Create the FastAPI application.

    Args:
        config: Optional configuration; loaded from config.yaml when omitted.
        service: Optional pre-built search service, mainly for tests.

    Returns:
        FastAPI: Configured application instance.
    """
    resolved_config = config or load_config()
    app = FastAPI(title="Catalog Search API", version=resolved_config.pipeline.version)

    allowed_origins = resolved_config.api.allowed_origins
    if allowed_origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=allowed_origins,
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    catalog_service = service or CatalogService(config=resolved_config)
    app.state.catalog_service = catalog_service

    @app.on_event("shutdown")
    def _close_service() -> None:  # pragma: no cover - network resource cleanup
        catalog_service.close()

    @app.get("/health", tags=["system"], summary="Service health probe")
    def health() -> dict[str, str]:
        """Return service health information."""

        return {"status": "ok", "pipeline_version": resolved_config.pipeline.version}

    @app.get("/api/zipcities", tags=["search"], summary="Postal-code lookup table")
    def zip_cities() -> List[ZipCity]:
        """Return the postal-code-to-city table."""

        try:
            return catalog_service.zip_cities()
        except UpstreamError as exc:
            LOGGER.exception("Postal-code table unavailable")
            raise HTTPException(status_code=502, detail=str(exc)) from exc

    @app.get("/api/search", tags=["search"], summary="Aggregate businesses for a postal code or city")
    def search(q: str = Query("", description="Postal code or city name")) -> SearchResponse:
        """Fetch every matching shard and return the records with their category tree."""

        try:
            result = catalog_service.search(q)
        except UpstreamError as exc:
            LOGGER.exception("Search for %r failed", q)
            raise HTTPException(status_code=502, detail=str(exc)) from exc
        return _search_response(q, result)

    @app.get("/api/search/filter", tags=["search"], summary="Businesses under a category path")
    def filter_search(
        q: str = Query("", description="Postal code or city name"),
        path: Optional[List[str]] = Query(None, description="Selected category path"),
    ) -> FilterResponse:
        """Return the records filed at or below the selected category path."""

        try:
            selected = path or []
            records = catalog_service.filter(q, selected)
        except UpstreamError as exc:
            LOGGER.exception("Filtered search for %r failed", q)
            raise HTTPException(status_code=502, detail=str(exc)) from exc
        return FilterResponse(query=q, path=list(selected), records=records, count=len(records))

    return app


__all__ = ["FilterResponse", "SearchResponse", "create_app"]
