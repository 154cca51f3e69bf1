from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Awaitable, TypeVar

from fastapi import Depends, FastAPI, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from .dependencies import get_orchestrator
from .search.config import DEFAULT_SEARCH_CONFIG, SearchConfig
from .search.errors import EngineAborted, SearchError
from .search.models import (
    BusinessesData,
    BusinessesResponse,
    BusinessOut,
    BusinessSearchQuery,
    ErrorResponse,
    GeoPoint,
    ListingOut,
    ListingsData,
    ListingsResponse,
    PaginationOut,
    RankingMode,
    SearchQuery,
)
from .search.orchestrator import SearchOrchestrator
from .search.pickup import SystemClock
from .sources.data_store import DataFrameCandidateSource

logger = logging.getLogger(__name__)

T = TypeVar("T")


@asynccontextmanager
async def lifespan(app: FastAPI):
    config = DEFAULT_SEARCH_CONFIG
    logging.basicConfig(level=config.log_level)
    # An engine placed on app.state before startup is kept
    if getattr(app.state, "orchestrator", None) is None:
        source = DataFrameCandidateSource.from_csv(config.data_dir)
        app.state.orchestrator = SearchOrchestrator(source, SystemClock(), config)
    yield


app = FastAPI(title="Food Map Search API", version="1.0.0", lifespan=lifespan)


# ── Error envelope ───────────────────────────────────────────────────────


@app.exception_handler(SearchError)
async def search_error_handler(request: Request, exc: SearchError) -> JSONResponse:
    if exc.http_status >= 500:
        logger.warning("Search failed on %s: %s", request.url.path, exc.message)
    return JSONResponse(
        status_code=exc.http_status,
        content=ErrorResponse(message=exc.message).model_dump(),
    )


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    problems = []
    for err in exc.errors():
        field = ".".join(str(part) for part in err.get("loc", ())[1:])
        problems.append(f"{field}: {err.get('msg', 'invalid value')}")
    return JSONResponse(
        status_code=400,
        content=ErrorResponse(message="; ".join(problems)).model_dump(),
    )


async def _with_deadline(call: Awaitable[T], config: SearchConfig) -> T:
    try:
        return await asyncio.wait_for(call, timeout=config.request_timeout_s)
    except asyncio.TimeoutError as exc:
        raise EngineAborted("Search did not finish within the request deadline") from exc


def _split_csv(raw: str | None) -> frozenset[str]:
    if not raw:
        return frozenset()
    return frozenset(part.strip() for part in raw.split(",") if part.strip())


# ── Public endpoints ─────────────────────────────────────────────────────


@app.get("/health")
def health() -> dict[str, str]:
    return {"status": "ok"}


@app.get("/listings", response_model=ListingsResponse)
async def search_listings(
    latitude: float,
    longitude: float,
    radius: float = DEFAULT_SEARCH_CONFIG.default_radius_km,
    page: int = 1,
    limit: int = DEFAULT_SEARCH_CONFIG.default_limit,
    min_price: float | None = Query(default=None, alias="minPrice"),
    max_price: float | None = Query(default=None, alias="maxPrice"),
    categories: str | None = None,
    is_halal: bool | None = Query(default=None, alias="isHalal"),
    search: str | None = None,
    prioritize_urgent: bool = Query(default=False, alias="prioritizeUrgent"),
    orchestrator: SearchOrchestrator = Depends(get_orchestrator),
) -> ListingsResponse:
    query = SearchQuery(
        center=GeoPoint(latitude=latitude, longitude=longitude),
        radius_km=radius,
        page=page,
        limit=limit,
        price_min=min_price,
        price_max=max_price,
        category_ids=_split_csv(categories),
        is_halal=is_halal,
        text=search,
        ranking_mode=RankingMode.from_flag(prioritize_urgent),
    )
    result = await _with_deadline(orchestrator.search_listings(query), orchestrator.config)
    return ListingsResponse(
        data=ListingsData(
            listings=[ListingOut.from_ranked(item) for item in result.items],
            pagination=PaginationOut.from_page(result),
        )
    )


@app.get("/businesses", response_model=BusinessesResponse)
async def search_businesses(
    latitude: float,
    longitude: float,
    radius: float = DEFAULT_SEARCH_CONFIG.default_radius_km,
    is_verified: bool | None = Query(default=None, alias="isVerified"),
    page: int = 1,
    limit: int = DEFAULT_SEARCH_CONFIG.default_limit,
    orchestrator: SearchOrchestrator = Depends(get_orchestrator),
) -> BusinessesResponse:
    query = BusinessSearchQuery(
        center=GeoPoint(latitude=latitude, longitude=longitude),
        radius_km=radius,
        page=page,
        limit=limit,
        is_verified=is_verified,
    )
    result = await _with_deadline(orchestrator.search_businesses(query), orchestrator.config)
    return BusinessesResponse(
        data=BusinessesData(
            businesses=[BusinessOut.from_ranked(item) for item in result.items],
            pagination=PaginationOut.from_page(result),
        )
    )
