"""
HTTP API Server for event search.

Endpoints:
    GET /api/events/search   aggregated, deduplicated, ranked events
    GET /health              circuit breaker and cache state
    GET /health/providers    live connectivity check of every provider

Status codes for search:
    200  at least one provider answered (partial results allowed)
    400  invalid parameters, no provider contacted
    503  every provider failed; body keeps the normal shape with no events
"""

import asyncio
import logging
import os
from contextlib import asynccontextmanager
from typing import Any, Dict, List, Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from ..application.search import AggregatedResponse
from ..container import ApplicationContainer
from ..core.exceptions import AggregateFailureError, InvalidQueryError

logger = logging.getLogger(__name__)

DEFAULT_API_PORT = 8080


# Pydantic models for API responses
class ValidationErrorResponse(BaseModel):
    """Invalid search parameters."""
    error: str
    errors: List[str]


class HealthResponse(BaseModel):
    """Health check response."""
    status: str
    providers: List[str]
    circuits: Dict[str, Dict[str, Any]]
    cache: Dict[str, float]


class ProviderHealthResponse(BaseModel):
    """Connectivity of each enabled provider."""
    status: str
    providers: Dict[str, bool]


def _query_params(request: Request) -> Dict[str, Any]:
    """Flatten the query string; repeated keys become lists."""
    params: Dict[str, Any] = {}
    for key in request.query_params.keys():
        values = request.query_params.getlist(key)
        params[key] = values[0] if len(values) == 1 else values
    return params


def create_app(container: Optional[ApplicationContainer] = None) -> FastAPI:
    """
    Create the FastAPI application.

    Args:
        container: DI container; a default one reading the environment is
            built when omitted.

    Returns:
        Configured FastAPI instance.
    """
    if container is None:
        container = ApplicationContainer()
        container.config.from_dict({"config_path": os.environ.get("EVENT_SEARCH_CONFIG")})

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Application lifespan manager."""
        # Startup: build the pipeline once so configuration errors surface early
        aggregator = container.aggregator()
        logger.info(
            f"Event search API ready with providers: {aggregator.coordinator.provider_ids}"
        )

        yield

        # Shutdown
        logger.info("Event search API shutting down")
        for provider in container.event_providers():
            close = getattr(provider, "close", None)
            if close is not None:
                await close()

    app = FastAPI(
        title="Event Search API",
        description="Aggregated event search across Ticketmaster, Eventbrite and RapidAPI.",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.container = container

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET"],
        allow_headers=["*"],
    )

    @app.get(
        "/api/events/search",
        responses={
            400: {"model": ValidationErrorResponse, "description": "Invalid search parameters"},
            503: {"description": "Every event provider failed"},
        },
    )
    async def search_events(request: Request):
        """
        Search events across every enabled provider.

        Query parameters: keyword (or q), lat, lng, radius, start_date,
        end_date, category, price_min, price_max, limit, offset, sort,
        force_refresh.
        """
        aggregator = container.aggregator()
        try:
            response = await aggregator.search_params(_query_params(request))
        except InvalidQueryError as e:
            logger.info(f"Rejected search: {e}")
            return JSONResponse(
                status_code=e.http_status,
                content={"error": str(e), "errors": e.errors},
            )
        except AggregateFailureError as e:
            logger.error(f"Search failed: {e}")
            return JSONResponse(
                status_code=e.http_status,
                content=AggregatedResponse.from_failure(e).to_dict(),
            )
        return response.to_dict()

    @app.get("/health", response_model=HealthResponse)
    async def health_check():
        """Health check endpoint."""
        aggregator = container.aggregator()
        provider_ids = aggregator.coordinator.provider_ids
        circuits = container.guards().snapshot()

        if not provider_ids:
            status = "unavailable"
        elif any(info["circuit"] != "closed" for info in circuits.values()):
            status = "degraded"
        else:
            status = "healthy"

        return HealthResponse(
            status=status,
            providers=provider_ids,
            circuits=circuits,
            cache=aggregator.cache.stats.to_dict(),
        )

    @app.get("/health/providers", response_model=ProviderHealthResponse)
    async def provider_health():
        """Run a minimal search against every provider, bypassing the pipeline."""
        event_providers = container.aggregator().coordinator.providers
        outcomes = await asyncio.gather(
            *(p.test_connection() for p in event_providers),
            return_exceptions=True,
        )

        reachable: Dict[str, bool] = {}
        for provider, outcome in zip(event_providers, outcomes):
            if isinstance(outcome, Exception):
                logger.warning(f"Connection test for {provider.provider_id} raised: {outcome!r}")
                reachable[provider.provider_id] = False
            else:
                reachable[provider.provider_id] = bool(outcome)

        if reachable and all(reachable.values()):
            status = "healthy"
        elif any(reachable.values()):
            status = "degraded"
        else:
            status = "unavailable"
        return ProviderHealthResponse(status=status, providers=reachable)

    return app


def run_api_server(
    host: str = "127.0.0.1",
    port: int = DEFAULT_API_PORT,
    config_path: Optional[str] = None,
    log_level: str = "info",
):
    """
    Run the HTTP API server.

    Args:
        host: Host to bind to (default: 127.0.0.1 for local only)
        port: Port to bind to (default: 8080)
        config_path: Optional YAML settings file
        log_level: uvicorn log level
    """
    import uvicorn

    container = ApplicationContainer()
    container.config.from_dict({"config_path": config_path or os.environ.get("EVENT_SEARCH_CONFIG")})
    # Raises ConfigurationError before the server binds
    container.settings()

    logger.info(f"Starting event search API on {host}:{port}")
    uvicorn.run(create_app(container), host=host, port=port, log_level=log_level)
