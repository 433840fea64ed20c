"""
FastAPI surface for BTC Levels system.

Thin HTTP layer over the level-detection pipeline: health check, JSON and
text levels reports, cache statistics. The app is the composition root: it
builds the data client, the bar series cache and the pipeline once at
startup.
"""

import uuid
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Any, Dict, Optional, Protocol

from fastapi import FastAPI, Query, Request
from fastapi.responses import JSONResponse, PlainTextResponse
from pydantic import BaseModel, Field
import uvicorn

from ..config.levels_config import LevelsConfig, get_config
from ..market_data.cache import BarSeriesCache
from ..market_data.cryptocompare import CryptoCompareClient
from ..market_data.predefined import load_predefined_levels
from ..support_resistance.pipeline import LevelsPipeline, LevelsReport
from ..utils.exceptions import (
    DataFetchException,
    DataUnavailableException,
    LevelsException,
    create_error_response,
    log_exception
)
from ..utils.helpers import format_levels_report
from ..utils.logger import configure_logging, get_logger, get_request_logger

logger = get_logger(__name__)


class PriceSource(Protocol):
    """Current price collaborator"""

    async def fetch_current_price(self) -> float:
        ...


class HealthResponse(BaseModel):
    """Health check response"""
    status: str = Field(..., description="Service status")
    service: str = Field(..., description="Service name")
    version: str = Field(..., description="Service version")
    timestamp: datetime = Field(..., description="Current timestamp")
    uptime_seconds: float = Field(..., description="Uptime in seconds")


def _status_code_for(error: LevelsException) -> int:
    if isinstance(error, DataUnavailableException):
        return 503
    if isinstance(error, DataFetchException):
        return 502
    return 400


def create_levels_app(
    config: Optional[LevelsConfig] = None,
    pipeline: Optional[LevelsPipeline] = None,
    price_source: Optional[PriceSource] = None
) -> FastAPI:
    """
    Create the FastAPI application

    Args:
        config: Application configuration
        pipeline: Prebuilt pipeline (built from config when omitted)
        price_source: Current price collaborator (CryptoCompare when omitted)

    Returns:
        FastAPI application instance
    """
    if config is None:
        config = get_config()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("Starting BTC Levels API", service=config.service_name, version=config.version)

        client = None
        if pipeline is None or price_source is None:
            client = CryptoCompareClient(config.data)

        app_pipeline = pipeline
        if app_pipeline is None:
            cache = BarSeriesCache(client, config.data)
            app_pipeline = LevelsPipeline(
                cache,
                predefined_levels=load_predefined_levels(config.data.levels_file),
                policy=config.policy
            )
            try:
                await cache.get_series()
            except DataUnavailableException as e:
                log_exception(logger, e, {"stage": "cache_prewarm"})

        app.state.pipeline = app_pipeline
        app.state.price_source = price_source or client
        app.state.started_at = datetime.now()
        logger.info("BTC Levels API ready")

        yield

        logger.info("Shutting down BTC Levels API")
        if client is not None:
            await client.close()

    app = FastAPI(
        title="BTC Levels API",
        description="Support and resistance levels derived from daily BTC history",
        version=config.version,
        docs_url="/docs" if config.api.debug else None,
        redoc_url=None,
        lifespan=lifespan
    )

    async def build_report(request: Request, price: Optional[float]) -> LevelsReport:
        request_logger = get_request_logger(str(uuid.uuid4()), endpoint=request.url.path)
        if price is None:
            price = await request.app.state.price_source.fetch_current_price()
        report = await request.app.state.pipeline.run(price)
        request_logger.info("Levels report served", price=price, stale=report.stale)
        return report

    @app.get("/", response_class=PlainTextResponse)
    async def root():
        return "BTC Levels Bot Home"

    @app.get("/health", response_model=HealthResponse)
    async def health_check(request: Request):
        started_at = getattr(request.app.state, "started_at", datetime.now())
        return HealthResponse(
            status="ok",
            service=config.service_name,
            version=config.version,
            timestamp=datetime.now(),
            uptime_seconds=(datetime.now() - started_at).total_seconds()
        )

    @app.get("/levels")
    async def get_levels(
        request: Request,
        price: Optional[float] = Query(default=None, gt=0, description="Current price override")
    ) -> Dict[str, Any]:
        report = await build_report(request, price)
        return {"success": True, "report": report.to_dict()}

    @app.get("/levels/text", response_class=PlainTextResponse)
    async def get_levels_text(
        request: Request,
        price: Optional[float] = Query(default=None, gt=0, description="Current price override")
    ):
        report = await build_report(request, price)
        return format_levels_report(report)

    @app.get("/cache")
    async def get_cache_stats(request: Request) -> Dict[str, Any]:
        return {
            "success": True,
            "cache": request.app.state.pipeline.cache.get_cache_stats(),
            "timestamp": datetime.now().isoformat()
        }

    @app.exception_handler(LevelsException)
    async def levels_exception_handler(request: Request, exc: LevelsException):
        log_exception(logger, exc, {"endpoint": request.url.path})
        return JSONResponse(
            status_code=_status_code_for(exc),
            content=create_error_response(exc)
        )

    return app


def run_server(config: Optional[LevelsConfig] = None):
    """
    Launch the API server with uvicorn

    Args:
        config: Application configuration
    """
    if config is None:
        config = get_config()

    configure_logging(
        level=config.monitoring.log_level.value,
        format_type=config.monitoring.log_format,
        log_file=config.monitoring.log_file,
        service_name=config.service_name,
        service_version=config.version,
        environment=config.environment,
        force=True
    )

    uvicorn.run(
        create_levels_app(config),
        host=config.api.host,
        port=config.api.port,
        log_level="debug" if config.api.debug else "info",
        access_log=config.api.debug
    )


def main():
    run_server()


if __name__ == "__main__":
    main()
