"""Main FastAPI application."""

import sys
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from loguru import logger
from opentelemetry import metrics
from opentelemetry.exporter.prometheus import PrometheusMetricReader
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from opentelemetry.sdk.metrics import MeterProvider
from opentelemetry.sdk.resources import Resource
from prometheus_client import REGISTRY, generate_latest

from .api import health, routes
from .core.config import settings
from .core.errors import LocationResolutionError
from .core.preferences import Preferences, SettingsStore
from .services.autoconfig import set_first_time_config
from .services.geocoding import NominatimClient
from .services.http import JsonClient
from .services.my_location import MyLocationResolver
from .services.updater import WeatherUpdater


def setup_logging():
    """Configure loguru for structured logging.

    Sets up logging with the configured log level from settings.
    Logs are written to stderr with structured format.
    """
    logger.remove()

    logger.add(
        sys.stderr,
        format="<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | <level>{level: <8}</level> | <cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - <level>{message}</level> | {extra}",
        level=settings.LOG_LEVEL,
        serialize=False,
        colorize=True,
        backtrace=True,
        diagnose=settings.ENVIRONMENT != "production",
    )

    logger.info("Logging configured", level=settings.LOG_LEVEL)


def setup_metrics():
    """Configure OpenTelemetry metrics with Prometheus exporter.

    Metrics are exposed at /metrics in the Prometheus text format.
    """
    reader = PrometheusMetricReader()

    resource = Resource.create(
        {
            "service.name": "simple-weather",
            "service.version": "0.1.0",
        }
    )

    provider = MeterProvider(resource=resource, metric_readers=[reader])
    metrics.set_meter_provider(provider)

    logger.info("OpenTelemetry metrics configured")


def load_store() -> SettingsStore:
    if settings.PREFERENCES_FILE is None:
        return SettingsStore()
    return SettingsStore.load(settings.PREFERENCES_FILE)


async def run_first_time_config(store: SettingsStore, resolver: MyLocationResolver) -> None:
    """Apply first-run configuration once, keeping defaults if location lookup fails."""
    if store.get_bool("is-activated"):
        return
    try:
        await set_first_time_config(store, resolver)
    except LocationResolutionError as e:
        logger.warning("First-time configuration skipped", error=str(e))
    store.set("is-activated", True)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager.

    Startup builds the preferences, HTTP client, location resolver and weather
    updater and starts the periodic refresh. Shutdown stops the updater,
    saves the preferences and closes the HTTP sessions.

    Args:
        app: FastAPI application instance
    """
    logger.info("Starting Simple Weather")

    logger.info(
        "Configuration loaded",
        upstream_timeout=settings.UPSTREAM_TIMEOUT,
        refresh_interval=settings.REFRESH_INTERVAL,
        resolver_retry_delay=settings.RESOLVER_RETRY_DELAY,
        resolver_retry_limit=settings.RESOLVER_RETRY_LIMIT,
        request_coalesce_limit=settings.REQUEST_COALESCE_LIMIT,
        preferences_file=str(settings.PREFERENCES_FILE),
        port=settings.PORT,
        log_level=settings.LOG_LEVEL,
        openmeteo_base_url=settings.OPENMETEO_BASE_URL,
    )

    store = load_store()
    prefs = Preferences(store)
    client = JsonClient()
    client.setup()

    resolver = MyLocationResolver(prefs, client)
    resolver.setup()
    await run_first_time_config(store, resolver)

    updater = WeatherUpdater(prefs, client, resolver)
    await updater.start()

    app.state.prefs = prefs
    app.state.updater = updater
    app.state.geocoder = NominatimClient(client)

    logger.info("Application ready to serve requests")

    yield

    logger.info("Shutting down Simple Weather")
    await updater.stop()
    resolver.teardown()
    prefs.free()
    if settings.PREFERENCES_FILE is not None:
        try:
            store.save(settings.PREFERENCES_FILE)
        except OSError as e:
            logger.error("Could not save preferences", error=str(e))
    await client.aclose()


setup_logging()

setup_metrics()

app = FastAPI(
    title="Simple Weather",
    description="Weather for the current or a saved location, fetched from Open-Meteo and rendered in the user's units",
    version="0.1.0",
    lifespan=lifespan,
    docs_url="/docs" if settings.LOG_LEVEL == "DEBUG" else None,
    redoc_url=None,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(health.router, tags=["Health"])
app.include_router(routes.router, tags=["Weather"])


@app.get("/metrics", include_in_schema=False)
async def metrics_endpoint():
    """Prometheus metrics endpoint.

    Exposes OpenTelemetry metrics in Prometheus format for scraping.
    """
    return Response(
        content=generate_latest(REGISTRY),
        media_type="text/plain; version=0.0.4; charset=utf-8",
    )


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Log unhandled errors and return a generic 500 without internal details."""
    logger.exception(
        "Unhandled exception",
        path=request.url.path,
        method=request.method,
    )

    return JSONResponse(
        status_code=500,
        content={"error": "Internal server error"},
    )


FastAPIInstrumentor.instrument_app(app)

logger.info("FastAPI application created")
