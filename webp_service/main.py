"""PNG to WebP conversion service - FastAPI application."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from webp_service.config import settings
from webp_service.api.v1.router import v1_router, upload_router_compat
from webp_service.api.v1 import jobs as jobs_api
from webp_service.api.v1 import upload as upload_api
from webp_service.api.v1.health import API_VERSION
from webp_service.conversion.quality_search import QualitySearchConverter
from webp_service.errors import ConversionServiceError
from webp_service.jobs.in_process_queue import InProcessQueue
from webp_service.jobs.orchestrator import JobOrchestrator
from webp_service.jobs.registry import JobRegistry
from webp_service.logging_config import configure_logging
from webp_service.storage.temp_results import TempResultStore

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown logic."""
    configure_logging(settings.log_level)
    logger.info("Starting conversion service on port %d", settings.port)
    logger.info("Temp dir: %s", settings.temp_dir)

    store = TempResultStore(settings.temp_dir)
    registry = JobRegistry()
    converter = QualitySearchConverter()
    dispatcher = InProcessQueue(workers=settings.max_concurrent_jobs)
    orchestrator = JobOrchestrator(registry, dispatcher, store, converter)

    await dispatcher.start()
    orchestrator.start()
    logger.info("Job dispatcher started")

    # Wire collaborators into API endpoints
    jobs_api.set_orchestrator(orchestrator)
    upload_api.set_converter(converter)
    upload_api.set_temp_store(store)

    yield

    logger.info("Shutting down conversion service")
    await dispatcher.stop()
    jobs_api.set_orchestrator(None)
    upload_api.set_converter(None)
    upload_api.set_temp_store(None)


app = FastAPI(
    title="PNG to WebP Conversion Service",
    description="Recompresses PNG images, single or whole archives, into size-capped WebP",
    version=API_VERSION,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(ConversionServiceError)
async def conversion_error_handler(request: Request, exc: ConversionServiceError):
    logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    return JSONResponse(status_code=exc.status_code, content={"error": exc.message})


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    detail = exc.detail
    if exc.status_code == 404 and detail == "Not Found":
        detail = "Endpoint not found"
    return JSONResponse(status_code=exc.status_code, content={"error": detail})


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception("Server error on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content={"error": "Internal server error"})


# Mount routers
app.include_router(upload_router_compat)  # /, /health, /convert-* at root
app.include_router(v1_router)  # /api/v1/jobs*


def run() -> None:
    """Console entry point: serve the app with uvicorn."""
    import uvicorn

    uvicorn.run("webp_service.main:app", host="0.0.0.0", port=settings.port)


if __name__ == "__main__":
    run()
