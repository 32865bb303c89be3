from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from auvio_podcast.routers import podcast
import os
import traceback
import logging
from datetime import datetime

from auvio_podcast.config.settings import load_settings
from auvio_podcast.errors import (
    AuthError,
    AuvioError,
    ConfigurationError,
    DeadlineExceededError,
    ExtractionError,
    NetworkError,
    ValidationError,
)
from auvio_podcast.providers.program import ProgramPipeline
from auvio_podcast.utils.cache import create_cache_store
from auvio_podcast.utils.credentials import has_auvio_credentials, load_credentials

import sys
import tempfile

# Console logging always, file logging only when enabled and writable
LOG_FILE_PATH = os.getenv('LOG_FILE', os.path.join(tempfile.gettempdir(), 'auvio_podcast.log'))
LOG_TO_FILE = os.getenv('LOG_TO_FILE', 'false').lower() in ('1', 'true', 'yes', 'on')
LOG_LEVEL = os.getenv('LOG_LEVEL', 'INFO').upper()
FILE_LOG_ENABLED = False

handlers = []

console_handler = logging.StreamHandler(sys.stdout)
formatter = logging.Formatter('%(asctime)s - %(name)s - %(levelname)s - %(message)s')
console_handler.setFormatter(formatter)
handlers.append(console_handler)

if LOG_TO_FILE:
    try:
        os.makedirs(os.path.dirname(LOG_FILE_PATH), exist_ok=True)
        file_handler = logging.FileHandler(LOG_FILE_PATH, encoding='utf-8')
        file_handler.setFormatter(formatter)
        handlers.append(file_handler)
        FILE_LOG_ENABLED = True
    except OSError:
        FILE_LOG_ENABLED = False

logging.basicConfig(
    level=getattr(logging, LOG_LEVEL, logging.INFO),
    handlers=handlers
)
logger = logging.getLogger(__name__)

app = FastAPI(
    title="Auvio Podcasts",
    description="Podcast feeds for RTBF Auvio programs",
    version="1.0.0"
)

# Most specific class first
ERROR_STATUS = (
    (ValidationError, 400),
    (ConfigurationError, 500),
    (DeadlineExceededError, 504),
    (NetworkError, 502),
    (ExtractionError, 502),
    (AuthError, 502),
)


def status_for_error(exc: AuvioError) -> int:
    for error_class, status_code in ERROR_STATUS:
        if isinstance(exc, error_class):
            return status_code
    return 500


def _error_body(error: str, exc: Exception, request: Request) -> dict:
    return {
        "error": error,
        "message": str(exc),
        "type": type(exc).__name__,
        "timestamp": datetime.now().isoformat(),
        "path": str(request.url)
    }


@app.middleware("http")
async def log_requests_and_responses(request: Request, call_next):
    """Log every request with its status and timing"""
    start_time = datetime.now()
    logger.info(f"🔍 REQUEST: {request.method} {request.url}")

    try:
        response = await call_next(request)
        process_time = (datetime.now() - start_time).total_seconds()
        logger.info(f"✅ RESPONSE: {response.status_code} in {process_time:.3f}s")
        return response
    except Exception as e:
        process_time = (datetime.now() - start_time).total_seconds()
        logger.error(f"❌ ERROR in {request.method} {request.url} after {process_time:.3f}s")
        logger.error(f"   Error Type: {type(e).__name__}")
        logger.error(f"   Error Message: {str(e)}")
        logger.error(traceback.format_exc())
        return JSONResponse(status_code=500, content=_error_body("Internal Server Error", e, request))


@app.exception_handler(AuvioError)
async def pipeline_exception_handler(request: Request, exc: AuvioError):
    status_code = status_for_error(exc)
    logger.error(f"❌ {type(exc).__name__} for {request.method} {request.url}: {exc}")
    return JSONResponse(status_code=status_code, content=_error_body("Pipeline Error", exc, request))


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Global exception handler that logs everything"""
    logger.error("🚨 GLOBAL EXCEPTION HANDLER TRIGGERED")
    logger.error(f"   Request: {request.method} {request.url}")
    logger.error(f"   Exception Type: {type(exc).__name__}")
    logger.error(f"   Exception Message: {str(exc)}")
    logger.error(traceback.format_exc())

    body = _error_body("Unhandled Exception", exc, request)
    body["note"] = f"Check {LOG_FILE_PATH} for full details" if FILE_LOG_ENABLED else "Check logs for full details"
    return JSONResponse(status_code=500, content=body)


app.include_router(podcast.router, prefix="", tags=["podcast"])


@app.on_event("startup")
async def startup():
    settings = load_settings()
    store = create_cache_store(settings)
    store.open()
    app.state.settings = settings
    app.state.store = store
    app.state.pipeline = ProgramPipeline(store, settings=settings)
    logger.info(
        f"🔧 Started with cache={settings.cache_backend} base_url={settings.base_url} "
        f"workers={settings.enclosure_workers} deadline={settings.pipeline_deadline}s"
    )

    # Sanitized: only provider names and key names, never values
    creds = load_credentials()
    summary = {
        name: sorted(val.keys()) if isinstance(val, dict) else f"<{type(val).__name__}>"
        for name, val in creds.items()
    }
    logger.info(f"✅ Credentials keys by provider (sanitized): {summary}")
    if not has_auvio_credentials():
        logger.warning("⚠️ Auvio credentials are not configured, program requests will fail")


@app.on_event("shutdown")
async def shutdown():
    store = getattr(app.state, "store", None)
    if store is not None:
        store.close()


@app.get("/debug/status")
async def get_debug_status():
    """Server status and effective configuration"""
    settings = app.state.settings
    return {
        "status": "running",
        "timestamp": datetime.now().isoformat(),
        "environment": {
            "HOST": settings.host,
            "PORT": settings.port,
            "BASE_URL": settings.base_url,
            "CACHE_BACKEND": settings.cache_backend,
            "LOG_LEVEL": LOG_LEVEL
        },
        "logging": {
            "file_enabled": FILE_LOG_ENABLED,
            "log_file_path": LOG_FILE_PATH,
        }
    }
