import logging
import sys
import time
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from uvicorn.middleware.proxy_headers import ProxyHeadersMiddleware

from app.api.router import api_router
from app.config import settings
from app.core.database import init_db

# Third-party loggers that are chatty at INFO
_QUIET_LOGGERS = ("httpx", "httpcore", "anthropic", "apscheduler", "sqlalchemy.engine")

# Paths worth a log line even when they succeed
_LOGGED_PATH_KEYWORDS = ("generate", "recommendation", "internal")


def setup_logging() -> None:
    """Configure application logging."""
    logging.basicConfig(
        level=logging.DEBUG if settings.debug else logging.INFO,
        format="%(asctime)s | %(levelname)-7s | %(name)s | %(message)s",
        datefmt="%H:%M:%S",
        stream=sys.stdout,
        force=True,
    )
    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    # Requests are logged by the middleware below
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)


logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_app: FastAPI):
    """Start the worker pool and scheduler; stop them in reverse order."""
    from app.services.pipeline import get_pipeline
    from app.services.scheduler import scheduler

    setup_logging()
    logger.info(f"Neural Coach API starting up (dispatch mode: {settings.job_dispatch_mode})")
    if settings.debug:
        await init_db()

    pipeline = get_pipeline()
    await pipeline.start()
    scheduler.start()
    try:
        yield
    finally:
        scheduler.stop()
        await pipeline.stop()
        logger.info("Neural Coach API shutting down")


app = FastAPI(
    title="Neural Coach API",
    description="Training program generation and AI coach recommendations",
    version="0.1.0",
    lifespan=lifespan,
)

# Trust X-Forwarded-Proto from the TLS-terminating reverse proxy
app.add_middleware(ProxyHeadersMiddleware, trusted_hosts=["*"])

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    """Log failed requests and pipeline calls with their duration."""
    if request.method == "OPTIONS" or request.url.path == "/health":
        return await call_next(request)

    started = time.perf_counter()
    response = await call_next(request)
    duration_ms = (time.perf_counter() - started) * 1000

    path = request.url.path
    if response.status_code >= 400 or any(k in path for k in _LOGGED_PATH_KEYWORDS):
        logger.info(f"{request.method} {path} -> {response.status_code} ({duration_ms:.0f}ms)")

    return response


app.include_router(api_router)


@app.get("/health")
async def health_check():
    return {"status": "healthy"}
