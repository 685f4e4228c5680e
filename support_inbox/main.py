"""FastAPI application wiring for Support Inbox.

- Configures logging, optional CORS for the agent UI, Prometheus metrics
  and rate limiting.
- Creates the inbox tables on startup when they are missing.
- Mounts the conversation API and the SSE update stream.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from prometheus_fastapi_instrumentator import Instrumentator
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware

from .__version__ import __build_date__, __commit_sha__, __version__
from .app_logging import init_logging
from .config import get_settings
from .models.session import init_db
from .rate_limit import limiter
from .routers import conversations, stream
from .timeutils import utcnow

logger = logging.getLogger("support_inbox")


@asynccontextmanager
async def lifespan(_app: FastAPI):
    init_db()
    logger.info("Support Inbox %s started", __version__)
    yield


app = FastAPI(title="Support Inbox", version=__version__, lifespan=lifespan)
init_logging(app)
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
app.add_middleware(SlowAPIMiddleware)

cors_origins = get_settings().cors_origins
if cors_origins:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(cors_origins),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

app.include_router(conversations.router)
app.include_router(stream.router)

# Expose Prometheus metrics
Instrumentator(excluded_handlers=["/api/stream"]).instrument(app).expose(
    app, include_in_schema=False, endpoint="/api/metrics"
)


@app.get("/api/health")
async def health():
    """Liveness/readiness probe with a minimal JSON body."""
    return {"status": "ok", "timestamp": utcnow().isoformat()}


@app.get("/api/version")
async def version():
    """Return version information for the application."""
    return {
        "version": __version__,
        "build_date": __build_date__,
        "commit_sha": __commit_sha__,
    }
