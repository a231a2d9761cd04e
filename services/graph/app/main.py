"""
Graph service — FastAPI application.

Run:  uvicorn app.main:app --port 8002
"""
import logging
from contextlib import asynccontextmanager

import sqlalchemy as sa
from fastapi import FastAPI, Response, status
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from sqlalchemy.exc import SQLAlchemyError

from app.config import Settings, get_settings
from app.database import dispose_db, get_engine, init_db
from app.notes.router import router as notes_router
from app.profile.router import router as profile_router
from app.rate_limit import limiter
from app.social_graph.admin_router import router as social_admin_router
from app.social_graph.router import router as social_router
from shared.middleware import error_envelope_middleware, request_id_middleware

logger = logging.getLogger(__name__)


# ── OpenAPI metadata ──────────────────────────────────────────────────────────

_DESCRIPTION = """
## Circle Graph Service

Owns who-follows-whom for the Circle platform:

* **Follows** — follow a public account immediately, or send a follow request to a
  private one. Unfollowing cancels a pending request or removes the follow.
* **Follow requests** — private accounts approve or decline pending requests.
* **Counters** — follower / following counts kept in step with the follow edges in the
  same database transaction, with an admin-triggered and hourly reconciliation pass.
* **Notes** — a 60-character status visible for 24 hours to the author and everyone
  in a mutual follow with them.
* **Live streams** — Server-Sent Events for visible notes and profile counters.

Every `/api/v1` route expects `Authorization: Bearer <token>` issued by identity.
Admin routes require the `admin` or `super_admin` role in the token;
`/users/internal/*` requires a `service` token.

Errors come back as `{"detail": "..."}`. A `503` with a `Retry-After` header means a write conflicted repeatedly and nothing was saved.
"""

_TAGS_METADATA = [
    {
        "name": "social-graph",
        "description": (
            "Follow / unfollow, follow requests for private accounts, follower and "
            "following lists (private lists are visible to approved followers only), "
            "mutual follows and relationship state."
        ),
    },
    {
        "name": "profile",
        "description": (
            "Profiles with follower/following counts, privacy switch, live counts stream "
            "and the internal sync route used by the identity service."
        ),
    },
    {
        "name": "notes",
        "description": "Short-lived notes shared with mutual follows.",
    },
    {
        "name": "admin-social-graph",
        "description": "**Admin only.** Counter reconciliation.",
    },
]


# ── Health schema ─────────────────────────────────────────────────────────────

class HealthResponse(BaseModel):
    status: str
    service: str
    database: str


# ── App factory ───────────────────────────────────────────────────────────────

_ROUTERS = (profile_router, social_router, social_admin_router, notes_router)


@asynccontextmanager
async def lifespan(app: FastAPI):
    init_db(get_settings().graph_database_url)
    try:
        yield
    finally:
        await dispose_db()


def _install_middleware(app: FastAPI, settings: Settings) -> None:
    # Registration order is inside-out: the last one added wraps all the others,
    # so CORS headers reach every response, 429s and error envelopes included.
    app.add_middleware(SlowAPIMiddleware)
    app.middleware("http")(request_id_middleware)
    app.middleware("http")(error_envelope_middleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE"],
        allow_headers=["Authorization", "Content-Type", "X-Request-ID"],
        expose_headers=["X-Request-ID", "Retry-After"],
        max_age=600,
    )


async def _database_status() -> str:
    try:
        async with get_engine().connect() as conn:
            await conn.execute(sa.text("SELECT 1"))
    except (SQLAlchemyError, OSError, RuntimeError) as exc:
        logger.warning("Health check could not reach the database: %s", exc)
        return "unavailable"
    return "ok"


def create_app() -> FastAPI:
    settings = get_settings()
    app = FastAPI(
        title="Circle Graph Service",
        version="1.0.0",
        description=_DESCRIPTION,
        openapi_tags=_TAGS_METADATA,
        lifespan=lifespan,
    )
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
    _install_middleware(app, settings)

    for router in _ROUTERS:
        app.include_router(router, prefix="/api/v1")

    @app.get("/health", response_model=HealthResponse, tags=["health"])
    async def health(response: Response) -> HealthResponse:
        database = await _database_status()
        if database != "ok":
            response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE
        return HealthResponse(
            status="ok" if database == "ok" else "degraded",
            service="graph",
            database=database,
        )

    return app


app = create_app()
