"""Liveness/readiness endpoint."""

import logging

from fastapi import APIRouter, Request
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

logger = logging.getLogger(__name__)

router = APIRouter()


# Listen up, "ok" means the lifespan finished AND the database answers a trivial query.
# Spotify credentials are reported but don't degrade the status: reads and classification
# work without them.
@router.get("/health")
async def health(request: Request) -> dict[str, object]:
    state = request.app.state
    database = getattr(state, "db", None)
    db_ok = False
    if database is not None:
        try:
            async with database.session_scope() as session:
                await session.execute(text("SELECT 1"))
            db_ok = True
        except SQLAlchemyError as e:
            logger.warning(f"Health check: database unavailable: {e}")
    settings = getattr(state, "settings", None)
    return {
        "status": "ok" if db_ok else "degraded",
        "database": db_ok,
        "catalog_configured": bool(settings and settings.spotify.is_configured),
    }
