"""
FastAPI dependency injection providers.

Dependencies can be overridden in tests using app.dependency_overrides, which
is how integration tests swap in an in-memory database.
"""

from __future__ import annotations

import hmac
from typing import Generator, Optional

import structlog
from fastapi import Header, HTTPException, status
from sqlalchemy.engine import Engine

from chef_bookings.config import ADMIN_KEY
from chef_bookings.db.engine import engine

logger = structlog.get_logger(__name__)


def get_db_engine() -> Generator[Engine, None, None]:
    """
    Provide database engine for dependency injection.

    Yields:
        Engine: SQLAlchemy database engine

    Testing Example:
        >>> app.dependency_overrides[get_db_engine] = lambda: sqlite_engine
        >>> client = TestClient(app)
        >>> client.get("/api/availability", params={"year": 2026, "month": 12})
    """
    yield engine


def require_admin_key(x_admin_key: Optional[str] = Header(None)) -> None:
    """
    Guard admin routes with the shared ``x-admin-key`` header.

    Fails closed: when ADMIN_KEY is not configured every admin call is rejected.

    Raises:
        HTTPException: 503 if no key is configured, 401 on a missing or wrong key
    """
    if not ADMIN_KEY:
        logger.error("admin_key_not_configured")
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Admin API is not configured",
        )

    if not x_admin_key or not hmac.compare_digest(x_admin_key, ADMIN_KEY):
        logger.warning("admin_auth_failed")
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")
