"""Shared FastAPI dependencies for API routes."""

from __future__ import annotations

import logging
import secrets

from fastapi import Header, HTTPException

from dossier.config import get_settings
from dossier.db.session import get_db  # re-export

__all__ = ["get_db", "require_internal_token"]

logger = logging.getLogger(__name__)


def require_internal_token(x_internal_token: str = Header(...)) -> None:
    """Validate the X-Internal-Token header.

    Constant-time comparison. Raises 403 if the configured token is empty or
    does not match.
    """
    expected = get_settings().internal_job_token
    if not expected or not secrets.compare_digest(x_internal_token, expected):
        logger.warning("Research intake auth failed: invalid or missing token")
        raise HTTPException(status_code=403, detail="Invalid internal token")
