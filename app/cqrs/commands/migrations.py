from __future__ import annotations

from datetime import datetime, timezone
import logging

from fastapi import HTTPException

from app.db.connection import get_conn
from app.db.schema import ensure_schema

logger = logging.getLogger(__name__)


def run_migrations() -> dict:
    try:
        ensure_schema(get_conn())
    except Exception as exc:
        logger.exception("Migration run failed")
        raise HTTPException(status_code=500, detail="Migration failed. Check logs.") from exc
    return {"status": "ok", "applied_at": datetime.now(timezone.utc)}
