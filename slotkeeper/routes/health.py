# slotkeeper/routes/health.py
"""Health check endpoint used by the deployment probes."""

from datetime import datetime, timezone
import logging
from typing import Any, Dict

from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.orm import Session

from .. import __version__
from ..database import get_db

logger = logging.getLogger(__name__)
router = APIRouter(tags=["health"])


@router.get("/health")
def health_check(db: Session = Depends(get_db)) -> Dict[str, Any]:
    try:
        db.execute(text("SELECT 1"))
        db_status = True
        status = "healthy"
    except Exception as e:
        logger.error(f"Database health check failed: {e}")
        db_status = False
        status = "degraded"

    return {
        "status": status,
        "version": __version__,
        "database": db_status,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }
