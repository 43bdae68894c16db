# slotkeeper/routes/admin.py
"""
Administrative triggers for the scheduled runs.

Each endpoint runs the job inline and returns its summary. Access requires the
X-Admin-Token header when ADMIN_API_TOKEN is configured.
"""

import hmac
import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Header, Query
from sqlalchemy.orm import Session

from ..core.config import settings
from ..core.exceptions import DomainException, UnauthorizedException
from ..core.run_context import RunContext
from ..database import SessionFactory, SessionLocal, get_db
from ..services.agenda_summary import AgendaSummaryService
from ..services.next_slot_service import NextSlotService
from ..services.reminder_sweeper import ReminderSweeper
from ..services.slot_sweeper import SlotSweeper

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin", tags=["admin"])


def get_session_factory() -> SessionFactory:
    """Factory for the per-item sessions opened by fan-out runs."""
    return SessionLocal


def verify_admin_token(
    x_admin_token: Optional[str] = Header(None, alias="X-Admin-Token"),
) -> None:
    expected = settings.admin_api_token
    if expected is None:
        return
    if not x_admin_token or not hmac.compare_digest(x_admin_token, expected.get_secret_value()):
        logger.warning("Rejected admin request with missing or invalid token")
        raise UnauthorizedException("Invalid admin token").to_http_exception()


@router.post("/providers/{provider_id}/next-slot", dependencies=[Depends(verify_admin_token)])
def recalculate_provider_slot(provider_id: str, db: Session = Depends(get_db)) -> Dict[str, Any]:
    """Recompute one provider's next available slot."""
    try:
        result = NextSlotService(db, RunContext(name="admin_recalculate_provider")).refresh_provider(
            provider_id
        )
    except DomainException as e:
        raise e.to_http_exception()
    return result.to_dict()


@router.post("/next-slot/sweep", dependencies=[Depends(verify_admin_token)])
def sweep_next_slots(
    force: bool = Query(False, description="Recompute every published provider"),
    db: Session = Depends(get_db),
    session_factory: SessionFactory = Depends(get_session_factory),
) -> Dict[str, Any]:
    try:
        summary = SlotSweeper(db, session_factory, RunContext(name="admin_slot_sweep")).run(force=force)
    except DomainException as e:
        raise e.to_http_exception()
    return summary.to_dict()


@router.post("/reminders/run", dependencies=[Depends(verify_admin_token)])
def run_reminders(
    provider_id: Optional[str] = Query(None, description="Limit the run to one provider"),
    db: Session = Depends(get_db),
    session_factory: SessionFactory = Depends(get_session_factory),
) -> Dict[str, Any]:
    try:
        summary = ReminderSweeper(db, session_factory, RunContext(name="admin_reminders")).run(
            provider_id=provider_id
        )
    except DomainException as e:
        raise e.to_http_exception()
    return summary.to_dict()


@router.post("/agenda/run", dependencies=[Depends(verify_admin_token)])
def run_agenda_summary(
    provider_id: Optional[str] = Query(None, description="Limit the run to one provider"),
    db: Session = Depends(get_db),
    session_factory: SessionFactory = Depends(get_session_factory),
) -> Dict[str, Any]:
    try:
        summary = AgendaSummaryService(db, session_factory, RunContext(name="admin_agenda")).run(
            provider_id=provider_id
        )
    except DomainException as e:
        raise e.to_http_exception()
    return summary.to_dict()
