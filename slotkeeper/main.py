# slotkeeper/main.py
from __future__ import annotations

from contextlib import asynccontextmanager
import logging
from typing import AsyncGenerator, Optional

from fastapi import FastAPI

from . import __version__
from .core.config import is_running_tests, settings
from .core.constants import BRAND_NAME
from .database import SessionLocal
from .events.listeners import install_appointment_listeners
from .events.publisher import AppointmentEventPublisher
from .routes import admin, health

logger = logging.getLogger(__name__)


@asynccontextmanager
async def app_lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    logger.info(f"{BRAND_NAME} API starting up...")
    logger.info(f"Environment: {settings.environment}, business timezone: {settings.business_timezone}")
    if is_running_tests():
        logger.info("Running under pytest (test mode active)")
    yield
    logger.info(f"{BRAND_NAME} API shutting down...")


def create_app(publisher: Optional[AppointmentEventPublisher] = None, install_listeners: bool = True) -> FastAPI:
    """
    Build the API application.

    Appointment writes made through SessionLocal publish their events to the
    task queue once committed.
    """
    app = FastAPI(
        title=f"{BRAND_NAME} API",
        version=__version__,
        lifespan=app_lifespan,
    )
    app.include_router(health.router)
    app.include_router(admin.router)
    if install_listeners:
        app.state.event_publisher = install_appointment_listeners(SessionLocal, publisher)
    return app


app = create_app()
