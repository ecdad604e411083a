# /storechat/utils/lifecycle.py

import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI

from storechat.utils.logging import setup_logging
from storechat.services.db_service import db_service
from storechat.services.messenger_service import messenger_service
from storechat.services.facebook_oauth_service import facebook_oauth_service

# Startup and shutdown of shared resources: logging, Mongo indexes and the
# outbound Graph API clients.

logger = logging.getLogger(__name__)

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager for startup and shutdown events."""
    setup_logging()

    logger.info("Application starting up...")
    await db_service.create_indexes()
    logger.info("Application startup complete. Ready to accept requests.")

    yield

    logger.info("Application shutting down...")
    await messenger_service.close()
    await facebook_oauth_service.close()
    if db_service.client:
        db_service.client.close()
