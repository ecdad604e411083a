# backend/tests/conftest.py

import os
import pytest
from fastapi.testclient import TestClient
from dotenv import load_dotenv
from unittest.mock import AsyncMock

# Settings are read at import time, so the test environment has to be loaded
# before anything from storechat is imported.
load_dotenv(dotenv_path=os.path.join(os.path.dirname(__file__), "..", ".env.test"))

from storechat.main import app # noqa: E402
from storechat.models.domain import Tenant # noqa: E402
from storechat.services.jwt_service import jwt_service # noqa: E402
from storechat.utils.rate_limiter import limiter # noqa: E402


@pytest.fixture
def tenant_document():
    return {
        "id": "tenant-1",
        "username": "store_owner",
        "password": "$2b$12$notarealhash",
        "email": "owner@example.com",
        "name": "Owner",
        "message_count": 0,
        "free_messages_remaining": 50,
        "activation_code": None,
        "activation_expiry": None,
        "activation_type": None,
    }


@pytest.fixture
def tenant(tenant_document):
    return Tenant.from_document(tenant_document)


@pytest.fixture
def tenant_headers(tenant_document):
    token = jwt_service.create_tenant_token(tenant_document)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def admin_headers():
    token = jwt_service.create_admin_token("admin")
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture(scope="function")
def test_client(mocker):
    """
    Provides a TestClient for API integration tests.
    Index creation is skipped so no MongoDB server is needed.
    """
    mocker.patch("storechat.utils.lifecycle.db_service.create_indexes", new_callable=AsyncMock)
    limiter.reset()

    # The app's lifespan (startup/shutdown events) is managed by the TestClient
    with TestClient(app) as client:
        yield client
