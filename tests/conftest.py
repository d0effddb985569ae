# tests/conftest.py
from datetime import date
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient

from claimflow.core.models import ClaimCreate
from claimflow.main import create_app
from claimflow.notifications.hub import NotificationHub
from claimflow.services.workflow import WorkflowService
from claimflow.settings import Settings
from claimflow.store.memory import InMemoryClaimStore

LECTURER_ID = 7
COORDINATOR_ID = 21
MANAGER_ID = 31
HR_ID = 41


@pytest.fixture
def store():
    return InMemoryClaimStore(lock_timeout=0.2)


@pytest.fixture
def hub():
    return NotificationHub(send_timeout=0.2)


@pytest.fixture
def service(store, hub):
    return WorkflowService(store, hub)


@pytest.fixture
def claim_create():
    """Factory for claim requests; defaults to 38.5 h at 250.00 submitted straight away."""

    def make(**overrides) -> ClaimCreate:
        data = {
            "lecturer_id": LECTURER_ID,
            "claim_month": date(2026, 9, 1),
            "total_hours": Decimal("38.5"),
            "hourly_rate": Decimal("250.00"),
            "notes": "September contact hours",
        }
        data.update(overrides)
        return ClaimCreate(**data)

    return make


@pytest.fixture
def client():
    """Test client with the app lifespan running, so app.state is populated."""
    with TestClient(create_app(Settings())) as client:
        yield client
