"""
Shared fixtures: in-memory store, fixed business day, API client.
"""

from datetime import date

import pytest
from fastapi.testclient import TestClient

import config
from services.store import MemoryTreeStore

TODAY = date(2025, 6, 15)
TOKEN = "test-token"
ADMIN = {"uid": "admin-1", "name": "Admin"}

SAMSUNG = {
    "brandName": "Samsung",
    "hierarchy": [
        {"name": "L1", "contact": "9000000001"},
        {"name": "L2", "contact": "9000000002"},
    ],
}


@pytest.fixture
def store():
    return MemoryTreeStore()


@pytest.fixture
def today():
    """Business day provider pinned to TODAY"""
    return lambda: TODAY


@pytest.fixture
def user():
    return dict(ADMIN)


def complaint_payload(**overrides):
    data = {
        "customerId": "cust-1",
        "customerName": "Asha Patel",
        "customerPhone": "9876543210",
        "title": "Samsung TV not turning on",
        "description": "Television shows no picture after power cut",
        "severity": "medium",
        "assigneeType": "service_person",
        "servicePersonName": "Ramesh",
        "servicePersonContact": "9000000001",
        "expectedResolutionDate": TODAY.isoformat(),
    }
    data.update(overrides)
    return data


@pytest.fixture
def api_store():
    return MemoryTreeStore({
        "sessions": {
            TOKEN: {"uid": ADMIN["uid"], "name": ADMIN["name"]},
            "expired-token": {"uid": "old", "name": "Old", "expiresAt": "2000-01-01T00:00:00+00:00"},
        }
    })


@pytest.fixture
def client(api_store, monkeypatch):
    """TestClient over the app with a fresh in-memory store and no scheduler"""
    from server import app

    monkeypatch.setattr(config, "SCHEDULER_ENABLED", False)
    app.state.store = api_store
    with TestClient(app) as test_client:
        yield test_client
    app.state.store = None


@pytest.fixture
def auth_headers():
    return {
        "Authorization": f"Bearer {TOKEN}",
        "Content-Type": "application/json",
    }
