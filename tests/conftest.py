"""
Pytest configuration and shared fixtures.
"""

from typing import Any, Dict

import pytest

from volunteer_tracker import create_app


def register(client, email: str, name: str = "Test User", password: str = "password123") -> Dict[str, str]:
    res = client.post("/api/auth/register", json={"name": name, "email": email, "password": password})
    assert res.status_code == 201, res.get_json()
    return {"Authorization": f"Bearer {res.get_json()['token']}"}


@pytest.fixture
def app(tmp_path):
    """App bound to a throwaway SQLite database."""
    application = create_app(
        {
            "TESTING": True,
            "SECRET_KEY": "test-secret",
            "DATABASE": str(tmp_path / "test.db"),
            "LOG_LEVEL": "WARNING",
        }
    )
    yield application


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def auth_headers(client) -> Dict[str, str]:
    """Bearer headers for a freshly registered user."""
    return register(client, "volunteer@example.com")


@pytest.fixture
def other_headers(app) -> Dict[str, str]:
    """Bearer headers for a second, unrelated user."""
    return register(app.test_client(), "someone.else@example.com", name="Other User")


@pytest.fixture
def location(client, auth_headers) -> Dict[str, Any]:
    res = client.post(
        "/api/locations",
        json={
            "name": "Riverside Park",
            "address": "1 River Rd",
            "coordinates": {"type": "Point", "coordinates": [174.7633, -36.8485]},
        },
        headers=auth_headers,
    )
    assert res.status_code == 201
    return res.get_json()["data"]


@pytest.fixture
def organization(client, auth_headers) -> Dict[str, Any]:
    res = client.post(
        "/api/organizations",
        json={"name": "Friends of the River", "contact": {"name": "Ana", "email": "ana@example.org"}},
        headers=auth_headers,
    )
    assert res.status_code == 201
    return res.get_json()["data"]


@pytest.fixture
def job_payload(location, organization) -> Dict[str, Any]:
    """A job entered in local time: 09:00-11:30 on 16 Jan 2024."""
    return {
        "title": "Weeding",
        "description": "Cleared the north bank",
        "date": "2024-01-16",
        "startTime": "2024-01-16T09:00:00",
        "endTime": "2024-01-16T11:30:00",
        "tags": ["cleanup", "planting"],
        "location": location["id"],
        "organization": organization["id"],
        "notes": "Bring gloves",
    }
