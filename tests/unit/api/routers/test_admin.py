"""
Tests for the /api/admin/api-keys endpoints.

Covers:
- Add key (201, masked response)
- List keys with usage counters
- Deactivate key (204 / 404)
"""

import pytest
from fastapi import status

from pixelforge.api import dependencies
from pixelforge.api.main import app
from pixelforge.domain.generation.entities.api_key import ApiKey

ADMIN_HEADERS = {"Authorization": "Bearer root-secret"}


class InMemoryKeyPool:
    def __init__(self):
        self.keys = {}

    def add_key(self, value, key_id=None):
        key = ApiKey(id=key_id or f"key-{len(self.keys) + 1}", value=value)
        self.keys[key.id] = key
        return key

    def list_keys(self):
        return list(self.keys.values())

    def deactivate(self, key_id):
        key = self.keys.get(key_id)
        if key is None or not key.active:
            return False
        key.active = False
        return True


@pytest.fixture
def pool():
    return InMemoryKeyPool()


@pytest.fixture
def admin_client(client, pool, monkeypatch):
    monkeypatch.setenv("ADMIN_TOKEN", "root-secret")
    app.dependency_overrides[dependencies.get_api_key_pool] = lambda: pool
    return client


def test_add_api_key(admin_client, pool):
    response = admin_client.post(
        "/api/admin/api-keys",
        json={"value": "sk-live-123456", "key_id": "primary"},
        headers=ADMIN_HEADERS,
    )

    assert response.status_code == status.HTTP_201_CREATED
    data = response.json()
    assert data == {
        "id": "primary",
        "masked_value": "**********3456",
        "usage_count": 0,
        "active": True,
    }
    assert "sk-live" not in response.text
    assert pool.keys["primary"].value == "sk-live-123456"


def test_add_api_key_rejects_empty_value(admin_client):
    response = admin_client.post("/api/admin/api-keys", json={"value": ""}, headers=ADMIN_HEADERS)

    assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY


def test_list_api_keys(admin_client, pool):
    pool.add_key("secret-a")
    used = pool.add_key("secret-b")
    used.usage_count = 4

    response = admin_client.get("/api/admin/api-keys", headers=ADMIN_HEADERS)

    assert response.status_code == status.HTTP_200_OK
    assert [key["usage_count"] for key in response.json()] == [0, 4]


def test_deactivate_api_key(admin_client, pool):
    pool.add_key("secret-a", key_id="k1")

    response = admin_client.delete("/api/admin/api-keys/k1", headers=ADMIN_HEADERS)

    assert response.status_code == status.HTTP_204_NO_CONTENT
    assert pool.keys["k1"].active is False


def test_deactivate_unknown_api_key(admin_client):
    response = admin_client.delete("/api/admin/api-keys/missing", headers=ADMIN_HEADERS)

    assert response.status_code == status.HTTP_404_NOT_FOUND
    assert response.json()["detail"]["code"] == "API_KEY_NOT_FOUND"
