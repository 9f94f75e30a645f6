from __future__ import annotations

import logging

import pytest
from fastapi.testclient import TestClient

from app.adapters.quota_store.in_memory import InMemoryQuotaStore
from app.core.app_factory import create_app
from app.core.logging import RequestIdFilter


@pytest.fixture
def client():
    with TestClient(create_app(store_factory=InMemoryQuotaStore)) as test_client:
        yield test_client


def test_preserves_incoming_request_id_header(client: TestClient):
    incoming_id = "test-request-id-123"
    resp = client.get("/health", headers={"X-Request-ID": incoming_id})

    assert resp.status_code == 200
    assert resp.headers.get("X-Request-ID") == incoming_id


def test_generates_request_id_when_missing(client: TestClient):
    resp = client.get("/health")

    assert resp.status_code == 200
    assert resp.headers.get("X-Request-ID")
    assert resp.headers.get("X-Request-Duration-ms") is not None


def test_error_body_carries_request_id(client: TestClient):
    resp = client.get("/v1/admin/exempt-addresses", headers={"X-Request-ID": "req-err-1"})

    assert resp.status_code == 401
    assert resp.json()["error"]["request_id"] == "req-err-1"


def test_quota_logs_share_the_request_id(client: TestClient, caplog):
    caplog.set_level(logging.INFO)
    caplog.handler.addFilter(RequestIdFilter())

    resp = client.get("/v1/quota", headers={"X-Request-ID": "req-quota-7", "X-Forwarded-For": "198.51.100.4"})

    assert resp.status_code == 200
    by_message = {record.getMessage(): record for record in caplog.records}
    assert by_message["quota.checked"].request_id == "req-quota-7"
    completed = by_message["request.completed"]
    assert completed.request_id == "req-quota-7"
    assert completed.path == "/v1/quota"
    assert completed.status_code == 200
    assert completed.method == "GET"
