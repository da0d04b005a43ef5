"""Throttling of the protocol and API endpoints."""

from collections.abc import Iterator

import pytest
from fastapi.testclient import TestClient

from oauth_server.config import Config
from oauth_server.engine import build_engine
from oauth_server.server import create_app
from tests.conftest import CLIENT_ID, CLIENT_SECRET, REDIRECT_URI, TEST_SIGNING_SECRET


@pytest.fixture
def throttled_client() -> Iterator[TestClient]:
    config = Config(
        token_signing_secret=TEST_SIGNING_SECRET,
        client_secret_hash_rounds=4,
        auth_rate_limit=5,
        api_rate_limit=3,
        rate_limit_window_seconds=60,
        _env_file=None,
    )
    engine = build_engine(config)
    engine.clients.register(CLIENT_ID, CLIENT_SECRET, "Test Application", REDIRECT_URI)
    with TestClient(create_app(config, engine)) as client:
        yield client


def test_sixth_token_request_is_throttled(throttled_client: TestClient, basic_auth) -> None:
    responses = [
        throttled_client.post("/token", data={"grant_type": "client_credentials"}, headers=basic_auth())
        for _ in range(6)
    ]

    assert [r.status_code for r in responses] == [200] * 5 + [429]
    assert [r.headers["X-RateLimit-Remaining"] for r in responses] == ["4", "3", "2", "1", "0", "0"]
    assert all(r.headers["X-RateLimit-Limit"] == "5" for r in responses)

    throttled = responses[-1]
    assert throttled.json()["message"] == "Too many requests, please try again later"
    assert 0 < int(throttled.headers["Retry-After"]) <= 60
    assert throttled.json()["retry_after"] == int(throttled.headers["Retry-After"])


def test_auth_endpoints_share_one_budget(throttled_client: TestClient, basic_auth) -> None:
    for path in ("/token", "/revoke", "/introspect", "/token", "/revoke"):
        throttled_client.post(path, headers=basic_auth())
    assert throttled_client.post("/introspect", headers=basic_auth()).status_code == 429


def test_failed_requests_count_too(throttled_client: TestClient) -> None:
    for _ in range(5):
        assert throttled_client.post("/token").status_code == 401
    assert throttled_client.post("/token").status_code == 429


def test_api_limiter_is_separate(throttled_client: TestClient, basic_auth) -> None:
    for _ in range(6):
        throttled_client.post("/token", headers=basic_auth())

    responses = [throttled_client.get("/api/v1/products") for _ in range(4)]
    assert [r.status_code for r in responses] == [200, 200, 200, 429]
    assert responses[0].headers["X-RateLimit-Limit"] == "3"


def test_unthrottled_paths_have_no_rate_headers(throttled_client: TestClient) -> None:
    response = throttled_client.get("/health")
    assert response.status_code == 200
    assert "X-RateLimit-Limit" not in response.headers
