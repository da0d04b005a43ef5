import base64
from collections.abc import Callable, Iterator
from datetime import UTC, datetime, timedelta

import pytest
from fastapi.testclient import TestClient

from oauth_server.config import Config, get_config
from oauth_server.engine import OAuthEngine, build_engine
from oauth_server.models.auth import ClientStatus
from oauth_server.server import create_app

TEST_SIGNING_SECRET = "test-signing-secret"

CLIENT_ID = "c1"
CLIENT_SECRET = "s1"
REDIRECT_URI = "https://a.example/cb"


class FakeClock:
    """Controllable replacement for utc_now."""

    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or datetime.now(UTC).replace(microsecond=0)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


class FakeTimer:
    """Controllable replacement for time.time, for rate limiters."""

    def __init__(self, start: float = 1_700_000_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture(autouse=True)
def clear_config_cache() -> Iterator[None]:
    get_config.cache_clear()
    yield
    get_config.cache_clear()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def config() -> Config:
    """Isolated settings: no .env, fast bcrypt, generous throttling."""
    return Config(
        token_signing_secret=TEST_SIGNING_SECRET,
        client_secret_hash_rounds=4,
        auth_rate_limit=1000,
        api_rate_limit=1000,
        _env_file=None,
    )


@pytest.fixture
def engine(config: Config, clock: FakeClock) -> OAuthEngine:
    engine = build_engine(config, clock=clock)
    engine.clients.register(CLIENT_ID, CLIENT_SECRET, "Test Application", REDIRECT_URI)
    engine.clients.register("c2", "s2", "Other Application", "https://b.example/cb")
    engine.clients.register(
        "pending-client",
        "pending-secret",
        "Partner Service",
        "https://partner.example.com/oauth/callback",
        status=ClientStatus.PENDING,
    )
    return engine


@pytest.fixture
def app_client(config: Config, engine: OAuthEngine) -> Iterator[TestClient]:
    with TestClient(create_app(config, engine)) as client:
        yield client


@pytest.fixture
def basic_auth() -> Callable[[str, str], dict[str, str]]:
    """Builds an ``Authorization: Basic`` header."""

    def build(client_id: str = CLIENT_ID, client_secret: str = CLIENT_SECRET) -> dict[str, str]:
        encoded = base64.b64encode(f"{client_id}:{client_secret}".encode()).decode()
        return {"Authorization": f"Basic {encoded}"}

    return build
