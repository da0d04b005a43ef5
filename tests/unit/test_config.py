"""Unit tests for the configuration module."""

import threading

import pytest
from pydantic import ValidationError

from oauth_server.config import Config, OAuthConfigProvider, get_config
from oauth_server.models.auth import ClientStatus, OAuthConfig
from oauth_server.models.errors import ConfigMissingError


def test_config_defaults(monkeypatch: pytest.MonkeyPatch) -> None:
    """Test that the Config class loads default values correctly."""
    for name in ("ENVIRONMENT", "TOKEN_FORMAT", "ACCESS_TOKEN_LIFETIME", "OAUTH_CLIENTS"):
        monkeypatch.delenv(name, raising=False)
    config = Config(token_signing_secret="secret", _env_file=None)

    assert config.server_host == "0.0.0.0"
    assert config.server_port == 8080
    assert config.log_level == "INFO"
    assert config.environment == "development"
    assert config.auth_rate_limit == 5
    assert config.api_rate_limit == 100
    assert config.rate_limit_window_seconds == 60
    assert config.oauth_clients == []
    assert config.oauth_config == OAuthConfig()


def test_config_environment_overrides(monkeypatch: pytest.MonkeyPatch) -> None:
    """Test that environment variables override default values."""
    monkeypatch.setenv("TOKEN_SIGNING_SECRET", "from-env")
    monkeypatch.setenv("SERVER_PORT", "9000")
    monkeypatch.setenv("LOG_LEVEL", "DEBUG")
    monkeypatch.setenv("TOKEN_FORMAT", "opaque")
    monkeypatch.setenv("ACCESS_TOKEN_LIFETIME", "600")
    monkeypatch.setenv("TOKEN_ISSUER", "https://issuer.test")
    monkeypatch.setenv(
        "OAUTH_CLIENTS",
        '[{"client_id": "c1", "client_secret": "s1", "name": "App", '
        '"redirect_uri": "https://a.example/cb", "status": "pending"}]',
    )

    config = get_config()

    assert config.token_signing_secret.get_secret_value() == "from-env"
    assert config.server_port == 9000
    assert config.log_level == "DEBUG"
    assert config.oauth_config.token_format == "opaque"
    assert config.oauth_config.access_token_lifetime == 600
    assert config.oauth_config.issuer == "https://issuer.test"
    assert config.oauth_clients[0].client_id == "c1"
    assert config.oauth_clients[0].client_secret.get_secret_value() == "s1"
    assert config.oauth_clients[0].status == ClientStatus.PENDING


def test_secrets_are_not_printed() -> None:
    config = Config(token_signing_secret="very-secret", _env_file=None)
    assert "very-secret" not in repr(config)


def test_config_missing_signing_secret(monkeypatch: pytest.MonkeyPatch) -> None:
    """Test that validation fails if the signing secret is missing."""
    monkeypatch.delenv("TOKEN_SIGNING_SECRET", raising=False)
    with pytest.raises(ValidationError) as excinfo:
        Config(_env_file=None)
    assert {error["loc"][0] for error in excinfo.value.errors()} == {"token_signing_secret"}


@pytest.mark.parametrize(
    "field, value",
    [("token_format", "paseto"), ("access_token_lifetime", 0), ("client_secret_hash_rounds", 3)],
)
def test_config_rejects_invalid_values(field: str, value: object) -> None:
    with pytest.raises(ValidationError):
        Config(token_signing_secret="secret", _env_file=None, **{field: value})


def test_get_config_is_cached(monkeypatch: pytest.MonkeyPatch) -> None:
    """Test that the get_config function caches its result."""
    monkeypatch.setenv("TOKEN_SIGNING_SECRET", "secret")
    monkeypatch.delenv("SERVER_PORT", raising=False)

    config1 = get_config()
    config2 = get_config()
    assert config1 is config2

    monkeypatch.setenv("SERVER_PORT", "5000")
    # The config should not change because it's cached
    config3 = get_config()
    assert config3.server_port == 8080
    assert config1 is config3

    get_config.cache_clear()
    config4 = get_config()
    assert config4.server_port == 5000
    assert config1 is not config4


class TestOAuthConfigProvider:
    def test_missing_snapshot(self) -> None:
        provider = OAuthConfigProvider()
        with pytest.raises(ConfigMissingError):
            provider.current()
        with pytest.raises(ConfigMissingError):
            provider.update(issuer="x")

    def test_replace(self) -> None:
        provider = OAuthConfigProvider()
        snapshot = OAuthConfig(token_format="opaque")
        assert provider.replace(snapshot) is snapshot
        assert provider.current() is snapshot

    def test_update_swaps_whole_snapshot(self) -> None:
        original = OAuthConfig()
        provider = OAuthConfigProvider(original)

        updated = provider.update(issuer="https://new.example.com", access_token_lifetime=60)

        assert provider.current() is updated
        assert updated.issuer == "https://new.example.com"
        assert updated.access_token_lifetime == 60
        assert updated.audience == original.audience
        assert original.issuer == "https://auth.example.com"

    def test_invalid_update_keeps_current_snapshot(self) -> None:
        original = OAuthConfig()
        provider = OAuthConfigProvider(original)
        with pytest.raises(ValidationError):
            provider.update(token_format="paseto")
        assert provider.current() is original

    def test_snapshots_are_immutable(self) -> None:
        snapshot = OAuthConfig()
        with pytest.raises(ValidationError):
            snapshot.issuer = "changed"  # type: ignore[misc]

    def test_readers_only_see_complete_snapshots(self) -> None:
        a = OAuthConfig(issuer="https://a.example", audience="https://a.example/api")
        b = OAuthConfig(issuer="https://b.example", audience="https://b.example/api")
        provider = OAuthConfigProvider(a)
        stop = threading.Event()
        torn: list[OAuthConfig] = []

        def read() -> None:
            while not stop.is_set():
                snapshot = provider.current()
                if snapshot.issuer[8] != snapshot.audience[8]:
                    torn.append(snapshot)

        reader = threading.Thread(target=read)
        reader.start()
        for i in range(500):
            provider.replace(b if i % 2 else a)
        stop.set()
        reader.join()
        assert torn == []
