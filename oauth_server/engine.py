"""Assembles the token engine from configuration."""

from dataclasses import dataclass

from oauth_server.auth.authorization import AuthorizationCodeIssuer
from oauth_server.auth.codec import SignedTokenCodec
from oauth_server.auth.revocation import Introspector, Revoker
from oauth_server.auth.tokens import TokenIssuer
from oauth_server.auth.validation import TokenValidator
from oauth_server.config import Config, OAuthConfigProvider
from oauth_server.middleware.rate_limit import FixedWindowRateLimiter
from oauth_server.storage.memory import InMemoryClientRegistry, InMemoryStorage
from oauth_server.utils.clock import Clock, utc_now
from oauth_server.utils.logging import get_logger

logger = get_logger(__name__)


@dataclass
class OAuthEngine:
    """All engine components sharing one registry, storage and config provider."""

    clients: InMemoryClientRegistry
    storage: InMemoryStorage
    config_provider: OAuthConfigProvider
    codec: SignedTokenCodec
    authorization_codes: AuthorizationCodeIssuer
    tokens: TokenIssuer
    validator: TokenValidator
    revoker: Revoker
    introspector: Introspector
    auth_limiter: FixedWindowRateLimiter
    api_limiter: FixedWindowRateLimiter
    clock: Clock = utc_now

    def purge_expired(self) -> int:
        return self.storage.purge_expired(self.clock())


def build_engine(config: Config, clock: Clock = utc_now) -> OAuthEngine:
    """Create the engine and register the clients listed in ``config.oauth_clients``."""
    clients = InMemoryClientRegistry(hash_rounds=config.client_secret_hash_rounds)
    storage = InMemoryStorage()
    provider = OAuthConfigProvider(config.oauth_config)
    codec = SignedTokenCodec(config.token_signing_secret.get_secret_value())
    validator = TokenValidator(storage, codec, provider, clock=clock)

    engine = OAuthEngine(
        clients=clients,
        storage=storage,
        config_provider=provider,
        codec=codec,
        authorization_codes=AuthorizationCodeIssuer(clients, storage, provider, clock=clock),
        tokens=TokenIssuer(clients, storage, codec, provider, clock=clock),
        validator=validator,
        revoker=Revoker(storage),
        introspector=Introspector(validator),
        auth_limiter=FixedWindowRateLimiter(
            config.auth_rate_limit, config.rate_limit_window_seconds, name="auth"
        ),
        api_limiter=FixedWindowRateLimiter(
            config.api_rate_limit, config.rate_limit_window_seconds, name="api"
        ),
        clock=clock,
    )

    for seed in config.oauth_clients:
        clients.register(
            client_id=seed.client_id,
            client_secret=seed.client_secret.get_secret_value(),
            name=seed.name,
            redirect_uri=seed.redirect_uri,
            application_type=seed.application_type,
            status=seed.status,
        )

    logger.info(
        "oauth_engine_built",
        token_format=provider.current().token_format,
        registered_clients=clients.count(),
    )
    return engine
