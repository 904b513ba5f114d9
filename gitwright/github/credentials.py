"""Installation token issuance with caching.

Usage
-----
>>> provider = CredentialProvider(config, client, InMemoryTokenCache())
>>> token = await provider.get_token(1234)
>>> token.expires_at > utcnow()
True

"""

from __future__ import annotations

import asyncio
import datetime as dt
import typing as typ

import jwt

from gitwright.common.time import utcnow
from gitwright.logging import get_logger, log_info

from .cache import CachedToken, decode_cached_token, encode_cached_token
from .errors import GitHubAppConfigError
from .models import InstallationToken

if typ.TYPE_CHECKING:
    import collections.abc as cabc

    from gitwright.storage.records import RepositoryRecord

    from .cache import TokenCache
    from .client import GitHubAppClient
    from .config import GitHubAppConfig

logger = get_logger(__name__)

# Assertion timing: backdate for clock skew, GitHub caps lifetime at 10 minutes.
ASSERTION_BACKDATE = dt.timedelta(seconds=60)
ASSERTION_LIFETIME = dt.timedelta(seconds=600)

# Cached tokens are reused only while they have more than this left.
REFRESH_MARGIN = dt.timedelta(minutes=5)
# Installation tokens live one hour; cache entries expire a little earlier.
CACHE_TTL = dt.timedelta(minutes=55)


def build_app_assertion(config: GitHubAppConfig, now: dt.datetime) -> str:
    """Sign a short-lived RS256 JWT identifying the app itself.

    Parameters
    ----------
    config
        App identity and private key.
    now
        Current time; ``iat`` is backdated 60 seconds and ``exp`` is set 600
        seconds ahead.

    Returns
    -------
    str
        Encoded JWT.

    Raises
    ------
    GitHubAppConfigError
        If the private key cannot sign with RS256.

    """
    payload = {
        "iat": int((now - ASSERTION_BACKDATE).timestamp()),
        "exp": int((now + ASSERTION_LIFETIME).timestamp()),
        "iss": config.app_id,
    }
    try:
        return jwt.encode(payload, config.private_key, algorithm="RS256")
    except (ValueError, TypeError, jwt.PyJWTError) as exc:
        raise GitHubAppConfigError.invalid_private_key() from exc


def cache_key(installation_id: int) -> str:
    """Return the token cache key for an installation."""
    return f"installation_token:{installation_id}"


class CredentialProvider:
    """Issue installation tokens, reusing cached ones while they stay fresh.

    A provider built without a configuration (see :meth:`unconfigured`) still
    constructs, so read-only API endpoints keep working; every token request
    then raises the stored :class:`GitHubAppConfigError`.
    """

    def __init__(
        self,
        config: GitHubAppConfig | None,
        client: GitHubAppClient | None,
        cache: TokenCache,
        *,
        clock: cabc.Callable[[], dt.datetime] = utcnow,
        config_error: GitHubAppConfigError | None = None,
    ) -> None:
        """Store collaborators; ``clock`` is injectable for expiry tests."""
        self._config = config
        self._client = client
        self._cache = cache
        self._clock = clock
        self._config_error = config_error
        self._exchange_locks: dict[int, asyncio.Lock] = {}

    @classmethod
    def unconfigured(
        cls, cache: TokenCache, error: GitHubAppConfigError
    ) -> CredentialProvider:
        """Build a provider whose token requests always raise ``error``."""
        return cls(None, None, cache, config_error=error)

    def _require(self) -> tuple[GitHubAppConfig, GitHubAppClient]:
        if self._config is None or self._client is None:
            raise self._config_error or GitHubAppConfigError.missing_app_id()
        return self._config, self._client

    async def aclose(self) -> None:
        """Close the GitHub client and any cache that holds connections."""
        if self._client is not None:
            await self._client.aclose()
        closer = getattr(self._cache, "aclose", None)
        if closer is not None:
            await closer()

    async def get_token(self, installation_id: int) -> InstallationToken:
        """Return a token for ``installation_id`` valid for at least 5 minutes.

        A cached token is returned while ``expires_at - now`` exceeds
        :data:`REFRESH_MARGIN`; otherwise exactly one exchange call is made.
        Concurrent callers for one installation wait on a shared lock and
        reuse the token the first of them cached. Exchange failures propagate
        unchanged.

        Raises
        ------
        GitHubAppConfigError
            If the app id or private key is not configured.
        AuthError
            If GitHub rejects the exchange.

        """
        config, client = self._require()
        cached = await self._fresh_cached(installation_id)
        if cached is not None:
            return cached

        lock = self._exchange_locks.setdefault(installation_id, asyncio.Lock())
        async with lock:
            # Another caller may have refreshed the token while we waited.
            cached = await self._fresh_cached(installation_id)
            if cached is not None:
                return cached
            return await self._exchange(config, client, installation_id)

    async def _fresh_cached(self, installation_id: int) -> InstallationToken | None:
        raw = await self._cache.get(cache_key(installation_id))
        cached = decode_cached_token(raw) if raw is not None else None
        if cached is None or cached.expires_at - self._clock() <= REFRESH_MARGIN:
            return None
        return InstallationToken(token=cached.token, expires_at=cached.expires_at)

    async def _exchange(
        self,
        config: GitHubAppConfig,
        client: GitHubAppClient,
        installation_id: int,
    ) -> InstallationToken:
        now = self._clock()
        assertion = build_app_assertion(config, now)
        token = await client.create_installation_token(assertion, installation_id)

        ttl = min(CACHE_TTL, token.remaining(now))
        await self._cache.put(
            cache_key(installation_id),
            encode_cached_token(
                CachedToken(token=token.token, expires_at=token.expires_at)
            ),
            max(1, int(ttl.total_seconds())),
        )
        log_info(
            logger,
            "Issued installation token for installation %d (expires_at=%s)",
            installation_id,
            token.expires_at.isoformat(),
        )
        return token

    async def list_repositories(self, installation_id: int) -> list[RepositoryRecord]:
        """List every repository the installation can reach."""
        _config, client = self._require()
        token = await self.get_token(installation_id)
        return await client.list_installation_repositories(token.token)
