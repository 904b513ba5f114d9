"""Build a :class:`CredentialProvider` from the environment."""

from __future__ import annotations

from gitwright.config import env_str
from gitwright.logging import get_logger, log_warning

from .cache import InMemoryTokenCache, RedisTokenCache, TokenCache
from .client import GitHubAppClient
from .config import GitHubAppConfig
from .credentials import CredentialProvider
from .errors import GitHubAppConfigError

logger = get_logger(__name__)


def token_cache_from_env() -> TokenCache:
    """Return a Redis cache when ``GITWRIGHT_TOKEN_CACHE_URL`` is set."""
    url = env_str("GITWRIGHT_TOKEN_CACHE_URL")
    if url is None:
        return InMemoryTokenCache()
    return RedisTokenCache.from_url(url)


def credential_provider_from_env() -> CredentialProvider:
    """Return a provider configured from ``GITWRIGHT_GITHUB_*`` variables.

    A missing app id or key does not stop the process from starting: the
    returned provider raises :class:`GitHubAppConfigError` whenever a token is
    requested, which surfaces as HTTP 500 on the affected request.
    """
    cache = token_cache_from_env()
    try:
        config = GitHubAppConfig.from_env()
    except GitHubAppConfigError as exc:
        log_warning(logger, "GitHub App credentials unavailable: %s", exc)
        return CredentialProvider.unconfigured(cache, exc)
    return CredentialProvider(config, GitHubAppClient(config), cache)


__all__ = ["credential_provider_from_env", "token_cache_from_env"]
