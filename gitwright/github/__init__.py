"""Credential Provider: GitHub App authentication and REST access."""

from __future__ import annotations

from .cache import (
    CachedToken,
    InMemoryTokenCache,
    RedisTokenCache,
    TokenCache,
)
from .client import GitHubAppClient
from .config import GitHubAppConfig
from .credentials import (
    CACHE_TTL,
    REFRESH_MARGIN,
    CredentialProvider,
    build_app_assertion,
    cache_key,
)
from .errors import AuthError, GitHubAPIError, GitHubAppConfigError
from .factory import credential_provider_from_env, token_cache_from_env
from .models import InstallationPayload, InstallationToken, RepositoryPayload

__all__ = [
    "CACHE_TTL",
    "REFRESH_MARGIN",
    "AuthError",
    "CachedToken",
    "CredentialProvider",
    "GitHubAPIError",
    "GitHubAppClient",
    "GitHubAppConfig",
    "GitHubAppConfigError",
    "InMemoryTokenCache",
    "InstallationPayload",
    "InstallationToken",
    "RedisTokenCache",
    "RepositoryPayload",
    "TokenCache",
    "build_app_assertion",
    "cache_key",
    "credential_provider_from_env",
    "token_cache_from_env",
]
