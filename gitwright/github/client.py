"""GitHub REST client for app-level and installation-level calls."""

from __future__ import annotations

import typing as typ

import httpx
import msgspec

from .errors import AuthError, GitHubAPIError
from .models import (
    AccessTokenPayload,
    InstallationToken,
    RepositoryPage,
)

if typ.TYPE_CHECKING:
    from gitwright.storage.records import RepositoryRecord

    from .config import GitHubAppConfig

_HTTP_ERROR_STATUS_THRESHOLD = 400
_PAGE_SIZE = 100
_ACCEPT = "application/vnd.github+json"
_API_VERSION = "2022-11-28"

type _Decoded = AccessTokenPayload | RepositoryPage


class GitHubAppClient:
    """Thin async wrapper over the GitHub REST endpoints the app needs.

    The client never retries and never substitutes placeholder data: every
    failed call raises, leaving retry policy to the caller.
    """

    def __init__(
        self,
        config: GitHubAppConfig,
        *,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        """Initialise the client with the provided API configuration."""
        self._config = config
        self._owns_client = http_client is None
        self._client = http_client or httpx.AsyncClient(
            timeout=config.timeout_s,
            headers={
                "User-Agent": config.user_agent,
                "Accept": _ACCEPT,
                "X-GitHub-Api-Version": _API_VERSION,
            },
        )

    async def aclose(self) -> None:
        """Close any owned HTTP resources."""
        if self._owns_client:
            await self._client.aclose()

    def _url(self, path: str) -> str:
        return f"{self._config.api_url}{path}"

    async def create_installation_token(
        self, assertion: str, installation_id: int
    ) -> InstallationToken:
        """Exchange an app assertion for an installation access token.

        Parameters
        ----------
        assertion
            Signed app JWT from :func:`gitwright.github.credentials.build_app_assertion`.
        installation_id
            GitHub installation id the token is scoped to.

        Returns
        -------
        InstallationToken
            Token value and expiry as reported by GitHub.

        Raises
        ------
        AuthError
            If GitHub cannot be reached, rejects the exchange, or returns a
            body without ``token``/``expires_at``.

        """
        path = f"/app/installations/{installation_id}/access_tokens"
        try:
            response = await self._client.post(
                self._url(path),
                headers={"Authorization": f"Bearer {assertion}"},
            )
        except httpx.HTTPError as exc:
            raise AuthError.network_error(installation_id, type(exc).__name__) from exc

        if response.status_code >= _HTTP_ERROR_STATUS_THRESHOLD:
            raise AuthError.exchange_rejected(installation_id, response.status_code)

        try:
            payload = msgspec.json.decode(response.content, type=AccessTokenPayload)
        except (msgspec.DecodeError, msgspec.ValidationError) as exc:
            raise AuthError.malformed_response("token/expires_at") from exc
        return InstallationToken(token=payload.token, expires_at=payload.expires_at)

    async def list_installation_repositories(self, token: str) -> list[RepositoryRecord]:
        """Return every repository an installation token can access.

        Pages through ``GET /installation/repositories`` until GitHub has
        returned ``total_count`` entries or an empty page.
        """
        records: list[RepositoryRecord] = []
        page_number = 1
        while True:
            page = await self._get(
                "/installation/repositories",
                authorization=f"token {token}",
                decode_as=RepositoryPage,
                params={"per_page": _PAGE_SIZE, "page": page_number},
            )
            records.extend(repo.to_record() for repo in page.repositories)
            if not page.repositories or len(records) >= page.total_count:
                return records
            page_number += 1

    async def _get[T: _Decoded](
        self,
        path: str,
        *,
        authorization: str,
        decode_as: type[T],
        params: dict[str, int] | None = None,
    ) -> T:
        try:
            response = await self._client.get(
                self._url(path),
                headers={"Authorization": authorization},
                params=params,
            )
        except httpx.HTTPError as exc:
            raise GitHubAPIError.network_error(path, type(exc).__name__) from exc

        if response.status_code >= _HTTP_ERROR_STATUS_THRESHOLD:
            raise GitHubAPIError.http_error(path, response.status_code)

        try:
            return msgspec.json.decode(response.content, type=decode_as)
        except (msgspec.DecodeError, msgspec.ValidationError) as exc:
            raise GitHubAPIError.malformed_response(path) from exc
