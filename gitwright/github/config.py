"""Configuration for authenticating as a GitHub App.

Usage
-----
>>> config = GitHubAppConfig.from_env()
>>> config.api_url
'https://api.github.com'

The private key may come from one of three places, checked in order:

- ``GITWRIGHT_GITHUB_PRIVATE_KEY``: PEM text. Literal ``\\n`` sequences are
  turned into newlines so the key survives single-line secret stores.
- ``GITWRIGHT_GITHUB_PRIVATE_KEY_CHUNK_1`` and ``..._CHUNK_2``: the PEM text
  split in two, for secret stores with a per-value size limit.
- ``GITWRIGHT_GITHUB_PRIVATE_KEY_PATH``: a file containing the PEM text.

"""

from __future__ import annotations

import dataclasses as dc
from pathlib import Path

from gitwright.config import env_positive_float, env_str
from gitwright.github.errors import GitHubAppConfigError

DEFAULT_API_URL = "https://api.github.com"


def _normalise_pem(raw: str) -> str:
    return raw.replace("\\n", "\n").strip() + "\n"


def _load_private_key() -> str | None:
    inline = env_str("GITWRIGHT_GITHUB_PRIVATE_KEY")
    if inline is not None:
        return _normalise_pem(inline)

    first = env_str("GITWRIGHT_GITHUB_PRIVATE_KEY_CHUNK_1")
    second = env_str("GITWRIGHT_GITHUB_PRIVATE_KEY_CHUNK_2")
    if first is not None and second is not None:
        return _normalise_pem(first + second)

    path = env_str("GITWRIGHT_GITHUB_PRIVATE_KEY_PATH")
    if path is None:
        return None
    try:
        return _normalise_pem(Path(path).read_text(encoding="utf-8"))
    except OSError as exc:
        raise GitHubAppConfigError.unreadable_private_key(path) from exc


@dc.dataclass(frozen=True, slots=True)
class GitHubAppConfig:
    """Identity and endpoint settings for the GitHub App.

    Attributes
    ----------
    app_id
        Numeric GitHub App id, used as the assertion issuer.
    private_key
        RSA private key in PEM form used to sign app assertions.
    api_url
        Base URL of the GitHub REST API.
    timeout_s
        Per-request HTTP timeout.
    user_agent
        ``User-Agent`` sent with every request.

    """

    app_id: str
    private_key: str = dc.field(repr=False)
    api_url: str = DEFAULT_API_URL
    timeout_s: float = 20.0
    user_agent: str = "gitwright/0.1"

    def __post_init__(self) -> None:
        """Reject blank identities so failures surface before any network call."""
        if not self.app_id.strip():
            raise GitHubAppConfigError.missing_app_id()
        if not self.private_key.strip():
            raise GitHubAppConfigError.missing_private_key()

    @classmethod
    def from_env(cls) -> GitHubAppConfig:
        """Build configuration from ``GITWRIGHT_GITHUB_*`` variables.

        Raises
        ------
        GitHubAppConfigError
            If the app id or private key is missing, or the key file is
            unreadable.

        """
        app_id = env_str("GITWRIGHT_GITHUB_APP_ID")
        if app_id is None:
            raise GitHubAppConfigError.missing_app_id()
        private_key = _load_private_key()
        if private_key is None:
            raise GitHubAppConfigError.missing_private_key()
        return cls(
            app_id=app_id,
            private_key=private_key,
            api_url=(env_str("GITWRIGHT_GITHUB_API_URL") or DEFAULT_API_URL).rstrip("/"),
            timeout_s=env_positive_float("GITWRIGHT_GITHUB_TIMEOUT_S", 20.0),
        )
