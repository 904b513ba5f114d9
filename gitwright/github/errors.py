"""GitHub App authentication and REST errors."""

from __future__ import annotations

from gitwright.config import ConfigurationError


class GitHubAppConfigError(ConfigurationError):
    """Raised when the GitHub App identity or signing key is unavailable."""

    @classmethod
    def missing_app_id(cls) -> GitHubAppConfigError:
        """Return an error when no app id is configured."""
        return cls("GITWRIGHT_GITHUB_APP_ID is required for GitHub App auth")

    @classmethod
    def missing_private_key(cls) -> GitHubAppConfigError:
        """Return an error when no private key source is configured."""
        return cls(
            "A GitHub App private key is required: set GITWRIGHT_GITHUB_PRIVATE_KEY, "
            "GITWRIGHT_GITHUB_PRIVATE_KEY_PATH or the CHUNK_1/CHUNK_2 pair"
        )

    @classmethod
    def unreadable_private_key(cls, path: str) -> GitHubAppConfigError:
        """Return an error when the key file cannot be read."""
        return cls(f"GitHub App private key file could not be read: {path}")

    @classmethod
    def invalid_private_key(cls) -> GitHubAppConfigError:
        """Return an error when the key cannot sign an assertion."""
        return cls("GitHub App private key is not a valid RSA PEM key")


class AuthError(RuntimeError):
    """Raised when GitHub refuses to issue an installation token.

    Attributes
    ----------
    status_code
        HTTP status returned by GitHub, when a response was received.

    """

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        """Initialise with a message and optional HTTP status code."""
        self.status_code = status_code
        super().__init__(message)

    @classmethod
    def exchange_rejected(cls, installation_id: int, status_code: int) -> AuthError:
        """Return an error for a non-2xx token exchange response."""
        return cls(
            f"GitHub rejected the token exchange for installation {installation_id} "
            f"(HTTP {status_code})",
            status_code=status_code,
        )

    @classmethod
    def network_error(cls, installation_id: int, detail: str) -> AuthError:
        """Return an error when the token exchange could not reach GitHub."""
        return cls(
            f"Token exchange for installation {installation_id} failed: {detail}"
        )

    @classmethod
    def malformed_response(cls, field: str) -> AuthError:
        """Return an error when the exchange response lacks ``field``."""
        return cls(f"GitHub token response missing expected field: {field}")


class GitHubAPIError(RuntimeError):
    """Raised when a GitHub REST call made with an installation token fails."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        """Initialise with a message and optional HTTP status code."""
        self.status_code = status_code
        super().__init__(message)

    @classmethod
    def http_error(cls, path: str, status_code: int) -> GitHubAPIError:
        """Return an error for non-2xx HTTP responses."""
        return cls(f"GitHub REST {path} returned HTTP {status_code}", status_code=status_code)

    @classmethod
    def network_error(cls, path: str, detail: str) -> GitHubAPIError:
        """Return an error for transport failures."""
        return cls(f"GitHub REST {path} failed: {detail}")

    @classmethod
    def malformed_response(cls, path: str) -> GitHubAPIError:
        """Return an error when a response body has an unexpected shape."""
        return cls(f"GitHub REST {path} returned an unexpected payload")
