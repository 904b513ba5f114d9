"""Configuration for webhook signature verification."""

from __future__ import annotations

import dataclasses as dc

from gitwright.config import ConfigurationError, env_flag, env_str


@dc.dataclass(frozen=True, slots=True)
class WebhookConfig:
    """Shared secret settings for incoming deliveries.

    Attributes
    ----------
    secret
        HMAC-SHA256 secret; ``None`` skips verification with a warning.
    require_secret
        Refuse to start without a secret.

    """

    secret: str | None = dc.field(default=None, repr=False)
    require_secret: bool = False

    def __post_init__(self) -> None:
        """Reject a missing secret when one is required."""
        if self.require_secret and not self.secret:
            raise ConfigurationError.missing("GITWRIGHT_WEBHOOK_SECRET")

    @property
    def verifies_signatures(self) -> bool:
        """Return True when deliveries must carry a valid signature."""
        return bool(self.secret)

    @classmethod
    def from_env(cls) -> WebhookConfig:
        """Read ``GITWRIGHT_WEBHOOK_SECRET`` and ``GITWRIGHT_REQUIRE_WEBHOOK_SECRET``.

        Raises
        ------
        ConfigurationError
            If a secret is required but unset.

        """
        return cls(
            secret=env_str("GITWRIGHT_WEBHOOK_SECRET"),
            require_secret=env_flag("GITWRIGHT_REQUIRE_WEBHOOK_SECRET"),
        )
