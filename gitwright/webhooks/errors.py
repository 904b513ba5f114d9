"""Webhook Ingestor error types."""

from __future__ import annotations

SIGNATURE_HEADER = "X-Signature-256"
EVENT_TYPE_HEADER = "X-Event-Type"


class MissingWebhookHeadersError(ValueError):
    """Raised when a delivery lacks the event type or signature header."""

    def __init__(self, header: str) -> None:
        """Initialise with the name of the missing header."""
        self.header = header
        super().__init__(f"Missing required header {header}")

    @classmethod
    def event_type(cls) -> MissingWebhookHeadersError:
        """Return an error for a delivery without an event type."""
        return cls(EVENT_TYPE_HEADER)

    @classmethod
    def signature(cls) -> MissingWebhookHeadersError:
        """Return an error for an unsigned delivery while a secret is set."""
        return cls(SIGNATURE_HEADER)


class SignatureVerificationError(PermissionError):
    """Raised when the HMAC signature does not match the body."""

    def __init__(self) -> None:
        """Initialise with a fixed message that reveals nothing about the secret."""
        super().__init__("Webhook signature verification failed")


class InvalidWebhookPayloadError(ValueError):
    """Raised when the delivery body is not a JSON object."""

    def __init__(self, reason: str) -> None:
        """Store the human-readable reason."""
        self.reason = reason
        super().__init__(f"Invalid webhook payload: {reason}")
