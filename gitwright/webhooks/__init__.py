"""Webhook Ingestor: signed GitHub deliveries in, installation state out."""

from __future__ import annotations

from .config import WebhookConfig
from .errors import (
    EVENT_TYPE_HEADER,
    SIGNATURE_HEADER,
    InvalidWebhookPayloadError,
    MissingWebhookHeadersError,
    SignatureVerificationError,
)
from .events import InstallationAction, WebhookEventKind
from .service import WebhookIngestor, WebhookOutcome
from .signature import sign_payload, verify_signature

__all__ = [
    "EVENT_TYPE_HEADER",
    "SIGNATURE_HEADER",
    "InstallationAction",
    "InvalidWebhookPayloadError",
    "MissingWebhookHeadersError",
    "SignatureVerificationError",
    "WebhookConfig",
    "WebhookEventKind",
    "WebhookIngestor",
    "WebhookOutcome",
    "sign_payload",
    "verify_signature",
]
