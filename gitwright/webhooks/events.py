"""Webhook event kinds and typed payload views."""

from __future__ import annotations

import enum
import typing as typ

import msgspec

from gitwright.github.models import InstallationPayload


class WebhookEventKind(enum.StrEnum):
    """Event types the ingestor acts on; everything else is ``OTHER``."""

    INSTALLATION = "installation"
    INSTALLATION_REPOSITORIES = "installation_repositories"
    OTHER = "other"

    @classmethod
    def parse(cls, event_type: str) -> WebhookEventKind:
        """Map an event type header to a kind, defaulting to ``OTHER``."""
        try:
            return cls(event_type)
        except ValueError:
            return cls.OTHER


class InstallationAction(enum.StrEnum):
    """Actions of the ``installation`` event the ingestor handles."""

    CREATED = "created"
    DELETED = "deleted"
    SUSPEND = "suspend"
    UNSUSPEND = "unsuspend"
    NEW_PERMISSIONS_ACCEPTED = "new_permissions_accepted"

    @classmethod
    def parse(cls, action: str | None) -> InstallationAction | None:
        """Return the action, or ``None`` for actions with no handler."""
        if action is None:
            return None
        try:
            return cls(action)
        except ValueError:
            return None


class InstallationEventPayload(msgspec.Struct, kw_only=True):
    """The fields of installation deliveries the ingestor reads."""

    action: str | None = None
    installation: InstallationPayload


def _nested_id(payload: dict[str, typ.Any], key: str) -> int | None:
    value = payload.get(key)
    if not isinstance(value, dict):
        return None
    identifier = value.get("id")
    if isinstance(identifier, int) and not isinstance(identifier, bool):
        return identifier
    return None


def installation_id_of(payload: dict[str, typ.Any]) -> int | None:
    """Return ``payload["installation"]["id"]`` when present."""
    return _nested_id(payload, "installation")


def repository_id_of(payload: dict[str, typ.Any]) -> int | None:
    """Return ``payload["repository"]["id"]`` when present."""
    return _nested_id(payload, "repository")


def action_of(payload: dict[str, typ.Any]) -> str | None:
    """Return the ``action`` field when it is a string."""
    action = payload.get("action")
    return action if isinstance(action, str) else None


__all__ = [
    "InstallationAction",
    "InstallationEventPayload",
    "WebhookEventKind",
    "action_of",
    "installation_id_of",
    "repository_id_of",
]
