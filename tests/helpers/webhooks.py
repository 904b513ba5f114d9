"""Builders for signed webhook deliveries."""

from __future__ import annotations

import typing as typ

import msgspec

from gitwright.webhooks import sign_payload

WEBHOOK_SECRET = "whsec_test_secret"


def installation_payload(
    action: str, installation_id: int = 1001, login: str = "octo"
) -> dict[str, typ.Any]:
    """Return an ``installation`` delivery body."""
    return {
        "action": action,
        "installation": {
            "id": installation_id,
            "account": {
                "id": installation_id + 5000,
                "login": login,
                "type": "Organization",
            },
            "permissions": {"contents": "write", "metadata": "read"},
        },
    }


def encode(payload: dict[str, typ.Any]) -> bytes:
    """Serialise a delivery body exactly as it will be signed."""
    return msgspec.json.encode(payload)


def signed(payload: dict[str, typ.Any], secret: str = WEBHOOK_SECRET) -> tuple[bytes, str]:
    """Return ``(body, signature_header)`` for ``payload``."""
    body = encode(payload)
    return body, sign_payload(secret, body)
