"""HMAC-SHA256 webhook signatures.

Usage
-----
>>> header = sign_payload("s3cret", b'{"action": "created"}')
>>> verify_signature("s3cret", b'{"action": "created"}', header)
True

"""

from __future__ import annotations

import hashlib
import hmac

SIGNATURE_PREFIX = "sha256="


def compute_signature(secret: str, body: bytes) -> str:
    """Return the hex HMAC-SHA256 digest of ``body``."""
    return hmac.new(secret.encode("utf-8"), body, hashlib.sha256).hexdigest()


def sign_payload(secret: str, body: bytes) -> str:
    """Return a ``sha256=<hex>`` header value for ``body``."""
    return SIGNATURE_PREFIX + compute_signature(secret, body)


def verify_signature(secret: str, body: bytes, signature_header: str | None) -> bool:
    """Check ``signature_header`` against the raw ``body`` in constant time.

    The header may carry the hex digest alone or with the ``sha256=`` prefix
    GitHub sends.
    """
    if not signature_header:
        return False
    provided = signature_header.strip()
    provided = provided.removeprefix(SIGNATURE_PREFIX)
    expected = compute_signature(secret, body)
    return hmac.compare_digest(
        expected.encode("ascii"), provided.lower().encode("utf-8", "replace")
    )


__all__ = ["compute_signature", "sign_payload", "verify_signature"]
