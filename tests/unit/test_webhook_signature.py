"""Unit tests for webhook HMAC signatures."""

from __future__ import annotations

import hashlib
import hmac

import pytest

from gitwright.webhooks import sign_payload, verify_signature
from gitwright.webhooks.signature import compute_signature

_SECRET = "s3cret"
_BODY = b'{"action":"created","installation":{"id":1}}'


class TestVerifySignature:
    """Tests for ``verify_signature``."""

    def test_matches_reference_hmac(self) -> None:
        """The digest is plain HMAC-SHA256 over the raw body."""
        expected = hmac.new(_SECRET.encode(), _BODY, hashlib.sha256).hexdigest()

        assert compute_signature(_SECRET, _BODY) == expected
        assert sign_payload(_SECRET, _BODY) == f"sha256={expected}"

    def test_accepts_prefixed_and_bare_digests(self) -> None:
        """Both ``sha256=<hex>`` and ``<hex>`` verify."""
        header = sign_payload(_SECRET, _BODY)

        assert verify_signature(_SECRET, _BODY, header) is True
        assert verify_signature(_SECRET, _BODY, header.removeprefix("sha256=")) is True
        assert verify_signature(_SECRET, _BODY, header.upper().replace("SHA256=", "sha256=")) is True

    def test_any_single_byte_change_fails(self) -> None:
        """Flipping any one byte of the body breaks verification."""
        header = sign_payload(_SECRET, _BODY)

        for index in range(len(_BODY)):
            mutated = bytearray(_BODY)
            mutated[index] ^= 0x01
            assert verify_signature(_SECRET, bytes(mutated), header) is False, (
                f"Mutation at byte {index} must not verify"
            )

    @pytest.mark.parametrize("header", [None, "", "sha256=", "sha256=zz", "sha1=abc"])
    def test_rejects_missing_or_malformed_headers(self, header: str | None) -> None:
        """Absent or malformed headers never verify."""
        assert verify_signature(_SECRET, _BODY, header) is False

    def test_wrong_secret_fails(self) -> None:
        """A signature made with another secret is rejected."""
        header = sign_payload("other", _BODY)

        assert verify_signature(_SECRET, _BODY, header) is False

    def test_non_ascii_header_is_rejected(self) -> None:
        """Headers with non-ASCII characters fail cleanly."""
        assert verify_signature(_SECRET, _BODY, "sha256=éé") is False
