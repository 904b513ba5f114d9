"""Unit tests for ``POST /webhooks`` over a real store."""

from __future__ import annotations

import typing as typ

import falcon
import falcon.testing
import pytest

from gitwright.webhooks import EVENT_TYPE_HEADER, SIGNATURE_HEADER
from tests.helpers.app import build_test_app
from tests.helpers.records import make_repository
from tests.helpers.webhooks import encode, installation_payload, signed

if typ.TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker


async def _post(
    conductor: falcon.testing.ASGIConductor,
    body: bytes,
    headers: dict[str, str],
) -> falcon.testing.Result:
    return await conductor.simulate_post(
        "/webhooks",
        body=body,
        headers={"Content-Type": "application/json", **headers},
    )


class TestWebhookEndpoint:
    """Deliveries are verified, stored and acknowledged."""

    @pytest.mark.asyncio
    async def test_signed_installation_is_accepted(
        self, session_factory: async_sessionmaker[AsyncSession]
    ) -> None:
        """A valid delivery answers 200 with the stored event id."""
        test_app = build_test_app(session_factory)
        body, signature = signed(installation_payload("created"))

        async with falcon.testing.ASGIConductor(test_app.app) as conductor:
            result = await _post(
                conductor,
                body,
                {SIGNATURE_HEADER: signature, EVENT_TYPE_HEADER: "installation"},
            )

        assert result.status == falcon.HTTP_200
        assert result.json["success"] is True
        assert result.json["data"]["accepted"] is True
        event = await test_app.store.get_webhook_event(result.json["data"]["event_id"])
        assert event is not None
        assert event.processed is True
        assert await test_app.store.get_repository_by_full_name("octo/reef") is not None

    @pytest.mark.asyncio
    async def test_github_header_names_are_accepted(
        self, session_factory: async_sessionmaker[AsyncSession]
    ) -> None:
        """GitHub's own header names work when the canonical ones are absent."""
        test_app = build_test_app(session_factory)
        test_app.credentials.repositories = [make_repository(777, "octo/tide")]
        body, signature = signed(installation_payload("created"))

        async with falcon.testing.ASGIConductor(test_app.app) as conductor:
            result = await _post(
                conductor,
                body,
                {"X-Hub-Signature-256": signature, "X-GitHub-Event": "installation"},
            )

        assert result.status == falcon.HTTP_200
        assert await test_app.store.get_repository_by_full_name("octo/tide") is not None

    @pytest.mark.asyncio
    async def test_bad_signature_is_401(
        self, session_factory: async_sessionmaker[AsyncSession]
    ) -> None:
        """A mismatched signature is refused and nothing is stored."""
        test_app = build_test_app(session_factory)
        body, signature = signed(installation_payload("created"), secret="other")

        async with falcon.testing.ASGIConductor(test_app.app) as conductor:
            result = await _post(
                conductor,
                body,
                {SIGNATURE_HEADER: signature, EVENT_TYPE_HEADER: "installation"},
            )

        assert result.status == falcon.HTTP_401
        assert result.json["success"] is False
        assert await test_app.store.list_installations() == []

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "headers",
        [
            {EVENT_TYPE_HEADER: "installation"},
            {SIGNATURE_HEADER: "sha256=00"},
        ],
        ids=["no-signature", "no-event-type"],
    )
    async def test_missing_headers_are_400(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        headers: dict[str, str],
    ) -> None:
        """Both headers are required."""
        test_app = build_test_app(session_factory)

        async with falcon.testing.ASGIConductor(test_app.app) as conductor:
            result = await _post(
                conductor, encode(installation_payload("created")), headers
            )

        assert result.status == falcon.HTTP_400

    @pytest.mark.asyncio
    async def test_unsigned_delivery_without_secret_is_400(
        self, session_factory: async_sessionmaker[AsyncSession]
    ) -> None:
        """The signature header is required even when no secret is configured."""
        test_app = build_test_app(session_factory, secret=None)

        async with falcon.testing.ASGIConductor(test_app.app) as conductor:
            result = await _post(
                conductor,
                encode(installation_payload("created")),
                {EVENT_TYPE_HEADER: "installation"},
            )

        assert result.status == falcon.HTTP_400
        assert await test_app.store.get_installation(1001) is None

    @pytest.mark.asyncio
    async def test_unhandled_event_is_still_accepted(
        self, session_factory: async_sessionmaker[AsyncSession]
    ) -> None:
        """Events without a handler are acknowledged and stored."""
        test_app = build_test_app(session_factory)
        body, signature = signed({"zen": "Keep it logically awesome."})

        async with falcon.testing.ASGIConductor(test_app.app) as conductor:
            result = await _post(
                conductor, body, {SIGNATURE_HEADER: signature, EVENT_TYPE_HEADER: "ping"}
            )

        assert result.status == falcon.HTTP_200
        event = await test_app.store.get_webhook_event(result.json["data"]["event_id"])
        assert event is not None
        assert event.event_type == "ping"
        assert event.processed is False
