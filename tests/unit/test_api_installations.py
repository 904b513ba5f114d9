"""Unit tests for the installation listing endpoints."""

from __future__ import annotations

import typing as typ

import falcon
import falcon.testing
import pytest

from tests.helpers.app import build_test_app
from tests.helpers.records import make_installation, make_repository

if typ.TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker


class TestInstallationsEndpoints:
    """``GET /installations`` and its repositories."""

    @pytest.mark.asyncio
    async def test_lists_installations(
        self, session_factory: async_sessionmaker[AsyncSession]
    ) -> None:
        """Every stored installation is listed by id."""
        test_app = build_test_app(session_factory)
        await test_app.store.upsert_installation(make_installation(2002, "kelp"), [])
        await test_app.store.upsert_installation(
            make_installation(), [make_repository()]
        )

        async with falcon.testing.ASGIConductor(test_app.app) as conductor:
            result = await conductor.simulate_get("/installations")

        assert result.status == falcon.HTTP_200
        data = result.json["data"]
        assert [item["id"] for item in data] == [1001, 2002]
        assert data[0]["account_login"] == "octo"
        assert data[0]["permissions"] == {"contents": "write"}

    @pytest.mark.asyncio
    async def test_lists_repositories(
        self, session_factory: async_sessionmaker[AsyncSession]
    ) -> None:
        """Repositories are listed by full name without secrets."""
        test_app = build_test_app(session_factory)
        await test_app.store.upsert_installation(
            make_installation(),
            [
                make_repository(502, "octo/reef", private=True),
                make_repository(501, "octo/kelp"),
            ],
        )

        async with falcon.testing.ASGIConductor(test_app.app) as conductor:
            result = await conductor.simulate_get("/installations/1001/repositories")

        assert result.status == falcon.HTTP_200
        assert result.json["data"] == [
            {
                "id": 501,
                "full_name": "octo/kelp",
                "private": False,
                "clone_url": "https://github.com/octo/kelp.git",
            },
            {
                "id": 502,
                "full_name": "octo/reef",
                "private": True,
                "clone_url": "https://github.com/octo/reef.git",
            },
        ]

    @pytest.mark.asyncio
    async def test_unknown_installation_is_404(
        self, session_factory: async_sessionmaker[AsyncSession]
    ) -> None:
        """Asking for an unknown installation answers 404."""
        test_app = build_test_app(session_factory)

        async with falcon.testing.ASGIConductor(test_app.app) as conductor:
            result = await conductor.simulate_get("/installations/9/repositories")

        assert result.status == falcon.HTTP_404
        assert result.json["success"] is False
