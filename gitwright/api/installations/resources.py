"""Installation listings read through the request-scoped session."""

from __future__ import annotations

import typing as typ

import falcon
from sqlalchemy import select

from gitwright.api.errors import InstallationNotFoundError, envelope
from gitwright.storage.models import Installation, Repository

if typ.TYPE_CHECKING:
    from falcon.asgi import Request, Response
    from sqlalchemy.ext.asyncio import AsyncSession

__all__ = ["InstallationRepositoriesResource", "InstallationsResource"]


def _serialize_installation(installation: Installation) -> dict[str, typ.Any]:
    return {
        "id": installation.id,
        "account_login": installation.account_login,
        "account_type": installation.account_type,
        "permissions": installation.permissions,
        "created_at": installation.created_at.isoformat(),
        "updated_at": installation.updated_at.isoformat(),
    }


def _serialize_repository(repository: Repository) -> dict[str, typ.Any]:
    return {
        "id": repository.id,
        "full_name": repository.full_name,
        "private": repository.private,
        "clone_url": repository.clone_url,
    }


class InstallationsResource:
    """``GET /installations``."""

    async def on_get(self, req: Request, resp: Response) -> None:
        """List every stored installation."""
        session: AsyncSession = req.context.session
        rows = await session.scalars(select(Installation).order_by(Installation.id))
        resp.media = envelope([_serialize_installation(row) for row in rows.all()])
        resp.status = falcon.HTTP_200


class InstallationRepositoriesResource:
    """``GET /installations/{installation_id}/repositories``."""

    async def on_get(
        self, req: Request, resp: Response, *, installation_id: int
    ) -> None:
        """List the repositories granted to one installation."""
        session: AsyncSession = req.context.session
        if await session.get(Installation, installation_id) is None:
            raise InstallationNotFoundError(installation_id)
        rows = await session.scalars(
            select(Repository)
            .where(Repository.installation_id == installation_id)
            .order_by(Repository.full_name)
        )
        resp.media = envelope([_serialize_repository(row) for row in rows.all()])
        resp.status = falcon.HTTP_200
