"""Typed GitHub REST payloads used by the app client."""

from __future__ import annotations

import dataclasses
import datetime as dt

import msgspec

from gitwright.storage.records import InstallationRecord, RepositoryRecord


@dataclasses.dataclass(frozen=True, slots=True)
class InstallationToken:
    """Installation-scoped access token and its expiry."""

    token: str = dataclasses.field(repr=False)
    expires_at: dt.datetime

    def remaining(self, now: dt.datetime) -> dt.timedelta:
        """Return how long the token stays valid after ``now``."""
        return self.expires_at - now


class AccessTokenPayload(msgspec.Struct, kw_only=True):
    """Body of ``POST /app/installations/{id}/access_tokens``."""

    token: str
    expires_at: dt.datetime


class AccountPayload(msgspec.Struct, kw_only=True):
    """Account that owns an installation or repository."""

    id: int
    login: str
    type: str = "User"


class InstallationPayload(msgspec.Struct, kw_only=True):
    """Installation object shared by REST responses and webhook bodies."""

    id: int
    account: AccountPayload
    permissions: dict[str, str] = msgspec.field(default_factory=dict)

    def to_record(self) -> InstallationRecord:
        """Convert to the store's installation record."""
        return InstallationRecord(
            id=self.id,
            account_id=self.account.id,
            account_login=self.account.login,
            account_type=self.account.type,
            permissions=dict(self.permissions),
        )


class OwnerPayload(msgspec.Struct, kw_only=True):
    """Repository owner."""

    login: str


class RepositoryPayload(msgspec.Struct, kw_only=True):
    """Repository entry from ``GET /installation/repositories``."""

    id: int
    name: str
    full_name: str
    private: bool = False
    clone_url: str
    owner: OwnerPayload

    def to_record(self) -> RepositoryRecord:
        """Convert to the store's repository record."""
        return RepositoryRecord(
            id=self.id,
            name=self.name,
            full_name=self.full_name,
            owner_login=self.owner.login,
            private=self.private,
            clone_url=self.clone_url,
        )


class RepositoryPage(msgspec.Struct, kw_only=True):
    """One page of ``GET /installation/repositories``."""

    total_count: int
    repositories: list[RepositoryPayload] = msgspec.field(default_factory=list)
