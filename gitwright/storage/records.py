"""Data transfer objects exchanged with the Operation Store."""

from __future__ import annotations

import dataclasses


@dataclasses.dataclass(slots=True, frozen=True)
class InstallationRecord:
    """Installation metadata as reported by GitHub."""

    id: int
    account_id: int
    account_login: str
    account_type: str
    permissions: dict[str, str] = dataclasses.field(default_factory=dict)


@dataclasses.dataclass(slots=True, frozen=True)
class RepositoryRecord:
    """Repository metadata as reported by GitHub for one installation."""

    id: int
    name: str
    full_name: str
    owner_login: str
    private: bool
    clone_url: str


@dataclasses.dataclass(slots=True)
class InstallationSyncResult:
    """Summary of one installation synchronisation."""

    installation_id: int
    created: bool = False
    repositories_created: int = 0
    repositories_updated: int = 0
    repositories_removed: int = 0
