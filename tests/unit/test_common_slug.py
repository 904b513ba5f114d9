"""Unit tests for repository full-name utilities."""

from __future__ import annotations

import pytest

from gitwright.common.slug import full_name, parse_full_name


def test_full_name_combines_owner_and_name() -> None:
    """full_name returns owner/name format."""
    assert full_name("octo", "reef") == "octo/reef"
    assert full_name("Owner-Org", "repo.js") == "Owner-Org/repo.js"


def test_parse_full_name_splits_owner_and_name() -> None:
    """parse_full_name returns (owner, name) for valid names."""
    assert parse_full_name("octo/reef") == ("octo", "reef")
    assert parse_full_name("Owner-Org/Repo_Name.py") == ("Owner-Org", "Repo_Name.py")


@pytest.mark.parametrize(
    "value",
    [
        "",
        "   ",
        "/",
        "invalid",
        "owner/name/extra",
        "owner/",
        "/name",
        "owner/..",
        "../name",
        "owner/na me",
        "owner/name;rm",
        r"owner\name",
    ],
)
def test_parse_full_name_rejects_invalid_values(value: str) -> None:
    """parse_full_name rejects names unsafe as workspace directories."""
    with pytest.raises(ValueError, match="Invalid repository name"):
        parse_full_name(value)
