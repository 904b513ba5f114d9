"""Repository full-name utilities.

GitHub identifies repositories by ``owner/name``. These strings look like
paths but they are not, so callers parse them here instead of with
``pathlib``. The same rules decide whether a name is safe to use as a
directory segment inside the execution worker's workspace.
"""

from __future__ import annotations

import re

# GitHub allows alphanumerics, '-', '_' and '.' in owner and repo names.
_SEGMENT_RE = re.compile(r"^[A-Za-z0-9_.-]+$")


def full_name(owner: str, name: str) -> str:
    """Build a repository full name from owner and name.

    Examples
    --------
    >>> full_name("octo", "hello")
    'octo/hello'

    """
    return f"{owner}/{name}"


def _is_safe_segment(segment: str) -> bool:
    return bool(_SEGMENT_RE.match(segment)) and segment not in {".", ".."}


def parse_full_name(value: str) -> tuple[str, str]:
    """Split ``owner/name`` into its parts.

    Parameters
    ----------
    value:
        Repository full name.

    Returns
    -------
    tuple[str, str]
        ``(owner, name)``.

    Raises
    ------
    ValueError
        If ``value`` is not exactly two non-empty segments made of characters
        GitHub permits in owner and repository names.

    Examples
    --------
    >>> parse_full_name("octo/hello")
    ('octo', 'hello')

    """
    parts = value.split("/")
    if len(parts) != 2 or not all(_is_safe_segment(part) for part in parts):  # noqa: PLR2004
        msg = f"Invalid repository name: expected 'owner/name', got {value!r}"
        raise ValueError(msg)
    return parts[0], parts[1]
