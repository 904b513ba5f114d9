"""Unit tests for environment parsing helpers."""

from __future__ import annotations

import pytest

from gitwright.config import (
    ConfigurationError,
    env_flag,
    env_positive_float,
    env_positive_int,
    env_str,
)

_VAR = "GITWRIGHT_TEST_SETTING"


class TestEnvStr:
    """Tests for ``env_str``."""

    def test_returns_stripped_value(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Surrounding whitespace is removed."""
        monkeypatch.setenv(_VAR, "  value  ")
        assert env_str(_VAR) == "value"

    @pytest.mark.parametrize("raw", ["", "   "])
    def test_blank_falls_back_to_default(
        self, monkeypatch: pytest.MonkeyPatch, raw: str
    ) -> None:
        """Blank values behave like unset ones."""
        monkeypatch.setenv(_VAR, raw)
        assert env_str(_VAR, "fallback") == "fallback"

    def test_unset_returns_none(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """An unset variable without default yields None."""
        monkeypatch.delenv(_VAR, raising=False)
        assert env_str(_VAR) is None


class TestEnvPositiveInt:
    """Tests for ``env_positive_int``."""

    def test_parses_value(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Digits are parsed as an int."""
        monkeypatch.setenv(_VAR, "60000")
        assert env_positive_int(_VAR, 5) == 60000

    def test_unset_uses_default(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """The default applies when the variable is unset."""
        monkeypatch.delenv(_VAR, raising=False)
        assert env_positive_int(_VAR, 5) == 5

    @pytest.mark.parametrize(
        ("raw", "fragment"),
        [("abc", "must be an integer"), ("0", "must be positive"), ("-3", "positive")],
    )
    def test_rejects_invalid_values(
        self, monkeypatch: pytest.MonkeyPatch, raw: str, fragment: str
    ) -> None:
        """Non-integers and non-positive values raise ConfigurationError."""
        monkeypatch.setenv(_VAR, raw)
        with pytest.raises(ConfigurationError, match=fragment) as exc_info:
            env_positive_int(_VAR, 5)
        assert _VAR in str(exc_info.value), "Expected the variable name in the error"


class TestEnvPositiveFloat:
    """Tests for ``env_positive_float``."""

    def test_parses_value(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Decimal values are accepted."""
        monkeypatch.setenv(_VAR, "2.5")
        assert env_positive_float(_VAR, 1.0) == pytest.approx(2.5)

    @pytest.mark.parametrize("raw", ["nan-ish", "0", "-1.5"])
    def test_rejects_invalid_values(
        self, monkeypatch: pytest.MonkeyPatch, raw: str
    ) -> None:
        """Non-numbers and non-positive values raise ConfigurationError."""
        monkeypatch.setenv(_VAR, raw)
        with pytest.raises(ConfigurationError):
            env_positive_float(_VAR, 1.0)


class TestEnvFlag:
    """Tests for ``env_flag``."""

    @pytest.mark.parametrize(
        ("raw", "expected"),
        [("1", True), ("TRUE", True), ("on", True), ("0", False), ("no", False)],
    )
    def test_parses_booleans(
        self, monkeypatch: pytest.MonkeyPatch, raw: str, *, expected: bool
    ) -> None:
        """Common spellings of true and false are recognised."""
        monkeypatch.setenv(_VAR, raw)
        assert env_flag(_VAR) is expected

    def test_unset_uses_default(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """The default applies when the variable is unset."""
        monkeypatch.delenv(_VAR, raising=False)
        assert env_flag(_VAR, default=True) is True

    def test_rejects_unknown_spelling(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Unrecognised values raise ConfigurationError."""
        monkeypatch.setenv(_VAR, "maybe")
        with pytest.raises(ConfigurationError, match="must be a boolean"):
            env_flag(_VAR)


def test_configuration_error_factories() -> None:
    """The factories name the variable in their message."""
    assert str(ConfigurationError.missing("GITWRIGHT_X")) == "GITWRIGHT_X is required"
    assert str(ConfigurationError.invalid("GITWRIGHT_X", "is bad")) == (
        "GITWRIGHT_X is bad"
    )
