"""Tests for loading toolkit settings."""

from pathlib import Path

import pytest
from overlay import DeleteDisplay

from grid_toolkit.settings import load_settings


def test_defaults() -> None:
    """Packaged defaults apply without a user file."""
    assert load_settings() == {
        "delete_display": DeleteDisplay.STRIKETHROUGH,
        "cache_ttl_seconds": 300.0,
    }


def test_user_file_overrides(tmp_path: Path) -> None:
    """Keys of a user file replace the defaults."""
    location = tmp_path / "settings.toml"
    location.write_text('[settings]\ndelete_display = "hidden"\n', encoding="utf-8")

    settings = load_settings(location)

    assert settings["delete_display"] == DeleteDisplay.HIDDEN
    assert settings["cache_ttl_seconds"] == 300.0


@pytest.mark.parametrize(
    ("content", "message"),
    [
        ('delete_display = "faded"', "Unknown delete_display"),
        ("cache_ttl_seconds = -1", "must not be negative"),
    ],
)
def test_invalid_values(tmp_path: Path, content: str, message: str) -> None:
    """Unknown policies and negative durations are refused."""
    location = tmp_path / "settings.toml"
    location.write_text(f"[settings]\n{content}\n", encoding="utf-8")

    with pytest.raises(ValueError, match=message):
        load_settings(location)
