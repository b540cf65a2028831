"""Settings loaded from packaged defaults and an optional user file."""

from pathlib import Path
from tomllib import load
from typing import TypedDict

from overlay import DeleteDisplay

DEFAULTS_FILE = Path(__file__).parent / "defaults.toml"


class Settings(TypedDict):
    """Toolkit settings."""

    delete_display: DeleteDisplay
    cache_ttl_seconds: float


def _read(location: Path) -> dict[str, object]:
    with location.open("rb") as f:
        return load(f).get("settings", {})


def load_settings(location: Path | None = None) -> Settings:
    """Load the defaults, overlaid with the ``[settings]`` table of a user file."""
    raw = _read(DEFAULTS_FILE)
    if location is not None:
        raw |= _read(location)

    try:
        delete_display = DeleteDisplay(str(raw["delete_display"]))
    except ValueError as err:
        msg = f"Unknown delete_display: {raw['delete_display']}"
        raise ValueError(msg) from err

    ttl = float(raw["cache_ttl_seconds"])  # type: ignore[arg-type]
    if ttl < 0:
        msg = f"cache_ttl_seconds must not be negative, got {ttl}"
        raise ValueError(msg)

    return {"delete_display": delete_display, "cache_ttl_seconds": ttl}
