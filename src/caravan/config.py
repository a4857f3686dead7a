"""Configuration helpers for Caravan towns.

This module reads and writes the town ``config.json`` and the installed
``config.user.json`` defaults, validates them with Pydantic models, and
resolves the locations other modules need.

Example:
    >>> from caravan.config import utc_now
    >>> utc_now().endswith("Z")
    True
"""

import datetime as dt
import json
import os
from pathlib import Path

from pydantic import ValidationError

from . import paths
from .io import die
from .models import TownConfig

TOWN_ROOT_ENV = "CARAVAN_TOWN_ROOT"


def utc_now() -> str:
    """Return the current UTC timestamp in ISO-8601 format.

    Returns:
        UTC timestamp like ``2026-01-18T12:34:56Z``.

    Example:
        >>> timestamp = utc_now()
        >>> timestamp.endswith("Z")
        True
    """
    return format_timestamp(dt.datetime.now(tz=dt.timezone.utc))


def format_timestamp(value: dt.datetime) -> str:
    """Render an aware datetime as a second-precision UTC ``Z`` string.

    Example:
        >>> format_timestamp(dt.datetime(2026, 1, 18, 12, 0, tzinfo=dt.timezone.utc))
        '2026-01-18T12:00:00Z'
    """
    normalized = value.astimezone(dt.timezone.utc).replace(microsecond=0)
    return normalized.isoformat().replace("+00:00", "Z")


def parse_timestamp(value: str | None) -> dt.datetime | None:
    """Parse an ISO-8601 timestamp, treating naive values as UTC.

    Example:
        >>> parse_timestamp("2026-01-18T12:00:00Z").hour
        12
        >>> parse_timestamp("not a date") is None
        True
    """
    if not value:
        return None
    raw = value.strip()
    if raw.endswith("Z"):
        raw = f"{raw[:-1]}+00:00"
    try:
        parsed = dt.datetime.fromisoformat(raw)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=dt.timezone.utc)
    return parsed


def load_json(path: Path) -> dict | None:
    """Load a JSON file if it exists.

    Args:
        path: Path to the JSON file.

    Returns:
        Parsed payload as a dict, or ``None`` if the file does not exist.

    Example:
        >>> from pathlib import Path
        >>> load_json(Path("missing.json")) is None
        True
    """
    if not path.exists():
        return None
    with path.open("r", encoding="utf-8") as fh:
        payload = json.load(fh)
    if not isinstance(payload, dict):
        die(f"expected a JSON object in {path}")
    return payload


def _merge(base: dict, override: dict) -> dict:
    merged = dict(base)
    for key, value in override.items():
        existing = merged.get(key)
        if isinstance(existing, dict) and isinstance(value, dict):
            merged[key] = _merge(existing, value)
        else:
            merged[key] = value
    return merged


def parse_town_config(payload: dict, source: str) -> TownConfig:
    """Validate a raw town config payload, exiting with a readable error."""
    try:
        return TownConfig.model_validate(payload)
    except ValidationError as exc:
        die(f"invalid config in {source}: {exc}")


def load_town_config(town_root: Path, *, installed_path: Path | None = None) -> TownConfig:
    """Load the town config layered over installed user defaults.

    Args:
        town_root: Town root directory.
        installed_path: Override for the installed defaults file.

    Returns:
        Validated ``TownConfig``. Missing files fall back to defaults.
    """
    installed = load_json(installed_path or paths.installed_config_path()) or {}
    town_path = paths.town_config_path(town_root)
    town_payload = load_json(town_path) or {}
    return parse_town_config(_merge(installed, town_payload), str(town_path))


def resolve_town_root(cwd: Path, env: dict[str, str] | None = None) -> Path | None:
    """Return the town root from ``CARAVAN_TOWN_ROOT`` or by walking up from cwd."""
    environ = env if env is not None else dict(os.environ)
    override = (environ.get(TOWN_ROOT_ENV) or "").strip()
    if override:
        return Path(override).expanduser()
    return paths.find_town_root(cwd)


def resolve_beads_root(town_root: Path, config: TownConfig) -> Path:
    """Return the absolute beads directory for the town."""
    candidate = Path(config.beads.path).expanduser()
    if candidate.is_absolute():
        return candidate
    return town_root / candidate
