import json
from pathlib import Path

import pytest

import caravan.config as config
import caravan.paths as paths
from caravan.models import TownConfig


def _write(path: Path, payload: dict) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(payload), encoding="utf-8")


def test_load_town_config_defaults_when_files_missing(tmp_path: Path) -> None:
    loaded = config.load_town_config(tmp_path, installed_path=tmp_path / "none.json")

    assert loaded.town.prefix == "hq"
    assert loaded.session_prefix == "cv"
    assert loaded.queue_label == "cv:queued"
    assert loaded.resume_commands["mayor"] == "caravan mayor attach"


def test_town_file_overrides_installed_defaults(tmp_path: Path) -> None:
    installed = tmp_path / "installed" / "config.user.json"
    _write(installed, {"session_prefix": "gt", "rigs": {"bd": "beads"}})
    _write(
        paths.town_config_path(tmp_path),
        {"rigs": {"gt": "gastown"}, "resume_commands": {"crew": "crew resume"}},
    )

    loaded = config.load_town_config(tmp_path, installed_path=installed)

    assert loaded.session_prefix == "gt"
    assert loaded.rigs == {"bd": "beads", "gt": "gastown"}
    assert loaded.resume_commands["crew"] == "crew resume"
    assert loaded.resume_commands["witness"] == "caravan witness attach"


def test_invalid_config_exits(tmp_path: Path) -> None:
    _write(paths.town_config_path(tmp_path), {"rigs": ["not", "a", "mapping"]})

    with pytest.raises(SystemExit):
        config.load_town_config(tmp_path, installed_path=tmp_path / "none.json")


def test_rig_for_prefix_ignores_town_namespace() -> None:
    town = TownConfig(town={"prefix": "hq"}, rigs={"hq": "oops", "GT-": "gastown"})

    assert town.rig_for_prefix("hq") is None
    assert town.rig_for_prefix("gt") == "gastown"
    assert town.rig_for_prefix("zz") is None


def test_resolve_town_root_prefers_env_override(tmp_path: Path) -> None:
    resolved = config.resolve_town_root(tmp_path, {config.TOWN_ROOT_ENV: "/srv/town"})

    assert resolved == Path("/srv/town")


def test_resolve_town_root_walks_up(tmp_path: Path) -> None:
    _write(paths.town_config_path(tmp_path), {})
    nested = tmp_path / "gastown" / "crew" / "joe"
    nested.mkdir(parents=True)

    assert config.resolve_town_root(nested, {}) == tmp_path.resolve()


def test_resolve_beads_root_relative_to_town(tmp_path: Path) -> None:
    town = TownConfig()

    assert config.resolve_beads_root(tmp_path, town) == tmp_path / ".beads"


def test_parse_timestamp_treats_naive_as_utc() -> None:
    parsed = config.parse_timestamp("2026-01-18T12:00:00")

    assert parsed is not None
    assert parsed.utcoffset() is not None
    assert config.format_timestamp(parsed) == "2026-01-18T12:00:00Z"
