# ruff: noqa: E402

import builtins
import sys
from pathlib import Path

import pytest
from _pytest.doctest import DoctestModule

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

import caravan.log as caravan_log

DOCTEST_MODULES = {
    ROOT / "src" / "caravan" / "__init__.py",
    ROOT / "src" / "caravan" / "beads.py",
    ROOT / "src" / "caravan" / "config.py",
    ROOT / "src" / "caravan" / "hooks.py",
    ROOT / "src" / "caravan" / "identity.py",
    ROOT / "src" / "caravan" / "io.py",
    ROOT / "src" / "caravan" / "models.py",
    ROOT / "src" / "caravan" / "notify.py",
    ROOT / "src" / "caravan" / "paths.py",
    ROOT / "src" / "caravan" / "commands" / "resolve.py",
    ROOT / "src" / "caravan" / "services" / "dispatch.py",
}


@pytest.fixture(autouse=True)
def _isolated_runtime(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(caravan_log, "_configured_level", None)
    monkeypatch.setattr(caravan_log, "_no_color_override", None)
    monkeypatch.delenv("CARAVAN_LOG_LEVEL", raising=False)

    def fail_input(prompt: str = "") -> str:
        raise AssertionError("prompted unexpectedly")

    monkeypatch.setattr(builtins, "input", fail_input)


def pytest_collect_file(
    parent: pytest.Collector, file_path: Path
) -> DoctestModule | None:
    path = file_path if isinstance(file_path, Path) else Path(str(file_path))
    if path in DOCTEST_MODULES:
        return DoctestModule.from_parent(parent, path=path)
    return None
