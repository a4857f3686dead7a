"""Shared town and identity resolution helpers for commands.

This is the only place that reads process state (cwd, environment, tmux).
Everything below the commands receives it as explicit values.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, NoReturn

from .. import beads, config
from ..identity import IdentityContext
from ..io import die
from ..models import TownConfig
from ..services.errors import ServiceFailure
from ..sessions import TmuxSessionController

RIG_ENV = "CARAVAN_RIG"
CREW_ENV = "CARAVAN_CREW"
POLECAT_ENV = "CARAVAN_POLECAT"
TMUX_ENV = "TMUX"
TMUX_PANE_ENV = "TMUX_PANE"
_CREW_DIRNAME = "crew"


@dataclass(frozen=True)
class TownContext:
    root: Path
    config: TownConfig
    store: beads.BeadsClient


def fail(error: ServiceFailure) -> NoReturn:
    """Exit with a service failure's message and recovery hint."""
    message = str(error)
    if error.recovery_hint:
        message = f"{message}\nhint: {error.recovery_hint}"
    die(message)


def resolve_town(cwd: Path | None = None, env: Mapping[str, str] | None = None) -> TownContext:
    """Resolve the current town, its config, and an issue-store client."""
    working_dir = cwd or Path.cwd()
    town_root = config.resolve_town_root(
        working_dir, dict(env) if env is not None else None
    )
    if town_root is None:
        die("not inside a caravan town (no .caravan/config.json found); set CARAVAN_TOWN_ROOT")
    town_config = config.load_town_config(town_root)
    beads_root = config.resolve_beads_root(town_root, town_config)
    store = beads.create_client(beads_root=beads_root, cwd=town_root)
    return TownContext(root=town_root, config=town_config, store=store)


def detect_crew_from_cwd(cwd: Path, town_root: Path) -> tuple[str | None, str | None]:
    """Return ``(rig, crew)`` when cwd is inside ``<town>/<rig>/crew/<name>``.

    Example:
        >>> detect_crew_from_cwd(Path("/town/gastown/crew/joe/src"), Path("/town"))
        ('gastown', 'joe')
        >>> detect_crew_from_cwd(Path("/elsewhere"), Path("/town"))
        (None, None)
    """
    try:
        relative = cwd.relative_to(town_root)
    except ValueError:
        return None, None
    parts = relative.parts
    if len(parts) >= 3 and parts[1] == _CREW_DIRNAME:
        return parts[0], parts[2]
    return None, None


def _clean(value: str | None) -> str | None:
    if value is None:
        return None
    cleaned = value.strip()
    return cleaned or None


def build_identity_context(
    town: TownContext,
    *,
    cwd: Path | None = None,
    env: Mapping[str, str] | None = None,
    sessions: TmuxSessionController | None = None,
) -> IdentityContext:
    """Merge environment, cwd detection, and tmux state into one context."""
    environ = env if env is not None else os.environ
    working_dir = cwd or Path.cwd()
    detected_rig, detected_crew = detect_crew_from_cwd(working_dir, town.root)
    rig = _clean(environ.get(RIG_ENV)) or detected_rig
    crew = _clean(environ.get(CREW_ENV)) or detected_crew
    polecat = _clean(environ.get(POLECAT_ENV))
    current_session: str | None = None
    pane: str | None = None
    if _clean(environ.get(TMUX_ENV)):
        controller = sessions or TmuxSessionController()
        current_session = controller.current_session()
        pane = _clean(environ.get(TMUX_PANE_ENV))
    return IdentityContext(
        rig=rig,
        crew=crew,
        polecat=polecat,
        current_session=current_session,
        pane=pane,
        workspace_root=town.root,
    )
