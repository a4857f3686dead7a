"""tmux session adapter and restart-action executor."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Union

from . import exec, log
from .ports import SessionController
from .services.errors import ExternalCommandFailedError, SessionNotFoundError


@dataclass(frozen=True)
class RestartSelf:
    """Respawn the caller's own pane; this ends the calling process."""

    pane: str
    command: str


@dataclass(frozen=True)
class RestartRemote:
    """Respawn another session's pane and optionally switch the view to it."""

    session: str
    pane: str
    command: str
    switch_view: bool = True


RestartAction = Union[RestartSelf, RestartRemote]


@dataclass(frozen=True)
class RestartReport:
    action: RestartAction
    switched: bool = False
    switch_error: str | None = None


class TmuxSessionController:
    """Session controller backed by the ``tmux`` CLI."""

    def __init__(self, *, runner: exec.CommandRunner | None = None) -> None:
        self._runner = runner

    def _run(self, *args: str) -> exec.CommandResult:
        request = exec.CommandRequest(argv=("tmux", *args))
        log.trace(f"tmux: {request.display()}")
        result = exec.run_with_runner(request, runner=self._runner)
        if result is None:
            raise ExternalCommandFailedError(exec.missing_command_detail(request))
        return result

    def current_session(self) -> str | None:
        result = self._run("display-message", "-p", "#{session_name}")
        if not result.ok:
            return None
        name = result.stdout.strip()
        return name or None

    def has_session(self, name: str) -> bool:
        return self._run("has-session", "-t", f"={name}").ok

    def session_pane(self, name: str) -> str | None:
        result = self._run("list-panes", "-t", name, "-F", "#{pane_id}")
        if not result.ok:
            return None
        for line in result.stdout.splitlines():
            pane = line.strip()
            if pane:
                return pane
        return None

    def respawn_pane(self, pane: str, command: str) -> None:
        request = exec.CommandRequest(argv=("tmux", "respawn-pane", "-k", "-t", pane, command))
        result = self._run(*request.argv[1:])
        if not result.ok:
            raise ExternalCommandFailedError(exec.command_failure_detail(request, result))

    def switch_client(self, name: str) -> None:
        request = exec.CommandRequest(argv=("tmux", "switch-client", "-t", name))
        result = self._run(*request.argv[1:])
        if not result.ok:
            raise ExternalCommandFailedError(exec.command_failure_detail(request, result))


def perform_restart(action: RestartAction, controller: SessionController) -> RestartReport:
    """Execute a restart action.

    A respawn failure propagates. For a remote restart the client switch is
    best-effort: its failure lands in the report instead of raising.
    """
    if isinstance(action, RestartRemote):
        if not controller.has_session(action.session):
            raise SessionNotFoundError(action.session)
        try:
            controller.respawn_pane(action.pane, action.command)
        except ExternalCommandFailedError as exc:
            if not controller.has_session(action.session):
                raise SessionNotFoundError(action.session) from exc
            raise
    else:
        controller.respawn_pane(action.pane, action.command)
    if not isinstance(action, RestartRemote) or not action.switch_view:
        return RestartReport(action=action)
    try:
        controller.switch_client(action.session)
    except ExternalCommandFailedError as exc:
        log.warning(f"could not switch to {action.session}: {exc}")
        return RestartReport(action=action, switch_error=str(exc))
    return RestartReport(action=action, switched=True)
