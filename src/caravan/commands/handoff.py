"""Implementation for the ``caravan sling`` and ``caravan recycle`` commands.

Both commands end by restarting a tmux pane. For a self-restart that is the
last thing this process does.
"""

from __future__ import annotations

from .. import log
from ..hooks import WorkHooks
from ..io import say
from ..notify import SLUNG_KIND, IssueNotifier
from ..services.errors import ServiceFailure
from ..services.handoff import HandoffController
from ..sessions import RestartAction, RestartRemote, TmuxSessionController, perform_restart
from .resolve import TownContext, build_identity_context, fail, resolve_town


def _controller(town: TownContext, sessions: TmuxSessionController) -> HandoffController:
    return HandoffController(
        town.store,
        hooks=WorkHooks(town.store, workspace_root=town.root),
        sessions=sessions,
        notifier=IssueNotifier(town.store, kind=SLUNG_KIND),
        config=town.config,
    )


def describe_action(action: RestartAction) -> str:
    if isinstance(action, RestartRemote):
        text = f"respawn pane {action.pane} of session {action.session} with: {action.command}"
        if action.switch_view:
            text = f"{text} (then switch client)"
        return text
    return f"respawn own pane {action.pane} with: {action.command}"


def _execute(action: RestartAction, sessions: TmuxSessionController) -> None:
    try:
        report = perform_restart(action, sessions)
    except ServiceFailure as exc:
        fail(exc)
    if report.switch_error:
        log.warning(f"restarted, but could not switch view: {report.switch_error}")


def sling(args: object) -> None:
    """Attach an issue to the caller's hook and restart the caller in place."""
    town = resolve_town()
    sessions = TmuxSessionController()
    context = build_identity_context(town, sessions=sessions)
    dry_run = bool(getattr(args, "dry_run", False))
    issue_id = str(getattr(args, "issue_id", "") or "")
    try:
        outcome = _controller(town, sessions).sling(
            issue_id,
            context,
            subject=getattr(args, "subject", None),
            message=getattr(args, "message", None),
            dry_run=dry_run,
        )
    except ServiceFailure as exc:
        fail(exc)
    if outcome.dry_run:
        say(f"Would attach {outcome.issue_id} to hook of {outcome.identity.address}")
        say(f"Would {describe_action(outcome.action)}")
        return
    if not outcome.notified:
        log.warning("hand-off message was not sent; continuing with restart")
    say(f"Slung {outcome.issue_id} onto {outcome.identity.address}; restarting")
    _execute(outcome.action, sessions)


def recycle(args: object) -> None:
    """Restart a session in place (the caller's own by default)."""
    town = resolve_town()
    sessions = TmuxSessionController()
    context = build_identity_context(town, sessions=sessions)
    try:
        outcome = _controller(town, sessions).recycle(
            getattr(args, "target", None),
            context,
            watch=bool(getattr(args, "watch", True)),
            dry_run=bool(getattr(args, "dry_run", False)),
        )
    except ServiceFailure as exc:
        fail(exc)
    if outcome.dry_run:
        say(f"Would {describe_action(outcome.action)}")
        return
    say(f"Recycling {outcome.session}")
    _execute(outcome.action, sessions)
