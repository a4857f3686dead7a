"""Sling and recycle decisions.

The controller never restarts anything itself. It validates, writes the work
hook when slinging, and returns the restart action for the boundary to run as
its last act.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import NoReturn

from .. import log
from ..hooks import WorkHook, WorkHooks
from ..identity import (
    AgentIdentity,
    IdentityContext,
    SessionAddress,
    decode_session_name,
    resolve_agent_identity,
    resolve_role_token,
    restart_command,
    session_name,
)
from ..models import TownConfig
from ..notify import send_best_effort, sling_body, sling_subject
from ..ports import IssueStore, Notifier, SessionController
from ..sessions import RestartAction, RestartRemote, RestartSelf
from .errors import (
    IdentityUnresolvedError,
    NotFoundError,
    RoleNotAllowedError,
    SessionNotFoundError,
)


@dataclass(frozen=True)
class SlingOutcome:
    identity: AgentIdentity
    issue_id: str
    action: RestartSelf
    hook: WorkHook | None = None
    notified: bool = False
    dry_run: bool = False


@dataclass(frozen=True)
class RecycleOutcome:
    address: SessionAddress
    session: str
    action: RestartAction
    dry_run: bool = False

    @property
    def is_self(self) -> bool:
        return isinstance(self.action, RestartSelf)


def _reject_worker(who: str) -> NoReturn:
    raise RoleNotAllowedError(
        f"{who} is a worker and cannot sling work onto itself",
        recovery_hint="finish the current issue through the normal completion path",
    )


def _require_tmux(context: IdentityContext) -> tuple[str, str]:
    if not context.current_session or not context.pane:
        raise IdentityUnresolvedError(
            "not running inside a tmux session",
            recovery_hint="run this from the agent's tmux pane",
        )
    return context.current_session, context.pane


class HandoffController:
    """Turn attached or queued work into a restart of the right session."""

    def __init__(
        self,
        store: IssueStore,
        *,
        hooks: WorkHooks,
        sessions: SessionController,
        notifier: Notifier,
        config: TownConfig,
    ) -> None:
        self._store = store
        self._hooks = hooks
        self._sessions = sessions
        self._notifier = notifier
        self._config = config

    @property
    def _prefix(self) -> str:
        return self._config.session_prefix

    def sling(
        self,
        issue_id: str,
        context: IdentityContext,
        *,
        subject: str | None = None,
        message: str | None = None,
        dry_run: bool = False,
    ) -> SlingOutcome:
        """Attach ``issue_id`` to the caller's hook and plan a self-restart.

        All checks run before anything is written. The hook is on disk before
        the restart action is handed back.
        """
        if context.polecat:
            _reject_worker(f"polecat {context.polecat}")
        identity = resolve_agent_identity(context, prefix=self._prefix)
        if identity.is_worker:
            _reject_worker(identity.address)
        current, pane = _require_tmux(context)
        command = restart_command(
            decode_session_name(current, prefix=self._prefix),
            self._config.resume_commands,
            prefix=self._prefix,
        )
        if self._store.show_issue(issue_id) is None:
            raise NotFoundError(f"issue '{issue_id}' not found", identifier=issue_id)
        action = RestartSelf(pane=pane, command=command)
        if dry_run:
            return SlingOutcome(identity=identity, issue_id=issue_id, action=action, dry_run=True)
        hook = self._hooks.attach(identity, issue_id, subject=subject, context=message)
        log.info(f"work attached to hook: {issue_id} -> {identity.address}")
        notified = send_best_effort(
            self._notifier,
            identity.address,
            sling_subject(issue_id, subject),
            sling_body(issue_id, message),
        )
        return SlingOutcome(
            identity=identity,
            issue_id=issue_id,
            action=action,
            hook=hook,
            notified=notified,
        )

    def recycle(
        self,
        target: str | None,
        context: IdentityContext,
        *,
        watch: bool = True,
        dry_run: bool = False,
    ) -> RecycleOutcome:
        """Plan a restart of ``target`` (a role token or session name).

        With no target the caller's own session is recycled.
        """
        if target and target.strip():
            address = resolve_role_token(target, context, prefix=self._prefix)
        else:
            if not context.current_session:
                raise IdentityUnresolvedError(
                    "no target given and not running inside a tmux session",
                    recovery_hint="pass a role (mayor, crew, witness, ...) or a session name",
                )
            address = decode_session_name(context.current_session, prefix=self._prefix)
        session = session_name(address, prefix=self._prefix)
        command = restart_command(address, self._config.resume_commands, prefix=self._prefix)
        action: RestartAction
        if session == context.current_session:
            _, pane = _require_tmux(context)
            action = RestartSelf(pane=pane, command=command)
        else:
            if not self._sessions.has_session(session):
                raise SessionNotFoundError(session)
            remote_pane = self._sessions.session_pane(session)
            if remote_pane is None:
                raise SessionNotFoundError(session)
            action = RestartRemote(
                session=session,
                pane=remote_pane,
                command=command,
                switch_view=watch,
            )
        return RecycleOutcome(address=address, session=session, action=action, dry_run=dry_run)
