"""Typed runtime ports used by the dispatch and hand-off services."""

from __future__ import annotations

from typing import Protocol

from .models_boundary import IssueRecord


class IssueStore(Protocol):
    """Issue-store operations consumed by convoy tracking and dispatch.

    Implementations raise ``InfrastructureError`` when the store itself is
    unhealthy and ``ExternalCommandFailedError`` for other command failures.
    ``show_issue`` returns ``None`` only for a genuinely absent issue.
    """

    def show_issue(self, issue_id: str) -> IssueRecord | None: ...

    def create_convoy(self, title: str, *, description: str) -> str: ...

    def list_convoys(self, *, status: str | None = "open") -> list[IssueRecord]: ...

    def tracked_issue_ids(self, convoy_id: str) -> tuple[str, ...]: ...

    def add_tracking(self, convoy_id: str, issue_id: str) -> None: ...

    def set_status(self, issue_id: str, status: str, *, reason: str | None = None) -> None: ...

    def update_description(self, issue_id: str, description: str) -> None: ...

    def enqueue(
        self,
        issue_id: str,
        rig: str,
        *,
        queue_label: str,
    ) -> None: ...

    def create_message(
        self,
        *,
        recipient: str,
        subject: str,
        body: str,
        metadata: dict[str, object],
    ) -> str: ...


class SessionController(Protocol):
    """Terminal-session host operations used to restart agents."""

    def current_session(self) -> str | None: ...

    def has_session(self, name: str) -> bool: ...

    def session_pane(self, name: str) -> str | None: ...

    def respawn_pane(self, pane: str, command: str) -> None: ...

    def switch_client(self, name: str) -> None: ...


class Notifier(Protocol):
    """Best-effort message delivery."""

    def send(self, recipient: str, subject: str, body: str) -> None: ...
