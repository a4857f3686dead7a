"""Landed and hand-off notification payloads.

Messages are delivered as message issues in the issue store; delivery is
always best-effort and never aborts the operation that triggered it.
"""

from __future__ import annotations

import datetime as dt
from dataclasses import dataclass

from . import log
from .ports import IssueStore, Notifier
from .services.errors import ServiceFailure

LANDED_KIND = "convoy-landed"
SLUNG_KIND = "work-slung"


@dataclass(frozen=True)
class LandedIssue:
    id: str
    title: str
    status: str


@dataclass(frozen=True)
class LandedNotification:
    """Payload emitted when a convoy lands."""

    convoy_id: str
    title: str
    issues: tuple[LandedIssue, ...]
    workers: tuple[str, ...]
    duration: dt.timedelta | None
    landed_at: str

    @property
    def subject(self) -> str:
        return f"Convoy landed: {self.title}"

    def render_body(self) -> str:
        lines = [f"Convoy {self.convoy_id} has landed.", ""]
        lines.append(f"Issues ({len(self.issues)}):")
        for issue in self.issues:
            lines.append(f"  - {issue.id} [{issue.status}] {issue.title}".rstrip())
        if self.workers:
            lines.append("")
            lines.append(f"Workers: {', '.join(self.workers)}")
        lines.append("")
        lines.append(f"Duration: {format_duration(self.duration)}")
        return "\n".join(lines) + "\n"

    def as_dict(self) -> dict[str, object]:
        return {
            "convoy_id": self.convoy_id,
            "title": self.title,
            "issues": [
                {"id": issue.id, "title": issue.title, "status": issue.status}
                for issue in self.issues
            ],
            "workers": list(self.workers),
            "duration_seconds": (
                int(self.duration.total_seconds()) if self.duration is not None else None
            ),
            "landed_at": self.landed_at,
        }


def format_duration(value: dt.timedelta | None) -> str:
    """Render a duration compactly.

    Example:
        >>> format_duration(dt.timedelta(hours=2, minutes=5))
        '2h 5m'
        >>> format_duration(dt.timedelta(seconds=42))
        '42s'
        >>> format_duration(None)
        'unknown'
    """
    if value is None:
        return "unknown"
    total = max(int(value.total_seconds()), 0)
    days, remainder = divmod(total, 86400)
    hours, remainder = divmod(remainder, 3600)
    minutes, seconds = divmod(remainder, 60)
    if days:
        return f"{days}d {hours}h"
    if hours:
        return f"{hours}h {minutes}m"
    if minutes:
        return f"{minutes}m {seconds}s"
    return f"{seconds}s"


def sling_subject(issue_id: str, subject: str | None) -> str:
    """Subject line for a hand-off message.

    Example:
        >>> sling_subject("gt-1", None)
        'SLUNG: gt-1'
    """
    return f"SLUNG: {subject or issue_id}"


def sling_body(issue_id: str, context: str | None) -> str:
    if context:
        return context
    return f"Work slung onto hook. Run bd show {issue_id} for details."


class IssueNotifier:
    """Notifier writing message issues assigned to the recipient."""

    def __init__(self, store: IssueStore, *, kind: str = LANDED_KIND) -> None:
        self._store = store
        self._kind = kind

    def send(self, recipient: str, subject: str, body: str) -> None:
        self._store.create_message(
            recipient=recipient,
            subject=subject,
            body=body,
            metadata={"from": "caravan", "kind": self._kind, "to": recipient},
        )


def send_best_effort(notifier: Notifier, recipient: str, subject: str, body: str) -> bool:
    """Send a message, logging instead of raising on failure."""
    try:
        notifier.send(recipient, subject, body)
    except ServiceFailure as exc:
        log.warning(f"notification to {recipient} failed: {exc}")
        return False
    return True
