"""Convoy lifecycle: creation, tracking, landing, and progress.

Closure is pull-based. Nothing here subscribes to issue-store changes;
``evaluate_landing`` re-reads the tracked issues every time it is called and
is the only path that closes a convoy.
"""

from __future__ import annotations

import datetime as dt
from dataclasses import dataclass
from typing import Callable, Iterable

from .. import config as config_util
from .. import log, messages
from ..models import Convoy, TrackedIssueView
from ..models_boundary import IssueRecord
from ..notify import LandedIssue, LandedNotification, send_best_effort
from ..ports import IssueStore, Notifier
from .errors import NotFoundError, ValidationError

NOTIFY_FIELD = "notify"
LANDED_AT_FIELD = "landed_at"
CONVOY_ISSUE_TYPE = "convoy"
LANDED_REASON = "all tracked issues closed"

Clock = Callable[[], dt.datetime]


def _utc_now() -> dt.datetime:
    return dt.datetime.now(tz=dt.timezone.utc)


def _unique(values: Iterable[str]) -> tuple[str, ...]:
    seen: set[str] = set()
    ordered: list[str] = []
    for value in values:
        cleaned = value.strip()
        if not cleaned or cleaned in seen:
            continue
        seen.add(cleaned)
        ordered.append(cleaned)
    return tuple(ordered)


def is_convoy_record(record: IssueRecord | None) -> bool:
    return record is not None and record.issue_type in (None, CONVOY_ISSUE_TYPE)


def tracked_view(record: IssueRecord) -> TrackedIssueView:
    return TrackedIssueView(
        id=record.id,
        title=record.title,
        status=record.status,
        assignee=record.assignee,
        labels=record.labels,
    )


@dataclass(frozen=True)
class TrackResult:
    convoy: Convoy
    added: tuple[str, ...]
    reopened: bool


@dataclass(frozen=True)
class ConvoyProgress:
    """Progress view of one convoy, computed from a fresh read."""

    convoy: Convoy
    issues: tuple[TrackedIssueView, ...]

    @property
    def total(self) -> int:
        return len(self.issues)

    @property
    def closed(self) -> int:
        return sum(1 for issue in self.issues if issue.is_closed)

    def as_dict(self) -> dict[str, object]:
        return {
            "id": self.convoy.id,
            "title": self.convoy.title,
            "status": self.convoy.status,
            "closed": self.closed,
            "total": self.total,
            "subscribers": list(self.convoy.subscribers),
            "landed_at": self.convoy.landed_at,
            "issues": [
                {
                    "id": issue.id,
                    "title": issue.title,
                    "status": issue.status,
                    "assignee": issue.assignee,
                }
                for issue in self.issues
            ],
        }


class ConvoyTracker:
    """Own convoy state stored as ``convoy`` issues in the town namespace."""

    def __init__(
        self,
        store: IssueStore,
        *,
        notifier: Notifier,
        clock: Clock | None = None,
    ) -> None:
        self._store = store
        self._notifier = notifier
        self._clock = clock or _utc_now

    def _read(self, convoy_id: str) -> tuple[IssueRecord, Convoy]:
        record = self._store.show_issue(convoy_id)
        if record is None or not is_convoy_record(record):
            raise NotFoundError(f"convoy '{convoy_id}' not found", identifier=convoy_id)
        fields = messages.parse_description_fields(record.description)
        convoy = Convoy(
            id=record.id,
            title=record.title,
            status="closed" if record.is_closed else "open",
            tracked=frozenset(self._store.tracked_issue_ids(convoy_id)),
            subscribers=messages.split_list_field(fields.get(NOTIFY_FIELD)),
            created_at=record.created_at,
            landed_at=fields.get(LANDED_AT_FIELD) or None,
        )
        return record, convoy

    def get(self, convoy_id: str) -> Convoy:
        return self._read(convoy_id)[1]

    def _require_issues(self, issue_ids: Iterable[str]) -> None:
        for issue_id in issue_ids:
            if self._store.show_issue(issue_id) is None:
                raise NotFoundError(f"issue '{issue_id}' not found", identifier=issue_id)

    def create(
        self,
        title: str,
        issue_ids: Iterable[str] = (),
        subscribers: Iterable[str] = (),
    ) -> Convoy:
        """Create an open convoy tracking ``issue_ids``.

        Every issue is verified before the convoy is written, so a missing id
        leaves no half-built convoy behind.
        """
        cleaned_title = title.strip()
        if not cleaned_title:
            raise ValidationError("convoy title must not be empty")
        ids = _unique(issue_ids)
        self._require_issues(ids)
        notify = _unique(subscribers)
        description = ""
        if notify:
            description = messages.update_description_field(
                description, key=NOTIFY_FIELD, value=", ".join(notify)
            )
        convoy_id = self._store.create_convoy(cleaned_title, description=description)
        for issue_id in ids:
            self._store.add_tracking(convoy_id, issue_id)
        log.debug(f"convoy {convoy_id} created tracking {len(ids)} issue(s)")
        return self.get(convoy_id)

    def track(self, convoy_id: str, issue_ids: Iterable[str]) -> TrackResult:
        """Add issues to a convoy; a closed convoy is reopened."""
        ids = _unique(issue_ids)
        if not ids:
            raise ValidationError("at least one issue id is required")
        record, convoy = self._read(convoy_id)
        self._require_issues(ids)
        added: list[str] = []
        for issue_id in ids:
            if issue_id in convoy.tracked:
                continue
            self._store.add_tracking(convoy_id, issue_id)
            added.append(issue_id)
        reopened = False
        if convoy.is_closed:
            self._store.set_status(convoy_id, "open")
            description = messages.update_description_field(
                record.description, key=LANDED_AT_FIELD, value=None
            )
            if description != record.description:
                self._store.update_description(convoy_id, description)
            reopened = True
            log.info(f"convoy {convoy_id} reopened")
        return TrackResult(convoy=self.get(convoy_id), added=tuple(added), reopened=reopened)

    def evaluate_landing(self, convoy_id: str) -> LandedNotification | None:
        """Close the convoy when every tracked issue is closed.

        Returns the landed payload on transition and ``None`` otherwise. An
        already-closed convoy never lands twice.
        """
        record, convoy = self._read(convoy_id)
        if convoy.is_closed or not convoy.tracked:
            return None
        issues: list[IssueRecord] = []
        for issue_id in sorted(convoy.tracked):
            issue = self._store.show_issue(issue_id)
            if issue is None or not issue.is_closed:
                return None
            issues.append(issue)
        landed = self._clock()
        landed_at = config_util.format_timestamp(landed)
        description = messages.update_description_field(
            record.description, key=LANDED_AT_FIELD, value=landed_at
        )
        self._store.set_status(convoy_id, "closed", reason=LANDED_REASON)
        self._store.update_description(convoy_id, description)
        created = config_util.parse_timestamp(convoy.created_at)
        workers = _unique(issue.assignee for issue in issues)
        notification = LandedNotification(
            convoy_id=convoy_id,
            title=convoy.title,
            issues=tuple(
                LandedIssue(id=issue.id, title=issue.title, status=issue.status)
                for issue in issues
            ),
            workers=workers,
            duration=(landed - created) if created is not None else None,
            landed_at=landed_at,
        )
        log.success(f"convoy {convoy_id} landed")
        for subscriber in convoy.subscribers:
            send_best_effort(
                self._notifier,
                subscriber,
                notification.subject,
                notification.render_body(),
            )
        return notification

    def check_all(self) -> list[LandedNotification]:
        """Evaluate landing for every open convoy."""
        landed: list[LandedNotification] = []
        for record in self._store.list_convoys(status="open"):
            notification = self.evaluate_landing(record.id)
            if notification is not None:
                landed.append(notification)
        return landed

    def progress(self, convoy_id: str) -> ConvoyProgress:
        _, convoy = self._read(convoy_id)
        views: list[TrackedIssueView] = []
        for issue_id in sorted(convoy.tracked):
            issue = self._store.show_issue(issue_id)
            if issue is None:
                views.append(TrackedIssueView(id=issue_id, title="", status="missing"))
                continue
            views.append(tracked_view(issue))
        return ConvoyProgress(convoy=convoy, issues=tuple(views))

    def status(self, convoy_id: str | None = None) -> list[ConvoyProgress]:
        """Progress for one convoy, or for every open convoy."""
        if convoy_id:
            return [self.progress(convoy_id)]
        return [
            self.progress(record.id)
            for record in sorted(self._store.list_convoys(status="open"), key=lambda r: r.id)
        ]
