"""Implementation for the ``caravan convoy`` commands."""

from __future__ import annotations

import json

from rich import box
from rich.console import Console
from rich.table import Table

from .. import log
from ..io import say
from ..notify import LANDED_KIND, IssueNotifier, LandedNotification
from ..services.convoy import ConvoyProgress, ConvoyTracker
from ..services.dispatch import DispatchQueue, QueueReport
from ..services.errors import ServiceFailure
from .resolve import TownContext, fail, resolve_town


def _tracker(town: TownContext) -> ConvoyTracker:
    return ConvoyTracker(town.store, notifier=IssueNotifier(town.store, kind=LANDED_KIND))


def _issue_ids(args: object) -> list[str]:
    return [str(value) for value in (getattr(args, "issue_ids", None) or [])]


def create_convoy(args: object) -> None:
    """Create a convoy tracking the given issues."""
    town = resolve_town()
    try:
        convoy = _tracker(town).create(
            str(getattr(args, "title", "") or ""),
            _issue_ids(args),
            [str(value) for value in (getattr(args, "notify", None) or [])],
        )
    except ServiceFailure as exc:
        fail(exc)
    log.success(f"Created convoy {convoy.id}: {convoy.title}")
    say(f"Tracking {len(convoy.tracked)} issue(s)")
    if convoy.subscribers:
        say(f"Notify: {', '.join(convoy.subscribers)}")


def track_convoy(args: object) -> None:
    """Add issues to an existing convoy."""
    town = resolve_town()
    convoy_id = str(getattr(args, "convoy_id", "") or "")
    try:
        result = _tracker(town).track(convoy_id, _issue_ids(args))
    except ServiceFailure as exc:
        fail(exc)
    if result.added:
        say(f"Tracked {len(result.added)} issue(s) in {convoy_id}: {', '.join(result.added)}")
    else:
        say(f"All issues already tracked by {convoy_id}")
    if result.reopened:
        log.warning(f"convoy {convoy_id} was closed and has been reopened")


def _render_progress(progress: list[ConvoyProgress]) -> None:
    console = Console(no_color=log.no_color())
    if not progress:
        say("No open convoys.")
        return
    overview = Table(title="Convoys", box=box.SIMPLE)
    overview.add_column("Convoy", no_wrap=True)
    overview.add_column("Title", overflow="fold")
    overview.add_column("Status", no_wrap=True)
    overview.add_column("Progress", justify="right")
    for item in progress:
        overview.add_row(
            item.convoy.id,
            item.convoy.title,
            item.convoy.status,
            f"{item.closed}/{item.total}",
        )
    console.print(overview)
    if len(progress) != 1:
        return
    issues = progress[0].issues
    if not issues:
        return
    table = Table(title="Tracked issues", box=box.SIMPLE)
    table.add_column("Issue", no_wrap=True)
    table.add_column("Status", no_wrap=True)
    table.add_column("Assignee", no_wrap=True)
    table.add_column("Title", overflow="fold")
    for issue in issues:
        table.add_row(issue.id, issue.status, issue.assignee or "-", issue.title)
    console.print(table)


def convoy_status(args: object) -> None:
    """Show progress for one convoy or every open convoy."""
    town = resolve_town()
    convoy_id = getattr(args, "convoy_id", None)
    try:
        progress = _tracker(town).status(str(convoy_id) if convoy_id else None)
    except ServiceFailure as exc:
        fail(exc)
    if bool(getattr(args, "json", False)):
        say(json.dumps([item.as_dict() for item in progress], indent=2, sort_keys=True))
        return
    _render_progress(progress)


def _render_queue_report(report: QueueReport) -> None:
    if not report.candidates:
        summary = f"No issues to queue from convoy {report.convoy_id}"
        if report.skipped.total:
            summary = f"{summary} ({report.skipped.summary()})"
        say(summary)
    elif report.dry_run:
        say(f"Would queue {report.total} issue(s) from convoy {report.convoy_id}:")
        for candidate in report.candidates:
            say(f"  Would queue: {candidate.issue_id} -> {candidate.rig} ({candidate.title})")
    else:
        say(f"Queued {report.queued}/{report.total} issue(s) from convoy {report.convoy_id}")
    for skip in report.skips:
        log.debug(f"  skipped {skip.issue_id}: {skip.reason}")
    for error in report.errors:
        marker = " [infrastructure]" if error.infrastructure else ""
        log.error(f"  {error.issue_id}{marker}: {error.message}")
    if report.candidates and report.skipped.total:
        say(f"Skipped: {report.skipped.summary()}")


def queue_convoy(args: object) -> None:
    """Queue a convoy's eligible tracked issues into their rig backlogs."""
    town = resolve_town()
    convoy_id = str(getattr(args, "convoy_id", "") or "")
    queue = DispatchQueue(town.store, config=town.config)
    try:
        report = queue.enqueue_tracked(
            convoy_id,
            force=bool(getattr(args, "force", False)),
            dry_run=bool(getattr(args, "dry_run", False)),
        )
    except ServiceFailure as exc:
        fail(exc)
    if bool(getattr(args, "json", False)):
        say(json.dumps(report.as_dict(), indent=2, sort_keys=True))
        return
    _render_queue_report(report)


def _announce_landed(notification: LandedNotification) -> None:
    log.success(f"{notification.subject} ({notification.convoy_id})")


def check_convoys(args: object) -> None:
    """Evaluate landing for one convoy or every open convoy."""
    town = resolve_town()
    tracker = _tracker(town)
    convoy_id = getattr(args, "convoy_id", None)
    try:
        if convoy_id:
            result = tracker.evaluate_landing(str(convoy_id))
            landed = [result] if result is not None else []
        else:
            landed = tracker.check_all()
    except ServiceFailure as exc:
        fail(exc)
    if not landed:
        say("No convoys landed.")
        return
    for notification in landed:
        _announce_landed(notification)
