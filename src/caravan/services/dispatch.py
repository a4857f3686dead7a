"""Capacity-controlled dispatch of a convoy's tracked issues.

Every tracked issue falls into exactly one bucket, checked in a fixed order:
closed, assigned, already-queued, no-rig, otherwise candidate. Blocked issues
are placed like any other open issue; readiness is decided later by whoever
pulls from the rig backlog.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Literal

from .. import log
from ..models import DispatchCandidate, TownConfig, TrackedIssueView
from ..ports import IssueStore
from .convoy import is_convoy_record, tracked_view
from .errors import InfrastructureError, NotFoundError, ServiceFailure

SkipReason = Literal["closed", "assigned", "already-queued", "no-rig"]
SKIP_REASONS: tuple[SkipReason, ...] = ("closed", "assigned", "already-queued", "no-rig")


@dataclass(frozen=True)
class SkipCounts:
    closed: int = 0
    assigned: int = 0
    already_queued: int = 0
    no_rig: int = 0

    @property
    def total(self) -> int:
        return self.closed + self.assigned + self.already_queued + self.no_rig

    def as_dict(self) -> dict[str, int]:
        return {
            "closed": self.closed,
            "assigned": self.assigned,
            "already-queued": self.already_queued,
            "no-rig": self.no_rig,
        }

    def summary(self) -> str:
        return (
            f"{self.closed} closed, {self.assigned} assigned, "
            f"{self.already_queued} already queued, {self.no_rig} no rig"
        )


@dataclass(frozen=True)
class IssueSkip:
    issue_id: str
    reason: SkipReason


@dataclass(frozen=True)
class IssueError:
    issue_id: str
    message: str
    infrastructure: bool = False


@dataclass(frozen=True)
class QueueReport:
    """Outcome of one ``enqueue_tracked`` call."""

    convoy_id: str
    candidates: tuple[DispatchCandidate, ...]
    skips: tuple[IssueSkip, ...]
    placed: tuple[str, ...] = ()
    errors: tuple[IssueError, ...] = ()
    dry_run: bool = False
    skipped: SkipCounts = field(init=False)

    def __post_init__(self) -> None:
        counts = {reason: 0 for reason in SKIP_REASONS}
        for skip in self.skips:
            counts[skip.reason] += 1
        object.__setattr__(
            self,
            "skipped",
            SkipCounts(
                closed=counts["closed"],
                assigned=counts["assigned"],
                already_queued=counts["already-queued"],
                no_rig=counts["no-rig"],
            ),
        )

    @property
    def queued(self) -> int:
        return len(self.placed)

    @property
    def total(self) -> int:
        return len(self.candidates)

    def as_dict(self) -> dict[str, object]:
        return {
            "convoy_id": self.convoy_id,
            "dry_run": self.dry_run,
            "candidates": [
                {"id": c.issue_id, "rig": c.rig, "title": c.title} for c in self.candidates
            ],
            "skipped": self.skipped.as_dict(),
            "skips": [{"id": s.issue_id, "reason": s.reason} for s in self.skips],
            "placed": list(self.placed),
            "errors": [
                {"id": e.issue_id, "message": e.message, "infrastructure": e.infrastructure}
                for e in self.errors
            ],
            "queued": self.queued,
            "total": self.total,
        }


def classify_issue(
    issue: TrackedIssueView,
    *,
    config: TownConfig,
    force: bool = False,
) -> SkipReason | DispatchCandidate:
    """Return the skip reason for an issue, or its dispatch candidate.

    Example:
        >>> config = TownConfig(rigs={"gt": "gastown"})
        >>> classify_issue(TrackedIssueView(id="gt-1", title="t", status="open"), config=config)
        DispatchCandidate(issue_id='gt-1', rig='gastown', title='t')
        >>> classify_issue(TrackedIssueView(id="hq-1", title="t", status="open"), config=config)
        'no-rig'
    """
    if issue.is_closed:
        return "closed"
    if issue.assignee and not force:
        return "assigned"
    if config.queue_label in issue.labels:
        return "already-queued"
    rig = config.rig_for_prefix(issue.prefix)
    if rig is None:
        return "no-rig"
    return DispatchCandidate(issue_id=issue.id, rig=rig, title=issue.title)


class DispatchQueue:
    """Place a convoy's eligible tracked issues into their rig backlogs."""

    def __init__(self, store: IssueStore, *, config: TownConfig) -> None:
        self._store = store
        self._config = config

    def plan(
        self, convoy_id: str, *, force: bool = False
    ) -> tuple[tuple[DispatchCandidate, ...], tuple[IssueSkip, ...], tuple[IssueError, ...]]:
        """Partition the tracked issues from a fresh read; places nothing.

        A failed read of the convoy aborts. A tracked issue that is missing or
        cannot be read becomes an ``IssueError`` and the rest are classified.
        """
        if not is_convoy_record(self._store.show_issue(convoy_id)):
            raise NotFoundError(f"convoy '{convoy_id}' not found", identifier=convoy_id)
        candidates: list[DispatchCandidate] = []
        skips: list[IssueSkip] = []
        unreadable: list[IssueError] = []
        for issue_id in sorted(self._store.tracked_issue_ids(convoy_id)):
            try:
                record = self._store.show_issue(issue_id)
            except ServiceFailure as exc:
                log.warning(f"could not read {issue_id}: {exc}")
                unreadable.append(
                    IssueError(
                        issue_id=issue_id,
                        message=str(exc),
                        infrastructure=isinstance(exc, InfrastructureError),
                    )
                )
                continue
            if record is None:
                unreadable.append(
                    IssueError(issue_id=issue_id, message=f"issue '{issue_id}' not found")
                )
                continue
            outcome = classify_issue(tracked_view(record), config=self._config, force=force)
            if isinstance(outcome, DispatchCandidate):
                candidates.append(outcome)
                continue
            log.debug(f"skip {issue_id}: {outcome}")
            skips.append(IssueSkip(issue_id=issue_id, reason=outcome))
        return tuple(candidates), tuple(skips), tuple(unreadable)

    def enqueue_tracked(
        self,
        convoy_id: str,
        *,
        force: bool = False,
        dry_run: bool = False,
    ) -> QueueReport:
        """Queue every eligible tracked issue of ``convoy_id``.

        Read and placement failures are recorded against their issue and the
        batch carries on.
        """
        candidates, skips, errors = self.plan(convoy_id, force=force)
        if dry_run:
            return QueueReport(
                convoy_id=convoy_id,
                candidates=candidates,
                skips=skips,
                errors=errors,
                dry_run=True,
            )
        placed: list[str] = []
        failures: list[IssueError] = list(errors)
        for candidate in candidates:
            try:
                self._store.enqueue(
                    candidate.issue_id,
                    candidate.rig,
                    queue_label=self._config.queue_label,
                )
            except ServiceFailure as exc:
                log.warning(f"could not queue {candidate.issue_id}: {exc}")
                failures.append(
                    IssueError(
                        issue_id=candidate.issue_id,
                        message=str(exc),
                        infrastructure=isinstance(exc, InfrastructureError),
                    )
                )
                continue
            placed.append(candidate.issue_id)
        return QueueReport(
            convoy_id=convoy_id,
            candidates=candidates,
            skips=skips,
            placed=tuple(placed),
            errors=tuple(failures),
        )
