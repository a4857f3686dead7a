from __future__ import annotations

import copy

from hypothesis import given
from hypothesis import strategies as st

from caravan.services.dispatch import DispatchQueue
from tests.caravan.helpers import InMemoryIssueStore, make_config

PREFIXES = ("gt", "bd", "hq", "zz")
STATUSES = ("open", "in_progress", "blocked", "closed", "tombstone")


@st.composite
def tracked_issues(draw: st.DrawFn) -> list[dict[str, object]]:
    count = draw(st.integers(min_value=0, max_value=12))
    issues: list[dict[str, object]] = []
    for index in range(count):
        prefix = draw(st.sampled_from(PREFIXES))
        issues.append(
            {
                "issue_id": f"{prefix}-{index}",
                "status": draw(st.sampled_from(STATUSES)),
                "assignee": draw(st.sampled_from(("", "gastown/polecats/nux"))),
                "labels": draw(st.sampled_from(((), ("cv:queued",), ("bug",)))),
            }
        )
    return issues


def _seed(issues: list[dict[str, object]]) -> tuple[InMemoryIssueStore, str]:
    store = InMemoryIssueStore()
    convoy_id = store.create_convoy("Batch", description="")
    for issue in issues:
        store.add_issue(
            str(issue["issue_id"]),
            status=str(issue["status"]),
            assignee=str(issue["assignee"]),
            labels=tuple(issue["labels"]),  # type: ignore[arg-type]
        )
        store.add_tracking(convoy_id, str(issue["issue_id"]))
    return store, convoy_id


@given(tracked_issues(), st.booleans())
def test_skip_buckets_and_candidates_partition_tracked_set(
    issues: list[dict[str, object]], force: bool
) -> None:
    store, convoy_id = _seed(issues)

    report = DispatchQueue(store, config=make_config()).enqueue_tracked(
        convoy_id, force=force, dry_run=True
    )

    candidate_ids = [candidate.issue_id for candidate in report.candidates]
    skip_ids = [skip.issue_id for skip in report.skips]
    combined = candidate_ids + skip_ids
    assert len(combined) == len(set(combined))
    assert set(combined) == {str(issue["issue_id"]) for issue in issues}
    assert report.skipped.total + report.total == len(issues)


@given(tracked_issues(), st.booleans())
def test_dry_run_matches_real_run(issues: list[dict[str, object]], force: bool) -> None:
    dry_store, dry_convoy = _seed(copy.deepcopy(issues))
    real_store, real_convoy = _seed(copy.deepcopy(issues))
    config = make_config()

    preview = DispatchQueue(dry_store, config=config).enqueue_tracked(
        dry_convoy, force=force, dry_run=True
    )
    actual = DispatchQueue(real_store, config=config).enqueue_tracked(
        real_convoy, force=force
    )

    assert preview.candidates == actual.candidates
    assert preview.skipped == actual.skipped
    assert dry_store.enqueued == []
    assert actual.queued == actual.total
