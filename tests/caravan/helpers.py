# ruff: noqa: E402

from __future__ import annotations

import datetime as dt
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[2]
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

from caravan.exec import CommandRequest, CommandResult
from caravan.identity import IdentityContext
from caravan.models import TownConfig
from caravan.models_boundary import IssueRecord
from caravan.services.errors import ExternalCommandFailedError, ServiceFailure

CREATED_AT = "2026-01-01T00:00:00Z"
LANDED_AT = dt.datetime(2026, 1, 1, 3, 30, tzinfo=dt.timezone.utc)


def make_config(**overrides: object) -> TownConfig:
    payload: dict[str, object] = {"rigs": {"gt": "gastown", "bd": "beads"}}
    payload.update(overrides)
    return TownConfig.model_validate(payload)


def fixed_clock() -> dt.datetime:
    return LANDED_AT


class InMemoryIssueStore:
    """Issue store double; every call is appended to ``events``."""

    def __init__(self) -> None:
        self.issues: dict[str, IssueRecord] = {}
        self.tracks: dict[str, list[str]] = {}
        self.messages: list[dict[str, object]] = []
        self.enqueued: list[tuple[str, str]] = []
        self.enqueue_failures: dict[str, ServiceFailure] = {}
        self.read_failures: dict[str, ServiceFailure] = {}
        self.message_failure: ServiceFailure | None = None
        self.events: list[tuple[str, ...]] = []
        self._next_convoy = 0

    def add_issue(
        self,
        issue_id: str,
        *,
        title: str = "",
        status: str = "open",
        assignee: str = "",
        labels: tuple[str, ...] = (),
        issue_type: str = "task",
        description: str = "",
    ) -> IssueRecord:
        record = IssueRecord(
            id=issue_id,
            title=title or f"Issue {issue_id}",
            status=status,
            assignee=assignee,
            labels=labels,
            issue_type=issue_type,
            description=description,
            created_at=CREATED_AT,
        )
        self.issues[issue_id] = record
        return record

    def set_issue(self, issue_id: str, **changes: object) -> None:
        self.issues[issue_id] = self.issues[issue_id].model_copy(update=changes)

    def show_issue(self, issue_id: str) -> IssueRecord | None:
        self.events.append(("show", issue_id))
        failure = self.read_failures.get(issue_id)
        if failure is not None:
            raise failure
        return self.issues.get(issue_id)

    def create_convoy(self, title: str, *, description: str) -> str:
        self._next_convoy += 1
        convoy_id = f"hq-cv-{self._next_convoy}"
        self.add_issue(convoy_id, title=title, issue_type="convoy", description=description)
        self.tracks[convoy_id] = []
        self.events.append(("create_convoy", convoy_id))
        return convoy_id

    def list_convoys(self, *, status: str | None = "open") -> list[IssueRecord]:
        return [
            record
            for record in self.issues.values()
            if record.issue_type == "convoy" and (status is None or record.status == status)
        ]

    def tracked_issue_ids(self, convoy_id: str) -> tuple[str, ...]:
        return tuple(self.tracks.get(convoy_id, ()))

    def add_tracking(self, convoy_id: str, issue_id: str) -> None:
        self.events.append(("add_tracking", convoy_id, issue_id))
        tracked = self.tracks.setdefault(convoy_id, [])
        if issue_id not in tracked:
            tracked.append(issue_id)

    def set_status(self, issue_id: str, status: str, *, reason: str | None = None) -> None:
        self.events.append(("set_status", issue_id, status))
        self.set_issue(issue_id, status=status)

    def update_description(self, issue_id: str, description: str) -> None:
        self.set_issue(issue_id, description=description)

    def enqueue(
        self,
        issue_id: str,
        rig: str,
        *,
        queue_label: str,
    ) -> None:
        self.events.append(("enqueue", issue_id, rig))
        failure = self.enqueue_failures.get(issue_id)
        if failure is not None:
            raise failure
        record = self.issues[issue_id]
        self.set_issue(issue_id, labels=(*record.labels, queue_label, f"rig:{rig}"))
        self.enqueued.append((issue_id, rig))

    def create_message(
        self,
        *,
        recipient: str,
        subject: str,
        body: str,
        metadata: dict[str, object],
    ) -> str:
        if self.message_failure is not None:
            raise self.message_failure
        self.messages.append(
            {"recipient": recipient, "subject": subject, "body": body, "metadata": metadata}
        )
        return f"hq-msg-{len(self.messages)}"


class FakeNotifier:
    def __init__(self, *, fail: bool = False) -> None:
        self.fail = fail
        self.sent: list[tuple[str, str, str]] = []

    def send(self, recipient: str, subject: str, body: str) -> None:
        if self.fail:
            raise ExternalCommandFailedError("mail transport unavailable")
        self.sent.append((recipient, subject, body))


class FakeSessions:
    """Session controller double keyed by session name."""

    def __init__(
        self,
        panes: dict[str, str] | None = None,
        *,
        current: str | None = None,
        fail_switch: bool = False,
        vanish_on_respawn: bool = False,
    ) -> None:
        self.panes = dict(panes or {})
        self.current = current
        self.fail_switch = fail_switch
        self.vanish_on_respawn = vanish_on_respawn
        self.respawned: list[tuple[str, str]] = []
        self.switched: list[str] = []

    def current_session(self) -> str | None:
        return self.current

    def has_session(self, name: str) -> bool:
        return name in self.panes

    def session_pane(self, name: str) -> str | None:
        return self.panes.get(name)

    def respawn_pane(self, pane: str, command: str) -> None:
        if self.vanish_on_respawn:
            self.panes.clear()
            raise ExternalCommandFailedError(f"can't find pane: {pane}")
        self.respawned.append((pane, command))

    def switch_client(self, name: str) -> None:
        if self.fail_switch:
            raise ExternalCommandFailedError("no current client")
        self.switched.append(name)


class FakeRunner:
    """Command runner returning scripted results keyed by argv prefix."""

    def __init__(self, results: dict[tuple[str, ...], CommandResult] | None = None) -> None:
        self.results = dict(results or {})
        self.requests: list[CommandRequest] = []

    def run(self, request: CommandRequest) -> CommandResult | None:
        self.requests.append(request)
        for prefix in sorted(self.results, key=len, reverse=True):
            if request.argv[: len(prefix)] == prefix:
                result = self.results[prefix]
                return CommandResult(
                    argv=request.argv,
                    returncode=result.returncode,
                    stdout=result.stdout,
                    stderr=result.stderr,
                )
        return CommandResult(argv=request.argv, returncode=0, stdout="", stderr="")


def ok(stdout: str = "") -> CommandResult:
    return CommandResult(argv=(), returncode=0, stdout=stdout, stderr="")


def failed(stderr: str, returncode: int = 1) -> CommandResult:
    return CommandResult(argv=(), returncode=returncode, stdout="", stderr=stderr)


def crew_context(
    *,
    rig: str = "gastown",
    crew: str = "joe",
    session: str | None = "cv-gastown-crew-joe",
    pane: str | None = "%3",
    workspace_root: Path | None = None,
) -> IdentityContext:
    return IdentityContext(
        rig=rig,
        crew=crew,
        current_session=session,
        pane=pane,
        workspace_root=workspace_root,
    )
