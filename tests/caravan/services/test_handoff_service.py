from pathlib import Path

import pytest

from caravan.hooks import WorkHooks
from caravan.identity import AgentIdentity, IdentityContext, RigSession
from caravan.services.errors import (
    IdentityUnresolvedError,
    NotFoundError,
    RoleNotAllowedError,
    SessionNotFoundError,
    UnknownSessionPatternError,
)
from caravan.services.handoff import HandoffController
from caravan.sessions import RestartRemote, RestartSelf
from tests.caravan.helpers import (
    FakeNotifier,
    FakeSessions,
    InMemoryIssueStore,
    crew_context,
    make_config,
)

JOE = AgentIdentity(role="crew", rig="rigA", name="joe")


def _controller(
    tmp_path: Path,
    *,
    sessions: FakeSessions | None = None,
    notifier: FakeNotifier | None = None,
) -> tuple[HandoffController, InMemoryIssueStore, WorkHooks, FakeSessions, FakeNotifier]:
    store = InMemoryIssueStore()
    store.add_issue("gt-x", title="Fix login")
    hooks = WorkHooks(store, workspace_root=tmp_path)
    active_sessions = sessions or FakeSessions({"cv-rigA-crew-joe": "%3"})
    active_notifier = notifier or FakeNotifier()
    controller = HandoffController(
        store,
        hooks=hooks,
        sessions=active_sessions,
        notifier=active_notifier,
        config=make_config(),
    )
    return controller, store, hooks, active_sessions, active_notifier


def _joe_context() -> IdentityContext:
    return crew_context(rig="rigA", crew="joe", session="cv-rigA-crew-joe", pane="%3")


def test_sling_writes_hook_then_returns_self_restart(tmp_path: Path) -> None:
    controller, _, hooks, sessions, notifier = _controller(tmp_path)

    outcome = controller.sling("gt-x", _joe_context())

    assert outcome.action == RestartSelf(pane="%3", command="caravan crew attach")
    assert hooks.path_for(JOE).exists()
    assert sessions.respawned == []
    first = hooks.consume(JOE)
    assert first is not None and first.issue_id == "gt-x"
    assert hooks.consume(JOE) is None
    assert notifier.sent == [
        (
            "rigA/crew/joe",
            "SLUNG: gt-x",
            "Work slung onto hook. Run bd show gt-x for details.",
        )
    ]


def test_sling_uses_subject_and_message(tmp_path: Path) -> None:
    controller, _, hooks, _, notifier = _controller(tmp_path)

    controller.sling("gt-x", _joe_context(), subject="Login", message="start with auth.py")

    hook = hooks.peek(JOE)
    assert hook is not None
    assert (hook.subject, hook.context) == ("Login", "start with auth.py")
    assert notifier.sent[0][1:] == ("SLUNG: Login", "start with auth.py")


def test_sling_notification_failure_is_not_fatal(tmp_path: Path) -> None:
    controller, _, hooks, _, _ = _controller(tmp_path, notifier=FakeNotifier(fail=True))

    outcome = controller.sling("gt-x", _joe_context())

    assert outcome.notified is False
    assert hooks.peek(JOE) is not None


def test_sling_dry_run_writes_nothing(tmp_path: Path) -> None:
    controller, _, hooks, _, notifier = _controller(tmp_path)

    outcome = controller.sling("gt-x", _joe_context(), dry_run=True)

    assert outcome.dry_run is True
    assert outcome.action == RestartSelf(pane="%3", command="caravan crew attach")
    assert hooks.peek(JOE) is None
    assert notifier.sent == []


def test_sling_rejects_polecats(tmp_path: Path) -> None:
    controller, _, hooks, _, _ = _controller(tmp_path)
    context = IdentityContext(
        rig="rigA", polecat="nux", current_session="cv-rigA-polecat-nux", pane="%7"
    )

    with pytest.raises(RoleNotAllowedError):
        controller.sling("gt-x", context)

    assert not (tmp_path / ".caravan-wisp").exists()


@pytest.mark.parametrize(
    "context",
    [
        IdentityContext(
            rig="rigA",
            crew="joe",
            polecat="nux",
            current_session="cv-rigA-crew-joe",
            pane="%3",
        ),
        IdentityContext(polecat="nux"),
    ],
)
def test_sling_rejects_any_polecat_context(tmp_path: Path, context: IdentityContext) -> None:
    controller, _, hooks, _, _ = _controller(tmp_path)

    with pytest.raises(RoleNotAllowedError):
        controller.sling("gt-x", context)

    assert hooks.peek(JOE) is None


def test_sling_without_identity_fails(tmp_path: Path) -> None:
    controller, _, _, _, _ = _controller(tmp_path)

    with pytest.raises(IdentityUnresolvedError):
        controller.sling("gt-x", IdentityContext())


def test_sling_outside_tmux_fails_before_writing(tmp_path: Path) -> None:
    controller, _, hooks, _, _ = _controller(tmp_path)

    with pytest.raises(IdentityUnresolvedError):
        controller.sling("gt-x", crew_context(rig="rigA", crew="joe", session=None, pane=None))

    assert hooks.peek(JOE) is None


def test_sling_missing_issue_fails_before_writing(tmp_path: Path) -> None:
    controller, _, hooks, _, _ = _controller(tmp_path)

    with pytest.raises(NotFoundError):
        controller.sling("gt-missing", _joe_context())

    assert hooks.peek(JOE) is None


def test_sling_from_unrecognised_session_fails(tmp_path: Path) -> None:
    controller, _, hooks, _, _ = _controller(tmp_path)
    context = crew_context(rig="rigA", crew="joe", session="scratch", pane="%1")

    with pytest.raises(UnknownSessionPatternError):
        controller.sling("gt-x", context)

    assert hooks.peek(JOE) is None


def test_recycle_own_session_restarts_self(tmp_path: Path) -> None:
    controller, _, _, _, _ = _controller(tmp_path)

    outcome = controller.recycle(None, _joe_context())

    assert outcome.is_self is True
    assert outcome.action == RestartSelf(pane="%3", command="caravan crew attach")


def test_recycle_crew_token_targets_own_session(tmp_path: Path) -> None:
    controller, _, _, _, _ = _controller(tmp_path)

    outcome = controller.recycle("crew", _joe_context())

    assert outcome.session == "cv-rigA-crew-joe"
    assert outcome.is_self is True


def test_recycle_remote_witness_with_watch(tmp_path: Path) -> None:
    sessions = FakeSessions({"cv-rigA-crew-joe": "%3", "cv-rigA-witness": "%8"})
    controller, _, _, _, _ = _controller(tmp_path, sessions=sessions)

    outcome = controller.recycle("wit", _joe_context(), watch=True)

    assert outcome.address == RigSession(role="witness", rig="rigA")
    assert outcome.action == RestartRemote(
        session="cv-rigA-witness",
        pane="%8",
        command="caravan witness attach",
        switch_view=True,
    )
    assert sessions.respawned == []


def test_recycle_witness_without_rig_fails(tmp_path: Path) -> None:
    controller, _, _, sessions, _ = _controller(tmp_path)

    with pytest.raises(IdentityUnresolvedError):
        controller.recycle("witness", IdentityContext(current_session="cv-mayor", pane="%1"))

    assert sessions.respawned == []


def test_recycle_missing_session_fails(tmp_path: Path) -> None:
    controller, _, _, _, _ = _controller(tmp_path)

    with pytest.raises(SessionNotFoundError) as excinfo:
        controller.recycle("mayor", _joe_context())

    assert "cv-mayor" in str(excinfo.value)


def test_recycle_literal_session_needs_explicit_role(tmp_path: Path) -> None:
    sessions = FakeSessions({"scratch": "%5"})
    controller, _, _, _, _ = _controller(tmp_path, sessions=sessions)

    with pytest.raises(UnknownSessionPatternError):
        controller.recycle("scratch", _joe_context())


def test_recycle_without_target_outside_tmux_fails(tmp_path: Path) -> None:
    controller, _, _, _, _ = _controller(tmp_path)

    with pytest.raises(IdentityUnresolvedError):
        controller.recycle(None, IdentityContext(rig="rigA", crew="joe"))


def test_recycle_dry_run_reports_same_action(tmp_path: Path) -> None:
    sessions = FakeSessions({"cv-rigA-crew-joe": "%3", "cv-mayor": "%0"})
    controller, _, _, _, _ = _controller(tmp_path, sessions=sessions)

    preview = controller.recycle("may", _joe_context(), dry_run=True)
    actual = controller.recycle("may", _joe_context())

    assert preview.dry_run is True
    assert preview.action == actual.action
