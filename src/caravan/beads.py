"""Beads CLI helpers for Caravan.

``BeadsClient`` is the issue-store facade the services depend on. Every call
shells out to ``bd`` with ``--json``; failures are classified into
``InfrastructureError`` (the store itself is broken) or
``ExternalCommandFailedError`` (anything else). Nothing is retried.
"""

from __future__ import annotations

import json
import os
import subprocess
from dataclasses import dataclass
from pathlib import Path
from tempfile import NamedTemporaryFile

from . import exec, log, messages
from .models_boundary import IssueRecord, dependency_ids, parse_issue_record
from .services.errors import (
    ExternalCommandFailedError,
    InfrastructureError,
    UnexpectedStateError,
)

CONVOY_ISSUE_TYPE = "convoy"
TRACKS_DEPENDENCY = "tracks"
MESSAGE_LABEL = "cv:message"
UNREAD_LABEL = "cv:unread"
RIG_LABEL_PREFIX = "rig:"
_INFRASTRUCTURE_MARKERS = (
    "panic:",
    "runtime error",
    "nil pointer",
    "sigsegv",
    "segmentation",
    "signal:",
    "table 'wisps'",
    "no such table",
    "doltdb",
)
_NOT_FOUND_MARKERS = ("not found", "no issue found", "no such issue")


def is_infrastructure_error(detail: str | None) -> bool:
    """Return whether failure text points at a broken store rather than bad data.

    Example:
        >>> is_infrastructure_error("panic: runtime error: nil pointer dereference")
        True
        >>> is_infrastructure_error("Error: issue gt-1 not found")
        False
    """
    if not detail:
        return False
    normalized = detail.lower()
    return any(marker in normalized for marker in _INFRASTRUCTURE_MARKERS)


def is_not_found_error(detail: str | None) -> bool:
    if not detail or is_infrastructure_error(detail):
        return False
    normalized = detail.lower()
    return any(marker in normalized for marker in _NOT_FOUND_MARKERS)


def rig_label(rig: str) -> str:
    """Return the label routing an issue into a rig backlog.

    Example:
        >>> rig_label("gastown")
        'rig:gastown'
    """
    return f"{RIG_LABEL_PREFIX}{rig}"


def beads_env(beads_root: Path) -> dict[str, str]:
    """Return an environment mapping with BEADS_DIR set."""
    env = os.environ.copy()
    env["BEADS_DIR"] = str(beads_root)
    actor = env.get("CARAVAN_ACTOR")
    if actor:
        env.setdefault("BD_ACTOR", actor)
    return env


def _decode_json(raw: str, *, request: exec.CommandRequest) -> list[dict[str, object]]:
    text = raw.strip()
    if not text:
        return []
    try:
        payload = json.loads(text)
    except json.JSONDecodeError as exc:
        raise UnexpectedStateError(
            f"failed to parse bd json output from {request.display()}: {exc}"
        ) from exc
    if isinstance(payload, list):
        return [item for item in payload if isinstance(item, dict)]
    if isinstance(payload, dict):
        return [payload]
    return []


@dataclass(frozen=True)
class BeadsClient:
    """Typed Beads command boundary for convoy, dispatch, and message queries."""

    beads_root: Path
    cwd: Path
    runner: exec.CommandRunner | None = None

    def _request(self, args: list[str]) -> exec.CommandRequest:
        return exec.CommandRequest(
            argv=("bd", *args),
            cwd=self.cwd,
            env=beads_env(self.beads_root),
            capture_output=True,
            text=True,
            stdin=subprocess.DEVNULL,
        )

    def run_command(
        self,
        args: list[str],
        *,
        identifier: str | None = None,
        allow_not_found: bool = False,
    ) -> exec.CommandResult | None:
        """Run ``bd`` and raise a classified failure on a non-zero exit.

        Returns ``None`` only when ``allow_not_found`` is set and ``bd``
        reported the target as missing.
        """
        request = self._request(args)
        log.trace(f"bd: {request.display()}")
        result = exec.run_with_runner(request, runner=self.runner)
        if result is None:
            raise ExternalCommandFailedError(
                exec.missing_command_detail(request),
                recovery_hint="install beads (bd) and make sure it is on PATH",
            )
        if result.ok:
            return result
        detail = result.detail
        if is_infrastructure_error(detail):
            raise InfrastructureError(detail or "bd command failed", identifier=identifier)
        if allow_not_found and is_not_found_error(detail):
            return None
        raise ExternalCommandFailedError(exec.command_failure_detail(request, result))

    def run_json(
        self,
        args: list[str],
        *,
        identifier: str | None = None,
        allow_not_found: bool = False,
    ) -> list[dict[str, object]]:
        command = list(args)
        if "--json" not in command:
            command.append("--json")
        result = self.run_command(
            command, identifier=identifier, allow_not_found=allow_not_found
        )
        if result is None:
            return []
        return _decode_json(result.stdout, request=self._request(command))

    def _show_raw(self, issue_id: str) -> dict[str, object] | None:
        payload = self.run_json(["show", issue_id], identifier=issue_id, allow_not_found=True)
        return payload[0] if payload else None

    def show_issue(self, issue_id: str) -> IssueRecord | None:
        raw = self._show_raw(issue_id)
        if raw is None:
            return None
        try:
            return parse_issue_record(raw, source=f"show {issue_id}")
        except ValueError as exc:
            raise UnexpectedStateError(str(exc)) from exc

    def create_convoy(self, title: str, *, description: str) -> str:
        return self._create_with_body(
            ["create", "--type", CONVOY_ISSUE_TYPE, "--title", title],
            description,
        )

    def list_convoys(self, *, status: str | None = "open") -> list[IssueRecord]:
        args = ["list", "--type", CONVOY_ISSUE_TYPE]
        if status:
            args.extend(["--status", status])
        records: list[IssueRecord] = []
        for index, raw in enumerate(self.run_json(args)):
            try:
                records.append(parse_issue_record(raw, source=f"list convoys[{index}]"))
            except ValueError as exc:
                raise UnexpectedStateError(str(exc)) from exc
        return records

    def tracked_issue_ids(self, convoy_id: str) -> tuple[str, ...]:
        raw = self._show_raw(convoy_id)
        if raw is None:
            return ()
        return dependency_ids(raw, dependency_type=TRACKS_DEPENDENCY)

    def add_tracking(self, convoy_id: str, issue_id: str) -> None:
        self.run_command(
            ["dep", "add", convoy_id, issue_id, "--type", TRACKS_DEPENDENCY],
            identifier=convoy_id,
        )

    def set_status(self, issue_id: str, status: str, *, reason: str | None = None) -> None:
        if status == "closed":
            args = ["close", issue_id]
            if reason:
                args.extend(["--reason", reason])
        else:
            args = ["update", issue_id, "--status", status]
        self.run_command(args, identifier=issue_id)

    def update_description(self, issue_id: str, description: str) -> None:
        with NamedTemporaryFile("w", encoding="utf-8", delete=False) as handle:
            handle.write(description)
            temp_path = Path(handle.name)
        try:
            self.run_command(
                ["update", issue_id, "--body-file", str(temp_path)], identifier=issue_id
            )
        finally:
            temp_path.unlink(missing_ok=True)

    def enqueue(
        self,
        issue_id: str,
        rig: str,
        *,
        queue_label: str,
    ) -> None:
        """Place an issue into its rig backlog without any convoy linkage."""
        self.run_command(
            [
                "update",
                issue_id,
                "--add-label",
                queue_label,
                "--add-label",
                rig_label(rig),
            ],
            identifier=issue_id,
        )

    def create_message(
        self,
        *,
        recipient: str,
        subject: str,
        body: str,
        metadata: dict[str, object],
    ) -> str:
        """Create a message issue assigned to ``recipient`` and return its id."""
        description = messages.render_message(metadata, body)
        return self._create_with_body(
            [
                "create",
                "--type",
                "task",
                "--labels",
                f"{MESSAGE_LABEL},{UNREAD_LABEL}",
                "--title",
                subject,
                "--assignee",
                recipient,
            ],
            description,
        )

    def _create_with_body(self, args: list[str], description: str) -> str:
        with NamedTemporaryFile("w", encoding="utf-8", delete=False) as handle:
            handle.write(description)
            temp_path = Path(handle.name)
        try:
            result = self.run_command([*args, "--body-file", str(temp_path), "--silent"])
        finally:
            temp_path.unlink(missing_ok=True)
        issue_id = result.stdout.strip() if result is not None else ""
        if not issue_id:
            raise UnexpectedStateError("bd create did not report an issue id")
        return issue_id


def create_client(*, beads_root: Path, cwd: Path) -> BeadsClient:
    """Create a typed Beads client for a given store and working directory."""
    return BeadsClient(beads_root=beads_root, cwd=cwd)
