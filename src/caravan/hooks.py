"""Single-slot work hooks carried across a restart-in-place.

A hook is written before an agent's session is respawned and read (then
burned) by the resumed process. Hooks live in a per-workspace directory that
is never version-controlled.
"""

from __future__ import annotations

import json
import os
from pathlib import Path
from tempfile import NamedTemporaryFile

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from . import config, log, paths
from .identity import AgentIdentity
from .ports import IssueStore
from .services.errors import NotFoundError, UnexpectedStateError

_GITIGNORE_NAME = ".gitignore"
_CLAIM_SUFFIX = ".claimed"


class WorkHook(BaseModel):
    """Persisted hand-off record.

    Example:
        >>> hook = WorkHook(issue_id="gt-12", agent_identity="gastown/crew/joe")
        >>> hook.subject is None
        True
    """

    model_config = ConfigDict(extra="ignore")

    issue_id: str
    agent_identity: str
    subject: str | None = None
    context: str | None = None
    created_at: str = Field(default_factory=config.utc_now)

    @field_validator("subject", "context", mode="before")
    @classmethod
    def _blank_to_none(cls, value: object) -> object:
        if isinstance(value, str) and not value.strip():
            return None
        return value


def write_text_atomic(path: Path, content: str, *, encoding: str = "utf-8") -> None:
    """Atomically replace a text file with new content."""
    path.parent.mkdir(parents=True, exist_ok=True)
    temp_path: Path | None = None
    try:
        with NamedTemporaryFile(
            "w",
            encoding=encoding,
            delete=False,
            dir=path.parent,
            prefix=f".{path.name}.",
            suffix=".tmp",
        ) as handle:
            handle.write(content)
            temp_path = Path(handle.name)
        os.replace(temp_path, path)
    finally:
        if temp_path is not None and temp_path.exists():
            temp_path.unlink()


def _load_hook(
    path: Path, *, recovery_hint: str = "inspect or delete the file, then sling again"
) -> WorkHook:
    try:
        payload = json.loads(path.read_text(encoding="utf-8"))
        return WorkHook.model_validate(payload)
    except (json.JSONDecodeError, ValidationError) as exc:
        raise UnexpectedStateError(
            f"invalid work hook at {path}: {exc}",
            recovery_hint=recovery_hint,
        ) from exc


class WorkHooks:
    """Read and write the work hook for agents of one workspace."""

    def __init__(self, store: IssueStore, *, workspace_root: Path) -> None:
        self._store = store
        self._workspace_root = workspace_root

    def path_for(self, identity: AgentIdentity) -> Path:
        return paths.wisp_dir(self._workspace_root) / paths.hook_filename(identity.hook_key)

    def _ensure_wisp_dir(self) -> Path:
        directory = paths.wisp_dir(self._workspace_root)
        directory.mkdir(parents=True, exist_ok=True)
        ignore = directory / _GITIGNORE_NAME
        if not ignore.exists():
            ignore.write_text("*\n", encoding="utf-8")
        return directory

    def attach(
        self,
        identity: AgentIdentity,
        issue_id: str,
        *,
        subject: str | None = None,
        context: str | None = None,
    ) -> WorkHook:
        """Write the hook for ``identity``; any previous hook is replaced."""
        if self._store.show_issue(issue_id) is None:
            raise NotFoundError(f"issue '{issue_id}' not found", identifier=issue_id)
        hook = WorkHook(
            issue_id=issue_id,
            agent_identity=identity.address,
            subject=subject,
            context=context,
        )
        self._ensure_wisp_dir()
        path = self.path_for(identity)
        write_text_atomic(path, hook.model_dump_json(indent=2) + "\n")
        log.debug(f"hook written: {path}")
        return hook

    def peek(self, identity: AgentIdentity) -> WorkHook | None:
        path = self.path_for(identity)
        if not path.exists():
            return None
        return _load_hook(path)

    def consume(self, identity: AgentIdentity) -> WorkHook | None:
        """Read and burn the hook; only one caller ever receives it."""
        path = self.path_for(identity)
        claimed = path.with_name(f"{path.name}{_CLAIM_SUFFIX}.{os.getpid()}")
        try:
            os.rename(path, claimed)
        except FileNotFoundError:
            return None
        try:
            hook = _load_hook(
                claimed, recovery_hint="the hook was discarded; sling the work again"
            )
        finally:
            claimed.unlink(missing_ok=True)
        log.debug(f"hook consumed: {path}")
        return hook
