"""Pydantic models for Caravan town configuration, plus convoy domain types."""

from __future__ import annotations

from dataclasses import dataclass

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .models_boundary import CLOSED_STATUSES

DEFAULT_TOWN_PREFIX = "hq"
DEFAULT_SESSION_PREFIX = "cv"
DEFAULT_QUEUE_LABEL = "cv:queued"
DEFAULT_RESUME_COMMANDS = {
    "mayor": "caravan mayor attach",
    "deacon": "caravan deacon attach",
    "crew": "caravan crew attach",
    "witness": "caravan witness attach",
    "refinery": "caravan refinery attach",
}


def _clean_prefix(value: object) -> object:
    if isinstance(value, str):
        return value.strip().rstrip("-").lower()
    return value


class TownSection(BaseModel):
    """Town identity.

    Attributes:
        name: Display name of the town.
        prefix: Issue-id prefix of the town-root namespace (convoys live here).

    Example:
        >>> TownSection(prefix="HQ-").prefix
        'hq'
    """

    model_config = ConfigDict(extra="allow")

    name: str = "town"
    prefix: str = DEFAULT_TOWN_PREFIX

    @field_validator("prefix", mode="before")
    @classmethod
    def normalize_prefix(cls, value: object) -> object:
        if value is None:
            return DEFAULT_TOWN_PREFIX
        return _clean_prefix(value) or DEFAULT_TOWN_PREFIX


class BeadsSection(BaseModel):
    """Issue-store location.

    Attributes:
        path: Beads directory, relative to the town root unless absolute.
    """

    model_config = ConfigDict(extra="allow")

    path: str = ".beads"


class TownConfig(BaseModel):
    """Resolved town configuration.

    Attributes:
        town: Town identity section.
        beads: Issue-store section.
        rigs: Issue-id prefix to rig name.
        session_prefix: Prefix used for tmux session names.
        queue_label: Label marking an issue as placed in a rig backlog.
        resume_commands: Role to resume command run inside a respawned pane.

    Example:
        >>> config = TownConfig(rigs={"GT": "gastown"})
        >>> config.rig_for_prefix("gt")
        'gastown'
        >>> config.rig_for_prefix("hq") is None
        True
    """

    model_config = ConfigDict(extra="allow")

    town: TownSection = Field(default_factory=TownSection)
    beads: BeadsSection = Field(default_factory=BeadsSection)
    rigs: dict[str, str] = Field(default_factory=dict)
    session_prefix: str = DEFAULT_SESSION_PREFIX
    queue_label: str = DEFAULT_QUEUE_LABEL
    resume_commands: dict[str, str] = Field(
        default_factory=lambda: dict(DEFAULT_RESUME_COMMANDS)
    )

    @field_validator("rigs", mode="before")
    @classmethod
    def normalize_rigs(cls, value: object) -> object:
        if value is None:
            return {}
        if not isinstance(value, dict):
            return value
        normalized: dict[str, str] = {}
        for prefix, rig in value.items():
            key = _clean_prefix(prefix)
            if not isinstance(key, str) or not key:
                continue
            if not isinstance(rig, str) or not rig.strip():
                continue
            normalized[key] = rig.strip()
        return normalized

    @field_validator("session_prefix", "queue_label", mode="before")
    @classmethod
    def strip_text(cls, value: object) -> object:
        if isinstance(value, str):
            return value.strip()
        return value

    @field_validator("resume_commands", mode="before")
    @classmethod
    def merge_resume_defaults(cls, value: object) -> object:
        if value is None:
            return dict(DEFAULT_RESUME_COMMANDS)
        if not isinstance(value, dict):
            return value
        merged = dict(DEFAULT_RESUME_COMMANDS)
        for role, command in value.items():
            if isinstance(role, str) and isinstance(command, str) and command.strip():
                merged[role.strip().lower()] = command.strip()
        return merged

    def rig_for_prefix(self, prefix: str) -> str | None:
        """Return the rig owning ``prefix``; the town namespace owns no rig."""
        key = prefix.strip().lower()
        if not key or key == self.town.prefix:
            return None
        return self.rigs.get(key)


def issue_prefix(issue_id: str) -> str:
    """Return the namespace prefix of an issue id.

    Example:
        >>> issue_prefix("gt-abc.1")
        'gt'
        >>> issue_prefix("nohyphen")
        ''
    """
    head, sep, _ = issue_id.strip().partition("-")
    if not sep:
        return ""
    return head.lower()


@dataclass(frozen=True)
class TrackedIssueView:
    """Read projection of one tracked issue; never cached across calls."""

    id: str
    title: str
    status: str
    assignee: str = ""
    labels: tuple[str, ...] = ()

    @property
    def prefix(self) -> str:
        return issue_prefix(self.id)

    @property
    def is_closed(self) -> bool:
        return self.status in CLOSED_STATUSES


@dataclass(frozen=True)
class Convoy:
    """Persistent cross-rig tracking unit."""

    id: str
    title: str
    status: str
    tracked: frozenset[str] = frozenset()
    subscribers: tuple[str, ...] = ()
    created_at: str | None = None
    landed_at: str | None = None

    @property
    def is_closed(self) -> bool:
        return self.status in CLOSED_STATUSES


@dataclass(frozen=True)
class DispatchCandidate:
    issue_id: str
    rig: str
    title: str = ""
