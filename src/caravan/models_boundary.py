"""Pydantic models for issue-store boundary payloads."""

from __future__ import annotations

import re

from pydantic import BaseModel, ConfigDict, ValidationError, field_validator

_DEPENDENCY_ID_PATTERN = re.compile(r"^([A-Za-z0-9][A-Za-z0-9._-]*)\b")
CLOSED_STATUSES = frozenset({"closed", "tombstone"})


def _clean_str(value: object) -> str | None:
    if not isinstance(value, str):
        return None
    cleaned = value.strip()
    return cleaned or None


def _extract_dependency_id(value: object) -> str | None:
    if isinstance(value, dict):
        issue_id = _clean_str(value.get("id"))
        if issue_id:
            return issue_id
        nested_issue = value.get("issue")
        if isinstance(nested_issue, dict):
            return _clean_str(nested_issue.get("id"))
        return None
    text = _clean_str(value)
    if text is None:
        return None
    match = _DEPENDENCY_ID_PATTERN.match(text)
    if not match:
        return None
    return match.group(1).strip() or None


class IssueRecord(BaseModel):
    """Validated issue payload as reported by ``bd --json``."""

    model_config = ConfigDict(extra="allow")

    id: str
    title: str = ""
    status: str = "open"
    assignee: str = ""
    labels: tuple[str, ...] = ()
    issue_type: str | None = None
    description: str = ""
    created_at: str | None = None
    closed_at: str | None = None

    @field_validator("id", mode="before")
    @classmethod
    def _normalize_id(cls, value: object) -> object:
        normalized = _clean_str(value)
        if normalized is None:
            raise ValueError("missing issue id")
        return normalized

    @field_validator("title", "description", mode="before")
    @classmethod
    def _normalize_text(cls, value: object) -> object:
        if value is None:
            return ""
        return value

    @field_validator("status", mode="before")
    @classmethod
    def _normalize_status(cls, value: object) -> object:
        cleaned = _clean_str(value)
        return cleaned.lower() if cleaned else "open"

    @field_validator("assignee", mode="before")
    @classmethod
    def _normalize_assignee(cls, value: object) -> object:
        cleaned = _clean_str(value)
        if cleaned is None or cleaned.lower() == "null":
            return ""
        return cleaned

    @field_validator("labels", mode="before")
    @classmethod
    def _normalize_labels(cls, value: object) -> tuple[str, ...]:
        if not isinstance(value, (list, tuple)):
            return ()
        normalized: list[str] = []
        seen: set[str] = set()
        for entry in value:
            label = _clean_str(entry)
            if not label or label in seen:
                continue
            seen.add(label)
            normalized.append(label)
        return tuple(normalized)

    @field_validator("issue_type", "created_at", "closed_at", mode="before")
    @classmethod
    def _normalize_optional(cls, value: object) -> object:
        return _clean_str(value)

    @property
    def is_closed(self) -> bool:
        return self.status in CLOSED_STATUSES

    def has_label(self, label: str) -> bool:
        return label in self.labels


def parse_issue_record(raw_issue: dict[str, object], *, source: str) -> IssueRecord:
    """Validate a raw ``bd`` issue payload."""
    payload = dict(raw_issue)
    if "issue_type" not in payload and "type" in raw_issue:
        payload["issue_type"] = raw_issue.get("type")
    try:
        return IssueRecord.model_validate(payload)
    except ValidationError as exc:
        raise ValueError(f"invalid beads issue payload ({source}): {exc}") from exc


def dependency_ids(raw_issue: dict[str, object], *, dependency_type: str | None = None) -> tuple[str, ...]:
    """Return dependency ids from a raw issue payload, optionally filtered by type."""
    entries = raw_issue.get("dependencies")
    if not isinstance(entries, list):
        return ()
    ids: list[str] = []
    seen: set[str] = set()
    for entry in entries:
        if dependency_type is not None:
            if not isinstance(entry, dict):
                continue
            kind = _clean_str(entry.get("dependency_type") or entry.get("type"))
            if kind != dependency_type:
                continue
        dep_id = _extract_dependency_id(entry)
        if not dep_id or dep_id in seen:
            continue
        seen.add(dep_id)
        ids.append(dep_id)
    return tuple(ids)
