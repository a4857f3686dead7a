"""Message and description-field helpers for issue bodies."""

from __future__ import annotations

FRONTMATTER_DELIMITER = "---"


def _format_value(value: object) -> str:
    if value is None:
        return "null"
    if isinstance(value, (list, tuple)):
        items = ", ".join(str(item) for item in value)
        return f"[{items}]"
    return str(value)


def render_message(metadata: dict[str, object], body: str) -> str:
    """Render a message description with YAML frontmatter."""
    lines = [FRONTMATTER_DELIMITER]
    for key, value in metadata.items():
        lines.append(f"{key}: {_format_value(value)}")
    lines.append(FRONTMATTER_DELIMITER)
    lines.append("")
    body_text = body.rstrip("\n")
    if body_text:
        lines.append(body_text)
    return "\n".join(lines).rstrip("\n") + "\n"


def parse_description_fields(description: str | None) -> dict[str, str]:
    """Parse ``key: value`` lines from an issue description."""
    fields: dict[str, str] = {}
    if not description:
        return fields
    for line in description.splitlines():
        if ":" not in line:
            continue
        key, value = line.split(":", 1)
        key = key.strip()
        if not key:
            continue
        fields[key] = value.strip()
    return fields


def update_description_field(description: str | None, *, key: str, value: str | None) -> str:
    """Set (or with ``None`` remove) a ``key: value`` line in a description."""
    target = (description or "").rstrip("\n")
    lines = target.splitlines() if target else []
    updated: list[str] = []
    needle = f"{key}:"
    found = False
    for line in lines:
        if line.strip().startswith(needle):
            if not found and value is not None:
                updated.append(f"{key}: {value}")
            found = True
            continue
        updated.append(line)
    if not found and value is not None:
        updated.append(f"{key}: {value}")
    if not updated:
        return ""
    return "\n".join(updated).rstrip("\n") + "\n"


def split_list_field(value: str | None) -> tuple[str, ...]:
    """Split a comma-separated description field into trimmed entries."""
    if not value:
        return ()
    raw = value.strip()
    if raw.startswith("[") and raw.endswith("]"):
        raw = raw[1:-1]
    return tuple(item.strip() for item in raw.split(",") if item.strip())
