"""Implementation for the ``caravan hook`` commands.

A restarted agent runs ``caravan hook consume`` during startup to pick up
(and burn) the work slung onto it.
"""

from __future__ import annotations

import json

from ..hooks import WorkHook, WorkHooks
from ..identity import resolve_agent_identity
from ..io import say
from ..services.errors import ServiceFailure
from .resolve import build_identity_context, fail, resolve_town


def _print_hook(hook: WorkHook | None, *, as_json: bool) -> None:
    if as_json:
        say(json.dumps(hook.model_dump() if hook is not None else None, indent=2, sort_keys=True))
        return
    if hook is None:
        say("No work on hook.")
        return
    say(f"Hooked: {hook.issue_id}")
    if hook.subject:
        say(f"Subject: {hook.subject}")
    if hook.context:
        say(f"Context: {hook.context}")
    say(f"Attached: {hook.created_at}")


def _run(args: object, *, burn: bool) -> None:
    town = resolve_town()
    context = build_identity_context(town)
    hooks = WorkHooks(town.store, workspace_root=town.root)
    try:
        identity = resolve_agent_identity(context, prefix=town.config.session_prefix)
        hook = hooks.consume(identity) if burn else hooks.peek(identity)
    except ServiceFailure as exc:
        fail(exc)
    _print_hook(hook, as_json=bool(getattr(args, "json", False)))


def show_hook(args: object) -> None:
    """Show the caller's hook without consuming it."""
    _run(args, burn=False)


def consume_hook(args: object) -> None:
    """Read and burn the caller's hook."""
    _run(args, burn=True)
