"""Typer command-line entry point for Caravan."""

from __future__ import annotations

from types import SimpleNamespace
from typing import Annotated, Optional

import typer

from . import __version__
from . import log as caravan_log
from .commands import convoy as convoy_cmd
from .commands import handoff as handoff_cmd
from .commands import hook as hook_cmd

app = typer.Typer(
    name="caravan",
    help="Convoy tracking, dispatch, and worker hand-off for a caravan town.",
    no_args_is_help=True,
    add_completion=False,
)
convoy_app = typer.Typer(help="Create, track, queue, and land convoys.", no_args_is_help=True)
hook_app = typer.Typer(help="Inspect or consume the caller's work hook.", no_args_is_help=True)
app.add_typer(convoy_app, name="convoy")
app.add_typer(hook_app, name="hook")


def _validate_log_level(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    normalized = value.strip().lower()
    if normalized not in caravan_log.LEVEL_NAMES:
        raise typer.BadParameter(f"expected one of: {', '.join(caravan_log.LEVEL_NAMES)}")
    return normalized


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"caravan {__version__}")
        raise typer.Exit()


@app.callback()
def main_callback(
    log_level: Annotated[
        Optional[str],
        typer.Option(
            "--log-level",
            help="Log verbosity (trace, debug, info, success, warning, error).",
            callback=_validate_log_level,
        ),
    ] = None,
    no_color: Annotated[
        bool, typer.Option("--no-color", help="Disable colored output.")
    ] = False,
    version: Annotated[
        bool,
        typer.Option(
            "--version",
            help="Show the version and exit.",
            callback=_version_callback,
            is_eager=True,
        ),
    ] = False,
) -> None:
    if log_level is not None:
        caravan_log.set_level(log_level)
    if no_color:
        caravan_log.set_no_color(True)


@convoy_app.command("create")
def convoy_create(
    title: Annotated[str, typer.Argument(help="Convoy title.")],
    issue_ids: Annotated[
        Optional[list[str]], typer.Argument(help="Issues to track.")
    ] = None,
    notify: Annotated[
        Optional[list[str]],
        typer.Option("--notify", help="Address to notify when the convoy lands (repeatable)."),
    ] = None,
) -> None:
    """Create a convoy tracking the given issues."""
    convoy_cmd.create_convoy(
        SimpleNamespace(title=title, issue_ids=issue_ids or [], notify=notify or [])
    )


@convoy_app.command("track")
def convoy_track(
    convoy_id: Annotated[str, typer.Argument(help="Convoy id.")],
    issue_ids: Annotated[list[str], typer.Argument(help="Issues to add.")],
) -> None:
    """Add issues to a convoy (reopens a landed convoy)."""
    convoy_cmd.track_convoy(SimpleNamespace(convoy_id=convoy_id, issue_ids=issue_ids))


@convoy_app.command("status")
def convoy_status(
    convoy_id: Annotated[
        Optional[str], typer.Argument(help="Convoy id; omit for every open convoy.")
    ] = None,
    json_output: Annotated[bool, typer.Option("--json", help="Emit JSON.")] = False,
) -> None:
    """Show convoy progress."""
    convoy_cmd.convoy_status(SimpleNamespace(convoy_id=convoy_id, json=json_output))


@convoy_app.command("queue")
def convoy_queue(
    convoy_id: Annotated[str, typer.Argument(help="Convoy id.")],
    dry_run: Annotated[
        bool, typer.Option("--dry-run", help="Show what would be queued without acting.")
    ] = False,
    force: Annotated[
        bool, typer.Option("--force", help="Queue issues even when already assigned.")
    ] = False,
    json_output: Annotated[bool, typer.Option("--json", help="Emit JSON.")] = False,
) -> None:
    """Queue a convoy's open tracked issues into their rig backlogs."""
    convoy_cmd.queue_convoy(
        SimpleNamespace(convoy_id=convoy_id, dry_run=dry_run, force=force, json=json_output)
    )


@convoy_app.command("check")
def convoy_check(
    convoy_id: Annotated[
        Optional[str], typer.Argument(help="Convoy id; omit to check every open convoy.")
    ] = None,
) -> None:
    """Land convoys whose tracked issues are all closed."""
    convoy_cmd.check_convoys(SimpleNamespace(convoy_id=convoy_id))


@app.command("sling")
def sling(
    issue_id: Annotated[str, typer.Argument(help="Issue to attach.")],
    subject: Annotated[
        Optional[str], typer.Option("--subject", "-s", help="Hand-off subject.")
    ] = None,
    message: Annotated[
        Optional[str], typer.Option("--message", "-m", help="Hand-off context message.")
    ] = None,
    dry_run: Annotated[
        bool, typer.Option("--dry-run", "-n", help="Show the restart without acting.")
    ] = False,
) -> None:
    """Attach work to your hook and restart your session."""
    handoff_cmd.sling(
        SimpleNamespace(issue_id=issue_id, subject=subject, message=message, dry_run=dry_run)
    )


@app.command("recycle")
def recycle(
    target: Annotated[
        Optional[str], typer.Argument(help="Role (mayor, crew, witness, ...) or session name.")
    ] = None,
    watch: Annotated[
        bool,
        typer.Option("--watch/--no-watch", help="Switch to a remote session after restarting it."),
    ] = True,
    dry_run: Annotated[
        bool, typer.Option("--dry-run", "-n", help="Show the restart without acting.")
    ] = False,
) -> None:
    """Restart a session in place."""
    handoff_cmd.recycle(SimpleNamespace(target=target, watch=watch, dry_run=dry_run))


@hook_app.command("show")
def hook_show(
    json_output: Annotated[bool, typer.Option("--json", help="Emit JSON.")] = False,
) -> None:
    """Show the work on your hook without consuming it."""
    hook_cmd.show_hook(SimpleNamespace(json=json_output))


@hook_app.command("consume")
def hook_consume(
    json_output: Annotated[bool, typer.Option("--json", help="Emit JSON.")] = False,
) -> None:
    """Read and burn the work on your hook."""
    hook_cmd.consume_hook(SimpleNamespace(json=json_output))


def main() -> None:
    app()


if __name__ == "__main__":
    main()
