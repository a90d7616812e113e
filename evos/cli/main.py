"""evos CLI — natural language first.

`evos "make the file tree collapsible"` routes to `evolve`.
`evos boot`, `evos ls`, etc. are management subcommands.

The CLI is only a display collaborator: every command calls one core
operation on the supervisor and renders what comes back.
"""

from __future__ import annotations

import logging
import sys
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.syntax import Syntax
from rich.table import Table

from evos.boot.handoff import BootReport
from evos.config import settings
from evos.evolution.models import EvolutionResult, ProtocolName
from evos.types import StageName, StageState

console = Console()

# Known subcommands; anything else is natural language
_SUBCOMMANDS = {
    "boot", "status", "ls", "cat", "write", "evolve", "preview", "reset", "version",
    "--help", "-h", "--install-completion", "--show-completion",
}

_app = typer.Typer(
    name="evos",
    help="evos -- an evolvable OS that rewrites its own source tree.",
    no_args_is_help=True,
)

_STATE_STYLE = {
    StageState.IDLE: "dim",
    StageState.LOADING: "yellow",
    StageState.COMPILING: "yellow",
    StageState.RUNNING: "green",
    StageState.FAILED: "red",
}


@_app.callback()
def _configure() -> None:
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(message)s",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
    )


def _session(action, boot: bool = True):
    """Start the chain, run ``action(ctx, report)``, always close the store.

    With ``boot=False`` the persisted tree is never executed and the
    action receives ``report=None``.
    """
    from evos.cli.context import EvosContext, run_async

    ctx = EvosContext.get()

    async def _run():
        try:
            report = await ctx.supervisor.start() if boot else None
            return report, await action(ctx, report)
        finally:
            await ctx.close()

    return run_async(_run())


def _render_report(report: BootReport, show_output: bool = True) -> None:
    for warning in report.warnings:
        console.print(f"[yellow]warning:[/yellow] {warning}")

    failed = [o for o in report.stages if o.state == StageState.FAILED]
    for outcome in failed:
        console.print(Panel(
            f"[red]{outcome.diagnostic}[/red]\n\n"
            "[dim]Fix the offending file with `evos write`, or run `evos reset`.[/dim]",
            title=f"Stage '{outcome.stage.value}' failed ({outcome.failure.value})",
            border_style="red",
        ))

    os_outcome = report.outcome(StageName.OS)
    if show_output and os_outcome is not None and os_outcome.ok and os_outcome.output is not None:
        try:
            console.print(os_outcome.output)
        except Exception as e:
            # Broken renderables surface as a runtime error panel.
            console.print(Panel(
                f"[red]{type(e).__name__}: {e}[/red]",
                title="Fatal application runtime error",
                border_style="red",
            ))


def _render_evolution(result: EvolutionResult) -> None:
    if not result.success:
        console.print(f"[red]Evolution failed:[/red] {result.error}")
        return
    console.print(f"[green]{result.summary}[/green]")
    for path in result.changed_paths:
        console.print(f"  [cyan]~[/cyan] {path}")
    for path in result.deleted_paths:
        console.print(f"  [red]-[/red] {path}")
    for warning in result.warnings:
        console.print(f"[yellow]warning:[/yellow] {warning}")


@_app.command("boot")
def boot():
    """Boot the chain and render the running stages."""
    async def _noop(ctx, report):
        return None

    report, _ = _session(_noop)
    _render_report(report)


@_app.command("status")
def status():
    """Show stage states and configuration."""
    async def _noop(ctx, report):
        return ctx.bridge.names()

    report, capabilities = _session(_noop)

    table = Table(title="Bootstrap Stages")
    table.add_column("Stage", style="cyan")
    table.add_column("State")
    table.add_column("Detail", style="dim")
    for outcome in report.stages:
        style = _STATE_STYLE[outcome.state]
        detail = outcome.diagnostic or (outcome.output if isinstance(outcome.output, str) else "")
        table.add_row(outcome.stage.value, f"[{style}]{outcome.state.value}[/{style}]", detail)
    console.print(table)

    from evos import __version__
    has_key = bool(settings.anthropic_api_key)
    console.print(Panel(
        f"[bold]evos v{__version__}[/bold]\n\n"
        f"API Key:       {'[green]set[/green]' if has_key else '[red]not set[/red]'}\n"
        f"Model:         {settings.default_model}\n"
        f"Store:         {settings.store_backend} (key {settings.store_key})\n"
        f"Capabilities:  {', '.join(capabilities) or 'none'}",
        title="System Status",
        border_style="cyan",
    ))
    _render_report(report, show_output=False)


@_app.command("ls")
def ls():
    """List every file in the source tree."""
    async def _paths(ctx, report):
        sup = ctx.supervisor
        return [(p, len(sup.vfs[p]), sup.vfs.is_boot_critical(p)) for p in sup.vfs.paths()]

    _, rows = _session(_paths)
    table = Table(title="Source Tree")
    table.add_column("Path", style="cyan")
    table.add_column("Bytes", justify="right", style="dim")
    table.add_column("Boot-critical", style="yellow")
    for path, size, critical in rows:
        table.add_row(path, str(size), "yes" if critical else "")
    console.print(table)


@_app.command("cat")
def cat(path: str = typer.Argument(help="Absolute source tree path")):
    """Print one file from the source tree."""
    async def _read(ctx, report):
        return ctx.supervisor.vfs.get(path)

    _, content = _session(_read)
    if content is None:
        console.print(f"[red]No such file:[/red] {path}")
        raise typer.Exit(1)
    console.print(Syntax(content, "python", line_numbers=True, word_wrap=True))


@_app.command("write")
def write(
    path: str = typer.Argument(help="Absolute source tree path"),
    source: Optional[Path] = typer.Option(None, "--from", "-f", help="Read content from a local file"),
):
    """Overwrite one file directly (content from --from or stdin), then reload."""
    content = source.read_text() if source else sys.stdin.read()

    async def _write(ctx, report):
        return await ctx.supervisor.mutate(path, content)

    _, report = _session(_write)
    console.print(f"[green]Wrote {path}[/green]")
    _render_report(report)


@_app.command("evolve")
def evolve(
    goal: str = typer.Argument(help="What should change?"),
    path: Optional[str] = typer.Option(None, "--path", "-p", help="Contextual file"),
    batch: bool = typer.Option(False, "--batch", "-b", help="Use the multi-target protocol"),
):
    """Ask the generative service to evolve the source tree.

    Examples:
        evos evolve "add a clock to the header" --path /components/status.py
        evos evolve "split the kernel into two components" --batch
    """
    protocol = ProtocolName.MULTI_TARGET if batch else ProtocolName.SINGLE_TARGET

    async def _evolve(ctx, report):
        with console.status("Evolving..."):
            result = await ctx.supervisor.evolve(goal, path, protocol=protocol)
        return result, ctx.supervisor.report()

    _, (result, report) = _session(_evolve)
    _render_evolution(result)
    if result.success:
        _render_report(report)
    else:
        raise typer.Exit(1)


@_app.command("preview")
def preview(
    entry: Optional[str] = typer.Option(None, "--entry", "-e", help="Preview entry path"),
):
    """Bundle the whole tree and run it in an isolated process."""
    async def _preview(ctx, report):
        return await ctx.preview.run(ctx.supervisor.vfs.snapshot(), entry or settings.preview_entry)

    _, result = _session(_preview)
    if result.success:
        console.print(Panel(result.output.rstrip() or "[dim](no output)[/dim]",
                            title="Live Preview", border_style="green"))
    else:
        body = f"[red]{result.error}[/red]"
        if result.traceback:
            body += f"\n\n[dim]{result.traceback}[/dim]"
        console.print(Panel(body, title="Execution Error", border_style="red"))
        raise typer.Exit(1)


@_app.command("reset")
def reset(yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation")):
    """Factory reset: discard the persisted tree and boot from the seed."""
    if not yes and not typer.confirm(
        "This will reset the entire project to its factory state. Continue?"
    ):
        raise typer.Abort()

    async def _reset(ctx, report):
        return await ctx.supervisor.factory_reset()

    _, report = _session(_reset, boot=False)
    console.print("[green]Project reset to factory state.[/green]")
    _render_report(report)


@_app.command("version")
def version_cmd():
    """Show evos version."""
    from evos import __version__
    console.print(f"evos v{__version__}")


def app(args: list[str] | None = None) -> None:
    """Entry point that intercepts natural language before Typer sees it.

    If the first arg is NOT a known subcommand, the whole input becomes
    the goal of a multi-target evolution.
    """
    argv = args if args is not None else sys.argv[1:]

    if argv and argv[0] not in _SUBCOMMANDS:
        argv = ["evolve", " ".join(argv), "--batch"]

    original_argv = sys.argv
    sys.argv = ["evos"] + argv

    try:
        _app()
    finally:
        sys.argv = original_argv
