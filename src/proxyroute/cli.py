"""
ProxyRoute CLI - Command Line Interface

Entry point for editing the force list, toggling redirection, checking
URLs against the current policy, and replaying recorded host events.
"""

import logging
from pathlib import Path
from typing import List, Optional

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from proxyroute.core.config import load_settings
from proxyroute.core.exceptions import ProxyRouteError
from proxyroute.core.models import Settings

# Version
__version__ = "0.1.0"

# Create CLI app
app = typer.Typer(
    name="proxyroute",
    help="ProxyRoute - route browser navigations through a security proxy",
    add_completion=False,
    no_args_is_help=True,
)

patterns_app = typer.Typer(help="Manage the force list")
app.add_typer(patterns_app, name="patterns")

# Rich console for output
console = Console()

_state: dict[str, Optional[Path]] = {"config": None}


@app.callback()
def main(
    config: Optional[Path] = typer.Option(
        None,
        "--config",
        "-c",
        help="Settings YAML file",
        exists=True,
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Verbose output",
    ),
) -> None:
    _state["config"] = config
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=console, show_path=False)],
    )


def _settings() -> Settings:
    try:
        return load_settings(_state["config"])
    except ProxyRouteError as e:
        console.print(f"[red]Config error:[/red] {e}")
        raise typer.Exit(code=1)


def _open_store(settings: Settings):
    from proxyroute.storage.database import Database
    from proxyroute.storage.pattern_store import PatternStore

    db = Database(settings.database)
    db.init_db()
    store = PatternStore(db)
    if store.seed(settings.force_list):
        console.print(f"[blue]Seeded force list with {len(settings.force_list)} patterns[/blue]")
    return db, store


# ============================================================================
# Main Commands
# ============================================================================

@app.command()
def version() -> None:
    """Show version information."""
    console.print(f"ProxyRoute version [bold]{__version__}[/bold]")


@app.command()
def status() -> None:
    """Show whether redirection is enabled and what the store holds."""
    from proxyroute.engine.loop_guard import SQLiteLoopGuard

    settings = _settings()
    try:
        db, store = _open_store(settings)
        with db:
            enabled = store.is_enabled()
            patterns = store.get_force_list()
            markers = len(SQLiteLoopGuard(db))

        table = Table(title="ProxyRoute Status", show_header=False)
        table.add_column("Key", style="cyan")
        table.add_column("Value")
        table.add_row("Redirection", "[green]enabled[/green]" if enabled else "[red]disabled[/red]")
        table.add_row("Proxy prefix", settings.proxy_prefix)
        table.add_row("Patterns", str(len(patterns)))
        table.add_row("Persisted markers", str(markers))
        table.add_row("Loop guard", settings.loop_guard.value)
        table.add_row("Database", str(settings.database))
        console.print(table)

    except ProxyRouteError as e:
        console.print(f"[red]Error reading status:[/red] {e}")
        raise typer.Exit(code=1)


def _set_enabled(enabled: bool) -> None:
    settings = _settings()
    try:
        db, store = _open_store(settings)
        with db:
            store.set_enabled(enabled)
    except ProxyRouteError as e:
        console.print(f"[red]Error updating switch:[/red] {e}")
        raise typer.Exit(code=1)

    label = "[green]enabled[/green]" if enabled else "[red]disabled[/red]"
    console.print(f"Redirection {label}")


@app.command()
def enable() -> None:
    """Turn redirection on."""
    _set_enabled(True)


@app.command()
def disable() -> None:
    """Turn redirection off."""
    _set_enabled(False)


@app.command()
def check(
    urls: List[str] = typer.Argument(..., help="URLs to classify"),
) -> None:
    """
    Classify URLs against the current force list.

    Shows the first matching pattern and the redirect a fresh navigation
    to each URL would get.
    """
    from proxyroute.classifier.classifier import URLClassifier
    from proxyroute.core.models import NavigationEvent
    from proxyroute.engine.decision import RedirectDecisionEngine
    from proxyroute.engine.loop_guard import MemoryLoopGuard
    from proxyroute.engine.policy import PolicyCell

    settings = _settings()
    try:
        db, store = _open_store(settings)
        with db:
            policy = PolicyCell()
            if not policy.refresh_from(store):
                console.print("[red]Error:[/red] failed to load the force list")
                raise typer.Exit(code=1)
    except ProxyRouteError as e:
        console.print(f"[red]Error opening store:[/red] {e}")
        raise typer.Exit(code=1)

    classifier = URLClassifier()
    snapshot = policy.get()

    table = Table(title="URL Classification")
    table.add_column("URL", style="cyan")
    table.add_column("Forced", style="yellow")
    table.add_column("Pattern", style="blue")
    table.add_column("Redirect", style="green")

    for url in urls:
        # Fresh guard per URL so each row is an independent navigation
        engine = RedirectDecisionEngine(
            policy,
            MemoryLoopGuard(),
            proxy_prefix=settings.proxy_prefix,
            classifier=classifier,
        )
        candidate = engine.unwrap(url) if engine.is_proxied(url) else url
        pattern = classifier.match(candidate, snapshot) if candidate else None
        action = engine.on_before_navigate(NavigationEvent(session_id=0, frame_id=0, url=url))

        table.add_row(
            url,
            "yes" if pattern else "no",
            pattern.text if pattern else "-",
            action.target_url if action else "-",
        )

    console.print(table)
    if not snapshot.enabled:
        console.print("[yellow]![/yellow] Redirection is disabled; no redirects would be issued")


@app.command()
def replay(
    events_file: Path = typer.Argument(..., help="JSON Lines file of recorded host events", exists=True),
    send: bool = typer.Option(
        False,
        "--send",
        help="Send redirects to the configured navigator endpoint",
    ),
) -> None:
    """
    Feed recorded host events through the redirect engine.

    Prints every redirect issued. Without --send, redirects are only
    recorded locally.
    """
    import asyncio

    from proxyroute.core.audit import AuditLogger
    from proxyroute.core.constants import LoopGuardBackend
    from proxyroute.engine.decision import RedirectDecisionEngine
    from proxyroute.engine.loop_guard import MemoryLoopGuard, SQLiteLoopGuard
    from proxyroute.engine.policy import PolicyCell
    from proxyroute.engine.service import RedirectService
    from proxyroute.host.events import load_events
    from proxyroute.host.navigator import HttpNavigator, RecordingNavigator

    settings = _settings()

    if send and not settings.navigator_endpoint:
        console.print("[red]Error:[/red] --send needs navigator.endpoint in the config")
        raise typer.Exit(code=1)

    try:
        events = load_events(events_file)
        db, store = _open_store(settings)
    except ProxyRouteError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(code=1)

    audit = None
    try:
        audit = AuditLogger.from_settings(settings)
    except ProxyRouteError as e:
        console.print(f"[yellow]Warning:[/yellow] audit disabled: {e}")

    if settings.loop_guard == LoopGuardBackend.SQLITE:
        loop_guard = SQLiteLoopGuard(db)
    else:
        loop_guard = MemoryLoopGuard()

    engine = RedirectDecisionEngine(
        PolicyCell(),
        loop_guard,
        proxy_prefix=settings.proxy_prefix,
        aborted_error_codes=settings.aborted_error_codes,
        audit=audit,
    )

    if send:
        navigator = HttpNavigator(settings.navigator_endpoint, timeout=settings.navigator_timeout)
    else:
        navigator = RecordingNavigator()

    service = RedirectService(
        engine,
        navigator,
        store=store,
        heartbeat_interval=settings.heartbeat_interval,
        result_history=max(len(events), 1),
    )

    async def run_replay():
        await service.start()
        try:
            for event in events:
                service.handle_event(event)
                # Let fire-and-forget navigations progress between events
                await asyncio.sleep(0)
        finally:
            await service.stop()

    try:
        asyncio.run(run_replay())
    finally:
        db.close()
        if audit is not None:
            audit.close()

    table = Table(title=f"Redirects ({len(events)} events replayed)")
    table.add_column("Session", style="cyan")
    table.add_column("Reason", style="yellow")
    table.add_column("Target", style="green")
    table.add_column("Result")

    for result in service.results:
        table.add_row(
            str(result.action.session_id),
            result.action.reason.value,
            result.action.target_url,
            "[green]ok[/green]" if result.success else f"[red]{result.error}[/red]",
        )

    console.print(table)


# ============================================================================
# Pattern Commands
# ============================================================================

@patterns_app.command("list")
def patterns_list() -> None:
    """List the force list in order."""
    from proxyroute.classifier.patterns import parse_pattern
    from proxyroute.core.exceptions import InvalidPatternError

    settings = _settings()
    try:
        db, store = _open_store(settings)
        with db:
            patterns = store.get_force_list()
    except ProxyRouteError as e:
        console.print(f"[red]Error listing patterns:[/red] {e}")
        raise typer.Exit(code=1)

    if not patterns:
        console.print("[yellow]Force list is empty[/yellow]")
        return

    table = Table(title="Force List")
    table.add_column("#", style="dim")
    table.add_column("Pattern", style="cyan")
    table.add_column("Kind", style="blue")

    for index, text in enumerate(patterns):
        try:
            kind = parse_pattern(text).kind.value
        except InvalidPatternError:
            kind = "[red]invalid[/red]"
        table.add_row(str(index), repr(text) if not text.strip() else text, kind)

    console.print(table)


@patterns_app.command("add")
def patterns_add(
    patterns: List[str] = typer.Argument(..., help="Patterns or URLs to add"),
) -> None:
    """Add patterns; scheme, leading www. and trailing slash are stripped."""
    settings = _settings()
    try:
        db, store = _open_store(settings)
        with db:
            for text in patterns:
                added = store.add_pattern(text)
                if added:
                    console.print(f"[green]✓[/green] Added {added}")
                else:
                    console.print(f"[yellow]![/yellow] Skipped {text!r} (empty or already listed)")
    except ProxyRouteError as e:
        console.print(f"[red]Error adding pattern:[/red] {e}")
        raise typer.Exit(code=1)


@patterns_app.command("remove")
def patterns_remove(
    target: str = typer.Argument(..., help="Pattern text or list index"),
) -> None:
    """Remove a pattern by text or index."""
    settings = _settings()
    key: int | str = int(target) if target.isdigit() else target
    try:
        db, store = _open_store(settings)
        with db:
            removed = store.remove_pattern(key)
    except ProxyRouteError as e:
        console.print(f"[red]Error removing pattern:[/red] {e}")
        raise typer.Exit(code=1)

    if removed is None:
        console.print(f"[red]Error:[/red] no pattern matches {target!r}")
        raise typer.Exit(code=1)
    console.print(f"[green]✓[/green] Removed {removed}")


@patterns_app.command("edit")
def patterns_edit(
    index: int = typer.Argument(..., help="List index of the pattern to replace"),
    text: str = typer.Argument(..., help="New pattern"),
) -> None:
    """Replace the pattern at an index."""
    settings = _settings()
    try:
        db, store = _open_store(settings)
        with db:
            edited = store.edit_pattern(index, text)
    except ProxyRouteError as e:
        console.print(f"[red]Error editing pattern:[/red] {e}")
        raise typer.Exit(code=1)

    if edited is None:
        console.print("[yellow]![/yellow] Nothing changed (bad index, empty, unchanged or duplicate)")
        raise typer.Exit(code=1)
    console.print(f"[green]✓[/green] Pattern {index} is now {edited}")


if __name__ == "__main__":
    app()
