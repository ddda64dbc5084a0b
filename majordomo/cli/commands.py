"""CLI commands for majordomo."""

import asyncio

import typer
from rich.console import Console
from rich.table import Table

from majordomo import __logo__, __version__

app = typer.Typer(
    name="majordomo",
    help=f"{__logo__} majordomo - action governance for a personal assistant",
    no_args_is_help=True,
)

console = Console()


def version_callback(value: bool):
    if value:
        console.print(f"{__logo__} majordomo v{__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool = typer.Option(
        None, "--version", "-v", callback=version_callback, is_eager=True
    ),
    log_level: str = typer.Option(None, "--log-level", help="Override LOG_LEVEL"),
    audit_log: str = typer.Option(None, "--audit-log", help="Write governance decisions to this JSON-lines file"),
):
    """majordomo - action governance for a personal assistant."""
    from majordomo.logging_config import setup_logging

    setup_logging(log_level, audit_log)


def _services():
    """Build the service graph from the saved config."""
    from majordomo.config.loader import load_config
    from majordomo.orchestrator.context import build_services
    from majordomo.providers import LiteLLMProvider

    config = load_config()
    provider = None
    if config.provider.api_key:
        provider = LiteLLMProvider(
            api_key=config.provider.api_key,
            api_base=config.provider.api_base,
            default_model=config.provider.model,
            embedding_model=config.provider.embedding_model,
            timeout=config.provider.timeout_s,
        )
    return build_services(config, provider=provider)


@app.command()
def onboard():
    """Write a default config file."""
    from majordomo.config.loader import get_config_path, save_config
    from majordomo.config.schema import Config

    config_path = get_config_path()
    if config_path.exists():
        console.print(f"[yellow]Config already exists at {config_path}[/yellow]")
        if not typer.confirm("Overwrite?"):
            raise typer.Exit()

    save_config(Config())
    console.print(f"[green]✓[/green] Created config at {config_path}")
    console.print(f"\n{__logo__} majordomo is ready! Try [cyan]majordomo status[/cyan].")


@app.command()
def status(user: str = typer.Option(None, "--user", "-u", help="User id")):
    """Show configuration and store statistics."""
    from majordomo.config.loader import get_config_path

    services = _services()
    user_id = user or services.config.orchestrator.default_user_id

    async def collect():
        memory = await services.memory.stats(user_id)
        goals = await services.goals.all_goals(user_id)
        dashboard = await services.trust.trust_dashboard(user_id)
        return memory, goals, dashboard

    try:
        memory, goals, dashboard = asyncio.run(collect())
    finally:
        services.close()

    config_path = get_config_path()
    console.print(f"{__logo__} majordomo status\n")
    console.print(f"Config: {config_path} {'[green]✓[/green]' if config_path.exists() else '[dim]defaults[/dim]'}")
    console.print(f"Database: {services.config.db_path}")
    console.print(f"Tools: {', '.join(services.registry.tool_names)}")

    table = Table(title=f"Stores for {user_id}")
    table.add_column("Store", style="cyan")
    table.add_column("Summary")
    by_type = ", ".join(f"{k}: {v}" for k, v in sorted(memory.by_type.items())) or "-"
    table.add_row("Memories", f"{memory.total} ({by_type}), avg strength {memory.average_strength:.2f}")
    active = sum(1 for g in goals if g.status == "active")
    table.add_row("Goals", f"{len(goals)} total, {active} active")
    table.add_row(
        "Actions",
        f"{dashboard.total_actions} recorded, success rate {dashboard.success_rate:.0%}",
    )
    table.add_row("Permissions", f"{dashboard.granted_permissions} granted, {dashboard.denied_permissions} denied")
    console.print(table)


# ============================================================================
# Goals
# ============================================================================

goals_app = typer.Typer(help="Inspect and manage goals")
app.add_typer(goals_app, name="goals")


@goals_app.command("list")
def goals_list(
    all: bool = typer.Option(False, "--all", "-a", help="Include finished goals"),
    user: str = typer.Option(None, "--user", "-u", help="User id"),
):
    """List goals."""
    services = _services()
    user_id = user or services.config.orchestrator.default_user_id
    try:
        goals = asyncio.run(
            services.goals.all_goals(user_id) if all else services.goals.active_goals(user_id)
        )
    finally:
        services.close()

    if not goals:
        console.print("No goals.")
        return

    table = Table(title="Goals")
    table.add_column("ID", style="cyan")
    table.add_column("Description")
    table.add_column("Priority")
    table.add_column("Status")
    table.add_column("Progress", justify="right")
    table.add_column("Attention", justify="right")

    for g in goals:
        status_style = {"active": "green", "blocked": "red", "completed": "dim"}.get(g.status, "yellow")
        table.add_row(
            g.id,
            g.description,
            g.priority,
            f"[{status_style}]{g.status}[/{status_style}]",
            f"{g.progress}%",
            f"{g.attention_score:.2f}",
        )
    console.print(table)


@goals_app.command("add")
def goals_add(
    description: str = typer.Argument(..., help="What you want to achieve"),
    priority: int = typer.Option(5, "--priority", "-p", min=1, max=10),
    step: list[str] = typer.Option(None, "--step", "-s", help="Next action (repeatable)"),
    user: str = typer.Option(None, "--user", "-u", help="User id"),
):
    """Create a goal."""
    from majordomo.goals.models import priority_from_number

    services = _services()
    user_id = user or services.config.orchestrator.default_user_id
    try:
        goal = asyncio.run(services.goals.create_goal(
            user_id, description, priority=priority_from_number(priority), next_actions=step or [],
        ))
    finally:
        services.close()
    console.print(f"[green]✓[/green] Created goal {goal.id} ({goal.priority})")


# ============================================================================
# Memory
# ============================================================================

memory_app = typer.Typer(help="Inspect memory")
app.add_typer(memory_app, name="memory")


@memory_app.command("recall")
def memory_recall(
    query: str = typer.Argument(..., help="What to look for"),
    limit: int = typer.Option(10, "--limit", "-n"),
    user: str = typer.Option(None, "--user", "-u", help="User id"),
):
    """Search memories."""
    services = _services()
    user_id = user or services.config.orchestrator.default_user_id
    try:
        memories = asyncio.run(services.memory.recall(user_id, query, limit=limit))
    finally:
        services.close()

    if not memories:
        console.print("Nothing remembered about that.")
        return

    table = Table(title=f"Recall: {query}")
    table.add_column("Content")
    table.add_column("Type", style="cyan")
    table.add_column("Category")
    table.add_column("Strength", justify="right")
    for m in memories:
        table.add_row(m.content, m.type, m.category, f"{m.strength:.2f}")
    console.print(table)


@memory_app.command("decay")
def memory_decay():
    """Run one decay pass over memories and goals."""
    services = _services()

    async def run():
        result = await services.memory.apply_decay()
        goals = await services.goals.apply_decay()
        return result, goals

    try:
        result, goals = asyncio.run(run())
    finally:
        services.close()
    console.print(f"[green]✓[/green] Memories: {result.decayed} decayed, {result.pruned} pruned")
    console.print(f"[green]✓[/green] Goals: {goals} decayed")


# ============================================================================
# Run
# ============================================================================


@app.command()
def run(
    seconds: float = typer.Option(10.0, "--seconds", "-s", help="How long to run"),
    user: str = typer.Option(None, "--user", "-u", help="User id"),
):
    """Run the orchestrator loops for a while, then print their health."""
    from majordomo.orchestrator import Orchestrator

    services = _services()

    async def main_loop():
        orchestrator = Orchestrator(services)

        async def show(event):
            console.print(f"  [dim]{event.topic}[/dim]")

        orchestrator.bus.subscribe("*", show)
        await orchestrator.start(user)
        try:
            await asyncio.sleep(seconds)
        finally:
            await orchestrator.stop()
        return orchestrator.health()

    console.print(f"{__logo__} Running orchestrator for {seconds:g}s...")
    try:
        health = asyncio.run(main_loop())
    except KeyboardInterrupt:
        console.print("\nShutting down...")
        return
    finally:
        services.close()

    table = Table(title="Loop Health")
    table.add_column("Loop", style="cyan")
    table.add_column("Ticks", justify="right")
    table.add_column("Errors", justify="right")
    table.add_column("Last Error")
    for name, h in health.items():
        table.add_row(name, str(h.tick_count), str(h.error_count), h.last_error or "")
    console.print(table)


if __name__ == "__main__":
    app()
