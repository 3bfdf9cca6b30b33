"""ATS operator CLI."""

from __future__ import annotations

import asyncio

import typer
from rich.console import Console
from rich.table import Table

from .config import EnginePolicy
from .errors import WorkflowError

app = typer.Typer(
    name="ats",
    help="Recruiting marketplace workflow engine",
    no_args_is_help=True,
)
console = Console()


def _date(value) -> str:
    return value.strftime("%Y-%m-%d") if value else "-"


def _placement_table(title: str, placements) -> Table:
    table = Table(title=title)
    table.add_column("Placement", style="cyan")
    table.add_column("State")
    table.add_column("Company")
    table.add_column("Recruiter")
    table.add_column("Start")
    table.add_column("Guarantee ends", style="yellow")
    table.add_column("Fee", justify="right")
    for p in placements:
        table.add_row(
            str(p.id),
            p.state,
            p.company_id,
            p.recruiter_id,
            _date(p.start_date),
            _date(p.guarantee_expires_at),
            f"{p.fee_amount:,.2f}",
        )
    return table


@app.command("init-db")
def init_db():
    """Create all tables in the configured database."""
    from .database import create_tables

    asyncio.run(create_tables())
    console.print("[green]Database tables created.[/green]")


@app.command("expiring-guarantees")
def expiring_guarantees(
    days: int = typer.Option(30, "--days", "-d", help="Look-ahead window in days"),
):
    """List open placements whose guarantee ends within the window."""
    from .database import async_session_factory
    from .services.placement_svc import PlacementLifecycleService

    async def _run():
        async with async_session_factory() as db:
            return await PlacementLifecycleService(db).list_expiring_guarantees(days)

    placements = asyncio.run(_run())
    if not placements:
        console.print(f"[dim]No guarantees ending in the next {days} days.[/dim]")
        return
    console.print(_placement_table(f"Guarantees ending within {days} days", placements))


@app.command("placements")
def placements_by_state(
    state: str = typer.Option("active", "--state", "-s", help="hired, active, completed or failed"),
):
    """List placements in a lifecycle state."""
    from .database import async_session_factory
    from .services.placement_svc import PlacementLifecycleService

    if state not in ("hired", "active", "completed", "failed"):
        console.print(f"[red]Unknown placement state: {state}[/red]")
        raise typer.Exit(1)

    async def _run():
        async with async_session_factory() as db:
            return await PlacementLifecycleService(db).list_by_state(state)

    placements = asyncio.run(_run())
    console.print(_placement_table(f"{state.capitalize()} placements ({len(placements)})", placements))


@app.command("recommend-splits")
def recommend_splits(
    total: float = typer.Argument(..., help="Total recruiter share to divide"),
    roles: list[str] = typer.Argument(..., help="Roles, optionally with a weight (closer=25)"),
):
    """Suggest a fee split across collaborator roles."""
    from .services.collaboration_svc import calculate_recommended_splits

    entries = []
    for item in roles:
        role, _, weight = item.partition("=")
        try:
            entries.append({"role": role, "weight": float(weight) if weight else None})
        except ValueError:
            console.print(f"[red]Invalid weight in {item!r}[/red]")
            raise typer.Exit(1)

    try:
        splits = calculate_recommended_splits(total, entries, EnginePolicy.from_settings().role_weights)
    except WorkflowError as e:
        console.print(f"[red]Error: {e.message}[/red]")
        raise typer.Exit(1)

    table = Table(title=f"Recommended splits of {total:,.2f}")
    table.add_column("Role", style="cyan")
    table.add_column("Percentage", justify="right")
    table.add_column("Amount", justify="right", style="green")
    for split in splits:
        table.add_row(split["role"], f"{split['split_percentage']:.2f}%", f"{split['split_amount']:,.2f}")
    console.print(table)


@app.command("serve")
def serve(
    port: int = typer.Option(8030, "--port", "-p", help="Port to run on"),
    host: str = typer.Option("127.0.0.1", "--host", help="Host to bind to"),
):
    """Run the ATS API."""
    import uvicorn

    console.print(f"[bold cyan]Starting ATS at http://{host}:{port}[/bold cyan]")
    uvicorn.run("ats.app:app", host=host, port=port)


if __name__ == "__main__":
    app()
