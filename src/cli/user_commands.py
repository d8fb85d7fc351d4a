"""Local account and database management commands."""

from pathlib import Path

import typer
from rich.console import Console
from rich.prompt import Prompt
from rich.table import Table
from sqlmodel import select

from src.federation.core.services import DbSessionService, IdentityResolver
from src.federation.entities.user import UserTable
from src.federation.runtime.config.config_template import load_config

console = Console()

ConfigOption = typer.Option(Path("config.yaml"), "--config", "-c", help="Configuration file")


def _database(config_file: Path) -> DbSessionService:
    config = load_config(config_file)
    db_service = DbSessionService(config.database)
    db_service.create_all()
    return db_service


def init_db(config_file: Path = ConfigOption) -> None:
    """Create the users and sessions tables."""
    db_service = _database(config_file)
    if not db_service.health_check():
        console.print("[red]❌ Database is not reachable[/red]")
        raise typer.Exit(code=1)
    console.print("[green]✅ Database tables are in place[/green]")


def seed_demo(config_file: Path = ConfigOption) -> None:
    """Create the demo account from the demo_account settings."""
    config = load_config(config_file)
    demo = config.demo_account
    if not demo.password:
        console.print("[red]❌ No demo password configured (set DEMO_PASSWORD)[/red]")
        raise typer.Exit(code=1)

    db_service = DbSessionService(config.database)
    db_service.create_all()
    user = IdentityResolver(db_service).seed_demo_account(
        demo.username,
        demo.password,
        email=demo.email,
        first_name=demo.first_name,
        last_name=demo.last_name,
    )
    console.print(f"[green]✅ Demo account '{user.username}' is ready[/green]")


def create_local_user(
    username: str = typer.Argument(..., help="Username for the new account"),
    email: str | None = typer.Option(None, "--email", "-e", help="Email address"),
    first_name: str | None = typer.Option(None, "--first-name", "-f", help="First name"),
    last_name: str | None = typer.Option(None, "--last-name", "-l", help="Last name"),
    password: str | None = typer.Option(None, "--password", "-p", help="Password (prompted when omitted)"),
    config_file: Path = ConfigOption,
) -> None:
    """Create a username/password account."""
    if not password:
        password = Prompt.ask("Password", password=True)
    if not password:
        console.print("[red]❌ A password is required[/red]")
        raise typer.Exit(code=1)

    resolver = IdentityResolver(_database(config_file))
    try:
        user = resolver.create_local_user(
            username, password, email=email, first_name=first_name, last_name=last_name
        )
    except ValueError as e:
        console.print(f"[red]❌ {e}[/red]")
        raise typer.Exit(code=1) from e
    console.print(f"[green]✅ Created local account '{user.username}' ({user.id})[/green]")


def list_users(
    limit: int = typer.Option(100, "--limit", "-n", help="Maximum number of users to show"),
    config_file: Path = ConfigOption,
) -> None:
    """List accounts and the provider each is linked to."""
    db_service = _database(config_file)
    with db_service.session_scope() as db:
        rows = db.exec(select(UserTable).order_by(UserTable.created_at).limit(limit)).all()
        users = [(r.username, r.provider, r.email or "", r.id) for r in rows]

    if not users:
        console.print("[yellow]No users found[/yellow]")
        return

    table = Table(title="Users")
    table.add_column("Username", style="green")
    table.add_column("Provider", style="cyan")
    table.add_column("Email", style="blue")
    table.add_column("ID", style="magenta")
    for row in users:
        table.add_row(*row)
    console.print(table)
    console.print(f"\n[green]Found {len(users)} users[/green]")
