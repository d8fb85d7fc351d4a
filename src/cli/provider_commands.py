"""Provider configuration diagnostics."""

import json
from pathlib import Path

import typer
from rich.console import Console
from rich.table import Table

from src.federation.core.errors import ConfigurationError
from src.federation.core.services import ClientAssertionGenerator, build_registry
from src.federation.core.services.providers import callback_url_for
from src.federation.runtime.config.config_template import load_config

console = Console()

PROVIDER_NAMES = ("google", "github", "facebook", "apple")


def list_providers(
    config_file: Path = typer.Option(Path("config.yaml"), "--config", "-c", help="Configuration file"),
) -> None:
    """Show which providers are configured and their callback URLs."""
    config = load_config(config_file)
    try:
        registry = build_registry(config)
    except ConfigurationError as e:
        console.print(f"[red]❌ Invalid provider configuration: {e.message}[/red]")
        raise typer.Exit(code=1) from e

    table = Table(title="Identity providers")
    table.add_column("Provider", style="cyan")
    table.add_column("Enabled", style="yellow")
    table.add_column("Callback URL", style="blue")

    for name in PROVIDER_NAMES:
        table.add_row(
            name,
            "✅" if name in registry else "❌",
            callback_url_for(config, name),
        )
    console.print(table)

    if not registry:
        console.print("[yellow]No provider has complete credentials[/yellow]")


def check_apple_key(
    config_file: Path = typer.Option(Path("config.yaml"), "--config", "-c", help="Configuration file"),
) -> None:
    """Sign a test client assertion with the configured Apple key.

    Prints the assertion header and claims, never the key or the token.
    """
    apple = load_config(config_file).federation.apple
    try:
        generator = ClientAssertionGenerator(
            team_id=apple.team_id,
            key_id=apple.key_id,
            client_id=apple.client_id,
            private_key=apple.private_key,
            audience=apple.issuer,
            lifetime_seconds=apple.assertion_lifetime_seconds,
        )
        generator.generate()
    except ConfigurationError as e:
        console.print(f"[red]❌ {e.message}[/red]")
        raise typer.Exit(code=1) from e

    console.print("[green]✅ Apple signing key is valid[/green]")
    console.print_json(json.dumps({"header": generator.header(), "claims": generator.claims()}))
