"""Main CLI application module."""

import typer

from .provider_commands import check_apple_key, list_providers
from .user_commands import create_local_user, init_db, list_users, seed_demo

# Create the main CLI application
app = typer.Typer(
    help="Identity federation service - administration tool",
    no_args_is_help=True,
    rich_markup_mode="rich",
)

app.command("providers")(list_providers)
app.command("check-apple-key")(check_apple_key)
app.command("init-db")(init_db)
app.command("seed-demo")(seed_demo)
app.command("create-local-user")(create_local_user)
app.command("users")(list_users)


def main() -> None:
    """Main entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
