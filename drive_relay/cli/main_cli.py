# drive_relay/cli/main_cli.py
import asyncio
from datetime import datetime, timedelta, timezone
from typing import Annotated, Optional

import typer
from dotenv import load_dotenv

from ..settings import DOTENV_PATH, Settings
from ..context import build_context
from ..utils.security import generate_fernet_key

app = typer.Typer(
    name="drive-relay",
    help="Drive Relay maintenance commands.",
    no_args_is_help=True
)


@app.callback()
def main_callback():
    """
    Drive Relay command line interface.
    Commands operate directly on the configured storage backend.
    """
    load_dotenv(dotenv_path=DOTENV_PATH, override=True)


@app.command("generate-key")
def generate_key():
    """Print a new Fernet key for ENCRYPTION_KEY."""
    typer.echo(generate_fernet_key())


async def _purge_states(settings: Settings, max_age_seconds: int) -> int:
    context = await build_context(settings)
    try:
        cutoff = datetime.now(timezone.utc) - timedelta(seconds=max_age_seconds)
        return await context.state_store.purge_stale(cutoff)
    finally:
        await context.close()


@app.command("purge-states")
def purge_states(
    max_age_seconds: Annotated[
        Optional[int],
        typer.Option(
            "--max-age-seconds",
            help="Delete unconsumed OAuth states older than this. Defaults to OAUTH_STATE_TTL_SECONDS.",
            min=0
        )
    ] = None
):
    """Delete abandoned OAuth handshake states."""
    settings = Settings()
    age = settings.oauth_state_ttl_seconds if max_age_seconds is None else max_age_seconds
    try:
        removed = asyncio.run(_purge_states(settings, age))
    except Exception as e:
        typer.secho(f"Error: could not purge OAuth states: {e}", fg=typer.colors.RED)
        raise typer.Exit(code=1)
    typer.secho(f"Removed {removed} stale OAuth state(s).", fg=typer.colors.GREEN)


async def _connection_state(settings: Settings, user_id: str) -> str:
    context = await build_context(settings)
    try:
        state = await context.authorization_flow.connection_state(user_id)
        return state.value
    finally:
        await context.close()


@app.command("status")
def status(
    user_id: Annotated[str, typer.Argument(help="LINE user ID to look up.")]
):
    """Show whether a LINE user has a Google Drive connected."""
    try:
        state = asyncio.run(_connection_state(Settings(), user_id))
    except Exception as e:
        typer.secho(f"Error: could not read credential store: {e}", fg=typer.colors.RED)
        raise typer.Exit(code=1)
    typer.echo(f"{user_id}: {state}")


def cli_entry_point():
    """Entry point function for console script registration in pyproject.toml"""
    app()


if __name__ == "__main__":
    cli_entry_point()
