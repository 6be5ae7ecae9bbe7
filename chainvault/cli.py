"""
Command-line interface for the ChainVault SDK.
"""

from __future__ import annotations

import json
import logging
import time
from functools import wraps
from pathlib import Path
from typing import Any, Callable

import click

from chainvault.client.client import ChainVault
from chainvault.client.domain.entities import ConnectionState
from chainvault.common.decorators import retry_on_network_error
from chainvault.common.exceptions import SDKError
from chainvault.common.models import ClientConfig


def handle_errors(func: Callable) -> Callable:
    """Turn SDK errors into a clean CLI failure."""

    @wraps(func)
    def wrapper(*args: Any, **kwargs: Any) -> Any:
        try:
            return func(*args, **kwargs)
        except SDKError as err:
            msg = f"{type(err).__name__}: {err}"
            raise click.ClickException(msg) from err

    return wrapper


def _echo_json(data: Any) -> None:
    click.echo(json.dumps(data, indent=2, sort_keys=True))


@click.group()
@click.option("--base-url", default=None, help="HTTP API base URL (env CHAINVAULT_BASE_URL)")
@click.option("--ws-url", default=None, help="Event stream base URL (env CHAINVAULT_WS_URL)")
@click.option(
    "--state-file",
    default=None,
    type=click.Path(dir_okay=False, path_type=Path),
    help="Credential file (env CHAINVAULT_STATE_FILE)",
)
@click.option(
    "--log-level",
    default=None,
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    help="Logging level",
)
@click.pass_context
def cli(
    ctx: click.Context,
    base_url: str | None,
    ws_url: str | None,
    state_file: Path | None,
    log_level: str | None,
) -> None:
    """ChainVault client CLI"""
    config = ClientConfig(
        base_url=base_url,
        ws_url=ws_url,
        state_file=state_file,
        log_level=getattr(logging, log_level.upper()) if log_level else None,
    )
    ctx.obj = ChainVault(config=config)
    ctx.call_on_close(ctx.obj.close)


@cli.command("create-account")
@click.pass_obj
@handle_errors
def create_account(vault: ChainVault) -> None:
    """Create an account and store its secret"""
    account = vault.auth.create_account()
    click.echo(f"Account: {account.subject_id}")
    click.echo(f"Secret:  {account.secret}")
    if account.warning:
        click.echo(account.warning)


@cli.command()
@click.option("--secret", default=None, help="Secret to log in with (default: stored)")
@click.option("--retries", default=3, show_default=True, help="Retries on network failure")
@click.pass_obj
@handle_errors
def login(vault: ChainVault, secret: str | None, retries: int) -> None:
    """Log in and store the session token"""
    do_login = retry_on_network_error(max_retries=retries)(vault.auth.login)
    session = do_login(secret)
    click.echo(f"Logged in as {session.subject_id} (expires in {session.expires_in}s)")


@cli.command()
@click.pass_obj
@handle_errors
def logout(vault: ChainVault) -> None:
    """Clear stored credentials"""
    vault.auth.logout()
    click.echo("Logged out")


@cli.command()
@click.pass_obj
def status(vault: ChainVault) -> None:
    """Show the credential state"""
    click.echo(f"Status: {vault.credentials.status.value}")
    if vault.auth.subject_id:
        click.echo(f"Account: {vault.auth.subject_id}")
    if vault.credentials.is_authenticated() and vault.credentials.expires_at:
        remaining = int(vault.credentials.expires_at - time.time())
        click.echo(f"Session expires in {remaining}s")


@cli.command()
@click.argument("label")
@click.argument("data", required=False)
@click.option(
    "--file",
    "data_file",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="Read the data to submit from a file",
)
@click.pass_obj
@handle_errors
def submit(vault: ChainVault, label: str, data: str | None, data_file: Path | None) -> None:
    """Encrypt DATA locally and submit it under LABEL"""
    if data_file is not None:
        data = data_file.read_text(encoding="utf-8")
    if data is None:
        msg = "Provide DATA or --file"
        raise click.UsageError(msg)
    receipt = vault.data.submit(label, data)
    click.echo(f"Stored collection {receipt.collection_id} in block {receipt.block_number}")


@cli.command("list")
@click.pass_obj
@handle_errors
def list_collections(vault: ChainVault) -> None:
    """List stored collections"""
    collections = vault.data.list_collections()
    if not collections:
        click.echo("No collections")
        return
    for item in collections:
        click.echo(f"{item.collection_id}  {item.label}  {item.created_at}")


@cli.command()
@click.argument("collection_id")
@click.pass_obj
@handle_errors
def decrypt(vault: ChainVault, collection_id: str) -> None:
    """Fetch and decrypt a collection"""
    collection = vault.data.decrypt(collection_id)
    click.echo(collection.data)


@cli.command()
@click.argument("events", nargs=-1, required=True)
@click.option("--duration", type=float, default=None, help="Stop after this many seconds")
@click.pass_obj
@handle_errors
def listen(vault: ChainVault, events: tuple[str, ...], duration: float | None) -> None:
    """Print EVENTS pushed by the service until interrupted"""

    def make_handler(event: str) -> Callable[[Any], None]:
        def handler(data: Any) -> None:
            click.echo(json.dumps({"event": event, "data": data}, sort_keys=True))

        return handler

    for event in events:
        vault.ws.subscribe(event, make_handler(event))
    vault.ws.connect()
    if vault.ws.state is ConnectionState.DISCONNECTED:
        msg = "Cannot open the event stream: no stored secret. Run create-account first."
        raise click.ClickException(msg)

    deadline = time.monotonic() + duration if duration is not None else None
    try:
        while deadline is None or time.monotonic() < deadline:
            time.sleep(0.5)
    except KeyboardInterrupt:
        pass
    finally:
        vault.ws.disconnect()


@cli.command()
@click.pass_obj
@handle_errors
def health(vault: ChainVault) -> None:
    """Show service health"""
    _echo_json(vault.chain.health())


if __name__ == "__main__":
    cli()
