"""
Command line client for the marketplace API.

Usage:
    python -m mercato.cli login --email vendor@example.com
    python -m mercato.cli status
    python -m mercato.cli call GET /vendor/products
    python -m mercato.cli call PUT /vendor/orders/42/status --data '{"status": "ready"}'
    python -m mercato.cli logout
"""

import asyncio
import json
import logging
import sys
from typing import Any, Optional

import click
from loguru import logger

from mercato.api import MercatoAPI, describe_error
from mercato.config import (
    API_BASE_URL,
    APP_VERSION,
    CREDENTIALS_FILE,
    ENCRYPTION_KEY,
    LOG_LEVEL,
    _warn_timeout_configuration,
)
from mercato.credentials import mask_token
from mercato.exceptions import AuthExpiredError, MercatoError, NetworkError, RequestTimeoutError
from mercato.network_errors import format_error_for_user
from mercato.storage import FileTokenStorage


class InterceptHandler(logging.Handler):
    """
    Intercepts logs from standard logging and redirects them to loguru.

    httpx and httpcore log through the standard library.
    """

    def emit(self, record: logging.LogRecord) -> None:
        try:
            level = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno

        # Find the caller frame for correct source display
        frame, depth = logging.currentframe(), 2
        while frame and frame.f_code.co_filename == logging.__file__:
            frame = frame.f_back
            depth += 1

        logger.opt(depth=depth, exception=record.exc_info).log(level, record.getMessage())


def setup_logging(level: str = LOG_LEVEL) -> None:
    """Configures the loguru sink and routes httpx/httpcore logs into it."""
    logger.remove()
    logger.add(
        sys.stderr,
        level=level,
        colorize=True,
        format="<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | <cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - <level>{message}</level>"
    )

    for logger_name in ("httpx", "httpcore"):
        logging_logger = logging.getLogger(logger_name)
        logging_logger.handlers = [InterceptHandler()]
        logging_logger.propagate = False


def _build_api(ctx: click.Context) -> MercatoAPI:
    storage = FileTokenStorage(ctx.obj["credentials_file"], encryption_key=ENCRYPTION_KEY or None)
    return MercatoAPI.from_config(storage=storage, base_url=ctx.obj["api_url"])


def _run(coro: Any) -> Any:
    """Runs a coroutine and turns client errors into a message and exit code 1."""
    try:
        return asyncio.run(coro)
    except AuthExpiredError as e:
        click.echo(f"ERROR: {describe_error(e)}", err=True)
        click.echo("Run 'mercato login' to start a new session.", err=True)
        sys.exit(1)
    except (NetworkError, RequestTimeoutError) as e:
        click.echo(f"ERROR: {describe_error(e)}", err=True)
        if e.info is not None:
            formatted = format_error_for_user(e.info)
            click.echo(formatted["error"]["message"], err=True)
            logger.debug(f"[{formatted['error']['category']}] {formatted['error']['technical_details']}")
        sys.exit(1)
    except MercatoError as e:
        click.echo(f"ERROR: {describe_error(e)}", err=True)
        sys.exit(1)


@click.group()
@click.option("--api-url", default=API_BASE_URL, show_default=True, help="Marketplace API base URL")
@click.option("--credentials-file", default=CREDENTIALS_FILE, show_default=True, help="Where tokens are stored")
@click.option("--log-level", default=LOG_LEVEL, show_default=True, help="Loguru log level")
@click.version_option(APP_VERSION)
@click.pass_context
def cli(ctx: click.Context, api_url: str, credentials_file: str, log_level: str):
    """Mercato Client - marketplace API from the command line."""
    setup_logging(log_level.upper())
    _warn_timeout_configuration()
    ctx.ensure_object(dict)
    ctx.obj["api_url"] = api_url
    ctx.obj["credentials_file"] = credentials_file


@cli.command()
@click.option("--email", required=True, help="Account email")
@click.option("--password", prompt=True, hide_input=True, help="Account password")
@click.pass_context
def login(ctx: click.Context, email: str, password: str):
    """Log in and store the session tokens."""

    async def _login():
        async with _build_api(ctx) as api:
            try:
                response = await api.auth.login({"email": email, "password": password})
            except AuthExpiredError:
                # Any 401 ends the session, on /auth/login it means bad credentials
                return False, {"message": "Invalid email or password"}
            return api.auth.is_authenticated(), response

    authenticated, response = _run(_login())
    if not authenticated:
        message = response.get("message") if isinstance(response, dict) else None
        click.echo(f"ERROR: Login failed{': ' + message if message else ''}", err=True)
        sys.exit(1)
    click.echo(f"✓ Logged in as {email}")


@cli.command()
@click.pass_context
def logout(ctx: click.Context):
    """End the session and remove stored tokens."""

    async def _logout():
        async with _build_api(ctx) as api:
            await api.auth.logout()

    try:
        _run(_logout())
    finally:
        click.echo("✓ Credentials removed")


@cli.command()
@click.pass_context
def status(ctx: click.Context):
    """Show whether a session is stored."""
    api = _build_api(ctx)
    pair = api.http.credential_store.get()
    if pair is None:
        click.echo("Not logged in.")
        return
    click.echo("Logged in.")
    click.echo(f"  Access token: {mask_token(pair.access_token)}")
    click.echo(f"  Refresh token: {'present' if pair.refresh_token else 'absent'}")


@cli.command()
@click.argument("method", type=click.Choice(["GET", "POST", "PUT", "PATCH", "DELETE"], case_sensitive=False))
@click.argument("endpoint")
@click.option("--data", "data", default=None, help="JSON request body")
@click.option("--timeout", type=float, default=None, help="Deadline in seconds")
@click.pass_context
def call(ctx: click.Context, method: str, endpoint: str, data: Optional[str], timeout: Optional[float]):
    """Call ENDPOINT with METHOD and print the JSON response."""
    body = None
    if data is not None:
        try:
            body = json.loads(data)
        except json.JSONDecodeError as e:
            raise click.BadParameter(f"not valid JSON: {e}", param_hint="--data")

    async def _call():
        async with _build_api(ctx) as api:
            return await api.http.call(endpoint, method, json=body, timeout=timeout)

    result = _run(_call())
    click.echo(json.dumps(result, indent=2, ensure_ascii=False))


if __name__ == "__main__":
    cli()
