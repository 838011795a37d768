"""Command line entry point: ``edit-assistant serve|providers|analyze``."""

import json
import logging
import os
import sys
from typing import Optional

import click
import uvicorn

from core.auth import build_auth_settings
from core.log_setup import configure_logging
from edit_generator import __version__
from edit_generator.config import cfg
from edit_generator.errors import EditAssistantError, ProviderConfigurationError
from edit_generator.providers import ProviderRegistry
from services.generation import analyze_request
from transport.http_app import create_app
from utils.network import resolve_http_host

logger = logging.getLogger("edit-assistant-server")


def _build_registry() -> ProviderRegistry:
    try:
        return ProviderRegistry()
    except ProviderConfigurationError as exc:
        raise click.ClickException(exc.message) from None


@click.group()
@click.version_option(__version__, prog_name="edit-assistant")
@click.option("--log-level", default=None, help="Logging level (default: LOG_LEVEL or INFO).")
def cli(log_level: Optional[str]):
    """Scene edit assistant - turn instructions into validated scene operations."""
    configure_logging(log_level or cfg.log_level)


@cli.command("serve")
@click.option("--host", default=None, help="Bind address (default: EDIT_ASSISTANT_HOST or 127.0.0.1).")
@click.option("--port", "-p", default=None, type=int, help="Bind port (default: EDIT_ASSISTANT_PORT or 8080).")
@click.option("--auth/--no-auth", "auth_enabled", default=None, help="Require an API key on every route but /health.")
@click.option("--api-key", default=None, help="API key clients must send (generated when auth is on and none is set).")
@click.option("--allowed-ip", "allowed_ips", multiple=True, help="IP or CIDR allowed to connect; repeatable.")
def serve(
    host: Optional[str],
    port: Optional[int],
    auth_enabled: Optional[bool],
    api_key: Optional[str],
    allowed_ips: tuple[str, ...],
):
    """Run the HTTP service.

    \b
    Examples:
        edit-assistant serve
        edit-assistant serve --host 0.0.0.0 --port 9000 --auth --allowed-ip 10.0.0.0/8
    """
    registry = _build_registry()
    try:
        settings = build_auth_settings(
            enabled=cfg.auth_enabled if auth_enabled is None else auth_enabled,
            token=api_key or cfg.api_key,
            allowed_ips=list(allowed_ips) or cfg.allowed_ips,
        )
    except ValueError as exc:
        raise click.BadParameter(str(exc), param_hint="--allowed-ip") from None
    app = create_app(registry, auth_settings=settings)

    bind_host = resolve_http_host(host, os.environ.get("EDIT_ASSISTANT_HOST"), cfg.host)
    bind_port = port or cfg.port
    logger.info("Starting edit assistant %s on %s:%d", __version__, bind_host, bind_port)
    uvicorn.run(app, host=bind_host, port=bind_port, log_level=cfg.log_level.lower())


@cli.command("providers")
def providers():
    """Show the active provider and the configured fallbacks as JSON."""
    registry = _build_registry()
    click.echo(json.dumps(registry.info(), indent=2))


@cli.command("analyze")
@click.argument("prompt")
@click.option(
    "--scene", "-s",
    "scene_file",
    default=None,
    type=click.Path(exists=True, dir_okay=False),
    help="JSON file holding the scene tree snapshot.",
)
@click.option(
    "--size",
    "request_size",
    default="medium",
    type=click.Choice(["small", "medium", "large"]),
    help="Request size used for the cost estimate.",
)
def analyze(prompt: str, scene_file: Optional[str], request_size: str):
    """Classify PROMPT without calling any provider.

    \b
    Examples:
        edit-assistant analyze "make all parts red"
        edit-assistant analyze "create a leaderboard system" --scene scene.json
    """
    payload = {"prompt": prompt, "requestSize": request_size}
    if scene_file:
        with open(scene_file, encoding="utf-8") as handle:
            try:
                payload["sceneTree"] = json.load(handle)
            except ValueError as exc:
                raise click.BadParameter(f"not valid JSON: {exc}", param_hint="--scene") from None

    try:
        result = analyze_request(payload)
    except EditAssistantError as exc:
        details = getattr(exc, "details", None)
        click.echo(json.dumps({"success": False, "error": exc.message, "details": details}, indent=2))
        sys.exit(1)
    click.echo(json.dumps(result, indent=2))


def main():
    cli()


if __name__ == "__main__":
    main()
