"""CLI commands for the mock EPA server."""

import json
import logging
import sys
from pathlib import Path

import click
import requests

from ..mock_server.app import run_server
from ..mock_server.config import load_config


logger = logging.getLogger(__name__)


@click.group(name="mock")
def mock_group():
    """Manage the mock EPA server.

    The mock server emulates the EPA FHIR endpoints for local testing:
    - /health - Server health check
    - /fhir/health - EPA health endpoint used by the client
    - /fhir/Patient - Create, update and read FHIR Patients

    Available commands:
    - start: Start the mock server in the foreground
    - status: Query a running server's health endpoint
    """


@mock_group.command(name="start")
@click.option("--port", type=int, help="Server port (overrides config file)")
@click.option(
    "--config",
    type=click.Path(exists=True, path_type=Path),
    help="Path to configuration file (default: mocks/config.json)",
)
@click.option("--api-key", type=str, default=None, help="Require this bearer token")
@click.option(
    "--failure-rate",
    type=click.FloatRange(0.0, 1.0),
    default=None,
    help="Probability of answering HTTP 500 (0.0-1.0)",
)
@click.option(
    "--delay-ms",
    type=click.IntRange(0, 5000),
    default=None,
    help="Response delay in milliseconds",
)
@click.option("--debug", is_flag=True, help="Enable debug mode")
def start_server(
    port: int | None,
    config: Path | None,
    api_key: str | None,
    failure_rate: float | None,
    delay_ms: int | None,
    debug: bool,
):
    """Start the mock EPA server.

    Examples:

        # Start on the configured port\n
        hospital-epa mock start

        # Start on a custom port with a flaky EPA\n
        hospital-epa mock start --port 9090 --failure-rate 0.3
    """
    try:
        server_config = load_config(config)

        overrides = {}
        if port is not None:
            overrides["port"] = port
        if api_key is not None:
            overrides["api_key"] = api_key
        if failure_rate is not None:
            overrides["failure_rate"] = failure_rate
        if delay_ms is not None:
            overrides["response_delay_ms"] = delay_ms
        if overrides:
            server_config = server_config.model_validate(
                {**server_config.model_dump(), **overrides}
            )

        base = f"http://{server_config.host}:{server_config.port}"
        click.echo("=" * 50)
        click.echo("Mock EPA Server")
        click.echo("=" * 50)
        click.echo(f"Host: {server_config.host}")
        click.echo(f"Port: {server_config.port}")
        click.echo(f"Health Check: {base}/health")
        click.echo(f"FHIR Base URL: {base}{server_config.base_path}")
        click.echo(f"Bearer token required: {'yes' if server_config.api_key else 'no'}")
        click.echo(f"Failure rate: {server_config.failure_rate}")
        click.echo(f"Response delay: {server_config.response_delay_ms}ms")
        click.echo("=" * 50)
        click.echo("")
        click.echo("Starting server... (Press Ctrl+C to stop)")
        click.echo("")

        run_server(config=server_config, debug=debug)

    except FileNotFoundError as e:
        raise click.ClickException(str(e))
    except ValueError as e:
        raise click.ClickException(f"Configuration error: {e}")
    except KeyboardInterrupt:
        click.echo("\n\nServer stopped by user.")


@mock_group.command(name="status")
@click.option("--host", type=str, default="127.0.0.1", help="Server host")
@click.option("--port", type=int, default=8080, help="Server port")
@click.option("--json", "output_json", is_flag=True, help="Output status as JSON")
def server_status(host: str, port: int, output_json: bool):
    """Display mock server running status and details.

    Examples:

        # Check server status (human-readable)\n
        hospital-epa mock status

        # Get status as JSON for scripting\n
        hospital-epa mock status --json
    """
    health_url = f"http://{host}:{port}/health"

    try:
        response = requests.get(health_url, timeout=5)
        health_data = response.json() if response.status_code == 200 else None
    except (requests.RequestException, ValueError) as e:
        logger.debug(f"Health check failed: {e}")
        health_data = None

    if health_data is None:
        if output_json:
            click.echo(json.dumps({"running": False}))
        else:
            click.echo("Mock Server Status")
            click.echo("=" * 50)
            click.echo("Status: Stopped")
            click.echo("")
            click.echo("Start the server with: hospital-epa mock start")
        sys.exit(1)

    uptime_seconds = health_data.get("uptime_seconds", 0)
    endpoints = health_data.get("endpoints", [])
    request_count = health_data.get("request_count", 0)

    if output_json:
        status_data = {
            "running": True,
            "url": f"http://{host}:{port}",
            "uptime_seconds": uptime_seconds,
            "endpoints": endpoints,
            "request_count": request_count,
        }
        click.echo(json.dumps(status_data, indent=2))
    else:
        click.echo("Mock Server Status")
        click.echo("=" * 50)
        click.echo("Status: Running ✓")
        click.echo(f"URL: http://{host}:{port}")
        click.echo(f"Uptime: {format_uptime(uptime_seconds)}")
        click.echo(f"Requests Handled: {request_count}")
        click.echo("")
        click.echo("Available Endpoints:")
        for endpoint in endpoints:
            click.echo(f"  - {endpoint}")


def format_uptime(seconds: int) -> str:
    """Format uptime seconds as human-readable string.

    Args:
        seconds: Uptime in seconds

    Returns:
        Formatted string like "2h 15m 30s"
    """
    hours, remainder = divmod(seconds, 3600)
    minutes, secs = divmod(remainder, 60)

    if hours > 0:
        return f"{hours}h {minutes}m {secs}s"
    if minutes > 0:
        return f"{minutes}m {secs}s"
    return f"{secs}s"
