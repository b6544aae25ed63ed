"""Main CLI entry point for the Hospital EPA Bridge.

This module provides the main Click command group for the hospital-epa CLI.
"""

from pathlib import Path
from typing import Optional

import click

from hospital_epa import __version__
from hospital_epa.cli.epa_commands import epa_group
from hospital_epa.cli.fhir_commands import fhir_group
from hospital_epa.cli.mock_commands import mock_group
from hospital_epa.cli.patient_commands import patients_group
from hospital_epa.config import load_config
from hospital_epa.logging_audit import configure_logging
from hospital_epa.utils.exceptions import (
    ConfigurationError,
    DuplicateInsuranceNumberError,
    ValidationError,
)
from hospital_epa.validation import validate_patient


@click.group()
@click.version_option(version=__version__, prog_name="hospital-epa")
@click.option(
    "--config",
    type=click.Path(exists=True, path_type=Path),
    default=None,
    help="Path to configuration file (default: ./config/config.json)",
)
@click.option("--verbose", is_flag=True, help="Enable verbose logging (DEBUG level)")
@click.option(
    "--log-file",
    type=click.Path(path_type=Path),
    default=None,
    help="Path to log file (overrides config file)",
)
@click.option(
    "--redact-pii",
    is_flag=True,
    help="Redact PII (patient names, insurance numbers, emails) from logs",
)
@click.pass_context
def cli(
    ctx: click.Context,
    config: Optional[Path],
    verbose: bool,
    log_file: Optional[Path],
    redact_pii: bool,
) -> None:
    """Hospital EPA Bridge - patient records with FHIR export to the EPA.

    Serves the patient JSON API, converts patients to FHIR R4 and
    synchronizes them with the Electronic Patient Record (EPA) system.

    Common usage:

        # Start the API server
        hospital-epa serve

        # Start the mock EPA server for local testing
        hospital-epa mock start

        # Send all patients from a file to the EPA
        hospital-epa epa sync patients.csv

        # Enable verbose logging for debugging
        hospital-epa --verbose epa health

    Use --help with any command for more information.
    """
    ctx.ensure_object(dict)

    try:
        config_obj = load_config(config)
        ctx.obj["config"] = config_obj
    except ConfigurationError as e:
        click.echo(f"Error loading configuration: {e}", err=True)
        ctx.exit(1)

    ctx.obj["verbose"] = verbose
    ctx.obj["redact_pii"] = redact_pii
    ctx.obj["log_file"] = log_file

    # Configure logging with precedence: CLI flags > config file > defaults
    log_level = "DEBUG" if verbose else config_obj.logging.level
    log_file_path = log_file if log_file else config_obj.logging.log_file
    redact_pii_setting = redact_pii if redact_pii else config_obj.logging.redact_pii

    configure_logging(
        level=log_level, log_file=log_file_path, redact_pii=redact_pii_setting
    )


# Register command groups
cli.add_command(epa_group)
cli.add_command(fhir_group)
cli.add_command(mock_group)
cli.add_command(patients_group)


@cli.command()
@click.option("--host", type=str, default=None, help="Bind address (overrides config)")
@click.option("--port", type=int, default=None, help="Port (overrides config)")
@click.option(
    "--seed",
    type=click.Path(exists=True, path_type=Path),
    default=None,
    help="CSV or JSON file with patients to preload",
)
@click.option("--debug", is_flag=True, help="Enable Flask debug mode")
@click.pass_context
def serve(
    ctx: click.Context,
    host: Optional[str],
    port: Optional[int],
    seed: Optional[Path],
    debug: bool,
) -> None:
    """Start the patient and EPA JSON API server.

    Seed records are validated like records created through the API; any
    invalid record aborts startup.

    Example:
        hospital-epa serve --port 5000 --seed patients.csv
    """
    from hospital_epa.api.app import build_services, run_server
    from hospital_epa.repository import InMemoryPatientRepository, load_patients

    config_obj = ctx.obj["config"]

    server_overrides = {}
    if host is not None:
        server_overrides["host"] = host
    if port is not None:
        server_overrides["port"] = port
    if server_overrides:
        config_obj = config_obj.model_copy(
            update={"server": config_obj.server.model_copy(update=server_overrides)}
        )

    repository = InMemoryPatientRepository()
    if seed is not None:
        try:
            records = load_patients(seed)
        except ValidationError as e:
            click.echo(f"Error loading seed file: {e}", err=True)
            raise click.exceptions.Exit(1)

        invalid = [(index, validate_patient(record)) for index, record in enumerate(records)]
        invalid = [(index, issues) for index, issues in invalid if issues]
        if invalid:
            click.secho(f"✗ {len(invalid)} invalid patient record(s) in {seed}:", fg="red", err=True)
            for index, issues in invalid:
                click.echo(f"  Record {index + 1}: {'; '.join(issues)}", err=True)
            raise click.exceptions.Exit(1)

        try:
            for record in records:
                repository.insert(record)
        except DuplicateInsuranceNumberError as e:
            click.echo(f"Error loading seed file: {e}", err=True)
            raise click.exceptions.Exit(1)
        click.echo(f"Loaded {repository.count()} patient(s) from {seed}")

    click.echo(f"Starting API server on http://{config_obj.server.host}:{config_obj.server.port}")
    run_server(config_obj, build_services(config_obj, repository), debug=debug)


@cli.group()
def config() -> None:
    """Configuration management commands."""
    pass


@config.command()
@click.argument("config_file", type=click.Path(exists=True, path_type=Path))
def validate(config_file: Path) -> None:
    """Validate a configuration file.

    Example:
        hospital-epa config validate config/config.json
    """
    try:
        config_obj = load_config(config_file)

        click.echo(click.style("✓", fg="green", bold=True) + " Configuration is valid")
        click.echo(f"\nConfiguration file: {config_file}")
        click.echo("\nEPA:")
        click.echo(f"  Base URL:    {config_obj.epa.base_url}")

        click.echo("\nTransport:")
        click.echo(f"  Verify TLS:  {config_obj.transport.verify_tls}")
        click.echo(f"  Timeouts:    {config_obj.transport.timeout_connect}s connect, {config_obj.transport.timeout_read}s read")
        click.echo(f"  Retries:     {config_obj.transport.max_retries}")

        click.echo("\nLogging:")
        click.echo(f"  Level:       {config_obj.logging.level}")
        click.echo(f"  Log file:    {config_obj.logging.log_file}")
        click.echo(f"  Redact PII:  {config_obj.logging.redact_pii}")

        click.echo("\nServer:")
        click.echo(f"  Address:     {config_obj.server.host}:{config_obj.server.port}")

    except ConfigurationError as e:
        click.echo(click.style("✗", fg="red", bold=True) + " Configuration validation failed")
        click.echo(f"\n{e}", err=True)
        raise click.exceptions.Exit(1)


cli.add_command(config)


@cli.command()
def version() -> None:
    """Display version information."""
    click.echo(f"hospital-epa version {__version__}")


if __name__ == "__main__":
    cli()
