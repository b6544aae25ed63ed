"""EPA-related CLI commands.

This module provides commands to check the EPA connection and to send
patients from a file to the EPA.
"""

import json as json_lib
import logging
import sys
from pathlib import Path

import click

from hospital_epa.epa import EPAClient, SyncOrchestrator
from hospital_epa.repository import InMemoryPatientRepository, load_patients
from hospital_epa.utils.exceptions import DuplicateInsuranceNumberError, ValidationError
from hospital_epa.validation import validate_patient

logger = logging.getLogger(__name__)


@click.group(name="epa")
def epa_group() -> None:
    """EPA connection and synchronization commands."""
    pass


@epa_group.command("health")
@click.pass_context
def health_command(ctx: click.Context) -> None:
    """Check that the configured EPA answers its health endpoint.

    Exits with code 0 when the EPA is reachable, 1 otherwise.

    Example:
        hospital-epa epa health
    """
    config = ctx.obj["config"]

    with EPAClient(config.epa, config.transport) as client:
        connected = client.health_check()

    if connected:
        click.secho(f"✓ EPA reachable at {config.epa.base_url}", fg="green")
        return

    click.secho(f"✗ EPA not reachable at {config.epa.base_url}", fg="red", err=True)
    sys.exit(1)


@epa_group.command("sync")
@click.argument("file", type=click.Path(exists=True, path_type=Path))
@click.option("--json", "json_output", is_flag=True, help="Output results as JSON")
@click.pass_context
def sync_command(ctx: click.Context, file: Path, json_output: bool) -> None:
    """Send every consenting patient in FILE to the EPA.

    FILE is a CSV file with snake_case columns or a JSON array of patients.
    All records are validated first; nothing is sent if any record is
    invalid. Patients without EPA consent are skipped.

    Exits with code 0 when every patient was synchronized, 1 otherwise.

    Examples:

        # Synchronize patients from a CSV file
        hospital-epa epa sync patients.csv

        # Machine-readable result
        hospital-epa epa sync patients.json --json
    """
    config = ctx.obj["config"]

    try:
        records = load_patients(file)
    except ValidationError as e:
        click.secho(f"Error: {e}", fg="red", err=True)
        sys.exit(1)

    invalid = [(index, validate_patient(record)) for index, record in enumerate(records)]
    invalid = [(index, issues) for index, issues in invalid if issues]
    if invalid:
        click.secho(f"✗ {len(invalid)} invalid patient record(s) in {file}:", fg="red", err=True)
        for index, issues in invalid:
            click.echo(f"  Record {index + 1}: {'; '.join(issues)}", err=True)
        sys.exit(1)

    try:
        repository = InMemoryPatientRepository(records)
    except DuplicateInsuranceNumberError as e:
        click.secho(f"Error: {e}", fg="red", err=True)
        sys.exit(1)

    with EPAClient(config.epa, config.transport) as client:
        orchestrator = SyncOrchestrator(client, repository)
        result = orchestrator.sync_all(repository.find_all())

    patients = repository.find_all()
    if json_output:
        output = result.to_dict()
        output["patients"] = [
            {
                "insuranceNumber": patient.insurance_number,
                "syncStatus": patient.epa_sync_status,
                "epaId": patient.epa_id,
                "error": patient.epa_sync_error,
            }
            for patient in patients
        ]
        click.echo(json_lib.dumps(output, indent=2))
    else:
        click.echo(f"Synchronized {result.success_count} of {result.total} patient(s) with the EPA")
        for patient in patients:
            if patient.epa_sync_error:
                click.secho(
                    f"  {patient.insurance_number}: {patient.epa_sync_error}", fg="red"
                )

    if result.failed_count:
        logger.error(f"EPA sync finished with {result.failed_count} failure(s)")
        sys.exit(1)
