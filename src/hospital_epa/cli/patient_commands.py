"""Patient file CLI commands."""

import json as json_lib
import logging
import sys
from pathlib import Path

import click

from hospital_epa.repository import load_patients
from hospital_epa.utils.exceptions import ValidationError
from hospital_epa.validation import validate_patient

logger = logging.getLogger(__name__)


@click.group(name="patients")
def patients_group() -> None:
    """Patient file operations."""
    pass


@patients_group.command("validate")
@click.argument("file", type=click.Path(exists=True, path_type=Path))
@click.option("--json", "json_output", is_flag=True, help="Output results as JSON")
def validate_command(file: Path, json_output: bool) -> None:
    """Validate the patient records in FILE.

    Checks names, date of birth, gender, insurance number format, contact
    fields, blood type and status. Duplicate insurance numbers are reported
    as well.

    Exits with code 0 when every record is valid, 1 otherwise.

    Examples:

        hospital-epa patients validate patients.csv

        hospital-epa patients validate patients.json --json
    """
    try:
        records = load_patients(file)
    except ValidationError as e:
        click.secho(f"Error: {e}", fg="red", err=True)
        sys.exit(1)

    results = []
    seen: dict[str, int] = {}
    for index, record in enumerate(records, start=1):
        issues = validate_patient(record)
        if record.insurance_number:
            if record.insurance_number in seen:
                issues.append(
                    f"insuranceNumber: duplicate of record {seen[record.insurance_number]}"
                )
            else:
                seen[record.insurance_number] = index
        results.append({"record": index, "insuranceNumber": record.insurance_number, "issues": issues})

    invalid = [result for result in results if result["issues"]]

    if json_output:
        click.echo(
            json_lib.dumps(
                {"total": len(records), "valid": len(records) - len(invalid), "invalid": invalid},
                indent=2,
            )
        )
    elif invalid:
        click.secho(f"✗ {len(invalid)} of {len(records)} record(s) invalid", fg="red", err=True)
        for result in invalid:
            for issue in result["issues"]:
                click.echo(f"  Record {result['record']}: {issue}", err=True)
    else:
        click.secho(f"✓ All {len(records)} record(s) valid", fg="green")

    if invalid:
        logger.error(f"Validation failed for {len(invalid)} record(s)")
        sys.exit(1)
