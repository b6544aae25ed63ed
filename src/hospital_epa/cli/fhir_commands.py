"""FHIR conversion CLI commands."""

import json as json_lib
import sys
from pathlib import Path
from typing import Optional

import click

from hospital_epa.fhir import FHIRMapper
from hospital_epa.repository import load_patients
from hospital_epa.utils.exceptions import FHIRMappingError, ValidationError


@click.group(name="fhir")
def fhir_group() -> None:
    """FHIR R4 export and import commands."""
    pass


@fhir_group.command("export")
@click.argument("file", type=click.Path(exists=True, path_type=Path))
@click.option(
    "--output",
    "-o",
    type=click.Path(path_type=Path),
    default=None,
    help="Write the Bundle to this file instead of stdout",
)
def export_command(file: Path, output: Optional[Path]) -> None:
    """Convert the patients in FILE into a FHIR collection Bundle.

    Examples:

        hospital-epa fhir export patients.csv

        hospital-epa fhir export patients.json --output bundle.json
    """
    try:
        records = load_patients(file)
        bundle = FHIRMapper().to_bundle_dict(records)
    except (ValidationError, FHIRMappingError) as e:
        click.secho(f"Error: {e}", fg="red", err=True)
        sys.exit(1)

    text = json_lib.dumps(bundle, indent=2, ensure_ascii=False)
    if output is None:
        click.echo(text)
        return

    output.parent.mkdir(parents=True, exist_ok=True)
    output.write_text(text, encoding="utf-8")
    click.echo(f"Exported {bundle['total']} patient(s) to {output}")


@fhir_group.command("import")
@click.argument("file", type=click.Path(exists=True, path_type=Path))
@click.option("--json", "json_output", is_flag=True, help="Output records as JSON")
def import_command(file: Path, json_output: bool) -> None:
    """Read a FHIR Patient or Bundle from FILE and show the patient records.

    Only names, birth date, gender, insurance number and status are taken
    over from FHIR.

    Example:
        hospital-epa fhir import bundle.json --json
    """
    mapper = FHIRMapper()
    try:
        document = json_lib.loads(file.read_text(encoding="utf-8"))
        if isinstance(document, dict) and document.get("resourceType") == "Bundle":
            records = mapper.from_bundle(document)
        else:
            records = [mapper.from_fhir(document)]
    except json_lib.JSONDecodeError as e:
        click.secho(f"Error: invalid JSON in {file}: {e}", fg="red", err=True)
        sys.exit(1)
    except FHIRMappingError as e:
        click.secho(f"Error: {e}", fg="red", err=True)
        sys.exit(1)

    if json_output:
        click.echo(json_lib.dumps([record.to_dict() for record in records], indent=2, ensure_ascii=False))
        return

    click.echo(f"Imported {len(records)} patient(s):")
    for record in records:
        dob = record.date_of_birth.isoformat() if record.date_of_birth else "-"
        click.echo(
            f"  {record.insurance_number or '-'}  {record.full_name or '-'}  "
            f"{dob}  {record.gender or '-'}  {record.status}"
        )
