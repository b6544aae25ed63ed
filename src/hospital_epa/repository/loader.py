"""Patient file loader.

This module reads patient records from CSV or JSON files, for seeding the
repository from the command line.
"""

import json
import logging
from pathlib import Path
from typing import Any

import pandas as pd

from hospital_epa.models.patient import PatientRecord
from hospital_epa.utils.exceptions import ValidationError

logger = logging.getLogger(__name__)

# Required CSV columns
REQUIRED_COLUMNS = ["first_name", "last_name", "date_of_birth", "gender", "insurance_number"]

# Optional CSV columns
OPTIONAL_COLUMNS = [
    "phone",
    "email",
    "address",
    "blood_type",
    "allergies",
    "emergency_contact_name",
    "emergency_contact_phone",
    "status",
]


def load_patients(file_path: Path) -> list[PatientRecord]:
    """Load patient records from a CSV or JSON file.

    CSV files use snake_case column names (first_name, date_of_birth, ...).
    JSON files hold either an array of camelCase patient objects, as returned
    by the API, or an object with a "patients" array.

    Args:
        file_path: Path to a .csv or .json file

    Returns:
        Records in file order, without ids

    Raises:
        FileNotFoundError: If the file does not exist
        ValidationError: If the file cannot be parsed or rows are invalid
    """
    if not file_path.exists():
        raise FileNotFoundError(f"Patient file not found: {file_path}")

    logger.info(f"Loading patients from {file_path}")

    if file_path.suffix.lower() == ".csv":
        records = _load_csv(file_path)
    else:
        records = _load_json(file_path)

    logger.info(f"Loaded {len(records)} patient record(s)")
    return records


def _load_csv(file_path: Path) -> list[PatientRecord]:
    try:
        df = pd.read_csv(file_path, encoding="utf-8", dtype=str, keep_default_na=False)
    except Exception as e:
        raise ValidationError(
            f"Failed to read CSV file {file_path}. Ensure file is valid CSV with UTF-8 encoding. Error: {e}"
        ) from e

    missing_columns = [col for col in REQUIRED_COLUMNS if col not in df.columns]
    if missing_columns:
        raise ValidationError(
            f"Missing required columns: {', '.join(missing_columns)}. "
            f"Required columns are: {', '.join(REQUIRED_COLUMNS)}",
            issues=[f"missing column '{col}'" for col in missing_columns],
        )

    unknown_columns = [
        col for col in df.columns if col not in REQUIRED_COLUMNS + OPTIONAL_COLUMNS
    ]
    if unknown_columns:
        logger.warning(
            f"CSV contains unknown columns that will be ignored: {', '.join(unknown_columns)}"
        )

    errors: list[str] = []
    records: list[PatientRecord] = []

    for idx, row in df.iterrows():
        row_num = idx + 2  # +2 because: +1 for header, +1 for 1-indexed
        dob_value = row["date_of_birth"].strip()
        if not dob_value:
            errors.append(f"Row {row_num}: Missing date_of_birth. Expected format: YYYY-MM-DD")
            continue
        try:
            parsed = pd.to_datetime(dob_value, format="%Y-%m-%d")
        except (ValueError, TypeError):
            parsed = pd.NaT
        if pd.isna(parsed):
            errors.append(
                f"Row {row_num}: Invalid date format '{dob_value}'. "
                "Expected format: YYYY-MM-DD (e.g., 1990-05-15)"
            )
            continue
        date_of_birth = parsed.date()

        values = {
            col: (row[col].strip() or None)
            for col in REQUIRED_COLUMNS + OPTIONAL_COLUMNS
            if col in df.columns and col != "date_of_birth"
        }
        if values.get("status") is None:
            values.pop("status", None)
        records.append(PatientRecord(date_of_birth=date_of_birth, **values))

    if errors:
        raise ValidationError(
            f"Found {len(errors)} validation error(s) in CSV:\n  - " + "\n  - ".join(errors),
            issues=errors,
        )
    return records


def _load_json(file_path: Path) -> list[PatientRecord]:
    try:
        with open(file_path, "r", encoding="utf-8") as f:
            data: Any = json.load(f)
    except json.JSONDecodeError as e:
        raise ValidationError(
            f"Invalid JSON in patient file: {file_path}\n"
            f"Error: {e}\n"
            f"Fix: Check JSON syntax at line {e.lineno}, column {e.colno}"
        ) from e

    if isinstance(data, dict):
        data = data.get("patients", [])
    if not isinstance(data, list):
        raise ValidationError(
            f"Patient file {file_path} must contain a JSON array of patients"
        )

    records: list[PatientRecord] = []
    for index, item in enumerate(data):
        if not isinstance(item, dict):
            raise ValidationError(f"Entry {index} in {file_path} is not a JSON object")
        try:
            records.append(PatientRecord.from_dict(item))
        except ValueError as e:
            raise ValidationError(f"Entry {index} in {file_path}: {e}") from e
    return records
