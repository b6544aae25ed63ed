"""Custom log formatters for the Hospital EPA Bridge.

This module provides specialized formatters for logging, including PII redaction.
"""

import logging
import re
from typing import List, Tuple


class PIIRedactingFormatter(logging.Formatter):
    """Formatter that redacts patient identifying data from log messages.

    Insurance numbers, email addresses and patient names written as
    ``name=...`` or ``Patient: First Last`` are masked when redaction is on.

    Example:
        >>> formatter = PIIRedactingFormatter(redact_pii=True)
        >>> handler = logging.StreamHandler()
        >>> handler.setFormatter(formatter)
    """

    def __init__(
        self,
        fmt: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt: str | None = None,
        redact_pii: bool = False,
    ) -> None:
        super().__init__(fmt=fmt, datefmt=datefmt)
        self.redact_pii = redact_pii

        self.patterns: List[Tuple[re.Pattern[str], str]] = [
            # Insurance number: INS-2024-001
            (re.compile(r"\bINS-\d{4}-\d+\b"), "[INSURANCE-REDACTED]"),

            (re.compile(r"[A-Za-z0-9+_.-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}"), "[EMAIL-REDACTED]"),

            # Matches: name="Max Mustermann", name='Erika', name=Max
            (re.compile(r"name=[\"']?([^\"'|,]+)[\"']?"), "name=[NAME-REDACTED]"),

            # Matches: "Patient: Max Mustermann", "Name: Erika Musterfrau"
            (re.compile(r"(Patient|Name):\s+([A-ZÄÖÜ][a-zäöüß]+(?:\s+[A-ZÄÖÜ][a-zäöüß]+)+)"),
             r"\1: [NAME-REDACTED]"),
        ]

    def format(self, record: logging.LogRecord) -> str:
        """Format the log record with optional PII redaction."""
        original = super().format(record)

        if self.redact_pii:
            for pattern, replacement in self.patterns:
                original = pattern.sub(replacement, original)

        return original
