"""Entry point for running hospital_epa as a module.

This allows the package to be executed as:
    python -m hospital_epa
"""

from hospital_epa.cli.main import cli

if __name__ == "__main__":
    cli()
