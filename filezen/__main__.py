"""Main entry point for FileZen.

This allows the package to be run as:
    python -m filezen
"""

from .cli.main import cli

if __name__ == "__main__":
    cli()
