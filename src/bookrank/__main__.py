"""Allow ``python -m bookrank``."""

from bookrank.cli import cli


cli()
