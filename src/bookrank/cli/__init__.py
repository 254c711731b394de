"""Command line entry points."""

from bookrank.cli.main import cli


__all__ = ["cli"]
