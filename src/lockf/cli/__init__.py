"""Command-line interface for lockf."""

from lockf.cli.main import build_parser, main, parse_arguments, run

__all__ = ["build_parser", "main", "parse_arguments", "run"]
