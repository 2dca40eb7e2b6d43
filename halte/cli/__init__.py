"""
cli — command-line interface for halte.

Entry points
────────────
  python -m halte   (via halte/__main__.py)
  halte             (via pyproject.toml [project.scripts])

Subcommands: export | import | wipe | permissions | context | catalog | cache
"""

from halte.cli.main import build_parser, main

__all__ = ["build_parser", "main"]
