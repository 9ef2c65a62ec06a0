"""
scour command line: search, replace and config subcommands.

Run `scour --help` or `python -m scour_cli` for usage.
"""

__version__ = "0.1.0"
