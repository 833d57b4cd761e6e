"""
pyreview CLI - command line interface.

Provides the `pyreview` console script.
"""

from .main import build_parser, cli, main, setup_logging

__all__ = ["build_parser", "cli", "main", "setup_logging"]
