"""Core utility modules shared by the command line tools."""

from .logging import setup_logging
from .cli import setup_cli_parser, handle_cli_errors, setup_cli_logging

__all__ = [
    'setup_logging',
    'setup_cli_parser',
    'handle_cli_errors',
    'setup_cli_logging',
]
