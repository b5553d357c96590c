"""CLI utility functions and argument parsing patterns."""

import argparse
import functools
import logging
import sys
from typing import Callable

from .logging import setup_logging

LOG_LEVELS = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]


def setup_cli_parser(description: str,
                    add_common_args: bool = True) -> argparse.ArgumentParser:
    """Create a standardized CLI argument parser.

    Args:
        description: Description of the script/command
        add_common_args: Whether to add the shared logging arguments

    Returns:
        Configured ArgumentParser instance
    """
    parser = argparse.ArgumentParser(description=description)

    if add_common_args:
        parser.add_argument(
            "--verbose", "-v",
            action="store_true",
            help="Enable verbose logging"
        )
        parser.add_argument(
            "--log-level",
            choices=LOG_LEVELS,
            default=None,
            help="Set logging level (default: INFO or the config file's level)"
        )

    return parser


def handle_cli_errors(func: Callable) -> Callable:
    """Decorator to handle common CLI errors and exit codes.

    The wrapped function returns truthy on success. Exceptions are logged and
    reported on stderr, and turn into exit code 1.

    Args:
        func: The main CLI function to wrap

    Returns:
        Wrapped function with error handling
    """
    @functools.wraps(func)
    def wrapper(*args, **kwargs) -> int:
        try:
            result = func(*args, **kwargs)
            return 0 if result else 1
        except KeyboardInterrupt:
            print("\nOperation cancelled by user", file=sys.stderr)
            return 1
        except Exception as e:
            logging.getLogger(func.__module__).error(str(e))
            print(f"Error: {e}", file=sys.stderr)
            return 1

    return wrapper


def setup_cli_logging(args: argparse.Namespace, default_level: str = "INFO") -> None:
    """Set up logging based on CLI arguments.

    Args:
        args: Parsed command line arguments
        default_level: Level used when neither --verbose nor --log-level is given
    """
    if getattr(args, 'verbose', False):
        log_level = "DEBUG"
    else:
        log_level = getattr(args, 'log_level', None) or default_level
    setup_logging(level=log_level)
