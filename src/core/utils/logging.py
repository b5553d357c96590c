"""Process-wide logging setup for the evaluation CLIs."""

import logging
import sys
from typing import Optional, Sequence

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'

# The Supabase client logs every PostgREST request at INFO.
NOISY_LIBRARIES = ('httpx', 'httpcore', 'hpack', 'supabase', 'postgrest')


def setup_logging(level: str = "INFO", log_format: Optional[str] = None) -> None:
    """Send all records at ``level`` and above to stdout.

    Args:
        level: Level name; unknown names fall back to INFO
        log_format: Record format, defaults to LOG_FORMAT
    """
    numeric_level = getattr(logging, str(level).upper(), logging.INFO)

    # force replaces handlers installed by an earlier call
    logging.basicConfig(
        level=numeric_level,
        format=log_format or LOG_FORMAT,
        handlers=[logging.StreamHandler(sys.stdout)],
        force=True,
    )

    setup_library_logging()


def setup_library_logging(names: Sequence[str] = NOISY_LIBRARIES) -> None:
    """Quiet the HTTP stack underneath the Supabase client."""
    for name in names:
        logging.getLogger(name).setLevel(logging.WARNING)
