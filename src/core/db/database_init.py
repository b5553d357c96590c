"""
Centralized Supabase client management for the application.
This module provides a shared Supabase client built from environment credentials.
"""
from supabase import create_client, Client
import os
import logging
from dotenv import load_dotenv
from typing import Optional, Tuple

logger = logging.getLogger(__name__)

ENV_FILES = (".env", ".env.local")


class SupabaseConfigError(RuntimeError):
    """Raised when Supabase credentials are missing or malformed."""
    pass


def load_environment() -> None:
    """Load `.env` then `.env.local`; the later file wins for keys it sets."""
    load_dotenv(ENV_FILES[0])
    load_dotenv(ENV_FILES[1], override=True)


def read_credentials() -> Tuple[str, str]:
    """Read and clean SUPABASE_URL and SUPABASE_KEY from the environment.

    Raises:
        SupabaseConfigError: If either value is missing or the URL is not http(s)
    """
    url = (os.getenv("SUPABASE_URL") or "").strip().strip('"\'')
    key = (os.getenv("SUPABASE_KEY") or "").strip().strip('"\'')

    logger.debug(f"SUPABASE_URL found: {'Yes' if url else 'No'}")
    logger.debug(f"SUPABASE_KEY found: {'Yes' if key else 'No'}")

    if not url or not key:
        raise SupabaseConfigError(
            "SUPABASE_URL and/or SUPABASE_KEY are not set. "
            "Please check your .env or .env.local file."
        )
    if not url.startswith(('http://', 'https://')):
        raise SupabaseConfigError(f"Invalid SUPABASE_URL format: {url[:50]}")
    return url, key


class SupabaseConnection:
    _instance: Optional['SupabaseConnection'] = None
    _client: Optional[Client] = None

    def __new__(cls) -> 'SupabaseConnection':
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __init__(self):
        if self._client is None:
            self._initialize_client()

    def _initialize_client(self) -> None:
        load_environment()
        url, key = read_credentials()
        try:
            self._client = create_client(url, key)
        except Exception as e:
            raise SupabaseConfigError(f"Failed to initialize Supabase client: {e}") from e
        logger.info("Supabase client initialized successfully")

    @property
    def client(self) -> Optional[Client]:
        """Get the Supabase client instance."""
        return self._client


def get_supabase_client() -> Client:
    """Get the shared Supabase client instance.

    Raises:
        SupabaseConfigError: If the client cannot be created
    """
    return SupabaseConnection().client
