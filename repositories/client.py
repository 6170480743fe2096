"""
Supabase client initialization.

This module contains *only* the database connection setup and exposes
`get_supabase()` for other repository modules to use.

Environment variables required:
- SUPABASE_URL: Your Supabase project URL
- SUPABASE_KEY: Your Supabase API key (use a server-side key only on the backend)

The client is created on first use so that importing a repository never needs
credentials. Tests and scripts can install their own client with
`set_supabase_override`.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Optional

from dotenv import load_dotenv

# The dependency is `supabase` (supabase-py). If your editor can't resolve it,
# install it in your environment: `pip install supabase`.
from supabase import Client, create_client  # type: ignore[import-not-found]

# Load environment variables from the .env file at the project root.
env_path = Path(__file__).parent.parent / ".env"
load_dotenv(dotenv_path=env_path)

_client: Optional[Client] = None
_override: Optional[Any] = None


def _create_client_from_env() -> Client:
    # Read credentials from the environment to avoid hard-coding secrets in code.
    supabase_url = os.getenv("SUPABASE_URL")
    supabase_key = os.getenv("SUPABASE_KEY")

    if not supabase_url:
        raise RuntimeError(
            "Missing environment variable: SUPABASE_URL. "
            "Set SUPABASE_URL to your Supabase project URL."
        )

    if not supabase_key:
        raise RuntimeError(
            "Missing environment variable: SUPABASE_KEY. "
            "Set SUPABASE_KEY to your Supabase API key."
        )

    return create_client(supabase_url, supabase_key)


def get_supabase() -> Any:
    """Return the active Supabase client (override first, then the env-configured one)."""

    global _client
    if _override is not None:
        return _override
    if _client is None:
        _client = _create_client_from_env()
    return _client


def set_supabase_override(client: Optional[Any]) -> None:
    """Install (or with None, remove) a client used instead of the env-configured one."""

    global _override
    _override = client


__all__ = ["get_supabase", "set_supabase_override"]
