"""
Supabase client initialization.
Single-source-of-truth Supabase clients for Civic Issue Hub.

- get_db(): the shared service-role client used by the REST API services.
- create_auth_client(): a throwaway anon client for sign-in/sign-up so the
  shared client never carries an end-user session.
- create_user_client(): the anon client the direct (secondary) path owns.
"""

from typing import Optional
import logging

from supabase import Client, create_client
from supabase.lib.client_options import ClientOptions

from civic_hub.core.settings import settings

logger = logging.getLogger(__name__)

db: Optional[Client] = None


def _require_url() -> str:
    if not settings.SUPABASE_URL:
        raise RuntimeError(
            "Supabase initialization FAILED - SUPABASE_URL is not set.\n"
            "SOLUTION: add SUPABASE_URL and SUPABASE_SERVICE_ROLE_KEY to your .env file."
        )
    return settings.SUPABASE_URL


def initialize_supabase() -> Client:
    global db

    if db is not None:
        return db

    url = _require_url()
    key = settings.SUPABASE_SERVICE_ROLE_KEY
    if not key:
        logger.warning("SUPABASE_SERVICE_ROLE_KEY not set, falling back to anon key (RLS will apply)")
        key = settings.SUPABASE_ANON_KEY
    if not key:
        raise RuntimeError(
            "Supabase initialization FAILED - no API key configured.\n"
            "SOLUTION: set SUPABASE_SERVICE_ROLE_KEY (server) or SUPABASE_ANON_KEY in .env."
        )

    try:
        db = create_client(
            url,
            key,
            options=ClientOptions(auto_refresh_token=False, persist_session=False),
        )
    except Exception as e:
        raise RuntimeError(
            f"Supabase initialization FAILED. Error: {e}\n"
            f"Please check SUPABASE_URL and your API keys."
        )

    logger.info(f"[SUPABASE] Connected to {url}")
    return db


def get_db() -> Client:
    """
    Get the initialized service-role client.

    Raises RuntimeError if Supabase is not configured.
    """
    if db is None:
        try:
            initialize_supabase()
        except Exception as e:
            raise RuntimeError(
                f"Supabase not initialized and initialization failed: {e}. "
                "Please check your Supabase configuration."
            )
    return db


def create_auth_client() -> Client:
    """Fresh anon client for one auth exchange (sign up, sign in, refresh)."""
    url = _require_url()
    if not settings.SUPABASE_ANON_KEY:
        raise RuntimeError("SUPABASE_ANON_KEY is not set; auth endpoints are unavailable.")
    return create_client(
        url,
        settings.SUPABASE_ANON_KEY,
        options=ClientOptions(auto_refresh_token=False, persist_session=False),
    )


def create_user_client() -> Client:
    """Anon client owned by the direct client path; keeps its own session."""
    url = _require_url()
    if not settings.SUPABASE_ANON_KEY:
        raise RuntimeError("SUPABASE_ANON_KEY is not set; the direct data path is unavailable.")
    return create_client(url, settings.SUPABASE_ANON_KEY)
