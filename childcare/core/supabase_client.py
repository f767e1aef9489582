# childcare/core/supabase_client.py
from supabase import create_client, Client

from childcare.core.config import Settings


def supabase_admin(settings: Settings) -> Client:
    """
    Create a Supabase client with the service role key.

    Use cases:
      - uploading to / deleting from the private image bucket
      - listing every object under a user's prefix

    The caller owns the returned client (create_app keeps it on
    app.state through SupabaseBlobStore).

    WARNING:
      - Never expose service role key to frontend.
      - Only backend should call this.

    Raises:
        RuntimeError: if SUPABASE_URL or SUPABASE_SERVICE_ROLE_KEY is not set.
    """
    if not settings.supabase_configured:
        raise RuntimeError("Missing SUPABASE_URL / SUPABASE_SERVICE_ROLE_KEY in .env")
    return create_client(settings.SUPABASE_URL, settings.SUPABASE_SERVICE_ROLE_KEY)
