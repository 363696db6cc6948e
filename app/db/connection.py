"""
Supabase Database Connection

Manages the Supabase client for all database operations.
The client is created on first use so the app can be imported without credentials.
"""

from functools import lru_cache
from supabase import create_client, Client
from app.config import settings
from app.services.logger import logger


@lru_cache()
def get_supabase() -> Client:
    """
    Get the shared Supabase client (service role, server-side only)
    Raises:
        RuntimeError: If SUPABASE_URL / SUPABASE_SERVICE_ROLE_KEY are missing
    """
    if not settings.SUPABASE_URL or not settings.SUPABASE_SERVICE_ROLE_KEY:
        raise RuntimeError('Missing SUPABASE_URL or SUPABASE_SERVICE_ROLE_KEY')

    return create_client(settings.SUPABASE_URL, settings.SUPABASE_SERVICE_ROLE_KEY)


async def test_connection() -> bool:
    """
    Test database connection
    Returns: Connection status
    """
    try:
        response = get_supabase().table('email_threads').select('id').limit(0).execute()

        if hasattr(response, 'error') and response.error:
            error = response.error
            if getattr(error, 'code', None) == '42P01':
                # Table doesn't exist yet - this is fine during initial setup
                logger.warning('⚠️  Tables not created yet. Apply migrations/*.sql first.')
                return True
            raise Exception(error.message)

        logger.info('✅ Supabase connected successfully')
        return True
    except Exception as error:
        logger.error(f'❌ Supabase connection failed: {str(error)}')
        logger.warning('Server will continue but database features may not work.')
        return False
