"""
Calendar Event Database Queries

CRUD operations for calendar_events table
"""

from typing import Dict, List, Any, Optional
from app.db.connection import get_supabase
from app.errors import PersistenceFailure

# Columns a client may change
UPDATABLE_FIELDS = ['title', 'description', 'start_time', 'end_time', 'all_day', 'color', 'location']


async def get_events_for_user(
    user_id: str,
    start: Optional[str] = None,
    end: Optional[str] = None
) -> List[Dict[str, Any]]:
    """
    Get a user's calendar events ordered by start time, optionally within [start, end]
    """
    query = get_supabase().table('calendar_events').select('*').eq('user_id', user_id)
    if start:
        query = query.gte('start_time', start)
    if end:
        query = query.lte('start_time', end)

    response = query.order('start_time').execute()

    if hasattr(response, 'error') and response.error:
        raise PersistenceFailure(f'Failed to fetch calendar events: {response.error.message}')
    return response.data or []


async def create_events(rows: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """
    Insert one or more calendar events
    Returns:
        Created events
    """
    if not rows:
        return []

    response = get_supabase().table('calendar_events').insert(rows).execute()

    if hasattr(response, 'error') and response.error:
        raise PersistenceFailure(f'Failed to create calendar event: {response.error.message}')
    return response.data or []


async def update_event(user_id: str, event_id: str, changes: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    """
    Update allowed fields of an event
    Returns:
        Updated event, or None if it does not exist for this user
    """
    updates = {key: value for key, value in changes.items() if key in UPDATABLE_FIELDS}
    if not updates:
        return None

    response = get_supabase().table('calendar_events').update(updates).eq(
        'id', event_id
    ).eq('user_id', user_id).execute()

    if hasattr(response, 'error') and response.error:
        raise PersistenceFailure(f'Failed to update calendar event: {response.error.message}')
    return response.data[0] if response.data else None


async def delete_event(user_id: str, event_id: str) -> bool:
    """
    Delete an event
    Returns:
        True if a row was deleted
    """
    response = get_supabase().table('calendar_events').delete().eq(
        'id', event_id
    ).eq('user_id', user_id).execute()

    if hasattr(response, 'error') and response.error:
        raise PersistenceFailure(f'Failed to delete calendar event: {response.error.message}')
    return bool(response.data)
