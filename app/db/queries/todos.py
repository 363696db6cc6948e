"""
Todo Database Queries

CRUD operations for todos table
"""

from datetime import datetime, timezone
from typing import Dict, List, Any, Optional
from app.db.connection import get_supabase
from app.errors import PersistenceFailure


async def create_todos(rows: List[Dict[str, Any]]) -> int:
    """
    Bulk insert todos (each row already carries user_id, analysis_id, thread_id)
    Returns:
        Number of rows inserted
    """
    if not rows:
        return 0

    response = get_supabase().table('todos').insert(rows).execute()

    if hasattr(response, 'error') and response.error:
        raise PersistenceFailure(f'Failed to create todos: {response.error.message}')
    return len(rows)


async def get_todos_for_user(user_id: str) -> List[Dict[str, Any]]:
    """
    Get a user's todos, open ones first, newest first
    """
    response = get_supabase().table('todos').select(
        '*, email_threads(title)'
    ).eq('user_id', user_id).order('completed').order('created_at', desc=True).execute()

    if hasattr(response, 'error') and response.error:
        raise PersistenceFailure(f'Failed to fetch todos: {response.error.message}')
    return response.data or []


async def set_todo_completed(user_id: str, todo_id: str, completed: bool) -> Optional[Dict[str, Any]]:
    """
    Mark a todo as completed / not completed
    Returns:
        Updated todo, or None if it does not exist for this user
    """
    response = get_supabase().table('todos').update({
        'completed': completed,
        'completed_at': datetime.now(timezone.utc).isoformat() if completed else None
    }).eq('id', todo_id).eq('user_id', user_id).execute()

    if hasattr(response, 'error') and response.error:
        raise PersistenceFailure(f'Failed to update todo: {response.error.message}')
    return response.data[0] if response.data else None
