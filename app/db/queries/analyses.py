"""
Analysis Database Queries

Email threads, analyses and the entity tables extracted from them
"""

from typing import Dict, List, Any
from app.db.connection import get_supabase
from app.errors import PersistenceFailure
from app.services.logger import logger

ENTITY_TABLES = ['stakeholders', 'action_items', 'deadlines', 'key_decisions', 'open_questions']


async def create_thread(user_id: str, title: str, content: str) -> Dict[str, Any]:
    """
    Create an email thread
    Args:
        user_id: Owner UUID
        title: Thread title
        content: Pasted thread text
    Returns:
        Created thread
    """
    response = get_supabase().table('email_threads').insert({
        'user_id': user_id,
        'title': title,
        'content': content
    }).execute()

    if hasattr(response, 'error') and response.error:
        raise PersistenceFailure(f'Failed to save thread: {response.error.message}')
    if response.data:
        return response.data[0]
    raise PersistenceFailure('Failed to save thread')


async def create_analysis(
    user_id: str,
    thread_id: str,
    suggested_replies: List[Dict[str, str]]
) -> Dict[str, Any]:
    """
    Create the analysis row for a thread
    Args:
        suggested_replies: List of {title, content}; the first one is also stored as the legacy suggested_reply
    Returns:
        Created analysis
    """
    response = get_supabase().table('analyses').insert({
        'thread_id': thread_id,
        'user_id': user_id,
        'suggested_replies': suggested_replies,
        'suggested_reply': suggested_replies[0]['content'] if suggested_replies else ''
    }).execute()

    if hasattr(response, 'error') and response.error:
        raise PersistenceFailure(f'Failed to save analysis: {response.error.message}')
    if response.data:
        return response.data[0]
    raise PersistenceFailure('Failed to save analysis')


async def insert_entities(user_id: str, analysis_id: str, table: str, rows: List[Dict[str, Any]]) -> int:
    """
    Insert extracted entities into one of the entity tables
    Returns:
        Number of rows inserted
    """
    if table not in ENTITY_TABLES:
        raise ValueError(f'Unknown entity table: {table}')
    if not rows:
        return 0

    response = get_supabase().table(table).insert(
        [{**row, 'analysis_id': analysis_id, 'user_id': user_id} for row in rows]
    ).execute()

    if hasattr(response, 'error') and response.error:
        raise PersistenceFailure(f'Failed to save {table}: {response.error.message}')

    logger.info(f'Saved {len(rows)} {table}', analysis_id=analysis_id)
    return len(rows)
