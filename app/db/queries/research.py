"""
Research Database Queries

Topic store and result store for the research pipeline
(research_topics, research_results)
"""

from datetime import datetime, timezone
from typing import Dict, List, Any, Optional
from supabase import Client
from app.db.connection import get_supabase
from app.errors import PersistenceFailure
from app.services.logger import logger

RESULT_STATUS_COMPLETED = 'completed'

_TOPIC_COLUMNS = 'id, analysis_id, title, is_loading, created_at, research_results(id, status, content, updated_at)'


def _check(response, action: str):
    if hasattr(response, 'error') and response.error:
        raise PersistenceFailure(f'Failed to {action}: {response.error.message}')


def _flatten_topic(row: Dict[str, Any]) -> Dict[str, Any]:
    """PostgREST returns the 1:1 embed as an object, older versions as a list"""
    embedded = row.pop('research_results', None)
    if isinstance(embedded, list):
        embedded = embedded[0] if embedded else None
    row['result'] = embedded
    return row


class ResearchStore:
    """Supabase-backed topic and result store"""

    def __init__(self, client: Optional[Client] = None):
        self._client = client

    @property
    def client(self) -> Client:
        if self._client is None:
            self._client = get_supabase()
        return self._client

    async def list_topics(self, user_id: str, analysis_id: str) -> List[Dict[str, Any]]:
        """
        Get topics for an analysis ordered by creation, each with its result (or None)
        """
        try:
            response = self.client.table('research_topics').select(_TOPIC_COLUMNS).eq(
                'analysis_id', analysis_id
            ).eq('user_id', user_id).order('created_at').execute()
        except Exception as e:
            raise PersistenceFailure(f'Failed to fetch research topics: {str(e)}') from e

        _check(response, 'fetch research topics')
        return [_flatten_topic(row) for row in (response.data or [])]

    async def insert_topics_once(self, user_id: str, analysis_id: str, titles: List[str]) -> List[Dict[str, Any]]:
        """
        Insert topics for an analysis unless it already has some.
        Returns the analysis' topics either way (ours, or the concurrent winner's).
        """
        try:
            response = self.client.rpc('insert_research_topics_once', {
                'p_analysis_id': analysis_id,
                'p_user_id': user_id,
                'p_titles': titles
            }).execute()
        except Exception as e:
            raise PersistenceFailure(f'Failed to insert research topics: {str(e)}') from e

        _check(response, 'insert research topics')
        logger.info('Research topics stored', analysis_id=analysis_id, returned=len(response.data or []))
        return await self.list_topics(user_id, analysis_id)

    async def upsert_result(
        self,
        user_id: str,
        analysis_id: str,
        topic_id: str,
        content: Dict[str, Any]
    ) -> Dict[str, Any]:
        """
        Create or replace the result for a topic (one row per topic)
        """
        try:
            response = self.client.table('research_results').upsert(
                {
                    'topic_id': topic_id,
                    'analysis_id': analysis_id,
                    'user_id': user_id,
                    'status': RESULT_STATUS_COMPLETED,
                    'content': content,
                    'updated_at': datetime.now(timezone.utc).isoformat()
                },
                on_conflict='topic_id'
            ).execute()
        except Exception as e:
            raise PersistenceFailure(f'Failed to save research result: {str(e)}') from e

        _check(response, 'save research result')
        if response.data:
            return response.data[0]
        raise PersistenceFailure('Failed to save research result: no row returned')

    async def clear_topic_loading(self, user_id: str, topic_id: str) -> None:
        try:
            response = self.client.table('research_topics').update(
                {'is_loading': False}
            ).eq('id', topic_id).eq('user_id', user_id).execute()
        except Exception as e:
            raise PersistenceFailure(f'Failed to update research topic: {str(e)}') from e

        _check(response, 'update research topic')

    async def get_latest_analysis_id(self, user_id: str, thread_id: str) -> Optional[str]:
        """The current analysis of a thread is the most recently created one"""
        try:
            response = self.client.table('analyses').select('id').eq(
                'thread_id', thread_id
            ).eq('user_id', user_id).order('created_at', desc=True).limit(1).execute()
        except Exception as e:
            raise PersistenceFailure(f'Failed to fetch analysis: {str(e)}') from e

        _check(response, 'fetch analysis')
        return response.data[0]['id'] if response.data else None
