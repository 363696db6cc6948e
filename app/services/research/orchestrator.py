"""
Research Pipeline Orchestrator

Cache-or-compute entry points used by the research routes:

- identify(): return the stored topics of an analysis, or identify and store them once
- process():  research one topic and upsert its result (idempotent per topic)
- research_all(): batch variant that runs every pending topic in order (POST /batch)
- get_thread_research(): stored research of a thread, optionally rendered to Markdown
"""

from dataclasses import dataclass
from typing import Dict, List, Any, Optional, Protocol
from app.errors import PersistenceFailure, SchemaViolation
from app.services.research.limiter import ResearchLimiter
from app.services.research.render import render_markdown
from app.services.research.topic_identifier import TopicIdentifier, IdentifiedTopic
from app.services.research.workflow import ResearchWorkflowEngine, WorkflowOutcome
from app.db.queries.research import RESULT_STATUS_COMPLETED
from app.services.logger import logger

CACHED_TOPIC_CONTEXT = 'Email thread analysis'
CACHED_TOPIC_PRIORITY = 'medium'


class TopicStore(Protocol):
    async def list_topics(self, user_id: str, analysis_id: str) -> List[Dict[str, Any]]: ...

    async def insert_topics_once(self, user_id: str, analysis_id: str, titles: List[str]) -> List[Dict[str, Any]]: ...

    async def upsert_result(self, user_id: str, analysis_id: str, topic_id: str, content: Dict[str, Any]) -> Dict[str, Any]: ...

    async def clear_topic_loading(self, user_id: str, topic_id: str) -> None: ...

    async def get_latest_analysis_id(self, user_id: str, thread_id: str) -> Optional[str]: ...


@dataclass
class ProcessOutcome:
    success: bool
    result: Dict[str, Any]

    def to_dict(self) -> Dict[str, Any]:
        return {'success': self.success, 'result': self.result}


def _has_completed_result(row: Dict[str, Any]) -> bool:
    result = row.get('result')
    return bool(result) and result.get('status', RESULT_STATUS_COMPLETED) == RESULT_STATUS_COMPLETED


def topic_view(
    row: Dict[str, Any],
    identified: Optional[IdentifiedTopic] = None,
    include_content: bool = False
) -> Dict[str, Any]:
    """
    Uniform topic shape returned to clients.
    isLoading is true while no completed result exists for the topic.
    """
    view = {
        'id': row['id'],
        'topic': row['title'],
        'context': identified.context if identified else CACHED_TOPIC_CONTEXT,
        'priority': identified.priority if identified else CACHED_TOPIC_PRIORITY,
        'isLoading': not _has_completed_result(row),
    }

    content = (row.get('result') or {}).get('content')
    if isinstance(content, dict):
        if content.get('tldr'):
            view['tldr'] = content['tldr']
        if include_content:
            view.update({key: value for key, value in content.items() if key not in ('topic', 'tldr')})
    return view


class ResearchOrchestrator:
    def __init__(
        self,
        store: TopicStore,
        engine: ResearchWorkflowEngine,
        identifier: TopicIdentifier,
        limiter: ResearchLimiter
    ):
        self.store = store
        self.engine = engine
        self.identifier = identifier
        self.limiter = limiter

    async def identify(self, user_id: str, analysis_id: str, email_content: str) -> List[Dict[str, Any]]:
        """
        Return the analysis' topics, identifying and storing them on first call.
        Repeated calls after topics exist make no model call.
        """
        logger.info(f'[RESEARCH_IDENTIFY] Checking for existing topics', analysis_id=analysis_id)
        existing = await self.store.list_topics(user_id, analysis_id)

        if existing:
            logger.info(f'[RESEARCH_IDENTIFY] Found {len(existing)} existing topics', analysis_id=analysis_id)
            return [topic_view(row) for row in existing]

        topics = await self.identifier.identify(email_content)
        logger.info(f'[RESEARCH_IDENTIFY] Identified {len(topics)} topics', analysis_id=analysis_id)
        if not topics:
            return []

        rows = await self.store.insert_topics_once(user_id, analysis_id, [t.topic for t in topics])

        by_title = {t.topic: t for t in topics}
        return [topic_view(row, by_title.get(row.get('title'))) for row in rows if row.get('id')]

    async def run_engine(self, topic: str, context: Optional[str], email_content: str) -> WorkflowOutcome:
        async with self.limiter.slot():
            return await self.engine.run(topic, context, email_content)

    async def process(
        self,
        user_id: str,
        analysis_id: str,
        topic_id: str,
        topic: str,
        context: Optional[str],
        email_content: str
    ) -> ProcessOutcome:
        """
        Research one topic and store the result keyed by topic id.
        The brief is returned even when the write fails.
        """
        logger.info(f'[RESEARCH_PROCESS] Researching topic: "{topic}"', topic_id=topic_id)
        outcome = await self.run_engine(topic, context, email_content)
        content = outcome.brief.to_content()

        try:
            await self.store.upsert_result(user_id, analysis_id, topic_id, content)
            await self.store.clear_topic_loading(user_id, topic_id)
            logger.info(f'[RESEARCH_PROCESS] Stored research for "{topic}"', topic_id=topic_id, status=outcome.status)
        except PersistenceFailure as error:
            logger.error(f'[RESEARCH_PROCESS] Failed to store research for "{topic}": {str(error)}', topic_id=topic_id)

        return ProcessOutcome(success=outcome.ok, result=content)

    async def research_all(self, user_id: str, analysis_id: str, email_content: str) -> List[Dict[str, Any]]:
        """
        Identify topics and process every pending one serially, in identify order
        """
        topics = await self.identify(user_id, analysis_id, email_content)
        results = []
        for view in topics:
            if not view['isLoading']:
                results.append(view)
                continue
            outcome = await self.process(
                user_id, analysis_id, view['id'], view['topic'], view['context'], email_content
            )
            results.append({
                **view,
                'isLoading': False,
                'success': outcome.success,
                'tldr': outcome.result.get('tldr', []),
            })
        return results

    async def get_thread_research(
        self,
        user_id: str,
        thread_id: str,
        include_markdown: bool = False
    ) -> Optional[List[Dict[str, Any]]]:
        """
        Topics of the thread's current analysis with full result content, or None.
        With include_markdown, each stored brief is also rendered to Markdown.
        """
        analysis_id = await self.store.get_latest_analysis_id(user_id, thread_id)
        if not analysis_id:
            return None

        rows = await self.store.list_topics(user_id, analysis_id)
        if not rows:
            return None
        views = []
        for row in rows:
            view = topic_view(row, include_content=True)
            content = (row.get('result') or {}).get('content')
            if include_markdown and isinstance(content, dict):
                try:
                    view['markdown'] = render_markdown(content)
                except SchemaViolation as error:
                    logger.warning(f'Stored brief is not renderable: {str(error)}', topic_id=row['id'])
            views.append(view)
        return views
