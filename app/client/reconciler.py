"""
Research Progress Reconciler

Client-side state machine for one analysis view. Drives the cache-or-compute
research API (identify once, then process each pending topic in order) and keeps
a per-topic view that survives page reloads mid-pipeline.

    IDENTIFYING_TOPICS -> HAS_TOPICS -> DONE
    per topic: LOADING -> COMPLETED | FAILED  (FAILED -> LOADING on retry)
"""

import warnings
from copy import deepcopy
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Dict, List, Any, Optional
from app.client.api_client import ResearchApiClient
from app.services.research.workflow import is_failure_brief
from app.services.logger import logger

SCHEMA_VERSION = '1.0.0'
DEFAULT_CONTEXT = 'Email thread analysis'
LOCAL_FAILURE_TLDR = 'Research could not be completed for this topic.'


class Phase(str, Enum):
    IDENTIFYING_TOPICS = 'identifying_topics'
    HAS_TOPICS = 'has_topics'
    DONE = 'done'


class TopicState(str, Enum):
    LOADING = 'loading'
    COMPLETED = 'completed'
    FAILED = 'failed'


@dataclass
class TopicEntry:
    id: Optional[str]
    topic: str
    state: TopicState = TopicState.LOADING
    context: str = DEFAULT_CONTEXT
    priority: str = 'medium'
    brief: Dict[str, Any] = field(default_factory=dict)
    retryable: bool = False

    @property
    def is_loading(self) -> bool:
        return self.state == TopicState.LOADING

    def to_dict(self) -> Dict[str, Any]:
        view = dict(self.brief)
        view.update({
            'id': self.id,
            'topic': self.topic,
            'context': self.context,
            'priority': self.priority,
            'isLoading': self.is_loading,
            'state': self.state.value,
        })
        if self.retryable:
            view['retryable'] = True
        return view


def local_failure_brief(topic: str) -> Dict[str, Any]:
    """Shown for a topic whose process call failed; never sent to the server"""
    return {
        'schema_version': SCHEMA_VERSION,
        'title': topic or 'Research Result',
        'tldr': [LOCAL_FAILURE_TLDR],
        'sections': [],
        'sources': [],
    }


def entry_from_item(item: Dict[str, Any]) -> TopicEntry:
    """Build an entry from an identify topic or a stored research item"""
    brief = {
        key: value for key, value in item.items()
        if key not in ('id', 'topic', 'context', 'priority', 'isLoading', 'state', 'retryable')
    }
    if item.get('isLoading'):
        state = TopicState.LOADING
    elif is_failure_brief(item):
        state = TopicState.FAILED
    else:
        state = TopicState.COMPLETED

    return TopicEntry(
        id=item.get('id'),
        topic=item.get('topic') or item.get('title') or '',
        state=state,
        context=item.get('context') or DEFAULT_CONTEXT,
        priority=item.get('priority') or 'medium',
        brief=brief,
        retryable=state == TopicState.FAILED,
    )


def merge_by_topic_id(entries: List[TopicEntry], topic_id: str, result: Dict[str, Any]) -> List[TopicEntry]:
    """Mark the entry with this id completed with the given brief"""
    merged = []
    for entry in entries:
        if entry.id == topic_id:
            entry = TopicEntry(
                id=entry.id,
                topic=entry.topic,
                state=TopicState.COMPLETED,
                context=entry.context,
                priority=entry.priority,
                brief=deepcopy(result),
            )
        merged.append(entry)
    return merged


def merge_by_topic_text(entries: List[TopicEntry], topic: str, result: Dict[str, Any]) -> List[TopicEntry]:
    """
    Deprecated: matches on topic text, so every entry sharing the title receives
    the same brief. Use merge_by_topic_id.
    """
    warnings.warn('merge_by_topic_text is deprecated, use merge_by_topic_id', DeprecationWarning, stacklevel=2)
    return [
        TopicEntry(
            id=entry.id,
            topic=entry.topic,
            state=TopicState.COMPLETED,
            context=entry.context,
            priority=entry.priority,
            brief=deepcopy(result),
        ) if entry.topic == topic else entry
        for entry in entries
    ]


class ResearchProgressReconciler:
    def __init__(
        self,
        api: ResearchApiClient,
        analysis_id: str,
        email_content: str,
        initial_research: Optional[List[Dict[str, Any]]] = None,
        on_change: Optional[Callable[[Dict[str, Any]], None]] = None
    ):
        self.api = api
        self.analysis_id = analysis_id
        self.email_content = email_content
        self.initial_research = initial_research or []
        self.on_change = on_change
        self.entries: List[TopicEntry] = []
        self.phase = Phase.HAS_TOPICS if self.initial_research else Phase.IDENTIFYING_TOPICS
        self._started = False

    @property
    def is_loading(self) -> bool:
        return self.phase == Phase.IDENTIFYING_TOPICS or any(e.is_loading for e in self.entries)

    def snapshot(self) -> Dict[str, Any]:
        return {
            'phase': self.phase.value,
            'research': [entry.to_dict() for entry in self.entries],
        }

    def _notify(self):
        if self.on_change:
            self.on_change(self.snapshot())

    def _finish_if_idle(self):
        if not any(e.is_loading for e in self.entries):
            self.phase = Phase.DONE

    def should_confirm_unload(self, kind: str) -> bool:
        """
        Whether leaving needs a confirmation. In-app navigation is always allowed;
        a full page unload asks while anything is still loading.
        """
        return kind == 'unload' and self.is_loading

    async def start(self):
        """
        Run the pipeline once: seed or identify, then process pending topics in order.
        Calling it again is a no-op.
        """
        if self._started:
            return
        self._started = True

        if self.initial_research:
            self.entries = [entry_from_item(item) for item in self.initial_research]
            self.phase = Phase.HAS_TOPICS
            self._notify()
        else:
            self.phase = Phase.IDENTIFYING_TOPICS
            self._notify()
            try:
                topics = await self.api.identify(self.analysis_id, self.email_content)
            except Exception as error:
                logger.error(f'Error identifying research topics: {str(error)}', analysis_id=self.analysis_id)
                topics = []

            if not topics:
                self.phase = Phase.DONE
                self._notify()
                return

            self.entries = [entry_from_item(item) for item in topics]
            self.phase = Phase.HAS_TOPICS
            self._notify()

        for entry in list(self.entries):
            if entry.is_loading:
                await self._process(entry)

        self._finish_if_idle()
        self._notify()

    async def retry(self, topic_id: str) -> bool:
        """
        Re-run process for one topic. Returns False when the id is unknown.
        """
        entry = next((e for e in self.entries if e.id == topic_id), None)
        if entry is None:
            return False

        self.entries = [
            TopicEntry(
                id=e.id,
                topic=e.topic,
                state=TopicState.LOADING,
                context=e.context,
                priority=e.priority,
            ) if e.id == topic_id else e
            for e in self.entries
        ]
        self.phase = Phase.HAS_TOPICS
        self._notify()

        await self._process(entry)
        self._finish_if_idle()
        self._notify()
        return True

    async def _process(self, entry: TopicEntry):
        try:
            payload = await self.api.process(
                self.analysis_id,
                entry.id,
                entry.topic,
                self.email_content,
                context=entry.context
            )
            if not payload.get('success') or not payload.get('result'):
                raise RuntimeError('Research failed')
        except Exception as error:
            logger.error(f'Error processing topic: {entry.topic}: {str(error)}', topic_id=entry.id)
            self._fail(entry.id)
            self._notify()
            return

        self.entries = merge_by_topic_id(self.entries, entry.id, payload['result'])
        self._notify()

    def _fail(self, topic_id: str):
        self.entries = [
            TopicEntry(
                id=e.id,
                topic=e.topic,
                state=TopicState.FAILED,
                context=e.context,
                priority=e.priority,
                brief=local_failure_brief(e.topic),
                retryable=True,
            ) if e.id == topic_id else e
            for e in self.entries
        ]
