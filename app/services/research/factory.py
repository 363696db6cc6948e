"""
Research Pipeline Wiring

Builds the process-wide research components from settings
"""

from functools import lru_cache
from app.config import get_settings
from app.db.queries.research import ResearchStore
from app.services.gpt_service import GptService
from app.services.parallel_client import get_parallel_client
from app.services.research.limiter import ResearchLimiter
from app.services.research.orchestrator import ResearchOrchestrator
from app.services.research.topic_identifier import TopicIdentifier
from app.services.research.workflow import ResearchWorkflowEngine


@lru_cache()
def get_research_orchestrator() -> ResearchOrchestrator:
    """Orchestrator dependency; one limiter is shared by every request"""
    settings = get_settings()
    gpt = GptService(settings)
    return ResearchOrchestrator(
        store=ResearchStore(),
        engine=ResearchWorkflowEngine(settings, gpt, parallel=get_parallel_client(settings)),
        identifier=TopicIdentifier(gpt, model=settings.TOPIC_MODEL),
        limiter=ResearchLimiter(
            max_concurrency=settings.RESEARCH_MAX_CONCURRENCY,
            min_interval_seconds=settings.RESEARCH_MIN_INTERVAL_SECONDS
        )
    )
