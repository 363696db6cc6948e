"""
Research Routes

Topic identification and per-topic research for an analysis
"""

from typing import Optional
from fastapi import APIRouter, Depends, HTTPException, Request
from pydantic import BaseModel
from app.middleware.auth import require_auth
from app.middleware.rate_limiter import research_limiter
from app.services.research.factory import get_research_orchestrator
from app.services.research.orchestrator import ResearchOrchestrator
from app.services.logger import logger

router = APIRouter()


class IdentifyRequest(BaseModel):
    analysisId: Optional[str] = None
    emailContent: Optional[str] = None


class ProcessRequest(BaseModel):
    analysisId: Optional[str] = None
    topicId: Optional[str] = None
    topic: Optional[str] = None
    context: Optional[str] = None
    emailContent: Optional[str] = None


@router.post('/identify')
@research_limiter
async def identify_topics(
    request: Request,
    body: IdentifyRequest = IdentifyRequest(),
    user: dict = Depends(require_auth),
    orchestrator: ResearchOrchestrator = Depends(get_research_orchestrator)
):
    """
    Return the research topics of an analysis, identifying them on first call
    """
    if not body.analysisId or not body.emailContent:
        raise HTTPException(
            status_code=400,
            detail={'error': 'Missing required fields: analysisId, emailContent'}
        )

    try:
        topics = await orchestrator.identify(user['id'], body.analysisId, body.emailContent)

        return {
            'success': True,
            'count': len(topics),
            'topics': topics
        }

    except HTTPException:
        raise
    except Exception as error:
        logger.error(f'[RESEARCH_IDENTIFY] Error identifying topics: {str(error)}', analysis_id=body.analysisId)
        raise HTTPException(
            status_code=500,
            detail={
                'error': 'Internal server error',
                'message': str(error)
            }
        )


@router.post('/process')
@research_limiter
async def process_topic(
    request: Request,
    body: ProcessRequest = ProcessRequest(),
    user: dict = Depends(require_auth),
    orchestrator: ResearchOrchestrator = Depends(get_research_orchestrator)
):
    """
    Research one topic and store its brief.
    Always answers 200; a failed workflow is reported as success=false with the failure brief.
    """
    if not body.analysisId or not body.topicId or not body.topic or not body.emailContent:
        raise HTTPException(status_code=400, detail={'error': 'Missing required fields'})

    outcome = await orchestrator.process(
        user['id'],
        body.analysisId,
        body.topicId,
        body.topic,
        body.context,
        body.emailContent
    )
    return outcome.to_dict()


@router.post('/batch')
@research_limiter
async def research_all_topics(
    request: Request,
    body: IdentifyRequest = IdentifyRequest(),
    user: dict = Depends(require_auth),
    orchestrator: ResearchOrchestrator = Depends(get_research_orchestrator)
):
    """
    Identify topics if needed, then research every pending one in order.
    Long running: one workflow per pending topic.
    """
    if not body.analysisId or not body.emailContent:
        raise HTTPException(
            status_code=400,
            detail={'error': 'Missing required fields: analysisId, emailContent'}
        )

    try:
        topics = await orchestrator.research_all(user['id'], body.analysisId, body.emailContent)
        return {
            'success': all(topic.get('success', True) for topic in topics),
            'count': len(topics),
            'topics': topics
        }

    except HTTPException:
        raise
    except Exception as error:
        logger.error(f'[RESEARCH_BATCH] Error researching topics: {str(error)}', analysis_id=body.analysisId)
        raise HTTPException(
            status_code=500,
            detail={
                'error': 'Internal server error',
                'message': str(error)
            }
        )


@router.get('/{thread_id}')
async def get_thread_research(
    thread_id: str,
    format: Optional[str] = None,
    user: dict = Depends(require_auth),
    orchestrator: ResearchOrchestrator = Depends(get_research_orchestrator)
):
    """
    Research for the thread's current analysis, or null when there is none.
    ?format=markdown adds a rendered "markdown" field to each stored brief.
    """
    try:
        research = await orchestrator.get_thread_research(
            user['id'], thread_id, include_markdown=format == 'markdown'
        )
        return {'research': research}

    except Exception as error:
        logger.error(f'Research fetch error: {str(error)}', thread_id=thread_id)
        raise HTTPException(
            status_code=500,
            detail={
                'error': 'Internal server error',
                'message': str(error)
            }
        )
