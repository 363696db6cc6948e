"""
Analysis Routes

Email thread submission: analysis, entity extraction, todos and calendar events
"""

from typing import Optional
from fastapi import APIRouter, Depends, HTTPException, Request
from pydantic import BaseModel
from app.config import Settings, get_settings
from app.middleware.auth import require_auth
from app.middleware.rate_limiter import analyze_limiter
from app.db.queries.analyses import ENTITY_TABLES, create_thread, create_analysis, insert_entities
from app.db.queries.todos import create_todos
from app.db.queries.calendar_events import create_events
from app.services.email_analysis import analyze_email_thread
from app.services.deadline_parser import deadlines_to_calendar_events
from app.services.gpt_service import GptService
from app.services.logger import logger

router = APIRouter()


class AnalyzeRequest(BaseModel):
    title: Optional[str] = None
    content: Optional[str] = None
    timezone: Optional[str] = 'UTC'


def get_gpt_service(settings: Settings = Depends(get_settings)) -> GptService:
    return GptService(settings)


@router.post('/analyze')
@analyze_limiter
async def analyze_thread(
    request: Request,
    body: AnalyzeRequest,
    user: dict = Depends(require_auth),
    gpt: GptService = Depends(get_gpt_service),
    settings: Settings = Depends(get_settings)
):
    """
    Save a thread and its analysis.
    Research topics are identified afterwards by the client via /api/research/identify.
    """
    if not body.title or not body.content:
        raise HTTPException(status_code=400, detail={'error': 'Missing required fields'})

    user_id = user['id']

    try:
        thread = await create_thread(user_id, body.title, body.content)

        logger.info('[ANALYSIS] Starting email analysis', thread_id=thread['id'])
        result = await analyze_email_thread(gpt, body.content, model=settings.TOPIC_MODEL)

        analysis = await create_analysis(
            user_id,
            thread['id'],
            [reply.model_dump() for reply in result.suggested_replies]
        )

        for table in ENTITY_TABLES:
            rows = [item.model_dump() for item in getattr(result, table)]
            await insert_entities(user_id, analysis['id'], table, rows)

        await create_todos([
            {
                'description': item.description,
                'assignee': item.assignee,
                'priority': item.priority,
                'analysis_id': analysis['id'],
                'thread_id': thread['id'],
                'user_id': user_id,
                'completed': False
            }
            for item in result.action_items
        ])

        events = deadlines_to_calendar_events(
            [d.model_dump() for d in result.deadlines],
            user_id=user_id,
            analysis_id=analysis['id'],
            thread_id=thread['id'],
            email_title=body.title,
            timezone=body.timezone or 'UTC'
        )
        await create_events(events)

        logger.info(
            f'✅ Thread analyzed',
            thread_id=thread['id'],
            analysis_id=analysis['id'],
            todos=len(result.action_items),
            events=len(events)
        )

        return {
            'success': True,
            'threadId': thread['id'],
            'analysisId': analysis['id'],
            'redirectUrl': f"/analysis/{thread['id']}?source=analyze"
        }

    except HTTPException:
        raise
    except Exception as error:
        logger.error(f'Analyze error: {str(error)}', exc_info=True)
        raise HTTPException(
            status_code=500,
            detail={
                'error': 'Internal server error',
                'message': str(error)
            }
        )
