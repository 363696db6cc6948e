"""
Calendar Event Routes

Calendar events derived from deadlines, plus events users add by hand
"""

from typing import Optional
from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel
from app.middleware.auth import require_auth
from app.db.queries.calendar_events import get_events_for_user, create_events, update_event, delete_event
from app.services.deadline_parser import EVENT_COLORS
from app.services.logger import logger

router = APIRouter()


class CalendarEventCreate(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    start_time: Optional[str] = None
    end_time: Optional[str] = None
    all_day: bool = False
    color: Optional[str] = None
    location: Optional[str] = None


class CalendarEventUpdate(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    start_time: Optional[str] = None
    end_time: Optional[str] = None
    all_day: Optional[bool] = None
    color: Optional[str] = None
    location: Optional[str] = None


@router.get('')
async def list_events(
    start: Optional[str] = None,
    end: Optional[str] = None,
    user: dict = Depends(require_auth)
):
    """
    List the current user's events, optionally filtered by start time range
    """
    events = await get_events_for_user(user['id'], start, end)
    return {'events': events}


@router.post('')
async def create_event(body: CalendarEventCreate, user: dict = Depends(require_auth)):
    """
    Create a manual calendar event
    """
    if not body.title or not body.start_time or not body.end_time:
        raise HTTPException(status_code=400, detail={'error': 'Missing required fields: title, start_time, end_time'})

    created = await create_events([{
        **body.model_dump(),
        'color': body.color or EVENT_COLORS[0],
        'user_id': user['id'],
        'source_type': 'manual'
    }])
    if not created:
        raise HTTPException(status_code=500, detail={'error': 'Failed to create event'})

    logger.info('Calendar event created', event_id=created[0].get('id'))
    return {'event': created[0]}


@router.patch('/{event_id}')
async def update_event_route(
    event_id: str,
    body: CalendarEventUpdate,
    user: dict = Depends(require_auth)
):
    """
    Update an event's editable fields
    """
    changes = body.model_dump(exclude_none=True)
    if not changes:
        raise HTTPException(status_code=400, detail={'error': 'No fields to update'})

    event = await update_event(user['id'], event_id, changes)
    if not event:
        raise HTTPException(status_code=404, detail={'error': 'Event not found'})
    return {'event': event}


@router.delete('/{event_id}')
async def delete_event_route(event_id: str, user: dict = Depends(require_auth)):
    """
    Delete an event
    """
    if not await delete_event(user['id'], event_id):
        raise HTTPException(status_code=404, detail={'error': 'Event not found'})
    return {'success': True}
