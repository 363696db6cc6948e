"""
Workflow Routes

Proxy for triggering the deployed research workflow directly
"""

from typing import Any, Dict, Optional
import httpx
from fastapi import APIRouter, Body, Depends, HTTPException
from app.config import Settings, get_settings
from app.middleware.auth import require_auth
from app.services.logger import logger

router = APIRouter()


def get_workflow_transport() -> Optional[httpx.AsyncBaseTransport]:
    """HTTP transport for the proxy (None = default network transport)"""
    return None


@router.post('/{workflow_id}/trigger')
async def trigger_workflow(
    workflow_id: str,
    payload: Dict[str, Any] = Body(default={}),
    user: dict = Depends(require_auth),
    settings: Settings = Depends(get_settings),
    transport: Optional[httpx.AsyncBaseTransport] = Depends(get_workflow_transport)
):
    """
    Forward the request body to RESEARCH_WORKFLOW_URL and return its JSON response
    """
    if not settings.RESEARCH_WORKFLOW_URL:
        logger.error('RESEARCH_WORKFLOW_URL is not configured')
        raise HTTPException(status_code=503, detail={'error': 'Workflow service not configured'})

    headers = {'Content-Type': 'application/json'}
    if settings.OPENAI_API_KEY:
        headers['Authorization'] = f'Bearer {settings.OPENAI_API_KEY}'

    logger.info('[Proxy] Triggering workflow', workflow_id=workflow_id, user_id=user['id'])

    try:
        async with httpx.AsyncClient(timeout=settings.RESEARCH_WORKFLOW_TIMEOUT_SECONDS, transport=transport) as client:
            response = await client.post(settings.RESEARCH_WORKFLOW_URL, headers=headers, json=payload)

        if not response.is_success:
            raise Exception(f'Workflow failed: {response.status_code} - {response.text[:500]}')

        logger.info('[Proxy] Workflow completed', workflow_id=workflow_id, status=response.status_code)
        return response.json()

    except Exception as error:
        logger.error(f'Error triggering workflow: {str(error)}', workflow_id=workflow_id)
        raise HTTPException(
            status_code=500,
            detail={
                'error': 'Failed to trigger workflow',
                'details': str(error)
            }
        )
