"""
Research API Client

Async client for the research endpoints, used by the progress reconciler
"""

from typing import Dict, List, Any, Optional
import httpx
from app.services.logger import logger


class ResearchApiError(Exception):
    """Non-2xx response from the research API"""

    def __init__(self, status_code: int, body: Any = None):
        self.status_code = status_code
        self.body = body
        super().__init__(f'Research API returned HTTP {status_code}')


class ResearchApiClient:
    def __init__(
        self,
        base_url: str,
        access_token: Optional[str] = None,
        timeout: float = 330.0,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        self.base_url = base_url.rstrip('/')
        self.access_token = access_token
        self.timeout = timeout
        self.transport = transport

    def _headers(self) -> Dict[str, str]:
        headers = {'Content-Type': 'application/json'}
        if self.access_token:
            headers['Authorization'] = f'Bearer {self.access_token}'
        return headers

    async def _post(self, path: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
            response = await client.post(f'{self.base_url}{path}', headers=self._headers(), json=payload)

        if not response.is_success:
            try:
                body = response.json()
            except ValueError:
                body = response.text
            logger.warning(f'Research API error', path=path, statusCode=response.status_code)
            raise ResearchApiError(response.status_code, body)
        return response.json()

    async def identify(self, analysis_id: str, email_content: str) -> List[Dict[str, Any]]:
        data = await self._post('/api/research/identify', {
            'analysisId': analysis_id,
            'emailContent': email_content
        })
        return data.get('topics') or []

    async def process(
        self,
        analysis_id: str,
        topic_id: str,
        topic: str,
        email_content: str,
        context: Optional[str] = None
    ) -> Dict[str, Any]:
        """Returns the raw {success, result} payload"""
        return await self._post('/api/research/process', {
            'analysisId': analysis_id,
            'topicId': topic_id,
            'topic': topic,
            'context': context,
            'emailContent': email_content
        })
