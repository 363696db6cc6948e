"""
Parallel AI Client Service

Web lookup used by the research stage of the research workflow
"""

import httpx
from typing import Dict, List, Any, Optional
from app.config import Settings
from app.errors import ProviderFailure
from app.services.logger import logger

PARALLEL_BASE_URL = 'https://api.parallel.ai/v1'


class ParallelClient:
    """Parallel AI search API client"""

    def __init__(
        self,
        api_key: str,
        base_url: str = PARALLEL_BASE_URL,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        self.api_key = api_key
        self.base_url = base_url
        self.transport = transport

    def is_available(self) -> bool:
        """Check if Parallel AI client is available (has API key)"""
        return bool(self.api_key and self.api_key.strip())

    async def search(
        self,
        objective: str,
        search_queries: List[str],
        max_results: int = 8,
        max_chars_per_result: int = 2500,
        processor: str = 'base'
    ) -> List[Dict[str, Any]]:
        """
        Perform web search using Parallel AI

        Args:
            objective: Search objective/description (natural language)
            search_queries: List of search queries
            max_results: Maximum number of results (default: 8)
            max_chars_per_result: Maximum characters per result (default: 2500)
            processor: Processor type (default: "base")

        Returns:
            List of results, each with 'url', 'title' and 'excerpts'

        Raises:
            ProviderFailure: If the search call fails
        """
        if not self.is_available():
            raise ProviderFailure('Parallel AI client not available - no API key configured')

        try:
            async with httpx.AsyncClient(timeout=30.0, transport=self.transport) as client:
                response = await client.post(
                    f"{self.base_url}beta/search",
                    headers={
                        'x-api-key': self.api_key,
                        'Content-Type': 'application/json'
                    },
                    json={
                        'objective': objective,
                        'search_queries': search_queries,
                        'max_results': max_results,
                        'max_chars_per_result': max_chars_per_result,
                        'processor': processor
                    }
                )
        except httpx.HTTPError as e:
            logger.error(f"Parallel AI search error: {str(e)}", error=str(e))
            raise ProviderFailure(f'Parallel AI search failed: {type(e).__name__}') from e

        if not response.is_success:
            logger.error(
                f"Parallel AI search failed: HTTP {response.status_code}",
                statusCode=response.status_code,
                responseText=response.text[:200]
            )
            raise ProviderFailure(f'Parallel AI search failed: HTTP {response.status_code}', status_code=response.status_code)

        results = response.json().get('results') or []
        return [r for r in results if isinstance(r, dict) and r.get('url')]


def get_parallel_client(settings: Settings) -> Optional[ParallelClient]:
    """Get Parallel AI client instance if API key is configured"""
    if settings.PARALLEL_API_KEY and settings.PARALLEL_API_KEY.strip():
        return ParallelClient(settings.PARALLEL_API_KEY)
    return None
