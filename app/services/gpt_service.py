"""
GPT Service

Centralized OpenAI chat completions client with retry logic and helper functions
"""

import re
import json
import asyncio
import uuid
import httpx
from typing import List, Dict, Any, Optional
from app.config import Settings
from app.errors import ProviderFailure
from app.services.logger import logger

# Timeout in milliseconds
TIMEOUT_MS = 120000
MAX_RETRIES = 3
MAX_TOKEN_CEILING = 8000


async def sleep(ms: float):
    """Sleep helper for rate limiting"""
    await asyncio.sleep(ms / 1000)


class GptService:
    """OpenAI chat completions over httpx"""

    def __init__(self, settings: Settings, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.api_key = settings.OPENAI_API_KEY
        self.base_url = settings.OPENAI_BASE_URL.rstrip('/')
        self.default_model = settings.OPENAI_MODEL
        self.transport = transport

    def is_available(self) -> bool:
        return bool(self.api_key and self.api_key.strip())

    async def call(
        self,
        messages: List[Dict[str, str]],
        max_tokens: int = 2000,
        model: Optional[str] = None,
        response_format: Optional[Dict[str, Any]] = None,
        retry_count: int = 0
    ) -> str:
        """
        Call the chat completions API with automatic retry on rate limits and network errors
        Args:
            messages: Array of message objects with role and content
            max_tokens: Maximum tokens to generate (default: 2000)
            model: Model name (defaults to OPENAI_MODEL)
            response_format: Optional OpenAI response_format, e.g. {'type': 'json_object'}
            retry_count: Current retry attempt (internal use)
        Returns:
            Response content
        Raises:
            ProviderFailure: On API errors, refusals, empty content or exhausted retries
        """
        model = model or self.default_model
        request_id = f"req_{uuid.uuid4().hex[:8]}"

        logger.info(
            f"📤 [{request_id}] Chat completion request",
            model=model,
            max_tokens=max_tokens,
            messages=len(messages),
            retry_attempt=retry_count + 1
        )

        if not self.is_available():
            raise ProviderFailure('OPENAI_API_KEY is not configured')

        request_body: Dict[str, Any] = {
            'model': model,
            'messages': messages,
            'max_tokens': max_tokens
        }
        if response_format:
            request_body['response_format'] = response_format

        try:
            async with httpx.AsyncClient(timeout=TIMEOUT_MS / 1000, transport=self.transport) as client:
                response = await client.post(
                    f'{self.base_url}/chat/completions',
                    headers={
                        'Content-Type': 'application/json',
                        'Authorization': f'Bearer {self.api_key}'
                    },
                    json=request_body
                )
        except (httpx.TimeoutException, httpx.NetworkError) as error:
            if retry_count < MAX_RETRIES:
                wait_time = min(1000 * (2 ** retry_count), 10000)
                logger.info(f"⏳ [{request_id}] Network error ({type(error).__name__}). Retry {retry_count + 1}/{MAX_RETRIES} in {wait_time / 1000:.1f}s")
                await sleep(wait_time)
                return await self.call(messages, max_tokens, model, response_format, retry_count + 1)
            logger.error(f"❌ [{request_id}] Network error, retries exhausted: {str(error)}")
            raise ProviderFailure(f'OpenAI request failed: {type(error).__name__}') from error

        if not response.is_success:
            error_body = response.text
            error_json = None
            try:
                error_json = json.loads(error_body)
            except json.JSONDecodeError:
                pass

            # Handle rate limit errors with automatic retry
            if response.status_code == 429 and retry_count < MAX_RETRIES:
                retry_after = response.headers.get('retry-after')
                wait_time = float(retry_after) * 1000 if retry_after else 5000

                if error_json and (error_json.get('error') or {}).get('message'):
                    match = re.search(r'Please try again in ([\d.]+)s', error_json['error']['message'])
                    if match:
                        wait_time = float(match.group(1)) * 1000

                logger.info(f"⏳ Rate limit hit. Waiting {wait_time / 1000:.1f}s before retry {retry_count + 1}/{MAX_RETRIES}...")
                await sleep(wait_time)
                return await self.call(messages, max_tokens, model, response_format, retry_count + 1)

            logger.error(
                f"❌ [{request_id}] OpenAI API error {response.status_code}",
                body=error_body[:500]
            )
            raise ProviderFailure(f'GPT API error: {response.status_code}', status_code=response.status_code)

        try:
            data = response.json()
        except json.JSONDecodeError as parse_error:
            raise ProviderFailure(f'GPT API returned invalid JSON: {parse_error}')

        choices = data.get('choices') or []
        if not choices or not choices[0].get('message'):
            raise ProviderFailure('GPT API returned invalid response: missing choices[0].message')

        message = choices[0]['message']
        finish_reason = choices[0].get('finish_reason')

        if message.get('refusal'):
            logger.error(f"❌ [{request_id}] Model refused to generate content", refusal=message['refusal'])
            raise ProviderFailure(f"Model refused to generate content: {message['refusal']}")

        content = (message.get('content') or '').strip()
        if not content:
            # An empty body at the token limit usually means the answer did not fit
            if finish_reason == 'length' and retry_count < MAX_RETRIES and max_tokens < MAX_TOKEN_CEILING:
                new_max_tokens = min(max_tokens * 2, MAX_TOKEN_CEILING)
                logger.info(f"🔄 [{request_id}] Retrying with increased token limit: {max_tokens} → {new_max_tokens}")
                return await self.call(messages, new_max_tokens, model, response_format, retry_count + 1)
            raise ProviderFailure(f'Model returned empty content (finish_reason={finish_reason})')

        if finish_reason == 'length':
            logger.warning(f"⚠️  [{request_id}] Response was truncated at max_tokens={max_tokens}")

        logger.info(f"✅ [{request_id}] Success! Content length: {len(content)} chars", usage=data.get('usage'))
        return content

    async def craft_search_queries(self, context: str) -> List[str]:
        """
        Craft search queries from context
        Args:
            context: Context to generate queries from
        Returns:
            Array of search queries (max 3)
        """
        try:
            result = await self.call([{
                'role': 'system',
                'content': 'Generate EXACTLY 3 highly specific web search queries. Return ONLY a JSON array. Example: ["query 1", "query 2", "query 3"]'
            }, {
                'role': 'user',
                'content': context
            }], 200)

            parsed = safe_parse_json(result)
            if not isinstance(parsed, list):
                return []
            return [q for q in parsed if isinstance(q, str) and q.strip()][:3]
        except Exception as error:
            logger.error(f'Error crafting queries: {error}')
            return []


def safe_parse_json(text: str) -> Optional[Any]:
    """
    Safely parse JSON that may be wrapped in markdown code blocks
    Only strips backticks at the START and END, not throughout the content
    Args:
        text: JSON string that may have markdown code blocks
    Returns:
        Parsed JSON value or None on error
    """
    if not text:
        logger.warning('⚠️  safe_parse_json received empty text')
        return None

    cleaned = text.strip()

    if cleaned.startswith('```'):
        cleaned = re.sub(r'^```(?:json)?\s*\n?', '', cleaned)
    if cleaned.endswith('```'):
        cleaned = re.sub(r'\n?```\s*$', '', cleaned)
    cleaned = cleaned.strip()

    try:
        return json.loads(cleaned)
    except json.JSONDecodeError as error:
        logger.warning(f"Direct JSON parse failed: {str(error)}", preview=cleaned[:200])

    # Trailing commas before closing braces/brackets
    fixed = re.sub(r',(\s*[}\]])', r'\1', cleaned)
    try:
        return json.loads(fixed)
    except json.JSONDecodeError:
        pass

    # JSON embedded in narrative text: take the outermost object or array
    for pattern in (r'\{[\s\S]*\}', r'\[[\s\S]*\]'):
        match = re.search(pattern, fixed)
        if match:
            try:
                return json.loads(match.group(0))
            except json.JSONDecodeError:
                continue

    logger.error('❌ Could not extract JSON from model output', preview=cleaned[:500])
    return None
