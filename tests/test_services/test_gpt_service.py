"""
GPT service tests (httpx MockTransport, no network)
"""

import json
import httpx
import pytest
from unittest.mock import patch, AsyncMock
from app.config import Settings
from app.errors import ProviderFailure
from app.services.gpt_service import GptService, safe_parse_json


def completion(content, finish_reason='stop'):
    return {
        'choices': [{
            'index': 0,
            'message': {'role': 'assistant', 'content': content},
            'finish_reason': finish_reason
        }],
        'usage': {'total_tokens': 10}
    }


def make_service(handler, api_key='sk-test'):
    settings = Settings(OPENAI_API_KEY=api_key, OPENAI_BASE_URL='https://api.openai.test/v1')
    return GptService(settings, transport=httpx.MockTransport(handler))


@pytest.mark.asyncio
async def test_call_returns_content(mock_openai_response):
    seen = {}

    def handler(request):
        seen['url'] = str(request.url)
        seen['body'] = json.loads(request.content)
        return httpx.Response(200, json=mock_openai_response)

    content = await make_service(handler).call(
        [{'role': 'user', 'content': 'hi'}],
        response_format={'type': 'json_object'}
    )

    assert content == 'Test response'
    assert seen['url'] == 'https://api.openai.test/v1/chat/completions'
    assert seen['body']['response_format'] == {'type': 'json_object'}


@pytest.mark.asyncio
async def test_call_without_api_key_fails():
    service = make_service(lambda request: httpx.Response(200, json=completion('x')), api_key='')
    with pytest.raises(ProviderFailure):
        await service.call([{'role': 'user', 'content': 'hi'}])


@pytest.mark.asyncio
async def test_call_retries_on_rate_limit():
    """Test a 429 is retried after the advertised delay"""
    responses = [
        httpx.Response(429, headers={'retry-after': '2'}, json={'error': {'message': 'slow down'}}),
        httpx.Response(200, json=completion('ok')),
    ]

    with patch('app.services.gpt_service.sleep', new_callable=AsyncMock) as mock_sleep:
        content = await make_service(lambda request: responses.pop(0)).call([{'role': 'user', 'content': 'hi'}])

    assert content == 'ok'
    mock_sleep.assert_awaited_once_with(2000.0)


@pytest.mark.asyncio
async def test_call_raises_provider_failure_on_server_error():
    service = make_service(lambda request: httpx.Response(500, text='upstream down'))
    with pytest.raises(ProviderFailure) as exc_info:
        await service.call([{'role': 'user', 'content': 'hi'}])
    assert exc_info.value.status_code == 500


@pytest.mark.asyncio
async def test_call_retries_network_errors_then_fails():
    def handler(request):
        raise httpx.ConnectError('connection refused')

    with patch('app.services.gpt_service.sleep', new_callable=AsyncMock) as mock_sleep:
        with pytest.raises(ProviderFailure):
            await make_service(handler).call([{'role': 'user', 'content': 'hi'}])

    assert mock_sleep.await_count == 3


@pytest.mark.asyncio
async def test_call_doubles_tokens_when_truncated_empty():
    budgets = []

    def handler(request):
        body = json.loads(request.content)
        budgets.append(body['max_tokens'])
        if len(budgets) == 1:
            return httpx.Response(200, json=completion('', finish_reason='length'))
        return httpx.Response(200, json=completion('done'))

    content = await make_service(handler).call([{'role': 'user', 'content': 'hi'}], max_tokens=1000)

    assert content == 'done'
    assert budgets == [1000, 2000]


@pytest.mark.asyncio
async def test_craft_search_queries_returns_at_most_three():
    payload = completion(json.dumps(['a', 'b', 'c', 'd']))
    queries = await make_service(lambda request: httpx.Response(200, json=payload)).craft_search_queries('ctx')
    assert queries == ['a', 'b', 'c']


@pytest.mark.asyncio
async def test_craft_search_queries_swallows_errors():
    queries = await make_service(lambda request: httpx.Response(400, text='bad')).craft_search_queries('ctx')
    assert queries == []


def test_safe_parse_json_variants():
    assert safe_parse_json('```json\n{"a": 1}\n```') == {'a': 1}
    assert safe_parse_json('{"a": [1, 2,],}') == {'a': [1, 2]}
    assert safe_parse_json('Here you go: {"a": 1} thanks') == {'a': 1}
    assert safe_parse_json('["x", "y"]') == ['x', 'y']
    assert safe_parse_json('no json here') is None
    assert safe_parse_json('') is None
