"""
Email analysis service tests
"""

import json
import pytest
from app.errors import ProviderFailure
from app.services.email_analysis import analyze_email_thread, FALLBACK_REPLY
from fakes import FakeGpt


@pytest.mark.asyncio
async def test_analyze_email_thread_parses_model_output():
    payload = {
        'stakeholders': [{'name': 'Dana', 'email': 'dana@example.com', 'role': 'Buyer', 'evidence': 'From: Dana'}],
        'action_items': [{'description': 'Send SOC 2 report', 'assignee': 'Sam', 'priority': 'high', 'evidence': '...'}],
        'deadlines': [{'date': 'Friday', 'description': 'Contract review', 'evidence': '...'}],
        'key_decisions': [],
        'open_questions': [{'question': 'Which tier?', 'context': 'pricing', 'evidence': '...'}],
        'suggested_replies': [{'title': 'Brief', 'content': 'Thanks Dana.'}]
    }
    gpt = FakeGpt([json.dumps(payload)])

    analysis = await analyze_email_thread(gpt, 'From: Dana ...')

    assert analysis.stakeholders[0].name == 'Dana'
    assert analysis.action_items[0].priority == 'high'
    assert analysis.suggested_replies[0].content == 'Thanks Dana.'
    assert gpt.calls[0]['response_format'] == {'type': 'json_object'}


@pytest.mark.asyncio
async def test_analyze_email_thread_falls_back_on_failure():
    """Test a provider failure yields the minimal default analysis"""
    analysis = await analyze_email_thread(FakeGpt([ProviderFailure('GPT API error: 500')]), 'thread')

    assert analysis.action_items == []
    assert analysis.suggested_replies[0].content == FALLBACK_REPLY


@pytest.mark.asyncio
async def test_analyze_email_thread_rejects_invalid_priority():
    payload = {'action_items': [{'description': 'x', 'priority': 'urgent'}]}
    analysis = await analyze_email_thread(FakeGpt([json.dumps(payload)]), 'thread')
    assert analysis.action_items == []
    assert analysis.suggested_replies[0].title == 'Default Reply'
