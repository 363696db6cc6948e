"""
Thread analysis route tests
"""

import json
from unittest.mock import patch, AsyncMock
from fastapi import status
from app.routes.analysis import get_gpt_service
from fakes import FakeGpt

ANALYSIS = {
    'stakeholders': [{'name': 'Dana', 'email': 'dana@example.com', 'role': 'Buyer', 'evidence': 'From: Dana'}],
    'action_items': [{'description': 'Send SOC 2 report', 'assignee': 'Sam', 'priority': 'high', 'evidence': 'Can you send'}],
    'deadlines': [
        {'date': '2025-04-01', 'description': 'Contract review', 'evidence': 'by April 1'},
        {'date': 'at some point', 'description': 'Vague', 'evidence': ''},
    ],
    'key_decisions': [],
    'open_questions': [],
    'suggested_replies': [{'title': 'Brief', 'content': 'Thanks Dana.'}]
}


def test_analyze_unauthorized(client):
    response = client.post('/api/analyze', json={'title': 'T', 'content': 'C'})
    assert response.status_code == status.HTTP_401_UNAUTHORIZED


def test_analyze_missing_fields(auth_client):
    response = auth_client.post('/api/analyze', json={'title': 'Only a title'})
    assert response.status_code == status.HTTP_400_BAD_REQUEST


def test_analyze_saves_thread_entities_todos_and_events(auth_client, app, mock_user):
    """Test one submission creates the thread, analysis, entities, todos and events"""
    app.dependency_overrides[get_gpt_service] = lambda: FakeGpt([json.dumps(ANALYSIS)])

    with patch('app.routes.analysis.create_thread', new_callable=AsyncMock, return_value={'id': 'thread-1'}) as mock_thread, \
            patch('app.routes.analysis.create_analysis', new_callable=AsyncMock, return_value={'id': 'analysis-1'}) as mock_analysis, \
            patch('app.routes.analysis.insert_entities', new_callable=AsyncMock, return_value=0) as mock_entities, \
            patch('app.routes.analysis.create_todos', new_callable=AsyncMock, return_value=1) as mock_todos, \
            patch('app.routes.analysis.create_events', new_callable=AsyncMock, return_value=[]) as mock_events:
        response = auth_client.post('/api/analyze', json={'title': 'Q2 renewal', 'content': 'From: Dana ...'})

    assert response.status_code == status.HTTP_200_OK
    assert response.json() == {
        'success': True,
        'threadId': 'thread-1',
        'analysisId': 'analysis-1',
        'redirectUrl': '/analysis/thread-1?source=analyze'
    }

    mock_thread.assert_awaited_once_with(mock_user['id'], 'Q2 renewal', 'From: Dana ...')
    assert mock_analysis.await_args.args[2] == [{'title': 'Brief', 'content': 'Thanks Dana.'}]
    tables = [call.args[2] for call in mock_entities.await_args_list]
    assert tables == ['stakeholders', 'action_items', 'deadlines', 'key_decisions', 'open_questions']

    todos = mock_todos.await_args.args[0]
    assert todos[0]['description'] == 'Send SOC 2 report'
    assert todos[0]['completed'] is False
    assert todos[0]['thread_id'] == 'thread-1'

    events = mock_events.await_args.args[0]
    assert len(events) == 1
    assert events[0]['title'] == 'Contract review'
    assert events[0]['analysis_id'] == 'analysis-1'


def test_analyze_database_failure_is_500(auth_client, app):
    from app.errors import PersistenceFailure

    app.dependency_overrides[get_gpt_service] = lambda: FakeGpt([])
    with patch('app.routes.analysis.create_thread', new_callable=AsyncMock,
               side_effect=PersistenceFailure('Failed to save thread: timeout')):
        response = auth_client.post('/api/analyze', json={'title': 'T', 'content': 'C'})

    assert response.status_code == status.HTTP_500_INTERNAL_SERVER_ERROR
    assert response.json()['error'] == 'Internal server error'
