"""
Todo and calendar event route tests
"""

from unittest.mock import patch, AsyncMock
from fastapi import status
from app.errors import PersistenceFailure


def test_list_todos_unauthorized(client):
    response = client.get('/api/todos')
    assert response.status_code == status.HTTP_401_UNAUTHORIZED


def test_list_todos(auth_client, mock_user):
    todos = [{'id': 'todo-1', 'description': 'Send report', 'completed': False}]
    with patch('app.routes.todos.get_todos_for_user', new_callable=AsyncMock, return_value=todos) as mock_get:
        response = auth_client.get('/api/todos')

    assert response.json() == {'todos': todos}
    mock_get.assert_awaited_once_with(mock_user['id'])


def test_update_todo(auth_client, mock_user):
    updated = {'id': 'todo-1', 'completed': True}
    with patch('app.routes.todos.set_todo_completed', new_callable=AsyncMock, return_value=updated) as mock_set:
        response = auth_client.patch('/api/todos/todo-1', json={'completed': True})

    assert response.json() == {'todo': updated}
    mock_set.assert_awaited_once_with(mock_user['id'], 'todo-1', True)


def test_update_todo_requires_completed(auth_client):
    response = auth_client.patch('/api/todos/todo-1', json={})
    assert response.status_code == status.HTTP_400_BAD_REQUEST


def test_update_missing_todo(auth_client):
    with patch('app.routes.todos.set_todo_completed', new_callable=AsyncMock, return_value=None):
        response = auth_client.patch('/api/todos/nope', json={'completed': False})
    assert response.status_code == status.HTTP_404_NOT_FOUND


def test_todo_store_failure_maps_to_500(auth_client):
    """Test store errors in CRUD routes reach the global handler"""
    with patch('app.routes.todos.get_todos_for_user', new_callable=AsyncMock,
               side_effect=PersistenceFailure('Failed to fetch todos: timeout')):
        response = auth_client.get('/api/todos')

    assert response.status_code == status.HTTP_500_INTERNAL_SERVER_ERROR
    assert response.json()['error'] == 'Database error'


def test_list_calendar_events_with_range(auth_client, mock_user):
    with patch('app.routes.calendar_events.get_events_for_user', new_callable=AsyncMock, return_value=[]) as mock_get:
        response = auth_client.get('/api/calendar-events', params={'start': '2025-01-01', 'end': '2025-02-01'})

    assert response.json() == {'events': []}
    mock_get.assert_awaited_once_with(mock_user['id'], '2025-01-01', '2025-02-01')


def test_create_calendar_event(auth_client, mock_user):
    created = {'id': 'event-1', 'title': 'Call'}
    with patch('app.routes.calendar_events.create_events', new_callable=AsyncMock, return_value=[created]) as mock_create:
        response = auth_client.post('/api/calendar-events', json={
            'title': 'Call',
            'start_time': '2025-01-01T10:00:00Z',
            'end_time': '2025-01-01T11:00:00Z'
        })

    assert response.json() == {'event': created}
    row = mock_create.await_args.args[0][0]
    assert row['user_id'] == mock_user['id']
    assert row['source_type'] == 'manual'
    assert row['color'] == 'sky'


def test_create_calendar_event_missing_fields(auth_client):
    response = auth_client.post('/api/calendar-events', json={'title': 'Call'})
    assert response.status_code == status.HTTP_400_BAD_REQUEST


def test_update_calendar_event(auth_client, mock_user):
    with patch('app.routes.calendar_events.update_event', new_callable=AsyncMock,
               return_value={'id': 'event-1', 'color': 'rose'}) as mock_update:
        response = auth_client.patch('/api/calendar-events/event-1', json={'color': 'rose'})

    assert response.status_code == status.HTTP_200_OK
    mock_update.assert_awaited_once_with(mock_user['id'], 'event-1', {'color': 'rose'})


def test_delete_calendar_event(auth_client):
    with patch('app.routes.calendar_events.delete_event', new_callable=AsyncMock, return_value=True):
        assert auth_client.delete('/api/calendar-events/event-1').json() == {'success': True}

    with patch('app.routes.calendar_events.delete_event', new_callable=AsyncMock, return_value=False):
        assert auth_client.delete('/api/calendar-events/event-2').status_code == status.HTTP_404_NOT_FOUND
