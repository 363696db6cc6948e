"""
Middleware tests: request ids, error bodies and rate limit buckets
"""

from starlette.requests import Request
from app.middleware.rate_limiter import session_key


def make_request(headers=None, client=('10.0.0.1', 1234)):
    raw = [(k.lower().encode(), v.encode()) for k, v in (headers or {}).items()]
    return Request({'type': 'http', 'method': 'GET', 'path': '/', 'headers': raw, 'client': client})


def test_request_id_echoed(client):
    response = client.get('/health', headers={'X-Request-ID': 'abc123'})
    assert response.headers['X-Request-ID'] == 'abc123'


def test_request_id_generated(client):
    assert len(client.get('/health').headers['X-Request-ID']) == 8


def test_error_body_carries_request_id(client):
    response = client.get('/api/todos', headers={'X-Request-ID': 'req-42'})
    assert response.status_code == 401
    assert response.json()['requestId'] == 'req-42'


def test_session_key_uses_token_digest():
    bearer = session_key(make_request({'Authorization': 'Bearer token-a'}))
    cookie = session_key(make_request({'Cookie': 'sb-access-token=token-a'}))
    other = session_key(make_request({'Authorization': 'Bearer token-b'}))

    assert bearer.startswith('session:')
    assert bearer == cookie
    assert bearer != other
    assert 'token-a' not in bearer


def test_session_key_falls_back_to_address():
    assert session_key(make_request()) == '10.0.0.1'
