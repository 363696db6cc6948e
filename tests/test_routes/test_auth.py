"""
Authentication dependency tests (Supabase access tokens)
"""

import time
import jwt
import pytest
from fastapi import status
from app.config import Settings, get_settings
from app.services.research.factory import get_research_orchestrator

SECRET = 'test-jwt-secret'


def make_token(sub='user-42', aud='authenticated', expires_in=3600, secret=SECRET):
    payload = {'sub': sub, 'aud': aud, 'email': 'user@example.com', 'role': 'authenticated', 'exp': int(time.time()) + expires_in}
    return jwt.encode(payload, secret, algorithm='HS256')


@pytest.fixture
def jwt_client(client, app, orchestrator, store):
    app.dependency_overrides[get_settings] = lambda: Settings(SUPABASE_JWT_SECRET=SECRET)
    app.dependency_overrides[get_research_orchestrator] = lambda: orchestrator
    store.analyses['thread-1'] = 'a1'
    return client


def test_bearer_token_authenticates(jwt_client, store):
    """Test a valid bearer token resolves the user"""
    response = jwt_client.get('/api/research/thread-1', headers={'Authorization': f'Bearer {make_token()}'})
    assert response.status_code == status.HTTP_200_OK


def test_cookie_token_authenticates(jwt_client):
    response = jwt_client.get('/api/research/thread-1', headers={'Cookie': f'sb-access-token={make_token()}'})
    assert response.status_code == status.HTTP_200_OK


def test_user_id_comes_from_subject(jwt_client, store, orchestrator):
    """Test rows are scoped to the token subject"""
    headers = {'Authorization': f'Bearer {make_token(sub="user-42")}'}
    jwt_client.post('/api/research/identify', json={'analysisId': 'a1', 'emailContent': 'thread'}, headers=headers)
    assert {t['user_id'] for t in store.topics} == {'user-42'}


@pytest.mark.parametrize('token', [
    make_token(expires_in=-60),
    make_token(aud='anon'),
    make_token(secret='other-secret'),
    'not-a-jwt',
])
def test_invalid_tokens_are_rejected(jwt_client, token):
    response = jwt_client.get('/api/research/thread-1', headers={'Authorization': f'Bearer {token}'})
    assert response.status_code == status.HTTP_401_UNAUTHORIZED
    assert response.json()['error'] == 'Invalid or expired session'


def test_missing_secret_rejects_tokens(client, app):
    app.dependency_overrides[get_settings] = lambda: Settings(SUPABASE_JWT_SECRET='')
    response = client.get('/api/research/thread-1', headers={'Authorization': f'Bearer {make_token()}'})
    assert response.status_code == status.HTTP_401_UNAUTHORIZED


def test_health(client):
    response = client.get('/health')
    assert response.status_code == status.HTTP_200_OK
    assert response.json()['status'] == 'ok'
    assert 'X-Request-ID' in response.headers
