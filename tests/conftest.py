"""
Pytest configuration and fixtures

The app runs against in-memory fakes: no database or model provider is contacted.
"""

import pytest
from fastapi.testclient import TestClient

from app.main import app as app_instance
from app.middleware.auth import require_auth
from app.middleware.rate_limiter import limiter
from app.services.research.factory import get_research_orchestrator
from app.services.research.limiter import ResearchLimiter
from app.services.research.orchestrator import ResearchOrchestrator
from fakes import FakeStore, FakeEngine, FakeIdentifier

limiter.enabled = False


@pytest.fixture
def app():
    """FastAPI app instance, overrides cleared after each test"""
    yield app_instance
    app_instance.dependency_overrides.clear()


@pytest.fixture
def client(app):
    """FastAPI test client (unauthenticated)"""
    return TestClient(app)


@pytest.fixture
def mock_user():
    """Mock user data"""
    return {
        'id': 'test-user-id-123',
        'email': 'test@example.com',
        'role': 'authenticated'
    }


@pytest.fixture
def auth_client(app, mock_user):
    """Test client whose requests are authenticated as mock_user"""
    app.dependency_overrides[require_auth] = lambda: mock_user
    return TestClient(app)


@pytest.fixture
def store():
    return FakeStore()


@pytest.fixture
def engine():
    return FakeEngine()


@pytest.fixture
def identifier():
    return FakeIdentifier(['Vendor lock-in', 'SOC 2 timelines', 'Pricing tiers'])


@pytest.fixture
def orchestrator(store, engine, identifier):
    return ResearchOrchestrator(store, engine, identifier, ResearchLimiter(max_concurrency=1))


@pytest.fixture
def research_client(auth_client, app, orchestrator):
    """Authenticated client wired to the in-memory orchestrator"""
    app.dependency_overrides[get_research_orchestrator] = lambda: orchestrator
    return auth_client


@pytest.fixture
def mock_openai_response():
    """Mock OpenAI API response"""
    return {
        'id': 'chatcmpl-test',
        'object': 'chat.completion',
        'created': 1234567890,
        'model': 'gpt-4o',
        'choices': [{
            'index': 0,
            'message': {
                'role': 'assistant',
                'content': 'Test response'
            },
            'finish_reason': 'stop'
        }],
        'usage': {
            'prompt_tokens': 10,
            'completion_tokens': 5,
            'total_tokens': 15
        }
    }
