import json

import pytest
from fastapi.testclient import TestClient

from app.config import Settings
from app.core.auth import AuthenticatedUser, Guest
from app.database import Database
from app.main import create_app
from app.services.live_feed import LiveFeedHub
from app.services.llm_provider import LLMError


class FakeLLM:
    """Scripted stand-in for LLMProvider.

    Each call pops the next scripted item: a string is returned as the reply
    text, an exception is raised. An empty script behaves like an outage.
    """

    provider = "fake"
    model = "fake-model"
    integrations = []

    def __init__(self, *responses):
        self.responses = list(responses)
        self.prompts = []

    def script(self, *responses):
        self.responses.extend(responses)

    async def generate_completion(self, prompt, system_prompt=None, max_tokens=None, temperature=None):
        self.prompts.append(prompt)
        if not self.responses:
            raise LLMError("Service unavailable", self.provider)

        item = self.responses.pop(0)
        if isinstance(item, Exception):
            raise item
        return {"content": item, "tokens_used": 42, "model": self.model, "provider": self.provider}

    async def close(self):
        pass


PUBLIC_ADDRESS = "93.184.216.34"


async def resolve_public(host, port):
    """Resolver that maps every host to one public address"""
    return [PUBLIC_ADDRESS]


ANALYSIS_REPLY = json.dumps({
    "category": "ui-ux",
    "complexity": 2,
    "clarityScore": 8,
    "sentiment": "excited",
    "keywords": ["dark", "theme"],
    "confidence": 0.9,
    "enhancementSuggestions": ["Offer a system-default option"]
})

PRIORITY_REPLY = json.dumps({
    "businessImpact": 6,
    "userDemand": 8,
    "strategicAlignment": 5,
    "implementationFeasibility": 9,
    "overall": 7
})

EFFORT_REPLY = json.dumps({
    "totalHours": 24,
    "frontendHours": 14,
    "backendHours": 4,
    "designHours": 3,
    "qaHours": 3,
    "riskFactors": ["Third-party widgets ignore the theme"],
    "dependencies": ["Design tokens"],
    "teamMembers": ["Frontend Developer", "Designer"]
})

IMPACT_REPLY = json.dumps({
    "retentionImpact": 7,
    "revenueImpact": 3,
    "competitiveAdvantage": 5,
    "uxImprovement": 9,
    "operationalEfficiency": 2
})


@pytest.fixture
def settings(tmp_path):
    return Settings(
        database_url=f"sqlite+aiosqlite:///{tmp_path / 'test.db'}",
        secret_key="test-secret-key",
        gemini_api_key="test-gemini-key",
        app_id="test-app",
        enable_ai_analysis=True,
        allow_guest_access=True,
        log_level="WARNING"
    )


@pytest.fixture
def fake_llm():
    return FakeLLM()


@pytest.fixture
async def database(settings):
    database = Database(settings)
    await database.connect()
    yield database
    await database.disconnect()


@pytest.fixture
async def db(database):
    async with database.session() as session:
        yield session


@pytest.fixture
def feed():
    return LiveFeedHub()


@pytest.fixture
def admin():
    return AuthenticatedUser(user_id="admin-1", name="Alice Admin", role="admin", email="alice@example.com")


@pytest.fixture
def manager():
    return AuthenticatedUser(user_id="manager-1", name="Carol Manager", role="manager")


@pytest.fixture
def tester():
    return AuthenticatedUser(user_id="tester-1", name="Frank Tester", role="tester")


@pytest.fixture
def guest():
    return Guest()


@pytest.fixture
def app(settings):
    return create_app(settings)


@pytest.fixture
def client(app, fake_llm):
    """Test client with the app lifespan running and the LLM replaced"""
    with TestClient(app) as client:
        app.state.llm = fake_llm
        yield client
