"""Shared test fixtures and configuration."""
import os
import xml.etree.ElementTree as ET
from unittest.mock import AsyncMock, Mock

import pytest
from fastapi.testclient import TestClient

# Set test environment variables before importing app
os.environ.setdefault("OPENAI_API_KEY", "test-key")
os.environ.setdefault("OPENAI_MODEL", "gpt-3.5-turbo")

from app.main import app
from app.core.dependencies import get_composer, get_outcome_handler, get_turn_controller
from app.services.agent.agent import AgentService
from app.services.call_session.controller import TurnController
from app.services.call_session.outcomes import OutcomeHandler
from app.services.call_session.store import ConversationStore
from app.services.knowledge.loader import KnowledgeLoader
from app.services.knowledge.models import StaticKnowledge
from app.services.recording.orchestrator import RecordingOrchestrator
from app.services.speech.twiml import VoiceResponseComposer


def parse_twiml(twiml: str) -> ET.Element:
    """Parse a TwiML document into its <Response> element."""
    root = ET.fromstring(twiml)
    assert root.tag == "Response"
    return root


def completion(content):
    """Build a chat-completion shaped mock."""
    return Mock(choices=[Mock(message=Mock(content=content))])


@pytest.fixture
def test_knowledge():
    return StaticKnowledge(
        system_prompt="You are the Yello Rewards phone assistant.",
        knowledge_base={
            "faqs": [{"question": "How do I earn points?", "answer": "Shop at Yello."}],
            "users": [{"id": "u1", "name": "Sam"}],
        },
        source="remote",
    )


@pytest.fixture
def knowledge_loader(test_knowledge):
    """Loader whose first load returns the test knowledge."""
    loader = KnowledgeLoader()
    loader._load = AsyncMock(return_value=test_knowledge)
    return loader


@pytest.fixture
def mock_openai():
    """Mock OpenAI API client."""
    mock_client = Mock()
    mock_client.chat.completions.create = AsyncMock(
        return_value=completion("You have 120 points on your account.")
    )
    return mock_client


@pytest.fixture
def agent_service(mock_openai):
    return AgentService(model="gpt-3.5-turbo", client=mock_openai)


@pytest.fixture
def composer():
    return VoiceResponseComposer()


@pytest.fixture
def store():
    return ConversationStore()


@pytest.fixture
def call_control():
    """Configured call control whose recordings always start."""
    control = Mock()
    control.is_configured = True
    control.start_recording = AsyncMock(return_value="RE123")
    return control


@pytest.fixture
def sleep():
    return AsyncMock()


@pytest.fixture
def recorder(call_control, store, sleep):
    return RecordingOrchestrator(call_control, store=store, sleep=sleep)


@pytest.fixture
def controller(store, knowledge_loader, agent_service, composer, recorder):
    return TurnController(
        store=store,
        knowledge_loader=knowledge_loader,
        agent=agent_service,
        composer=composer,
        recorder=recorder,
    )


@pytest.fixture
def test_client(controller, composer):
    """Create FastAPI test client with overrides."""
    app.dependency_overrides[get_turn_controller] = lambda: controller
    app.dependency_overrides[get_outcome_handler] = lambda: OutcomeHandler(composer)
    app.dependency_overrides[get_composer] = lambda: composer

    client = TestClient(app)

    yield client

    # Clear overrides
    app.dependency_overrides.clear()
