"""
Core pytest configuration and fixtures for MindfulSpace testing.

This module provides shared test fixtures for the pillar-based test suite:
sample payloads, key-value adapters of every kind, a fully wired
``MindfulSpace`` and an HTTP client bound to it.
"""

from typing import Dict, List
from unittest.mock import MagicMock

import pytest
from fastapi.testclient import TestClient

from mindfulspace import MindfulSpace
from mindfulspace.config import Settings
from mindfulspace.kv import File, InMemory, JSONFile, SQLite
from mindfulspace.llm import Echo
from mindfulspace.models import ASSISTANT_ROLE, USER_ROLE, ChatMessage
from mindfulspace.server import create_app

# ===== TEST DATA FIXTURES =====


@pytest.fixture
def sample_messages() -> List[ChatMessage]:
    """Sample chat messages for testing."""
    return [
        ChatMessage(role=USER_ROLE, content="I have been feeling anxious lately."),
        ChatMessage(
            role=ASSISTANT_ROLE,
            content="Thank you for sharing. Would you like to try a breathing exercise?",
        ),
    ]


@pytest.fixture
def expert_payload() -> Dict:
    """A payload as sent by the expert profile form."""
    return {
        "name": "Dr. Ana Lopez",
        "email": "ana@example.com",
        "bio": "Family therapist.",
        "degree": "PsyD",
        "credentials": "Licensed",
        "cv_url": "https://example.com/cv.pdf",
    }


@pytest.fixture
def consultation_payload() -> Dict:
    """A payload as sent by the booking form."""
    return {
        "expert_id": "exp_1",
        "expert_name": "Dr. Sarah Smith",
        "specialization": "anxiety",
        "date": "2026-11-02",
        "time": "10:00",
        "notes": "First session",
        "meeting_link": "",
        "status": "pending",
    }


# ===== KEY-VALUE FIXTURES =====


@pytest.fixture(params=["InMemory", "File", "JSONFile", "SQLite"])
def any_kv(request, tmp_path):
    """Parametrized fixture providing every key-value implementation."""
    factories = {
        "InMemory": lambda: InMemory(),
        "File": lambda: File(str(tmp_path / "kv")),
        "JSONFile": lambda: JSONFile(str(tmp_path / "db.json")),
        "SQLite": lambda: SQLite(str(tmp_path / "kv.db")),
    }
    return factories[request.param]()


@pytest.fixture
def kv() -> InMemory:
    return InMemory()


# ===== APPLICATION FIXTURES =====


@pytest.fixture
def space(kv) -> MindfulSpace:
    """A fully wired application on in-memory storage and the Echo LLM."""
    return MindfulSpace(kv=kv, llm=Echo(), bcrypt_rounds=4)


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(
        storage_backend="json",
        storage_path=str(tmp_path / "db.json"),
        llm_provider="echo",
        bcrypt_rounds=4,
    )


@pytest.fixture
def client(space, settings):
    """HTTP client bound to ``space``."""
    app = create_app(space=space, settings=settings)
    with TestClient(app) as c:
        yield c


@pytest.fixture
def mock_llm():
    """Mock LLM provider for testing."""
    mock = MagicMock()
    mock.complete.return_value = "Mock LLM response"
    return mock
