"""
Shared fixtures: in-memory database, scripted completion provider, API client.
"""

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from minichat.core.config import Settings
from minichat.core.database import Base, get_db
from minichat.main import create_app
from minichat.models import chat as chat_models  # noqa: F401  registers tables
from minichat.services.completion import Reply
from minichat.services.conversation import ConversationService
from minichat.services.repository import ChatRepository


class ScriptedProvider:
    """Answers from a queue of results (or exceptions to raise) and records every call."""

    name = "scripted"

    def __init__(self, replies=None, default=None):
        self.replies = list(replies or [])
        self.default = default or Reply(content="Scripted reply", tokens=7)
        self.calls = []

    def generate_reply(self, content, chat_id, history=()):
        self.calls.append({"content": content, "chat_id": chat_id, "history": list(history)})
        result = self.replies.pop(0) if self.replies else self.default
        if isinstance(result, Exception):
            raise result
        return result


class FailingProvider:
    """Always raises, like a provider whose backend is down."""

    name = "failing"

    def __init__(self):
        self.calls = 0

    def generate_reply(self, content, chat_id, history=()):
        self.calls += 1
        raise RuntimeError("provider unavailable")


def make_engine(create_tables: bool = True):
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    if create_tables:
        Base.metadata.create_all(bind=engine)
    return engine


@pytest.fixture
def engine():
    engine = make_engine()
    yield engine
    engine.dispose()


@pytest.fixture
def db(engine):
    session = sessionmaker(autocommit=False, autoflush=False, bind=engine)()
    yield session
    session.close()


@pytest.fixture
def repository(db):
    return ChatRepository(db)


@pytest.fixture
def provider():
    return ScriptedProvider()


@pytest.fixture
def service(repository, provider):
    return ConversationService(repository, provider)


@pytest.fixture
def check_count(repository):
    """Assert that a chat's counter equals its number of stored messages."""

    def check(chat_id):
        chat = repository.get_chat(chat_id)
        repository.db.refresh(chat)
        stored = repository.count_messages(chat_id)
        assert chat.messages_count == stored, f"messages_count={chat.messages_count}, rows={stored}"
        return stored

    return check


@pytest.fixture
def settings():
    return Settings(llm_provider="mock", rate_limit_enabled=False, environment="test")


@pytest.fixture
def make_client(engine, settings):
    """Build a TestClient around a fresh app using the test database."""

    def factory(provider=None, app_settings=None, db_engine=None):
        app = create_app(
            settings=app_settings or settings,
            completion_provider=provider or ScriptedProvider(),
        )
        session_factory = sessionmaker(autocommit=False, autoflush=False, bind=db_engine or engine)

        def override_get_db():
            session = session_factory()
            try:
                yield session
            finally:
                session.close()

        app.dependency_overrides[get_db] = override_get_db
        return TestClient(app, raise_server_exceptions=False)

    return factory


@pytest.fixture
def client(make_client, provider):
    return make_client(provider=provider)
