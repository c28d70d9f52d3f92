import pytest
from fastapi.testclient import TestClient

from support_agent.config import Settings
from support_agent.context import AppContext
from support_agent.db import init_db, make_engine, make_session_factory
from support_agent.main import create_app
from support_agent.tests.fakes import DIMENSIONS, FakeCompletion, FakeEmbedder
from support_agent.vector_store import InMemoryVectorIndex


@pytest.fixture
def settings():
    return Settings(
        openrouter_api_key="test-key",
        database_url="sqlite:///:memory:",
        vector_backend="memory",
        embedding_dimensions=DIMENSIONS,
        chunk_size=100,
        chunk_overlap=10,
        retrieval_top_k=3,
        chat_history_limit=10,
    )


@pytest.fixture
def engine(settings):
    engine = make_engine(settings.database_url)
    init_db(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return make_session_factory(engine)


@pytest.fixture
def index():
    return InMemoryVectorIndex(DIMENSIONS)


@pytest.fixture
def embedder():
    return FakeEmbedder()


@pytest.fixture
def completion():
    return FakeCompletion()


@pytest.fixture
def context(settings, engine, session_factory, embedder, completion, index):
    return AppContext(
        settings=settings,
        engine=engine,
        session_factory=session_factory,
        embedder=embedder,
        completion=completion,
        index=index,
    )


@pytest.fixture
def client(context):
    app = create_app(context)
    with TestClient(app) as c:
        yield c
