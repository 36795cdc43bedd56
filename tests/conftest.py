import os

os.environ.setdefault("DB_BACKEND", "sqlite")
os.environ.setdefault("VECTOR_BACKEND", "none")
os.environ.setdefault("EMBEDDING_PROVIDER", "none")
os.environ.setdefault("AUTH_MODE", "optional")

from concurrent.futures import Executor, Future

import pytest
from starlette.testclient import TestClient

import core.config as config
from core.db import Database
from core.models import Base
from core.services.knowledge_service import KnowledgeService
from core.services.knowledge_store import KnowledgeGateway
from app.main import attach_services, create_app
from companion.client import KnowledgeAPI

OWNER = "user-a"
OTHER_OWNER = "user-b"


class InlineExecutor(Executor):
    """Runs submitted work immediately on the calling thread."""

    def submit(self, fn, *args, **kwargs):
        future = Future()
        try:
            future.set_result(fn(*args, **kwargs))
        except Exception as exc:
            future.set_exception(exc)
        return future


class FakeEmbedder:
    def __init__(self, dimension: int = 8, fail: bool = False, connected: bool = True):
        self.model = config.EMBEDDING_MODEL
        self.dimension = dimension
        self.fail = fail
        self.connected = connected
        self.calls = []
        self.closed = False

    def embed(self, text):
        self.calls.append(text)
        if self.fail:
            raise RuntimeError("provider down")
        return [0.5] * self.dimension

    def embed_entry(self, title, content):
        return self.embed(f"{title}\n\n{title}\n\n{content}")

    def test_connection(self):
        return self.connected

    def close(self):
        self.closed = True


@pytest.fixture
def database(tmp_path):
    db = Database(url=f"sqlite:///{tmp_path / 'knowledger.db'}", backend="sqlite").connect()
    Base.metadata.create_all(db.engine)
    yield db
    db.dispose()


@pytest.fixture
def gateway(database):
    return KnowledgeGateway(database.SessionLocal, backend="sqlite")


@pytest.fixture
def embedder():
    return FakeEmbedder()


@pytest.fixture
def service(gateway, embedder):
    return KnowledgeService(gateway, embedder, executor=InlineExecutor())


@pytest.fixture
def api_app(service):
    app = create_app()
    attach_services(app, service, auth_mode=config.AUTH_OPTIONAL)
    return app


@pytest.fixture
def client(api_app):
    return TestClient(api_app)


@pytest.fixture
def make_entry(service):
    def _make(title="Entry", content="Some content", owner_id=OWNER, **fields):
        return service.create({"title": title, "content": content, **fields}, owner_id)
    return _make


@pytest.fixture
def knowledge_api(client):
    return KnowledgeAPI("http://testserver/api", http_client=client)
