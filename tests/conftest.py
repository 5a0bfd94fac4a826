import os

import pytest

os.environ.setdefault("DATABASE_URL", "sqlite+pysqlite:///:memory:")
os.environ.setdefault("CHAT_TOKEN_SECRET", "test-secret")

from fastapi.testclient import TestClient

from support_chat.client.db.message_store import MessageStore
from support_chat.db import models  # noqa: F401
from support_chat.db.session import Base, make_engine, make_session_factory
from support_chat.main import app
from support_chat.model.chat.kinds import PrincipalKind
from support_chat.model.chat.principal import Principal
from support_chat.service.auth.token import issue_token
from support_chat.service.chat.hub import ChatHub


class FakeSocket:
    """Records frames pushed to it; raises once marked dead."""

    def __init__(self):
        self.frames = []
        self.dead = False

    async def send_json(self, data):
        if self.dead:
            raise RuntimeError("socket is closed")
        self.frames.append(data)

    def of(self, event_type):
        return [frame["data"] for frame in self.frames if frame["type"] == event_type]

    def types(self):
        return [frame["type"] for frame in self.frames]

    def clear(self):
        self.frames.clear()


@pytest.fixture
def fake_socket():
    return FakeSocket


@pytest.fixture
def store(tmp_path):
    engine = make_engine(f"sqlite:///{tmp_path / 'chat.db'}")
    Base.metadata.create_all(bind=engine)
    yield MessageStore(make_session_factory(engine))
    engine.dispose()


@pytest.fixture
def hub(store):
    return ChatHub(store, history_limit=50)


@pytest.fixture
def connect(hub):
    async def _connect(principal_id, kind, name=None, email=None):
        kind = PrincipalKind(kind)
        principal = Principal(
            id=principal_id,
            kind=kind,
            name=name or f"{kind.value}-{principal_id}",
            email=email,
        )
        socket = FakeSocket()
        connection = await hub.connect(socket, principal)
        return connection, socket

    return _connect


@pytest.fixture
def make_token():
    def _make(principal_id, kind, name=None, email=None, **kwargs):
        return issue_token(principal_id, kind, name or f"{kind}-{principal_id}", email, **kwargs)

    return _make


@pytest.fixture
def auth_header(make_token):
    def _header(principal_id, kind, name=None, email=None):
        return {"Authorization": f"Bearer {make_token(principal_id, kind, name, email)}"}

    return _header


@pytest.fixture(scope="function")
def client(hub):
    app.state.chat_hub = hub
    yield TestClient(app)
    del app.state.chat_hub
