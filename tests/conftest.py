import pytest
from fastapi.testclient import TestClient

from taskboard.client import TaskboardClient
from taskboard.config import Settings
from taskboard.main import create_app


@pytest.fixture()
def app(tmp_path):
    # a file database, so concurrent sessions see each other's commits
    settings = Settings(database_url=f"sqlite:///{tmp_path / 'taskboard.db'}", sqlite_busy_timeout=5.0)
    app = create_app(settings)
    yield app
    app.state.engine.dispose()


@pytest.fixture()
def client(app):
    return TestClient(app)


@pytest.fixture()
def session_factory(app):
    return app.state.session_factory


@pytest.fixture()
def auth():
    def headers(user="alice"):
        return {"Authorization": f"Bearer {user}"}

    return headers


@pytest.fixture()
def alice(client):
    return TaskboardClient(client, "alice")


@pytest.fixture()
def bob(client):
    return TaskboardClient(client, "bob")
