import os
import pytest


@pytest.fixture(scope="session", autouse=True)
def set_test_env(tmp_path_factory):
    db_file = tmp_path_factory.mktemp("data") / "waste.json"
    upload_dir = tmp_path_factory.mktemp("uploads")
    os.environ["DB_PATH"] = str(db_file)
    os.environ["UPLOAD_DIR"] = str(upload_dir)
    os.environ["LOG_LEVEL"] = "WARNING"


@pytest.fixture(scope="session")
def client(set_test_env):
    from fastapi.testclient import TestClient
    from app.main import app
    with TestClient(app, raise_server_exceptions=True) as c:
        yield c


class StubAnalyzer:
    """Stands in for the vision collaborator; replays canned replies in order."""

    def __init__(self, *replies):
        self.replies = list(replies)
        self.calls = []

    def __call__(self, image_bytes, media_type):
        self.calls.append((image_bytes, media_type))
        reply = self.replies[min(len(self.calls), len(self.replies)) - 1]
        if isinstance(reply, Exception):
            raise reply
        return reply


@pytest.fixture
def make_analyzer():
    return StubAnalyzer


@pytest.fixture
def api(client):
    """The shared client with an empty store; analyzer overrides are undone afterwards."""
    from app.main import app
    client.delete("/api/waste-history")
    yield client
    app.dependency_overrides.clear()


@pytest.fixture
def use_analyzer(api):
    from app.dependencies import get_analyzer
    from app.main import app

    def install(analyzer):
        app.dependency_overrides[get_analyzer] = lambda: analyzer
        return analyzer

    return install
