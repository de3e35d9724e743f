import os
import tempfile
from collections import deque

import pytest
from fastapi.testclient import TestClient

# Settings are read at import time, so the test environment is fixed before any app module loads
_TEST_ROOT = tempfile.mkdtemp(prefix="noteforge-tests-")
os.environ["DATABASE_URL"] = f"sqlite:///{os.path.join(_TEST_ROOT, 'test_noteforge.db')}"
os.environ["UPLOAD_DIR"] = os.path.join(_TEST_ROOT, "uploads")
os.environ["LOG_TO_FILE"] = "false"
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["AI_API_KEY"] = ""
os.environ["TRANSCRIPTION_ENDPOINT"] = ""


class ScriptedClient:
    """Stands in for GenerativeClient: answers prompts from a queue and records them."""

    model = "test-model"
    confidence = 0.95

    def __init__(self, *responses):
        self.responses = deque(responses)
        self.prompts = []
        self.generation_configs = []

    def generate(self, prompt, generation_config=None):
        self.prompts.append(prompt)
        self.generation_configs.append(generation_config)
        if not self.responses:
            return None
        answer = self.responses.popleft()
        if isinstance(answer, Exception):
            raise answer
        return answer


@pytest.fixture(scope="session")
def app():
    from app.db import database

    import main as main_module

    app_instance = main_module.app
    database.Base.metadata.create_all(bind=database.engine)
    return app_instance


@pytest.fixture()
def db_session(app):
    from app.db.database import SessionLocal
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture()
def client(app):
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture()
def ai(app):
    """Install a scripted AI client for the test; queue answers with ``ai.responses.extend``."""
    from app.api.deps import get_generative_client

    scripted = ScriptedClient()
    app.dependency_overrides[get_generative_client] = lambda: scripted
    yield scripted
    app.dependency_overrides.pop(get_generative_client, None)


@pytest.fixture()
def make_user(db_session):
    from app.models.user import User

    def _make(email):
        user = db_session.query(User).filter(User.email == email).first()
        if user:
            return user
        user = User(email=email, full_name=email.split("@")[0])
        db_session.add(user)
        db_session.commit()
        db_session.refresh(user)
        return user

    return _make


