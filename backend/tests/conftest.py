from types import SimpleNamespace

import mongomock
import pytest
from fastapi.testclient import TestClient

from usmle_prep.app import app, get_store
from usmle_prep.core import question_gen
from usmle_prep.core.store import QuestionStore


def make_question(text="Q", options=("a", "b", "c", "d"), correct=0, **extra):
    return {"question": text, "options": list(options), "correct": correct, **extra}


def make_step_doc(number, text=None, correct=0, **extra):
    return {
        "questionNumber": number,
        "questionText": text or f"Question {number}",
        "optionA": "Alpha",
        "optionB": "Bravo",
        "optionC": "Charlie",
        "optionD": "Delta",
        "optionE": "",
        "correctAnswer": correct,
        **extra,
    }


@pytest.fixture
def store():
    return QuestionStore(mongomock.MongoClient().usmle_prep)


@pytest.fixture
def client(store):
    app.dependency_overrides[get_store] = lambda: store
    yield TestClient(app)
    app.dependency_overrides.clear()


# ------------------------------------------------------------
# Fake Gemini client
# ------------------------------------------------------------
class FakeCompletions:
    def __init__(self, content=None, error=None):
        self.content = content
        self.error = error
        self.calls = []

    async def create(self, **kwargs):
        self.calls.append(kwargs)
        if self.error is not None:
            raise self.error
        if self.content is None:
            return SimpleNamespace(choices=[])
        message = SimpleNamespace(content=self.content)
        return SimpleNamespace(choices=[SimpleNamespace(message=message)])


@pytest.fixture
def fake_ai(monkeypatch):
    def install(content=None, error=None):
        monkeypatch.setenv("GEMINI_API_KEY", "test-key")
        completions = FakeCompletions(content, error)
        fake = SimpleNamespace(chat=SimpleNamespace(completions=completions))
        monkeypatch.setattr(question_gen, "_client", fake)
        return completions

    return install
