from collections import Counter
from datetime import datetime

import mongomock
import pytest
from bson import ObjectId
from fastapi.testclient import TestClient

from usmle_prep.app import app
from usmle_prep.core import store as store_module
from usmle_prep.core.config import Settings
from usmle_prep.core.errors import ConfigurationError

from conftest import make_step_doc


def seed_steps(store, per_step=4):
    for step in ("1", "2", "3"):
        # insert out of order to exercise the questionNumber sort
        for n in reversed(range(1, per_step + 1)):
            store.db[f"step{step}"].insert_one(make_step_doc(n, text=f"S{step}-Q{n}"))


def test_healthz(client):
    assert client.get("/healthz").json() == {"ok": True}


def test_stats_counts_every_collection(client, store):
    seed_steps(store, per_step=2)
    store.db.step3.insert_one(make_step_doc(3))
    store.insert_question("Q", ["a", "b", "c", "d"], 0)

    r = client.get("/api/questions", params={"type": "stats"})
    assert r.status_code == 200
    assert r.json() == {
        "step1": 2,
        "step2": 2,
        "step3": 3,
        "aiGenerated": 1,
        "stepTotal": 7,
        "total": 8,
    }


def test_step_questions_sorted_and_normalized(client, store):
    seed_steps(store)
    r = client.get("/api/questions", params={"step": "2", "limit": 3})
    assert r.status_code == 200
    data = r.json()
    assert [q["questionNumber"] for q in data] == [1, 2, 3]
    first = data[0]
    assert first["question"] == "S2-Q1"
    assert first["options"] == ["Alpha", "Bravo", "Charlie", "Delta"]
    assert first["subject"] == "Step 2"
    assert first["difficulty"] == "Medium"
    assert first["step"] == "2"


def test_step_without_limit_returns_all(client, store):
    seed_steps(store, per_step=5)
    assert len(client.get("/api/questions", params={"step": "1"}).json()) == 5


def test_unknown_step_is_rejected(client):
    assert client.get("/api/questions", params={"step": "4"}).status_code == 400


def test_mixed_listing_merges_steps(client, store):
    seed_steps(store, per_step=4)
    r = client.get("/api/questions", params={"limit": 6})
    data = r.json()
    assert len(data) == 6
    # ceil(6 / 3) = 2 per step; shuffle order is unconstrained
    assert Counter(q["step"] for q in data) == Counter({"1": 2, "2": 2, "3": 2})
    assert Counter(q["question"] for q in data) == Counter(
        f"S{s}-Q{n}" for s in "123" for n in (1, 2)
    )


def test_create_question_round_trip(client):
    payload = {
        "question": "A 24-year-old woman presents with palpitations...",
        "options": ["Graves disease", "Hashimoto", "Toxic adenoma", "Thyroiditis"],
        "correct": 0,
        "subject": "Endocrine",
        "difficulty": "Hard",
    }
    r = client.post("/api/questions", json=payload)
    assert r.status_code == 201
    created = r.json()
    assert created["type"] == "ai-generated"
    assert created["explanation"] == ""

    listed = client.get("/api/questions", params={"recent": "true"}).json()
    assert len(listed) == 1
    stored = listed[0]
    assert stored["id"] == created["id"]
    for key in ("question", "options", "correct", "subject", "difficulty"):
        assert stored[key] == payload[key]
    assert "createdAt" in stored and "updatedAt" in stored


def test_create_question_accepts_json_encoded_options(client):
    r = client.post(
        "/api/questions",
        json={"question": "Q", "options": '["yes", "no"]', "correct": 1},
    )
    assert r.status_code == 201
    assert r.json()["options"] == ["yes", "no"]


@pytest.mark.parametrize(
    "payload",
    [
        {"question": "Q", "options": ["only one"], "correct": 0},
        {"question": "Q", "options": "not json", "correct": 0},
        {"question": "Q", "options": ["a", "b"], "correct": 2},
        {"question": "Q", "options": ["a", "b"], "correct": -1},
        {"question": "Q", "options": ["a", "b"]},
        {"options": ["a", "b"], "correct": 0},
        {"question": "Q", "options": ["a", "b"], "correct": 0, "difficulty": "Brutal"},
    ],
)
def test_create_question_rejects_bad_shape(client, payload):
    r = client.post("/api/questions", json=payload)
    assert r.status_code == 400
    assert r.json()["error"] == "validation_error"


def test_score_percentage_is_computed(client, store):
    r = client.post("/api/questions", json={"type": "score", "score": 7, "total": 10})
    assert r.status_code == 201
    body = r.json()
    assert body["percentage"] == 70.0
    assert body["step"] == "mixed"
    assert store.db.scores.count_documents({}) == 1


def test_score_keeps_supplied_fields(client):
    r = client.post(
        "/api/questions",
        json={"type": "score", "score": 3, "total": 4, "percentage": 75, "duration": 125, "step": "1"},
    )
    body = r.json()
    assert (body["percentage"], body["duration"], body["step"]) == (75.0, 125, "1")


@pytest.mark.parametrize(
    "payload",
    [
        {"type": "score", "total": 10},
        {"type": "score", "score": 11, "total": 10},
        {"type": "score", "score": 0, "total": 0},
        {"type": "score", "score": -1, "total": 10},
    ],
)
def test_score_rejects_bad_shape(client, payload):
    assert client.post("/api/questions", json=payload).status_code == 400


def test_recent_scores_newest_first(client, store):
    # inserted out of order, with distinct timestamps
    for score, day in ((2, 2), (1, 1), (3, 3)):
        store.db.scores.insert_one(
            {"score": score, "total": 10, "percentage": score * 10.0, "step": "mixed",
             "createdAt": datetime(2026, 1, day)}
        )
    data = client.get("/api/questions", params={"type": "scores", "limit": 2}).json()
    assert [s["score"] for s in data] == [3, 2]
    assert all("createdAt" in s for s in data)


def test_recent_generated_newest_first(client, store):
    for text, day in (("middle", 2), ("oldest", 1), ("newest", 3)):
        store.db.questions.insert_one(
            {"question": text, "options": ["a", "b"], "correct": 0, "type": "ai-generated",
             "createdAt": datetime(2026, 1, day), "updatedAt": datetime(2026, 1, day)}
        )
    data = client.get("/api/questions", params={"recent": "true", "limit": 2}).json()
    assert [q["question"] for q in data] == ["newest", "middle"]


def test_delete_generated_questions(client, store):
    keep = store.insert_question("keep", ["a", "b"], 0)
    drop = store.insert_question("drop", ["a", "b"], 1)

    r = client.request("DELETE", "/api/questions", json={"ids": [drop["id"]]})
    assert r.status_code == 200
    assert r.json() == {"message": "Deleted 1 questions", "count": 1}
    remaining = [q["id"] for q in store.recent_generated()]
    assert remaining == [keep["id"]]


def test_delete_unknown_id_is_not_an_error(client):
    r = client.request(
        "DELETE", "/api/questions", json={"ids": [str(ObjectId()), "not-an-object-id"]}
    )
    assert r.status_code == 200
    assert r.json()["count"] == 0


def test_delete_never_touches_step_questions(client, store):
    step_id = store.db.step1.insert_one(make_step_doc(1)).inserted_id
    r = client.request("DELETE", "/api/questions", json={"ids": [str(step_id)]})
    assert r.json()["count"] == 0
    assert store.db.step1.count_documents({}) == 1


@pytest.mark.parametrize("payload", [{}, {"ids": []}])
def test_delete_requires_ids(client, payload):
    r = client.request("DELETE", "/api/questions", json=payload)
    assert r.status_code == 400


def test_database_url_is_required():
    with pytest.raises(ConfigurationError):
        Settings().require("database_url")


def test_lifespan_opens_store(monkeypatch):
    monkeypatch.setattr(store_module, "MongoClient", mongomock.MongoClient)
    monkeypatch.setenv("DATABASE_URL", "mongodb://localhost:27017/usmle_test")
    with TestClient(app) as c:
        assert app.state.store.db.name == "usmle_test"
        assert c.get("/api/questions", params={"type": "stats"}).json()["total"] == 0
