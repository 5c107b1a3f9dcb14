import json

import httpx
import pytest

from usmle_prep.core.client import QuizAPIClient

from conftest import make_question


@pytest.fixture
def api(client):
    return QuizAPIClient(http=client)


def test_stats_and_scores(api, store):
    store.insert_score(4, 5, 80.0, duration=60, step="3")
    assert api.stats()["total"] == 0
    assert api.recent_scores()[0]["percentage"] == 80.0


def test_generate_list_and_delete(api, fake_ai):
    fake_ai(content=json.dumps([make_question("Q1"), make_question("Q2")]))
    created = api.generate("hyperkalemia", count=2, difficulty="Easy")
    assert len(created) == 2

    recent = api.recent_generated()
    assert {q["id"] for q in recent} == {q["id"] for q in created}

    assert api.delete_questions([created[0]["id"]]) == 1
    assert len(api.recent_generated()) == 1


def test_errors_raise_http_status_error(api):
    with pytest.raises(httpx.HTTPStatusError) as exc_info:
        api.questions(step="9")
    assert exc_info.value.response.status_code == 400
