import json

import pytest
from fastapi.testclient import TestClient

import bank
from main import app

client = TestClient(app)


@pytest.fixture
def quiz_dir(tmp_path, monkeypatch):
    monkeypatch.setattr(bank.QuizBank, "data_dir", tmp_path)
    yield tmp_path
    monkeypatch.undo()
    bank.reload_bank()


def test_list_quizzes():
    r = client.get("/quizzes")
    assert r.status_code == 200
    data = r.json()
    assert isinstance(data, list) and len(data) >= 1
    q = data[0]
    assert {"id", "title", "storage_key", "question_count"}.issubset(q.keys())


def test_get_quiz_detail_ok():
    r = client.get("/quizzes/earth-basics")
    assert r.status_code == 200
    body = r.json()
    assert body["storage_key"] == "quizState-earth-basics"
    assert body["question_count"] == len(body["questions"]) == 6
    assert all("correct_answer" not in q for q in body["questions"])
    scenario = [q for q in body["questions"] if q["scenario_title"]]
    assert len(scenario) == 2


def test_get_quiz_detail_404():
    assert client.get("/quizzes/missing").status_code == 404
    assert client.get("/quizzes/missing/progress").status_code == 404


def test_progress_without_saved_state():
    r = client.get("/quizzes/earth-basics/progress")
    assert r.status_code == 200
    assert r.json()["total_questions"] == 6
    rows = client.get("/progress").json()
    assert any(row["quiz_id"] == "earth-basics" for row in rows)


def test_bank_loads_files_and_skips_bad_ones(quiz_dir):
    (quiz_dir / "stars.json").write_text(
        json.dumps(
            {
                "title": "Stars",
                "category": "Astronomy",
                "storageKey": "stars-v2",
                "items": [{"type": "multiple-choice", "question": "Hottest?", "options": ["O", "M"], "answer": "O"}],
            }
        ),
        encoding="utf-8",
    )
    (quiz_dir / "rocks.jsonl").write_text(
        '# comment\n{"type": "fill-in", "question": "Igneous example?", "answer": ["granite"]}\n{broken\n',
        encoding="utf-8",
    )
    (quiz_dir / "broken.json").write_text("{nope", encoding="utf-8")
    (quiz_dir / "notes.txt").write_text("ignored", encoding="utf-8")

    assert bank.reload_bank() == 2
    stars = bank.get_quiz("stars")
    assert stars.storage_key == "stars-v2"
    assert stars.questions[0].category.main == "Astronomy"
    assert stars.questions[0].source_title == "Stars"
    rocks = bank.get_quiz("rocks")
    assert rocks.storage_key == "quizState-rocks"
    assert len(rocks.questions) == 1
    assert bank.get_quiz("broken") is None


def test_bank_falls_back_to_builtin(quiz_dir):
    assert bank.reload_bank() == 1
    assert bank.get_quiz("earth-basics") is not None
