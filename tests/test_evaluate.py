import pytest
from fastapi.testclient import TestClient

from engine.evaluator import evaluate, numeric_value, parse_number, record, timeout_verdict
from engine.question import normalize
from main import app

client = TestClient(app)


def _q(**raw):
    return normalize(raw)


def test_health():
    r = client.get("/")
    assert r.status_code == 200
    assert r.json().get("ok") is True


def test_evaluate_valid():
    r = client.post("/evaluate", json={"expr": "3^2 + 4^2"})
    assert r.status_code == 200
    data = r.json()
    assert data["ok"] is True
    assert abs(data["value"] - 25.0) < 1e-9


def test_evaluate_invalid_chars():
    r = client.post("/evaluate", json={"expr": "abc"})
    data = r.json()
    assert data["ok"] is False
    assert "allowed" in data.get("feedback", "").lower()


def test_evaluate_len_limit():
    r = client.post("/evaluate", json={"expr": "1" * 101})
    assert r.json()["ok"] is False


@pytest.mark.parametrize(
    "text,expected",
    [("9.8", 9.8), (" 10 ", 10.0), ("49/5", 9.8), ("1e3", 1000.0), ("2^3", 8.0)],
)
def test_parse_number_accepts(text, expected):
    assert parse_number(text) == pytest.approx(expected)


@pytest.mark.parametrize("text", ["", "abc", "1/0", "9..8", "9 8", "1.2.3", "2^2^2^2", None, True, "nan", "inf"])
def test_parse_number_rejects(text):
    assert parse_number(text) is None


@pytest.mark.parametrize(
    "answer,ok",
    [("9.6", True), ("9.8", True), ("10.0", True), ("9.59", False), ("10.01", False), ("heavy", False)],
)
def test_numeric_tolerance(answer, ok):
    q = _q(type="fill-in-numeric", text="g?", correctAnswer="9.8", tolerance=0.2, unit="m/s^2")
    v = evaluate(q, answer)
    assert v.is_correct is ok
    assert v.correct == "9.8 m/s^2"


def test_numeric_exact_when_no_tolerance():
    q = _q(type="fill-in-numeric", correctAnswer="42")
    assert evaluate(q, "42").is_correct
    assert evaluate(q, 42).is_correct
    assert not evaluate(q, "42.001").is_correct
    unparseable = evaluate(q, "forty-two")
    assert not unparseable.is_correct and unparseable.selected is None


def test_single_choice_trims():
    q = _q(type="single-choice", options=["Mars", "Venus"], correctAnswer="Venus ")
    assert evaluate(q, " Venus").is_correct
    assert not evaluate(q, "Mars").is_correct
    assert not evaluate(q, None).is_correct


def test_multi_select_order_independent():
    q = _q(type="multi-select", options=["A", "B", "C"], correctAnswer=["A", "B"])
    assert evaluate(q, ["B", "A"]).is_correct
    assert evaluate(q, [" A", "B ", "A"]).is_correct
    assert not evaluate(q, ["A"]).is_correct
    assert not evaluate(q, ["A", "B", "C"]).is_correct
    assert not evaluate(q, []).is_correct


def test_fill_in_text_accepts_any_spelling():
    q = _q(type="fill-in-text", correctAnswer=["Moho", "Mohorovicic"])
    assert evaluate(q, "  moho ").is_correct
    assert evaluate(q, "MOHOROVICIC").is_correct
    assert not evaluate(q, "mantle").is_correct
    assert not evaluate(q, "").is_correct


def test_timeout_verdict_and_record():
    q = _q(id="t1", type="multi-select", correctAnswer=["A"], explanation="because",
           category={"main": "M", "specific": ["S"]})
    v = timeout_verdict(q)
    assert v.is_correct is False and v.selected == []
    rec = record(q, v, "timeout")
    assert rec.question_ref == "t1"
    assert rec.reason == "timeout"
    assert rec.category.specific == ["S"]
    assert rec.explanation == "because"
    assert rec.model_dump(by_alias=True)["isCorrect"] is False


def test_separated_digits_are_not_a_product():
    q = _q(type="fill-in-numeric", correctAnswer="72")
    v = evaluate(q, "9 8")
    assert v.is_correct is False and v.selected is None


@pytest.mark.parametrize(
    "text,expected",
    [("9.8 m/s^2", 9.8), ("-3 K", -3.0), (".5kg", 0.5), ("4", 4.0), ("9 8", None), ("9..8 m", None), ("m 9", None)],
)
def test_numeric_value_reads_leading_number(text, expected):
    if expected is None:
        assert numeric_value(text) is None
    else:
        assert numeric_value(text) == pytest.approx(expected)


def test_numeric_answer_with_unit():
    q = _q(type="fill-in-numeric", correctAnswer="9.8", tolerance=0.2, unit="m/s^2")
    v = evaluate(q, "9.8 m/s^2")
    assert v.is_correct is True
    assert v.selected == "9.8 m/s^2"


def test_bank_answer_with_unit_is_matched():
    q = _q(type="fill-in-numeric", correctAnswer="9.8 m/s^2", unit="m/s^2")
    assert evaluate(q, "9.8").is_correct
    assert evaluate(q, "9.8").correct == "9.8 m/s^2"
    assert not evaluate(q, "9.7").is_correct
