"""
Grading rules for submitted answers
"""

from decimal import Decimal
from types import SimpleNamespace

import pytest

from app.services.grading import (
    FREE_TEXT,
    MULTI_CHOICE,
    SINGLE_CHOICE,
    calculate_percentage,
    encode_answer,
    evaluate,
    grade_answers,
    is_answer_correct,
    normalize_answers,
)


def question(qid, question_type, correct, marks=1):
    return SimpleNamespace(
        id=qid,
        question_type=question_type,
        correct_answer=encode_answer(correct),
        marks=Decimal(str(marks)),
    )


def test_two_question_example():
    questions = [
        question(1, SINGLE_CHOICE, "a", 1),
        question(2, SINGLE_CHOICE, "c", 2),
    ]

    score, percentage = evaluate(questions, {"1": "a", "2": "b"})

    assert score == Decimal("1")
    assert float(percentage) == pytest.approx(33.333, abs=0.01)


def test_total_marks_defaults_to_sum_of_question_marks():
    questions = [question(1, SINGLE_CHOICE, "a", 1), question(2, SINGLE_CHOICE, "c", 2)]

    score, percentage = evaluate(questions, {"1": "a", "2": "c"})

    assert score == Decimal("3")
    assert percentage == Decimal("100")


def test_multi_choice_is_order_independent():
    questions = [question(1, MULTI_CHOICE, ["a", "b"], 2)]

    forward, _ = evaluate(questions, {"1": ["a", "b"]})
    backward, _ = evaluate(questions, {"1": ["b", "a"]})
    raw, _ = evaluate(questions, {"1": "b|a"})

    assert forward == backward == raw == Decimal("2")


def test_multi_choice_has_no_partial_credit():
    questions = [question(1, MULTI_CHOICE, ["a", "b"], 2)]

    subset, _ = evaluate(questions, {"1": ["a"]})
    superset, _ = evaluate(questions, {"1": ["a", "b", "c"]})

    assert subset == Decimal("0")
    assert superset == Decimal("0")


def test_free_text_ignores_case_and_surrounding_whitespace():
    assert is_answer_correct(FREE_TEXT, " Paris ", "paris")
    assert not is_answer_correct(FREE_TEXT, "Lyon", "paris")


def test_single_choice_is_exact():
    assert is_answer_correct(SINGLE_CHOICE, "a", "a")
    assert not is_answer_correct(SINGLE_CHOICE, "A", "a")


def test_zero_total_marks_gives_zero_percentage():
    assert calculate_percentage(Decimal("0"), Decimal("0")) == Decimal("0")

    score, percentage = evaluate([], {"1": "a"}, total_marks=0)
    assert score == Decimal("0")
    assert percentage == Decimal("0")


def test_unanswered_questions_score_zero():
    questions = [question(1, SINGLE_CHOICE, "a"), question(2, FREE_TEXT, "paris")]

    results = grade_answers(questions, {})

    assert [r.is_correct for r in results] == [False, False]
    assert all(r.marks_awarded == Decimal("0") for r in results)
    assert all(r.student_answer is None for r in results)


def test_questions_without_correct_answer_are_skipped():
    questions = [question(1, SINGLE_CHOICE, "a"), question(2, SINGLE_CHOICE, "")]

    results = grade_answers(questions, {"1": "a", "2": "b"})

    assert [r.question_id for r in results] == [1]


def test_encode_answer_sorts_and_deduplicates_lists():
    assert encode_answer(["c", "a", "c"]) == "a|c"
    assert encode_answer("free text") == "free text"
    assert encode_answer(None) == ""
    assert encode_answer([]) == ""


def test_normalize_answers_drops_empty_entries():
    normalized = normalize_answers({1: "a", 2: "", 3: [], 4: ["b", "a"], 5: None})

    assert normalized == {"1": "a", "4": "a|b"}
