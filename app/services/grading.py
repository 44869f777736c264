"""
Answer encoding and auto-marking for quiz attempts.

Everything here is pure: no database access, no clock. The attempt service
calls it at submission time and the analytics service reuses the
per-question rule so both agree on what "correct" means.
"""

from decimal import Decimal
from typing import Any, Dict, Iterable, List, Mapping, NamedTuple, Optional, Tuple, Union

SINGLE_CHOICE = "single_choice"
MULTI_CHOICE = "multi_choice"
FREE_TEXT = "free_text"

QUESTION_TYPES = (SINGLE_CHOICE, MULTI_CHOICE, FREE_TEXT)

ANSWER_DELIMITER = "|"

AnswerValue = Union[str, Iterable[str], None]


class QuestionResult(NamedTuple):
    question_id: int
    student_answer: Optional[str]
    correct_answer: str
    is_correct: bool
    marks_awarded: Decimal
    max_marks: Decimal


def encode_answer(value: AnswerValue) -> str:
    """
    Encode a submitted answer for storage.

    Lists/sets/tuples (multi-choice selections) become the sorted, de-duplicated
    option set joined by "|". Strings are stored as given. None encodes to "".
    """
    if value is None:
        return ""
    if isinstance(value, str):
        return value
    selected = sorted({str(item) for item in value if str(item) != ""})
    return ANSWER_DELIMITER.join(selected)


def decode_multi_choice(value: str) -> List[str]:
    if not value:
        return []
    return value.split(ANSWER_DELIMITER)


def normalize_answers(answers: Optional[Mapping[Any, AnswerValue]]) -> Dict[str, str]:
    """Encode every entry and drop unanswered ones. Keys become strings."""
    normalized = {}
    for question_id, value in (answers or {}).items():
        encoded = encode_answer(value)
        if encoded != "":
            normalized[str(question_id)] = encoded
    return normalized


def is_answer_correct(question_type: str, submitted: str, correct: str) -> bool:
    if question_type == FREE_TEXT:
        return submitted.strip().lower() == correct.strip().lower()

    if question_type == MULTI_CHOICE:
        submitted_set = sorted(submitted.split(ANSWER_DELIMITER))
        correct_set = sorted(correct.split(ANSWER_DELIMITER))
        # Same cardinality and same members; no partial credit
        return len(submitted_set) == len(correct_set) and all(
            a == b for a, b in zip(submitted_set, correct_set)
        )

    return submitted == correct


def grade_answers(questions: Iterable[Any], answers: Mapping[Any, Any]) -> List[QuestionResult]:
    """Mark every question that has a correct answer configured."""
    results = []
    lookup = {str(key): value for key, value in (answers or {}).items()}

    for question in questions:
        correct = question.correct_answer or ""
        if correct == "":
            continue

        max_marks = Decimal(str(question.marks))
        submitted = lookup.get(str(question.id))
        submitted = encode_answer(submitted) if submitted is not None else ""

        is_correct = bool(submitted) and is_answer_correct(
            question.question_type, submitted, correct
        )

        results.append(
            QuestionResult(
                question_id=question.id,
                student_answer=submitted or None,
                correct_answer=correct,
                is_correct=is_correct,
                marks_awarded=max_marks if is_correct else Decimal("0"),
                max_marks=max_marks,
            )
        )

    return results


def calculate_percentage(score: Decimal, total_marks: Decimal) -> Decimal:
    if not total_marks:
        return Decimal("0")
    return Decimal(score) / Decimal(total_marks) * 100


def evaluate(
    questions: Iterable[Any],
    answers: Mapping[Any, Any],
    total_marks: Optional[Union[Decimal, float, int]] = None,
) -> Tuple[Decimal, Decimal]:
    """
    Grade a set of answers against a question set.

    Returns (score, percentage). total_marks defaults to the sum of the
    question marks; a total of zero yields a percentage of 0.
    """
    questions = list(questions)
    results = grade_answers(questions, answers)
    score = sum((r.marks_awarded for r in results), Decimal("0"))

    if total_marks is None:
        total = sum((Decimal(str(q.marks)) for q in questions), Decimal("0"))
    else:
        total = Decimal(str(total_marks))

    return score, calculate_percentage(score, total)
