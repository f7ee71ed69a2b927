"""Automatic scoring of objective quiz questions.

Answers are stored per attempt as ``{"<question id>": answer}`` where the answer is
an option id (multiple choice), a boolean-ish value (true/false), a list of option
ids (multiple answer) or free text (short answer / essay). Free-text questions
always score 0 here and wait for a grader.
"""

from collections.abc import Iterable, Mapping
from decimal import Decimal, ROUND_HALF_UP
from typing import Any

from LearningManagementApp.core.choices import QuestionType, OBJECTIVE_QUESTION_TYPES

TRUE_STRINGS = frozenset({"1", "true", "on", "yes"})
FALSE_STRINGS = frozenset({"0", "false", "off", "no"})
TWO_PLACES = Decimal("0.01")


def parse_boolean(value: Any) -> bool | None:
    """Lenient boolean parse; None when the value is not recognisably true or false."""
    if isinstance(value, bool):
        return value
    if isinstance(value, int):
        return {1: True, 0: False}.get(value)
    if isinstance(value, str):
        text = value.strip().lower()
        if text in TRUE_STRINGS:
            return True
        if text in FALSE_STRINGS:
            return False
    return None


def as_option_id(value: Any) -> int | None:
    """Accept ints and digit strings as option ids."""
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str) and value.strip().isdigit():
        return int(value.strip())
    return None


def is_answered(value: Any) -> bool:
    return value is not None and value != "" and value != []


def normalise_answers(answers: Mapping[Any, Any]) -> dict[str, Any]:
    """Stringify question id keys so JSON round trips do not change lookups."""
    return {str(key): value for key, value in answers.items()}


def _correct_options(question) -> list:
    return [option for option in question.options.all() if option.is_correct]


def score_question(question, answer: Any) -> Decimal:
    """Points earned for one answer; all or nothing per question."""
    if not is_answered(answer) or question.question_type not in OBJECTIVE_QUESTION_TYPES:
        return Decimal("0")
    points = Decimal(question.points)

    if question.question_type == QuestionType.MULTIPLE_CHOICE:
        correct = _correct_options(question)
        if correct and as_option_id(answer) == correct[0].id:
            return points

    elif question.question_type == QuestionType.TRUE_FALSE:
        correct = _correct_options(question)
        expected = parse_boolean(correct[0].option_text if correct else question.correct_answer)
        given = parse_boolean(answer)
        if expected is not None and given is expected:
            return points

    elif question.question_type == QuestionType.MULTIPLE_ANSWER:
        if not isinstance(answer, list):
            return Decimal("0")
        chosen = [as_option_id(item) for item in answer]
        if None in chosen:
            return Decimal("0")
        expected_ids = sorted(option.id for option in _correct_options(question))
        if expected_ids and sorted(chosen) == expected_ids:
            return points

    return Decimal("0")


def grade_answers(questions: Iterable, answers: Mapping[str, Any]) -> Decimal:
    """Total auto-graded score, rounded to two decimals."""
    total = sum(
        (score_question(question, answers.get(str(question.id))) for question in questions),
        Decimal("0"),
    )
    return total.quantize(TWO_PLACES, rounding=ROUND_HALF_UP)


def all_objective(questions: Iterable) -> bool:
    """True when every question can be scored without a grader."""
    return all(question.question_type in OBJECTIVE_QUESTION_TYPES for question in questions)
