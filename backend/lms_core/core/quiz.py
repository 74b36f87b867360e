import logging
from typing import Any

from lms_core.core.content import question_problems
from lms_core.core.errors import AttemptsExceeded, InvalidContentShape
from lms_core.models import (
    AttemptResult,
    QuestionResult,
    QuestionType,
    QuizAttempt,
    QuizContent,
    QuizQuestion,
)

logger = logging.getLogger(__name__)

UNLIMITED_ATTEMPTS = -1

# Rendered true/false questions show "true" as option 0 and "false" as option 1.
_TRUE_FALSE_OPTIONS = {0: "true", 1: "false"}


def _normalize_true_false(value: Any) -> str | None:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, int):
        return _TRUE_FALSE_OPTIONS.get(value)
    if isinstance(value, str):
        normalized = value.strip().lower()
        if normalized in ("true", "false"):
            return normalized
    return None


def is_correct_answer(question: QuizQuestion, answer: Any) -> bool:
    """Compare an answer with the question's correct answer.

    multiple_choice: exact option index, no partial credit.
    true_false: the answer normalized to "true"/"false", option indexes included.
    short_answer: case-sensitive match after trimming whitespace.
    """
    if answer is None:
        return False

    if question.type == QuestionType.MULTIPLE_CHOICE:
        if isinstance(answer, bool) or not isinstance(answer, int):
            return False
        expected = question.correct_answer
        if isinstance(expected, bool) or not isinstance(expected, int):
            return False
        return answer == expected

    if question.type == QuestionType.TRUE_FALSE:
        expected = question.correct_answer
        if expected not in ("true", "false"):
            return False
        return _normalize_true_false(answer) == expected

    if question.type == QuestionType.SHORT_ANSWER:
        expected = question.correct_answer
        if not isinstance(answer, str) or not isinstance(expected, str):
            return False
        return bool(expected.strip()) and answer.strip() == expected.strip()

    return False


def score_question(
    question: QuizQuestion, answer: Any, reveal: bool = False
) -> QuestionResult:
    """Score a single answer.

    :param question: the question being answered.
    :param answer: the learner's answer, None when skipped.
    :param reveal: include the correct answer and explanation in the result.
    :returns: QuestionResult with points_awarded = points if correct, else 0.
    """
    correct = is_correct_answer(question, answer)
    return QuestionResult(
        question_id=question.id,
        is_correct=correct,
        points_awarded=question.points if correct else 0,
        points_possible=question.points,
        answer=answer,
        correct_answer=question.correct_answer if reveal else None,
        explanation=question.explanation if reveal else None,
    )


def ensure_attempt_allowed(quiz: QuizContent, attempt_number: int) -> None:
    """Raise AttemptsExceeded when the attempt ceiling is already reached.

    Keeping attempt history is up to the caller; it passes the number of the
    attempt being made.
    """
    if quiz.attempts_allowed == UNLIMITED_ATTEMPTS:
        return
    if attempt_number > quiz.attempts_allowed:
        raise AttemptsExceeded(
            f"Attempt {attempt_number} exceeds the {quiz.attempts_allowed} attempts allowed"
        )


def is_timed_out(quiz: QuizContent, elapsed_seconds: int | None) -> bool:
    if quiz.time_limit is None or elapsed_seconds is None:
        return False
    return elapsed_seconds > quiz.time_limit * 60


def evaluate_attempt(quiz: QuizContent, attempt: QuizAttempt) -> AttemptResult:
    """Score a full quiz attempt.

    Stateless and deterministic. Answers are matched to questions by id and a
    later answer to the same question replaces an earlier one. An attempt past
    the time limit is still scored on whatever was answered, and flagged.

    :param quiz: the quiz definition.
    :param attempt: the answers, the attempt number and the elapsed time.
    :raises AttemptsExceeded: before scoring, when the ceiling is already reached.
    :raises InvalidContentShape: when a question cannot be scored.
    :returns: AttemptResult with totals, verdict and per-question detail.
    """
    ensure_attempt_allowed(quiz, attempt.attempt_number)
    problems = [
        problem
        for position, question in enumerate(quiz.questions, start=1)
        for problem in question_problems(question, position)
    ]
    if problems:
        raise InvalidContentShape("Quiz has questions that cannot be scored", problems)

    question_ids = {question.id for question in quiz.questions}
    answer_map: dict[str, Any] = {}
    for answer in attempt.answers:
        if answer.question_id not in question_ids:
            logger.warning("Question ID %s not found in quiz %r", answer.question_id, quiz.title)
            continue
        answer_map[answer.question_id] = answer.answer

    per_question = [
        score_question(
            question,
            answer_map.get(question.id),
            reveal=quiz.show_correct_answers,
        )
        for question in quiz.questions
    ]

    max_score = sum(question.points for question in quiz.questions)
    total_score = sum(result.points_awarded for result in per_question)
    percentage = total_score / max_score * 100 if max_score else 0.0
    passed = max_score > 0 and percentage >= quiz.passing_score

    timed_out = is_timed_out(quiz, attempt.elapsed_seconds)
    if timed_out:
        logger.info(
            "Quiz attempt %d ran past the %d minute limit",
            attempt.attempt_number,
            quiz.time_limit,
        )

    return AttemptResult(
        total_score=total_score,
        max_score=max_score,
        percentage=percentage,
        passed=passed,
        timed_out=timed_out,
        attempt_number=attempt.attempt_number,
        per_question=per_question,
    )
