import pytest
from pydantic import ValidationError

from lms_core.core.errors import AttemptsExceeded, InvalidContentShape
from lms_core.core.quiz import (
    UNLIMITED_ATTEMPTS,
    ensure_attempt_allowed,
    evaluate_attempt,
    is_correct_answer,
    score_question,
)
from lms_core.models import QuestionType, QuizAnswer, QuizAttempt, QuizContent, QuizQuestion
from tests.utils.quiz import make_question, make_quiz


def attempt(*answers: tuple[str, object], number: int = 1, elapsed: int | None = None) -> QuizAttempt:
    return QuizAttempt(
        answers=[QuizAnswer(question_id=qid, answer=value) for qid, value in answers],
        attempt_number=number,
        elapsed_seconds=elapsed,
    )


def test_one_of_two_correct_passes_at_fifty_percent() -> None:
    """Two one-point questions, passing score 50, one answered correctly."""
    quiz = make_quiz(passing_score=50)
    first, second = quiz.questions

    result = evaluate_attempt(quiz, attempt((first.id, 0), (second.id, 3)))

    assert result.total_score == 1
    assert result.max_score == 2
    assert result.percentage == 50
    assert result.passed is True
    assert [r.is_correct for r in result.per_question] == [True, False]


def test_all_correct_gives_full_score() -> None:
    quiz = make_quiz(passing_score=100)
    first, second = quiz.questions

    result = evaluate_attempt(quiz, attempt((first.id, 0), (second.id, 1)))

    assert result.total_score == result.max_score == 2
    assert result.passed


def test_points_are_weighted() -> None:
    quiz = make_quiz(
        [make_question(correct_answer=0, points=3), make_question(correct_answer=0, points=1)],
        passing_score=70,
    )
    first, second = quiz.questions

    result = evaluate_attempt(quiz, attempt((first.id, 0), (second.id, 2)))

    assert result.total_score == 3
    assert result.max_score == 4
    assert result.percentage == 75
    assert result.passed


def test_evaluation_is_deterministic() -> None:
    quiz = make_quiz()
    answers = attempt((quiz.questions[0].id, 0), (quiz.questions[1].id, 0))

    assert evaluate_attempt(quiz, answers) == evaluate_attempt(quiz, answers)


def test_unanswered_questions_score_zero() -> None:
    quiz = make_quiz()

    result = evaluate_attempt(quiz, attempt())

    assert result.total_score == 0
    assert result.passed is False
    assert all(r.answer is None for r in result.per_question)


def test_later_answer_to_same_question_wins() -> None:
    quiz = make_quiz()
    first = quiz.questions[0]

    result = evaluate_attempt(quiz, attempt((first.id, 2), (first.id, 0)))

    assert result.per_question[0].is_correct
    assert result.per_question[0].answer == 0


def test_answers_to_unknown_questions_are_ignored() -> None:
    quiz = make_quiz()

    result = evaluate_attempt(quiz, attempt(("not-a-question", 0)))

    assert result.total_score == 0
    assert len(result.per_question) == 2


def test_quiz_without_questions_never_passes() -> None:
    result = evaluate_attempt(QuizContent(title="Empty", passing_score=0), attempt())

    assert result.max_score == 0
    assert result.percentage == 0
    assert result.passed is False


@pytest.mark.parametrize("answer, expected", [(1, True), (0, False), (True, False), ("1", False)])
def test_multiple_choice_needs_exact_index(answer, expected: bool) -> None:
    question = make_question(correct_answer=1)

    assert is_correct_answer(question, answer) is expected


@pytest.mark.parametrize(
    "answer, expected",
    [(True, True), ("true", True), (" TRUE ", True), (0, True), (False, False), ("false", False), (1, False), ("yes", False)],
)
def test_true_false_normalization(answer, expected: bool) -> None:
    question = make_question(QuestionType.TRUE_FALSE, correct_answer="true")

    assert is_correct_answer(question, answer) is expected


@pytest.mark.parametrize(
    "answer, expected",
    [("Paris", True), ("  Paris ", True), ("paris", False), ("Paris.", False), (None, False)],
)
def test_short_answer_is_trimmed_and_case_sensitive(answer, expected: bool) -> None:
    question = make_question(QuestionType.SHORT_ANSWER, correct_answer="Paris")

    assert is_correct_answer(question, answer) is expected


def test_score_question_awards_points_only_when_correct() -> None:
    question = make_question(correct_answer=2, points=5, explanation="C is right")

    right = score_question(question, 2)
    wrong = score_question(question, 1, reveal=True)

    assert (right.points_awarded, right.points_possible) == (5, 5)
    assert right.correct_answer is None
    assert wrong.points_awarded == 0
    assert wrong.correct_answer == 2
    assert wrong.explanation == "C is right"


def test_hidden_correct_answers() -> None:
    quiz = make_quiz(show_correct_answers=False)

    result = evaluate_attempt(quiz, attempt())

    assert all(r.correct_answer is None and r.explanation is None for r in result.per_question)


def test_attempt_ceiling_is_checked_before_scoring() -> None:
    quiz = make_quiz(attempts_allowed=2)

    assert evaluate_attempt(quiz, attempt(number=2)).attempt_number == 2
    with pytest.raises(AttemptsExceeded):
        evaluate_attempt(quiz, attempt(number=3))


def test_unlimited_attempts() -> None:
    quiz = make_quiz(attempts_allowed=UNLIMITED_ATTEMPTS)

    ensure_attempt_allowed(quiz, 1000)


def test_zero_attempts_is_not_a_valid_quiz() -> None:
    with pytest.raises(ValidationError):
        QuizContent(attempts_allowed=0)


def test_timed_out_attempt_is_still_scored() -> None:
    quiz = make_quiz(time_limit=1)
    first = quiz.questions[0]

    result = evaluate_attempt(quiz, attempt((first.id, 0), elapsed=61))

    assert result.timed_out is True
    assert result.total_score == 1


def test_attempt_within_time_limit() -> None:
    quiz = make_quiz(time_limit=1)

    assert evaluate_attempt(quiz, attempt(elapsed=60)).timed_out is False
    assert evaluate_attempt(make_quiz(), attempt(elapsed=10_000)).timed_out is False


@pytest.mark.parametrize("stored, expected", [(True, "true"), (False, "false"), (" FALSE ", "false")])
def test_true_false_answer_is_stored_as_text(stored, expected: str) -> None:
    question = QuizQuestion.model_validate(
        {"type": "true_false", "question": "Water is wet.", "correct_answer": stored}
    )

    assert question.correct_answer == expected


def test_true_false_authored_as_boolean_scores_by_value() -> None:
    question = QuizQuestion.model_validate(
        {"type": "true_false", "question": "Water is wet.", "correct_answer": True}
    )

    assert is_correct_answer(question, True) is True
    assert is_correct_answer(question, "true") is True
    assert is_correct_answer(question, False) is False


def test_true_false_with_index_answer_never_scores() -> None:
    question = make_question(QuestionType.TRUE_FALSE, correct_answer=1)

    assert is_correct_answer(question, 1) is False
    assert is_correct_answer(question, False) is False


def test_multiple_choice_answer_cannot_be_a_boolean() -> None:
    with pytest.raises(ValidationError):
        make_question(correct_answer=True)


def test_quiz_with_unscorable_question_is_not_evaluated() -> None:
    quiz = make_quiz([make_question(), make_question(QuestionType.TRUE_FALSE, correct_answer=1)])

    with pytest.raises(InvalidContentShape) as exc_info:
        evaluate_attempt(quiz, attempt((quiz.questions[0].id, 0)))

    assert exc_info.value.errors == ["Question 2: correct answer must be 'true' or 'false'"]
