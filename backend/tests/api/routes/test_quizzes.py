"""
Quiz components: authoring questions and scoring attempts over HTTP.
"""
import pytest
from httpx import AsyncClient

from lms_core.core.config import settings
from tests.utils.user import random_user_id, user_headers

pytestmark = pytest.mark.asyncio()

QUESTIONS = [
    {
        "type": "multiple_choice",
        "question": "2 + 2 = ?",
        "options": ["3", "4", "5"],
        "correct_answer": 1,
        "explanation": "Basic addition.",
    },
    {"type": "true_false", "question": "The sky is blue.", "correct_answer": "true"},
    {"type": "short_answer", "question": "Capital of France?", "correct_answer": "Paris", "points": 2},
]


async def create_quiz(client: AsyncClient, headers: dict[str, str], **settings_patch) -> dict:
    response = await client.post(
        f"{settings.API_V1_STR}/modules/module-1/components",
        headers=headers,
        json={"type": "quiz", "title": "Check"},
    )
    quiz_id = response.json()["id"]

    response = await client.patch(
        f"{settings.API_V1_STR}/components/{quiz_id}",
        headers=headers,
        json={"content": {"questions": QUESTIONS, **settings_patch}},
    )
    assert response.status_code == 200, response.text
    return response.json()["component"]


async def test_new_quiz_uses_defaults(client: AsyncClient) -> None:
    response = await client.post(
        f"{settings.API_V1_STR}/modules/module-1/components",
        headers=user_headers(random_user_id()),
        json={"type": "quiz", "title": "Check"},
    )

    content = response.json()["content"]
    assert content["questions"] == []
    assert content["passing_score"] == 70
    assert content["attempts_allowed"] == 3
    assert content["show_correct_answers"] is True


async def test_quiz_with_questions_is_complete(client: AsyncClient) -> None:
    headers = user_headers(random_user_id())
    quiz = await create_quiz(client, headers)

    response = await client.get(
        f"{settings.API_V1_STR}/components/{quiz['id']}/completeness", headers=headers
    )

    assert response.json()["is_complete"] is True
    assert all(q["id"] for q in quiz["content"]["questions"])


async def test_evaluate_attempt(client: AsyncClient) -> None:
    headers = user_headers(random_user_id())
    quiz = await create_quiz(client, headers, passing_score=50)
    mc, tf, short = (q["id"] for q in quiz["content"]["questions"])

    response = await client.post(
        f"{settings.API_V1_STR}/components/{quiz['id']}/attempts",
        headers=headers,
        json={
            "answers": [
                {"question_id": mc, "answer": 1},
                {"question_id": tf, "answer": False},
                {"question_id": short, "answer": " Paris "},
            ],
            "attempt_number": 1,
        },
    )

    assert response.status_code == 200
    result = response.json()
    assert result["total_score"] == 3
    assert result["max_score"] == 4
    assert result["percentage"] == 75
    assert result["passed"] is True
    assert result["timed_out"] is False
    assert [q["is_correct"] for q in result["per_question"]] == [True, False, True]
    assert result["per_question"][0]["explanation"] == "Basic addition."


async def test_attempt_past_time_limit_is_flagged(client: AsyncClient) -> None:
    headers = user_headers(random_user_id())
    quiz = await create_quiz(client, headers, time_limit=5)
    mc = quiz["content"]["questions"][0]["id"]

    response = await client.post(
        f"{settings.API_V1_STR}/components/{quiz['id']}/attempts",
        headers=headers,
        json={"answers": [{"question_id": mc, "answer": 1}], "elapsed_seconds": 301},
    )

    assert response.json()["timed_out"] is True
    assert response.json()["total_score"] == 1


async def test_attempts_beyond_limit_are_rejected(client: AsyncClient) -> None:
    headers = user_headers(random_user_id())
    quiz = await create_quiz(client, headers, attempts_allowed=1)

    response = await client.post(
        f"{settings.API_V1_STR}/components/{quiz['id']}/attempts",
        headers=headers,
        json={"answers": [], "attempt_number": 2},
    )

    assert response.status_code == 409
    assert response.json()["detail"] == "Attempt 2 exceeds the 1 attempts allowed"


async def test_hidden_answers(client: AsyncClient) -> None:
    headers = user_headers(random_user_id())
    quiz = await create_quiz(client, headers, show_correct_answers=False)

    response = await client.post(
        f"{settings.API_V1_STR}/components/{quiz['id']}/attempts",
        headers=headers,
        json={"answers": []},
    )

    assert all(q["correct_answer"] is None for q in response.json()["per_question"])


async def test_invalid_quiz_settings_are_rejected(client: AsyncClient) -> None:
    headers = user_headers(random_user_id())
    response = await client.post(
        f"{settings.API_V1_STR}/modules/module-1/components",
        headers=headers,
        json={"type": "quiz"},
    )

    patched = await client.patch(
        f"{settings.API_V1_STR}/components/{response.json()['id']}",
        headers=headers,
        json={"content": {"attempts_allowed": 0}},
    )

    assert patched.status_code == 422


async def test_attempt_on_other_kind(client: AsyncClient) -> None:
    headers = user_headers(random_user_id())
    response = await client.post(
        f"{settings.API_V1_STR}/modules/module-1/components",
        headers=headers,
        json={"type": "video"},
    )

    attempt = await client.post(
        f"{settings.API_V1_STR}/components/{response.json()['id']}/attempts",
        headers=headers,
        json={"answers": []},
    )

    assert attempt.status_code == 422


async def test_true_false_authored_as_boolean(client: AsyncClient) -> None:
    headers = user_headers(random_user_id())
    response = await client.post(
        f"{settings.API_V1_STR}/modules/module-1/components",
        headers=headers,
        json={"type": "quiz", "title": "Check"},
    )
    url = f"{settings.API_V1_STR}/components/{response.json()['id']}"

    patched = await client.patch(
        url,
        headers=headers,
        json={"content": {"questions": [{"type": "true_false", "question": "Ice floats.", "correct_answer": True}]}},
    )
    question = patched.json()["component"]["content"]["questions"][0]
    right = await client.post(
        f"{url}/attempts", headers=headers, json={"answers": [{"question_id": question["id"], "answer": True}]}
    )
    wrong = await client.post(
        f"{url}/attempts", headers=headers, json={"answers": [{"question_id": question["id"], "answer": False}]}
    )

    assert question["correct_answer"] == "true"
    assert right.json()["total_score"] == 1
    assert wrong.json()["total_score"] == 0


async def test_attempt_on_incomplete_quiz_is_rejected(client: AsyncClient) -> None:
    headers = user_headers(random_user_id())
    response = await client.post(
        f"{settings.API_V1_STR}/modules/module-1/components",
        headers=headers,
        json={"type": "quiz", "title": "Check"},
    )
    url = f"{settings.API_V1_STR}/components/{response.json()['id']}"
    await client.patch(
        url,
        headers=headers,
        json={"content": {"questions": [{"type": "true_false", "question": "", "correct_answer": 1}]}},
    )

    attempt = await client.post(f"{url}/attempts", headers=headers, json={"answers": []})

    assert attempt.status_code == 422
    assert attempt.json()["errors"] == [
        "Question 1: question text is empty",
        "Question 1: correct answer must be 'true' or 'false'",
    ]
