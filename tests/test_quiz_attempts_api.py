# tests/test_quiz_attempts_api.py
import pytest
from fastapi.testclient import TestClient


def submit(client: TestClient, user_id: int, book_id: int, correct: int, total: int, **extra):
    payload = {"user_id": user_id, "book_id": book_id, "score_correct": correct, "score_total": total}
    payload.update(extra)
    return client.post("/quiz-attempts/", json=payload)


@pytest.mark.api
class TestQuizAttemptsAPI:

    def test_submit_computes_percentage_and_attempt_number(self, client: TestClient, make_user, make_book):
        student, book = make_user(), make_book()

        first = submit(client, student["id"], book["id"], 2, 3)
        assert first.status_code == 201
        assert first.json()["percentage"] == 67
        assert first.json()["attempt_number"] == 1
        assert first.json()["mode"] == "retry"

        second = submit(client, student["id"], book["id"], 3, 3, mode="straight", duration_sec=42)
        assert second.status_code == 201
        assert second.json()["attempt_number"] == 2
        assert second.json()["mode"] == "straight"
        assert second.json()["duration_sec"] == 42

    def test_given_percentage_is_rounded(self, client: TestClient, make_user, make_book):
        student, book = make_user(), make_book()
        response = submit(client, student["id"], book["id"], 1, 2, percentage=62.5)
        assert response.json()["percentage"] == 63

    @pytest.mark.parametrize("literal", ["NaN", "Infinity", "-Infinity"])
    def test_non_finite_percentage_is_rejected(self, client: TestClient, make_user, make_book, literal):
        student, book = make_user(), make_book()
        body = (
            f'{{"user_id": {student["id"]}, "book_id": {book["id"]}, '
            f'"score_correct": 1, "score_total": 2, "percentage": {literal}}}'
        )
        response = client.post("/quiz-attempts/", content=body, headers={"Content-Type": "application/json"})
        assert response.status_code == 422
        assert client.get("/quiz-attempts/", params={"user_id": student["id"]}).json()["count"] == 0

    def test_unknown_mode_is_stored_as_retry(self, client: TestClient, make_user, make_book):
        student, book = make_user(), make_book()
        assert submit(client, student["id"], book["id"], 1, 2, mode="timed").json()["mode"] == "retry"

    @pytest.mark.parametrize("correct, total", [(1, 0), (-1, 5), (6, 5)])
    def test_invalid_scores(self, client: TestClient, make_user, make_book, correct, total):
        student, book = make_user(), make_book()
        assert submit(client, student["id"], book["id"], correct, total).status_code == 400

    def test_negative_duration(self, client: TestClient, make_user, make_book):
        student, book = make_user(), make_book()
        assert submit(client, student["id"], book["id"], 1, 2, duration_sec=-5).status_code == 400

    def test_missing_user_or_book(self, client: TestClient, make_user, make_book):
        student, book = make_user(), make_book()
        assert submit(client, 987654, book["id"], 1, 2).status_code == 404
        assert submit(client, student["id"], 987654, 1, 2).status_code == 404

    def test_list_filters_and_latest_per_book(self, client: TestClient, make_user, make_book):
        student, book_a, book_b = make_user(), make_book(), make_book()
        submit(client, student["id"], book_a["id"], 1, 5)
        submit(client, student["id"], book_a["id"], 4, 5)
        submit(client, student["id"], book_b["id"], 2, 5)

        response = client.get("/quiz-attempts/", params={"user_id": student["id"]})
        assert response.status_code == 200
        data = response.json()
        assert data["count"] == 3
        # Newest first
        assert [a["score_correct"] for a in data["attempts"]] == [2, 4, 1]

        response = client.get("/quiz-attempts/", params={"user_id": student["id"], "book_id": book_a["id"]})
        assert response.json()["count"] == 2

        response = client.get("/quiz-attempts/", params={"user_id": student["id"], "latest_per_book": True})
        latest = {a["book_id"]: a for a in response.json()["attempts"]}
        assert latest[book_a["id"]]["score_correct"] == 4
        assert latest[book_a["id"]]["attempt_number"] == 2
        assert latest[book_b["id"]]["score_correct"] == 2
