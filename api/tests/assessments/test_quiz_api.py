"""Tests for the quiz attempt endpoints."""

from uuid import UUID, uuid4

from fastapi.testclient import TestClient

from src.assessments.models import Quiz
from src.progress.models import Enrollment


class TestSubmitAttemptEndpoint:
    """Tests for POST /v1/quizzes/{quiz_id}/attempts."""

    def test_submit(
        self,
        client: TestClient,
        auth_headers: dict[str, str],
        enrollment: Enrollment,
        quiz: Quiz,
    ) -> None:
        response = client.post(
            f"/v1/quizzes/{quiz.id}/attempts",
            json={"selected_options": [1, -1, 0, 2, 1]},
            headers=auth_headers,
        )

        assert response.status_code == 201
        data = response.json()
        assert data["score"] == 60
        assert data["outcome"] == "recorded"
        assert data["saved"] is True
        assert data["headline"] == "Good effort!"
        assert [a["correct"] for a in data["answers"]] == [True, False, True, True, False]

    def test_quiz_not_found(
        self, client: TestClient, auth_headers: dict[str, str], enrollment: Enrollment
    ) -> None:
        response = client.post(
            f"/v1/quizzes/{uuid4()}/attempts",
            json={"selected_options": [0]},
            headers=auth_headers,
        )

        assert response.status_code == 404

    def test_not_enrolled(
        self, client: TestClient, auth_headers: dict[str, str], quiz: Quiz
    ) -> None:
        response = client.post(
            f"/v1/quizzes/{quiz.id}/attempts",
            json={"selected_options": [1, 3, 0, 2, 0]},
            headers=auth_headers,
        )

        assert response.status_code == 404
        assert "enrolled" in response.json()["message"]

    def test_invalid_submission(
        self,
        client: TestClient,
        auth_headers: dict[str, str],
        enrollment: Enrollment,
        quiz: Quiz,
    ) -> None:
        response = client.post(
            f"/v1/quizzes/{quiz.id}/attempts",
            json={"selected_options": [1, 3]},
            headers=auth_headers,
        )

        assert response.status_code == 422

    def test_requires_identity(self, client: TestClient, quiz: Quiz) -> None:
        response = client.post(
            f"/v1/quizzes/{quiz.id}/attempts",
            json={"selected_options": [1, 3, 0, 2, 0]},
        )

        assert response.status_code == 401


class TestAttemptHistoryEndpoint:
    """Tests for GET /v1/quizzes/attempts."""

    def test_numbered_history(
        self,
        client: TestClient,
        auth_headers: dict[str, str],
        enrollment: Enrollment,
        quiz: Quiz,
        user_id: UUID,
    ) -> None:
        for options in ([0, 0, 0, 0, 0], [1, 3, 0, 2, 0]):
            response = client.post(
                f"/v1/quizzes/{quiz.id}/attempts",
                json={"selected_options": options},
                headers=auth_headers,
            )
            assert response.status_code == 201

        response = client.get(
            "/v1/quizzes/attempts",
            params={"quiz_id": str(quiz.id)},
            headers=auth_headers,
        )

        assert response.status_code == 200
        data = response.json()
        assert data["total"] == 2
        assert [(i["score"], i["attempt_number"]) for i in data["items"]] == [
            (100, 2),
            (40, 1),
        ]
        assert all(i["total_attempts"] == 2 for i in data["items"])

    def test_empty_history(
        self, client: TestClient, auth_headers: dict[str, str]
    ) -> None:
        response = client.get("/v1/quizzes/attempts", headers=auth_headers)

        assert response.status_code == 200
        assert response.json() == {"items": [], "total": 0}

    def test_attempt_store_unavailable(
        self, client: TestClient, auth_headers: dict[str, str], attempt_store
    ) -> None:
        attempt_store.fail_reads = True

        response = client.get("/v1/quizzes/attempts", headers=auth_headers)

        assert response.status_code == 503
