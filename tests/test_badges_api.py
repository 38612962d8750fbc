# tests/test_badges_api.py
import pytest
from fastapi.testclient import TestClient


@pytest.mark.badges
@pytest.mark.api
class TestBadgeCatalogAPI:

    def test_create_list_update_delete(self, client: TestClient, make_badge):
        badge = make_badge(icon_url="https://cdn.test/star.png")
        assert badge["is_active"] is True

        listed = client.get("/badges/", params={"search": badge["name"]}).json()
        assert [b["id"] for b in listed] == [badge["id"]]

        response = client.patch(f"/badges/{badge['id']}", json={"is_active": False, "description": "Retired"})
        assert response.status_code == 200
        assert response.json()["is_active"] is False
        assert response.json()["description"] == "Retired"
        assert response.json()["name"] == badge["name"]

        active = client.get("/badges/", params={"search": badge["name"], "active": True}).json()
        assert active == []

        assert client.delete(f"/badges/{badge['id']}").status_code == 200
        assert client.patch(f"/badges/{badge['id']}", json={"is_active": True}).status_code == 404

    def test_blank_name_is_rejected(self, client: TestClient):
        assert client.post("/badges/", json={"name": "   "}).status_code == 400


@pytest.mark.badges
@pytest.mark.api
class TestBookBadgesAPI:

    def test_attach_is_idempotent_and_clamps_threshold(self, client: TestClient, make_book, make_badge):
        book, badge = make_book(), make_badge()
        first = client.post(f"/books/{book['id']}/badges", json={"badge_id": badge["id"], "completion_threshold": 150})
        assert first.status_code == 200
        mapping = first.json()
        assert mapping["completion_threshold"] == 100
        assert mapping["award_method"] == "auto_on_book_complete"
        assert mapping["badge"]["id"] == badge["id"]

        again = client.post(f"/books/{book['id']}/badges", json={"badge_id": badge["id"], "award_method": "manual"})
        assert again.json()["id"] == mapping["id"]
        assert again.json()["award_method"] == "auto_on_book_complete"

        assert len(client.get(f"/books/{book['id']}/badges").json()) == 1
        assert client.delete(f"/books/{book['id']}/badges/{mapping['id']}").status_code == 200
        assert client.get(f"/books/{book['id']}/badges").json() == []

    def test_non_finite_threshold_is_rejected(self, client: TestClient, make_book, make_badge):
        book, badge = make_book(), make_badge()
        body = f'{{"badge_id": {badge["id"]}, "completion_threshold": NaN}}'
        response = client.post(f"/books/{book['id']}/badges", content=body, headers={"Content-Type": "application/json"})
        assert response.status_code == 422
        assert client.get(f"/books/{book['id']}/badges").json() == []

    def test_attach_to_missing_book_or_badge(self, client: TestClient, make_book, make_badge):
        book, badge = make_book(), make_badge()
        assert client.post("/books/987654/badges", json={"badge_id": badge["id"]}).status_code == 404
        assert client.post(f"/books/{book['id']}/badges", json={"badge_id": 987654}).status_code == 404


@pytest.mark.badges
@pytest.mark.api
class TestEarnedBadgesAPI:

    def test_completing_a_book_awards_auto_badges_once(self, client: TestClient, make_user, make_book, make_badge):
        student, book = make_user(), make_book()
        auto_badge, manual_badge, disabled_badge = make_badge(), make_badge(), make_badge()
        client.post(f"/books/{book['id']}/badges", json={"badge_id": auto_badge["id"]})
        client.post(f"/books/{book['id']}/badges", json={"badge_id": manual_badge["id"], "award_method": "manual"})
        client.post(f"/books/{book['id']}/badges", json={"badge_id": disabled_badge["id"], "is_enabled": False})

        response = client.post(f"/books/{book['id']}/complete", json={"user_id": student["id"]})
        assert response.status_code == 200
        result = response.json()
        assert result["progress"]["percent_complete"] == 100
        assert [b["badge_id"] for b in result["awarded_badges"]] == [auto_badge["id"]]
        assert result["message"] == "Book marked as completed. 1 badge awarded."

        again = client.post(f"/books/{book['id']}/complete", json={"user_id": student["id"]}).json()
        assert again["awarded_badges"] == []
        assert again["message"] == "Book marked as completed"

        earned = client.get(f"/users/{student['id']}/badges").json()["earned_badges"]
        assert [e["badge_id"] for e in earned] == [auto_badge["id"]]
        assert earned[0]["book"]["title"] == book["title"]

    def test_manual_award_and_display_order(self, client: TestClient, make_user, make_book, make_badge):
        student, teacher, book = make_user(), make_user(role="teacher"), make_book()
        first, second = make_badge(), make_badge()

        response = client.post(f"/users/{student['id']}/badges", json={"badge_id": first["id"]})
        assert response.status_code == 201
        assert response.json()["message"] == "Badge awarded"

        response = client.post(f"/users/{student['id']}/badges", json={
            "badge_id": second["id"],
            "book_id": book["id"],
            "awarded_by_id": teacher["id"],
            "note": "Great reading!",
        })
        assert response.status_code == 201
        assert response.json()["earned_badge"]["note"] == "Great reading!"

        duplicate = client.post(f"/users/{student['id']}/badges", json={"badge_id": first["id"]})
        assert duplicate.status_code == 200
        assert duplicate.json()["message"] == "Badge already earned"

        earned = client.get(f"/users/{student['id']}/badges").json()["earned_badges"]
        assert [e["badge_id"] for e in earned] == [second["id"], first["id"]]

        summary = client.get(f"/progress/{student['id']}/summary").json()
        assert [b["badge_id"] for b in summary["badges"]] == [second["id"], first["id"]]

    def test_award_unknown_badge(self, client: TestClient, make_user):
        student = make_user()
        assert client.post(f"/users/{student['id']}/badges", json={"badge_id": 987654}).status_code == 404
