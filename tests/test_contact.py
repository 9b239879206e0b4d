"""Tests for the public contact form."""

from portfolio_api.models import ContactMessage

_MESSAGE = {
    "name": "Jordan",
    "email": "jordan@example.com",
    "subject": "Project inquiry",
    "message": "Hi,\nAre you available next month?",
}


class TestSubmitContact:
    """POST /contact stores the message and notifies the owner."""

    def test_stores_and_notifies(self, client, mailer, db) -> None:
        response = client.post("/contact", json=_MESSAGE)

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["messageId"].startswith("msg_")

        stored = db.query(ContactMessage).filter(ContactMessage.id == body["messageId"]).first()
        assert stored.email == "jordan@example.com"
        assert stored.read is False

        assert len(mailer.sent) == 1
        assert mailer.sent[0]["to"] == "owner@example.com"
        assert mailer.sent[0]["subject"] == "Portfolio Contact: Project inquiry"
        assert "Are you available next month?" in mailer.sent[0]["text"]

    def test_html_part_escapes_user_input(self, client, mailer) -> None:
        client.post("/contact", json=dict(_MESSAGE, name="<script>alert(1)</script>"))
        assert "<script>" not in mailer.sent[0]["html"]

    def test_missing_fields(self, client) -> None:
        response = client.post("/contact", json={"name": "Jordan"})

        assert response.status_code == 400
        assert set(response.json()["required"]) == {"email", "subject", "message"}

    def test_invalid_email(self, client) -> None:
        response = client.post("/contact", json=dict(_MESSAGE, email="not-an-email"))

        assert response.status_code == 400
        assert response.json()["fields"] == ["email"]

    def test_ip_blocked_after_five_submissions(self, client) -> None:
        for i in range(5):
            response = client.post("/contact", json=dict(_MESSAGE, email=f"person{i}@example.com"))
            assert response.status_code == 200

        blocked = client.post("/contact", json=dict(_MESSAGE, email="someone.else@example.com"))

        assert blocked.status_code == 429
        assert int(blocked.headers["Retry-After"]) == 2 * 60 * 60
        assert "blocked for 120 minutes" in blocked.json()["error"]

        still_blocked = client.post("/contact", json=dict(_MESSAGE, email="another@example.com"))
        assert still_blocked.status_code == 429
        assert "try again in" in still_blocked.json()["error"]

    def test_email_blocked_after_three_submissions(self, client) -> None:
        for i in range(3):
            response = client.post(
                "/contact",
                json=_MESSAGE,
                headers={"X-Forwarded-For": f"198.51.100.{i}"},
            )
            assert response.status_code == 200

        blocked = client.post(
            "/contact",
            json=dict(_MESSAGE, email="JORDAN@example.com"),
            headers={"X-Forwarded-For": "198.51.100.99"},
        )
        assert blocked.status_code == 429

    def test_mail_failure(self, client, mailer) -> None:
        mailer.error = TimeoutError("smtp timeout")

        response = client.post("/contact", json=_MESSAGE)

        assert response.status_code == 500
        assert response.json()["error"] == "Failed to process your request"
