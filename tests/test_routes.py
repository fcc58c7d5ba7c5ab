"""
Endpoint tests: preflight, method checks, payload validation, dispatch
outcomes and the health check.
"""

from unittest.mock import AsyncMock, patch

import pytest

from app.email_service import Attachment
from app.errors import AttachmentFetchError, AuthenticationError, UnreachableError

SENDER = "noreply@velocity.test"

SEND_PATHS = [
    "/api/send-job-alert",
    "/api/send-job-application",
    "/api/send-matching-job",
    "/api/send-proposal-approval",
    "/api/send-verification",
]

MATCHING_JOB = {
    "userEmail": "a@b.com",
    "jobTitle": "Engineer",
    "companyName": "Acme",
    "applyLink": "https://x",
}

JOB_APPLICATION = {
    "recruiterEmail": "hr@acme.com",
    "jobTitle": "Engineer",
    "companyName": "Acme",
    "applicantName": "Jane  Q Doe",
    "applicantEmail": "jane@example.com",
    "resumeUrl": "https://files.example.com/jane.pdf",
}


def _attachment_parts(message):
    return [part for part in message.walk() if part.get_content_disposition() == "attachment"]


class TestPreflightAndMethods:
    @pytest.mark.parametrize("path", SEND_PATHS)
    def test_options_returns_empty_200_with_cors_headers(self, client, transport, path):
        response = client.options(path)

        assert response.status_code == 200
        assert response.content == b""
        assert response.headers["access-control-allow-origin"] == "*"
        assert response.headers["access-control-allow-methods"] == "POST, OPTIONS"
        assert response.headers["access-control-allow-headers"] == "Content-Type, X-API-KEY"
        transport.factory.assert_not_called()

    def test_options_ignores_payload_and_auth(self, client, transport):
        response = client.request(
            "OPTIONS", "/api/send-job-alert", json={"jobs": []}, headers={"X-API-KEY": "wrong"}
        )

        assert response.status_code == 200
        assert response.content == b""

    @pytest.mark.parametrize("path", SEND_PATHS)
    def test_get_is_not_allowed(self, client, auth_headers, path):
        response = client.get(path, headers=auth_headers)

        assert response.status_code == 405
        assert response.json() == {"error": "Method not allowed"}
        assert response.headers["access-control-allow-origin"] == "*"

    def test_error_responses_carry_cors_headers(self, client, transport):
        response = client.post("/api/send-matching-job", json=MATCHING_JOB)

        assert response.status_code == 401
        assert response.headers["access-control-allow-methods"] == "POST, OPTIONS"


class TestHealth:
    def test_health_reports_service_and_endpoints(self, client):
        response = client.get("/api/health")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "ok"
        assert data["service"] == "velocity-email-service"
        assert data["timestamp"].endswith("Z")
        assert "/api/send-job-alert" in data["endpoints"]
        assert "/api/send-verification" in data["endpoints"]

    def test_health_needs_no_api_key_and_allows_get(self, client):
        response = client.get("/api/health")

        assert response.headers["access-control-allow-methods"] == "GET, OPTIONS"

    def test_health_preflight(self, client):
        response = client.options("/api/health")

        assert response.status_code == 200
        assert response.headers["access-control-allow-methods"] == "GET, OPTIONS"

    def test_post_to_health_is_not_allowed(self, client):
        assert client.post("/api/health").status_code == 405


class TestValidation:
    def test_job_alert_with_empty_jobs_returns_400(self, client, transport, auth_headers):
        response = client.post(
            "/api/send-job-alert",
            json={"userEmail": "a@b.com", "alertTitle": "Python", "jobs": []},
            headers=auth_headers,
        )

        assert response.status_code == 400
        assert response.json() == {"error": "jobs is required"}
        transport.factory.assert_not_called()

    def test_job_alert_without_user_email(self, client, transport, auth_headers):
        response = client.post(
            "/api/send-job-alert",
            json={
                "alertTitle": "Python",
                "jobs": [{"title": "Engineer", "company": "Acme", "applyLink": "https://x"}],
            },
            headers=auth_headers,
        )

        assert response.status_code == 400
        assert response.json() == {"error": "userEmail is required"}

    def test_job_alert_job_without_apply_link(self, client, transport, auth_headers):
        response = client.post(
            "/api/send-job-alert",
            json={
                "userEmail": "a@b.com",
                "alertTitle": "Python",
                "jobs": [{"title": "Engineer", "company": "Acme"}],
            },
            headers=auth_headers,
        )

        assert response.status_code == 400
        assert response.json() == {"error": "jobs[0].applyLink is required"}

    @pytest.mark.parametrize("field", ["userEmail", "jobTitle", "companyName", "applyLink"])
    def test_matching_job_required_fields(self, client, transport, auth_headers, field):
        payload = {key: value for key, value in MATCHING_JOB.items() if key != field}

        response = client.post("/api/send-matching-job", json=payload, headers=auth_headers)

        assert response.status_code == 400
        assert response.json() == {"error": f"{field} is required"}
        transport.factory.assert_not_called()

    def test_empty_string_counts_as_missing(self, client, transport, auth_headers):
        response = client.post(
            "/api/send-matching-job", json={**MATCHING_JOB, "jobTitle": ""}, headers=auth_headers
        )

        assert response.status_code == 400
        assert response.json() == {"error": "jobTitle is required"}

    def test_null_counts_as_missing(self, client, transport, auth_headers):
        response = client.post(
            "/api/send-verification", json={"email": None, "code": "123456"}, headers=auth_headers
        )

        assert response.status_code == 400
        assert response.json() == {"error": "email is required"}

    def test_zero_price_counts_as_missing(self, client, transport, auth_headers):
        response = client.post(
            "/api/send-proposal-approval",
            json={
                "studentEmail": "s@uni.edu",
                "challengeTitle": "Dashboard",
                "companyName": "Acme",
                "proposedPrice": 0,
                "estimatedDays": 3,
            },
            headers=auth_headers,
        )

        assert response.status_code == 400
        assert response.json() == {"error": "proposedPrice is required"}

    def test_wrong_type_is_reported_as_invalid(self, client, transport, auth_headers):
        response = client.post(
            "/api/send-proposal-approval",
            json={
                "studentEmail": "s@uni.edu",
                "challengeTitle": "Dashboard",
                "companyName": "Acme",
                "proposedPrice": 100,
                "estimatedDays": "soon",
            },
            headers=auth_headers,
        )

        assert response.status_code == 400
        assert response.json()["error"].startswith("estimatedDays is invalid")

    def test_null_is_remote_counts_as_not_remote(self, client, transport, auth_headers, sent_message):
        response = client.post(
            "/api/send-job-alert",
            json={
                "userEmail": "a@b.com",
                "alertTitle": "Python",
                "jobs": [{"title": "Engineer", "company": "Acme", "applyLink": "https://x", "isRemote": None}],
            },
            headers=auth_headers,
        )

        assert response.status_code == 200
        sent_message()

    @pytest.mark.parametrize("salary", [50000, True, ["50k"]])
    def test_unusable_salary_is_dropped(self, client, transport, auth_headers, sent_message, salary):
        response = client.post(
            "/api/send-matching-job", json={**MATCHING_JOB, "salary": salary}, headers=auth_headers
        )

        assert response.status_code == 200
        _, _, message = sent_message()
        text = next(
            part.get_payload(decode=True).decode("utf-8")
            for part in message.walk()
            if part.get_content_type() == "text/plain"
        )
        assert "50" not in text
        assert "USD" not in text

    def test_salary_error_names_the_nested_field(self, client, transport, auth_headers):
        response = client.post(
            "/api/send-matching-job",
            json={**MATCHING_JOB, "salary": {"min": "lots"}},
            headers=auth_headers,
        )

        assert response.status_code == 400
        assert response.json()["error"].startswith("salary.min is invalid")
        transport.factory.assert_not_called()

    def test_union_member_tags_are_left_out_of_field_path(self):
        from app.main import describe_validation_error

        error = {
            "type": "model_attributes_type",
            "loc": ("body", "jobs", 0, "salary", "Salary"),
            "msg": "Input should be a valid dictionary",
            "input": 50000,
        }

        assert describe_validation_error(error) == (
            "jobs[0].salary is invalid: Input should be a valid dictionary"
        )

    def test_missing_body_returns_400(self, client, transport, auth_headers):
        response = client.post("/api/send-verification", headers=auth_headers)

        assert response.status_code == 400
        assert response.json() == {"error": "Request body is required"}

    def test_numeric_code_is_accepted(self, client, transport, auth_headers, sent_message):
        response = client.post(
            "/api/send-verification", json={"email": "a@b.com", "code": 123456}, headers=auth_headers
        )

        assert response.status_code == 200
        _, _, message = sent_message()
        assert message["Subject"] == "Verify Your Fellowship Account"


class TestDispatch:
    def test_matching_job_end_to_end(self, client, transport, auth_headers, sent_message):
        response = client.post("/api/send-matching-job", json=MATCHING_JOB, headers=auth_headers)

        assert response.status_code == 200
        data = response.json()
        assert data["success"] is True
        assert isinstance(data["messageId"], str) and data["messageId"]

        transport.verify.assert_called_once()
        envelope_from, recipients, message = sent_message()
        assert envelope_from == SENDER
        assert recipients == ["a@b.com"]
        assert message["Message-ID"] == data["messageId"]

    def test_display_name_does_not_change_envelope(self, client, transport, auth_headers, sent_message):
        client.post("/api/send-matching-job", json=MATCHING_JOB, headers=auth_headers)

        envelope_from, _, message = sent_message()
        assert envelope_from == SENDER
        assert message["From"] == f"Velocity Jobs <{SENDER}>"

    def test_verification_uses_fellowship_sender(self, client, transport, auth_headers, sent_message):
        client.post(
            "/api/send-verification", json={"email": "a@b.com", "code": "123456"}, headers=auth_headers
        )

        _, _, message = sent_message()
        assert message["From"] == f"Velocity Fellowships <{SENDER}>"

    def test_verify_failure_returns_500_without_send(self, client, transport, auth_headers):
        transport.verify.side_effect = AuthenticationError(
            "SMTP authentication failed: 535 Username and Password not accepted"
        )

        response = client.post("/api/send-matching-job", json=MATCHING_JOB, headers=auth_headers)

        assert response.status_code == 500
        assert response.json() == {
            "error": "SMTP authentication failed: 535 Username and Password not accepted"
        }
        transport.send.assert_not_called()

    def test_unreachable_relay_returns_500(self, client, transport, auth_headers):
        transport.verify.side_effect = UnreachableError("Could not connect to smtp.velocity.test:587: timed out")

        response = client.post(
            "/api/send-verification", json={"email": "a@b.com", "code": "1"}, headers=auth_headers
        )

        assert response.status_code == 500
        assert "timed out" in response.json()["error"]

    def test_missing_sender_account_returns_500(self, client, transport, auth_headers, settings):
        from app.config import Settings, get_settings
        from app.main import app

        app.dependency_overrides[get_settings] = lambda: Settings(email_api_key=settings.email_api_key)

        response = client.post("/api/send-matching-job", json=MATCHING_JOB, headers=auth_headers)

        assert response.status_code == 500
        assert response.json() == {"error": "EMAIL_USER not configured in environment"}
        transport.factory.assert_not_called()

    def test_malformed_settings_return_json_500(self, client, transport, auth_headers, monkeypatch):
        from app.config import Settings, get_settings
        from app.main import app

        monkeypatch.setenv("EMAIL_PORT", "smtp")
        app.dependency_overrides[get_settings] = Settings.from_env

        response = client.post("/api/send-matching-job", json=MATCHING_JOB, headers=auth_headers)

        assert response.status_code == 500
        assert response.json() == {"error": "EMAIL_PORT must be an integer, got 'smtp'"}
        assert response.headers["access-control-allow-origin"] == "*"
        transport.factory.assert_not_called()

    def test_proposal_approval_uses_payload_frontend_url(
        self, client, transport, auth_headers, sent_message
    ):
        response = client.post(
            "/api/send-proposal-approval",
            json={
                "studentEmail": "s@uni.edu",
                "studentName": "Ravi",
                "challengeTitle": "Build a dashboard",
                "companyName": "Acme",
                "proposedPrice": 50000,
                "estimatedDays": 1,
                "chatRoomId": 42,
                "frontendUrl": "https://app.velocity.test",
            },
            headers=auth_headers,
        )

        assert response.status_code == 200
        _, recipients, message = sent_message()
        assert recipients == ["s@uni.edu"]
        text = next(
            part.get_payload(decode=True).decode("utf-8")
            for part in message.walk()
            if part.get_content_type() == "text/plain"
        )
        assert "Start conversation: https://app.velocity.test/fellowship/messages/42" in text
        assert "Timeline: 1 day\n" in text


class TestJobApplicationResume:
    def test_resume_fetch_failure_still_sends_without_attachment(
        self, client, transport, auth_headers, sent_message
    ):
        with patch(
            "app.email_service.fetch_resume_attachment",
            new=AsyncMock(side_effect=AttachmentFetchError("Could not fetch resume")),
        ):
            response = client.post(
                "/api/send-job-application", json=JOB_APPLICATION, headers=auth_headers
            )

        assert response.status_code == 200
        assert response.json()["success"] is True
        _, recipients, message = sent_message()
        assert recipients == ["hr@acme.com"]
        assert _attachment_parts(message) == []

    def test_resume_is_attached_when_fetched(self, client, transport, auth_headers, sent_message):
        attachment = Attachment(
            filename="Jane_Q_Doe_Resume.pdf", content=b"%PDF-1.4", content_type="application/pdf"
        )
        with patch(
            "app.email_service.fetch_resume_attachment", new=AsyncMock(return_value=attachment)
        ) as fetch:
            response = client.post(
                "/api/send-job-application", json=JOB_APPLICATION, headers=auth_headers
            )

        assert response.status_code == 200
        fetch.assert_awaited_once_with("https://files.example.com/jane.pdf", "Jane  Q Doe")
        _, _, message = sent_message()
        parts = _attachment_parts(message)
        assert len(parts) == 1
        assert parts[0].get_filename() == "Jane_Q_Doe_Resume.pdf"
        assert parts[0].get_content_type() == "application/pdf"
        assert parts[0].get_payload(decode=True) == b"%PDF-1.4"

    def test_no_resume_url_skips_fetch(self, client, transport, auth_headers):
        payload = {key: value for key, value in JOB_APPLICATION.items() if key != "resumeUrl"}
        with patch("app.email_service.fetch_resume_attachment", new=AsyncMock()) as fetch:
            response = client.post("/api/send-job-application", json=payload, headers=auth_headers)

        assert response.status_code == 200
        fetch.assert_not_awaited()
