"""
Shared fixtures: explicit settings, a TestClient wired to them and a fake
SMTP transport that records what would have been sent.
"""

import email
from unittest.mock import MagicMock, patch

import pytest
from fastapi.testclient import TestClient

from app.config import Settings, get_settings
from app.main import app

API_KEY = "test-api-key"
SENDER = "noreply@velocity.test"


@pytest.fixture
def settings():
    return Settings(
        email_host="smtp.velocity.test",
        email_port=587,
        email_user=SENDER,
        email_pass="smtp-password",
        email_api_key=API_KEY,
        frontend_url="https://velocity.test",
    )


@pytest.fixture
def client(settings):
    app.dependency_overrides[get_settings] = lambda: settings
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def auth_headers():
    return {"X-API-KEY": API_KEY}


@pytest.fixture
def transport():
    """Replace the SMTP transport factory; the fake is exposed with its factory mock"""
    fake = MagicMock()
    fake.__enter__.return_value = fake
    fake.__exit__.return_value = False
    with patch("app.email_service.create_transport", return_value=fake) as factory:
        fake.factory = factory
        yield fake


@pytest.fixture
def sent_message(transport):
    """Parse the raw message handed to the fake transport"""

    def _parse():
        assert transport.send.call_count == 1
        envelope_from, recipients, payload = transport.send.call_args.args
        return envelope_from, recipients, email.message_from_string(payload)

    return _parse
