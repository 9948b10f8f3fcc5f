"""Tests for session tokens, scheduler credentials, log context, and mail delivery."""

import json
import uuid

import httpx
import jwt
import pytest

from automation_engine.core import security
from automation_engine.core.config import settings
from automation_engine.core.errors import DeliveryFailed
from automation_engine.core.structured_logging import build_log_context
from automation_engine.services.email_sender import (
    LogMailSender,
    RESEND_SEND_URL,
    ResendMailSender,
    get_mail_sender,
)


# =============================================================================
# Session tokens
# =============================================================================

def test_session_token_round_trip():
    user_id = uuid.uuid4()
    token = security.create_session_token(user_id, "founder", 3)

    payload = security.decode_session_token(token)

    assert payload["sub"] == str(user_id)
    assert payload["role"] == "founder"
    assert payload["token_version"] == 3


def test_previous_secret_still_verifies(monkeypatch):
    token = security.create_session_token(uuid.uuid4(), "intern", 1)
    monkeypatch.setattr(settings, "JWT_SECRET_PREVIOUS", settings.JWT_SECRET)
    monkeypatch.setattr(settings, "JWT_SECRET", "rotated-secret")

    assert security.decode_session_token(token)["role"] == "intern"


def test_foreign_token_is_rejected():
    token = jwt.encode({"sub": str(uuid.uuid4())}, "someone-else", algorithm="HS256")

    with pytest.raises(jwt.InvalidTokenError):
        security.decode_session_token(token)


# =============================================================================
# Scheduler credentials
# =============================================================================

@pytest.mark.parametrize(
    "header,expected",
    [
        ("Bearer abc", "abc"),
        ("bearer  abc ", "abc"),
        ("Basic abc", None),
        ("Bearer", None),
        (None, None),
    ],
)
def test_parse_bearer_token(header, expected):
    assert security.parse_bearer_token(header) == expected


def test_verify_cron_secret(monkeypatch):
    monkeypatch.setattr(settings, "CRON_SECRET", "s3cret")
    assert security.verify_cron_secret("s3cret")
    assert not security.verify_cron_secret("nope")
    assert not security.verify_cron_secret(None)

    monkeypatch.setattr(settings, "CRON_SECRET", "")
    assert not security.verify_cron_secret("")


# =============================================================================
# Log context
# =============================================================================

def test_build_log_context_drops_empty_fields():
    assert build_log_context(job="reminders", user_id=None, route="") == {"job": "reminders"}
    assert build_log_context(entity_type="alert", entity_id="a1") == {
        "entity_type": "alert",
        "entity_id": "a1",
    }


# =============================================================================
# Mail delivery
# =============================================================================

def test_resend_sender_posts_message():
    captured = {}

    def handler(request: httpx.Request) -> httpx.Response:
        captured["url"] = str(request.url)
        captured["headers"] = request.headers
        captured["body"] = json.loads(request.content)
        return httpx.Response(200, json={"id": "msg_1"})

    sender = ResendMailSender(
        api_key="re_test",
        from_email="Portal <noreply@example.org>",
        transport=httpx.MockTransport(handler),
    )
    sender.send("teacher@school.org", "Visit", "See you Monday", idempotency_key="reminder/1/teacher@school.org")

    assert captured["url"] == RESEND_SEND_URL
    assert captured["headers"]["Authorization"] == "Bearer re_test"
    assert captured["headers"]["Idempotency-Key"] == "reminder/1/teacher@school.org"
    assert captured["body"]["to"] == ["teacher@school.org"]
    assert captured["body"]["text"] == "See you Monday"


def test_resend_error_raises_delivery_failed():
    transport = httpx.MockTransport(lambda request: httpx.Response(422, json={"message": "Invalid `to`"}))
    sender = ResendMailSender(api_key="re_test", from_email="a@b.org", transport=transport)

    with pytest.raises(DeliveryFailed) as exc:
        sender.send("bad", "s", "b")
    assert "422" in exc.value.message


def test_resend_transport_error_raises_delivery_failed():
    def handler(request):
        raise httpx.ConnectError("refused", request=request)

    sender = ResendMailSender(api_key="re_test", from_email="a@b.org", transport=httpx.MockTransport(handler))

    with pytest.raises(DeliveryFailed):
        sender.send("teacher@school.org", "s", "b")


def test_get_mail_sender_selects_by_key(monkeypatch):
    monkeypatch.setattr(settings, "RESEND_API_KEY", "")
    assert isinstance(get_mail_sender(), LogMailSender)

    monkeypatch.setattr(settings, "RESEND_API_KEY", "re_live")
    sender = get_mail_sender()
    assert isinstance(sender, ResendMailSender)
    assert sender.api_key == "re_live"
