from datetime import datetime, timedelta

import pytest

from ticket_invoice import auth
from ticket_invoice.errors import AuthError, ConflictError, ValidationError
from ticket_invoice.models import RegisterRequest, UserType


def test_hash_and_verify():
    stored = auth.hash_password("secret123")
    assert stored.startswith("pbkdf2_sha256$")
    assert auth.verify_password("secret123", stored)
    assert not auth.verify_password("wrong", stored)
    assert not auth.verify_password("secret123", "garbage")


def test_company_registration_creates_company(company_user):
    assert company_user.user_type == UserType.COMPANY
    assert company_user.company.name == "Cafe Acme SL"
    assert company_user.company_id == company_user.company.id
    assert company_user.api_token


def test_client_registration_has_no_company(client_user):
    assert client_user.company is None
    assert client_user.company_id is None


def test_duplicate_email_and_nif(session, company_user):
    req = RegisterRequest(
        email="OWNER@acme.es", password="secret123", name="X", nif="X0000000T",
        address="a", postal_code="1",
    )
    with pytest.raises(ConflictError) as exc_info:
        auth.register_user(session, req)
    assert exc_info.value.context["field"] == "email"

    req = req.model_copy(update={"email": "new@acme.es", "nif": "b-12345678"})
    with pytest.raises(ConflictError) as exc_info:
        auth.register_user(session, req)
    assert exc_info.value.context["field"] == "nif"


def test_short_password_is_rejected(session):
    req = RegisterRequest(
        email="a@b.es", password="123", name="X", nif="X0000000T", address="a", postal_code="1"
    )
    with pytest.raises(ValidationError):
        auth.register_user(session, req)


def test_login_issues_new_token(session, company_user):
    old_token = company_user.api_token
    user, token = auth.login(session, " Owner@Acme.es ", "secret123")
    assert user.id == company_user.id
    assert token != old_token
    assert auth.user_for_token(session, token).id == user.id


def test_bad_credentials(session, company_user):
    with pytest.raises(AuthError):
        auth.login(session, "owner@acme.es", "nope")
    with pytest.raises(AuthError):
        auth.user_for_token(session, "unknown")
    with pytest.raises(AuthError):
        auth.user_for_token(session, None)


def test_password_reset_flow(session, company_user, reset_outbox):
    now = datetime(2024, 3, 1, 12, 0)
    token = auth.forgot_password(session, "owner@acme.es", now=now)

    assert reset_outbox[0]["to"] == "owner@acme.es"
    assert reset_outbox[0]["url"].endswith(f"/reset-password?token={token}")

    auth.reset_password(session, token, "newsecret", now=now + timedelta(minutes=30))
    assert auth.login(session, "owner@acme.es", "newsecret")[0].id == company_user.id

    with pytest.raises(ValidationError):
        auth.reset_password(session, token, "another1", now=now + timedelta(minutes=31))


def test_expired_reset_token(session, company_user):
    now = datetime(2024, 3, 1, 12, 0)
    token = auth.forgot_password(session, "owner@acme.es", now=now)
    with pytest.raises(ValidationError):
        auth.reset_password(session, token, "newsecret", now=now + timedelta(hours=2))


def test_forgot_password_for_unknown_email(session, reset_outbox):
    assert auth.forgot_password(session, "ghost@nowhere.es") is None
    assert reset_outbox == []


def test_reset_email_failure_does_not_abort(session, company_user, monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setattr(auth, "send_password_reset_email", lambda to, url: (False, "SMTP not configured"))
    assert auth.forgot_password(session, "owner@acme.es")
