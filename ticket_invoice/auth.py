# ticket_invoice/auth.py
"""Accounts: registration, login, API tokens and password resets."""
from __future__ import annotations

import hashlib
import hmac
import logging
import secrets
from datetime import datetime, timedelta
from typing import Optional, Tuple

from sqlalchemy import select
from sqlalchemy.orm import Session

from . import config
from .entities import Company, User
from .errors import AuthError, ConflictError, ValidationError
from .mailer import send_password_reset_email
from .models import RegisterRequest, UserType
from .validator import normalize_nif, validate_password, validate_registration

logger = logging.getLogger(__name__)

PBKDF2_ITERATIONS = 260_000
RESET_TOKEN_TTL = timedelta(hours=1)


def hash_password(password: str, salt: Optional[str] = None) -> str:
    salt = salt or secrets.token_hex(16)
    digest = hashlib.pbkdf2_hmac("sha256", password.encode("utf-8"), bytes.fromhex(salt), PBKDF2_ITERATIONS)
    return f"pbkdf2_sha256${PBKDF2_ITERATIONS}${salt}${digest.hex()}"


def verify_password(password: str, stored: str) -> bool:
    try:
        _, iterations, salt, expected = stored.split("$")
        digest = hashlib.pbkdf2_hmac("sha256", password.encode("utf-8"), bytes.fromhex(salt), int(iterations))
    except ValueError:
        return False
    return hmac.compare_digest(digest.hex(), expected)


def _issue_token(user: User) -> str:
    user.api_token = secrets.token_hex(32)
    return user.api_token


def register_user(session: Session, req: RegisterRequest) -> Tuple[User, str]:
    req = validate_registration(req)

    if session.scalars(select(User).where(User.email == req.email)).first():
        raise ConflictError("Email already registered", field="email")
    if session.scalars(select(User).where(User.nif == req.nif)).first():
        raise ConflictError("NIF/CIF already registered", field="nif")

    user = User(
        email=req.email,
        password_hash=hash_password(req.password),
        name=req.name.strip(),
        nif=req.nif,
        address=req.address,
        postal_code=req.postal_code,
        phone=req.phone or None,
        user_type=req.user_type,
    )
    if req.user_type == UserType.COMPANY and req.company is not None:
        company = req.company
        user.company = Company(
            name=company.name,
            nif=normalize_nif(company.nif) or req.nif,
            address=company.address or req.address,
            postal_code=company.postal_code or req.postal_code,
            email=company.email or req.email,
            phone=company.phone or req.phone or "",
        )

    token = _issue_token(user)
    session.add(user)
    session.flush()
    logger.info("Registered %s user %s", user.user_type.value, user.email)
    return user, token


def login(session: Session, email: str, password: str) -> Tuple[User, str]:
    if not email or not password:
        raise ValidationError("Email and password are required")
    user = session.scalars(select(User).where(User.email == email.strip().lower())).first()
    if user is None or not verify_password(password, user.password_hash):
        raise AuthError("Invalid credentials")
    token = _issue_token(user)
    session.flush()
    return user, token


def user_for_token(session: Session, token: Optional[str]) -> User:
    if not token:
        raise AuthError("Authentication required")
    user = session.scalars(select(User).where(User.api_token == token)).first()
    if user is None:
        raise AuthError("Invalid token")
    return user


def forgot_password(session: Session, email: str, now: Optional[datetime] = None) -> Optional[str]:
    """Issue a reset token and email the link.

    Returns the token (None for unknown emails); the HTTP layer answers the
    same either way. A failing email does not abort the reset.
    """
    if not email:
        raise ValidationError("Email is required")
    user = session.scalars(select(User).where(User.email == email.strip().lower())).first()
    if user is None:
        return None

    now = now or datetime.now()
    user.reset_token = secrets.token_hex(32)
    user.reset_token_expiry = now + RESET_TOKEN_TTL
    session.flush()

    reset_url = f"{config.FRONTEND_URL}/reset-password?token={user.reset_token}"
    ok, message = send_password_reset_email(user.email, reset_url)
    if not ok:
        logger.error("Password reset email to %s failed: %s", user.email, message)
    return user.reset_token


def reset_password(session: Session, token: str, password: str, now: Optional[datetime] = None) -> User:
    if not token or not password:
        raise ValidationError("Token and password are required")
    validate_password(password)

    now = now or datetime.now()
    user = session.scalars(
        select(User).where(User.reset_token == token, User.reset_token_expiry > now)
    ).first()
    if user is None:
        raise ValidationError("Invalid or expired token")

    user.password_hash = hash_password(password)
    user.reset_token = None
    user.reset_token_expiry = None
    session.flush()
    return user
