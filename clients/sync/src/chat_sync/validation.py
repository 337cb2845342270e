"""Local checks that run before any request is issued."""

from __future__ import annotations

import re
from typing import Any, Mapping

from .errors import ValidationFailure

MIN_PASSWORD_LENGTH = 6
_EMAIL_RE = re.compile(r"\S+@\S+\.\S+")


def validate_signup(full_name: str, email: str, password: str) -> None:
    if not (full_name or "").strip():
        raise ValidationFailure("Full name is required")
    if not (email or "").strip():
        raise ValidationFailure("Email is required")
    if not _EMAIL_RE.search(email):
        raise ValidationFailure("Invalid email format")
    if not password:
        raise ValidationFailure("Password is required")
    if len(password) < MIN_PASSWORD_LENGTH:
        raise ValidationFailure(f"Password must be at least {MIN_PASSWORD_LENGTH} characters")


def validate_login(email: str, password: str) -> None:
    if not (email or "").strip() or not password:
        raise ValidationFailure("Email and password must be filled out.")


def validate_profile_update(fields: Mapping[str, Any]) -> None:
    if not fields:
        raise ValidationFailure("Nothing to update")


def validate_message(text: str | None, image: str | None) -> None:
    if not (text or "").strip() and not image:
        raise ValidationFailure("Message must contain text or an image")
