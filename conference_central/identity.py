"""
Caller identity.

Authentication happens in front of the service; the proxy forwards the
authenticated user's id and email as request headers. Handlers receive the
identity explicitly and pass it to every operation.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from fastapi import Request

from conference_central.config import get_settings
from conference_central.errors import Unauthenticated


@dataclass(frozen=True)
class User:
    user_id: str
    email: Optional[str] = None


def get_current_user(request: Request) -> Optional[User]:
    """FastAPI dependency returning the caller, or None when anonymous."""
    settings = get_settings()
    user_id = (request.headers.get(settings.user_id_header) or "").strip()
    email = (request.headers.get(settings.user_email_header) or "").strip()
    if not user_id and not email:
        return None
    # Without a stable id, the email is the id.
    return User(user_id=user_id or email, email=email or None)


def require_user(user: Optional[User]) -> User:
    if user is None:
        raise Unauthenticated()
    return user
