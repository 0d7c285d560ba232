from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol

from fastapi import HTTPException, Request, Response

from formcraft.config import Settings

SESSION_COOKIE = "session"


@dataclass(frozen=True)
class User:
    uid: str
    email: str = ""
    display_name: str = ""
    email_verified: bool = False


class AuthProvider(Protocol):
    def current_user(self, request: Request) -> User | None: ...

    def sign_out(self, response: Response) -> None: ...


class NoAuthProvider:
    """Treats every request as coming from one configured local user."""

    def __init__(self, settings: Settings) -> None:
        self._user = User(
            uid=settings.dev_user_id,
            email=settings.dev_user_email,
            display_name="Local User",
            email_verified=True,
        )

    def current_user(self, request: Request) -> User | None:
        return self._user

    def sign_out(self, response: Response) -> None:
        response.delete_cookie(SESSION_COOKIE)


class HeaderAuthProvider:
    """Trusts identity headers set by a fronting authentication proxy."""

    def current_user(self, request: Request) -> User | None:
        uid = request.headers.get("X-Auth-User-Id", "").strip()
        if not uid:
            return None
        return User(
            uid=uid,
            email=request.headers.get("X-Auth-Email", ""),
            display_name=request.headers.get("X-Auth-Name", ""),
            email_verified=request.headers.get("X-Auth-Email-Verified", "").lower() in {"1", "true", "yes"},
        )

    def sign_out(self, response: Response) -> None:
        response.delete_cookie(SESSION_COOKIE)


def get_auth_provider(settings: Settings) -> AuthProvider:
    if settings.auth_mode == "header":
        return HeaderAuthProvider()
    return NoAuthProvider(settings)


def optional_user(request: Request) -> User | None:
    return request.app.state.ctx.auth.current_user(request)


def require_user(request: Request) -> User:
    user = optional_user(request)
    if user is None:
        raise HTTPException(status_code=401, detail="Sign in required")
    return user
