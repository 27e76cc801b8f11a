"""
Session boundary: password hashing, session tokens and the FastAPI
dependencies that resolve a request to a single user id.

Sessions live in the injected Storage (the "session" collection in
MongoDB), never in a module-level map. The token travels in the 'sid'
cookie or as an 'Authorization: Bearer <token>' header.
"""

import secrets
from datetime import datetime, timedelta, timezone
from typing import Optional

import bcrypt
from fastapi import Depends, Request, Response

from config import BCRYPT_ROUNDS, COOKIE_SECURE, SESSION_COOKIE, SESSION_TTL_MINUTES
from errors import Unauthorized
from schemas import Session
from storage import Storage


def hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt(rounds=BCRYPT_ROUNDS)).decode("utf-8")


def verify_password(password: str, hashed: str) -> bool:
    try:
        return bcrypt.checkpw(password.encode("utf-8"), hashed.encode("utf-8"))
    except ValueError:
        # malformed stored hash
        return False


def _now():
    return datetime.now(timezone.utc)


class SessionManager:
    def __init__(self, storage: Storage, ttl_minutes: int = SESSION_TTL_MINUTES):
        self.storage = storage
        self.ttl = timedelta(minutes=ttl_minutes)

    def open(self, user_id: str) -> str:
        token = secrets.token_urlsafe(32)
        now = _now()
        self.storage.create_session(Session(token=token, user_id=user_id, created_at=now, expires_at=now + self.ttl))
        return token

    def resolve(self, token: Optional[str]) -> Optional[str]:
        if not token:
            return None
        session = self.storage.get_session(token)
        if session is None:
            return None
        if session.expires_at < _now():
            self.storage.delete_session(token)
            return None
        return session.user_id

    def close(self, token: Optional[str]) -> bool:
        if not token:
            return False
        return self.storage.delete_session(token)


def get_storage(request: Request) -> Storage:
    return request.app.state.storage


def get_sessions(storage: Storage = Depends(get_storage)) -> SessionManager:
    return SessionManager(storage)


def session_token(request: Request) -> Optional[str]:
    authorization = request.headers.get("Authorization")
    if authorization and authorization.lower().startswith("bearer "):
        return authorization.split(" ", 1)[1]
    return request.cookies.get(SESSION_COOKIE)


def current_user_id(request: Request, sessions: SessionManager = Depends(get_sessions)) -> str:
    user_id = sessions.resolve(session_token(request))
    if not user_id:
        raise Unauthorized()
    return user_id


def set_session_cookie(response: Response, token: str) -> None:
    response.set_cookie(
        SESSION_COOKIE,
        token,
        max_age=SESSION_TTL_MINUTES * 60,
        httponly=True,
        secure=COOKIE_SECURE,
        samesite="lax",
    )


def clear_session_cookie(response: Response) -> None:
    response.delete_cookie(SESSION_COOKIE)
