"""
Server-side session store.

Session data stays in process memory; the browser only holds a signed token
with the session id. The store is created with the application and lives as
long as it does.
"""

import logging
import secrets
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Dict, Optional

from fastapi import Request
from starlette.types import ASGIApp

from .auth_utils import create_session_token, decode_session_token

logger = logging.getLogger("uvicorn.error")


@dataclass
class SessionData:
    id: str
    expires_at: datetime
    user_id: Optional[int] = None
    challenge_answer: Optional[int] = None
    root_access: bool = False
    modified: bool = field(default=False, repr=False)

    def login(self, user_id: int) -> None:
        self.user_id = user_id
        self.root_access = False
        self.modified = True

    def set_challenge(self, answer: int) -> None:
        self.challenge_answer = answer
        self.modified = True

    def grant_root(self) -> None:
        self.root_access = True
        self.modified = True


class SessionStore:
    """In-memory mapping of session id to SessionData with expiry."""

    def __init__(self, max_age_seconds: int):
        self.max_age = timedelta(seconds=max_age_seconds)
        self._sessions: Dict[str, SessionData] = {}

    def __len__(self) -> int:
        return len(self._sessions)

    def create(self) -> SessionData:
        self.purge_expired()
        session = SessionData(id=secrets.token_urlsafe(24), expires_at=self._expiry(), modified=True)
        self._sessions[session.id] = session
        return session

    def get(self, session_id: Optional[str]) -> Optional[SessionData]:
        if not session_id:
            return None
        session = self._sessions.get(session_id)
        if session is None:
            return None
        if session.expires_at <= datetime.now(timezone.utc):
            self._sessions.pop(session_id, None)
            return None
        return session

    def touch(self, session: SessionData) -> None:
        session.expires_at = self._expiry()

    def destroy(self, session_id: str) -> None:
        self._sessions.pop(session_id, None)

    def purge_expired(self) -> int:
        """Drop every expired session. Returns how many were removed."""
        now = datetime.now(timezone.utc)
        expired = [sid for sid, s in self._sessions.items() if s.expires_at <= now]
        for sid in expired:
            del self._sessions[sid]
        return len(expired)

    def _expiry(self) -> datetime:
        return datetime.now(timezone.utc) + self.max_age


# PUBLIC_INTERFACE
def get_session(request: Request) -> SessionData:
    """FastAPI dependency returning the session loaded by the middleware."""
    return request.state.session


class SessionMiddleware:
    """Load the session before the handler and write the cookie back when it changed."""

    def __init__(self, app: ASGIApp, store: SessionStore, secret_key: str, cookie_name: str):
        self.app = app
        self.store = store
        self.secret_key = secret_key
        self.cookie_name = cookie_name

    async def __call__(self, scope, receive, send):
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        request = Request(scope)
        token = request.cookies.get(self.cookie_name)
        session = self.store.get(decode_session_token(token, self.secret_key)) if token else None
        if session is None:
            session = self.store.create()
            session.modified = False
            is_new = True
        else:
            is_new = False
        scope.setdefault("state", {})["session"] = session
        issued = False

        async def send_wrapper(message):
            nonlocal issued
            if message["type"] == "http.response.start":
                cookie = self._cookie_header(session, is_new)
                if cookie is not None:
                    issued = True
                    headers = list(message.get("headers", []))
                    headers.append((b"set-cookie", cookie.encode("latin-1")))
                    message["headers"] = headers
            await send(message)

        await self.app(scope, receive, send_wrapper)

        if is_new and not issued and session.user_id is None:
            # nothing worth keeping for a visitor who never touched the session
            self.store.destroy(session.id)

    def _cookie_header(self, session: SessionData, is_new: bool) -> Optional[str]:
        if self.store.get(session.id) is None:
            if is_new:
                return None
            return f"{self.cookie_name}=; Path=/; Max-Age=0; HttpOnly; SameSite=lax"
        if not session.modified:
            return None
        self.store.touch(session)
        info = create_session_token(session.id, self.secret_key, self.store.max_age)
        session.modified = False
        max_age = int(self.store.max_age.total_seconds())
        return f"{self.cookie_name}={info['token']}; Path=/; Max-Age={max_age}; HttpOnly; SameSite=lax"
