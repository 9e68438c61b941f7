"""Session and identity resolution.

A :class:`SessionService` is built once at startup and handed to request
handlers through FastAPI dependencies. Every resolution re-reads the caller's
role row, so a revoked or changed role takes effect on the next request.
Listeners registered with :meth:`SessionService.subscribe` receive an
:class:`AuthEvent` and the resulting :class:`Identity` on every sign-in,
sign-out, token refresh and password change.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
import logging
import threading
import uuid
from typing import Callable, Optional

from fastapi import HTTPException

from app.core.security import new_session_token, token_digest, verify_password
from app.cqrs.commands import auth as auth_commands
from app.cqrs.queries import auth as auth_queries
from app.services.validation import password_problem

logger = logging.getLogger(__name__)


class SessionState(str, Enum):
    LOADING = "loading"
    UNAUTHENTICATED = "unauthenticated"
    AUTHENTICATED_NO_ROLE = "authenticated_no_role"
    ADMIN = "admin"
    ADMIN_MUST_CHANGE_PASSWORD = "admin_must_change_password"
    SUPER_ADMIN = "super_admin"


class AuthEvent(str, Enum):
    SIGNED_IN = "SIGNED_IN"
    SIGNED_OUT = "SIGNED_OUT"
    TOKEN_REFRESHED = "TOKEN_REFRESHED"
    PASSWORD_UPDATED = "PASSWORD_UPDATED"


@dataclass(frozen=True)
class Identity:
    user_id: Optional[str] = None
    email: Optional[str] = None
    role: Optional[str] = None
    must_change_password: bool = False
    loaded: bool = True

    @property
    def is_admin(self) -> bool:
        return self.role in ("admin", "super_admin")

    @property
    def is_super_admin(self) -> bool:
        return self.role == "super_admin"

    @property
    def state(self) -> SessionState:
        if not self.loaded:
            return SessionState.LOADING
        if self.user_id is None:
            return SessionState.UNAUTHENTICATED
        if not self.is_admin:
            return SessionState.AUTHENTICATED_NO_ROLE
        if self.must_change_password:
            return SessionState.ADMIN_MUST_CHANGE_PASSWORD
        if self.is_super_admin:
            return SessionState.SUPER_ADMIN
        return SessionState.ADMIN

    def as_dict(self) -> dict:
        return {
            "user_id": self.user_id,
            "email": self.email,
            "role": self.role,
            "must_change_password": self.must_change_password,
            "state": self.state.value,
            "is_admin": self.is_admin,
            "is_super_admin": self.is_super_admin,
        }


ANONYMOUS = Identity()
LOADING = Identity(loaded=False)

Listener = Callable[[AuthEvent, Identity], None]


@dataclass(frozen=True)
class IssuedSession:
    access_token: str
    expires_at: datetime
    identity: Identity

    def as_dict(self) -> dict:
        return {
            "access_token": self.access_token,
            "token_type": "bearer",
            "expires_at": self.expires_at,
            "identity": self.identity.as_dict(),
        }


class SessionService:
    def __init__(self, ttl_minutes: int) -> None:
        self.ttl_minutes = ttl_minutes
        self._listeners: list[Listener] = []
        self._lock = threading.Lock()

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        with self._lock:
            self._listeners.append(listener)

        def _unsubscribe() -> None:
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return _unsubscribe

    def _emit(self, event: AuthEvent, identity: Identity) -> None:
        with self._lock:
            listeners = list(self._listeners)
        for listener in listeners:
            try:
                listener(event, identity)
            except Exception:
                logger.exception("Auth listener failed on %s", event.value)

    def load_identity(self, user_id: str, email: str) -> Identity:
        role_row = auth_queries.fetch_role(uuid.UUID(str(user_id)))
        if not role_row:
            return Identity(user_id=str(user_id), email=email)
        return Identity(
            user_id=str(user_id),
            email=email,
            role=role_row["role"],
            must_change_password=bool(role_row["must_change_password"]),
        )

    def resolve(self, token: Optional[str]) -> Identity:
        if not token:
            return ANONYMOUS
        session = auth_queries.find_session(token_digest(token))
        if not session:
            return ANONYMOUS
        return self.load_identity(session["user_id"], session["email"])

    def register(self, email: str, password: str) -> dict:
        return auth_commands.register_user(email, password)

    def sign_in(self, email: str, password: str) -> IssuedSession:
        row = auth_queries.find_credentials(email)
        if not row or not verify_password(password, row["password_hash"], row["password_salt"]):
            raise HTTPException(status_code=401, detail="Invalid credentials")
        token = new_session_token()
        expires_at = auth_commands.open_session(row["id"], token_digest(token), self.ttl_minutes)
        identity = self.load_identity(row["id"], row["email"])
        self._emit(AuthEvent.SIGNED_IN, identity)
        return IssuedSession(access_token=token, expires_at=expires_at, identity=identity)

    def sign_out(self, token: Optional[str]) -> None:
        if not token:
            raise HTTPException(status_code=401, detail="Not authenticated")
        closed = auth_commands.close_session(token_digest(token))
        if not closed:
            raise HTTPException(status_code=401, detail="Session expired or not found")
        self._emit(AuthEvent.SIGNED_OUT, ANONYMOUS)

    def refresh(self, token: Optional[str]) -> IssuedSession:
        if not token:
            raise HTTPException(status_code=401, detail="Not authenticated")
        new_token = new_session_token()
        _, expires_at = auth_commands.rotate_session(
            token_digest(token), token_digest(new_token), self.ttl_minutes
        )
        identity = self.resolve(new_token)
        if identity.user_id is None:
            raise HTTPException(status_code=401, detail="Session expired or not found")
        self._emit(AuthEvent.TOKEN_REFRESHED, identity)
        return IssuedSession(access_token=new_token, expires_at=expires_at, identity=identity)

    def change_password(self, identity: Identity, password: str, confirm: str) -> Identity:
        if identity.user_id is None:
            raise HTTPException(status_code=401, detail="Not authenticated")
        problem = password_problem(password, confirm)
        if problem:
            raise HTTPException(status_code=400, detail=problem)
        auth_commands.change_password(identity.user_id, password)
        refreshed = self.load_identity(identity.user_id, identity.email)
        self._emit(AuthEvent.PASSWORD_UPDATED, refreshed)
        return refreshed


def log_auth_event(event: AuthEvent, identity: Identity) -> None:
    logger.info("Auth event %s (user=%s, state=%s)", event.value, identity.user_id, identity.state.value)
