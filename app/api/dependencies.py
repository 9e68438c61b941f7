from typing import Optional

from fastapi import Depends, HTTPException, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from app.core.config import db_configured
from app.services.feed import TicketFeed
from app.services.session import Identity, SessionService

_bearer_scheme = HTTPBearer(auto_error=False)


def require_db() -> None:
    if not db_configured():
        raise HTTPException(status_code=500, detail="Database is not configured")


def get_session_service(request: Request) -> SessionService:
    return request.app.state.session_service


def get_ticket_feed(request: Request) -> TicketFeed:
    return request.app.state.ticket_feed


def bearer_token(
    creds: Optional[HTTPAuthorizationCredentials] = Depends(_bearer_scheme),
) -> Optional[str]:
    return creds.credentials if creds else None


def current_identity(
    token: Optional[str] = Depends(bearer_token),
    sessions: SessionService = Depends(get_session_service),
) -> Identity:
    require_db()
    return sessions.resolve(token)


def require_user(identity: Identity = Depends(current_identity)) -> Identity:
    if identity.user_id is None:
        raise HTTPException(status_code=401, detail="Not authenticated")
    return identity


def require_admin(identity: Identity = Depends(require_user)) -> Identity:
    if not identity.is_admin:
        raise HTTPException(status_code=403, detail="Admin role required")
    if identity.must_change_password:
        raise HTTPException(status_code=403, detail="Password change required")
    return identity


def require_super_admin(identity: Identity = Depends(require_admin)) -> Identity:
    if not identity.is_super_admin:
        raise HTTPException(status_code=403, detail="Super admin role required")
    return identity
