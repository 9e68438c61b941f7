from typing import Optional

from fastapi import APIRouter, Depends

from app.api.dependencies import bearer_token, current_identity, get_session_service, require_db, require_user
from app.models.schemas import IdentityOut, PasswordChange, SessionOut, StatusResponse, UserLogin, UserOut, UserRegister
from app.services.session import Identity, SessionService

router = APIRouter(prefix="/auth", tags=["auth"])


@router.post("/register", response_model=UserOut, status_code=201)
def register(payload: UserRegister, sessions: SessionService = Depends(get_session_service)):
    require_db()
    return sessions.register(payload.email, payload.password)


@router.post("/login", response_model=SessionOut)
def login(payload: UserLogin, sessions: SessionService = Depends(get_session_service)):
    require_db()
    return sessions.sign_in(payload.email, payload.password).as_dict()


@router.post("/logout", response_model=StatusResponse)
def logout(
    token: Optional[str] = Depends(bearer_token),
    sessions: SessionService = Depends(get_session_service),
):
    require_db()
    sessions.sign_out(token)
    return {"status": "signed_out"}


@router.post("/refresh", response_model=SessionOut)
def refresh(
    token: Optional[str] = Depends(bearer_token),
    sessions: SessionService = Depends(get_session_service),
):
    require_db()
    return sessions.refresh(token).as_dict()


@router.get("/session", response_model=IdentityOut)
def session(identity: Identity = Depends(current_identity)):
    return identity.as_dict()


@router.post("/change-password", response_model=IdentityOut)
def change_password(
    payload: PasswordChange,
    identity: Identity = Depends(require_user),
    sessions: SessionService = Depends(get_session_service),
):
    refreshed = sessions.change_password(identity, payload.password, payload.confirm_password)
    return refreshed.as_dict()
