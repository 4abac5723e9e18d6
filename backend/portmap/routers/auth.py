from fastapi import APIRouter, Depends, Response

from portmap.config import settings
from portmap.dependencies import get_gateway, require_session
from portmap.models import LoginRequest, LoginResponse, Notification, Profile
from portmap.notifications import notify
from portmap.services.gateway import GatewayClient
from portmap.services.session_guard import SessionGuard

router = APIRouter(prefix="/api/auth", tags=["auth"])


@router.post("/login", response_model=LoginResponse)
async def login(req: LoginRequest, response: Response, gateway: GatewayClient = Depends(get_gateway)):
    """Sign in with email and password and store the session in a cookie."""
    guard = SessionGuard(gateway)
    profile = await guard.sign_in(req.email, req.password)
    token = guard.session.access_token
    response.set_cookie(
        key=settings.session_cookie,
        value=token,
        max_age=settings.session_max_age,
        httponly=True,
        samesite="lax",
    )
    return LoginResponse(access_token=token, profile=profile, notification=notify("login_success"))


@router.post("/logout", response_model=Notification)
async def logout(response: Response, guard: SessionGuard = Depends(require_session)):
    """End the session and clear the session cookie."""
    await guard.sign_out()
    response.delete_cookie(settings.session_cookie)
    return notify("logout_success")


@router.get("/me", response_model=Profile)
async def me(guard: SessionGuard = Depends(require_session)):
    """Profile of the signed-in user."""
    return guard.profile
