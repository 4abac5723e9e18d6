import logging

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from portmap.config import settings
from portmap.errors import AuthError, failing_as
from portmap.services.device_editor import DeviceEditor
from portmap.services.gateway import GatewayClient
from portmap.services.registry import SwitchRegistry, registry
from portmap.services.session_guard import SessionGuard
from portmap.services.user_directory import UserDirectory

logger = logging.getLogger(__name__)

security = HTTPBearer(auto_error=False)


def get_registry() -> SwitchRegistry:
    return registry


def get_gateway(registry: SwitchRegistry = Depends(get_registry)) -> GatewayClient:
    return registry.gateway


async def get_loaded_registry(registry: SwitchRegistry = Depends(get_registry)) -> SwitchRegistry:
    """Registry with at least one successful load behind it."""
    if registry.last_update is None:
        with failing_as("list_failed"):
            await registry.list_switches()
    return registry


def session_token(
    request: Request,
    creds: HTTPAuthorizationCredentials | None = Depends(security),
) -> str | None:
    """Bearer token if present, otherwise the session cookie."""
    if creds:
        return creds.credentials
    return request.cookies.get(settings.session_cookie)


async def get_guard(
    token: str | None = Depends(session_token),
    gateway: GatewayClient = Depends(get_gateway),
) -> SessionGuard:
    """Guard for page routes: a missing profile ends up unauthenticated, not as an error."""
    guard = SessionGuard(gateway)
    try:
        await guard.initialize(token)
    except AuthError as e:
        logger.warning(f"Session dropped: {e.message}")
    return guard


async def require_session(
    token: str | None = Depends(session_token),
    gateway: GatewayClient = Depends(get_gateway),
) -> SessionGuard:
    guard = SessionGuard(gateway)
    await guard.initialize(token)
    if not guard.authenticated:
        raise AuthError("not_authenticated", "Not authenticated")
    return guard


def get_device_editor(registry: SwitchRegistry = Depends(get_loaded_registry)) -> DeviceEditor:
    return DeviceEditor(registry)


def get_user_directory(
    guard: SessionGuard = Depends(require_session),
    gateway: GatewayClient = Depends(get_gateway),
) -> UserDirectory:
    return UserDirectory(gateway, guard.session, guard.profile)
