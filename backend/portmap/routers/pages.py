"""Route-level views: the login page, the dashboard and user management.

Each route either renders its payload or redirects according to the
session guard.
"""
from fastapi import APIRouter, Depends
from fastapi.responses import RedirectResponse

from portmap.config import settings
from portmap.dependencies import get_guard, get_registry
from portmap.errors import failing_as
from portmap.models import DashboardStatus, UserManagementPage
from portmap.services.port_view import build_port_view
from portmap.services.registry import SwitchRegistry
from portmap.services.session_guard import SessionGuard, route_decision
from portmap.services.user_directory import UserDirectory

router = APIRouter(tags=["pages"])


def _redirect(target: str) -> RedirectResponse:
    response = RedirectResponse(target, status_code=303)
    if target == "/login":
        response.delete_cookie(settings.session_cookie)
    return response


@router.get("/login")
async def login_page(guard: SessionGuard = Depends(get_guard)):
    """Login form, or a redirect to the dashboard when already signed in."""
    decision = route_decision("/login", guard.state, guard.profile)
    if not decision.allow:
        return _redirect(decision.redirect_to)
    return {"page": "login", "fields": ["email", "password"]}


@router.get("/", response_model=DashboardStatus)
async def dashboard(
    search: str = "",
    guard: SessionGuard = Depends(get_guard),
    registry: SwitchRegistry = Depends(get_registry),
):
    """Switch list, active selection and the active switch's port view."""
    decision = route_decision("/", guard.state, guard.profile)
    if not decision.allow:
        return _redirect(decision.redirect_to)

    with failing_as("list_failed"):
        await registry.list_switches()
    active = registry.active_switch
    return DashboardStatus(
        switches=registry.switches,
        active_switch_id=registry.active_switch_id,
        busy=registry.busy,
        last_update=registry.last_update,
        view=build_port_view(active, search, settings.ports_per_block) if active else None,
    )


@router.get("/user-management", response_model=UserManagementPage)
async def user_management(guard: SessionGuard = Depends(get_guard)):
    """Account listing for admins, promotion offer or notice for everyone else."""
    decision = route_decision("/user-management", guard.state, guard.profile)
    if not decision.allow:
        return _redirect(decision.redirect_to)

    directory = UserDirectory(guard.gateway, guard.session, guard.profile)
    return UserManagementPage(
        profile=guard.profile,
        is_admin=decision.admin_view,
        listing=await directory.list_users(),
    )
