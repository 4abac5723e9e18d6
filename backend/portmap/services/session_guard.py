"""Session and identity tracking for the dashboard.

The guard resolves a gateway session to a role-bearing profile. A session
whose profile row cannot be found is never treated as authenticated: the
guard signs it out and reports ``profile_missing``.

Route decisions made here are a UX affordance only. The gateway's function
layer re-checks every privileged action on its own.
"""
import logging
from dataclasses import dataclass
from enum import Enum

from portmap.errors import AuthError, GatewayError
from portmap.models import Profile, Session
from portmap.services.gateway import GatewayClient

logger = logging.getLogger(__name__)

# Provider message fragment -> notification key
AUTH_MESSAGES: list[tuple[tuple[str, ...], str]] = [
    (("Invalid login credentials",), "invalid_credentials"),
    (("Email not confirmed",), "email_not_confirmed"),
    (("User not found", "No user found"), "user_not_found"),
]

PROFILE_EVENTS = {"INITIAL_SESSION", "SIGNED_IN", "TOKEN_REFRESHED", "USER_UPDATED"}

PUBLIC_ROUTES = {"/login"}
ADMIN_ROUTES = {"/user-management"}


def auth_error_message(message: str) -> str:
    """Map an auth provider error message to a notification key."""
    for fragments, key in AUTH_MESSAGES:
        if any(fragment in message for fragment in fragments):
            return key
    return "login_failed"


class GuardState(str, Enum):
    UNAUTHENTICATED = "unauthenticated"
    AUTHENTICATING_INITIAL = "authenticating_initial"
    AUTHENTICATED = "authenticated"
    PROFILE_MISSING = "profile_missing"


@dataclass
class RouteDecision:
    allow: bool
    redirect_to: str | None = None
    admin_view: bool = False  # admin-only content may be shown


def route_decision(path: str, state: GuardState, profile: Profile | None = None) -> RouteDecision:
    """Decide whether a route renders or redirects for the current guard state."""
    authenticated = state == GuardState.AUTHENTICATED and profile is not None
    if path in PUBLIC_ROUTES:
        if authenticated:
            return RouteDecision(allow=False, redirect_to="/")
        return RouteDecision(allow=True)
    if not authenticated:
        return RouteDecision(allow=False, redirect_to="/login")
    return RouteDecision(allow=True, admin_view=path in ADMIN_ROUTES and profile.is_admin)


class SessionGuard:
    """State machine over a single session's lifecycle."""

    def __init__(self, gateway: GatewayClient):
        self.gateway = gateway
        self.state = GuardState.UNAUTHENTICATED
        self.session: Session | None = None
        self.profile: Profile | None = None

    @property
    def authenticated(self) -> bool:
        return self.state == GuardState.AUTHENTICATED

    def _reset(self):
        self.state = GuardState.UNAUTHENTICATED
        self.session = None
        self.profile = None

    async def initialize(self, access_token: str | None) -> Profile | None:
        """Resolve an existing session token, if any, into a profile."""
        if not access_token:
            self._reset()
            return None

        self.state = GuardState.AUTHENTICATING_INITIAL
        try:
            user = await self.gateway.get_user(access_token)
        except AuthError:
            logger.info("Stored session rejected by the identity provider")
            self._reset()
            return None
        session = Session(access_token=access_token, user_id=str(user.get("id", "")), email=user.get("email"))
        return await self._resolve_profile(session)

    async def on_auth_state_change(self, event: str, session: Session | None) -> Profile | None:
        """Handle a session-change notification from the identity provider."""
        logger.debug(f"Auth state change: {event}")
        if session is None or event == "SIGNED_OUT":
            self._reset()
            return None
        if event in PROFILE_EVENTS:
            return await self._resolve_profile(session)
        return self.profile

    async def _resolve_profile(self, session: Session) -> Profile:
        try:
            profile = await self.gateway.fetch_profile(session.user_id)
        except GatewayError:
            self._reset()
            raise

        if profile is None:
            self.state = GuardState.PROFILE_MISSING
            logger.warning(f"Profile not found for user {session.user_id}, signing out")
            try:
                await self.gateway.sign_out(session.access_token)
            except (AuthError, GatewayError) as e:
                logger.error(f"Sign-out after missing profile failed: {e}")
            self._reset()
            raise AuthError("profile_missing", "Profile not found for this session")

        self.session = session
        self.profile = profile
        self.state = GuardState.AUTHENTICATED
        return profile

    async def sign_in(self, email: str, password: str) -> Profile:
        try:
            session = await self.gateway.sign_in_with_password(email, password)
        except AuthError as e:
            self._reset()
            logger.warning(f"Login failed for {email}: {e.message}")
            raise AuthError(auth_error_message(e.message), e.message) from e
        return await self.on_auth_state_change("SIGNED_IN", session)

    async def sign_out(self):
        if self.session is not None:
            try:
                await self.gateway.sign_out(self.session.access_token)
            finally:
                await self.on_auth_state_change("SIGNED_OUT", None)
        else:
            self._reset()
