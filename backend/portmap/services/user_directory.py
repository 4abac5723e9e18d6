import logging
from typing import Any

from portmap.errors import ForbiddenError, GatewayError, ValidationError
from portmap.models import DirectoryListing, Profile, Role, Session, UserAccount
from portmap.services.gateway import GatewayClient

logger = logging.getLogger(__name__)

FUNCTION_NAME = "manage-users"


class UserDirectory:
    """Admin user management through the privileged ``manage-users`` function.

    Local checks only spare the round trip; the function re-validates
    every action against the caller's token.
    """

    def __init__(self, gateway: GatewayClient, session: Session, profile: Profile):
        self.gateway = gateway
        self.session = session
        self.profile = profile

    async def _invoke(self, action: str, user_data: dict[str, Any] | None = None) -> Any:
        body: dict[str, Any] = {"action": action}
        if user_data is not None:
            body["userData"] = user_data
        return await self.gateway.invoke_function(FUNCTION_NAME, body, self.session.access_token)

    def _require_admin(self):
        if not self.profile.is_admin:
            raise ForbiddenError("admin_required", "Admin role required")

    def _refuse_self(self, user_id: str):
        if user_id == self.profile.id:
            raise ValidationError("self_modification")

    @staticmethod
    def _message(result: Any) -> str:
        if isinstance(result, dict):
            return str(result.get("message") or "")
        return ""

    async def list_users(self) -> DirectoryListing:
        """List accounts. A forbidden answer for a non-admin offers first-admin promotion."""
        try:
            data = await self._invoke("list_users")
        except ForbiddenError:
            if self.profile.is_admin:
                raise
            logger.info(f"list_users forbidden for {self.profile.email}, offering promotion")
            return DirectoryListing(promotion_offered=True)
        return DirectoryListing(users=[UserAccount(**row) for row in data or []])

    async def invite_user(self, email: str, password: str, role: Role, full_name: str = "") -> str:
        self._require_admin()
        if not email or not email.strip():
            raise ValidationError("required", fields={"email": "required"})
        if not password:
            raise ValidationError("password_required", fields={"password": "required"})
        result = await self._invoke(
            "invite_user",
            {"email": email.strip(), "password": password, "role": Role(role).value, "full_name": full_name},
        )
        logger.info(f"Invited {email} as {Role(role).value}")
        return self._message(result)

    async def update_user_role(self, user_id: str, role: Role, full_name: str = "") -> str:
        self._require_admin()
        self._refuse_self(user_id)
        result = await self._invoke(
            "update_user_role",
            {"userId": user_id, "role": Role(role).value, "full_name": full_name},
        )
        logger.info(f"Updated user {user_id} to role {Role(role).value}")
        return self._message(result)

    async def delete_user(self, user_id: str, confirmed: bool = False) -> str:
        self._require_admin()
        self._refuse_self(user_id)
        if not confirmed:
            raise ValidationError("confirmation_required")
        result = await self._invoke("delete_user", {"userId": user_id})
        logger.info(f"Deleted user {user_id}")
        return self._message(result)

    async def promote_to_admin_if_first(self) -> str:
        """Ask the function to promote the caller when no admin exists yet.

        When two accounts race for it the first commit on the gateway wins;
        the other call comes back rejected and that error is passed through.
        """
        if self.profile.is_admin:
            raise ValidationError("already_admin")
        try:
            result = await self._invoke("promote_to_admin_if_first")
        except (ForbiddenError, GatewayError) as e:
            logger.warning(f"Promotion of {self.profile.email} rejected: {e.message}")
            raise
        logger.info(f"Promoted {self.profile.email} to admin")
        return self._message(result)
