from fastapi import APIRouter, Depends, Query

from portmap.dependencies import get_user_directory
from portmap.models import DirectoryListing, Notification, UserInvite, UserMutation, UserRoleUpdate
from portmap.notifications import notify
from portmap.services.user_directory import UserDirectory

router = APIRouter(prefix="/api/users", tags=["users"])


async def _after(directory: UserDirectory, notification: Notification) -> UserMutation:
    return UserMutation(notification=notification, listing=await directory.list_users())


@router.get("", response_model=DirectoryListing)
async def list_users(directory: UserDirectory = Depends(get_user_directory)):
    """List accounts, or offer first-admin promotion when the caller is refused."""
    return await directory.list_users()


@router.post("", response_model=UserMutation, status_code=201)
async def invite_user(body: UserInvite, directory: UserDirectory = Depends(get_user_directory)):
    """Invite a new account with an initial password."""
    message = await directory.invite_user(body.email, body.password, body.role, body.full_name)
    return await _after(directory, notify("user_invited", message=message))


@router.put("/{user_id}", response_model=UserMutation)
async def update_user(user_id: str, body: UserRoleUpdate, directory: UserDirectory = Depends(get_user_directory)):
    """Change another account's role and name."""
    message = await directory.update_user_role(user_id, body.role, body.full_name)
    return await _after(directory, notify("user_updated", message=message))


@router.delete("/{user_id}", response_model=UserMutation)
async def delete_user(
    user_id: str,
    confirm: bool = Query(False),
    directory: UserDirectory = Depends(get_user_directory),
):
    """Delete another account once confirmed."""
    message = await directory.delete_user(user_id, confirmed=confirm)
    return await _after(directory, notify("user_deleted", message=message))


@router.post("/promote", response_model=Notification)
async def promote(directory: UserDirectory = Depends(get_user_directory)):
    """Become the first admin. Only succeeds while no admin exists."""
    await directory.promote_to_admin_if_first()
    return notify("promoted")
