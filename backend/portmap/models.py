from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field


class DeviceType(str, Enum):
    COMPUTER = "computer"
    LAPTOP = "laptop"
    PHONE = "phone"
    SERVER = "server"
    ROUTER = "router"
    DVR = "dvr"


class Role(str, Enum):
    ADMIN = "admin"
    FEEDER = "feeder"


class Device(BaseModel):
    name: str
    mac: str
    ip: str
    type: DeviceType = DeviceType.COMPUTER


class Port(BaseModel):
    number: int = Field(ge=1)
    device: Device | None = None  # None = free port


class Switch(BaseModel):
    id: str
    name: str
    ports: list[Port] = []

    def port(self, number: int) -> Port | None:
        for port in self.ports:
            if port.number == number:
                return port
        return None

    def max_port_number(self) -> int:
        return max((p.number for p in self.ports), default=0)


class Profile(BaseModel):
    id: str
    email: str
    role: Role = Role.FEEDER
    full_name: str | None = None

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN


class Session(BaseModel):
    access_token: str
    refresh_token: str | None = None
    user_id: str
    email: str | None = None


class UserAccount(BaseModel):
    id: str
    email: str
    full_name: str | None = None
    role: Role = Role.FEEDER
    created_at: datetime | None = None


class Notification(BaseModel):
    title: str
    description: str
    variant: str = "default"  # default|destructive


# ─── Request bodies ─────────────────────────────────────────────────────────


class LoginRequest(BaseModel):
    email: str
    password: str


class SwitchCreate(BaseModel):
    name: str
    port_count: int | None = None  # defaults to settings.default_port_count


class SwitchUpdate(BaseModel):
    name: str
    port_count: int


class AddPortsRequest(BaseModel):
    count: int | None = None  # defaults to settings.add_ports_step


class DeviceDraft(BaseModel):
    """Unvalidated device fields as typed into the editor."""

    name: str = ""
    mac: str = ""
    ip: str = ""
    type: str = DeviceType.COMPUTER.value


class UserInvite(BaseModel):
    email: str
    password: str = ""
    role: Role = Role.FEEDER
    full_name: str = ""


class UserRoleUpdate(BaseModel):
    role: Role
    full_name: str = ""


# ─── Responses ──────────────────────────────────────────────────────────────


class SwitchMutation(BaseModel):
    notification: Notification
    switch: Switch | None = None
    active_switch_id: str | None = None


class PortStats(BaseModel):
    total: int
    connected: int
    free: int
    utilization: int


class PortBlock(BaseModel):
    label: str
    first: int
    last: int
    ports: list[Port]


class EmptyState(str, Enum):
    NO_MATCHES = "no_matches"  # search term set, nothing matched
    NO_PORTS = "no_ports"  # switch has no ports configured
    NO_VISIBLE_PORTS = "no_visible_ports"  # no search term, ports exist, nothing shown


class PortView(BaseModel):
    switch_id: str
    switch_name: str
    search: str
    stats: PortStats
    blocks: list[PortBlock]
    matched: int
    empty_state: EmptyState | None = None


class DashboardStatus(BaseModel):
    switches: list[Switch]
    active_switch_id: str | None = None
    busy: bool = False
    last_update: datetime | None = None
    view: PortView | None = None


class DirectoryListing(BaseModel):
    users: list[UserAccount] = []
    promotion_offered: bool = False


class SystemStatus(BaseModel):
    total_switches: int
    total_ports: int
    connected_ports: int
    free_ports: int
    utilization: int
    busy: bool = False
    last_update: datetime | None = None


class LoginResponse(BaseModel):
    access_token: str
    profile: Profile
    notification: Notification


class UserMutation(BaseModel):
    notification: Notification
    listing: DirectoryListing


class UserManagementPage(BaseModel):
    profile: Profile
    is_admin: bool
    listing: DirectoryListing
