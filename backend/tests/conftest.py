import itertools
import tempfile
from pathlib import Path

import pytest
import yaml
from fastapi.testclient import TestClient

from portmap.errors import AuthError, ForbiddenError, GatewayError
from portmap.models import Device, DeviceType, Port, Profile, Role, Session, Switch


class FakeGateway:
    """In-memory stand-in for the backend-as-a-service.

    ``fail`` holds method names that raise GatewayError on their next call.
    """

    def __init__(self):
        self._ids = itertools.count(1)
        self.switches: dict[str, str] = {}
        self.ports: dict[tuple[str, int], Port] = {}
        self.users: dict[str, dict] = {}  # email -> {"id", "password", "confirmed"}
        self.tokens: dict[str, str] = {}  # access token -> user id
        self.profiles: dict[str, Profile] = {}
        self.function_calls: list[tuple[str, dict, str]] = []
        self.function_results: dict[str, object] = {}
        self.signed_out: list[str] = []
        self.fail: set[str] = set()
        self.calls: list[str] = []

    def _check(self, name: str):
        self.calls.append(name)
        if name in self.fail:
            self.fail.discard(name)
            raise GatewayError(f"{name} failed")

    # ─── seeding helpers ────────────────────────────────────────────────────

    def add_switch(self, name: str, port_count: int, devices: dict[int, Device] | None = None) -> str:
        switch_id = str(next(self._ids))
        self.switches[switch_id] = name
        for n in range(1, port_count + 1):
            self.ports[(switch_id, n)] = Port(number=n, device=(devices or {}).get(n))
        return switch_id

    def add_user(self, email: str, role: Role = Role.FEEDER, with_profile: bool = True, password: str = "secret") -> str:
        user_id = f"user-{next(self._ids)}"
        self.users[email] = {"id": user_id, "password": password, "confirmed": True}
        self.tokens[f"token-{user_id}"] = user_id
        if with_profile:
            self.profiles[user_id] = Profile(id=user_id, email=email, role=role, full_name=email.split("@")[0])
        return f"token-{user_id}"

    # ─── tables ─────────────────────────────────────────────────────────────

    async def fetch_switches(self):
        self._check("fetch_switches")
        return [{"id": sid, "name": name} for sid, name in self.switches.items()]

    async def fetch_ports(self, switch_id):
        self._check("fetch_ports")
        ports = [p for (sid, _), p in self.ports.items() if sid == switch_id]
        return sorted(ports, key=lambda p: p.number)

    async def fetch_switch(self, switch_id, name):
        return Switch(id=switch_id, name=name, ports=await self.fetch_ports(switch_id))

    async def insert_switch(self, name):
        self._check("insert_switch")
        switch_id = str(next(self._ids))
        self.switches[switch_id] = name
        return {"id": switch_id, "name": name}

    async def update_switch_name(self, switch_id, name):
        self._check("update_switch_name")
        self.switches[switch_id] = name

    async def delete_switch(self, switch_id):
        self._check("delete_switch")
        self.switches.pop(switch_id, None)

    async def insert_ports(self, switch_id, numbers):
        self._check("insert_ports")
        for n in numbers:
            if (switch_id, n) in self.ports:
                raise GatewayError("duplicate key value violates unique constraint")
        for n in numbers:
            self.ports[(switch_id, n)] = Port(number=n)

    async def delete_ports(self, switch_id):
        self._check("delete_ports")
        for key in [k for k in self.ports if k[0] == switch_id]:
            del self.ports[key]

    async def upsert_ports(self, switch_id, ports):
        self._check("upsert_ports")
        for port in ports:
            self.ports[(switch_id, port.number)] = port.model_copy()

    # ─── auth ───────────────────────────────────────────────────────────────

    async def sign_in_with_password(self, email, password):
        self._check("sign_in_with_password")
        user = self.users.get(email)
        if user is None:
            raise AuthError("auth_error", "User not found")
        if user["password"] != password:
            raise AuthError("auth_error", "Invalid login credentials")
        if not user["confirmed"]:
            raise AuthError("auth_error", "Email not confirmed")
        return Session(access_token=f"token-{user['id']}", user_id=user["id"], email=email)

    async def get_user(self, access_token):
        self._check("get_user")
        user_id = self.tokens.get(access_token)
        if user_id is None:
            raise AuthError("auth_error", "invalid JWT")
        email = next(e for e, u in self.users.items() if u["id"] == user_id)
        return {"id": user_id, "email": email}

    async def sign_out(self, access_token):
        self.signed_out.append(access_token)

    async def fetch_profile(self, user_id):
        self._check("fetch_profile")
        return self.profiles.get(user_id)

    # ─── functions ──────────────────────────────────────────────────────────

    async def invoke_function(self, name, body, access_token):
        self._check("invoke_function")
        self.function_calls.append((name, body, access_token))
        result = self.function_results.get(body["action"])
        if isinstance(result, Exception):
            raise result
        return result


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture
def device():
    return Device(name="Recepção", mac="00:1B:44:11:3A:B7", ip="192.168.1.100", type=DeviceType.COMPUTER)


@pytest.fixture
def temp_config_dir():
    """Create a temporary config directory with a notification override."""
    with tempfile.TemporaryDirectory() as tmpdir:
        messages = {
            "messages": {
                "switch_created": {"title": "Done", "description": "Switch {name} created"},
            }
        }
        with open(Path(tmpdir) / "messages.yaml", "w") as f:
            yaml.dump(messages, f)

        yield tmpdir


@pytest.fixture
def test_client(gateway, monkeypatch, temp_config_dir):
    """Create a test client backed by the fake gateway."""
    monkeypatch.setenv("PORTMAP_CONFIG_DIR", temp_config_dir)

    # Import after setting environment variable
    from portmap.config import settings
    from portmap.main import app
    from portmap.notifications import reset_overrides
    from portmap.services.registry import registry

    monkeypatch.setattr(settings, "refresh_interval", 0)
    monkeypatch.setattr(settings, "simulated_refresh_delay", 0)
    reset_overrides()

    # Reset registry state
    monkeypatch.setattr(registry, "gateway", gateway)
    registry._switches = []
    registry._active_switch_id = None
    registry._busy = False
    registry._last_update = None

    with TestClient(app) as client:
        yield client

    reset_overrides()


@pytest.fixture
def feeder_token(gateway):
    return gateway.add_user("feeder@example.com", Role.FEEDER)


@pytest.fixture
def admin_token(gateway):
    return gateway.add_user("admin@example.com", Role.ADMIN)


@pytest.fixture
def forbidden():
    return ForbiddenError("forbidden", "Forbidden: admin only")
