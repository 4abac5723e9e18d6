import json

import httpx
import pytest

from portmap.errors import AuthError, ForbiddenError, GatewayError
from portmap.models import DeviceType, Port
from portmap.services.gateway import GatewayClient, port_from_row, port_to_row


def client_for(handler) -> GatewayClient:
    return GatewayClient("https://example.test/", "anon-key", transport=httpx.MockTransport(handler))


class TestRowMapping:
    """Test ports rows to and from domain objects."""

    def test_free_port(self):
        port = port_from_row({"port_number": 4, "device_name": None, "device_mac": None})
        assert port == Port(number=4)

    def test_device_port(self):
        port = port_from_row(
            {
                "port_number": 2,
                "device_name": "Servidor",
                "device_mac": "00:1B:44:11:3A:B7",
                "device_ip": "10.0.0.2",
                "device_type": "server",
            }
        )
        assert port.device.type == DeviceType.SERVER
        assert port.device.name == "Servidor"

    def test_unknown_type_falls_back(self):
        port = port_from_row({"port_number": 1, "device_name": "X", "device_type": "toaster"})
        assert port.device.type == DeviceType.COMPUTER

    def test_free_port_clears_columns(self):
        row = port_to_row("7", Port(number=3))
        assert row == {
            "switch_id": "7",
            "port_number": 3,
            "device_name": None,
            "device_mac": None,
            "device_ip": None,
            "device_type": None,
        }

    def test_device_row(self, device):
        row = port_to_row("7", Port(number=1, device=device))
        assert row["device_type"] == "computer"
        assert row["device_mac"] == device.mac


class TestTables:
    """Test REST table calls."""

    @pytest.mark.asyncio
    async def test_fetch_ports(self):
        seen = {}

        def handler(request: httpx.Request):
            seen["url"] = request.url
            seen["headers"] = request.headers
            return httpx.Response(200, json=[{"port_number": 1}, {"port_number": 2, "device_name": "PC"}])

        ports = await client_for(handler).fetch_ports("5")

        assert [p.number for p in ports] == [1, 2]
        assert seen["url"].path == "/rest/v1/ports"
        assert seen["url"].params["switch_id"] == "eq.5"
        assert seen["url"].params["order"] == "port_number.asc"
        assert seen["headers"]["apikey"] == "anon-key"
        assert seen["headers"]["authorization"] == "Bearer anon-key"

    @pytest.mark.asyncio
    async def test_insert_switch_returns_row(self):
        def handler(request: httpx.Request):
            assert request.headers["prefer"] == "return=representation"
            assert json.loads(request.content) == {"name": "Core"}
            return httpx.Response(201, json=[{"id": 9, "name": "Core"}])

        row = await client_for(handler).insert_switch("Core")

        assert row == {"id": 9, "name": "Core"}

    @pytest.mark.asyncio
    async def test_upsert_ports_single_request(self, device):
        requests = []

        def handler(request: httpx.Request):
            requests.append(request)
            return httpx.Response(201)

        await client_for(handler).upsert_ports("3", [Port(number=4), Port(number=5, device=device)])

        assert len(requests) == 1
        request = requests[0]
        assert request.method == "POST"
        assert request.url.params["on_conflict"] == "switch_id,port_number"
        assert request.headers["prefer"] == "resolution=merge-duplicates"
        rows = json.loads(request.content)
        assert [row["port_number"] for row in rows] == [4, 5]
        assert rows[0]["device_name"] is None
        assert rows[1]["device_name"] == "Recepção"

    @pytest.mark.asyncio
    async def test_error_status(self):
        def handler(request: httpx.Request):
            return httpx.Response(409, json={"message": "duplicate key value"})

        with pytest.raises(GatewayError) as exc:
            await client_for(handler).insert_ports("1", [1, 2])

        assert exc.value.status == 409
        assert exc.value.message == "duplicate key value"

    @pytest.mark.asyncio
    async def test_transport_failure(self):
        def handler(request: httpx.Request):
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(GatewayError) as exc:
            await client_for(handler).fetch_switches()

        assert "connection refused" in exc.value.message

    @pytest.mark.asyncio
    async def test_fetch_profile_missing(self):
        def handler(request: httpx.Request):
            return httpx.Response(200, json=[])

        assert await client_for(handler).fetch_profile("u1") is None


class TestAuth:
    """Test identity provider calls."""

    @pytest.mark.asyncio
    async def test_sign_in(self):
        def handler(request: httpx.Request):
            assert request.url.path == "/auth/v1/token"
            assert request.url.params["grant_type"] == "password"
            return httpx.Response(
                200,
                json={
                    "access_token": "jwt",
                    "refresh_token": "r",
                    "user": {"id": "u1", "email": "a@example.com"},
                },
            )

        session = await client_for(handler).sign_in_with_password("a@example.com", "pw")

        assert session.access_token == "jwt"
        assert session.user_id == "u1"

    @pytest.mark.asyncio
    async def test_sign_in_rejected(self):
        def handler(request: httpx.Request):
            return httpx.Response(400, json={"error_description": "Invalid login credentials"})

        with pytest.raises(AuthError) as exc:
            await client_for(handler).sign_in_with_password("a@example.com", "bad")

        assert exc.value.message == "Invalid login credentials"

    @pytest.mark.asyncio
    async def test_get_user_sends_token(self):
        def handler(request: httpx.Request):
            assert request.headers["authorization"] == "Bearer user-jwt"
            return httpx.Response(200, json={"id": "u1", "email": "a@example.com"})

        user = await client_for(handler).get_user("user-jwt")

        assert user["id"] == "u1"


class TestFunctions:
    """Test edge function invocation."""

    @pytest.mark.asyncio
    async def test_invoke(self):
        def handler(request: httpx.Request):
            assert request.url.path == "/functions/v1/manage-users"
            assert request.headers["authorization"] == "Bearer jwt"
            assert json.loads(request.content) == {"action": "list_users"}
            return httpx.Response(200, json=[{"id": "u1", "email": "a@example.com"}])

        data = await client_for(handler).invoke_function("manage-users", {"action": "list_users"}, "jwt")

        assert data[0]["id"] == "u1"

    @pytest.mark.asyncio
    async def test_error_payload_on_success_status(self):
        def handler(request: httpx.Request):
            return httpx.Response(200, json={"error": "Email already registered"})

        with pytest.raises(GatewayError) as exc:
            await client_for(handler).invoke_function("manage-users", {"action": "invite_user"}, "jwt")

        assert exc.value.message == "Email already registered"

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "status,payload",
        [(403, {"error": "not allowed"}), (200, {"error": "Forbidden: admin only"})],
    )
    async def test_forbidden(self, status, payload):
        def handler(request: httpx.Request):
            return httpx.Response(status, json=payload)

        with pytest.raises(ForbiddenError):
            await client_for(handler).invoke_function("manage-users", {"action": "list_users"}, "jwt")
