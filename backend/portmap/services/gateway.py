import logging
from typing import Any

import httpx

from portmap.config import Settings
from portmap.errors import AuthError, ForbiddenError, GatewayError
from portmap.models import Device, DeviceType, Port, Profile, Session, Switch

logger = logging.getLogger(__name__)

PORT_COLUMNS = "port_number,device_name,device_mac,device_ip,device_type"
PROFILE_COLUMNS = "id,email,role,full_name"


def port_from_row(row: dict[str, Any]) -> Port:
    """Build a Port from a ``ports`` row. A row without device_name is free."""
    device = None
    if row.get("device_name"):
        try:
            device_type = DeviceType(row.get("device_type") or DeviceType.COMPUTER)
        except ValueError:
            logger.warning(f"Unknown device type {row.get('device_type')!r} on port {row['port_number']}")
            device_type = DeviceType.COMPUTER
        device = Device(
            name=row["device_name"],
            mac=row.get("device_mac") or "",
            ip=row.get("device_ip") or "",
            type=device_type,
        )
    return Port(number=row["port_number"], device=device)


def port_to_row(switch_id: str, port: Port) -> dict[str, Any]:
    """Serialize a Port for upsert. A free port clears every device column."""
    device = port.device
    return {
        "switch_id": switch_id,
        "port_number": port.number,
        "device_name": device.name if device else None,
        "device_mac": device.mac if device else None,
        "device_ip": device.ip if device else None,
        "device_type": device.type.value if device else None,
    }


def _error_message(response: httpx.Response) -> str:
    """Pull a human readable message out of an error response."""
    try:
        data = response.json()
    except ValueError:
        return response.text or f"HTTP {response.status_code}"
    if isinstance(data, dict):
        for key in ("error_description", "message", "msg", "error"):
            if data.get(key):
                return str(data[key])
    return response.text or f"HTTP {response.status_code}"


class GatewayClient:
    """Client for the backend-as-a-service: REST tables, auth and functions."""

    def __init__(
        self,
        base_url: str,
        api_key: str,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.timeout = timeout
        self._transport = transport

    @classmethod
    def from_settings(cls, settings: Settings) -> "GatewayClient":
        return cls(settings.gateway_url, settings.gateway_api_key, settings.gateway_timeout)

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(base_url=self.base_url, timeout=self.timeout, transport=self._transport)

    def _headers(self, access_token: str | None = None, prefer: str | None = None) -> dict[str, str]:
        headers = {
            "apikey": self.api_key,
            "Authorization": f"Bearer {access_token or self.api_key}",
        }
        if prefer:
            headers["Prefer"] = prefer
        return headers

    async def _request(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, str] | None = None,
        json: Any = None,
        access_token: str | None = None,
        prefer: str | None = None,
    ) -> httpx.Response:
        """Send a request and return the response, raising GatewayError on transport failure."""
        try:
            async with self._client() as client:
                return await client.request(
                    method,
                    path,
                    params=params,
                    json=json,
                    headers=self._headers(access_token, prefer),
                )
        except httpx.HTTPError as e:
            logger.error(f"Gateway {method} {path} failed: {e}")
            raise GatewayError(str(e) or e.__class__.__name__) from e

    async def _table(self, method: str, table: str, **kwargs) -> Any:
        """Call a REST table endpoint and return the decoded body (None when empty)."""
        response = await self._request(method, f"/rest/v1/{table}", **kwargs)
        if response.status_code >= 400:
            message = _error_message(response)
            logger.error(f"Gateway {method} {table} returned {response.status_code}: {message}")
            raise GatewayError(message, status=response.status_code)
        if not response.content:
            return None
        return response.json()

    # ─── switches / ports ───────────────────────────────────────────────────

    async def fetch_switches(self) -> list[dict[str, Any]]:
        return await self._table("GET", "switches", params={"select": "id,name"}) or []

    async def fetch_ports(self, switch_id: str) -> list[Port]:
        rows = await self._table(
            "GET",
            "ports",
            params={
                "select": PORT_COLUMNS,
                "switch_id": f"eq.{switch_id}",
                "order": "port_number.asc",
            },
        )
        return [port_from_row(row) for row in rows or []]

    async def fetch_switch(self, switch_id: str, name: str) -> Switch:
        return Switch(id=str(switch_id), name=name, ports=await self.fetch_ports(switch_id))

    async def insert_switch(self, name: str) -> dict[str, Any]:
        rows = await self._table("POST", "switches", json={"name": name}, prefer="return=representation")
        if not rows:
            raise GatewayError("Switch insert returned no row")
        return rows[0] if isinstance(rows, list) else rows

    async def update_switch_name(self, switch_id: str, name: str):
        await self._table("PATCH", "switches", params={"id": f"eq.{switch_id}"}, json={"name": name})

    async def delete_switch(self, switch_id: str):
        await self._table("DELETE", "switches", params={"id": f"eq.{switch_id}"})

    async def insert_ports(self, switch_id: str, numbers: list[int]):
        rows = [{"switch_id": switch_id, "port_number": n} for n in numbers]
        await self._table("POST", "ports", json=rows)

    async def delete_ports(self, switch_id: str):
        await self._table("DELETE", "ports", params={"switch_id": f"eq.{switch_id}"})

    async def upsert_ports(self, switch_id: str, ports: list[Port]):
        """Upsert every port's device columns in one request, applied as a single statement."""
        if not ports:
            return
        await self._table(
            "POST",
            "ports",
            params={"on_conflict": "switch_id,port_number"},
            json=[port_to_row(switch_id, port) for port in ports],
            prefer="resolution=merge-duplicates",
        )

    # ─── auth ───────────────────────────────────────────────────────────────

    async def _auth(self, method: str, path: str, **kwargs) -> Any:
        response = await self._request(method, f"/auth/v1/{path}", **kwargs)
        if response.status_code >= 400:
            message = _error_message(response)
            logger.warning(f"Auth {path} rejected ({response.status_code}): {message}")
            raise AuthError("auth_error", message)
        if not response.content:
            return None
        return response.json()

    async def sign_in_with_password(self, email: str, password: str) -> Session:
        data = await self._auth(
            "POST",
            "token",
            params={"grant_type": "password"},
            json={"email": email, "password": password},
        )
        user = data.get("user") or {}
        return Session(
            access_token=data["access_token"],
            refresh_token=data.get("refresh_token"),
            user_id=str(user.get("id", "")),
            email=user.get("email"),
        )

    async def get_user(self, access_token: str) -> dict[str, Any]:
        return await self._auth("GET", "user", access_token=access_token)

    async def sign_out(self, access_token: str):
        await self._auth("POST", "logout", access_token=access_token)

    async def fetch_profile(self, user_id: str) -> Profile | None:
        rows = await self._table(
            "GET",
            "user_profiles",
            params={"select": PROFILE_COLUMNS, "id": f"eq.{user_id}"},
        )
        if not rows:
            return None
        return Profile(**rows[0])

    # ─── functions ──────────────────────────────────────────────────────────

    async def invoke_function(self, name: str, body: dict[str, Any], access_token: str) -> Any:
        """Invoke an edge function with the caller's bearer token.

        A ``{"error": ...}`` payload is an error even on HTTP 200. Rejections
        flagged as forbidden raise ForbiddenError so callers can tell them apart.
        """
        response = await self._request("POST", f"/functions/v1/{name}", json=body, access_token=access_token)
        data: Any = None
        if response.content:
            try:
                data = response.json()
            except ValueError:
                data = None

        error: str | None = None
        if response.status_code >= 400:
            error = _error_message(response)
        elif isinstance(data, dict) and data.get("error"):
            error = str(data["error"])

        if error is not None:
            if response.status_code in (401, 403) or "Forbidden" in error:
                logger.info(f"Function {name} ({body.get('action')}) forbidden: {error}")
                raise ForbiddenError("forbidden", error)
            logger.error(f"Function {name} ({body.get('action')}) failed: {error}")
            raise GatewayError(error, status=response.status_code)
        return data
