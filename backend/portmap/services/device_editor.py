import logging
import re

from portmap.errors import NotFoundError, ValidationError
from portmap.models import Device, DeviceDraft, DeviceType, Switch
from portmap.services.registry import SwitchRegistry

logger = logging.getLogger(__name__)

# Six hex pairs, all separated by ":" or all by "-"
MAC_PATTERN = re.compile(r"^[0-9A-Fa-f]{2}([:-])(?:[0-9A-Fa-f]{2}\1){4}[0-9A-Fa-f]{2}$")
IP_OCTET = r"(?:25[0-5]|2[0-4][0-9]|[01]?[0-9][0-9]?)"
IP_PATTERN = re.compile(rf"^(?:{IP_OCTET}\.){{3}}{IP_OCTET}$")


def normalize_mac(mac: str) -> str:
    return mac.strip().upper()


def is_valid_mac(mac: str) -> bool:
    return bool(MAC_PATTERN.match(mac))


def is_valid_ip(ip: str) -> bool:
    return bool(IP_PATTERN.match(ip))


def validate_device(name: str, mac: str, ip: str, device_type: str = DeviceType.COMPUTER.value) -> Device:
    """Validate editor input and return a normalized Device.

    Every field is checked before raising, so the error lists all failures;
    its ``code`` is the first one in field order.
    """
    name = (name or "").strip()
    mac = normalize_mac(mac or "")
    ip = (ip or "").strip()
    errors: dict[str, str] = {}

    if not name:
        errors["name"] = "required"

    if not mac:
        errors["mac"] = "required"
    elif not is_valid_mac(mac):
        errors["mac"] = "invalid_mac"

    if not ip:
        errors["ip"] = "required"
    elif not is_valid_ip(ip):
        errors["ip"] = "invalid_ip"

    try:
        parsed_type = DeviceType(device_type)
    except ValueError:
        errors["type"] = "invalid_type"

    if errors:
        first = next(iter(errors.values()))
        raise ValidationError(first, fields=errors)

    return Device(name=name, mac=mac, ip=ip, type=parsed_type)


class DeviceEditor:
    """Stages one port's device and commits it through the registry."""

    def __init__(self, registry: SwitchRegistry):
        self.registry = registry

    def _with_device(self, switch_id: str, port_number: int, device: Device | None) -> Switch:
        switch = self.registry.get(switch_id)
        if switch.port(port_number) is None:
            raise NotFoundError("port_not_found", f"Port {port_number} not found on {switch.name}")
        ports = [
            port.model_copy(update={"device": device}) if port.number == port_number else port
            for port in switch.ports
        ]
        return switch.model_copy(update={"ports": ports})

    async def commit(self, switch_id: str, port_number: int, draft: DeviceDraft) -> Switch:
        device = validate_device(draft.name, draft.mac, draft.ip, draft.type)
        updated = self._with_device(switch_id, port_number, device)
        logger.info(f"Attaching {device.name!r} to port {port_number} of {updated.name!r}")
        return await self.registry.update_full(switch_id, updated)

    async def remove(self, switch_id: str, port_number: int) -> Switch:
        updated = self._with_device(switch_id, port_number, None)
        logger.info(f"Freeing port {port_number} of {updated.name!r}")
        return await self.registry.update_full(switch_id, updated)
