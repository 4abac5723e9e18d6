import asyncio
import logging
from contextlib import asynccontextmanager
from datetime import datetime

from portmap.config import settings
from portmap.errors import BusyError, GatewayError, NotFoundError, ValidationError
from portmap.models import Switch
from portmap.services.gateway import GatewayClient

logger = logging.getLogger(__name__)


class SwitchRegistry:
    """In-memory view of switches and ports, reconciled with the gateway.

    Every mutation holds a registry-wide busy flag and ends with a reload, so
    callers only ever observe state that matches what the gateway stored.
    """

    def __init__(self, gateway: GatewayClient):
        self.gateway = gateway
        self._switches: list[Switch] = []
        self._active_switch_id: str | None = None
        self._busy: bool = False
        self._last_update: datetime | None = None

    # ─── state ──────────────────────────────────────────────────────────────

    @property
    def switches(self) -> list[Switch]:
        return list(self._switches)

    @property
    def active_switch_id(self) -> str | None:
        return self._active_switch_id

    @property
    def active_switch(self) -> Switch | None:
        return self.find(self._active_switch_id) if self._active_switch_id else None

    @property
    def busy(self) -> bool:
        return self._busy

    @property
    def last_update(self) -> datetime | None:
        return self._last_update

    def find(self, switch_id: str) -> Switch | None:
        for switch in self._switches:
            if switch.id == switch_id:
                return switch
        return None

    def get(self, switch_id: str) -> Switch:
        switch = self.find(switch_id)
        if switch is None:
            raise NotFoundError("switch_not_found", f"Switch {switch_id} not found")
        return switch

    def select(self, switch_id: str) -> Switch:
        """Make a switch the active selection."""
        switch = self.get(switch_id)
        self._active_switch_id = switch.id
        return switch

    # ─── reads ──────────────────────────────────────────────────────────────

    async def list_switches(self) -> list[Switch]:
        """Reload every switch and its ports from the gateway.

        On failure the previous state stays in place and GatewayError propagates.
        """
        rows = await self.gateway.fetch_switches()
        switches = await asyncio.gather(
            *(self.gateway.fetch_switch(str(row["id"]), row["name"]) for row in rows)
        )

        # Swap only once everything arrived
        self._switches = list(switches)
        self._last_update = datetime.now()
        ids = [s.id for s in self._switches]
        if self._active_switch_id not in ids:
            self._active_switch_id = ids[0] if ids else None
        logger.info(f"Loaded {len(self._switches)} switches")
        return self.switches

    async def refresh(self) -> list[Switch]:
        """Background reconciliation. Not gated by the busy flag."""
        try:
            return await self.list_switches()
        except GatewayError as e:
            logger.error(f"Background refresh failed, keeping last known state: {e}")
            raise

    # ─── mutations ──────────────────────────────────────────────────────────

    @asynccontextmanager
    async def _mutation(self, action: str):
        if self._busy:
            logger.warning(f"Rejected {action}: registry busy")
            raise BusyError()
        self._busy = True
        try:
            try:
                yield
            except GatewayError:
                # A write may have been partially applied; resync before reporting
                try:
                    await self.list_switches()
                except GatewayError as e:
                    logger.error(f"Reload after failed {action} also failed: {e}")
                raise
            await self.list_switches()
        finally:
            self._busy = False

    @staticmethod
    def _check_fields(name: str, port_count: int):
        if not name or not name.strip() or port_count <= 0:
            raise ValidationError("switch_fields_required")

    async def create(self, name: str, port_count: int) -> Switch:
        """Create a switch with ports 1..port_count and make it active."""
        self._check_fields(name, port_count)
        async with self._mutation("create"):
            row = await self.gateway.insert_switch(name)
            switch_id = str(row["id"])
            try:
                await self.gateway.insert_ports(switch_id, list(range(1, port_count + 1)))
            except GatewayError:
                logger.error(f"Port creation failed for new switch {name!r}, rolling back {switch_id}")
                try:
                    await self.gateway.delete_switch(switch_id)
                except GatewayError as rollback_error:
                    logger.error(f"Rollback of switch {switch_id} failed: {rollback_error}")
                raise
        self._active_switch_id = switch_id
        logger.info(f"Created switch {name!r} ({switch_id}) with {port_count} ports")
        return self.get(switch_id)

    async def rename_and_resize(self, switch_id: str, new_name: str, new_port_count: int) -> Switch:
        """Rename a switch and, when the port count changes, rebuild its ports.

        Resizing deletes every port and recreates 1..new_port_count, which
        discards all device assignments on that switch.
        """
        self._check_fields(new_name, new_port_count)
        current = self.get(switch_id)
        async with self._mutation("rename_and_resize"):
            await self.gateway.update_switch_name(switch_id, new_name)
            if new_port_count != len(current.ports):
                discarded = sum(1 for p in current.ports if p.device is not None)
                logger.warning(
                    f"Resizing {current.name!r} from {len(current.ports)} to {new_port_count} ports, "
                    f"discarding {discarded} device assignments"
                )
                await self.gateway.delete_ports(switch_id)
                try:
                    await self.gateway.insert_ports(switch_id, list(range(1, new_port_count + 1)))
                except GatewayError:
                    logger.error(f"Port rebuild failed for {current.name!r}, restoring {len(current.ports)} ports")
                    await self._restore_ports(current)
                    raise
        return self.get(switch_id)

    async def _restore_ports(self, snapshot: Switch):
        """Put back a switch's previous name, ports and devices after a failed rebuild."""
        try:
            await self.gateway.update_switch_name(snapshot.id, snapshot.name)
            await self.gateway.delete_ports(snapshot.id)
            await self.gateway.insert_ports(snapshot.id, [p.number for p in snapshot.ports])
            await self.gateway.upsert_ports(snapshot.id, [p for p in snapshot.ports if p.device is not None])
        except GatewayError as rollback_error:
            logger.error(f"Restoring ports of switch {snapshot.id} failed: {rollback_error}")

    async def delete(self, switch_id: str, confirmed: bool = False) -> Switch:
        """Delete a switch and all of its ports. Requires explicit confirmation."""
        switch = self.get(switch_id)
        if not confirmed:
            raise ValidationError("confirmation_required")
        async with self._mutation("delete"):
            await self.gateway.delete_ports(switch_id)
            await self.gateway.delete_switch(switch_id)
        logger.info(f"Deleted switch {switch.name!r} ({switch_id})")
        return switch

    async def update_full(self, switch_id: str, updated: Switch) -> Switch:
        """Persist the name and upsert every port's device columns."""
        self.get(switch_id)
        if not updated.name or not updated.name.strip():
            raise ValidationError("switch_fields_required")
        numbers = [p.number for p in updated.ports]
        if len(numbers) != len(set(numbers)):
            raise ValidationError("duplicate_port")
        async with self._mutation("update_full"):
            await self.gateway.update_switch_name(switch_id, updated.name)
            await self.gateway.upsert_ports(switch_id, updated.ports)
        return self.get(switch_id)

    async def add_ports(self, switch_id: str, count: int | None = None) -> Switch:
        """Append ``count`` ports numbered after the current highest port."""
        if count is None:
            count = settings.add_ports_step
        if count <= 0:
            raise ValidationError("switch_fields_required")
        current = self.get(switch_id)
        start = current.max_port_number() + 1
        async with self._mutation("add_ports"):
            await self.gateway.insert_ports(switch_id, list(range(start, start + count)))
        logger.info(f"Added ports {start}..{start + count - 1} to {current.name!r}")
        return self.get(switch_id)


# Global registry instance
registry = SwitchRegistry(GatewayClient.from_settings(settings))
