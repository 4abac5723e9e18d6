import asyncio
import logging

from fastapi import APIRouter, Depends, Query

from portmap.config import settings
from portmap.dependencies import get_device_editor, get_loaded_registry, get_registry, require_session
from portmap.errors import failing_as
from portmap.models import (
    AddPortsRequest,
    DashboardStatus,
    DeviceDraft,
    Notification,
    PortView,
    SwitchCreate,
    SwitchMutation,
    SwitchUpdate,
)
from portmap.notifications import notify
from portmap.services.device_editor import DeviceEditor
from portmap.services.port_view import build_port_view
from portmap.services.registry import SwitchRegistry

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/switches", tags=["switches"], dependencies=[Depends(require_session)])


def _mutation(registry: SwitchRegistry, notification: Notification, switch_id: str | None = None) -> SwitchMutation:
    return SwitchMutation(
        notification=notification,
        switch=registry.find(switch_id) if switch_id else None,
        active_switch_id=registry.active_switch_id,
    )


@router.get("", response_model=DashboardStatus)
async def list_switches(registry: SwitchRegistry = Depends(get_registry)):
    """Reload all switches and ports from the gateway."""
    with failing_as("list_failed"):
        await registry.list_switches()
    return DashboardStatus(
        switches=registry.switches,
        active_switch_id=registry.active_switch_id,
        busy=registry.busy,
        last_update=registry.last_update,
    )


@router.post("", response_model=SwitchMutation, status_code=201)
async def create_switch(body: SwitchCreate, registry: SwitchRegistry = Depends(get_loaded_registry)):
    """Create a switch with ports numbered 1..port_count."""
    port_count = body.port_count if body.port_count is not None else settings.default_port_count
    with failing_as("create_failed"):
        switch = await registry.create(body.name, port_count)
    return _mutation(registry, notify("switch_created", name=switch.name), switch.id)


@router.put("/{switch_id}", response_model=SwitchMutation)
async def edit_switch(switch_id: str, body: SwitchUpdate, registry: SwitchRegistry = Depends(get_loaded_registry)):
    """Rename a switch. A different port count rebuilds all ports and clears their devices."""
    with failing_as("edit_failed"):
        switch = await registry.rename_and_resize(switch_id, body.name, body.port_count)
    return _mutation(registry, notify("switch_updated", name=switch.name), switch.id)


@router.delete("/{switch_id}", response_model=SwitchMutation)
async def delete_switch(
    switch_id: str,
    confirm: bool = Query(False, description="Must be true; deletion cannot be undone"),
    registry: SwitchRegistry = Depends(get_loaded_registry),
):
    """Delete a switch and its ports once confirmed."""
    with failing_as("delete_failed"):
        switch = await registry.delete(switch_id, confirmed=confirm)
    return _mutation(registry, notify("switch_deleted", name=switch.name))


@router.post("/{switch_id}/select", response_model=SwitchMutation)
async def select_switch(switch_id: str, registry: SwitchRegistry = Depends(get_loaded_registry)):
    """Make a switch the active selection."""
    switch = registry.select(switch_id)
    return _mutation(registry, notify("switch_selected", name=switch.name), switch.id)


@router.post("/{switch_id}/ports", response_model=SwitchMutation)
async def add_ports(
    switch_id: str,
    body: AddPortsRequest | None = None,
    registry: SwitchRegistry = Depends(get_loaded_registry),
):
    """Append ports after the highest existing port number."""
    count = body.count if body and body.count is not None else settings.add_ports_step
    with failing_as("add_ports_failed"):
        switch = await registry.add_ports(switch_id, count)
    return _mutation(registry, notify("ports_added", name=switch.name, count=count), switch.id)


@router.get("/{switch_id}/view", response_model=PortView)
async def port_view(
    switch_id: str,
    search: str = "",
    registry: SwitchRegistry = Depends(get_loaded_registry),
):
    """Filtered, block-split ports of one switch with unfiltered stats."""
    return build_port_view(registry.get(switch_id), search, settings.ports_per_block)


@router.put("/{switch_id}/ports/{port_number}/device", response_model=SwitchMutation)
async def save_device(
    switch_id: str,
    port_number: int,
    draft: DeviceDraft,
    editor: DeviceEditor = Depends(get_device_editor),
):
    """Validate a device and attach it to a port."""
    with failing_as("update_failed"):
        switch = await editor.commit(switch_id, port_number, draft)
    return _mutation(editor.registry, notify("switch_data_updated", name=switch.name), switch.id)


@router.delete("/{switch_id}/ports/{port_number}/device", response_model=SwitchMutation)
async def remove_device(
    switch_id: str,
    port_number: int,
    editor: DeviceEditor = Depends(get_device_editor),
):
    """Free a port, keeping the port itself."""
    with failing_as("update_failed"):
        switch = await editor.remove(switch_id, port_number)
    return _mutation(editor.registry, notify("switch_data_updated", name=switch.name), switch.id)


@router.post("/{switch_id}/refresh", response_model=list[Notification])
async def refresh_switch(switch_id: str, registry: SwitchRegistry = Depends(get_loaded_registry)):
    """Simulated port status check. No device is contacted."""
    switch = registry.get(switch_id)
    started = notify("refresh_started", name=switch.name)
    await asyncio.sleep(settings.simulated_refresh_delay)
    logger.info(f"Simulated status check of {switch.name!r} finished")
    return [started, notify("refresh_done", name=switch.name)]
