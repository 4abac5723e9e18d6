from fastapi import APIRouter, Depends

from portmap.dependencies import get_loaded_registry, get_registry, require_session
from portmap.errors import failing_as
from portmap.models import SystemStatus
from portmap.notifications import notify
from portmap.services.port_view import utilization
from portmap.services.registry import SwitchRegistry

router = APIRouter(prefix="/api", tags=["status"])


@router.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy"}


@router.get("/info")
async def info():
    """Service information."""
    return {
        "name": "Portmap",
        "version": "1.0.0",
        "docs": "/docs",
    }


@router.get("/status", response_model=SystemStatus, dependencies=[Depends(require_session)])
async def get_system_status(registry: SwitchRegistry = Depends(get_loaded_registry)):
    """Port totals across every switch."""
    ports = [port for switch in registry.switches for port in switch.ports]
    connected = sum(1 for port in ports if port.device is not None)
    return SystemStatus(
        total_switches=len(registry.switches),
        total_ports=len(ports),
        connected_ports=connected,
        free_ports=len(ports) - connected,
        utilization=utilization(connected, len(ports)),
        busy=registry.busy,
        last_update=registry.last_update,
    )


@router.post("/refresh", dependencies=[Depends(require_session)])
async def refresh_data(registry: SwitchRegistry = Depends(get_registry)):
    """Force a reconciliation with the gateway."""
    with failing_as("list_failed"):
        switches = await registry.refresh()
    return {"status": "refreshed", "notification": notify("data_reloaded", count=len(switches))}
