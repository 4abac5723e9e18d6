import math

from portmap.models import EmptyState, Port, PortBlock, PortStats, PortView, Switch

PORTS_PER_BLOCK = 16


def port_matches(port: Port, term: str) -> bool:
    """Match on port number, or on the device's name, IP or MAC."""
    if not term:
        return True
    if term in str(port.number):
        return True
    device = port.device
    if device is None:
        return False
    term_lower = term.lower()
    return (
        term_lower in device.name.lower()
        or term in device.ip
        or term_lower in device.mac.lower()
    )


def filter_ports(ports: list[Port], term: str) -> list[Port]:
    return [port for port in ports if port_matches(port, term)]


def split_blocks(ports: list[Port], size: int = PORTS_PER_BLOCK) -> list[PortBlock]:
    """Split ports, in their existing order, into contiguous display blocks."""
    blocks = []
    for i in range(0, len(ports), size):
        chunk = ports[i:i + size]
        first, last = chunk[0].number, chunk[-1].number
        blocks.append(PortBlock(label=f"{first} - {last}", first=first, last=last, ports=chunk))
    return blocks


def utilization(connected: int, total: int) -> int:
    """Connected share in percent, rounding halves up. 0 for an empty switch."""
    if total <= 0:
        return 0
    return math.floor(connected / total * 100 + 0.5)


def port_stats(ports: list[Port]) -> PortStats:
    total = len(ports)
    connected = sum(1 for port in ports if port.device is not None)
    return PortStats(
        total=total,
        connected=connected,
        free=total - connected,
        utilization=utilization(connected, total),
    )


def empty_state(total: int, matched: int, term: str) -> EmptyState | None:
    if matched > 0:
        return None
    if term:
        return EmptyState.NO_MATCHES
    if total == 0:
        return EmptyState.NO_PORTS
    return EmptyState.NO_VISIBLE_PORTS


def build_port_view(switch: Switch, term: str = "", block_size: int = PORTS_PER_BLOCK) -> PortView:
    """Derive the dashboard view of one switch. Stats ignore the search term."""
    term = term or ""
    filtered = filter_ports(switch.ports, term)
    return PortView(
        switch_id=switch.id,
        switch_name=switch.name,
        search=term,
        stats=port_stats(switch.ports),
        blocks=split_blocks(filtered, block_size),
        matched=len(filtered),
        empty_state=empty_state(len(switch.ports), len(filtered), term),
    )
