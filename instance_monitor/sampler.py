"""Helpers for reading CPU and memory utilization from the host."""
from __future__ import annotations

import ipaddress
import logging
import socket
from dataclasses import dataclass
from typing import Optional

import psutil

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class HostSnapshot:
    cpu_busy_percent: float
    memory_used: int
    memory_total: int


def _is_usable_ipv4(address: str) -> bool:
    try:
        ip = ipaddress.ip_address(address)
    except ValueError:
        return False
    return ip.version == 4 and not ip.is_loopback and not ip.is_unspecified


def _hostname_ipv4() -> Optional[str]:
    try:
        hostname = socket.gethostname()
        infos = socket.getaddrinfo(hostname, 0, socket.AF_INET, socket.SOCK_STREAM)
    except (OSError, UnicodeError) as exc:
        logger.debug("Hostname lookup failed: %s", exc)
        return None

    for _, _, _, _, sockaddr in infos:
        if _is_usable_ipv4(sockaddr[0]):
            return sockaddr[0]
    return None


def _primary_interface_ipv4() -> Optional[str]:
    try:
        stats = psutil.net_if_stats()
        addrs = psutil.net_if_addrs()
    except (OSError, psutil.Error) as exc:
        logger.debug("Interface enumeration failed: %s", exc)
        return None

    for name, stat in stats.items():
        if not stat.isup or name.lower().startswith("lo"):
            continue
        for addr in addrs.get(name, []):
            if addr.family == socket.AF_INET and _is_usable_ipv4(addr.address):
                return addr.address
    return None


class HostSampler:
    """Blocking reader for global CPU busy percentage and memory usage.

    ``psutil.cpu_percent(interval=None)`` reports usage since the previous
    call, so the counter is primed on construction and each ``sample()``
    covers the time since the last one.
    """

    def __init__(self):
        psutil.cpu_percent(interval=None)

    def sample(self) -> HostSnapshot:
        cpu_percent = psutil.cpu_percent(interval=None)
        memory = psutil.virtual_memory()
        return HostSnapshot(
            cpu_busy_percent=float(cpu_percent),
            memory_used=int(memory.total - memory.available),
            memory_total=int(memory.total),
        )

    def resolve_instance_address(self) -> Optional[str]:
        """Best-effort IPv4 address identifying this host, or ``None``."""
        return _hostname_ipv4() or _primary_interface_ipv4()
