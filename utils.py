"""Utility helpers shared across server modules."""

from __future__ import annotations

import ipaddress
import logging
import socket
from collections.abc import Iterable

import psutil

logger = logging.getLogger(__name__)

FALLBACK_ADDRESS = "127.0.0.1"


def hex_preview(data: bytes, limit: int = 100) -> str:
    return " ".join(f"{byte:02x}" for byte in data[:limit])


def _address_rank(address: str) -> int | None:
    try:
        parsed = ipaddress.IPv4Address(address)
    except ValueError:
        return None
    if parsed.is_loopback:
        return None
    if address.startswith("192.168."):
        return 0
    if address.startswith("10."):
        return 1
    if parsed in ipaddress.IPv4Network("172.16.0.0/12"):
        return 2
    return 3


def pick_advertised_address(addresses: Iterable[str]) -> str:
    """Choose the address to show users: 192.168 > 10 > 172.16-31 > other > loopback."""
    best: tuple[int, str] | None = None
    for address in addresses:
        rank = _address_rank(address)
        if rank is None:
            continue
        if best is None or rank < best[0]:
            best = (rank, address)
    return best[1] if best is not None else FALLBACK_ADDRESS


def _interface_addresses() -> list[str]:
    addresses: list[str] = []
    for name, entries in psutil.net_if_addrs().items():
        for entry in entries:
            if entry.family != socket.AF_INET:
                continue
            if name.startswith("lo"):
                continue
            addresses.append(entry.address)
    return addresses


def get_local_ip_address() -> str:
    """Best-effort LAN address of this host for display; never raises."""
    try:
        addresses = _interface_addresses()
    except OSError as exc:
        logger.warning("Could not enumerate network interfaces: %s", exc)
        return FALLBACK_ADDRESS
    return pick_advertised_address(addresses)


def format_size(num_bytes: int) -> str:
    if num_bytes < 1024:
        return f"{num_bytes} B"
    if num_bytes < 1024 * 1024:
        return f"{num_bytes / 1024:.1f} KB"
    return f"{num_bytes / (1024 * 1024):.1f} MB"
