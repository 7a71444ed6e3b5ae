# netprobe/netinfo.py
import ipaddress
import logging
import socket
from typing import Optional

import psutil

from netprobe.errors import EnvironmentFailure

logger = logging.getLogger(__name__)
logger.addHandler(logging.NullHandler())

WIFI_PREFIXES = ("wlan", "wl", "wi-fi", "wifi")


def _usable_ipv4(addr) -> Optional[str]:
    if addr.family != socket.AF_INET or not addr.address:
        return None
    ip = ipaddress.ip_address(addr.address)
    if ip.is_loopback or ip.is_link_local:
        return None
    return addr.address


def local_ipv4() -> Optional[str]:
    """
    Best-effort local IPv4 address. Wi-Fi interfaces win over everything
    else (ethernet, mobile data, tunnels); loopback is never returned.
    """
    try:
        if_addrs = psutil.net_if_addrs()
        if_stats = psutil.net_if_stats()
    except (OSError, RuntimeError) as e:
        logger.warning("could not enumerate interfaces: %s", e)
        return None

    up = [name for name in if_addrs if getattr(if_stats.get(name), "isup", True)]
    wifi = [name for name in up if name.lower().startswith(WIFI_PREFIXES)]
    others = [name for name in up if name not in wifi]

    for name in wifi + others:
        for addr in if_addrs[name]:
            ip = _usable_ipv4(addr)
            if ip:
                logger.debug("using %s on interface %s", ip, name)
                return ip
    return None


def require_local_ipv4() -> str:
    ip = local_ipv4()
    if ip is None:
        raise EnvironmentFailure("No IP address found. Check network connection.")
    return ip
