# netprobe/engine/scanner.py
import dataclasses
import ipaddress
import logging
from typing import Callable, List, Optional

from netprobe.config import Settings
from netprobe.engine.batch import BatchRunner
from netprobe.engine.state import CancelToken
from netprobe.errors import EnvironmentFailure
from netprobe.netinfo import require_local_ipv4
from netprobe.prober.base import Prober
from netprobe.reporting import Report
from netprobe.schemas import ProbeResult

logger = logging.getLogger(__name__)
logger.addHandler(logging.NullHandler())

PORT_NAMES = {
    21: "FTP", 22: "SSH", 23: "Telnet", 25: "SMTP",
    53: "DNS", 80: "HTTP", 443: "HTTPS", 445: "SMB",
    554: "RTSP", 3306: "MySQL", 3389: "RDP", 8080: "WebProxy",
}


def port_name(port: int) -> str:
    return PORT_NAMES.get(port, "TCP")


def subnet_prefix(local_ip: str) -> str:
    """'192.168.1.42' -> '192.168.1'"""
    ip = ipaddress.IPv4Address(local_ip)
    return str(ip).rsplit(".", 1)[0]


def subnet_candidates(local_ip: str) -> List[str]:
    """Hosts .1-.254 of the local /24, without our own address."""
    prefix = subnet_prefix(local_ip)
    return [f"{prefix}.{i}" for i in range(1, 255) if f"{prefix}.{i}" != local_ip]


class Scanner:
    def __init__(self, prober: Prober, settings: Optional[Settings] = None,
                 runner: Optional[BatchRunner] = None,
                 local_ip: Callable[[], str] = require_local_ipv4):
        self.prober = prober
        self.s = settings or Settings()
        self.runner = runner or BatchRunner(pause=self.s.batch_pause)
        self.local_ip = local_ip

    # -------------------------------
    # Host discovery
    # -------------------------------
    async def _discover_one(self, host: str) -> ProbeResult:
        res = await self.prober.ping(host, self.s.discovery_timeout)
        if not res.success:
            return res
        name = await self.prober.reverse_lookup(host, self.s.lookup_timeout)
        label = f"{host} ({name})" if name and name != host else host
        return dataclasses.replace(res, detail=label)

    async def discover_hosts(self, local_ip: str, report: Report, cancel: CancelToken) -> int:
        prefix = subnet_prefix(local_ip)
        report(f">>> IP SCAN: {prefix}.0/24")
        report(f"Your IP: {local_ip}")
        report("Scanning active devices...")

        found = 0
        async for res in self.runner.run(subnet_candidates(local_ip), self.s.discovery_concurrency,
                                         self._discover_one, cancel, only_success=True):
            found += 1
            report(f"[FOUND] {res.detail or res.identity} | total: {found}")

        if cancel.cancelled:
            return found
        if found == 0:
            report("No other devices found.")
        report(f">>> SCAN COMPLETED ({found} devices)")
        return found

    async def scan_local_network(self, report: Report, cancel: CancelToken) -> int:
        try:
            local_ip = self.local_ip()
        except EnvironmentFailure as e:
            logger.warning("host discovery aborted: %s", e)
            report(f"Error: {e}")
            return 0
        return await self.discover_hosts(local_ip, report, cancel)

    # -------------------------------
    # Port sweep
    # -------------------------------
    async def sweep_ports(self, host: str, report: Report, cancel: CancelToken) -> int:
        first, last, every = self.s.first_port, self.s.last_port, self.s.progress_every
        report(f">>> FULL PORT SCAN: {host}")
        address = await self.prober.resolve(host, self.s.resolve_timeout)
        if address is None:
            logger.warning("port sweep aborted: %s does not resolve", host)
            report(f"Error: could not resolve {host}")
            return 0
        report(f"Scanning ports {first}-{last}...")
        report("(This might take a minute, please wait)")

        last_mark = None

        def progress(index, batch):
            nonlocal last_mark
            mark = (batch[0] - first) // every
            if mark != last_mark:
                last_mark = mark
                report(f"Scanning > {batch[0]}...")

        async def connect(port):
            return await self.prober.connect(address, port, self.s.sweep_timeout)

        total_open = 0
        async for res in self.runner.run(range(first, last + 1), self.s.sweep_concurrency,
                                         connect, cancel, only_success=True, on_batch=progress):
            total_open += 1
            report(f"[OPEN] Port {res.identity} ({port_name(res.identity)})")

        if cancel.cancelled:
            return total_open
        report(f">>> SCAN COMPLETED (Found {total_open} open ports)")
        return total_open

    async def check_port(self, host: str, port: int, report: Report) -> bool:
        report(f">>> CHECKING PORT {port} on {host}...")
        res = await self.prober.connect(host, port, self.s.port_check_timeout)
        if res.success:
            report(f"Result: Port {port} is OPEN")
        else:
            report(f"Result: Port {port} is CLOSED")
        return res.success
