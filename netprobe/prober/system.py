# netprobe/prober/system.py
import asyncio
import contextlib
import logging
import math
import platform
import re
import shutil
import socket
import time
from typing import List, Optional, Tuple

from netprobe.errors import ProbeError
from netprobe.prober.base import Prober
from netprobe.schemas import HopEvent, ProbeResult, ReplyType

logger = logging.getLogger(__name__)
logger.addHandler(logging.NullHandler())

DEFAULT_PING_BIN = shutil.which("ping") or "/bin/ping"
SYSTEM = platform.system().lower()

_IPV4_RE = re.compile(r"\b(\d{1,3}(?:\.\d{1,3}){3})\b")
_TIME_RE = re.compile(r"time[=<]\s*(\d+(?:\.\d+)?)\s*ms", re.IGNORECASE)


def build_ping_cmd(ping_bin: str, host: str, timeout: float, ttl: Optional[int] = None,
                   system: str = SYSTEM) -> List[str]:
    """argv for a single echo request; the wait flag differs per platform."""
    if system.startswith("win"):
        cmd = [ping_bin, "-n", "1", "-w", str(max(1, int(timeout * 1000)))]
        if ttl is not None:
            cmd += ["-i", str(ttl)]
    elif system == "darwin":
        cmd = [ping_bin, "-c", "1", "-W", str(max(1, int(timeout * 1000)))]
        if ttl is not None:
            cmd += ["-m", str(ttl)]
    else:
        cmd = [ping_bin, "-c", "1", "-W", str(max(1, int(math.ceil(timeout))))]
        if ttl is not None:
            cmd += ["-t", str(ttl)]
    return cmd + [host]


def extract_ipv4(line: str) -> Optional[str]:
    m = _IPV4_RE.search(line)
    return m.group(1) if m else None


def reply_line(out: str) -> Optional[str]:
    """First echo-reply line of ping output, e.g. '64 bytes from 1.1.1.1: ... time=9.8 ms'."""
    for line in out.splitlines():
        low = line.lower()
        if "exceeded" in low or "expired" in low or "unreachable" in low:
            continue
        if "bytes from" in low or ("reply from" in low and "bytes=" in low):
            return line.strip()
    return None


def reply_time_ms(out: str) -> Optional[float]:
    m = _TIME_RE.search(out)
    if m:
        return float(m.group(1))
    return None


def classify_hop(out: str, dest: str) -> Tuple[ReplyType, Optional[str]]:
    """
    Map the text of one hop-limited ping to (status, responding address).
    Intermediate routers answer with 'From x ... Time to live exceeded'
    (Linux), '... bytes from x: Time to live exceeded' (macOS) or
    'Reply from x: TTL expired in transit' (Windows).
    """
    for line in out.splitlines():
        low = line.lower()
        if "exceeded" in low or "expired" in low or low.lstrip().startswith("from "):
            ip = extract_ipv4(line)
            if ip:
                # a router that happens to be the target itself still ends the trace
                if ip == dest:
                    return "dest_reached", ip
                return "ttl_exceeded", ip
        elif "bytes from" in low or ("reply from" in low and "bytes=" in low):
            return "dest_reached", extract_ipv4(line) or dest
    return "timeout", None


class SystemProber(Prober):
    """
    Probes through the platform's ping utility and TCP stack. One child
    process per ping; it is always killed and reaped before the call
    returns, including on timeout and task cancellation.
    """

    def __init__(self, ping_bin: str = DEFAULT_PING_BIN, system: str = SYSTEM, grace: float = 1.0):
        self.ping_bin = ping_bin
        self.system = system
        self.grace = grace  # extra wait on top of ping's own -W before we kill it

    def _build_cmd(self, host: str, timeout: float, ttl: Optional[int] = None) -> List[str]:
        return build_ping_cmd(self.ping_bin, host, timeout, ttl=ttl, system=self.system)

    async def _run_cmd(self, cmd: List[str], timeout: float) -> Tuple[int, str]:
        # Spawn errors (missing binary, EAGAIN, ...) propagate as OSError; callers decide.
        proc = await asyncio.create_subprocess_exec(
            *cmd,
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.STDOUT,
        )
        try:
            out, _ = await asyncio.wait_for(proc.communicate(), timeout + self.grace)
        except TimeoutError:
            return 124, ""
        finally:
            if proc.returncode is None:
                with contextlib.suppress(ProcessLookupError):
                    proc.kill()
                await proc.wait()
        return proc.returncode, out.decode("utf-8", "ignore")

    async def ping(self, host: str, timeout: float) -> ProbeResult:
        t0 = time.perf_counter()
        try:
            code, out = await self._run_cmd(self._build_cmd(host, timeout), timeout)
        except OSError as e:
            logger.debug("ping %s: spawn failed: %s", host, e)
            return ProbeResult.failed(host, (time.perf_counter() - t0) * 1000.0, detail=str(e))
        elapsed = (time.perf_counter() - t0) * 1000.0
        if code != 0:
            return ProbeResult.failed(host, elapsed)
        rtt = reply_time_ms(out)
        return ProbeResult(host, True, rtt if rtt is not None else elapsed, reply_line(out))

    async def connect(self, host: str, port: int, timeout: float) -> ProbeResult:
        t0 = time.perf_counter()
        writer = None
        try:
            async with asyncio.timeout(timeout):
                _, writer = await asyncio.open_connection(host, port)
        except (OSError, TimeoutError, UnicodeError) as e:
            logger.debug("connect %s:%s failed: %r", host, port, e)
            return ProbeResult.failed(port, (time.perf_counter() - t0) * 1000.0)
        else:
            return ProbeResult(port, True, (time.perf_counter() - t0) * 1000.0, host)
        finally:
            if writer is not None:
                writer.close()
                with contextlib.suppress(OSError):
                    await writer.wait_closed()

    async def resolve(self, host: str, timeout: float) -> Optional[str]:
        loop = asyncio.get_running_loop()
        try:
            async with asyncio.timeout(timeout):
                infos = await loop.getaddrinfo(host, None, family=socket.AF_INET, type=socket.SOCK_STREAM)
        except (OSError, TimeoutError, UnicodeError) as e:
            logger.debug("resolve %s failed: %r", host, e)
            return None
        return infos[0][4][0] if infos else None

    async def reverse_lookup(self, address: str, timeout: float) -> Optional[str]:
        loop = asyncio.get_running_loop()
        try:
            async with asyncio.timeout(timeout):
                name, _ = await loop.getnameinfo((address, 0), socket.NI_NAMEREQD)
        except (OSError, TimeoutError, UnicodeError) as e:
            logger.debug("reverse lookup %s failed: %r", address, e)
            return None
        return name or None

    async def probe_hop(self, dest: str, ttl: int, timeout: float) -> HopEvent:
        t0 = time.perf_counter()
        try:
            _, out = await self._run_cmd(self._build_cmd(dest, timeout, ttl=ttl), timeout)
        except OSError as e:
            raise ProbeError(f"could not run {self.ping_bin}: {e}") from e
        elapsed = (time.perf_counter() - t0) * 1000.0
        status, hop_ip = classify_hop(out, dest)
        if status == "timeout":
            return HopEvent(ttl=ttl, status="timeout")
        return HopEvent(ttl=ttl, status=status, hop_ip=hop_ip, elapsed_ms=elapsed)
