import os
from dataclasses import dataclass, fields


@dataclass
class Settings:
    # host discovery (/24 sweep)
    discovery_concurrency: int = 50
    discovery_timeout: float = 1.0
    lookup_timeout: float = 1.0

    # TCP port sweep
    sweep_concurrency: int = 500
    sweep_timeout: float = 0.2
    first_port: int = 1
    last_port: int = 65535
    progress_every: int = 5000   # emit "Scanning > N..." once per this many ports
    port_check_timeout: float = 2.0
    resolve_timeout: float = 5.0  # one forward lookup per sweep, outside the connect budget

    # pause between batches, gives the OS time to recycle sockets
    batch_pause: float = 0.05

    # TTL path discovery
    max_hops: int = 30
    hop_timeout: float = 2.0

    # packet-train quality test
    quality_timeout: float = 3.0
    quality_default_count: int = 10
    pace_threshold: int = 20     # above this many packets use the fast pace
    pace_fast: float = 0.05
    pace_slow: float = 0.2

    # continuous ping
    ping_interval: float = 1.0
    ping_timeout: float = 2.0

    ping_bin: str = "ping"

    @classmethod
    def from_env(cls, prefix: str = "NETPROBE_", **overrides) -> "Settings":
        """Build settings from NETPROBE_* environment variables, then keyword overrides."""
        values = {}
        for f in fields(cls):
            raw = os.getenv(prefix + f.name.upper())
            if raw is None:
                continue
            if f.type in (int, "int"):
                values[f.name] = int(raw)
            elif f.type in (float, "float"):
                values[f.name] = float(raw)
            else:
                values[f.name] = raw
        values.update(overrides)
        return cls(**values)
