# tools/run_diag.py
# Usage examples:
#   python3 -m tools.run_diag ping 8.8.8.8 --count 5
#   python3 -m tools.run_diag trace 8.8.8.8 --max-hops 20
#   python3 -m tools.run_diag quality 8.8.8.8 --count 30 --json
#   python3 -m tools.run_diag port 192.168.1.1 --port 443
#   python3 -m tools.run_diag sweep 192.168.1.1 --last-port 1024
#   python3 -m tools.run_diag scan
#   python3 -m tools.run_diag trace fake --fake

import argparse
import asyncio
import dataclasses
import json
import logging
import signal

from netprobe.config import Settings
from netprobe.engine.controller import RunController
from netprobe.engine.scanner import Scanner
from netprobe.engine.sequential import SequentialProber
from netprobe.reporting import stream_reporter
from netprobe.schemas import HopEvent

OPERATIONS = ["ping", "trace", "port", "quality", "sweep", "scan"]
FAKE_LOCAL_IP = "192.168.1.42"


def build_fake_prober(target):
    from netprobe.prober.fake import FakeProber
    hops = {ttl: [HopEvent(ttl=ttl, status="ttl_exceeded", hop_ip=f"10.0.0.{ttl}", elapsed_ms=10.0 + ttl)]
            for ttl in range(1, 5)}
    hops[5] = [HopEvent(ttl=5, status="dest_reached", hop_ip=target, elapsed_ms=40.0)]
    return FakeProber(
        alive={target, "192.168.1.1", "192.168.1.20"},
        open_ports={22, 80, 443},
        names={"192.168.1.1": "router.lan"},
        hops=hops,
        delay=0.01,
    )


def build_settings(args) -> Settings:
    overrides = {
        "max_hops": args.max_hops,
        "first_port": args.first_port,
        "last_port": args.last_port,
        "sweep_concurrency": args.sweep_concurrency,
        "sweep_timeout": args.sweep_timeout,
        "discovery_concurrency": args.discovery_concurrency,
        "discovery_timeout": args.discovery_timeout,
        "ping_bin": args.ping_bin,
    }
    return Settings.from_env(**{k: v for k, v in overrides.items() if v is not None})


def build_operation(args, prober, settings, report, results):
    if args.fake:
        scanner = Scanner(prober, settings, local_ip=lambda: FAKE_LOCAL_IP)
    else:
        scanner = Scanner(prober, settings)
    seq = SequentialProber(prober, settings)
    target = args.target

    async def operation(token):
        if args.operation == "ping":
            res = await seq.ping_forever(target, report, token, count=args.count)
        elif args.operation == "trace":
            res = await seq.trace(target, report, token)
        elif args.operation == "port":
            res = await scanner.check_port(target, args.port, report)
        elif args.operation == "quality":
            res = await seq.measure_quality(target, report, token, count=args.count)
        elif args.operation == "sweep":
            res = await scanner.sweep_ports(target, report, token)
        else:
            res = await scanner.scan_local_network(report, token)
        results.append(res)

    return operation


def to_jsonable(res):
    if dataclasses.is_dataclass(res):
        return dataclasses.asdict(res)
    if isinstance(res, list):
        return [to_jsonable(x) for x in res]
    return res


async def run(args) -> int:
    report = stream_reporter()
    settings = build_settings(args)
    if args.fake:
        prober = build_fake_prober(args.target or "8.8.8.8")
    else:
        from netprobe.prober.system import SystemProber
        prober = SystemProber(ping_bin=settings.ping_bin)

    ctrl = RunController(report)
    results = []
    await ctrl.start(build_operation(args, prober, settings, report, results), name=args.operation)

    loop = asyncio.get_running_loop()
    stopping = []

    def on_sigint():
        if not stopping:
            stopping.append(loop.create_task(ctrl.cancel()))

    try:
        loop.add_signal_handler(signal.SIGINT, on_sigint)
    except (NotImplementedError, RuntimeError):
        pass  # no signal handlers on this loop; Ctrl-C raises KeyboardInterrupt instead

    await ctrl.wait()
    if stopping:
        await stopping[0]
        report("")
        report("--- STOPPED BY USER ---")
        return 130
    if args.json and results:
        print(json.dumps(to_jsonable(results[0]), indent=2))
    return 0


def build_argparser():
    ap = argparse.ArgumentParser(description="Network diagnostics: ping, trace, port checks, scans, quality tests")
    ap.add_argument("operation", choices=OPERATIONS)
    ap.add_argument("target", nargs="?", help="Destination host/IP (not needed for scan)")
    ap.add_argument("--port", type=int, help="Port for the 'port' operation")
    ap.add_argument("--count", type=int, help="Packets for 'quality' (default 10) or 'ping' (default: until Ctrl-C)")
    ap.add_argument("--max-hops", type=int, help="Maximum TTL to probe")
    ap.add_argument("--first-port", type=int, help="First port of the sweep")
    ap.add_argument("--last-port", type=int, help="Last port of the sweep")
    ap.add_argument("--sweep-concurrency", type=int, help="Ports probed per batch")
    ap.add_argument("--sweep-timeout", type=float, help="Per-port connect timeout (seconds)")
    ap.add_argument("--discovery-concurrency", type=int, help="Hosts probed per batch")
    ap.add_argument("--discovery-timeout", type=float, help="Per-host ping timeout (seconds)")
    ap.add_argument("--ping-bin", help="Path to the ping utility")
    ap.add_argument("--fake", action="store_true", help="Use FakeProber with a canned network")
    ap.add_argument("--json", action="store_true", help="Print the final result as JSON")
    ap.add_argument("-v", "--verbose", action="count", default=0, help="-v info, -vv debug logging")
    return ap


def main(argv=None) -> int:
    ap = build_argparser()
    args = ap.parse_args(argv)

    if args.operation != "scan" and not args.target:
        ap.error(f"'{args.operation}' needs a target (e.g., 8.8.8.8)")
    if args.operation == "port" and args.port is None:
        ap.error("'port' needs --port")

    level = logging.WARNING - 10 * min(args.verbose, 2)
    logging.basicConfig(level=level, format="%(asctime)s %(levelname)s %(name)s: %(message)s")

    try:
        return asyncio.run(run(args))
    except KeyboardInterrupt:
        print("\n--- STOPPED BY USER ---")
        return 130


if __name__ == "__main__":
    raise SystemExit(main())
