"""
NetMon console CLI: unified entrypoint for the monitoring console.

Usage examples:
    python -m netmonctl.cli.netmonctl serve
    python -m netmonctl.cli.netmonctl dashboard
    python -m netmonctl.cli.netmonctl monitor --interval 30 --duration 120
"""

import argparse
import asyncio
import json
import sys
from datetime import datetime

from netmon.base.config import get_config, setup_logging
from netmon.errors import NetMonError
from netmon.monitoring.events import MonitoringEvent, format_event_message
from netmon.server.state import MonitoringConsole


async def _show_dashboard() -> int:
    console = MonitoringConsole.from_config()
    try:
        snapshot = await console.aggregator.refresh_dashboard()
    finally:
        await console.aclose()

    print(json.dumps(snapshot.model_dump(mode="json"), indent=2))
    if snapshot.error:
        print(f"⚠️  {snapshot.error}", file=sys.stderr)
        return 1
    return 0


async def _run_monitor(interval, duration: float) -> int:
    console = MonitoringConsole.from_config()

    def echo(event: MonitoringEvent) -> None:
        stamp = datetime.fromtimestamp(event.timestamp).strftime("%H:%M:%S")
        print(f"[{stamp}] {format_event_message(event)}")

    console.session.subscribe(echo)
    try:
        status = await console.session.start(interval)
        print(f"📡 Monitoring every {status.interval_seconds}s (Ctrl+C to stop)")
        if duration > 0:
            await asyncio.sleep(duration)
        else:
            await asyncio.Event().wait()
        status = await console.session.stop()
        print(f"✅ Stopped after {status.scan_count} scan(s), "
              f"{status.devices_online}/{status.devices_total} devices online")
        return 0
    except NetMonError as e:
        print(f"❌ {e.message}", file=sys.stderr)
        return 1
    finally:
        await console.aclose()


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="NetMon Console Command Interface")
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("serve", help="Run the HTTP API")
    sub.add_parser("dashboard", help="Fetch one dashboard snapshot and print it")

    monitor = sub.add_parser("monitor", help="Run a monitoring session in the foreground")
    monitor.add_argument("--interval", type=int, default=None,
                         help="Scan interval in seconds (default: from scanner settings)")
    monitor.add_argument("--duration", type=float, default=0,
                         help="Stop after this many seconds (default: run until interrupted)")

    args = parser.parse_args(argv)
    config = get_config()
    setup_logging(config)

    if args.command == "serve":
        print("🚀 Starting NetMon console API...")
        import uvicorn

        uvicorn.run(
            "netmon.server.api:create_app",
            factory=True,
            host=config.api_host,
            port=config.api_port,
            reload=config.debug,
        )
        return 0
    if args.command == "dashboard":
        return asyncio.run(_show_dashboard())
    if args.command == "monitor":
        try:
            return asyncio.run(_run_monitor(args.interval, args.duration))
        except KeyboardInterrupt:
            return 130
    return 2


if __name__ == "__main__":
    sys.exit(main())
