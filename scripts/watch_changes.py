#!/usr/bin/env python3
"""Watch storefront collections change in real time.

Loads products, orders, users and reviews, then prints a line each time a
change notification causes a collection to be refetched.

Usage
-----
Set environment variables and run::

    export STORESYNC_BASE_URL="https://xyz.supabase.co"
    export STORESYNC_API_KEY="anon-key"
    export STORESYNC_MQTT_HOST="broker.example.com"
    python scripts/watch_changes.py

Options::

    --duration N        Stop after N seconds (0 = run until Ctrl+C)
    --no-realtime       Load once and exit
    --verbose           Enable DEBUG logging
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import signal
import sys
import time
from pathlib import Path
from typing import Any

# Allow running from the repo root without installing the package.
_repo = Path(__file__).resolve().parent.parent
_src = _repo / "src"
if _src.is_dir():
    sys.path.insert(0, str(_src))

from storesync import EntityKind, StoreSyncError, SyncConfig, SyncService  # noqa: E402


def _parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Print storefront collection updates as they happen.")
    parser.add_argument(
        "--duration",
        type=int,
        default=0,
        help="Maximum runtime in seconds (0 = run until Ctrl+C).",
    )
    parser.add_argument("--no-realtime", action="store_true", help="Load every collection once and exit.")
    parser.add_argument("--verbose", action="store_true", help="Enable DEBUG logging.")
    return parser.parse_args()


def _print_update(kind: EntityKind, entities: tuple[Any, ...]) -> None:
    ts_text = time.strftime("%Y-%m-%d %H:%M:%S", time.localtime())
    newest = entities[-1].id if entities else "-"
    print(f"[watch] {ts_text} {kind.label:<9} count={len(entities):<5} last={newest}")


def _print_warning(message: str) -> None:
    print(f"[watch] warning: {message}", file=sys.stderr)


async def _run(args: argparse.Namespace) -> int:
    overrides: dict[str, Any] = {"realtime_enabled": False} if args.no_realtime else {}
    config = SyncConfig.from_env(**overrides)

    stop = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, stop.set)

    async with SyncService(config, on_update=_print_update, on_warning=_print_warning) as sync:
        await sync.start()
        status = ", ".join(f"{kind.label}={'live' if live else 'off'}" for kind, live in sync.subscription_status.items())
        print(f"[watch] Initial load done ({status})")
        if args.no_realtime:
            return 0

        try:
            await asyncio.wait_for(stop.wait(), timeout=args.duration or None)
        except TimeoutError:
            print(f"[watch] Reached --duration={args.duration}s, stopping.")
    return 0


def _main() -> int:
    args = _parse_args()
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(levelname)s %(name)s: %(message)s",
    )
    try:
        return asyncio.run(_run(args))
    except StoreSyncError as exc:
        print(f"[watch] {exc}", file=sys.stderr)
        return 2


if __name__ == "__main__":
    raise SystemExit(_main())
