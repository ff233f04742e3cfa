"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

Command line entry point (`info2go`).
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from collections.abc import Callable, Sequence

from .errors import Info2GoError, UnknownLocationError
from .service import Info2GoService

ServiceFactory = Callable[[], Info2GoService]


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="info2go", description="Location content cache and refresh scheduler"
    )
    parser.add_argument("--log-level", default="WARNING")
    commands = parser.add_subparsers(dest="command", required=True)

    commands.add_parser("status", help="Show connectivity and per-location freshness")

    refresh = commands.add_parser("refresh", help="Refresh every outdated topic")
    refresh.add_argument("--force", action="store_true", help="Refresh all topics")

    show = commands.add_parser("show", help="Open one location and print its topics")
    show.add_argument("location")

    commands.add_parser("probe", help="Probe provider connectivity")

    serve = commands.add_parser("serve", help="Run the HTTP status API")
    serve.add_argument("--host", default="127.0.0.1")
    serve.add_argument("--port", type=int, default=8787)
    return parser.parse_args(argv)


async def _status(service: Info2GoService) -> None:
    await service.prober.probe()
    snapshot = service.status()
    print(f"online={str(snapshot['online']).lower()}")
    print(f"provider={snapshot['provider']}")
    print(f"credential_status={snapshot['credential_status'] or 'unknown'}")
    print(f"outdated_count={snapshot['outdated_count']}")
    for row in snapshot["locations"]:
        print(f"{row['id']}\t{row['status']}\t{row['description']}")


async def _refresh(service: Info2GoService, force: bool) -> None:
    await service.prober.probe()
    report = await service.refresh_outdated(force_all=force)
    print(f"result={report.result}")
    print(f"collected={report.collected}")
    print(f"batches={report.batches}")
    print(f"succeeded={report.succeeded}")
    print(f"failed={report.failed}")


async def _show(service: Info2GoService, location_id: str) -> None:
    await service.prober.probe()
    view = await service.open_location(location_id)
    print(f"{view.location.description} ({view.location.location})")
    print(f"status={view.status} updated={view.age_label}")
    for topic in view.topics:
        print()
        print(f"## {topic.description}")
        if topic.text is None:
            print("(no content yet)")
        elif topic.is_error:
            print(f"Error: {topic.text}")
        else:
            print(topic.text)


async def _probe(service: Info2GoService) -> None:
    online = await service.prober.probe()
    status = service.prober.credential_status
    print(f"online={str(online).lower()}")
    print(f"credential_status={status.value if status else 'unknown'}")


def _serve(service: Info2GoService, host: str, port: int) -> None:
    try:
        import uvicorn
    except ImportError:
        raise ImportError(
            "uvicorn is required to run the info2go server. "
            "Install it with: pip install uvicorn"
        )
    from .server import create_app

    uvicorn.run(create_app(service), host=host, port=port)


def main(
    argv: Sequence[str] | None = None,
    *,
    service_factory: ServiceFactory = Info2GoService.from_env,
) -> int:
    args = parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, str(args.log_level).upper(), logging.WARNING),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        service = service_factory()
        if args.command == "serve":
            _serve(service, args.host, args.port)
        elif args.command == "status":
            asyncio.run(_status(service))
        elif args.command == "refresh":
            asyncio.run(_refresh(service, args.force))
        elif args.command == "show":
            asyncio.run(_show(service, args.location))
        elif args.command == "probe":
            asyncio.run(_probe(service))
    except (Info2GoError, UnknownLocationError) as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
