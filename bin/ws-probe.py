"""Open a WebSocket, send messages, and print what comes back.

Connects through the same tool handler the agent uses, so the output is
exactly what a tool call would return.

Usage:
    uv run python bin/ws-probe.py ws://localhost:8765
    uv run python bin/ws-probe.py ws://localhost:8765 -m hello -m world --listen 5
    uv run python bin/ws-probe.py wss://example.com/feed --protocol graphql-ws --ping --max-messages 3
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Any

# Add backend to path for imports
sys.path.insert(0, str(Path(__file__).resolve().parent.parent / "backend"))

from shared.logging import setup_logging
from sockets.tools import create_websocket_tools


def _print_result(tool: str, result: dict[str, Any]) -> None:
    print(f"{tool}: {json.dumps(result, indent=2)}")


async def probe(args: argparse.Namespace) -> int:
    handler = create_websocket_tools()
    try:
        connect_args: dict[str, Any] = {"url": args.url, "timeout": args.timeout}
        if args.protocol:
            connect_args["protocols"] = args.protocol
        opened = await handler.execute("ws_connect", connect_args)
        _print_result("ws_connect", opened)
        if not opened["success"]:
            return 1

        connection_id = opened["connection_id"]
        for message in args.message:
            sent = await handler.execute(
                "ws_send",
                {"connectionId": connection_id, "message": message, "type": "binary" if args.binary else "text"},
            )
            _print_result("ws_send", sent)
        if args.ping:
            _print_result("ws_ping", await handler.execute("ws_ping", {"connectionId": connection_id}))

        heard = await handler.execute(
            "ws_listen",
            {"connectionId": connection_id, "duration": args.listen, "maxMessages": args.max_messages},
        )
        _print_result("ws_listen", heard)

        _print_result("ws_close", await handler.execute("ws_close", {"connectionId": connection_id}))
        return 0
    finally:
        await handler.cleanup()


def main() -> None:
    parser = argparse.ArgumentParser(description="Probe a WebSocket endpoint")
    parser.add_argument("url", help="ws:// or wss:// URL to connect to")
    parser.add_argument(
        "-m",
        "--message",
        action="append",
        default=[],
        help="message to send after connecting (repeatable)",
    )
    parser.add_argument("--binary", action="store_true", help="send messages as binary frames")
    parser.add_argument("--ping", action="store_true", help="send an application-level ping")
    parser.add_argument(
        "--protocol",
        action="append",
        default=[],
        help="subprotocol to request (repeatable)",
    )
    parser.add_argument(
        "--timeout",
        type=int,
        default=10000,
        help="connect timeout in milliseconds (default: 10000)",
    )
    parser.add_argument(
        "--listen",
        type=float,
        default=2.0,
        help="seconds to listen for replies (default: 2)",
    )
    parser.add_argument(
        "--max-messages",
        type=int,
        default=100,
        help="stop listening after this many messages (default: 100)",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="log at DEBUG level")
    args = parser.parse_args()

    if args.listen < 0:
        print("Listen duration must not be negative", file=sys.stderr)
        sys.exit(1)
    if args.max_messages < 1:
        print("Max messages must be at least 1", file=sys.stderr)
        sys.exit(1)

    setup_logging(level=logging.DEBUG if args.verbose else logging.WARNING)
    sys.exit(asyncio.run(probe(args)))


if __name__ == "__main__":
    main()
