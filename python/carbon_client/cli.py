from __future__ import annotations

import argparse
import logging

from rich.console import Console
from rich.table import Table

from .client import DEFAULT_PORT, DEFAULT_RETRIES, DEFAULT_TIMEOUT_S, CarbonClient
from .errors import CarbonError, ConfigError, InvalidMetric
from .message import Message, encode


def _result_table(client: CarbonClient, line: str, written: int) -> Table:
    t = Table(title="Carbon")
    t.add_column("Key", style="bold")
    t.add_column("Value")

    host, port = client.config.sock_addr
    t.add_row("address", f"{host}:{port}")
    t.add_row("line", line.rstrip("\n"))
    t.add_row("bytes", str(written))
    t.add_row("state", client.state.value)
    return t


def _message(args: argparse.Namespace) -> Message:
    if args.timestamp is None:
        return Message(args.key_path, args.value)
    return Message(args.key_path, args.value, args.timestamp)


def main(argv: list[str] | None = None) -> int:
    p = argparse.ArgumentParser(prog="carbon-send")
    p.add_argument("--address", default="127.0.0.1", help="Carbon daemon IP address")
    p.add_argument("--port", default=DEFAULT_PORT, type=int)
    p.add_argument("--retries", default=DEFAULT_RETRIES, type=int)
    p.add_argument("--timeout", default=DEFAULT_TIMEOUT_S, type=float)
    p.add_argument("-v", "--verbose", action="store_true", help="Log connection activity")

    sub = p.add_subparsers(dest="cmd", required=True)
    for name, help_text in (("send", "Send one metric"), ("encode", "Print the protocol line only")):
        cmd = sub.add_parser(name, help=help_text)
        cmd.add_argument("key_path", metavar="key.path")
        cmd.add_argument("value")
        cmd.add_argument("--timestamp", type=int, default=None)

    args = p.parse_args(argv)
    console = Console()
    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.WARNING)

    msg = _message(args)
    try:
        line = encode(msg)
    except InvalidMetric as e:
        console.print(f"[red]{e}[/red]")
        return 2

    if args.cmd == "encode":
        console.print(line, end="", markup=False, highlight=False, soft_wrap=True)
        return 0

    try:
        client = CarbonClient.build(args.address, args.port, retries=args.retries, timeout_s=args.timeout)
    except ConfigError as e:
        console.print(f"[red]{e}[/red]")
        return 2
    except CarbonError as e:
        console.print(f"[red]{e}[/red]")
        return 1

    with client:
        try:
            written = client.send_message(msg)
        except CarbonError as e:
            console.print(f"[red]{e}[/red]")
            return 1
        console.print(_result_table(client, line, written))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
