#!/usr/bin/env python3
"""Watch a chain-height feed from the terminal.

Connects to ``<origin>/ws`` (scheme upgraded to ws/wss), keeps the
connection alive across drops, and redraws a plain-text table on every
change. Cells show the height difference to the chain's best height,
followed by markers:

    *  value changed in the last seconds (fresh)
    !  more than one block behind
    ~  stale (no change for longer than expected)
    ♪  alerts enabled for this pair

Example::

    python scripts/watch.py https://heights.example.org --alert bitgo:btc
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import signal
import sys
from pathlib import Path

# Allow running from repo root without installing the package.
_repo = Path(__file__).resolve().parent.parent
_src = _repo / "src"
if _src.is_dir():
    sys.path.insert(0, str(_src))

from chainmon import ChainMonitorClient, ConnectionState, DashboardSnapshot, MonitorConfig  # noqa: E402
from chainmon.state.classify import HeadStatus  # noqa: E402

_CLEAR = "\x1b[2J\x1b[H"


def _cell_text(snapshot: DashboardSnapshot, source_id: str, chain_id: str) -> str:
    cell = snapshot.cell(source_id, chain_id)
    klass = cell.classification
    if klass.status == HeadStatus.MISSING:
        text = "-"
    else:
        text = str(klass.diff)
        if klass.fresh:
            text += "*"
        if klass.status == HeadStatus.NOT_AT_HEAD:
            text += "!"
        if klass.stale:
            text += "~"
    if cell.alerts_enabled:
        text += "♪"
    return text


def render_table(snapshot: DashboardSnapshot) -> str:
    header = ["", "Best", *(source.short_name for source in snapshot.sources)]
    rows = [header]
    for chain in snapshot.chains:
        row = [chain.full_name, str(snapshot.best_height.get(chain.id, 0))]
        row.extend(_cell_text(snapshot, source.id, chain.id) for source in snapshot.sources)
        rows.append(row)

    widths = [max(len(row[col]) for row in rows) for col in range(len(header))]
    lines = ["  ".join(value.ljust(width) for value, width in zip(row, widths, strict=True)) for row in rows]
    lines.append("")
    lines.append(f"connection: {snapshot.connection_state.value}")
    return "\n".join(lines)


class TerminalView:
    def __init__(self, *, clear: bool) -> None:
        self._clear = clear

    def render(self, snapshot: DashboardSnapshot) -> None:
        prefix = _CLEAR if self._clear else ""
        print(prefix + render_table(snapshot), flush=True)


def _on_connection_state(_old: ConnectionState, new: ConnectionState) -> None:
    if new == ConnectionState.RECONNECTING:
        print("Connection lost, reconnecting…", file=sys.stderr, flush=True)
    elif new == ConnectionState.CONNECTED:
        print("Connected.", file=sys.stderr, flush=True)


def _parse_pair(value: str) -> tuple[str, str]:
    source, sep, chain = value.partition(":")
    if not sep or not source or not chain:
        raise argparse.ArgumentTypeError(f"expected SOURCE:CHAIN, got {value!r}")
    return source, chain


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description=__doc__, formatter_class=argparse.RawDescriptionHelpFormatter)
    parser.add_argument("origin", nargs="?", help="Dashboard origin (default: $CHAINMON_ORIGIN)")
    parser.add_argument("--preferences", type=Path, help="Alert preferences JSON file")
    parser.add_argument(
        "--alert",
        type=_parse_pair,
        action="append",
        default=[],
        metavar="SOURCE:CHAIN",
        help="Toggle alerts for a pair at startup (repeatable)",
    )
    parser.add_argument("--alert-command", help="Command to play for alerts instead of the terminal bell")
    parser.add_argument("--no-clear", action="store_true", help="Append tables instead of redrawing")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable DEBUG logging")
    return parser


async def _run(args: argparse.Namespace) -> int:
    overrides: dict[str, object] = {}
    if args.origin:
        overrides["origin"] = args.origin
    if args.preferences is not None:
        overrides["preferences_path"] = args.preferences
    if args.alert_command:
        overrides["alert_command"] = tuple(args.alert_command.split())
    config = MonitorConfig.from_env(**overrides)

    client = ChainMonitorClient(
        config,
        view=TerminalView(clear=not args.no_clear),
        on_connection_state=_on_connection_state,
    )
    for source, chain in args.alert:
        client.toggle_alerts(source, chain)

    loop = asyncio.get_running_loop()
    stop = asyncio.Event()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, stop.set)

    async with client:
        await stop.wait()
    return 0


def main() -> int:
    args = _build_parser().parse_args()
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )
    return asyncio.run(_run(args))


if __name__ == "__main__":
    raise SystemExit(main())
