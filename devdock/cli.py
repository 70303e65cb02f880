from __future__ import annotations

import argparse
import json
import sqlite3
import sys
from typing import Any

from . import __version__, db
from .models import StatusReport, StepOutcome, StepStatus
from .orchestrator import Orchestrator


ALIASES = {"start": "up", "stop": "down"}

_TAGS = {StepStatus.ok: "[ OK ]", StepStatus.failed: "[FAIL]", StepStatus.skipped: "[SKIP]"}


def _print(obj: Any) -> None:
    print(json.dumps(obj, indent=2, ensure_ascii=False))


def _render_outcomes(outcomes: list[StepOutcome], as_json: bool) -> int:
    if as_json:
        _print([o.model_dump(mode="json") for o in outcomes])
    else:
        for o in outcomes:
            line = f"{_TAGS[o.status]} {o.step}"
            if o.detail:
                line += f": {o.detail}"
            print(line)
    return 0 if all(o.succeeded for o in outcomes) else 1


def _render_status(report: StatusReport, as_json: bool) -> int:
    if as_json:
        _print(report.model_dump(mode="json"))
    else:
        for s in report.services:
            state = "running" if s.running else "not running"
            line = f"{s.role:<11} {s.container_name:<20} {state}"
            if s.detail:
                line += f" ({s.detail})"
            print(line)
        r = report.resolver
        state = "configured" if r.has_our_nameserver else "not configured"
        line = f"{'resolver':<11} {r.path:<20} {state}"
        if r.detail:
            line += f" ({r.detail})"
        print(line)
        if r.has_our_nameserver:
            print(f"{'':<11} {r.nameserver_line}")
    return 0 if report.complete else 1


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="devdock", description="Local DNS, HTTP proxy and ssh-agent for container development")
    p.add_argument("--json", action="store_true", help="Print results as JSON")
    sub = p.add_subparsers(dest="cmd", required=True)

    sub.add_parser("up", aliases=["start"], help="Start all services and configure the host resolver")

    s_down = sub.add_parser("down", aliases=["stop"], help="Stop all services and clean the host resolver")
    s_down.add_argument("--destroy", action="store_true", help="Also delete the stopped containers")

    s_restart = sub.add_parser("restart", help="Run down, then up")
    s_restart.add_argument("--destroy", action="store_true", help="Delete the containers before starting again")

    sub.add_parser("status", help="Show service and resolver state")

    s_key = sub.add_parser("addkey", help="Add an SSH key to the running agent")
    s_key.add_argument("path", nargs="?", default=None, help="Private key file (default: DEVDOCK_SSH_KEY_PATH)")

    s_ev = sub.add_parser("events", help="Show the event log")
    s_ev.add_argument("--limit", type=int, default=20)

    sub.add_parser("version", help="Print the devdock version")
    return p


def make_orchestrator() -> Orchestrator:
    return Orchestrator()


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    cmd = ALIASES.get(args.cmd, args.cmd)

    if cmd == "version":
        print(f"devdock {__version__}")
        return 0

    if cmd == "events":
        try:
            events = db.latest_events(args.limit)
        except (sqlite3.Error, OSError) as e:
            print(f"Cannot read the event log: {e}", file=sys.stderr)
            return 1
        if args.json:
            _print(events)
        else:
            for e in events:
                where = e["service_name"] or "-"
                print(f"{e['ts']} {e['level']:<5} {where:<11} {e['message']}")
        return 0

    orch = make_orchestrator()

    if cmd == "up":
        return _render_outcomes(orch.up(), args.json)

    if cmd == "down":
        return _render_outcomes(orch.down(destroy=args.destroy), args.json)

    if cmd == "restart":
        return _render_outcomes(orch.restart(destroy=args.destroy), args.json)

    if cmd == "addkey":
        return _render_outcomes([orch.add_key(args.path)], args.json)

    if cmd == "status":
        return _render_status(orch.status(), args.json)

    return 2


if __name__ == "__main__":
    raise SystemExit(main(sys.argv[1:]))
