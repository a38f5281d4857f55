from __future__ import annotations

import argparse
import json
import sys

import requests


def _print(obj) -> None:
    print(json.dumps(obj, indent=2, ensure_ascii=False))


def main(argv: list[str] | None = None) -> int:
    p = argparse.ArgumentParser(description="BYOD catalog sync CLI")
    p.add_argument("--api", default="http://localhost:8000", help="API base URL")
    p.add_argument("--user", default="admin", help="API user for mutating commands")
    p.add_argument("--password", default="admin", help="API password for mutating commands")
    sub = p.add_subparsers(dest="cmd", required=True)

    sub.add_parser("status", help="Show the catalog connection state")

    s_conn = sub.add_parser("connect", help="Connect to a Consul agent")
    s_conn.add_argument("address", help="IP address of the Consul agent")
    s_conn.add_argument("--port", type=int, default=None, help="Agent port (server default: 8500)")

    sub.add_parser("disconnect", help="Disconnect from the catalog and drop its services")

    s_svc = sub.add_parser("services", help="List services")
    s_svc.add_argument("--discovery", choices=["NONE", "CONSUL"], default=None)

    s_con = sub.add_parser("connections", help="List connections")
    s_con.add_argument("--host-id", default=None)

    s_ev = sub.add_parser("events", help="Show events")
    s_ev.add_argument("--limit", type=int, default=20)

    args = p.parse_args(argv)

    base = args.api.rstrip("/")
    auth = (args.user, args.password)

    if args.cmd == "status":
        _print(requests.get(f"{base}/catalog", timeout=10).json())
        return 0

    if args.cmd == "connect":
        payload = {"address": args.address, "port": args.port}
        # Connecting fetches the whole catalog before answering.
        r = requests.post(f"{base}/catalog/connect", json=payload, auth=auth, timeout=120)
        _print(r.json())
        return 0 if r.ok else 1

    if args.cmd == "disconnect":
        r = requests.post(f"{base}/catalog/disconnect", auth=auth, timeout=30)
        _print(r.json())
        return 0 if r.ok else 1

    if args.cmd == "services":
        params = {"discovery": args.discovery} if args.discovery else None
        _print(requests.get(f"{base}/services", params=params, timeout=10).json())
        return 0

    if args.cmd == "connections":
        params = {"host_id": args.host_id} if args.host_id else None
        _print(requests.get(f"{base}/connections", params=params, timeout=10).json())
        return 0

    if args.cmd == "events":
        _print(requests.get(f"{base}/events", params={"limit": args.limit}, timeout=10).json())
        return 0

    return 2


if __name__ == "__main__":
    raise SystemExit(main(sys.argv[1:]))
