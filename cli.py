from __future__ import annotations

import argparse
import json
import sys

import requests


def _print(obj) -> None:
    print(json.dumps(obj, indent=2, ensure_ascii=False))


def main(argv: list[str] | None = None) -> int:
    p = argparse.ArgumentParser(description="fnrun client")
    p.add_argument("--api", default="http://127.0.0.1:8080", help="fnrun front end base URL")
    sub = p.add_subparsers(dest="cmd", required=True)

    s_fn = sub.add_parser("functions", help="List functions and their state")
    s_fn.add_argument("name", nargs="?", help="Show a single function")

    s_ev = sub.add_parser("events", help="Show events")
    s_ev.add_argument("--limit", type=int, default=20)

    s_inv = sub.add_parser("invoke", help="Invoke a function")
    s_inv.add_argument("name")
    s_inv.add_argument("path", nargs="?", default="/")
    s_inv.add_argument("--method", default="GET")
    s_inv.add_argument("--data", default=None, help="Request body")

    args = p.parse_args(argv)

    base = args.api.rstrip("/")

    if args.cmd == "functions":
        url = f"{base}/functions/{args.name}" if args.name else f"{base}/functions"
        r = requests.get(url, timeout=10)
        _print(r.json())
        return 0 if r.ok else 1

    if args.cmd == "events":
        _print(requests.get(f"{base}/events", params={"limit": args.limit}, timeout=10).json())
        return 0

    if args.cmd == "invoke":
        path = args.path.lstrip("/")
        r = requests.request(
            args.method.upper(),
            f"{base}/invoke/{args.name}/{path}",
            data=args.data.encode() if args.data is not None else None,
            timeout=30,
        )
        sys.stdout.buffer.write(r.content)
        sys.stdout.buffer.flush()
        if not r.ok:
            print(f"\nHTTP {r.status_code}", file=sys.stderr)
        return 0 if r.ok else 1

    return 2


if __name__ == "__main__":
    raise SystemExit(main(sys.argv[1:]))
