#!/usr/bin/env python3
"""Inspect and clear memories through a running service's admin API.

Usage examples:
    # Engine status
    python scripts/memory_admin.py status

    # Stats for one user
    python scripts/memory_admin.py stats --user u1

    # List a user's memories
    python scripts/memory_admin.py list --user u1

    # Ranked search within a session
    python scripts/memory_admin.py search "climate change" --user u1 --session chat_abc

    # Delete one memory / a session's memories / everything for a user
    python scripts/memory_admin.py delete --id 0b6e...
    python scripts/memory_admin.py delete --session chat_abc
    python scripts/memory_admin.py delete --user u1
"""

import argparse
import json
import sys
from pathlib import Path

import httpx

# Allow running from project root
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from research_memory.config import settings


def _base_url(port: int) -> str:
    return f"http://localhost:{port}"


def call(method: str, url: str, params: dict[str, str]) -> dict:
    """Send one admin request, exiting non-zero on an error response."""
    headers = {"X-Admin-Secret": settings.admin_secret} if settings.admin_secret else {}
    with httpx.Client(timeout=30) as client:
        resp = client.request(method, url, params=params, headers=headers)

    data = resp.json()
    if resp.status_code != 200:
        print(f"ERROR {resp.status_code}: {data.get('error')} ({data.get('code')})", file=sys.stderr)
        sys.exit(1)
    return data


def format_memory(entry: dict) -> str:
    """One memory per line: timestamp, kind, session, query."""
    session = entry.get("session_id") or "(orphaned)"
    line = f"{entry.get('timestamp', '?')} [{entry.get('kind', '?')}] {session}: {entry.get('query', '')}"
    if "similarity" in entry:
        line += f"  (sim {entry['similarity']:.2f}, score {entry.get('score', 0):.2f})"
    return line


def main() -> None:
    parser = argparse.ArgumentParser(description="Manage research memory")
    parser.add_argument("--port", type=int, default=settings.admin_port, help="Admin server port")
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("status", help="Show engine status")

    stats = sub.add_parser("stats", help="Show memory counts")
    stats.add_argument("--user", help="Scope counts to one user")

    list_cmd = sub.add_parser("list", help="List a user's memories")
    list_cmd.add_argument("--user", required=True)

    search = sub.add_parser("search", help="Ranked memory search")
    search.add_argument("query")
    search.add_argument("--user", required=True)
    search.add_argument("--session", help="Restrict to one chat session")

    delete = sub.add_parser("delete", help="Delete memories")
    group = delete.add_mutually_exclusive_group(required=True)
    group.add_argument("--id", help="Delete a single memory")
    group.add_argument("--session", help="Delete all memories of a session")
    group.add_argument("--user", help="Delete all memories of a user")

    args = parser.parse_args()
    url = f"{_base_url(args.port)}/memory"

    if args.command == "status":
        print(json.dumps(call("GET", url, {})["data"], indent=2))
    elif args.command == "stats":
        params = {"action": "stats"}
        if args.user:
            params["userId"] = args.user
        print(json.dumps(call("GET", url, params)["data"], indent=2))
    elif args.command == "list":
        memories = call("GET", url, {"action": "recent", "userId": args.user})["data"]
        if not memories:
            print("No memories found.")
        for entry in memories:
            print(format_memory(entry))
    elif args.command == "search":
        params = {"action": "search", "query": args.query, "userId": args.user}
        if args.session:
            params["sessionId"] = args.session
        results = call("GET", url, params)["data"]
        if not results:
            print("No relevant memories.")
        for entry in results:
            print(format_memory(entry))
    elif args.command == "delete":
        if args.id:
            params = {"id": args.id}
        elif args.session:
            params = {"action": "session", "sessionId": args.session}
        else:
            params = {"action": "clear", "userId": args.user}
        print(call("DELETE", url, params).get("message", "Done"))


if __name__ == "__main__":
    main()
