from __future__ import annotations

import argparse
import asyncio
import json
import sys
from typing import Any, Awaitable, Callable

from .config import ConfigError, load_config
from .notifications import NotificationCenter, Severity
from .session import ApiSession
from .table_store import TableDataStore


def _parse_pairs(pairs: list[str]) -> list[tuple[str, str]]:
    parsed: list[tuple[str, str]] = []
    for raw in pairs:
        if "=" not in raw:
            raise argparse.ArgumentTypeError(f"Expected key=value, got {raw!r}")
        key, value = raw.split("=", 1)
        parsed.append((key.strip(), value))
    return parsed


def _coerce_id(raw: str) -> Any:
    return int(raw) if raw.lstrip("-").isdigit() else raw


def _print_notifications(center: NotificationCenter) -> int:
    for item in center.items:
        print(f"[{item['level']}] {item['message']}", file=sys.stderr)
    failed = center.by_level(Severity.WARNING) or center.by_level(Severity.ERROR)
    return 1 if failed else 0


async def _with_store(args: argparse.Namespace, action: Callable[[TableDataStore], Awaitable[None]]) -> int:
    config = load_config(args.env_file)
    session = ApiSession(config)
    notifications = NotificationCenter()
    async with session.http() as http:
        store = TableDataStore(
            args.table,
            config=config,
            http=http,
            session=session,
            notifier=notifications,
        )
        await action(store)
    return _print_notifications(notifications)


async def cmd_list(args: argparse.Namespace) -> int:
    async def action(store: TableDataStore) -> None:
        for key, value in _parse_pairs(args.param):
            store.set_param(key, value)
        if args.search:
            await store.search(args.search)
        else:
            await store.load()
        if args.page > 1:
            await store.go_to_page(args.page)
        print(
            json.dumps(
                {
                    "rows": list(store.rows),
                    "page": store.current_page,
                    "pages": store.pages_count,
                    "filters": list(store.available_filters),
                },
                indent=2,
                default=str,
            )
        )

    return await _with_store(args, action)


async def cmd_delete(args: argparse.Namespace) -> int:
    async def action(store: TableDataStore) -> None:
        await store.delete_item(_coerce_id(args.id))

    return await _with_store(args, action)


async def cmd_update(args: argparse.Namespace) -> int:
    async def action(store: TableDataStore) -> None:
        item_id = _coerce_id(args.id)
        await store.load()
        if args.page > 1:
            await store.go_to_page(args.page)
        index = next((i for i, row in enumerate(store.rows) if row.get("id") == item_id), None)
        if index is None:
            await store.submit(item_id)
            return
        await store.edit_fields(index, dict(_parse_pairs(args.fields)))

    return await _with_store(args, action)


def cmd_login(args: argparse.Namespace) -> int:
    config = load_config(args.env_file)
    session = ApiSession(config)
    session.establish(args.token, args.username)
    print(json.dumps({"env": config.env_name, "username": args.username}, indent=2))
    return 0


def cmd_logout(args: argparse.Namespace) -> int:
    config = load_config(args.env_file)
    ApiSession(config).logout()
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="tablesync", description="Remote table sync CLI")
    parser.add_argument("--env-file", default=None)
    subparsers = parser.add_subparsers(dest="command", required=True)

    list_parser = subparsers.add_parser("list")
    list_parser.add_argument("table")
    list_parser.add_argument("--page", type=int, default=1)
    list_parser.add_argument("--search", default="")
    list_parser.add_argument("--param", action="append", default=[], metavar="KEY=VALUE")
    list_parser.set_defaults(func=cmd_list)

    delete_parser = subparsers.add_parser("delete")
    delete_parser.add_argument("table")
    delete_parser.add_argument("id")
    delete_parser.set_defaults(func=cmd_delete)

    update_parser = subparsers.add_parser("update")
    update_parser.add_argument("table")
    update_parser.add_argument("id")
    update_parser.add_argument("fields", nargs="+", metavar="KEY=VALUE")
    update_parser.add_argument("--page", type=int, default=1)
    update_parser.set_defaults(func=cmd_update)

    login_parser = subparsers.add_parser("login")
    login_parser.add_argument("--token", required=True)
    login_parser.add_argument("--username", default=None)
    login_parser.set_defaults(func=cmd_login)

    logout_parser = subparsers.add_parser("logout")
    logout_parser.set_defaults(func=cmd_logout)
    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    try:
        result = args.func(args)
        if asyncio.iscoroutine(result):
            result = asyncio.run(result)
    except (ConfigError, argparse.ArgumentTypeError) as exc:
        print(json.dumps({"error": type(exc).__name__, "message": str(exc)}, indent=2), file=sys.stderr)
        return 2
    return result


if __name__ == "__main__":
    raise SystemExit(main())
