"""Administrative entrypoint for catalog and subscription management."""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
from typing import Sequence

from pydantic import BaseModel

from matrimony.config import get_settings
from matrimony.db.session import Database
from matrimony.logging import configure_logging, logger
from matrimony.services.catalog import PackageCatalog
from matrimony.services.contact_usage import ContactUsageService
from matrimony.services.seeds import sync_package_catalog
from matrimony.services.subscriptions import SubscriptionService
from matrimony.store.sql import SqlQuotaStore


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="matrimony-admin")
    commands = parser.add_subparsers(dest="command", required=True)

    commands.add_parser("init-db", help="Create database tables.")
    commands.add_parser("seed-packages", help="Mirror the package catalog into the database.")

    activate = commands.add_parser("activate", help="Activate a package for a user.")
    activate.add_argument("user_id")
    activate.add_argument("package_id")
    activate.add_argument("--months", type=int, default=None)
    activate.add_argument("--payment-id", default=None)
    activate.add_argument("--actor", default=None)

    extend = commands.add_parser("extend", help="Extend a user's subscription.")
    extend.add_argument("user_id")
    extend.add_argument("months", type=int)
    extend.add_argument("--actor", default=None)

    for name in ("expire", "cancel"):
        sub = commands.add_parser(name, help=f"{name.capitalize()} a user's subscription.")
        sub.add_argument("user_id")
        sub.add_argument("--actor", default=None)

    for name in ("check", "record"):
        sub = commands.add_parser(name, help=f"{name.capitalize()} a contact for a user.")
        sub.add_argument("user_id")
        sub.add_argument("profile_id")

    history = commands.add_parser("history", help="Show a user's purchase history.")
    history.add_argument("user_id")
    return parser


async def main(argv: Sequence[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging()
    settings = get_settings()
    database = Database(settings=settings)
    store = SqlQuotaStore(database)
    catalog = PackageCatalog.from_settings(settings)
    subscriptions = SubscriptionService(store, catalog, settings)
    contacts = ContactUsageService(store, catalog, settings)

    logger.info("admin_command", command=args.command, environment=settings.environment)
    try:
        if args.command == "init-db":
            await database.create_schema()
            return 0
        if args.command == "seed-packages":
            result = await sync_package_catalog(store, catalog)
        elif args.command == "activate":
            result = await subscriptions.activate(
                args.user_id,
                args.package_id,
                args.months,
                payment_id=args.payment_id,
                actor_id=args.actor,
            )
        elif args.command == "extend":
            result = await subscriptions.extend(args.user_id, args.months, actor_id=args.actor)
        elif args.command == "expire":
            result = await subscriptions.expire(args.user_id, actor_id=args.actor)
        elif args.command == "cancel":
            result = await subscriptions.cancel(args.user_id, actor_id=args.actor)
        elif args.command == "check":
            result = await contacts.check_can_contact(args.user_id, args.profile_id)
        elif args.command == "record":
            result = await contacts.record_contact(args.user_id, args.profile_id)
        else:
            records = await subscriptions.get_purchase_history(args.user_id)
            print(json.dumps([record.model_dump(mode="json") for record in records]))
            return 0
    finally:
        await database.dispose()

    _print_result(result)
    succeeded = getattr(result, "success", None)
    if succeeded is None:
        succeeded = getattr(result, "allowed", False)
    return 0 if succeeded else 1


def _print_result(result: BaseModel) -> None:
    print(result.model_dump_json(exclude_none=True))


def run() -> None:
    sys.exit(asyncio.run(main()))


if __name__ == "__main__":
    run()
