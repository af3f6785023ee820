"""Command line front-end for a cart session.

Each invocation opens a session, hydrates it, runs one command and prints
the resulting cart. Set CART_SNAPSHOT_PATH to keep local ids between runs.
"""

import argparse
import asyncio
import json
import logging
import sys
from decimal import Decimal
from typing import Any, Optional, Sequence

from .config import CartSettings, configure_logging
from .errors import ConfigError
from .models import BoxComposition, ItemDraft, PerfumeSummary, ProductKind
from .session import CartSession


def draft_from_dict(data: dict[str, Any]) -> ItemDraft:
    """Read an item draft from its JSON form."""
    composition = data.get("composition")
    return ItemDraft(
        product_kind=ProductKind(data.get("product_kind", ProductKind.PERSONALIZED_BOX.value)),
        display_name=data["display_name"],
        unit_price=Decimal(str(data["unit_price"])),
        thumbnail_ref=data.get("thumbnail_ref"),
        composition=BoxComposition(
            perfumes=tuple(PerfumeSummary.from_dict(p) for p in composition.get("perfumes", [])),
            decant_size=int(composition.get("decant_size", 0)),
            decant_count=int(composition.get("decant_count", 0)),
        )
        if composition
        else None,
    )


def render(session: CartSession) -> dict[str, Any]:
    state = session.state
    totals = session.totals
    return {
        "items": [item.to_dict() for item in state.items],
        "item_count": session.item_count,
        "coupon": state.applied_coupon.code if state.applied_coupon else None,
        "subtotal": str(totals.subtotal),
        "discount": str(totals.discount),
        "final_price": str(totals.final_price),
        "error": state.last_error.message if state.last_error else None,
        "coupon_error": state.coupon_error.message if state.coupon_error else None,
    }


async def run(args: argparse.Namespace, settings: CartSettings) -> int:
    session = CartSession.from_settings(settings)
    try:
        result = await session.start()
        if args.command == "add":
            with open(args.file, encoding="utf-8") as fh:
                result = await session.add_item(draft_from_dict(json.load(fh)))
        elif args.command == "remove":
            result = await session.remove_item(args.local_id)
        elif args.command == "clear":
            result = await session.clear()
        elif args.command == "apply-coupon":
            result = await session.apply_coupon(args.code)
        print(json.dumps(render(session), indent=2))
    finally:
        await session.close()
    return 0 if result.ok else 1


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Inspect and change the remote cart")
    parser.add_argument("--verbose", action="store_true", help="Log debug events to stdout")
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("show", help="Print the cart")
    add = sub.add_parser("add", help="Add an item described by a JSON file")
    add.add_argument("file", help="Path to the item draft JSON")
    remove = sub.add_parser("remove", help="Remove an item by local id")
    remove.add_argument("local_id")
    sub.add_parser("clear", help="Remove every item")
    coupon = sub.add_parser("apply-coupon", help="Validate a coupon and show discounted totals")
    coupon.add_argument("code")

    args = parser.parse_args(argv)
    configure_logging(logging.DEBUG if args.verbose else logging.WARNING)

    try:
        settings = CartSettings.from_env()
    except ConfigError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 2
    return asyncio.run(run(args, settings))


if __name__ == "__main__":
    sys.exit(main())
