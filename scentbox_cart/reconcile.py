"""Reconciliation of server item lists with local cart state.

The server list is exhaustive and ordered. Local items survive only where a
server item carries their ``server_id``; they keep their ``local_id`` and
``product_kind`` because the server only knows coarse kinds.
"""

import uuid
from collections.abc import Mapping, Sequence
from typing import Callable, Optional

import structlog

from .models import DEFAULT_ITEM_NAME, CartItem, CoarseKind, ProductKind
from .wire import RemoteCartItem

logger = structlog.get_logger()

IdFactory = Callable[[], str]

# Display-name prefixes the storefront uses for box products. Only consulted
# for server items with no local counterpart and no kind hint.
NAME_PREFIX_KINDS = (
    ("AI Discovery", ProductKind.AI_BOX),
    ("Box Personalizado", ProductKind.PERSONALIZED_BOX),
    ("Gift Box", ProductKind.GIFT_BOX),
)

FALLBACK_BOX_KIND = ProductKind.AI_BOX


def new_local_id() -> str:
    return str(uuid.uuid4())


def infer_product_kind(remote: RemoteCartItem) -> ProductKind:
    """Best-effort fine-grained kind for a server item never seen locally."""
    if remote.coarse_kind is CoarseKind.PERFUME:
        return ProductKind.PERFUME
    name = remote.name or ""
    for prefix, kind in NAME_PREFIX_KINDS:
        if name.startswith(prefix):
            return kind
    return FALLBACK_BOX_KIND


def reconcile(
    server_items: Sequence[RemoteCartItem],
    previous: Sequence[CartItem],
    kind_hints: Optional[Mapping[str, ProductKind]] = None,
    id_factory: IdFactory = new_local_id,
) -> list[CartItem]:
    """Produce the new local item list from a server response.

    Total and idempotent: reconciling the same server items against the
    result again returns equal items with the same local ids.
    """
    by_server_id = {item.server_id: item for item in previous if item.server_id}
    hints = kind_hints or {}
    seen: set[str] = set()
    result = []

    for remote in server_items:
        if remote.id in seen:
            logger.warning("duplicate_server_item_dropped", server_id=remote.id)
            continue
        seen.add(remote.id)

        existing = by_server_id.get(remote.id)
        if existing is not None:
            local_id = existing.local_id
            kind = existing.product_kind
        else:
            local_id = id_factory()
            kind = hints.get(remote.id) or infer_product_kind(remote)

        result.append(
            CartItem(
                local_id=local_id,
                server_id=remote.id,
                product_kind=kind,
                display_name=remote.name or (existing.display_name if existing else DEFAULT_ITEM_NAME),
                unit_price=remote.price,
                thumbnail_ref=remote.thumbnail_ref or (existing.thumbnail_ref if existing else None),
                composition=remote.composition,
            )
        )

    return result


def new_server_ids(server_items: Sequence[RemoteCartItem], previous: Sequence[CartItem]) -> list[str]:
    """Server ids present in a response but unknown locally, in server order."""
    known = {item.server_id for item in previous if item.server_id}
    return [remote.id for remote in server_items if remote.id not in known]
