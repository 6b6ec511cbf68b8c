"""Per-customer cart, grouped by owning node.

Carts live in memory only; checkout consumes one group at a time.
"""

from __future__ import annotations

import threading
from typing import Iterable

from ..config import Settings
from .models import CartInfo, CartSnapshot, Item, OrderLine

DELETE_TOKEN = "/del"


class Cart:
    """Thread-safe selection aggregator for all customers."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._data: dict[int, dict[int, list[OrderLine]]] = {}

    def add(self, customer_id: int, item: Item, delta: int) -> int:
        """Adjust the item quantity by ``delta`` and return the new quantity.

        The quantity never drops below zero; a line reaching zero is removed.
        """
        with self._lock:
            groups = self._data.setdefault(customer_id, {})
            lines = groups.setdefault(item.group_id, [])
            line = next((ln for ln in lines if ln.item.node_id == item.node_id), None)
            if line is None:
                line = OrderLine(item=item, quantity=0)
                lines.append(line)

            line.quantity = max(0, line.quantity + delta)
            quantity = line.quantity

            if quantity == 0:
                lines.remove(line)
            self._prune(customer_id, item.group_id)
            return quantity

    def remove(self, customer_id: int, node_id: int) -> None:
        """Drop the line for ``node_id`` whatever its quantity."""
        with self._lock:
            groups = self._data.get(customer_id, {})
            for group_id, lines in list(groups.items()):
                groups[group_id] = [ln for ln in lines if ln.item.node_id != node_id]
                self._prune(customer_id, group_id)

    def snapshot(self, customer_id: int) -> CartSnapshot:
        with self._lock:
            groups = {
                group_id: [OrderLine(item=ln.item, quantity=ln.quantity) for ln in lines]
                for group_id, lines in self._data.get(customer_id, {}).items()
            }

        lines = [ln for group in groups.values() for ln in group]
        info = CartInfo(
            orders_num=len(groups),
            items_num=sum(ln.quantity for ln in lines),
            total_cost=sum(ln.cost for ln in lines),
        )
        return CartSnapshot(groups=groups, info=info)

    def consume_group(self, customer_id: int, group_id: int) -> list[OrderLine]:
        """Remove one owner group from the cart and return its lines."""
        with self._lock:
            groups = self._data.get(customer_id, {})
            lines = groups.pop(group_id, [])
            if not groups:
                self._data.pop(customer_id, None)
            return lines

    def clear(self, customer_id: int) -> None:
        with self._lock:
            self._data.pop(customer_id, None)

    def _prune(self, customer_id: int, group_id: int) -> None:
        groups = self._data.get(customer_id)
        if groups is None:
            return
        if not groups.get(group_id):
            groups.pop(group_id, None)
        if not groups:
            del self._data[customer_id]


def format_group(title: str, lines: Iterable[OrderLine], settings: Settings) -> str:
    """Render one cart group as the order message text.

    Each line carries a delete token so the customer can drop it from the
    cart; checkout strips these tokens before forwarding the order.
    """
    rows = [title]
    for line in lines:
        price = line.item.price
        rows.append(
            f"{line.item.title}: {price} x {line.quantity} pcs. = "
            f"{settings.price_with_unit(line.cost)} {DELETE_TOKEN}{line.item.node_id}"
        )
    return "\n".join(rows)
