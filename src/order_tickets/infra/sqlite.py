"""SQLite store implementing PersistenceStore and NodeProvider."""

from __future__ import annotations

import logging
import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Optional

from ..domain.cart import Cart
from ..domain.errors import PersistenceError, TicketNotFound
from ..domain.models import (
    Customer,
    Delivery,
    LoadedTicket,
    Node,
    Slots,
    Stage,
    Ticket,
)

logger = logging.getLogger(__name__)

_SCHEMA = """
CREATE TABLE IF NOT EXISTS nodes (
    id INTEGER PRIMARY KEY,
    title TEXT NOT NULL,
    descr TEXT NOT NULL DEFAULT '',
    price INTEGER NOT NULL DEFAULT 0,
    owner1 INTEGER NOT NULL DEFAULT 0,
    owner2 INTEGER NOT NULL DEFAULT 0,
    owner3 INTEGER NOT NULL DEFAULT 0
);

CREATE TABLE IF NOT EXISTS customers (
    id INTEGER PRIMARY KEY,
    name TEXT NOT NULL DEFAULT '',
    contact TEXT NOT NULL DEFAULT '',
    delivery TEXT NOT NULL DEFAULT 'pickup',
    address TEXT NOT NULL DEFAULT '',
    location_message_id INTEGER
);

CREATE TABLE IF NOT EXISTS tickets (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    node_id INTEGER NOT NULL,
    customer_id INTEGER NOT NULL,
    customer_anchor_id INTEGER NOT NULL,
    owner1_anchor_id INTEGER,
    owner2_anchor_id INTEGER,
    owner3_anchor_id INTEGER,
    stage TEXT NOT NULL,
    customer_status_id INTEGER,
    owner1_status_id INTEGER,
    owner2_status_id INTEGER,
    owner3_status_id INTEGER,
    audit_message_id INTEGER
);

CREATE INDEX IF NOT EXISTS idx_tickets_customer ON tickets(customer_id);
CREATE INDEX IF NOT EXISTS idx_tickets_node ON tickets(node_id);
"""

_TICKET_SELECT = """
SELECT t.id, t.node_id, t.customer_id, t.customer_anchor_id,
       t.owner1_anchor_id, t.owner2_anchor_id, t.owner3_anchor_id,
       t.stage, t.customer_status_id,
       t.owner1_status_id, t.owner2_status_id, t.owner3_status_id,
       t.audit_message_id,
       COALESCE(n.owner1, 0), COALESCE(n.owner2, 0), COALESCE(n.owner3, 0)
FROM tickets t LEFT JOIN nodes n ON n.id = t.node_id
"""

_TERMINAL_VALUES = tuple(stage.value for stage in Stage if stage.is_terminal)


def _row_to_loaded(row) -> LoadedTicket:
    ticket = Ticket(
        id=row[0],
        node_id=row[1],
        customer_id=row[2],
        customer_anchor_id=row[3],
        owner_anchor_ids=Slots(tuple(row[4:7])),
        stage=Stage(row[7]),
        customer_status_id=row[8],
        owner_status_ids=Slots(tuple(row[9:12])),
        audit_message_id=row[12],
    )
    return LoadedTicket(ticket=ticket, owners=Slots(tuple(row[13:16])))


class SqliteStore:
    """Tickets, customers and nodes in one SQLite database file.

    Each write runs in its own transaction and touches a single row.
    """

    def __init__(self, db_path: str | Path, cart: Optional[Cart] = None):
        self.db_path = Path(db_path)
        self.cart = cart if cart is not None else Cart()
        self.bootstrap_schema()

    @contextmanager
    def _connect(self) -> Iterator[sqlite3.Connection]:
        try:
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
            conn = sqlite3.connect(self.db_path)
        except (OSError, sqlite3.Error) as exc:
            raise PersistenceError(f"Cannot open {self.db_path}: {exc}") from exc
        try:
            with conn:
                yield conn
        except sqlite3.Error as exc:
            raise PersistenceError(str(exc)) from exc
        finally:
            conn.close()

    def bootstrap_schema(self) -> None:
        """Create the schema if it does not already exist."""
        with self._connect() as conn:
            conn.executescript(_SCHEMA)

    # ------------------------------------------------------------------ #
    #  Seeding                                                             #
    # ------------------------------------------------------------------ #

    def add_node(self, node: Node) -> None:
        with self._connect() as conn:
            conn.execute(
                """
                INSERT OR REPLACE INTO nodes (id, title, descr, price, owner1, owner2, owner3)
                VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                (node.id, node.title, node.descr, node.price, *node.owners),
            )

    def add_customer(self, customer: Customer) -> None:
        with self._connect() as conn:
            conn.execute(
                """
                INSERT OR REPLACE INTO customers
                    (id, name, contact, delivery, address, location_message_id)
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                (
                    customer.id, customer.name, customer.contact,
                    customer.delivery.value, customer.address,
                    customer.location_message_id,
                ),
            )

    # ------------------------------------------------------------------ #
    #  NodeProvider                                                        #
    # ------------------------------------------------------------------ #

    def resolve(self, node_id: int) -> Optional[Node]:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT id, title, descr, price, owner1, owner2, owner3 FROM nodes WHERE id = ?",
                (node_id,),
            ).fetchone()
        if row is None:
            return None
        return Node(id=row[0], title=row[1], descr=row[2], price=row[3], owners=Slots(tuple(row[4:7])))

    # ------------------------------------------------------------------ #
    #  PersistenceStore                                                    #
    # ------------------------------------------------------------------ #

    def load_customer(self, customer_id: int) -> Customer:
        with self._connect() as conn:
            row = conn.execute(
                """
                SELECT name, contact, delivery, address, location_message_id
                FROM customers WHERE id = ?
                """,
                (customer_id,),
            ).fetchone()
        if row is None:
            return Customer(id=customer_id)
        return Customer(
            id=customer_id,
            name=row[0],
            contact=row[1],
            delivery=Delivery(row[2]),
            address=row[3],
            location_message_id=row[4],
        )

    def create_ticket(
        self,
        node_id: int,
        customer_id: int,
        customer_anchor: int,
        owner_anchors: Slots,
        audit_message_id: Optional[int] = None,
    ) -> Ticket:
        stage = Stage.OWNERS_CONFIRMATION
        with self._connect() as conn:
            cur = conn.execute(
                """
                INSERT INTO tickets (
                    node_id, customer_id, customer_anchor_id,
                    owner1_anchor_id, owner2_anchor_id, owner3_anchor_id,
                    stage, audit_message_id
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    node_id, customer_id, customer_anchor,
                    *owner_anchors, stage.value, audit_message_id,
                ),
            )
            ticket_id = int(cur.lastrowid)

        logger.debug("Stored ticket %d", ticket_id)
        return Ticket(
            id=ticket_id,
            node_id=node_id,
            customer_id=customer_id,
            customer_anchor_id=customer_anchor,
            owner_anchor_ids=owner_anchors,
            stage=stage,
            audit_message_id=audit_message_id,
        )

    def load_ticket(self, ticket_id: int) -> LoadedTicket:
        with self._connect() as conn:
            row = conn.execute(_TICKET_SELECT + " WHERE t.id = ?", (ticket_id,)).fetchone()
        if row is None:
            raise TicketNotFound(ticket_id)
        return _row_to_loaded(row)

    def update_stage(self, ticket_id: int, stage: Stage) -> None:
        with self._connect() as conn:
            cur = conn.execute(
                "UPDATE tickets SET stage = ? WHERE id = ?", (stage.value, ticket_id),
            )
        if cur.rowcount == 0:
            raise TicketNotFound(ticket_id)

    def update_status_message_ids(self, ticket: Ticket) -> None:
        with self._connect() as conn:
            cur = conn.execute(
                """
                UPDATE tickets SET customer_status_id = ?,
                    owner1_status_id = ?, owner2_status_id = ?, owner3_status_id = ?
                WHERE id = ?
                """,
                (ticket.customer_status_id, *ticket.owner_status_ids, ticket.id),
            )
        if cur.rowcount == 0:
            raise TicketNotFound(ticket.id)

    def consume_cart_group(self, customer_id: int, node_id: int) -> None:
        self.cart.consume_group(customer_id, node_id)

    def tickets_for(self, user_id: int) -> list[LoadedTicket]:
        placeholders = ", ".join("?" for _ in _TERMINAL_VALUES)
        with self._connect() as conn:
            rows = conn.execute(
                _TICKET_SELECT
                + f"""
                WHERE t.stage NOT IN ({placeholders})
                  AND (t.customer_id = ? OR n.owner1 = ? OR n.owner2 = ? OR n.owner3 = ?)
                ORDER BY t.id
                """,
                (*_TERMINAL_VALUES, user_id, user_id, user_id, user_id),
            ).fetchall()
        return [_row_to_loaded(row) for row in rows]

    def all_tickets(self) -> list[LoadedTicket]:
        with self._connect() as conn:
            rows = conn.execute(_TICKET_SELECT + " ORDER BY t.id").fetchall()
        return [_row_to_loaded(row) for row in rows]
