"""In-memory store implementing PersistenceStore and NodeProvider.

Loads and saves copy tickets so callers never share mutable state with the
store; each write replaces the fields of a single ticket id.
"""

import logging
import threading
from dataclasses import replace
from typing import Optional

from ..domain.cart import Cart
from ..domain.errors import TicketNotFound
from ..domain.models import (
    Customer,
    LoadedTicket,
    Node,
    Slots,
    Stage,
    Ticket,
    no_owners,
)

logger = logging.getLogger(__name__)


class InMemoryStore:
    """Process-local tickets, customers and nodes."""

    def __init__(self, cart: Optional[Cart] = None):
        self.cart = cart if cart is not None else Cart()
        self._lock = threading.Lock()
        self._tickets: dict[int, Ticket] = {}
        self._nodes: dict[int, Node] = {}
        self._customers: dict[int, Customer] = {}
        self._next_id = 1

    # ------------------------------------------------------------------ #
    #  Seeding                                                             #
    # ------------------------------------------------------------------ #

    def add_node(self, node: Node) -> None:
        with self._lock:
            self._nodes[node.id] = node

    def add_customer(self, customer: Customer) -> None:
        with self._lock:
            self._customers[customer.id] = replace(customer)

    # ------------------------------------------------------------------ #
    #  NodeProvider                                                        #
    # ------------------------------------------------------------------ #

    def resolve(self, node_id: int) -> Optional[Node]:
        with self._lock:
            return self._nodes.get(node_id)

    # ------------------------------------------------------------------ #
    #  PersistenceStore                                                    #
    # ------------------------------------------------------------------ #

    def load_customer(self, customer_id: int) -> Customer:
        with self._lock:
            customer = self._customers.get(customer_id)
        return replace(customer) if customer is not None else Customer(id=customer_id)

    def create_ticket(
        self,
        node_id: int,
        customer_id: int,
        customer_anchor: int,
        owner_anchors: Slots,
        audit_message_id: Optional[int] = None,
    ) -> Ticket:
        with self._lock:
            ticket = Ticket(
                id=self._next_id,
                node_id=node_id,
                customer_id=customer_id,
                customer_anchor_id=customer_anchor,
                owner_anchor_ids=owner_anchors,
                audit_message_id=audit_message_id,
            )
            self._tickets[ticket.id] = ticket
            self._next_id += 1
        logger.debug("Stored ticket %d", ticket.id)
        return ticket.copy()

    def load_ticket(self, ticket_id: int) -> LoadedTicket:
        with self._lock:
            ticket = self._tickets.get(ticket_id)
            if ticket is None:
                raise TicketNotFound(ticket_id)
            return self._loaded(ticket)

    def update_stage(self, ticket_id: int, stage: Stage) -> None:
        with self._lock:
            self._get(ticket_id).stage = stage

    def update_status_message_ids(self, ticket: Ticket) -> None:
        with self._lock:
            stored = self._get(ticket.id)
            stored.customer_status_id = ticket.customer_status_id
            stored.owner_status_ids = ticket.owner_status_ids

    def consume_cart_group(self, customer_id: int, node_id: int) -> None:
        self.cart.consume_group(customer_id, node_id)

    def tickets_for(self, user_id: int) -> list[LoadedTicket]:
        with self._lock:
            loaded = [self._loaded(t) for t in self._tickets.values() if not t.stage.is_terminal]
        return [lt for lt in loaded if lt.party_of(user_id) is not None]

    def all_tickets(self) -> list[LoadedTicket]:
        with self._lock:
            return [self._loaded(t) for t in self._tickets.values()]

    # ------------------------------------------------------------------ #
    #  Internal                                                            #
    # ------------------------------------------------------------------ #

    def _get(self, ticket_id: int) -> Ticket:
        ticket = self._tickets.get(ticket_id)
        if ticket is None:
            raise TicketNotFound(ticket_id)
        return ticket

    def _loaded(self, ticket: Ticket) -> LoadedTicket:
        node = self._nodes.get(ticket.node_id)
        owners = node.owners if node is not None else no_owners()
        return LoadedTicket(ticket=ticket.copy(), owners=owners)
