"""Interfaces the ticket core consumes.

Adapters (Telegram, SQLite, in-memory) implement these protocols so the
application layer never depends on a particular chat service or database.
"""

from __future__ import annotations

from typing import Optional, Protocol, Sequence

from .models import Button, Customer, LoadedTicket, Node, Slots, Stage, Ticket


class MessagingGateway(Protocol):
    """Chat messaging operations. Every method raises ``GatewayError``."""

    def send(
        self,
        recipient: int,
        text: str,
        reply_to: Optional[int] = None,
        buttons: Sequence[Button] = (),
        silent: bool = False,
        html: bool = False,
    ) -> int:
        """Send a text message and return its message id.

        Text is sent verbatim unless ``html`` is set, in which case it is
        parsed as HTML markup.
        """
        ...

    def edit(self, recipient: int, message_id: int, text: str) -> int:
        """Replace the text of a message verbatim and return its message id."""
        ...

    def delete(self, recipient: int, message_id: int) -> None:
        ...

    def forward(self, from_chat: int, to_chat: int, message_id: int) -> int:
        """Forward a message and return the id of the copy in ``to_chat``."""
        ...


class PersistenceStore(Protocol):
    """Ticket storage. Every method raises ``PersistenceError`` on failure."""

    def create_ticket(
        self,
        node_id: int,
        customer_id: int,
        customer_anchor: int,
        owner_anchors: Slots,
        audit_message_id: Optional[int] = None,
    ) -> Ticket:
        ...

    def load_ticket(self, ticket_id: int) -> LoadedTicket:
        """Raises ``TicketNotFound`` for an unknown id."""
        ...

    def update_stage(self, ticket_id: int, stage: Stage) -> None:
        ...

    def update_status_message_ids(self, ticket: Ticket) -> None:
        """Write all four status message ids in one update."""
        ...

    def consume_cart_group(self, customer_id: int, node_id: int) -> None:
        ...

    def load_customer(self, customer_id: int) -> Customer:
        ...

    def tickets_for(self, user_id: int) -> list[LoadedTicket]:
        """Active tickets where the user is the customer or an owner."""
        ...

    def all_tickets(self) -> list[LoadedTicket]:
        ...


class NodeProvider(Protocol):
    def resolve(self, node_id: int) -> Optional[Node]:
        ...
