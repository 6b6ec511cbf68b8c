"""Checkout: turn one cart group into a persisted, announced ticket."""

from __future__ import annotations

import logging
import re
from typing import Callable, Optional

from ..config import Settings
from ..domain.errors import (
    AggregateError,
    GatewayError,
    LocationUnavailable,
    MissingAddress,
    NotConnected,
    StaleOrder,
    ValidationError,
)
from ..domain.models import (
    SLOT_CAPACITY,
    Customer,
    LoadedTicket,
    Outcome,
    Slots,
    SourceMessage,
    no_owners,
)
from ..domain.ports import MessagingGateway, NodeProvider, PersistenceStore
from .audit import AuditChannel
from .locks import TicketLocks
from .notify import NotificationSynchronizer

logger = logging.getLogger(__name__)

# Per-line delete commands embedded in the cart text.
ACTION_TOKEN = re.compile(r" /del\d+")


def lock_order_text(text: str) -> str:
    """Strip the cart's per-line action tokens from an order message."""
    return ACTION_TOKEN.sub("", text)


class TicketFactory:
    """Validates a checkout request and creates the ticket.

    Validation failures leave the store untouched. Once the customer's
    message is locked, owner-side messaging failures are tolerated per owner
    unless every owner misses the order.
    """

    def __init__(
        self,
        gateway: MessagingGateway,
        store: PersistenceStore,
        nodes: NodeProvider,
        synchronizer: NotificationSynchronizer,
        audit: AuditChannel,
        settings: Settings,
        locks: Optional[TicketLocks] = None,
    ):
        self._gateway = gateway
        self._store = store
        self._nodes = nodes
        self._synchronizer = synchronizer
        self._audit = audit
        self._settings = settings
        self._locks = locks if locks is not None else TicketLocks()

    def make_ticket(self, customer_id: int, node_id: int, source: SourceMessage) -> Outcome:
        try:
            loaded = self._create(customer_id, node_id, source)
        except ValidationError as exc:
            logger.info(
                "Checkout rejected user_id=%d node_id=%d: %s",
                customer_id, node_id, type(exc).__name__,
            )
            self._reply(source, str(exc), html=exc.uses_html)
            return Outcome.failure(f"user_id={customer_id}: {exc}")
        except (GatewayError, AggregateError) as exc:
            reason = f"make_ticket user_id={customer_id} node_id={node_id}: {exc}"
            logger.error("%s", reason)
            self._audit.log(reason)
            return Outcome.failure(reason)

        ticket = loaded.ticket
        logger.info(
            "Ticket %d created for user_id=%d node_id=%d",
            ticket.id, customer_id, node_id,
        )

        with self._locks.for_ticket(ticket.id):
            report = self._synchronizer.broadcast(loaded)
        if not report.ok:
            reason = f"make_ticket user_id={customer_id} ticket={ticket.id}: {report.failure_reason}"
            self._audit.reply(reason, ticket.audit_message_id)
            return Outcome.failure(reason)
        return Outcome.success()

    # ------------------------------------------------------------------ #
    #  Internal                                                            #
    # ------------------------------------------------------------------ #

    def _create(self, customer_id: int, node_id: int, source: SourceMessage) -> LoadedTicket:
        node = self._nodes.resolve(node_id)
        owners = node.owners if node is not None else no_owners()
        valid = [
            (index, owner)
            for index, owner in enumerate(owners)
            if self._settings.is_valid_user(owner)
        ]
        if not valid:
            raise NotConnected(node_id)

        if not source.text:
            raise StaleOrder()

        customer = self._store.load_customer(customer_id)
        if customer.requires_address:
            if customer.uses_location:
                self._check_location(customer, source, valid)
            elif not customer.address.strip():
                raise MissingAddress()

        locked = lock_order_text(source.text)
        anchor = self._gateway.edit(source.chat_id, source.message_id, locked)

        summary = customer.summary()
        self._fan_out(valid, lambda owner: self._gateway.send(owner, summary), "customer info")

        forwarded = self._fan_out(
            valid,
            lambda owner: self._gateway.forward(source.chat_id, owner, anchor),
            "order",
        )
        if not forwarded:
            raise AggregateError(f"order forward failed for every owner of node_id={node_id}")
        owner_anchors = Slots.of(*(forwarded.get(i) for i in range(SLOT_CAPACITY)))

        audit_id = self._audit.log(f"{summary}\n---\n{locked}", notify=True)

        ticket = self._store.create_ticket(
            node_id, customer_id, anchor, owner_anchors, audit_message_id=audit_id,
        )
        self._store.consume_cart_group(customer_id, node_id)
        return LoadedTicket(ticket=ticket, owners=owners)

    def _check_location(
        self, customer: Customer, source: SourceMessage, valid: list[tuple[int, int]],
    ) -> None:
        """Re-forward the stored location so owners get it and it is known to exist."""
        errors: list[str] = []

        def forward(owner: int) -> int:
            try:
                return self._gateway.forward(source.chat_id, owner, customer.location_message_id)
            except GatewayError as exc:
                errors.append(str(exc))
                raise

        if not self._fan_out(valid, forward, "location"):
            raise LocationUnavailable(errors[0] if errors else "no owner reachable")

    def _fan_out(
        self,
        valid: list[tuple[int, int]],
        call: Callable[[int], int],
        what: str,
    ) -> dict[int, int]:
        """Run ``call`` per valid owner, returning message ids by slot index."""
        delivered: dict[int, int] = {}
        for index, owner in valid:
            try:
                delivered[index] = call(owner)
            except GatewayError as exc:
                logger.warning("Sending %s to owner user_id=%d failed: %s", what, owner, exc)
        return delivered

    def _reply(self, source: SourceMessage, text: str, html: bool = False) -> None:
        try:
            self._gateway.send(source.chat_id, text, reply_to=source.message_id, html=html)
        except GatewayError as exc:
            logger.warning("Reply to user_id=%d failed: %s", source.chat_id, exc)
