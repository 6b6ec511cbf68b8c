"""Ticket action entry points called by the command router.

Each call is an independent unit of work: load the ticket, change its stage,
persist, then broadcast. Work on one ticket is serialized by a per-ticket lock
so concurrent button presses cannot interleave their read-modify-write steps.
Every entry point returns an ``Outcome``; ``PersistenceError`` is never
caught here.
"""

from __future__ import annotations

import logging
from typing import Optional

from ..config import Settings
from ..domain import stages
from ..domain.errors import GatewayError
from ..domain.models import LoadedTicket, Outcome, Perspective, SourceMessage, Stage
from ..domain.ports import MessagingGateway, NodeProvider, PersistenceStore
from .audit import AuditChannel
from .factory import TicketFactory
from .locks import TicketLocks
from .notify import BroadcastReport, NotificationSynchronizer

logger = logging.getLogger(__name__)

COMPLETED_NOTE = "Order completed successfully"


class TicketDesk:
    """Wires the factory, the synchronizer and the audit channel together."""

    def __init__(
        self,
        gateway: MessagingGateway,
        store: PersistenceStore,
        nodes: NodeProvider,
        settings: Settings,
    ):
        self._store = store
        self._settings = settings
        self._locks = TicketLocks()
        self.audit = AuditChannel(gateway, settings.audit_chat_id)
        self.synchronizer = NotificationSynchronizer(gateway, store, settings)
        self.factory = TicketFactory(
            gateway, store, nodes, self.synchronizer, self.audit, settings,
            locks=self._locks,
        )

    # ------------------------------------------------------------------ #
    #  Entry points                                                        #
    # ------------------------------------------------------------------ #

    def make_ticket(self, customer_id: int, node_id: int, source: SourceMessage) -> Outcome:
        return self.factory.make_ticket(customer_id, node_id, source)

    def cancel_ticket(self, actor: int, ticket_id: int) -> Outcome:
        with self._locks.for_ticket(ticket_id):
            loaded = self._store.load_ticket(ticket_id)
            ticket = loaded.ticket

            if not self._may_act(actor, loaded):
                reason = f"cancel_ticket user_id={actor} ticket={ticket_id}: not a party of this order"
                logger.warning("%s", reason)
                return Outcome.failure(reason)

            actor_is_customer = actor == ticket.customer_id
            if ticket.stage.is_terminal:
                # Terminal tickets are never rewritten; a repeat cancel only resyncs.
                logger.info("Ticket %d already %s, resync only", ticket_id, ticket.stage.value)
            else:
                self._set_stage(loaded, stages.cancel(ticket.stage, actor_is_customer))

            outcome = self._broadcast(loaded, "cancel_ticket", actor)
        template = stages.message_for(ticket.stage, Perspective.OWNER)
        self.audit.reply(stages.render(template, ticket.id), ticket.audit_message_id)
        return outcome

    def next_ticket(self, ticket_id: int, actor: Optional[int] = None) -> Outcome:
        with self._locks.for_ticket(ticket_id):
            loaded = self._store.load_ticket(ticket_id)
            new_stage, changed = stages.advance(loaded.ticket.stage)
            if changed:
                self._set_stage(loaded, new_stage)
            return self._broadcast(loaded, "next_ticket", actor)

    def confirm_ticket(self, ticket_id: int, actor: Optional[int] = None) -> Outcome:
        with self._locks.for_ticket(ticket_id):
            loaded = self._store.load_ticket(ticket_id)
            ticket = loaded.ticket
            if not ticket.stage.is_terminal:
                self._set_stage(loaded, Stage.FINISHED)
            outcome = self._broadcast(loaded, "confirm_ticket", actor)

        if ticket.stage is Stage.FINISHED:
            self.audit.reply(COMPLETED_NOTE, ticket.audit_message_id)
        return outcome

    def show_tickets(self, user_id: int) -> Outcome:
        """Resend this user's status message for each of their active tickets."""
        for listed in self._store.tickets_for(user_id):
            ticket_id = listed.ticket.id
            with self._locks.for_ticket(ticket_id):
                # Reload under the lock; the listing may already be stale.
                loaded = self._store.load_ticket(ticket_id)
                if loaded.ticket.stage.is_terminal:
                    continue
                party = loaded.party_of(user_id)
                if party is None:
                    reason = f"show_tickets user_id={user_id} ticket={ticket_id}: unknown role"
                    logger.error("%s", reason)
                    return Outcome.failure(reason)
                try:
                    self.synchronizer.refresh(loaded, party)
                except GatewayError as exc:
                    reason = f"show_tickets user_id={user_id} ticket={ticket_id}: {exc}"
                    logger.error("%s", reason)
                    return Outcome.failure(reason)
        return Outcome.success()

    # ------------------------------------------------------------------ #
    #  Internal                                                            #
    # ------------------------------------------------------------------ #

    def _may_act(self, actor: int, loaded: LoadedTicket) -> bool:
        if self._settings.is_admin(actor):
            return True
        party = loaded.party_of(actor)
        if party is None:
            return False
        return party.slot is None or self._settings.is_valid_user(actor)

    def _set_stage(self, loaded: LoadedTicket, stage: Stage) -> None:
        ticket = loaded.ticket
        logger.info("Ticket %d: %s -> %s", ticket.id, ticket.stage.value, stage.value)
        ticket.stage = stage
        self._store.update_stage(ticket.id, stage)

    def _broadcast(self, loaded: LoadedTicket, operation: str, actor: Optional[int]) -> Outcome:
        report: BroadcastReport = self.synchronizer.broadcast(loaded)
        if report.ok:
            return Outcome.success()

        who = "unknown" if actor is None else actor
        reason = f"{operation} user_id={who} ticket={loaded.ticket.id}: {report.failure_reason}"
        self.audit.reply(reason, loaded.ticket.audit_message_id)
        return Outcome.failure(reason)
