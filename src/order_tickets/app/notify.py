"""Status message synchronization across the customer and up to three owners.

One ``broadcast`` pass replaces the previous status message of every
reachable party with a fresh one for the ticket's current stage. Branches
run concurrently and fail independently; the ticket's status ids are
written back in a single store update once all branches have finished.
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Optional

from ..config import Settings
from ..domain import stages
from ..domain.errors import GatewayError
from ..domain.models import OWNER_PARTIES, LoadedTicket, Party, Ticket
from ..domain.ports import MessagingGateway, PersistenceStore

logger = logging.getLogger(__name__)

DELETE_NOTICE = (
    "Unable to delete the previous order status message, "
    "it may have been deleted already"
)


@dataclass
class BranchResult:
    party: Party
    recipient: int
    message_id: Optional[int] = None
    error: Optional[str] = None
    skipped: bool = False

    @property
    def delivered(self) -> bool:
        return self.message_id is not None


@dataclass
class BroadcastReport:
    ticket: Ticket
    results: dict[Party, BranchResult]

    @property
    def customer(self) -> BranchResult:
        return self.results[Party.CUSTOMER]

    @property
    def owners_reached(self) -> bool:
        return any(self.results[party].delivered for party in OWNER_PARTIES)

    @property
    def ok(self) -> bool:
        return self.customer.error is None and self.owners_reached

    @property
    def failure_reason(self) -> Optional[str]:
        if self.customer.error is not None:
            return f"customer notification failed, {self.customer.error}"
        if not self.owners_reached:
            errors = "; ".join(
                self.results[party].error
                for party in OWNER_PARTIES
                if self.results[party].error
            )
            return f"all owners notification failed ({errors or 'no reachable owner'})"
        return None


class NotificationSynchronizer:
    """Resends the current-stage status message to every party of a ticket."""

    def __init__(
        self,
        gateway: MessagingGateway,
        store: PersistenceStore,
        settings: Settings,
        max_workers: int = 4,
    ):
        self._gateway = gateway
        self._store = store
        self._settings = settings
        self._max_workers = max_workers

    # ------------------------------------------------------------------ #
    #  Public                                                              #
    # ------------------------------------------------------------------ #

    def broadcast(self, loaded: LoadedTicket) -> BroadcastReport:
        """Synchronize all four parties and persist the new status ids.

        Safe to call repeatedly: each reachable party ends up with exactly one
        live status message. ``PersistenceError`` propagates.
        """
        ticket = loaded.ticket
        with ThreadPoolExecutor(
            max_workers=self._max_workers, thread_name_prefix="broadcast",
        ) as pool:
            futures = {
                party: pool.submit(self._sync_party, loaded, party)
                for party in Party
            }
            results = {party: future.result() for party, future in futures.items()}

        for party, result in results.items():
            # A skipped party keeps the status id it already had.
            if not result.skipped:
                ticket.set_status(party, result.message_id)
        self._store.update_status_message_ids(ticket)

        report = BroadcastReport(ticket=ticket, results=results)
        if report.ok:
            logger.info(
                "Ticket %d broadcast %s to %d parties",
                ticket.id, ticket.stage.value,
                sum(r.delivered for r in results.values()),
            )
        else:
            logger.error("Ticket %d broadcast failed: %s", ticket.id, report.failure_reason)
        return report

    def refresh(self, loaded: LoadedTicket, party: Party) -> BranchResult:
        """Resend the status message of a single party and persist its id.

        A failed customer branch raises ``GatewayError`` without writing;
        a failed owner branch clears that owner's status id. A skipped party
        is left untouched.
        """
        result = self._sync_party(loaded, party)
        if party is Party.CUSTOMER and result.error is not None:
            raise GatewayError(result.error)
        if not result.skipped:
            loaded.ticket.set_status(party, result.message_id)
            self._store.update_status_message_ids(loaded.ticket)
        return result

    # ------------------------------------------------------------------ #
    #  Internal: one party                                                 #
    # ------------------------------------------------------------------ #

    def _sync_party(self, loaded: LoadedTicket, party: Party) -> BranchResult:
        ticket = loaded.ticket
        recipient = loaded.recipient(party)
        anchor = ticket.anchor_for(party)

        if anchor is None:
            return BranchResult(party, recipient, skipped=True)
        if party is not Party.CUSTOMER and not self._settings.is_valid_user(recipient):
            return BranchResult(party, recipient, skipped=True)

        perspective = party.perspective
        text = stages.render(stages.message_for(ticket.stage, perspective), ticket.id)
        buttons = [
            action.button(ticket.id)
            for action in stages.markup_for(ticket.stage, perspective)
        ]

        try:
            previous = ticket.status_for(party)
            if previous is not None:
                self._drop_previous(party, recipient, previous)
            message_id = self._gateway.send(
                recipient, text, reply_to=anchor, buttons=buttons,
            )
        except GatewayError as exc:
            logger.warning(
                "Ticket %d: status for %s user_id=%d failed: %s",
                ticket.id, party.value, recipient, exc,
            )
            return BranchResult(party, recipient, error=f"user_id={recipient}: {exc}")

        return BranchResult(party, recipient, message_id=message_id)

    def _drop_previous(self, party: Party, recipient: int, message_id: int) -> None:
        try:
            self._gateway.delete(recipient, message_id)
            return
        except GatewayError as exc:
            logger.info(
                "Cannot delete status message %d for user_id=%d: %s",
                message_id, recipient, exc,
            )

        try:
            self._gateway.send(recipient, DELETE_NOTICE)
        except GatewayError as exc:
            # Only the customer branch treats a lost notice as fatal.
            if party is Party.CUSTOMER:
                raise GatewayError(f"delete notice failed: {exc}") from exc
            logger.warning("Delete notice to user_id=%d failed: %s", recipient, exc)
