"""Application layer: checkout, status synchronization and ticket actions."""

from .audit import AuditChannel
from .desk import TicketDesk
from .factory import TicketFactory, lock_order_text
from .locks import TicketLocks
from .notify import BranchResult, BroadcastReport, NotificationSynchronizer

__all__ = [
    "AuditChannel",
    "BranchResult",
    "BroadcastReport",
    "NotificationSynchronizer",
    "TicketDesk",
    "TicketFactory",
    "TicketLocks",
    "lock_order_text",
]
