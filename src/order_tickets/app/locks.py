"""Per-ticket serialization of stage and status-id updates."""

import threading


class TicketLocks:
    """Serializes read-modify-write work on one ticket within this process.

    Ticket ids map onto a fixed set of lock stripes, so memory stays bounded
    however many tickets pass through. Two tickets may share a stripe; that
    only costs some parallelism.
    """

    def __init__(self, stripes: int = 64):
        if stripes < 1:
            raise ValueError("stripes must be positive")
        self._locks = [threading.Lock() for _ in range(stripes)]

    def for_ticket(self, ticket_id: int) -> threading.Lock:
        return self._locks[ticket_id % len(self._locks)]
