"""Error taxonomy for ticket handling.

ValidationError subclasses are shown to the customer and never touch the
store. GatewayError is a single failed messaging call. AggregateError means
every owner branch failed. PersistenceError is fatal and propagated as-is.
"""

import html


class TicketError(Exception):
    """Base class for all ticket handling errors."""


class ValidationError(TicketError):
    """A checkout precondition failed; the customer may retry."""

    # Message text uses HTML markup and must be sent with HTML parse mode.
    uses_html = False


class NotConnected(ValidationError):
    def __init__(self, node_id: int):
        super().__init__(
            "This place is not connected to the bot yet, please copy your "
            "order and send it using the listed contacts, then clear the cart"
        )
        self.node_id = node_id


class StaleOrder(ValidationError):
    def __init__(self):
        super().__init__(
            "Unable to read the order text, the message may be too old"
        )


class LocationUnavailable(ValidationError):
    uses_html = True

    def __init__(self, detail: str):
        super().__init__(
            f"The location message is no longer available, please update "
            f"your address\n<i>{html.escape(detail)}</i>"
        )
        self.detail = detail


class MissingAddress(ValidationError):
    def __init__(self):
        super().__init__(
            "Please enter an address or switch to pickup. It will be saved "
            "for later orders and can be changed at any time"
        )


class GatewayError(TicketError):
    """A single send/edit/delete/forward call failed."""


class AggregateError(TicketError):
    """Every owner branch failed, the order has no reachable fulfiller."""


class PersistenceError(TicketError):
    """The store failed; callers must not assume partial success."""


class TicketNotFound(PersistenceError):
    def __init__(self, ticket_id: int):
        super().__init__(f"Ticket {ticket_id} not found")
        self.ticket_id = ticket_id
