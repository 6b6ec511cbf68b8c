"""Domain layer: data types, errors, cart, stage machine and ports."""

from .cart import Cart, format_group
from .errors import (
    AggregateError,
    GatewayError,
    LocationUnavailable,
    MissingAddress,
    NotConnected,
    PersistenceError,
    StaleOrder,
    TicketError,
    TicketNotFound,
    ValidationError,
)
from .models import (
    Action,
    CartInfo,
    Customer,
    Delivery,
    Item,
    LoadedTicket,
    Node,
    OrderLine,
    Outcome,
    Party,
    Perspective,
    Slots,
    SourceMessage,
    Stage,
    Ticket,
)
from .ports import MessagingGateway, NodeProvider, PersistenceStore

__all__ = [
    "Action",
    "AggregateError",
    "Cart",
    "CartInfo",
    "Customer",
    "Delivery",
    "GatewayError",
    "Item",
    "LoadedTicket",
    "LocationUnavailable",
    "MessagingGateway",
    "MissingAddress",
    "Node",
    "NodeProvider",
    "NotConnected",
    "OrderLine",
    "Outcome",
    "Party",
    "PersistenceError",
    "PersistenceStore",
    "Perspective",
    "Slots",
    "SourceMessage",
    "Stage",
    "StaleOrder",
    "Ticket",
    "TicketError",
    "TicketNotFound",
    "ValidationError",
    "format_group",
]
