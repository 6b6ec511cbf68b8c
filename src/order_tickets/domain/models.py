"""Core data types shared by the cart, the stage machine and ticket handling.

Owners and their per-ticket message ids always come in groups of at most
three. ``Slots`` keeps that bounded fan-out explicit while still allowing
index and iteration access.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Generic, Iterator, Optional, TypeVar

T = TypeVar("T")

SLOT_CAPACITY = 3


@dataclass(frozen=True)
class Slots(Generic[T]):
    """Immutable ordered collection with exactly ``SLOT_CAPACITY`` entries."""

    values: tuple

    def __post_init__(self):
        if len(self.values) != SLOT_CAPACITY:
            raise ValueError(
                f"Slots hold exactly {SLOT_CAPACITY} values, got {len(self.values)}"
            )

    @classmethod
    def of(cls, *values: Any, fill: Any = None) -> "Slots":
        if len(values) > SLOT_CAPACITY:
            raise ValueError(
                f"At most {SLOT_CAPACITY} values allowed, got {len(values)}"
            )
        padded = tuple(values) + (fill,) * (SLOT_CAPACITY - len(values))
        return cls(padded)

    def __getitem__(self, index: int) -> T:
        return self.values[index]

    def __iter__(self) -> Iterator[T]:
        return iter(self.values)

    def __len__(self) -> int:
        return SLOT_CAPACITY

    def replace(self, index: int, value: T) -> "Slots":
        items = list(self.values)
        items[index] = value
        return Slots(tuple(items))

    def present(self) -> list[tuple[int, T]]:
        """(index, value) pairs whose value is not None."""
        return [(i, v) for i, v in enumerate(self.values) if v is not None]


def no_owners() -> Slots:
    return Slots.of(fill=0)


def empty_ids() -> Slots:
    return Slots.of()


# ------------------------------------------------------------------ #
#  Menu and cart                                                       #
# ------------------------------------------------------------------ #


@dataclass(frozen=True)
class Node:
    """Menu-tree entry as supplied by the node provider."""

    id: int
    title: str
    price: int = 0
    owners: Slots = field(default_factory=no_owners)
    descr: str = ""


@dataclass(frozen=True)
class Item:
    """A sellable node, grouped in the cart under its owning node."""

    node_id: int
    title: str
    price: int
    group_id: int
    owners: Slots = field(default_factory=no_owners)


@dataclass
class OrderLine:
    item: Item
    quantity: int

    @property
    def cost(self) -> int:
        return self.quantity * self.item.price


@dataclass(frozen=True)
class CartInfo:
    orders_num: int = 0
    items_num: int = 0
    total_cost: int = 0


@dataclass
class CartSnapshot:
    groups: dict[int, list[OrderLine]]
    info: CartInfo


# ------------------------------------------------------------------ #
#  Customer                                                            #
# ------------------------------------------------------------------ #


class Delivery(Enum):
    COURIER = "courier"
    PICKUP = "pickup"


@dataclass
class Customer:
    id: int
    name: str = ""
    contact: str = ""
    delivery: Delivery = Delivery.PICKUP
    address: str = ""
    location_message_id: Optional[int] = None

    @property
    def uses_location(self) -> bool:
        return self.location_message_id is not None

    @property
    def requires_address(self) -> bool:
        return self.delivery is Delivery.COURIER

    def delivery_desc(self) -> str:
        if self.delivery is Delivery.PICKUP:
            return "pickup"
        if self.uses_location:
            return "courier to a point on the map"
        if self.address:
            return f"courier to address: {self.address}"
        return "courier delivery needs an address, set one or choose pickup"

    def summary(self) -> str:
        """Customer info sent to owners along with the order."""
        return (
            f"Order from {self.name}:\n"
            f"Contact: {self.contact}\n"
            f"Delivery: {self.delivery_desc()}"
        )


@dataclass(frozen=True)
class SourceMessage:
    """The customer's order message the checkout button was pressed on."""

    chat_id: int
    message_id: int
    text: Optional[str] = None


# ------------------------------------------------------------------ #
#  Stages, perspectives, actions                                       #
# ------------------------------------------------------------------ #


class Stage(Enum):
    """Ticket fulfillment stages.

    The happy path is strictly ordered; both cancel stages are terminal and
    reachable from any non-terminal stage.
    """

    OWNERS_CONFIRMATION = "owners_confirmation"
    COOKING = "cooking"
    DELIVERY = "delivery"
    CUSTOMER_CONFIRMATION = "customer_confirmation"
    FINISHED = "finished"
    CANCELED_BY_CUSTOMER = "canceled_by_customer"
    CANCELED_BY_OWNER = "canceled_by_owner"

    @property
    def is_terminal(self) -> bool:
        return self in _TERMINAL_STAGES

    @property
    def next_stage(self) -> Optional["Stage"]:
        """Following happy-path stage, None on terminal stages."""
        return _NEXT_STAGE.get(self)


_TERMINAL_STAGES = {
    Stage.FINISHED,
    Stage.CANCELED_BY_CUSTOMER,
    Stage.CANCELED_BY_OWNER,
}

_NEXT_STAGE: dict[Stage, Stage] = {
    Stage.OWNERS_CONFIRMATION: Stage.COOKING,
    Stage.COOKING: Stage.DELIVERY,
    Stage.DELIVERY: Stage.CUSTOMER_CONFIRMATION,
    Stage.CUSTOMER_CONFIRMATION: Stage.FINISHED,
}


class Perspective(Enum):
    CUSTOMER = "customer"
    OWNER = "owner"


@dataclass(frozen=True)
class Button:
    caption: str
    data: str


class Action(Enum):
    """Ticket buttons; the value is the callback prefix."""

    CANCEL = "tca"
    ADVANCE = "tne"
    CONFIRM = "tco"

    @property
    def caption(self) -> str:
        return _CAPTIONS[self]

    def button(self, ticket_id: int) -> Button:
        return Button(caption=self.caption, data=f"{self.value}{ticket_id}")


_CAPTIONS = {
    Action.CANCEL: "Cancel order",
    Action.ADVANCE: "Next",
    Action.CONFIRM: "Confirm",
}


class Party(Enum):
    """The four recipients of a ticket's status messages."""

    CUSTOMER = "customer"
    OWNER1 = "owner1"
    OWNER2 = "owner2"
    OWNER3 = "owner3"

    @property
    def perspective(self) -> Perspective:
        if self is Party.CUSTOMER:
            return Perspective.CUSTOMER
        return Perspective.OWNER

    @property
    def slot(self) -> Optional[int]:
        """Owner slot index, None for the customer."""
        return _OWNER_SLOTS.get(self)

    @classmethod
    def owner(cls, index: int) -> "Party":
        return OWNER_PARTIES[index]


OWNER_PARTIES = (Party.OWNER1, Party.OWNER2, Party.OWNER3)
_OWNER_SLOTS = {party: i for i, party in enumerate(OWNER_PARTIES)}


# ------------------------------------------------------------------ #
#  Ticket                                                              #
# ------------------------------------------------------------------ #


@dataclass
class Ticket:
    """Persisted record of one placed order and its fulfillment progress."""

    id: int
    node_id: int
    customer_id: int
    customer_anchor_id: int
    owner_anchor_ids: Slots
    stage: Stage = Stage.OWNERS_CONFIRMATION
    customer_status_id: Optional[int] = None
    owner_status_ids: Slots = field(default_factory=empty_ids)
    audit_message_id: Optional[int] = None

    def __post_init__(self):
        if not self.owner_anchor_ids.present():
            raise ValueError(f"Ticket {self.id} has no owner anchor message")

    def anchor_for(self, party: Party) -> Optional[int]:
        if party is Party.CUSTOMER:
            return self.customer_anchor_id
        return self.owner_anchor_ids[party.slot]

    def status_for(self, party: Party) -> Optional[int]:
        if party is Party.CUSTOMER:
            return self.customer_status_id
        return self.owner_status_ids[party.slot]

    def set_status(self, party: Party, message_id: Optional[int]) -> None:
        if party is Party.CUSTOMER:
            self.customer_status_id = message_id
        else:
            self.owner_status_ids = self.owner_status_ids.replace(party.slot, message_id)

    def copy(self) -> "Ticket":
        return replace(self)


@dataclass
class LoadedTicket:
    """A ticket together with the owners of its node."""

    ticket: Ticket
    owners: Slots

    def recipient(self, party: Party) -> int:
        if party is Party.CUSTOMER:
            return self.ticket.customer_id
        return self.owners[party.slot]

    def party_of(self, user_id: int) -> Optional[Party]:
        if user_id == self.ticket.customer_id:
            return Party.CUSTOMER
        for index, owner in enumerate(self.owners):
            if owner == user_id:
                return Party.owner(index)
        return None


@dataclass(frozen=True)
class Outcome:
    """Short result tag handed back to the command router."""

    tag: str
    reason: Optional[str] = None

    SUCCESS = "success"
    FAILED = "failed"

    @property
    def ok(self) -> bool:
        return self.tag == self.SUCCESS

    @classmethod
    def success(cls) -> "Outcome":
        return cls(cls.SUCCESS)

    @classmethod
    def failure(cls, reason: str) -> "Outcome":
        return cls(cls.FAILED, reason)
