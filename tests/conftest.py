"""Shared fixtures: a scriptable messaging gateway and a seeded store."""

import threading
from dataclasses import dataclass, field
from typing import Optional

import pytest

from order_tickets import Settings, TicketDesk
from order_tickets.domain.errors import GatewayError
from order_tickets.domain.models import (
    Customer,
    Delivery,
    Node,
    Slots,
    SourceMessage,
)
from order_tickets.infra.memory import InMemoryStore

CUSTOMER = 200_001
OWNER1 = 500_000
OWNER2 = 500_002
OWNER3 = 500_003
ADMIN = 900_000
AUDIT_CHAT = -100_500
NODE = 7
ORDER_TEXT = "Pizza place\nMargherita: 500 x 2 pcs. = 1000 /del31\nCola: 100 x 1 pcs. = 100 /del32"


@dataclass
class Sent:
    recipient: int
    text: str
    reply_to: Optional[int]
    buttons: list
    message_id: int
    silent: bool = False
    html: bool = False


@dataclass
class FakeGateway:
    """In-memory MessagingGateway with per-operation failure rules."""

    next_id: int = 1000
    sent: list = field(default_factory=list)
    edited: list = field(default_factory=list)
    deleted: list = field(default_factory=list)
    forwarded: list = field(default_factory=list)
    rules: list = field(default_factory=list)
    lock: threading.Lock = field(default_factory=threading.Lock)

    def fail(self, op: str, recipient: Optional[int] = None, text: Optional[str] = None):
        """Make matching calls raise GatewayError."""
        self.rules.append((op, recipient, text))

    def heal(self):
        self.rules.clear()

    def _check(self, op, recipient, text=None):
        for rule_op, rule_recipient, rule_text in self.rules:
            if rule_op != op:
                continue
            if rule_recipient is not None and rule_recipient != recipient:
                continue
            if rule_text is not None and rule_text != text:
                continue
            raise GatewayError(f"{op} to {recipient} refused")

    def _new_id(self):
        with self.lock:
            self.next_id += 1
            return self.next_id

    def send(self, recipient, text, reply_to=None, buttons=(), silent=False, html=False):
        self._check("send", recipient, text)
        message_id = self._new_id()
        self.sent.append(Sent(recipient, text, reply_to, list(buttons), message_id, silent, html))
        return message_id

    def edit(self, recipient, message_id, text):
        self._check("edit", recipient, text)
        self.edited.append((recipient, message_id, text))
        return message_id

    def delete(self, recipient, message_id):
        self._check("delete", recipient)
        self.deleted.append((recipient, message_id))

    def forward(self, from_chat, to_chat, message_id):
        self._check("forward", to_chat)
        new_id = self._new_id()
        self.forwarded.append((from_chat, to_chat, message_id, new_id))
        return new_id

    def sent_to(self, recipient):
        return [s for s in self.sent if s.recipient == recipient]

    def replies_to(self, recipient, anchor):
        return [s for s in self.sent if s.recipient == recipient and s.reply_to == anchor]


@pytest.fixture
def settings():
    return Settings(
        audit_chat_id=AUDIT_CHAT,
        admin_ids=(ADMIN,),
        price_unit="$",
        min_user_id=10_000,
    )


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture
def store():
    store = InMemoryStore()
    store.add_node(Node(id=NODE, title="Pizza place", owners=Slots.of(OWNER1, 0, 0)))
    store.add_customer(Customer(
        id=CUSTOMER,
        name="Ann",
        contact="+1 555 0100",
        delivery=Delivery.COURIER,
        address="1 Main St",
    ))
    return store


@pytest.fixture
def desk(gateway, store, settings):
    return TicketDesk(gateway, store, store, settings)


@pytest.fixture
def source():
    return SourceMessage(chat_id=CUSTOMER, message_id=10, text=ORDER_TEXT)
