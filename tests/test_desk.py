"""Tests for order_tickets.app.desk (ticket action entry points)."""

from concurrent.futures import ThreadPoolExecutor
from unittest.mock import MagicMock

import pytest

from conftest import ADMIN, AUDIT_CHAT, CUSTOMER, NODE, OWNER1
from order_tickets import TicketDesk
from order_tickets.app import TicketLocks
from order_tickets.app.desk import COMPLETED_NOTE
from order_tickets.domain.errors import TicketNotFound
from order_tickets.domain.models import Customer, Delivery, Node, Slots, Stage
from order_tickets.infra.memory import InMemoryStore
from order_tickets.infra.sqlite import SqliteStore

HAPPY_PATH = [
    Stage.OWNERS_CONFIRMATION,
    Stage.COOKING,
    Stage.DELIVERY,
    Stage.CUSTOMER_CONFIRMATION,
    Stage.FINISHED,
]


@pytest.fixture
def placed(desk, store, source):
    """A ticket created through checkout, returned freshly loaded."""
    assert desk.make_ticket(CUSTOMER, NODE, source).ok
    return store.load_ticket(1)


def _at_stage(store, stage):
    store.update_stage(1, stage)
    return store.load_ticket(1)


def _latest_status(gateway, recipient, anchor):
    return gateway.replies_to(recipient, anchor)[-1]


def _spy_desk(gateway, store, settings):
    spy = MagicMock(wraps=store)
    return TicketDesk(gateway, spy, store, settings), spy


# ------------------------------------------------------------------ #
#  next_ticket                                                          #
# ------------------------------------------------------------------ #


class TestNextTicket:
    def test_delivery_to_customer_confirmation(self, desk, gateway, store, placed):
        _at_stage(store, Stage.DELIVERY)
        ticket = placed.ticket

        outcome = desk.next_ticket(ticket.id)

        assert outcome.ok
        assert store.load_ticket(ticket.id).ticket.stage is Stage.CUSTOMER_CONFIRMATION
        customer_msg = _latest_status(gateway, CUSTOMER, ticket.customer_anchor_id)
        owner_msg = _latest_status(gateway, OWNER1, ticket.owner_anchor_ids[0])
        assert "confirm you received" in customer_msg.text
        assert "waiting for the customer" in owner_msg.text
        assert {b.data for b in customer_msg.buttons} == {f"tco{ticket.id}", f"tca{ticket.id}"}

    def test_terminal_does_not_persist_but_resyncs(self, gateway, store, settings, placed):
        _at_stage(store, Stage.FINISHED)
        desk, spy = _spy_desk(gateway, store, settings)
        sent_before = len(gateway.sent)

        outcome = desk.next_ticket(placed.ticket.id)

        assert outcome.ok
        assert spy.update_stage.call_count == 0
        assert spy.update_status_message_ids.call_count == 1
        assert len(gateway.sent) == sent_before + 2

    def test_walks_whole_happy_path(self, desk, store, placed):
        for expected in (Stage.COOKING, Stage.DELIVERY, Stage.CUSTOMER_CONFIRMATION, Stage.FINISHED):
            assert desk.next_ticket(placed.ticket.id).ok
            assert store.load_ticket(placed.ticket.id).ticket.stage is expected

    def test_failure_names_actor(self, desk, gateway, placed):
        gateway.fail("send", OWNER1)

        outcome = desk.next_ticket(placed.ticket.id, actor=OWNER1)

        assert not outcome.ok
        assert f"user_id={OWNER1}" in outcome.reason
        assert any("all owners" in s.text for s in gateway.sent_to(AUDIT_CHAT))

    def test_failure_without_actor_is_unattributed(self, desk, gateway, placed):
        gateway.fail("send", OWNER1)

        outcome = desk.next_ticket(placed.ticket.id)

        assert not outcome.ok
        assert "next_ticket user_id=unknown" in outcome.reason
        assert f"user_id={CUSTOMER}" not in outcome.reason

    def test_unknown_ticket(self, desk):
        with pytest.raises(TicketNotFound):
            desk.next_ticket(404)


# ------------------------------------------------------------------ #
#  confirm_ticket                                                       #
# ------------------------------------------------------------------ #


class TestConfirmTicket:
    @pytest.mark.parametrize("stage", [
        Stage.OWNERS_CONFIRMATION, Stage.COOKING, Stage.DELIVERY, Stage.CUSTOMER_CONFIRMATION,
    ])
    def test_forces_finished(self, gateway, store, settings, placed, stage):
        _at_stage(store, stage)
        desk, spy = _spy_desk(gateway, store, settings)
        ticket = placed.ticket

        outcome = desk.confirm_ticket(ticket.id, actor=CUSTOMER)

        assert outcome.ok
        assert store.load_ticket(ticket.id).ticket.stage is Stage.FINISHED
        assert spy.update_stage.call_count == 1
        for recipient, anchor in (
            (CUSTOMER, ticket.customer_anchor_id),
            (OWNER1, ticket.owner_anchor_ids[0]),
        ):
            msg = _latest_status(gateway, recipient, anchor)
            assert msg.text.endswith("completed")
            assert msg.buttons == []

    def test_mirrors_completion(self, desk, gateway, store, placed):
        desk.confirm_ticket(placed.ticket.id)
        audit = gateway.sent_to(AUDIT_CHAT)
        assert audit[-1].text == COMPLETED_NOTE
        assert audit[-1].reply_to == placed.ticket.audit_message_id

    def test_canceled_ticket_stays_canceled(self, desk, store, placed):
        _at_stage(store, Stage.CANCELED_BY_OWNER)
        desk.confirm_ticket(placed.ticket.id)
        assert store.load_ticket(placed.ticket.id).ticket.stage is Stage.CANCELED_BY_OWNER


# ------------------------------------------------------------------ #
#  cancel_ticket                                                        #
# ------------------------------------------------------------------ #


class TestCancelTicket:
    def test_customer_cancel(self, desk, gateway, store, placed):
        outcome = desk.cancel_ticket(CUSTOMER, placed.ticket.id)

        assert outcome.ok
        assert store.load_ticket(1).ticket.stage is Stage.CANCELED_BY_CUSTOMER
        msg = _latest_status(gateway, OWNER1, placed.ticket.owner_anchor_ids[0])
        assert "canceled by the customer" in msg.text
        assert msg.buttons == []

    def test_owner_cancel(self, desk, store, placed):
        assert desk.cancel_ticket(OWNER1, placed.ticket.id).ok
        assert store.load_ticket(1).ticket.stage is Stage.CANCELED_BY_OWNER

    def test_admin_cancel(self, desk, store, placed):
        assert desk.cancel_ticket(ADMIN, placed.ticket.id).ok
        assert store.load_ticket(1).ticket.stage is Stage.CANCELED_BY_OWNER

    def test_stranger_rejected(self, gateway, store, settings, placed):
        desk, spy = _spy_desk(gateway, store, settings)

        outcome = desk.cancel_ticket(123_456, placed.ticket.id)

        assert not outcome.ok
        assert "user_id=123456" in outcome.reason
        assert spy.update_stage.call_count == 0
        assert store.load_ticket(1).ticket.stage is Stage.OWNERS_CONFIRMATION

    def test_recancel_keeps_terminal_stage(self, gateway, store, settings, placed):
        _at_stage(store, Stage.CANCELED_BY_CUSTOMER)
        desk, spy = _spy_desk(gateway, store, settings)

        outcome = desk.cancel_ticket(OWNER1, placed.ticket.id)

        assert outcome.ok
        assert spy.update_stage.call_count == 0
        assert store.load_ticket(1).ticket.stage is Stage.CANCELED_BY_CUSTOMER

    def test_mirrors_stage_to_audit(self, desk, gateway, placed):
        desk.cancel_ticket(CUSTOMER, placed.ticket.id)
        audit = gateway.sent_to(AUDIT_CHAT)[-1]
        assert "canceled by the customer" in audit.text
        assert audit.reply_to == placed.ticket.audit_message_id


# ------------------------------------------------------------------ #
#  show_tickets                                                         #
# ------------------------------------------------------------------ #


class TestShowTickets:
    def test_resends_customer_status(self, desk, gateway, store, placed):
        before = store.load_ticket(1).ticket
        owner_sent = len(gateway.sent_to(OWNER1))

        outcome = desk.show_tickets(CUSTOMER)

        assert outcome.ok
        after = store.load_ticket(1).ticket
        assert after.customer_status_id != before.customer_status_id
        assert after.owner_status_ids == before.owner_status_ids
        assert len(gateway.sent_to(OWNER1)) == owner_sent

    def test_resends_owner_status(self, desk, gateway, store, placed):
        before = store.load_ticket(1).ticket
        assert desk.show_tickets(OWNER1).ok
        after = store.load_ticket(1).ticket
        assert after.owner_status_ids[0] != before.owner_status_ids[0]
        assert after.customer_status_id == before.customer_status_id

    def test_finished_tickets_are_skipped(self, desk, gateway, store, placed):
        _at_stage(store, Stage.FINISHED)
        sent = len(gateway.sent)
        assert desk.show_tickets(CUSTOMER).ok
        assert len(gateway.sent) == sent

    def test_customer_failure(self, desk, gateway, placed):
        gateway.fail("send", CUSTOMER)
        outcome = desk.show_tickets(CUSTOMER)
        assert not outcome.ok
        assert f"user_id={CUSTOMER}" in outcome.reason


# ------------------------------------------------------------------ #
#  Concurrent actions on one ticket                                     #
# ------------------------------------------------------------------ #


@pytest.fixture(params=["memory", "sqlite"])
def any_store(request, tmp_path):
    if request.param == "memory":
        s = InMemoryStore()
    else:
        s = SqliteStore(tmp_path / "tickets.db")
    s.add_node(Node(id=NODE, title="Pizza place", owners=Slots.of(OWNER1, 0, 0)))
    s.add_customer(Customer(
        id=CUSTOMER, name="Ann", delivery=Delivery.COURIER, address="1 Main St",
    ))
    return s


class TestConcurrentNext:
    @pytest.mark.parametrize("presses", [2, 4, 6])
    def test_parallel_presses(self, gateway, settings, any_store, source, presses):
        desk = TicketDesk(gateway, any_store, any_store, settings)
        assert desk.make_ticket(CUSTOMER, NODE, source).ok

        with ThreadPoolExecutor(max_workers=presses) as pool:
            outcomes = list(pool.map(
                lambda _: desk.next_ticket(1, actor=OWNER1), range(presses),
            ))

        assert all(o.ok for o in outcomes)
        ticket = any_store.load_ticket(1).ticket
        assert ticket.stage is HAPPY_PATH[min(presses, len(HAPPY_PATH) - 1)]

        sent = {(s.recipient, s.message_id) for s in gateway.sent}
        deleted = set(gateway.deleted)
        for recipient, anchor, status_id in (
            (CUSTOMER, ticket.customer_anchor_id, ticket.customer_status_id),
            (OWNER1, ticket.owner_anchor_ids[0], ticket.owner_status_ids[0]),
        ):
            assert (recipient, status_id) in sent
            assert (recipient, status_id) not in deleted
            live = [
                s for s in gateway.replies_to(recipient, anchor)
                if (recipient, s.message_id) not in deleted
            ]
            assert [s.message_id for s in live] == [status_id]

    def test_parallel_cancel_and_next(self, gateway, settings, any_store, source):
        desk = TicketDesk(gateway, any_store, any_store, settings)
        assert desk.make_ticket(CUSTOMER, NODE, source).ok

        with ThreadPoolExecutor(max_workers=4) as pool:
            futures = [pool.submit(desk.next_ticket, 1, OWNER1) for _ in range(3)]
            futures.append(pool.submit(desk.cancel_ticket, CUSTOMER, 1))
            for f in futures:
                f.result()

        # Whenever the cancel lands, later presses cannot move a terminal ticket.
        assert any_store.load_ticket(1).ticket.stage is Stage.CANCELED_BY_CUSTOMER


class TestTicketLocks:
    def test_same_ticket_same_lock(self):
        locks = TicketLocks(stripes=4)
        assert locks.for_ticket(1) is locks.for_ticket(1)
        assert locks.for_ticket(1) is locks.for_ticket(5)
        assert locks.for_ticket(1) is not locks.for_ticket(2)

    def test_stripes_must_be_positive(self):
        with pytest.raises(ValueError):
            TicketLocks(stripes=0)
