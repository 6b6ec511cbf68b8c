"""Stage transitions and the per-perspective message and button tables.

Both tables are total over (Stage, Perspective); ``StageTable`` refuses to
build a table with a missing pair, so adding a stage without templates fails
at import time.
"""

from __future__ import annotations

from typing import Generic, Mapping, TypeVar

from .models import Action, Perspective, Stage

V = TypeVar("V")


class StageTable(Generic[V]):
    """Lookup table indexed by every (Stage, Perspective) pair."""

    def __init__(self, name: str, entries: Mapping[tuple[Stage, Perspective], V]):
        missing = [
            f"{stage.value}/{perspective.value}"
            for stage in Stage
            for perspective in Perspective
            if (stage, perspective) not in entries
        ]
        if missing:
            raise ValueError(f"{name} table is missing: {', '.join(missing)}")
        self.name = name
        self._entries = dict(entries)

    def __getitem__(self, key: tuple[Stage, Perspective]) -> V:
        return self._entries[key]


def _both(value):
    return {Perspective.CUSTOMER: value, Perspective.OWNER: value}


def _table(name: str, rows: Mapping[Stage, Mapping[Perspective, V]]) -> StageTable[V]:
    return StageTable(
        name,
        {
            (stage, perspective): value
            for stage, per_perspective in rows.items()
            for perspective, value in per_perspective.items()
        },
    )


MESSAGES: StageTable[str] = _table("message", {
    Stage.OWNERS_CONFIRMATION: {
        Perspective.CUSTOMER: "customer.awaiting_owner",
        Perspective.OWNER: "owner.new_order",
    },
    Stage.COOKING: {
        Perspective.CUSTOMER: "customer.cooking",
        Perspective.OWNER: "owner.cooking",
    },
    Stage.DELIVERY: {
        Perspective.CUSTOMER: "customer.delivery",
        Perspective.OWNER: "owner.delivery",
    },
    Stage.CUSTOMER_CONFIRMATION: {
        Perspective.CUSTOMER: "customer.confirm_receipt",
        Perspective.OWNER: "owner.awaiting_customer",
    },
    Stage.FINISHED: _both("completed"),
    Stage.CANCELED_BY_CUSTOMER: _both("canceled_by_customer"),
    Stage.CANCELED_BY_OWNER: _both("canceled_by_owner"),
})

_OWNER_ACTIVE = (Action.ADVANCE, Action.CANCEL)
_CUSTOMER_ACTIVE = (Action.CANCEL,)

MARKUP: StageTable[tuple[Action, ...]] = _table("markup", {
    Stage.OWNERS_CONFIRMATION: {
        Perspective.CUSTOMER: _CUSTOMER_ACTIVE,
        Perspective.OWNER: _OWNER_ACTIVE,
    },
    Stage.COOKING: {
        Perspective.CUSTOMER: _CUSTOMER_ACTIVE,
        Perspective.OWNER: _OWNER_ACTIVE,
    },
    Stage.DELIVERY: {
        Perspective.CUSTOMER: _CUSTOMER_ACTIVE,
        Perspective.OWNER: _OWNER_ACTIVE,
    },
    Stage.CUSTOMER_CONFIRMATION: {
        Perspective.CUSTOMER: (Action.CONFIRM, Action.CANCEL),
        Perspective.OWNER: (Action.CANCEL,),
    },
    Stage.FINISHED: _both(()),
    Stage.CANCELED_BY_CUSTOMER: _both(()),
    Stage.CANCELED_BY_OWNER: _both(()),
})

TEMPLATES: dict[str, str] = {
    "customer.awaiting_owner": "Order #{ticket_id}: waiting for the place to accept it",
    "owner.new_order": "Order #{ticket_id}: new order, press Next to start cooking",
    "customer.cooking": "Order #{ticket_id}: your order is being cooked",
    "owner.cooking": "Order #{ticket_id}: cooking, press Next when it is handed to delivery",
    "customer.delivery": "Order #{ticket_id}: your order is on its way",
    "owner.delivery": "Order #{ticket_id}: in delivery, press Next once delivered",
    "customer.confirm_receipt": "Order #{ticket_id}: please confirm you received the order",
    "owner.awaiting_customer": "Order #{ticket_id}: waiting for the customer to confirm receipt",
    "completed": "Order #{ticket_id}: completed",
    "canceled_by_customer": "Order #{ticket_id}: canceled by the customer",
    "canceled_by_owner": "Order #{ticket_id}: canceled by the place",
}


# ------------------------------------------------------------------ #
#  Transitions                                                         #
# ------------------------------------------------------------------ #


def advance(stage: Stage) -> tuple[Stage, bool]:
    """Move one step along the happy path.

    Returns the same stage and ``False`` on terminal stages.
    """
    nxt = stage.next_stage
    if nxt is None:
        return stage, False
    return nxt, True


def cancel(stage: Stage, actor_is_customer: bool) -> Stage:
    """Cancel stage for the given actor, whatever ``stage`` is."""
    if actor_is_customer:
        return Stage.CANCELED_BY_CUSTOMER
    return Stage.CANCELED_BY_OWNER


def message_for(stage: Stage, perspective: Perspective) -> str:
    return MESSAGES[stage, perspective]


def markup_for(stage: Stage, perspective: Perspective) -> tuple[Action, ...]:
    return MARKUP[stage, perspective]


def render(template_id: str, ticket_id: int) -> str:
    return TEMPLATES[template_id].format(ticket_id=ticket_id)


def _check_templates() -> None:
    unknown = {
        MESSAGES[stage, perspective]
        for stage in Stage
        for perspective in Perspective
    } - TEMPLATES.keys()
    if unknown:
        raise ValueError(f"Templates without text: {', '.join(sorted(unknown))}")


_check_templates()
