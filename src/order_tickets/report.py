"""Tabular export of the ticket audit trail.

Every exported frame has the ``TICKET_COLUMNS`` schema, whichever store the
tickets came from.
"""

from __future__ import annotations

from typing import Iterable

import pandas as pd

from .config import Settings
from .domain.models import LoadedTicket

TICKET_COLUMNS = [
    "ticket_id", "node_id", "customer_id", "stage", "terminal",
    "customer_anchor_id", "customer_status_id",
    "owner1", "owner2", "owner3",
    "owner1_anchor_id", "owner2_anchor_id", "owner3_anchor_id",
    "owner1_status_id", "owner2_status_id", "owner3_status_id",
    "reachable_owners", "audit_message_id",
]

_ID_COLUMNS = [
    "customer_status_id",
    "owner1_anchor_id", "owner2_anchor_id", "owner3_anchor_id",
    "owner1_status_id", "owner2_status_id", "owner3_status_id",
    "audit_message_id",
]


def _record(loaded: LoadedTicket, settings: Settings) -> dict:
    t = loaded.ticket
    record = {
        "ticket_id": t.id,
        "node_id": t.node_id,
        "customer_id": t.customer_id,
        "stage": t.stage.value,
        "terminal": t.stage.is_terminal,
        "customer_anchor_id": t.customer_anchor_id,
        "customer_status_id": t.customer_status_id,
        "audit_message_id": t.audit_message_id,
        "reachable_owners": sum(
            1 for owner in loaded.owners if settings.is_valid_user(owner)
        ),
    }
    for n, owner in enumerate(loaded.owners, start=1):
        record[f"owner{n}"] = owner
        record[f"owner{n}_anchor_id"] = t.owner_anchor_ids[n - 1]
        record[f"owner{n}_status_id"] = t.owner_status_ids[n - 1]
    return record


def tickets_to_frame(
    tickets: Iterable[LoadedTicket],
    settings: Settings,
    active_only: bool = False,
) -> pd.DataFrame:
    """Build a DataFrame with one row per ticket, ordered by ticket id."""
    rows = [
        _record(lt, settings)
        for lt in tickets
        if not (active_only and lt.ticket.stage.is_terminal)
    ]
    if not rows:
        return pd.DataFrame(columns=TICKET_COLUMNS)

    df = pd.DataFrame(rows)
    for col in _ID_COLUMNS:
        df[col] = df[col].astype("Int64")
    df = df.sort_values("ticket_id").reset_index(drop=True)
    return df[TICKET_COLUMNS]


def stage_counts(df: pd.DataFrame) -> pd.Series:
    """Number of tickets per stage value."""
    if df.empty:
        return pd.Series(dtype=int)
    return df.groupby("stage")["ticket_id"].count()
