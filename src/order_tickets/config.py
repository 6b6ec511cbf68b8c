"""Process-wide settings, read once from the environment at startup.

The resulting ``Settings`` value is immutable and passed explicitly to every
component that needs it.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Mapping, Optional

logger = logging.getLogger(__name__)

DEFAULT_MIN_USER_ID = 10_000
DEFAULT_DB_PATH = "data/tickets.db"


def _parse_int(environ: Mapping[str, str], key: str) -> Optional[int]:
    raw = environ.get(key, "").strip()
    if not raw:
        return None
    try:
        return int(raw)
    except ValueError:
        logger.warning("Environment variable %s must be integer, got %r", key, raw)
        return None


@dataclass(frozen=True)
class Settings:
    """Immutable runtime configuration.

    Attributes:
        bot_token: Telegram Bot API token.
        audit_chat_id: Service chat mirroring orders and stage changes, or None.
        admin_ids: Up to three administrator user ids.
        contact_info: Administrators' contact line shown to users.
        price_unit: Suffix appended to prices.
        time_zone: Local time zone for timestamps.
        min_user_id: Ids at or below this value are unset placeholders.
        db_path: SQLite database file.
    """

    bot_token: str = ""
    audit_chat_id: Optional[int] = None
    admin_ids: tuple[int, ...] = ()
    contact_info: str = ""
    price_unit: str = ""
    time_zone: timezone = timezone.utc
    min_user_id: int = DEFAULT_MIN_USER_ID
    db_path: str = DEFAULT_DB_PATH

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "Settings":
        env = os.environ if environ is None else environ

        audit_chat_id = _parse_int(env, "LOG_GROUP_ID")
        if audit_chat_id is None:
            logger.info("No LOG_GROUP_ID configured, audit channel disabled")

        admin_ids = tuple(
            admin_id
            for admin_id in (
                _parse_int(env, f"TELEGRAM_ADMIN_ID{n}") for n in (1, 2, 3)
            )
            if admin_id is not None
        )

        hours = _parse_int(env, "TIME_ZONE") or 0
        min_user_id = _parse_int(env, "VALID_USER_ID")

        return cls(
            bot_token=env.get("BOT_TOKEN", ""),
            audit_chat_id=audit_chat_id,
            admin_ids=admin_ids,
            contact_info=env.get("CONTACT_INFO", ""),
            price_unit=env.get("PRICE_UNIT", ""),
            time_zone=timezone(timedelta(hours=hours)),
            min_user_id=DEFAULT_MIN_USER_ID if min_user_id is None else min_user_id,
            db_path=env.get("ORDER_TICKETS_DB", DEFAULT_DB_PATH),
        )

    def is_admin(self, user_id: int) -> bool:
        return user_id in self.admin_ids

    def is_valid_user(self, user_id: Optional[int]) -> bool:
        """True for a real chat identity, False for an unset placeholder."""
        return user_id is not None and user_id > self.min_user_id

    def price_with_unit(self, price: int) -> str:
        return f"{price}{self.price_unit}"

    def now(self) -> datetime:
        return datetime.now(self.time_zone)
