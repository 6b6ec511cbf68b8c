"""Best-effort mirror of orders and stage changes to a service chat."""

from __future__ import annotations

import logging
from typing import Optional

from ..domain.errors import GatewayError
from ..domain.ports import MessagingGateway

logger = logging.getLogger(__name__)


class AuditChannel:
    """Service chat writer. A missing chat id turns every call into a no-op."""

    def __init__(self, gateway: MessagingGateway, chat_id: Optional[int]):
        self._gateway = gateway
        self.chat_id = chat_id

    @property
    def enabled(self) -> bool:
        return self.chat_id is not None

    def log(self, text: str, notify: bool = False) -> Optional[int]:
        """Post ``text`` and return its message id, or None on failure."""
        if self.chat_id is None:
            return None
        try:
            return self._gateway.send(self.chat_id, text, silent=not notify)
        except GatewayError as exc:
            logger.warning("Audit log failed (%s): %s", exc, text)
            return None

    def reply(self, text: str, message_id: Optional[int]) -> Optional[int]:
        """Post ``text`` threaded under an earlier audit message when known."""
        if self.chat_id is None:
            return None
        try:
            return self._gateway.send(self.chat_id, text, reply_to=message_id, silent=True)
        except GatewayError as exc:
            logger.warning("Audit reply failed (%s): %s", exc, text)
            return None
