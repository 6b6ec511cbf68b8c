"""Telegram Bot API adapter implementing MessagingGateway."""

import logging
from typing import Optional, Sequence

from ..domain.errors import GatewayError
from ..domain.models import Button
from .http_client import HttpClient

logger = logging.getLogger(__name__)

BASE_URL = "https://api.telegram.org"


class TelegramGateway:
    """Sends, edits, deletes and forwards messages through the Bot API.

    Implements the ``MessagingGateway`` protocol. Texts go out verbatim;
    only ``send(..., html=True)`` asks the Bot API to parse HTML markup.
    """

    def __init__(self, token: str, timeout: float = 30, base_url: str = BASE_URL):
        if not token:
            raise ValueError("Telegram bot token is required")
        self._url = f"{base_url}/bot{token}"
        self._http = HttpClient(timeout=timeout)

    def close(self):
        self._http.close()

    def __enter__(self):
        return self

    def __exit__(self, *args):
        self.close()

    # ------------------------------------------------------------------ #
    #  MessagingGateway                                                    #
    # ------------------------------------------------------------------ #

    def send(
        self,
        recipient: int,
        text: str,
        reply_to: Optional[int] = None,
        buttons: Sequence[Button] = (),
        silent: bool = False,
        html: bool = False,
    ) -> int:
        payload = {"chat_id": recipient, "text": text}
        if html:
            payload["parse_mode"] = "HTML"
        if reply_to is not None:
            payload["reply_to_message_id"] = reply_to
            payload["allow_sending_without_reply"] = False
        if buttons:
            payload["reply_markup"] = self._inline_keyboard(buttons)
        if silent:
            payload["disable_notification"] = True
        return self._message_id(self._call("sendMessage", payload))

    def edit(self, recipient: int, message_id: int, text: str) -> int:
        result = self._call("editMessageText", {
            "chat_id": recipient,
            "message_id": message_id,
            "text": text,
        })
        # Inline messages answer ``true`` instead of the edited message.
        if result is True:
            return message_id
        return self._message_id(result)

    def delete(self, recipient: int, message_id: int) -> None:
        self._call("deleteMessage", {"chat_id": recipient, "message_id": message_id})

    def forward(self, from_chat: int, to_chat: int, message_id: int) -> int:
        return self._message_id(self._call("forwardMessage", {
            "chat_id": to_chat,
            "from_chat_id": from_chat,
            "message_id": message_id,
        }))

    # ------------------------------------------------------------------ #
    #  Internal                                                            #
    # ------------------------------------------------------------------ #

    def _call(self, method: str, payload: dict):
        try:
            data = self._http.post(f"{self._url}/{method}", payload)
        except RuntimeError as exc:
            raise GatewayError(f"{method} chat_id={payload.get('chat_id')}: {exc}") from exc

        if not data.get("ok"):
            description = data.get("description", "unknown error")
            code = data.get("error_code")
            raise GatewayError(
                f"{method} chat_id={payload.get('chat_id')}: [{code}] {description}"
            )
        logger.debug("%s chat_id=%s ok", method, payload.get("chat_id"))
        return data.get("result")

    @staticmethod
    def _message_id(result) -> int:
        if not isinstance(result, dict) or "message_id" not in result:
            raise GatewayError(f"Unexpected Bot API result: {result!r}")
        return int(result["message_id"])

    @staticmethod
    def _inline_keyboard(buttons: Sequence[Button]) -> dict:
        return {
            "inline_keyboard": [
                [{"text": b.caption, "callback_data": b.data} for b in buttons]
            ]
        }
