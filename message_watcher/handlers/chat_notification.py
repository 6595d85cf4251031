"""Posts chat notification messages to an HTTP webhook."""
from pathlib import Path
from typing import Dict, List, Optional

import requests

from message_watcher import settings
from message_watcher.handlers.base import HandlerResult, MessageHandler
from message_watcher.logging_conf import logger
from message_watcher.queue.models import MessageHeader

MAX_CHUNK_LENGTH = 5000


def split_message(text: str, size: int = MAX_CHUNK_LENGTH) -> List[str]:
    """Split text into pieces the chat service will accept."""
    return [text[i:i + size] for i in range(0, len(text), size)] or [""]


class ChatNotificationHandler(MessageHandler):
    """Sends the message text to a chat webhook.

    The text is read from the data file when there is one, otherwise from the
    header's inline data.
    """

    def __init__(
        self,
        webhook_url: Optional[str] = None,
        message_type: Optional[str] = None,
        timeout: Optional[int] = None,
        session: Optional[requests.Session] = None,
    ):
        self.webhook_url = webhook_url or settings.CHAT_WEBHOOK_URL
        self.message_type = message_type or settings.CHAT_MESSAGE_TYPE
        self.timeout = timeout or settings.CHAT_TIMEOUT
        self.session = session or requests.Session()
        self.session.headers.update({"Content-Type": "application/json"})
        self._sent = 0
        # data file path -> number of parts already posted
        self._delivered: Dict[str, int] = {}

    def can_handle(self, header: MessageHeader) -> bool:
        return header.type_of_data == self.message_type

    def handle(self, header: MessageHeader, data_file: Path) -> HandlerResult:
        if not self.webhook_url:
            return HandlerResult.failure("No chat webhook URL configured")

        text = self._read_text(header, data_file)
        chunks = split_message(text)
        key = str(data_file)
        # Parts already delivered on an earlier pass are not posted again
        start = self._delivered.get(key, 0)
        for index in range(start, len(chunks)):
            try:
                response = self.session.post(self.webhook_url, json={"text": chunks[index]}, timeout=self.timeout)
            except (requests.exceptions.ConnectionError, requests.exceptions.Timeout) as e:
                logger.warning(f"Chat webhook unreachable, will retry message {header.id} from part {index + 1}: {e}")
                return HandlerResult.indeterminate(str(e))
            except requests.exceptions.RequestException as e:
                self._delivered.pop(key, None)
                return HandlerResult.failure(f"Chat webhook request failed: {e}")

            if response.status_code == 429 or response.status_code >= 500:
                logger.warning(f"Chat webhook returned {response.status_code}, will retry message {header.id} from part {index + 1}")
                return HandlerResult.indeterminate(f"HTTP {response.status_code}")
            if response.status_code >= 400:
                self._delivered.pop(key, None)
                return HandlerResult.failure(
                    f"Chat webhook rejected part {index + 1} of {len(chunks)}",
                    errors=[{"status": response.status_code, "body": response.text[:2000]}],
                )
            self._delivered[key] = index + 1

        self._delivered.pop(key, None)
        self._sent += 1
        logger.info(f"Sent chat notification {header.id} ({len(chunks)} part(s))")
        return HandlerResult.success()

    def quiesce(self) -> None:
        if self._sent:
            logger.debug(f"Chat notifications sent since last idle: {self._sent}")
            self._sent = 0

    def _read_text(self, header: MessageHeader, data_file: Path) -> str:
        if data_file.is_file():
            return data_file.read_text(encoding="utf-8")
        return header.data
