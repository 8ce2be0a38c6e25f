"""
Notifier
Fan-out of text / image notices to the persisted recipient list.
A failure for one recipient is logged and never aborts the batch.
"""

import threading
from pathlib import Path
from typing import List, Optional, Union

import requests

from ..bot_logger import get_logger
from ..core.constants import RECIPIENTS_FILE
from ..core.json_store import read_json, write_json


class RecipientStore:
    """recipients.json: a JSON list of chat ids."""

    def __init__(self, state_dir: Union[str, Path], initial: Optional[List[str]] = None):
        self.logger = get_logger()
        self.path = Path(state_dir) / RECIPIENTS_FILE
        self._lock = threading.Lock()
        if initial and read_json(self.path) is None:
            self.set(initial)

    def list(self) -> List[str]:
        data = read_json(self.path)
        return [str(r) for r in data] if isinstance(data, list) else []

    def set(self, recipients: List[str]) -> None:
        with self._lock:
            unique = list(dict.fromkeys(str(r).strip() for r in recipients if str(r).strip()))
            write_json(self.path, unique)

    def add(self, recipient: str) -> bool:
        """Returns False when the recipient was already listed."""
        recipient = str(recipient).strip()
        with self._lock:
            current = self.list()
            if not recipient or recipient in current:
                return False
            current.append(recipient)
            write_json(self.path, current)
        self.logger.info(f"Recipient added: {recipient}")
        return True

    def remove(self, recipient: str) -> bool:
        recipient = str(recipient).strip()
        with self._lock:
            current = self.list()
            if recipient not in current:
                return False
            current.remove(recipient)
            write_json(self.path, current)
        self.logger.info(f"Recipient removed: {recipient}")
        return True


class Notifier:
    """Base notification sink. Subclasses implement send / send_image."""

    def __init__(self, recipients: RecipientStore):
        self.logger = get_logger()
        self.recipients = recipients

    def send(self, recipient: str, text: str) -> None:
        raise NotImplementedError

    def send_image(self, recipient: str, image: bytes, caption: str = "") -> None:
        raise NotImplementedError

    def broadcast(self, text: str) -> int:
        """Send text to every recipient. Returns the number delivered."""
        delivered = 0
        targets = self.recipients.list()
        for recipient in targets:
            try:
                self.send(recipient, text)
                delivered += 1
            except Exception as e:
                self.logger.error(f"Notify failed for {recipient}: {e}")
        self.logger.debug(f"Broadcast delivered to {delivered}/{len(targets)}")
        return delivered

    def broadcast_image(self, image: bytes, caption: str = "") -> int:
        delivered = 0
        for recipient in self.recipients.list():
            try:
                self.send_image(recipient, image, caption)
                delivered += 1
            except Exception as e:
                self.logger.error(f"Image notify failed for {recipient}: {e}")
        return delivered


class TelegramNotifier(Notifier):
    """Telegram Bot API sink."""

    def __init__(self, token: str, recipients: RecipientStore, enabled: bool = True, timeout: float = 10.0):
        super().__init__(recipients)
        self.enabled = enabled and bool(token)
        self.base_url = f"https://api.telegram.org/bot{token}"
        self.timeout = timeout
        if not self.enabled:
            self.logger.info("Telegram notifier disabled; notices go to the log only")

    def _check(self, resp: requests.Response) -> None:
        if not resp.ok:
            raise RuntimeError(f"Telegram send failed: {resp.status_code} {resp.text[:200]}")

    def send(self, recipient: str, text: str) -> None:
        if not self.enabled:
            self.logger.info(f"[notice -> {recipient}] {text}")
            return
        resp = requests.post(
            f"{self.base_url}/sendMessage",
            json={
                "chat_id": recipient,
                "text": text,
                "parse_mode": "HTML",
                "disable_web_page_preview": True,
            },
            timeout=self.timeout,
        )
        self._check(resp)

    def send_image(self, recipient: str, image: bytes, caption: str = "") -> None:
        if not self.enabled:
            self.logger.info(f"[image -> {recipient}] {caption}")
            return
        resp = requests.post(
            f"{self.base_url}/sendPhoto",
            data={"chat_id": recipient, "caption": caption},
            files={"photo": ("chart.png", image, "image/png")},
            timeout=self.timeout,
        )
        self._check(resp)
