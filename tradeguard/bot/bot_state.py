"""
Bot State
Persisted pause flag (bot_status.json).
"""

import threading
from pathlib import Path
from typing import Union

from ..bot_logger import get_logger
from ..core.constants import STATUS_FILE
from ..core.exceptions import StateCorruptionError
from ..core.json_store import read_json, write_json


class BotState:
    """Pause / resume switch for scheduled analysis."""

    def __init__(self, state_dir: Union[str, Path]):
        self.logger = get_logger()
        self.path = Path(state_dir) / STATUS_FILE
        self._lock = threading.Lock()

    @property
    def is_paused(self) -> bool:
        try:
            data = read_json(self.path)
        except StateCorruptionError as e:
            self.logger.error(f"{e}; assuming not paused")
            return False
        return bool(data.get("is_paused", False)) if isinstance(data, dict) else False

    def set_paused(self, paused: bool) -> None:
        with self._lock:
            write_json(self.path, {"is_paused": bool(paused)})
        self.logger.info(f"Bot {'paused' if paused else 'resumed'}")

    def pause(self) -> None:
        self.set_paused(True)

    def resume(self) -> None:
        self.set_paused(False)
