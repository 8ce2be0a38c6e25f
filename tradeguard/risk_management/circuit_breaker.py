"""
Circuit Breaker
Halts new analysis cycles after too many losing trades in one trading day.

Policy: losses are counted per trading day (trading timezone). Wins are
tallied for reporting but do not reset the loss counter; only a new trading
day re-arms the breaker.
"""

import threading
from datetime import date, datetime
from pathlib import Path
from typing import Dict, Optional, Tuple, Union

import pytz

from ..bot_logger import get_logger
from ..core.constants import BREAKER_FILE, BreakerState
from ..core.exceptions import StateCorruptionError
from ..core.json_store import read_json, write_json


class CircuitBreaker:
    """Daily loss counter with persisted state."""

    def __init__(
        self,
        state_dir: Union[str, Path],
        max_losses_per_day: int = 3,
        timezone: str = "Asia/Jakarta",
    ):
        """
        Initialize circuit breaker.

        Args:
            state_dir: Directory holding circuit_breaker_stats.json
            max_losses_per_day: Losses that trip the breaker
            timezone: Trading timezone (defines the trading day)
        """
        self.logger = get_logger()
        self.path = Path(state_dir) / BREAKER_FILE
        self.max_losses_per_day = max_losses_per_day
        self.tz = pytz.timezone(timezone)
        self._lock = threading.Lock()
        self._tripped_logged = False

    def _today(self) -> str:
        return datetime.now(self.tz).date().isoformat()

    def _load(self, today: str) -> Tuple[Dict, Optional[str]]:
        """
        Read today's stats.

        Returns:
            (stats, stored_date). stored_date is None when the file already
            holds today, otherwise the date found on disk ("" if none).
        """
        try:
            stats = read_json(self.path)
        except StateCorruptionError as e:
            self.logger.error(f"Circuit breaker stats unreadable, starting fresh: {e}")
            stats = None

        if not isinstance(stats, dict) or stats.get("date") != today:
            stored_date = str(stats.get("date") or "") if isinstance(stats, dict) else ""
            if stored_date:
                self.logger.info(
                    f"Circuit breaker: new trading day {today}, "
                    f"resetting {stats.get('losses_today', 0)} losses"
                )
            self._tripped_logged = False
            return {"date": today, "losses_today": 0, "wins_today": 0}, stored_date

        stats.setdefault("losses_today", 0)
        stats.setdefault("wins_today", 0)
        return stats, None

    def record_loss(self) -> Dict:
        """Count one losing trade for today."""
        with self._lock:
            stats, _ = self._load(self._today())
            stats["losses_today"] += 1
            write_json(self.path, stats)
        self.logger.warning(
            f"Circuit breaker: loss recorded ({stats['losses_today']}/{self.max_losses_per_day} today)"
        )
        return stats

    def record_win(self) -> Dict:
        """Count one winning trade for today (does not reset losses)."""
        with self._lock:
            stats, _ = self._load(self._today())
            stats["wins_today"] += 1
            write_json(self.path, stats)
        self.logger.info(f"Circuit breaker: win recorded ({stats['wins_today']} today)")
        return stats

    def record_outcome(self, profit: float) -> Dict:
        """Negative profit is a loss, anything else a win."""
        if profit < 0:
            return self.record_loss()
        return self.record_win()

    def is_tripped(self, today: Optional[Union[date, str]] = None) -> bool:
        """
        Check the breaker, persisting a day rollover if one happened.
        A date earlier than the stored one is evaluated but never written.

        Args:
            today: Trading date override (date or ISO string)
        """
        today_str = today.isoformat() if isinstance(today, date) else (today or self._today())
        with self._lock:
            stats, stored_date = self._load(today_str)
            if stored_date is not None and today_str > stored_date:
                write_json(self.path, stats)

        tripped = stats["losses_today"] >= self.max_losses_per_day
        if tripped and not self._tripped_logged:
            self.logger.warning(
                f"CIRCUIT BREAKER TRIPPED: {stats['losses_today']} losses today "
                f"(limit {self.max_losses_per_day})"
            )
            self._tripped_logged = True
        return tripped

    def state(self, today: Optional[Union[date, str]] = None) -> BreakerState:
        return BreakerState.TRIPPED if self.is_tripped(today) else BreakerState.ARMED

    def get_stats(self) -> Dict:
        """Today's counters plus the configured limit."""
        with self._lock:
            stats, _ = self._load(self._today())
        return {**stats, "max_losses_per_day": self.max_losses_per_day}
