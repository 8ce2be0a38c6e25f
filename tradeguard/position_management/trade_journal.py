"""
Trade Journal
Per-symbol narrative store (ticket -> initial analysis) and the permanent
CSV ledger of archived trades.
"""

import csv
import threading
from datetime import datetime
from pathlib import Path
from typing import Dict, List, Optional, Union

import pytz

from ..bot_logger import get_logger
from ..core.constants import JOURNAL_DIR, LEDGER_FILE
from ..core.json_store import delete_file, read_json, write_json

MISSING_ANALYSIS = "Initial analysis not found."


class JournalStore:
    """journal_data/journal_data_<SYMBOL>.json: {"<ticket>": "<narrative>"}"""

    def __init__(self, state_dir: Union[str, Path]):
        self.logger = get_logger()
        self.dir = Path(state_dir) / JOURNAL_DIR

    def path_for(self, symbol: str) -> Path:
        return self.dir / f"journal_data_{symbol.upper()}.json"

    def _load(self, symbol: str) -> Dict[str, str]:
        data = read_json(self.path_for(symbol))
        return data if isinstance(data, dict) else {}

    def add(self, symbol: str, ticket: int, text: str) -> None:
        entries = self._load(symbol)
        entries[str(ticket)] = text
        write_json(self.path_for(symbol), entries)
        self.logger.debug(f"Journal: stored analysis for {symbol} #{ticket}")

    def get(self, symbol: str, ticket: int) -> Optional[str]:
        return self._load(symbol).get(str(ticket))

    def remove(self, symbol: str, ticket: int) -> bool:
        """Drop a ticket's entry; the file goes away once empty."""
        entries = self._load(symbol)
        if str(ticket) not in entries:
            return False
        del entries[str(ticket)]
        if entries:
            write_json(self.path_for(symbol), entries)
        else:
            delete_file(self.path_for(symbol))
            self.logger.debug(f"Journal for {symbol} empty, file removed")
        return True


LEDGER_FIELDS = [
    "closed_at", "ticket", "symbol", "type", "entry_price", "sl", "tp",
    "volume", "close_reason", "profit", "initial_analysis",
]


class TradeLedger:
    """Append-only CSV of every archived trade."""

    def __init__(self, state_dir: Union[str, Path], timezone: str = "Asia/Jakarta"):
        self.logger = get_logger()
        self.path = Path(state_dir) / LEDGER_FILE
        self.tz = pytz.timezone(timezone)
        self._lock = threading.Lock()

    def append(self, row: Dict) -> None:
        row = {"closed_at": datetime.now(self.tz).strftime("%Y-%m-%d %H:%M:%S"), **row}
        with self._lock:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            write_header = not self.path.exists() or self.path.stat().st_size == 0
            with open(self.path, "a", newline="", encoding="utf-8") as f:
                w = csv.DictWriter(f, fieldnames=LEDGER_FIELDS, extrasaction="ignore")
                if write_header:
                    w.writeheader()
                w.writerow(row)
        self.logger.bind(trade=True).info(
            f"Ledger: {row.get('symbol')} #{row.get('ticket')} {row.get('close_reason')} "
            f"profit={row.get('profit')}"
        )

    def rows(self) -> List[Dict[str, str]]:
        if not self.path.exists():
            return []
        with open(self.path, "r", newline="", encoding="utf-8") as f:
            return list(csv.DictReader(f))
