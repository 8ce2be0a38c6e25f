"""
Trade Record Store
Authoritative local record of each symbol's pending order or live position.

One JSON file per symbol, in a namespace derived from the record status:
    <state_dir>/pending_orders/trade_<SYMBOL>.json
    <state_dir>/live_positions/trade_<SYMBOL>.json
"""

import threading
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional, Union

import pytz

from ..bot_logger import get_logger
from ..core.constants import LIVE_DIR, PENDING_DIR, OrderType, TradeStatus
from ..core.exceptions import StateConflictError, StateCorruptionError
from ..core.json_store import delete_file, read_json, write_json


def _utc_now_iso() -> str:
    return datetime.now(pytz.utc).isoformat()


@dataclass
class TradeRecord:
    """A trade we believe is resting or open at the broker."""
    ticket: int
    symbol: str
    order_type: OrderType
    price: float = 0.0
    sl: float = 0.0
    tp: float = 0.0
    volume: float = 0.01
    comment: str = ""
    meta: Dict[str, Any] = field(default_factory=dict)
    status: Optional[TradeStatus] = None
    opened_at: str = field(default_factory=_utc_now_iso)

    def __post_init__(self):
        self.ticket = int(self.ticket)
        self.symbol = self.symbol.upper()
        if isinstance(self.order_type, str):
            self.order_type = OrderType.from_string(self.order_type)
        if isinstance(self.status, str):
            self.status = TradeStatus(self.status)
        if self.status is None:
            self.status = TradeStatus.PENDING if self.order_type.is_pending else TradeStatus.LIVE

    @property
    def is_pending(self) -> bool:
        return self.status == TradeStatus.PENDING

    def to_dict(self) -> Dict[str, Any]:
        return {
            "ticket": self.ticket,
            "symbol": self.symbol,
            "type": self.order_type.value,
            "price": self.price,
            "sl": self.sl,
            "tp": self.tp,
            "volume": self.volume,
            "comment": self.comment,
            "meta": self.meta,
            "status": self.status.value,
            "opened_at": self.opened_at,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any], status: Optional[TradeStatus] = None) -> "TradeRecord":
        """
        Build a record from its stored form.

        Args:
            data: Stored dict ("type" or "order_type" key accepted)
            status: Fallback status when the file carries none
        """
        return cls(
            ticket=data["ticket"],
            symbol=data["symbol"],
            order_type=data.get("order_type") or data["type"],
            price=float(data.get("price") or 0.0),
            sl=float(data.get("sl") or 0.0),
            tp=float(data.get("tp") or 0.0),
            volume=float(data.get("volume") or 0.0),
            comment=data.get("comment", ""),
            meta=data.get("meta") or {},
            status=data.get("status") or status,
            opened_at=data.get("opened_at") or _utc_now_iso(),
        )


class SymbolLockRegistry:
    """One re-entrant lock per symbol, created on first use."""

    def __init__(self):
        self._guard = threading.Lock()
        self._locks: Dict[str, threading.RLock] = {}

    def get(self, symbol: str) -> threading.RLock:
        key = symbol.upper()
        with self._guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = threading.RLock()
                self._locks[key] = lock
            return lock


class TradeRecordStore:
    """File-backed pending/live record store."""

    def __init__(self, state_dir: Union[str, Path], locks: Optional[SymbolLockRegistry] = None):
        """
        Initialize the store.

        Args:
            state_dir: Root state directory
            locks: Shared lock registry (one is created if omitted)
        """
        self.logger = get_logger()
        self.state_dir = Path(state_dir)
        self.locks = locks or SymbolLockRegistry()
        self._dirs = {
            TradeStatus.PENDING: self.state_dir / PENDING_DIR,
            TradeStatus.LIVE: self.state_dir / LIVE_DIR,
        }

    @contextmanager
    def lock(self, symbol: str) -> Iterator[None]:
        """Hold the symbol's lock for a read-modify-write."""
        with self.locks.get(symbol):
            yield

    def path_for(self, symbol: str, status: TradeStatus) -> Path:
        return self._dirs[status] / f"trade_{symbol.upper()}.json"

    def _read(self, symbol: str, status: TradeStatus) -> Optional[TradeRecord]:
        path = self.path_for(symbol, status)
        try:
            data = read_json(path)
        except StateCorruptionError as e:
            self.logger.error(str(e))
            raise
        if data is None:
            return None
        try:
            record = TradeRecord.from_dict(data, status)
        except (KeyError, TypeError, ValueError) as e:
            self.logger.error(f"Invalid trade record in {path}: {e}")
            raise StateCorruptionError(f"Invalid trade record in {path}: {e}") from e
        # The namespace is authoritative for where the record lives
        record.status = status
        return record

    def get_pending(self, symbol: str) -> Optional[TradeRecord]:
        return self._read(symbol, TradeStatus.PENDING)

    def get_live(self, symbol: str) -> Optional[TradeRecord]:
        return self._read(symbol, TradeStatus.LIVE)

    def get(self, symbol: str) -> Optional[TradeRecord]:
        """Current record for a symbol; live takes priority over pending."""
        return self.get_live(symbol) or self.get_pending(symbol)

    def put(self, record: TradeRecord) -> None:
        """
        Persist a record in its status namespace.

        Raises:
            StateConflictError: If the symbol already holds a different ticket
        """
        with self.lock(record.symbol):
            existing = self.get(record.symbol)
            if existing is not None and existing.ticket != record.ticket:
                raise StateConflictError(
                    f"{record.symbol} already tracks #{existing.ticket} ({existing.status.value})"
                )
            write_json(self.path_for(record.symbol, record.status), record.to_dict())
            other = TradeStatus.LIVE if record.status == TradeStatus.PENDING else TradeStatus.PENDING
            delete_file(self.path_for(record.symbol, other))
        self.logger.bind(trade=True).info(
            f"Stored {record.status.value} {record.symbol} #{record.ticket} "
            f"{record.order_type.value} @ {record.price}"
        )

    def promote(self, symbol: str) -> Optional[TradeRecord]:
        """Move a pending record to live under the same ticket."""
        with self.lock(symbol):
            record = self.get_pending(symbol)
            if record is None:
                return None
            record.status = TradeStatus.LIVE
            record.meta = {**record.meta, "filled_at": _utc_now_iso()}
            write_json(self.path_for(symbol, TradeStatus.LIVE), record.to_dict())
            delete_file(self.path_for(symbol, TradeStatus.PENDING))
        self.logger.bind(trade=True).info(f"Promoted {symbol} #{record.ticket} to LIVE")
        return record

    def remove(self, symbol: str) -> bool:
        """Delete the symbol's record from both namespaces."""
        with self.lock(symbol):
            removed_pending = delete_file(self.path_for(symbol, TradeStatus.PENDING))
            removed_live = delete_file(self.path_for(symbol, TradeStatus.LIVE))
        return removed_pending or removed_live

    def _symbols(self, status: TradeStatus) -> List[str]:
        directory = self._dirs[status]
        if not directory.exists():
            return []
        return sorted(p.stem[len("trade_"):] for p in directory.glob("trade_*.json"))

    def pending_symbols(self) -> List[str]:
        return self._symbols(TradeStatus.PENDING)

    def live_symbols(self) -> List[str]:
        return self._symbols(TradeStatus.LIVE)

    def list_pending(self) -> List[TradeRecord]:
        return [r for r in (self.get_pending(s) for s in self.pending_symbols()) if r]

    def list_live(self) -> List[TradeRecord]:
        return [r for r in (self.get_live(s) for s in self.live_symbols()) if r]
