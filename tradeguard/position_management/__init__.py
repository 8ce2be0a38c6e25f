"""Trade record persistence, journaling, archiving and reconciliation."""

from .trade_store import TradeRecord, TradeRecordStore, SymbolLockRegistry
from .trade_journal import JournalStore, TradeLedger
from .trade_archiver import TradeArchiver, ArchiveOutcome
from .reconciler import Reconciler, ReconcileReport

__all__ = [
    "TradeRecord",
    "TradeRecordStore",
    "SymbolLockRegistry",
    "JournalStore",
    "TradeLedger",
    "TradeArchiver",
    "ArchiveOutcome",
    "Reconciler",
    "ReconcileReport",
]
