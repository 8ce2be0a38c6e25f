"""
Reconciler
Periodically compares the local trade records with the broker's active list:

  - pending record whose ticket is active  -> promote to live
  - live record whose ticket is gone       -> look up the closing deal and archive

Only one cycle runs at a time; an overlapping trigger is skipped. A failure
to fetch the active list aborts the cycle without touching state. Any other
failure is confined to the symbol it happened on.
"""

import threading
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from ..bot_logger import get_logger
from ..core.broker_client import active_tickets
from ..core.constants import CloseReason, close_reason_from_code
from ..core.exceptions import ReconciliationGapError, TradeGuardError
from ..notifications import messages
from .trade_archiver import ArchiveOutcome, TradeArchiver
from .trade_store import TradeRecordStore


@dataclass
class ReconcileReport:
    skipped: bool = False
    aborted: bool = False
    promoted: List[str] = field(default_factory=list)
    closed: List[ArchiveOutcome] = field(default_factory=list)
    unknown: List[str] = field(default_factory=list)
    errors: Dict[str, str] = field(default_factory=dict)

    @property
    def changed(self) -> bool:
        return bool(self.promoted or self.closed)


class Reconciler:
    """Monitoring loop object with its own overlap guard."""

    def __init__(
        self,
        broker,
        store: TradeRecordStore,
        archiver: TradeArchiver,
        notifier,
        deal_lookback_hours: int = 48,
    ):
        """
        Initialize reconciler.

        Args:
            broker: BrokerClient-like object
            store: Trade record store
            archiver: Shared close/archive path
            notifier: Notifier used for fill / close notices
            deal_lookback_hours: Deal history window for closing-deal lookups
        """
        self.logger = get_logger().bind(reconcile=True)
        self.broker = broker
        self.store = store
        self.archiver = archiver
        self.notifier = notifier
        self.deal_lookback_hours = deal_lookback_hours
        self._guard = threading.Lock()

    def run_cycle(self) -> ReconcileReport:
        """Run one reconciliation pass."""
        report = ReconcileReport()
        if not self._guard.acquire(blocking=False):
            self.logger.info("Reconcile cycle already running, skipping")
            report.skipped = True
            return report

        try:
            self.logger.debug("Reconcile cycle started")
            try:
                positions = self.broker.get_active_positions()
            except TradeGuardError as e:
                self.logger.error(f"Active position fetch failed, cycle aborted: {e}")
                report.aborted = True
                return report

            tickets = active_tickets(positions)

            for symbol in self.store.pending_symbols():
                self._isolate(report, symbol, self._check_pending, symbol, tickets)

            for symbol in self.store.live_symbols():
                self._isolate(report, symbol, self._check_live, symbol, tickets)

            self.logger.debug(
                f"Reconcile cycle done: promoted={report.promoted} "
                f"closed={[c.symbol for c in report.closed]} errors={list(report.errors)}"
            )
            return report
        finally:
            self._guard.release()

    def _isolate(self, report: ReconcileReport, symbol: str, func, *args) -> None:
        try:
            func(report, *args)
        except Exception as e:
            self.logger.exception(f"Reconcile error for {symbol}: {e}")
            report.errors[symbol] = str(e)

    def _check_pending(self, report: ReconcileReport, symbol: str, tickets: set) -> None:
        with self.store.lock(symbol):
            record = self.store.get_pending(symbol)
            if record is None or record.ticket not in tickets:
                return
            live = self.store.get_live(symbol)
            if live is not None and live.ticket != record.ticket:
                self.logger.warning(
                    f"{symbol}: pending #{record.ticket} filled but live #{live.ticket} is still tracked"
                )
                return
            self.logger.info(f"{symbol}: pending order #{record.ticket} filled")
            self.store.promote(symbol)
        report.promoted.append(symbol)
        self.notifier.broadcast(messages.pending_filled(symbol, record.ticket))

    def _check_live(self, report: ReconcileReport, symbol: str, tickets: set) -> None:
        with self.store.lock(symbol):
            record = self.store.get_live(symbol)
            if record is None or record.ticket in tickets:
                return

            self.logger.info(f"{symbol}: position #{record.ticket} no longer active")
            try:
                deal = self.archiver.find_closing_deal(record.ticket)
            except ReconciliationGapError as e:
                self.logger.warning(f"{symbol}: {e}; archiving as unknown")
                outcome = self.archiver.archive(record, CloseReason.UNKNOWN, None, fallback_profit=0.0)
                report.unknown.append(symbol)
                notice = messages.position_closed_unknown(symbol, record.ticket)
            else:
                reason = close_reason_from_code(deal.get("reason"))
                outcome = self.archiver.archive(record, reason, deal)
                notice = messages.position_closed(symbol, record.ticket, reason, outcome.profit or 0.0)

        report.closed.append(outcome)
        self.notifier.broadcast(notice)

    def run_forever(
        self,
        interval_seconds: float,
        stop_event: threading.Event,
        initial_delay: float = 0.0,
    ) -> None:
        """Run cycles every `interval_seconds` until `stop_event` is set."""
        self.logger.info(f"Monitoring loop started (every {interval_seconds:.0f}s)")
        if stop_event.wait(initial_delay):
            return
        while not stop_event.is_set():
            try:
                self.run_cycle()
            except Exception as e:
                self.logger.exception(f"Monitoring cycle crashed: {e}")
            if stop_event.wait(interval_seconds):
                break
        self.logger.info("Monitoring loop stopped")
