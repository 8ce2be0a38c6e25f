"""
Trade Archiver
Shared completion path for closed trades, used by both the reconciler and
manual closes: ledger row, record and journal cleanup, breaker feed.
"""

from dataclasses import dataclass
from typing import Any, Dict, Optional

from ..bot_logger import get_logger
from ..core.exceptions import ReconciliationGapError
from .trade_journal import MISSING_ANALYSIS, JournalStore, TradeLedger
from .trade_store import TradeRecord, TradeRecordStore


@dataclass
class ArchiveOutcome:
    ticket: int
    symbol: str
    close_reason: str
    profit: Optional[float]
    reported_to_breaker: bool


class TradeArchiver:
    """Archive closed trades exactly once."""

    def __init__(
        self,
        broker,
        store: TradeRecordStore,
        journal: JournalStore,
        ledger: TradeLedger,
        circuit_breaker,
        deal_lookback_hours: int = 48,
    ):
        self.logger = get_logger()
        self.broker = broker
        self.store = store
        self.journal = journal
        self.ledger = ledger
        self.circuit_breaker = circuit_breaker
        self.deal_lookback_hours = deal_lookback_hours

    def find_closing_deal(self, ticket: int) -> Dict[str, Any]:
        """
        Fetch the closing deal of a ticket.

        Raises:
            ReconciliationGapError: If the broker history has no exit deal
            BrokerRequestError: If the history request itself failed
        """
        deal = self.broker.get_closing_deal_info(ticket, lookback_hours=self.deal_lookback_hours)
        if not deal:
            raise ReconciliationGapError(
                f"No closing deal for #{ticket} in the last {self.deal_lookback_hours}h"
            )
        return deal

    def archive(
        self,
        record: TradeRecord,
        close_reason: str,
        deal: Optional[Dict[str, Any]] = None,
        fallback_profit: Optional[float] = None,
    ) -> ArchiveOutcome:
        """
        Write the ledger row, then delete the record and its journal entry.

        The breaker is fed only when a closing deal supplies the profit.

        Args:
            record: The record being closed
            close_reason: Reason written to the ledger
            deal: Closing deal from the broker, if found
            fallback_profit: Profit written when there is no deal (None -> "N/A")
        """
        with self.store.lock(record.symbol):
            analysis = self.journal.get(record.symbol, record.ticket) or MISSING_ANALYSIS

            profit = None
            if deal and deal.get("profit") is not None:
                try:
                    profit = float(deal["profit"])
                except (TypeError, ValueError):
                    self.logger.warning(f"#{record.ticket}: unusable deal profit {deal['profit']!r}")
            ledger_profit = profit if profit is not None else fallback_profit

            self.ledger.append({
                "ticket": record.ticket,
                "symbol": record.symbol,
                "type": record.order_type.value,
                "entry_price": record.price or "N/A",
                "sl": record.sl,
                "tp": record.tp,
                "volume": record.volume,
                "close_reason": close_reason,
                "profit": "N/A" if ledger_profit is None else f"{ledger_profit:.2f}",
                "initial_analysis": analysis,
            })

            self.store.remove(record.symbol)
            self.journal.remove(record.symbol, record.ticket)

        reported = False
        if profit is not None:
            self.circuit_breaker.record_outcome(profit)
            reported = True

        self.logger.bind(trade=True).info(
            f"Archived {record.symbol} #{record.ticket}: {close_reason} "
            f"profit={'N/A' if ledger_profit is None else f'{ledger_profit:.2f}'}"
        )
        return ArchiveOutcome(
            ticket=record.ticket,
            symbol=record.symbol,
            close_reason=close_reason,
            profit=ledger_profit,
            reported_to_breaker=reported,
        )
