"""
Decision Engine
Applies a validated decision (OPEN / CLOSE_MANUAL / HOLD / NO_TRADE) to the
broker and the local trade records.
"""

from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional, Union

from ..analysis.decision_parser import DecisionPayload
from ..bot_logger import get_logger
from ..core.broker_client import extract_ticket
from ..core.constants import CloseReason, DecisionType
from ..core.exceptions import (
    BrokerRequestError,
    BrokerResponseError,
    ReconciliationGapError,
    StateConflictError,
)
from ..notifications import messages
from ..position_management.trade_archiver import ArchiveOutcome, TradeArchiver
from ..position_management.trade_journal import JournalStore
from ..position_management.trade_store import TradeRecord, TradeRecordStore


@dataclass
class DecisionEffect:
    """What apply_decision did."""
    decision: DecisionType
    symbol: str
    action: str
    ticket: Optional[int] = None
    record: Optional[TradeRecord] = None
    archive: Optional[ArchiveOutcome] = None
    broker_called: bool = False


class DecisionEngine:
    """Turn decisions into broker calls and store mutations."""

    def __init__(
        self,
        broker,
        store: TradeRecordStore,
        journal: JournalStore,
        archiver: TradeArchiver,
        notifier,
        trade_volume: float = 0.01,
        order_comment: str = "TradeGuard",
    ):
        self.logger = get_logger()
        self.broker = broker
        self.store = store
        self.journal = journal
        self.archiver = archiver
        self.notifier = notifier
        self.trade_volume = trade_volume
        self.order_comment = order_comment

    def apply_decision(
        self,
        decision: Union[DecisionPayload, Mapping[str, Any]],
        narrative: str = "",
        active_trade: Optional[TradeRecord] = None,
        meta: Optional[Dict[str, Any]] = None,
    ) -> DecisionEffect:
        """
        Apply a decision.

        Args:
            decision: DecisionPayload or an untrusted mapping
            narrative: Analysis text journaled on OPEN
            active_trade: Record the analysis was run against, if any
            meta: Extra context stored with a new record

        Raises:
            DecisionPayloadError: If a mapping fails validation
            StateConflictError: OPEN while the symbol already has a record
            BrokerRequestError / BrokerResponseError: Broker failures
        """
        if not isinstance(decision, DecisionPayload):
            default_symbol = active_trade.symbol if active_trade else None
            decision = DecisionPayload.from_mapping(decision, default_symbol)

        self.logger.info(f"Applying decision {decision.decision.value} for {decision.symbol}")

        if decision.decision == DecisionType.OPEN:
            return self._open(decision, narrative, meta or {})
        if decision.decision == DecisionType.CLOSE_MANUAL:
            return self._close(decision, active_trade)
        if decision.decision == DecisionType.HOLD:
            self.notifier.broadcast(messages.hold_notice(decision.symbol, decision.reason))
            return DecisionEffect(decision.decision, decision.symbol, "hold")

        self.logger.info(f"{decision.symbol}: no trade ({decision.reason or 'no reason given'})")
        self.notifier.broadcast(messages.no_trade_notice(decision.symbol, decision.reason))
        return DecisionEffect(decision.decision, decision.symbol, "no_trade")

    # ── OPEN ──────────────────────────────────────────────────────────────────

    def _open(self, decision: DecisionPayload, narrative: str, meta: Dict[str, Any]) -> DecisionEffect:
        symbol = decision.symbol
        with self.store.lock(symbol):
            existing = self.store.get(symbol)
            if existing is not None:
                raise StateConflictError(
                    f"{symbol} already has {existing.status.value} #{existing.ticket}; refusing to open another"
                )

            payload = {
                "symbol": symbol,
                "type": decision.order_type.value,
                "price": decision.price or 0,
                "sl": decision.sl,
                "tp": decision.tp,
                "volume": self.trade_volume,
                "comment": f"{self.order_comment} | {symbol}",
            }
            result = self.broker.open_order(payload)
            ticket = extract_ticket(result)
            if not ticket:
                raise BrokerResponseError(f"Order for {symbol} executed but no ticket in result: {result!r}")

            record = TradeRecord(
                ticket=ticket,
                symbol=symbol,
                order_type=decision.order_type,
                price=decision.price or 0.0,
                sl=decision.sl,
                tp=decision.tp,
                volume=self.trade_volume,
                comment=payload["comment"],
                meta=dict(meta),
            )
            try:
                self.store.put(record)
                self.journal.add(symbol, ticket, narrative)
            except Exception as e:
                self.logger.bind(trade=True).error(
                    f"OPEN {symbol} #{ticket} accepted by broker but not persisted: {e}"
                )
                self.notifier.broadcast(messages.order_untracked(symbol, ticket, str(e)))
                raise

        self.logger.bind(trade=True).info(
            f"OPEN {symbol} {record.order_type.value} #{ticket} ({record.status.value})"
        )
        self.notifier.broadcast(messages.order_opened(
            symbol, record.order_type.value, ticket, record.price, record.sl, record.tp
        ))
        return DecisionEffect(DecisionType.OPEN, symbol, "opened", ticket, record, broker_called=True)

    # ── CLOSE_MANUAL ──────────────────────────────────────────────────────────

    def _close(self, decision: DecisionPayload, active_trade: Optional[TradeRecord]) -> DecisionEffect:
        symbol = active_trade.symbol if active_trade else decision.symbol
        with self.store.lock(symbol):
            record = self.store.get(symbol)
            if record is None:
                self.logger.warning(f"{symbol}: close requested but no trade is recorded")
                self.notifier.broadcast(messages.close_without_record(symbol))
                return DecisionEffect(DecisionType.CLOSE_MANUAL, symbol, "no_record")

            action = self._close_at_broker(record)

            try:
                deal = self.archiver.find_closing_deal(record.ticket)
            except (ReconciliationGapError, BrokerRequestError) as e:
                self.logger.warning(f"{symbol}: closing deal for #{record.ticket} unavailable: {e}")
                deal = None

            if action == "already_closed":
                reason = CloseReason.NOT_FOUND
            else:
                reason = f"{CloseReason.MANUAL} ({decision.reason or 'No reason specified'})"
            outcome = self.archiver.archive(record, reason, deal)

        if action == "already_closed":
            self.notifier.broadcast(messages.already_closed(symbol, record.ticket))
        else:
            self.notifier.broadcast(messages.trade_closed_manually(symbol, record.ticket, action, outcome.profit))
        return DecisionEffect(
            DecisionType.CLOSE_MANUAL, symbol, action, record.ticket, record, outcome, broker_called=True
        )

    def _close_at_broker(self, record: TradeRecord) -> str:
        """Cancel or close at the broker. Returns the action taken."""
        ticket = record.ticket
        try:
            if record.is_pending:
                try:
                    self.broker.cancel_pending_order(ticket)
                    return "cancelled"
                except BrokerRequestError as e:
                    if not e.is_invalid_request:
                        raise
                    self.logger.warning(f"Cancel of pending #{ticket} rejected, closing as live position")
                    self.broker.close_position(ticket)
                    return "closed (fallback)"
            self.broker.close_position(ticket)
            return "closed"
        except BrokerRequestError as e:
            if e.is_not_found:
                self.logger.info(f"#{ticket} not found at broker, treating as already closed")
                return "already_closed"
            raise

    def close_symbol(self, symbol: str, reason: str = "manual command") -> DecisionEffect:
        """Close or cancel whatever is recorded for a symbol."""
        payload = DecisionPayload(decision=DecisionType.CLOSE_MANUAL, symbol=symbol.upper(), reason=reason)
        return self.apply_decision(payload)
