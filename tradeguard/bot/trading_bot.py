"""
Trading Bot
Wires the gates, stores, reconciler and decision engine together and runs the
monitoring and scheduled-analysis loops on daemon threads.
"""

import threading
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional

from ..analysis.decision_parser import parse_decision_text
from ..analysis.hard_filter import HardFilter, HardFilterResult
from ..bot_logger import get_logger
from ..core.broker_client import BrokerClient
from ..core.candle_source import CandleSource
from ..core.exceptions import TradeGuardError
from ..execution.decision_engine import DecisionEffect, DecisionEngine
from ..notifications import messages
from ..notifications.notifier import RecipientStore, TelegramNotifier
from ..position_management.reconciler import Reconciler
from ..position_management.trade_archiver import TradeArchiver
from ..position_management.trade_journal import JournalStore, TradeLedger
from ..position_management.trade_store import SymbolLockRegistry, TradeRecordStore
from ..risk_management.circuit_breaker import CircuitBreaker
from ..sessions.session_gate import SessionGate
from ..utils.config_loader import BotSettings
from .bot_state import BotState
from .decision_provider import CommandDecisionProvider, DecisionProvider


@dataclass
class GateResult:
    """A gate's verdict on whether an analysis cycle may run."""
    allowed: bool
    gate: str = ""
    reason: str = ""
    detail: Optional[Dict[str, Any]] = None


@dataclass
class AnalysisOutcome:
    symbol: str
    gate: GateResult
    effect: Optional[DecisionEffect] = None
    error: Optional[str] = None


class TradingBot:
    """Process-level orchestrator."""

    def __init__(
        self,
        settings: BotSettings,
        broker=None,
        candle_source=None,
        notifier=None,
        provider: Optional[DecisionProvider] = None,
    ):
        """
        Initialize the bot.

        Args:
            settings: Resolved settings
            broker: Broker client (built from settings if omitted)
            candle_source: OHLCV source (built from settings if omitted)
            notifier: Notification sink (Telegram if omitted)
            provider: Decision provider (CLI command if omitted)
        """
        self.logger = get_logger()
        self.settings = settings
        state_dir = Path(settings.state_dir)

        self.broker = broker or BrokerClient(
            settings.broker_base_url,
            settings.broker_api_key,
            timeout=settings.broker_timeout,
            timezone=settings.timezone,
        )
        self.candle_source = candle_source or CandleSource(
            settings.candles_base_url or "https://api.mt5.flx.web.id",
            timeout=settings.candles_timeout,
        )
        self.recipients = RecipientStore(state_dir)
        self.notifier = notifier or TelegramNotifier(
            settings.telegram_token, self.recipients, enabled=settings.telegram_enabled
        )
        self.provider = provider or CommandDecisionProvider(
            settings.decision_command, settings.decision_timeout
        )

        self.locks = SymbolLockRegistry()
        self.store = TradeRecordStore(state_dir, self.locks)
        self.journal = JournalStore(state_dir)
        self.ledger = TradeLedger(state_dir, settings.timezone)
        self.bot_state = BotState(state_dir)
        self.circuit_breaker = CircuitBreaker(
            state_dir, settings.max_losses_per_day, settings.timezone
        )
        self.session_gate = SessionGate(settings.trading_sessions, settings.timezone)
        self.hard_filter = HardFilter(
            self.candle_source,
            swing_lookback=settings.swing_lookback,
            range_multiplier=settings.range_multiplier,
            body_ratio=settings.body_ratio,
            atr_period=settings.atr_period,
        )
        self.archiver = TradeArchiver(
            self.broker, self.store, self.journal, self.ledger, self.circuit_breaker,
            deal_lookback_hours=settings.deal_lookback_hours,
        )
        self.engine = DecisionEngine(
            self.broker, self.store, self.journal, self.archiver, self.notifier,
            trade_volume=settings.trade_volume,
            order_comment=settings.order_comment,
        )
        self.reconciler = Reconciler(
            self.broker, self.store, self.archiver, self.notifier,
            deal_lookback_hours=settings.deal_lookback_hours,
        )

        self._stop_event = threading.Event()
        self._threads: List[threading.Thread] = []
        self.running = False

    # ── Gates ─────────────────────────────────────────────────────────────────

    def check_gates(self, symbol: str, has_active_trade: bool) -> GateResult:
        """Circuit breaker, then session window, then (new trades only) hard filter."""
        if self.circuit_breaker.is_tripped():
            stats = self.circuit_breaker.get_stats()
            self.notifier.broadcast(messages.breaker_tripped(stats["losses_today"], stats["max_losses_per_day"]))
            return GateResult(False, "circuit_breaker", "tripped", stats)

        segment = self.session_gate.classify_segment()
        if not self.session_gate.is_within_session():
            self.logger.info(f"{symbol}: outside trading sessions ({segment})")
            self.notifier.broadcast(messages.outside_session(symbol, segment))
            return GateResult(False, "session", "outside_session", {"segment": segment})

        if has_active_trade:
            return GateResult(True, detail={"segment": segment})

        result: HardFilterResult = self.hard_filter.passes_hard_filter(
            symbol, allow_lower_timeframe_fallback=self.settings.allow_m1_fallback
        )
        detail = {"segment": segment, "hard_filter": result.to_dict()}
        if not result.passed:
            self.notifier.broadcast(messages.hard_filter_rejected(
                symbol, result.reason, result.atr, result.range, result.body
            ))
            return GateResult(False, "hard_filter", result.reason, detail)
        return GateResult(True, detail=detail)

    # ── Analysis cycle ────────────────────────────────────────────────────────

    def analyze_symbol(self, symbol: str) -> AnalysisOutcome:
        """Run one gated analysis and apply the resulting decision."""
        symbol = symbol.upper()
        self.logger.info(f"===== ANALYSIS CYCLE {symbol} =====")
        try:
            active_trade = self.store.get(symbol)
            gate = self.check_gates(symbol, active_trade is not None)
            if not gate.allowed:
                self.logger.info(f"{symbol}: gate {gate.gate} rejected ({gate.reason})")
                return AnalysisOutcome(symbol, gate)

            self.notifier.broadcast(messages.analysis_started(symbol))
            initial_analysis = None
            if active_trade is not None:
                initial_analysis = self.journal.get(symbol, active_trade.ticket)

            context = dict(gate.detail or {})
            hf = context.get("hard_filter") or {}
            context["wick_atr_ratio"] = hf.get("wick_atr_ratio")
            narrative, payload_text = self.provider.analyze(symbol, active_trade, initial_analysis, context)
            if narrative:
                self.notifier.broadcast(narrative)

            payload = parse_decision_text(payload_text, default_symbol=symbol)
            meta = {"segment": context.get("segment")}
            if hf:
                meta["hard_filter"] = hf
            effect = self.engine.apply_decision(payload, narrative, active_trade, meta)
            return AnalysisOutcome(symbol, gate, effect)

        except TradeGuardError as e:
            self.logger.error(f"{symbol}: analysis failed: {e}")
            self.notifier.broadcast(messages.analysis_failed(symbol, str(e)))
            return AnalysisOutcome(symbol, GateResult(True), error=str(e))
        except Exception as e:
            self.logger.exception(f"{symbol}: unexpected analysis error: {e}")
            self.notifier.broadcast(messages.analysis_failed(symbol, f"{type(e).__name__}: {e}"))
            return AnalysisOutcome(symbol, GateResult(True), error=f"{type(e).__name__}: {e}")
        finally:
            self.logger.info(f"===== ANALYSIS CYCLE {symbol} DONE =====")

    def run_scheduled_analysis(self) -> List[AnalysisOutcome]:
        """Analyse every supported symbol unless the bot is paused."""
        if self.bot_state.is_paused:
            self.logger.info("Scheduled analysis skipped: bot is paused")
            return []
        outcomes = []
        for i, symbol in enumerate(self.settings.supported_symbols):
            if self._stop_event.is_set():
                break
            if i:
                self._stop_event.wait(self.settings.analysis_symbol_delay_seconds)
            outcomes.append(self.analyze_symbol(symbol))
        return outcomes

    # ── Reports ───────────────────────────────────────────────────────────────

    def status_report(self) -> str:
        lines = ["📊 <b>BOT STATUS</b>"]
        for symbol in self.settings.supported_symbols:
            try:
                record = self.store.get(symbol)
            except TradeGuardError as e:
                lines.append(f"• {symbol}: ERROR ({e})")
                continue
            if record is None:
                lines.append(f"• {symbol}: NONE")
            else:
                lines.append(
                    f"• {symbol}: {record.status.value} {record.order_type.value} #{record.ticket}"
                )
        stats = self.circuit_breaker.get_stats()
        state = self.circuit_breaker.state().value
        lines.append(
            f"Circuit breaker: {state} ({stats['losses_today']}/{stats['max_losses_per_day']} losses, "
            f"{stats['wins_today']} wins today)"
        )
        lines.append(f"Scheduled analysis: {'PAUSED' if self.bot_state.is_paused else 'ACTIVE'}")
        lines.append(f"In session: {'yes' if self.session_gate.is_within_session() else 'no'} "
                     f"({self.session_gate.classify_segment()})")
        return "\n".join(lines)

    def profit_today_report(self) -> str:
        profit = self.broker.get_todays_realized_profit()
        icon = "🏆" if profit > 0 else ("❌" if profit < 0 else "⚖️")
        return f"{icon} <b>Realized P/L today:</b> {profit:+.2f}"

    # ── Loops ─────────────────────────────────────────────────────────────────

    def _analysis_loop(self) -> None:
        interval = self.settings.analysis_interval_minutes * 60
        self.logger.info(f"Analysis loop started (every {interval:.0f}s)")
        while not self._stop_event.wait(interval):
            try:
                self.run_scheduled_analysis()
            except Exception as e:
                self.logger.exception(f"Scheduled analysis crashed: {e}")
        self.logger.info("Analysis loop stopped")

    def start(self, block: bool = True) -> None:
        """Start the monitoring and analysis threads."""
        self.logger.info("=" * 60)
        self.logger.info("STARTING TRADEGUARD")
        self.logger.info("=" * 60)
        self.running = True
        self._stop_event.clear()

        monitor = threading.Thread(
            target=self.reconciler.run_forever,
            args=(self.settings.monitoring_interval_minutes * 60, self._stop_event),
            kwargs={"initial_delay": self.settings.monitoring_initial_delay_seconds},
            name="monitoring",
            daemon=True,
        )
        analysis = threading.Thread(target=self._analysis_loop, name="analysis", daemon=True)
        self._threads = [monitor, analysis]
        for t in self._threads:
            t.start()

        if block:
            try:
                while self.running and not self._stop_event.is_set():
                    time.sleep(1)
            except KeyboardInterrupt:
                self.logger.info("Keyboard interrupt received")
                self.stop()

    def stop(self) -> None:
        """Signal both loops to stop. Open positions are left untouched."""
        if not self.running:
            return
        self.logger.info("STOPPING TRADEGUARD")
        self.running = False
        self._stop_event.set()
        for t in self._threads:
            if t is not threading.current_thread():
                t.join(timeout=5)
        self.logger.info("TradeGuard stopped")
