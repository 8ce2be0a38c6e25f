"""
Notice templates. Every gate rejection, fallback and reconciliation event
has its own message.
"""

from datetime import datetime, timedelta, timezone
from typing import Optional

WIB = timezone(timedelta(hours=7))


def _ts() -> str:
    utc = datetime.now(timezone.utc)
    return f"{utc.strftime('%d %b %Y %H:%M')} UTC / {utc.astimezone(WIB).strftime('%H:%M')} WIB"


def _money(value: Optional[float]) -> str:
    return "N/A" if value is None else f"{value:+.2f}"


# ── Gates ─────────────────────────────────────────────────────────────────────

def breaker_tripped(losses: int, limit: int) -> str:
    return (
        "🛑 <b>CIRCUIT BREAKER ACTIVE</b>\n"
        f"{losses} losing trades today (limit {limit}). New trading is halted until the next trading day."
    )


def outside_session(symbol: str, segment: str) -> str:
    return f"🌙 <b>{symbol}</b>: outside trading sessions ({segment}). Analysis skipped."


def hard_filter_rejected(symbol: str, reason: str, atr=None, rng=None, body=None) -> str:
    details = ""
    if atr is not None and rng is not None and body is not None:
        details = f"\nATR {atr:.2f} | Range {rng:.2f} | Body {body:.2f}"
    return f"🚫 <b>{symbol}</b>: hard filter rejected ({reason}).{details}"


# ── Decisions ─────────────────────────────────────────────────────────────────

def analysis_started(symbol: str) -> str:
    return f"⏳ <b>Analysis started for {symbol}</b>\n{_ts()}"


def order_opened(symbol: str, order_type: str, ticket: int, price: float, sl: float, tp: float) -> str:
    return (
        f"✅ <b>ACTION TAKEN</b> {symbol} {order_type}\n"
        f"Ticket: #{ticket}\n"
        f"Price: {price} | SL: {sl} | TP: {tp}"
    )


def order_untracked(symbol: str, ticket: int, error: str) -> str:
    return (
        f"🚨 <b>UNTRACKED ORDER</b> {symbol} (#{ticket}) was accepted by the broker but could not "
        f"be saved locally.\nDetail: {error}\nPlease check your terminal."
    )


def close_without_record(symbol: str) -> str:
    return (
        f"ℹ️ Analysis suggests closing <b>{symbol}</b>, but no open trade is recorded. "
        "It may already have been closed manually."
    )


def trade_closed_manually(symbol: str, ticket: int, action: str, profit: Optional[float]) -> str:
    return f"✅ {symbol} (#{ticket}) {action}.\nP/L: {_money(profit)}"


def already_closed(symbol: str, ticket: int) -> str:
    return f"ℹ️ {symbol} (#{ticket}) no longer exists at the broker; archived as closed."


def hold_notice(symbol: str, reason: str = "") -> str:
    suffix = f"\nReason: {reason}" if reason else ""
    return f"⏸ <b>HOLD</b> {symbol}: keeping the current position.{suffix}"


def no_trade_notice(symbol: str, reason: str = "") -> str:
    return f"🔵 <b>No trade suggested</b> for {symbol}\nReason: {reason or 'not specified'}"


def analysis_failed(symbol: str, error: str) -> str:
    return f"❌ Error while analysing <b>{symbol}</b>.\nDetail: {error}"


# ── Reconciliation ────────────────────────────────────────────────────────────

def pending_filled(symbol: str, ticket: int) -> str:
    return f"✅ <b>Order filled:</b> pending order {symbol} (#{ticket}) is now an open position."


def position_closed(symbol: str, ticket: int, reason: str, profit: float) -> str:
    icon = {"Take Profit": "✅", "Stop Loss": "🛑"}.get(reason, "ℹ️")
    return f"{icon} <b>{reason.upper()}</b>: {symbol} (#{ticket}) closed.\nP/L: {_money(profit)}"


def position_closed_unknown(symbol: str, ticket: int) -> str:
    return (
        f"⚠️ <b>MANUAL CHECK:</b> {symbol} (#{ticket}) was closed, but profit/loss details "
        "could not be retrieved. Please check your terminal."
    )
