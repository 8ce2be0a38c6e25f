"""
Decision Provider
Source of the narrative analysis and the structured decision for a symbol.
The bundled provider pipes a compact prompt to an external CLI command and
reads its answer from stdout.
"""

import os
import subprocess
from typing import Any, Dict, Optional, Tuple

from ..bot_logger import get_logger
from ..core.exceptions import DecisionPayloadError
from ..position_management.trade_store import TradeRecord

_NEW_TRADE_PROMPT = """\
{symbol} TRADE ANALYSIS. No open trade is recorded for this symbol.
Session: {segment} | Hard filter: range/ATR {ratio}

Write a short analysis, then end with ONLY a JSON object:
{{"decision": "OPEN" | "NO_TRADE", "symbol": "{symbol}",
  "order_type": "MARKET_BUY|MARKET_SELL|BUY_LIMIT|SELL_LIMIT|BUY_STOP|SELL_STOP",
  "price": 0, "sl": 0, "tp": 0, "reason": "..."}}
"""

_MANAGE_PROMPT = """\
{symbol} POSITION REVIEW. Recorded trade: {status} {order_type} #{ticket}
Entry {price} | SL {sl} | TP {tp}

Initial analysis:
{initial_analysis}

Write a short review, then end with ONLY a JSON object:
{{"decision": "HOLD" | "CLOSE_MANUAL", "symbol": "{symbol}", "reason": "..."}}
"""


class DecisionProvider:
    """Interface: analyze a symbol and return (narrative, payload_text)."""

    def analyze(
        self,
        symbol: str,
        active_trade: Optional[TradeRecord] = None,
        initial_analysis: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ) -> Tuple[str, str]:
        raise NotImplementedError


def build_prompt(
    symbol: str,
    active_trade: Optional[TradeRecord],
    initial_analysis: Optional[str],
    context: Optional[Dict[str, Any]] = None,
) -> str:
    context = context or {}
    if active_trade is None:
        ratio = context.get("wick_atr_ratio")
        return _NEW_TRADE_PROMPT.format(
            symbol=symbol,
            segment=context.get("segment", "UNKNOWN"),
            ratio=f"{ratio:.2f}" if isinstance(ratio, (int, float)) else "n/a",
        )
    return _MANAGE_PROMPT.format(
        symbol=symbol,
        status=active_trade.status.value,
        order_type=active_trade.order_type.value,
        ticket=active_trade.ticket,
        price=active_trade.price,
        sl=active_trade.sl,
        tp=active_trade.tp,
        initial_analysis=initial_analysis or "not available",
    )


class CommandDecisionProvider(DecisionProvider):
    """Run a CLI command with the prompt on stdin."""

    def __init__(self, command: str, timeout_sec: int = 120):
        self.logger = get_logger()
        self.command = command
        self.timeout_sec = timeout_sec

    def analyze(
        self,
        symbol: str,
        active_trade: Optional[TradeRecord] = None,
        initial_analysis: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ) -> Tuple[str, str]:
        """
        Raises:
            DecisionPayloadError: If the command is missing, times out or prints nothing
        """
        if not self.command:
            raise DecisionPayloadError("No decision command configured")

        prompt = build_prompt(symbol, active_trade, initial_analysis, context)
        self.logger.debug(f"Decision prompt for {symbol} ({len(prompt)}c)")

        try:
            result = subprocess.run(
                self.command,
                shell=True,
                input=prompt,
                capture_output=True,
                text=True,
                timeout=self.timeout_sec,
                encoding="utf-8",
                errors="replace",
                env=os.environ.copy(),
            )
        except subprocess.TimeoutExpired:
            raise DecisionPayloadError(f"Decision command timed out after {self.timeout_sec}s")
        except OSError as e:
            raise DecisionPayloadError(f"Decision command failed to start: {e}")

        stdout = (result.stdout or "").strip()
        if result.returncode != 0 or not stdout:
            raise DecisionPayloadError(
                f"Decision command returned {result.returncode} with "
                f"{len(stdout)}c output. stderr: {(result.stderr or '')[:200]}"
            )

        self.logger.debug(f"Decision raw response ({len(stdout)}c): {stdout[:500]}")
        return stdout, stdout
