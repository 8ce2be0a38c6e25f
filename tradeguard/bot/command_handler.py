"""
Command Handler
Maps chat text commands to bot actions and returns the reply text.
The chat transport itself lives outside this package.
"""

from typing import Callable, Dict, Optional

from ..bot_logger import get_logger
from ..core.exceptions import TradeGuardError


class CommandHandler:
    """Text command dispatcher for a TradingBot."""

    def __init__(self, bot):
        self.logger = get_logger()
        self.bot = bot
        self._commands: Dict[str, Callable[[str], str]] = {
            "menu": self._menu,
            "help": self._menu,
            "status": self._status,
            "cls": self._close,
            "pause": self._pause,
            "resume": self._resume,
            "profit_today": self._profit_today,
            "list_recipients": self._list_recipients,
            "add_recipient": self._add_recipient,
            "del_recipient": self._del_recipient,
        }

    def handle(self, text: str) -> Optional[str]:
        """
        Handle one incoming message.

        Returns:
            Reply text, or None when the message is not a command
        """
        text = (text or "").strip()
        if not text.startswith("/"):
            return None

        name, _, args = text[1:].partition(" ")
        name = name.lower()
        args = args.strip()
        self.logger.info(f"Command received: /{name} {args}".rstrip())

        handler = self._commands.get(name)
        try:
            if handler is not None:
                return handler(args)
            if name.upper() in self.bot.settings.supported_symbols:
                return self._analyze(name.upper())
        except TradeGuardError as e:
            self.logger.error(f"/{name} failed: {e}")
            return f"❌ /{name} failed.\nError: {e}"

        return f"Unknown command /{name}. Send /menu for the list of commands."

    # ── Handlers ──────────────────────────────────────────────────────────────

    def _menu(self, args: str) -> str:
        pairs = ", ".join(f"/{s.lower()}" for s in self.bot.settings.supported_symbols) or "(none configured)"
        return "\n".join([
            "🤖 <b>TRADEGUARD MENU</b>",
            "",
            "<b>Analysis</b>",
            f"  {pairs} : analyse a pair",
            "",
            "<b>Management & reports</b>",
            "  /status : bot status",
            "  /cls PAIR : close or cancel a trade",
            "  /profit_today : realized P/L today",
            "",
            "<b>Control</b>",
            "  /pause : stop scheduled analysis",
            "  /resume : restart scheduled analysis",
            "",
            "<b>Notifications</b>",
            "  /list_recipients",
            "  /add_recipient ID",
            "  /del_recipient ID",
        ])

    def _status(self, args: str) -> str:
        return self.bot.status_report()

    def _close(self, args: str) -> str:
        if not args:
            return "Wrong format. Example: /cls XAUUSD"
        symbol = args.split()[0].upper()
        effect = self.bot.engine.close_symbol(symbol, reason="closed by user command")
        if effect.action == "no_record":
            return f"❌ No pending or open trade recorded for {symbol}."
        return f"✅ {symbol} (#{effect.ticket}) {effect.action.replace('_', ' ')}."

    def _pause(self, args: str) -> str:
        self.bot.bot_state.pause()
        return "⏸ Bot paused. Scheduled analysis is stopped."

    def _resume(self, args: str) -> str:
        self.bot.bot_state.resume()
        return "▶️ Bot resumed. Scheduled analysis is active again."

    def _profit_today(self, args: str) -> str:
        return self.bot.profit_today_report()

    def _list_recipients(self, args: str) -> str:
        recipients = self.bot.recipients.list()
        if not recipients:
            return "The notification recipient list is empty."
        return "📋 <b>Notification recipients:</b>\n" + "\n".join(
            f"{i}. {r}" for i, r in enumerate(recipients, 1)
        )

    def _add_recipient(self, args: str) -> str:
        if not args:
            return "Wrong format. Use: /add_recipient ID"
        recipient = args.split()[0]
        if not self.bot.recipients.add(recipient):
            return f"⚠️ {recipient} is already in the list."
        return f"✅ Added {recipient} to the recipient list."

    def _del_recipient(self, args: str) -> str:
        if not args:
            return "Wrong format. Use: /del_recipient ID"
        recipient = args.split()[0]
        if not self.bot.recipients.remove(recipient):
            return f"⚠️ {recipient} is not in the list."
        return f"🗑 Removed {recipient} from the recipient list."

    def _analyze(self, symbol: str) -> str:
        outcome = self.bot.analyze_symbol(symbol)
        if outcome.error:
            return f"❌ Analysis for {symbol} failed: {outcome.error}"
        if not outcome.gate.allowed:
            return f"🚫 Analysis for {symbol} blocked by {outcome.gate.gate} ({outcome.gate.reason})."
        action = outcome.effect.action if outcome.effect else "none"
        return f"✅ Analysis for {symbol} finished: {action.replace('_', ' ')}."
