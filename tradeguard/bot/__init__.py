"""Bot orchestration: state, decision providers, commands and main loops."""

from .bot_state import BotState
from .decision_provider import DecisionProvider, CommandDecisionProvider
from .trading_bot import TradingBot, GateResult, AnalysisOutcome
from .command_handler import CommandHandler

__all__ = [
    "BotState",
    "DecisionProvider",
    "CommandDecisionProvider",
    "TradingBot",
    "GateResult",
    "AnalysisOutcome",
    "CommandHandler",
]
