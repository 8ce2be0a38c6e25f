"""TradeGuard: trade lifecycle reconciliation and risk gating."""

__version__ = "1.0.0"
