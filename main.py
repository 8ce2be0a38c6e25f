"""
Main entry point for TradeGuard.
Trade lifecycle reconciliation and risk gating for a remote MT5 bridge.
"""

import argparse
import signal
import sys

from tradeguard.bot.trading_bot import TradingBot
from tradeguard.bot_logger import get_logger, setup_logger
from tradeguard.core.exceptions import ConfigError
from tradeguard.utils.config_loader import load_settings


def parse_arguments():
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description="TradeGuard - trade lifecycle reconciliation and risk gating"
    )

    parser.add_argument(
        "--config",
        type=str,
        default="settings",
        help="Configuration file name in config/ (without .yaml)",
    )

    parser.add_argument(
        "--log-level",
        type=str,
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default=None,
        help="Logging level (overrides settings.yaml)",
    )

    parser.add_argument(
        "--once",
        action="store_true",
        help="Run one reconcile cycle and one scheduled analysis, then exit",
    )

    return parser.parse_args()


def display_startup_banner(settings, logger):
    """Display startup banner."""
    logger.info("=" * 80)
    logger.info("TRADEGUARD")
    logger.info("Trade lifecycle reconciliation & risk gating")
    logger.info("=" * 80)
    logger.info(f"Symbols: {', '.join(settings.supported_symbols) or '(none)'}")
    logger.info(f"Sessions ({settings.timezone}): {settings.trading_sessions}")
    logger.info(
        f"Hard filter: range >= {settings.range_multiplier}x ATR({settings.atr_period}), "
        f"body >= {settings.body_ratio:.0%} of range, swing lookback {settings.swing_lookback}"
    )
    logger.info(f"Circuit breaker: {settings.max_losses_per_day} losses per trading day")
    logger.info(
        f"Monitoring every {settings.monitoring_interval_minutes:g} min | "
        f"analysis every {settings.analysis_interval_minutes:g} min"
    )
    logger.info(f"State directory: {settings.state_dir}")
    logger.info("=" * 80)


def main():
    """Main entry point."""
    args = parse_arguments()

    setup_logger(args.log_level)
    logger = get_logger()

    bot = None

    def handle_sigterm(signum, frame):
        logger.info("SIGTERM received - shutting down (positions kept open)")
        if bot:
            bot.stop()
        sys.exit(0)

    signal.signal(signal.SIGTERM, handle_sigterm)

    try:
        settings = load_settings(args.config)
    except ConfigError as e:
        logger.critical(f"Invalid configuration: {e}")
        sys.exit(2)

    display_startup_banner(settings, logger)

    try:
        bot = TradingBot(settings)
        if args.once:
            report = bot.reconciler.run_cycle()
            logger.info(f"Reconcile: {report}")
            bot.run_scheduled_analysis()
            return
        bot.start()
    except KeyboardInterrupt:
        logger.info("Stopped by user (Ctrl+C) - positions kept open")
        if bot:
            bot.stop()
        sys.exit(0)
    except Exception as e:
        logger.exception(f"Fatal error: {e}")
        if bot:
            bot.stop()
        sys.exit(1)


if __name__ == "__main__":
    main()
