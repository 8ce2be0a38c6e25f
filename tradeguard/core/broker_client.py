"""
Broker API Client
HTTP JSON client for the remote MT5 bridge (orders, positions, deal history).
"""

from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

import pytz
import requests

from ..bot_logger import get_logger
from .constants import DEAL_ENTRY_OUT
from .exceptions import BrokerRequestError, BrokerResponseError


class BrokerClient:
    """Thin wrapper around the broker bridge REST endpoints."""

    def __init__(
        self,
        base_url: str,
        api_key: str,
        timeout: float = 15.0,
        timezone: str = "Asia/Jakarta",
        session: Optional[requests.Session] = None,
    ):
        """
        Initialize broker client.

        Args:
            base_url: Bridge base URL
            api_key: Value sent in the X-API-Key header
            timeout: Per-request timeout in seconds
            timezone: Trading timezone (defines "today" for profit reports)
            session: Optional pre-built requests session
        """
        self.logger = get_logger()
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.tz = pytz.timezone(timezone)
        self.session = session or requests.Session()
        self.session.headers.update({
            "X-API-Key": api_key,
            "Content-Type": "application/json",
        })

    # ── Transport ─────────────────────────────────────────────────────────────

    def _request(self, method: str, path: str, **kwargs) -> Any:
        url = f"{self.base_url}{path}"
        try:
            response = self.session.request(method, url, timeout=self.timeout, **kwargs)
        except requests.RequestException as e:
            raise BrokerRequestError(f"{method} {path} failed: {e}") from e

        try:
            body = response.json()
        except ValueError:
            body = response.text

        if not response.ok:
            raise BrokerRequestError(
                f"{method} {path} returned HTTP {response.status_code}",
                status_code=response.status_code,
                payload=body,
            )
        return body

    def _mutate(self, path: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        """POST to a mutating endpoint and unwrap its {message, result} envelope."""
        body = self._request("POST", path, json=payload)
        if not isinstance(body, dict) or not body.get("message") or not body.get("result"):
            raise BrokerResponseError(f"Unexpected response from {path}: {body!r}")
        self.logger.info(f"Broker {path}: {body['message']}")
        return body["result"]

    # ── Orders / positions ────────────────────────────────────────────────────

    def open_order(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        """Open a market position or place a pending order."""
        self.logger.info(f"Sending order: {payload}")
        return self._mutate("/order", payload)

    def cancel_pending_order(self, ticket: int) -> Dict[str, Any]:
        self.logger.info(f"Cancelling pending order #{ticket}")
        return self._mutate("/order/cancel", {"ticket": ticket})

    def close_position(self, ticket: int) -> Dict[str, Any]:
        self.logger.info(f"Closing position #{ticket}")
        return self._mutate("/position/close_by_ticket", {"ticket": ticket})

    def modify_position(self, ticket: int, sl: float = 0.0, tp: float = 0.0) -> Dict[str, Any]:
        self.logger.info(f"Modifying position #{ticket}: sl={sl} tp={tp}")
        return self._mutate("/modify_sl_tp", {"position": ticket, "sl": sl, "tp": tp})

    def get_active_positions(self) -> List[Dict[str, Any]]:
        """
        Fetch every active position and pending order.

        Raises:
            BrokerRequestError: If the bridge is unreachable
            BrokerResponseError: If the body is not a list
        """
        body = self._request("GET", "/get_positions")
        if not isinstance(body, list):
            raise BrokerResponseError(f"/get_positions did not return a list: {body!r}")
        return body

    # ── Deal history ──────────────────────────────────────────────────────────

    def get_history_deals(self, from_date: datetime, to_date: datetime) -> List[Dict[str, Any]]:
        params = {"from_date": from_date.isoformat(), "to_date": to_date.isoformat()}
        body = self._request("GET", "/history_deals_get", params=params)
        if body is None:
            return []
        if not isinstance(body, list):
            raise BrokerResponseError(f"/history_deals_get did not return a list: {body!r}")
        return body

    def get_closing_deal_info(self, ticket: int, lookback_hours: int = 48) -> Optional[Dict[str, Any]]:
        """
        Look up the closing deal of a position.

        The closing deal is the one with position_id == ticket and an exit entry
        flag. Returns None if no such deal exists in the lookback window.
        """
        now = datetime.now(pytz.utc)
        deals = self.get_history_deals(now - timedelta(hours=lookback_hours), now)
        if not deals:
            self.logger.info(f"deal_close({ticket}): no deals in last {lookback_hours}h")
            return None

        for deal in deals:
            if _same_ticket(deal.get("position_id"), ticket) and deal.get("entry") == DEAL_ENTRY_OUT:
                self.logger.info(
                    f"deal_close({ticket}): found deal={deal.get('ticket')} "
                    f"profit={deal.get('profit')} reason={deal.get('reason')}"
                )
                return deal

        self.logger.warning(f"deal_close({ticket}): no exit deal among {len(deals)} deals")
        return None

    def get_todays_realized_profit(self) -> float:
        """Sum the profit of every deal since local midnight."""
        now = datetime.now(self.tz)
        midnight = self.tz.localize(datetime(now.year, now.month, now.day))
        deals = self.get_history_deals(midnight.astimezone(pytz.utc), now.astimezone(pytz.utc))
        return float(sum(float(d.get("profit") or 0.0) for d in deals))


def _same_ticket(value, ticket: int) -> bool:
    try:
        return int(value) == int(ticket)
    except (TypeError, ValueError):
        return False


def extract_ticket(result: Dict[str, Any]) -> Optional[int]:
    """Pick the ticket from an order result: order, then deal, then ticket."""
    for key in ("order", "deal", "ticket"):
        value = result.get(key) if isinstance(result, dict) else None
        if value:
            try:
                return int(value)
            except (TypeError, ValueError):
                continue
    return None


def active_tickets(positions: List[Dict[str, Any]]) -> set:
    """Tickets present in a /get_positions answer."""
    tickets = set()
    for pos in positions:
        value = pos.get("ticket") if isinstance(pos, dict) else None
        if value is None:
            continue
        try:
            tickets.add(int(value))
        except (TypeError, ValueError):
            continue
    return tickets
