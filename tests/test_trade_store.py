"""
Tests: TradeRecordStore namespaces (pending/live), conflict detection,
promotion, and the JournalStore / TradeLedger pair.
"""

import json
import threading

import pytest

from conftest import make_record

from tradeguard.core.constants import OrderType, TradeStatus
from tradeguard.core.exceptions import StateConflictError, StateCorruptionError
from tradeguard.position_management import TradeRecord
from tradeguard.position_management.trade_journal import MISSING_ANALYSIS


# ── TradeRecord ──────────────────────────────────────────────────────────────

def test_status_derived_from_order_type():
    assert make_record(order_type="BUY_LIMIT").status == TradeStatus.PENDING
    assert make_record(order_type="SELL_STOP").status == TradeStatus.PENDING
    assert make_record(order_type="MARKET_SELL").status == TradeStatus.LIVE


def test_record_normalizes_fields():
    record = TradeRecord(ticket="42", symbol="xauusd", order_type="buy limit")
    assert record.ticket == 42
    assert record.symbol == "XAUUSD"
    assert record.order_type == OrderType.BUY_LIMIT


def test_from_dict_accepts_either_type_key():
    a = TradeRecord.from_dict({"ticket": 1, "symbol": "EURUSD", "type": "MARKET_BUY"})
    b = TradeRecord.from_dict({"ticket": 1, "symbol": "EURUSD", "order_type": "MARKET_BUY"})
    assert a.order_type == b.order_type == OrderType.MARKET_BUY


# ── TradeRecordStore ─────────────────────────────────────────────────────────

class TestTradeRecordStore:

    def test_pending_record_lands_in_pending_namespace(self, store, state_dir):
        store.put(make_record(order_type="BUY_LIMIT", ticket=7))

        path = state_dir / "pending_orders" / "trade_XAUUSD.json"
        assert path.exists()
        saved = json.loads(path.read_text(encoding="utf-8"))
        assert saved["ticket"] == 7
        assert saved["type"] == "BUY_LIMIT"
        assert store.get_live("XAUUSD") is None
        assert store.get("XAUUSD").ticket == 7

    def test_conflicting_ticket_rejected(self, store):
        store.put(make_record(ticket=1))
        with pytest.raises(StateConflictError):
            store.put(make_record(ticket=2))
        assert store.get("XAUUSD").ticket == 1

    def test_same_ticket_overwrites(self, store):
        store.put(make_record(ticket=1, sl=2340.0))
        store.put(make_record(ticket=1, sl=2345.0))
        assert store.get("XAUUSD").sl == 2345.0

    def test_promote_moves_to_live(self, store, state_dir):
        store.put(make_record(order_type="SELL_LIMIT", ticket=9))
        promoted = store.promote("XAUUSD")

        assert promoted.status == TradeStatus.LIVE
        assert promoted.ticket == 9
        assert "filled_at" in promoted.meta
        assert not (state_dir / "pending_orders" / "trade_XAUUSD.json").exists()
        assert store.get_live("XAUUSD").ticket == 9
        assert store.get_pending("XAUUSD") is None

    def test_promote_without_pending(self, store):
        assert store.promote("XAUUSD") is None

    def test_live_takes_priority(self, store, state_dir):
        store.put(make_record(ticket=5))
        # stale pending copy left behind by a crash
        stale = make_record(order_type="BUY_LIMIT", ticket=5)
        pending_path = state_dir / "pending_orders" / "trade_XAUUSD.json"
        pending_path.parent.mkdir(parents=True, exist_ok=True)
        pending_path.write_text(json.dumps(stale.to_dict()), encoding="utf-8")

        assert store.get("XAUUSD").status == TradeStatus.LIVE

    def test_remove(self, store):
        store.put(make_record())
        assert store.remove("XAUUSD") is True
        assert store.get("XAUUSD") is None
        assert store.remove("XAUUSD") is False

    def test_listing(self, store):
        store.put(make_record("XAUUSD", 1, "BUY_LIMIT"))
        store.put(make_record("EURUSD", 2, "MARKET_SELL"))
        store.put(make_record("GBPUSD", 3, "MARKET_BUY"))

        assert store.pending_symbols() == ["XAUUSD"]
        assert store.live_symbols() == ["EURUSD", "GBPUSD"]
        assert [r.ticket for r in store.list_live()] == [2, 3]
        assert [r.ticket for r in store.list_pending()] == [1]

    def test_corrupt_file_raises(self, store, state_dir):
        path = state_dir / "live_positions" / "trade_XAUUSD.json"
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text("{", encoding="utf-8")
        with pytest.raises(StateCorruptionError):
            store.get_live("XAUUSD")

    def test_record_missing_fields_is_corruption(self, store, state_dir):
        path = state_dir / "live_positions" / "trade_XAUUSD.json"
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps({"symbol": "XAUUSD"}), encoding="utf-8")
        with pytest.raises(StateCorruptionError):
            store.get_live("XAUUSD")

    def test_concurrent_puts_keep_one_ticket(self, store):
        errors = []

        def writer(ticket):
            try:
                store.put(make_record(ticket=ticket))
            except StateConflictError as e:
                errors.append(e)

        threads = [threading.Thread(target=writer, args=(t,)) for t in range(1, 9)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert len(errors) == 7
        assert store.get("XAUUSD") is not None


# ── JournalStore / TradeLedger ───────────────────────────────────────────────

class TestJournal:

    def test_add_get_remove(self, journal, state_dir):
        journal.add("XAUUSD", 11, "bullish sweep")
        journal.add("XAUUSD", 12, "second idea")
        assert journal.get("XAUUSD", 11) == "bullish sweep"

        assert journal.remove("XAUUSD", 11) is True
        assert journal.get("XAUUSD", 11) is None
        assert journal.remove("XAUUSD", 11) is False

        journal.remove("XAUUSD", 12)
        assert not (state_dir / "journal_data" / "journal_data_XAUUSD.json").exists()

    def test_missing_analysis_placeholder(self):
        assert MISSING_ANALYSIS == "Initial analysis not found."


class TestLedger:

    def test_header_written_once(self, ledger):
        ledger.append({"ticket": 1, "symbol": "XAUUSD", "close_reason": "Take Profit", "profit": "5.00"})
        ledger.append({"ticket": 2, "symbol": "EURUSD", "close_reason": "Stop Loss", "profit": "-3.00"})

        lines = ledger.path.read_text(encoding="utf-8").splitlines()
        assert lines[0].startswith("closed_at,ticket,symbol,type")
        assert len(lines) == 3

        rows = ledger.rows()
        assert [r["ticket"] for r in rows] == ["1", "2"]
        assert rows[1]["profit"] == "-3.00"
        assert rows[0]["closed_at"]

    def test_rows_empty_without_file(self, ledger):
        assert ledger.rows() == []
