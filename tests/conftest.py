"""
Shared fixtures for the test suite.
"""

import pytest

from amw.models import PriceOutcome, PriceSummary, WATCHLIST, FAVORITES
from amw.store import DocumentStore


def make_outcome(profit: float, sell: float = 100.0) -> PriceOutcome:
    buy = sell + sell * profit / 100
    return PriceOutcome.ok(
        PriceSummary(
            best_sell_location="Martlock",
            best_sell_price=sell,
            best_buy_location="Caerleon",
            best_buy_price=buy,
            profit_percent=profit,
        )
    )


class FakeFeed:
    """Outcome callable driven by a per-item table; unknown items are unavailable."""

    def __init__(self, outcomes=None):
        self.outcomes = dict(outcomes or {})
        self.calls = []

    def __call__(self, item_id):
        self.calls.append(item_id)
        value = self.outcomes.get(item_id, PriceOutcome.unavailable())
        if isinstance(value, Exception):
            raise value
        return value


@pytest.fixture
def store(tmp_path):
    s = DocumentStore(tmp_path / "amw.sqlite3").open()
    yield s
    s.close()


@pytest.fixture
def feed():
    return FakeFeed()


@pytest.fixture
def seed(store):
    """Insert watchlist docs directly; ids sort in insertion order."""
    def _seed(*item_ids, collection=WATCHLIST):
        ids = []
        for n, item_id in enumerate(item_ids):
            doc_id = f"2024-01-01T00:00:{n:02d}+00:00" if collection == WATCHLIST else f"{item_id}_{n}"
            store.insert(collection, doc_id, {"item_id": item_id, "display_name": item_id.lower()})
            ids.append(doc_id)
        return ids
    return _seed
