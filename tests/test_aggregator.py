"""
Unit tests for the price aggregation routine.
"""

import random

import pytest
import requests
from unittest.mock import Mock

from amw import aggregator
from amw.aggregator import filter_entries, is_neutral_hub, summarize_prices, aggregate_item
from amw.models import OK, UNAVAILABLE, ERROR
from amw.rate_limit import TokenBucket


def entry(city, sell, buy):
    return {"item_id": "T4_BAG", "city": city, "quality": 1, "sell_price_min": sell, "buy_price_max": buy}


class TestFilterEntries:
    """Entries that carry no usable market data are dropped."""

    def test_black_market_by_name_and_code(self):
        raw = [entry("Black Market", 10, 20), entry(301, 10, 20), entry("301", 10, 20), entry("Lymhurst", 10, 20)]
        df = filter_entries(raw)
        assert list(df["city"]) == ["Lymhurst"]

    def test_non_positive_prices_dropped(self):
        raw = [
            entry("Thetford", 0, 50),
            entry("Martlock", 40, 0),
            entry("Lymhurst", -5, 50),
            entry("Bridgewatch", 40, 45),
        ]
        df = filter_entries(raw)
        assert list(df["city"]) == ["Bridgewatch"]

    def test_missing_or_non_numeric_prices_dropped(self):
        raw = [{"city": "Thetford", "sell_price_min": "n/a", "buy_price_max": 10}, {"city": "Martlock"}]
        assert filter_entries(raw).empty

    def test_empty_feed(self):
        assert filter_entries([]).empty

    def test_neutral_hub_helper(self):
        assert is_neutral_hub("Black Market")
        assert is_neutral_hub(301)
        assert is_neutral_hub(301.0)
        assert not is_neutral_hub("Caerleon")
        assert not is_neutral_hub(3005)
        assert not is_neutral_hub(None)


class TestSummarizePrices:

    def test_example_scenario(self):
        raw = [
            entry("Caerleon", 100, 120),
            entry("Martlock", 90, 95),
            entry("Black Market", 50, 500),
        ]
        outcome = summarize_prices(raw)

        assert outcome.status == OK
        s = outcome.summary
        assert (s.best_sell_location, s.best_sell_price) == ("Martlock", 90)
        assert (s.best_buy_location, s.best_buy_price) == ("Caerleon", 120)
        assert s.profit_percent == (120 - 90) / 90 * 100
        assert round(s.profit_percent, 2) == 33.33

    def test_all_filtered_is_unavailable_not_zero(self):
        outcome = summarize_prices([entry("Black Market", 10, 20), entry("Thetford", 0, 0)])
        assert outcome.status == UNAVAILABLE
        assert outcome.summary is None
        assert outcome.profit_percent is None

    def test_ties_keep_first_in_feed_order(self):
        raw = [
            entry("Thetford", 50, 80),
            entry("Lymhurst", 50, 80),
            entry("Martlock", 60, 70),
        ]
        s = summarize_prices(raw).summary
        assert s.best_sell_location == "Thetford"
        assert s.best_buy_location == "Thetford"

    def test_negative_profit(self):
        s = summarize_prices([entry("Thetford", 200, 100)]).summary
        assert s.profit_percent == -50.0

    def test_numeric_city_code_is_labelled(self):
        s = summarize_prices([entry(7, 10, 20)]).summary
        assert s.best_sell_location == "7"

    @pytest.mark.parametrize("seed", range(20))
    def test_planted_extrema(self, seed):
        rng = random.Random(seed)
        cities = ["Thetford", "Martlock", "Lymhurst", "Caerleon", "Bridgewatch", "FortSterling"]
        raw = [entry(rng.choice(cities), rng.randint(100, 1000), rng.randint(100, 1000)) for _ in range(rng.randint(1, 30))]
        # noise that must never win
        raw.insert(rng.randrange(len(raw) + 1), entry("Black Market", 1, 10**6))
        raw.insert(rng.randrange(len(raw) + 1), entry("Thetford", 0, 10**6))
        raw.insert(rng.randrange(len(raw) + 1), entry("Martlock", 1, 0))
        low = {"city": "Bridgewatch", "sell_price_min": 50, "buy_price_max": 60}
        high = {"city": "FortSterling", "sell_price_min": 5000, "buy_price_max": 5000}
        raw.insert(rng.randrange(len(raw) + 1), low)
        raw.insert(rng.randrange(len(raw) + 1), high)

        s = summarize_prices(raw).summary

        assert s.best_sell_price == 50
        assert s.best_sell_location == "Bridgewatch"
        assert s.best_buy_price == 5000
        assert s.best_buy_location == "FortSterling"
        assert s.profit_percent == (5000 - 50) / 50 * 100


class TestAggregateItem:

    def setup_method(self):
        self.bucket = TokenBucket(6000)

    def test_success(self):
        session = Mock()
        session.get.return_value = Mock(status_code=200, json=Mock(return_value=[entry("Martlock", 90, 120)]))

        outcome = aggregate_item(session, self.bucket, "T4_BAG")

        assert outcome.status == OK
        assert outcome.summary.best_buy_price == 120

    def test_transport_error_becomes_error_outcome(self, monkeypatch):
        monkeypatch.setattr(aggregator, "fetch_prices", Mock(side_effect=aggregator.PriceFeedError("HTTP 404 for T4_BAG")))

        outcome = aggregate_item(Mock(), self.bucket, "T4_BAG")

        assert outcome.status == ERROR
        assert "404" in outcome.error

    def test_timeout_becomes_error_outcome(self, monkeypatch):
        monkeypatch.setattr("amw.http_api.time.sleep", lambda s: None)
        session = Mock()
        session.get.side_effect = requests.Timeout()

        outcome = aggregate_item(session, self.bucket, "T4_BAG")

        assert outcome.status == ERROR
        assert "Timed out" in outcome.error
