from amw.io_utils import PENDING_TEXT, apply_display_formatting, rows_to_frame, to_csv_bytes
from amw.models import PriceOutcome, WatchlistEntry

from conftest import make_outcome


def rows():
    return [
        (WatchlistEntry("a", "T4_BAG", "Sac"), make_outcome(100 / 3, sell=90)),
        (WatchlistEntry("b", "T5_BAG", ""), None),
        (WatchlistEntry("c", "T6_BAG", "Sac du maître"), PriceOutcome.unavailable()),
        (WatchlistEntry("d", "T4_CAPE", "Cape"), PriceOutcome.failed("HTTP 503 for T4_CAPE")),
    ]


def test_rows_to_frame():
    df = rows_to_frame(rows())
    assert list(df["status"]) == ["ok", "pending", "unavailable", "error"]
    assert df.loc[0, "buy_city"] == "Martlock"
    assert df.loc[0, "buy_price"] == 90
    assert df.loc[1, "name"] == "No translation available"


def test_display_formatting():
    df = apply_display_formatting(rows_to_frame(rows()))
    assert df.loc[0, "profit_pct"] == "33.33%"
    assert df.loc[0, "sell_price"] == "120"
    assert df.loc[1, "buy_city"] == PENDING_TEXT
    assert df.loc[2, "buy_city"] == PENDING_TEXT
    assert df.loc[2, "profit_pct"] == ""
    assert df.loc[3, "buy_city"] == "HTTP 503 for T4_CAPE"


def test_empty_projection():
    df = apply_display_formatting(rows_to_frame([]))
    assert df.empty
    assert "profit_pct" in df.columns


def test_csv_export():
    data = to_csv_bytes(rows_to_frame(rows()))
    assert data.startswith(b"\xef\xbb\xbf")
    assert b"T4_BAG" in data
