from typing import Callable

import numpy as np
import pandas as pd
import requests

from .config import LOCATIONS, NEUTRAL_HUB_CODE, NEUTRAL_HUB_NAME
from .http_api import PriceFeedError, fetch_prices
from .logger import get_logger
from .models import PriceOutcome, PriceSummary
from .rate_limit import TokenBucket

logger = get_logger(__name__)

ENTRY_COLUMNS = ["city", "sell_price_min", "buy_price_max"]


def _as_code(city):
    # a column mixing codes and missing cities comes back as float
    if isinstance(city, bool):
        return None
    if isinstance(city, (int, np.integer)):
        return int(city)
    if isinstance(city, (float, np.floating)) and float(city).is_integer():
        return int(city)
    return None


def is_neutral_hub(city) -> bool:
    if city is None:
        return False
    code = _as_code(city)
    if code is not None:
        return code == NEUTRAL_HUB_CODE
    text = str(city).strip()
    return text == NEUTRAL_HUB_NAME or text == str(NEUTRAL_HUB_CODE)


def location_label(city) -> str:
    if city is None or (isinstance(city, (float, np.floating)) and np.isnan(city)):
        return "Unknown"
    code = _as_code(city)
    text = str(code) if code is not None else str(city).strip()
    return text or "Unknown"


def filter_entries(raw: list[dict]) -> pd.DataFrame:
    """
    Keep the entries usable for arbitrage, in feed order.
    Drops the neutral hub and any entry without both a sell and a buy price.
    """
    df = pd.DataFrame.from_records(raw) if raw else pd.DataFrame()
    df = df.reindex(columns=ENTRY_COLUMNS)
    if df.empty:
        return df

    df["sell_price_min"] = pd.to_numeric(df["sell_price_min"], errors="coerce")
    df["buy_price_max"] = pd.to_numeric(df["buy_price_max"], errors="coerce")

    keep = (
        ~df["city"].map(is_neutral_hub).astype(bool)
        & (df["sell_price_min"] > 0)
        & (df["buy_price_max"] > 0)
    )
    return df[keep].reset_index(drop=True)


def profit_percent(sell_price: float, buy_price: float) -> float:
    if sell_price == 0:
        return 0.0
    return (buy_price - sell_price) / sell_price * 100


def summarize_prices(raw: list[dict]) -> PriceOutcome:
    df = filter_entries(raw)
    if df.empty:
        return PriceOutcome.unavailable()

    sells = df["sell_price_min"].to_numpy(dtype=float)
    buys = df["buy_price_max"].to_numpy(dtype=float)
    # argmin/argmax return the first occurrence on ties
    i_sell = int(np.argmin(sells))
    i_buy = int(np.argmax(buys))

    sell_price = float(sells[i_sell])
    buy_price = float(buys[i_buy])
    return PriceOutcome.ok(
        PriceSummary(
            best_sell_location=location_label(df["city"].iloc[i_sell]),
            best_sell_price=sell_price,
            best_buy_location=location_label(df["city"].iloc[i_buy]),
            best_buy_price=buy_price,
            profit_percent=profit_percent(sell_price, buy_price),
        )
    )


def aggregate_item(
    session: requests.Session,
    bucket: TokenBucket,
    item_id: str,
    locations: list[str] | None = None,
) -> PriceOutcome:
    try:
        raw = fetch_prices(session, bucket, item_id, locations or LOCATIONS)
    except PriceFeedError as exc:
        logger.warning("Price fetch failed for %s: %s", item_id, exc)
        return PriceOutcome.failed(str(exc))

    outcome = summarize_prices(raw)
    if outcome.has_summary:
        logger.debug("%s: %.2f%% profit", item_id, outcome.summary.profit_percent)
    else:
        logger.info("No usable market data for %s", item_id)
    return outcome


def outcome_fetcher(session: requests.Session, bucket: TokenBucket) -> Callable[[str], PriceOutcome]:
    def fetch(item_id: str) -> PriceOutcome:
        return aggregate_item(session, bucket, item_id)
    return fetch
