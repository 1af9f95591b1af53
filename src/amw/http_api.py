import time
import requests

from .config import BASE_URL, LOCATIONS, MAX_WORKERS, QUALITIES, RETRIES, TIMEOUT
from .logger import get_logger
from .rate_limit import TokenBucket

logger = get_logger(__name__)

RETRY_STATUSES = (429, 500, 502, 503, 504)


class PriceFeedError(Exception):
    pass


def session_for_requests() -> requests.Session:
    session = requests.Session()
    adapter = requests.adapters.HTTPAdapter(
        pool_connections=MAX_WORKERS * 2,
        pool_maxsize=MAX_WORKERS * 2,
    )
    session.mount("https://", adapter)
    session.headers.update(
        {
            "accept": "application/json",
            "User-Agent": "albion-market-watch/0.1",
        }
    )
    return session


def attempt_call(
    session: requests.Session,
    bucket: TokenBucket,
    item_id: str,
    locations: list[str],
    timeout: float,
) -> requests.Response:
    url = f"{BASE_URL}/stats/prices/{item_id}"
    params: dict[str, str] = {"locations": ",".join(locations)}
    if QUALITIES:
        params["qualities"] = ",".join(str(q) for q in QUALITIES)

    if not bucket.take(1, timeout=timeout):
        raise PriceFeedError("Rate limit budget exhausted")
    return session.get(url, params=params, timeout=timeout)


def parse_entries(response: requests.Response) -> list[dict]:
    try:
        data = response.json()
    except ValueError as exc:
        raise PriceFeedError(f"Malformed payload: {exc}") from exc
    if not isinstance(data, list):
        raise PriceFeedError(f"Malformed payload: expected a list, got {type(data).__name__}")
    if any(not isinstance(entry, dict) for entry in data):
        raise PriceFeedError("Malformed payload: entries must be objects")
    return data


def fetch_prices(
    session: requests.Session,
    bucket: TokenBucket,
    item_id: str,
    locations: list[str] | None = None,
    retries: int = RETRIES,
    timeout: float = TIMEOUT,
) -> list[dict]:
    """
    Raw price entries for one item across the given cities.
    Raises PriceFeedError once the retries are spent or on a non-retryable failure.
    """
    if not item_id:
        raise PriceFeedError("Empty item id")

    backoff = 0.8
    last_error = "Exhausted retries"

    for attempt in range(1, retries + 1):
        try:
            response = attempt_call(session, bucket, item_id, locations or LOCATIONS, timeout)
        except requests.Timeout:
            last_error = f"Timed out after {timeout:g}s"
        except requests.RequestException as exc:
            last_error = f"Network error: {exc}"
        else:
            status = response.status_code
            if 200 <= status < 300:
                return parse_entries(response)
            if status not in RETRY_STATUSES:
                raise PriceFeedError(f"HTTP {status} for {item_id}")
            last_error = f"HTTP {status} for {item_id}"

        logger.debug("Attempt %d/%d for %s failed: %s", attempt, retries, item_id, last_error)
        if attempt < retries:
            time.sleep(backoff)
            backoff *= 1.6

    raise PriceFeedError(last_error)
