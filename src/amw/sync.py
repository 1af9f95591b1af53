import threading
import time
from concurrent.futures import ThreadPoolExecutor, wait as wait_futures
from datetime import datetime
from typing import Callable, Dict, List, Optional, Tuple

import pytz

from .config import ALLOW_DUPLICATE_WATCHLIST, MAX_WORKERS
from .logger import get_logger
from .models import FAVORITES, WATCHLIST, FavoriteEntry, PriceOutcome, WatchlistEntry
from .store import DocumentStore, StoreError

logger = get_logger(__name__)

Row = Tuple[WatchlistEntry, Optional[PriceOutcome]]
Listener = Callable[["ViewSynchronizer"], None]


def now_utc_iso() -> str:
    return datetime.now(tz=pytz.UTC).isoformat()


def sort_by_profit(rows: List[Row]) -> List[Row]:
    """
    Order rows by descending profit.
    Rows without a price summary keep their slot; the others are sorted into
    the remaining slots, ties keeping their current order.
    """
    comparable = [r for r in rows if r[1] is not None and r[1].has_summary]
    comparable.sort(key=lambda r: r[1].profit_percent, reverse=True)
    ranked = iter(comparable)
    return [
        next(ranked) if (outcome is not None and outcome.has_summary) else (entry, outcome)
        for entry, outcome in rows
    ]


class ViewSynchronizer:
    """
    In-memory projection of the watchlist, the favorites and the latest price
    outcome of every watched item.

    Price lookups run on a bounded worker pool. Each pass gets a generation
    number; results coming back from an older pass are dropped.
    """

    def __init__(
        self,
        store: DocumentStore,
        fetch_outcome: Callable[[str], PriceOutcome],
        max_workers: int = MAX_WORKERS,
        allow_duplicates: bool = ALLOW_DUPLICATE_WATCHLIST,
    ):
        self._store = store
        self._fetch_outcome = fetch_outcome
        self.allow_duplicates = allow_duplicates
        self._executor = ThreadPoolExecutor(max_workers=max(1, max_workers), thread_name_prefix="amw-price")
        self._lock = threading.RLock()
        self._generation = 0
        self._watchlist: List[WatchlistEntry] = []
        self._favorites: List[FavoriteEntry] = []
        self._outcomes: Dict[str, PriceOutcome] = {}
        self._listeners: List[Listener] = []

    # -----------------------------------------------------------------
    # pull accessors
    # -----------------------------------------------------------------

    @property
    def generation(self) -> int:
        with self._lock:
            return self._generation

    def watchlist(self) -> List[WatchlistEntry]:
        with self._lock:
            return list(self._watchlist)

    def favorites(self) -> List[FavoriteEntry]:
        with self._lock:
            return list(self._favorites)

    def outcome(self, entry_id: str) -> Optional[PriceOutcome]:
        with self._lock:
            return self._outcomes.get(entry_id)

    def outcomes(self) -> Dict[str, PriceOutcome]:
        with self._lock:
            return dict(self._outcomes)

    def rows(self) -> List[Row]:
        with self._lock:
            return [(e, self._outcomes.get(e.id)) for e in self._watchlist]

    def sorted_view(self) -> List[Row]:
        return sort_by_profit(self.rows())

    # -----------------------------------------------------------------
    # change notifications
    # -----------------------------------------------------------------

    def subscribe(self, callback: Listener) -> Callable[[], None]:
        with self._lock:
            self._listeners.append(callback)

        def unsubscribe() -> None:
            with self._lock:
                if callback in self._listeners:
                    self._listeners.remove(callback)

        return unsubscribe

    def _notify(self) -> None:
        with self._lock:
            listeners = list(self._listeners)
        for cb in listeners:
            try:
                cb(self)
            except Exception:
                logger.exception("Change listener %r failed", cb)

    # -----------------------------------------------------------------
    # aggregation pass
    # -----------------------------------------------------------------

    def _read_watchlist(self) -> List[WatchlistEntry]:
        return [WatchlistEntry.from_doc(i, r, b) for i, r, b in self._store.list_all(WATCHLIST, descending=True)]

    def _read_favorites(self) -> List[FavoriteEntry]:
        return [FavoriteEntry.from_doc(i, r, b) for i, r, b in self._store.list_all(FAVORITES, descending=True)]

    def reload(self, wait: bool = True) -> Optional[int]:
        try:
            watchlist = self._read_watchlist()
            favorites = self._read_favorites()
        except StoreError as e:
            logger.error("Failed to read the local store: %s", e)
            return None

        with self._lock:
            self._generation += 1
            generation = self._generation
            self._watchlist = watchlist
            self._favorites = favorites
            ids = {e.id for e in watchlist}
            self._outcomes = {k: v for k, v in self._outcomes.items() if k in ids}
        self._notify()

        logger.info("Aggregation pass %d started for %d items", generation, len(watchlist))
        started = time.perf_counter()
        futures = [self._executor.submit(self._aggregate_one, generation, e) for e in watchlist]
        if wait and futures:
            wait_futures(futures)
            logger.info(
                "Aggregation pass %d finished in %.2fs",
                generation, time.perf_counter() - started,
            )
        return generation

    def _aggregate_one(self, generation: int, entry: WatchlistEntry) -> None:
        with self._lock:
            if generation != self._generation:
                return
        try:
            outcome = self._fetch_outcome(entry.item_id)
        except Exception as e:
            logger.exception("Price lookup for %s crashed", entry.item_id)
            outcome = PriceOutcome.failed(str(e) or e.__class__.__name__)

        with self._lock:
            if generation != self._generation:
                logger.debug(
                    "Dropping stale result for %s (pass %d, current %d)",
                    entry.item_id, generation, self._generation,
                )
                return
            self._outcomes[entry.id] = outcome
        self._notify()

    # -----------------------------------------------------------------
    # watchlist
    # -----------------------------------------------------------------

    def add_item(self, item_id: str, display_name: str) -> Optional[WatchlistEntry]:
        if not item_id:
            logger.error("Refusing to watch an empty item id")
            return None
        if not self.allow_duplicates:
            try:
                current = self._read_watchlist()
            except StoreError as e:
                logger.error("Failed to read the watchlist: %s", e)
                return None
            existing = next((e for e in current if e.item_id == item_id), None)
            if existing is not None:
                logger.info("%s is already on the watchlist", item_id)
                return None

        entry = WatchlistEntry(id=now_utc_iso(), item_id=item_id, display_name=display_name or "")
        try:
            entry.rev = self._store.insert(WATCHLIST, entry.id, entry.to_doc())
        except StoreError as e:
            logger.error("Failed to add %s to the watchlist: %s", item_id, e)
            return None

        logger.info("Watching %s (%s)", item_id, entry.display_name)
        self.reload()
        return entry

    def add_from_favorite(self, favorite: FavoriteEntry) -> Optional[WatchlistEntry]:
        return self.add_item(favorite.item_id, favorite.display_name)

    def remove_item(self, entry: WatchlistEntry) -> bool:
        try:
            self._store.remove(WATCHLIST, entry.id, entry.rev)
        except StoreError as e:
            logger.error("Failed to remove %s from the watchlist: %s", entry.id, e)
            return False
        logger.info("Stopped watching %s (%s)", entry.item_id, entry.id)
        self.reload()
        return True

    def reset_all(self) -> bool:
        try:
            docs = self._store.list_all(WATCHLIST)
        except StoreError as e:
            logger.error("Failed to list the watchlist for reset: %s", e)
            return False

        ok = True
        for doc_id, rev, _ in docs:
            try:
                self._store.remove(WATCHLIST, doc_id, rev)
            except StoreError as e:
                logger.error("Failed to remove %s during reset: %s", doc_id, e)
                ok = False

        if not ok:
            # some records are still stored; project what is left
            self.reload(wait=False)
            return False

        with self._lock:
            self._generation += 1
            self._watchlist = []
            self._outcomes = {}
        logger.info("Watchlist reset (%d entries removed)", len(docs))
        self._notify()
        return True

    # -----------------------------------------------------------------
    # favorites
    # -----------------------------------------------------------------

    def _refresh_favorites(self) -> None:
        try:
            favorites = self._read_favorites()
        except StoreError as e:
            logger.error("Failed to read favorites: %s", e)
            return
        with self._lock:
            self._favorites = favorites
        self._notify()

    def add_favorite(self, entry: WatchlistEntry) -> Optional[FavoriteEntry]:
        try:
            current = self._read_favorites()
        except StoreError as e:
            logger.error("Failed to read favorites: %s", e)
            return None

        existing = next((f for f in current if f.item_id == entry.item_id), None)
        if existing is not None:
            logger.info("%s is already a favorite", entry.item_id)
            return existing

        favorite = FavoriteEntry(
            id=f"{entry.item_id}_{int(time.time() * 1000)}",
            item_id=entry.item_id,
            display_name=entry.display_name,
        )
        try:
            favorite.rev = self._store.insert(FAVORITES, favorite.id, favorite.to_doc())
        except StoreError as e:
            logger.error("Failed to add favorite %s: %s", entry.item_id, e)
            return None

        logger.info("Added favorite %s", entry.item_id)
        self._refresh_favorites()
        return favorite

    def remove_favorite(self, favorite: FavoriteEntry) -> bool:
        try:
            self._store.remove(FAVORITES, favorite.id, favorite.rev)
        except StoreError as e:
            logger.error("Failed to remove favorite %s: %s", favorite.id, e)
            return False
        logger.info("Removed favorite %s", favorite.item_id)
        self._refresh_favorites()
        return True

    def close(self) -> None:
        with self._lock:
            self._generation += 1
        self._executor.shutdown(wait=True, cancel_futures=True)
