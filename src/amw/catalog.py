import json
from pathlib import Path
from typing import Dict, List, Optional

import pandas as pd

from .config import LOCALE, SEARCH_LIMIT
from .logger import get_logger
from .models import CatalogItem

logger = get_logger(__name__)


class Catalog:
    """Read-only item lookup, built once at startup."""

    def __init__(self, items: List[CatalogItem]):
        self._items = list(items)
        self._by_id: Dict[str, CatalogItem] = {}
        for it in self._items:
            self._by_id.setdefault(it.item_id, it)
        self._frames: Dict[str, pd.DataFrame] = {}

    def __len__(self) -> int:
        return len(self._items)

    def get(self, item_id: str) -> Optional[CatalogItem]:
        return self._by_id.get(item_id)

    def _names_for(self, locale: str) -> pd.DataFrame:
        df = self._frames.get(locale)
        if df is None:
            df = pd.DataFrame(
                {
                    "pos": range(len(self._items)),
                    "name": [it.display_name(locale) for it in self._items],
                }
            )
            df = df[df["name"].notna()]
            self._frames[locale] = df
        return df

    def search(self, term: str, locale: str = LOCALE, limit: int = SEARCH_LIMIT) -> List[CatalogItem]:
        if not term or not term.strip():
            return []
        df = self._names_for(locale)
        if df.empty:
            return []
        mask = df["name"].str.lower().str.contains(term.lower(), regex=False)
        return [self._items[int(p)] for p in df.loc[mask, "pos"].head(limit)]


def load_catalog(path: Path) -> Catalog:
    with open(path, "r", encoding="utf-8") as f:
        raw = json.load(f)
    if not isinstance(raw, list):
        raise ValueError("Catalog must be a JSON list of items")

    items: List[CatalogItem] = []
    for entry in raw:
        if not isinstance(entry, dict):
            continue
        item_id = entry.get("UniqueName")
        if not isinstance(item_id, str) or not item_id.strip():
            continue
        item_id = item_id.strip()
        names = entry.get("LocalizedNames") or {}
        if not isinstance(names, dict):
            logger.warning("Skipping %s: LocalizedNames is not an object", item_id)
            continue
        items.append(
            CatalogItem(
                item_id=item_id,
                localized_names={k: v for k, v in names.items() if isinstance(v, str)},
            )
        )
    logger.info("Loaded %d catalog items from %s", len(items), path)
    return Catalog(items)
