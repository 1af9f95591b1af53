from dataclasses import dataclass, field
from typing import Dict, Optional

WATCHLIST = "watchlist"
FAVORITES = "favorites"

OK = "ok"
UNAVAILABLE = "unavailable"
ERROR = "error"


@dataclass(frozen=True)
class CatalogItem:
    """
    One tradable item of the static catalog.
    localized_names maps a locale code ("FR-FR", "EN-US", ...) to its display name.
    """
    item_id: str
    localized_names: Dict[str, str] = field(default_factory=dict)

    def display_name(self, locale: str) -> Optional[str]:
        return self.localized_names.get(locale)


@dataclass
class WatchlistEntry:
    id: str
    item_id: str
    display_name: str
    rev: str = ""

    def to_doc(self) -> dict:
        return {"item_id": self.item_id, "display_name": self.display_name}

    @classmethod
    def from_doc(cls, doc_id: str, rev: str, body: dict) -> "WatchlistEntry":
        return cls(
            id=doc_id,
            item_id=body.get("item_id", ""),
            display_name=body.get("display_name") or "",
            rev=rev,
        )


@dataclass
class FavoriteEntry(WatchlistEntry):
    pass


@dataclass(frozen=True)
class PriceSummary:
    best_sell_location: str
    best_sell_price: float
    best_buy_location: str
    best_buy_price: float
    profit_percent: float


@dataclass(frozen=True)
class PriceOutcome:
    """
    Result of one price lookup: a summary, "no market data", or an error message.
    """
    status: str
    summary: Optional[PriceSummary] = None
    error: Optional[str] = None

    @classmethod
    def ok(cls, summary: PriceSummary) -> "PriceOutcome":
        return cls(OK, summary=summary)

    @classmethod
    def unavailable(cls) -> "PriceOutcome":
        return cls(UNAVAILABLE)

    @classmethod
    def failed(cls, message: str) -> "PriceOutcome":
        return cls(ERROR, error=message)

    @property
    def has_summary(self) -> bool:
        return self.status == OK and self.summary is not None

    @property
    def profit_percent(self) -> Optional[float]:
        return self.summary.profit_percent if self.has_summary else None
