import sys
from pathlib import Path

import streamlit as st

# ---------------------------------------------------------------------
# PATHS & IMPORTS
# ---------------------------------------------------------------------

ROOT_DIR = Path(__file__).resolve().parents[1]
SRC_DIR = ROOT_DIR / "src"
if str(SRC_DIR) not in sys.path:
    sys.path.insert(0, str(SRC_DIR))

from amw.logger import setup_logging
from amw.config import CATALOG_PATH, DB_PATH, LOCALE, MAX_WORKERS, RATE_LIMIT_PER_MIN, SEARCH_LIMIT
from amw.catalog import load_catalog
from amw.store import DocumentStore, StoreError
from amw.http_api import session_for_requests
from amw.rate_limit import TokenBucket
from amw.aggregator import outcome_fetcher
from amw.sync import ViewSynchronizer
from amw.io_utils import rows_to_frame, apply_display_formatting, to_csv_bytes

# ---------------------------------------------------------------------
# APP CONFIG
# ---------------------------------------------------------------------

setup_logging()

st.set_page_config(page_title="Albion Market Watch", layout="wide")


@st.cache_resource
def get_catalog():
    return load_catalog(CATALOG_PATH)


@st.cache_resource
def get_synchronizer():
    # one store and one worker pool for the whole server process
    store = DocumentStore(DB_PATH).open()
    sync = ViewSynchronizer(
        store,
        outcome_fetcher(session_for_requests(), TokenBucket(RATE_LIMIT_PER_MIN)),
        max_workers=MAX_WORKERS,
    )
    sync.reload()
    return sync


if not CATALOG_PATH.exists():
    st.error(f"Item catalog not found ({CATALOG_PATH}).")
    st.stop()

try:
    catalog = get_catalog()
    sync = get_synchronizer()
except (StoreError, ValueError, OSError) as e:
    st.error(f"Startup failed: {e}")
    st.stop()

if "pending_delete" not in st.session_state:
    st.session_state["pending_delete"] = None

# results close once an item was picked; must happen before the input is drawn
if st.session_state.pop("clear_search", False):
    st.session_state["search_term"] = ""

# ---------------------------------------------------------------------
# HEADER
# ---------------------------------------------------------------------

st.title("Albion Market Watch")

col_fav, col_main = st.columns([1, 3])

# ---------------------------------------------------------------------
# FAVORITES
# ---------------------------------------------------------------------

with col_fav:
    st.subheader("Favorites")
    favorites = sync.favorites()
    if not favorites:
        st.caption("No favorites yet.")
    for fav in favorites:
        c_name, c_del = st.columns([4, 1])
        if c_name.button(fav.display_name or "No translation available", key=f"fav_add_{fav.id}"):
            with st.spinner("Fetching prices…"):
                sync.add_from_favorite(fav)
            st.rerun()
        if c_del.button("🗑", key=f"fav_del_{fav.id}"):
            if not sync.remove_favorite(fav):
                st.error("Could not remove favorite.")
            st.rerun()

# ---------------------------------------------------------------------
# SEARCH & WATCHLIST
# ---------------------------------------------------------------------

with col_main:
    c_search, c_reset, c_refresh = st.columns([6, 1, 1])

    term = c_search.text_input("Search an item", placeholder="Search an item", key="search_term")
    if c_reset.button("Reset"):
        if not sync.reset_all():
            st.error("Reset failed; some entries are still stored.")
        st.rerun()
    if c_refresh.button("Refresh"):
        with st.spinner("Fetching prices…"):
            sync.reload()
        st.rerun()

    for item in catalog.search(term, locale=LOCALE, limit=SEARCH_LIMIT):
        name = item.display_name(LOCALE) or "No translation available"
        if st.button(name, key=f"search_{item.item_id}"):
            with st.spinner("Fetching prices…"):
                sync.add_item(item.item_id, name)
            st.session_state["clear_search"] = True
            st.rerun()

    rows = sync.sorted_view()
    st.subheader(f"Watchlist ({len(rows)})")

    header = st.columns([1, 1, 3, 2, 2, 2, 2, 2])
    for col, label in zip(header, ["", "", "Name", "Buy in", "Buy price", "Sell in", "Sell price", "Profit"]):
        col.markdown(f"**{label}**")

    table = apply_display_formatting(rows_to_frame(rows))
    for (entry, outcome), (_, row) in zip(rows, table.iterrows()):
        cols = st.columns([1, 1, 3, 2, 2, 2, 2, 2])
        if cols[0].button("♥", key=f"fav_{entry.id}"):
            sync.add_favorite(entry)
            st.rerun()
        if cols[1].button("🗑", key=f"del_{entry.id}"):
            st.session_state["pending_delete"] = entry.id
            st.rerun()
        cols[2].write(row["name"])
        if outcome is not None and outcome.has_summary:
            cols[3].write(row["buy_city"])
            cols[4].write(row["buy_price"])
            cols[5].write(row["sell_city"])
            cols[6].write(row["sell_price"])
            cols[7].write(row["profit_pct"])
        else:
            cols[3].write(row["buy_city"])

        if st.session_state["pending_delete"] == entry.id:
            st.warning(f'Really remove "{entry.display_name}" from the table?')
            c_yes, c_no = st.columns(2)
            if c_yes.button("Remove", key=f"confirm_{entry.id}"):
                st.session_state["pending_delete"] = None
                if not sync.remove_item(entry):
                    st.error("Could not remove the entry.")
                st.rerun()
            if c_no.button("Cancel", key=f"cancel_{entry.id}"):
                st.session_state["pending_delete"] = None
                st.rerun()

    if rows:
        st.download_button(
            "Download CSV",
            data=to_csv_bytes(rows_to_frame(rows)),
            file_name="albion_watchlist.csv",
            mime="text/csv",
        )
