import io, pandas as pd

PENDING_TEXT = "Data loading or unavailable..."

COLUMNS = ["entry_id", "item_id", "name", "buy_city", "buy_price",
           "sell_city", "sell_price", "profit_pct", "status"]

def fmt_int(x): return f"{x:,.0f}"
def fmt_pct(x): return f"{x:.2f}%"

def rows_to_frame(rows) -> pd.DataFrame:
    # "buy" is where the item is cheapest to buy (lowest sell order), "sell" where it fetches the most
    records = []
    for entry, outcome in rows:
        rec = {"entry_id": entry.id, "item_id": entry.item_id,
               "name": entry.display_name or "No translation available",
               "status": outcome.status if outcome is not None else "pending"}
        if outcome is not None and outcome.has_summary:
            s = outcome.summary
            rec.update({"buy_city": s.best_sell_location, "buy_price": s.best_sell_price,
                        "sell_city": s.best_buy_location, "sell_price": s.best_buy_price,
                        "profit_pct": s.profit_percent})
        elif outcome is not None and outcome.error:
            rec["buy_city"] = outcome.error
        records.append(rec)
    return pd.DataFrame.from_records(records, columns=COLUMNS)

def apply_display_formatting(df: pd.DataFrame) -> pd.DataFrame:
    df = df.copy()
    for c in ["buy_price", "sell_price"]:
        df[c] = df[c].apply(lambda x: fmt_int(x) if pd.notna(x) else "")
    df["profit_pct"] = df["profit_pct"].apply(lambda x: fmt_pct(x) if pd.notna(x) else "")
    no_data = df["status"].isin(["pending", "unavailable"])
    df.loc[no_data, "buy_city"] = PENDING_TEXT
    df["buy_city"] = df["buy_city"].fillna("")
    df["sell_city"] = df["sell_city"].fillna("")
    return df

def to_csv_bytes(df: pd.DataFrame) -> bytes:
    buf = io.StringIO()
    df.to_csv(buf, index=False, encoding="utf-8-sig")
    return buf.getvalue().encode("utf-8-sig")
