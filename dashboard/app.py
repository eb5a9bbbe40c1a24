"""
trade-guard dashboard: recent order attempts per ticker from the audit journal.
Run from repo root: streamlit run dashboard/app.py
Or with a journal path: TRADE_GUARD_AUDIT_PATH=/path/to/audit.jsonl streamlit run dashboard/app.py
"""

import streamlit as st

from data_reader import (
    _audit_path,
    discover_tickers,
    get_recent_audit_records,
    summarize,
)

st.set_page_config(page_title="trade-guard", layout="wide")
st.title("trade-guard Order Attempts")

audit_path = _audit_path()
tickers = discover_tickers(audit_path)

if not tickers:
    st.warning(f"No order attempts found in: `{audit_path}`")
    st.caption("Records appear once the webhook (trade-guard serve) or trade-guard evaluate dispatches an order.")
    st.stop()

col_refresh, col_auto = st.columns([1, 3])
with col_refresh:
    if st.button("Refresh"):
        st.rerun()
with col_auto:
    auto_refresh = st.checkbox("Auto-refresh every 60s", value=False)

for ticker in tickers:
    records = get_recent_audit_records(ticker, limit=0, path=audit_path)
    stats = summarize(records)

    with st.container():
        st.subheader(ticker)
        c1, c2, c3, c4 = st.columns(4)
        with c1:
            st.metric("Attempts", stats["attempts"])
        with c2:
            st.metric("Placed", stats["placed"])
        with c3:
            st.metric("Failed", stats["failed"])
        with c4:
            st.metric("Net shares", stats["shares_bought"] - stats["shares_sold"])
        if stats["last_attempt"]:
            st.caption(f"Last attempt: {stats['last_attempt'][:19]}")

        with st.expander("Recent order attempts", expanded=False):
            for r in records[:20]:
                ts = (r.get("timestamp") or "")[:19]
                st.text(f"{ts}  {r.get('action')}  {r.get('quantity')} @ {r.get('price')}")
                notes = r.get("notes") or ""
                if notes:
                    st.caption(notes[:160] + ("..." if len(notes) > 160 else ""))

    st.divider()

if auto_refresh:
    import time
    time.sleep(60)
    st.rerun()
