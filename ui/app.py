# ui/app.py
import os
import requests
import pandas as pd
import streamlit as st
import plotly.express as px
import yfinance as yf

API_BASE = os.getenv("API_BASE", "http://127.0.0.1:8000")
API_KEY = os.getenv("API_KEY", "")

st.set_page_config(page_title="Technical Analysis Dashboard", layout="wide")

# --- Header ---
st.title("📊 Technical Analysis Snapshot")
st.caption("Backend: FastAPI  •  Frontend: Streamlit  •  Source: Firecrawl")

# --- Sidebar / Input ---
with st.sidebar:
    st.header("⚙️ Settings")
    url = st.text_input("Page URL", value="https://www.investing.com/crypto/ethereum/technical").strip()
    fresh = st.checkbox("Bypass caches", value=False)
    save = st.checkbox("Save to database", value=False)
    period = st.selectbox("History period", ["1mo", "3mo", "6mo"], index=1)
    submit = st.button("Analyze")

def signed_pct(x):
    try:
        return f"{x:+.2f}%"
    except Exception:
        return "-"

def load_analysis(url: str, fresh: bool, save: bool):
    r = requests.get(
        f"{API_BASE}/api/technical-analysis",
        params={"url": url, "fresh": str(fresh).lower(), "save": str(save).lower()},
        headers={"x-api-key": API_KEY},
        timeout=90,
    )
    r.raise_for_status()
    return r.json()

def load_price_history(symbol: str, period: str = "3mo"):
    if not symbol or symbol == "UNKNOWN":
        return None
    df = yf.download(f"{symbol}-USD", period=period, interval="1d", auto_adjust=True, progress=False)
    if df is None or df.empty:
        return None

    df = df.reset_index()
    if isinstance(df.columns, pd.MultiIndex):
        df.columns = [col[0] for col in df.columns]
    if "Date" in df.columns:
        df = df.rename(columns={"Date": "date"})
    if "date" not in df.columns or "Close" not in df.columns:
        return None

    out = df[["date", "Close"]].dropna()
    out["date"] = pd.to_datetime(out["date"], errors="coerce")
    return out.dropna(subset=["date"])

def indicator_rows(indicators):
    rows = []
    for ind in indicators:
        value = ind.get("value") or {}
        shown = value.get("number") if value.get("kind") == "number" else value.get("text")
        rows.append({"Indicator": ind.get("name", ""), "Value": shown, "Action": ind.get("action", "")})
    return pd.DataFrame(rows)

def moving_average_rows(mas):
    return pd.DataFrame([
        {
            "Period": f"MA{m['period']}",
            "Simple": m["simple"]["value"],
            "Simple Action": m["simple"]["action"],
            "Exponential": m["exponential"]["value"],
            "Exponential Action": m["exponential"]["action"],
        }
        for m in mas
    ])

def pivot_rows(pivots):
    rows = []
    for p in pivots:
        for level in ("s3", "s2", "s1", "pivot", "r1", "r2", "r3"):
            if p.get(level) is not None:
                rows.append({"Method": p["name"], "Level": level.upper(), "Price": p[level]})
    return pd.DataFrame(rows)

if submit:
    try:
        with st.spinner(f"Scraping {url} …"):
            payload = load_analysis(url, fresh, save)

        data = payload.get("data", {})
        parsed = data.get("parsed")
        raw = data.get("raw", {})

        if not parsed:
            st.warning("The page was scraped but could not be parsed.")
            with st.expander("Raw markdown"):
                st.text(raw.get("content", "")[:5000])
            st.stop()

        symbol = parsed.get("symbol", "UNKNOWN")

        # --- Top row: price & summaries ---
        c1, c2, c3, c4 = st.columns(4)
        c1.metric(symbol, f"{parsed.get('price', 0):,.2f}", signed_pct(parsed.get("priceChangePercent", 0)))
        c2.metric("Overall", parsed.get("summary", {}).get("overall", "Neutral"))
        tis = parsed.get("technicalIndicatorsSummary", {})
        c3.metric("Indicators", tis.get("recommendation", "Neutral"), f"Buy {tis.get('buyCount', 0)} / Sell {tis.get('sellCount', 0)}", delta_color="off")
        mas = parsed.get("movingAveragesSummary", {})
        c4.metric("Moving Averages", mas.get("recommendation", "Neutral"), f"Buy {mas.get('buyCount', 0)} / Sell {mas.get('sellCount', 0)}", delta_color="off")
        st.caption(f"Scraped at {parsed.get('scrapedAt', '')} • saved: {data.get('savedToDatabase', False)}")

        st.divider()

        col_left, col_right = st.columns([1.3, 1.7])
        with col_left:
            st.subheader("🔎 Technical Indicators")
            if parsed.get("technicalIndicators"):
                st.dataframe(indicator_rows(parsed["technicalIndicators"]), use_container_width=True, hide_index=True)
            else:
                st.info("No indicators found.")

            st.subheader("📐 Moving Averages")
            if parsed.get("movingAverages"):
                st.dataframe(moving_average_rows(parsed["movingAverages"]), use_container_width=True, hide_index=True)
            else:
                st.info("No moving averages found.")

        with col_right:
            st.subheader("🎯 Pivot Points")
            piv = pivot_rows(parsed.get("pivotPoints", []))
            if piv.empty:
                st.info("No pivot points found.")
            else:
                fig = px.scatter(piv, x="Price", y="Method", color="Level", title=None)
                fig.update_layout(margin=dict(l=10, r=10, t=10, b=10), height=300)
                st.plotly_chart(fig, use_container_width=True)

            st.subheader(f"📈 {symbol}-USD — Price History ({period})")
            hist = load_price_history(symbol, period=period)
            if hist is None or hist.empty:
                st.info("No history data.")
            else:
                fig = px.line(hist, x="date", y="Close", title=None)
                fig.update_layout(margin=dict(l=10, r=10, t=10, b=10), height=300)
                st.plotly_chart(fig, use_container_width=True)

    except requests.HTTPError as http_err:
        st.error(f"API error: {http_err.response.status_code} — {http_err.response.text[:400]}")
    except Exception as e:
        st.error(f"Unexpected error: {e}")
