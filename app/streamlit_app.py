# app/streamlit_app.py
# Post-a-car form with the price suggestion widget.
from __future__ import annotations

import datetime as dt
import logging
import pathlib
import sys

import streamlit as st
from dotenv import load_dotenv

THIS = pathlib.Path(__file__).resolve()
ROOT = THIS.parent.parent
if str(ROOT) not in sys.path:
    sys.path.append(str(ROOT))

from app.suggestion import get_price_suggestion, load_comparables  # noqa: E402
from pricing.domain import CONDITION_ORDER  # noqa: E402
from pricing.market import load_market_config  # noqa: E402
from services.listings import ListingsSource  # noqa: E402

load_dotenv()
logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")

FUEL_TYPES = ["", "Gasoline", "Diesel", "Hybrid", "Electric"]


@st.cache_data(ttl=600, show_spinner=False)
def _comparables():
    # raises ProviderError, so failed fetches are never cached
    return ListingsSource().fetch_comparables()


class _CachedListings:
    def fetch_comparables(self):
        return _comparables()


st.set_page_config(page_title="Post a car", layout="centered")
st.title("Post a car")

market = load_market_config()
this_year = dt.date.today().year

make = st.text_input("Make")
model = st.text_input("Model")
year = st.number_input("Year", min_value=1950, max_value=this_year + 1, value=this_year, step=1)
condition = st.selectbox("Condition", list(CONDITION_ORDER.keys())[::-1], index=3)
fuel_type = st.selectbox("Fuel type", FUEL_TYPES, index=0)
description = st.text_area("Description")

values = {
    "make": make,
    "model": model,
    "year": int(year),
    "condition": condition,
    "fuel_type": fuel_type or None,
    "description": description or None,
}

# ---------------- Price suggestion ----------------
with st.spinner("Analyzing similar listings..."):
    data = load_comparables(_CachedListings())

if data is not None:
    res = get_price_suggestion(values, data, market=market)
    with st.container(border=True):
        st.markdown("**Price suggestion**")
        if res["suggested_price"] is None:
            st.caption(res["message"])
        else:
            left, right = st.columns([3, 1])
            left.write(f"Suggested: **{res['suggested_price_text']}** ({res['confidence_text']})")
            if right.button("Use suggestion"):
                st.session_state["price"] = int(res["suggested_price"])
            with st.expander("Similar listings"):
                st.dataframe(res["neighbors"], use_container_width=True)

price = st.number_input(f"Price ({market.currency_unit})", min_value=0, step=1000, key="price")

if st.button("Post listing", type="primary"):
    st.success(f"Ready to post {int(year)} {make} {model} for {market.currency_unit} {int(price):,}")
