import pandas as pd
import streamlit as st
from contextlib import contextmanager
from typing import Dict, List, Optional

from trendboard.data import category_options, slot_options
from trendboard.export import export_filename, export_rows, export_scope_options, export_workbook, select_export_trends
from trendboard.filters import ALL, normalize_export_scope, normalize_filters
from trendboard.formatting import format_avg_score
from trendboard.metrics_groups import compute_groups, toggle_expanded
from trendboard.metrics_overview import compute_overview
from trendboard.metrics_sources import compute_sources
from trendboard.store import dashboard_context, load_dashboard_data

GROUP_LABELS = {"week": "Woche", "day": "Tag", "month": "Monat"}
TONE_COLORS = {"high": "#fda4af", "good": "#6ee7b7", "medium": "#fcd34d", "low": "#d4d4d8", "none": "#a1a1aa"}


# ---------- UI / layout helpers ----------
def inject_base_styles():
    if st.session_state.get("_base_css_injected"):
        return
    st.markdown(
        """
        <style>
        .app-top-bar {padding: 6px 0 4px;border-bottom: 1px solid #27272a;margin-bottom: 10px;}
        .app-top-bar .breadcrumb {color: #a1a1aa;font-size: 0.9rem;margin-bottom: 2px;}
        .app-top-bar .page-title {font-size: 1.4rem;font-weight: 700;}
        .chip-row {display: flex;flex-wrap: wrap;gap: 6px;margin-top: 6px;}
        .chip {background: #27272a;border: 1px solid #3f3f46;border-radius: 14px;padding: 4px 10px;font-size: 0.85rem;}
        .score {font-weight: 600;font-size: 0.85rem;}
        </style>
        """,
        unsafe_allow_html=True,
    )
    st.session_state["_base_css_injected"] = True


@contextmanager
def card(title: str):
    container = st.container(border=True)
    container.markdown(f"**{title}**")
    with container:
        yield container


def format_filter_summary(slot_label: str, category: str, min_score: float, query: str) -> str:
    chips = [
        f"Zeitraum: {slot_label}",
        "Kategorie: Alle" if category == ALL else f"Kategorie: {category}",
        f"Score ≥ {min_score:.2f}",
    ]
    if query:
        chips.append(f"Suche: {query}")
    return "".join([f"<span class='chip'>{txt}</span>" for txt in chips])


def render_page_header(title: str, breadcrumb: str, filter_summary_html: str, current_week: int, previous_week: int):
    inject_base_styles()
    c1, c2 = st.columns([6, 2])
    with c1:
        st.markdown(
            f"<div class='app-top-bar'><div class='breadcrumb'>{breadcrumb}</div><div class='page-title'>{title}</div></div>",
            unsafe_allow_html=True,
        )
    with c2:
        st.caption(f"Aktuelle KW: **KW {current_week}** · Letzte KW: **KW {previous_week}**")
        if st.button("Aktualisieren"):
            load_dashboard_data(force=True)
            st.rerun()
    st.markdown(f"<div class='chip-row'>{filter_summary_html}</div>", unsafe_allow_html=True)


def render_trend(card_data: Dict, key_prefix: str):
    tone = TONE_COLORS.get(card_data["score_tone"], TONE_COLORS["none"])
    header = st.columns([8, 2, 1])
    header[0].markdown(f"**{card_data['title']}**  \n`{card_data['category_label']}`")
    header[1].markdown(f"<span class='score' style='color:{tone}'>{card_data['score_display']}</span>", unsafe_allow_html=True)
    record_id = card_data.get("id")
    if header[2].button("−" if card_data["expanded"] else "+", key=f"{key_prefix}-{record_id}"):
        st.session_state["expanded"] = toggle_expanded(st.session_state.get("expanded", {}), record_id)
        st.rerun()
    if card_data["expanded"]:
        if card_data.get("summary"):
            st.write(card_data["summary"])
        if card_data.get("spotify_impact"):
            st.info(card_data["spotify_impact"])
        if card_data.get("url"):
            st.markdown(f"[Quelle öffnen]({card_data['url']})")
    elif card_data["preview"]:
        st.caption(card_data["preview"])


def render_kpis(kpis: Dict):
    cols = st.columns(4)
    cols[0].metric("Trends", f"{kpis['count']:,}")
    cols[1].metric("Ø Score", format_avg_score(kpis["avg_score"]))
    cols[2].metric("High Priority", f"{kpis['high_priority']:,}", help="Score ≥ 0.80")
    cols[3].metric("Top-Kategorie", kpis["top_category"])


# ---------- UI setup ----------
st.set_page_config(page_title="Trend Dashboard", layout="wide")
inject_base_styles()
st.session_state.setdefault("expanded", {})

data_ctx = load_dashboard_data()
trends: pd.DataFrame = data_ctx["trends"]

# ----- Sidebar: filters -----
with st.sidebar:
    st.markdown("### Filter")
    group_by = st.radio("Gruppieren nach", list(GROUP_LABELS), format_func=GROUP_LABELS.get, horizontal=True)
    slots = slot_options(trends, group_by)
    slot_labels = {s["key"]: s["label"] for s in slots}
    selected_slot = st.selectbox(
        "Zeitraum",
        [ALL] + [s["key"] for s in slots],
        format_func=lambda k: "Alle" if k == ALL else slot_labels.get(k, k),
    )
    categories: List[str] = category_options(trends)
    selected_category = st.selectbox("Kategorie", [ALL] + categories, format_func=lambda c: "Alle" if c == ALL else c)
    min_score = st.slider("Min. Score", 0.0, 1.0, 0.0, 0.05)
    query = st.text_input("Suche", "")

    st.markdown("---")
    st.markdown("### Export")
    scope_options = export_scope_options(trends)
    scope_kind = st.radio("Umfang", ["all", "month", "week"], format_func={"all": "Alle", "month": "Monat", "week": "KW"}.get)
    scope_value: Optional[object] = None
    if scope_kind == "month" and scope_options["months"]:
        scope_value = st.selectbox("Monat", scope_options["months"])
    elif scope_kind == "week" and scope_options["weeks"]:
        scope_value = st.selectbox("KW", scope_options["weeks"], format_func=lambda w: f"KW {w}")
    export_scope = normalize_export_scope({"scope": scope_kind, scope_kind: scope_value})
    selected_export = select_export_trends(trends, export_scope)
    st.download_button(
        f"Excel exportieren ({len(selected_export)})",
        data=export_workbook(export_rows(selected_export)),
        file_name=export_filename(export_scope),
        mime="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
        disabled=selected_export.empty,
    )

filters = normalize_filters(
    {
        "group_by": group_by,
        "selected_slot": selected_slot,
        "selected_category": selected_category,
        "min_score": min_score,
        "query": query,
    }
)
ctx = dashboard_context(filters)
overview = compute_overview(filters, ctx)

render_page_header(
    "Trend Dashboard",
    "Trends / Übersicht",
    format_filter_summary(
        "Alle" if filters.selected_slot == ALL else slot_labels.get(filters.selected_slot, filters.selected_slot),
        filters.selected_category,
        filters.min_score,
        filters.query,
    ),
    overview["current_week"],
    overview["previous_week"],
)

if data_ctx.get("error"):
    st.error(data_ctx["error"])

with card("Kennzahlen"):
    render_kpis(overview["kpis"])

chart_cols = st.columns(2)
with chart_cols[0]:
    with card("Kategorien"):
        if not overview["kpis"]["category_histogram"]:
            st.info("Keine Kategorien im aktuellen Filter.")
        else:
            st.vega_lite_chart(overview["charts"]["category_bars"], use_container_width=True)
with chart_cols[1]:
    with card(f"Score-Verteilung ({overview['distribution']['total']})"):
        st.vega_lite_chart(overview["charts"]["score_donut"], use_container_width=True)

by_source = st.toggle("Nach Quelle gruppieren", value=False)
if by_source:
    payload = compute_sources(filters, ctx)
    if not payload["clustered"]:
        st.caption("Bei aktiver Suche oder Kategorie wird nicht nach Quelle gruppiert.")
else:
    payload = compute_groups(filters, ctx, expanded=st.session_state["expanded"])

if not payload["groups"]:
    st.info("Keine Trends für die aktuelle Auswahl.")

for group in payload["groups"]:
    with card(f"{group['label']} · {group['count']} Trends"):
        if group.get("clusters"):
            for cluster in group["clusters"]:
                title = f"{cluster['source']} ({cluster['count']}) · Ø {format_avg_score(cluster['avg_score'])} · {cluster['top_category']}"
                with st.expander(title, expanded=cluster["expanded"]):
                    for item in cluster["items"]:
                        item["expanded"] = bool(st.session_state["expanded"].get(str(item.get("id"))))
                        render_trend(item, f"{group['key']}-{cluster['source']}")
        else:
            for item in group["items"]:
                item["expanded"] = bool(st.session_state["expanded"].get(str(item.get("id"))))
                render_trend(item, group["key"])
