"""
Line OEE Dashboard — Web Interface
===================================
Pick a shift (or all shifts), see OEE against the previous period,
downtime Pareto and shift timelines, and export the report.

Usage:
  streamlit run streamlit_app.py
"""

import json
import os
import shutil
import tempfile
from datetime import datetime, timezone

import altair as alt
import pandas as pd
import streamlit as st

from analyze import (
    analyze_cached,
    build_export,
    build_report_frames,
    export_filename,
    export_json,
    write_excel,
)
from comparison import metric_delta, status_label
from downtime_analysis import breakdown_frame, build_shift_timeline
from oee_metrics import production_rate
from parse_production import document_key, load_production_data, parse_production_data
from shared import (
    ALL_SHIFTS,
    ALL_SHIFTS_LABEL,
    DEFAULT_DATA_FILE,
    format_duration,
    format_number,
    format_oee_percentage,
    format_production_rate,
)

SEGMENT_COLORS = {
    "production": "#3B82F6",
    "planned": "#22C55E",
    "unplanned": "#EF4444",
}

st.set_page_config(
    page_title="Line OEE Dashboard",
    page_icon="🏭",
    layout="wide",
)

st.title("Production Line OEE Dashboard")

# --- Data source ---
uploaded = st.sidebar.file_uploader(
    "Production data (JSON) — optional",
    type=["json"],
    help="Leave empty to use the bundled sample document",
)

# Load once per source so the same document object survives reruns;
# uploads are keyed on content so a corrected re-upload reloads
raw = uploaded.getvalue() if uploaded is not None else None
source_key = document_key(raw) if raw is not None else DEFAULT_DATA_FILE
if st.session_state.get("source_key") != source_key:
    try:
        if raw is not None:
            loaded = parse_production_data(json.loads(raw))
        else:
            loaded = load_production_data(DEFAULT_DATA_FILE)
    except (ValueError, json.JSONDecodeError) as e:
        st.error(f"Could not load production data: {e}")
        st.stop()
    st.session_state["source_key"] = source_key
    st.session_state["loaded"] = loaded

data, warnings = st.session_state["loaded"]

for w in warnings:
    st.sidebar.warning(w)

meta = data.metadata
st.markdown(f"**{data.production_line.name}** ({meta.site}) — {meta.report_date}")

# --- Shift selector ---
options = [ALL_SHIFTS] + [s.id for s in data.shifts]
labels = {ALL_SHIFTS: ALL_SHIFTS_LABEL, **{s.id: s.name for s in data.shifts}}
selected = st.radio(
    "Shift",
    options,
    format_func=lambda k: labels[k],
    horizontal=True,
)

results = analyze_cached(data, selected)
view = results["view"]
metrics = results["metrics"]
comparison = results["comparison"]
status = results["status"]

# --- OEE tiles ---
st.markdown("---")
cols = st.columns(4)
tiles = [
    ("OEE", metrics.oee, comparison.oee.delta),
    ("Availability", metrics.availability, comparison.availability.delta),
    ("Performance", metrics.performance, comparison.performance.delta),
    ("Quality", metrics.quality, comparison.quality.delta),
]
for col, (title, value, delta) in zip(cols, tiles):
    delta_text, delta_color = metric_delta(delta)
    col.metric(title, format_oee_percentage(value), delta_text, delta_color=delta_color)

status_text = status_label(status["status"])
if status["isWorldClass"]:
    st.success(f"{status_text} — OEE at or above {format_oee_percentage(status['worldClassTarget'])}")
elif status["isAcceptable"]:
    st.warning(f"{status_text} — OEE between {format_oee_percentage(status['minimumAcceptable'])} "
               f"and {format_oee_percentage(status['worldClassTarget'])}")
else:
    st.error(f"{status_text} — OEE below {format_oee_percentage(status['minimumAcceptable'])}")

# --- Production summary ---
st.subheader("Production Summary")
c1, c2, c3, c4 = st.columns(4)
c1.metric("Good / Actual", f"{format_number(metrics.good_quantity)} / {format_number(metrics.actual_quantity)}")
c2.metric("Defects", format_number(metrics.defect_quantity))
c3.metric("Downtime", format_duration(metrics.total_downtime),
          f"planned {format_duration(metrics.planned_downtime)}", delta_color="off")
c4.metric("Rate", format_production_rate(production_rate(metrics.actual_quantity, metrics.operating_time)))

# --- Shift timelines ---
st.subheader("Shift Timeline")
timeline_shifts = data.shifts if selected == ALL_SHIFTS else view.shifts
timeline_rows = []
for shift in timeline_shifts:
    for seg in build_shift_timeline(shift, data.downtime_events):
        timeline_rows.append({
            "shift": shift.name,
            "type": seg.type,
            "start": seg.start,
            "end": seg.start + seg.duration,
            "minutes": seg.duration,
            "category": seg.label or "",
            "reason": seg.reason or "",
        })

if timeline_rows:
    timeline_df = pd.DataFrame(timeline_rows)
    timeline_chart = alt.Chart(timeline_df).mark_bar().encode(
        x=alt.X("start:Q", title="Minutes from shift start"),
        x2="end:Q",
        y=alt.Y("shift:N", title=""),
        color=alt.Color(
            "type:N",
            title="Segment",
            scale=alt.Scale(domain=list(SEGMENT_COLORS), range=list(SEGMENT_COLORS.values())),
        ),
        tooltip=[
            alt.Tooltip("type:N", title="Segment"),
            alt.Tooltip("minutes:Q", title="Minutes", format=",.0f"),
            alt.Tooltip("category:N", title="Category"),
            alt.Tooltip("reason:N", title="Reason"),
        ],
    ).properties(height=60 * len(timeline_shifts))
    st.altair_chart(timeline_chart, use_container_width=True)
else:
    st.info("No shift selected.")

# --- Downtime analysis ---
left, right = st.columns(2)

with left:
    st.subheader("Top Downtime Reasons")
    if results["top_downtime"]:
        for i, item in enumerate(results["top_downtime"], start=1):
            st.markdown(f"**#{i}** {item['reason']} — {format_duration(item['duration'])} "
                        f"*({item['category']}, {item['type']})*")
    else:
        st.caption("No downtime recorded.")

with right:
    st.subheader("Downtime by Category")
    pareto = breakdown_frame(results["downtime_breakdown"])
    if len(pareto) > 0:
        pareto_chart = alt.Chart(pareto).mark_bar().encode(
            x=alt.X("Total Minutes:Q", title="Total Minutes"),
            y=alt.Y("Category:N", sort="-x", title=""),
            color=alt.Color(
                "Type:N",
                scale=alt.Scale(
                    domain=["planned", "unplanned", "mixed"],
                    range=["#22C55E", "#EF4444", "#F59E0B"],
                ),
            ),
            tooltip=[
                alt.Tooltip("Category:N"),
                alt.Tooltip("Total Minutes:Q", format=",.0f"),
                alt.Tooltip("Events:Q"),
                alt.Tooltip("% of Total:Q", format=".1f"),
            ],
        )
        st.altair_chart(pareto_chart, use_container_width=True)
        st.dataframe(pareto, use_container_width=True, hide_index=True)
    else:
        st.caption("No downtime recorded.")

# --- Export ---
st.markdown("---")
now = datetime.now(timezone.utc)
export = build_export(data, selected, view, metrics, now)
e1, e2 = st.columns(2)
e1.download_button(
    label="Export Report (JSON)",
    data=export_json(export),
    file_name=export_filename(selected, now),
    mime="application/json",
    use_container_width=True,
)

tmp_dir = tempfile.mkdtemp()
try:
    xlsx_name = os.path.splitext(export_filename(selected, now))[0] + ".xlsx"
    xlsx_path = os.path.join(tmp_dir, xlsx_name)
    write_excel(build_report_frames(data, results), xlsx_path,
                title=f"{data.production_line.name} — {export['period']}")
    with open(xlsx_path, "rb") as f:
        xlsx_bytes = f.read()
finally:
    shutil.rmtree(tmp_dir, ignore_errors=True)

e2.download_button(
    label="Export Workbook (Excel)",
    data=xlsx_bytes,
    file_name=xlsx_name,
    mime="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    use_container_width=True,
)
