"""
Downtime Analyzer
=================
Top-N downtime events, category Pareto breakdown, planned/unplanned split,
and per-shift timeline segments.
"""

import pandas as pd

from production_model import DowntimeBreakdown, TimelineSegment, events_frame
from shared import MIXED, PLANNED, UNPLANNED, parse_timestamp


def top_downtime_reasons(events, limit=3):
    """Longest downtime events first. Ties keep input order; input untouched."""
    ranked = sorted(events, key=lambda e: e.duration_minutes, reverse=True)
    return [
        {
            "reason": e.reason,
            "category": e.category,
            "duration": e.duration_minutes,
            "type": e.type,
        }
        for e in ranked[:max(limit, 0)]
    ]


def downtime_breakdown(events):
    """Group downtime by category for Pareto analysis.

    Categories match exactly (case-sensitive). Percentages are of all
    downtime in ``events``; 0 for every group when there is none.
    """
    df = events_frame(events)
    if len(df) == 0:
        return []

    grouped = (
        df.groupby("category", sort=False)
        .agg(
            total_minutes=("duration_minutes", "sum"),
            event_count=("id", "count"),
            type_count=("type", "nunique"),
            first_type=("type", "first"),
        )
        .reset_index()
        .sort_values("total_minutes", ascending=False, kind="stable")
        .reset_index(drop=True)
    )

    grand_total = float(grouped["total_minutes"].sum())
    if grand_total > 0:
        grouped["percentage"] = grouped["total_minutes"] / grand_total * 100
    else:
        grouped["percentage"] = 0.0
    grouped["cumulative_percentage"] = grouped["percentage"].cumsum()

    return [
        DowntimeBreakdown(
            category=str(row["category"]),
            total_minutes=float(row["total_minutes"]),
            percentage=float(row["percentage"]),
            event_count=int(row["event_count"]),
            type=str(row["first_type"]) if row["type_count"] == 1 else MIXED,
            cumulative_percentage=float(row["cumulative_percentage"]),
        )
        for _, row in grouped.iterrows()
    ]


def downtime_by_type(events):
    """Minutes of planned vs unplanned downtime."""
    df = events_frame(events)
    planned = float(df.loc[df["type"] == PLANNED, "duration_minutes"].sum())
    unplanned = float(df.loc[df["type"] == UNPLANNED, "duration_minutes"].sum())
    return {"planned": planned, "unplanned": unplanned, "total": planned + unplanned}


def breakdown_frame(breakdown):
    """Pareto table with display headers, ready for st.dataframe / Excel."""
    rows = [
        {
            "Category": b.category,
            "Type": b.type,
            "Events": b.event_count,
            "Total Minutes": b.total_minutes,
            "% of Total": round(b.percentage, 1),
            "Cumulative %": round(b.cumulative_percentage, 1),
        }
        for b in breakdown
    ]
    return pd.DataFrame(rows, columns=["Category", "Type", "Events", "Total Minutes",
                                       "% of Total", "Cumulative %"])


def _minutes_between(start, end):
    return (end - start).total_seconds() / 60.0


def build_shift_timeline(shift, events):
    """Split a shift window into production and downtime segments.

    Only events belonging to ``shift`` are placed. Events are ordered by
    start time; a production segment fills any gap before each event and
    after the last one. Offsets are minutes from the shift start.
    """
    shift_start = parse_timestamp(shift.start_time)
    shift_end = parse_timestamp(shift.end_time)
    if pd.isna(shift_start) or pd.isna(shift_end):
        return []

    own = [e for e in events if e.shift_id == shift.id and not pd.isna(parse_timestamp(e.start_time))]
    own.sort(key=lambda e: parse_timestamp(e.start_time))

    segments = []
    cursor = shift_start
    for e in own:
        event_start = parse_timestamp(e.start_time)
        event_end = parse_timestamp(e.end_time)
        if pd.isna(event_end):
            event_end = event_start + pd.Timedelta(minutes=e.duration_minutes)

        gap = _minutes_between(cursor, event_start)
        if gap > 0:
            segments.append(TimelineSegment(
                type="production",
                start=_minutes_between(shift_start, cursor),
                duration=gap,
            ))

        segments.append(TimelineSegment(
            type=e.type,
            start=_minutes_between(shift_start, event_start),
            duration=e.duration_minutes,
            label=e.category,
            reason=e.reason,
        ))
        cursor = max(cursor, event_end)

    tail = _minutes_between(cursor, shift_end)
    if tail > 0:
        segments.append(TimelineSegment(
            type="production",
            start=_minutes_between(shift_start, cursor),
            duration=tail,
        ))
    return segments
