"""
Line OEE Analyzer
=================
Reads a production-line document (shifts + downtime events), computes
OEE for all shifts or a single shift, compares it with the previous
period, and writes the JSON export artifact (optionally an Excel
workbook alongside it).

Usage:
  python analyze.py production_data.json
  python analyze.py production_data.json --shift shift-2 --excel
"""

import argparse
import json
import os
import sys
from datetime import datetime, timezone

import pandas as pd

from comparison import classify_status, compare, status_label, trend_indicator
from downtime_analysis import (
    breakdown_frame,
    downtime_breakdown,
    downtime_by_type,
    top_downtime_reasons,
)
from oee_metrics import compute_metrics, compute_metrics_by_shift
from parse_production import load_production_data
from production_model import events_frame
from shared import (
    ALL_SHIFTS,
    ALL_SHIFTS_LABEL,
    DEFAULT_DATA_FILE,
    STATUS_ACCEPTABLE,
    STATUS_WORLD_CLASS,
    format_duration,
    format_number,
    format_oee_percentage,
    format_percentage_change,
)
from view_selector import MetricsCache, select_view


# ---------------------------------------------------------------------------
# Main Analysis
# ---------------------------------------------------------------------------
def analyze(data, shift_filter=ALL_SHIFTS):
    """Everything the dashboard shows for one selection.

    Keys: view, metrics, comparison, top_downtime, downtime_breakdown,
    downtime_by_type, shift_metrics, status. Thresholds come from the
    document metadata (0.85 / 0.65 when the document omits them).
    """
    cycle = data.production_line.target_cycle_time
    view = select_view(data, shift_filter)

    metrics = compute_metrics(view.shifts, view.downtime_events, cycle)
    world_class = data.metadata.world_class_oee_target
    minimum = data.metadata.minimum_acceptable_oee
    status = classify_status(metrics.oee, world_class, minimum)

    return {
        "view": view,
        "metrics": metrics,
        "comparison": compare(metrics, data.previous_period),
        "top_downtime": top_downtime_reasons(view.downtime_events, 3),
        "downtime_breakdown": downtime_breakdown(view.downtime_events),
        "downtime_by_type": downtime_by_type(view.downtime_events),
        "shift_metrics": compute_metrics_by_shift(data.shifts, data.downtime_events, cycle),
        "status": {
            "worldClassTarget": world_class,
            "minimumAcceptable": minimum,
            "isWorldClass": status == STATUS_WORLD_CLASS,
            "isAcceptable": status in (STATUS_WORLD_CLASS, STATUS_ACCEPTABLE),
            "status": status,
        },
    }


_cache = MetricsCache()


def analyze_cached(data, shift_filter=ALL_SHIFTS):
    """analyze() memoized per (document, selection)."""
    return _cache.get(data, shift_filter, analyze)


# ---------------------------------------------------------------------------
# Export artifact
# ---------------------------------------------------------------------------
def _period_label(shift_filter, view):
    if shift_filter == ALL_SHIFTS:
        return ALL_SHIFTS_LABEL
    return view.shifts[0].name if view.shifts else None


def build_export(data, shift_filter, view, metrics, now=None):
    """The export document for one selection."""
    now = now or datetime.now(timezone.utc)
    return {
        "period": _period_label(shift_filter, view),
        "date": now.isoformat(),
        "productionLine": data.production_line.to_record(),
        "metrics": metrics.to_record(),
        "shifts": [s.to_record() for s in view.shifts],
        "downtimeEvents": [e.to_record() for e in view.downtime_events],
    }


def export_filename(shift_filter, now=None):
    now = now or datetime.now(timezone.utc)
    millis = int(now.timestamp() * 1000)
    return f"oee-report-{shift_filter}-{millis}.json"


def export_json(export):
    return json.dumps(export, indent=2)


def write_export(export, output_dir, shift_filter, now=None):
    output_path = os.path.join(output_dir, export_filename(shift_filter, now))
    print(f"Writing: {output_path}")
    with open(output_path, "w", encoding="utf-8") as f:
        f.write(export_json(export))
    return output_path


# ---------------------------------------------------------------------------
# Excel workbook
# ---------------------------------------------------------------------------
def build_report_frames(data, results):
    """Sheet name -> DataFrame for the analysis workbook."""
    metrics = results["metrics"]
    comparison = results["comparison"]
    frames = {}

    summary = [
        ("OEE", format_oee_percentage(metrics.oee), format_percentage_change(comparison.oee.delta)),
        ("Availability", format_oee_percentage(metrics.availability),
         format_percentage_change(comparison.availability.delta)),
        ("Performance", format_oee_percentage(metrics.performance),
         format_percentage_change(comparison.performance.delta)),
        ("Quality", format_oee_percentage(metrics.quality),
         format_percentage_change(comparison.quality.delta)),
        ("Status", status_label(results["status"]["status"]), ""),
        ("Planned Production Time", format_duration(metrics.planned_production_time), ""),
        ("Operating Time", format_duration(metrics.operating_time), ""),
        ("Total Downtime", format_duration(metrics.total_downtime), ""),
        ("Planned Downtime", format_duration(metrics.planned_downtime), ""),
        ("Unplanned Downtime", format_duration(metrics.unplanned_downtime), ""),
        ("Target Quantity", format_number(metrics.target_quantity), ""),
        ("Actual Quantity", format_number(metrics.actual_quantity), ""),
        ("Good Quantity", format_number(metrics.good_quantity), ""),
        ("Defect Quantity", format_number(metrics.defect_quantity), ""),
    ]
    frames["OEE Summary"] = pd.DataFrame(summary, columns=["Metric", "Value", "vs Previous"])

    prev = data.previous_period
    frames["Previous Period"] = pd.DataFrame([
        {"Metric": "OEE", "Previous": prev.total_oee * 100, "Current": metrics.oee * 100,
         "Trend": trend_indicator(comparison.oee.delta)["label"]},
        {"Metric": "Availability", "Previous": prev.availability * 100,
         "Current": metrics.availability * 100,
         "Trend": trend_indicator(comparison.availability.delta)["label"]},
        {"Metric": "Performance", "Previous": prev.performance * 100,
         "Current": metrics.performance * 100,
         "Trend": trend_indicator(comparison.performance.delta)["label"]},
        {"Metric": "Quality", "Previous": prev.quality * 100, "Current": metrics.quality * 100,
         "Trend": trend_indicator(comparison.quality.delta)["label"]},
    ])

    shift_rows = []
    for shift in data.shifts:
        m = results["shift_metrics"][shift.id]
        shift_rows.append({
            "Shift": shift.name,
            "OEE %": round(m.oee * 100, 1),
            "Availability %": round(m.availability * 100, 1),
            "Performance %": round(m.performance * 100, 1),
            "Quality %": round(m.quality * 100, 1),
            "Downtime (min)": m.total_downtime,
            "Good Units": m.good_quantity,
        })
    frames["Shift Comparison"] = pd.DataFrame(shift_rows)

    frames["Downtime Pareto"] = breakdown_frame(results["downtime_breakdown"])

    top = pd.DataFrame(results["top_downtime"], columns=["reason", "category", "duration", "type"])
    top.columns = ["Reason", "Category", "Minutes", "Type"]
    frames["Top Downtime"] = top

    events = events_frame(results["view"].downtime_events)
    events = events[["shift_id", "category", "reason", "start_time", "end_time",
                     "duration_minutes", "type"]]
    events.columns = ["Shift", "Category", "Reason", "Start", "End", "Minutes", "Type"]
    frames["Downtime Events"] = events

    return frames


# Ratio columns shade red->green, downtime columns green->red
_RATIO_COLUMNS = ("OEE %", "Availability %", "Performance %", "Quality %")
_DOWNTIME_COLUMNS = ("Downtime (min)", "Total Minutes", "Minutes")
_RED, _AMBER, _GREEN = "#F8696B", "#FFEB84", "#63BE7B"


def _shade_column(ws, df, col_name, low, high):
    col_idx = df.columns.get_loc(col_name)
    ws.conditional_format(2, col_idx, 1 + len(df), col_idx, {
        "type": "3_color_scale",
        "min_color": low, "mid_color": _AMBER, "max_color": high,
    })


def write_excel(frames, output_path, title=None):
    print(f"Writing: {output_path}")

    with pd.ExcelWriter(output_path, engine="xlsxwriter") as writer:
        workbook = writer.book
        header_fmt = workbook.add_format({
            "bold": True, "bg_color": "#1B2A4A", "font_color": "white", "border": 1,
        })
        title_fmt = workbook.add_format({"bold": True, "font_size": 14})

        for sheet_name, df in frames.items():
            df.to_excel(writer, sheet_name=sheet_name, startrow=1, index=False)
            ws = writer.sheets[sheet_name]
            ws.write(0, 0, title or sheet_name, title_fmt)
            ws.freeze_panes(2, 0)

            for col_num, col_name in enumerate(df.columns):
                ws.write(1, col_num, col_name, header_fmt)
                width = max([len(str(col_name))] + [len(str(v)) for v in df[col_name]])
                ws.set_column(col_num, col_num, min(width + 2, 50))

            if len(df) == 0:
                continue
            for col_name in df.columns:
                if col_name in _RATIO_COLUMNS:
                    _shade_column(ws, df, col_name, _RED, _GREEN)
                elif col_name in _DOWNTIME_COLUMNS:
                    _shade_column(ws, df, col_name, _GREEN, _RED)

        writer.sheets["OEE Summary"].activate()

    print(f"Done! Open: {output_path}")


# ---------------------------------------------------------------------------
# Main
# ---------------------------------------------------------------------------
def _build_parser():
    p = argparse.ArgumentParser(description="Production line OEE analyzer")
    p.add_argument("data_file", nargs="?", default=DEFAULT_DATA_FILE,
                   help="Production document (JSON)")
    p.add_argument("--shift", default=ALL_SHIFTS,
                   help=f"Shift id to analyze, or '{ALL_SHIFTS}' (default)")
    p.add_argument("--output-dir", help="Where to write the report (default: next to the data file)")
    p.add_argument("--excel", action="store_true", help="Also write an Excel workbook")
    return p


def main():
    args = _build_parser().parse_args()

    data_file = os.path.abspath(args.data_file)
    if not os.path.exists(data_file):
        print(f"Error: production data file not found: {data_file}")
        sys.exit(1)

    try:
        data, warnings = load_production_data(data_file)
    except ValueError as e:
        print(f"Error: {e}")
        sys.exit(1)

    for w in warnings:
        print(f"Warning: {w}")

    results = analyze(data, args.shift)
    view = results["view"]
    if view.is_empty:
        print(f"Warning: shift '{args.shift}' not found; nothing selected.")

    metrics = results["metrics"]
    output_dir = os.path.abspath(args.output_dir or os.path.dirname(data_file))
    now = datetime.now(timezone.utc)
    export = build_export(data, args.shift, view, metrics, now)
    output_path = write_export(export, output_dir, args.shift, now)

    if args.excel:
        basename = os.path.splitext(os.path.basename(output_path))[0]
        write_excel(build_report_frames(data, results),
                    os.path.join(output_dir, f"{basename}.xlsx"),
                    title=f"{data.production_line.name} — {export['period']}")

    # Console summary
    comparison = results["comparison"]
    print("\n" + "=" * 60)
    print(f"OEE SUMMARY — {data.production_line.name} ({export['period']})")
    print("=" * 60)
    print(f"  OEE:          {format_oee_percentage(metrics.oee)}  "
          f"({format_percentage_change(comparison.oee.delta)} vs previous)  "
          f"[{status_label(results['status']['status'])}]")
    print(f"  Availability: {format_oee_percentage(metrics.availability)}")
    print(f"  Performance:  {format_oee_percentage(metrics.performance)}")
    print(f"  Quality:      {format_oee_percentage(metrics.quality)}")
    print(f"  Downtime:     {format_duration(metrics.total_downtime)} "
          f"(planned {format_duration(metrics.planned_downtime)}, "
          f"unplanned {format_duration(metrics.unplanned_downtime)})")

    if results["top_downtime"]:
        print("\nTOP DOWNTIME:")
        for item in results["top_downtime"]:
            print(f"  {item['reason']} [{item['category']}, {item['type']}]: "
                  f"{format_duration(item['duration'])}")

    if results["downtime_breakdown"]:
        print("\nDOWNTIME PARETO:")
        for b in results["downtime_breakdown"]:
            print(f"  {b.category} [{b.type}]: {b.total_minutes:,.0f} min / "
                  f"{b.event_count} events ({b.percentage:.1f}%)")

    print(f"\nExport: {output_path}")


if __name__ == "__main__":
    main()
