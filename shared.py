"""
Shared constants and utilities for the Line OEE Dashboard
==========================================================
Single source of truth for OEE thresholds, the view-selection sentinel,
downtime types, default paths, and the display formatters used across
analyze.py, streamlit_app.py and the report writers.
"""

import os

import numpy as np
import pandas as pd

# ---------------------------------------------------------------------------
# Paths
# ---------------------------------------------------------------------------
_DIR = os.path.dirname(os.path.abspath(__file__))
DEFAULT_DATA_FILE = os.path.join(_DIR, "production_data.json")

# ---------------------------------------------------------------------------
# View selection: "all" means every shift in the document
# ---------------------------------------------------------------------------
ALL_SHIFTS = "all"
ALL_SHIFTS_LABEL = "All Shifts"

# ---------------------------------------------------------------------------
# OEE thresholds (fractions of 1), used when metadata doesn't carry them
# ---------------------------------------------------------------------------
WORLD_CLASS_OEE = 0.85
MINIMUM_ACCEPTABLE_OEE = 0.65

STATUS_WORLD_CLASS = "world-class"
STATUS_ACCEPTABLE = "acceptable"
STATUS_NEEDS_ATTENTION = "needs-attention"

STATUS_LABELS = {
    STATUS_WORLD_CLASS: "World-Class",
    STATUS_ACCEPTABLE: "Acceptable",
    STATUS_NEEDS_ATTENTION: "Needs Attention",
}

# Deltas within this band count as "unchanged" (0.1 percentage points)
TREND_TOLERANCE = 0.001

# ---------------------------------------------------------------------------
# Downtime
# ---------------------------------------------------------------------------
PLANNED = "planned"
UNPLANNED = "unplanned"
MIXED = "mixed"
DOWNTIME_TYPES = (PLANNED, UNPLANNED)

# Stored durations may drift from end - start by rounding; flag anything wider
DURATION_TOLERANCE_MINUTES = 1.0


# ---------------------------------------------------------------------------
# Display formatters: fractions in, strings out
# ---------------------------------------------------------------------------
def _is_bad_number(value):
    if value is None:
        return True
    try:
        return not np.isfinite(float(value))
    except (TypeError, ValueError):
        return True


def format_oee_percentage(value, decimals=1):
    """0.753 -> '75.3%'. NaN / non-finite render as '0.0%'."""
    if _is_bad_number(value):
        return "0.0%"
    return f"{float(value) * 100:.{decimals}f}%"


def format_percentage_change(delta, decimals=1):
    """Signed change: 0.053 -> '+5.3%', -0.021 -> '-2.1%'."""
    if _is_bad_number(delta):
        return "0.0%"
    pct = float(delta) * 100
    sign = "+" if pct > 0 else ""
    return f"{sign}{pct:.{decimals}f}%"


def format_duration(minutes):
    """135 -> '2h 15m', 45 -> '45m', 60 -> '1h'. Negative / NaN -> '0m'."""
    if _is_bad_number(minutes) or minutes < 0:
        return "0m"
    hours = int(minutes // 60)
    mins = int(round(minutes % 60))
    if mins == 60:
        hours, mins = hours + 1, 0
    if hours == 0:
        return f"{mins}m"
    if mins == 0:
        return f"{hours}h"
    return f"{hours}h {mins}m"


def format_number(value):
    """1234 -> '1,234'."""
    if _is_bad_number(value):
        return "0"
    return f"{round(float(value)):,.0f}"


def format_production_rate(rate):
    if _is_bad_number(rate):
        return "0.0 parts/hr"
    return f"{float(rate):.1f} parts/hr"


def parse_timestamp(value):
    """ISO-8601 string -> pd.Timestamp, NaT when missing or unparseable."""
    if value is None or value == "":
        return pd.NaT
    return pd.to_datetime(value, errors="coerce", utc=True)
