"""
OEE Metrics Engine
==================
Availability / Performance / Quality / OEE from shift and downtime records.

All four ratios are fractions of 1. Totals are summed first and the ratios
taken from the totals, never averaged across shifts. Degenerate input
(no shifts, zero planned time, zero output) resolves to 0.0, never NaN.
"""

import numpy as np

from production_model import OEEMetrics, events_frame, shifts_frame
from shared import PLANNED


def _ratio(numerator, denominator):
    """numerator / denominator clipped into [0, 1]; 0.0 when denominator <= 0."""
    if not denominator > 0:
        return 0.0
    value = numerator / denominator
    if not np.isfinite(value):
        return 0.0
    return float(np.clip(value, 0.0, 1.0))


def compute_metrics(shifts, downtime_events, target_cycle_time_seconds):
    """Aggregate OEE over a set of shifts.

    Every event in ``downtime_events`` counts; narrow the events to the
    selected shifts before calling (see view_selector.select_view).
    """
    sf = shifts_frame(shifts)
    ef = events_frame(downtime_events)

    planned_time = float(sf["planned_production_time"].sum())
    target_qty = int(sf["target_quantity"].sum())
    actual_qty = int(sf["actual_quantity"].sum())
    good_qty = int(sf["good_quantity"].sum())
    defect_qty = int(sf["defect_quantity"].sum())

    total_downtime = float(ef["duration_minutes"].sum())
    planned_downtime = float(ef.loc[ef["type"] == PLANNED, "duration_minutes"].sum())
    unplanned_downtime = total_downtime - planned_downtime

    # Availability = Operating Time / Planned Production Time
    operating_time = planned_time - total_downtime
    availability = _ratio(operating_time, planned_time)

    # Performance = Ideal Run Time / Operating Time, capped at 100%
    ideal_run_time = actual_qty * (target_cycle_time_seconds / 60.0)
    performance = _ratio(ideal_run_time, operating_time)

    # Quality = Good / Actual
    quality = _ratio(good_qty, actual_qty)

    oee = availability * performance * quality

    return OEEMetrics(
        availability=availability,
        performance=performance,
        quality=quality,
        oee=oee,
        total_downtime=total_downtime,
        planned_downtime=planned_downtime,
        unplanned_downtime=unplanned_downtime,
        operating_time=operating_time,
        target_quantity=target_qty,
        actual_quantity=actual_qty,
        good_quantity=good_qty,
        defect_quantity=defect_qty,
        planned_production_time=planned_time,
    )


def compute_shift_metrics(shift, downtime_events, target_cycle_time_seconds):
    """OEE for one shift, counting only that shift's downtime events."""
    own_events = [e for e in downtime_events if e.shift_id == shift.id]
    return compute_metrics([shift], own_events, target_cycle_time_seconds)


def compute_metrics_by_shift(shifts, downtime_events, target_cycle_time_seconds):
    """{shift_id: OEEMetrics} for every shift, in shift order."""
    return {
        s.id: compute_shift_metrics(s, downtime_events, target_cycle_time_seconds)
        for s in shifts
    }


def production_rate(quantity, minutes):
    """Units per hour; 0.0 when no time elapsed."""
    if minutes <= 0:
        return 0.0
    return quantity / minutes * 60.0
