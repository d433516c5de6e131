"""
Comparison Engine
=================
Current-period OEE vs the previous-period snapshot, and status
classification against the world-class / minimum-acceptable thresholds.

Both sides must be fractions of 1; no scale normalization happens here.
"""

from production_model import ComparisonMetrics, MetricDelta, OEEDelta
from shared import (
    MINIMUM_ACCEPTABLE_OEE,
    STATUS_ACCEPTABLE,
    STATUS_LABELS,
    STATUS_NEEDS_ATTENTION,
    STATUS_WORLD_CLASS,
    TREND_TOLERANCE,
    WORLD_CLASS_OEE,
    format_percentage_change,
)


def compare(current, previous):
    """ComparisonMetrics for an OEEMetrics against a PreviousPeriod."""
    oee_delta = current.oee - previous.total_oee
    oee_delta_pct = oee_delta / previous.total_oee * 100 if previous.total_oee > 0 else 0.0

    return ComparisonMetrics(
        oee=OEEDelta(
            current=current.oee,
            previous=previous.total_oee,
            delta=oee_delta,
            delta_percentage=oee_delta_pct,
        ),
        availability=MetricDelta(
            current=current.availability,
            previous=previous.availability,
            delta=current.availability - previous.availability,
        ),
        performance=MetricDelta(
            current=current.performance,
            previous=previous.performance,
            delta=current.performance - previous.performance,
        ),
        quality=MetricDelta(
            current=current.quality,
            previous=previous.quality,
            delta=current.quality - previous.quality,
        ),
    )


def classify_status(oee, world_class_target=WORLD_CLASS_OEE,
                    minimum_acceptable=MINIMUM_ACCEPTABLE_OEE):
    if oee >= world_class_target:
        return STATUS_WORLD_CLASS
    if oee >= minimum_acceptable:
        return STATUS_ACCEPTABLE
    return STATUS_NEEDS_ATTENTION


def status_label(status):
    return STATUS_LABELS.get(status, "")


def trend_indicator(delta):
    """Arrow + label for a period-over-period delta (fractions of 1)."""
    if delta > TREND_TOLERANCE:
        return {"arrow": "↑", "label": "improvement"}
    if delta < -TREND_TOLERANCE:
        return {"arrow": "↓", "label": "decline"}
    return {"arrow": "→", "label": "unchanged"}


def metric_delta(delta):
    """(delta text, delta_color) for an st.metric tile.

    Streamlit draws its own arrow and colours it from the leading sign, so
    the text is the bare signed change.
    """
    color = "off" if trend_indicator(delta)["label"] == "unchanged" else "normal"
    return format_percentage_change(delta), color
