"""
Loader for production-line OEE documents.
Converts the JSON document (productionLine, shifts, downtimeEvents,
previousPeriod, metadata) into the records used by the metrics engine.

Document shape (camelCase keys):
  productionLine:  {id, name, targetCycleTime (sec), description}
  shifts:          [{id, name, startTime, endTime, plannedProductionTime (min),
                     targetQuantity, actualQuantity, goodQuantity, defectQuantity}]
  downtimeEvents:  [{id, shiftId, category, reason, startTime, endTime,
                     durationMinutes, type: planned|unplanned}]
  previousPeriod:  {description, totalOEE, availability, performance, quality}
  metadata:        {site, department, reportDate,
                     worldClassOEETarget, minimumAcceptableOEE}

The stored durationMinutes is what the engine uses. It is checked against
endTime - startTime here and mismatches come back as warnings.
"""

import hashlib
import json

import pandas as pd

from production_model import (
    DowntimeEvent,
    Metadata,
    PreviousPeriod,
    ProductionData,
    ProductionLine,
    Shift,
)
from shared import (
    DOWNTIME_TYPES,
    DURATION_TOLERANCE_MINUTES,
    MINIMUM_ACCEPTABLE_OEE,
    WORLD_CLASS_OEE,
    parse_timestamp,
)

REQUIRED_SECTIONS = ["productionLine", "shifts", "downtimeEvents"]

_SHIFT_NUMERIC = [
    "plannedProductionTime", "targetQuantity", "actualQuantity",
    "goodQuantity", "defectQuantity",
]
_EVENT_NUMERIC = ["durationMinutes"]
_PREVIOUS_NUMERIC = ["totalOEE", "availability", "performance", "quality"]
_QUANTITY_COLUMNS = ["targetQuantity", "actualQuantity", "goodQuantity", "defectQuantity"]
_THRESHOLDS = {"worldClassOEETarget": WORLD_CLASS_OEE, "minimumAcceptableOEE": MINIMUM_ACCEPTABLE_OEE}


def _coerce_numerics(records, columns):
    """Numeric fields -> numbers; missing or unparseable values become 0."""
    df = pd.DataFrame(records)
    for col in columns:
        if col in df.columns:
            df[col] = pd.to_numeric(df[col], errors="coerce").fillna(0)
        else:
            df[col] = 0
    # object dtype so NaN in text columns turns back into None
    df = df.astype(object).where(df.notna(), None)
    return df.to_dict("records")


def _coerce_mapping(rec, columns):
    out = dict(rec)
    for col in columns:
        if col in out:
            val = pd.to_numeric(out[col], errors="coerce")
            out[col] = 0.0 if pd.isna(val) else float(val)
    return out


def _check_durations(events):
    """Warnings for events whose stored duration disagrees with end - start."""
    warnings = []
    for e in events:
        start = parse_timestamp(e.start_time)
        end = parse_timestamp(e.end_time)
        if pd.isna(start) or pd.isna(end):
            continue
        elapsed = (end - start).total_seconds() / 60.0
        if abs(elapsed - e.duration_minutes) > DURATION_TOLERANCE_MINUTES:
            warnings.append(
                f"Downtime event {e.id}: durationMinutes={e.duration_minutes:g} "
                f"but endTime - startTime = {elapsed:g} min; using durationMinutes."
            )
    return warnings


def _check_whole_quantities(shift_records):
    """Warnings for unit counts with a fractional part (they get rounded)."""
    warnings = []
    for rec in shift_records:
        for col in _QUANTITY_COLUMNS:
            val = float(rec[col])
            if val != round(val):
                warnings.append(
                    f"Shift {rec.get('id')}: {col}={val:g} is not a whole number; "
                    f"using {round(val)}."
                )
    return warnings


def _coerce_thresholds(rec, warnings):
    """Metadata with numeric thresholds; unparseable ones fall back to defaults."""
    out = dict(rec)
    for key, default in _THRESHOLDS.items():
        if out.get(key) is None:
            continue
        val = pd.to_numeric(out[key], errors="coerce")
        if pd.isna(val):
            warnings.append(f"metadata.{key}={out[key]!r} is not a number; using {default:g}.")
            del out[key]
        else:
            out[key] = float(val)
    return out


def document_key(raw):
    """Content hash of a raw document, for caching loads across reruns."""
    return hashlib.sha256(raw).hexdigest()


def parse_production_data(doc):
    """Build ProductionData from an already-parsed document.

    Returns (data, warnings). Raises ValueError when a required section is
    missing or a downtime event has an unknown type.
    """
    if not isinstance(doc, dict):
        raise ValueError("Production document must be a JSON object")

    missing = [s for s in REQUIRED_SECTIONS if s not in doc]
    if missing:
        raise ValueError(f"Production document missing required sections: {', '.join(missing)}")

    warnings = []

    line_rec = _coerce_mapping(doc["productionLine"] or {}, ["targetCycleTime"])
    line = ProductionLine.from_record(line_rec)
    if line.target_cycle_time <= 0:
        warnings.append("productionLine.targetCycleTime is not positive; performance will read 0.")

    shift_records = _coerce_numerics(doc["shifts"] or [], _SHIFT_NUMERIC)
    warnings.extend(_check_whole_quantities(shift_records))
    shifts = tuple(Shift.from_record(r) for r in shift_records)
    events = tuple(
        DowntimeEvent.from_record(r)
        for r in _coerce_numerics(doc["downtimeEvents"] or [], _EVENT_NUMERIC)
    )

    bad_types = sorted({e.type for e in events if e.type not in DOWNTIME_TYPES})
    if bad_types:
        raise ValueError(
            f"Unknown downtime type(s): {', '.join(bad_types)} "
            f"(expected one of: {', '.join(DOWNTIME_TYPES)})"
        )

    for s in shifts:
        if s.good_quantity + s.defect_quantity > s.actual_quantity:
            warnings.append(
                f"Shift {s.id}: good + defect ({s.good_quantity + s.defect_quantity}) "
                f"exceeds actual ({s.actual_quantity})."
            )

    shift_ids = {s.id for s in shifts}
    for e in events:
        if e.shift_id not in shift_ids:
            warnings.append(f"Downtime event {e.id} references unknown shift {e.shift_id}.")

    warnings.extend(_check_durations(events))

    previous = PreviousPeriod.from_record(
        _coerce_mapping(doc.get("previousPeriod") or {}, _PREVIOUS_NUMERIC)
    )
    metadata = Metadata.from_record(_coerce_thresholds(doc.get("metadata") or {}, warnings))

    data = ProductionData(
        production_line=line,
        shifts=shifts,
        downtime_events=events,
        previous_period=previous,
        metadata=metadata,
    )
    return data, warnings


def load_production_data(json_path):
    """Read a production document from disk. Returns (data, warnings)."""
    print(f"Reading production data: {json_path}")
    with open(json_path, "r", encoding="utf-8") as f:
        doc = json.load(f)

    data, warnings = parse_production_data(doc)
    print(f"  {len(data.shifts)} shifts, {len(data.downtime_events)} downtime events, "
          f"{len(warnings)} warnings")
    return data, warnings
