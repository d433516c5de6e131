"""Production-line records and the derived OEE result types.

Document keys are camelCase (the shape of the input JSON and of the export
artifact); attributes are snake_case. ``from_record`` / ``to_record`` map
between the two.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field

import pandas as pd

from shared import MINIMUM_ACCEPTABLE_OEE, WORLD_CLASS_OEE


def _whole(value):
    """Unit count as int; fractional counts round to nearest instead of truncating."""
    return int(round(float(value or 0)))


# ---------------------------------------------------------------------------
# Reference / input records
# ---------------------------------------------------------------------------
@dataclass(frozen=True)
class ProductionLine:
    id: str
    name: str
    target_cycle_time: float  # seconds per unit
    description: str = ""

    @classmethod
    def from_record(cls, rec: dict) -> "ProductionLine":
        return cls(
            id=str(rec.get("id", "")),
            name=str(rec.get("name", "")),
            target_cycle_time=float(rec.get("targetCycleTime", 0) or 0),
            description=str(rec.get("description", "") or ""),
        )

    def to_record(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "targetCycleTime": self.target_cycle_time,
            "description": self.description,
        }


@dataclass(frozen=True)
class Shift:
    id: str
    name: str
    start_time: str
    end_time: str
    planned_production_time: float  # minutes
    target_quantity: int = 0
    actual_quantity: int = 0
    good_quantity: int = 0
    defect_quantity: int = 0

    @classmethod
    def from_record(cls, rec: dict) -> "Shift":
        return cls(
            id=str(rec.get("id", "")),
            name=str(rec.get("name", "")),
            start_time=str(rec.get("startTime", "") or ""),
            end_time=str(rec.get("endTime", "") or ""),
            planned_production_time=float(rec.get("plannedProductionTime", 0) or 0),
            target_quantity=_whole(rec.get("targetQuantity", 0)),
            actual_quantity=_whole(rec.get("actualQuantity", 0)),
            good_quantity=_whole(rec.get("goodQuantity", 0)),
            defect_quantity=_whole(rec.get("defectQuantity", 0)),
        )

    def to_record(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "startTime": self.start_time,
            "endTime": self.end_time,
            "plannedProductionTime": self.planned_production_time,
            "targetQuantity": self.target_quantity,
            "actualQuantity": self.actual_quantity,
            "goodQuantity": self.good_quantity,
            "defectQuantity": self.defect_quantity,
        }


@dataclass(frozen=True)
class DowntimeEvent:
    id: str
    shift_id: str
    category: str
    reason: str
    start_time: str
    end_time: str
    duration_minutes: float
    type: str  # "planned" | "unplanned"

    @classmethod
    def from_record(cls, rec: dict) -> "DowntimeEvent":
        return cls(
            id=str(rec.get("id", "")),
            shift_id=str(rec.get("shiftId", "")),
            category=str(rec.get("category", "")),
            reason=str(rec.get("reason", "")),
            start_time=str(rec.get("startTime", "") or ""),
            end_time=str(rec.get("endTime", "") or ""),
            duration_minutes=float(rec.get("durationMinutes", 0) or 0),
            type=str(rec.get("type", "")),
        )

    def to_record(self) -> dict:
        return {
            "id": self.id,
            "shiftId": self.shift_id,
            "category": self.category,
            "reason": self.reason,
            "startTime": self.start_time,
            "endTime": self.end_time,
            "durationMinutes": self.duration_minutes,
            "type": self.type,
        }


@dataclass(frozen=True)
class PreviousPeriod:
    description: str = ""
    total_oee: float = 0.0
    availability: float = 0.0
    performance: float = 0.0
    quality: float = 0.0

    @classmethod
    def from_record(cls, rec: dict) -> "PreviousPeriod":
        return cls(
            description=str(rec.get("description", "") or ""),
            total_oee=float(rec.get("totalOEE", 0) or 0),
            availability=float(rec.get("availability", 0) or 0),
            performance=float(rec.get("performance", 0) or 0),
            quality=float(rec.get("quality", 0) or 0),
        )

    def to_record(self) -> dict:
        return {
            "description": self.description,
            "totalOEE": self.total_oee,
            "availability": self.availability,
            "performance": self.performance,
            "quality": self.quality,
        }


@dataclass(frozen=True)
class Metadata:
    site: str = ""
    department: str = ""
    report_date: str = ""
    world_class_oee_target: float = WORLD_CLASS_OEE
    minimum_acceptable_oee: float = MINIMUM_ACCEPTABLE_OEE

    @classmethod
    def from_record(cls, rec: dict) -> "Metadata":
        world_class = rec.get("worldClassOEETarget")
        minimum = rec.get("minimumAcceptableOEE")
        return cls(
            site=str(rec.get("site", "") or ""),
            department=str(rec.get("department", "") or ""),
            report_date=str(rec.get("reportDate", "") or ""),
            world_class_oee_target=WORLD_CLASS_OEE if world_class is None else float(world_class),
            minimum_acceptable_oee=MINIMUM_ACCEPTABLE_OEE if minimum is None else float(minimum),
        )

    def to_record(self) -> dict:
        return {
            "site": self.site,
            "department": self.department,
            "reportDate": self.report_date,
            "worldClassOEETarget": self.world_class_oee_target,
            "minimumAcceptableOEE": self.minimum_acceptable_oee,
        }


@dataclass(frozen=True)
class ProductionData:
    """One loaded document. Read-only for the session."""
    production_line: ProductionLine
    shifts: tuple[Shift, ...]
    downtime_events: tuple[DowntimeEvent, ...]
    previous_period: PreviousPeriod = field(default_factory=PreviousPeriod)
    metadata: Metadata = field(default_factory=Metadata)

    def to_record(self) -> dict:
        return {
            "productionLine": self.production_line.to_record(),
            "shifts": [s.to_record() for s in self.shifts],
            "downtimeEvents": [e.to_record() for e in self.downtime_events],
            "previousPeriod": self.previous_period.to_record(),
            "metadata": self.metadata.to_record(),
        }


# ---------------------------------------------------------------------------
# Derived results
# ---------------------------------------------------------------------------
@dataclass(frozen=True)
class OEEMetrics:
    """A/P/Q/OEE as fractions of 1, plus the totals they were computed from."""
    availability: float = 0.0
    performance: float = 0.0
    quality: float = 0.0
    oee: float = 0.0
    total_downtime: float = 0.0
    planned_downtime: float = 0.0
    unplanned_downtime: float = 0.0
    operating_time: float = 0.0
    target_quantity: int = 0
    actual_quantity: int = 0
    good_quantity: int = 0
    defect_quantity: int = 0
    planned_production_time: float = 0.0

    def to_record(self) -> dict:
        return {
            "availability": self.availability,
            "performance": self.performance,
            "quality": self.quality,
            "oee": self.oee,
            "totalDowntime": self.total_downtime,
            "plannedDowntime": self.planned_downtime,
            "unplannedDowntime": self.unplanned_downtime,
            "operatingTime": self.operating_time,
            "targetQuantity": self.target_quantity,
            "actualQuantity": self.actual_quantity,
            "goodQuantity": self.good_quantity,
            "defectQuantity": self.defect_quantity,
            "plannedProductionTime": self.planned_production_time,
        }

    @classmethod
    def from_record(cls, rec: dict) -> "OEEMetrics":
        return cls(
            availability=float(rec["availability"]),
            performance=float(rec["performance"]),
            quality=float(rec["quality"]),
            oee=float(rec["oee"]),
            total_downtime=float(rec.get("totalDowntime", 0)),
            planned_downtime=float(rec.get("plannedDowntime", 0)),
            unplanned_downtime=float(rec.get("unplannedDowntime", 0)),
            operating_time=float(rec.get("operatingTime", 0)),
            target_quantity=int(rec.get("targetQuantity", 0)),
            actual_quantity=int(rec.get("actualQuantity", 0)),
            good_quantity=int(rec.get("goodQuantity", 0)),
            defect_quantity=int(rec.get("defectQuantity", 0)),
            planned_production_time=float(rec.get("plannedProductionTime", 0)),
        )


@dataclass(frozen=True)
class DowntimeBreakdown:
    category: str
    total_minutes: float
    percentage: float
    event_count: int
    type: str  # "planned" | "unplanned" | "mixed"
    cumulative_percentage: float = 0.0

    def to_record(self) -> dict:
        return {
            "category": self.category,
            "totalMinutes": self.total_minutes,
            "percentage": self.percentage,
            "eventCount": self.event_count,
            "type": self.type,
            "cumulativePercentage": self.cumulative_percentage,
        }


@dataclass(frozen=True)
class MetricDelta:
    current: float
    previous: float
    delta: float


@dataclass(frozen=True)
class OEEDelta(MetricDelta):
    delta_percentage: float = 0.0


@dataclass(frozen=True)
class ComparisonMetrics:
    oee: OEEDelta
    availability: MetricDelta
    performance: MetricDelta
    quality: MetricDelta

    def to_record(self) -> dict:
        return {
            "oee": {
                "current": self.oee.current,
                "previous": self.oee.previous,
                "delta": self.oee.delta,
                "deltaPercentage": self.oee.delta_percentage,
            },
            "availability": {
                "current": self.availability.current,
                "previous": self.availability.previous,
                "delta": self.availability.delta,
            },
            "performance": {
                "current": self.performance.current,
                "previous": self.performance.previous,
                "delta": self.performance.delta,
            },
            "quality": {
                "current": self.quality.current,
                "previous": self.quality.previous,
                "delta": self.quality.delta,
            },
        }


@dataclass(frozen=True)
class TimelineSegment:
    type: str  # "production" | "planned" | "unplanned"
    start: float  # minutes from shift start
    duration: float
    label: str | None = None
    reason: str | None = None


# ---------------------------------------------------------------------------
# DataFrame views: snake_case columns, one row per record
# ---------------------------------------------------------------------------
SHIFT_COLUMNS = [
    "id", "name", "start_time", "end_time", "planned_production_time",
    "target_quantity", "actual_quantity", "good_quantity", "defect_quantity",
]

EVENT_COLUMNS = [
    "id", "shift_id", "category", "reason", "start_time", "end_time",
    "duration_minutes", "type",
]


def shifts_frame(shifts) -> pd.DataFrame:
    return pd.DataFrame([asdict(s) for s in shifts], columns=SHIFT_COLUMNS)


def events_frame(events) -> pd.DataFrame:
    return pd.DataFrame([asdict(e) for e in events], columns=EVENT_COLUMNS)
