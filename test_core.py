"""
Unit tests for core OEE math, downtime analysis, comparison and view selection.

Run: python -m pytest test_core.py -v
"""

import math
import os

import pytest

from analyze import analyze, analyze_cached
from comparison import classify_status, compare, metric_delta, status_label, trend_indicator
from downtime_analysis import (
    breakdown_frame,
    build_shift_timeline,
    downtime_breakdown,
    downtime_by_type,
    top_downtime_reasons,
)
from oee_metrics import (
    compute_metrics,
    compute_metrics_by_shift,
    compute_shift_metrics,
    production_rate,
)
from parse_production import load_production_data
from production_model import (
    DowntimeEvent,
    Metadata,
    OEEMetrics,
    PreviousPeriod,
    ProductionData,
    ProductionLine,
    Shift,
)
from shared import (
    DEFAULT_DATA_FILE,
    format_duration,
    format_number,
    format_oee_percentage,
    format_percentage_change,
    format_production_rate,
)
from view_selector import MetricsCache, select_view


def _shift(id="s1", planned=480, actual=400, good=380, defect=20, target=480,
           start="2025-10-27T06:00:00Z", end="2025-10-27T14:00:00Z"):
    return Shift(
        id=id, name=f"Shift {id}", start_time=start, end_time=end,
        planned_production_time=planned, target_quantity=target,
        actual_quantity=actual, good_quantity=good, defect_quantity=defect,
    )


def _event(id="e1", shift_id="s1", minutes=60, type="unplanned", category="Equipment",
           reason="Jam", start="", end=""):
    return DowntimeEvent(
        id=id, shift_id=shift_id, category=category, reason=reason,
        start_time=start, end_time=end, duration_minutes=minutes, type=type,
    )


def _data(shifts, events, previous=None):
    return ProductionData(
        production_line=ProductionLine(id="l1", name="Line 1", target_cycle_time=60),
        shifts=tuple(shifts),
        downtime_events=tuple(events),
        previous_period=previous or PreviousPeriod(total_oee=0.7, availability=0.85,
                                                   performance=0.9, quality=0.95),
        metadata=Metadata(),
    )


# =====================================================================
# compute_metrics: availability / performance / quality / OEE
# =====================================================================

class TestComputeMetrics:

    def test_reference_shift(self):
        m = compute_metrics([_shift()], [_event(minutes=60)], 60)
        assert m.operating_time == 420
        assert abs(m.availability - 0.875) < 1e-9
        assert abs(m.performance - 400 / 420) < 1e-9
        assert abs(m.quality - 0.95) < 1e-9
        assert abs(m.oee - 0.7917) < 0.001

    def test_oee_is_exact_product(self):
        m = compute_metrics([_shift(actual=350, good=300)], [_event(minutes=75)], 45)
        assert m.oee == pytest.approx(m.availability * m.performance * m.quality)

    def test_zero_planned_time(self):
        m = compute_metrics([_shift(planned=0)], [], 60)
        assert m.availability == 0.0
        assert m.performance == 0.0
        assert not math.isnan(m.oee)

    def test_zero_output_no_downtime(self):
        m = compute_metrics([_shift(actual=0, good=0, defect=0)], [], 60)
        assert m.availability == 1.0
        assert m.performance == 0.0
        assert m.quality == 0.0
        assert m.oee == 0.0

    def test_empty_shift_list_is_all_zero(self):
        m = compute_metrics([], [], 60)
        assert m == OEEMetrics()

    def test_performance_capped_at_one(self):
        # 600 units at 1 min each in 480 operating minutes
        m = compute_metrics([_shift(actual=600, good=600, defect=0)], [], 60)
        assert m.performance == 1.0

    def test_downtime_exceeding_planned_time(self):
        m = compute_metrics([_shift()], [_event(minutes=500)], 60)
        assert m.availability == 0.0
        assert m.performance == 0.0
        assert m.operating_time == -20

    def test_planned_unplanned_split(self):
        events = [
            _event("e1", minutes=30, type="planned"),
            _event("e2", minutes=20, type="unplanned"),
            _event("e3", minutes=10, type="planned"),
        ]
        m = compute_metrics([_shift()], events, 60)
        assert m.total_downtime == 60
        assert m.planned_downtime == 40
        assert m.unplanned_downtime == 20

    def test_sums_across_shifts(self):
        shifts = [_shift("s1"), _shift("s2", actual=200, good=150, defect=50)]
        m = compute_metrics(shifts, [], 60)
        assert m.planned_production_time == 960
        assert m.actual_quantity == 600
        assert m.good_quantity == 530
        assert m.defect_quantity == 70
        assert m.target_quantity == 960
        # Quality from totals, not the mean of per-shift ratios
        assert abs(m.quality - 530 / 600) < 1e-9

    def test_bounds_hold_for_odd_inputs(self):
        shifts = [_shift(planned=100, actual=10, good=50, defect=0)]
        m = compute_metrics(shifts, [_event(minutes=5)], 600)
        for value in (m.availability, m.performance, m.quality, m.oee):
            assert 0.0 <= value <= 1.0


class TestShiftMetrics:

    def test_only_own_events_count(self):
        events = [_event("e1", "s1", 60), _event("e2", "s2", 120)]
        m = compute_shift_metrics(_shift("s1"), events, 60)
        assert m.total_downtime == 60

    def test_by_shift_keeps_order(self):
        shifts = [_shift("b"), _shift("a")]
        events = [_event("e1", "a", 30)]
        by_shift = compute_metrics_by_shift(shifts, events, 60)
        assert list(by_shift) == ["b", "a"]
        assert by_shift["a"].total_downtime == 30
        assert by_shift["b"].total_downtime == 0

    def test_production_rate(self):
        assert abs(production_rate(582, 480) - 72.75) < 1e-9
        assert production_rate(100, 0) == 0.0


# =====================================================================
# Downtime analysis
# =====================================================================

class TestTopDowntimeReasons:

    def test_sorted_and_truncated(self):
        events = [_event("a", minutes=10), _event("b", minutes=50),
                  _event("c", minutes=30), _event("d", minutes=40)]
        top = top_downtime_reasons(events)
        assert [t["duration"] for t in top] == [50, 40, 30]

    def test_ties_keep_input_order(self):
        events = [_event("a", minutes=20, reason="first"),
                  _event("b", minutes=20, reason="second"),
                  _event("c", minutes=20, reason="third")]
        top = top_downtime_reasons(events, limit=2)
        assert [t["reason"] for t in top] == ["first", "second"]

    def test_limit_longer_than_input(self):
        top = top_downtime_reasons([_event(minutes=5)], limit=3)
        assert len(top) == 1
        assert set(top[0]) == {"reason", "category", "duration", "type"}

    def test_input_not_mutated(self):
        events = [_event("a", minutes=10), _event("b", minutes=50)]
        top_downtime_reasons(events)
        assert [e.id for e in events] == ["a", "b"]

    def test_empty(self):
        assert top_downtime_reasons([]) == []


class TestDowntimeBreakdown:

    def _events(self):
        return [
            _event("1", minutes=40, category="Equipment", type="unplanned"),
            _event("2", minutes=30, category="Changeover", type="planned"),
            _event("3", minutes=25, category="Equipment", type="unplanned"),
            _event("4", minutes=5, category="Material", type="unplanned"),
            _event("5", minutes=10, category="Material", type="planned"),
        ]

    def test_grouping_and_order(self):
        bd = downtime_breakdown(self._events())
        assert [b.category for b in bd] == ["Equipment", "Changeover", "Material"]
        assert bd[0].total_minutes == 65
        assert bd[0].event_count == 2

    def test_type_labels(self):
        bd = {b.category: b for b in downtime_breakdown(self._events())}
        assert bd["Equipment"].type == "unplanned"
        assert bd["Changeover"].type == "planned"
        assert bd["Material"].type == "mixed"

    def test_percentages_sum_to_100(self):
        bd = downtime_breakdown(self._events())
        assert abs(sum(b.percentage for b in bd) - 100) < 1e-9
        assert abs(bd[-1].cumulative_percentage - 100) < 1e-9

    def test_zero_total_gives_zero_percentages(self):
        events = [_event("1", minutes=0, category="A"), _event("2", minutes=0, category="B")]
        bd = downtime_breakdown(events)
        assert len(bd) == 2
        assert all(b.percentage == 0 for b in bd)

    def test_category_is_case_sensitive(self):
        events = [_event("1", category="Jam"), _event("2", category="jam")]
        assert len(downtime_breakdown(events)) == 2

    def test_empty(self):
        assert downtime_breakdown([]) == []
        assert len(breakdown_frame([])) == 0

    def test_by_type(self):
        split = downtime_by_type(self._events())
        assert split == {"planned": 40.0, "unplanned": 70.0, "total": 110.0}


class TestShiftTimeline:

    def test_segments_tile_the_shift(self):
        shift = _shift(start="2025-10-27T06:00:00Z", end="2025-10-27T14:00:00Z")
        events = [
            _event("b", minutes=30, type="planned",
                   start="2025-10-27T10:00:00Z", end="2025-10-27T10:30:00Z"),
            _event("a", minutes=60,
                   start="2025-10-27T07:00:00Z", end="2025-10-27T08:00:00Z"),
            _event("x", shift_id="other", minutes=15,
                   start="2025-10-27T09:00:00Z", end="2025-10-27T09:15:00Z"),
        ]
        segs = build_shift_timeline(shift, events)
        assert [s.type for s in segs] == [
            "production", "unplanned", "production", "planned", "production"]
        assert [s.start for s in segs] == [0, 60, 120, 240, 270]
        assert sum(s.duration for s in segs) == 480

    def test_no_events_is_one_production_segment(self):
        segs = build_shift_timeline(_shift(), [])
        assert len(segs) == 1
        assert segs[0].duration == 480

    def test_missing_timestamps(self):
        assert build_shift_timeline(_shift(start="", end=""), []) == []


# =====================================================================
# Comparison + status
# =====================================================================

class TestComparison:

    def test_oee_delta(self):
        m = compute_metrics([_shift()], [_event(minutes=60)], 60)
        prev = PreviousPeriod(total_oee=0.72, availability=0.8, performance=0.9, quality=0.97)
        c = compare(m, prev)
        assert c.oee.delta == m.oee - prev.total_oee
        assert abs(c.oee.delta_percentage - (m.oee - 0.72) / 0.72 * 100) < 1e-9
        assert abs(c.availability.delta - 0.075) < 1e-9
        assert c.quality.previous == 0.97

    def test_zero_previous_gives_zero_pct(self):
        c = compare(OEEMetrics(oee=0.5), PreviousPeriod())
        assert c.oee.delta == 0.5
        assert c.oee.delta_percentage == 0.0

    def test_record_shape(self):
        rec = compare(OEEMetrics(oee=0.5), PreviousPeriod(total_oee=0.4)).to_record()
        assert set(rec["oee"]) == {"current", "previous", "delta", "deltaPercentage"}
        assert set(rec["quality"]) == {"current", "previous", "delta"}


class TestStatus:

    def test_default_thresholds(self):
        assert classify_status(0.85) == "world-class"
        assert classify_status(0.849) == "acceptable"
        assert classify_status(0.65) == "acceptable"
        assert classify_status(0.5) == "needs-attention"

    def test_custom_thresholds(self):
        assert classify_status(0.8, world_class_target=0.75, minimum_acceptable=0.5) == "world-class"
        assert classify_status(0.4, world_class_target=0.75, minimum_acceptable=0.5) == "needs-attention"

    def test_labels(self):
        assert status_label("world-class") == "World-Class"
        assert status_label("needs-attention") == "Needs Attention"

    def test_trend(self):
        assert trend_indicator(0.05)["label"] == "improvement"
        assert trend_indicator(-0.03)["label"] == "decline"
        assert trend_indicator(0.0005)["label"] == "unchanged"

    def test_metric_delta_sign_drives_tile_direction(self):
        text, color = metric_delta(-0.021)
        assert text == "-2.1%"
        assert color == "normal"
        text, color = metric_delta(0.053)
        assert text == "+5.3%"
        assert color == "normal"
        _, color = metric_delta(0.0005)
        assert color == "off"


# =====================================================================
# View selection
# =====================================================================

class TestSelectView:

    def _dataset(self):
        return _data(
            [_shift("s1"), _shift("s2")],
            [_event("e1", "s1", 30), _event("e2", "s2", 40), _event("e3", "s2", 10)],
        )

    def test_all_returns_same_objects(self):
        data = self._dataset()
        view = select_view(data, "all")
        assert view.shifts is data.shifts
        assert view.downtime_events is data.downtime_events

    def test_single_shift(self):
        view = select_view(self._dataset(), "s2")
        assert [s.id for s in view.shifts] == ["s2"]
        assert [e.id for e in view.downtime_events] == ["e2", "e3"]

    def test_unknown_shift_is_empty(self):
        view = select_view(self._dataset(), "nope")
        assert view.is_empty
        assert view.downtime_events == ()
        m = compute_metrics(view.shifts, view.downtime_events, 60)
        assert (m.availability, m.performance, m.quality, m.oee) == (0.0, 0.0, 0.0, 0.0)


class TestMetricsCache:

    def test_memoizes_per_selection(self):
        cache = MetricsCache()
        calls = []

        def compute(data, f):
            calls.append(f)
            return f.upper()

        data = object()
        assert cache.get(data, "all", compute) == "ALL"
        assert cache.get(data, "all", compute) == "ALL"
        assert cache.get(data, "s1", compute) == "S1"
        assert calls == ["all", "s1"]
        assert cache.hits == 1

    def test_new_dataset_invalidates(self):
        cache = MetricsCache()
        cache.get(object(), "all", lambda d, f: 1)
        other = object()
        assert cache.get(other, "all", lambda d, f: 2) == 2
        assert len(cache) == 1


# =====================================================================
# analyze() over the bundled sample document
# =====================================================================

class TestAnalyzeSample:

    @pytest.fixture(scope="class")
    def sample(self):
        data, warnings = load_production_data(DEFAULT_DATA_FILE)
        assert warnings == []
        return data

    def test_all_shifts(self, sample):
        r = analyze(sample, "all")
        m = r["metrics"]
        assert m.total_downtime == 225
        assert m.planned_downtime == 85
        assert abs(m.availability - 1215 / 1440) < 1e-9
        assert abs(m.performance - 1123 / 1215) < 1e-9
        assert abs(m.quality - 1073 / 1123) < 1e-9
        assert r["status"]["status"] == "acceptable"
        assert r["status"]["isAcceptable"] and not r["status"]["isWorldClass"]
        assert [t["duration"] for t in r["top_downtime"]] == [55, 45, 40]
        assert r["downtime_breakdown"][0].category == "Equipment Failure"
        assert set(r["shift_metrics"]) == {"shift-1", "shift-2", "shift-3"}

    def test_single_shift_matches_reference(self, sample):
        m = analyze(sample, "shift-1")["metrics"]
        assert abs(m.availability - 0.875) < 1e-9
        assert abs(m.oee - 0.7917) < 0.001

    def test_unknown_shift(self, sample):
        r = analyze(sample, "shift-9")
        assert r["view"].is_empty
        assert r["metrics"].oee == 0.0
        assert r["top_downtime"] == []
        assert r["status"]["status"] == "needs-attention"

    def test_cached_result_reused(self, sample):
        assert analyze_cached(sample, "shift-2") is analyze_cached(sample, "shift-2")


# =====================================================================
# Formatters
# =====================================================================

class TestFormatters:

    def test_percentage(self):
        assert format_oee_percentage(0.753) == "75.3%"
        assert format_oee_percentage(0.85, 2) == "85.00%"
        assert format_oee_percentage(float("nan")) == "0.0%"
        assert format_oee_percentage(float("inf")) == "0.0%"

    def test_percentage_change(self):
        assert format_percentage_change(0.053) == "+5.3%"
        assert format_percentage_change(-0.021) == "-2.1%"
        assert format_percentage_change(0) == "0.0%"

    def test_duration(self):
        assert format_duration(135) == "2h 15m"
        assert format_duration(45) == "45m"
        assert format_duration(60) == "1h"
        assert format_duration(0) == "0m"
        assert format_duration(-5) == "0m"
        assert format_duration(float("nan")) == "0m"

    def test_number_and_rate(self):
        assert format_number(1234567) == "1,234,567"
        assert format_number(None) == "0"
        assert format_production_rate(72.75) == "72.8 parts/hr"
        assert format_production_rate(float("nan")) == "0.0 parts/hr"


def test_sample_document_exists():
    assert os.path.exists(DEFAULT_DATA_FILE)
