from datetime import datetime, timedelta, timezone

import pytest

from intraop.core.errors import ValidationError
from intraop.core.stats import PhaseStatsService, summarize

BASE = datetime(2024, 3, 1, 10, 0, tzinfo=timezone.utc)


def _add(store, phase: str, minute: int, **vitals) -> None:
    row = {"case_id": "case-1", "phase": phase, "timestamp": BASE + timedelta(minutes=minute)}
    row.update(vitals)
    store.insert_record(row)


def test_summarize_skips_missing_values():
    stats = summarize([80, None, 91])
    assert (stats.avg, stats.min, stats.max) == (86, 80, 91)


def test_summarize_rounds_half_up():
    assert summarize([1, 2]).avg == 2
    assert summarize([36.4, 36.5]).avg == 36


def test_summarize_without_values():
    stats = summarize([None, None])
    assert (stats.avg, stats.min, stats.max) == (None, None, None)


def test_stats_for_empty_phase(store):
    stats = PhaseStatsService(store).get_stats("case-1", "ANHEPATICA")

    assert stats.count == 0
    assert all(field.avg is None for field in stats.per_field.values())


def test_stats_aggregates_phase_only(store):
    _add(store, "INDUCCION", 0, heart_rate=80, sys=120, dia=70, map=87)
    _add(store, "INDUCCION", 5, heart_rate=91, sys=130, dia=80, map=97)
    _add(store, "DISECCION", 10, heart_rate=150)

    stats = PhaseStatsService(store).get_stats("case-1", "INDUCCION")

    assert stats.count == 2
    heart_rate = stats.per_field["heart_rate"]
    assert (heart_rate.avg, heart_rate.min, heart_rate.max) == (86, 80, 91)
    assert stats.per_field["map"].avg == 92


def test_stats_counts_records_without_field(store):
    _add(store, "CIERRE", 0, heart_rate=70)
    _add(store, "CIERRE", 5, cvp=0)

    stats = PhaseStatsService(store).get_stats("case-1", "CIERRE")

    assert stats.count == 2
    assert stats.per_field["heart_rate"].avg == 70
    cvp = stats.per_field["cvp"]
    assert (cvp.avg, cvp.min, cvp.max) == (0, 0, 0)
    assert stats.per_field["et_co2"].avg is None


def test_stats_trims_phase_label(store):
    _add(store, "INDUCCION", 0, heart_rate=80)

    stats = PhaseStatsService(store).get_stats("case-1", "  INDUCCION ")

    assert stats.phase == "INDUCCION"
    assert stats.count == 1
    assert stats.per_field["heart_rate"].avg == 80


def test_stats_rejects_blank_phase(store):
    with pytest.raises(ValidationError):
        PhaseStatsService(store).get_stats("case-1", "   ")


def test_stats_response_is_flat(store):
    _add(store, "INDUCCION", 0, heart_rate=80, sat_o2=98)

    body = PhaseStatsService(store).get_stats("case-1", "INDUCCION").to_response()

    assert body["caseId"] == "case-1"
    assert body["phase"] == "INDUCCION"
    assert body["count"] == 1
    assert body["heartRate"] == {"avg": 80, "min": 80, "max": 80}
    assert body["satO2"]["max"] == 98
    assert body["etCO2"] == {"avg": None, "min": None, "max": None}


def test_stats_logs_to_telemetry(store, telemetry):
    _add(store, "INDUCCION", 0, heart_rate=80)

    PhaseStatsService(store, telemetry=telemetry).get_stats("case-1", "INDUCCION")

    rows = telemetry.query_logs("event = ?", ["phase_stats"])
    assert len(rows) == 1
    assert rows[0][8] == 1
