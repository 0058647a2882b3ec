from __future__ import annotations

from typing import Iterable

from intraop.core.logger import log_event
from intraop.core.store import RecordStore
from intraop.core.telemetry import TelemetryStore
from intraop.models.intraop import FieldStats, PhaseStats
from intraop.utils.parsing import normalize_phase, round_half_up

STAT_FIELDS = ("heart_rate", "sys", "dia", "map", "cvp", "sat_o2", "et_co2")


def summarize(values: Iterable[float | None]) -> FieldStats:
    """None을 제외한 값으로 평균, 최솟값, 최댓값 계산

    Args:
        values: 필드 값 목록

    Returns:
        관측값이 없으면 모든 항목이 None인 통계
    """
    observed = [value for value in values if value is not None]
    if not observed:
        return FieldStats()
    return FieldStats(
        avg=round_half_up(sum(observed) / len(observed)),
        min=min(observed),
        max=max(observed),
    )


class PhaseStatsService:
    """케이스+단계별 생체신호 통계 집계"""

    def __init__(
        self,
        store: RecordStore,
        fields: tuple[str, ...] = STAT_FIELDS,
        telemetry: TelemetryStore | None = None,
    ) -> None:
        self._store = store
        self._fields = fields
        self._telemetry = telemetry

    def get_stats(self, case_id: str, phase: str) -> PhaseStats:
        """단계 통계 조회

        단계 라벨은 저장 시와 같이 공백을 제거해 조회한다. 기록이 없어도 오류 없이
        count=0, 모든 필드 None을 반환한다.

        Args:
            case_id: 케이스 식별자
            phase: 단계 라벨

        Returns:
            단계 통계

        Raises:
            ParseError: 단계 라벨이 비어 있거나 너무 길 때
        """
        phase = normalize_phase(phase)
        rows = self._store.list_records(case_id, phase)
        stats = PhaseStats(
            case_id=case_id,
            phase=phase,
            count=len(rows),
            per_field={field: summarize(row.get(field) for row in rows) for field in self._fields},
        )
        log_event(
            "phase_stats",
            "DEBUG",
            case_id,
            "stats",
            f"단계 통계 phase={phase}",
            record_count=len(rows),
            telemetry=self._telemetry,
        )
        return stats
