from __future__ import annotations

from typing import Sequence

from intraop.core.logger import log_event
from intraop.core.phases import PhaseCatalog
from intraop.core.store import RecordStore
from intraop.core.telemetry import TelemetryStore
from intraop.models.chart import HemodynamicSeries, PhaseBand, PhaseChart, PhaseSegment
from intraop.utils.parsing import format_clock

CHART_FIELDS = ("heart_rate", "map", "cvp", "sat_o2", "temp")


def segment_phases(labels: Sequence[str]) -> list[PhaseSegment]:
    """시각 순 단계 라벨을 연속 구간으로 분할

    라벨이 직전 포인트와 달라질 때마다 새 구간을 시작한다. 첫 포인트는 항상 0번 구간을 연다.

    Args:
        labels: 포인트별 단계 라벨(시각 순)

    Returns:
        구간 목록, 입력이 비어 있으면 빈 목록
    """
    segments: list[PhaseSegment] = []
    if not labels:
        return segments
    current = labels[0]
    start = 0
    for index in range(1, len(labels)):
        if labels[index] != current:
            segments.append(PhaseSegment(phase=current, start_index=start, end_index=index - 1))
            current = labels[index]
            start = index
    segments.append(PhaseSegment(phase=current, start_index=start, end_index=len(labels) - 1))
    return segments


def category_positions(count: int, left: float, right: float) -> list[float]:
    """카테고리 축에서 각 포인트의 x 좌표

    Args:
        count: 포인트 수
        left: 차트 영역 왼쪽 x
        right: 차트 영역 오른쪽 x

    Returns:
        포인트별 x 좌표. 포인트가 하나면 중앙
    """
    if count <= 0:
        return []
    if count == 1:
        return [left + (right - left) / 2]
    step = (right - left) / (count - 1)
    return [left + index * step for index in range(count)]


def layout_phase_bands(
    segments: Sequence[PhaseSegment],
    positions: Sequence[float],
    left: float,
    right: float,
    catalog: PhaseCatalog | None = None,
    min_label_width: float = 40.0,
) -> list[PhaseBand]:
    """구간을 차트 배경 밴드로 배치

    각 밴드는 자신의 첫 포인트 위치에서 시작해 다음 구간의 첫 포인트 위치에서 끝난다.
    첫 밴드는 차트 왼쪽 끝에서, 마지막 밴드는 오른쪽 끝에서 끝난다.
    폭이 ``min_label_width`` 이하인 밴드는 색만 칠하고 라벨은 숨긴다.

    Args:
        segments: 단계 구간 목록
        positions: 포인트별 x 좌표
        left: 차트 영역 왼쪽 x
        right: 차트 영역 오른쪽 x
        catalog: 라벨/색상 카탈로그
        min_label_width: 라벨 표시 최소 폭(px)

    Returns:
        밴드 목록
    """
    catalog = catalog or PhaseCatalog()
    bands: list[PhaseBand] = []
    last = len(segments) - 1
    for idx, segment in enumerate(segments):
        start_x = left if idx == 0 else positions[segment.start_index]
        end_x = right if idx == last else positions[segments[idx + 1].start_index]
        width = end_x - start_x
        bands.append(
            PhaseBand(
                phase=segment.phase,
                label=catalog.label_for(segment.phase),
                color=catalog.color_for(segment.phase),
                start_x=start_x,
                end_x=end_x,
                width=width,
                show_label=width > min_label_width,
            )
        )
    return bands


class PhaseTimelineService:
    """케이스 기록을 시각 순 차트 데이터와 단계 구간으로 변환"""

    def __init__(
        self,
        store: RecordStore,
        catalog: PhaseCatalog | None = None,
        min_label_width: float = 40.0,
        telemetry: TelemetryStore | None = None,
    ) -> None:
        self._store = store
        self._catalog = catalog or PhaseCatalog()
        self._min_label_width = min_label_width
        self._telemetry = telemetry

    def build_chart(self, case_id: str, width: float | None = None, left: float = 0.0) -> PhaseChart:
        """혈역학 차트 데이터 생성

        단계별 묶음 순서가 아니라 측정 시각만으로 다시 정렬한 뒤 구간을 계산한다.

        Args:
            case_id: 케이스 식별자
            width: 차트 영역 폭(px). 주어지면 밴드 배치를 포함
            left: 차트 영역 왼쪽 x

        Returns:
            차트 데이터
        """
        rows = sorted(
            self._store.list_records(case_id),
            key=lambda row: (row["timestamp"], row["seq"]),
        )
        points = [row for row in rows if any(row.get(field) is not None for field in CHART_FIELDS)]

        series = HemodynamicSeries(
            heart_rate=[row["heart_rate"] for row in points],
            map=[row["map"] for row in points],
            cvp=[row["cvp"] for row in points],
            sat_o2=[row["sat_o2"] for row in points],
            temp=[row["temp"] for row in points],
        )
        phases = [row["phase"] for row in points]
        segments = segment_phases(phases)

        bands = None
        if width is not None:
            right = left + width
            positions = category_positions(len(points), left, right)
            bands = layout_phase_bands(
                segments, positions, left, right, self._catalog, self._min_label_width
            )

        log_event(
            "phase_chart",
            "DEBUG",
            case_id,
            "chart",
            f"차트 구간 {len(segments)}개",
            record_count=len(points),
            telemetry=self._telemetry,
        )
        return PhaseChart(
            case_id=case_id,
            labels=[format_clock(row["timestamp"]) for row in points],
            phases=phases,
            series=series,
            segments=segments,
            bands=bands,
        )
