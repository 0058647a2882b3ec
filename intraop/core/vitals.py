from __future__ import annotations

from typing import Mapping

from intraop.core.errors import ValidationError
from intraop.utils.parsing import round_half_up

# 포함 범위(min, max). cvp는 임상 범위를 강제하지 않는다.
PLAUSIBILITY_RANGES: dict[str, tuple[float, float]] = {
    "heart_rate": (20, 250),
    "sys": (40, 300),
    "dia": (20, 200),
    "map": (20, 300),
    "peep": (0, 30),
    "fio2": (21, 100),
    "tidal_volume": (200, 1500),
    "resp_rate": (4, 60),
    "sat_o2": (50, 100),
    "et_co2": (10, 100),
    "temp": (28, 43),
}

VITAL_FIELDS = (
    "heart_rate",
    "sys",
    "dia",
    "map",
    "cvp",
    "peep",
    "fio2",
    "tidal_volume",
    "resp_rate",
    "sat_o2",
    "et_co2",
    "temp",
    "vent_mode",
)

NOTE_FIELDS = ("observations",)


def compute_map(systolic: int | None, diastolic: int | None) -> int | None:
    """평균 동맥압(MAP) 계산

    MAP = (수축기 + 2 * 이완기) / 3, 0.5 올림 반올림

    Args:
        systolic: 수축기 혈압
        diastolic: 이완기 혈압

    Returns:
        평균 동맥압, 입력 중 하나라도 없으면 None
    """
    if systolic is None or diastolic is None:
        return None
    return round_half_up((systolic + 2 * diastolic) / 3)


def apply_derived_vitals(values: dict, map_supplied: bool) -> dict:
    """파생 생체신호를 채운 사본을 반환

    Args:
        values: 생체신호 딕셔너리
        map_supplied: 호출자가 MAP를 직접 입력했는지 여부

    Returns:
        파생 값이 반영된 딕셔너리
    """
    result = dict(values)
    if not map_supplied:
        derived = compute_map(result.get("sys"), result.get("dia"))
        if derived is not None:
            result["map"] = derived
    return result


def check_ranges(values: Mapping[str, object]) -> None:
    """생리학적 허용 범위 검사

    값이 None인 필드는 검사하지 않는다. 범위를 벗어나면 보정하지 않고 거부한다.

    Args:
        values: 검사할 필드 딕셔너리

    Raises:
        ValidationError: 범위를 벗어난 값이 있을 때
    """
    for field, bounds in PLAUSIBILITY_RANGES.items():
        value = values.get(field)
        if value is None:
            continue
        low, high = bounds
        if not low <= value <= high:
            raise ValidationError(field, f"허용 범위 {low:g}-{high:g} 밖의 값: {value}")
