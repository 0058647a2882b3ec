from __future__ import annotations

import math
from datetime import datetime, timezone
from typing import Iterable

from intraop.core.errors import ParseError

TIMESTAMP_FORMATS = [
    "%Y-%m-%d %H:%M:%S",
    "%Y-%m-%dT%H:%M:%S",
    "%Y-%m-%d %H:%M",
    "%Y-%m-%dT%H:%M",
]

PHASE_MAX_LENGTH = 50


def round_half_up(value: float) -> int:
    """0.5를 올림하는 반올림

    Args:
        value: 원본 값

    Returns:
        가장 가까운 정수(0.5는 올림)
    """
    return int(math.floor(value + 0.5))


def to_utc(value: datetime) -> datetime:
    """시간대 없는 값은 UTC로 간주하고 UTC로 변환"""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def parse_timestamp(
    value: str | datetime | None, formats: Iterable[str] = TIMESTAMP_FORMATS
) -> datetime:
    """타임스탬프를 UTC datetime으로 파싱

    ISO8601(``Z`` 접미사 포함)을 먼저 시도하고, 실패하면 허용 포맷을 순서대로 시도한다.

    Args:
        value: 원본 타임스탬프 값
        formats: 허용 포맷 목록

    Returns:
        UTC 시간대의 datetime

    Raises:
        ParseError: 파싱 실패 시
    """
    if value is None:
        raise ParseError("timestamp", "값이 필요함")
    if isinstance(value, datetime):
        return to_utc(value)
    text = str(value).strip()
    if text == "":
        raise ParseError("timestamp", "값이 필요함")
    try:
        return to_utc(datetime.fromisoformat(text.replace("Z", "+00:00")))
    except ValueError:
        pass
    for fmt in formats:
        try:
            return datetime.strptime(text, fmt).replace(tzinfo=timezone.utc)
        except ValueError:
            continue
    raise ParseError("timestamp", f"지원하지 않는 타임스탬프 형식: {value}")


def normalize_phase(value: object) -> str:
    """단계 라벨 정리

    카탈로그에 없는 라벨도 허용하며, 공백 제거와 길이 검사만 수행한다.

    Args:
        value: 원본 단계 값

    Returns:
        정리된 단계 라벨

    Raises:
        ParseError: 비어 있거나 너무 긴 경우
    """
    if value is None:
        raise ParseError("phase", "값이 필요함")
    text = str(value).strip()
    if text == "":
        raise ParseError("phase", "값이 필요함")
    if len(text) > PHASE_MAX_LENGTH:
        raise ParseError("phase", f"최대 {PHASE_MAX_LENGTH}자")
    return text


def format_clock(value: datetime) -> str:
    """차트 축 라벨용 HH:MM 문자열"""
    return value.strftime("%H:%M")
