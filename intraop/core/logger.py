from __future__ import annotations

import logging
from datetime import datetime, timezone

from intraop.core.telemetry import TelemetryStore


def log_event(
    event: str,
    level: str,
    case_id: str | None,
    stage: str,
    message: str,
    error_code: str | None = None,
    duration_ms: int | None = None,
    record_count: int | None = None,
    telemetry: TelemetryStore | None = None,
) -> None:
    """이벤트를 표준 로깅과 DuckDB에 기록

    Args:
        event: 이벤트 이름
        level: 로깅 레벨 문자열
        case_id: 케이스 식별자
        stage: 처리 단계(create, update, stats 등)
        message: 로그 메시지
        error_code: 에러 코드(선택)
        duration_ms: 처리 시간(밀리초, 선택)
        record_count: 레코드 수(선택)
        telemetry: 이벤트 로그 저장소(선택)
    """
    logger = logging.getLogger("intraop")
    extra = {
        "event": event,
        "case_id": case_id or "-",
        "stage": stage,
    }
    logger.log(getattr(logging, level.upper(), logging.INFO), message, extra=extra)

    if telemetry is None:
        return
    telemetry.insert_log(
        {
            "timestamp": datetime.now(timezone.utc).replace(tzinfo=None),
            "level": level.upper(),
            "event": event,
            "case_id": case_id,
            "stage": stage,
            "error_code": error_code,
            "message": message,
            "duration_ms": duration_ms,
            "record_count": record_count,
        }
    )
