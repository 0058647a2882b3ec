import logging
from typing import TextIO

LOG_FORMAT = (
    "%(asctime)s %(levelname)s %(name)s "
    "event=%(event)s case_id=%(case_id)s stage=%(stage)s %(message)s"
)

# log_event 밖에서 남긴 레코드(uvicorn, 라이브러리)에 채울 값
CONTEXT_DEFAULTS = {"event": "system", "case_id": "-", "stage": "-"}


class CaseContextFormatter(logging.Formatter):
    """케이스/단계 문맥 필드가 없거나 None인 레코드도 같은 형식으로 출력"""

    def format(self, record: logging.LogRecord) -> str:
        for name, default in CONTEXT_DEFAULTS.items():
            if getattr(record, name, None) is None:
                setattr(record, name, default)
        return super().format(record)


def configure_logging(level: str, stream: TextIO | None = None) -> logging.Handler:
    """루트 로거에 문맥 포매터를 설치

    이전 핸들러는 교체하므로 앱을 여러 번 생성해도 출력이 중복되지 않는다.

    Args:
        level: 로깅 레벨 문자열
        stream: 출력 스트림(기본 stderr)

    Returns:
        설치된 핸들러
    """
    handler = logging.StreamHandler(stream)
    handler.setFormatter(CaseContextFormatter(LOG_FORMAT))
    logging.basicConfig(level=level.upper(), handlers=[handler], force=True)
    logging.getLogger("intraop").setLevel(level.upper())
    return handler
