from __future__ import annotations

from fastapi import APIRouter, Depends, Query, status

from intraop.api.deps import get_record_service, get_stats_service, get_timeline_service
from intraop.core.errors import ValidationError
from intraop.core.lifecycle import IntraopRecordService, parse_payload
from intraop.core.segmentation import PhaseTimelineService
from intraop.core.stats import PhaseStatsService
from intraop.models.intraop import DuplicateRequest

router = APIRouter()


@router.get("")
def list_records(
    case_id: str | None = Query(default=None, alias="caseId"),
    phase: str | None = Query(default=None),
    service: IntraopRecordService = Depends(get_record_service),
) -> dict:
    """케이스의 수술 중 기록 목록

    Args:
        case_id: 케이스 식별자
        phase: 단계 필터(선택)
        service: 기록 서비스

    Returns:
        ``{"data": [...]}`` 형태의 기록 목록
    """
    if not case_id:
        raise ValidationError("caseId", "값이 필요함")
    records = service.list_records(case_id, phase or None)
    return {"data": [record.to_response() for record in records]}


@router.get("/stats/{case_id}/{phase}")
def phase_stats(
    case_id: str,
    phase: str,
    service: PhaseStatsService = Depends(get_stats_service),
) -> dict:
    """단계 통계, 기록이 없어도 200"""
    return service.get_stats(case_id, phase).to_response()


@router.get("/chart/{case_id}")
def phase_chart(
    case_id: str,
    width: float | None = Query(default=None, gt=0),
    left: float = Query(default=0.0),
    service: PhaseTimelineService = Depends(get_timeline_service),
) -> dict:
    """시각 순 혈역학 시계열과 단계 구간

    Args:
        case_id: 케이스 식별자
        width: 차트 영역 폭(px, 선택)
        left: 차트 영역 왼쪽 x
        service: 차트 구간 서비스

    Returns:
        차트 데이터
    """
    return service.build_chart(case_id, width=width, left=left).to_response()


@router.get("/{record_id}")
def get_record(
    record_id: str, service: IntraopRecordService = Depends(get_record_service)
) -> dict:
    """기록 단건 조회"""
    return service.get_record(record_id).to_response()


@router.post("", status_code=status.HTTP_201_CREATED)
def create_record(
    payload: dict, service: IntraopRecordService = Depends(get_record_service)
) -> dict:
    """기록 생성

    Args:
        payload: 생성 요청 본문
        service: 기록 서비스

    Returns:
        파생 값이 반영된 저장 기록
    """
    return service.create_record(payload).to_response()


@router.post("/duplicate", status_code=status.HTTP_201_CREATED)
def duplicate_last_record(
    payload: dict, service: IntraopRecordService = Depends(get_record_service)
) -> dict:
    """단계의 마지막 기록 복제

    Args:
        payload: ``{"caseId", "phase"}``
        service: 기록 서비스

    Returns:
        새로 생성된 기록
    """
    request = parse_payload(DuplicateRequest, payload)
    return service.duplicate_last(request.case_id, request.phase).to_response()


@router.put("/{record_id}")
def update_record(
    record_id: str,
    payload: dict,
    service: IntraopRecordService = Depends(get_record_service),
) -> dict:
    """기록 부분 수정"""
    return service.update_record(record_id, payload).to_response()


@router.delete("/{record_id}")
def delete_record(
    record_id: str, service: IntraopRecordService = Depends(get_record_service)
) -> dict:
    """기록 삭제"""
    return service.delete_record(record_id)
