from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, field_validator

from intraop.core.errors import ParseError
from intraop.utils.parsing import normalize_phase, parse_timestamp


def _timestamp_or_error(value: object) -> datetime:
    try:
        return parse_timestamp(value)
    except ParseError as exc:
        raise ValueError(exc.message) from exc


def _phase_or_error(value: object) -> str:
    try:
        return normalize_phase(value)
    except ParseError as exc:
        raise ValueError(exc.message) from exc


class Vitals(BaseModel):
    """수술 중 생체신호 측정값"""

    model_config = ConfigDict(populate_by_name=True)

    heart_rate: int | None = Field(default=None, alias="heartRate", description="심박수")
    sys: int | None = Field(default=None, description="수축기 혈압")
    dia: int | None = Field(default=None, description="이완기 혈압")
    map: int | None = Field(default=None, description="평균 동맥압(미입력 시 계산)")
    cvp: int | None = Field(default=None, description="중심정맥압")
    peep: int | None = Field(default=None, description="PEEP")
    fio2: int | None = Field(default=None, description="흡입 산소 분율(%)")
    tidal_volume: int | None = Field(default=None, alias="tidalVolume", description="일회 호흡량(mL)")
    resp_rate: int | None = Field(default=None, alias="respRate", description="호흡수")
    sat_o2: int | None = Field(default=None, alias="satO2", description="산소포화도")
    et_co2: int | None = Field(default=None, alias="etCO2", description="호기말 이산화탄소")
    temp: float | None = Field(default=None, description="체온(섭씨)")
    vent_mode: str | None = Field(default=None, alias="ventMode", max_length=30, description="환기 모드")
    observations: str | None = Field(default=None, max_length=1000, description="관찰 기록")


class IntraopCreate(Vitals):
    """수술 중 기록 생성 요청"""

    case_id: str = Field(..., alias="caseId", min_length=1, description="케이스 식별자")
    phase: str = Field(..., description="수술 단계 라벨")
    timestamp: datetime = Field(..., description="측정 시각")

    @field_validator("case_id", mode="before")
    @classmethod
    def _strip_case_id(cls, value: object) -> object:
        if isinstance(value, str):
            return value.strip()
        return value

    @field_validator("phase", mode="before")
    @classmethod
    def _check_phase(cls, value: object) -> str:
        return _phase_or_error(value)

    @field_validator("timestamp", mode="before")
    @classmethod
    def _check_timestamp(cls, value: object) -> datetime:
        return _timestamp_or_error(value)


class IntraopUpdate(Vitals):
    """수술 중 기록 부분 수정 요청

    전달된 필드만 반영한다. 필드 생략과 명시적 null은 ``model_fields_set``으로 구분한다.
    """

    phase: str | None = Field(default=None, description="수술 단계 라벨")
    timestamp: datetime | None = Field(default=None, description="측정 시각")

    @field_validator("phase", mode="before")
    @classmethod
    def _check_phase(cls, value: object) -> str | None:
        if value is None:
            return None
        return _phase_or_error(value)

    @field_validator("timestamp", mode="before")
    @classmethod
    def _check_timestamp(cls, value: object) -> datetime | None:
        if value is None:
            return None
        return _timestamp_or_error(value)


class DuplicateRequest(BaseModel):
    """마지막 기록 복제 요청"""

    model_config = ConfigDict(populate_by_name=True)

    case_id: str = Field(..., alias="caseId", min_length=1, description="케이스 식별자")
    phase: str = Field(..., description="수술 단계 라벨")

    @field_validator("phase", mode="before")
    @classmethod
    def _check_phase(cls, value: object) -> str:
        return _phase_or_error(value)


class IntraopRecord(Vitals):
    """저장된 수술 중 기록"""

    id: str = Field(..., description="기록 식별자")
    case_id: str = Field(..., alias="caseId", description="케이스 식별자")
    phase: str = Field(..., description="수술 단계 라벨")
    timestamp: datetime = Field(..., description="측정 시각(UTC)")
    created_at: datetime | None = Field(default=None, alias="createdAt", description="생성 시각")
    updated_at: datetime | None = Field(default=None, alias="updatedAt", description="수정 시각")
    fluids: list[dict] = Field(default_factory=list, description="수액/출혈 기록")
    drugs: list[dict] = Field(default_factory=list, description="약물 기록")
    monitoring: list[dict] = Field(default_factory=list, description="추가 모니터링 기록")

    def to_response(self) -> dict:
        """API 응답용 딕셔너리(camelCase)"""
        return self.model_dump(mode="json", by_alias=True)


class FieldStats(BaseModel):
    """단일 필드 통계"""

    avg: int | None = None
    min: int | float | None = None
    max: int | float | None = None


class PhaseStats(BaseModel):
    """케이스+단계 통계"""

    case_id: str
    phase: str
    count: int
    per_field: dict[str, FieldStats]

    def to_response(self) -> dict:
        """API 응답용 평탄화 딕셔너리

        Returns:
            ``{"caseId", "phase", "count", "heartRate": {...}, ...}`` 형태
        """
        body: dict = {"caseId": self.case_id, "phase": self.phase, "count": self.count}
        for name, stats in self.per_field.items():
            alias = Vitals.model_fields[name].alias or name
            body[alias] = stats.model_dump()
        return body
