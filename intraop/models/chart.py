from pydantic import BaseModel, ConfigDict, Field


class PhaseSegment(BaseModel):
    """같은 단계 라벨이 연속된 구간"""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    phase: str = Field(..., description="단계 라벨")
    start_index: int = Field(..., alias="startIndex", description="첫 포인트 인덱스")
    end_index: int = Field(..., alias="endIndex", description="마지막 포인트 인덱스(포함)")


class PhaseBand(BaseModel):
    """차트 배경에 그릴 단계 구간"""

    model_config = ConfigDict(populate_by_name=True)

    phase: str
    label: str
    color: str
    start_x: float = Field(..., alias="startX")
    end_x: float = Field(..., alias="endX")
    width: float
    show_label: bool = Field(..., alias="showLabel")


class HemodynamicSeries(BaseModel):
    """시각 순 혈역학 시계열"""

    model_config = ConfigDict(populate_by_name=True)

    heart_rate: list[int | None] = Field(default_factory=list, alias="heartRate")
    map: list[int | None] = Field(default_factory=list)
    cvp: list[int | None] = Field(default_factory=list)
    sat_o2: list[int | None] = Field(default_factory=list, alias="satO2")
    temp: list[float | None] = Field(default_factory=list)


class PhaseChart(BaseModel):
    """단계 배경이 있는 시계열 차트 데이터"""

    model_config = ConfigDict(populate_by_name=True)

    case_id: str = Field(..., alias="caseId")
    labels: list[str] = Field(default_factory=list)
    phases: list[str] = Field(default_factory=list)
    series: HemodynamicSeries = Field(default_factory=HemodynamicSeries)
    segments: list[PhaseSegment] = Field(default_factory=list)
    bands: list[PhaseBand] | None = None

    def to_response(self) -> dict:
        """API 응답용 딕셔너리(camelCase)"""
        return self.model_dump(mode="json", by_alias=True)
