from __future__ import annotations

from datetime import datetime, timezone
from typing import Callable

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from intraop.core.errors import IntraopError, NotFoundError, ValidationError
from intraop.core.logger import log_event
from intraop.core.phases import PhaseCatalog
from intraop.core.store import RecordStore
from intraop.core.telemetry import TelemetryStore
from intraop.core.vitals import NOTE_FIELDS, VITAL_FIELDS, apply_derived_vitals, check_ranges, compute_map
from intraop.models.intraop import IntraopCreate, IntraopRecord, IntraopUpdate
from intraop.utils.parsing import normalize_phase


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _elapsed_ms(start: datetime) -> int:
    return int((datetime.now(timezone.utc) - start).total_seconds() * 1000)


def parse_payload(model: type[BaseModel], payload: BaseModel | dict) -> BaseModel:
    """요청 본문을 모델로 변환

    Args:
        model: 대상 pydantic 모델
        payload: 모델 인스턴스 또는 딕셔너리

    Returns:
        모델 인스턴스

    Raises:
        ValidationError: 필수 필드 누락 또는 형식 오류 시
    """
    if isinstance(payload, model):
        return payload
    try:
        return model.model_validate(payload)
    except PydanticValidationError as exc:
        first = exc.errors()[0]
        field = ".".join(str(part) for part in first["loc"]) or "body"
        raise ValidationError(field, first["msg"]) from exc


def hydrate_record(row: dict, children: dict[str, list[dict]] | None = None) -> IntraopRecord:
    """저장소 행을 기록 모델로 변환"""
    data = {key: value for key, value in row.items() if key != "seq"}
    if children:
        data.update(children)
    return IntraopRecord.model_validate(data)


def sort_by_phase(rows: list[dict], catalog: PhaseCatalog) -> list[dict]:
    """단계 순서, 시각 순서로 정렬

    카탈로그 단계는 선언 순서를 따르고, 카탈로그에 없는 단계는 그 뒤에
    첫 측정 시각, 라벨 순으로 놓는다.

    Args:
        rows: 저장소 행 목록
        catalog: 단계 카탈로그

    Returns:
        정렬된 행 목록
    """
    first_seen: dict[str, datetime] = {}
    for row in rows:
        if catalog.is_known(row["phase"]):
            continue
        current = first_seen.get(row["phase"])
        if current is None or row["timestamp"] < current:
            first_seen[row["phase"]] = row["timestamp"]

    def _key(row: dict) -> tuple:
        position = catalog.position(row["phase"])
        if position is not None:
            return (0, position, "", row["timestamp"], row["seq"])
        return (1, first_seen[row["phase"]], row["phase"], row["timestamp"], row["seq"])

    return sorted(rows, key=_key)


class IntraopRecordService:
    """수술 중 기록의 생성, 수정, 삭제, 복제를 담당

    저장 전에 생리학적 범위를 검사하고 MAP를 계산한다.
    """

    def __init__(
        self,
        store: RecordStore,
        catalog: PhaseCatalog | None = None,
        telemetry: TelemetryStore | None = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._store = store
        self._catalog = catalog or PhaseCatalog()
        self._telemetry = telemetry
        self._clock = clock

    def _log(self, event: str, level: str, case_id: str | None, stage: str, message: str, **kwargs) -> None:
        log_event(event, level, case_id, stage, message, telemetry=self._telemetry, **kwargs)

    def _load(self, record_id: str) -> IntraopRecord:
        row = self._store.get_record(record_id)
        if row is None:
            raise NotFoundError(f"수술 중 기록을 찾을 수 없음: {record_id}")
        return hydrate_record(row, self._store.list_children(record_id))

    def list_records(self, case_id: str, phase: str | None = None) -> list[IntraopRecord]:
        """케이스의 기록 목록 조회

        Args:
            case_id: 케이스 식별자
            phase: 단계 필터(선택)

        Returns:
            단계, 시각 순으로 정렬된 기록 목록. 없으면 빈 목록
        """
        rows = self._store.list_records(case_id, phase)
        return [hydrate_record(row) for row in sort_by_phase(rows, self._catalog)]

    def get_record(self, record_id: str) -> IntraopRecord:
        """기록 단건 조회

        Raises:
            NotFoundError: 기록이 없을 때
        """
        return self._load(record_id)

    def create_record(self, payload: IntraopCreate | dict) -> IntraopRecord:
        """기록 생성

        Args:
            payload: 생성 요청

        Returns:
            파생 값과 하위 기록이 포함된 저장 기록

        Raises:
            ValidationError: 필수 필드 누락 또는 범위 위반 시
            NotFoundError: 케이스가 없을 때
        """
        start = datetime.now(timezone.utc)
        if isinstance(payload, dict):
            case_id = payload.get("caseId", payload.get("case_id"))
        else:
            case_id = payload.case_id
        try:
            request = parse_payload(IntraopCreate, payload)
            values = request.model_dump()
            check_ranges(values)
            if not self._store.case_exists(request.case_id):
                raise NotFoundError(f"케이스를 찾을 수 없음: {request.case_id}")
        except IntraopError as exc:
            self._log("record_rejected", "WARNING", case_id, "create", exc.message, error_code=exc.code)
            raise

        row = apply_derived_vitals(values, map_supplied=request.map is not None)
        stored = self._store.insert_record(row)
        self._log(
            "record_created",
            "INFO",
            request.case_id,
            "create",
            f"기록 생성 phase={request.phase}",
            duration_ms=_elapsed_ms(start),
            record_count=1,
        )
        return hydrate_record(stored, self._store.list_children(stored["id"]))

    def update_record(self, record_id: str, payload: IntraopUpdate | dict) -> IntraopRecord:
        """기록 부분 수정

        수축기/이완기 혈압이 바뀌거나 MAP가 null로 전달되면, 같은 요청에 MAP 값이
        없는 한 병합된 값으로 MAP를 다시 계산한다. 혈압을 비우지 않았는데
        계산할 수 없으면 기존 MAP를 유지한다.

        Args:
            record_id: 기록 식별자
            payload: 수정 요청(전달된 필드만 반영)

        Returns:
            병합 후 저장된 기록

        Raises:
            ValidationError: 범위 위반 또는 필수 필드를 비우려 할 때
            NotFoundError: 기록이 없을 때
        """
        start = datetime.now(timezone.utc)
        try:
            request = parse_payload(IntraopUpdate, payload)
            changes = {name: getattr(request, name) for name in request.model_fields_set}
            for required in ("phase", "timestamp"):
                if required in changes and changes[required] is None:
                    raise ValidationError(required, "값을 비울 수 없음")
            check_ranges(changes)
            existing = self._store.get_record(record_id)
            if existing is None:
                raise NotFoundError(f"수술 중 기록을 찾을 수 없음: {record_id}")
        except IntraopError as exc:
            self._log("record_rejected", "WARNING", None, "update", exc.message, error_code=exc.code)
            raise

        map_supplied = changes.get("map") is not None
        if not map_supplied and {"sys", "dia", "map"} & changes.keys():
            systolic = changes["sys"] if "sys" in changes else existing["sys"]
            diastolic = changes["dia"] if "dia" in changes else existing["dia"]
            derived = compute_map(systolic, diastolic)
            if derived is not None:
                changes["map"] = derived
            elif "map" in changes or any(
                field in changes and changes[field] is None for field in ("sys", "dia")
            ):
                # 혈압을 명시적으로 비우거나 map을 null로 보낸 경우에만 MAP를 비운다
                changes["map"] = None

        updated = self._store.update_record(record_id, changes)
        if updated is None:
            raise NotFoundError(f"수술 중 기록을 찾을 수 없음: {record_id}")
        self._log(
            "record_updated",
            "INFO",
            updated["case_id"],
            "update",
            f"기록 수정 fields={sorted(changes)}",
            duration_ms=_elapsed_ms(start),
            record_count=1,
        )
        return hydrate_record(updated, self._store.list_children(record_id))

    def delete_record(self, record_id: str) -> dict:
        """기록 삭제(하위 기록 포함)

        Raises:
            NotFoundError: 기록이 없을 때
        """
        existing = self._store.get_record(record_id)
        if existing is None or not self._store.delete_record(record_id):
            self._log("record_rejected", "WARNING", None, "delete", f"기록 없음: {record_id}", error_code="INTRAOP_NOT_FOUND")
            raise NotFoundError(f"수술 중 기록을 찾을 수 없음: {record_id}")
        self._log("record_deleted", "INFO", existing["case_id"], "delete", "기록 삭제", record_count=1)
        return {"id": record_id, "deleted": True, "message": "기록 삭제 완료"}

    def duplicate_last(self, case_id: str, phase: str) -> IntraopRecord:
        """단계의 마지막 기록을 현재 시각으로 복제

        MAP를 포함한 생체신호와 관찰 기록을 그대로 복사하고 MAP는 다시 계산하지 않는다.
        하위 기록은 복사하지 않는다.

        Args:
            case_id: 케이스 식별자
            phase: 단계 라벨

        Returns:
            새로 생성된 기록

        Raises:
            ValidationError: 케이스나 단계가 비어 있을 때
            NotFoundError: 해당 단계에 이전 기록이 없을 때
        """
        try:
            if case_id is None or not str(case_id).strip():
                raise ValidationError("caseId", "값이 필요함")
            phase = normalize_phase(phase)
            source = self._store.latest_record(str(case_id).strip(), phase)
            if source is None:
                raise NotFoundError(f"복제할 이전 기록 없음: phase={phase}")
        except IntraopError as exc:
            self._log("record_rejected", "WARNING", case_id, "duplicate", exc.message, error_code=exc.code)
            raise

        row = {field: source[field] for field in (*VITAL_FIELDS, *NOTE_FIELDS)}
        row.update(case_id=source["case_id"], phase=source["phase"], timestamp=self._clock())
        stored = self._store.insert_record(row)
        self._log(
            "record_duplicated",
            "INFO",
            source["case_id"],
            "duplicate",
            f"기록 복제 source={source['id']}",
            record_count=1,
        )
        return hydrate_record(stored, self._store.list_children(stored["id"]))
