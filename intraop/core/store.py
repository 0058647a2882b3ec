from __future__ import annotations

import json
import uuid
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterator, Protocol

import duckdb

from intraop.core.errors import StoreFailure
from intraop.core.vitals import NOTE_FIELDS, VITAL_FIELDS

CHILD_KINDS = ("fluids", "drugs", "monitoring")

RECORD_COLUMNS = (
    "id",
    "seq",
    "case_id",
    "phase",
    "timestamp",
    *VITAL_FIELDS,
    *NOTE_FIELDS,
    "created_at",
    "updated_at",
)

UPDATABLE_COLUMNS = frozenset(("phase", "timestamp", *VITAL_FIELDS, *NOTE_FIELDS))

_SCHEMA = (
    "CREATE SEQUENCE IF NOT EXISTS intraop_record_seq START 1",
    """
    CREATE TABLE IF NOT EXISTS cases (
        id VARCHAR PRIMARY KEY,
        created_at TIMESTAMP
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS intraop_records (
        id VARCHAR PRIMARY KEY,
        seq BIGINT,
        case_id VARCHAR NOT NULL,
        phase VARCHAR NOT NULL,
        "timestamp" TIMESTAMP NOT NULL,
        heart_rate INTEGER,
        "sys" INTEGER,
        dia INTEGER,
        "map" INTEGER,
        cvp INTEGER,
        peep INTEGER,
        fio2 INTEGER,
        tidal_volume INTEGER,
        resp_rate INTEGER,
        sat_o2 INTEGER,
        et_co2 INTEGER,
        "temp" DOUBLE,
        vent_mode VARCHAR,
        observations VARCHAR,
        created_at TIMESTAMP,
        updated_at TIMESTAMP
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS intraop_children (
        id VARCHAR PRIMARY KEY,
        record_id VARCHAR NOT NULL,
        kind VARCHAR NOT NULL,
        payload VARCHAR,
        created_at TIMESTAMP
    )
    """,
)


class RecordStore(Protocol):
    """수술 중 기록 서비스가 요구하는 저장소 계약"""

    def add_case(self, case_id: str) -> None: ...

    def case_exists(self, case_id: str) -> bool: ...

    def delete_case(self, case_id: str) -> int: ...

    def insert_record(self, row: dict) -> dict: ...

    def get_record(self, record_id: str) -> dict | None: ...

    def update_record(self, record_id: str, changes: dict) -> dict | None: ...

    def delete_record(self, record_id: str) -> bool: ...

    def list_records(self, case_id: str, phase: str | None = None) -> list[dict]: ...

    def latest_record(self, case_id: str, phase: str) -> dict | None: ...

    def add_child(self, record_id: str, kind: str, payload: dict) -> dict: ...

    def list_children(self, record_id: str) -> dict[str, list[dict]]: ...


def _to_db_time(value: datetime | None) -> datetime | None:
    """UTC 기준 naive datetime으로 변환"""
    if value is None:
        return None
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc)
    return value.replace(tzinfo=None)


def _from_db_time(value: datetime | None) -> datetime | None:
    if value is None:
        return None
    return value.replace(tzinfo=timezone.utc)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class DuckDBRecordStore:
    """DuckDB 기반 수술 중 기록 저장소

    삽입 순서는 ``seq`` 시퀀스로 보존한다. 케이스/기록 삭제 시 하위 기록도 함께 삭제한다.
    """

    def __init__(self, path: str = ":memory:") -> None:
        if path != ":memory:":
            Path(path).parent.mkdir(parents=True, exist_ok=True)
        try:
            self._conn = duckdb.connect(path)
            for statement in _SCHEMA:
                self._conn.execute(statement)
        except duckdb.Error as exc:
            raise StoreFailure(f"저장소 초기화 실패: {exc}") from exc

    @contextmanager
    def _cursor(self) -> Iterator[duckdb.DuckDBPyConnection]:
        """작업 단위 커서 생성

        Raises:
            StoreFailure: DuckDB 호출 실패 시
        """
        try:
            cursor = self._conn.cursor()
        except duckdb.Error as exc:
            raise StoreFailure(f"저장소 연결 실패: {exc}") from exc
        try:
            yield cursor
        except duckdb.Error as exc:
            raise StoreFailure(f"저장소 호출 실패: {exc}") from exc
        finally:
            cursor.close()

    @staticmethod
    def _rows(cursor: duckdb.DuckDBPyConnection) -> list[dict]:
        columns = [col[0] for col in cursor.description]
        rows = [dict(zip(columns, row)) for row in cursor.fetchall()]
        for row in rows:
            for key in ("timestamp", "created_at", "updated_at"):
                if key in row:
                    row[key] = _from_db_time(row[key])
        return rows

    def add_case(self, case_id: str) -> None:
        """케이스 식별자 등록

        Args:
            case_id: 케이스 식별자
        """
        with self._cursor() as cursor:
            cursor.execute(
                "INSERT INTO cases (id, created_at) VALUES (?, ?) ON CONFLICT DO NOTHING",
                [case_id, _to_db_time(_utcnow())],
            )

    def case_exists(self, case_id: str) -> bool:
        with self._cursor() as cursor:
            cursor.execute("SELECT 1 FROM cases WHERE id = ?", [case_id])
            return cursor.fetchone() is not None

    def delete_case(self, case_id: str) -> int:
        """케이스와 소속 기록을 함께 삭제

        Args:
            case_id: 케이스 식별자

        Returns:
            삭제된 수술 중 기록 수
        """
        with self._cursor() as cursor:
            cursor.begin()
            try:
                cursor.execute(
                    "SELECT count(*) FROM intraop_records WHERE case_id = ?", [case_id]
                )
                removed = cursor.fetchone()[0]
                cursor.execute(
                    """
                    DELETE FROM intraop_children
                    WHERE record_id IN (SELECT id FROM intraop_records WHERE case_id = ?)
                    """,
                    [case_id],
                )
                cursor.execute("DELETE FROM intraop_records WHERE case_id = ?", [case_id])
                cursor.execute("DELETE FROM cases WHERE id = ?", [case_id])
                cursor.commit()
            except duckdb.Error:
                cursor.rollback()
                raise
        return removed

    def insert_record(self, row: dict) -> dict:
        """기록 삽입

        Args:
            row: 필드명 기준 기록 딕셔너리(id 제외)

        Returns:
            저장된 기록 딕셔너리
        """
        now = _to_db_time(_utcnow())
        record_id = uuid.uuid4().hex
        columns = [col for col in RECORD_COLUMNS if col not in {"id", "seq", "created_at", "updated_at"}]
        values = [row.get(col) for col in columns]
        values[columns.index("timestamp")] = _to_db_time(row.get("timestamp"))
        column_sql = ", ".join(f'"{col}"' for col in ["id", "seq", *columns, "created_at", "updated_at"])
        placeholders = ", ".join(["?", "nextval('intraop_record_seq')"] + ["?"] * len(columns) + ["?", "?"])
        with self._cursor() as cursor:
            cursor.execute(
                f"INSERT INTO intraop_records ({column_sql}) VALUES ({placeholders})",
                [record_id, *values, now, now],
            )
        stored = self.get_record(record_id)
        if stored is None:
            raise StoreFailure(f"삽입한 기록을 다시 읽지 못함: {record_id}")
        return stored

    def get_record(self, record_id: str) -> dict | None:
        with self._cursor() as cursor:
            cursor.execute("SELECT * FROM intraop_records WHERE id = ?", [record_id])
            rows = self._rows(cursor)
        return rows[0] if rows else None

    def update_record(self, record_id: str, changes: dict) -> dict | None:
        """기록 부분 수정

        Args:
            record_id: 기록 식별자
            changes: 변경할 필드 딕셔너리

        Returns:
            수정된 기록, 없으면 None

        Raises:
            ValueError: 수정할 수 없는 컬럼이 포함된 경우
        """
        unknown = set(changes) - UPDATABLE_COLUMNS
        if unknown:
            raise ValueError(f"수정할 수 없는 컬럼: {sorted(unknown)}")
        if self.get_record(record_id) is None:
            return None
        if changes:
            values = dict(changes)
            if "timestamp" in values:
                values["timestamp"] = _to_db_time(values["timestamp"])
            assignments = ", ".join(f'"{col}" = ?' for col in values)
            with self._cursor() as cursor:
                cursor.execute(
                    f"UPDATE intraop_records SET {assignments}, updated_at = ? WHERE id = ?",
                    [*values.values(), _to_db_time(_utcnow()), record_id],
                )
        return self.get_record(record_id)

    def delete_record(self, record_id: str) -> bool:
        with self._cursor() as cursor:
            cursor.begin()
            try:
                cursor.execute("SELECT 1 FROM intraop_records WHERE id = ?", [record_id])
                if cursor.fetchone() is None:
                    cursor.rollback()
                    return False
                cursor.execute("DELETE FROM intraop_children WHERE record_id = ?", [record_id])
                cursor.execute("DELETE FROM intraop_records WHERE id = ?", [record_id])
                cursor.commit()
            except duckdb.Error:
                cursor.rollback()
                raise
        return True

    def list_records(self, case_id: str, phase: str | None = None) -> list[dict]:
        """케이스 기록을 삽입 순서대로 조회

        Args:
            case_id: 케이스 식별자
            phase: 단계 필터(선택)

        Returns:
            기록 목록
        """
        query = "SELECT * FROM intraop_records WHERE case_id = ?"
        params: list = [case_id]
        if phase is not None:
            query += " AND phase = ?"
            params.append(phase)
        query += " ORDER BY seq"
        with self._cursor() as cursor:
            cursor.execute(query, params)
            return self._rows(cursor)

    def latest_record(self, case_id: str, phase: str) -> dict | None:
        with self._cursor() as cursor:
            cursor.execute(
                """
                SELECT * FROM intraop_records
                WHERE case_id = ? AND phase = ?
                ORDER BY "timestamp" DESC, seq DESC
                LIMIT 1
                """,
                [case_id, phase],
            )
            rows = self._rows(cursor)
        return rows[0] if rows else None

    def add_child(self, record_id: str, kind: str, payload: dict) -> dict:
        """하위 기록(수액, 약물, 모니터링) 추가

        Args:
            record_id: 상위 기록 식별자
            kind: 하위 기록 종류
            payload: 하위 기록 내용

        Returns:
            저장된 하위 기록

        Raises:
            ValueError: 지원하지 않는 종류일 때
        """
        if kind not in CHILD_KINDS:
            raise ValueError(f"지원하지 않는 하위 기록 종류: {kind}")
        child_id = uuid.uuid4().hex
        with self._cursor() as cursor:
            cursor.execute(
                """
                INSERT INTO intraop_children (id, record_id, kind, payload, created_at)
                VALUES (?, ?, ?, ?, ?)
                """,
                [child_id, record_id, kind, json.dumps(payload, ensure_ascii=False), _to_db_time(_utcnow())],
            )
        return {"id": child_id, **payload}

    def list_children(self, record_id: str) -> dict[str, list[dict]]:
        children: dict[str, list[dict]] = {kind: [] for kind in CHILD_KINDS}
        with self._cursor() as cursor:
            cursor.execute(
                """
                SELECT id, kind, payload FROM intraop_children
                WHERE record_id = ?
                ORDER BY created_at, id
                """,
                [record_id],
            )
            rows = cursor.fetchall()
        for child_id, kind, payload in rows:
            children[kind].append({"id": child_id, **json.loads(payload or "{}")})
        return children

    def close(self) -> None:
        self._conn.close()
