from __future__ import annotations

from pathlib import Path

import duckdb


class TelemetryStore:
    """수술 중 기록 이벤트 로그를 저장하는 DuckDB 텔레메트리 저장소"""

    def __init__(self, path: str = ":memory:") -> None:
        if path != ":memory:":
            Path(path).parent.mkdir(parents=True, exist_ok=True)
        self._conn = duckdb.connect(path)
        self._conn.execute(
            """
            CREATE TABLE IF NOT EXISTS logs (
                timestamp TIMESTAMP,
                level VARCHAR,
                event VARCHAR,
                case_id VARCHAR,
                stage VARCHAR,
                error_code VARCHAR,
                message VARCHAR,
                duration_ms INTEGER,
                record_count INTEGER
            )
            """
        )

    def insert_log(self, record: dict) -> None:
        """로그 레코드를 저장

        Args:
            record: 로그 레코드 딕셔너리
        """
        cursor = self._conn.cursor()
        try:
            cursor.execute(
                """
                INSERT INTO logs (timestamp, level, event, case_id, stage, error_code, message, duration_ms, record_count)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                [
                    record.get("timestamp"),
                    record.get("level"),
                    record.get("event"),
                    record.get("case_id"),
                    record.get("stage"),
                    record.get("error_code"),
                    record.get("message"),
                    record.get("duration_ms"),
                    record.get("record_count"),
                ],
            )
        finally:
            cursor.close()

    def query_logs(self, where: str, params: list) -> list[tuple]:
        """조건절(WHERE)을 사용해 로그를 조회

        Args:
            where: SQL WHERE 절
            params: 파라미터 목록

        Returns:
            행 목록
        """
        query = "SELECT * FROM logs"
        if where:
            query += f" WHERE {where}"
        query += " ORDER BY timestamp"
        cursor = self._conn.cursor()
        try:
            return cursor.execute(query, params).fetchall()
        finally:
            cursor.close()

    def close(self) -> None:
        self._conn.close()
