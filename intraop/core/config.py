from functools import lru_cache
from pathlib import Path
from typing import Literal

import yaml
from pydantic import BaseModel
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """환경 변수에서 애플리케이션 설정을 로드"""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")

    environment: Literal["local", "dev", "prod"] = "local"
    version: str = "0.1.0"
    log_level: str = "INFO"
    database_path: str = "data/intraop.duckdb"
    telemetry_path: str = "data/telemetry.duckdb"
    telemetry_enabled: bool = True
    phase_catalog_path: str = "phases.yaml"
    chart_min_label_width: float = 40.0


class PhaseConfig(BaseModel):
    """수술 단계 카탈로그 항목을 정의"""

    code: str
    label: str | None = None
    color: str | None = None


class PhaseCatalogConfig(BaseModel):
    """단계 카탈로그 설정 래퍼"""

    phases: list[PhaseConfig] = []


@lru_cache
def get_settings() -> Settings:
    """캐시된 설정 인스턴스를 반환"""
    return Settings()


@lru_cache
def load_phase_catalog_config() -> PhaseCatalogConfig | None:
    """설정 파일(YAML)에서 단계 카탈로그 로드

    Returns:
        단계 카탈로그 설정, 파일이 없으면 None
    """
    settings = get_settings()
    path = Path(settings.phase_catalog_path)
    if not path.is_file():
        return None
    with open(path, "r", encoding="utf-8") as handle:
        data = yaml.safe_load(handle) or {}
    return PhaseCatalogConfig(**data)


def reload_phase_catalog_config() -> PhaseCatalogConfig | None:
    """설정 캐시를 초기화하고 다시 로드

    Returns:
        단계 카탈로그 설정
    """
    load_phase_catalog_config.cache_clear()
    return load_phase_catalog_config()
