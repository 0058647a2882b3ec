from fastapi import FastAPI

from intraop.api.errors import register_error_handlers
from intraop.api.routes import router as api_router
from intraop.core.config import get_settings
from intraop.core.logging import configure_logging
from intraop.core.phases import load_phase_catalog
from intraop.core.store import DuckDBRecordStore
from intraop.core.telemetry import TelemetryStore


def create_app() -> FastAPI:
    """애플리케이션을 생성하고 FastAPI를 설정"""
    settings = get_settings()
    configure_logging(settings.log_level)

    app = FastAPI(title="Intraop Records", version=settings.version)
    app.state.settings = settings
    app.state.store = DuckDBRecordStore(settings.database_path)
    app.state.telemetry = (
        TelemetryStore(settings.telemetry_path) if settings.telemetry_enabled else None
    )
    app.state.catalog = load_phase_catalog()
    register_error_handlers(app)
    app.include_router(api_router)

    return app


app = create_app()
