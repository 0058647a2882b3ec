from fastapi import Request

from intraop.core.lifecycle import IntraopRecordService
from intraop.core.segmentation import PhaseTimelineService
from intraop.core.stats import PhaseStatsService


def get_record_service(request: Request) -> IntraopRecordService:
    """요청마다 기록 서비스를 구성"""
    state = request.app.state
    return IntraopRecordService(state.store, state.catalog, state.telemetry)


def get_stats_service(request: Request) -> PhaseStatsService:
    """요청마다 통계 서비스를 구성"""
    state = request.app.state
    return PhaseStatsService(state.store, telemetry=state.telemetry)


def get_timeline_service(request: Request) -> PhaseTimelineService:
    """요청마다 차트 구간 서비스를 구성"""
    state = request.app.state
    return PhaseTimelineService(
        state.store,
        state.catalog,
        min_label_width=state.settings.chart_min_label_width,
        telemetry=state.telemetry,
    )
