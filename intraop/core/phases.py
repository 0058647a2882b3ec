from __future__ import annotations

from dataclasses import dataclass

from intraop.core.config import PhaseCatalogConfig, load_phase_catalog_config

FALLBACK_COLOR = "rgba(200, 200, 200, 0.1)"


@dataclass(frozen=True)
class PhaseDefinition:
    code: str
    label: str
    color: str


DEFAULT_PHASES = (
    PhaseDefinition("ESTADO_BASAL", "Basal", "rgba(148, 163, 184, 0.15)"),
    PhaseDefinition("INDUCCION", "Inducción", "rgba(96, 165, 250, 0.15)"),
    PhaseDefinition("DISECCION", "Disección", "rgba(52, 211, 153, 0.15)"),
    PhaseDefinition("ANHEPATICA", "Anhepática", "rgba(251, 191, 36, 0.15)"),
    PhaseDefinition("PRE_REPERFUSION", "Pre-Reperfusión", "rgba(249, 115, 22, 0.15)"),
    PhaseDefinition("POST_REPERFUSION", "Post-Reperfusión", "rgba(236, 72, 153, 0.15)"),
    PhaseDefinition("VIA_BILIAR", "Vía Biliar", "rgba(167, 139, 250, 0.15)"),
    PhaseDefinition("FIN_VIA_BILIAR", "Fin Vía Biliar", "rgba(167, 139, 250, 0.15)"),
    PhaseDefinition("CIERRE", "Cierre", "rgba(99, 102, 241, 0.15)"),
    PhaseDefinition("SALIDA_BQ", "Salida BQ", "rgba(139, 92, 246, 0.15)"),
)


class PhaseCatalog:
    """수술 단계 카탈로그

    기본 정렬 순서와 차트 라벨/색상에만 사용한다. 카탈로그에 없는 라벨도 유효하다.
    """

    def __init__(self, phases: tuple[PhaseDefinition, ...] | list[PhaseDefinition] = DEFAULT_PHASES) -> None:
        self._phases = list(phases)
        self._index = {phase.code: position for position, phase in enumerate(self._phases)}

    @classmethod
    def from_config(cls, config: PhaseCatalogConfig | None) -> "PhaseCatalog":
        """YAML 설정에서 카탈로그 생성

        Args:
            config: 단계 카탈로그 설정, None이면 기본 카탈로그

        Returns:
            카탈로그 인스턴스
        """
        if config is None or not config.phases:
            return cls()
        return cls(
            [
                PhaseDefinition(
                    code=item.code,
                    label=item.label or item.code,
                    color=item.color or FALLBACK_COLOR,
                )
                for item in config.phases
            ]
        )

    @property
    def codes(self) -> list[str]:
        return [phase.code for phase in self._phases]

    def is_known(self, code: str) -> bool:
        return code in self._index

    def position(self, code: str) -> int | None:
        return self._index.get(code)

    def label_for(self, code: str) -> str:
        position = self._index.get(code)
        if position is None:
            return code
        return self._phases[position].label

    def color_for(self, code: str) -> str:
        position = self._index.get(code)
        if position is None:
            return FALLBACK_COLOR
        return self._phases[position].color


def load_phase_catalog() -> PhaseCatalog:
    """설정 파일 기준 카탈로그 로드"""
    return PhaseCatalog.from_config(load_phase_catalog_config())
