"""
Service/network_modules/topology/processor.py

선형으로 만든 원시 네트워크를 분할, 중복 노드 병합, 스무딩, 단순화 단계를 거쳐 정돈된 네트워크로 변환하는 오케스트레이터 모듈입니다.
"""
from __future__ import annotations

from typing import Tuple

from Common.log import Log
from Function.decorators import log_execution_time, safe_run
from Service.config import NetworkConfig

from ..model.network import SpatialNetwork
from ..validator import NetworkValidator
from .subdivide import EdgeSubdivider
from .contract import SpatialDeduplicator
from .smooth import PseudoNodeSmoother
from .simplify import NetworkSimplifier
from .diagnostics import NetworkDiagnostics


class TopologyProcessor:
    """
    설정된 단계들을 순서대로 실행합니다: subdivide -> unique -> smooth -> simplify.
    """
    def __init__(
            self,
            logger: Log,
            config: NetworkConfig,
            validator: NetworkValidator,
            subdivider: EdgeSubdivider,
            deduplicator: SpatialDeduplicator,
            smoother: PseudoNodeSmoother,
            simplifier: NetworkSimplifier,
            diagnostics: NetworkDiagnostics,
    ):
        self._logger = logger
        self._config = config
        self._validator = validator
        self._subdivider = subdivider
        self._deduplicator = deduplicator
        self._smoother = smoother
        self._simplifier = simplifier
        self._diagnostics = diagnostics

    @safe_run
    @log_execution_time
    def execute(self, net: SpatialNetwork) -> SpatialNetwork:
        """위상 정돈 파이프라인을 실행하여 최종 결과물만 반환합니다."""
        *_stages, final = self._run_with_stages(net)
        return final

    @safe_run
    @log_execution_time
    def execute_with_stages(
            self, net: SpatialNetwork
    ) -> Tuple[SpatialNetwork, SpatialNetwork, SpatialNetwork, SpatialNetwork]:
        """디버그를 위해 (분할, 중복 병합, 스무딩, 최종) 단계별 산출물을 함께 반환합니다."""
        return self._run_with_stages(net)

    def _run_with_stages(
            self, net: SpatialNetwork
    ) -> Tuple[SpatialNetwork, SpatialNetwork, SpatialNetwork, SpatialNetwork]:
        if net.n_edges == 0:
            self._logger.log("[Topology] 입력 네트워크에 간선이 없습니다.", level="WARNING")
            return net, net, net, net

        self._logger.log("=== [Topology Pipeline] 시작 ===", level="INFO")
        self._validator.validate(net)

        subdivided = self._subdivider.execute(net)

        deduplicated = self._deduplicator.execute(subdivided)

        smoothed = self._smoother.execute(deduplicated)

        final = self._simplifier.execute(smoothed)

        self._validator.report(final)
        self._diagnostics.report(final)

        self._logger.log("=== [Topology Pipeline] 완료 ===", level="INFO")
        return subdivided, deduplicated, smoothed, final
