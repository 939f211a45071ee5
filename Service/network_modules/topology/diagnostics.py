"""
Service/network_modules/topology/diagnostics.py

위상 변환 결과의 연결 구조와 간선 길이 분포, 정리 대상(루프/다중 간선/pseudo node) 잔존 여부를 로그로 출력하는 진단 모듈입니다.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Optional

import momepy
import networkx as nx
import numpy as np
import pandas as pd

from Common.log import Log
from ..model.graph import node_degrees
from ..model.network import FROM, TO, SpatialNetwork


@dataclass(frozen=True)
class NetworkDiagnosticsPolicy:
    """진단 시 리스크 판정 및 샘플링 제한을 위한 임계값 설정입니다."""
    short_edge_threshold: float = 1e-6
    top_n_suspects: int = 10


class NetworkDiagnostics:
    """
    momepy primal 그래프로 본 연결 요소·차수 분포와, 네트워크 테이블 기준 정리 대상 수를 보고합니다.
    """

    def __init__(self, logger: Log, policy: Optional[NetworkDiagnosticsPolicy] = None):
        self._logger = logger
        self._policy = policy or NetworkDiagnosticsPolicy()

    def report(self, net: SpatialNetwork) -> Dict[str, float]:
        """
        진단 결과를 로깅하고 요약 수치를 딕셔너리로 반환합니다.
        """
        if net.n_edges == 0:
            self._logger.log("[Topology:Diag] 분석 대상 간선이 비어있습니다.", level="WARNING")
            return {"nodes": net.n_nodes, "edges": 0}

        summary: Dict[str, float] = {"nodes": net.n_nodes, "edges": net.n_edges}
        summary.update(self._log_graph_summary(net))
        summary.update(self._log_cleanup_candidates(net))
        self._log_edge_length_summary(net)
        return summary

    def _log_graph_summary(self, net: SpatialNetwork) -> Dict[str, float]:
        """선형 좌표로 다시 구성한 그래프의 차수별 노드 수와 연결 요소 수를 기록합니다."""
        edges_gdf = net.make_edges_explicit().edges
        G = momepy.gdf_to_nx(edges_gdf, approach="primal", directed=False)

        degrees = [d for _, d in G.degree()]
        d1 = degrees.count(1)
        d2 = degrees.count(2)
        d3p = sum(1 for d in degrees if d >= 3)
        comps = nx.number_connected_components(G)

        isolated = net.n_nodes - len(np.union1d(net.edges[FROM].to_numpy(), net.edges[TO].to_numpy()))
        self._logger.log(
            f"[Topology:Diag][Graph] 노드={net.n_nodes} 간선={net.n_edges} "
            f"그룹={comps} 단말(D1)={d1} 통과(D2)={d2} 교차(D3+)={d3p} 고립={isolated}",
            level="INFO",
        )
        return {"components": comps, "isolated": isolated}

    def _log_cleanup_candidates(self, net: SpatialNetwork) -> Dict[str, float]:
        """단순화/스무딩 후에도 남은 루프, 다중 간선, pseudo node 수를 기록합니다."""
        froms = net.edges[FROM].to_numpy()
        tos = net.edges[TO].to_numpy()
        loops = int((froms == tos).sum())

        if net.directed:
            keys = pd.MultiIndex.from_arrays([froms, tos])
        else:
            keys = pd.MultiIndex.from_arrays([np.minimum(froms, tos), np.maximum(froms, tos)])
        multi = int(keys.duplicated().sum())

        in_deg, out_deg, total = node_degrees(net)
        pseudo = int(((in_deg == 1) & (out_deg == 1)).sum()) if net.directed else int((total == 2).sum())

        level = "WARNING" if (loops or multi) else "INFO"
        self._logger.log(
            f"[Topology:Diag][Cleanup] 루프={loops} 다중 간선={multi} pseudo node 후보={pseudo}",
            level=level,
        )
        return {"loops": loops, "multi_edges": multi, "pseudo_nodes": pseudo}

    def _log_edge_length_summary(self, net: SpatialNetwork) -> None:
        """간선 길이에 대한 백분위수 분포와 매우 짧은 간선 후보를 기록합니다."""
        lengths = pd.Series(net.edge_geometry().length.to_numpy())
        desc = lengths.describe(percentiles=[0.01, 0.05, 0.1, 0.5, 0.9, 0.95, 0.99]).to_dict()
        self._logger.log(
            "[Topology:Diag][EdgeLen] "
            + " ".join([f"{k}={float(v):.3f}" for k, v in desc.items() if k != "count"]),
            level="INFO",
        )

        short = lengths[lengths <= self._policy.short_edge_threshold]
        if len(short):
            sample = short.index[: self._policy.top_n_suspects].tolist()
            self._logger.log(
                f"[Topology:Diag][EdgeLen] 길이 {self._policy.short_edge_threshold} 이하 간선 {len(short)}개 (예: {sample})",
                level="DEBUG",
            )
