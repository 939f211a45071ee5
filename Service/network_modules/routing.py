"""
Service/network_modules/routing.py

네트워크 위에서 출발지-도착지 쌍의 최단 경로와 비용 행렬을 계산하는 경로 탐색 파사드 모듈입니다.
"""
from __future__ import annotations

from typing import Callable, Dict, List, Literal, Optional, Sequence, Tuple, Union

import networkx as nx
import numpy as np
import pandas as pd
from shapely.geometry import Point

from Common.log import Log
from Function.decorators import log_execution_time, safe_run
from Service.config import NetworkConfig
from .errors import InvalidArgument
from .measures import edge_length
from .model.geometry import NearestIndex
from .model.graph import to_networkx
from .model.network import SpatialNetwork

Router = Literal["dijkstra", "bellman-ford"]
NodeRef = Union[int, Point]
WeightsLike = Union[None, str, Sequence[float]]

_SOURCE_SEARCH: Dict[str, Callable] = {
    "dijkstra": nx.single_source_dijkstra,
    "bellman-ford": nx.single_source_bellman_ford,
}


class NetworkRouter:
    """
    라우터(dijkstra / bellman-ford)는 호출 인자 또는 설정값(routing_default_router)으로 명시적으로 정합니다.

    같은 노드 쌍의 평행 간선은 가중치가 가장 작은 간선만 경로 후보가 됩니다.
    """
    def __init__(self, logger: Log, config: Optional[NetworkConfig] = None):
        self._logger = logger
        self._config = config or NetworkConfig()

    @safe_run
    @log_execution_time
    def shortest_paths(
            self,
            net: SpatialNetwork,
            origins: Sequence[NodeRef],
            destinations: Sequence[NodeRef],
            weights: WeightsLike = None,
            router: Optional[Router] = None,
    ) -> pd.DataFrame:
        """
        출발지 x 도착지 모든 쌍의 경로 레코드를 반환합니다.

        Returns:
            pd.DataFrame: origin, destination, node_path, edge_path, cost, found 컬럼.
                도달 불가 쌍은 빈 경로, cost=inf, found=False입니다.
        """
        graph, search, origin_ids, dest_ids = self._prepare(net, origins, destinations, weights, router)

        rows: List[dict] = []
        for o in origin_ids:
            costs, paths = search(graph, o, weight="weight")
            for d in dest_ids:
                if d not in paths:
                    rows.append(self._record(o, d, [], [], float("inf"), False))
                    continue
                node_path = [int(n) for n in paths[d]]
                edge_path = [int(graph[u][v]["edge_index"]) for u, v in zip(node_path[:-1], node_path[1:])]
                rows.append(self._record(o, d, node_path, edge_path, float(costs[d]), True))

        result = pd.DataFrame(rows, columns=["origin", "destination", "node_path", "edge_path", "cost", "found"])
        self._logger.log(
            f"[Routing] 경로 {len(result)}쌍 계산, 도달 불가 {int((~result['found']).sum()) if len(result) else 0}쌍",
            level="INFO",
        )
        return result

    @safe_run
    @log_execution_time
    def cost_matrix(
            self,
            net: SpatialNetwork,
            origins: Sequence[NodeRef],
            destinations: Sequence[NodeRef],
            weights: WeightsLike = None,
            router: Optional[Router] = None,
    ) -> np.ndarray:
        """출발지 x 도착지 비용 행렬을 반환합니다. 도달 불가 쌍은 inf입니다."""
        graph, search, origin_ids, dest_ids = self._prepare(net, origins, destinations, weights, router)

        matrix = np.full((len(origin_ids), len(dest_ids)), np.inf, dtype=float)
        for i, o in enumerate(origin_ids):
            costs, _paths = search(graph, o, weight="weight")
            for j, d in enumerate(dest_ids):
                if d in costs:
                    matrix[i, j] = float(costs[d])

        self._logger.log(f"[Routing] 비용 행렬 {matrix.shape} 계산, 도달 불가 {int(np.isinf(matrix).sum())}칸", level="INFO")
        return matrix

    def _prepare(
            self,
            net: SpatialNetwork,
            origins: Sequence[NodeRef],
            destinations: Sequence[NodeRef],
            weights: WeightsLike,
            router: Optional[Router],
    ) -> Tuple[nx.Graph, Callable, List[int], List[int]]:
        router = router or self._config.routing_default_router
        if router not in _SOURCE_SEARCH:
            raise InvalidArgument(f"알 수 없는 라우터입니다: {router!r} (허용: {sorted(_SOURCE_SEARCH)})")

        w = self._resolve_weights(net, weights)
        snapper = NearestIndex(list(net.nodes.geometry)) if self._has_points(origins, destinations) else None
        origin_ids = self._resolve_nodes(net, origins, snapper, "출발지")
        dest_ids = self._resolve_nodes(net, destinations, snapper, "도착지")

        self._logger.log(
            f"[Routing] 라우터={router}, 출발지 {len(origin_ids)}개, 도착지 {len(dest_ids)}개",
            level="DEBUG",
        )
        return to_networkx(net, weights=w, multigraph=False), _SOURCE_SEARCH[router], origin_ids, dest_ids

    def _resolve_weights(self, net: SpatialNetwork, weights: WeightsLike) -> np.ndarray:
        """None은 설정 가중치 컬럼(없으면 간선 길이), 문자열은 간선 속성명, 그 외는 간선 수 길이의 수치 배열입니다."""
        if weights is None:
            weights = self._config.routing_default_weight
        if weights is None:
            return edge_length(net)

        if isinstance(weights, str):
            if weights not in net.edges.columns:
                raise InvalidArgument(f"가중치 컬럼 '{weights}'이(가) 간선 테이블에 없습니다.")
            values = pd.to_numeric(net.edges[weights], errors="coerce").to_numpy(dtype=float)
        else:
            values = np.asarray(weights, dtype=float)

        if values.shape != (net.n_edges,):
            raise InvalidArgument(f"가중치 길이가 간선 수와 다릅니다: {values.shape} != ({net.n_edges},)")
        if np.isnan(values).any():
            raise InvalidArgument("가중치에 결측값 또는 수치가 아닌 값이 있습니다.")
        if (values < 0).any():
            raise InvalidArgument("음수 가중치는 허용되지 않습니다.")
        return values

    @staticmethod
    def _has_points(*groups: Sequence[NodeRef]) -> bool:
        return any(isinstance(ref, Point) for group in groups for ref in group)

    def _resolve_nodes(self, net: SpatialNetwork, refs: Sequence[NodeRef], snapper: Optional[NearestIndex], label: str) -> List[int]:
        """노드 인덱스는 범위를 검사하고, 점은 가장 가까운 노드로 스냅합니다."""
        out: List[int] = []
        for ref in refs:
            if isinstance(ref, Point):
                node, dist, n_ties = snapper.nearest(ref)
                if node < 0:
                    raise InvalidArgument(f"{label} 점을 스냅할 노드가 없습니다.")
                if n_ties > 1:
                    self._logger.log(f"[Routing] {label} 점과 같은 거리의 노드가 {n_ties}개입니다. 노드 {node}를 사용합니다.", level="WARNING")
                out.append(node)
                continue
            if isinstance(ref, (bool, np.bool_)) or not isinstance(ref, (int, np.integer)):
                raise InvalidArgument(f"{label}는 노드 인덱스(int) 또는 Point여야 합니다: {ref!r}")
            if ref < 0 or ref >= net.n_nodes:
                raise InvalidArgument(f"{label} 노드 인덱스가 범위를 벗어났습니다: {ref} (노드 수 {net.n_nodes})")
            out.append(int(ref))
        return out

    @staticmethod
    def _record(o: int, d: int, node_path: list, edge_path: list, cost: float, found: bool) -> dict:
        return {
            "origin": o,
            "destination": d,
            "node_path": node_path,
            "edge_path": edge_path,
            "cost": cost,
            "found": found,
        }
