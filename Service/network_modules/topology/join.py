"""
Service/network_modules/topology/join.py

독립적으로 만들어진 두 네트워크를 노드 좌표 일치 기준으로 하나로 합치는(join) 모듈입니다.
"""
from __future__ import annotations

from typing import Literal, Optional

import geopandas as gpd
import numpy as np
import pandas as pd
from pyproj import CRS

from Common.log import Log
from Function.decorators import check_network_invariants, log_execution_time, safe_run
from Service.config import NetworkConfig
from ..errors import InvalidArgument, StructuralViolation
from ..model.geometry import coords_of, match_against
from ..model.network import GEOM, SpatialNetwork, remap_edge_endpoints
from ..model.reducers import is_missing

NodePolicy = Literal["x", "y", "coalesce"]
_POLICIES = ("x", "y", "coalesce")


class NetworkJoiner:
    """
    x, y 노드의 완전 외부 조인(좌표 일치, ε 이내)으로 통합 노드 테이블을 만들고 간선 테이블을 이어 붙입니다.

    - 결과 노드 수 = |x 노드| + |y 노드| - 일치 쌍 수, 결과 간선 수 = |x 간선| + |y 간선|
    - 간선끼리는 공간 조인하지 않으므로 같은 선형의 간선은 평행 간선으로 남습니다.
    - 일치 노드의 속성은 node_policy로 정합니다.
        x: x 값 유지, y 값 버림 / y: y 값으로 덮어씀 / coalesce: x 값이 결측일 때만 y 값 사용
    """
    def __init__(self, logger: Log, config: Optional[NetworkConfig] = None, validator=None):
        self._logger = logger
        self._config = config or NetworkConfig()
        self._validator = validator

    @safe_run
    @check_network_invariants
    @log_execution_time
    def execute(self, x: SpatialNetwork, y: SpatialNetwork, node_policy: Optional[NodePolicy] = None) -> SpatialNetwork:
        policy = node_policy or self._config.join_node_policy
        if policy not in _POLICIES:
            raise InvalidArgument(f"알 수 없는 노드 병합 규칙입니다: {policy!r} (허용: {list(_POLICIES)})")
        self._check_crs(x, y)
        if x.directed != y.directed:
            self._logger.log(
                f"[Topology:Joiner] 방향성이 다른 네트워크를 조인합니다. x의 방향성(directed={x.directed})을 따릅니다.",
                level="WARNING",
            )

        eps = float(self._config.coordinate_tolerance)
        match = match_against(coords_of(list(x.nodes.geometry)), coords_of(list(y.nodes.geometry)), eps)
        matched = match >= 0
        n_matched = int(matched.sum())

        mapping = np.empty(y.n_nodes, dtype=np.int64)
        mapping[matched] = match[matched]
        mapping[~matched] = x.n_nodes + np.arange(int((~matched).sum()), dtype=np.int64)

        shared_targets = pd.Series(match[matched]).duplicated().sum()
        if shared_targets:
            self._logger.log(
                f"[Topology:Joiner] x의 한 노드에 y 노드 여러 개가 일치했습니다 ({int(shared_targets)}건). 모두 같은 노드로 합칩니다.",
                level="WARNING",
            )

        nodes = self._join_nodes(x, y, match, policy)
        edges = self._join_edges(x, y, mapping)
        result = SpatialNetwork(nodes=nodes, edges=edges, directed=x.directed, active=x.active)

        self._logger.log(
            f"[Topology:Joiner] 노드 {x.n_nodes} + {y.n_nodes} - 일치 {n_matched} = {result.n_nodes}, "
            f"간선 {x.n_edges} + {y.n_edges} = {result.n_edges} (규칙 {policy})",
            level="INFO",
        )
        return result

    @staticmethod
    def _join_nodes(x: SpatialNetwork, y: SpatialNetwork, match: np.ndarray, policy: str) -> gpd.GeoDataFrame:
        x_nodes = pd.DataFrame(x.nodes).copy()
        y_nodes = pd.DataFrame(y.nodes)

        if policy != "x":
            y_rows = np.flatnonzero(match >= 0)
            x_rows = match[y_rows]
            first = ~pd.Series(x_rows).duplicated().to_numpy()
            y_rows, x_rows = y_rows[first], x_rows[first]
            for col in (c for c in y_nodes.columns if c != GEOM):
                values = x_nodes[col].tolist() if col in x_nodes.columns else [None] * len(x_nodes)
                incoming = y_nodes[col].tolist()
                for xr, yr in zip(x_rows, y_rows):
                    if policy == "y" or is_missing(values[xr]):
                        values[xr] = incoming[yr]
                x_nodes[col] = pd.Series(values, index=x_nodes.index).infer_objects()

        added = y_nodes.loc[match < 0]
        merged = pd.concat([x_nodes, added], ignore_index=True)
        return gpd.GeoDataFrame(merged, geometry=GEOM, crs=x.crs)

    @staticmethod
    def _join_edges(x: SpatialNetwork, y: SpatialNetwork, mapping: np.ndarray) -> pd.DataFrame:
        y_aligned = y.make_edges_explicit() if x.has_explicit_edges else y.make_edges_implicit()
        y_edges = remap_edge_endpoints(y_aligned.edges, mapping)
        merged = pd.concat([pd.DataFrame(x.edges), pd.DataFrame(y_edges)], ignore_index=True)
        if x.has_explicit_edges:
            return gpd.GeoDataFrame(merged, geometry=GEOM, crs=x.crs)
        return merged

    @staticmethod
    def _check_crs(x: SpatialNetwork, y: SpatialNetwork) -> None:
        if x.crs is None and y.crs is None:
            return
        if x.crs is None or y.crs is None or not CRS.from_user_input(x.crs).equals(CRS.from_user_input(y.crs)):
            raise StructuralViolation(f"좌표계가 다른 네트워크는 조인할 수 없습니다: {x.crs} != {y.crs}")
