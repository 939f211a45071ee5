"""
Service/network_modules/topology/contract.py

노드 그룹을 대표 노드 하나로 축약(contraction)하고, 같은 위치의 중복 노드를 합치는(unique) 모듈입니다.
"""
from __future__ import annotations

from typing import Callable, List, Optional, Sequence, Union

import numpy as np
import pandas as pd
from shapely.geometry import Point

from Common.log import Log
from Function.decorators import check_network_invariants, log_execution_time, safe_run
from Service.config import NetworkConfig
from ..errors import InvalidArgument
from ..model.geometry import centroid, coords_of, match_coordinates, replace_endpoints
from ..model.network import FROM, GEOM, TO, SpatialNetwork, build_nodes, remap_edge_endpoints
from ..model.reducers import AttributeSummary, combinable_columns
from .simplify import NetworkSimplifier

Aggregator = Union[str, Callable[[List[Point]], Point]]

_AGGREGATORS = {
    "centroid": centroid,
    "first": lambda points: points[0],
}


class NodeContractor:
    """
    노드마다 하나의 그룹 id를 받아 2개 이상인 그룹을 대표 노드 하나로 바꾸고 간선을 다시 연결합니다.

    - 결과 노드 수 = 서로 다른 그룹 수, 노드 번호는 그룹이 처음 등장한 순서
    - 간선은 제거하지 않습니다. 같은 그룹 안의 간선은 루프 간선으로 남습니다 (simplify=True면 단순화).
    - 명시적 간선의 끝점은 대표 노드 좌표로 옮겨집니다.
    """
    def __init__(self, logger: Log, config: Optional[NetworkConfig] = None, validator=None):
        self._logger = logger
        self._config = config or NetworkConfig()
        self._validator = validator
        self._simplifier = NetworkSimplifier(logger, self._config, validator)

    @safe_run
    @check_network_invariants
    @log_execution_time
    def execute(
            self,
            net: SpatialNetwork,
            groups: Sequence,
            summary=None,
            aggregate: Optional[Aggregator] = None,
            simplify: bool = False,
    ) -> SpatialNetwork:
        codes = self._group_codes(groups, net.n_nodes)
        aggregate_fn = self._resolve_aggregate(aggregate)
        summary = AttributeSummary.coerce(summary, default=self._config.default_attribute_reducer)
        summary.validate(list(net.nodes.columns))

        n_groups = int(codes.max()) + 1 if len(codes) else 0
        if n_groups == net.n_nodes:
            self._logger.log("[Topology:Contractor] 축약할 그룹이 없습니다.", level="INFO")
            return self._simplifier.execute(net) if simplify else net

        node_geoms = list(net.nodes.geometry)
        attr_cols = combinable_columns(net.nodes.columns)
        members = pd.Series(np.arange(net.n_nodes)).groupby(codes, sort=True)

        records: List[dict] = []
        geoms: List[Point] = []
        merged_groups = 0
        for _, rows in members:
            rows = rows.to_numpy()
            if len(rows) == 1:
                records.append(net.nodes.iloc[rows[0]].drop(labels=GEOM).to_dict())
                geoms.append(node_geoms[rows[0]])
                continue
            merged_groups += 1
            values = summary.reduce(net.nodes.iloc[rows], attr_cols)
            values.update({c: None for c in net.nodes.columns if c not in attr_cols and c != GEOM})
            records.append(values)
            geoms.append(aggregate_fn([node_geoms[r] for r in rows]))

        columns = [c for c in net.nodes.columns if c != GEOM]
        table = pd.DataFrame(records, columns=columns, index=pd.RangeIndex(len(records))).infer_objects()
        nodes = build_nodes(table, geoms, crs=net.crs)
        edges = remap_edge_endpoints(net.edges, codes)

        if net.has_explicit_edges and len(edges):
            edges = self._move_endpoints(edges, codes, coords_of(geoms), net.n_nodes)

        result = net.with_tables(nodes=nodes, edges=edges)
        self._logger.log(
            f"[Topology:Contractor] 그룹 {merged_groups}개 축약: 노드 {net.n_nodes} -> {result.n_nodes}, "
            f"간선 {result.n_edges} (루프 {int((result.edges[FROM] == result.edges[TO]).sum())})",
            level="INFO",
        )
        if simplify:
            result = self._simplifier.execute(result)
        return result

    @staticmethod
    def _move_endpoints(edges: pd.DataFrame, codes: np.ndarray, new_xy: np.ndarray, n_nodes: int) -> pd.DataFrame:
        """2개 이상 노드가 합쳐진 그룹에 닿는 간선만 끝점 좌표를 대표 노드로 옮깁니다."""
        sizes = np.bincount(codes, minlength=len(new_xy))
        moved = sizes[edges[FROM].to_numpy()] > 1
        moved |= sizes[edges[TO].to_numpy()] > 1
        if not moved.any():
            return edges
        out = edges.copy()
        geoms = list(out.geometry)
        for i in np.flatnonzero(moved):
            u, v = int(out[FROM].iat[i]), int(out[TO].iat[i])
            geoms[i] = replace_endpoints(geoms[i], new_xy[u], new_xy[v])
        out[GEOM] = geoms
        return out

    @staticmethod
    def _group_codes(groups: Sequence, n_nodes: int) -> np.ndarray:
        values = pd.Series(list(groups) if not isinstance(groups, (pd.Series, np.ndarray)) else groups)
        if len(values) != n_nodes:
            raise InvalidArgument(f"그룹 배열 길이가 노드 수와 다릅니다: {len(values)} != {n_nodes}")
        if values.isna().any():
            raise InvalidArgument("그룹 배열에 결측값이 있습니다. 모든 노드에 그룹 id가 필요합니다.")
        codes, _ = pd.factorize(values, sort=False)
        return codes.astype(np.int64)

    @staticmethod
    def _resolve_aggregate(aggregate: Optional[Aggregator]) -> Callable[[List[Point]], Point]:
        if aggregate is None:
            return _AGGREGATORS["centroid"]
        if callable(aggregate):
            return aggregate
        if aggregate in _AGGREGATORS:
            return _AGGREGATORS[aggregate]
        raise InvalidArgument(f"알 수 없는 대표 좌표 계산 방식입니다: {aggregate!r} (허용: {sorted(_AGGREGATORS)} 또는 callable)")


class SpatialDeduplicator:
    """
    허용치(ε) 이내로 같은 위치에 있는 노드들을 한 노드로 합칩니다.

    각 노드를 같은 위치의 첫 번째 노드로 매핑한 결과를 그룹으로 삼아 NodeContractor에 위임합니다.
    """
    def __init__(self, logger: Log, config: Optional[NetworkConfig] = None, validator=None):
        self._logger = logger
        self._config = config or NetworkConfig()
        self._validator = validator
        self._contractor = NodeContractor(logger, self._config, validator)

    @safe_run
    @check_network_invariants
    @log_execution_time
    def execute(self, net: SpatialNetwork, summary=None) -> SpatialNetwork:
        roots = match_coordinates(coords_of(list(net.nodes.geometry)), float(self._config.coordinate_tolerance))
        duplicates = int((roots != np.arange(net.n_nodes)).sum())
        if duplicates == 0:
            self._logger.log("[Topology:Unique] 중복 위치 노드가 없습니다.", level="INFO")
            return net

        self._logger.log(f"[Topology:Unique] 중복 위치 노드 {duplicates}개를 병합합니다.", level="INFO")
        return self._contractor.execute(net, roots, summary=summary, aggregate="centroid")
