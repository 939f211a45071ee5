"""
Service/network_modules/topology/smooth.py

정보가 없는 2차 노드(pseudo node)를 제거하고 양쪽 간선을 하나로 이어 붙이는 스무딩 모듈입니다.
"""
from __future__ import annotations

from collections import deque
from typing import Any, Dict, Iterable, List, Optional, Sequence, Set

import numpy as np
import pandas as pd

from Common.log import Log
from Function.decorators import check_network_invariants, log_execution_time, safe_run
from Service.config import NetworkConfig
from ..errors import InvalidArgument
from ..model.geometry import concatenate_lines, reverse_line
from ..model.network import FROM, TO, SpatialNetwork, build_edges, remap_edge_endpoints
from ..model.reducers import REDUCERS, RESERVED_COLUMNS, AttributeSummary, combinable_columns, is_missing, is_tracking_column


class _WorkingGraph:
    """스무딩 중에만 쓰는 가변 인접 구조입니다. 입력 네트워크는 건드리지 않습니다."""

    def __init__(self, net: SpatialNetwork, columns: List[str]):
        self.directed = net.directed
        self.src: Dict[int, int] = {}
        self.dst: Dict[int, int] = {}
        self.geom: Dict[int, Any] = {}
        self.attrs: Dict[int, Dict[str, Any]] = {}
        self.in_edges: Dict[int, Set[int]] = {n: set() for n in range(net.n_nodes)}
        self.out_edges: Dict[int, Set[int]] = {n: set() for n in range(net.n_nodes)}

        records = net.edges[columns].to_dict("records") if columns else [{} for _ in range(net.n_edges)]
        geoms = list(net.edges.geometry) if net.has_explicit_edges else [None] * net.n_edges
        for e, (u, v) in enumerate(zip(net.edges[FROM].to_numpy(), net.edges[TO].to_numpy())):
            self.src[e], self.dst[e] = int(u), int(v)
            self.geom[e] = geoms[e]
            self.attrs[e] = records[e]
            self.out_edges[int(u)].add(e)
            self.in_edges[int(v)].add(e)

    def incident(self, node: int) -> List[int]:
        """루프 간선은 두 번 나타납니다."""
        return sorted(self.in_edges[node]) + sorted(self.out_edges[node])

    def other_end(self, edge: int, node: int) -> int:
        return self.dst[edge] if self.src[edge] == node else self.src[edge]

    def detach(self, edge: int) -> None:
        self.out_edges[self.src[edge]].discard(edge)
        self.in_edges[self.dst[edge]].discard(edge)

    def attach(self, edge: int, u: int, v: int, geom: Any, attrs: Dict[str, Any]) -> None:
        self.src[edge], self.dst[edge] = u, v
        self.geom[edge] = geom
        self.attrs[edge] = attrs
        self.out_edges[u].add(edge)
        self.in_edges[v].add(edge)

    def drop(self, edge: int) -> None:
        self.detach(edge)
        for table in (self.src, self.dst, self.geom, self.attrs):
            del table[edge]


class PseudoNodeSmoother:
    """
    pseudo node를 작업 큐로 관리하며 더 이상 제거할 노드가 없을 때까지 반복합니다.

    방향 네트워크는 진입 1·진출 1, 무방향 네트워크는 서로 다른 간선 2개에 연결된 노드가 대상입니다.
    두 간선이 같은 이웃으로 돌아가는 2-사이클은 루프 간선이 생기므로 병합하지 않고 그대로 둡니다.
    """
    def __init__(self, logger: Log, config: Optional[NetworkConfig] = None, validator=None):
        self._logger = logger
        self._config = config or NetworkConfig()
        self._validator = validator

    @safe_run
    @check_network_invariants
    @log_execution_time
    def execute(
            self,
            net: SpatialNetwork,
            require_equal: Optional[Sequence[str]] = None,
            summary=None,
            protect: Optional[Iterable[int]] = None,
    ) -> SpatialNetwork:
        """
        Args:
            net: 입력 네트워크
            require_equal: 두 간선의 값이 모두 같아야 병합하는 속성 목록
            summary: 병합 간선 속성 계산 규칙 (AttributeSummary, 매핑, 리듀서)
            protect: 제거하지 않을 노드 인덱스
        """
        attr_cols = combinable_columns(net.edges.columns)
        summary = AttributeSummary.coerce(summary, default=self._config.default_attribute_reducer)
        summary.validate(list(net.edges.columns))
        required = self._check_required(require_equal, attr_cols)
        protected = self._check_protected(protect, net.n_nodes)

        carried = [c for c in net.edges.columns if c not in RESERVED_COLUMNS]
        graph = _WorkingGraph(net, carried)
        queue = deque(n for n in range(net.n_nodes) if n not in protected and len(graph.incident(n)) == 2)
        queued = set(queue)
        removed: Set[int] = set()
        refused_cycles = 0

        while queue:
            node = queue.popleft()
            queued.discard(node)
            pair = self._eligible_pair(graph, node, required)
            if pair is None:
                continue
            o, p = pair
            a, c = graph.other_end(o, node), graph.other_end(p, node)
            if a == c:
                refused_cycles += 1
                continue

            self._merge(graph, node, o, p, a, c, required, summary, attr_cols)
            removed.add(node)
            for neighbour in (a, c):
                if neighbour not in queued and neighbour not in removed and neighbour not in protected:
                    queue.append(neighbour)
                    queued.add(neighbour)

        if not removed:
            self._logger.log(f"[Topology:Smoother] 제거할 pseudo node가 없습니다. (2-사이클 보류 {refused_cycles})", level="INFO")
            return net

        result = self._rebuild(net, graph, removed, carried)
        self._logger.log(
            f"[Topology:Smoother] pseudo node {len(removed)}개 제거: 노드 {net.n_nodes} -> {result.n_nodes}, "
            f"간선 {net.n_edges} -> {result.n_edges} (2-사이클 보류 {refused_cycles})",
            level="INFO",
        )
        return result

    def _eligible_pair(self, graph: _WorkingGraph, node: int, required: List[str]) -> Optional[tuple]:
        """병합 가능한 (앞 간선, 뒤 간선) 쌍을 반환합니다. 불가능하면 None."""
        if graph.directed:
            if len(graph.in_edges[node]) != 1 or len(graph.out_edges[node]) != 1:
                return None
            (o,), (p,) = tuple(graph.in_edges[node]), tuple(graph.out_edges[node])
        else:
            incident = graph.incident(node)
            if len(incident) != 2 or incident[0] == incident[1]:
                return None
            o, p = sorted(incident)
        if o == p:
            return None
        if required and not self._attributes_match(graph.attrs[o], graph.attrs[p], required):
            return None
        return o, p

    def _merge(self, graph: _WorkingGraph, node: int, o: int, p: int, a: int, c: int,
               required: List[str], summary: AttributeSummary, attr_cols: List[str]) -> None:
        geom = None
        if graph.geom[o] is not None:
            first = graph.geom[o] if graph.dst[o] == node else reverse_line(graph.geom[o])
            second = graph.geom[p] if graph.src[p] == node else reverse_line(graph.geom[p])
            geom = concatenate_lines(first, second)

        attrs = summary.reduce(pd.DataFrame([graph.attrs[o], graph.attrs[p]], columns=attr_cols), attr_cols)
        for name in required:
            attrs[name] = graph.attrs[o][name]
        # 추적 컬럼은 요약하지 않고 병합된 간선들의 값을 경로 순서대로 모은다
        for name in graph.attrs[o]:
            if is_tracking_column(name):
                attrs[name] = REDUCERS["concat"]([graph.attrs[o][name], graph.attrs[p][name]])

        keep, gone = min(o, p), max(o, p)
        graph.drop(gone)
        graph.detach(keep)
        graph.attach(keep, a, c, geom, attrs)

    def _rebuild(self, net: SpatialNetwork, graph: _WorkingGraph, removed: Set[int], columns: List[str]) -> SpatialNetwork:
        survivors = sorted(graph.src)
        records = pd.DataFrame(
            [graph.attrs[e] for e in survivors], columns=columns, index=pd.RangeIndex(len(survivors))
        ).infer_objects()
        records.insert(0, FROM, [graph.src[e] for e in survivors])
        records.insert(1, TO, [graph.dst[e] for e in survivors])
        geoms = [graph.geom[e] for e in survivors] if net.has_explicit_edges else None
        edges = build_edges(records, geoms, crs=net.crs)

        mapping = np.full(net.n_nodes, -1, dtype=np.int64)
        keep_nodes = np.array([n not in removed for n in range(net.n_nodes)], dtype=bool)
        mapping[keep_nodes] = np.arange(int(keep_nodes.sum()), dtype=np.int64)
        edges = remap_edge_endpoints(edges, mapping)
        return net.with_tables(nodes=net.nodes.loc[keep_nodes], edges=edges)

    @staticmethod
    def _attributes_match(left: Dict[str, Any], right: Dict[str, Any], names: List[str]) -> bool:
        for name in names:
            lv, rv = left[name], right[name]
            l_missing, r_missing = is_missing(lv), is_missing(rv)
            if l_missing and r_missing:
                continue
            if l_missing != r_missing or lv != rv:
                return False
        return True

    @staticmethod
    def _check_required(require_equal: Optional[Sequence[str]], attr_cols: List[str]) -> List[str]:
        if not require_equal:
            return []
        if isinstance(require_equal, str):
            require_equal = [require_equal]
        unknown = [name for name in require_equal if name not in attr_cols]
        if unknown:
            raise InvalidArgument(f"require_equal에 존재하지 않는 간선 속성이 있습니다: {unknown}")
        return list(require_equal)

    @staticmethod
    def _check_protected(protect: Optional[Iterable[int]], n_nodes: int) -> Set[int]:
        if protect is None:
            return set()
        protected = {int(n) for n in protect}
        bad = [n for n in protected if n < 0 or n >= n_nodes]
        if bad:
            raise InvalidArgument(f"protect에 존재하지 않는 노드 인덱스가 있습니다: {sorted(bad)}")
        return protected
