"""
Service/network_modules/topology/subdivide.py

간선 내부 정점이 다른 간선의 정점과 겹치는 '숨은 연결'을 실제 노드로 만들고 간선을 그 지점에서 분할하는 모듈입니다.
"""
from __future__ import annotations

from typing import Dict, List, Optional, Sequence

import numpy as np
import pandas as pd
from shapely.geometry import Point

from Common.log import Log
from Function.decorators import check_network_invariants, log_execution_time, safe_run
from Service.config import NetworkConfig
from ..model.geometry import coords_of, match_coordinates, replace_endpoints, split_line_at_vertices
from ..model.network import FROM, GEOM, TO, SpatialNetwork, append_nodes, build_edges


class EdgeSubdivider:
    """
    모든 간선의 정점을 좌표 기준으로 묶어, 다른 간선과 공유되는 내부 정점에서 간선을 나눕니다.

    정점이 아닌 위치에서 단순히 교차하는 간선은 나누지 않습니다.
    분할 지점이 기존 노드 위치와 같으면 그 노드를 재사용하고, 아니면 새 노드를 노드 테이블 끝에 추가합니다.
    """
    def __init__(self, logger: Log, config: Optional[NetworkConfig] = None, validator=None):
        self._logger = logger
        self._config = config or NetworkConfig()
        self._validator = validator

    @safe_run
    @check_network_invariants
    @log_execution_time
    def execute(self, net: SpatialNetwork, at: Optional[Sequence[Point]] = None) -> SpatialNetwork:
        """
        Args:
            net: 입력 네트워크
            at: 추가 분할 위치. 이 위치와 겹치는 내부 정점은 공유 여부와 무관하게 분할됩니다.
        """
        if net.n_edges == 0 or not net.has_explicit_edges:
            self._logger.log("[Topology:Subdivider] 명시적 간선이 없어 분할을 건너뜁니다.", level="DEBUG")
            return net

        tol = float(self._config.coordinate_tolerance)
        lines = list(net.edges.geometry)

        edge_ids, positions, interior, vertex_xy = self._vertex_table(lines)
        node_xy = coords_of(list(net.nodes.geometry))
        extra_xy = coords_of(list(at)) if at is not None else np.empty((0, 2))

        n_nodes, n_extra = len(node_xy), len(extra_xy)
        all_xy = np.vstack([node_xy, extra_xy, vertex_xy])
        roots = match_coordinates(all_xy, tol)
        vertex_roots = roots[n_nodes + n_extra:]

        edges_per_location = (
            pd.DataFrame({"loc": vertex_roots, "edge": edge_ids}).groupby("loc")["edge"].nunique()
        )
        shared = edges_per_location.reindex(vertex_roots).to_numpy() > 1
        forced = np.isin(vertex_roots, roots[n_nodes:n_nodes + n_extra])
        is_split = interior & (shared | forced)

        if not is_split.any():
            self._logger.log("[Topology:Subdivider] 분할할 공유 정점이 없습니다.", level="INFO")
            return net

        node_of_root: Dict[int, int] = {}
        new_node_geoms: List[Point] = []
        for root in vertex_roots[is_split]:
            root = int(root)
            if root in node_of_root:
                continue
            if root < n_nodes:
                node_of_root[root] = root
            else:
                node_of_root[root] = n_nodes + len(new_node_geoms)
                new_node_geoms.append(Point(float(all_xy[root][0]), float(all_xy[root][1])))

        nodes = append_nodes(net.nodes, new_node_geoms)
        final_xy = coords_of(list(nodes.geometry))

        split_positions: Dict[int, List[int]] = {}
        split_nodes: Dict[int, List[int]] = {}
        for e, pos, root in zip(edge_ids[is_split], positions[is_split], vertex_roots[is_split]):
            split_positions.setdefault(int(e), []).append(int(pos))
            split_nodes.setdefault(int(e), []).append(node_of_root[int(root)])

        source_rows: List[int] = []
        froms: List[int] = []
        tos: List[int] = []
        geoms = []
        edge_froms = net.edges[FROM].to_numpy()
        edge_tos = net.edges[TO].to_numpy()

        for e, line in enumerate(lines):
            if e not in split_positions:
                source_rows.append(e)
                froms.append(int(edge_froms[e]))
                tos.append(int(edge_tos[e]))
                geoms.append(line)
                continue

            order = np.argsort(split_positions[e], kind="stable")
            cut_nodes = [split_nodes[e][i] for i in order]
            pieces = split_line_at_vertices(line, [split_positions[e][i] for i in order])
            sequence = [int(edge_froms[e])] + cut_nodes + [int(edge_tos[e])]
            for k, piece in enumerate(pieces):
                u, v = sequence[k], sequence[k + 1]
                source_rows.append(e)
                froms.append(u)
                tos.append(v)
                geoms.append(replace_endpoints(piece, final_xy[u], final_xy[v]))

        records = pd.DataFrame(net.edges.drop(columns=GEOM)).iloc[source_rows].reset_index(drop=True)
        records[FROM] = froms
        records[TO] = tos
        result = net.with_tables(nodes=nodes, edges=build_edges(records, geoms, crs=net.crs))

        self._logger.log(
            f"[Topology:Subdivider] 분할 위치 {len(node_of_root)}곳 (신규 노드 {len(new_node_geoms)}개), "
            f"간선 {net.n_edges} -> {result.n_edges}",
            level="INFO",
        )
        return result

    @staticmethod
    def _vertex_table(lines: list) -> tuple:
        """간선별 정점의 (간선 번호, 정점 위치, 내부 정점 여부, 좌표) 배열을 만듭니다."""
        edge_ids, positions, interior, chunks = [], [], [], []
        for e, line in enumerate(lines):
            coords = np.asarray(line.coords, dtype=float)[:, :2]
            k = len(coords)
            edge_ids.append(np.full(k, e, dtype=np.int64))
            positions.append(np.arange(k, dtype=np.int64))
            flags = np.ones(k, dtype=bool)
            flags[0] = flags[-1] = False
            interior.append(flags)
            chunks.append(coords)
        return (
            np.concatenate(edge_ids),
            np.concatenate(positions),
            np.concatenate(interior),
            np.vstack(chunks),
        )
