"""
Service/network_modules/topology/blend.py

외부 점 피처를 네트워크 노드로 편입(blend)하고, 필요한 경우 가장 가까운 간선을 그 위치에서 분할하는 모듈입니다.
"""
from __future__ import annotations

from typing import Any, Dict, List, Optional, Sequence, Tuple, Union

import geopandas as gpd
import numpy as np
import pandas as pd
from pyproj import CRS
from shapely.geometry import Point

from Common.log import Log
from Function.decorators import check_network_invariants, log_execution_time, safe_run
from Service.config import NetworkConfig
from ..errors import InvalidArgument, StructuralViolation
from ..model.geometry import NearestIndex, nearest_point_on_line, split_line_at_points
from ..model.network import FROM, GEOM, TO, SpatialNetwork, append_nodes, build_edges
from ..model.reducers import set_row_values
from ..model.units import ToleranceLike, to_crs_units

PointsLike = Union[gpd.GeoDataFrame, gpd.GeoSeries, Sequence[Point]]


class PointBlender:
    """
    점을 입력 순서대로 한 번씩 처리합니다. 각 점은 블렌딩 전의 원본 간선에 대해 최근접 간선을 찾습니다.

    1. 최근접 간선과 간선 위 최근접 위치 p를 찾습니다. 동일 거리 간선이 여럿이면 인덱스가 가장 작은 간선을 씁니다.
    2. 거리가 허용치를 넘으면 점을 제외합니다.
    3. p가 간선 끝 노드와 같으면(ε 이내) 그 노드에 속성을 붙입니다. 이미 점유된 노드면 제외하거나,
       allow_duplicates=True일 때 같은 위치에 고립 노드를 추가합니다.
    4. 그렇지 않으면 p를 새 노드로 만들고 간선을 p에서 분할합니다.
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
            points: PointsLike,
            tolerance: ToleranceLike = None,
            allow_duplicates: Optional[bool] = None,
    ) -> SpatialNetwork:
        """
        Args:
            net: 입력 네트워크
            points: 편입할 점 피처. GeoDataFrame이면 geometry 외 컬럼이 노드 속성으로 붙습니다.
            tolerance: 점-간선 최대 거리. 숫자(좌표계 단위), (값, 단위), '5 m', ToleranceSpec. None이면 설정값.
            allow_duplicates: 점유된 노드 위치에 중복 노드 추가 여부. None이면 설정값.
        """
        frame = self._to_point_frame(points, net.crs)
        max_dist = self._resolve_tolerance(tolerance, net.crs)
        if allow_duplicates is None:
            allow_duplicates = self._config.blend_allow_duplicates
        eps = float(self._config.coordinate_tolerance)

        if len(frame) == 0 or net.n_edges == 0:
            self._logger.log("[Topology:Blender] 블렌딩할 점 또는 간선이 없습니다.", level="INFO")
            return net

        lines = list(net.edge_geometry())
        index = NearestIndex(lines)
        node_geoms = list(net.nodes.geometry)
        froms = net.edges[FROM].to_numpy()
        tos = net.edges[TO].to_numpy()
        point_attrs = pd.DataFrame(frame.drop(columns=GEOM))

        claimed: Dict[int, int] = {}
        new_points: List[Point] = []
        new_rows: List[int] = []
        splits: Dict[int, List[Tuple[int, Point]]] = {}
        stats = {"far": 0, "claimed": 0, "tie": 0, "attached": 0, "duplicate": 0, "split": 0}

        for row, feature in enumerate(frame.geometry):
            edge, dist, n_ties = index.nearest(feature)
            if edge < 0 or (max_dist is not None and dist > max_dist):
                stats["far"] += 1
                continue
            if n_ties > 1:
                stats["tie"] += 1
                self._logger.log(
                    f"[Topology:Blender] 점 {row}: 동일 거리 간선 {n_ties}개 중 간선 {edge}에 편입합니다.",
                    level="WARNING",
                )

            p = nearest_point_on_line(feature, lines[edge])
            target = self._coinciding_node(p, edge, froms, tos, node_geoms, splits, eps)

            if target is None:
                node_id = net.n_nodes + len(new_points)
                new_points.append(Point(p.x, p.y))
                new_rows.append(row)
                splits.setdefault(edge, []).append((node_id, new_points[-1]))
                claimed[node_id] = row
                stats["split"] += 1
                continue

            if target in claimed:
                if not allow_duplicates:
                    stats["claimed"] += 1
                    continue
                location = node_geoms[target] if target < net.n_nodes else new_points[target - net.n_nodes]
                new_points.append(Point(location.x, location.y))
                new_rows.append(row)
                stats["duplicate"] += 1
                continue

            claimed[target] = row
            stats["attached"] += 1

        nodes = self._build_nodes(net, point_attrs, claimed, new_points, new_rows)
        edges = self._split_edges(net, lines, splits, eps)
        result = net.with_tables(nodes=nodes, edges=edges)

        self._logger.log(
            f"[Topology:Blender] 점 {len(frame)}개 중 기존 노드 부착 {stats['attached']}, 간선 분할 {stats['split']}, "
            f"중복 노드 {stats['duplicate']}, 허용치 초과 제외 {stats['far']}, 점유 노드 제외 {stats['claimed']} "
            f"(동일 거리 {stats['tie']}건): 노드 {net.n_nodes} -> {result.n_nodes}, 간선 {net.n_edges} -> {result.n_edges}",
            level="INFO",
        )
        return result

    @staticmethod
    def _coinciding_node(p: Point, edge: int, froms: np.ndarray, tos: np.ndarray, node_geoms: list,
                         splits: Dict[int, List[Tuple[int, Point]]], eps: float) -> Optional[int]:
        """p와 같은 위치의 간선 끝 노드 또는 같은 간선에 이미 만든 분할 노드를 찾습니다."""
        for node in (int(froms[edge]), int(tos[edge])):
            if node_geoms[node].distance(p) <= eps:
                return node
        for node_id, location in splits.get(edge, []):
            if location.distance(p) <= eps:
                return node_id
        return None

    @staticmethod
    def _build_nodes(net: SpatialNetwork, point_attrs: pd.DataFrame, claimed: Dict[int, int],
                     new_points: List[Point], new_rows: List[int]) -> gpd.GeoDataFrame:
        nodes = net.nodes.copy()
        existing = {node: row for node, row in claimed.items() if node < net.n_nodes}
        for col in point_attrs.columns:
            if col not in nodes.columns:
                nodes[col] = None
        for node, row in existing.items():
            set_row_values(nodes, node, point_attrs.iloc[row].to_dict())

        records = point_attrs.iloc[new_rows].reset_index(drop=True) if len(point_attrs.columns) else None
        return append_nodes(nodes, new_points, records)

    @staticmethod
    def _split_edges(net: SpatialNetwork, lines: list, splits: Dict[int, List[Tuple[int, Point]]], eps: float) -> pd.DataFrame:
        """분할 대상 간선을 분할 노드 순서대로 하위 간선으로 교체합니다. 하위 간선은 원래 간선 위치에 놓입니다."""
        if not splits:
            return net.edges

        explicit = net.has_explicit_edges
        froms = net.edges[FROM].to_numpy()
        tos = net.edges[TO].to_numpy()
        source_rows: List[int] = []
        new_from: List[int] = []
        new_to: List[int] = []
        geoms: List[Any] = []

        for e in range(net.n_edges):
            if e not in splits:
                source_rows.append(e)
                new_from.append(int(froms[e]))
                new_to.append(int(tos[e]))
                geoms.append(lines[e])
                continue

            node_of = {id(pt): node_id for node_id, pt in splits[e]}
            pieces, used = split_line_at_points(lines[e], [pt for _, pt in splits[e]], eps)
            sequence = [int(froms[e])] + [node_of[id(pt)] for pt in used] + [int(tos[e])]
            for k, piece in enumerate(pieces):
                source_rows.append(e)
                new_from.append(sequence[k])
                new_to.append(sequence[k + 1])
                geoms.append(piece)

        records = pd.DataFrame(net.edges.drop(columns=GEOM, errors="ignore")).iloc[source_rows].reset_index(drop=True)
        records[FROM] = new_from
        records[TO] = new_to
        return build_edges(records, geoms if explicit else None, crs=net.crs)

    def _resolve_tolerance(self, tolerance: ToleranceLike, crs: Any) -> Optional[float]:
        if tolerance is None and self._config.blend_tolerance is not None:
            tolerance = (self._config.blend_tolerance, self._config.blend_tolerance_unit) \
                if self._config.blend_tolerance_unit else self._config.blend_tolerance
        return to_crs_units(tolerance, crs)

    @staticmethod
    def _to_point_frame(points: PointsLike, crs: Any) -> gpd.GeoDataFrame:
        if isinstance(points, gpd.GeoDataFrame):
            frame = points.reset_index(drop=True)
        elif isinstance(points, gpd.GeoSeries):
            frame = gpd.GeoDataFrame(geometry=points.reset_index(drop=True))
        else:
            frame = gpd.GeoDataFrame(geometry=list(points), crs=crs)

        if frame.geometry.name != GEOM:
            frame = frame.rename_geometry(GEOM)
        if any(not isinstance(g, Point) for g in frame.geometry):
            raise InvalidArgument("블렌딩 입력에는 Point geometry만 허용됩니다.")

        if frame.crs is not None and crs is not None and not CRS.from_user_input(frame.crs).equals(CRS.from_user_input(crs)):
            raise StructuralViolation(f"블렌딩할 점과 네트워크의 좌표계가 다릅니다: {frame.crs} != {crs}")
        return frame
