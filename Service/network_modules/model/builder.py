"""
Service/network_modules/model/builder.py

선형 피처 또는 점 피처 + 인접 정보로부터 SpatialNetwork를 구성하는 빌더 모듈입니다.
"""
from __future__ import annotations

from typing import Any, Optional, Sequence, Union

import geopandas as gpd
import numpy as np
import pandas as pd
from shapely.geometry import LineString, Point

from Common.log import Log
from Function.decorators import check_network_invariants
from Service.config import NetworkConfig
from ..errors import InvalidArgument, StructuralViolation
from .geometry import match_coordinates, replace_endpoints, straight_segment
from .network import FROM, GEOM, TO, SpatialNetwork, build_edges, build_nodes

LinesLike = Union[gpd.GeoDataFrame, gpd.GeoSeries, Sequence[LineString]]


class NetworkBuilder:
    """
    선형의 끝점을 허용치 이내로 일치시켜 공유 노드를 만들고, 선형 하나당 간선 하나를 생성합니다.
    """
    def __init__(self, logger: Log, config: Optional[NetworkConfig] = None, validator: Any = None):
        self._logger = logger
        self._config = config or NetworkConfig()
        self._validator = validator

    @check_network_invariants
    def from_lines(self, lines: LinesLike, directed: Optional[bool] = None, tolerance: Optional[float] = None) -> SpatialNetwork:
        """
        노드는 (간선 0 시작, 간선 0 끝, 간선 1 시작, ...) 순서로 처음 등장하는 위치마다 하나씩 번호가 매겨집니다.
        """
        directed = self._config.default_directed if directed is None else bool(directed)
        tol = self._config.coordinate_tolerance if tolerance is None else float(tolerance)
        if tol < 0:
            raise InvalidArgument(f"허용치는 음수일 수 없습니다: {tol}")

        gdf = self._to_line_frame(lines)
        if gdf.empty:
            self._logger.log("[Builder] 입력 선형이 비어있어 빈 네트워크를 생성합니다.", level="WARNING")
            nodes = gpd.GeoDataFrame(geometry=[], crs=gdf.crs)
            edges = gpd.GeoDataFrame({FROM: [], TO: []}, geometry=[], crs=gdf.crs)
            return SpatialNetwork(nodes=nodes, edges=edges, directed=directed)

        geoms = list(gdf.geometry)
        endpoints = np.empty((2 * len(geoms), 2), dtype=float)
        for i, line in enumerate(geoms):
            endpoints[2 * i] = line.coords[0][:2]
            endpoints[2 * i + 1] = line.coords[-1][:2]

        roots = match_coordinates(endpoints, tol)
        unique_roots, node_of = np.unique(roots, return_inverse=True)
        # np.unique는 정렬된 순서이므로 첫 등장 순서 = 루트 인덱스 순서와 같다
        node_xy = endpoints[unique_roots]
        node_geoms = [Point(float(x), float(y)) for x, y in node_xy]

        froms = node_of[0::2]
        tos = node_of[1::2]
        edge_geoms = [
            replace_endpoints(line, node_xy[u], node_xy[v]) if tol > 0 else line
            for line, u, v in zip(geoms, froms, tos)
        ]

        records = pd.DataFrame(gdf.drop(columns=[gdf.geometry.name, FROM, TO], errors="ignore")).reset_index(drop=True)
        records.insert(0, FROM, froms)
        records.insert(1, TO, tos)

        nodes = build_nodes(pd.DataFrame(index=range(len(node_geoms))), node_geoms, crs=gdf.crs)
        edges = build_edges(records, edge_geoms, crs=gdf.crs)
        net = SpatialNetwork(nodes=nodes, edges=edges, directed=directed)

        self._logger.log(
            f"[Builder] 선형 {len(geoms)}개 -> 노드 {net.n_nodes}개, 간선 {net.n_edges}개 (허용치 {tol})",
            level="INFO",
        )
        return net

    @check_network_invariants
    def from_points(
            self,
            points: Union[gpd.GeoDataFrame, gpd.GeoSeries],
            edges: pd.DataFrame,
            directed: Optional[bool] = None,
            explicit: bool = True,
    ) -> SpatialNetwork:
        """
        점 피처를 노드로, from/to 컬럼을 가진 테이블을 간선으로 사용합니다.

        explicit=True이면 노드 사이 직선을 간선 geometry로 저장합니다.
        """
        directed = self._config.default_directed if directed is None else bool(directed)
        if isinstance(points, gpd.GeoSeries):
            points = gpd.GeoDataFrame(geometry=points)
        if any(not isinstance(g, Point) for g in points.geometry):
            raise InvalidArgument("노드 입력에는 Point geometry만 허용됩니다.")
        for col in (FROM, TO):
            if col not in edges.columns:
                raise InvalidArgument(f"인접 정보 테이블에 '{col}' 컬럼이 없습니다.")

        n = len(points)
        froms = edges[FROM].to_numpy()
        tos = edges[TO].to_numpy()
        if len(edges) and (min(froms.min(), tos.min()) < 0 or max(froms.max(), tos.max()) >= n):
            raise StructuralViolation(f"인접 정보가 존재하지 않는 노드 인덱스를 참조합니다. (노드 수 {n})")

        nodes = points.reset_index(drop=True).copy()
        if nodes.geometry.name != GEOM:
            nodes = nodes.rename_geometry(GEOM)
        records = pd.DataFrame(edges.drop(columns=GEOM, errors="ignore")).reset_index(drop=True)

        geoms = None
        if explicit:
            node_geoms = nodes.geometry.values
            geoms = [straight_segment(node_geoms[int(u)], node_geoms[int(v)]) for u, v in zip(froms, tos)]
        net = SpatialNetwork(nodes=nodes, edges=build_edges(records, geoms, crs=nodes.crs), directed=directed)

        self._logger.log(f"[Builder] 점 {n}개 + 인접 {len(records)}건으로 네트워크 구성 (explicit={explicit})", level="INFO")
        return net

    def _to_line_frame(self, lines: LinesLike) -> gpd.GeoDataFrame:
        """입력을 단일 LineString 행으로 구성된 GeoDataFrame으로 정규화합니다."""
        if isinstance(lines, gpd.GeoDataFrame):
            gdf = lines.copy()
        elif isinstance(lines, gpd.GeoSeries):
            gdf = gpd.GeoDataFrame(geometry=lines.reset_index(drop=True))
        else:
            gdf = gpd.GeoDataFrame(geometry=list(lines))

        if gdf.geometry.name != GEOM:
            gdf = gdf.rename_geometry(GEOM)

        valid = gdf.geometry.notna() & ~gdf.geometry.is_empty
        if not valid.all():
            self._logger.log(f"[Builder] 빈 geometry {int((~valid).sum())}개 제외", level="WARNING")
            gdf = gdf.loc[valid]

        if (gdf.geometry.geom_type == "MultiLineString").any():
            gdf = gdf.explode(index_parts=False)

        bad = set(gdf.geometry.geom_type.unique()) - {"LineString"}
        if bad:
            raise InvalidArgument(f"선형 입력에 허용되지 않는 geometry 타입이 있습니다: {sorted(bad)}")
        return gdf.reset_index(drop=True)
