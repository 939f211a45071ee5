"""
Service/network_modules/network_io.py

선형/점 벡터 파일을 읽고, 네트워크를 nodes/edges 두 레이어의 GeoPackage로 저장하는 입출력 모듈입니다.
"""
from __future__ import annotations

from pathlib import Path
from typing import Optional, Set

import geopandas as gpd

from Common.log import Log
from Function.decorators import log_execution_time, safe_run
from Service.schemas import FileLoadRequest, FileSaveRequest
from .model.network import SpatialNetwork


class NetworkIO:
    """
    입력 레이어의 데이터 존재 여부, 좌표계, geometry 타입을 검증하며 로드하고, 네트워크를 GeoPackage로 저장합니다.
    """

    _ALLOWED_LINE_TYPES: Set[str] = {"LineString", "MultiLineString"}
    _ALLOWED_POINT_TYPES: Set[str] = {"Point"}

    def __init__(self, logger: Log):
        self._logger = logger

    @safe_run
    @log_execution_time
    def load(self, request: FileLoadRequest) -> gpd.GeoDataFrame:
        """
        선형 레이어를 로드합니다.

        Args:
            request (FileLoadRequest): 파일 경로(및 GeoPackage 레이어)를 포함한 로드 요청 객체

        Returns:
            gpd.GeoDataFrame: 선형 피처 데이터
        """
        return self._read(request, self._ALLOWED_LINE_TYPES)

    @safe_run
    @log_execution_time
    def load_points(self, request: FileLoadRequest) -> gpd.GeoDataFrame:
        """블렌딩에 사용할 점 레이어를 로드합니다."""
        return self._read(request, self._ALLOWED_POINT_TYPES)

    @safe_run
    @log_execution_time
    def save(self, net: SpatialNetwork, request: FileSaveRequest) -> Path:
        """
        네트워크를 'nodes', 'edges' 레이어로 저장합니다. 암묵적 간선은 직선 geometry로 변환해 저장합니다.

        Returns:
            Path: 저장된 파일의 경로
        """
        output_path = request.output_path.expanduser().resolve()

        if net.n_nodes == 0:
            self._logger.log("저장할 네트워크가 비어있습니다.", level="WARNING")

        output_path.parent.mkdir(parents=True, exist_ok=True)
        if output_path.exists():
            output_path.unlink()

        explicit = net.make_edges_explicit()
        self._flatten_lists(explicit.nodes).to_file(output_path, layer="nodes", driver="GPKG")
        self._flatten_lists(explicit.edges).to_file(output_path, layer="edges", driver="GPKG")

        self._logger.log(f"저장 완료: {output_path} (노드 {net.n_nodes}, 간선 {net.n_edges})", level="INFO")
        return output_path

    def _read(self, request: FileLoadRequest, allowed: Set[str]) -> gpd.GeoDataFrame:
        file_path = request.file_path.expanduser().resolve()

        if request.layer:
            gdf = gpd.read_file(file_path, layer=request.layer)
        else:
            gdf = gpd.read_file(file_path)

        if gdf.empty:
            raise ValueError("로드된 데이터가 비어있습니다.")

        if gdf.crs is None:
            raise ValueError("입력 데이터에 CRS가 없습니다.")

        geom_types = set(gdf.geometry.geom_type.dropna().unique())
        invalid = geom_types - allowed
        if invalid:
            raise ValueError(f"허용되지 않는 geometry 타입이 있습니다: {sorted(invalid)} (허용: {sorted(allowed)})")

        crs_name = getattr(gdf.crs, "name", None) or "Unknown"
        self._logger.log(
            f"데이터 로드 상세 - 객체 수: {len(gdf)}, CRS: {crs_name}, EPSG: {self._try_to_epsg(gdf)}",
            level="INFO",
        )
        return gdf

    def _try_to_epsg(self, gdf: gpd.GeoDataFrame) -> Optional[int]:
        """좌표계 정보를 EPSG 코드로 변환 시도합니다."""
        if gdf.crs is None:
            return None
        return gdf.crs.to_epsg()

    @staticmethod
    def _flatten_lists(frame: gpd.GeoDataFrame) -> gpd.GeoDataFrame:
        """concat 리듀서가 만든 리스트 값은 파일에 쓸 수 없으므로 ';'로 이은 문자열로 바꿉니다."""
        out = frame.copy()
        for col in out.columns:
            if col == out.geometry.name or out[col].dtype != object:
                continue
            if out[col].map(lambda v: isinstance(v, (list, tuple))).any():
                out[col] = out[col].map(
                    lambda v: ";".join(str(i) for i in v) if isinstance(v, (list, tuple)) else v
                )
        return out
