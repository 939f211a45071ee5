"""
Service/network_modules/validator.py

네트워크의 노드-간선 정합성(인덱스 참조, 끝점 좌표 일치)을 검증하고 연결 상태를 로깅하는 품질 보증(QA) 모듈입니다.
"""
from __future__ import annotations

from typing import List, Optional

import numpy as np
import shapely
from shapely.geometry import LineString, Point

from Common.log import Log
from Service.config import NetworkConfig
from .errors import StructuralViolation
from .model.graph import component_labels
from .model.network import FROM, TO, SpatialNetwork


class NetworkValidator:
    """
    변환 결과의 간선 끝 인덱스가 실제 노드를 가리키는지, 명시적 간선의 끝점이 노드 좌표와 같은지 검사합니다.
    """
    def __init__(self, logger: Log, config: Optional[NetworkConfig] = None):
        self._logger = logger
        self._config = config or NetworkConfig()

    @property
    def tolerance(self) -> float:
        return float(self._config.coordinate_tolerance)

    def validate(self, net: SpatialNetwork) -> SpatialNetwork:
        """
        불변식 위반이 있으면 StructuralViolation을 발생시키고, 없으면 네트워크를 그대로 반환합니다.
        """
        errors: List[str] = []

        self._check_node_geometries(net, errors)
        self._check_edge_references(net, errors)
        if not errors and net.has_explicit_edges:
            self._check_crs(net, errors)
            self._check_edge_endpoints(net, errors)

        if errors:
            for err in errors[:5]:
                self._logger.log(f"[Validator] {err}", level="ERROR")
            raise StructuralViolation(f"네트워크 불변식 위반 {len(errors)}건: {errors[0]}")
        return net

    def report(self, net: SpatialNetwork) -> None:
        """검증과 무관하게 연결 요소 수, 고립 노드 수를 로그로 출력합니다."""
        if net.n_nodes == 0:
            self._logger.log("[Validator] 검증 대상 네트워크가 비어있습니다.", level="WARNING")
            return

        labels = component_labels(net)
        sizes = np.bincount(labels)
        touched = np.zeros(net.n_nodes, dtype=bool)
        touched[net.edges[FROM].to_numpy()] = True
        touched[net.edges[TO].to_numpy()] = True

        self._logger.log(
            f"[Validator] 연결 요소 수: {len(sizes)}개, 최대 요소 노드 수: {int(sizes.max())}, 고립 노드: {int((~touched).sum())}개",
            level="INFO",
        )
        if len(sizes) > 1:
            self._logger.log(f"[Validator] 요소별 노드 수(상위 10): {sorted(sizes.tolist(), reverse=True)[:10]}", level="DEBUG")

    def _check_node_geometries(self, net: SpatialNetwork, errors: list) -> None:
        geoms = net.nodes.geometry
        bad = [i for i, g in enumerate(geoms) if g is None or not isinstance(g, Point) or g.is_empty]
        if bad:
            errors.append(f"점 geometry가 아닌 노드 {len(bad)}개 (예: {bad[:3]})")

    def _check_edge_references(self, net: SpatialNetwork, errors: list) -> None:
        """간선 from/to가 존재하는 노드 인덱스를 가리키는지 확인합니다."""
        if net.n_edges == 0:
            return
        endpoints = np.concatenate([net.edges[FROM].to_numpy(), net.edges[TO].to_numpy()])
        out_of_range = (endpoints < 0) | (endpoints >= net.n_nodes)
        if out_of_range.any():
            errors.append(f"존재하지 않는 노드를 참조하는 간선 끝 {int(out_of_range.sum())}개 (노드 수 {net.n_nodes})")

    def _check_crs(self, net: SpatialNetwork, errors: list) -> None:
        if net.edges.crs != net.nodes.crs:
            errors.append(f"노드/간선 좌표계 불일치: {net.nodes.crs} != {net.edges.crs}")

    def _check_edge_endpoints(self, net: SpatialNetwork, errors: list) -> None:
        """명시적 간선 선형의 시작/끝 좌표가 from/to 노드 좌표와 허용치 이내로 같은지 확인합니다."""
        if net.n_edges == 0:
            return
        lines = np.asarray(net.edges.geometry.values)
        bad_type = [i for i, g in enumerate(lines) if g is None or not isinstance(g, LineString) or g.is_empty]
        if bad_type:
            errors.append(f"선형 geometry가 아닌 간선 {len(bad_type)}개 (예: {bad_type[:3]})")
            return

        starts = shapely.get_point(lines, 0)
        ends = shapely.get_point(lines, -1)
        node_geoms = np.asarray(net.nodes.geometry.values)
        from_geoms = node_geoms[net.edges[FROM].to_numpy()]
        to_geoms = node_geoms[net.edges[TO].to_numpy()]

        tol = self.tolerance
        start_gap = shapely.distance(np.asarray(starts), np.asarray(from_geoms))
        end_gap = shapely.distance(np.asarray(ends), np.asarray(to_geoms))
        mismatched = np.flatnonzero((start_gap > tol) | (end_gap > tol))
        if len(mismatched):
            errors.append(
                f"끝점이 노드 좌표와 어긋난 간선 {len(mismatched)}개 (예: {mismatched[:3].tolist()}, 허용치 {tol})"
            )
