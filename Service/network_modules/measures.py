"""
Service/network_modules/measures.py

간선 길이/직선 거리/굴곡도 측정과, 노드·간선 필터링에 쓰는 공간 술어(predicate) 함수 모음입니다.

술어 함수는 모두 요소 수 길이의 bool 배열을 반환하며 SpatialNetwork.filter_nodes / filter_edges에 그대로 넘길 수 있습니다.
대상 geometry가 여러 개면 그중 하나라도 만족하면 True입니다.
"""
from __future__ import annotations

from typing import Optional, Sequence, Union

import numpy as np
import shapely
from shapely import STRtree
from shapely.geometry.base import BaseGeometry

from .model.network import FROM, TO, SpatialNetwork

GeometryLike = Union[BaseGeometry, Sequence[BaseGeometry]]

# predicate(element, other)를 STRtree.query(other, ...)로 평가할 때의 역방향 술어
_INVERSE = {
    "intersects": "intersects",
    "crosses": "crosses",
    "touches": "touches",
    "within": "contains",
    "covered_by": "covers",
    "dwithin": "dwithin",
}


def edge_length(net: SpatialNetwork) -> np.ndarray:
    return np.asarray(net.edge_geometry().length, dtype=float)


def edge_displacement(net: SpatialNetwork) -> np.ndarray:
    """간선 양 끝 노드 사이의 직선 거리입니다."""
    if net.n_edges == 0:
        return np.empty(0, dtype=float)
    node_geoms = np.asarray(net.nodes.geometry.values)
    starts = node_geoms[net.edges[FROM].to_numpy()]
    ends = node_geoms[net.edges[TO].to_numpy()]
    return np.asarray(shapely.distance(starts, ends), dtype=float)


def edge_circuity(net: SpatialNetwork, inf_as_nan: bool = False) -> np.ndarray:
    """
    간선 길이 / 직선 거리. 길이 0인 간선은 NaN, 루프처럼 직선 거리만 0인 간선은 inf(inf_as_nan이면 NaN)입니다.
    """
    length = edge_length(net)
    displacement = edge_displacement(net)
    with np.errstate(divide="ignore", invalid="ignore"):
        circuity = length / displacement
    if inf_as_nan:
        circuity[np.isinf(circuity)] = np.nan
    return circuity


def _matches(geoms: Sequence[BaseGeometry], other: GeometryLike, predicate: str, distance: Optional[float] = None) -> np.ndarray:
    geoms = np.asarray(list(geoms), dtype=object)
    mask = np.zeros(len(geoms), dtype=bool)
    if len(geoms) == 0:
        return mask
    others = np.asarray([other] if isinstance(other, BaseGeometry) else list(other), dtype=object)
    if len(others) == 0:
        return mask

    tree = STRtree(geoms)
    if predicate == "dwithin":
        hits = tree.query(others, predicate="dwithin", distance=distance)
    else:
        hits = tree.query(others, predicate=_INVERSE[predicate])
    mask[hits[1]] = True
    return mask


def edge_intersects(net: SpatialNetwork, other: GeometryLike) -> np.ndarray:
    return _matches(net.edge_geometry(), other, "intersects")


def edge_crosses(net: SpatialNetwork, other: GeometryLike) -> np.ndarray:
    return _matches(net.edge_geometry(), other, "crosses")


def edge_touches(net: SpatialNetwork, other: GeometryLike) -> np.ndarray:
    return _matches(net.edge_geometry(), other, "touches")


def edge_is_within(net: SpatialNetwork, other: GeometryLike) -> np.ndarray:
    return _matches(net.edge_geometry(), other, "within")


def edge_is_covered_by(net: SpatialNetwork, other: GeometryLike) -> np.ndarray:
    return _matches(net.edge_geometry(), other, "covered_by")


def edge_is_disjoint(net: SpatialNetwork, other: GeometryLike) -> np.ndarray:
    return ~edge_intersects(net, other)


def edge_is_within_distance(net: SpatialNetwork, other: GeometryLike, distance: float) -> np.ndarray:
    return _matches(net.edge_geometry(), other, "dwithin", distance=distance)


def node_intersects(net: SpatialNetwork, other: GeometryLike) -> np.ndarray:
    return _matches(net.node_geometry(), other, "intersects")


def node_touches(net: SpatialNetwork, other: GeometryLike) -> np.ndarray:
    return _matches(net.node_geometry(), other, "touches")


def node_is_within(net: SpatialNetwork, other: GeometryLike) -> np.ndarray:
    return _matches(net.node_geometry(), other, "within")


def node_is_covered_by(net: SpatialNetwork, other: GeometryLike) -> np.ndarray:
    return _matches(net.node_geometry(), other, "covered_by")


def node_is_disjoint(net: SpatialNetwork, other: GeometryLike) -> np.ndarray:
    return ~node_intersects(net, other)


def node_is_within_distance(net: SpatialNetwork, other: GeometryLike, distance: float) -> np.ndarray:
    return _matches(net.node_geometry(), other, "dwithin", distance=distance)
