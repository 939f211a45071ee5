"""
Service/network_modules/model/geometry.py

위상 엔진이 사용하는 기하 연산(좌표 일치 판정, 선 분할/연결, 최근접 탐색)을 shapely 위에 모아 둔 어댑터 모듈입니다.
"""
from __future__ import annotations

from typing import Iterable, List, Optional, Sequence, Tuple

import numpy as np
import shapely
from shapely import STRtree
from shapely.geometry import LineString, MultiPoint, Point
from shapely.ops import substring

XY = Tuple[float, float]


def coords_of(points: Sequence[Point]) -> np.ndarray:
    """Point 목록을 (n, 2) 좌표 배열로 변환합니다."""
    if len(points) == 0:
        return np.empty((0, 2), dtype=float)
    return np.asarray(shapely.get_coordinates(np.asarray(points, dtype=object)), dtype=float)[:, :2]


def match_coordinates(xy: np.ndarray, tolerance: float = 0.0) -> np.ndarray:
    """
    각 좌표를 같은 위치(허용치 이내)를 공유하는 첫 번째 좌표의 인덱스로 매핑합니다.

    결과는 항상 자기 자신 이하의 인덱스이며, 허용치 체인이 이어지는 경우 가장 앞선 대표 인덱스로 수렴합니다.
    """
    n = len(xy)
    if n == 0:
        return np.empty(0, dtype=np.int64)

    if tolerance <= 0.0:
        seen = {}
        out = np.empty(n, dtype=np.int64)
        for i, (x, y) in enumerate(xy):
            out[i] = seen.setdefault((float(x), float(y)), i)
        return out

    points = shapely.points(xy)
    tree = STRtree(points)
    src, dst = tree.query(points, predicate="dwithin", distance=tolerance)
    first = np.arange(n, dtype=np.int64)
    np.minimum.at(first, src, dst)

    root = np.empty(n, dtype=np.int64)
    for i in range(n):
        j = first[i]
        root[i] = root[j] if j < i else i
    return root


def match_against(reference_xy: np.ndarray, query_xy: np.ndarray, tolerance: float = 0.0) -> np.ndarray:
    """
    query 좌표마다 같은 위치의 첫 번째 reference 인덱스를 반환합니다. 일치 없음은 -1입니다.
    """
    out = np.full(len(query_xy), -1, dtype=np.int64)
    if len(reference_xy) == 0 or len(query_xy) == 0:
        return out

    if tolerance <= 0.0:
        lookup = {}
        for i, (x, y) in enumerate(reference_xy):
            lookup.setdefault((float(x), float(y)), i)
        for i, (x, y) in enumerate(query_xy):
            out[i] = lookup.get((float(x), float(y)), -1)
        return out

    tree = STRtree(shapely.points(reference_xy))
    src, dst = tree.query(shapely.points(query_xy), predicate="dwithin", distance=tolerance)
    big = np.iinfo(np.int64).max
    first = np.full(len(query_xy), big, dtype=np.int64)
    np.minimum.at(first, src, dst)
    out[first != big] = first[first != big]
    return out


def equals_within_tolerance(a, b, tolerance: float = 0.0) -> bool:
    """두 기하가 허용치 이내로 같은지 판정합니다. 점은 거리, 그 외는 좌표별 비교를 사용합니다."""
    if a is None or b is None:
        return False
    if isinstance(a, Point) and isinstance(b, Point):
        return a.distance(b) <= tolerance
    return bool(shapely.equals_exact(a, b, tolerance=tolerance))


def nearest_point_on_line(point: Point, line: LineString) -> Point:
    return line.interpolate(line.project(point))


def straight_segment(start: Point, end: Point) -> LineString:
    return LineString([(start.x, start.y), (end.x, end.y)])


def replace_endpoints(line: LineString, start: Optional[XY] = None, end: Optional[XY] = None) -> LineString:
    """선형의 시작/끝 좌표를 지정 좌표로 교체합니다. 내부 정점은 유지합니다."""
    coords = [tuple(c[:2]) for c in line.coords]
    if start is not None:
        coords[0] = (float(start[0]), float(start[1]))
    if end is not None:
        coords[-1] = (float(end[0]), float(end[1]))
    return LineString(coords)


def reverse_line(line: LineString) -> LineString:
    return LineString(list(line.coords)[::-1])


def concatenate_lines(first: LineString, second: LineString) -> LineString:
    """
    first의 끝점에서 second가 시작한다고 보고 두 선형을 이어 붙입니다.

    이음 지점 좌표는 한 번만 남기며, first의 끝 좌표를 기준으로 합니다.
    """
    head = [tuple(c[:2]) for c in first.coords]
    tail = [tuple(c[:2]) for c in second.coords][1:]
    return LineString(head + tail)


def split_line_at_vertices(line: LineString, positions: Iterable[int]) -> List[LineString]:
    """정점 인덱스 위치에서 선형을 잘라 하위 선형 목록을 반환합니다. 양 끝 인덱스는 무시합니다."""
    coords = [tuple(c[:2]) for c in line.coords]
    last = len(coords) - 1
    cuts = sorted({int(p) for p in positions if 0 < int(p) < last})
    if not cuts:
        return [line]

    pieces = []
    start = 0
    for cut in cuts + [last]:
        pieces.append(LineString(coords[start:cut + 1]))
        start = cut
    return pieces


def split_line_at_points(line: LineString, points: Sequence[Point], tolerance: float = 0.0) -> Tuple[List[LineString], List[Point]]:
    """
    선형 위(또는 최근접 위치)의 점들에서 선을 분할합니다.

    점은 선을 따른 거리 순으로 정렬되며, 허용치 이내로 겹치는 분할 위치와 양 끝점 위치는 하나로 취급됩니다.
    각 하위 선형의 양 끝은 분할 점 좌표와 정확히 일치하도록 고정됩니다.

    Returns:
        (하위 선형 목록, 실제 사용된 분할 점 목록)
    """
    length = line.length
    ordered = sorted(((line.project(p), p) for p in points), key=lambda t: t[0])

    cuts: List[Tuple[float, Point]] = []
    for dist, p in ordered:
        if dist <= tolerance or dist >= length - tolerance:
            continue
        if cuts and dist - cuts[-1][0] <= tolerance:
            continue
        cuts.append((dist, p))

    if not cuts:
        return [line], []

    start_xy = tuple(line.coords[0][:2])
    end_xy = tuple(line.coords[-1][:2])
    pieces = []
    prev_dist, prev_xy = 0.0, start_xy
    for dist, p in cuts + [(length, Point(end_xy))]:
        part = substring(line, prev_dist, dist)
        if not isinstance(part, LineString):
            part = LineString([prev_xy, (p.x, p.y)])
        pieces.append(replace_endpoints(part, prev_xy, (p.x, p.y)))
        prev_dist, prev_xy = dist, (p.x, p.y)
    return pieces, [p for _, p in cuts]


def centroid(points: Sequence[Point]) -> Point:
    """점 집합의 무게중심을 반환합니다. 모두 같은 위치면 그 위치가 그대로 반환됩니다."""
    if len(points) == 1:
        return points[0]
    return MultiPoint([(p.x, p.y) for p in points]).centroid


class NearestIndex:
    """
    기하 목록에 대한 STRtree 최근접 탐색 래퍼입니다. 한 번 생성해 배치 전체에서 재사용합니다.
    """

    def __init__(self, geometries: Sequence):
        self._geoms = np.asarray(list(geometries), dtype=object)
        self._tree = STRtree(self._geoms) if len(self._geoms) else None

    def __len__(self) -> int:
        return len(self._geoms)

    def nearest(self, point: Point) -> Tuple[int, float, int]:
        """
        최근접 기하의 인덱스, 거리, 동일 거리 후보 수를 반환합니다.

        동일 거리 후보가 여럿이면 가장 작은 인덱스를 고릅니다 (first match).
        """
        if self._tree is None:
            return -1, float("inf"), 0
        indices, distances = self._tree.query_nearest(point, return_distance=True, all_matches=True)
        if len(indices) == 0:
            return -1, float("inf"), 0
        best = int(np.min(indices))
        dist = float(np.min(distances))
        return best, dist, int(len(indices))
