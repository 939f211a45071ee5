"""
Service/network_modules/model/network.py

노드 테이블(점), 간선 테이블(선 + from/to 인덱스), 방향성, 활성 요소를 묶은 공간 네트워크 값 객체입니다.
"""
from __future__ import annotations

from dataclasses import dataclass, replace
from enum import Enum
from typing import Any, Optional, Sequence, Union

import geopandas as gpd
import numpy as np
import pandas as pd

from ..errors import InvalidArgument, StructuralViolation
from .geometry import straight_segment

FROM = "from"
TO = "to"
GEOM = "geometry"


class Element(str, Enum):
    NODES = "nodes"
    EDGES = "edges"

    @classmethod
    def parse(cls, value: Union["Element", str]) -> "Element":
        try:
            return cls(value)
        except ValueError as e:
            raise InvalidArgument(f"활성 요소는 'nodes' 또는 'edges'여야 합니다: {value!r}") from e


@dataclass(frozen=True, eq=False)
class SpatialNetwork:
    """
    공간 네트워크 값 객체입니다. 모든 변환은 새 SpatialNetwork를 반환하며 입력을 변경하지 않습니다.

    노드/간선 인덱스는 0부터 시작하는 위치 인덱스이며, 위상 변환 후에는 다시 매겨질 수 있습니다.
    """
    nodes: gpd.GeoDataFrame
    edges: pd.DataFrame
    directed: bool = True
    active: Element = Element.NODES

    def __post_init__(self):
        if not isinstance(self.nodes, gpd.GeoDataFrame):
            raise StructuralViolation("노드 테이블은 GeoDataFrame이어야 합니다.")
        missing = [c for c in (FROM, TO) if c not in self.edges.columns]
        if missing:
            raise StructuralViolation(f"간선 테이블에 필수 컬럼이 없습니다: {missing}")

        edges = self.edges.reset_index(drop=True)
        if len(edges):
            edges[FROM] = edges[FROM].astype(np.int64)
            edges[TO] = edges[TO].astype(np.int64)
        object.__setattr__(self, "nodes", self.nodes.reset_index(drop=True))
        object.__setattr__(self, "edges", edges)
        object.__setattr__(self, "active", Element.parse(self.active))

    def __repr__(self) -> str:
        return (
            f"SpatialNetwork(nodes={self.n_nodes}, edges={self.n_edges}, "
            f"directed={self.directed}, explicit_edges={self.has_explicit_edges}, active={self.active.value})"
        )

    @property
    def n_nodes(self) -> int:
        return len(self.nodes)

    @property
    def n_edges(self) -> int:
        return len(self.edges)

    @property
    def crs(self) -> Any:
        return self.nodes.crs

    @property
    def has_explicit_edges(self) -> bool:
        return isinstance(self.edges, gpd.GeoDataFrame) and GEOM in self.edges.columns

    def node_geometry(self) -> gpd.GeoSeries:
        return self.nodes.geometry

    def edge_geometry(self) -> gpd.GeoSeries:
        """간선 선형을 반환합니다. 암묵적 간선은 양 끝 노드를 잇는 직선을 그때그때 계산합니다."""
        if self.has_explicit_edges:
            return self.edges.geometry
        node_geoms = self.nodes.geometry.values
        segments = [
            straight_segment(node_geoms[u], node_geoms[v])
            for u, v in zip(self.edges[FROM].to_numpy(), self.edges[TO].to_numpy())
        ]
        return gpd.GeoSeries(segments, index=self.edges.index, crs=self.crs)

    def node_attribute_columns(self) -> list:
        return [c for c in self.nodes.columns if c != GEOM]

    def edge_attribute_columns(self) -> list:
        return [c for c in self.edges.columns if c not in (FROM, TO, GEOM)]

    def activate(self, element: Union[Element, str]) -> "SpatialNetwork":
        return replace(self, active=Element.parse(element))

    def with_tables(self, nodes: Optional[gpd.GeoDataFrame] = None, edges: Optional[pd.DataFrame] = None, directed: Optional[bool] = None) -> "SpatialNetwork":
        return SpatialNetwork(
            nodes=self.nodes if nodes is None else nodes,
            edges=self.edges if edges is None else edges,
            directed=self.directed if directed is None else directed,
            active=self.active,
        )

    def make_edges_implicit(self) -> "SpatialNetwork":
        if not self.has_explicit_edges:
            return self
        return self.with_tables(edges=pd.DataFrame(self.edges.drop(columns=GEOM)))

    def make_edges_explicit(self) -> "SpatialNetwork":
        if self.has_explicit_edges:
            return self
        geoms = self.edge_geometry()
        edges = gpd.GeoDataFrame(self.edges.copy(), geometry=list(geoms), crs=self.crs)
        return self.with_tables(edges=edges)

    def filter_nodes(self, mask: Sequence[bool]) -> "SpatialNetwork":
        """
        mask가 True인 노드만 남깁니다. 제거된 노드에 연결된 간선도 함께 제거됩니다.
        """
        keep = self._as_mask(mask, self.n_nodes, "노드")
        mapping = np.full(self.n_nodes, -1, dtype=np.int64)
        mapping[keep] = np.arange(int(keep.sum()), dtype=np.int64)

        nodes = self.nodes.loc[keep]
        edges = remap_edge_endpoints(self.edges, mapping, drop_missing=True)
        return self.with_tables(nodes=nodes, edges=edges)

    def filter_edges(self, mask: Sequence[bool]) -> "SpatialNetwork":
        """mask가 True인 간선만 남깁니다. 노드는 고립되더라도 제거하지 않습니다."""
        keep = self._as_mask(mask, self.n_edges, "간선")
        return self.with_tables(edges=self.edges.loc[keep])

    def arrange_edges(self, by: Union[str, Sequence[float]], ascending: bool = True) -> "SpatialNetwork":
        """
        간선을 컬럼명 또는 값 배열 기준으로 안정 정렬합니다. 단순화 시 남길 간선을 고르는 용도입니다.
        """
        if isinstance(by, str):
            if by not in self.edges.columns:
                raise InvalidArgument(f"간선 테이블에 정렬 기준 컬럼 '{by}'이(가) 없습니다.")
            keys = self.edges[by].to_numpy()
        else:
            keys = np.asarray(by)
        if keys.shape != (self.n_edges,):
            raise InvalidArgument(f"정렬 기준 길이가 간선 수와 다릅니다: {keys.shape} != ({self.n_edges},)")
        # 내림차순에서도 같은 값끼리는 원래 순서를 유지한다
        order = pd.Series(keys).sort_values(ascending=ascending, kind="stable").index.to_numpy()
        return self.with_tables(edges=self.edges.iloc[order])

    def filter(self, mask: Sequence[bool], element: Union[Element, str, None] = None) -> "SpatialNetwork":
        target = self.active if element is None else Element.parse(element)
        if target is Element.NODES:
            return self.filter_nodes(mask)
        return self.filter_edges(mask)

    def as_table(self, active: Union[Element, str, None] = None, spatial: bool = True) -> pd.DataFrame:
        """
        지정(또는 현재 활성) 요소의 테이블 복사본을 반환합니다.

        spatial=True이고 geometry가 있으면 GeoDataFrame, 그렇지 않으면 일반 DataFrame입니다.
        암묵적 간선은 spatial=True여도 일반 DataFrame입니다.
        """
        target = self.active if active is None else Element.parse(active)
        table = self.nodes if target is Element.NODES else self.edges
        if spatial and isinstance(table, gpd.GeoDataFrame) and GEOM in table.columns:
            return table.copy()
        return pd.DataFrame(table.drop(columns=GEOM, errors="ignore")).copy()

    @staticmethod
    def _as_mask(mask: Sequence[bool], expected: int, label: str) -> np.ndarray:
        arr = np.asarray(mask, dtype=bool)
        if arr.shape != (expected,):
            raise InvalidArgument(f"{label} 필터 길이가 맞지 않습니다: {arr.shape} != ({expected},)")
        return arr


def remap_edge_endpoints(edges: pd.DataFrame, mapping: np.ndarray, drop_missing: bool = False) -> pd.DataFrame:
    """
    old -> new 노드 인덱스 배열로 간선의 from/to를 다시 매깁니다.

    mapping 값이 -1인 노드를 가리키는 간선은 drop_missing이면 제거, 아니면 StructuralViolation입니다.
    """
    out = edges.copy()
    if len(out) == 0:
        return out
    new_from = mapping[out[FROM].to_numpy()]
    new_to = mapping[out[TO].to_numpy()]
    valid = (new_from >= 0) & (new_to >= 0)
    if not valid.all():
        if not drop_missing:
            raise StructuralViolation(f"제거된 노드를 참조하는 간선이 {int((~valid).sum())}개 있습니다.")
        out = out.loc[valid]
        new_from, new_to = new_from[valid], new_to[valid]
    out[FROM] = new_from
    out[TO] = new_to
    return out.reset_index(drop=True)


def build_edges(records: pd.DataFrame, geometries: Optional[Sequence] = None, crs: Any = None) -> pd.DataFrame:
    """from/to/속성 레코드와 선형 목록으로 간선 테이블을 만듭니다. 선형이 없으면 암묵적 간선입니다."""
    records = records.reset_index(drop=True)
    if geometries is None:
        return pd.DataFrame(records.drop(columns=GEOM, errors="ignore"))
    return gpd.GeoDataFrame(records.drop(columns=GEOM, errors="ignore"), geometry=list(geometries), crs=crs)


def build_nodes(records: pd.DataFrame, geometries: Sequence, crs: Any = None) -> gpd.GeoDataFrame:
    records = records.reset_index(drop=True)
    return gpd.GeoDataFrame(records.drop(columns=GEOM, errors="ignore"), geometry=list(geometries), crs=crs)


def append_nodes(nodes: gpd.GeoDataFrame, geometries: Sequence, records: Optional[pd.DataFrame] = None) -> gpd.GeoDataFrame:
    """노드 테이블 뒤에 새 노드를 덧붙입니다. 새 노드에 없는 속성은 결측값으로 채워집니다."""
    if len(geometries) == 0:
        return nodes
    if records is None:
        records = pd.DataFrame(index=range(len(geometries)))
    added = records.reset_index(drop=True).drop(columns=GEOM, errors="ignore").copy()
    added[GEOM] = list(geometries)
    base = pd.DataFrame(nodes)
    if nodes.geometry.name != GEOM:
        base = base.rename(columns={nodes.geometry.name: GEOM})
    merged = pd.concat([base, added], ignore_index=True)
    return gpd.GeoDataFrame(merged, geometry=GEOM, crs=nodes.crs)
