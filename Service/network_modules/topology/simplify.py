"""
Service/network_modules/topology/simplify.py

같은 노드 쌍을 잇는 다중 간선과 루프 간선을 제거하는 단순화 모듈입니다.
"""
from __future__ import annotations

from typing import Optional

import numpy as np
import pandas as pd

from Common.log import Log
from Function.decorators import check_network_invariants, log_execution_time, safe_run
from Service.config import NetworkConfig
from ..model.network import FROM, TO, SpatialNetwork
from ..model.reducers import AttributeSummary, set_row_values


class NetworkSimplifier:
    """
    간선 순서상 첫 번째 간선만 남기고 같은 끝점 쌍의 나머지 간선을 제거합니다.

    무방향 네트워크는 {from, to}를 순서 없는 쌍으로, 방향 네트워크는 (from, to) 순서쌍으로 묶습니다.
    어느 간선을 남길지는 호출자가 간선 순서를 미리 정렬해서 정합니다.
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
            remove_multiple: bool = True,
            remove_loops: Optional[bool] = None,
            summary=None,
    ) -> SpatialNetwork:
        if remove_loops is None:
            remove_loops = self._config.simplify_remove_loops
        if net.n_edges == 0:
            return net

        summary = AttributeSummary.coerce(summary, default="first") if summary is not None else None
        if summary is not None:
            summary.validate(list(net.edges.columns))

        froms = net.edges[FROM].to_numpy()
        tos = net.edges[TO].to_numpy()
        keep = np.ones(net.n_edges, dtype=bool)

        loops = froms == tos
        if remove_loops:
            keep &= ~loops

        group_ids = self._group_ids(froms, tos, net.directed)
        duplicated = pd.Series(group_ids).duplicated(keep="first").to_numpy()
        if remove_multiple:
            # 루프를 남기는 경우에도 같은 노드의 루프 여러 개는 다중 간선으로 본다
            keep &= ~duplicated

        edges = net.edges
        if summary is not None and remove_multiple:
            edges = self._summarise_groups(edges, group_ids, keep, summary)

        n_loops = int((loops & ~keep).sum()) if remove_loops else 0
        n_multi = int(net.n_edges - keep.sum() - n_loops)
        result = net.with_tables(edges=edges.loc[keep])

        self._logger.log(
            f"[Topology:Simplifier] 다중 간선 {n_multi}개, 루프 간선 {n_loops}개 제거: {net.n_edges} -> {result.n_edges}",
            level="INFO",
        )
        return result

    @staticmethod
    def _group_ids(froms: np.ndarray, tos: np.ndarray, directed: bool) -> np.ndarray:
        if directed:
            a, b = froms, tos
        else:
            a, b = np.minimum(froms, tos), np.maximum(froms, tos)
        pairs = pd.MultiIndex.from_arrays([a, b])
        return pd.factorize(pairs)[0]

    @staticmethod
    def _summarise_groups(edges: pd.DataFrame, group_ids: np.ndarray, keep: np.ndarray, summary: AttributeSummary) -> pd.DataFrame:
        """남는 간선의 속성을 같은 그룹 전체(남는 간선 포함, 간선 순서대로)의 요약값으로 교체합니다."""
        out = edges.copy()
        grouped = pd.Series(np.arange(len(edges))).groupby(group_ids)
        for _, members in grouped:
            rows = members.to_numpy()
            if len(rows) < 2:
                continue
            kept = [r for r in rows if keep[r]]
            if not kept:
                continue
            set_row_values(out, kept[0], summary.reduce(edges.iloc[rows]))
        return out
