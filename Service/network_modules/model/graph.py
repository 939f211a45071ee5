"""
Service/network_modules/model/graph.py

SpatialNetwork를 networkx 그래프로 변환하고 차수/연결 요소 질의를 제공하는 어댑터 모듈입니다.
"""
from __future__ import annotations

from typing import Optional, Sequence

import networkx as nx
import numpy as np

from .network import FROM, TO, SpatialNetwork


def to_networkx(net: SpatialNetwork, weights: Optional[Sequence[float]] = None, multigraph: bool = True) -> nx.Graph:
    """
    노드 인덱스를 노드 키로, 간선 인덱스를 edge_index 속성으로 갖는 networkx 그래프를 만듭니다.

    multigraph=False이면 같은 노드 쌍의 평행 간선 중 가중치가 가장 작은(동률이면 앞선) 간선만 남깁니다.
    """
    if multigraph:
        graph = nx.MultiDiGraph() if net.directed else nx.MultiGraph()
    else:
        graph = nx.DiGraph() if net.directed else nx.Graph()
    graph.add_nodes_from(range(net.n_nodes))

    froms = net.edges[FROM].to_numpy()
    tos = net.edges[TO].to_numpy()
    w = np.ones(net.n_edges) if weights is None else np.asarray(weights, dtype=float)

    for idx, (u, v) in enumerate(zip(froms, tos)):
        u, v = int(u), int(v)
        if multigraph:
            graph.add_edge(u, v, key=idx, edge_index=idx, weight=float(w[idx]))
            continue
        current = graph.get_edge_data(u, v)
        if current is None or float(w[idx]) < current["weight"]:
            graph.add_edge(u, v, edge_index=idx, weight=float(w[idx]))
    return graph


def node_degrees(net: SpatialNetwork) -> tuple:
    """
    (in_degree, out_degree, degree) 배열을 반환합니다. 루프 간선은 차수 2로 계산됩니다.
    """
    n = net.n_nodes
    froms = net.edges[FROM].to_numpy()
    tos = net.edges[TO].to_numpy()
    out_deg = np.bincount(froms, minlength=n) if len(froms) else np.zeros(n, dtype=np.int64)
    in_deg = np.bincount(tos, minlength=n) if len(tos) else np.zeros(n, dtype=np.int64)
    return in_deg, out_deg, in_deg + out_deg


def component_labels(net: SpatialNetwork) -> np.ndarray:
    """
    노드별 연결 요소 번호를 반환합니다. 방향 그래프는 약한 연결 기준이며, 번호는 가장 작은 노드 인덱스 순서입니다.
    """
    graph = to_networkx(net, multigraph=False)
    if net.directed:
        components = nx.weakly_connected_components(graph)
    else:
        components = nx.connected_components(graph)

    labels = np.full(net.n_nodes, -1, dtype=np.int64)
    for label, members in enumerate(sorted(components, key=min)):
        labels[list(members)] = label
    return labels
