"""
Service/network_modules/topology/__init__.py

분할, 스무딩, 단순화, 축약, 블렌딩, 조인 등 네트워크 위상 변환 모듈들을 외부로 노출합니다.
"""
from .simplify import NetworkSimplifier
from .subdivide import EdgeSubdivider
from .smooth import PseudoNodeSmoother
from .contract import NodeContractor, SpatialDeduplicator
from .blend import PointBlender
from .join import NetworkJoiner
from .diagnostics import NetworkDiagnostics, NetworkDiagnosticsPolicy
from .processor import TopologyProcessor

__all__ = [
    "NetworkSimplifier",
    "EdgeSubdivider",
    "PseudoNodeSmoother",
    "NodeContractor",
    "SpatialDeduplicator",
    "PointBlender",
    "NetworkJoiner",
    "NetworkDiagnostics",
    "NetworkDiagnosticsPolicy",
    "TopologyProcessor",
]
