"""
Service/network_modules/__init__.py

공간 네트워크 처리 파이프라인 구성에 필요한 주요 모듈들을 외부로 노출합니다.
"""
from .errors import NetworkError, StructuralViolation, InvalidArgument
from .model import SpatialNetwork, NetworkBuilder, Element, AttributeSummary
from .network_io import NetworkIO
from .validator import NetworkValidator
from .routing import NetworkRouter
from .topology import TopologyProcessor

__all__ = [
    "NetworkError",
    "StructuralViolation",
    "InvalidArgument",
    "SpatialNetwork",
    "NetworkBuilder",
    "Element",
    "AttributeSummary",
    "NetworkIO",
    "NetworkValidator",
    "NetworkRouter",
    "TopologyProcessor",
]
