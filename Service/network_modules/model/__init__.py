"""
Service/network_modules/model/__init__.py

공간 네트워크 값 객체와 이를 다루는 기하/그래프 어댑터, 속성 리듀서를 외부로 노출합니다.
"""
from .network import FROM, TO, GEOM, Element, SpatialNetwork
from .builder import NetworkBuilder
from .reducers import AttributeSummary, REDUCERS
from .units import parse_tolerance, to_crs_units

__all__ = [
    "FROM",
    "TO",
    "GEOM",
    "Element",
    "SpatialNetwork",
    "NetworkBuilder",
    "AttributeSummary",
    "REDUCERS",
    "parse_tolerance",
    "to_crs_units",
]
