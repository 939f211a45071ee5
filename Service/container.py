"""
Service/container.py

애플리케이션의 모든 객체를 생성하고 의존성을 주입하여 실행 가능한 상태로 조립합니다.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from Common.log import Log

from Service.config import NetworkConfig
from Service.network_modules import NetworkBuilder, NetworkIO, NetworkRouter, NetworkValidator
from Service.network_modules.topology import (
    TopologyProcessor,
    EdgeSubdivider,
    SpatialDeduplicator,
    PseudoNodeSmoother,
    NetworkSimplifier,
    NetworkDiagnostics,
    PointBlender,
)

from Service.network_service import NetworkService


@dataclass(frozen=True)
class BuiltApp:
    """조립이 완료된 애플리케이션 서비스 객체 묶음입니다."""
    config: NetworkConfig
    network_service: NetworkService
    router: NetworkRouter


def build_app(logger: Log, config: Optional[NetworkConfig] = None) -> BuiltApp:
    """
    설정 로드 및 모든 내부 모듈의 의존성을 주입하여 BuiltApp 객체를 생성합니다.
    """
    network_config = config or NetworkConfig()

    network_io = NetworkIO(logger)
    validator = NetworkValidator(logger, network_config)
    builder = NetworkBuilder(logger, network_config, validator)

    subdivider = EdgeSubdivider(logger, network_config, validator)
    deduplicator = SpatialDeduplicator(logger, network_config, validator)
    smoother = PseudoNodeSmoother(logger, network_config, validator)
    simplifier = NetworkSimplifier(logger, network_config, validator)
    diagnostics = NetworkDiagnostics(logger)

    topology_processor = TopologyProcessor(
        logger=logger,
        config=network_config,
        validator=validator,
        subdivider=subdivider,
        deduplicator=deduplicator,
        smoother=smoother,
        simplifier=simplifier,
        diagnostics=diagnostics,
    )

    blender = PointBlender(logger, network_config, validator)

    network_service = NetworkService(
        logger=logger,
        network_io=network_io,
        builder=builder,
        topology_processor=topology_processor,
        blender=blender,
        validator=validator,
        config=network_config,
    )

    router = NetworkRouter(logger, network_config)

    return BuiltApp(config=network_config, network_service=network_service, router=router)
