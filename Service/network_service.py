"""
Service/network_service.py

선형 파일을 읽어 네트워크를 만들고 위상 정돈, 점 블렌딩, 저장까지의 전체 공정을 제어하는 서비스 모듈입니다.
"""
from __future__ import annotations

from pathlib import Path
from typing import Optional

from Common.log import Log
from Function.utils import build_output_path, get_runtime_base_path
from Function.decorators import log_execution_time, safe_run
from Service.config import NetworkConfig
from Service.schemas import FileLoadRequest, FileSaveRequest
from Service.network_modules import NetworkBuilder, NetworkIO, NetworkValidator, SpatialNetwork, TopologyProcessor
from Service.network_modules.topology import PointBlender


class NetworkService:
    """
    네트워크 파이프라인의 실행을 관리하는 메인 서비스 클래스입니다.
    """

    def __init__(
        self,
        logger: Log,
        network_io: NetworkIO,
        builder: NetworkBuilder,
        topology_processor: TopologyProcessor,
        blender: PointBlender,
        validator: NetworkValidator,
        config: Optional[NetworkConfig] = None,
    ):
        self._logger = logger
        self._io = network_io
        self._builder = builder
        self._topology = topology_processor
        self._blender = blender
        self._validator = validator
        self._config = config or NetworkConfig()

    @safe_run
    @log_execution_time
    def run_pipeline(self, input_path: str, points_path: Optional[str] = None, output_dir: Optional[str] = None) -> str:
        """
        선형 파일로부터 네트워크를 구성하고 정돈한 뒤, 점 파일이 있으면 블렌딩하여 GeoPackage로 저장합니다.
        """
        target_path = Path(input_path)

        out_dir = Path(output_dir) if output_dir else get_runtime_base_path() / "Result"
        out_dir.mkdir(parents=True, exist_ok=True)

        gdf_input = self._io.load(FileLoadRequest(file_path=target_path))
        raw_net = self._builder.from_lines(gdf_input)

        if self._config.debug_export_intermediate:
            subdivided, deduplicated, smoothed, final_net = self._topology.execute_with_stages(raw_net)
            self._save_stage(out_dir, target_path.stem, "01_raw", raw_net)
            self._save_stage(out_dir, target_path.stem, "02_subdivided", subdivided)
            self._save_stage(out_dir, target_path.stem, "03_unique", deduplicated)
            self._save_stage(out_dir, target_path.stem, "04_smoothed", smoothed)
        else:
            final_net = self._topology.execute(raw_net)

        if points_path:
            gdf_points = self._io.load_points(FileLoadRequest(file_path=Path(points_path)))
            final_net = self._blender.execute(final_net, gdf_points)

        self._validator.validate(final_net)

        output_path = build_output_path(out_dir, target_path.stem, "network")
        final_path = self._io.save(final_net, FileSaveRequest(output_path=output_path))
        return str(final_path)

    def _save_stage(self, output_dir: Path, stem: str, stage: str, net: SpatialNetwork) -> None:
        """파이프라인 중간 단계의 결과물을 파일로 저장합니다."""
        if net is None or net.n_edges == 0:
            return

        stage_path = build_output_path(output_dir, stem, stage)
        try:
            self._io.save(net, FileSaveRequest(output_path=stage_path))
            self._logger.log(f"[Debug] 저장 완료: {stage_path.name}", level="INFO")
        except OSError as e:
            self._logger.log(f"[Debug] 저장 실패: {stage_path.name} - {e}", level="WARNING")
