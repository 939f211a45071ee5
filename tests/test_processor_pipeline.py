import datetime
import tempfile
import unittest
from pathlib import Path

import geopandas as gpd
from shapely.geometry import Point

from main import parse_args
from network_fixtures import RecordingLogger, build, toy_lines
from Common.log import Log
from Function.log_cleanup import clean_old_logs
from Function.utils import build_output_path
from Service.config import NetworkConfig
from Service.container import build_app
from Service.network_modules.topology import NetworkDiagnostics


class TopologyProcessorTests(unittest.TestCase):
    def setUp(self):
        self.logger = RecordingLogger()
        self.app = build_app(self.logger, NetworkConfig())
        self.processor = self.app.network_service._topology

    def test_toy_network_stage_counts(self):
        subdivided, deduplicated, smoothed, final = self.processor.execute_with_stages(build(toy_lines()))

        self.assertEqual((subdivided.n_nodes, subdivided.n_edges), (9, 10))
        self.assertIs(deduplicated, subdivided)
        self.assertEqual((smoothed.n_nodes, smoothed.n_edges), (8, 9))
        self.assertEqual((final.n_nodes, final.n_edges), (8, 7))
        self.assertFalse((final.edges["from"] == final.edges["to"]).any())

    def test_execute_returns_the_final_stage(self):
        final = self.processor.execute(build(toy_lines()))
        self.assertEqual((final.n_nodes, final.n_edges), (8, 7))

    def test_diagnostics_report_counts_cleanup_candidates(self):
        report = NetworkDiagnostics(self.logger).report(build(toy_lines()))

        self.assertEqual(report["loops"], 1)
        self.assertEqual(report["multi_edges"], 1)
        self.assertEqual(report["components"], 3)
        self.assertEqual(report["isolated"], 0)


class NetworkServicePipelineTests(unittest.TestCase):
    def setUp(self):
        self.logger = RecordingLogger()
        self._tmp = tempfile.TemporaryDirectory()
        self.tmp = Path(self._tmp.name)
        self.input_path = self.tmp / "toy.geojson"
        gpd.GeoDataFrame(geometry=toy_lines(), crs="EPSG:32633").to_file(self.input_path, driver="GeoJSON")

    def tearDown(self):
        self._tmp.cleanup()

    def test_pipeline_writes_nodes_and_edges_layers(self):
        app = build_app(self.logger, NetworkConfig())
        output = Path(app.network_service.run_pipeline(str(self.input_path), output_dir=str(self.tmp / "out")))

        self.assertEqual(output.name, "toy_network.gpkg")
        self.assertEqual(len(gpd.read_file(output, layer="nodes")), 8)
        edges = gpd.read_file(output, layer="edges")
        self.assertEqual(len(edges), 7)
        self.assertIn("from", edges.columns)

    def test_pipeline_blends_points(self):
        points_path = self.tmp / "stops.geojson"
        gpd.GeoDataFrame({"name": ["stop"]}, geometry=[Point(0.5, 1.3)], crs="EPSG:32633").to_file(points_path, driver="GeoJSON")

        app = build_app(self.logger, NetworkConfig())
        output = app.network_service.run_pipeline(str(self.input_path), points_path=str(points_path), output_dir=str(self.tmp))

        nodes = gpd.read_file(output, layer="nodes")
        self.assertEqual(len(nodes), 9)
        self.assertEqual(nodes["name"].dropna().tolist(), ["stop"])
        self.assertEqual(len(gpd.read_file(output, layer="edges")), 8)

    def test_debug_mode_saves_intermediate_stages(self):
        app = build_app(self.logger, NetworkConfig(debug_export_intermediate=True))
        app.network_service.run_pipeline(str(self.input_path), output_dir=str(self.tmp))

        for stage in ("01_raw", "02_subdivided", "03_unique", "04_smoothed"):
            self.assertTrue(build_output_path(self.tmp, "toy", stage).exists(), stage)


class LogTests(unittest.TestCase):
    def test_messages_are_written_to_the_daily_file(self):
        with tempfile.TemporaryDirectory() as tmp:
            logger = Log(log_dir=tmp, console=False, name="sfnet-test-log")
            logger.log("네트워크 테스트 메시지", level="INFO")

            content = Path(logger.get_log_paths()).read_text(encoding="utf-8")
            for handler in list(logger._logger.handlers):
                handler.close()
                logger._logger.removeHandler(handler)

        self.assertIn("INFO - 네트워크 테스트 메시지", content)

    def test_clean_old_logs_removes_only_expired_files(self):
        with tempfile.TemporaryDirectory() as tmp:
            for name in ("Log_20200101.log", "Log_20200109.log", "notes.txt"):
                (Path(tmp) / name).write_text("", encoding="utf-8")

            removed = clean_old_logs(tmp, RecordingLogger(), retention_days=3, now=datetime.datetime(2020, 1, 10))

            self.assertEqual(removed, 1)
            self.assertEqual(sorted(p.name for p in Path(tmp).iterdir()), ["Log_20200109.log", "notes.txt"])

    def test_missing_log_directory_is_skipped(self):
        logger = RecordingLogger()
        self.assertEqual(clean_old_logs("/nonexistent/sfnet-logs", logger), 0)
        self.assertTrue(logger.messages("WARNING"))


class PipelineWiringTests(unittest.TestCase):
    def test_processor_runs_stages_in_order(self):
        src = Path("Service/network_modules/topology/processor.py").read_text(encoding="utf-8")
        calls = [
            "self._subdivider.execute(net)",
            "self._deduplicator.execute(subdivided)",
            "self._smoother.execute(deduplicated)",
            "self._simplifier.execute(smoothed)",
        ]
        positions = [src.index(call) for call in calls]
        self.assertEqual(positions, sorted(positions))

    def test_container_shares_one_validator(self):
        src = Path("Service/container.py").read_text(encoding="utf-8")
        self.assertIn("validator = NetworkValidator(logger, network_config)", src)
        self.assertIn("blender = PointBlender(logger, network_config, validator)", src)
        self.assertIn("router = NetworkRouter(logger, network_config)", src)

    def test_cli_arguments(self):
        args = parse_args(["lines.gpkg", "--points", "stops.gpkg", "--output-dir", "out"])
        self.assertEqual((args.input, args.points, args.output_dir), ("lines.gpkg", "stops.gpkg", "out"))


if __name__ == "__main__":
    unittest.main()
