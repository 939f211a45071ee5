import os
import tempfile
import unittest
from pathlib import Path
from typing import get_args
from unittest import mock

from pydantic import ValidationError

from Service.config import NetworkConfig
from Service.network_modules.errors import InvalidArgument
from Service.network_modules.model.reducers import REDUCERS
from Service.network_modules.model.units import meters_per_unit, parse_tolerance, to_crs_units
from Service.schemas import FileLoadRequest, FileSaveRequest, ToleranceSpec


class NetworkConfigTests(unittest.TestCase):
    def test_defaults(self):
        config = NetworkConfig()

        self.assertTrue(config.default_directed)
        self.assertEqual(config.join_node_policy, "x")
        self.assertEqual(config.routing_default_router, "dijkstra")
        self.assertIsNone(config.blend_tolerance)

    def test_environment_overrides_defaults(self):
        env = {"SFNET_DEFAULT_DIRECTED": "false", "SFNET_BLEND_TOLERANCE": "2.5"}
        with mock.patch.dict(os.environ, env):
            config = NetworkConfig()

        self.assertFalse(config.default_directed)
        self.assertEqual(config.blend_tolerance, 2.5)

    def test_negative_tolerance_is_rejected(self):
        with self.assertRaises(ValidationError):
            NetworkConfig(coordinate_tolerance=-1.0)

    def test_unknown_default_reducer_is_rejected(self):
        with self.assertRaises(ValidationError):
            NetworkConfig(default_attribute_reducer="avg")
        self.assertEqual(NetworkConfig(default_attribute_reducer="mean").default_attribute_reducer, "mean")

    def test_default_reducer_choices_match_the_registry(self):
        choices = set(get_args(NetworkConfig.model_fields["default_attribute_reducer"].annotation))
        self.assertEqual(choices, set(REDUCERS) | {"ignore"})

    def test_unknown_join_policy_is_rejected(self):
        with self.assertRaises(ValidationError):
            NetworkConfig(join_node_policy="left")


class FileRequestTests(unittest.TestCase):
    def test_save_request_requires_geopackage(self):
        with self.assertRaises(ValidationError):
            FileSaveRequest(output_path=Path("out.shp"))
        self.assertEqual(FileSaveRequest(output_path=Path("out.gpkg")).output_path.suffix, ".gpkg")

    def test_load_request_requires_existing_file(self):
        with tempfile.TemporaryDirectory() as tmp:
            with self.assertRaises(ValidationError):
                FileLoadRequest(file_path=Path(tmp) / "missing.gpkg")

            existing = Path(tmp) / "lines.geojson"
            existing.write_text("{}", encoding="utf-8")
            self.assertEqual(FileLoadRequest(file_path=existing).file_path, existing.resolve())


class ToleranceTests(unittest.TestCase):
    def test_accepted_forms(self):
        self.assertIsNone(parse_tolerance(None))
        self.assertEqual(parse_tolerance(3), ToleranceSpec(value=3.0))
        self.assertEqual(parse_tolerance((5, "M")), ToleranceSpec(value=5.0, unit="m"))
        self.assertEqual(parse_tolerance("0.5 km"), ToleranceSpec(value=0.5, unit="km"))
        self.assertEqual(parse_tolerance("7"), ToleranceSpec(value=7.0))

    def test_invalid_forms_are_invalid_argument(self):
        for value in ("-1 m", "five metres", (1, "parsec"), -2.0, (1, 2, 3)):
            with self.subTest(value=value):
                with self.assertRaises(InvalidArgument):
                    parse_tolerance(value)

    def test_plain_number_is_already_in_crs_units(self):
        self.assertEqual(to_crs_units(2.0, None), 2.0)
        self.assertIsNone(to_crs_units(None, "EPSG:32633"))

    def test_metric_crs_conversion(self):
        self.assertAlmostEqual(to_crs_units((1, "km"), "EPSG:32633"), 1000.0)
        self.assertAlmostEqual(to_crs_units("25 cm", "EPSG:32633"), 0.25)

    def test_feet_crs_conversion(self):
        # EPSG:2263 축 단위는 US survey foot
        self.assertAlmostEqual(to_crs_units("1 us-ft", "EPSG:2263"), 1.0)
        self.assertAlmostEqual(to_crs_units("1 m", "EPSG:2263"), 3937.0 / 1200.0, places=6)

    def test_unit_names_resolve_through_proj(self):
        self.assertAlmostEqual(meters_per_unit("mi"), 1609.344)
        self.assertAlmostEqual(meters_per_unit("feet"), 0.3048)
        self.assertAlmostEqual(meters_per_unit("metre"), 1.0)
        self.assertAlmostEqual(to_crs_units((1, "US survey foot"), "EPSG:32633"), 1200.0 / 3937.0)
        self.assertAlmostEqual(to_crs_units("2 yd", "EPSG:32633"), 1.8288)

    def test_units_need_a_projected_crs(self):
        with self.assertRaises(InvalidArgument):
            to_crs_units("1 m", "EPSG:4326")
        with self.assertRaises(InvalidArgument):
            to_crs_units("1 m", None)


if __name__ == "__main__":
    unittest.main()
