import unittest

import geopandas as gpd
import pandas as pd
from shapely.geometry import LineString, Point

from network_fixtures import build, make_components, node_xy, collinear_pair_lines
from Service.network_modules.errors import InvalidArgument, StructuralViolation
from Service.network_modules.topology import NetworkJoiner, PointBlender


def _long_edge(crs=None):
    return build([LineString([(0, 0), (10, 0)])], crs=crs)


def _pairs(net):
    return list(zip(net.edges["from"], net.edges["to"]))


class PointBlenderTests(unittest.TestCase):
    def setUp(self):
        self.logger, self.config, self.validator, _builder = make_components()
        self.blender = PointBlender(self.logger, self.config, self.validator)

    def test_point_beyond_tolerance_is_dropped(self):
        net = _long_edge()
        result = self.blender.execute(net, [Point(5, 0.5)], tolerance=0.2)

        self.assertEqual((result.n_nodes, result.n_edges), (2, 1))

    def test_point_within_tolerance_splits_the_edge(self):
        result = self.blender.execute(_long_edge(), [Point(5, 0.5)], tolerance=1.0)

        self.assertEqual(result.n_nodes, 3)
        self.assertEqual(node_xy(result)[2], (5, 0))
        self.assertEqual(_pairs(result), [(0, 2), (2, 1)])
        self.assertEqual(result.edges.geometry.iloc[0].coords[-1], (5.0, 0.0))
        self.assertEqual(result.edges.geometry.iloc[1].coords[0], (5.0, 0.0))

    def test_several_points_on_one_edge_split_in_line_order(self):
        result = self.blender.execute(_long_edge(), [Point(7, 0.1), Point(3, 0.1)])

        self.assertEqual(node_xy(result)[2:], [(7, 0), (3, 0)])
        self.assertEqual(_pairs(result), [(0, 3), (3, 2), (2, 1)])

    def test_point_at_edge_endpoint_attaches_to_existing_node(self):
        points = gpd.GeoDataFrame({"name": ["stop"]}, geometry=[Point(0, 0.3)])
        result = self.blender.execute(_long_edge(), points, tolerance=1.0)

        self.assertEqual((result.n_nodes, result.n_edges), (2, 1))
        self.assertEqual(result.nodes["name"].iloc[0], "stop")
        self.assertTrue(pd.isna(result.nodes["name"].iloc[1]))

    def test_float_point_attribute_widens_integer_node_column(self):
        net = _long_edge()
        net = net.with_tables(nodes=net.nodes.assign(pop=[1, 2]))
        points = gpd.GeoDataFrame({"pop": [2.5]}, geometry=[Point(0, 0.1)])

        result = self.blender.execute(net, points, tolerance=1.0)

        self.assertEqual(result.nodes["pop"].tolist(), [2.5, 2.0])
        self.assertEqual(net.nodes["pop"].tolist(), [1, 2])

    def test_second_point_on_a_claimed_node_is_dropped(self):
        points = [Point(0, 0.3), Point(0, -0.2)]
        result = self.blender.execute(_long_edge(), points, tolerance=1.0)
        self.assertEqual(result.n_nodes, 2)

    def test_duplicates_are_added_as_isolated_nodes_when_allowed(self):
        points = [Point(0, 0.3), Point(0, -0.2)]
        result = self.blender.execute(_long_edge(), points, tolerance=1.0, allow_duplicates=True)

        self.assertEqual(result.n_nodes, 3)
        self.assertEqual(node_xy(result)[2], (0, 0))
        self.assertEqual(result.n_edges, 1)

    def test_equidistant_edges_pick_the_lowest_index(self):
        net = build([LineString([(0, 0), (10, 0)]), LineString([(0, 2), (10, 2)])])
        result = self.blender.execute(net, [Point(5, 1)])

        self.assertEqual(node_xy(result)[4], (5, 0))
        self.assertEqual(_pairs(result), [(0, 4), (4, 1), (2, 3)])
        self.assertTrue(self.logger.messages("WARNING"))

    def test_tolerance_with_units_is_converted_to_crs_units(self):
        net = _long_edge(crs="EPSG:32633")

        kept = self.blender.execute(net, [Point(5, 0.3)], tolerance="50 cm")
        dropped = self.blender.execute(net, [Point(5, 0.3)], tolerance=(20, "cm"))

        self.assertEqual(kept.n_nodes, 3)
        self.assertEqual(dropped.n_nodes, 2)

    def test_unit_tolerance_on_geographic_crs_is_invalid_argument(self):
        net = _long_edge(crs="EPSG:4326")
        with self.assertRaises(InvalidArgument):
            self.blender.execute(net, [Point(5, 0.3)], tolerance="1 m")

    def test_points_in_another_crs_are_structural_violation(self):
        net = _long_edge(crs="EPSG:32633")
        points = gpd.GeoDataFrame(geometry=[Point(5, 0.3)], crs="EPSG:4326")
        with self.assertRaises(StructuralViolation):
            self.blender.execute(net, points)

    def test_non_point_input_is_invalid_argument(self):
        with self.assertRaises(InvalidArgument):
            self.blender.execute(_long_edge(), [LineString([(0, 1), (1, 1)])])


class NetworkJoinerTests(unittest.TestCase):
    def setUp(self):
        self.logger, self.config, self.validator, _builder = make_components()
        self.joiner = NetworkJoiner(self.logger, self.config, self.validator)

    def test_shared_endpoint_becomes_one_node(self):
        x = build([LineString([(0, 0), (1, 0)])])
        y = build([LineString([(1, 0), (2, 0)])])

        result = self.joiner.execute(x, y)

        self.assertEqual((result.n_nodes, result.n_edges), (3, 2))
        self.assertEqual(_pairs(result), [(0, 1), (1, 2)])
        self.assertEqual(node_xy(result), [(0, 0), (1, 0), (2, 0)])

    def test_counts_follow_the_outer_join(self):
        x = build(collinear_pair_lines())
        y = build([LineString([(4, 1), (6, 1)]), LineString([(0, 1), (0, 3)])])

        result = self.joiner.execute(x, y)

        self.assertEqual(result.n_nodes, x.n_nodes + y.n_nodes - 2)
        self.assertEqual(result.n_edges, x.n_edges + y.n_edges)

    def test_identical_lines_stay_parallel_edges(self):
        line = LineString([(0, 0), (1, 0)])
        result = self.joiner.execute(build([line]), build([line]))

        self.assertEqual(result.n_nodes, 2)
        self.assertEqual(_pairs(result), [(0, 1), (0, 1)])

    def _named_pair(self):
        x = build(collinear_pair_lines())
        x = x.with_tables(nodes=x.nodes.assign(name=["a", None, "c"]))
        y = build([LineString([(2, 1), (4, 1)])])
        y = y.with_tables(nodes=y.nodes.assign(name=["B", "C"]))
        return x, y

    def test_x_policy_keeps_x_attributes(self):
        x, y = self._named_pair()
        result = self.joiner.execute(x, y, node_policy="x")

        names = result.nodes["name"].tolist()
        self.assertEqual((names[0], names[2]), ("a", "c"))
        self.assertTrue(pd.isna(names[1]))

    def test_coalesce_policy_fills_only_missing_values(self):
        x, y = self._named_pair()
        result = self.joiner.execute(x, y, node_policy="coalesce")
        self.assertEqual(result.nodes["name"].tolist(), ["a", "B", "c"])

    def test_y_policy_overwrites_matched_nodes(self):
        x, y = self._named_pair()
        result = self.joiner.execute(x, y, node_policy="y")
        self.assertEqual(result.nodes["name"].tolist(), ["a", "B", "C"])

    def test_unknown_policy_is_invalid_argument(self):
        x, y = self._named_pair()
        with self.assertRaises(InvalidArgument):
            self.joiner.execute(x, y, node_policy="left")

    def test_crs_mismatch_is_structural_violation(self):
        x = build(collinear_pair_lines(), crs="EPSG:32633")
        y = build([LineString([(2, 1), (4, 1)])])
        with self.assertRaises(StructuralViolation):
            self.joiner.execute(x, y)

    def test_directedness_follows_x_with_a_warning(self):
        x = build(collinear_pair_lines(), directed=True)
        y = build([LineString([(4, 1), (6, 1)])], directed=False)

        result = self.joiner.execute(x, y)

        self.assertTrue(result.directed)
        self.assertTrue(self.logger.messages("WARNING"))

    def test_implicit_y_edges_are_made_explicit(self):
        x = build(collinear_pair_lines())
        y = build([LineString([(4, 1), (5, 3), (6, 1)])]).make_edges_implicit()

        result = self.joiner.execute(x, y)

        self.assertTrue(result.has_explicit_edges)
        self.assertEqual(list(result.edges.geometry.iloc[2].coords), [(4.0, 1.0), (6.0, 1.0)])


if __name__ == "__main__":
    unittest.main()
