import math
import unittest

import numpy as np
from shapely.geometry import LineString, Point

from network_fixtures import RecordingLogger, build
from Service.config import NetworkConfig
from Service.network_modules.errors import InvalidArgument
from Service.network_modules.routing import NetworkRouter


def _triangle_lines():
    return [
        LineString([(0, 0), (1, 0)]),
        LineString([(1, 0), (1, 1)]),
        LineString([(0, 0), (1, 1)]),
        LineString([(5, 5), (6, 5)]),
    ]


class NetworkRouterTests(unittest.TestCase):
    def setUp(self):
        self.logger = RecordingLogger()
        self.router = NetworkRouter(self.logger, NetworkConfig())
        self.net = build(_triangle_lines(), w=[1.0, 1.0, 5.0, 1.0])

    def test_length_weighted_route_takes_the_diagonal(self):
        paths = self.router.shortest_paths(self.net, [0], [2])
        row = paths.iloc[0]

        self.assertTrue(row["found"])
        self.assertEqual(row["node_path"], [0, 2])
        self.assertEqual(row["edge_path"], [2])
        self.assertAlmostEqual(row["cost"], math.sqrt(2))

    def test_explicit_weights_change_the_route(self):
        row = self.router.shortest_paths(self.net, [0], [2], weights=[1, 1, 5, 1]).iloc[0]

        self.assertEqual(row["node_path"], [0, 1, 2])
        self.assertEqual(row["edge_path"], [0, 1])
        self.assertAlmostEqual(row["cost"], 2.0)

    def test_weight_column_name(self):
        row = self.router.shortest_paths(self.net, [0], [2], weights="w").iloc[0]
        self.assertEqual(row["edge_path"], [0, 1])

    def test_configured_default_weight_column(self):
        router = NetworkRouter(self.logger, NetworkConfig(routing_default_weight="w"))
        row = router.shortest_paths(self.net, [0], [2]).iloc[0]
        self.assertAlmostEqual(row["cost"], 2.0)

    def test_unreachable_pair_is_reported_not_raised(self):
        row = self.router.shortest_paths(self.net, [0], [3]).iloc[0]

        self.assertFalse(row["found"])
        self.assertEqual(row["node_path"], [])
        self.assertEqual(row["edge_path"], [])
        self.assertTrue(math.isinf(row["cost"]))

    def test_direction_is_respected(self):
        directed = self.router.shortest_paths(self.net, [2], [0]).iloc[0]
        undirected = self.router.shortest_paths(build(_triangle_lines(), directed=False), [2], [0]).iloc[0]

        self.assertFalse(directed["found"])
        self.assertTrue(undirected["found"])
        self.assertEqual(undirected["edge_path"], [2])

    def test_bellman_ford_matches_dijkstra(self):
        dijkstra = self.router.shortest_paths(self.net, [0, 1], [2, 4], router="dijkstra")
        bellman = self.router.shortest_paths(self.net, [0, 1], [2, 4], router="bellman-ford")

        self.assertEqual(dijkstra["node_path"].tolist(), bellman["node_path"].tolist())
        np.testing.assert_allclose(dijkstra["cost"], bellman["cost"])

    def test_point_locations_snap_to_nearest_node(self):
        row = self.router.shortest_paths(self.net, [Point(0.1, -0.1)], [Point(0.9, 1.2)]).iloc[0]
        self.assertEqual((row["origin"], row["destination"]), (0, 2))

    def test_parallel_edges_use_the_cheapest(self):
        lines = [LineString([(0, 0), (0.5, 1), (1, 0)]), LineString([(0, 0), (1, 0)])]
        row = self.router.shortest_paths(build(lines), [0], [1]).iloc[0]

        self.assertEqual(row["edge_path"], [1])
        self.assertAlmostEqual(row["cost"], 1.0)

    def test_cost_matrix(self):
        matrix = self.router.cost_matrix(self.net, [0, 3], [2, 4])

        self.assertEqual(matrix.shape, (2, 2))
        self.assertAlmostEqual(matrix[0, 0], math.sqrt(2))
        self.assertAlmostEqual(matrix[1, 1], 1.0)
        self.assertTrue(np.isinf(matrix[0, 1]))
        self.assertTrue(np.isinf(matrix[1, 0]))

    def test_every_origin_destination_pair_is_listed(self):
        paths = self.router.shortest_paths(self.net, [0, 1], [0, 1, 2])

        self.assertEqual(len(paths), 6)
        self.assertEqual(paths[["origin", "destination"]].values.tolist(),
                         [[0, 0], [0, 1], [0, 2], [1, 0], [1, 1], [1, 2]])
        self.assertEqual(paths.iloc[0]["cost"], 0.0)

    def test_negative_weights_are_invalid_argument(self):
        with self.assertRaises(InvalidArgument):
            self.router.shortest_paths(self.net, [0], [2], weights=[1, -1, 1, 1])

    def test_weights_of_wrong_length_are_invalid_argument(self):
        with self.assertRaises(InvalidArgument):
            self.router.cost_matrix(self.net, [0], [2], weights=[1, 1])

    def test_missing_weights_are_invalid_argument(self):
        with self.assertRaises(InvalidArgument):
            self.router.shortest_paths(self.net, [0], [2], weights=[1, np.nan, 1, 1])

    def test_unknown_weight_column_is_invalid_argument(self):
        with self.assertRaises(InvalidArgument):
            self.router.shortest_paths(self.net, [0], [2], weights="speed")

    def test_unknown_router_is_invalid_argument(self):
        with self.assertRaises(InvalidArgument):
            self.router.shortest_paths(self.net, [0], [2], router="astar")

    def test_node_index_out_of_range_is_invalid_argument(self):
        with self.assertRaises(InvalidArgument):
            self.router.shortest_paths(self.net, [0], [99])


if __name__ == "__main__":
    unittest.main()
