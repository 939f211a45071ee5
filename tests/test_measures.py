import unittest

import numpy as np
from shapely.geometry import Point

from network_fixtures import build, toy_lines, toy_square
from Service.network_modules import measures

TOY_LENGTHS = [2, 2, 2, 1 + np.sqrt(2), 2, 1, 2 + np.sqrt(2)]


class EdgeMeasureTests(unittest.TestCase):
    def setUp(self):
        self.net = build(toy_lines())

    def test_length(self):
        np.testing.assert_allclose(measures.edge_length(self.net), TOY_LENGTHS)

    def test_displacement(self):
        np.testing.assert_allclose(measures.edge_displacement(self.net), [2, 2, 2, 1, 2, 1, 0])

    def test_circuity_of_loop_is_infinite(self):
        circuity = measures.edge_circuity(self.net)

        np.testing.assert_allclose(circuity[:6], [1, 1, 1, 1 + np.sqrt(2), 1, 1])
        self.assertTrue(np.isinf(circuity[6]))

    def test_circuity_inf_as_nan(self):
        circuity = measures.edge_circuity(self.net, inf_as_nan=True)
        self.assertTrue(np.isnan(circuity[6]))
        self.assertFalse(np.isnan(circuity[:6]).any())

    def test_implicit_edges_measure_straight_segments(self):
        implicit = self.net.make_edges_implicit()
        np.testing.assert_allclose(measures.edge_length(implicit), measures.edge_displacement(self.net))


class EdgePredicateTests(unittest.TestCase):
    def setUp(self):
        self.net = build(toy_lines())
        self.square = toy_square()

    def _hits(self, mask):
        return np.flatnonzero(mask).tolist()

    def test_intersects(self):
        self.assertEqual(self._hits(measures.edge_intersects(self.net, self.square)), [1, 2, 3, 4, 5, 6])

    def test_crosses(self):
        self.assertEqual(self._hits(measures.edge_crosses(self.net, self.square)), [1])

    def test_touches(self):
        self.assertEqual(self._hits(measures.edge_touches(self.net, self.square)), [2, 3, 5, 6])

    def test_within_and_covered_by(self):
        self.assertEqual(self._hits(measures.edge_is_within(self.net, self.square)), [4])
        self.assertEqual(self._hits(measures.edge_is_covered_by(self.net, self.square)), [2, 4])

    def test_disjoint(self):
        self.assertEqual(self._hits(measures.edge_is_disjoint(self.net, self.square)), [0])

    def test_within_distance(self):
        mask = measures.edge_is_within_distance(self.net, Point(2, 0), 1.0)
        self.assertEqual(self._hits(mask), [0, 1, 2])

    def test_any_of_several_geometries(self):
        mask = measures.edge_intersects(self.net, [Point(0, 1), Point(4, 3)])
        self.assertEqual(self._hits(mask), [0, 3, 5])

    def test_edge_filter_with_predicate(self):
        filtered = self.net.filter_edges(measures.edge_is_covered_by(self.net, self.square))
        self.assertEqual(filtered.n_edges, 2)
        self.assertEqual(filtered.n_nodes, self.net.n_nodes)


class NodePredicateTests(unittest.TestCase):
    def setUp(self):
        self.net = build(toy_lines())
        self.square = toy_square()

    def _hits(self, mask):
        return np.flatnonzero(mask).tolist()

    def test_intersects_and_covered_by(self):
        self.assertEqual(self._hits(measures.node_intersects(self.net, self.square)), [2, 3, 4, 6, 7])
        self.assertEqual(self._hits(measures.node_is_covered_by(self.net, self.square)), [2, 3, 4, 6, 7])

    def test_within_excludes_boundary(self):
        self.assertEqual(self._hits(measures.node_is_within(self.net, self.square)), [2])

    def test_touches(self):
        self.assertEqual(self._hits(measures.node_touches(self.net, self.square)), [3, 4, 6, 7])

    def test_disjoint(self):
        self.assertEqual(self._hits(measures.node_is_disjoint(self.net, self.square)), [0, 1, 5])

    def test_within_distance(self):
        mask = measures.node_is_within_distance(self.net, Point(2, 0), 1.0)
        self.assertEqual(self._hits(mask), [1, 4])

    def test_node_filter_keeps_edges_inside_the_selection(self):
        filtered = self.net.filter_nodes(measures.node_intersects(self.net, self.square))

        self.assertEqual(filtered.n_nodes, 5)
        self.assertEqual(filtered.n_edges, 3)
        np.testing.assert_allclose(measures.edge_length(filtered), [2, 2, 2 + np.sqrt(2)])


if __name__ == "__main__":
    unittest.main()
