"""
Unit tests for the visibility graph builder and the per-query overlay.
"""

import pytest

from shortest_path_core.config import NavigationSettings
from shortest_path_core.errors import DegenerateQuery, PointInsideObstacle, PointOutsideBoundary
from shortest_path_core.geometry import Point, Segment
from shortest_path_core.navigation_graph import (
    NodeKind,
    build_navigation_graph,
    build_visibility_graph,
    is_bend_candidate,
    overlay_query_points,
    require_query_point,
)
from shortest_path_core.obstacles import ObstacleSet


def graph_points(graph):
    return {graph.point(i) for i in range(len(graph))}


class TestVisibilityGraph:
    """Tests for the obstacle-only graph."""

    def test_square_edges_follow_the_sides(self, square, reduced_settings):
        graph = build_visibility_graph(ObstacleSet([square]), reduced_settings)
        assert len(graph) == 4
        assert graph.edge_count == 4  # the diagonals pass through the interior
        for i, j, w in graph.edges():
            assert w == pytest.approx(4.0)

    def test_symmetric_without_self_loops(self, random_scene, full_settings):
        obstacles = ObstacleSet(random_scene(7))
        graph = build_visibility_graph(obstacles, full_settings)
        for i in range(len(graph)):
            for j, w in graph.neighbors(i):
                assert j != i
                assert any(k == i and v == w for k, v in graph.neighbors(j))

    def test_edges_are_unblocked(self, random_scene, reduced_settings):
        obstacles = ObstacleSet(random_scene(3))
        graph = build_visibility_graph(obstacles, reduced_settings)
        for i, j, _ in graph.edges():
            assert not obstacles.segment_blocked(Segment(graph.point(i), graph.point(j)))

    def test_reflex_vertices_pruned_in_reduced_mode(self, u_shape, reduced_settings, full_settings):
        obstacles = ObstacleSet([u_shape])
        reduced = build_visibility_graph(obstacles, reduced_settings)
        full = build_visibility_graph(obstacles, full_settings)
        assert Point(2, 2) not in graph_points(reduced)
        assert Point(4, 2) not in graph_points(reduced)
        assert graph_points(full) == {Point(*p) for p in u_shape}
        assert reduced.edge_count <= full.edge_count

    def test_reduced_is_subgraph_of_full(self, random_scene, reduced_settings, full_settings):
        obstacles = ObstacleSet(random_scene(11, num_obstacles=8))
        reduced = build_visibility_graph(obstacles, reduced_settings)
        full = build_visibility_graph(obstacles, full_settings)
        full_edges = {frozenset((full.point(i), full.point(j))) for i, j, _ in full.edges()}
        for i, j, _ in reduced.edges():
            assert frozenset((reduced.point(i), reduced.point(j))) in full_edges

    def test_vertices_inside_other_obstacles_are_dropped(self, full_settings):
        obstacles = ObstacleSet([
            [(0, 0), (4, 0), (4, 4), (0, 4)],
            [(2, 2), (6, 2), (6, 6), (2, 6)],
        ])
        graph = build_visibility_graph(obstacles, full_settings)
        points = graph_points(graph)
        assert Point(2, 2) not in points
        assert Point(4, 4) not in points
        assert len(graph) == 6

    def test_coincident_vertices_share_a_node(self, touching_squares, reduced_settings):
        graph = build_visibility_graph(ObstacleSet(touching_squares), reduced_settings)
        assert len(graph) == 7
        shared = graph.node_at(Point(2, 2))
        assert shared is not None
        assert {ref.polygon_id for ref in graph.nodes[shared].refs} == {0, 1}

    def test_boundary_reflex_vertex_is_a_bend_candidate(self, l_boundary):
        obstacles = ObstacleSet([], boundary=l_boundary)
        candidates = [ref.point for ref in obstacles.vertices() if is_bend_candidate(obstacles, ref)]
        assert candidates == [Point(4, 4)]

    def test_empty_obstacle_set(self, reduced_settings):
        graph = build_visibility_graph(ObstacleSet(), reduced_settings)
        assert len(graph) == 0
        assert graph.edge_count == 0


class TestNavigationGraph:
    """Tests for the start/goal overlay."""

    def test_overlay_does_not_mutate_base(self, square, reduced_settings):
        obstacles = ObstacleSet([square])
        base = build_visibility_graph(obstacles, reduced_settings)
        before = [base.neighbors(i) for i in range(len(base))]

        graph = build_navigation_graph(obstacles, (-2, 2), (6, 2), reduced_settings, base=base)

        assert [base.neighbors(i) for i in range(len(base))] == before
        assert len(graph) == len(base) + 2
        assert graph.edge_count > base.edge_count

    def test_start_and_goal_nodes(self, square, reduced_settings):
        graph = build_navigation_graph(ObstacleSet([square]), (-2, 2), (6, 2), reduced_settings)
        assert graph.node(graph.start_index).kind is NodeKind.START
        assert graph.node(graph.goal_index).kind is NodeKind.GOAL
        assert graph.node_index((-2, 2)) == graph.start_index
        assert graph.node_index((6, 2)) == graph.goal_index
        assert graph.node_index((0, 0)) is not None
        assert graph.node_index((100, 100)) is None

    def test_start_sees_tangent_corners_only(self, square, reduced_settings):
        graph = build_navigation_graph(ObstacleSet([square]), (-2, 2), (6, 2), reduced_settings)
        seen = {graph.point(j) for j, _ in graph.neighbors(graph.start_index)}
        assert seen == {Point(0, 0), Point(0, 4)}
        assert not graph.has_edge(graph.start_index, graph.goal_index)

    def test_direct_edge_when_visible(self, square, reduced_settings):
        graph = build_navigation_graph(ObstacleSet([square]), (-2, 6), (6, 6), reduced_settings)
        assert graph.has_edge(graph.start_index, graph.goal_index)
        assert graph.has_edge(graph.goal_index, graph.start_index)

    def test_start_on_vertex_skips_zero_length_edge(self, square, reduced_settings):
        graph = build_navigation_graph(ObstacleSet([square]), (0, 0), (6, 2), reduced_settings)
        for j, w in graph.neighbors(graph.start_index):
            assert w > 0
        seen = {graph.point(j) for j, _ in graph.neighbors(graph.start_index)}
        assert Point(4, 0) in seen

    def test_overlay_of_validated_points(self, square, reduced_settings):
        obstacles = ObstacleSet([square])
        base = build_visibility_graph(obstacles, reduced_settings)
        built = build_navigation_graph(obstacles, (-2, 2), (6, 2), reduced_settings, base=base)
        overlaid = overlay_query_points(obstacles, Point(-2, 2), Point(6, 2), reduced_settings, base=base)
        assert sorted(overlaid.edges()) == sorted(built.edges())

    def test_shared_edge_not_in_graph(self, abutting_wall, full_settings):
        graph = build_visibility_graph(ObstacleSet(abutting_wall), full_settings)
        a, b = graph.node_at(Point(0, 0)), graph.node_at(Point(1, 0))
        assert a is not None and b is not None
        assert b not in {j for j, _ in graph.neighbors(a)}

    def test_mismatched_base_rejected(self, square, u_shape, reduced_settings):
        base = build_visibility_graph(ObstacleSet([square]), reduced_settings)
        with pytest.raises(ValueError):
            build_navigation_graph(ObstacleSet([u_shape]), (-2, 2), (8, 2), reduced_settings, base=base)

    def test_start_inside_rejected_before_building(self, square, reduced_settings):
        with pytest.raises(PointInsideObstacle) as exc_info:
            build_navigation_graph(ObstacleSet([square]), (2, 2), (6, 2), reduced_settings)
        assert exc_info.value.role == "start"
        assert exc_info.value.obstacle_index == 0

    def test_goal_inside_rejected(self, square, reduced_settings):
        with pytest.raises(PointInsideObstacle) as exc_info:
            build_navigation_graph(ObstacleSet([square]), (-2, 2), (1, 1), reduced_settings)
        assert exc_info.value.role == "goal"


class TestRequireQueryPoint:
    """Tests for start/goal validation."""

    def test_free_point(self, square):
        assert require_query_point(ObstacleSet([square]), (5, 5)) == Point(5, 5)

    def test_boundary_point_is_free(self, square):
        assert require_query_point(ObstacleSet([square]), (4, 2)) == Point(4, 2)

    @pytest.mark.parametrize("bad", [(float("nan"), 0), (0, float("inf")), ("a", 0), (1,)])
    def test_degenerate(self, square, bad):
        with pytest.raises(DegenerateQuery):
            require_query_point(ObstacleSet([square]), bad)

    def test_outside_boundary(self, l_boundary):
        obstacles = ObstacleSet([], boundary=l_boundary)
        with pytest.raises(PointOutsideBoundary) as exc_info:
            require_query_point(obstacles, (8, 8), "goal")
        assert exc_info.value.kind == "point_outside_boundary"
        assert isinstance(exc_info.value, PointInsideObstacle)

    def test_settings_default(self, square):
        graph = build_visibility_graph(ObstacleSet([square]))
        assert graph.reduced == NavigationSettings().reduced_graph
