"""Unit tests for the router module."""

import pytest

from archflow.debug import LayoutInspector
from archflow.engine import DiagramEngine
from archflow.models import Connection, ConnectionStyle, Diagram, Node, NodeType, Side
from archflow.router import (
    ConnectorType,
    LaneRegistry,
    PathRouter,
    RoutedConnection,
    basic_waypoints,
    classify_connector,
    curve_points,
    path_length,
    simplify_waypoints,
)
from archflow.tracer import LayoutTrace


class TestClassifyConnector:
    """Tests for connector topology selection."""

    def test_aligned_opposite_sides_are_straight(self):
        """Opposite sides within tolerance give a straight connector."""
        assert classify_connector(Side.RIGHT, Side.LEFT, (0, 100), (200, 105)) == ConnectorType.STRAIGHT
        assert classify_connector(Side.BOTTOM, Side.TOP, (100, 0), (100, 200)) == ConnectorType.STRAIGHT

    def test_offset_opposite_sides_are_z(self):
        """Opposite sides with a larger offset give a Z connector."""
        assert classify_connector(Side.RIGHT, Side.LEFT, (0, 100), (200, 110)) == ConnectorType.Z_HORIZONTAL
        assert classify_connector(Side.TOP, Side.BOTTOM, (0, 200), (50, 0)) == ConnectorType.Z_VERTICAL

    def test_adjacent_sides_are_l(self):
        """Adjacent sides give an L connector named after the exit axis."""
        assert classify_connector(Side.RIGHT, Side.TOP, (0, 0), (100, 100)) == ConnectorType.L_HORIZONTAL
        assert classify_connector(Side.BOTTOM, Side.LEFT, (0, 0), (100, 100)) == ConnectorType.L_VERTICAL

    def test_same_side_is_u(self):
        """Same sides give a U connector."""
        assert classify_connector(Side.RIGHT, Side.RIGHT, (0, 0), (0, 100)) == ConnectorType.U_HORIZONTAL
        assert classify_connector(Side.TOP, Side.TOP, (0, 0), (100, 0)) == ConnectorType.U_VERTICAL


class TestBasicWaypoints:
    """Tests for plain connector shapes."""

    def test_straight(self):
        """Exactly aligned straight connectors have two points."""
        assert basic_waypoints((0, 10), (100, 10), Side.RIGHT, Side.LEFT) == [(0, 10), (100, 10)]

    def test_straight_with_small_offset_jogs(self):
        """A nearly aligned straight connector jogs at the midpoint."""
        points = basic_waypoints((0, 10), (100, 15), Side.RIGHT, Side.LEFT)
        assert points == [(0, 10), (50, 10), (50, 15), (100, 15)]

    def test_z_horizontal_through_midpoint(self):
        """Z connectors jog at the midpoint."""
        points = basic_waypoints((0, 0), (200, 100), Side.RIGHT, Side.LEFT)
        assert points == [(0, 0), (100, 0), (100, 100), (200, 100)]

    def test_z_vertical_through_midpoint(self):
        """Vertical Z connectors jog at the vertical midpoint."""
        points = basic_waypoints((0, 0), (100, 200), Side.BOTTOM, Side.TOP)
        assert points == [(0, 0), (0, 100), (100, 100), (100, 200)]

    def test_l_shapes(self):
        """L connectors bend once."""
        assert basic_waypoints((0, 0), (100, 100), Side.RIGHT, Side.TOP) == [(0, 0), (100, 0), (100, 100)]
        assert basic_waypoints((0, 0), (100, 100), Side.BOTTOM, Side.LEFT) == [(0, 0), (0, 100), (100, 100)]

    def test_u_detour_beyond_outermost_anchor(self):
        """U connectors swing 40 beyond the outermost anchor."""
        points = basic_waypoints((100, 0), (150, 100), Side.RIGHT, Side.RIGHT)
        assert points == [(100, 0), (190, 0), (190, 100), (150, 100)]
        points = basic_waypoints((0, 100), (100, 80), Side.TOP, Side.TOP)
        assert points == [(0, 100), (0, 40), (100, 40), (100, 80)]


class TestGeometryHelpers:
    """Tests for path helpers."""

    def test_path_length(self):
        """Path length sums Manhattan segment lengths."""
        assert path_length([(0, 0), (10, 0), (10, 5)]) == 15

    def test_simplify_removes_duplicates_and_collinear(self):
        """Simplification keeps only corners and endpoints."""
        points = [(0, 0), (0, 0), (5, 0), (10, 0), (10, 10)]
        assert simplify_waypoints(points) == [(0, 0), (10, 0), (10, 10)]

    def test_simplify_keeps_endpoints(self):
        """A straight line keeps both endpoints."""
        assert simplify_waypoints([(0, 0), (5, 0), (10, 0)]) == [(0, 0), (10, 0)]

    def test_curve_points(self):
        """Curve controls extend from each side by 40% of the distance."""
        points = curve_points((0, 0), (200, 0), Side.RIGHT, Side.LEFT)
        assert points == [(0, 0), (80, 0), (120, 0), (200, 0)]

    def test_curve_offset_capped(self):
        """Curve controls never extend more than 100."""
        points = curve_points((0, 0), (0, 1000), Side.BOTTOM, Side.TOP)
        assert points[1] == (0, 100)
        assert points[2] == (0, 900)


class TestLaneRegistryConflicts:
    """Tests for reserved interval conflicts."""

    @pytest.fixture
    def lanes(self):
        registry = LaneRegistry()
        registry.reserve_vertical_line(100, 50, 150)
        registry.reserve_horizontal_line(100, 50, 150)
        return registry

    def test_overlap_conflicts(self, lanes):
        """Overlapping intervals on the same line conflict."""
        assert lanes.is_vertical_line_conflict(100, 60, 140)
        assert lanes.is_vertical_line_conflict(100, 0, 300)
        assert lanes.is_horizontal_line_conflict(100, 140, 200)

    def test_touching_intervals_conflict(self, lanes):
        """Intervals that only touch still conflict."""
        assert lanes.is_vertical_line_conflict(100, 0, 50)
        assert lanes.is_horizontal_line_conflict(100, 150, 250)

    def test_disjoint_intervals_do_not_conflict(self, lanes):
        """Intervals that do not meet are free."""
        assert not lanes.is_vertical_line_conflict(100, 160, 300)
        assert not lanes.is_horizontal_line_conflict(100, 0, 40)

    def test_tolerance(self, lanes):
        """Lines closer than the tolerance conflict; at the tolerance they do not."""
        assert lanes.is_vertical_line_conflict(104, 60, 140)
        assert not lanes.is_vertical_line_conflict(105, 60, 140)
        assert not lanes.is_horizontal_line_conflict(106, 60, 140)

    def test_empty_registry(self):
        """A fresh registry has no conflicts."""
        assert not LaneRegistry().is_vertical_line_conflict(100, 0, 100)


class TestNodeAreaReservations:
    """Tests for node-area reservations."""

    def test_icon_reserves_four_edges(self, make_computed):
        """An icon reserves the square around its inscribed circle plus margin."""
        lanes = LaneRegistry()
        lanes.register_node_areas([make_computed("icon", 100, 100)])
        assert sorted(line.position for line in lanes.vertical_lines) == [96, 152]
        assert sorted(line.position for line in lanes.horizontal_lines) == [96, 152]
        left = lanes.vertical_lines[0]
        assert (left.start, left.end) == (96, 152)

    def test_groups_and_composites_skipped(self, make_computed):
        """Containers do not reserve areas themselves."""
        lanes = LaneRegistry()
        lanes.register_node_areas(
            [
                make_computed("g", 50, 50, 200, 200, NodeType.GROUP),
                make_computed("c", 300, 50, 190, 160, NodeType.COMPOSITE),
                make_computed("icon", 100, 100),
            ]
        )
        assert len(lanes.vertical_lines) == 2
        assert len(lanes.horizontal_lines) == 2

    def test_column_of_icons(self, make_computed):
        """Vertically aligned icons reserve separate intervals on shared lines."""
        lanes = LaneRegistry()
        lanes.register_node_areas(
            [make_computed(f"n{i}", 100, 100 + i * 100) for i in range(3)]
        )
        left_edges = [line for line in lanes.vertical_lines if line.position == 96]
        assert sorted(line.start for line in left_edges) == [96, 196, 296]


class TestLaneSelection:
    """Tests for lane search and claims."""

    def test_free_lane_is_rounded(self):
        """A free coordinate is only rounded."""
        assert LaneRegistry().find_vertical_lane(100.4, 0, 100) == 100

    def test_claimed_lane_shifts(self):
        """A claimed coordinate shifts by the lane step until free."""
        lanes = LaneRegistry()
        lanes.claim_vertical(100)
        lanes.claim_vertical(115)
        assert lanes.find_vertical_lane(100, 0, 100) == 130

    def test_negative_step(self):
        """The search can move in the negative direction."""
        lanes = LaneRegistry()
        lanes.claim_horizontal(80)
        assert lanes.find_horizontal_lane(80, 0, 100, -15) == 65

    def test_reserved_interval_shifts(self):
        """A lane running along a reserved node edge moves away."""
        lanes = LaneRegistry()
        lanes.reserve_vertical_line(100, 0, 100)
        assert lanes.find_vertical_lane(102, 50, 60) == 117


@pytest.fixture
def aligned_nodes(make_computed):
    """a, c and b in a row; c sits between a and b."""
    return {
        "a": make_computed("a", 100, 100),
        "c": make_computed("c", 300, 100),
        "b": make_computed("b", 500, 100),
    }


class TestPathRouter:
    """Tests for PathRouter."""

    def test_route_endpoints_are_anchors(self):
        """The first and last waypoints are the given anchors."""
        router = PathRouter({})
        route = router.route(0, Connection("a", "b"), (148, 124), (400, 224), Side.RIGHT, Side.LEFT)
        assert isinstance(route, RoutedConnection)
        assert route.waypoints[0] == (148, 124)
        assert route.waypoints[-1] == (400, 224)
        assert route.connector == ConnectorType.Z_HORIZONTAL

    def test_straight_detours_around_obstacle(self, aligned_nodes):
        """A straight path through another node becomes a 5-segment detour."""
        router = PathRouter(aligned_nodes)
        route = router.route(0, Connection("a", "b"), (148, 124), (500, 124), Side.RIGHT, Side.LEFT)
        assert route.waypoints == [
            (148, 124),
            (280, 124),
            (280, 80),
            (368, 80),
            (368, 124),
            (500, 124),
        ]
        assert route.collisions == []
        box = aligned_nodes["c"].bounds
        assert not any(box.intersects_segment(a, b) for a, b in route.segments)

    def test_second_detour_takes_fresh_legs(self, aligned_nodes):
        """A second detour around the same box moves its legs and lane off the first one's."""
        router = PathRouter(aligned_nodes)
        router.route(0, Connection("a", "b"), (148, 124), (500, 124), Side.RIGHT, Side.LEFT)
        second = router.route(1, Connection("a", "b"), (148, 124), (500, 124), Side.RIGHT, Side.LEFT)
        assert second.waypoints == [
            (148, 124),
            (265, 124),
            (265, 65),
            (383, 65),
            (383, 124),
            (500, 124),
        ]
        assert second.collisions == []

    def test_min_y_forces_detour_below(self, aligned_nodes):
        """Detours never go above min_y."""
        router = PathRouter(aligned_nodes, min_y=90)
        route = router.route(0, Connection("a", "b"), (148, 124), (500, 124), Side.RIGHT, Side.LEFT)
        assert route.waypoints[2] == (280, 168)
        assert route.waypoints[3] == (368, 168)

    def test_z_probe_moves_jog_past_obstacle(self, make_computed):
        """A Z whose jog crosses a node moves the jog just outside it."""
        nodes = {
            "a": make_computed("a", 100, 100),
            "b": make_computed("b", 400, 200),
            "c": make_computed("c", 250, 150),
        }
        router = PathRouter(nodes)
        route = router.route(0, Connection("a", "b"), (148, 124), (400, 224), Side.RIGHT, Side.LEFT)
        assert route.waypoints == [(148, 124), (230, 124), (230, 224), (400, 224)]
        assert route.collisions == []

    def test_parallel_jogs_get_separate_lanes(self):
        """Two jogs with the same preferred lane do not share it."""
        router = PathRouter({})
        first = router.route(0, Connection("a", "b"), (100, 100), (300, 200), Side.RIGHT, Side.LEFT)
        second = router.route(1, Connection("c", "d"), (100, 110), (300, 220), Side.RIGHT, Side.LEFT)
        assert first.waypoints[1][0] == 200
        assert second.waypoints[1][0] == 215

    def test_u_route_claims_lane(self):
        """U connectors claim their detour lane."""
        router = PathRouter({})
        first = router.route(0, Connection("a", "b"), (148, 124), (348, 300), Side.RIGHT, Side.RIGHT)
        second = router.route(1, Connection("a", "b"), (148, 130), (348, 310), Side.RIGHT, Side.RIGHT)
        assert first.waypoints == [(148, 124), (388, 124), (388, 300), (348, 300)]
        assert second.waypoints[1][0] == 403

    def test_u_top_respects_min_y(self):
        """A U over the top never rises above min_y."""
        router = PathRouter({}, min_y=50)
        route = router.route(0, Connection("a", "b"), (100, 60), (300, 60), Side.TOP, Side.TOP)
        assert route.waypoints[1] == (100, 50)

    def test_curved_style(self):
        """Curved connections get control points and skip avoidance."""
        router = PathRouter({})
        route = router.route(
            0,
            Connection("a", "b", style=ConnectionStyle.CURVED),
            (0, 0),
            (200, 0),
            Side.RIGHT,
            Side.LEFT,
        )
        assert route.curved
        assert len(route.waypoints) == 4

    def test_unresolvable_collision_reported(self, make_computed):
        """When nothing clears, the route is still emitted with its collisions."""
        nodes = {
            "a": make_computed("a", 0, 0),
            "b": make_computed("b", 400, 0),
            "blob": make_computed("blob", 40, 0),
        }
        router = PathRouter(nodes)
        route = router.route(0, Connection("a", "b"), (48, 24), (400, 24), Side.RIGHT, Side.LEFT)
        assert route.waypoints[0] == (48, 24)
        assert route.waypoints[-1] == (400, 24)
        assert route.collisions == ["blob"]

    def test_obstacles_exclude_endpoints_ancestors_and_groups(self, make_computed):
        """Endpoints, their enclosing groups and groups in general are not obstacles."""
        child = make_computed("child", 120, 140, parent_id="g")
        nodes = {
            "g": make_computed("g", 100, 100, 400, 300, NodeType.GROUP, children=[child]),
            "child": child,
            "other_group": make_computed("other_group", 600, 0, 100, 100, NodeType.GROUP),
            "target": make_computed("target", 700, 200),
            "bystander": make_computed("bystander", 300, 500),
        }
        router = PathRouter(nodes)
        obstacles = router.obstacles_for("child", "target")
        assert [o.id for o in obstacles] == ["bystander"]

    def test_trace_records_decisions(self, aligned_nodes):
        """Routing decisions are recorded on the trace."""
        trace = LayoutTrace()
        router = PathRouter(aligned_nodes, trace=trace)
        router.route(3, Connection("a", "b"), (148, 124), (500, 124), Side.RIGHT, Side.LEFT)
        actions = [d.action for d in trace.get_decisions_for(3)]
        assert "detour" in actions
        assert "straight" in actions


class TestDetourLanes:
    """Tests for detours of several connections around shared obstacles."""

    def test_opposite_detours_share_no_lane(self):
        """A -> B and B -> A blocked by the same nodes keep every segment apart."""
        diagram = Diagram(
            nodes=[
                Node("a", position=(100, 100)),
                Node("m", position=(300, 100)),
                Node("n", position=(420, 130)),
                Node("b", position=(600, 100)),
            ],
            connections=[Connection("a", "b"), Connection("b", "a")],
        )
        result = DiagramEngine().layout(diagram)
        inspector = LayoutInspector(result)
        assert inspector.find_shared_lanes() == []
        assert inspector.find_collisions() == []

        forward, backward = result.routes
        forward_legs = {x for (x, _), (x2, _) in forward.segments if x == x2}
        backward_legs = {x for (x, _), (x2, _) in backward.segments if x == x2}
        assert forward_legs == {280, 368}
        assert backward_legs == {265, 488}
