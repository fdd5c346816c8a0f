"""
Navigation graph construction (reduced visibility graph).

Two layers:
1. VisibilityGraph: obstacle vertices and the edges between mutually
   visible pairs. Depends only on the obstacle set, so it can be cached and
   shared read-only between queries and threads.
2. NavigationGraph: a per-query overlay adding start and goal and their
   incident edges on top of a VisibilityGraph, without mutating it.

Nodes are addressed by index; obstacle nodes keep (polygon id, vertex index)
back-references. Coincident vertices of different polygons share one node.

Reduced mode keeps only vertices a shortest path can bend around (convex
obstacle vertices, reflex boundary vertices) and only tests a pair when the
line through it is tangent to the owning polygon at each obstacle end. Every
surviving pair is tested against every polygon, O(E) per pair, O(V^2 E) in
total.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Iterator, List, Optional, Sequence, Tuple

from .config import NavigationSettings
from .errors import DegenerateQuery, PointInsideObstacle, PointOutsideBoundary
from .geometry import (
    Orientation,
    Point,
    Segment,
    as_point,
    distance,
    is_finite_point,
    points_coincide,
    same_side,
)
from .obstacles import ObstacleSet, VertexRef

logger = logging.getLogger(__name__)

Neighbor = Tuple[int, float]


class NodeKind(Enum):
    VERTEX = "vertex"
    START = "start"
    GOAL = "goal"


@dataclass(frozen=True)
class NavNode:
    point: Point
    kind: NodeKind = NodeKind.VERTEX
    refs: Tuple[VertexRef, ...] = ()
    # Owners at which the node is a possible bend point
    bend_refs: Tuple[VertexRef, ...] = ()


# ---------- Vertex classification ----------

def is_bend_candidate(obstacles: ObstacleSet, ref: VertexRef) -> bool:
    """
    True if a shortest path can turn around this vertex.

    Obstacles are stored counter-clockwise with free space outside, so only
    convex vertices qualify. For the boundary free space is inside, so only
    its reflex vertices qualify.
    """
    turn = Orientation.CLOCKWISE if obstacles.is_boundary(ref.polygon_id) else Orientation.COUNTERCLOCKWISE
    return obstacles.polygon(ref.polygon_id).vertex_turn(ref.vertex_index, obstacles.eps) is turn


def _tangent_at(node: NavNode, target: Point, eps: float) -> bool:
    """
    The line node -> target is tangent at node for some bend-candidate owner,
    i.e. both incident edges of that owner lie on one closed side of it.
    """
    line = Segment(node.point, target)
    return any(same_side(line, ref.prev, ref.next, eps) for ref in node.bend_refs)


def _merge_coincident(obstacles: ObstacleSet) -> List[Tuple[Point, List[VertexRef]]]:
    """Group vertices closer than eps, keeping first-seen order."""
    groups: List[Tuple[Point, List[VertexRef]]] = []
    for ref in obstacles.vertices():
        for point, refs in groups:
            if points_coincide(point, ref.point, obstacles.eps):
                refs.append(ref)
                break
        else:
            groups.append((ref.point, [ref]))
    return groups


# ---------- Static (obstacle-only) graph ----------

class VisibilityGraph:
    """
    Immutable obstacle-only visibility graph.

    Shared read-only between queries; never holds start or goal.
    """

    def __init__(
        self,
        obstacles: ObstacleSet,
        nodes: Sequence[NavNode],
        adjacency: Sequence[Sequence[Neighbor]],
        reduced: bool,
    ):
        self.obstacles = obstacles
        self.nodes: Tuple[NavNode, ...] = tuple(nodes)
        self._adjacency: Tuple[Tuple[Neighbor, ...], ...] = tuple(tuple(a) for a in adjacency)
        self.reduced = reduced
        self.eps = obstacles.eps

    def __len__(self) -> int:
        return len(self.nodes)

    def __repr__(self) -> str:
        return f"VisibilityGraph({len(self.nodes)} nodes, {self.edge_count} edges, reduced={self.reduced})"

    def point(self, index: int) -> Point:
        return self.nodes[index].point

    def neighbors(self, index: int) -> Tuple[Neighbor, ...]:
        return self._adjacency[index]

    def edges(self) -> Iterator[Tuple[int, int, float]]:
        """Each undirected edge once, as (i, j, weight) with i < j."""
        for i, adj in enumerate(self._adjacency):
            for j, w in adj:
                if i < j:
                    yield i, j, w

    @property
    def edge_count(self) -> int:
        return sum(len(adj) for adj in self._adjacency) // 2

    def node_at(self, p: Point) -> Optional[int]:
        for i, node in enumerate(self.nodes):
            if points_coincide(node.point, p, self.eps):
                return i
        return None

    def can_connect(self, index: int, target: Point) -> bool:
        """Local filter: may an edge from node ``index`` toward target be useful?"""
        if not self.reduced:
            return True
        return _tangent_at(self.nodes[index], target, self.eps)


def build_visibility_graph(
    obstacles: ObstacleSet,
    settings: Optional[NavigationSettings] = None,
) -> VisibilityGraph:
    """
    Build the obstacle-only visibility graph.

    Nodes: obstacle (and boundary) vertices, coincident ones merged.
    Edges: pairs whose connecting segment does not pass through any obstacle
    interior nor leave the boundary.
    """
    settings = settings or NavigationSettings(epsilon=obstacles.eps)
    reduced = settings.reduced_graph
    eps = obstacles.eps

    nodes: List[NavNode] = []
    for point, refs in _merge_coincident(obstacles):
        if not obstacles.in_free_space(point):
            continue
        bend_refs = tuple(ref for ref in refs if is_bend_candidate(obstacles, ref))
        if reduced and not bend_refs:
            continue
        nodes.append(NavNode(point, NodeKind.VERTEX, tuple(refs), bend_refs))

    adjacency: List[List[Neighbor]] = [[] for _ in nodes]
    tested = 0
    for i in range(len(nodes)):
        pi = nodes[i].point
        for j in range(i + 1, len(nodes)):
            pj = nodes[j].point
            if reduced and not (_tangent_at(nodes[i], pj, eps) and _tangent_at(nodes[j], pi, eps)):
                continue
            tested += 1
            if obstacles.segment_blocked(Segment(pi, pj)):
                continue
            w = distance(pi, pj)
            adjacency[i].append((j, w))
            adjacency[j].append((i, w))

    graph = VisibilityGraph(obstacles, nodes, adjacency, reduced)
    logger.debug(
        "visibility graph: %d of %d vertices kept, %d pairs tested, %d edges",
        len(nodes),
        len(obstacles.vertices()),
        tested,
        graph.edge_count,
    )
    return graph


# ---------- Per-query overlay ----------

class NavigationGraph:
    """
    Start/goal overlay on top of a shared VisibilityGraph.

    Base nodes keep their indices; start is ``len(base)`` and goal is
    ``len(base) + 1``. Query edges live in the overlay only.
    """

    def __init__(
        self,
        base: VisibilityGraph,
        start: Point,
        goal: Point,
        extra: Dict[int, List[Neighbor]],
    ):
        self.base = base
        self.start = start
        self.goal = goal
        self.start_index = len(base)
        self.goal_index = len(base) + 1
        self.eps = base.eps
        self._extra = {k: tuple(v) for k, v in extra.items()}
        self._query_nodes = (
            NavNode(start, NodeKind.START),
            NavNode(goal, NodeKind.GOAL),
        )

    def __len__(self) -> int:
        return len(self.base) + 2

    def __repr__(self) -> str:
        return f"NavigationGraph({len(self)} nodes, {self.edge_count} edges)"

    @property
    def obstacles(self) -> ObstacleSet:
        return self.base.obstacles

    def node(self, index: int) -> NavNode:
        if index < len(self.base):
            return self.base.nodes[index]
        return self._query_nodes[index - len(self.base)]

    def point(self, index: int) -> Point:
        return self.node(index).point

    def neighbors(self, index: int) -> Tuple[Neighbor, ...]:
        extra = self._extra.get(index, ())
        if index < len(self.base):
            return self.base.neighbors(index) + extra
        return extra

    def edges(self) -> Iterator[Tuple[int, int, float]]:
        yield from self.base.edges()
        for i, adj in self._extra.items():
            for j, w in adj:
                if i < j:
                    yield i, j, w

    @property
    def edge_count(self) -> int:
        return self.base.edge_count + sum(len(adj) for adj in self._extra.values()) // 2

    def has_edge(self, i: int, j: int) -> bool:
        return any(n == j for n, _ in self.neighbors(i))

    def node_index(self, p: Sequence[float]) -> Optional[int]:
        """Index of the node at p (start and goal first), or None."""
        pt = as_point(p)
        if points_coincide(pt, self.start, self.eps):
            return self.start_index
        if points_coincide(pt, self.goal, self.eps):
            return self.goal_index
        return self.base.node_at(pt)


def require_query_point(obstacles: ObstacleSet, p: Sequence[float], role: str = "point") -> Point:
    """
    Validate a start/goal point: a finite coordinate pair in free space.

    Raises DegenerateQuery, PointInsideObstacle or PointOutsideBoundary.
    """
    try:
        pt = as_point(p)
    except (TypeError, ValueError, IndexError) as exc:
        raise DegenerateQuery(f"{role} is not a coordinate pair: {p!r}") from exc
    if not is_finite_point(pt):
        logger.debug("rejecting non-finite %s %r", role, pt)
        raise DegenerateQuery(f"{role} has a non-finite coordinate: ({pt.x}, {pt.y})")

    idx = obstacles.containing_obstacle(pt)
    if idx is not None:
        logger.debug("%s %r is inside obstacle %d", role, pt, idx)
        raise PointInsideObstacle(pt, idx, role)
    if obstacles.outside_boundary(pt):
        logger.debug("%s %r is outside the boundary", role, pt)
        raise PointOutsideBoundary(pt, role)
    return pt


def build_navigation_graph(
    obstacles: ObstacleSet,
    start: Sequence[float],
    goal: Sequence[float],
    settings: Optional[NavigationSettings] = None,
    base: Optional[VisibilityGraph] = None,
) -> NavigationGraph:
    """
    Build the navigation graph for one query.

    Start and goal are validated before any visibility test. ``base`` may be
    a cached VisibilityGraph of the same obstacle set; it is only read.
    """
    start_pt = require_query_point(obstacles, start, "start")
    goal_pt = require_query_point(obstacles, goal, "goal")
    return overlay_query_points(obstacles, start_pt, goal_pt, settings, base)


def overlay_query_points(
    obstacles: ObstacleSet,
    start_pt: Point,
    goal_pt: Point,
    settings: Optional[NavigationSettings] = None,
    base: Optional[VisibilityGraph] = None,
) -> NavigationGraph:
    """Overlay already validated start and goal points on the obstacle-only graph."""
    if base is None:
        base = build_visibility_graph(obstacles, settings)
    elif base.obstacles is not obstacles and base.obstacles.fingerprint() != obstacles.fingerprint():
        raise ValueError("visibility graph was built for a different obstacle set")

    eps = obstacles.eps
    n = len(base)
    extra: Dict[int, List[Neighbor]] = defaultdict(list)

    for q_index, q in ((n, start_pt), (n + 1, goal_pt)):
        for i, node in enumerate(base.nodes):
            if points_coincide(node.point, q, eps):
                continue
            if not base.can_connect(i, q):
                continue
            if obstacles.segment_blocked(Segment(node.point, q)):
                continue
            w = distance(node.point, q)
            extra[q_index].append((i, w))
            extra[i].append((q_index, w))

    if not points_coincide(start_pt, goal_pt, eps) and not obstacles.segment_blocked(Segment(start_pt, goal_pt)):
        w = distance(start_pt, goal_pt)
        extra[n].append((n + 1, w))
        extra[n + 1].append((n, w))

    graph = NavigationGraph(base, start_pt, goal_pt, extra)
    logger.debug(
        "navigation graph: start sees %d, goal sees %d nodes",
        len(extra.get(n, ())),
        len(extra.get(n + 1, ())),
    )
    return graph
