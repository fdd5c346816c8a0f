"""
A* search over a NavigationGraph.

- Euclidean distance heuristic (admissible and consistent).
- Open set ordered by (f, -g, insertion index): among equal f the node with
  the larger g (closer to the goal) wins, then the earlier push. The order is
  total, so equal-cost alternatives resolve the same way on every run.
- Closed nodes are never re-expanded.
"""

from __future__ import annotations

import heapq
import itertools
import logging
from dataclasses import dataclass
from typing import Dict, Iterator, List, Sequence, Tuple

from .errors import DegenerateQuery, NoPathExists
from .geometry import Point, as_point, distance, is_finite_point, points_coincide
from .navigation_graph import NavigationGraph

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Path:
    """Waypoints from start to goal and the total Euclidean length."""

    waypoints: Tuple[Point, ...]
    length: float

    def __iter__(self) -> Iterator[Point]:
        return iter(self.waypoints)

    def __len__(self) -> int:
        return len(self.waypoints)

    def __getitem__(self, index: int) -> Point:
        return self.waypoints[index]

    @property
    def start(self) -> Point:
        return self.waypoints[0]

    @property
    def goal(self) -> Point:
        return self.waypoints[-1]

    def reversed(self) -> "Path":
        return Path(tuple(reversed(self.waypoints)), self.length)

    def to_list(self) -> List[List[float]]:
        return [[p.x, p.y] for p in self.waypoints]


def _query_point(p: Sequence[float], role: str) -> Point:
    try:
        pt = as_point(p)
    except (TypeError, ValueError, IndexError) as exc:
        raise DegenerateQuery(f"{role} is not a coordinate pair: {p!r}") from exc
    if not is_finite_point(pt):
        logger.debug("rejecting non-finite %s %r", role, pt)
        raise DegenerateQuery(f"{role} has a non-finite coordinate: ({pt.x}, {pt.y})")
    return pt


def find_path(graph: NavigationGraph, start: Sequence[float], goal: Sequence[float]) -> Path:
    """
    Shortest path between two nodes of the graph.

    Raises NoPathExists when the open set runs dry, DegenerateQuery when
    start or goal is not a node of the graph.
    """
    start_pt = _query_point(start, "start")
    goal_pt = _query_point(goal, "goal")
    if points_coincide(start_pt, goal_pt, graph.eps):
        return Path((start_pt,), 0.0)

    source = graph.node_index(start_pt)
    target = graph.node_index(goal_pt)
    if source is None or target is None:
        logger.debug("query endpoints %r, %r are not both graph nodes", start_pt, goal_pt)
        raise DegenerateQuery("start and goal must be nodes of the navigation graph")

    target_pt = graph.point(target)
    counter = itertools.count()
    open_heap: List[Tuple[float, float, int, int]] = []
    heapq.heappush(open_heap, (distance(graph.point(source), target_pt), -0.0, next(counter), source))

    g_score: Dict[int, float] = {source: 0.0}
    came_from: Dict[int, int] = {}
    closed = set()

    while open_heap:
        _, neg_g, _, current = heapq.heappop(open_heap)
        if current in closed:
            continue

        if current == target:
            nodes = _reconstruct_path(came_from, current)
            waypoints = [graph.point(i) for i in nodes]
            # Report the caller's exact endpoints
            waypoints[0], waypoints[-1] = start_pt, goal_pt
            logger.debug(
                "A*: %d waypoints, length %.6g, %d nodes expanded",
                len(waypoints), -neg_g, len(closed),
            )
            return Path(tuple(waypoints), -neg_g)

        closed.add(current)
        current_g = g_score[current]
        for nxt, weight in graph.neighbors(current):
            if nxt in closed:
                continue
            tentative_g = current_g + weight
            if tentative_g < g_score.get(nxt, float("inf")):
                came_from[nxt] = current
                g_score[nxt] = tentative_g
                f_score = tentative_g + distance(graph.point(nxt), target_pt)
                heapq.heappush(open_heap, (f_score, -tentative_g, next(counter), nxt))

    logger.debug("A*: open set exhausted after %d expansions", len(closed))
    raise NoPathExists(
        f"no path from ({start_pt.x:.6g}, {start_pt.y:.6g}) to ({goal_pt.x:.6g}, {goal_pt.y:.6g})"
    )


def _reconstruct_path(came_from: Dict[int, int], current: int) -> List[int]:
    """Reconstruct full node sequence from came_from map."""
    path: List[int] = [current]
    while current in came_from:
        current = came_from[current]
        path.append(current)
    path.reverse()
    return path
