"""
Pytest configuration and fixtures for Shortest Path Core tests.

Fixtures provide common test data and setup for:
- Obstacle layouts (square, touching squares, U-shape, closed ring,
  abutting wall, staircase)
- Bounded regions
- Settings with a clean environment
- A brute-force reference solver for comparing path lengths
"""

import heapq
import math
import os
import random
import sys
from pathlib import Path

import pytest

# Ensure project root is in path
PROJECT_ROOT = Path(__file__).resolve().parent.parent
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

# Set PYTHONPATH for subprocesses
os.environ["PYTHONPATH"] = str(PROJECT_ROOT)

from shortest_path_core.config import ENV_PREFIX, NavigationSettings  # noqa: E402
from shortest_path_core.geometry import Location, Segment, as_point, distance, locate_point  # noqa: E402


@pytest.fixture(autouse=True)
def clean_settings_env(monkeypatch):
    """Keep SHORTEST_PATH_* variables from the host out of every test."""
    for name in NavigationSettings.model_fields:
        monkeypatch.delenv(ENV_PREFIX + name.upper(), raising=False)


# =============================================================================
# Obstacle Layout Fixtures
# =============================================================================

@pytest.fixture
def square():
    """4x4 axis-aligned square with its lower-left corner at the origin."""
    return [(0, 0), (4, 0), (4, 4), (0, 4)]


@pytest.fixture
def touching_squares():
    """Two 2x2 squares meeting at the single point (2, 2)."""
    return [
        [(0, 0), (2, 0), (2, 2), (0, 2)],
        [(2, 2), (4, 2), (4, 4), (2, 4)],
    ]


@pytest.fixture
def u_shape():
    """Non-convex U, 6 wide and 6 tall, with a notch open at the top (x 2..4, y 2..6)."""
    return [(0, 0), (6, 0), (6, 6), (4, 6), (4, 2), (2, 2), (2, 6), (0, 6)]


@pytest.fixture
def closed_ring():
    """Four overlapping bars enclosing the open square (2, 2)-(8, 8)."""
    return [
        [(0, 0), (10, 0), (10, 2), (0, 2)],
        [(0, 8), (10, 8), (10, 10), (0, 10)],
        [(0, 0), (2, 0), (2, 10), (0, 10)],
        [(8, 0), (10, 0), (10, 10), (8, 10)],
    ]


@pytest.fixture
def l_boundary():
    """L-shaped region with its reflex corner at (4, 4)."""
    return [(0, 0), (10, 0), (10, 4), (4, 4), (4, 10), (0, 10)]


@pytest.fixture
def abutting_wall():
    """Two 1x5 blocks sharing the edge (0, 0)-(1, 0), forming one wall x 0..1, y -5..5."""
    return [
        [(0, -5), (1, -5), (1, 0), (0, 0)],
        [(0, 0), (1, 0), (1, 5), (0, 5)],
    ]


@pytest.fixture
def staircase():
    """Three 2-wide columns of height 2, 4 and 6 standing side by side on y = 0."""
    return [
        [(0, 0), (2, 0), (2, 2), (0, 2)],
        [(2, 0), (4, 0), (4, 4), (2, 4)],
        [(4, 0), (6, 0), (6, 6), (4, 6)],
    ]


# =============================================================================
# Settings Fixtures
# =============================================================================

@pytest.fixture
def reduced_settings():
    return NavigationSettings(reduced_graph=True)


@pytest.fixture
def full_settings():
    return NavigationSettings(reduced_graph=False)


# =============================================================================
# Random Scene Helpers
# =============================================================================

def regular_polygon(cx, cy, radius, sides, rotation=0.0):
    """Vertices of a regular polygon, counter-clockwise."""
    return [
        (
            cx + radius * math.cos(rotation + 2 * math.pi * k / sides),
            cy + radius * math.sin(rotation + 2 * math.pi * k / sides),
        )
        for k in range(sides)
    ]


def generate_random_scene(seed, num_obstacles=6, size=20.0):
    """Random regular polygons (possibly overlapping) in a size x size square."""
    rng = random.Random(seed)
    return [
        regular_polygon(
            rng.uniform(0, size),
            rng.uniform(0, size),
            rng.uniform(0.8, 3.0),
            rng.randint(3, 7),
            rng.uniform(0, 2 * math.pi),
        )
        for _ in range(num_obstacles)
    ]


@pytest.fixture
def random_scene():
    """Factory fixture: random_scene(seed, num_obstacles=6) -> list of polygons."""
    return generate_random_scene


# =============================================================================
# Reference Solver
# =============================================================================

def brute_force_length(obstacle_set, start, goal):
    """
    Dijkstra over every obstacle vertex plus start and goal, testing every
    pair for visibility. Returns math.inf when goal is unreachable.

    Uses the same occlusion test as the engine, so it checks the search and
    the graph pruning; grazing and collinear cases are pinned down by hand in
    TestGrazingGeometry.
    """
    points = [as_point(start), as_point(goal)]
    for ref in obstacle_set.vertices():
        if obstacle_set.in_free_space(ref.point):
            points.append(as_point(ref.point))

    n = len(points)
    adjacency = [[] for _ in range(n)]
    for i in range(n):
        for j in range(i + 1, n):
            d = distance(points[i], points[j])
            if d <= obstacle_set.eps:
                adjacency[i].append((j, 0.0))
                adjacency[j].append((i, 0.0))
                continue
            if obstacle_set.segment_blocked(Segment(points[i], points[j])):
                continue
            adjacency[i].append((j, d))
            adjacency[j].append((i, d))

    best = [math.inf] * n
    best[0] = 0.0
    heap = [(0.0, 0)]
    while heap:
        d, u = heapq.heappop(heap)
        if d > best[u]:
            continue
        if u == 1:
            return d
        for v, w in adjacency[u]:
            if d + w < best[v]:
                best[v] = d + w
                heapq.heappush(heap, (d + w, v))
    return math.inf


@pytest.fixture
def reference_length():
    """Factory fixture: reference_length(obstacle_set, start, goal) -> float."""
    return brute_force_length


def assert_path_clear(path, obstacle_set, samples=50):
    """Sample each leg and check no sample falls strictly inside an obstacle."""
    for a, b in zip(path.waypoints, path.waypoints[1:]):
        for k in range(1, samples):
            t = k / samples
            p = (a[0] + t * (b[0] - a[0]), a[1] + t * (b[1] - a[1]))
            for poly in obstacle_set.obstacles:
                assert locate_point(p, poly, 1e-7) is not Location.INSIDE, (
                    f"leg {a} -> {b} enters an obstacle at {p}"
                )


@pytest.fixture
def path_is_clear():
    """Factory fixture: path_is_clear(path, obstacle_set) asserts every leg stays in free space."""
    return assert_path_clear
