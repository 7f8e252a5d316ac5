# ═══════════════════════════════════════════════════════════════════════════════
# PART 3: SPATIAL QUERIES
# Design: P1 (Dynamical Systems) | Implementation: I2 (Numerics)
# ═══════════════════════════════════════════════════════════════════════════════

"""
I2: "Every interaction starts with 'who is near me'. Build the distance
matrix once per phase with numpy and answer radius queries from it instead
of re-looping over the population for every agent."
"""

from __future__ import annotations

import math
from enum import Enum
from typing import Iterator, List, Sequence, Tuple

import numpy as np


class BoundaryPolicy(Enum):
    """What happens at the canvas edge."""
    WRAP = "wrap"        # Torus
    BOUNCE = "bounce"    # Clamp and reflect velocity


def distance(ax: float, ay: float, bx: float, by: float) -> float:
    return math.hypot(ax - bx, ay - by)


def falloff(dist: float, max_distance: float) -> float:
    """
    Linear distance scaling: 1 at contact, 0 at (and beyond) max_distance.
    """
    if max_distance <= 0:
        return 0.0
    return max(0.0, 1.0 - dist / max_distance)


def apply_boundary(agent, width: float, height: float, policy: BoundaryPolicy) -> None:
    """Keep an agent's position inside the canvas."""
    if policy is BoundaryPolicy.WRAP:
        agent.x = agent.x % width
        agent.y = agent.y % height
        return

    if agent.x < 0 or agent.x > width:
        agent.vx = -agent.vx
        agent.x = min(max(agent.x, 0.0), width)
    if agent.y < 0 or agent.y > height:
        agent.vy = -agent.vy
        agent.y = min(max(agent.y, 0.0), height)


def limit_speed(agent, max_speed: float) -> None:
    speed = math.hypot(agent.vx, agent.vy)
    if speed > max_speed and speed > 0:
        agent.vx = agent.vx / speed * max_speed
        agent.vy = agent.vy / speed * max_speed


class SpatialIndex:
    """
    Snapshot of agent positions with a dense pairwise distance matrix.

    Positions are captured at construction; agents that move afterwards
    are still answered from the snapshot until the index is rebuilt.
    """

    def __init__(self, agents: Sequence) -> None:
        self.agents = list(agents)
        n = len(self.agents)
        self._row = {id(a): i for i, a in enumerate(self.agents)}

        if n == 0:
            self.positions = np.zeros((0, 2))
            self.distances = np.zeros((0, 0))
            return

        self.positions = np.array([(a.x, a.y) for a in self.agents], dtype=float)
        diff = self.positions[:, np.newaxis, :] - self.positions[np.newaxis, :, :]
        self.distances = np.sqrt(np.sum(diff * diff, axis=-1))

    def __len__(self) -> int:
        return len(self.agents)

    def neighbors(self, agent, radius: float) -> List:
        """Other agents strictly within radius, in collection order."""
        i = self._row.get(id(agent))
        if i is None:
            return self.near_point(agent.x, agent.y, radius)
        mask = self.distances[i] < radius
        mask[i] = False
        return [self.agents[j] for j in np.nonzero(mask)[0]]

    def neighbors_within(self, agent, radius: float) -> List[Tuple[object, float]]:
        """(other, distance) pairs strictly within radius, in collection order."""
        i = self._row.get(id(agent))
        if i is None:
            return [(a, distance(agent.x, agent.y, a.x, a.y))
                    for a in self.near_point(agent.x, agent.y, radius)]
        mask = self.distances[i] < radius
        mask[i] = False
        return [(self.agents[j], float(self.distances[i, j])) for j in np.nonzero(mask)[0]]

    def near_point(self, x: float, y: float, radius: float) -> List:
        if len(self.agents) == 0:
            return []
        d = np.hypot(self.positions[:, 0] - x, self.positions[:, 1] - y)
        return [self.agents[j] for j in np.nonzero(d < radius)[0]]

    def neighbor_counts(self, radius: float) -> np.ndarray:
        """Per-agent count of others strictly within radius."""
        if len(self.agents) == 0:
            return np.zeros(0, dtype=int)
        within = self.distances < radius
        return np.sum(within, axis=1) - 1  # Drop self

    def pairs(self, radius: float) -> Iterator[Tuple[object, object, float]]:
        """Unordered pairs (i < j) strictly within radius, row-major order."""
        if len(self.agents) < 2:
            return
        upper = np.triu(self.distances < radius, k=1)
        for i, j in zip(*np.nonzero(upper)):
            yield self.agents[i], self.agents[j], float(self.distances[i, j])
