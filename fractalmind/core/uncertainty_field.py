# ═══════════════════════════════════════════════════════════════════════════════
# PART 10: UNCERTAINTY FIELD
# Design: P1 (Dynamical Systems) | Implementation: I2 (Numerics)
# ═══════════════════════════════════════════════════════════════════════════════

"""
P1: "Uncertainty spreads like heat. Each cell keeps most of what it has
and takes a little of its neighbors' average; threads nearby stir it."

I2: "Two buffers. Diffusion reads the front and writes the back, then the
two swap. A cell never reads a neighbor that was already updated this tick."
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

import numpy as np

from fractalmind.core.agents import ProcessingThread


@dataclass
class UncertaintyFieldConfig:
    """Configuration for the uncertainty grid."""
    grid_size: int = 20
    retain: float = 0.9                  # Weight kept by the cell
    diffuse: float = 0.1                 # Weight taken from the neighbor mean
    influence_radius: float = 100.0      # Threads within this stir a cell
    influence_gain: float = 0.01         # Scales 1/(d+1)
    flow_threshold: float = 0.05         # Min gradient magnitude drawn as flow


class UncertaintyField:
    """
    Square grid of uncertainty and confidence values in [0, 1].

    Cell (i, j) sits at canvas position (i / n * width, j / n * height).
    """

    def __init__(
        self,
        config: Optional[UncertaintyFieldConfig] = None,
        rng: Optional[np.random.Generator] = None,
    ) -> None:
        self.config = config or UncertaintyFieldConfig()
        n = self.config.grid_size
        if n <= 0:
            raise ValueError(f"grid_size must be positive, got {n}")

        self._buffers = [np.zeros((n, n)), np.zeros((n, n))]
        self._front = 0
        self.confidence = np.zeros((n, n))
        self.gradient = np.zeros((2, n, n))         # (dx, dy)
        self.touched = np.zeros((n, n), dtype=bool)
        self.last_update = 0

        # Neighbor counts for the mean: 8 inside, 5 on edges, 3 in corners
        self._neighbor_counts = _neighbor_sum(np.ones((n, n)))

        if rng is not None:
            self.randomize(rng)

    # ── Properties ───────────────────────────────────────────────────────────

    @property
    def size(self) -> int:
        return self.config.grid_size

    @property
    def uncertainty(self) -> np.ndarray:
        """The current (front) buffer."""
        return self._buffers[self._front]

    @property
    def mean_uncertainty(self) -> float:
        return float(np.mean(self.uncertainty))

    # ── Methods ──────────────────────────────────────────────────────────────

    def randomize(self, rng: np.random.Generator) -> None:
        n = self.size
        self._buffers[self._front][:] = rng.random((n, n))
        self.confidence[:] = rng.random((n, n))
        self.gradient[:] = 0.0
        self.touched[:] = False

    def fill(self, uncertainty: float, confidence: Optional[float] = None) -> None:
        self._buffers[self._front][:] = uncertainty
        if confidence is not None:
            self.confidence[:] = confidence

    def diffuse(self) -> None:
        """One diffusion step from the front buffer into the back, then swap."""
        cfg = self.config
        read = self._buffers[self._front]
        write = self._buffers[1 - self._front]

        # A 1x1 grid has no neighbors; its "mean" is the cell itself
        counts = self._neighbor_counts
        neighbor_mean = np.divide(_neighbor_sum(read), counts, out=read.copy(), where=counts > 0)
        np.multiply(read, cfg.retain, out=write)
        write += neighbor_mean * cfg.diffuse
        np.clip(write, 0.0, 1.0, out=write)

        self._front = 1 - self._front

    def apply_agents(
        self,
        threads: Sequence[ProcessingThread],
        width: float,
        height: float,
    ) -> int:
        """
        Stir cells near threads and mark them touched.

        Returns the number of touched cells.
        """
        cfg = self.config
        self.touched[:] = False
        if len(threads) == 0:
            return 0

        n = self.size
        cx, cy = self.cell_centers(width, height)
        tx = np.array([t.x for t in threads], dtype=float)
        ty = np.array([t.y for t in threads], dtype=float)
        tu = np.array([t.uncertainty for t in threads], dtype=float)
        tc = np.array([t.confidence for t in threads], dtype=float)

        # (n, n, threads) distances
        d = np.hypot(cx[:, :, np.newaxis] - tx, cy[:, :, np.newaxis] - ty)
        near = d < cfg.influence_radius
        weight = np.where(near, 1.0 / (d + 1.0) * cfg.influence_gain, 0.0)

        field = self.uncertainty
        field += np.sum(weight * tu, axis=-1)
        np.clip(field, 0.0, 1.0, out=field)
        self.confidence += np.sum(weight * tc, axis=-1)
        np.clip(self.confidence, 0.0, 1.0, out=self.confidence)

        self.touched[:] = np.any(near, axis=-1).reshape(n, n)
        return int(np.count_nonzero(self.touched))

    def compute_gradient(self) -> None:
        """Central differences on interior cells; edges stay 0."""
        u = self.uncertainty
        self.gradient[:] = 0.0
        self.gradient[0, 1:-1, :] = u[2:, :] - u[:-2, :]
        self.gradient[1, :, 1:-1] = u[:, 2:] - u[:, :-2]

    def step(self, threads: Sequence[ProcessingThread], width: float, height: float, tick: int) -> None:
        self.diffuse()
        self.apply_agents(threads, width, height)
        self.compute_gradient()
        self.last_update = tick

    def cell_centers(self, width: float, height: float) -> Tuple[np.ndarray, np.ndarray]:
        n = self.size
        idx = np.arange(n) / n
        cx, cy = np.meshgrid(idx * width, idx * height, indexing="ij")
        return cx, cy

    def flow_lines(self, width: float, height: float) -> List[Tuple[float, float, float, float, float]]:
        """
        (x, y, dx, dy, magnitude) per cell whose gradient exceeds the flow
        threshold. (dx, dy) is a unit vector pointing downhill, toward
        calmer cells.
        """
        magnitude = np.hypot(self.gradient[0], self.gradient[1])
        cx, cy = self.cell_centers(width, height)
        lines = []
        for i, j in zip(*np.nonzero(magnitude > self.config.flow_threshold)):
            m = float(magnitude[i, j])
            lines.append((
                float(cx[i, j]), float(cy[i, j]),
                float(-self.gradient[0, i, j] / m), float(-self.gradient[1, i, j] / m),
                m,
            ))
        return lines


def _neighbor_sum(grid: np.ndarray) -> np.ndarray:
    """Sum of the in-bounds 8-neighborhood of every cell (self excluded)."""
    padded = np.pad(grid, 1, mode="constant", constant_values=0.0)
    n, m = grid.shape
    total = np.zeros_like(grid, dtype=float)
    for di in (-1, 0, 1):
        for dj in (-1, 0, 1):
            if di == 0 and dj == 0:
                continue
            total += padded[1 + di: 1 + di + n, 1 + dj: 1 + dj + m]
    return total
