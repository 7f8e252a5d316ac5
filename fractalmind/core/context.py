# ═══════════════════════════════════════════════════════════════════════════════
# PART 2: SIMULATION CONTEXT
# Design: I1 (Systems Architect) | Implementation: I3 (State Management)
# ═══════════════════════════════════════════════════════════════════════════════

"""
I1: "One context object, built once, handed to every simulation. It owns
the consciousness core, the random generator and the id counter. No module
reaches for a global."

I3: "Anything that used to be 'do this in five seconds' becomes 'do this
in N ticks' on the deferred queue. Wall clocks don't belong in the core."
"""

from __future__ import annotations

import heapq
import itertools
import logging
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Tuple

import numpy as np

from fractalmind.core.config import SimulationConfig
from fractalmind.core.consciousness import ConsciousnessCore

logger = logging.getLogger(__name__)


@dataclass(order=True)
class DeferredAction:
    """An action scheduled for a future tick."""
    due_tick: int
    seq: int
    label: str = field(compare=False)
    action: Callable[[], None] = field(compare=False, repr=False)


class DeferredActionQueue:
    """
    Tick-counted queue of deferred callbacks.

    Actions due at or before the current tick run in (due_tick, insertion)
    order when run_due() is called, once per update.
    """

    def __init__(self) -> None:
        self._heap: List[DeferredAction] = []
        self._seq = itertools.count()

    def __len__(self) -> int:
        return len(self._heap)

    def schedule(self, tick: int, delay: int, action: Callable[[], None], label: str = "") -> DeferredAction:
        """Run action once, delay ticks after tick."""
        entry = DeferredAction(tick + max(0, int(delay)), next(self._seq), label, action)
        heapq.heappush(self._heap, entry)
        return entry

    def run_due(self, tick: int) -> int:
        """Run every action due at tick. Returns how many ran.

        A failing action is logged and dropped; later actions still run.
        """
        ran = 0
        while self._heap and self._heap[0].due_tick <= tick:
            entry = heapq.heappop(self._heap)
            try:
                entry.action()
            except Exception:
                logger.exception("Deferred action %r failed at tick %d", entry.label, tick)
                continue
            ran += 1
        return ran

    def pending(self) -> List[Tuple[int, str]]:
        """(due_tick, label) of pending actions, soonest first."""
        return [(e.due_tick, e.label) for e in sorted(self._heap)]

    def clear(self) -> None:
        self._heap.clear()


class SimulationContext:
    """
    Shared state handed to every simulation.

    Holds the configuration, the consciousness core (sole writer of the
    global parameters), the random generator, the deferred action queue
    and a monotonic id counter.
    """

    def __init__(
        self,
        config: Optional[SimulationConfig] = None,
        rng: Optional[np.random.Generator] = None,
    ) -> None:
        self.config = config or SimulationConfig()
        if rng is None:
            rng = np.random.default_rng(self.config.seed)
        self.rng = rng
        self.consciousness = ConsciousnessCore(self.config.consciousness, self.rng)
        self.deferred = DeferredActionQueue()
        self._ids = itertools.count(1)

    # ── Properties ───────────────────────────────────────────────────────────

    @property
    def width(self) -> float:
        return self.config.canvas.width

    @property
    def height(self) -> float:
        return self.config.canvas.height

    @property
    def tick(self) -> int:
        """Current tick, as counted by the consciousness core."""
        return self.consciousness.time

    # ── Methods ──────────────────────────────────────────────────────────────

    def next_id(self, prefix: str) -> str:
        return f"{prefix}_{next(self._ids):05d}"

    def defer(self, delay: int, action: Callable[[], None], label: str = "") -> DeferredAction:
        """Schedule action delay ticks from now."""
        return self.deferred.schedule(self.tick, delay, action, label)

    def run_deferred(self) -> int:
        ran = self.deferred.run_due(self.tick)
        if ran:
            logger.debug("Ran %d deferred action(s) at tick %d", ran, self.tick)
        return ran
