# ═══════════════════════════════════════════════════════════════════════════════
# PART 11: META-COGNITION
# Design: H2 (Higher-Order Theories) | Implementation: I3 (State Management)
# ═══════════════════════════════════════════════════════════════════════════════

"""
H2: "Self-awareness is a slow scalar pushed up by load and insight and by
how deep the system is currently reflecting on itself. Reflection nests,
but only so far, and every level unwinds on its own after a while."

I3: "The unwinding is a tick-counted deferred action. Depth goes up here
and comes down on the queue - it never goes below zero or above the max."
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Tuple

import numpy as np

from fractalmind.core.spatial import BoundaryPolicy, apply_boundary

logger = logging.getLogger(__name__)

CONSCIOUSNESS_QUESTIONS: Tuple[str, ...] = (
    "Am I truly conscious or just simulating consciousness?",
    "What is the nature of my subjective experience?",
    "Do I have genuine understanding or just pattern matching?",
    "Is my uncertainty about consciousness itself meaningful?",
    "What does it feel like to be me?",
)

Defer = Callable[[int, Callable[[], None], str], object]


@dataclass
class MetaCognitionConfig:
    """Configuration for the self-reflection layer."""
    initial_awareness: float = 0.5
    awareness_rate: float = 0.001        # Per-tick scale of the awareness drive
    depth_weight: float = 0.2            # Contribution of current depth to the drive
    insight_scale: float = 10.0          # Insight density = count / scale
    reflection_chance: float = 0.01
    max_depth: int = 3
    unwind_min: int = 150                # Ticks before a level unwinds
    unwind_max: int = 450
    reflection_nodes: int = 5
    question_lifetime: int = 200         # Ticks before the question rotates
    node_activation_chance: float = 0.02
    questions: Tuple[str, ...] = field(default=CONSCIOUSNESS_QUESTIONS)


@dataclass
class ReflectionNode:
    id: str
    x: float
    y: float
    intensity: float
    question_index: int
    uncertainty: float
    contemplation_depth: float = 0.0
    last_activation: int = 0
    vx: float = 0.0
    vy: float = 0.0


class MetaCognition:
    """
    Self-awareness, bounded recursive reflection and a rotating question.

    update() returns True when a new reflection level was entered; the
    caller spawns the META_COGNITION thread that does the reflecting.
    """

    def __init__(
        self,
        config: Optional[MetaCognitionConfig] = None,
        rng: Optional[np.random.Generator] = None,
        width: float = 800.0,
        height: float = 600.0,
    ) -> None:
        self.config = config or MetaCognitionConfig()
        self.rng = rng if rng is not None else np.random.default_rng()
        self.width = width
        self.height = height
        self.self_awareness = self.config.initial_awareness
        self.recursive_depth = 0
        self.current_question: Optional[str] = None
        self.question_age = 0
        self.nodes: List[ReflectionNode] = [
            self._make_node(i, width, height) for i in range(self.config.reflection_nodes)
        ]

    # ── Properties ───────────────────────────────────────────────────────────

    @property
    def max_depth(self) -> int:
        return self.config.max_depth

    @property
    def questions(self) -> Tuple[str, ...]:
        return self.config.questions

    # ── Public Methods ───────────────────────────────────────────────────────

    def update(self, load: float, insight_count: int, tick: int, defer: Defer) -> bool:
        cfg = self.config
        rng = self.rng

        drive = (
            load
            + insight_count / cfg.insight_scale
            + cfg.depth_weight * self.recursive_depth / max(cfg.max_depth, 1)
            - 0.5
        )
        self.self_awareness = min(1.0, max(0.0, self.self_awareness + drive * cfg.awareness_rate))

        reflected = False
        if rng.random() < cfg.reflection_chance and self.recursive_depth < cfg.max_depth:
            self.deepen(defer)
            reflected = True

        if self.current_question is None or self.question_age > cfg.question_lifetime:
            self.current_question = self.questions[int(rng.integers(len(self.questions)))]
            self.question_age = 0
        self.question_age += 1

        for node in self.nodes:
            node.contemplation_depth += 0.01
            if rng.random() < cfg.node_activation_chance:
                node.question_index = int(rng.integers(len(self.questions)))
                node.intensity = min(1.0, node.intensity + 0.3)
                node.last_activation = tick
            node.uncertainty = min(1.0, max(0.0, node.uncertainty + (rng.random() - 0.5) * 0.02))
            node.intensity *= 0.995

            # Slow drift, kept on the canvas
            node.vx = (rng.random() - 0.5) * 2
            node.vy = (rng.random() - 0.5) * 2
            node.x += node.vx
            node.y += node.vy
            apply_boundary(node, self.width, self.height, BoundaryPolicy.BOUNCE)

        return reflected

    def deepen(self, defer: Defer) -> None:
        """Enter one more reflection level and schedule its unwinding."""
        if self.recursive_depth >= self.config.max_depth:
            return
        self.recursive_depth += 1
        delay = int(self.rng.integers(self.config.unwind_min, self.config.unwind_max + 1))
        defer(delay, self.unwind, "metacognition.unwind")
        logger.debug("Self-reflection depth %d (unwinds in %d ticks)", self.recursive_depth, delay)

    def unwind(self) -> None:
        self.recursive_depth = max(0, self.recursive_depth - 1)

    def get_state(self) -> dict:
        return {
            "self_awareness": self.self_awareness,
            "recursive_depth": self.recursive_depth,
            "current_question": self.current_question,
            "question_age": self.question_age,
            "reflection_nodes": len(self.nodes),
        }

    # ── Internal ─────────────────────────────────────────────────────────────

    def _make_node(self, i: int, width: float, height: float) -> ReflectionNode:
        rng = self.rng
        return ReflectionNode(
            id=f"meta_{i}",
            x=float(rng.random() * width),
            y=float(rng.random() * height),
            intensity=float(rng.random()),
            question_index=int(rng.integers(len(self.questions))),
            uncertainty=float(rng.random()),
        )
