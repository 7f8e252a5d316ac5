# ═══════════════════════════════════════════════════════════════════════════════
# PART 9: EMERGENT SIGNALS
# Design: P2 (Complexity Science) | Implementation: I3 (State Management)
# ═══════════════════════════════════════════════════════════════════════════════

"""
P2: "Signals are what the population does together, not what any one
thread does. An insight needs several threads performing well at once;
a cascade is a ring spreading from one thread through its neighbors."

I3: "Every signal fades geometrically and is dropped once it crosses its
threshold. The layer owns its lists; threads are named by id only."
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Callable, List, Optional, Sequence, Tuple

import numpy as np

from fractalmind.core.agents import ProcessingThread
from fractalmind.core.consciousness import ConsciousnessParameters

logger = logging.getLogger(__name__)

INSIGHT_DESCRIPTIONS = (
    "Pattern recognition breakthrough",
    "Novel connection discovered",
    "Uncertainty resolution",
    "Emergent understanding",
    "Cognitive synthesis",
    "Attention focus shift",
    "Knowledge integration",
    "Meta-cognitive realization",
)


@dataclass
class SignalConfig:
    """Configuration for insights, cascades, waves, attention and context."""
    # Insights
    insight_chance: float = 0.005
    insight_min_threads: int = 3         # High performers must exceed this
    insight_confidence: float = 0.8
    insight_activity: float = 0.7
    insight_sources: int = 3
    insight_decay: float = 0.99
    thread_insight_intensity: float = 0.8
    thread_insight_decay: float = 0.98
    task_insight_chance: float = 0.1
    signal_floor: float = 0.1            # Signals at or below this are dropped

    # Pattern cascades
    cascade_chance: float = 0.02
    cascade_band: float = 20.0           # Ring width that touches threads
    cascade_decay: float = 0.98

    # Consciousness-uncertainty waves
    wave_chance: float = 0.005
    wave_growth: float = 2.0
    wave_decay: float = 0.98
    wave_uncertainty: float = 0.05
    wave_confidence: float = 0.02

    # Attention
    attention_nodes: int = 8
    attention_retarget_chance: float = 0.02
    attention_boost: float = 0.3
    attention_replenish: float = 0.5

    # Context stack
    context_chance: float = 0.05
    context_uncertainty: float = 0.7
    context_ttl: int = 600               # Ticks
    context_attention: float = 0.8


# ── Signal types ─────────────────────────────────────────────────────────────


@dataclass
class EmergentSignal:
    """A transient, decaying phenomenon at a position."""
    id: str
    x: float
    y: float
    intensity: float
    decay: float
    created_tick: int = 0
    source_ids: Tuple[str, ...] = ()

    def fade(self) -> None:
        self.intensity *= self.decay


@dataclass
class Insight(EmergentSignal):
    description: str = ""
    confidence: float = 0.0
    novelty: float = 0.0


@dataclass
class PatternCascade(EmergentSignal):
    radius: float = 5.0
    max_radius: float = 100.0
    speed: float = 1.0
    hue: float = 0.0
    age: int = 0

    def in_ring(self, dist: float, band: float) -> bool:
        return self.radius - band < dist < self.radius


@dataclass
class UncertaintyWave(EmergentSignal):
    radius: float = 10.0
    max_radius: float = 100.0
    question: str = ""
    age: int = 0


@dataclass
class AttentionNode:
    id: str
    x: float
    y: float
    strength: float
    decay: float
    scope: float
    priority: float
    target_id: Optional[str] = None
    focus: float = 0.0
    radius: float = 10.0
    oscillation: float = 0.0


@dataclass
class ContextEntry:
    """An open investigation of an uncertain thread."""
    target_id: str
    created_tick: int
    priority: float
    kind: str = "uncertainty_investigation"


# ── Insights ─────────────────────────────────────────────────────────────────


class InsightGenerator:
    """Emits insights from high-performing thread subsets and single threads."""

    def __init__(self, config: Optional[SignalConfig] = None) -> None:
        self.config = config or SignalConfig()
        self.insights: List[Insight] = []

    def high_performers(self, threads: Sequence[ProcessingThread]) -> List[ProcessingThread]:
        cfg = self.config
        return [
            t for t in threads
            if t.confidence > cfg.insight_confidence and t.activity > cfg.insight_activity
        ]

    def generate(
        self,
        threads: Sequence[ProcessingThread],
        tick: int,
        rng: np.random.Generator,
        width: float,
        height: float,
        new_id: Callable[[str], str],
    ) -> Optional[Insight]:
        """Maybe emit one collective insight, then fade and prune all."""
        cfg = self.config
        created = None
        performers = self.high_performers(threads)
        if len(performers) > cfg.insight_min_threads and rng.random() < cfg.insight_chance:
            intensity = float(rng.uniform(0.7, 1.0))
            created = Insight(
                id=new_id("insight"),
                x=float(rng.random() * width),
                y=float(rng.random() * height),
                intensity=intensity,
                decay=cfg.insight_decay,
                created_tick=tick,
                source_ids=tuple(t.id for t in performers[: cfg.insight_sources]),
                description=_pick(INSIGHT_DESCRIPTIONS, rng),
                confidence=intensity,
                novelty=float(rng.random()),
            )
            self.insights.append(created)
            logger.debug("Emergent insight: %s", created.description)

        for insight in self.insights:
            insight.fade()
        self.insights = [i for i in self.insights if i.intensity > cfg.signal_floor]
        return created

    def from_thread(
        self,
        thread: ProcessingThread,
        tick: int,
        rng: np.random.Generator,
        new_id: Callable[[str], str],
    ) -> Insight:
        insight = Insight(
            id=new_id("insight"),
            x=thread.x,
            y=thread.y,
            intensity=self.config.thread_insight_intensity,
            decay=self.config.thread_insight_decay,
            created_tick=tick,
            source_ids=(thread.id,),
            description=_pick(INSIGHT_DESCRIPTIONS, rng),
            confidence=thread.confidence,
        )
        self.insights.append(insight)
        return insight

    def clear(self) -> None:
        self.insights = []


# ── Cascades ─────────────────────────────────────────────────────────────────


class CascadeField:
    """Expanding rings that energize the threads they pass over."""

    def __init__(self, config: Optional[SignalConfig] = None) -> None:
        self.config = config or SignalConfig()
        self.cascades: List[PatternCascade] = []

    def spawn(
        self,
        threads: Sequence[ProcessingThread],
        tick: int,
        rng: np.random.Generator,
        width: float,
        height: float,
        new_id: Callable[[str], str],
    ) -> PatternCascade:
        if threads:
            source = threads[int(rng.integers(len(threads)))]
            x, y, sources = source.x, source.y, (source.id,)
        else:
            x, y, sources = float(rng.random() * width), float(rng.random() * height), ()
        cascade = PatternCascade(
            id=new_id("cascade"),
            x=x,
            y=y,
            intensity=float(rng.uniform(0.8, 1.0)),
            decay=self.config.cascade_decay,
            created_tick=tick,
            source_ids=sources,
            radius=5.0,
            max_radius=float(100 + rng.random() * 150),
            speed=float(1 + rng.random() * 2),
            hue=float(rng.random() * 360),
        )
        self.cascades.append(cascade)
        return cascade

    def update(
        self,
        threads: Sequence[ProcessingThread],
        tick: int,
        rng: np.random.Generator,
        width: float,
        height: float,
        new_id: Callable[[str], str],
    ) -> List[ProcessingThread]:
        """
        Spawn, expand and propagate. Returns the threads whose cascade
        contact rolled an insight this tick.
        """
        cfg = self.config
        if rng.random() < cfg.cascade_chance:
            self.spawn(threads, tick, rng, width, height, new_id)

        inspired: List[ProcessingThread] = []
        for cascade in self.cascades:
            cascade.age += 1
            cascade.radius += cascade.speed
            cascade.fade()
            for thread in threads:
                dist = math.hypot(thread.x - cascade.x, thread.y - cascade.y)
                if not cascade.in_ring(dist, cfg.cascade_band):
                    continue
                thread.activity = min(1.0, thread.activity + cascade.intensity * 0.3)
                thread.processing_speed = min(2.0, thread.processing_speed + cascade.intensity * 0.1)
                if rng.random() < cascade.intensity * 0.1:
                    inspired.append(thread)

        self.cascades = [
            c for c in self.cascades
            if c.intensity > cfg.signal_floor and c.radius < c.max_radius
        ]
        return inspired

    def clear(self) -> None:
        self.cascades = []


# ── Consciousness-uncertainty waves ──────────────────────────────────────────


class WaveField:
    """Doubt waves that raise uncertainty and sap confidence as they pass."""

    def __init__(self, config: Optional[SignalConfig] = None) -> None:
        self.config = config or SignalConfig()
        self.waves: List[UncertaintyWave] = []

    def update(
        self,
        threads: Sequence[ProcessingThread],
        questions: Sequence[str],
        tick: int,
        rng: np.random.Generator,
        width: float,
        height: float,
        new_id: Callable[[str], str],
    ) -> None:
        cfg = self.config
        if rng.random() < cfg.wave_chance:
            self.waves.append(UncertaintyWave(
                id=new_id("doubt"),
                x=float(rng.random() * width),
                y=float(rng.random() * height),
                intensity=float(rng.uniform(0.8, 1.0)),
                decay=cfg.wave_decay,
                created_tick=tick,
                radius=10.0,
                max_radius=float(100 + rng.random() * 100),
                question=_pick(questions, rng) if questions else "",
            ))

        for wave in self.waves:
            wave.age += 1
            wave.radius += cfg.wave_growth
            wave.fade()
            for thread in threads:
                if math.hypot(thread.x - wave.x, thread.y - wave.y) < wave.radius:
                    thread.uncertainty = min(1.0, thread.uncertainty + wave.intensity * cfg.wave_uncertainty)
                    thread.confidence = max(0.0, thread.confidence - wave.intensity * cfg.wave_confidence)

        self.waves = [
            w for w in self.waves
            if w.radius < w.max_radius and w.intensity > cfg.signal_floor
        ]

    def clear(self) -> None:
        self.waves = []


# ── Attention ────────────────────────────────────────────────────────────────


class AttentionPool:
    """
    Fixed-size pool of attention nodes.

    Nodes decay every tick, occasionally jump to the most active thread,
    and are replaced once they fade below the floor. Context switches can
    push extra nodes above the pool size; the pool only tops up, never trims.
    """

    def __init__(self, config: Optional[SignalConfig] = None) -> None:
        self.config = config or SignalConfig()
        self.nodes: List[AttentionNode] = []

    def initialize(self, rng: np.random.Generator, width: float, height: float,
                   new_id: Callable[[str], str]) -> None:
        self.nodes = [
            self.create_node(rng, width, height, new_id, strength=float(rng.random()))
            for _ in range(self.config.attention_nodes)
        ]

    def create_node(
        self,
        rng: np.random.Generator,
        width: float,
        height: float,
        new_id: Callable[[str], str],
        strength: Optional[float] = None,
    ) -> AttentionNode:
        return AttentionNode(
            id=new_id("attention"),
            x=float(rng.random() * width),
            y=float(rng.random() * height),
            strength=self.config.attention_replenish if strength is None else strength,
            decay=float(0.98 + rng.random() * 0.019),
            scope=float(20 + rng.random() * 100),
            priority=float(rng.random()),
            focus=float(rng.random() * 2 * math.pi),
            radius=float(5 + rng.random() * 15),
            oscillation=float(rng.random() * 2 * math.pi),
        )

    def focus_on(self, node: AttentionNode, thread: ProcessingThread) -> None:
        node.target_id = thread.id
        node.x = thread.x
        node.y = thread.y

    def update(
        self,
        threads: Sequence[ProcessingThread],
        params: ConsciousnessParameters,
        rng: np.random.Generator,
        width: float,
        height: float,
        new_id: Callable[[str], str],
    ) -> None:
        cfg = self.config
        hottest = max(threads, key=lambda t: t.activity) if threads else None

        for node in self.nodes:
            node.strength *= node.decay
            node.oscillation += 0.05
            if hottest is not None and rng.random() < cfg.attention_retarget_chance:
                self.focus_on(node, hottest)
                node.strength = min(1.0, node.strength + cfg.attention_boost)
            node.priority = params.complexity * 0.4 + params.emergence * 0.3 + float(rng.random()) * 0.3

        self.nodes = [n for n in self.nodes if n.strength > cfg.signal_floor]
        while len(self.nodes) < cfg.attention_nodes:
            self.nodes.append(self.create_node(rng, width, height, new_id))


# ── Context stack ────────────────────────────────────────────────────────────


class ContextStack:
    """Investigations opened on highly uncertain threads, expiring by age."""

    def __init__(self, config: Optional[SignalConfig] = None) -> None:
        self.config = config or SignalConfig()
        self.entries: List[ContextEntry] = []

    @property
    def depth(self) -> int:
        return len(self.entries)

    def update(
        self,
        threads: Sequence[ProcessingThread],
        attention: AttentionPool,
        tick: int,
        rng: np.random.Generator,
        width: float,
        height: float,
        new_id: Callable[[str], str],
    ) -> Optional[ContextEntry]:
        cfg = self.config
        opened = None
        if rng.random() < cfg.context_chance:
            uncertain = [t for t in threads if t.uncertainty > cfg.context_uncertainty]
            if uncertain:
                target = uncertain[int(rng.integers(len(uncertain)))]
                opened = ContextEntry(target.id, tick, target.uncertainty)
                self.entries.append(opened)

                node = attention.create_node(rng, width, height, new_id, strength=cfg.context_attention)
                attention.focus_on(node, target)
                attention.nodes.append(node)

        self.entries = [e for e in self.entries if tick - e.created_tick < cfg.context_ttl]
        return opened

    def clear(self) -> None:
        self.entries = []


def _pick(options: Sequence, rng: np.random.Generator):
    return options[int(rng.integers(len(options)))]
