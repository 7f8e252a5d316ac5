# ═══════════════════════════════════════════════════════════════════════════════
# PART 4: AGENTS
# Design: N7 (Developmental Neuro) + H3 (Enactivism)
# Implementation: I3 (State Management)
# ═══════════════════════════════════════════════════════════════════════════════

"""
N7: "An agent is a position, a handful of bounded scalars, an age and a
short memory. Species and thread kinds are closed sets - no free-form
strings deciding behavior."

H3: "Links point at other agents by id only. The population owns the
agents; a link to someone who died is just a name nobody answers to."
"""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass, field
from enum import Enum
from typing import Deque, Dict, Iterable, List, Optional, Tuple

import numpy as np

from fractalmind.core.canvas import Color


# ── Shared base ──────────────────────────────────────────────────────────────


class LinkKind(Enum):
    SYMBIOSIS = "symbiosis"
    PATTERN_SHARE = "pattern_share"


@dataclass
class Link:
    """Directed weighted edge to another agent (by id)."""
    strength: float
    kind: LinkKind = LinkKind.SYMBIOSIS
    age: int = 0


@dataclass
class Agent:
    """Common state of every spatial agent."""
    id: str
    x: float
    y: float
    vx: float = 0.0
    vy: float = 0.0
    age: int = 0
    history: Deque = field(default_factory=lambda: deque(maxlen=20))
    links: Dict[str, Link] = field(default_factory=dict)

    def remember(self, record) -> None:
        """Push onto the ring buffer (oldest evicted past maxlen)."""
        self.history.append(record)

    def link_to(self, other_id: str, strength: float, kind: LinkKind = LinkKind.SYMBIOSIS) -> bool:
        """Record a link if none exists yet. Returns True when created."""
        if other_id == self.id or other_id in self.links:
            return False
        self.links[other_id] = Link(strength=min(max(strength, 0.0), 1.0), kind=kind)
        return True

    def age_links(self) -> None:
        for link in self.links.values():
            link.age += 1

    def forget_missing(self, live_ids) -> int:
        """Drop links whose target no longer exists. Returns how many."""
        dead = [other for other in self.links if other not in live_ids]
        for other in dead:
            del self.links[other]
        return len(dead)


# ── Ecosystem entities ───────────────────────────────────────────────────────


class Species(Enum):
    PRODUCER = "producer"
    CONSUMER = "consumer"
    DECOMPOSER = "decomposer"
    PREDATOR = "predator"
    SYMBIONT = "symbiont"


@dataclass(frozen=True)
class SpeciesProfile:
    """Base stats a new entity's genetics are drawn around."""
    color: Color
    energy: float
    speed: float
    size: float


SPECIES_PROFILES: Dict[Species, SpeciesProfile] = {
    Species.PRODUCER: SpeciesProfile((0, 255, 100), 50.0, 0.5, 3.0),
    Species.CONSUMER: SpeciesProfile((255, 100, 0), 40.0, 1.2, 4.0),
    Species.DECOMPOSER: SpeciesProfile((100, 0, 255), 30.0, 0.8, 2.5),
    Species.PREDATOR: SpeciesProfile((255, 0, 0), 60.0, 1.5, 5.0),
    Species.SYMBIONT: SpeciesProfile((255, 255, 0), 35.0, 1.0, 3.5),
}

PREDATOR_SPECIES = frozenset({Species.PREDATOR})
PREY_SPECIES = frozenset({Species.PRODUCER, Species.CONSUMER, Species.DECOMPOSER})


class Action(Enum):
    """Behaviors an entity can select each tick."""
    FORAGING = "foraging"
    FLEEING = "fleeing"
    MATING = "mating"
    COOPERATING = "cooperating"
    COMPETING = "competing"
    WANDERING = "wandering"


TRAIT_NAMES = (
    "speed", "size", "energy", "aggression", "cooperation", "adaptability", "efficiency",
)
UNIT_TRAITS = frozenset({"aggression", "cooperation", "adaptability", "efficiency"})


@dataclass
class Genetics:
    """Heritable trait vector."""
    speed: float
    size: float
    energy: float
    aggression: float
    cooperation: float
    adaptability: float
    efficiency: float

    def as_array(self) -> np.ndarray:
        return np.array([getattr(self, name) for name in TRAIT_NAMES], dtype=float)

    @classmethod
    def from_array(cls, values: Iterable[float]) -> "Genetics":
        return cls(**{name: float(v) for name, v in zip(TRAIT_NAMES, values)})

    @classmethod
    def blend(cls, a: "Genetics", b: "Genetics") -> "Genetics":
        """Component-wise arithmetic mean of two parents."""
        return cls.from_array((a.as_array() + b.as_array()) / 2)

    @classmethod
    def random(cls, profile: SpeciesProfile, rng: np.random.Generator) -> "Genetics":
        return cls(
            speed=profile.speed * rng.uniform(0.8, 1.2),
            size=profile.size * rng.uniform(0.8, 1.2),
            energy=profile.energy * rng.uniform(0.8, 1.2),
            aggression=rng.uniform(0.0, 0.5),
            cooperation=rng.uniform(0.0, 0.5),
            adaptability=rng.uniform(0.0, 1.0),
            efficiency=rng.uniform(0.0, 1.0),
        )


@dataclass
class MemoryRecord:
    action: Action
    energy: float
    fitness: float
    tick: int


@dataclass
class EcosystemEntity(Agent):
    """An organism in the digital ecosystem."""
    species: Species = Species.PRODUCER
    genetics: Optional[Genetics] = None
    energy: float = 0.0
    max_energy: float = 1.0
    fitness: float = 0.0
    action: Action = Action.WANDERING
    target: Optional[Tuple[float, float]] = None
    target_id: Optional[str] = None
    reproduction_cooldown: int = 0
    last_reproduction_tick: Optional[int] = None
    generation: int = 0
    lineage: int = 0
    mutations: int = 0
    color: List[float] = field(default_factory=lambda: [255.0, 255.0, 255.0])

    @property
    def energy_ratio(self) -> float:
        if self.max_energy <= 0:
            return 0.0
        return self.energy / self.max_energy

    def clamp_energy(self) -> None:
        self.energy = min(max(self.energy, 0.0), self.max_energy)


# ── Processing threads ───────────────────────────────────────────────────────


class ThreadKind(Enum):
    PATTERN_RECOGNITION = "pattern_recognition"
    LOGICAL_REASONING = "logical_reasoning"
    SEMANTIC_ANALYSIS = "semantic_analysis"
    UNCERTAINTY_QUANTIFICATION = "uncertainty_quantification"
    ATTENTION_ALLOCATION = "attention_allocation"
    CONTEXT_INTEGRATION = "context_integration"
    INSIGHT_GENERATION = "insight_generation"
    ERROR_CORRECTION = "error_correction"
    META_COGNITION = "meta_cognition"


WORKER_KINDS = tuple(k for k in ThreadKind if k is not ThreadKind.META_COGNITION)


class TaskKind(Enum):
    ANALYZING_INPUT_PATTERNS = "analyzing_input_patterns"
    COMPUTING_PROBABILITIES = "computing_probabilities"
    SEARCHING_KNOWLEDGE_SPACE = "searching_knowledge_space"
    EVALUATING_CONFIDENCE = "evaluating_confidence"
    INTEGRATING_CONTEXTS = "integrating_contexts"
    GENERATING_RESPONSES = "generating_responses"
    CHECKING_CONSISTENCY = "checking_consistency"
    UPDATING_BELIEFS = "updating_beliefs"
    SELF_REFLECTION = "self_reflection"


WORKER_TASKS = tuple(k for k in TaskKind if k is not TaskKind.SELF_REFLECTION)


@dataclass
class Task:
    kind: TaskKind
    complexity: float
    time_remaining: float
    required_confidence: float

    @classmethod
    def random(cls, rng: np.random.Generator) -> "Task":
        return cls(
            kind=WORKER_TASKS[int(rng.integers(len(WORKER_TASKS)))],
            complexity=float(rng.random()),
            time_remaining=float(50 + rng.random() * 200),
            required_confidence=float(0.7 + rng.random() * 0.3),
        )

    @classmethod
    def self_reflection(cls, rng: np.random.Generator) -> "Task":
        return cls(
            kind=TaskKind.SELF_REFLECTION,
            complexity=float(0.8 + rng.random() * 0.2),
            time_remaining=float(100 + rng.random() * 200),
            required_confidence=0.3,
        )


@dataclass
class ExperienceRecord:
    task: TaskKind
    complexity: float
    success: bool
    confidence: float
    time_spent: float


@dataclass
class Message:
    """Pattern-share message passed between threads."""
    sender: str
    experience: Tuple[ExperienceRecord, ...]
    confidence: float
    kind: LinkKind = LinkKind.PATTERN_SHARE


@dataclass
class ProcessingThread(Agent):
    """A parallel worker in the AI experience simulation."""
    kind: ThreadKind = ThreadKind.PATTERN_RECOGNITION
    processing_speed: float = 0.5
    efficiency: float = 0.5
    confidence: float = 0.5
    uncertainty: float = 0.5
    task: Optional[Task] = None
    task_progress: float = 0.0
    activity: float = 0.0
    hue: float = 0.0
    pulsation: float = 0.0
    learning_rate: float = 0.01
    messages: Deque[Message] = field(default_factory=deque)
    retired: bool = False

    @property
    def task_complexity(self) -> float:
        return self.task.complexity if self.task is not None else 0.0

    def clamp_scalars(self) -> None:
        self.confidence = min(max(self.confidence, 0.0), 1.0)
        self.uncertainty = min(max(self.uncertainty, 0.0), 1.0)
        self.activity = min(max(self.activity, 0.0), 1.0)
        self.efficiency = min(max(self.efficiency, 0.0), 1.0)
