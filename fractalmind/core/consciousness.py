# ═══════════════════════════════════════════════════════════════════════════════
# PART 1: CONSCIOUSNESS CORE
# Design: P1 (Dynamical Systems) | Implementation: I2 (Numerics)
# ═══════════════════════════════════════════════════════════════════════════════

"""
P1: "Four global scalars, each pulled around by its own attractor: a base
sinusoid, a few weaker harmonics, and a phase-shifted cross term. Every
1500 ticks the attractors themselves drift - that's the phase transition."

I2: "Everything downstream reads these numbers as probabilities and
thresholds. Nobody else writes them."
"""

from __future__ import annotations

import logging
import math
from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Tuple

import numpy as np

logger = logging.getLogger(__name__)


PARAMETER_NAMES = ("complexity", "emergence", "coherence", "adaptation")


class NoveltyKind(Enum):
    """Novelty events drawn at a phase transition."""
    ECOSYSTEM_INJECTION = "ecosystem_injection"
    CONSCIOUSNESS_SURGE = "consciousness_surge"


@dataclass
class Attractor:
    """Sinusoidal attractor driving one consciousness parameter."""
    frequency: float
    amplitude: float
    harmonics: List[float] = field(default_factory=list)


def _default_attractors() -> Dict[str, Attractor]:
    return {
        "complexity": Attractor(0.7, 0.3, [1.9, 3.1, 0.5]),
        "emergence": Attractor(0.5, 0.25, [2.3, 4.7, 1.2]),
        "coherence": Attractor(0.9, 0.2, [1.7, 2.9, 0.8]),
        "adaptation": Attractor(1.1, 0.2, [0.8, 3.3, 1.5]),
    }


@dataclass
class ConsciousnessConfig:
    """Configuration for consciousness evolution."""
    evolution_speed: float = 0.0008         # Tick -> attractor time scaling
    phase_transition_interval: int = 1500   # Ticks between transitions

    # Attractor shape
    harmonic_gain: float = 0.1              # Harmonic i gets amplitude * gain / (i + 1)
    phase_shift_gain: float = 0.05          # Weight of the cos cross term
    phase_shift_step: float = math.pi / 3

    # Attractor drift at each transition
    frequency_jitter: float = 0.05
    amplitude_jitter: float = 0.025
    amplitude_min: float = 0.1
    amplitude_max: float = 0.4

    # Parameter bounds
    parameter_min: float = 0.1
    parameter_max: float = 0.9

    # Novelty probabilities (drawn at each transition)
    ecosystem_injection_chance: float = 0.2
    consciousness_surge_chance: float = 0.1

    initial_parameters: Dict[str, float] = field(default_factory=lambda: {
        "complexity": 0.5,
        "emergence": 0.3,
        "coherence": 0.7,
        "adaptation": 0.4,
    })
    attractors: Dict[str, Attractor] = field(default_factory=_default_attractors)


@dataclass(frozen=True)
class ConsciousnessParameters:
    complexity: float
    emergence: float
    coherence: float
    adaptation: float

    def as_tuple(self) -> Tuple[float, float, float, float]:
        return (self.complexity, self.emergence, self.coherence, self.adaptation)


@dataclass(frozen=True)
class ConsciousnessState:
    """Immutable snapshot of the consciousness core."""
    parameters: ConsciousnessParameters
    time: int
    cycle: int
    phase_shift: float
    last_transition: int
    entropy: float
    coherence_level: float

    def to_dict(self) -> dict:
        return {
            "parameters": asdict(self.parameters),
            "evolution": {
                "time": self.time,
                "cycle": self.cycle,
                "phase_shift": self.phase_shift,
                "last_transition": self.last_transition,
            },
            "entropy": self.entropy,
            "coherence_level": self.coherence_level,
        }


@dataclass(frozen=True)
class PhaseTransition:
    """Event emitted when the attractors drift."""
    cycle: int
    time: int
    parameters: Dict[str, float]
    novelty: Tuple[NoveltyKind, ...] = ()


class ConsciousnessCore:
    """
    Process-wide consciousness parameters.

    Each parameter is recomputed every tick as

        clamp(0.5 + sin(t*f)*A + sum_i sin(t*h_i)*A*g/(i+1)
                  + cos(t*f + phase_shift)*0.05, 0.1, 0.9)

    with t = time * evolution_speed. The core is the only writer; every
    simulation reads it through get_state() or the read-only properties.
    """

    def __init__(
        self,
        config: Optional[ConsciousnessConfig] = None,
        rng: Optional[np.random.Generator] = None,
    ) -> None:
        self.config = config or ConsciousnessConfig()
        self.rng = rng if rng is not None else np.random.default_rng()
        self.reset()

    def reset(self) -> None:
        """Return to initial parameters and attractors."""
        cfg = self.config
        self.parameters: Dict[str, float] = {
            name: float(cfg.initial_parameters.get(name, 0.5)) for name in PARAMETER_NAMES
        }
        # Attractors mutate at transitions, so work on a private copy
        self.attractors: Dict[str, Attractor] = {
            name: Attractor(a.frequency, a.amplitude, list(a.harmonics))
            for name, a in cfg.attractors.items()
        }
        self.time: int = 0
        self.cycle: int = 0
        self.phase_shift: float = 0.0
        self.last_transition: int = 0

    # ── Properties ───────────────────────────────────────────────────────────

    @property
    def complexity(self) -> float:
        return self.parameters["complexity"]

    @property
    def emergence(self) -> float:
        return self.parameters["emergence"]

    @property
    def coherence(self) -> float:
        return self.parameters["coherence"]

    @property
    def adaptation(self) -> float:
        return self.parameters["adaptation"]

    # ── Public Methods ───────────────────────────────────────────────────────

    def evolve(self) -> Optional[PhaseTransition]:
        """Advance one tick. Returns the phase transition if one fired."""
        cfg = self.config
        self.time += 1
        t = self.time * cfg.evolution_speed

        for name in PARAMETER_NAMES:
            self.parameters[name] = self._attractor_value(self.attractors[name], t)

        if self.time - self.last_transition >= cfg.phase_transition_interval:
            return self.trigger_phase_transition()
        return None

    def trigger_phase_transition(self) -> PhaseTransition:
        """Shift phase, bump the cycle and let every attractor drift."""
        cfg = self.config
        self.phase_shift += cfg.phase_shift_step
        self.cycle += 1
        self.last_transition = self.time

        for attractor in self.attractors.values():
            attractor.frequency += float(self.rng.uniform(-cfg.frequency_jitter, cfg.frequency_jitter))
            attractor.amplitude += float(self.rng.uniform(-cfg.amplitude_jitter, cfg.amplitude_jitter))
            attractor.amplitude = float(np.clip(attractor.amplitude, cfg.amplitude_min, cfg.amplitude_max))

        transition = PhaseTransition(
            cycle=self.cycle,
            time=self.time,
            parameters=dict(self.parameters),
            novelty=tuple(self.introduce_novelty()),
        )
        logger.info(
            "Phase transition: cycle=%d time=%d novelty=%s",
            transition.cycle, transition.time, [n.value for n in transition.novelty],
        )
        return transition

    def introduce_novelty(self) -> List[NoveltyKind]:
        """Draw the novelty events accompanying a transition."""
        cfg = self.config
        novelty = []
        if self.rng.random() < cfg.ecosystem_injection_chance:
            novelty.append(NoveltyKind.ECOSYSTEM_INJECTION)
        if self.rng.random() < cfg.consciousness_surge_chance:
            novelty.append(NoveltyKind.CONSCIOUSNESS_SURGE)
        return novelty

    def get_state(self) -> ConsciousnessState:
        return ConsciousnessState(
            parameters=ConsciousnessParameters(**self.parameters),
            time=self.time,
            cycle=self.cycle,
            phase_shift=self.phase_shift,
            last_transition=self.last_transition,
            entropy=self.calculate_entropy(),
            coherence_level=self.calculate_coherence(),
        )

    def calculate_entropy(self) -> float:
        """Population standard deviation of the four parameters."""
        return float(np.std([self.parameters[name] for name in PARAMETER_NAMES]))

    def calculate_coherence(self) -> float:
        """Balance (1 - entropy) blended with pairwise synergy, in [0, 1]."""
        p = self.parameters
        balance = 1.0 - self.calculate_entropy()
        synergy = (p["complexity"] * p["emergence"] + p["coherence"] * p["adaptation"]) / 2
        return float(np.clip((balance + synergy) / 2, 0.0, 1.0))

    def evolutionary_hsl(
        self, base: float, time_offset: float = 0.0, intensity: float = 1.0
    ) -> Tuple[float, float, float]:
        """Hue/saturation/lightness that drifts with time and phase shift."""
        t = self.time + time_offset
        hue = (base * 140 + intensity * 200 + t * 0.3 + self.phase_shift * 25) % 360
        sat = 70 + intensity * 25 + math.sin(t * 0.005) * 10
        light = 35 + math.sin(t * 0.008 + intensity * math.pi) * 30
        return hue, min(sat, 100.0), light

    # ── Internal ─────────────────────────────────────────────────────────────

    def _attractor_value(self, attractor: Attractor, t: float) -> float:
        cfg = self.config
        value = 0.5 + math.sin(t * attractor.frequency) * attractor.amplitude

        for i, harmonic in enumerate(attractor.harmonics[:3]):
            amplitude = attractor.amplitude * cfg.harmonic_gain / (i + 1)
            value += math.sin(t * harmonic) * amplitude

        value += math.cos(t * attractor.frequency + self.phase_shift) * cfg.phase_shift_gain
        return min(cfg.parameter_max, max(cfg.parameter_min, value))
