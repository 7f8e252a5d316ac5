# ═══════════════════════════════════════════════════════════════════════════════
# PART 7: INTERACTION ENGINE
# Design: H3 (Enactivism) + P1 (Dynamical Systems)
# Implementation: I2 (Numerics)
# ═══════════════════════════════════════════════════════════════════════════════

"""
H3: "Two agents close enough to touch affect each other. Same kind compete,
different kinds cooperate, predators hunt prey. The three checks are
independent - one pair can compete, cooperate and hunt in the same tick."

P1: "Every effect fades linearly with distance. At the edge of the radius
the effect is exactly zero; at contact it is the full base magnitude."

The association list is rebuilt from nothing every tick. Nothing about
who-touched-whom survives into the next tick except the persistent links
cooperation writes onto the agents themselves.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional, Sequence, Tuple

import numpy as np

from fractalmind.core.agents import (
    EcosystemEntity,
    ExperienceRecord,
    LinkKind,
    Message,
    PREDATOR_SPECIES,
    PREY_SPECIES,
    ProcessingThread,
)
from fractalmind.core.spatial import SpatialIndex, falloff

logger = logging.getLogger(__name__)


class AssociationKind(Enum):
    COMPETITION = "competition"
    COOPERATION = "cooperation"
    PREDATION = "predation"
    NEUTRAL = "neutral"
    RESONANCE = "resonance"    # Threads of the same kind
    SYNTHESIS = "synthesis"    # Threads of different kinds


@dataclass(frozen=True)
class Association:
    """One pair interaction observed this tick."""
    a_id: str
    b_id: str
    distance: float
    strength: float
    kind: AssociationKind


# ═══════════════════════════════════════════════════════════════════════════════
# ECOSYSTEM INTERACTIONS
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass
class InteractionConfig:
    """Configuration for entity-entity interactions."""
    interaction_radius: float = 50.0     # Candidate pair radius
    competition_radius: float = 25.0     # Same species, aggression cost
    competition_cost: float = 0.05
    cooperation_radius: float = 30.0     # Different species, mutual gain
    cooperation_gain: float = 0.03
    link_threshold: float = 0.3          # Blended cooperation above this records a link
    hunt_range_factor: float = 3.0       # Predation range = predator size * factor
    hunt_chance: float = 0.1             # p = hunt_success * hunt_chance
    predator_gain: float = 0.3           # Fraction of prey energy to predator
    prey_loss: float = 0.7               # Fraction of prey energy removed
    predation_enabled: bool = True


class InteractionEngine:
    """
    Pairwise rule evaluator for ecosystem entities.

    step() visits every unordered pair within interaction_radius in
    collection order and applies competition, cooperation and predation.
    Energies are clamped once per touched entity at the end of the pass.
    """

    def __init__(self, config: Optional[InteractionConfig] = None) -> None:
        self.config = config or InteractionConfig()
        self.competition_total = 0.0
        self.cooperation_total = 0.0

    def step(
        self,
        entities: Sequence[EcosystemEntity],
        rng: np.random.Generator,
        index: Optional[SpatialIndex] = None,
    ) -> List[Association]:
        """Run one interaction pass. Returns this tick's associations."""
        cfg = self.config
        if index is None:
            index = SpatialIndex(entities)

        associations: List[Association] = []
        for a, b, dist in index.pairs(cfg.interaction_radius):
            associations.extend(self.interact(a, b, dist, rng))
        return associations

    def interact(
        self,
        a: EcosystemEntity,
        b: EcosystemEntity,
        dist: float,
        rng: np.random.Generator,
    ) -> List[Association]:
        """Apply all three independent checks to one pair.

        Each rule leaves both energies clamped, so later rules and pairs
        in the same pass never see a negative or overfull entity.
        """
        found: List[Association] = []
        for check in (self.compete, self.cooperate):
            assoc = check(a, b, dist)
            if assoc is not None:
                found.append(assoc)
        if self.config.predation_enabled:
            assoc = self.hunt(a, b, dist, rng)
            if assoc is not None:
                found.append(assoc)
        if not found:
            found.append(Association(a.id, b.id, dist, 0.0, AssociationKind.NEUTRAL))
        return found

    # ── Individual rules ─────────────────────────────────────────────────────

    def competition_effect(self, a: EcosystemEntity, b: EcosystemEntity, dist: float) -> float:
        blend = (a.genetics.aggression + b.genetics.aggression) / 2
        return blend * self.config.competition_cost * falloff(dist, self.config.competition_radius)

    def cooperation_effect(self, a: EcosystemEntity, b: EcosystemEntity, dist: float) -> float:
        blend = (a.genetics.cooperation + b.genetics.cooperation) / 2
        return blend * self.config.cooperation_gain * falloff(dist, self.config.cooperation_radius)

    def compete(self, a: EcosystemEntity, b: EcosystemEntity, dist: float) -> Optional[Association]:
        if a.species is not b.species or dist >= self.config.competition_radius:
            return None
        cost = self.competition_effect(a, b, dist)
        a.energy -= cost
        b.energy -= cost
        a.clamp_energy()
        b.clamp_energy()
        self.competition_total += cost
        return Association(a.id, b.id, dist, cost, AssociationKind.COMPETITION)

    def cooperate(self, a: EcosystemEntity, b: EcosystemEntity, dist: float) -> Optional[Association]:
        if a.species is b.species or dist >= self.config.cooperation_radius:
            return None
        blend = (a.genetics.cooperation + b.genetics.cooperation) / 2
        gain = self.cooperation_effect(a, b, dist)
        a.energy += gain
        b.energy += gain
        a.clamp_energy()
        b.clamp_energy()
        self.cooperation_total += gain

        if blend > self.config.link_threshold:
            a.link_to(b.id, blend, LinkKind.SYMBIOSIS)
            b.link_to(a.id, blend, LinkKind.SYMBIOSIS)
        return Association(a.id, b.id, dist, gain, AssociationKind.COOPERATION)

    def hunt(
        self,
        a: EcosystemEntity,
        b: EcosystemEntity,
        dist: float,
        rng: np.random.Generator,
    ) -> Optional[Association]:
        """One hunting attempt if the pair is a predator and its prey."""
        pair = predator_prey(a, b)
        if pair is None:
            return None
        predator, prey = pair

        hunt_range = predator.genetics.size * self.config.hunt_range_factor
        if dist >= hunt_range:
            return None

        success = hunt_success(predator, prey)
        if rng.random() >= success * self.config.hunt_chance:
            return None

        f = falloff(dist, hunt_range)
        taken = max(prey.energy, 0.0) * f
        predator.energy += self.config.predator_gain * taken
        prey.energy -= self.config.prey_loss * taken
        predator.clamp_energy()
        prey.clamp_energy()
        logger.debug("%s hunted %s (%.3f energy)", predator.id, prey.id, taken)
        return Association(predator.id, prey.id, dist, taken, AssociationKind.PREDATION)

    def decay_tallies(self, factor: float = 0.95) -> None:
        self.competition_total *= factor
        self.cooperation_total *= factor

    def reset(self) -> None:
        self.competition_total = 0.0
        self.cooperation_total = 0.0


def predator_prey(
    a: EcosystemEntity, b: EcosystemEntity,
) -> Optional[Tuple[EcosystemEntity, EcosystemEntity]]:
    """(predator, prey) if exactly that pairing, else None."""
    if a.species in PREDATOR_SPECIES and b.species in PREY_SPECIES:
        return a, b
    if b.species in PREDATOR_SPECIES and a.species in PREY_SPECIES:
        return b, a
    return None


def hunt_success(predator: EcosystemEntity, prey: EcosystemEntity) -> float:
    return predator.genetics.speed / (prey.genetics.speed + 0.1)


# ═══════════════════════════════════════════════════════════════════════════════
# THREAD EXCHANGE
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass
class ThreadExchangeConfig:
    """Configuration for thread-to-thread influence and messaging."""
    radius: float = 80.0
    pull: float = 0.02                 # Scalar pull toward neighbor per unit influence
    message_chance: float = 0.01       # p = message_chance * influence
    shared_records: int = 3            # Most recent experiences shared per message
    message_learning: float = 0.01     # Confidence += this * record confidence


class ThreadExchange:
    """
    Confidence/uncertainty sharing and pattern-share messages.

    Each thread is visited in collection order and pulled toward every
    neighbor within radius; later threads see earlier threads' updated
    values within the same pass.
    """

    def __init__(self, config: Optional[ThreadExchangeConfig] = None) -> None:
        self.config = config or ThreadExchangeConfig()

    def communicate(
        self,
        threads: Sequence[ProcessingThread],
        rng: np.random.Generator,
    ) -> List[Association]:
        cfg = self.config
        index = SpatialIndex(threads)

        for thread in threads:
            for other, d in index.neighbors_within(thread, cfg.radius):
                self._influence(thread, other, d, rng)
            self.drain_messages(thread)

        return [
            Association(
                a.id, b.id, d, 1.0 / (d + 1.0),
                AssociationKind.RESONANCE if a.kind is b.kind else AssociationKind.SYNTHESIS,
            )
            for a, b, d in index.pairs(cfg.radius)
        ]

    def drain_messages(self, thread: ProcessingThread) -> int:
        """Learn from and empty the message queue. Returns messages read."""
        count = 0
        while thread.messages:
            message = thread.messages.popleft()
            for record in message.experience:
                thread.confidence = min(1.0, thread.confidence + record.confidence * self.config.message_learning)
            count += 1
        return count

    def _influence(
        self,
        thread: ProcessingThread,
        other: ProcessingThread,
        dist: float,
        rng: np.random.Generator,
    ) -> None:
        cfg = self.config
        influence = 1.0 / (dist + 1.0)

        thread.confidence += (other.confidence - thread.confidence) * cfg.pull * influence
        thread.uncertainty += (other.uncertainty - thread.uncertainty) * cfg.pull * influence
        thread.clamp_scalars()

        if rng.random() < cfg.message_chance * influence:
            recent: Tuple[ExperienceRecord, ...] = tuple(list(other.history)[-cfg.shared_records:])
            thread.messages.append(Message(other.id, recent, other.confidence))
