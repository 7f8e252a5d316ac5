# ═══════════════════════════════════════════════════════════════════════════════
# PART 8: LIFECYCLE
# Design: N7 (Developmental Neuro) | Implementation: I3 (State Management)
# ═══════════════════════════════════════════════════════════════════════════════

"""
N7: "Birth is two eligible parents, paired in the order they stand in the
population. The child starts from the mean of its parents and drifts a
little per trait. Death has three causes, checked in a fixed order; the
first one that fires is the one that counts."

I3: "Culling is a sort and a slice. The least fit go first; nobody is
removed at random."
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Iterable, List, Optional, Set

import numpy as np

from fractalmind.core.agents import (
    EcosystemEntity,
    Genetics,
    SPECIES_PROFILES,
    Species,
    TRAIT_NAMES,
    UNIT_TRAITS,
)
from fractalmind.core.population import Population
from fractalmind.core.spatial import SpatialIndex

logger = logging.getLogger(__name__)


class DeathCause(Enum):
    STARVATION = "starvation"
    SENESCENCE = "senescence"
    OVERCROWDING = "overcrowding"


@dataclass
class LifecycleConfig:
    """Configuration for birth, death and population bounds."""
    # Reproduction
    reproduction_threshold: float = 0.8  # Energy ratio required
    min_reproduction_age: int = 50
    reproduction_cooldown: int = 100     # Ticks
    reproduction_cost: float = 0.7       # Parents' energy multiplied by this
    reproduction_rate: float = 0.003     # Per-pair probability per tick
    offspring_scatter: float = 20.0      # Offspring placed near parents' midpoint

    # Mutation
    mutation_rate: float = 0.1           # Per-trait probability
    mutation_strength: float = 0.05      # Multiplicative U(1-s, 1+s)
    trait_floor: float = 0.1

    # Fitness
    reproduction_memory: int = 3600      # Ticks a birth keeps counting toward fitness

    # Death
    survival_threshold: float = 0.0      # Absolute energy at or below this starves
    senescence_age: int = 250            # Old age risk starts here
    senescence_chance: float = 0.05
    max_age: int = 300                   # Certain death
    crowding_radius: float = 20.0
    crowding_limit: int = 8              # More neighbors than this is crowded
    crowding_chance: float = 0.01


class LifecycleManager:
    """
    Birth, mutation, fitness, death and population bounds.

    Stateless apart from its config: every method acts on the population
    it is handed, so one manager serves every species.
    """

    def __init__(self, config: Optional[LifecycleConfig] = None) -> None:
        self.config = config or LifecycleConfig()

    # ── Reproduction ─────────────────────────────────────────────────────────

    def is_eligible(self, entity: EcosystemEntity) -> bool:
        cfg = self.config
        return (
            entity.energy_ratio > cfg.reproduction_threshold
            and entity.reproduction_cooldown == 0
            and entity.age > cfg.min_reproduction_age
        )

    def reproduce(
        self,
        population: Population[EcosystemEntity],
        tick: int,
        rng: np.random.Generator,
        new_id: Callable[[], str],
        rate: Optional[float] = None,
        mutation_rate: Optional[float] = None,
    ) -> List[EcosystemEntity]:
        """
        Pair eligible entities in collection order and breed each pair
        with probability rate. Offspring are appended to the population.
        """
        rate = self.config.reproduction_rate if rate is None else rate
        eligible = [e for e in population if self.is_eligible(e)]
        offspring: List[EcosystemEntity] = []

        for i in range(0, len(eligible) - 1, 2):
            if rng.random() >= rate:
                continue
            a, b = eligible[i], eligible[i + 1]
            child = self.make_offspring(a, b, new_id(), rng)
            self.mutate(child, rng, mutation_rate)
            self._pay_cost(a, tick)
            self._pay_cost(b, tick)
            offspring.append(child)

        population.extend(offspring)
        if offspring:
            logger.debug("%s: %d birth(s) at tick %d", population.name, len(offspring), tick)
        return offspring

    def make_offspring(
        self,
        a: EcosystemEntity,
        b: EcosystemEntity,
        entity_id: str,
        rng: np.random.Generator,
    ) -> EcosystemEntity:
        """Unmutated child: mean genetics, fresh energy, placed between parents."""
        genetics = Genetics.blend(a.genetics, b.genetics)
        scatter = self.config.offspring_scatter
        max_energy = (a.max_energy + b.max_energy) / 2
        return EcosystemEntity(
            id=entity_id,
            x=(a.x + b.x) / 2 + (rng.random() - 0.5) * scatter,
            y=(a.y + b.y) / 2 + (rng.random() - 0.5) * scatter,
            vx=(rng.random() - 0.5) * 2,
            vy=(rng.random() - 0.5) * 2,
            species=a.species,
            genetics=genetics,
            energy=max_energy / 1.5,
            max_energy=max_energy,
            generation=max(a.generation, b.generation) + 1,
            lineage=a.lineage + 1,
            mutations=a.mutations,
            color=list(SPECIES_PROFILES[a.species].color),
        )

    def mutate(
        self,
        entity: EcosystemEntity,
        rng: np.random.Generator,
        rate: Optional[float] = None,
    ) -> int:
        """
        Independently perturb each trait with probability rate.

        Traits are floored at trait_floor; unit traits are also capped at 1.
        Returns the number of traits changed.
        """
        cfg = self.config
        rate = cfg.mutation_rate if rate is None else rate
        values = entity.genetics.as_array()
        strength = cfg.mutation_strength

        changed = 0
        for i, name in enumerate(TRAIT_NAMES):
            if rng.random() >= rate:
                continue
            values[i] *= rng.uniform(1 - strength, 1 + strength)
            values[i] = max(cfg.trait_floor, values[i])
            if name in UNIT_TRAITS:
                values[i] = min(1.0, values[i])
            changed += 1

        if changed:
            entity.genetics = Genetics.from_array(values)
            entity.mutations += 1
        return changed

    # ── Fitness ──────────────────────────────────────────────────────────────

    def fitness(self, entity: EcosystemEntity, tick: int) -> float:
        """Weighted sum used to rank entities for culling."""
        recent = (
            entity.last_reproduction_tick is not None
            and tick - entity.last_reproduction_tick < self.config.reproduction_memory
        )
        return (
            entity.energy_ratio * 20
            + min(entity.age / 100, 1.0) * 15
            + (25.0 if recent else 0.0)
            + len(entity.links) * 3
            + entity.genetics.efficiency * 10
            + entity.genetics.adaptability * 8
        )

    # ── Death ────────────────────────────────────────────────────────────────

    def check_death(
        self,
        entity: EcosystemEntity,
        crowding: int,
        rng: np.random.Generator,
    ) -> Optional[DeathCause]:
        """
        First matching cause in order, or None.

        crowding is the number of other entities within crowding_radius.
        """
        cfg = self.config
        if entity.energy <= cfg.survival_threshold:
            return DeathCause.STARVATION
        if entity.age >= cfg.max_age:
            return DeathCause.SENESCENCE
        if entity.age >= cfg.senescence_age and rng.random() < cfg.senescence_chance:
            return DeathCause.SENESCENCE
        if crowding > cfg.crowding_limit and rng.random() < cfg.crowding_chance:
            return DeathCause.OVERCROWDING
        return None

    def remove_dead(
        self,
        populations: Iterable[Population[EcosystemEntity]],
        rng: np.random.Generator,
        index: Optional[SpatialIndex] = None,
    ) -> dict:
        """
        Apply check_death to every entity. Returns {DeathCause: count}.

        Crowding is counted across all populations together.
        """
        populations = list(populations)
        everyone = [e for p in populations for e in p]
        if index is None:
            index = SpatialIndex(everyone)
        counts = index.neighbor_counts(self.config.crowding_radius)
        crowding = {id(e): int(c) for e, c in zip(index.agents, counts)}

        tally = {cause: 0 for cause in DeathCause}
        for population in populations:
            def survives(entity: EcosystemEntity) -> bool:
                cause = self.check_death(entity, crowding.get(id(entity), 0), rng)
                if cause is None:
                    return True
                tally[cause] += 1
                return False
            population.retain(survives)
        return tally

    # ── Population bounds ────────────────────────────────────────────────────

    def cull(self, population: Population[EcosystemEntity], tick: int) -> List[EcosystemEntity]:
        """Truncate to the soft max by descending fitness."""
        removed = population.cull(lambda e: self.fitness(e, tick))
        if removed:
            logger.debug("%s: culled %d", population.name, len(removed))
        return removed

    def replenish(
        self,
        population: Population[EcosystemEntity],
        spawn: Callable[[Species], EcosystemEntity],
        species: Species,
    ) -> List[EcosystemEntity]:
        """Add fresh immigrants while the population is below min_size."""
        added = []
        while len(population) < population.min_size:
            added.append(population.add(spawn(species)))
        if added:
            logger.debug("%s: %d immigrant(s)", population.name, len(added))
        return added

    @staticmethod
    def prune_links(populations: Iterable[Population[EcosystemEntity]]) -> int:
        """Drop links to entities that no longer exist anywhere."""
        populations = list(populations)
        live: Set[str] = {e.id for p in populations for e in p}
        return sum(e.forget_missing(live) for p in populations for e in p)

    # ── Internal ─────────────────────────────────────────────────────────────

    def _pay_cost(self, parent: EcosystemEntity, tick: int) -> None:
        parent.energy *= self.config.reproduction_cost
        parent.reproduction_cooldown = self.config.reproduction_cooldown
        parent.last_reproduction_tick = tick
