# ═══════════════════════════════════════════════════════════════════════════════
# PART 12: DIGITAL ECOSYSTEM
# Design: H3 (Enactivism) + N7 (Developmental Neuro)
# Implementation: I4 (Integration)
# ═══════════════════════════════════════════════════════════════════════════════

"""
H3: "Five species in one shared world. They eat what the environment
offers, run from what hunts them, pair off when they can afford it, and
die when they can't. Nobody steers them."

N7: "The consciousness parameters set the weather - temperature, oxygen,
nutrients - and the pace of evolution. The ecosystem only reads them."

I4: "Each phase of update() runs on its own. A failure in one phase is
logged and that phase is skipped for the tick; the rest still run.
Everything finishes inside update(), before render() looks."
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Dict, List, Optional

import numpy as np

from fractalmind.core.agents import (
    Action,
    EcosystemEntity,
    Genetics,
    MemoryRecord,
    SPECIES_PROFILES,
    Species,
)
from fractalmind.core.behavior import Surroundings, move_entity, select_action
from fractalmind.core.canvas import Canvas, hsl_to_rgb
from fractalmind.core.interactions import Association, InteractionConfig, InteractionEngine
from fractalmind.core.lifecycle import DeathCause, LifecycleConfig, LifecycleManager
from fractalmind.core.population import Population
from fractalmind.core.spatial import BoundaryPolicy, SpatialIndex, apply_boundary

if TYPE_CHECKING:
    from fractalmind.core.context import SimulationContext

logger = logging.getLogger(__name__)


@dataclass
class EcosystemConfig:
    """Configuration for the digital ecosystem."""
    entity_count: int = 150              # Split evenly across species
    min_population_fraction: float = 0.2 # min_size = target * this

    # Perception
    perception_radius: float = 60.0      # Neighbors considered for behavior
    forage_radius: float = 50.0
    consume_radius: float = 10.0

    # Metabolism
    base_decay: float = 0.1
    size_decay: float = 0.02
    damping: float = 0.95

    # Environment
    resource_density: float = 0.7        # Resources = w * h * density / 5000
    resource_cap: float = 30.0           # Max value a regenerating resource reaches
    max_resources: int = 150
    max_toxins: int = 10
    initial_toxin_chance: float = 0.1
    environmental_change_chance: float = 0.01
    adaptation_threshold: float = 0.7    # Adaptation above this adds pressure
    adaptation_pressure_chance: float = 0.05
    coherence_threshold: float = 0.8     # Coherence above this enriches nutrients

    # Consciousness surge
    surge_mutation_factor: float = 1.3
    surge_reproduction_factor: float = 1.2
    surge_duration: int = 600            # Ticks

    interaction: InteractionConfig = field(default_factory=InteractionConfig)
    lifecycle: LifecycleConfig = field(default_factory=LifecycleConfig)


class ResourceKind(Enum):
    ENERGY = "energy"
    NUTRIENTS = "nutrients"


class EnvironmentalChange(Enum):
    RESOURCE_BLOOM = "resource_bloom"
    TOXIN_SPILL = "toxin_spill"
    TEMPERATURE_SHIFT = "temperature_shift"
    OXYGEN_DEPLETION = "oxygen_depletion"


@dataclass
class Resource:
    x: float
    y: float
    value: float
    kind: ResourceKind
    regeneration: float


@dataclass
class Toxin:
    x: float
    y: float
    radius: float
    toxicity: float
    decay: float


@dataclass
class Environment:
    """Shared world state. Shifts from environmental changes relax over time."""
    resources: List[Resource] = field(default_factory=list)
    toxins: List[Toxin] = field(default_factory=list)
    temperature: float = 0.5
    oxygen: float = 0.8
    nutrients: float = 0.6
    temperature_bias: float = 0.0
    oxygen_factor: float = 1.0


@dataclass
class EvolutionMetrics:
    generation: int = 0
    avg_fitness: float = 0.0
    diversity: float = 0.0
    cooperation: float = 0.0
    competition: float = 0.0
    complexity: float = 0.0
    births: int = 0
    deaths: Dict[str, int] = field(default_factory=lambda: {c.value: 0 for c in DeathCause})
    associations: int = 0


DIVERSITY_TRAITS = ("speed", "size", "energy", "aggression", "cooperation")


class DigitalEcosystem:
    """
    Autonomous multi-species ecosystem.

    Update order per tick:
        environment -> entities -> interactions -> deaths
        -> reproduction -> bounds -> metrics -> adaptation

    Mutation and reproduction rates are recomputed from the consciousness
    parameters at the end of every tick and scaled by any active surge.
    """

    name = "ecosystem"

    def __init__(self, context: "SimulationContext", config: Optional[EcosystemConfig] = None) -> None:
        self.context = context
        self.config = config or context.config.ecosystem
        self.interactions = InteractionEngine(self.config.interaction)
        self.lifecycle = LifecycleManager(self.config.lifecycle)
        self.populations: Dict[Species, Population[EcosystemEntity]] = {}
        self.environment = Environment()
        self.metrics = EvolutionMetrics()
        self.associations: List[Association] = []
        self.mutation_rate = self.config.lifecycle.mutation_rate
        self.reproduction_rate = self.config.lifecycle.reproduction_rate
        self.mutation_multiplier = 1.0
        self.reproduction_multiplier = 1.0
        self.surge_generation = 0
        self.initialize()

    # ── Properties ───────────────────────────────────────────────────────────

    @property
    def rng(self) -> np.random.Generator:
        return self.context.rng

    @property
    def entities(self) -> List[EcosystemEntity]:
        """Every entity, species by species in enum order."""
        return [e for p in self.populations.values() for e in p]

    def get(self, entity_id: str) -> Optional[EcosystemEntity]:
        for population in self.populations.values():
            entity = population.get(entity_id)
            if entity is not None:
                return entity
        return None

    # ── Lifecycle API ────────────────────────────────────────────────────────

    def initialize(self) -> None:
        """(Re)seed environment and populations. Safe to call repeatedly."""
        cfg = self.config
        self.environment = Environment()
        self.metrics = EvolutionMetrics()
        self.associations = []
        self.interactions.reset()
        self.mutation_rate = cfg.lifecycle.mutation_rate
        self.reproduction_rate = cfg.lifecycle.reproduction_rate
        self.mutation_multiplier = 1.0
        self.reproduction_multiplier = 1.0
        # Surges scheduled before this point must not restore into the new state
        self.surge_generation += 1

        self._seed_environment()

        per_species = max(1, cfg.entity_count // len(Species))
        self.populations = {}
        for species in Species:
            population: Population[EcosystemEntity] = Population(
                species.value,
                target_size=per_species,
                min_size=int(per_species * cfg.min_population_fraction),
                cull_factor=1.5,
            )
            for _ in range(per_species):
                population.add(self.spawn(species))
            self.populations[species] = population

        logger.info(
            "Ecosystem initialized: %d entities across %d species, %d resources",
            len(self.entities), len(self.populations), len(self.environment.resources),
        )

    def reset(self) -> None:
        logger.info("Resetting ecosystem")
        self.initialize()

    def update(self) -> None:
        """Advance one tick."""
        self._run_phase("environment", self.update_environment)
        self._run_phase("entities", self.update_entities)
        self._run_phase("interactions", self.handle_interactions)
        self._run_phase("deaths", self.handle_deaths)
        self._run_phase("reproduction", self.handle_reproduction)
        self._run_phase("bounds", self.handle_bounds)
        self._run_phase("metrics", self.update_metrics)
        self._run_phase("adaptation", self.adapt_to_consciousness)

    def spawn(self, species: Species) -> EcosystemEntity:
        """A fresh first-generation entity at a random position."""
        rng = self.rng
        profile = SPECIES_PROFILES[species]
        genetics = Genetics.random(profile, rng)
        return EcosystemEntity(
            id=self.context.next_id(species.value),
            x=float(rng.random() * self.context.width),
            y=float(rng.random() * self.context.height),
            vx=float((rng.random() - 0.5) * 2),
            vy=float((rng.random() - 0.5) * 2),
            species=species,
            genetics=genetics,
            energy=genetics.energy,
            max_energy=genetics.energy * 1.5,
            color=list(profile.color),
        )

    # ── Environment ──────────────────────────────────────────────────────────

    def update_environment(self) -> None:
        cfg = self.config
        env = self.environment
        params = self.context.consciousness

        for resource in env.resources:
            resource.value = min(cfg.resource_cap, resource.value + resource.regeneration)

        # Oscillations on a 60-ticks-per-second clock
        seconds = self.context.tick / 60.0
        env.temperature_bias *= 0.995
        env.oxygen_factor += (1.0 - env.oxygen_factor) * 0.005
        env.temperature = float(np.clip(
            0.5 + math.sin(seconds) * 0.3 * params.coherence + env.temperature_bias, 0.0, 1.0))
        env.oxygen = float(np.clip(
            (0.6 + math.cos(seconds * 1.5) * 0.2 * params.emergence) * env.oxygen_factor, 0.0, 1.0))
        env.nutrients = float(np.clip(
            0.5 + math.sin(seconds * 0.8) * 0.3 * params.complexity, 0.0, 1.0))

        for toxin in env.toxins:
            toxin.toxicity -= toxin.decay
            toxin.radius *= 0.99
        env.toxins = [t for t in env.toxins if t.toxicity > 0.1 and t.radius > 5]

        if self.rng.random() < cfg.environmental_change_chance:
            self.introduce_environmental_change()

    def introduce_environmental_change(self, change: Optional[EnvironmentalChange] = None) -> EnvironmentalChange:
        """Apply one environmental change (random if not given)."""
        cfg = self.config
        env = self.environment
        rng = self.rng
        w, h = self.context.width, self.context.height
        if change is None:
            options = list(EnvironmentalChange)
            change = options[int(rng.integers(len(options)))]

        if change is EnvironmentalChange.RESOURCE_BLOOM:
            room = max(0, cfg.max_resources - len(env.resources))
            for _ in range(min(10, room)):
                env.resources.append(Resource(
                    float(rng.random() * w), float(rng.random() * h), cfg.resource_cap, ResourceKind.ENERGY, 0.2,
                ))
        elif change is EnvironmentalChange.TOXIN_SPILL:
            if len(env.toxins) < cfg.max_toxins:
                env.toxins.append(Toxin(float(rng.random() * w), float(rng.random() * h), 80.0, 0.8, 0.01))
        elif change is EnvironmentalChange.TEMPERATURE_SHIFT:
            env.temperature_bias = float(np.clip(env.temperature_bias + (rng.random() - 0.5) * 0.4, -0.5, 0.5))
        elif change is EnvironmentalChange.OXYGEN_DEPLETION:
            env.oxygen_factor *= 0.7

        logger.debug("Environmental change: %s", change.value)
        return change

    # ── Entities ─────────────────────────────────────────────────────────────

    def update_entities(self) -> None:
        """Metabolism, behavior, movement and environmental effects."""
        cfg = self.config
        tick = self.context.tick
        index = SpatialIndex(self.entities)

        for entity in index.agents:
            entity.age += 1
            entity.energy -= cfg.base_decay + entity.genetics.size * cfg.size_decay
            entity.reproduction_cooldown = max(0, entity.reproduction_cooldown - 1)
            entity.age_links()

            surroundings = Surroundings(
                neighbors=index.neighbors(entity, cfg.perception_radius),
                resources=self.resources_near(entity.x, entity.y, cfg.forage_radius),
            )
            select_action(entity, surroundings)
            move_entity(entity, self.context.width, self.context.height, self.rng, cfg.damping)

            self.apply_environment(entity)
            entity.clamp_energy()

            entity.fitness = self.lifecycle.fitness(entity, tick)
            entity.remember(MemoryRecord(entity.action, entity.energy, entity.fitness, tick))
            self.evolve_appearance(entity)

    def resources_near(self, x: float, y: float, radius: float) -> List[Resource]:
        return [
            r for r in self.environment.resources
            if r.value > 0 and math.hypot(r.x - x, r.y - y) < radius
        ]

    def apply_environment(self, entity: EcosystemEntity) -> None:
        env = self.environment
        entity.energy -= abs(env.temperature - 0.5) * 0.05
        if env.oxygen < 0.3:
            entity.energy -= 0.02

        for toxin in env.toxins:
            if math.hypot(entity.x - toxin.x, entity.y - toxin.y) < toxin.radius:
                entity.energy -= toxin.toxicity * 0.1

        for resource in env.resources:
            if resource.value <= 0:
                continue
            if math.hypot(entity.x - resource.x, entity.y - resource.y) < self.config.consume_radius:
                consumed = min(resource.value, max(0.0, entity.max_energy - entity.energy))
                entity.energy += consumed * entity.genetics.efficiency
                resource.value -= consumed

    def evolve_appearance(self, entity: EcosystemEntity) -> None:
        """Drift color with fitness and the consciousness parameters."""
        core = self.context.consciousness
        influence = entity.fitness / 100
        drift = (core.complexity, core.emergence, core.coherence)
        for i, param in enumerate(drift):
            entity.color[i] = min(255.0, max(0.0, entity.color[i] + (param - 0.5) * 2 * influence))

    # ── Interactions & lifecycle ─────────────────────────────────────────────

    def handle_interactions(self) -> None:
        self.associations = self.interactions.step(self.entities, self.rng)

    def handle_deaths(self) -> None:
        tally = self.lifecycle.remove_dead(self.populations.values(), self.rng)
        for cause, count in tally.items():
            self.metrics.deaths[cause.value] += count

    def handle_reproduction(self) -> None:
        tick = self.context.tick
        rate = self.reproduction_rate * self.reproduction_multiplier
        mutation = self.mutation_rate * self.mutation_multiplier
        for species, population in self.populations.items():
            born = self.lifecycle.reproduce(
                population, tick, self.rng,
                new_id=lambda s=species: self.context.next_id(s.value),
                rate=rate,
                mutation_rate=mutation,
            )
            for child in born:
                apply_boundary(child, self.context.width, self.context.height, BoundaryPolicy.WRAP)
            self.metrics.births += len(born)

    def handle_bounds(self) -> None:
        tick = self.context.tick
        for species, population in self.populations.items():
            self.lifecycle.cull(population, tick)
            self.lifecycle.replenish(population, self.spawn, species)
        self.lifecycle.prune_links(self.populations.values())

    # ── Metrics & adaptation ─────────────────────────────────────────────────

    def update_metrics(self) -> None:
        m = self.metrics
        m.associations = len(self.associations)
        m.cooperation = self.interactions.cooperation_total
        m.competition = self.interactions.competition_total
        self.interactions.decay_tallies(0.95)

        entities = self.entities
        if not entities:
            return

        m.avg_fitness = float(np.mean([e.fitness for e in entities]))
        traits = np.array([[getattr(e.genetics, t) for t in DIVERSITY_TRAITS] for e in entities])
        m.diversity = float(np.mean(np.std(traits, axis=0)))
        m.complexity = sum(len(e.links) for e in entities) / len(entities)
        m.generation = max(e.generation for e in entities)

    def adapt_to_consciousness(self) -> None:
        cfg = self.config
        core = self.context.consciousness
        self.mutation_rate = 0.05 + core.complexity * 0.1
        self.reproduction_rate = 0.001 + core.emergence * 0.005

        if core.coherence > cfg.coherence_threshold:
            self.environment.nutrients = min(1.0, self.environment.nutrients * 1.02)
        if core.adaptation > cfg.adaptation_threshold and self.rng.random() < cfg.adaptation_pressure_chance:
            self.introduce_environmental_change()

    def consciousness_surge(self) -> None:
        """Raise mutation and reproduction rates for surge_duration ticks."""
        cfg = self.config
        mutation, reproduction = cfg.surge_mutation_factor, cfg.surge_reproduction_factor
        self.mutation_multiplier *= mutation
        self.reproduction_multiplier *= reproduction
        generation = self.surge_generation

        def restore() -> None:
            if generation != self.surge_generation:
                return
            self.mutation_multiplier /= mutation
            self.reproduction_multiplier /= reproduction

        self.context.defer(cfg.surge_duration, restore, "ecosystem.surge_end")
        logger.info("Consciousness surge: mutation x%.2f, reproduction x%.2f", mutation, reproduction)

    # ── Rendering ────────────────────────────────────────────────────────────

    def render(self, canvas: Canvas) -> None:
        """Draw current state. Reads only."""
        self._render_environment(canvas)
        self._render_links(canvas)
        self._render_entities(canvas)
        self._render_metrics(canvas)

    def _render_environment(self, canvas: Canvas) -> None:
        env = self.environment
        for r in env.resources:
            color = (100, 255, 100) if r.kind is ResourceKind.ENERGY else (100, 100, 255)
            canvas.circle(r.x, r.y, math.sqrt(max(r.value, 0.0)), color, alpha=r.value / 30 * 0.6)
        for t in env.toxins:
            canvas.circle(t.x, t.y, t.radius, (255, 50, 50), alpha=t.toxicity * 0.5)

        white = (255, 255, 255)
        canvas.text(10, 30, f"Temp: {env.temperature * 100:.0f}%", white, 12)
        canvas.text(120, 30, f"O2: {env.oxygen * 100:.0f}%", white, 12)
        canvas.text(220, 30, f"Nutrients: {env.nutrients * 100:.0f}%", white, 12)

    def _render_links(self, canvas: Canvas) -> None:
        for entity in self.entities:
            for other_id, link in entity.links.items():
                other = self.get(other_id)
                if other is None or link.strength <= 0.3:
                    continue
                canvas.line(entity.x, entity.y, other.x, other.y, (100, 255, 100),
                            alpha=link.strength * 0.3, width=0.5)

    def _render_entities(self, canvas: Canvas) -> None:
        core = self.context.consciousness
        for e in self.entities:
            ratio = e.energy_ratio
            size = e.genetics.size * (0.8 + ratio * 0.4)
            canvas.circle(e.x, e.y, size, tuple(e.color), alpha=max(0.3, ratio))
            ring = (255, 0, 0) if ratio < 0.3 else (255, 255, 255)
            canvas.circle(e.x, e.y, size + 1, ring, alpha=0.6, fill=False)
            if e.age > 200:
                # Elder halo drifts with the consciousness palette
                halo = hsl_to_rgb(*core.evolutionary_hsl(e.genetics.adaptability, e.age, ratio))
                canvas.circle(e.x, e.y, size + 3, halo,
                              alpha=min(0.3, (e.age - 200) / 100 * 0.3), fill=False)

    def _render_metrics(self, canvas: Canvas) -> None:
        m = self.metrics
        x = canvas.width - 200
        canvas.rect(x - 10, 10, 190, 140, (0, 0, 0), alpha=0.7)
        lines = [
            "ECOSYSTEM METRICS",
            f"Total Entities: {len(self.entities)}",
            f"Avg Fitness: {m.avg_fitness:.1f}",
            f"Diversity: {m.diversity:.2f}",
            f"Cooperation: {m.cooperation:.2f}",
            f"Competition: {m.competition:.2f}",
            f"Complexity: {m.complexity:.1f}",
        ]
        for i, line in enumerate(lines):
            canvas.text(x, 30 + i * 12, line, (255, 255, 255), 11)
        for i, (species, population) in enumerate(self.populations.items()):
            canvas.text(x, 30 + (len(lines) + i) * 12, f"{species.value}: {len(population)}",
                        SPECIES_PROFILES[species].color, 11)

    # ── State ────────────────────────────────────────────────────────────────

    def get_state(self) -> dict:
        """Copy-out snapshot of populations, metrics and environment."""
        m = self.metrics
        env = self.environment
        return {
            "tick": self.context.tick,
            "populations": {s.value: len(p) for s, p in self.populations.items()},
            "total_entities": len(self.entities),
            "actions": self._action_counts(),
            "evolution": {
                "generation": m.generation,
                "avg_fitness": m.avg_fitness,
                "diversity": m.diversity,
                "cooperation": m.cooperation,
                "competition": m.competition,
                "complexity": m.complexity,
                "births": m.births,
                "deaths": dict(m.deaths),
                "associations": m.associations,
            },
            "environment": {
                "temperature": env.temperature,
                "oxygen": env.oxygen,
                "nutrients": env.nutrients,
                "resources": len(env.resources),
                "toxins": len(env.toxins),
            },
            "rates": {
                "mutation": self.mutation_rate * self.mutation_multiplier,
                "reproduction": self.reproduction_rate * self.reproduction_multiplier,
            },
        }

    # ── Internal ─────────────────────────────────────────────────────────────

    def _seed_environment(self) -> None:
        cfg = self.config
        rng = self.rng
        w, h = self.context.width, self.context.height
        count = min(cfg.max_resources, int(w * h * cfg.resource_density / 5000))
        for _ in range(count):
            self.environment.resources.append(Resource(
                x=float(rng.random() * w),
                y=float(rng.random() * h),
                value=float(rng.random() * 20 + 10),
                kind=ResourceKind.ENERGY if rng.random() > 0.5 else ResourceKind.NUTRIENTS,
                regeneration=float(rng.random() * 0.1 + 0.05),
            ))
        if rng.random() < cfg.initial_toxin_chance:
            self.environment.toxins.append(Toxin(
                x=float(rng.random() * w),
                y=float(rng.random() * h),
                radius=float(rng.random() * 50 + 20),
                toxicity=float(rng.random() * 0.5 + 0.3),
                decay=0.02,
            ))

    def _action_counts(self) -> Dict[str, int]:
        counts = {a.value: 0 for a in Action}
        for e in self.entities:
            counts[e.action.value] += 1
        return counts

    def _run_phase(self, name: str, step) -> None:
        try:
            step()
        except Exception:
            logger.exception("Ecosystem phase %r failed at tick %d; skipped", name, self.context.tick)
