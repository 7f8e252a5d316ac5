# ═══════════════════════════════════════════════════════════════════════════════
# PART 6: BEHAVIOR SELECTION & MOVEMENT
# Design: H3 (Enactivism) | Implementation: I2 (Numerics)
# ═══════════════════════════════════════════════════════════════════════════════

"""
H3: "Behavior is a short priority list read top to bottom. The first rule
whose condition holds wins; nothing is weighed or blended. Movement then
follows the chosen target."
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Callable, List, Optional, Sequence, Tuple

import numpy as np

from fractalmind.core.agents import (
    Action,
    EcosystemEntity,
    PREDATOR_SPECIES,
)
from fractalmind.core.spatial import BoundaryPolicy, apply_boundary, limit_speed


@dataclass
class Surroundings:
    """What an entity perceives before choosing an action."""
    neighbors: Sequence[EcosystemEntity]
    resources: Sequence  # Resource-like objects with x, y, value


@dataclass(frozen=True)
class DecisionRule:
    action: Action
    condition: Callable[[EcosystemEntity, Surroundings], bool]
    target: Callable[[EcosystemEntity, Surroundings], Optional[object]]


# ── Predicates ───────────────────────────────────────────────────────────────


def identify_threats(entity: EcosystemEntity, neighbors: Sequence[EcosystemEntity]) -> List[EcosystemEntity]:
    """Predators (for non-predators) and aggressive, better-fed neighbors."""
    threats = []
    for other in neighbors:
        if other.species in PREDATOR_SPECIES and entity.species not in PREDATOR_SPECIES:
            threats.append(other)
        elif other.genetics.aggression > 0.7 and other.energy > entity.energy:
            threats.append(other)
    return threats


def _mates(entity, s):
    return [e for e in s.neighbors if e.species is entity.species]


def _strangers(entity, s):
    return [e for e in s.neighbors if e.species is not entity.species]


def _first(items):
    return items[0] if items else None


# Order is priority. Radii are baked into how Surroundings was gathered.
DECISION_RULES: Tuple[DecisionRule, ...] = (
    DecisionRule(
        Action.FORAGING,
        lambda e, s: e.energy_ratio < 0.4 and len(s.resources) > 0,
        lambda e, s: _first(s.resources),
    ),
    DecisionRule(
        Action.FLEEING,
        lambda e, s: len(identify_threats(e, s.neighbors)) > 0,
        lambda e, s: _first(identify_threats(e, s.neighbors)),
    ),
    DecisionRule(
        Action.MATING,
        lambda e, s: e.energy_ratio > 0.7 and e.reproduction_cooldown == 0 and len(_mates(e, s)) > 0,
        lambda e, s: _first(_mates(e, s)),
    ),
    DecisionRule(
        Action.COOPERATING,
        lambda e, s: e.genetics.cooperation > 0.5 and len(_strangers(e, s)) > 0,
        lambda e, s: _first(_strangers(e, s)),
    ),
    DecisionRule(
        Action.COMPETING,
        lambda e, s: e.genetics.aggression > 0.5 and len(_mates(e, s)) > 2,
        lambda e, s: _first(_mates(e, s)),
    ),
)


def select_action(
    entity: EcosystemEntity,
    surroundings: Surroundings,
    rules: Sequence[DecisionRule] = DECISION_RULES,
) -> Action:
    """
    Walk the decision table and apply the first matching rule.

    Sets entity.action, entity.target (position snapshot) and
    entity.target_id (agent id, or None for resources and wandering).
    """
    for rule in rules:
        if rule.condition(entity, surroundings):
            target = rule.target(entity, surroundings)
            entity.action = rule.action
            entity.target = (target.x, target.y) if target is not None else None
            entity.target_id = getattr(target, "id", None)
            return rule.action

    entity.action = Action.WANDERING
    entity.target = None
    entity.target_id = None
    return Action.WANDERING


def move_entity(
    entity: EcosystemEntity,
    width: float,
    height: float,
    rng: np.random.Generator,
    damping: float = 0.95,
    policy: BoundaryPolicy = BoundaryPolicy.WRAP,
) -> None:
    """Nudge toward (or away from) the target, damp, cap, integrate, wrap."""
    if entity.target is not None:
        tx, ty = entity.target
        if entity.action is Action.FLEEING:
            tx = entity.x - (tx - entity.x)
            ty = entity.y - (ty - entity.y)
    else:
        tx = entity.x + (rng.random() - 0.5) * 20
        ty = entity.y + (rng.random() - 0.5) * 20

    dx = tx - entity.x
    dy = ty - entity.y
    dist = math.hypot(dx, dy)
    if dist > 0:
        speed = entity.genetics.speed * entity.energy_ratio
        entity.vx += dx / dist * speed * 0.1
        entity.vy += dy / dist * speed * 0.1

    entity.vx *= damping
    entity.vy *= damping
    limit_speed(entity, entity.genetics.speed * 2)

    entity.x += entity.vx
    entity.y += entity.vy
    apply_boundary(entity, width, height, policy)
