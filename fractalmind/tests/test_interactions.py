"""Tests for behavior selection, the interaction engine and thread exchange."""

import numpy as np
import pytest

from fractalmind.core.agents import (
    Action,
    EcosystemEntity,
    ExperienceRecord,
    Genetics,
    Message,
    ProcessingThread,
    Species,
    TaskKind,
    ThreadKind,
)
from fractalmind.core.behavior import Surroundings, identify_threats, move_entity, select_action
from fractalmind.core.interactions import (
    AssociationKind,
    InteractionConfig,
    InteractionEngine,
    ThreadExchange,
    ThreadExchangeConfig,
    hunt_success,
    predator_prey,
)


class FixedRng:
    """Stub generator: random() always returns value."""

    def __init__(self, value: float = 0.0):
        self.value = value

    def random(self):
        return self.value

    def uniform(self, low, high):
        return low


def genes(speed=1.0, size=3.0, aggression=0.0, cooperation=0.0):
    return Genetics(speed=speed, size=size, energy=1.0, aggression=aggression,
                    cooperation=cooperation, adaptability=0.5, efficiency=0.5)


def entity(id_, species=Species.CONSUMER, x=0.0, y=0.0, energy=0.5, max_energy=1.0, **traits):
    return EcosystemEntity(id=id_, x=x, y=y, species=species, genetics=genes(**traits),
                           energy=energy, max_energy=max_energy)


class Point:
    def __init__(self, x, y):
        self.x, self.y = x, y


# ── Behavior selection ───────────────────────────────────────────────────────


def test_forage_beats_flee():
    """A hungry entity with food and a predator nearby forages."""
    e = entity("e", energy=0.3)
    predator = entity("p", Species.PREDATOR, x=5.0)
    action = select_action(e, Surroundings([predator], [Point(10.0, 0.0)]))
    assert action is Action.FORAGING
    assert e.target == (10.0, 0.0)
    assert e.target_id is None


def test_flee_from_predator():
    """A fed entity flees from a predator and records its id."""
    e = entity("e", energy=0.5)
    predator = entity("p", Species.PREDATOR, x=5.0)
    assert select_action(e, Surroundings([predator], [])) is Action.FLEEING
    assert e.target_id == "p"


def test_predators_do_not_fear_predators():
    """Only non-predators treat predators as threats."""
    p = entity("p1", Species.PREDATOR)
    other = entity("p2", Species.PREDATOR)
    assert identify_threats(p, [other]) == []


def test_mating_requires_cooldown_zero():
    e = entity("e", energy=0.9)
    mate = entity("m")
    assert select_action(e, Surroundings([mate], [])) is Action.MATING
    e.reproduction_cooldown = 10
    assert select_action(e, Surroundings([mate], [])) is Action.WANDERING


def test_wandering_default():
    """No rule matches in empty surroundings."""
    e = entity("e")
    assert select_action(e, Surroundings([], [])) is Action.WANDERING
    assert e.target is None


def test_fleeing_moves_away():
    """Fleeing accelerates away from the threat."""
    e = entity("e", x=100.0, y=100.0, energy=1.0)
    e.action = Action.FLEEING
    e.target = (110.0, 100.0)
    move_entity(e, 800, 600, np.random.default_rng(0))
    assert e.vx < 0
    assert e.x < 100.0


def test_speed_capped_at_twice_gene():
    e = entity("e", x=100.0, y=100.0, energy=1.0, speed=1.0)
    e.vx = 50.0
    move_entity(e, 800, 600, np.random.default_rng(0))
    assert np.hypot(e.vx, e.vy) <= 2.0 + 1e-9


# ── Interaction effects ──────────────────────────────────────────────────────


def test_competition_effect_falloff():
    """Full cost at contact, zero at the competition radius."""
    engine = InteractionEngine()
    a = entity("a", aggression=1.0)
    b = entity("b", aggression=1.0)
    assert engine.competition_effect(a, b, 0.0) == pytest.approx(0.05)
    assert engine.competition_effect(a, b, 25.0) == 0.0


def test_cooperation_effect_falloff():
    engine = InteractionEngine()
    a = entity("a", cooperation=1.0)
    b = entity("b", Species.PRODUCER, cooperation=1.0)
    assert engine.cooperation_effect(a, b, 0.0) == pytest.approx(0.03)
    assert engine.cooperation_effect(a, b, 30.0) == 0.0


def test_competition_costs_both():
    engine = InteractionEngine()
    a = entity("a", energy=0.5, aggression=1.0)
    b = entity("b", x=0.0, energy=0.5, aggression=1.0)
    assoc = engine.compete(a, b, 0.0)
    assert assoc.kind is AssociationKind.COMPETITION
    assert a.energy == pytest.approx(0.45)
    assert b.energy == pytest.approx(0.45)


def test_cooperation_links_both_ways():
    """A cooperative pair gains energy and records symmetric links."""
    engine = InteractionEngine()
    a = entity("a", cooperation=0.8)
    b = entity("b", Species.PRODUCER, cooperation=0.6)
    engine.cooperate(a, b, 10.0)
    assert "b" in a.links and "a" in b.links
    assert a.energy > 0.5 and b.energy > 0.5


def test_weak_cooperation_no_link():
    engine = InteractionEngine()
    a = entity("a", cooperation=0.1)
    b = entity("b", Species.PRODUCER, cooperation=0.1)
    engine.cooperate(a, b, 10.0)
    assert a.links == {} and b.links == {}


def test_predation_at_contact():
    """A successful hunt at distance 0 moves 30% of prey energy, removes 70%."""
    engine = InteractionEngine()
    predator = entity("wolf", Species.PREDATOR, energy=0.5, speed=2.0, size=5.0)
    prey = entity("rabbit", Species.CONSUMER, energy=1.0, speed=1.0)

    found = engine.interact(predator, prey, 0.0, FixedRng(0.0))
    kinds = [a.kind for a in found]
    assert AssociationKind.PREDATION in kinds
    assert predator.energy == pytest.approx(0.8)
    assert prey.energy == pytest.approx(0.3)


def test_predation_fails_on_bad_roll():
    engine = InteractionEngine()
    predator = entity("wolf", Species.PREDATOR, speed=2.0, size=5.0)
    prey = entity("rabbit", energy=1.0)
    assert engine.hunt(predator, prey, 0.0, FixedRng(0.99)) is None
    assert prey.energy == 1.0


def test_predation_out_of_range():
    """Beyond size * 3 no hunt is attempted."""
    engine = InteractionEngine()
    predator = entity("wolf", Species.PREDATOR, size=5.0)
    prey = entity("rabbit")
    assert engine.hunt(predator, prey, 15.0, FixedRng(0.0)) is None


def test_predator_prey_roles():
    wolf = entity("w", Species.PREDATOR, speed=2.0)
    rabbit = entity("r", speed=1.0)
    bee = entity("b", Species.SYMBIONT)
    assert predator_prey(rabbit, wolf) == (wolf, rabbit)
    assert predator_prey(wolf, bee) is None
    assert hunt_success(wolf, rabbit) == pytest.approx(2.0 / 1.1)


def test_predation_disabled():
    engine = InteractionEngine(InteractionConfig(predation_enabled=False))
    predator = entity("wolf", Species.PREDATOR, energy=0.5, size=5.0)
    prey = entity("rabbit", energy=1.0)
    found = engine.interact(predator, prey, 40.0, FixedRng(0.0))
    assert [a.kind for a in found] == [AssociationKind.NEUTRAL]


def test_step_without_neighbors_is_empty():
    """Isolated entities produce no associations and no energy change."""
    engine = InteractionEngine()
    a = entity("a", x=0.0, aggression=1.0)
    b = entity("b", x=500.0, aggression=1.0)
    assert engine.step([a, b], np.random.default_rng(0)) == []
    assert a.energy == 0.5 and b.energy == 0.5


def test_associations_rebuilt_each_step():
    """A pair that drifts apart leaves no association behind."""
    engine = InteractionEngine()
    a = entity("a")
    b = entity("b", x=10.0)
    rng = np.random.default_rng(0)
    assert len(engine.step([a, b], rng)) == 1
    b.x = 400.0
    assert engine.step([a, b], rng) == []


def test_step_clamps_energy():
    """Energy never leaves [0, max_energy] after a pass."""
    engine = InteractionEngine(InteractionConfig(cooperation_gain=10.0))
    a = entity("a", energy=0.99, cooperation=1.0)
    b = entity("b", Species.PRODUCER, x=1.0, energy=0.99, cooperation=1.0)
    engine.step([a, b], np.random.default_rng(0))
    assert a.energy == 1.0 and b.energy == 1.0


def test_exhausted_prey_yields_nothing_to_predator():
    """Competition that drains a prey first leaves nothing for a later hunt."""
    engine = InteractionEngine()
    rival = entity("rival", x=0.0, energy=1.0, aggression=1.0)
    prey = entity("prey", x=0.0, energy=0.001, aggression=1.0)
    predator = entity("wolf", Species.PREDATOR, energy=0.5, speed=2.0, size=5.0)

    engine.interact(rival, prey, 0.0, FixedRng(0.0))
    assert prey.energy == 0.0

    engine.interact(predator, prey, 0.0, FixedRng(0.0))
    assert predator.energy >= 0.5
    assert prey.energy == 0.0


# ── Thread exchange ──────────────────────────────────────────────────────────


def thread(id_, x, confidence, kind=ThreadKind.PATTERN_RECOGNITION):
    return ProcessingThread(id=id_, x=x, y=0.0, kind=kind, confidence=confidence, uncertainty=0.5)


def test_exchange_pulls_confidence_together():
    exchange = ThreadExchange(ThreadExchangeConfig(message_chance=0.0))
    a, b = thread("a", 0.0, 0.2), thread("b", 10.0, 0.8)
    associations = exchange.communicate([a, b], np.random.default_rng(0))
    assert 0.2 < a.confidence < 0.8
    assert len(associations) == 1
    assert associations[0].kind is AssociationKind.RESONANCE
    assert associations[0].strength == pytest.approx(1 / 11)


def test_exchange_synthesis_between_kinds():
    exchange = ThreadExchange(ThreadExchangeConfig(message_chance=0.0))
    a = thread("a", 0.0, 0.5)
    b = thread("b", 10.0, 0.5, ThreadKind.LOGICAL_REASONING)
    [assoc] = exchange.communicate([a, b], np.random.default_rng(0))
    assert assoc.kind is AssociationKind.SYNTHESIS


def test_drain_messages_learns():
    exchange = ThreadExchange()
    t = thread("t", 0.0, 0.5)
    record = ExperienceRecord(TaskKind.UPDATING_BELIEFS, 0.5, True, 1.0, 10.0)
    t.messages.append(Message("other", (record, record), 0.9))
    assert exchange.drain_messages(t) == 1
    assert t.confidence == pytest.approx(0.52)
    assert not t.messages
