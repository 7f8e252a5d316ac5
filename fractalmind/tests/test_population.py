"""Tests for agents, genetics and Population."""

import numpy as np
import pytest

from fractalmind.core.agents import (
    SPECIES_PROFILES,
    TRAIT_NAMES,
    Agent,
    EcosystemEntity,
    Genetics,
    LinkKind,
    Species,
)
from fractalmind.core.population import Population


def agent(id_, fitness=0.0):
    a = EcosystemEntity(id=id_, x=0.0, y=0.0)
    a.fitness = fitness
    return a


# ── Agents ───────────────────────────────────────────────────────────────────


def test_history_is_bounded():
    """The history ring buffer evicts the oldest record."""
    a = Agent(id="a", x=0, y=0)
    for i in range(25):
        a.remember(i)
    assert len(a.history) == 20
    assert a.history[0] == 5


def test_link_to_once():
    """Links are created once and never to self."""
    a = Agent(id="a", x=0, y=0)
    assert a.link_to("b", 0.6)
    assert not a.link_to("b", 0.9)
    assert not a.link_to("a", 0.5)
    assert a.links["b"].strength == 0.6
    assert a.links["b"].kind is LinkKind.SYMBIOSIS


def test_link_strength_clamped():
    a = Agent(id="a", x=0, y=0)
    a.link_to("b", 3.0)
    assert a.links["b"].strength == 1.0


def test_forget_missing():
    """Links to ids no longer alive are dropped."""
    a = Agent(id="a", x=0, y=0)
    a.link_to("b", 0.5)
    a.link_to("c", 0.5)
    assert a.forget_missing({"b"}) == 1
    assert list(a.links) == ["b"]


def test_energy_ratio_and_clamp():
    e = EcosystemEntity(id="e", x=0, y=0, energy=60.0, max_energy=50.0)
    e.clamp_energy()
    assert e.energy == 50.0
    assert e.energy_ratio == 1.0
    e.energy = -1.0
    e.clamp_energy()
    assert e.energy_ratio == 0.0


def test_genetics_blend_is_mean():
    """Blended genetics are the component-wise mean."""
    rng = np.random.default_rng(0)
    profile = SPECIES_PROFILES[Species.CONSUMER]
    a, b = Genetics.random(profile, rng), Genetics.random(profile, rng)
    child = Genetics.blend(a, b)
    np.testing.assert_allclose(child.as_array(), (a.as_array() + b.as_array()) / 2)


def test_genetics_array_round_trip_order():
    """as_array follows TRAIT_NAMES order."""
    g = Genetics.from_array(range(len(TRAIT_NAMES)))
    assert g.speed == 0.0
    assert g.efficiency == float(len(TRAIT_NAMES) - 1)


# ── Population ───────────────────────────────────────────────────────────────


def test_population_rejects_bad_target():
    with pytest.raises(ValueError):
        Population("p", 0)


def test_duplicate_id_rejected():
    pop = Population("p", 10)
    pop.add(agent("a"))
    with pytest.raises(ValueError):
        pop.add(agent("a"))


def test_get_returns_none_for_missing():
    """Lookup of a removed agent is None, not an error."""
    pop = Population("p", 10)
    pop.add(agent("a"))
    pop.retain(lambda x: False)
    assert pop.get("a") is None
    assert "a" not in pop


def test_retain_keeps_order():
    pop = Population("p", 10)
    pop.extend(agent(i) for i in "abcde")
    removed = pop.retain(lambda x: x.id in "bd")
    assert pop.ids() == ["a", "c", "e"]
    assert [r.id for r in removed] == ["b", "d"]


def test_cull_keeps_fittest():
    """Above soft_max, the lowest fitness agents are dropped."""
    pop = Population("p", target_size=2, cull_factor=1.5)
    assert pop.soft_max == 3
    pop.extend([agent("a", 1), agent("b", 5), agent("c", 3), agent("d", 4), agent("e", 2)])

    removed = pop.cull(lambda x: x.fitness)
    assert sorted(pop.ids()) == ["b", "c", "d"]
    assert sorted(r.id for r in removed) == ["a", "e"]


def test_cull_noop_below_soft_max():
    pop = Population("p", target_size=10)
    pop.extend(agent(i) for i in "abc")
    assert pop.cull(lambda x: x.fitness) == []
    assert len(pop) == 3


def test_min_size_capped_by_target():
    assert Population("p", 5, min_size=50).min_size == 5
