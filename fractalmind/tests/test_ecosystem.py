"""Tests for DigitalEcosystem."""

import logging

import pytest

from fractalmind.core.agents import Species
from fractalmind.core.canvas import RecordingCanvas, hsl_to_rgb
from fractalmind.core.config import SimulationConfig
from fractalmind.core.context import SimulationContext
from fractalmind.core.ecosystem import DigitalEcosystem, EcosystemConfig, EnvironmentalChange


def make_ecosystem(seed=11, entity_count=25):
    ctx = SimulationContext(SimulationConfig(ecosystem=EcosystemConfig(entity_count=entity_count), seed=seed))
    return ctx, DigitalEcosystem(ctx)


def advance(ctx, eco, ticks=1):
    for _ in range(ticks):
        ctx.consciousness.evolve()
        ctx.run_deferred()
        eco.update()


# ── Initialization ───────────────────────────────────────────────────────────


def test_initial_populations_split_evenly():
    ctx, eco = make_ecosystem(entity_count=25)
    assert set(eco.populations) == set(Species)
    assert all(len(p) == 5 for p in eco.populations.values())
    assert len(eco.environment.resources) > 0


def test_reset_reseeds():
    """reset() restores the starting population size."""
    ctx, eco = make_ecosystem()
    advance(ctx, eco, 50)
    eco.reset()
    assert len(eco.entities) == 25
    assert eco.metrics.births == 0


def test_entity_ids_unique():
    ctx, eco = make_ecosystem()
    advance(ctx, eco, 100)
    ids = [e.id for e in eco.entities]
    assert len(ids) == len(set(ids))


# ── Invariants over time ─────────────────────────────────────────────────────


def test_energy_and_traits_stay_bounded():
    """Energy ratio stays in [0, 1] and unit traits in [0, 1] every tick."""
    ctx, eco = make_ecosystem(seed=3)
    for _ in range(300):
        advance(ctx, eco)
        for e in eco.entities:
            assert 0.0 <= e.energy_ratio <= 1.0
            assert 0.0 <= e.genetics.cooperation <= 1.0
            assert 0.0 <= e.genetics.aggression <= 1.0
            assert 0 <= e.x <= ctx.width and 0 <= e.y <= ctx.height


def test_ages_increase_monotonically():
    """Every surviving entity ages by exactly one per tick."""
    ctx, eco = make_ecosystem(seed=5)
    ages = {e.id: e.age for e in eco.entities}
    for _ in range(30):
        advance(ctx, eco)
        for e in eco.entities:
            if e.id in ages:
                assert e.age == ages[e.id] + 1
        ages = {e.id: e.age for e in eco.entities}


def test_populations_never_below_minimum():
    ctx, eco = make_ecosystem(seed=8)
    for _ in range(200):
        advance(ctx, eco)
        for population in eco.populations.values():
            assert len(population) >= population.min_size
            assert len(population) <= population.soft_max


def test_no_dangling_links():
    """Links only ever name living entities after a tick."""
    ctx, eco = make_ecosystem(seed=9)
    for _ in range(100):
        advance(ctx, eco)
        live = {e.id for e in eco.entities}
        for e in eco.entities:
            assert set(e.links) <= live


# ── Consciousness coupling ───────────────────────────────────────────────────


def test_rates_follow_consciousness():
    ctx, eco = make_ecosystem()
    advance(ctx, eco)
    core = ctx.consciousness
    assert eco.mutation_rate == pytest.approx(0.05 + core.complexity * 0.1)
    assert eco.reproduction_rate == pytest.approx(0.001 + core.emergence * 0.005)


def test_surge_restores_after_duration():
    """Surge multipliers return to 1 once the deferred restore runs."""
    ctx, eco = make_ecosystem()
    eco.consciousness_surge()
    assert eco.mutation_multiplier == pytest.approx(1.3)
    assert eco.reproduction_multiplier == pytest.approx(1.2)

    advance(ctx, eco, 599)
    assert eco.mutation_multiplier == pytest.approx(1.3)
    advance(ctx, eco, 1)
    assert eco.mutation_multiplier == pytest.approx(1.0)
    assert eco.reproduction_multiplier == pytest.approx(1.0)


def test_reset_during_surge_keeps_base_rates():
    """A surge restore scheduled before reset leaves the fresh state alone."""
    ctx, eco = make_ecosystem()
    eco.consciousness_surge()
    eco.reset()
    for _ in range(700):
        ctx.consciousness.evolve()
        ctx.run_deferred()
    assert eco.mutation_multiplier == pytest.approx(1.0)
    assert eco.reproduction_multiplier == pytest.approx(1.0)


def test_surge_after_reset_still_restores():
    ctx, eco = make_ecosystem()
    eco.reset()
    eco.consciousness_surge()
    advance(ctx, eco, 600)
    assert eco.mutation_multiplier == pytest.approx(1.0)


def test_bloom_resources_within_cap():
    """Bloomed resources start at the regeneration cap, not above it."""
    ctx, eco = make_ecosystem()
    before = len(eco.environment.resources)
    eco.introduce_environmental_change(EnvironmentalChange.RESOURCE_BLOOM)
    bloomed = eco.environment.resources[before:]
    assert bloomed
    assert all(r.value == eco.config.resource_cap for r in bloomed)


def test_environmental_changes():
    ctx, eco = make_ecosystem()
    before = len(eco.environment.resources)
    eco.introduce_environmental_change(EnvironmentalChange.RESOURCE_BLOOM)
    assert len(eco.environment.resources) == min(before + 10, eco.config.max_resources)

    toxins = len(eco.environment.toxins)
    eco.introduce_environmental_change(EnvironmentalChange.TOXIN_SPILL)
    assert len(eco.environment.toxins) == toxins + 1

    eco.introduce_environmental_change(EnvironmentalChange.OXYGEN_DEPLETION)
    assert eco.environment.oxygen_factor == pytest.approx(0.7)


def test_toxins_capped():
    ctx, eco = make_ecosystem()
    for _ in range(50):
        eco.introduce_environmental_change(EnvironmentalChange.TOXIN_SPILL)
    assert len(eco.environment.toxins) == eco.config.max_toxins


# ── Rendering & state ────────────────────────────────────────────────────────


def test_render_does_not_mutate():
    """Rendering twice leaves state and positions untouched."""
    ctx, eco = make_ecosystem()
    advance(ctx, eco, 10)
    state = eco.get_state()
    positions = [(e.x, e.y, e.energy) for e in eco.entities]

    canvas = RecordingCanvas()
    eco.render(canvas)
    eco.render(canvas)

    assert eco.get_state() == state
    assert [(e.x, e.y, e.energy) for e in eco.entities] == positions
    assert canvas.count("circle") >= len(eco.entities)


def test_elder_halo_follows_consciousness_palette():
    ctx, eco = make_ecosystem()
    elder = eco.entities[0]
    elder.age = 250
    expected = hsl_to_rgb(*ctx.consciousness.evolutionary_hsl(
        elder.genetics.adaptability, elder.age, elder.energy_ratio))

    canvas = RecordingCanvas()
    eco.render(canvas)
    halos = [c for c in canvas.commands
             if c.op == "circle" and c.args["x"] == elder.x and c.args["color"] == expected]
    assert len(halos) == 1


def test_get_state_is_a_copy():
    ctx, eco = make_ecosystem()
    state = eco.get_state()
    state["evolution"]["deaths"]["starvation"] = 999
    assert eco.metrics.deaths["starvation"] != 999
    assert state["total_entities"] == sum(state["populations"].values())


def test_failed_phase_is_logged_and_skipped(caplog):
    """A failing phase does not stop the others."""
    ctx, eco = make_ecosystem()

    def boom():
        raise RuntimeError("boom")

    eco.update_environment = boom
    ages = {e.id: e.age for e in eco.entities}
    with caplog.at_level(logging.ERROR, logger="fractalmind.core.ecosystem"):
        advance(ctx, eco)

    assert "environment" in caplog.text
    assert any(e.age == ages[e.id] + 1 for e in eco.entities if e.id in ages)
