"""Tests for ConsciousnessCore."""

import math

import numpy as np
import pytest

from fractalmind.core.consciousness import (
    PARAMETER_NAMES,
    Attractor,
    ConsciousnessConfig,
    ConsciousnessCore,
    NoveltyKind,
)


class FixedRng:
    """Stub generator: random() always returns value, uniform() returns its midpoint."""

    def __init__(self, value: float = 0.0):
        self.value = value

    def random(self):
        return self.value

    def uniform(self, low, high):
        return (low + high) / 2


# ── Evolution ────────────────────────────────────────────────────────────────


def test_initial_state():
    """A fresh core sits at tick 0, cycle 0, phase shift 0."""
    core = ConsciousnessCore(rng=np.random.default_rng(0))
    state = core.get_state()
    assert state.time == 0
    assert state.cycle == 0
    assert state.phase_shift == 0.0
    assert set(core.parameters) == set(PARAMETER_NAMES)


def test_evolve_advances_time():
    """Each evolve() advances the tick counter by one."""
    core = ConsciousnessCore(rng=np.random.default_rng(0))
    for expected in range(1, 11):
        core.evolve()
        assert core.time == expected


def test_parameters_stay_in_bounds():
    """Parameters stay within [0.1, 0.9] across several transitions."""
    core = ConsciousnessCore(rng=np.random.default_rng(1))
    for _ in range(5000):
        core.evolve()
        for name in PARAMETER_NAMES:
            assert 0.1 <= core.parameters[name] <= 0.9


def test_extreme_amplitude_is_clamped():
    """Even a huge attractor amplitude cannot push parameters out of range."""
    cfg = ConsciousnessConfig(attractors={
        name: Attractor(1.0, 5.0, [2.0, 3.0]) for name in PARAMETER_NAMES
    })
    core = ConsciousnessCore(cfg, rng=np.random.default_rng(2))
    for _ in range(3000):
        core.evolve()
        assert all(0.1 <= v <= 0.9 for v in core.parameters.values())


def test_attractor_formula_single_tick():
    """Tick 1 matches the superposition formula by hand."""
    a = Attractor(0.7, 0.3, [1.9, 3.1, 0.5])
    cfg = ConsciousnessConfig(attractors={name: a for name in PARAMETER_NAMES})
    core = ConsciousnessCore(cfg, rng=np.random.default_rng(0))
    core.evolve()

    t = 1 * cfg.evolution_speed
    expected = 0.5 + math.sin(t * 0.7) * 0.3
    for i, h in enumerate(a.harmonics):
        expected += math.sin(t * h) * 0.3 * cfg.harmonic_gain / (i + 1)
    expected += math.cos(t * 0.7) * 0.05
    np.testing.assert_allclose(core.complexity, expected, atol=1e-12)


# ── Phase transitions ────────────────────────────────────────────────────────


def test_phase_transition_periodicity():
    """3000 ticks give exactly two transitions and time 3000."""
    core = ConsciousnessCore(rng=np.random.default_rng(3))
    transitions = [t for t in (core.evolve() for _ in range(3000)) if t is not None]

    state = core.get_state()
    assert state.cycle == 2
    assert state.time == 3000
    assert state.to_dict()["evolution"]["time"] == 3000
    assert [t.time for t in transitions] == [1500, 3000]


def test_phase_transition_shifts_phase():
    """A transition adds pi/3 to the phase shift and records the tick."""
    core = ConsciousnessCore(rng=np.random.default_rng(4))
    for _ in range(1500):
        core.evolve()
    np.testing.assert_allclose(core.phase_shift, math.pi / 3)
    assert core.last_transition == 1500


def test_phase_transition_perturbs_attractors_within_bounds():
    """Amplitudes stay in [0.1, 0.4] and frequencies move at most 0.05."""
    core = ConsciousnessCore(rng=np.random.default_rng(5))
    before = {n: (a.frequency, a.amplitude) for n, a in core.attractors.items()}
    core.trigger_phase_transition()
    for name, attractor in core.attractors.items():
        assert abs(attractor.frequency - before[name][0]) <= 0.05 + 1e-12
        assert 0.1 <= attractor.amplitude <= 0.4


def test_transition_does_not_touch_config_attractors():
    """Attractor drift works on a private copy."""
    cfg = ConsciousnessConfig()
    core = ConsciousnessCore(cfg, rng=np.random.default_rng(6))
    original = cfg.attractors["complexity"].frequency
    for _ in range(5):
        core.trigger_phase_transition()
    assert cfg.attractors["complexity"].frequency == original


def test_novelty_forced():
    """With every draw succeeding, both novelty kinds are emitted."""
    core = ConsciousnessCore(rng=FixedRng(0.0))
    transition = core.trigger_phase_transition()
    assert transition.novelty == (NoveltyKind.ECOSYSTEM_INJECTION, NoveltyKind.CONSCIOUSNESS_SURGE)


def test_novelty_suppressed():
    """With every draw failing, no novelty is emitted."""
    core = ConsciousnessCore(rng=FixedRng(0.99))
    assert core.trigger_phase_transition().novelty == ()


def test_reset_restores_initial_state():
    """reset() returns to tick 0 and the configured attractors."""
    core = ConsciousnessCore(rng=np.random.default_rng(7))
    for _ in range(1600):
        core.evolve()
    core.reset()
    assert core.time == 0
    assert core.cycle == 0
    assert core.attractors["complexity"].frequency == pytest.approx(0.7)


# ── Derived measures ─────────────────────────────────────────────────────────


def test_entropy_is_population_std():
    """Entropy is the population standard deviation of the parameters."""
    core = ConsciousnessCore(rng=np.random.default_rng(0))
    core.parameters = {"complexity": 0.2, "emergence": 0.4, "coherence": 0.6, "adaptation": 0.8}
    np.testing.assert_allclose(core.calculate_entropy(), np.std([0.2, 0.4, 0.6, 0.8]))


def test_entropy_zero_when_uniform():
    """Identical parameters have zero entropy."""
    core = ConsciousnessCore(rng=np.random.default_rng(0))
    core.parameters = {name: 0.5 for name in PARAMETER_NAMES}
    assert core.calculate_entropy() == 0.0


def test_coherence_formula():
    """Coherence blends balance and synergy, clipped to [0, 1]."""
    core = ConsciousnessCore(rng=np.random.default_rng(0))
    core.parameters = {name: 0.5 for name in PARAMETER_NAMES}
    # balance 1, synergy (0.25 + 0.25) / 2 = 0.25
    np.testing.assert_allclose(core.calculate_coherence(), (1.0 + 0.25) / 2)


def test_get_state_is_immutable_snapshot():
    """The snapshot does not follow later evolution."""
    core = ConsciousnessCore(rng=np.random.default_rng(0))
    core.evolve()
    state = core.get_state()
    snapshot = state.parameters.as_tuple()
    for _ in range(100):
        core.evolve()
    assert state.parameters.as_tuple() == snapshot
    with pytest.raises(Exception):
        state.time = 99


def test_evolutionary_hsl_ranges():
    """Hue is in [0, 360) and saturation capped at 100."""
    core = ConsciousnessCore(rng=np.random.default_rng(0))
    for offset in (0, 100, 10000):
        h, s, l = core.evolutionary_hsl(0.5, offset, 1.0)
        assert 0 <= h < 360
        assert s <= 100
