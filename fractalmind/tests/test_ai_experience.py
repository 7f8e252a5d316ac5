"""Tests for AIExperience."""

import logging

import numpy as np
import pytest

from fractalmind.core.agents import ThreadKind
from fractalmind.core.ai_experience import AIExperience, AIExperienceConfig
from fractalmind.core.canvas import RecordingCanvas
from fractalmind.core.config import SimulationConfig
from fractalmind.core.context import SimulationContext


def make_ai(seed=21, thread_count=15):
    ctx = SimulationContext(SimulationConfig(ai_experience=AIExperienceConfig(thread_count=thread_count), seed=seed))
    return ctx, AIExperience(ctx)


def advance(ctx, ai, ticks=1):
    for _ in range(ticks):
        ctx.consciousness.evolve()
        ctx.run_deferred()
        ai.update()


def test_initial_threads():
    ctx, ai = make_ai(thread_count=15)
    assert len(ai.threads) == 15
    assert all(t.kind is not ThreadKind.META_COGNITION for t in ai.threads)
    assert len(ai.attention.nodes) == 8
    assert ai.metacognition is not None


def test_scalars_stay_bounded():
    """Thread and global scalars stay within [0, 1]."""
    ctx, ai = make_ai(seed=2)
    for _ in range(300):
        advance(ctx, ai)
        for t in ai.threads:
            assert 0.0 <= t.confidence <= 1.0
            assert 0.0 <= t.uncertainty <= 1.0
            assert 0.0 <= t.activity <= 1.0
        assert 0.0 <= ai.global_uncertainty <= 1.0
        assert 0.0 <= ai.average_confidence <= 1.0
        assert 0 <= ai.metacognition.recursive_depth <= ai.metacognition.max_depth


def test_meta_thread_retires_on_completion():
    """A self-reflection thread leaves the pool once its task completes."""
    ctx, ai = make_ai()
    meta = ai.spawn_meta_thread()
    assert meta.kind is ThreadKind.META_COGNITION
    meta.task_progress = 0.9999

    ai.update_threads()
    assert meta.retired
    assert meta not in ai.threads
    assert len(meta.history) == 1


def test_worker_gets_new_task_on_completion():
    ctx, ai = make_ai()
    worker = ai.threads[0]
    worker.task_progress = 0.9999
    ai.update_threads()
    assert worker in ai.threads
    assert worker.task_progress == 0.0
    assert len(worker.history) == 1


def test_missing_metacognition_is_rebuilt(caplog):
    """A missing meta layer logs a warning and is recreated."""
    ctx, ai = make_ai()
    ai.metacognition = None
    with caplog.at_level(logging.WARNING, logger="fractalmind.core.ai_experience"):
        ai.update_metacognition()
    assert "reinitializing" in caplog.text
    assert ai.metacognition is not None


def test_learning_from_history():
    """Enough successful experiences speed a thread up."""
    ctx, ai = make_ai()
    t = ai.threads[0]
    for _ in range(6):
        t.confidence = 1.0
        t.task_progress = 0.0
        ai.complete_task(t)
    speed = t.processing_speed
    ai.learn(t)
    assert t.processing_speed > speed


def test_learning_scales_with_rate():
    """A faster learner gains more speed from the same history."""
    ctx, ai = make_ai()
    slow, fast = ai.threads[0], ai.threads[1]
    slow.learning_rate, fast.learning_rate = 0.01, 0.1
    for t in (slow, fast):
        t.processing_speed = 1.0
        for _ in range(6):
            t.confidence = 1.0
            t.task_progress = 0.0
            ai.complete_task(t)
        ai.learn(t)
    assert slow.processing_speed == pytest.approx(1.01)
    assert fast.processing_speed == pytest.approx(1.1)


def test_render_draws_field_flow():
    """A steep field shows up as flow lines."""
    ctx, ai = make_ai()
    n = ai.field.size
    ai.field.uncertainty[:] = np.linspace(0.0, 1.0, n)[:, np.newaxis]
    ai.field.compute_gradient()
    canvas = RecordingCanvas()
    ai.render(canvas)
    assert canvas.count("line") >= (n - 2) * n


def test_field_follows_threads():
    ctx, ai = make_ai()
    advance(ctx, ai)
    state = ai.get_state()
    assert state["field"]["touched_cells"] > 0
    assert 0.0 <= state["field"]["mean_uncertainty"] <= 1.0


def test_render_reads_only():
    ctx, ai = make_ai()
    advance(ctx, ai, 5)
    state = ai.get_state()
    canvas = RecordingCanvas()
    ai.render(canvas)
    assert ai.get_state() == state
    assert canvas.count("rect") >= ai.field.size ** 2


def test_reset_restores_thread_count():
    ctx, ai = make_ai(thread_count=10)
    ai.spawn_meta_thread()
    ai.reset()
    assert len(ai.threads) == 10
    assert ai.get_state()["meta_threads"] == 0
