# ═══════════════════════════════════════════════════════════════════════════════
# PART 13: AI EXPERIENCE
# Design: H2 (Higher-Order Theories) + P2 (Complexity Science)
# Implementation: I4 (Integration)
# ═══════════════════════════════════════════════════════════════════════════════

"""
P2: "Many small workers, each grinding on a task, each nudging its
neighbors' confidence. Attention drifts to wherever activity peaks;
uncertainty pools and spreads across the field."

H2: "On top of that sits a layer that watches the workers and, now and
then, spawns a worker whose task is to watch itself."

I4: "Every subsystem updates under its own guard. If one fails it is
logged and skipped for the tick; if the meta layer goes missing it is
rebuilt on the next update."
"""

from __future__ import annotations

import logging
import math
from collections import deque
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, List, Optional

import numpy as np

from fractalmind.core.agents import (
    ExperienceRecord,
    ProcessingThread,
    Task,
    ThreadKind,
    WORKER_KINDS,
)
from fractalmind.core.canvas import Canvas, hsl_to_rgb
from fractalmind.core.interactions import Association, ThreadExchange, ThreadExchangeConfig
from fractalmind.core.metacognition import MetaCognition, MetaCognitionConfig
from fractalmind.core.signals import (
    AttentionPool,
    CascadeField,
    ContextStack,
    InsightGenerator,
    SignalConfig,
    WaveField,
)
from fractalmind.core.uncertainty_field import UncertaintyField, UncertaintyFieldConfig

if TYPE_CHECKING:
    from fractalmind.core.context import SimulationContext

logger = logging.getLogger(__name__)

META_HUE = 300.0


@dataclass
class AIExperienceConfig:
    """Configuration for the AI experience simulation."""
    thread_count: int = 25
    progress_rate: float = 0.02          # Task progress per tick per unit speed
    confidence_rate: float = 0.01
    history_length: int = 50             # Experience ring buffer per thread
    learning_window: int = 5             # Recent experiences used for learning
    learning_success: float = 0.7        # Success ratio that speeds a thread up

    signals: SignalConfig = field(default_factory=SignalConfig)
    uncertainty_field: UncertaintyFieldConfig = field(default_factory=UncertaintyFieldConfig)
    exchange: ThreadExchangeConfig = field(default_factory=ThreadExchangeConfig)
    metacognition: MetaCognitionConfig = field(default_factory=MetaCognitionConfig)


class AIExperience:
    """
    Parallel processing threads with attention, uncertainty and insight.

    Update order per tick:
        threads -> exchange -> attention -> field -> context -> cascades
        -> insights -> global state -> meta-cognition -> waves
    """

    name = "ai_experience"

    def __init__(self, context: "SimulationContext", config: Optional[AIExperienceConfig] = None) -> None:
        self.context = context
        self.config = config or context.config.ai_experience
        self.exchange = ThreadExchange(self.config.exchange)
        self.threads: List[ProcessingThread] = []
        self.associations: List[Association] = []
        self.attention = AttentionPool(self.config.signals)
        self.insights = InsightGenerator(self.config.signals)
        self.cascades = CascadeField(self.config.signals)
        self.waves = WaveField(self.config.signals)
        self.context_stack = ContextStack(self.config.signals)
        self.field = UncertaintyField(self.config.uncertainty_field)
        self.metacognition: Optional[MetaCognition] = None
        self.global_uncertainty = 0.5
        self.average_confidence = 0.5
        self.processing_load = 0.0
        self.initialize()

    # ── Properties ───────────────────────────────────────────────────────────

    @property
    def rng(self) -> np.random.Generator:
        return self.context.rng

    # ── Lifecycle API ────────────────────────────────────────────────────────

    def initialize(self) -> None:
        """(Re)create threads, attention, field and meta layer."""
        ctx = self.context
        self.threads = []
        self.associations = []
        for _ in range(self.config.thread_count):
            self.create_thread()

        self.attention.initialize(self.rng, ctx.width, ctx.height, ctx.next_id)
        self.field = UncertaintyField(self.config.uncertainty_field, self.rng)
        self.insights.clear()
        self.cascades.clear()
        self.waves.clear()
        self.context_stack.clear()
        self.initialize_metacognition()
        self.global_uncertainty = 0.5
        self.average_confidence = 0.5
        self.processing_load = 0.0
        logger.info("AI experience initialized with %d threads", len(self.threads))

    def initialize_metacognition(self) -> None:
        ctx = self.context
        self.metacognition = MetaCognition(self.config.metacognition, self.rng, ctx.width, ctx.height)

    def reset(self) -> None:
        logger.info("Resetting AI experience")
        self.initialize()

    def update(self) -> None:
        """Advance one tick."""
        self._run_phase("threads", self.update_threads)
        self._run_phase("exchange", self.update_exchange)
        self._run_phase("attention", self.update_attention)
        self._run_phase("field", self.update_field)
        self._run_phase("context", self.update_context)
        self._run_phase("cascades", self.update_cascades)
        self._run_phase("insights", self.update_insights)
        self._run_phase("global", self.update_global_state)
        self._run_phase("metacognition", self.update_metacognition)
        self._run_phase("waves", self.update_waves)

    def create_thread(self, kind: Optional[ThreadKind] = None) -> ProcessingThread:
        rng = self.rng
        ctx = self.context
        if kind is None:
            kind = WORKER_KINDS[int(rng.integers(len(WORKER_KINDS)))]
        thread = ProcessingThread(
            id=ctx.next_id("thread"),
            x=float(rng.random() * ctx.width),
            y=float(rng.random() * ctx.height),
            history=deque(maxlen=self.config.history_length),
            kind=kind,
            processing_speed=float(0.5 + rng.random() * 0.5),
            efficiency=float(rng.random()),
            task=Task.random(rng),
            hue=float(rng.random() * 360),
            pulsation=float(rng.random() * 2 * math.pi),
            learning_rate=float(0.01 + rng.random() * 0.09),
        )
        self.threads.append(thread)
        return thread

    def spawn_meta_thread(self) -> ProcessingThread:
        """A thread whose task is reflecting on the system itself."""
        thread = self.create_thread(ThreadKind.META_COGNITION)
        thread.task = Task.self_reflection(self.rng)
        thread.hue = META_HUE
        return thread

    # ── Threads ──────────────────────────────────────────────────────────────

    def update_threads(self) -> None:
        cfg = self.config
        tick = self.context.tick

        for thread in self.threads:
            task = thread.task
            thread.task_progress += thread.processing_speed * cfg.progress_rate

            expected = thread.task_progress / task.time_remaining if task.time_remaining > 0 else 1.0
            thread.confidence += (expected - task.complexity) * cfg.confidence_rate
            thread.confidence = min(1.0, max(0.0, thread.confidence))
            thread.uncertainty = 1.0 - thread.confidence

            thread.activity = math.sin(tick * 0.1 + thread.pulsation) * 0.5 + 0.5
            thread.pulsation += 0.1 * thread.processing_speed

            if thread.task_progress >= 1.0:
                self.complete_task(thread)

            self.learn(thread)
            thread.clamp_scalars()

        retired = [t for t in self.threads if t.retired]
        if retired:
            self.threads = [t for t in self.threads if not t.retired]
            logger.debug("Retired %d meta-cognition thread(s)", len(retired))

        if self.threads:
            self.processing_load = sum(t.task_progress * t.task_complexity for t in self.threads) / len(self.threads)
        else:
            self.processing_load = 0.0

    def complete_task(self, thread: ProcessingThread) -> bool:
        """Record the outcome and start the next task. Returns success."""
        task = thread.task
        success = thread.confidence > task.required_confidence
        thread.remember(ExperienceRecord(
            task=task.kind,
            complexity=task.complexity,
            success=success,
            confidence=thread.confidence,
            time_spent=task.time_remaining,
        ))
        if success and self.rng.random() < self.config.signals.task_insight_chance:
            self.insights.from_thread(thread, self.context.tick, self.rng, self.context.next_id)

        if thread.kind is ThreadKind.META_COGNITION:
            thread.retired = True
        else:
            thread.task = Task.random(self.rng)
            thread.task_progress = 0.0
        return success

    def learn(self, thread: ProcessingThread) -> None:
        """Adapt speed, efficiency and confidence from recent outcomes."""
        window = self.config.learning_window
        if len(thread.history) <= window:
            return
        recent = list(thread.history)[-window:]
        success = sum(1 for r in recent if r.success) / window
        confidence = sum(r.confidence for r in recent) / window

        rate = thread.learning_rate
        if success > self.config.learning_success:
            thread.processing_speed = min(2.0, thread.processing_speed * (1 + rate))
            thread.efficiency = min(1.0, thread.efficiency * (1 + rate / 2))
        else:
            thread.processing_speed = max(0.1, thread.processing_speed * (1 - rate))
        thread.confidence = thread.confidence * 0.95 + confidence * 0.05

    def update_exchange(self) -> None:
        self.associations = self.exchange.communicate(self.threads, self.rng)

    # ── Signals ──────────────────────────────────────────────────────────────

    def update_attention(self) -> None:
        ctx = self.context
        params = ctx.consciousness.get_state().parameters
        self.attention.update(self.threads, params, self.rng, ctx.width, ctx.height, ctx.next_id)

    def update_field(self) -> None:
        ctx = self.context
        self.field.step(self.threads, ctx.width, ctx.height, ctx.tick)

    def update_context(self) -> None:
        ctx = self.context
        self.context_stack.update(
            self.threads, self.attention, ctx.tick, self.rng, ctx.width, ctx.height, ctx.next_id,
        )

    def update_cascades(self) -> None:
        ctx = self.context
        inspired = self.cascades.update(self.threads, ctx.tick, self.rng, ctx.width, ctx.height, ctx.next_id)
        for thread in inspired:
            self.insights.from_thread(thread, ctx.tick, self.rng, ctx.next_id)

    def update_insights(self) -> None:
        ctx = self.context
        self.insights.generate(self.threads, ctx.tick, self.rng, ctx.width, ctx.height, ctx.next_id)

    def update_global_state(self) -> None:
        if self.threads:
            self.global_uncertainty = sum(t.uncertainty for t in self.threads) / len(self.threads)
            self.average_confidence = sum(t.confidence for t in self.threads) / len(self.threads)
        else:
            self.global_uncertainty = 0.5
            self.average_confidence = 0.5

    def update_metacognition(self) -> None:
        if self.metacognition is None:
            logger.warning("Meta-cognition layer missing at tick %d; reinitializing", self.context.tick)
            self.initialize_metacognition()
            return

        ctx = self.context
        reflected = self.metacognition.update(
            self.processing_load, len(self.insights.insights), ctx.tick, ctx.defer,
        )
        if reflected:
            self.spawn_meta_thread()

    def update_waves(self) -> None:
        ctx = self.context
        questions = self.metacognition.questions if self.metacognition is not None else ()
        self.waves.update(self.threads, questions, ctx.tick, self.rng, ctx.width, ctx.height, ctx.next_id)

    # ── Rendering ────────────────────────────────────────────────────────────

    def render(self, canvas: Canvas) -> None:
        """Draw current state. Reads only."""
        self._render_field(canvas)
        self._render_threads(canvas)
        self._render_attention(canvas)
        self._render_cascades(canvas)
        self._render_insights(canvas)
        self._render_global_state(canvas)
        self._render_metacognition(canvas)
        self._render_waves(canvas)

    def _render_field(self, canvas: Canvas) -> None:
        n = self.field.size
        cw, ch = canvas.width / n, canvas.height / n
        u, c = self.field.uncertainty, self.field.confidence
        for i in range(n):
            for j in range(n):
                canvas.rect(i * cw, j * ch, cw, ch, (255, 100, 100), alpha=float(u[i, j]) * 0.3)
                canvas.rect(i * cw, j * ch, cw, ch, (100, 100, 255), alpha=float(c[i, j]) * 0.2)

        # Downhill flow marks from the cell centers
        length = min(cw, ch) * 0.5
        for x, y, dx, dy, magnitude in self.field.flow_lines(canvas.width, canvas.height):
            x, y = x + cw / 2, y + ch / 2
            canvas.line(x, y, x + dx * length, y + dy * length, (255, 200, 200),
                        alpha=min(0.5, magnitude * 2))

    def _render_threads(self, canvas: Canvas) -> None:
        for t in self.threads:
            radius = 5 + t.activity * 10
            alpha = 0.3 + t.activity * 0.7
            canvas.circle(t.x, t.y, radius, hsl_to_rgb(t.hue, 70, 60), alpha=alpha)
            canvas.circle(t.x, t.y, radius * 0.5, hsl_to_rgb(120, 100, 70), alpha=alpha * t.confidence,
                          fill=False, width=2)
            if t.uncertainty > 0.3:
                canvas.circle(t.x, t.y, radius * 1.2, hsl_to_rgb(0, 100, 70), alpha=t.uncertainty * 0.5,
                              fill=False)
            canvas.text(t.x + radius, t.y - radius, t.kind.value[:3], hsl_to_rgb(t.hue, 100, 90), 8)

    def _render_attention(self, canvas: Canvas) -> None:
        by_id = {t.id: t for t in self.threads}
        yellow = hsl_to_rgb(60, 100, 70)
        for node in self.attention.nodes:
            pulse = node.radius + math.sin(node.oscillation) * 5
            canvas.circle(node.x, node.y, max(pulse, 0.5), yellow, alpha=node.strength * 0.5,
                          fill=False, width=2)
            target = by_id.get(node.target_id) if node.target_id else None
            if target is not None:
                canvas.line(node.x, node.y, target.x, target.y, yellow, alpha=node.strength * 0.3)
            canvas.rect(node.x - 2, node.y - 2, 4, 4, yellow, alpha=node.priority * 0.5)

    def _render_cascades(self, canvas: Canvas) -> None:
        for c in self.cascades.cascades:
            canvas.circle(c.x, c.y, c.radius, hsl_to_rgb(c.hue, 70, 60), alpha=c.intensity * 0.6,
                          fill=False, width=2)
            canvas.circle(c.x, c.y, c.radius * 0.5, hsl_to_rgb(c.hue, 100, 80), alpha=c.intensity * 0.4,
                          fill=False)

    def _render_insights(self, canvas: Canvas) -> None:
        for i in self.insights.insights:
            radius = 8 + i.intensity * 15
            canvas.circle(i.x, i.y, radius, hsl_to_rgb(45, 100, 70), alpha=i.intensity * 0.3)
            canvas.circle(i.x, i.y, radius * 0.3, hsl_to_rgb(45, 100, 90), alpha=i.intensity)

    def _render_global_state(self, canvas: Canvas) -> None:
        base = canvas.height - 60
        bars = (
            ("U", self.global_uncertainty, (255, 100, 100)),
            ("C", self.average_confidence, (100, 100, 255)),
            ("L", self.processing_load, (100, 255, 100)),
        )
        for k, (label, value, color) in enumerate(bars):
            x = 10 + k * 25
            canvas.rect(x, base, 20, value * 50, color, alpha=0.6)
            canvas.text(x + 5, base - 15, label, (255, 255, 255), 10)

    def _render_metacognition(self, canvas: Canvas) -> None:
        meta = self.metacognition
        if meta is None:
            return
        purple = hsl_to_rgb(300, 70, 60)
        cx, cy = canvas.width - 60, 60
        radius = 20 + meta.self_awareness * 30
        canvas.circle(cx, cy, radius, purple, alpha=meta.self_awareness * 0.7, fill=False, width=3)
        for level in range(meta.recursive_depth):
            canvas.circle(cx, cy, radius + (level + 1) * 10, hsl_to_rgb(300, 100, 80),
                          alpha=max(0.0, 0.3 - level * 0.1), fill=False)
        for node in meta.nodes:
            r = 3 + node.intensity * 8
            canvas.circle(node.x, node.y, r, purple, alpha=node.intensity * 0.6)
            if node.uncertainty > 0.5:
                canvas.circle(node.x, node.y, r * 2, hsl_to_rgb(300, 100, 80),
                              alpha=node.uncertainty * 0.3, fill=False)
        if meta.current_question:
            canvas.text(10, 30, meta.current_question[:40] + "...", (200, 150, 255), 11)

    def _render_waves(self, canvas: Canvas) -> None:
        for w in self.waves.waves:
            canvas.circle(w.x, w.y, w.radius, hsl_to_rgb(280, 70, 50), alpha=w.intensity * 0.4,
                          fill=False, width=2)
            if w.radius < 30:
                canvas.text(w.x - 3, w.y - 3, "?", hsl_to_rgb(280, 100, 80), 8)

    # ── State ────────────────────────────────────────────────────────────────

    def get_state(self) -> dict:
        """Copy-out snapshot of aggregate thread and signal state."""
        meta = self.metacognition
        return {
            "tick": self.context.tick,
            "processing_threads": len(self.threads),
            "meta_threads": sum(1 for t in self.threads if t.kind is ThreadKind.META_COGNITION),
            "attention_nodes": len(self.attention.nodes),
            "global_uncertainty": self.global_uncertainty,
            "processing_load": self.processing_load,
            "average_confidence": self.average_confidence,
            "emergent_insights": len(self.insights.insights),
            "context_stack_depth": self.context_stack.depth,
            "active_pattern_cascades": len(self.cascades.cascades),
            "uncertainty_waves": len(self.waves.waves),
            "associations": len(self.associations),
            "field": {
                "mean_uncertainty": self.field.mean_uncertainty,
                "touched_cells": int(np.count_nonzero(self.field.touched)),
            },
            "self_awareness": meta.self_awareness if meta is not None else 0.0,
            "recursive_depth": meta.recursive_depth if meta is not None else 0,
            "metacognition": meta.get_state() if meta is not None else None,
        }

    # ── Internal ─────────────────────────────────────────────────────────────

    def _run_phase(self, name: str, step) -> None:
        try:
            step()
        except Exception:
            logger.exception("AI experience phase %r failed at tick %d; skipped", name, self.context.tick)
