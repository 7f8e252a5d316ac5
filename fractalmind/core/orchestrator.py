# ═══════════════════════════════════════════════════════════════════════════════
# PART 14: ORCHESTRATOR
# Design: I1 (Systems Architect) | Implementation: I4 (Integration)
# ═══════════════════════════════════════════════════════════════════════════════

"""
I1: "One tick: the consciousness core moves first, phase-transition
novelty lands next, due deferred actions run, then each active
simulation updates. Rendering comes after and only reads."

I4: "A simulation that blows up during its tick is logged and skipped.
The others keep going, and so does the loop."
"""

from __future__ import annotations

import json
import logging
import time
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional

import numpy as np

from fractalmind.core.ai_experience import AIExperience
from fractalmind.core.canvas import Canvas
from fractalmind.core.config import SimulationConfig
from fractalmind.core.consciousness import NoveltyKind, PhaseTransition
from fractalmind.core.context import SimulationContext
from fractalmind.core.ecosystem import DigitalEcosystem

logger = logging.getLogger(__name__)


class Mode(Enum):
    ALL = "all"
    ECOSYSTEM = "ecosystem"
    AI_EXPERIENCE = "ai_experience"


# Per-simulation global alpha when layered in ALL mode
LAYER_ALPHA: Dict[str, float] = {
    DigitalEcosystem.name: 0.35,
    AIExperience.name: 0.5,
}


@dataclass
class PerformanceStats:
    """Timings of the most recent tick/render, in milliseconds."""
    update_ms: float = 0.0
    render_ms: float = 0.0
    frame_ms: float = 0.0
    ticks: int = 0
    frames: int = 0
    failures: int = 0


class _NumpyEncoder(json.JSONEncoder):
    """JSON encoder that handles numpy types."""

    def default(self, obj: Any) -> Any:
        if isinstance(obj, np.integer):
            return int(obj)
        if isinstance(obj, np.floating):
            return float(obj)
        if isinstance(obj, np.bool_):
            return bool(obj)
        if isinstance(obj, np.ndarray):
            return obj.tolist()
        if isinstance(obj, Enum):
            return obj.value
        return super().default(obj)


class Orchestrator:
    """
    Drives the shared consciousness core and the simulations.

    Usage:
        orch = Orchestrator(SimulationConfig(seed=7))
        for _ in range(600):
            orch.tick()
        orch.render(RecordingCanvas())
        print(orch.witness())
    """

    def __init__(
        self,
        config: Optional[SimulationConfig] = None,
        mode: Mode = Mode.ALL,
        context: Optional[SimulationContext] = None,
    ) -> None:
        self.context = context or SimulationContext(config)
        self.config = self.context.config
        self.mode = mode
        self.ecosystem = DigitalEcosystem(self.context)
        self.ai_experience = AIExperience(self.context)
        self.performance = PerformanceStats()
        self.transitions: List[PhaseTransition] = []
        self._running = False
        logger.info("Orchestrator ready in %s mode", self.mode.value)

    # ── Properties ───────────────────────────────────────────────────────────

    @property
    def simulations(self) -> Dict[str, Any]:
        return {
            self.ecosystem.name: self.ecosystem,
            self.ai_experience.name: self.ai_experience,
        }

    @property
    def active(self) -> List[Any]:
        """Simulations updated and rendered in the current mode."""
        if self.mode is Mode.ECOSYSTEM:
            return [self.ecosystem]
        if self.mode is Mode.AI_EXPERIENCE:
            return [self.ai_experience]
        return [self.ecosystem, self.ai_experience]

    @property
    def running(self) -> bool:
        return self._running

    # ── Public Methods ───────────────────────────────────────────────────────

    def tick(self) -> Optional[PhaseTransition]:
        """One complete update pass. Returns the phase transition, if any."""
        start = time.perf_counter()

        transition = self.context.consciousness.evolve()
        if transition is not None:
            self.transitions.append(transition)
            self.apply_novelty(transition)

        self.context.run_deferred()

        for sim in self.active:
            try:
                sim.update()
            except Exception:
                self.performance.failures += 1
                logger.exception("%s update failed at tick %d; skipped", sim.name, self.context.tick)

        self.performance.ticks += 1
        self.performance.update_ms = (time.perf_counter() - start) * 1000
        return transition

    def apply_novelty(self, transition: PhaseTransition) -> None:
        for novelty in transition.novelty:
            if novelty is NoveltyKind.ECOSYSTEM_INJECTION:
                change = self.ecosystem.introduce_environmental_change()
                logger.info("Novelty: ecosystem injection (%s)", change.value)
            elif novelty is NoveltyKind.CONSCIOUSNESS_SURGE:
                self.ecosystem.consciousness_surge()

    def render(self, canvas: Canvas) -> None:
        """Draw the active simulations. Reads only."""
        start = time.perf_counter()
        canvas.clear()
        layered = self.mode is Mode.ALL

        for sim in self.active:
            canvas.set_alpha(LAYER_ALPHA.get(sim.name, 1.0) if layered else 1.0)
            sim.render(canvas)
        canvas.set_alpha(1.0)
        self._render_consciousness(canvas)

        self.performance.frames += 1
        self.performance.render_ms = (time.perf_counter() - start) * 1000
        self.performance.frame_ms = self.performance.update_ms + self.performance.render_ms

    def switch_mode(self, mode: Mode) -> None:
        if mode is self.mode:
            return
        logger.info("Switching mode: %s -> %s", self.mode.value, mode.value)
        self.mode = mode

    def reset_current(self) -> None:
        """Reset every simulation active in the current mode."""
        for sim in self.active:
            sim.reset()

    def get_system_state(self) -> dict:
        return {
            "mode": self.mode.value,
            "tick": self.context.tick,
            "consciousness": self.context.consciousness.get_state().to_dict(),
            "simulations": {name: sim.get_state() for name, sim in self.simulations.items()},
            "deferred": len(self.context.deferred),
            "performance": {
                "update_ms": self.performance.update_ms,
                "render_ms": self.performance.render_ms,
                "frame_ms": self.performance.frame_ms,
                "ticks": self.performance.ticks,
                "frames": self.performance.frames,
                "failures": self.performance.failures,
            },
        }

    def export_state(self, path: str) -> Path:
        """Write get_system_state() as JSON for debugging."""
        file_path = Path(path)
        file_path.parent.mkdir(parents=True, exist_ok=True)
        with open(file_path, "w") as f:
            json.dump(self.get_system_state(), f, indent=2, cls=_NumpyEncoder)
        logger.info("Exported state to %s", file_path)
        return file_path

    def run(self, max_ticks: Optional[int] = None, canvas: Optional[Canvas] = None,
            paced: bool = True, callback=None) -> int:
        """
        Tick (and optionally render) until stop() or max_ticks.

        When paced, sleeps to hold config.target_fps. Returns ticks run.
        """
        self._running = True
        frame_budget = 1.0 / self.config.target_fps if self.config.target_fps > 0 else 0.0
        ran = 0
        try:
            while self._running and (max_ticks is None or ran < max_ticks):
                start = time.perf_counter()
                self.tick()
                if canvas is not None:
                    self.render(canvas)
                ran += 1
                if callback is not None:
                    callback(self)
                if paced and frame_budget > 0:
                    remaining = frame_budget - (time.perf_counter() - start)
                    if remaining > 0:
                        time.sleep(remaining)
        finally:
            self._running = False
        return ran

    def stop(self) -> None:
        self._running = False

    def witness(self) -> str:
        """Generate human-readable status display."""
        state = self.get_system_state()
        c = state["consciousness"]
        p = c["parameters"]
        eco = state["simulations"][DigitalEcosystem.name]
        ai = state["simulations"][AIExperience.name]
        perf = state["performance"]
        pops = " ".join(f"{k}={v}" for k, v in eco["populations"].items())

        return f"""
═══════════════════════════════════════════════════════════════════
FRACTALMIND  mode={state['mode']}  tick={state['tick']}
═══════════════════════════════════════════════════════════════════

CONSCIOUSNESS
  Complexity: {p['complexity']:.3f} | Emergence: {p['emergence']:.3f}
  Coherence: {p['coherence']:.3f} | Adaptation: {p['adaptation']:.3f}
  Cycle: {c['evolution']['cycle']} | Entropy: {c['entropy']:.3f} | Coherence level: {c['coherence_level']:.3f}

ECOSYSTEM
  Entities: {eco['total_entities']} ({pops})
  Generation: {eco['evolution']['generation']} | Avg fitness: {eco['evolution']['avg_fitness']:.1f}
  Diversity: {eco['evolution']['diversity']:.3f} | Births: {eco['evolution']['births']}
  Resources: {eco['environment']['resources']} | Toxins: {eco['environment']['toxins']}

AI EXPERIENCE
  Threads: {ai['processing_threads']} (meta {ai['meta_threads']}) | Load: {ai['processing_load']:.3f}
  Confidence: {ai['average_confidence']:.3f} | Uncertainty: {ai['global_uncertainty']:.3f}
  Insights: {ai['emergent_insights']} | Cascades: {ai['active_pattern_cascades']} | Waves: {ai['uncertainty_waves']}
  Self-awareness: {ai['self_awareness']:.3f} | Reflection depth: {ai['recursive_depth']}

PERFORMANCE
  Update: {perf['update_ms']:.2f} ms | Render: {perf['render_ms']:.2f} ms | Failures: {perf['failures']}

═══════════════════════════════════════════════════════════════════
"""

    # ── Internal ─────────────────────────────────────────────────────────────

    def _render_consciousness(self, canvas: Canvas) -> None:
        core = self.context.consciousness
        label = (
            f"C {core.complexity:.2f}  E {core.emergence:.2f}  "
            f"H {core.coherence:.2f}  A {core.adaptation:.2f}  cycle {core.cycle}"
        )
        canvas.text(10, canvas.height - 15, label, (200, 200, 200), 9)
