# ═══════════════════════════════════════════════════════════════════════════════
# CONFIGURATION
# Design: I1 (Systems Architect) | Implementation: I4 (Integration)
# ═══════════════════════════════════════════════════════════════════════════════

"""
I1: "Every component keeps its own Config dataclass next to its code.
This module only aggregates them, names a few presets, and merges nested
overrides into a fresh config. Nothing here reads files."
"""

from __future__ import annotations

import copy
import dataclasses
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional

from fractalmind.core.ai_experience import AIExperienceConfig
from fractalmind.core.canvas import CanvasConfig
from fractalmind.core.consciousness import ConsciousnessConfig
from fractalmind.core.ecosystem import EcosystemConfig


@dataclass
class SimulationConfig:
    """Top-level configuration aggregating all component configs."""

    # Component configs (optional - defaults used if None)
    canvas: Optional[CanvasConfig] = None
    consciousness: Optional[ConsciousnessConfig] = None
    ecosystem: Optional[EcosystemConfig] = None
    ai_experience: Optional[AIExperienceConfig] = None

    # Frame pacing for Orchestrator.run()
    target_fps: float = 60.0

    # Seed for the shared numpy Generator (None = fresh entropy)
    seed: Optional[int] = None

    def __post_init__(self) -> None:
        if self.canvas is None:
            self.canvas = CanvasConfig()
        if self.consciousness is None:
            self.consciousness = ConsciousnessConfig()
        if self.ecosystem is None:
            self.ecosystem = EcosystemConfig()
        if self.ai_experience is None:
            self.ai_experience = AIExperienceConfig()
        if self.canvas.width <= 0 or self.canvas.height <= 0:
            raise ValueError(
                f"Canvas size must be positive, got {self.canvas.width}x{self.canvas.height}"
            )


# ── Presets ──────────────────────────────────────────────────────────────────

PRESETS: Dict[str, Dict[str, Any]] = {
    # Calm, slow evolution
    "meditation": {
        "consciousness": {"evolution_speed": 0.0004, "phase_transition_interval": 3000},
        "ecosystem": {"entity_count": 100},
        "ai_experience": {"thread_count": 18},
    },
    # Fast evolution, crowded canvas
    "chaos": {
        "consciousness": {"evolution_speed": 0.002, "phase_transition_interval": 800},
        "ecosystem": {"entity_count": 200, "lifecycle": {"mutation_rate": 0.2}},
        "ai_experience": {"thread_count": 35},
    },
    # Sparse
    "minimal": {
        "ecosystem": {"entity_count": 75},
        "ai_experience": {"thread_count": 12},
    },
    # Fewer agents and a coarser field for slow machines
    "performance": {
        "ecosystem": {"entity_count": 100, "interaction": {"interaction_radius": 40.0}},
        "ai_experience": {"thread_count": 18, "uncertainty_field": {"grid_size": 12}},
        "target_fps": 30.0,
    },
}


def merge_config(config: Any, overrides: Mapping[str, Any]) -> Any:
    """
    Return a new dataclass config with nested overrides applied.

    Dict values recurse into dataclass fields; anything else replaces the
    field. Unknown keys raise KeyError. The input config is not modified.
    """
    if not dataclasses.is_dataclass(config):
        raise TypeError(f"Expected a dataclass config, got {type(config).__name__}")

    known = {f.name for f in dataclasses.fields(config)}
    changes: Dict[str, Any] = {}
    for key, value in overrides.items():
        if key not in known:
            raise KeyError(f"Unknown config key for {type(config).__name__}: {key!r}")
        current = getattr(config, key)
        if isinstance(value, Mapping) and dataclasses.is_dataclass(current):
            changes[key] = merge_config(current, value)
        else:
            changes[key] = copy.deepcopy(value)

    # Deep-copy untouched nested configs so the result shares nothing mutable
    return dataclasses.replace(copy.deepcopy(config), **changes)


def apply_preset(name: str, config: Optional[SimulationConfig] = None) -> SimulationConfig:
    """Merge a named preset onto config (or onto the defaults)."""
    if name not in PRESETS:
        raise ValueError(f"Unknown preset: {name!r} (choose from {', '.join(sorted(PRESETS))})")
    return merge_config(config or SimulationConfig(), PRESETS[name])
