# ═══════════════════════════════════════════════════════════════════════════════
# PART 5: POPULATIONS
# Design: N7 (Developmental Neuro) | Implementation: I3 (State Management)
# ═══════════════════════════════════════════════════════════════════════════════

"""
I3: "A population is a list in a stable order plus an id index. Births
append, deaths filter, culling truncates a fitness-sorted copy. Order is
part of the contract - reproduction pairs agents in collection order."
"""

from __future__ import annotations

from typing import Callable, Dict, Generic, Iterator, List, Optional, TypeVar

from fractalmind.core.agents import Agent

A = TypeVar("A", bound=Agent)


class Population(Generic[A]):
    """Named, ordered collection of one kind of agent."""

    def __init__(
        self,
        name: str,
        target_size: int,
        min_size: int = 0,
        cull_factor: float = 1.5,
    ) -> None:
        if target_size <= 0:
            raise ValueError(f"target_size must be positive, got {target_size}")
        self.name = name
        self.target_size = target_size
        self.min_size = min(min_size, target_size)
        self.cull_factor = cull_factor
        self._agents: List[A] = []
        self._by_id: Dict[str, A] = {}

    # ── Properties ───────────────────────────────────────────────────────────

    @property
    def soft_max(self) -> int:
        """Size above which culling truncates the population."""
        return int(self.target_size * self.cull_factor)

    @property
    def agents(self) -> List[A]:
        """The live list (callers must not mutate it directly)."""
        return self._agents

    # ── Container protocol ───────────────────────────────────────────────────

    def __len__(self) -> int:
        return len(self._agents)

    def __iter__(self) -> Iterator[A]:
        return iter(self._agents)

    def __contains__(self, agent_id: object) -> bool:
        return agent_id in self._by_id

    # ── Methods ──────────────────────────────────────────────────────────────

    def get(self, agent_id: str) -> Optional[A]:
        """Weak-reference lookup: None if the agent is gone."""
        return self._by_id.get(agent_id)

    def add(self, agent: A) -> A:
        if agent.id in self._by_id:
            raise ValueError(f"Duplicate agent id: {agent.id}")
        self._agents.append(agent)
        self._by_id[agent.id] = agent
        return agent

    def extend(self, agents) -> None:
        for agent in agents:
            self.add(agent)

    def retain(self, keep: Callable[[A], bool]) -> List[A]:
        """Keep agents for which keep() is True. Returns the removed ones."""
        kept: List[A] = []
        removed: List[A] = []
        for agent in self._agents:
            (kept if keep(agent) else removed).append(agent)
        self._replace(kept)
        return removed

    def cull(self, fitness: Callable[[A], float]) -> List[A]:
        """
        Truncate to soft_max when above it, dropping the lowest fitness.

        Sorting is stable, so equal fitness keeps collection order.
        """
        if len(self._agents) <= self.soft_max:
            return []
        ranked = sorted(self._agents, key=fitness, reverse=True)
        self._replace(ranked[: self.soft_max])
        return ranked[self.soft_max:]

    def clear(self) -> None:
        self._replace([])

    def ids(self) -> List[str]:
        return [a.id for a in self._agents]

    # ── Internal ─────────────────────────────────────────────────────────────

    def _replace(self, agents: List[A]) -> None:
        self._agents = agents
        self._by_id = {a.id: a for a in agents}
