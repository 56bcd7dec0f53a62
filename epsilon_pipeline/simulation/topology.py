"""Topology management.

Holds the fixed, ordered list of pipeline stages and the directed edges
between them, validated once at construction.
"""

from __future__ import annotations

from typing import Iterable

from ..core.stage import Edge, Role, Stage


class TopologyError(ValueError):
    """Raised when a stage/edge list does not describe a valid pipeline."""


class Topology:
    """A read-only pipeline graph of stages and edges."""

    def __init__(self, stages: Iterable[Stage], edges: Iterable[Edge]) -> None:
        self._stages: tuple[Stage, ...] = tuple(stages)
        self._edges: tuple[Edge, ...] = tuple(edges)
        self._by_id: dict[str, Stage] = {}
        self._validate()

    def _validate(self) -> None:
        if not self._stages:
            raise TopologyError("topology needs at least one stage")

        for stage in self._stages:
            if stage.id in self._by_id:
                raise TopologyError(f"duplicate stage id {stage.id!r}")
            if stage.activation_threshold < 0:
                raise TopologyError(
                    f"stage {stage.id!r} has a negative activation threshold"
                )
            self._by_id[stage.id] = stage

        seen_edges: set[str] = set()
        for edge in self._edges:
            for end in (edge.source, edge.target):
                if end not in self._by_id:
                    raise TopologyError(
                        f"edge {edge.id!r} references unknown stage {end!r}"
                    )
            if edge.id in seen_edges:
                raise TopologyError(f"duplicate edge {edge.id!r}")
            seen_edges.add(edge.id)

            if edge.branch is None:
                continue
            source = self._by_id[edge.source]
            if source.role is not Role.DECISION:
                raise TopologyError(
                    f"branch edge {edge.id!r} leaves non-decision stage "
                    f"{source.id!r}"
                )
            if source.outcome is None:
                raise TopologyError(
                    f"decision stage {source.id!r} has branch edges but no outcome"
                )

    # ── Lookup ───────────────────────────────────────────────────────

    @property
    def stages(self) -> tuple[Stage, ...]:
        return self._stages

    @property
    def edges(self) -> tuple[Edge, ...]:
        return self._edges

    @property
    def step_count(self) -> int:
        """Number of activation phases; step ``step_count`` means complete."""
        return max(s.activation_threshold for s in self._stages) + 1

    def stage_by_id(self, stage_id: str) -> Stage:
        try:
            return self._by_id[stage_id]
        except KeyError:
            raise KeyError(f"unknown stage {stage_id!r}") from None

    def has_stage(self, stage_id: str) -> bool:
        return stage_id in self._by_id

    def stages_at_phase(self, step: int) -> list[Stage]:
        """Stages whose activation threshold is exactly *step*."""
        return [s for s in self._stages if s.activation_threshold == step]

    def outgoing(self, stage_id: str) -> list[Edge]:
        return [e for e in self._edges if e.source == stage_id]
