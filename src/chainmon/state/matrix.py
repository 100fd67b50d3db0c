"""Deterministic in-memory observation matrix.

This is the only component allowed to merge update events. Given the same
sequence of ``reset``/``apply`` calls it always produces the same state.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from types import MappingProxyType

from pydantic import BaseModel, ConfigDict

from chainmon.models.catalog import Chain, Source
from chainmon.state.registry import Registry

PairKey = tuple[str, str]


class Observation(BaseModel):
    """Latest known value for one ``(source, chain)`` pair."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    height: int
    hash: str
    first_seen_ts: int
    last_checked_ts: int

    def same_value(self, height: int, block_hash: str) -> bool:
        return self.height == height and self.hash == block_hash


class ObservationDelta(BaseModel):
    """Before/after comparison produced by :meth:`StateMatrix.apply`."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    source_id: str
    chain_id: str
    previous: Observation | None
    current: Observation
    changed: bool
    best_height_changed: bool


@dataclass(frozen=True)
class MatrixSnapshot:
    """Read-only view of the whole matrix, for rendering."""

    sources: tuple[Source, ...]
    chains: tuple[Chain, ...]
    best_height: Mapping[str, int]
    observations: Mapping[PairKey, Observation]

    def observation(self, source_id: str, chain_id: str) -> Observation | None:
        return self.observations.get((source_id, chain_id))


class StateMatrix:
    """Per-pair observations plus the best height seen per chain."""

    def __init__(self, registry: Registry | None = None) -> None:
        self._registry = registry if registry is not None else Registry()
        self._cells: list[Observation | None] = []
        self._best_height: dict[str, int] = {}
        self._size_to_registry()

    @property
    def registry(self) -> Registry:
        return self._registry

    def _size_to_registry(self) -> None:
        self._cells = [None] * len(self._registry)
        self._best_height = {chain.id: 0 for chain in self._registry.chains}

    def reset(self, sources: Iterable[Source], chains: Iterable[Chain]) -> None:
        """Reset the registry and drop every observation and best height."""
        self._registry.reset(sources, chains)
        self._size_to_registry()

    def apply(
        self,
        source_id: str,
        chain_id: str,
        height: int,
        block_hash: str,
        observed_at_ts: int,
    ) -> ObservationDelta:
        """Record one update and return what it changed.

        Raises
        ------
        UnknownPairError
            If the pair is not in the registry. State is left untouched.
        """
        idx = self._registry.pair_index(source_id, chain_id)
        previous = self._cells[idx]

        changed = previous is None or not previous.same_value(height, block_hash)
        first_seen_ts = observed_at_ts if changed or previous is None else previous.first_seen_ts
        current = Observation(
            height=height,
            hash=block_hash,
            first_seen_ts=first_seen_ts,
            last_checked_ts=observed_at_ts,
        )
        self._cells[idx] = current

        best_height_changed = height > self._best_height[chain_id]
        if best_height_changed:
            self._best_height[chain_id] = height

        return ObservationDelta(
            source_id=source_id,
            chain_id=chain_id,
            previous=previous,
            current=current,
            changed=changed,
            best_height_changed=best_height_changed,
        )

    def observation(self, source_id: str, chain_id: str) -> Observation | None:
        """Latest observation for a pair, ``None`` when never reported."""
        if not self._registry.contains_pair(source_id, chain_id):
            return None
        return self._cells[self._registry.pair_index(source_id, chain_id)]

    def best_height(self, chain_id: str) -> int:
        return self._best_height.get(chain_id, 0)

    def how_far_behind(self, source_id: str, chain_id: str) -> int:
        """Blocks between a source's height and the chain's best height.

        A pair without an observation counts as height 0.
        """
        current = self.observation(source_id, chain_id)
        height = current.height if current is not None else 0
        return self.best_height(chain_id) - height

    def best_states(self) -> dict[str, Observation]:
        """One observation at the best height per chain.

        Chains nobody reported yet are omitted. When several sources sit at
        the best height the first in registry order wins.
        """
        result: dict[str, Observation] = {}
        for chain in self._registry.chains:
            best = self._best_height[chain.id]
            if best <= 0:
                continue
            for source in self._registry.sources:
                current = self.observation(source.id, chain.id)
                if current is not None and current.height == best:
                    result[chain.id] = current
                    break
        return result

    def snapshot(self) -> MatrixSnapshot:
        observations: dict[PairKey, Observation] = {}
        for source in self._registry.sources:
            for chain in self._registry.chains:
                current = self._cells[self._registry.pair_index(source.id, chain.id)]
                if current is not None:
                    observations[(source.id, chain.id)] = current
        return MatrixSnapshot(
            sources=self._registry.sources,
            chains=self._registry.chains,
            best_height=MappingProxyType(dict(self._best_height)),
            observations=MappingProxyType(observations),
        )
