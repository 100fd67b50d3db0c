"""Per-session catalog of sources and chains."""

from __future__ import annotations

from collections.abc import Iterable

from chainmon.exceptions import UnknownPairError
from chainmon.models.catalog import Chain, Source


def _index_by_id(items: tuple[Source, ...] | tuple[Chain, ...], kind: str) -> dict[str, int]:
    index: dict[str, int] = {}
    for position, item in enumerate(items):
        if item.id in index:
            raise ValueError(f"duplicate {kind} id {item.id!r}")
        index[item.id] = position
    return index


class Registry:
    """Ordered sources and chains with O(1) id lookups.

    The catalog only ever changes wholesale through :meth:`reset`; there is
    no incremental add/remove.
    """

    def __init__(self) -> None:
        self._sources: tuple[Source, ...] = ()
        self._chains: tuple[Chain, ...] = ()
        self._source_index: dict[str, int] = {}
        self._chain_index: dict[str, int] = {}

    def reset(self, sources: Iterable[Source], chains: Iterable[Chain]) -> None:
        """Replace both lists. Nothing is mutated if the new catalog is invalid."""
        new_sources = tuple(sources)
        new_chains = tuple(chains)
        source_index = _index_by_id(new_sources, "source")
        chain_index = _index_by_id(new_chains, "chain")

        self._sources = new_sources
        self._chains = new_chains
        self._source_index = source_index
        self._chain_index = chain_index

    @property
    def sources(self) -> tuple[Source, ...]:
        return self._sources

    @property
    def chains(self) -> tuple[Chain, ...]:
        return self._chains

    def __len__(self) -> int:
        """Number of ``(source, chain)`` cells."""
        return len(self._sources) * len(self._chains)

    def source_index(self, source_id: str) -> int | None:
        return self._source_index.get(source_id)

    def chain_index(self, chain_id: str) -> int | None:
        return self._chain_index.get(chain_id)

    def source(self, source_id: str) -> Source | None:
        idx = self._source_index.get(source_id)
        return None if idx is None else self._sources[idx]

    def chain(self, chain_id: str) -> Chain | None:
        idx = self._chain_index.get(chain_id)
        return None if idx is None else self._chains[idx]

    def contains_pair(self, source_id: str, chain_id: str) -> bool:
        return source_id in self._source_index and chain_id in self._chain_index

    def pair_index(self, source_id: str, chain_id: str) -> int:
        """Flat cell index for a pair, source-major.

        Raises
        ------
        UnknownPairError
            If either id is not part of the current catalog.
        """
        source_idx = self._source_index.get(source_id)
        chain_idx = self._chain_index.get(chain_id)
        if source_idx is None or chain_idx is None:
            missing = []
            if source_idx is None:
                missing.append(f"source {source_id!r}")
            if chain_idx is None:
                missing.append(f"chain {chain_id!r}")
            raise UnknownPairError(
                f"Unknown {' and '.join(missing)} in current registry",
                source_id=source_id,
                chain_id=chain_id,
            )
        return source_idx * len(self._chains) + chain_idx
