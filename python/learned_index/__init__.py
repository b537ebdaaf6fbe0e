"""
learned_index: an updatable learned index for unsigned 64-bit keys.

This module provides the LearnedIndex class, a sorted key -> payload
structure organised as a tree of routing nodes (ModelNode) and leaf
nodes (DataNode). Every data node carries a linear model that predicts
where a key lives inside the node; routing nodes carry a model over
their children's key bounds.

- Bulk load from sorted (key, payload) pairs
- Single-key inserts with node expansion and splitting
- Model-guided point lookups
- Deterministic pre-order node traversal for introspection

Example:
    >>> from learned_index import LearnedIndex
    >>>
    >>> index = LearnedIndex()
    >>> index.bulk_load([(k, 0.0) for k in range(1000)])
    >>> index.insert(5000, 1.0)
    True
    >>> index[5000]
    1.0
    >>> leaves = [n for n in index.nodes() if n.is_leaf]

Thread Safety:
    None. The index has a single writer and no internal locking. Reads
    and traversals must not overlap with inserts.

Resource Limits:
    ``max_keys`` caps the number of stored keys. Once the cap is
    reached, insert() raises IndexCapacityError (a MemoryError) without
    touching the tree, so callers can stop a workload and keep the
    index usable.
"""

from __future__ import annotations

try:
    from importlib.metadata import version as _pkg_version

    __version__ = _pkg_version("alex-harness")
except Exception:
    __version__ = "0+unknown"

from typing import Any, Iterable, Iterator

from learned_index._core import (
    DataNode,
    IndexCapacityError,
    LearnedIndexError,
    LinearModel,
    ModelNode,
    NodeIterator,
    _CoreIndex,
)
from learned_index._api import KEY_MAX, KEY_MIN, _coerce_key

# Type aliases
Pair = tuple[int, float]
Node = DataNode | ModelNode

_SENTINEL = object()


class LearnedIndex(_CoreIndex):
    """
    Sorted key -> payload index with per-leaf linear models.

    Keys are unique. insert() of an existing key leaves the stored
    payload untouched and returns False.

    Args:
        max_data_node_keys: A data node splits in two once it holds this
            many keys. Bulk load fills nodes to ``init_density`` of it.
        max_fanout: Maximum children per routing node before it splits.
        init_density: Fraction of capacity used after a node is built
            or expanded.
        max_density: A data node expands (capacity grows, model is
            retrained) once its key count passes this fraction of its
            capacity.
        max_keys: Optional hard cap on stored keys (None = unbounded).

    Raises:
        ValueError: Invalid sizing or density parameters.

    See Also:
        NodeIterator: Pre-order traversal used by nodes().
    """

    def __init__(self, **kwargs):
        super().__init__(**kwargs)

    # ------------------------------------------------------------------
    # Write path
    # ------------------------------------------------------------------

    def bulk_load(self, pairs: Iterable[tuple[int, Any]]) -> None:
        """
        Build the tree from (key, payload) pairs sorted ascending by key.

        Only valid on an empty index. Duplicate keys keep their first
        occurrence.

        Raises:
            ValueError: Pairs are not sorted, or a key is out of range.
            LearnedIndexError: The index already holds keys.
            IndexCapacityError: More distinct keys than ``max_keys``.
        """
        def coerced():
            for item in pairs:
                try:
                    key, payload = item
                except (TypeError, ValueError) as exc:
                    raise ValueError("bulk_load() expects (key, payload) pairs") from exc
                yield _coerce_key(key), payload

        self._bulk_load(coerced())

    def insert(self, key, payload) -> bool:
        """
        Insert a single key.

        Returns:
            True if the key was added, False if it was already present.

        Raises:
            TypeError / ValueError: key is not an unsigned 64-bit int.
            IndexCapacityError: ``max_keys`` already reached.
        """
        return self._insert(_coerce_key(key), payload)

    # ------------------------------------------------------------------
    # Read path
    # ------------------------------------------------------------------

    def get(self, key, default=None):
        found, payload = self._lookup(_coerce_key(key))
        return payload if found else default

    def __getitem__(self, key):
        payload = self.get(key, _SENTINEL)
        if payload is _SENTINEL:
            raise KeyError(key)
        return payload

    def __contains__(self, key) -> bool:
        try:
            key = _coerce_key(key)
        except (TypeError, ValueError):
            return False
        return self._lookup(key)[0]

    def __len__(self) -> int:
        return self._num_keys

    def __iter__(self) -> Iterator[int]:
        for leaf in self._leaves():
            yield from leaf.keys

    def items(self) -> Iterator[Pair]:
        """Yield (key, payload) pairs in ascending key order."""
        for leaf in self._leaves():
            yield from zip(leaf.keys, leaf.payloads)

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    def nodes(self) -> NodeIterator:
        """Return a pre-order iterator over every node, children left to right."""
        return NodeIterator(self)

    @property
    def root(self) -> Node:
        return self._root

    def stats(self) -> dict[str, Any]:
        """Return node counts, depth and split, expansion and shift counters."""
        return self._stats()


__all__ = [
    # Primary class
    "LearnedIndex",
    # Exceptions
    "LearnedIndexError",
    "IndexCapacityError",
    # Node types
    "DataNode",
    "ModelNode",
    "LinearModel",
    "NodeIterator",
    # Key bounds
    "KEY_MIN",
    "KEY_MAX",
    # Type aliases
    "Pair",
    "Node",
    # Version
    "__version__",
]
