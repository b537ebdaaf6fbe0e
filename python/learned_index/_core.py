"""
Core engine for the learned index: linear models, tree nodes, and the
insert/bulk-load machinery.

This module is private API. Use the ``learned_index`` package facade.
"""

from __future__ import annotations

import math
from typing import Any, Iterable, Iterator

from learned_index._api import KEY_MAX, KEY_MIN, _exponential_search, _fit_linear


class LearnedIndexError(Exception):
    """Base class for learned index errors."""


class IndexCapacityError(LearnedIndexError, MemoryError):
    """Raised when an insert would exceed the index's key budget."""


class LinearModel:
    """y = a * x + b, with ``a`` the slope and ``b`` the intercept."""

    __slots__ = ("a", "b")

    def __init__(self, a: float = 0.0, b: float = 0.0):
        self.a = float(a)
        self.b = float(b)

    def predict(self, x: int) -> float:
        return self.a * float(x) + self.b

    def __repr__(self) -> str:
        return f"LinearModel(a={self.a!r}, b={self.b!r})"


class DataNode:
    """
    Leaf node owning a sorted run of keys and their payloads.

    The model maps a key to a slot in a virtual array of ``capacity``
    slots. Lookups scale the prediction back to a rank and correct it
    with an exponential search. The model is only retrained when the
    node expands or is created, so between expansions it drifts as keys
    are inserted.
    """

    is_leaf = True

    __slots__ = (
        "model", "keys", "payloads", "capacity",
        "num_resizes",
    )

    def __init__(self, keys: list[int], payloads: list[Any], density: float):
        self.keys = keys
        self.payloads = payloads
        self.model = LinearModel()
        self.capacity = 0
        self.num_resizes = 0
        self.retrain(density)

    @property
    def num_keys(self) -> int:
        return len(self.keys)

    @property
    def min_key(self) -> int:
        # Empty nodes use the inverted sentinel bounds.
        return self.keys[0] if self.keys else KEY_MAX

    @property
    def max_key(self) -> int:
        return self.keys[-1] if self.keys else KEY_MIN

    @property
    def first_key(self) -> int | None:
        return self.keys[0] if self.keys else None

    def retrain(self, density: float) -> None:
        """Resize capacity to the given density and refit the model."""
        n = len(self.keys)
        self.capacity = max(1, math.ceil(n / density))
        slope, intercept = _fit_linear(self.keys, range(n))
        expansion = self.capacity / n if n else 1.0
        self.model = LinearModel(slope * expansion, intercept * expansion)

    def _predicted_rank(self, key: int) -> int:
        n = len(self.keys)
        if n == 0:
            return 0
        slot = self.model.predict(key)
        if math.isnan(slot):
            return 0
        rank = slot * n / self.capacity
        return int(min(max(rank, 0.0), float(n)))

    def lower_bound(self, key: int) -> int:
        """Rank of the first key >= key, located from the model's prediction."""
        return _exponential_search(self.keys, key, self._predicted_rank(key))

    def find(self, key: int) -> int:
        """Return the rank of key in this node, or -1 when absent."""
        pos = self.lower_bound(key)
        if pos < len(self.keys) and self.keys[pos] == key:
            return pos
        return -1

    def insert_at(
        self, pos: int, key: int, payload: Any, init_density: float, max_density: float
    ) -> None:
        """Insert key at rank pos, expanding and retraining past max_density."""
        self.keys.insert(pos, key)
        self.payloads.insert(pos, payload)
        if len(self.keys) > self.capacity * max_density:
            self.retrain(init_density)
            self.num_resizes += 1

    def split(self, density: float) -> tuple["DataNode", "DataNode"]:
        """Split at the median into two freshly trained nodes."""
        mid = len(self.keys) // 2
        left = DataNode(self.keys[:mid], self.payloads[:mid], density)
        right = DataNode(self.keys[mid:], self.payloads[mid:], density)
        return left, right


class ModelNode:
    """
    Routing node.

    ``pivots[i]`` is the smallest key routed to ``children[i + 1]``; keys
    below ``pivots[0]`` go to ``children[0]``. The model maps a key to a
    child slot and routing corrects it against the pivots.
    """

    is_leaf = False

    __slots__ = ("children", "pivots", "model")

    def __init__(self, children: list[Any], pivots: list[int]):
        if len(pivots) != len(children) - 1:
            raise LearnedIndexError("model node needs one pivot per child after the first")
        self.children = children
        self.pivots = pivots
        self.model = LinearModel()
        self.retrain()

    @property
    def num_children(self) -> int:
        return len(self.children)

    def retrain(self) -> None:
        slope, intercept = _fit_linear(self.pivots, range(1, len(self.pivots) + 1))
        self.model = LinearModel(slope, intercept)

    def route(self, key: int) -> int:
        predicted = self.model.predict(key)
        hint = 0 if math.isnan(predicted) else int(min(max(predicted, 0.0), float(len(self.pivots))))
        return _exponential_search(self.pivots, key, hint, right=True)

    def split(self) -> tuple["ModelNode", "ModelNode", int]:
        mid = len(self.children) // 2
        separator = self.pivots[mid - 1]
        left = ModelNode(self.children[:mid], self.pivots[:mid - 1])
        right = ModelNode(self.children[mid:], self.pivots[mid:])
        return left, right, separator


class NodeIterator:
    """
    Pre-order, left-to-right traversal over every node of an index.

    The order only depends on the tree shape, so two traversals of an
    unmodified index visit the same nodes in the same order. Mutating
    the index while iterating is undefined.
    """

    def __init__(self, index: "_CoreIndex"):
        self._stack: list[Any] = [index._root]

    def __iter__(self) -> "NodeIterator":
        return self

    def __next__(self) -> Any:
        if not self._stack:
            raise StopIteration
        node = self._stack.pop()
        if not node.is_leaf:
            self._stack.extend(reversed(node.children))
        return node


def _subtree_min(node: Any) -> int:
    while not node.is_leaf:
        node = node.children[0]
    return node.min_key


def _even_chunks(items: list[Any], max_size: int) -> list[list[Any]]:
    """Split items into the fewest chunks of at most max_size, sizes differing by <= 1."""
    groups = math.ceil(len(items) / max_size)
    base, extra = divmod(len(items), groups)
    out = []
    start = 0
    for g in range(groups):
        size = base + (1 if g < extra else 0)
        out.append(items[start:start + size])
        start += size
    return out


class _CoreIndex:
    """Unvalidated engine. The public facade coerces keys before calling in."""

    def __init__(
        self,
        *,
        max_data_node_keys: int = 256,
        max_fanout: int = 16,
        init_density: float = 0.7,
        max_density: float = 0.8,
        max_keys: int | None = None,
    ):
        if max_data_node_keys < 2:
            raise ValueError("max_data_node_keys must be at least 2")
        if max_fanout < 2:
            raise ValueError("max_fanout must be at least 2")
        if not (0.0 < init_density < max_density <= 1.0):
            raise ValueError("densities must satisfy 0 < init_density < max_density <= 1")
        if max_keys is not None and max_keys < 0:
            raise ValueError("max_keys must be non-negative")
        self._max_data_node_keys = max_data_node_keys
        self._max_fanout = max_fanout
        self._init_density = init_density
        self._max_density = max_density
        self._max_keys = max_keys
        self._root: Any = DataNode([], [], init_density)
        self._num_keys = 0
        self._num_data_splits = 0
        self._num_model_splits = 0
        self._num_shifts = 0

    # ------------------------------------------------------------------
    # Bulk load
    # ------------------------------------------------------------------

    def _bulk_load(self, pairs: Iterable[tuple[int, Any]]) -> None:
        if self._num_keys:
            raise LearnedIndexError("bulk_load requires an empty index")
        keys: list[int] = []
        payloads: list[Any] = []
        for key, payload in pairs:
            if keys and key <= keys[-1]:
                if key < keys[-1]:
                    raise ValueError("bulk_load expects pairs sorted by key")
                # Duplicate key: first occurrence wins, as with insert().
                continue
            keys.append(key)
            payloads.append(payload)
        if self._max_keys is not None and len(keys) > self._max_keys:
            raise IndexCapacityError(
                f"bulk load of {len(keys)} keys exceeds max_keys={self._max_keys}"
            )

        fill = max(1, int(self._max_data_node_keys * self._init_density))
        leaves: list[Any] = [
            DataNode(keys[i:i + fill], payloads[i:i + fill], self._init_density)
            for i in range(0, len(keys), fill)
        ]
        if not leaves:
            leaves = [DataNode([], [], self._init_density)]

        nodes = leaves
        while len(nodes) > 1:
            nodes = [
                ModelNode(group, [_subtree_min(child) for child in group[1:]])
                for group in _even_chunks(nodes, self._max_fanout)
            ]
        self._root = nodes[0]
        self._num_keys = len(keys)

    # ------------------------------------------------------------------
    # Insert
    # ------------------------------------------------------------------

    def _descend(self, key: int) -> tuple[DataNode, list[tuple[ModelNode, int]]]:
        path: list[tuple[ModelNode, int]] = []
        node = self._root
        while not node.is_leaf:
            idx = node.route(key)
            path.append((node, idx))
            node = node.children[idx]
        return node, path

    def _insert(self, key: int, payload: Any) -> bool:
        leaf, path = self._descend(key)
        pos = leaf.lower_bound(key)
        if pos < leaf.num_keys and leaf.keys[pos] == key:
            # Existing keys are a no-op, even when the index is full.
            return False
        if self._max_keys is not None and self._num_keys >= self._max_keys:
            raise IndexCapacityError(
                f"cannot insert key {key}: index holds max_keys={self._max_keys}"
            )
        self._num_shifts += leaf.num_keys - pos
        leaf.insert_at(pos, key, payload, self._init_density, self._max_density)
        self._num_keys += 1
        if leaf.num_keys >= self._max_data_node_keys:
            left, right = leaf.split(self._init_density)
            self._num_data_splits += 1
            self._replace(path, [left, right], right.min_key)
        return True

    def _replace(self, path: list[tuple[ModelNode, int]], halves: list[Any], separator: int) -> None:
        """Swap the node at the end of path for two halves split at separator."""
        if not path:
            self._root = ModelNode(halves, [separator])
            return
        parent, idx = path.pop()
        parent.children[idx:idx + 1] = halves
        parent.pivots.insert(idx, separator)
        parent.retrain()
        if parent.num_children > self._max_fanout:
            left, right, parent_separator = parent.split()
            self._num_model_splits += 1
            self._replace(path, [left, right], parent_separator)

    # ------------------------------------------------------------------
    # Read path
    # ------------------------------------------------------------------

    def _lookup(self, key: int) -> tuple[bool, Any]:
        leaf, _ = self._descend(key)
        pos = leaf.find(key)
        if pos < 0:
            return False, None
        return True, leaf.payloads[pos]

    def _leaves(self) -> Iterator[DataNode]:
        for node in NodeIterator(self):
            if node.is_leaf:
                yield node

    def _stats(self) -> dict[str, Any]:
        data_nodes = 0
        model_nodes = 0
        resizes = 0
        for node in NodeIterator(self):
            if node.is_leaf:
                data_nodes += 1
                resizes += node.num_resizes
            else:
                model_nodes += 1
        depth = 1
        node = self._root
        while not node.is_leaf:
            node = node.children[0]
            depth += 1
        return {
            "num_keys": self._num_keys,
            "num_data_nodes": data_nodes,
            "num_model_nodes": model_nodes,
            "depth": depth,
            "num_data_splits": self._num_data_splits,
            "num_model_splits": self._num_model_splits,
            "num_expansions": resizes,
            "num_shifts": self._num_shifts,
            "max_keys": self._max_keys,
        }
