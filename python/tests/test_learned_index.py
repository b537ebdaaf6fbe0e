"""
Tests for the learned_index package facade and engine.

Ordered by dependency: helpers and re-exports first, then bulk load,
inserts, structure, and resource limits.
"""

import bisect
import random

import pytest


# =============================================================================
# Category 1: Re-exports
# =============================================================================


class TestReexports:
    """Verify the package surface."""

    def test_all_exported(self):
        """Every item in __all__ must exist in module."""
        import learned_index

        for name in learned_index.__all__:
            assert hasattr(learned_index, name), f"{name} in __all__ but not in module"

    def test_capacity_error_is_memory_error(self):
        from learned_index import IndexCapacityError, LearnedIndexError

        assert issubclass(IndexCapacityError, MemoryError)
        assert issubclass(IndexCapacityError, LearnedIndexError)

    def test_version_string(self):
        import learned_index

        assert isinstance(learned_index.__version__, str)


# =============================================================================
# Category 2: Private helpers
# =============================================================================


class TestHelpers:
    def test_coerce_key_rejects_bool(self):
        from learned_index._api import _coerce_key

        with pytest.raises(TypeError):
            _coerce_key(True)

    def test_coerce_key_range(self):
        from learned_index._api import KEY_MAX, _coerce_key

        assert _coerce_key(0) == 0
        assert _coerce_key(KEY_MAX) == KEY_MAX
        with pytest.raises(ValueError):
            _coerce_key(-1)
        with pytest.raises(ValueError):
            _coerce_key(KEY_MAX + 1)

    def test_coerce_key_accepts_index_protocol(self):
        from learned_index._api import _coerce_key

        class Wrapped:
            def __index__(self):
                return 42

        assert _coerce_key(Wrapped()) == 42

    def test_coerce_key_rejects_float(self):
        from learned_index._api import _coerce_key

        with pytest.raises(TypeError):
            _coerce_key(1.5)

    def test_fit_linear_exact_line(self):
        from learned_index._api import _fit_linear

        slope, intercept = _fit_linear([10, 20, 30, 40], [1, 3, 5, 7])
        assert slope == pytest.approx(0.2)
        assert intercept == pytest.approx(-1.0)

    def test_fit_linear_degenerate(self):
        from learned_index._api import _fit_linear

        assert _fit_linear([], []) == (0.0, 0.0)
        assert _fit_linear([5], [0]) == (0.0, 0.0)
        assert _fit_linear([7, 7], [0, 1]) == (0.0, 0.5)

    def test_fit_linear_large_keys(self):
        from learned_index._api import _fit_linear

        base = 2**63
        step = 2**20
        slope, _ = _fit_linear([base, base + step, base + 2 * step], [0, 1, 2])
        assert slope == pytest.approx(1.0 / step)

    @pytest.mark.parametrize("right", [False, True])
    def test_exponential_search_matches_bisect(self, right):
        from learned_index._api import _exponential_search

        keys = [1, 3, 3, 3, 8, 13, 21, 34, 55]
        reference = bisect.bisect_right if right else bisect.bisect_left
        for key in (0, 1, 3, 4, 21, 55, 56):
            for hint in (-5, 0, 4, 8, 9, 100):
                assert _exponential_search(keys, key, hint, right) == reference(keys, key)

    def test_exponential_search_empty(self):
        from learned_index._api import _exponential_search

        assert _exponential_search([], 5, 3) == 0


# =============================================================================
# Category 3: Bulk load
# =============================================================================


class TestBulkLoad:
    def test_bulk_load_sorted(self):
        from learned_index import LearnedIndex

        index = LearnedIndex()
        index.bulk_load([(k, 0.0) for k in range(1000)])
        assert len(index) == 1000
        assert list(index) == list(range(1000))
        assert index[999] == 0.0

    def test_bulk_load_fills_nodes_to_init_density(self):
        from learned_index import LearnedIndex

        index = LearnedIndex(max_data_node_keys=256, init_density=0.7)
        index.bulk_load([(k, 0.0) for k in range(1000)])
        leaves = [n for n in index.nodes() if n.is_leaf]
        # 179 keys per node: five full nodes and one of 105.
        assert [leaf.num_keys for leaf in leaves] == [179] * 5 + [105]
        assert index.root.num_children == 6

    def test_bulk_load_rejects_unsorted(self):
        from learned_index import LearnedIndex

        index = LearnedIndex()
        with pytest.raises(ValueError, match="sorted"):
            index.bulk_load([(2, 0.0), (1, 0.0)])

    def test_bulk_load_rejects_non_pairs(self):
        from learned_index import LearnedIndex

        with pytest.raises(ValueError, match="pairs"):
            LearnedIndex().bulk_load([1, 2, 3])

    def test_bulk_load_duplicate_first_wins(self):
        from learned_index import LearnedIndex

        index = LearnedIndex()
        index.bulk_load([(1, 0.0), (2, 1.0), (2, 2.0), (3, 0.0)])
        assert len(index) == 3
        assert index[2] == 1.0

    def test_bulk_load_requires_empty_index(self):
        from learned_index import LearnedIndex, LearnedIndexError

        index = LearnedIndex()
        index.bulk_load([(1, 0.0)])
        with pytest.raises(LearnedIndexError):
            index.bulk_load([(2, 0.0)])

    def test_bulk_load_over_capacity(self):
        from learned_index import IndexCapacityError, LearnedIndex

        index = LearnedIndex(max_keys=10)
        with pytest.raises(IndexCapacityError):
            index.bulk_load([(k, 0.0) for k in range(11)])
        assert len(index) == 0

    def test_bulk_load_empty(self):
        from learned_index import KEY_MAX, KEY_MIN, LearnedIndex

        index = LearnedIndex()
        index.bulk_load([])
        leaf = index.root
        assert leaf.is_leaf
        assert leaf.min_key == KEY_MAX
        assert leaf.max_key == KEY_MIN
        assert leaf.first_key is None

    def test_leaf_models_track_positions(self):
        from learned_index import LearnedIndex

        index = LearnedIndex()
        index.bulk_load([(k * 10, 0.0) for k in range(500)])
        for leaf in (n for n in index.nodes() if n.is_leaf):
            assert leaf.model.a > 0
            # Predicted slot of the first key sits at the start of capacity.
            assert leaf.model.predict(leaf.min_key) == pytest.approx(0.0, abs=1e-6)
            assert leaf.model.predict(leaf.max_key) <= leaf.capacity


# =============================================================================
# Category 4: Inserts and lookups
# =============================================================================


class TestInsert:
    def test_insert_and_get(self):
        from learned_index import LearnedIndex

        index = LearnedIndex()
        assert index.insert(10, 1.0) is True
        assert index.get(10) == 1.0
        assert 10 in index
        assert 11 not in index
        assert index.get(11, "missing") == "missing"

    def test_duplicate_insert_keeps_payload(self):
        from learned_index import LearnedIndex

        index = LearnedIndex()
        index.bulk_load([(5, 0.0)])
        assert index.insert(5, 9.0) is False
        assert index[5] == 0.0
        assert len(index) == 1

    def test_getitem_missing_raises(self):
        from learned_index import LearnedIndex

        index = LearnedIndex()
        with pytest.raises(KeyError):
            index[3]

    def test_contains_bad_key_is_false(self):
        from learned_index import LearnedIndex

        index = LearnedIndex()
        assert "x" not in index
        assert -1 not in index

    def test_insert_rejects_bad_key(self):
        from learned_index import LearnedIndex

        index = LearnedIndex()
        with pytest.raises(TypeError):
            index.insert(False, 0.0)
        with pytest.raises(ValueError):
            index.insert(2**64, 0.0)

    def test_random_inserts_match_sorted_reference(self):
        from learned_index import LearnedIndex

        rng = random.Random(7)
        keys = rng.sample(range(10**9), 3000)
        index = LearnedIndex(max_data_node_keys=64, max_fanout=4)
        index.bulk_load([(k, 0.0) for k in sorted(keys[:500])])
        for k in keys[500:]:
            assert index.insert(k, 1.0)
        assert list(index) == sorted(keys)
        for k in keys[::37]:
            assert k in index

    def test_sequential_inserts_split_leaves_and_routing(self):
        from learned_index import LearnedIndex

        index = LearnedIndex(max_data_node_keys=32, max_fanout=4)
        for k in range(2000):
            index.insert(k, 0.0)
        stats = index.stats()
        assert stats["num_keys"] == 2000
        assert stats["num_data_splits"] > 0
        assert stats["num_model_splits"] > 0
        assert stats["num_model_nodes"] > 1
        assert stats["depth"] > 2
        assert all(index[k] == 0.0 for k in range(0, 2000, 97))

    def test_items_in_key_order(self):
        from learned_index import LearnedIndex

        index = LearnedIndex(max_data_node_keys=8)
        for k in (50, 10, 40, 20, 30, 60, 70, 80, 90, 5):
            index.insert(k, float(k))
        items = list(index.items())
        assert [k for k, _ in items] == sorted(k for k, _ in items)
        assert all(k == v for k, v in items)

    def test_stats_count_shifted_keys(self):
        from learned_index import LearnedIndex

        index = LearnedIndex()
        index.bulk_load([(0, 0.0), (10, 0.0), (20, 0.0)])
        index.insert(5, 1.0)
        index.insert(25, 1.0)
        index.insert(10, 1.0)
        assert index.stats()["num_shifts"] == 2

    def test_expansion_retrains_model(self):
        from learned_index import LearnedIndex

        index = LearnedIndex(max_data_node_keys=1000)
        index.bulk_load([(k, 0.0) for k in range(100)])
        leaf = index.root
        before = leaf.capacity
        for k in range(100, 200):
            index.insert(k, 0.0)
        assert leaf.num_resizes > 0
        assert leaf.capacity > before
        assert leaf.num_keys <= leaf.capacity * 0.8


# =============================================================================
# Category 5: Structure
# =============================================================================


class TestStructure:
    def _leaves(self, index):
        return [n for n in index.nodes() if n.is_leaf]

    def test_traversal_is_preorder(self):
        from learned_index import LearnedIndex

        index = LearnedIndex(max_data_node_keys=16, max_fanout=4)
        index.bulk_load([(k, 0.0) for k in range(500)])
        nodes = list(index.nodes())
        assert nodes[0] is index.root
        assert not nodes[0].is_leaf
        mins = [leaf.min_key for leaf in self._leaves(index)]
        assert mins == sorted(mins)

    def test_traversal_is_deterministic(self):
        from learned_index import LearnedIndex

        index = LearnedIndex(max_data_node_keys=16, max_fanout=4)
        index.bulk_load([(k * 3, 0.0) for k in range(300)])
        first = [id(n) for n in index.nodes()]
        second = [id(n) for n in index.nodes()]
        assert first == second

    def test_leaf_ranges_do_not_overlap(self):
        from learned_index import LearnedIndex

        rng = random.Random(3)
        index = LearnedIndex(max_data_node_keys=32, max_fanout=4)
        index.bulk_load([(k, 0.0) for k in range(0, 4000, 4)])
        for k in rng.sample(range(4000, 8000), 800):
            index.insert(k, 1.0)
        leaves = self._leaves(index)
        for leaf in leaves:
            assert leaf.min_key <= leaf.max_key
        for a, b in zip(leaves, leaves[1:]):
            assert a.max_key < b.min_key

    def test_pivots_bound_children(self):
        from learned_index import LearnedIndex

        index = LearnedIndex(max_data_node_keys=16, max_fanout=4)
        for k in random.Random(11).sample(range(100000), 1500):
            index.insert(k, 0.0)
        for node in index.nodes():
            if node.is_leaf:
                continue
            assert len(node.pivots) == node.num_children - 1
            assert node.pivots == sorted(node.pivots)

    def test_leaf_count_never_shrinks(self):
        from learned_index import LearnedIndex

        index = LearnedIndex(max_data_node_keys=32)
        index.bulk_load([(k, 0.0) for k in range(200)])
        counts = [len(self._leaves(index))]
        for batch in range(1, 6):
            for k in range(batch * 1000, batch * 1000 + 150):
                index.insert(k, float(batch))
            counts.append(len(self._leaves(index)))
        assert counts == sorted(counts)


# =============================================================================
# Category 6: Resource limits
# =============================================================================


class TestCapacity:
    def test_insert_past_max_keys_raises_without_mutation(self):
        from learned_index import IndexCapacityError, LearnedIndex

        index = LearnedIndex(max_keys=3)
        index.bulk_load([(1, 0.0), (2, 0.0)])
        assert index.insert(3, 1.0)
        with pytest.raises(IndexCapacityError):
            index.insert(4, 1.0)
        assert len(index) == 3
        assert 4 not in index

    def test_duplicate_at_max_keys_is_a_no_op(self):
        from learned_index import LearnedIndex

        index = LearnedIndex(max_keys=10)
        index.bulk_load([(k, 0.0) for k in range(10)])
        assert index.insert(5, 1.0) is False
        assert index[5] == 0.0
        assert len(index) == 10

    def test_capacity_error_caught_as_memory_error(self):
        from learned_index import LearnedIndex

        index = LearnedIndex(max_keys=0)
        with pytest.raises(MemoryError):
            index.insert(1, 0.0)

    def test_invalid_sizing(self):
        from learned_index import LearnedIndex

        with pytest.raises(ValueError):
            LearnedIndex(max_data_node_keys=1)
        with pytest.raises(ValueError):
            LearnedIndex(max_fanout=1)
        with pytest.raises(ValueError):
            LearnedIndex(init_density=0.9, max_density=0.8)
        with pytest.raises(ValueError):
            LearnedIndex(max_keys=-1)
