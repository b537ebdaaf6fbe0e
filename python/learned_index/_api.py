"""
Internal helper functions for the learned_index facade and core.

This module is private API. Do not import directly.
"""

from __future__ import annotations

import bisect
import operator
from typing import Sequence

# Keys are unsigned 64-bit integers.
KEY_MIN = 0
KEY_MAX = 2**64 - 1


def _coerce_key(x: object) -> int:
    """
    Coerce x to an integer key.

    Uses operator.index() to support numpy.uint64 and similar types
    that implement __index__.

    Args:
        x: Value to coerce to integer.

    Returns:
        Integer key value.

    Raises:
        TypeError: If x is bool (to prevent True -> 1 accidents)
            or if x doesn't support __index__.
        ValueError: If x is outside [KEY_MIN, KEY_MAX].
    """
    if isinstance(x, bool):
        raise TypeError("key must be int (bool not allowed)")
    key = operator.index(x)
    if key < KEY_MIN or key > KEY_MAX:
        raise ValueError(f"key {key} is outside the unsigned 64-bit range")
    return key


def _fit_linear(xs: Sequence[float], ys: Sequence[float]) -> tuple[float, float]:
    """
    Least-squares fit of ys against xs, returning (slope, intercept).

    Works on mean-centered values so that 64-bit keys do not lose the
    slope to cancellation. Fewer than two distinct xs give a flat model
    through the mean of ys.
    """
    n = len(xs)
    if n == 0:
        return 0.0, 0.0
    mean_x = sum(float(x) for x in xs) / n
    mean_y = sum(float(y) for y in ys) / n
    sxx = 0.0
    sxy = 0.0
    for x, y in zip(xs, ys):
        dx = float(x) - mean_x
        sxx += dx * dx
        sxy += dx * (float(y) - mean_y)
    if sxx == 0.0:
        return 0.0, mean_y
    slope = sxy / sxx
    return slope, mean_y - slope * mean_x


def _exponential_search(keys: Sequence[int], key: int, hint: int, right: bool = False) -> int:
    """
    Return the bisect position of key in sorted keys, starting at hint.

    Grows a bracket around the predicted position by doubling, then
    bisects inside it. Equivalent to bisect_left (or bisect_right when
    right=True) over the whole sequence.
    """
    n = len(keys)
    if n == 0:
        return 0
    hint = min(max(hint, 0), n)
    search = bisect.bisect_right if right else bisect.bisect_left

    def before(i: int) -> bool:
        # True when the answer lies strictly after position i.
        return keys[i] <= key if right else keys[i] < key

    if hint < n and before(hint):
        lo, step = hint + 1, 1
        hi = lo
        while hi < n and before(hi):
            lo = hi + 1
            hi = lo + step
            step *= 2
        return search(keys, key, lo, min(hi, n))

    hi, step = hint, 1
    lo = hi - 1
    while lo >= 0 and not before(lo):
        hi = lo
        lo = hi - step
        step *= 2
    return search(keys, key, max(lo + 1, 0), hi)
