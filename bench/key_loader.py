#!/usr/bin/env python3
"""Per-partition key file loading and tag pairing."""

from __future__ import annotations

import sys
from array import array
from pathlib import Path

from bench_schema import KEYS_FILE_TYPES, ConfigError, KeySourceError

KEY_BYTES = 8
KEY_LIMIT = 2**64
_CHUNK = 1024 * 1024


def partition_path(root: str | Path, partition_id: int) -> Path:
    return Path(root) / f"user_{int(partition_id)}.txt"


def count_lines(path: Path) -> int:
    """Count b"\\n" terminators. This count sizes the key array."""
    with path.open("rb") as f:
        line_count = 0
        chunk = f.read(_CHUNK)
        while chunk:
            line_count += chunk.count(b"\n")
            chunk = f.read(_CHUNK)
    return line_count


def _load_text(path: Path, count: int, partition_id: int) -> array:
    keys = array("Q")
    with path.open("r", encoding="ascii") as f:
        for lineno, line in enumerate(f, start=1):
            if lineno > count:
                break
            raw = line.strip()
            try:
                key = int(raw)
            except ValueError:
                raise KeySourceError(
                    partition_id, str(path), f"line {lineno}: not a decimal key: {raw!r}"
                ) from None
            if not (0 <= key < KEY_LIMIT):
                raise KeySourceError(
                    partition_id, str(path), f"line {lineno}: key {key} out of uint64 range"
                )
            keys.append(key)
    if len(keys) != count:
        raise KeySourceError(partition_id, str(path), f"expected {count} keys, decoded {len(keys)}")
    return keys


def _load_binary(path: Path, count: int, partition_id: int) -> array:
    want = count * KEY_BYTES
    with path.open("rb") as f:
        data = f.read(want)
    if len(data) != want:
        raise KeySourceError(
            partition_id, str(path), f"expected {want} bytes for {count} keys, got {len(data)}"
        )
    keys = array("Q")
    keys.frombytes(data)
    # Records are little-endian on disk.
    if sys.byteorder == "big":
        keys.byteswap()
    return keys


def load_keys(partition_id: int, encoding_mode: str, root: str | Path) -> array:
    """
    Load the key array for one partition.

    The record count is the number of line terminators in the file. The
    returned array has exactly that many keys; any open or decode
    failure raises KeySourceError instead of returning a partial array.

    Raises:
        ConfigError: encoding_mode is not "binary" or "text".
        KeySourceError: the file is missing, unreadable or malformed.
    """
    if encoding_mode not in KEYS_FILE_TYPES:
        raise ConfigError("--keys_file_type must be either 'binary' or 'text'")

    path = partition_path(root, partition_id)
    try:
        count = count_lines(path)
        if encoding_mode == "binary":
            return _load_binary(path, count, partition_id)
        return _load_text(path, count, partition_id)
    except (OSError, UnicodeDecodeError) as exc:
        raise KeySourceError(partition_id, str(path), str(exc)) from exc


def pair_with_tag(keys, tag: int | float) -> list[tuple[int, float]]:
    """Pair every key with the same float tag naming its partition."""
    value = float(tag)
    return [(key, value) for key in keys]
