#!/usr/bin/env python3
"""
Synthetic per-partition key file generator.

Writes ``user_<id>.txt`` files for the insertion benchmark. Each
partition draws unique keys from its own seeded stream, so partitions
may overlap in key space the way real per-user key sets do.

Text files hold one decimal key per line. Binary files hold
little-endian uint64 records whose lowest byte is 0x0A and whose other
bytes never are, so every record carries exactly one line terminator
and the loader's line count equals the record count.
"""

from __future__ import annotations

import argparse
import random
from pathlib import Path
from typing import Iterable

KEY_SPACE = 2**48
_NEWLINE = 0x0A


def _has_newline_byte(value: int) -> bool:
    while value:
        if value & 0xFF == _NEWLINE:
            return True
        value >>= 8
    return False


def frame_binary_key(value: int) -> int:
    """Shift value into a record whose only 0x0A byte is the lowest one."""
    if _has_newline_byte(value):
        raise ValueError(f"value {value} contains a 0x0A byte")
    return (value << 8) | _NEWLINE


def generate_partition_keys(
    partition_id: int,
    *,
    count: int,
    seed: int = 42,
    distribution: str = "uniform",
    key_space: int = KEY_SPACE,
) -> list[int]:
    """
    Return ``count`` unique keys for one partition, in arrival order.

    distribution:
        "uniform"    keys spread over [0, key_space)
        "clustered"  keys around a partition-specific centre
        "sequential" a run of consecutive keys after the partition's offset
    """
    rng = random.Random((seed << 16) ^ partition_id)
    if distribution == "sequential":
        start = partition_id * count
        keys = list(range(start, start + count))
        rng.shuffle(keys)
        return keys

    seen: set[int] = set()
    keys = []
    centre = rng.randrange(key_space)
    spread = max(key_space // 64, count * 4)
    while len(keys) < count:
        if distribution == "uniform":
            key = rng.randrange(key_space)
        elif distribution == "clustered":
            key = int(rng.gauss(centre, spread)) % key_space
        else:
            raise ValueError(f"unknown distribution: {distribution!r}")
        if key in seen:
            continue
        seen.add(key)
        keys.append(key)
    return keys


def write_key_file(path: Path, keys: Iterable[int], encoding: str) -> int:
    path.parent.mkdir(parents=True, exist_ok=True)
    written = 0
    if encoding == "text":
        with path.open("w", encoding="ascii", newline="\n") as f:
            for key in keys:
                f.write(f"{key}\n")
                written += 1
    elif encoding == "binary":
        with path.open("wb") as f:
            for key in keys:
                f.write(frame_binary_key(key).to_bytes(8, "little"))
                written += 1
    else:
        raise ValueError("encoding must be either 'binary' or 'text'")
    return written


def generate_key_files(
    output_dir: str | Path,
    partition_ids: Iterable[int],
    *,
    count: int,
    encoding: str = "text",
    seed: int = 42,
    distribution: str = "uniform",
    overwrite: bool = False,
) -> list[Path]:
    """Write one key file per partition, skipping existing files unless overwrite."""
    out: list[Path] = []
    key_space = KEY_SPACE if encoding == "text" else 2**40
    for pid in partition_ids:
        path = Path(output_dir) / f"user_{int(pid)}.txt"
        if path.exists() and not overwrite:
            continue
        keys = generate_partition_keys(
            pid, count=count, seed=seed, distribution=distribution, key_space=key_space
        )
        if encoding == "binary":
            # Drop values that cannot be framed; order is preserved.
            keys = [k for k in keys if not _has_newline_byte(k)]
        write_key_file(path, keys, encoding)
        print(f"[benchmark] Generated key file: {path} (keys={len(keys):,}, encoding={encoding})")
        out.append(path)
    return out


# ---------------------------------------------------------------------------
# CLI entry point
# ---------------------------------------------------------------------------

def _parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Generate synthetic per-partition key files"
    )
    parser.add_argument("--output-dir", type=str, default="./avg",
                        help="Directory for user_<id>.txt files (default: ./avg)")
    parser.add_argument("--partitions", type=str, default="0,1,2,3,4,5,6,7,8,9",
                        help="Comma-separated partition ids (default: 0..9)")
    parser.add_argument("--keys", type=int, default=10_000,
                        help="Keys per partition (default: 10000)")
    parser.add_argument("--encoding", choices=["text", "binary"], default="text")
    parser.add_argument("--distribution", choices=["uniform", "clustered", "sequential"],
                        default="uniform")
    parser.add_argument("--seed", type=int, default=42,
                        help="RNG seed for reproducibility (default: 42)")
    parser.add_argument("--overwrite", action="store_true")
    return parser.parse_args()


if __name__ == "__main__":
    args = _parse_args()
    if args.keys <= 0:
        raise SystemExit("--keys must be positive")
    pids = [int(x) for x in args.partitions.split(",") if x.strip()]
    generate_key_files(
        args.output_dir,
        pids,
        count=args.keys,
        encoding=args.encoding,
        seed=args.seed,
        distribution=args.distribution,
        overwrite=args.overwrite,
    )
