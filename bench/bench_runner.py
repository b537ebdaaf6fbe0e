#!/usr/bin/env python3
"""Core execution engine: baseline build, insertion phases, snapshots."""

from __future__ import annotations

import os
import platform
import shutil
import sys
import time
from operator import itemgetter
from pathlib import Path
from typing import Any

import psutil

from learned_index import LearnedIndex

from bench_schema import (
    HarnessConfig,
    KeySourceError,
    NodeInfo,
    PhaseResult,
    RoutingNodeInfo,
    RunResult,
)
from index_snapshot import (
    BASELINE_EXPORT,
    TreeShape,
    export_snapshot,
    phase_export_name,
    print_node_info,
    snapshot,
)
from key_loader import load_keys, pair_with_tag, partition_path


def get_process_rss_mb() -> float:
    """Current process RSS memory in MB."""
    return psutil.Process().memory_info().rss / (1024 * 1024)


def get_system_info() -> dict[str, Any]:
    """Capture system information for benchmark context."""
    vm = psutil.virtual_memory()
    info: dict[str, Any] = {
        "python_version": sys.version,
        "platform": platform.platform(),
        "processor": platform.processor(),
        "cpu_count": os.cpu_count(),
        "machine": platform.machine(),
        "psutil_version": psutil.__version__,
        "mem_total_gb": round(vm.total / (1024 ** 3), 2),
        "mem_available_gb": round(vm.available / (1024 ** 3), 2),
    }
    try:
        usage = shutil.disk_usage(os.getcwd())
        info["disk_free_gb"] = round(usage.free / (1024 ** 3), 2)
    except OSError:
        pass
    return info


def build_index(pairs: list[tuple[int, float]], **index_options: Any) -> LearnedIndex:
    """Stable-sort pairs by key and bulk load them into a new index."""
    if not pairs:
        raise ValueError("cannot build an index from an empty key set")
    ordered = sorted(pairs, key=itemgetter(0))
    index = LearnedIndex(**index_options)
    index.bulk_load(ordered)
    return index


def _snapshot_and_export(
    index: LearnedIndex, destination: Path, print_nodes: bool
) -> tuple[TreeShape, str | None]:
    """Export one snapshot pass, counting routing nodes along the way."""
    routing = 0

    def on_node(info: NodeInfo, node_num: int) -> None:
        nonlocal routing
        if isinstance(info, RoutingNodeInfo):
            routing += 1
        if print_nodes:
            print_node_info(info, node_num)

    snaps = snapshot(index, on_node=on_node)
    shape = TreeShape(leaf_count=len(snaps), routing_count=routing)
    export_error = None
    try:
        export_snapshot(snaps, destination)
    except OSError as exc:
        export_error = str(exc)
        print(f"Failed to export node information to {destination}: {exc}", file=sys.stderr)
    return shape, export_error


def insert_keys(index: LearnedIndex, pairs: list[tuple[int, float]], result: PhaseResult) -> None:
    """
    Insert pairs one at a time in their given order, timing the loop.

    A MemoryError stops the phase at the failing position; the entries
    before it stay inserted. The clock stops before the failure is
    reported.
    """
    inserted = 0
    duplicates = 0
    j = 0
    failure: MemoryError | None = None
    t0 = time.perf_counter_ns()
    try:
        for j, (key, tag) in enumerate(pairs):
            if index.insert(key, tag):
                inserted += 1
            else:
                duplicates += 1
    except MemoryError as exc:
        failure = exc
    result.insert_ns = time.perf_counter_ns() - t0
    result.inserted = inserted
    result.duplicates = duplicates
    if failure is not None:
        result.failed_at = j
        result.error = f"{type(failure).__name__}: {failure}"
        print(
            f"Failed to insert key for user {result.partition_id} at position {j}: {failure}",
            file=sys.stderr,
        )


def run_phase(index: LearnedIndex, partition_id: int, config: HarnessConfig) -> PhaseResult:
    """
    Load one partition and insert its keys, tagged with the partition id.

    Load failures and exhaustion during inserts are recorded on the
    result and never raised, so the run can move on to the next
    partition. ConfigError still propagates.
    """
    result = PhaseResult(partition_id=partition_id)
    p0 = time.perf_counter_ns()
    try:
        keys = load_keys(partition_id, config.keys_file_type, config.keys_dir)
    except KeySourceError as exc:
        result.error = str(exc)
        result.phase_ns = time.perf_counter_ns() - p0
        print(f"Skipping inserts for user {partition_id}: {exc}", file=sys.stderr)
        return result

    result.keys_loaded = len(keys)
    pairs = pair_with_tag(keys, partition_id)
    del keys
    insert_keys(index, pairs, result)
    result.phase_ns = time.perf_counter_ns() - p0
    return result


def run_workload(config: HarnessConfig) -> RunResult:
    """
    Build the baseline index, then run every insertion phase against it.

    Raises:
        KeySourceError: The initial partition cannot be loaded or is empty.
        ConfigError: Invalid encoding mode.
    """
    run = RunResult()
    out_dir = Path(config.output_dir)
    out_dir.mkdir(parents=True, exist_ok=True)

    keys = load_keys(config.init_usr_id, config.keys_file_type, config.keys_dir)
    if not keys:
        raise KeySourceError(
            config.init_usr_id,
            str(partition_path(config.keys_dir, config.init_usr_id)),
            "no keys to bulk load",
        )
    pairs = pair_with_tag(keys, config.init_usr_id)
    del keys
    b0 = time.perf_counter_ns()
    index = build_index(pairs, **config.index_options())
    run.build_ns = time.perf_counter_ns() - b0
    run.baseline_keys = len(index)
    del pairs
    print("bulk over")

    baseline_path = out_dir / BASELINE_EXPORT
    shape, run.baseline_export_error = _snapshot_and_export(
        index, baseline_path, config.print_nodes
    )
    run.baseline_leaf_count = shape.leaf_count
    run.baseline_routing_count = shape.routing_count
    print(f"Total number of data nodes: {shape.leaf_count}")
    if run.baseline_export_error is None:
        run.baseline_export_path = str(baseline_path)
        print(f"Node information exported to {baseline_path.name}")

    for partition_id in config.partitions:
        result = run_phase(index, partition_id, config)

        destination = out_dir / phase_export_name(partition_id)
        shape, result.export_error = _snapshot_and_export(
            index, destination, config.print_nodes
        )
        result.leaf_count = shape.leaf_count
        result.routing_count = shape.routing_count
        result.rss_mb = get_process_rss_mb()
        if result.export_error is None:
            result.export_path = str(destination)
            print(
                f"Node information after inserting keys for user {partition_id} "
                f"exported to {destination.name}"
            )
        run.phases.append(result)

    for result in run.phases:
        print(
            f"Time taken to insert keys for user {result.partition_id}: "
            f"{result.insert_ns} nanoseconds"
        )

    run.index_stats = index.stats()
    return run
