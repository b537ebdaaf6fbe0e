#!/usr/bin/env python3
"""Read-only structural snapshots of a learned index and their export."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Iterator

from learned_index import LearnedIndex

from bench_schema import LeafNodeInfo, ModelSnapshot, NodeInfo, RoutingNodeInfo

BASELINE_EXPORT = "node_info.txt"


@dataclass(frozen=True)
class TreeShape:
    leaf_count: int
    routing_count: int


def phase_export_name(partition_id: int) -> str:
    return f"node_info_after_user_{int(partition_id)}.txt"


def classify(node) -> NodeInfo:
    """Reduce a native index node to the fields the harness reports."""
    if node.is_leaf:
        return LeafNodeInfo(
            slope=node.model.a,
            intercept=node.model.b,
            min_key=node.min_key,
            max_key=node.max_key,
            first_key=node.first_key,
        )
    return RoutingNodeInfo(num_children=node.num_children)


def walk_nodes(index: LearnedIndex) -> Iterator[NodeInfo]:
    for node in index.nodes():
        yield classify(node)


def snapshot(
    index: LearnedIndex,
    on_node: Callable[[NodeInfo, int], None] | None = None,
) -> list[ModelSnapshot]:
    """
    Capture one ModelSnapshot per leaf in a single traversal.

    ``on_node`` receives every visited node with the ordinal of the most
    recent leaf (leaves are numbered from 1, routing nodes before the
    first leaf get 0).
    """
    out: list[ModelSnapshot] = []
    for info in walk_nodes(index):
        if isinstance(info, LeafNodeInfo):
            out.append(info.to_snapshot())
        if on_node is not None:
            on_node(info, len(out))
    return out


def print_node_info(info: NodeInfo, node_num: int) -> None:
    if isinstance(info, LeafNodeInfo):
        print(f"Node #{node_num} information:")
        if info.first_key is not None:
            print(f"  - Data Node - First key: {info.first_key}")
        return
    print(f"  - Model Node - Number of children: {info.num_children}")


def format_snapshot_line(snap: ModelSnapshot) -> str:
    # %g matches the default float formatting of C++ output streams.
    return f"{snap.slope:g},{snap.intercept:g},{snap.min_key},{snap.max_key}"


def export_snapshot(snapshots: list[ModelSnapshot], destination: str | Path) -> Path:
    """
    Overwrite destination with one ``slope,intercept,min_key,max_key`` line per leaf.

    Write failures propagate as OSError and may leave the file truncated.
    """
    path = Path(destination)
    with path.open("w", encoding="ascii", newline="\n") as f:
        for snap in snapshots:
            f.write(format_snapshot_line(snap))
            f.write("\n")
    return path
