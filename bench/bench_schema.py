#!/usr/bin/env python3
"""Schema/types for learned-index insertion benchmark runs."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any, Literal

KeysFileType = Literal["binary", "text"]
LookupDistribution = Literal["uniform", "zipf"]

KEYS_FILE_TYPES = ("binary", "text")
LOOKUP_DISTRIBUTIONS = ("uniform", "zipf")
DEFAULT_PARTITIONS = list(range(1, 10))


class ConfigError(Exception):
    """Missing or invalid harness option. Fatal before any index work."""


class KeySourceError(Exception):
    """A partition key file could not be opened or decoded."""

    def __init__(self, partition_id: int, path: str, reason: str):
        super().__init__(f"partition {partition_id}: cannot load keys from {path}: {reason}")
        self.partition_id = partition_id
        self.path = path
        self.reason = reason


@dataclass(frozen=True)
class ModelSnapshot:
    slope: float
    intercept: float
    min_key: int
    max_key: int


@dataclass(frozen=True)
class RoutingNodeInfo:
    num_children: int


@dataclass(frozen=True)
class LeafNodeInfo:
    slope: float
    intercept: float
    min_key: int
    max_key: int
    first_key: int | None = None

    def to_snapshot(self) -> ModelSnapshot:
        return ModelSnapshot(
            slope=self.slope,
            intercept=self.intercept,
            min_key=self.min_key,
            max_key=self.max_key,
        )


NodeInfo = RoutingNodeInfo | LeafNodeInfo


@dataclass
class HarnessConfig:
    keys_file_type: KeysFileType
    init_usr_id: int
    keys_dir: str = "./avg"
    output_dir: str = "."
    partitions: list[int] = field(default_factory=lambda: list(DEFAULT_PARTITIONS))
    # Index sizing.
    max_keys: int | None = None
    max_data_node_keys: int = 256
    max_fanout: int = 16
    # Workload-shaping options. Recorded with the run, not consumed by
    # the insertion phases.
    init_num_keys: int | None = None
    total_num_keys: int | None = None
    batch_size: int | None = None
    insert_frac: float = 0.5
    lookup_distribution: LookupDistribution = "uniform"
    time_limit: float | None = None
    print_batch_stats: bool = False
    # Reporting.
    print_nodes: bool = False
    export_json: str | None = None
    export_md: str | None = None

    def index_options(self) -> dict[str, Any]:
        return {
            "max_keys": self.max_keys,
            "max_data_node_keys": self.max_data_node_keys,
            "max_fanout": self.max_fanout,
        }


@dataclass
class PhaseResult:
    partition_id: int
    keys_loaded: int = 0
    inserted: int = 0
    duplicates: int = 0
    insert_ns: int = 0
    phase_ns: int = 0
    failed_at: int | None = None
    error: str | None = None
    leaf_count: int = 0
    routing_count: int = 0
    export_path: str | None = None
    export_error: str | None = None
    rss_mb: float = 0.0

    @property
    def completed(self) -> bool:
        return self.error is None and self.failed_at is None

    @property
    def ns_per_insert(self) -> float:
        if self.inserted <= 0:
            return 0.0
        return self.insert_ns / self.inserted


@dataclass
class RunResult:
    baseline_keys: int = 0
    baseline_leaf_count: int = 0
    baseline_routing_count: int = 0
    baseline_export_path: str | None = None
    baseline_export_error: str | None = None
    build_ns: int = 0
    phases: list[PhaseResult] = field(default_factory=list)
    index_stats: dict[str, Any] = field(default_factory=dict)


def to_dict(obj: Any) -> Any:
    """Convert dataclass/object tree to plain JSON-serializable structures."""
    if hasattr(obj, "__dataclass_fields__"):
        return asdict(obj)
    return obj
