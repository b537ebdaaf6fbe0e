#!/usr/bin/env python3
"""Command-line and JSON configuration for the insertion benchmark."""

from __future__ import annotations

import argparse
import json
from pathlib import Path
from typing import Any

from bench_schema import (
    DEFAULT_PARTITIONS,
    KEYS_FILE_TYPES,
    LOOKUP_DISTRIBUTIONS,
    ConfigError,
    HarnessConfig,
)

# Option name -> converter. JSON config files use the same names.
_INT_OPTIONS = (
    "init_usr_id",
    "init_num_keys",
    "total_num_keys",
    "batch_size",
    "max_keys",
    "max_data_node_keys",
    "max_fanout",
)
_FLOAT_OPTIONS = ("insert_frac", "time_limit")
_BOOL_OPTIONS = ("print_batch_stats", "print_nodes")
_STR_OPTIONS = (
    "keys_file_type",
    "lookup_distribution",
    "keys_dir",
    "output_dir",
    "export_json",
    "export_md",
)
_POSITIVE_OPTIONS = (
    "init_num_keys",
    "total_num_keys",
    "batch_size",
    "max_data_node_keys",
    "max_fanout",
)
_KNOWN_OPTIONS = set(_INT_OPTIONS + _FLOAT_OPTIONS + _BOOL_OPTIONS + _STR_OPTIONS) | {"partitions"}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Learned index incremental insertion benchmark")
    parser.add_argument("--config", type=str, default=None,
                        help="JSON file with option defaults (CLI flags win)")

    # Workload flags, spelled the way the original benchmark spells them.
    parser.add_argument("--keys_file_type", type=str, default=None,
                        help="Key file encoding: binary or text (required)")
    parser.add_argument("--init_usr_id", type=str, default=None,
                        help="Partition bulk loaded before the insertion phases (required)")
    parser.add_argument("--init_num_keys", type=str, default=None)
    parser.add_argument("--total_num_keys", type=str, default=None)
    parser.add_argument("--batch_size", type=str, default=None)
    parser.add_argument("--insert_frac", type=str, default=None)
    parser.add_argument("--lookup_distribution", type=str, default=None)
    parser.add_argument("--time_limit", type=str, default=None, help="Time limit, in minutes")
    parser.add_argument("--print_batch_stats", action="store_const", const=True, default=None)

    parser.add_argument("--keys-dir", dest="keys_dir", type=str, default=None,
                        help="Directory holding user_<id>.txt key files (default: ./avg)")
    parser.add_argument("--output-dir", dest="output_dir", type=str, default=None,
                        help="Directory for node_info*.txt exports (default: .)")
    parser.add_argument("--partitions", type=str, default=None,
                        help="Comma-separated insertion partitions in order (default: 1..9)")
    parser.add_argument("--max-keys", dest="max_keys", type=str, default=None,
                        help="Cap on keys held by the index; inserts past it fail")
    parser.add_argument("--max-data-node-keys", dest="max_data_node_keys", type=str, default=None)
    parser.add_argument("--max-fanout", dest="max_fanout", type=str, default=None)
    parser.add_argument("--print-nodes", dest="print_nodes", action="store_const", const=True,
                        default=None, help="Print per-node information during snapshots")
    parser.add_argument("--export-json", dest="export_json", type=str, default=None)
    parser.add_argument("--export-md", dest="export_md", type=str, default=None)

    parser.add_argument("--generate-data", action="store_true",
                        help="Generate missing partition key files before the run")
    parser.add_argument("--generate-keys", type=int, default=10_000,
                        help="Keys per generated partition file (default: 10000)")
    parser.add_argument("--seed", type=int, default=42)
    return parser


def load_config_file(path: Path) -> dict[str, Any]:
    try:
        with path.open() as f:
            raw = json.load(f)
    except (OSError, json.JSONDecodeError) as exc:
        raise ConfigError(f"cannot read config file {path}: {exc}") from exc
    if not isinstance(raw, dict):
        raise ConfigError(f"config file {path} must hold a JSON object")
    unknown = sorted(set(raw) - _KNOWN_OPTIONS)
    if unknown:
        raise ConfigError(f"unknown option(s) in {path}: {', '.join(unknown)}")
    return raw


def parse_partitions(value: Any) -> list[int]:
    if isinstance(value, str):
        items = [x.strip() for x in value.split(",") if x.strip()]
    elif isinstance(value, list):
        items = value
    else:
        raise ConfigError("partitions must be a comma-separated string or a list")
    out = [_to_int("partitions", x) for x in items]
    if not out:
        raise ConfigError("partitions must name at least one partition")
    return out


def _to_int(name: str, value: Any) -> int:
    if isinstance(value, bool):
        raise ConfigError(f"--{name} must be an integer, got {value!r}")
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ConfigError(f"--{name} must be an integer, got {value!r}") from None


def _to_float(name: str, value: Any) -> float:
    if isinstance(value, bool):
        raise ConfigError(f"--{name} must be a number, got {value!r}")
    try:
        return float(value)
    except (TypeError, ValueError):
        raise ConfigError(f"--{name} must be a number, got {value!r}") from None


def _to_bool(name: str, value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str) and value.lower() in ("1", "true", "yes"):
        return True
    if isinstance(value, str) and value.lower() in ("0", "false", "no"):
        return False
    raise ConfigError(f"--{name} must be a boolean, got {value!r}")


def get_required(options: dict[str, Any], name: str) -> Any:
    value = options.get(name)
    if value is None:
        raise ConfigError(f"--{name} is required")
    return value


def resolve_config(args: argparse.Namespace) -> HarnessConfig:
    """
    Merge the optional JSON config file with CLI flags and validate.

    Raises:
        ConfigError: A required option is missing or any value is invalid.
    """
    options: dict[str, Any] = {}
    if args.config:
        options.update(load_config_file(Path(args.config)))
    for name in _KNOWN_OPTIONS:
        value = getattr(args, name, None)
        if value is not None:
            options[name] = value

    keys_file_type = str(get_required(options, "keys_file_type"))
    if keys_file_type not in KEYS_FILE_TYPES:
        raise ConfigError("--keys_file_type must be either 'binary' or 'text'")
    init_usr_id = _to_int("init_usr_id", get_required(options, "init_usr_id"))

    kwargs: dict[str, Any] = {}
    for name in _INT_OPTIONS:
        if name != "init_usr_id" and options.get(name) is not None:
            kwargs[name] = _to_int(name, options[name])
    for name in _FLOAT_OPTIONS:
        if options.get(name) is not None:
            kwargs[name] = _to_float(name, options[name])
    for name in _BOOL_OPTIONS:
        if options.get(name) is not None:
            kwargs[name] = _to_bool(name, options[name])
    for name in _STR_OPTIONS:
        if name != "keys_file_type" and options.get(name) is not None:
            kwargs[name] = str(options[name])
    kwargs["partitions"] = (
        parse_partitions(options["partitions"])
        if options.get("partitions") is not None
        else list(DEFAULT_PARTITIONS)
    )

    for name in _POSITIVE_OPTIONS:
        if name in kwargs and kwargs[name] <= 0:
            raise ConfigError(f"--{name} must be positive")
    if kwargs.get("max_keys") is not None and kwargs["max_keys"] < 0:
        raise ConfigError("--max_keys must be non-negative")
    if kwargs.get("max_data_node_keys") is not None and kwargs["max_data_node_keys"] < 2:
        raise ConfigError("--max_data_node_keys must be at least 2")
    if kwargs.get("max_fanout") is not None and kwargs["max_fanout"] < 2:
        raise ConfigError("--max_fanout must be at least 2")
    if not (0.0 <= kwargs.get("insert_frac", 0.5) <= 1.0):
        raise ConfigError("--insert_frac must be between 0.0 and 1.0")
    if kwargs.get("time_limit") is not None and kwargs["time_limit"] <= 0:
        raise ConfigError("--time_limit must be positive")
    if kwargs.get("lookup_distribution", "uniform") not in LOOKUP_DISTRIBUTIONS:
        raise ConfigError("--lookup_distribution must be either 'uniform' or 'zipf'")

    return HarnessConfig(keys_file_type=keys_file_type, init_usr_id=init_usr_id, **kwargs)


def config_to_dict(config: HarnessConfig) -> dict[str, Any]:
    return {
        "keys_file_type": config.keys_file_type,
        "init_usr_id": config.init_usr_id,
        "keys_dir": config.keys_dir,
        "output_dir": config.output_dir,
        "partitions": list(config.partitions),
        "index": config.index_options(),
        "workload": {
            "init_num_keys": config.init_num_keys,
            "total_num_keys": config.total_num_keys,
            "batch_size": config.batch_size,
            "insert_frac": config.insert_frac,
            "lookup_distribution": config.lookup_distribution,
            "time_limit": config.time_limit,
            "print_batch_stats": config.print_batch_stats,
        },
    }
