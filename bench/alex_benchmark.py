#!/usr/bin/env python3
"""
Incremental insertion benchmark for the learned index.

Bulk loads the initial partition, exports a structural snapshot of the
tree, then inserts each configured partition into the same index one
key at a time, exporting a fresh snapshot after every phase.

Example:
    python bench/alex_benchmark.py --keys_file_type=text --init_usr_id=0 \\
        --keys-dir ./avg --generate-data
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

from bench_config import build_parser, resolve_config
from bench_report import build_payload, write_json_payload, write_markdown_report
from bench_runner import get_system_info, run_workload
from bench_schema import ConfigError, HarnessConfig, KeySourceError, RunResult

EXIT_OK = 0
EXIT_FATAL = 1
EXIT_CONFIG = 2


def _ensure_data_generated(args: argparse.Namespace, config: HarnessConfig) -> None:
    """Generate partition key files on-the-fly if --generate-data is set."""
    if not args.generate_data:
        return
    from key_synthetic import generate_key_files

    partition_ids = [config.init_usr_id] + [p for p in config.partitions if p != config.init_usr_id]
    generate_key_files(
        config.keys_dir,
        partition_ids,
        count=args.generate_keys,
        encoding=config.keys_file_type,
        seed=args.seed,
    )


def _export_artifacts(config: HarnessConfig, run: RunResult) -> None:
    if not (config.export_json or config.export_md):
        return
    payload = build_payload(config, run, get_system_info())
    if config.export_json:
        out_json = Path(config.export_json)
        write_json_payload(payload, out_json)
        print(f"Benchmark JSON exported: {out_json}")
    if config.export_md:
        out_md = Path(config.export_md)
        write_markdown_report(payload, out_md)
        print(f"Benchmark Markdown exported: {out_md}")


def run_benchmark(args: argparse.Namespace) -> tuple[int, RunResult | None]:
    try:
        config = resolve_config(args)
    except ConfigError as exc:
        print(f"Configuration error: {exc}", file=sys.stderr)
        return EXIT_CONFIG, None

    try:
        _ensure_data_generated(args, config)
        run = run_workload(config)
    except ConfigError as exc:
        print(f"Configuration error: {exc}", file=sys.stderr)
        return EXIT_CONFIG, None
    except (KeySourceError, MemoryError, OSError) as exc:
        print(f"Cannot build the initial index: {exc}", file=sys.stderr)
        return EXIT_FATAL, None

    try:
        _export_artifacts(config, run)
    except OSError as exc:
        print(f"Failed to write benchmark report: {exc}", file=sys.stderr)

    stopped = sum(1 for p in run.phases if not p.completed)
    print(
        "Benchmark summary | "
        f"phases={len(run.phases)} "
        f"recovered_failures={stopped} "
        f"final_data_nodes={run.index_stats.get('num_data_nodes', 0)} "
        f"final_keys={run.index_stats.get('num_keys', 0)}"
    )
    return EXIT_OK, run


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    code, _run = run_benchmark(args)
    return code


if __name__ == "__main__":
    raise SystemExit(main())
