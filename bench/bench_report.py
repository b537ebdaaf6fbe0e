#!/usr/bin/env python3
"""Reporting helpers for insertion benchmark artifacts."""

from __future__ import annotations

import json
import platform
import sys
from datetime import datetime
from pathlib import Path
from typing import Any

from bench_config import config_to_dict
from bench_schema import HarnessConfig, RunResult, to_dict

SCHEMA_VERSION = "insert_phases_v1"


def build_payload(config: HarnessConfig, run: RunResult, system_info: dict[str, Any]) -> dict[str, Any]:
    phases = []
    for p in run.phases:
        row = to_dict(p)
        row["completed"] = p.completed
        row["ns_per_insert"] = p.ns_per_insert
        phases.append(row)
    return {
        "schema_version": SCHEMA_VERSION,
        "timestamp": datetime.now().isoformat(),
        "platform": platform.platform(),
        "python_version": sys.version,
        "system": system_info,
        "config": config_to_dict(config),
        "baseline": {
            "keys": run.baseline_keys,
            "leaf_count": run.baseline_leaf_count,
            "routing_count": run.baseline_routing_count,
            "build_ns": run.build_ns,
            "export_path": run.baseline_export_path,
            "export_error": run.baseline_export_error,
        },
        "phases": phases,
        "index_stats": run.index_stats,
    }


def write_json_payload(payload: dict[str, Any], path: Path) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("w") as f:
        json.dump(payload, f, indent=2)


def _fmt_status(phase: dict[str, Any]) -> str:
    if phase.get("failed_at") is not None:
        return f"STOPPED@{phase['failed_at']}"
    if phase.get("error"):
        return "LOAD_FAILED"
    return "OK"


def build_markdown_report(payload: dict[str, Any]) -> str:
    ts = payload.get("timestamp", datetime.now().isoformat())
    system = payload.get("system", {})
    config = payload.get("config", {})
    baseline = payload.get("baseline", {})
    phases = payload.get("phases", [])

    lines: list[str] = []
    lines.append("# Learned Index Insertion Benchmark Report")
    lines.append("")
    lines.append(f"- Timestamp: `{ts}`")
    lines.append(f"- Platform: `{payload.get('platform', 'unknown')}`")
    lines.append(f"- Python: `{payload.get('python_version', 'unknown')}`")
    lines.append(f"- CPU Count: `{system.get('cpu_count', 'unknown')}`")
    lines.append(f"- Keys Dir: `{config.get('keys_dir', 'unknown')}`")
    lines.append(f"- Key Encoding: `{config.get('keys_file_type', 'unknown')}`")
    lines.append("")

    lines.append("## Baseline")
    lines.append("")
    lines.append(f"- Initial partition: `{config.get('init_usr_id', 'unknown')}`")
    lines.append(f"- Keys bulk loaded: {baseline.get('keys', 0):,}")
    lines.append(f"- Data nodes: {baseline.get('leaf_count', 0):,}")
    lines.append(f"- Model nodes: {baseline.get('routing_count', 0):,}")
    lines.append(f"- Build time: {baseline.get('build_ns', 0):,} ns")
    lines.append("")

    lines.append("## Insertion Phases")
    lines.append("")
    lines.append("| Partition | Loaded | Inserted | Duplicates | Insert ns | ns/insert | Data nodes | Model nodes | Status |")
    lines.append("|---:|---:|---:|---:|---:|---:|---:|---:|---|")
    for p in phases:
        lines.append(
            f"| {p.get('partition_id')} | {p.get('keys_loaded', 0):,} | {p.get('inserted', 0):,} "
            f"| {p.get('duplicates', 0):,} | {p.get('insert_ns', 0):,} | {p.get('ns_per_insert', 0.0):,.1f} "
            f"| {p.get('leaf_count', 0):,} | {p.get('routing_count', 0):,} | {_fmt_status(p)} |"
        )

    failures = [p for p in phases if p.get("error") or p.get("export_error")]
    if failures:
        lines.append("")
        lines.append("## Recovered Failures")
        lines.append("")
        for p in failures:
            if p.get("error"):
                lines.append(f"- partition {p.get('partition_id')}: {p['error']}")
            if p.get("export_error"):
                lines.append(f"- partition {p.get('partition_id')} export: {p['export_error']}")
    lines.append("")
    return "\n".join(lines)


def write_markdown_report(payload: dict[str, Any], path: Path) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(build_markdown_report(payload))
