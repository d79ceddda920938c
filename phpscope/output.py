"""JSON serialisation of a check run."""

from __future__ import annotations

import json
from dataclasses import asdict
from datetime import datetime, timezone
from pathlib import Path
from typing import TYPE_CHECKING

from phpscope import __version__
from phpscope.config import AnalysisConfig, AnalysisResult, ClassKind, FileNode, FileStatus

if TYPE_CHECKING:
    from phpscope.pipeline import AnalysisSession


def build_result(
    config: AnalysisConfig,
    session: AnalysisSession,
    files: list[FileNode],
    total_ms: float,
) -> AnalysisResult:
    """Build the AnalysisResult from the session state."""
    repo_path = Path(config.repo_path).resolve()
    reports = [session.reports[f.path] for f in files if f.path in session.reports]
    failed = [r for r in reports if r.status == FileStatus.FAILED]

    return AnalysisResult(
        version="1.0",
        metadata={
            "repo_path": str(repo_path),
            "analysed_at": datetime.now(timezone.utc).isoformat(),
            "phpscope_version": __version__,
            "analysis_duration_ms": round(total_ms, 1),
            "cache_dir": config.cache_dir,
            "workers": config.workers,
        },
        stats={
            "files": len(files),
            "checked": sum(1 for r in reports if r.status == FileStatus.CHECKED),
            "failed": len(failed),
            "skipped": sum(1 for r in reports if r.status == FileStatus.SKIPPED),
            "classes": session.kg.class_count(),
            "class_kinds": {kind.value: session.inventory.count(kind) for kind in ClassKind},
            "namespaces": len(session.registry.ns_index.namespaces()),
            "units_built": session.registry.builds,
            "cache": session.cache.stats.as_dict(),
        },
        files=[
            {
                "path": r.path,
                "status": r.status.value,
                "namespace": r.namespace,
                "aliases": r.aliases,
                "skip_dynamic_output_check": not session.registry.should_check_dynamic_output(r.path),
            }
            for r in reports
        ],
        namespaces=session.registry.ns_index.namespaces(),
        classes=[
            {
                "fqcn": rec.fqcn,
                "kind": rec.kind.value,
                "file": rec.file,
                "line": rec.line,
                "extends": rec.extends,
                "implements": rec.implements,
            }
            for rec in sorted(session.inventory.records, key=lambda r: (r.file, r.line))
        ],
        errors=[
            {
                "file": r.path,
                "line": r.error_line,
                "kind": r.error_kind,
                "message": r.error_message,
            }
            for r in failed
        ],
    )


def write_output(result: AnalysisResult, output_path: str) -> None:
    """Write the analysis result to a JSON file."""
    data = asdict(result)
    Path(output_path).parent.mkdir(parents=True, exist_ok=True)
    with open(output_path, "w") as f:
        json.dump(data, f, indent=2, default=str)
