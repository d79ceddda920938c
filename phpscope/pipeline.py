"""Check orchestrator: discover files, then check them on a worker pool."""

from __future__ import annotations

import logging
import time
from concurrent.futures import FIRST_COMPLETED, ThreadPoolExecutor, wait
from dataclasses import dataclass, field

from phpscope.checkers import ClassInventory
from phpscope.config import AnalysisConfig, AnalysisResult, FileNode, FileReport, FileStatus
from phpscope.errors import PhpscopeError
from phpscope.graph.knowledge_graph import KnowledgeGraph
from phpscope.graph.unit_registry import UnitRegistry
from phpscope.output import build_result
from phpscope.phases.declarations import FileChecker, UnitBuilder, matches_any
from phpscope.phases.parsing import ParseCache
from phpscope.phases.structure import run_structure_phase

logger = logging.getLogger(__name__)


@dataclass
class AnalysisSession:
    """Shared state for one analysis run."""
    config: AnalysisConfig
    cache: ParseCache
    registry: UnitRegistry
    inventory: ClassInventory
    reports: dict[str, FileReport] = field(default_factory=dict)

    @property
    def kg(self) -> KnowledgeGraph:
        return self.inventory.kg


def create_session(config: AnalysisConfig) -> AnalysisSession:
    cache = ParseCache(
        cache_dir=config.cache_dir,
        max_entries=config.cache_max_entries,
        max_age=config.cache_max_age,
    )
    def skip(path: str) -> bool:
        return matches_any(path, config.skip_output_check_patterns)

    registry = UnitRegistry(builder=UnitBuilder(cache, skip_output_check=skip))
    return AnalysisSession(
        config=config,
        cache=cache,
        registry=registry,
        inventory=ClassInventory(),
    )


def check_file(session: AnalysisSession, path: str) -> FileReport:
    """Check one file, turning per-file failures into a report."""
    checker = FileChecker(
        path,
        session.registry,
        session.cache,
        checker=session.inventory,
        skip_dynamic_output_check=matches_any(path, session.config.skip_output_check_patterns),
    )
    try:
        unit = checker.check()
    except PhpscopeError as e:
        logger.warning(f"Failed to check {path}: {e}")
        return FileReport(
            path=path,
            status=FileStatus.FAILED,
            error_kind=e.kind,
            error_line=getattr(e, "line", None),
            error_message=getattr(e, "message", str(e)),
        )
    except OSError as e:
        logger.warning(f"Failed to read {path}: {e}")
        return FileReport(
            path=path,
            status=FileStatus.FAILED,
            error_kind="io",
            error_message=str(e),
        )
    return FileReport(
        path=path,
        status=FileStatus.CHECKED,
        namespace=unit.namespace,
        aliases=dict(unit.aliases),
    )


def run_pipeline(
    config: AnalysisConfig,
    progress_callback=None,
    session: AnalysisSession | None = None,
) -> AnalysisResult:
    """Discover and check every PHP file under `config.repo_path`.

    Args:
        config: Analysis configuration.
        progress_callback: Optional callable(done, total, path) invoked
            after each file. Used by the CLI for Rich progress.
        session: Reuse an existing session (and its registry) if given.
    """
    session = session or create_session(config)
    total_start = time.monotonic()

    files = run_structure_phase(config, session.kg)
    deadline = total_start + config.deadline if config.deadline else None
    _check_all(session, files, deadline, progress_callback)

    total_ms = (time.monotonic() - total_start) * 1000
    return build_result(config, session, files, total_ms)


def _check_all(
    session: AnalysisSession,
    files: list[FileNode],
    deadline: float | None,
    progress_callback=None,
) -> None:
    total = len(files)
    workers = max(1, session.config.workers)

    def record(report: FileReport) -> None:
        session.reports[report.path] = report
        if progress_callback:
            progress_callback(len(session.reports), total, report.path)

    if workers == 1:
        for node in files:
            if deadline is not None and time.monotonic() > deadline:
                break
            record(check_file(session, node.path))
    else:
        running = set()
        with ThreadPoolExecutor(max_workers=workers) as pool:
            pending = {pool.submit(check_file, session, node.path) for node in files}
            while pending:
                timeout = None if deadline is None else max(0.0, deadline - time.monotonic())
                done, pending = wait(pending, timeout=timeout, return_when=FIRST_COMPLETED)
                for future in done:
                    record(future.result())
                if not done:
                    # Queued files are dropped; files already started run to completion
                    running = {f for f in pending if not f.cancel()}
                    break
        for future in running:
            record(future.result())

    for node in files:
        if node.path not in session.reports:
            logger.warning(f"Deadline reached before checking {node.path}")
            session.reports[node.path] = FileReport(path=node.path, status=FileStatus.SKIPPED)
