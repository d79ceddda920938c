"""File discovery: walk the source tree and collect PHP files."""

from __future__ import annotations

import fnmatch
import logging
import os
from pathlib import Path

from phpscope.config import AnalysisConfig, FileNode
from phpscope.graph.knowledge_graph import KnowledgeGraph
from phpscope.languages import supported_extensions

logger = logging.getLogger(__name__)

DEFAULT_IGNORE = {
    ".git", "node_modules", "vendor", ".idea", ".vscode",
    "__pycache__", ".phpscope-cache",
}


def _should_ignore(name: str, ignore_set: set[str]) -> bool:
    """Check if a directory or file name matches ignore patterns."""
    if name.startswith("."):
        return True
    return any(fnmatch.fnmatch(name, pattern) for pattern in ignore_set)


def run_structure_phase(config: AnalysisConfig, kg: KnowledgeGraph | None = None) -> list[FileNode]:
    """Walk the repo directory tree and return the PHP files to check.

    Paths are absolute so they can serve as file identities for the
    unit registry. A single file may be given instead of a directory.
    """
    root = Path(config.repo_path).resolve()
    extensions = supported_extensions()
    files: list[FileNode] = []

    if root.is_file():
        candidates = [(str(root.parent), [root.name])]
    elif root.is_dir():
        candidates = _walk(root, config)
    else:
        return files

    for dirpath, filenames in candidates:
        for filename in filenames:
            ext = os.path.splitext(filename)[1].lower()
            if ext not in extensions:
                continue

            full_path = os.path.join(dirpath, filename)
            try:
                size = os.path.getsize(full_path)
            except OSError as e:
                logger.warning(f"Failed to stat {full_path}: {e}")
                continue

            # Skip files over max size
            if size > config.max_file_size:
                logger.debug(f"Skipping {full_path}: {size} bytes exceeds limit")
                continue

            lines = 0
            try:
                with open(full_path, "rb") as f:
                    lines = sum(1 for _ in f)
            except OSError:
                pass

            node = FileNode(path=full_path, size=size, lines=lines)
            files.append(node)
            if kg is not None:
                kg.add_file(node)

    return files


def _walk(root: Path, config: AnalysisConfig) -> list[tuple[str, list[str]]]:
    ignore_set = set(DEFAULT_IGNORE)
    ignore_set.update(config.exclude_patterns)

    result = []
    for dirpath, dirnames, filenames in os.walk(root):
        # Filter ignored directories in-place
        dirnames[:] = [
            d for d in sorted(dirnames)
            if not _should_ignore(d, ignore_set)
        ]
        result.append((
            dirpath,
            [f for f in sorted(filenames) if not _should_ignore(f, ignore_set)],
        ))
    return result
