"""Core data types and configuration for phpscope analysis."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Union


class ClassKind(str, Enum):
    CLASS = "class"
    INTERFACE = "interface"
    TRAIT = "trait"
    ENUM = "enum"


class FileStatus(str, Enum):
    CHECKED = "checked"
    FAILED = "failed"
    SKIPPED = "skipped"


@dataclass(frozen=True)
class RawSource:
    path: str
    content: bytes


# --- Declaration tree ---


@dataclass(frozen=True)
class UseClause:
    """One imported name; `alias` is the local short name."""
    name: str
    alias: str


@dataclass(frozen=True)
class ClassDeclaration:
    name: str
    line: int
    kind: ClassKind = ClassKind.CLASS
    extends: tuple[str, ...] = ()
    implements: tuple[str, ...] = ()


@dataclass(frozen=True)
class UseDeclaration:
    line: int
    clauses: tuple[UseClause, ...] = ()


@dataclass(frozen=True)
class OtherDeclaration:
    kind: str
    line: int


@dataclass(frozen=True)
class NamespaceDeclaration:
    name: str | None
    line: int
    body: tuple[Declaration, ...] = ()


Declaration = Union[ClassDeclaration, NamespaceDeclaration, UseDeclaration, OtherDeclaration]


@dataclass(frozen=True)
class SyntaxTree:
    nodes: tuple[Declaration, ...] = ()


# --- Run configuration and results ---


@dataclass
class FileNode:
    path: str
    size: int = 0
    lines: int = 0


@dataclass
class ClassRecord:
    """A class-like declaration with its names resolved."""
    fqcn: str
    kind: ClassKind
    file: str
    line: int
    extends: list[str] = field(default_factory=list)
    implements: list[str] = field(default_factory=list)


@dataclass
class FileReport:
    path: str
    status: FileStatus
    namespace: str | None = None
    aliases: dict[str, str] = field(default_factory=dict)
    error_kind: str | None = None
    error_line: int | None = None
    error_message: str | None = None


def _default_cache_dir() -> str | None:
    return os.environ.get("PHPSCOPE_CACHE_DIR") or None


@dataclass
class AnalysisConfig:
    repo_path: str = ""
    output_path: str | None = None
    cache_dir: str | None = field(default_factory=_default_cache_dir)
    cache_max_entries: int = 10_000
    cache_max_age: float | None = None
    workers: int = field(default_factory=lambda: os.cpu_count() or 1)
    exclude_patterns: list[str] = field(default_factory=list)
    skip_output_check_patterns: list[str] = field(default_factory=list)
    max_file_size: int = 1_000_000  # 1MB
    deadline: float | None = None
    verbose: bool = False
    quiet: bool = False


@dataclass
class AnalysisResult:
    version: str = "1.0"
    metadata: dict[str, Any] = field(default_factory=dict)
    stats: dict[str, Any] = field(default_factory=dict)
    files: list[dict] = field(default_factory=list)
    namespaces: dict[str, list[str]] = field(default_factory=dict)
    classes: list[dict] = field(default_factory=list)
    errors: list[dict] = field(default_factory=list)
