"""Content-addressed parse cache in front of the PHP analyser."""

from __future__ import annotations

import hashlib
import json
import logging
import os
import tempfile
import threading
import time
from concurrent.futures import Future
from dataclasses import dataclass
from pathlib import Path

from phpscope.config import (
    ClassDeclaration,
    ClassKind,
    Declaration,
    NamespaceDeclaration,
    OtherDeclaration,
    SyntaxTree,
    UseClause,
    UseDeclaration,
)
from phpscope.errors import CacheFormatError
from phpscope.languages import get_analyser
from phpscope.languages.base import LanguageAnalyser

logger = logging.getLogger(__name__)

# Bump whenever the encoded node layout changes
CACHE_FORMAT = 1

_KEY_LENGTH = 32  # md5 hex digest


def content_hash(content: bytes) -> str:
    return hashlib.md5(content).hexdigest()


# --- Encoding ---


def _encode_node(node: Declaration) -> dict:
    match node:
        case ClassDeclaration(name=name, line=line, kind=kind, extends=extends, implements=implements):
            return {
                "t": "class",
                "name": name,
                "line": line,
                "kind": kind.value,
                "extends": list(extends),
                "implements": list(implements),
            }
        case NamespaceDeclaration(name=name, line=line, body=body):
            return {"t": "namespace", "name": name, "line": line, "body": [_encode_node(n) for n in body]}
        case UseDeclaration(line=line, clauses=clauses):
            return {"t": "use", "line": line, "clauses": [[c.name, c.alias] for c in clauses]}
        case OtherDeclaration(kind=kind, line=line):
            return {"t": "other", "kind": kind, "line": line}
    raise TypeError(f"Unknown declaration node: {node!r}")


def _decode_node(data: dict) -> Declaration:
    tag = data["t"]
    if tag == "class":
        return ClassDeclaration(
            name=data["name"],
            line=data["line"],
            kind=ClassKind(data["kind"]),
            extends=tuple(data["extends"]),
            implements=tuple(data["implements"]),
        )
    if tag == "namespace":
        return NamespaceDeclaration(
            name=data["name"],
            line=data["line"],
            body=tuple(_decode_node(n) for n in data["body"]),
        )
    if tag == "use":
        return UseDeclaration(
            line=data["line"],
            clauses=tuple(UseClause(name=name, alias=alias) for name, alias in data["clauses"]),
        )
    if tag == "other":
        return OtherDeclaration(kind=data["kind"], line=data["line"])
    raise ValueError(f"unknown node tag {tag!r}")


def encode_tree(tree: SyntaxTree) -> bytes:
    doc = {"format": CACHE_FORMAT, "nodes": [_encode_node(n) for n in tree.nodes]}
    return json.dumps(doc, separators=(",", ":")).encode("utf-8")


def decode_tree(blob: bytes, key: str = "") -> SyntaxTree:
    """Decode a cache blob, raising CacheFormatError on any mismatch."""
    try:
        doc = json.loads(blob)
    except (UnicodeDecodeError, ValueError) as e:
        raise CacheFormatError(key, f"undecodable entry: {e}") from e

    # bool is an int subclass and 1.0 == 1, so compare the type too
    fmt = doc.get("format") if isinstance(doc, dict) else None
    if type(fmt) is not int or fmt != CACHE_FORMAT:
        raise CacheFormatError(key, f"format {fmt!r}, expected {CACHE_FORMAT}")

    try:
        return SyntaxTree(nodes=tuple(_decode_node(n) for n in doc["nodes"]))
    except (KeyError, TypeError, ValueError) as e:
        raise CacheFormatError(key, f"malformed node: {e}") from e


# --- Cache ---


@dataclass
class CacheStats:
    hits: int = 0
    misses: int = 0
    writes: int = 0
    evictions: int = 0
    format_errors: int = 0

    def as_dict(self) -> dict[str, int]:
        return {
            "hits": self.hits,
            "misses": self.misses,
            "writes": self.writes,
            "evictions": self.evictions,
            "format_errors": self.format_errors,
        }


class ParseCache:
    """Maps raw file bytes to their declaration tree.

    Entries live in `cache_dir/<md5>` when a directory is given, otherwise
    in memory. An entry's last-access time is its mtime, refreshed on every
    hit; the store is bounded to `max_entries`, least recently used first.
    """

    def __init__(
        self,
        cache_dir: str | os.PathLike | None = None,
        analyser: LanguageAnalyser | None = None,
        max_entries: int = 10_000,
        max_age: float | None = None,
    ) -> None:
        self.cache_dir = Path(cache_dir) if cache_dir is not None else None
        self.analyser = analyser or get_analyser(".php")
        self.max_entries = max_entries
        self.max_age = max_age
        self.stats = CacheStats()
        self._memory: dict[str, bytes] = {}
        self._access_times: dict[str, float] = {}
        self._inflight: dict[str, Future[SyntaxTree]] = {}
        self._entry_count: int | None = None
        self._lock = threading.Lock()

    def get_or_parse(self, content: bytes, path: str = "") -> SyntaxTree:
        key = content_hash(content)

        with self._lock:
            future = self._inflight.get(key)
            owner = future is None
            if owner:
                future = Future()
                self._inflight[key] = future

        if not owner:
            return future.result()

        try:
            tree = self._lookup_or_parse(key, content, path)
        except BaseException as e:
            with self._lock:
                del self._inflight[key]
            future.set_exception(e)
            raise

        with self._lock:
            del self._inflight[key]
        future.set_result(tree)
        return tree

    def _lookup_or_parse(self, key: str, content: bytes, path: str) -> SyntaxTree:
        blob = self._read(key)
        if blob is not None:
            try:
                tree = decode_tree(blob, key)
            except CacheFormatError as e:
                self._count("format_errors")
                logger.warning(f"Discarding stale cache entry for {path or key}: {e.reason}")
            else:
                self._count("hits")
                self._touch(key)
                logger.debug(f"Cache hit for {path or key}")
                return tree

        self._count("misses")
        tree = self.analyser.parse(content, path)
        self._write(key, encode_tree(tree), replace=blob is not None)
        return tree

    def _count(self, counter: str) -> None:
        with self._lock:
            setattr(self.stats, counter, getattr(self.stats, counter) + 1)

    # --- Backing store ---

    def _entry_path(self, key: str) -> Path:
        return self.cache_dir / key

    def _read(self, key: str) -> bytes | None:
        if self.cache_dir is None:
            with self._lock:
                return self._memory.get(key)
        try:
            return self._entry_path(key).read_bytes()
        except FileNotFoundError:
            return None

    def _touch(self, key: str) -> None:
        if self.cache_dir is None:
            with self._lock:
                self._access_times[key] = time.time()
            return
        try:
            os.utime(self._entry_path(key))
        except FileNotFoundError:
            # Pruned by another worker between read and touch
            pass

    def _write(self, key: str, blob: bytes, replace: bool = False) -> None:
        if self.cache_dir is None:
            with self._lock:
                is_new = key not in self._memory
                self._memory[key] = blob
                self._access_times[key] = time.time()
        else:
            self.cache_dir.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(dir=self.cache_dir, prefix=".tmp-")
            try:
                with os.fdopen(fd, "wb") as f:
                    f.write(blob)
                os.replace(tmp_name, self._entry_path(key))
            except BaseException:
                Path(tmp_name).unlink(missing_ok=True)
                raise
            is_new = not replace

        self._count("writes")
        if is_new:
            self._count_new_entry()

    def _count_new_entry(self) -> None:
        with self._lock:
            if self._entry_count is None:
                self._entry_count = len(self._list_entries())
            else:
                self._entry_count += 1
            over = self._entry_count > self.max_entries
        if over:
            self.prune()

    def _list_entries(self) -> list[tuple[str, float]]:
        """All (key, last_access) pairs in the store."""
        if self.cache_dir is None:
            return list(self._access_times.items())
        if not self.cache_dir.is_dir():
            return []
        entries = []
        for entry in os.scandir(self.cache_dir):
            if len(entry.name) != _KEY_LENGTH or not entry.is_file():
                continue
            try:
                entries.append((entry.name, entry.stat().st_mtime))
            except FileNotFoundError:
                continue
        return entries

    def _remove(self, key: str) -> None:
        if self.cache_dir is None:
            self._memory.pop(key, None)
            self._access_times.pop(key, None)
        else:
            self._entry_path(key).unlink(missing_ok=True)

    def prune(self) -> int:
        """Evict expired entries, then the least recently used above the bound.

        Returns the number of entries removed.
        """
        with self._lock:
            entries = sorted(self._list_entries(), key=lambda e: e[1])
            doomed: list[str] = []

            if self.max_age is not None:
                cutoff = time.time() - self.max_age
                doomed.extend(key for key, atime in entries if atime < cutoff)
                entries = [(key, atime) for key, atime in entries if atime >= cutoff]

            excess = len(entries) - self.max_entries
            if excess > 0:
                doomed.extend(key for key, _ in entries[:excess])
                entries = entries[excess:]

            for key in doomed:
                self._remove(key)
            self._entry_count = len(entries)
            self.stats.evictions += len(doomed)

        if doomed:
            logger.debug(f"Pruned {len(doomed)} parse cache entries")
        return len(doomed)

    def __len__(self) -> int:
        with self._lock:
            return len(self._list_entries())
