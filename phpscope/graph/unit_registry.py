"""Run-scoped registry of SourceUnits with single-flight construction."""

from __future__ import annotations

import logging
import threading
from concurrent.futures import Future
from typing import Callable, Iterator

from phpscope.graph.namespace_index import NamespaceIndex
from phpscope.graph.source_unit import SourceUnit

logger = logging.getLogger(__name__)

UnitBuilderFn = Callable[[str], SourceUnit]


class UnitRegistry:
    """Maps file path -> SourceUnit for one analysis run.

    Each path holds at most one unit. Concurrent requests to build the same
    path share a single construction: the first caller builds and publishes,
    the others block on its Future.
    """

    def __init__(self, builder: UnitBuilderFn | None = None) -> None:
        self.builder = builder
        self.ns_index = NamespaceIndex()
        self.builds = 0
        self._units: dict[str, SourceUnit] = {}
        self._pending: dict[str, Future[SourceUnit]] = {}
        self._checked: set[str] = set()
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._units)

    def __contains__(self, path: object) -> bool:
        with self._lock:
            return path in self._units

    def get(self, path: str) -> SourceUnit | None:
        with self._lock:
            return self._units.get(path)

    def units(self) -> Iterator[SourceUnit]:
        with self._lock:
            snapshot = list(self._units.values())
        return iter(snapshot)

    def publish(self, unit: SourceUnit) -> SourceUnit:
        """Register a unit unless the path already has one.

        Returns the unit that ends up registered.
        """
        with self._lock:
            existing = self._units.get(unit.path)
            if existing is not None:
                logger.debug(f"{unit.path} already registered, keeping first unit")
                return existing
            self._install(unit)
            return unit

    def _install(self, unit: SourceUnit) -> None:
        unit.freeze()
        self._units[unit.path] = unit
        if unit.namespace:
            self.ns_index.register(unit.namespace, unit.path)
        for target in unit.aliases.values():
            self.ns_index.register_file_import(unit.path, target)

    def get_or_build(self, path: str, build: UnitBuilderFn | None = None) -> SourceUnit:
        """Return the registered unit for `path`, building it at most once."""
        build = build or self.builder
        if build is None:
            raise RuntimeError("UnitRegistry has no builder configured")

        with self._lock:
            unit = self._units.get(path)
            if unit is not None:
                return unit
            future = self._pending.get(path)
            owner = future is None
            if owner:
                future = Future()
                self._pending[path] = future

        if not owner:
            return future.result()

        try:
            unit = build(path)
        except BaseException as e:
            with self._lock:
                del self._pending[path]
            future.set_exception(e)
            raise

        with self._lock:
            self.builds += 1
            registered = self._units.get(path)
            if registered is None:
                self._install(unit)
                registered = unit
            del self._pending[path]
        future.set_result(registered)
        return registered

    def resolve_in_file(self, name: str, path: str) -> str:
        """Resolve a class name in the context of another file."""
        return self.get_or_build(path).get_absolute_class(name)

    def mark_checked(self, path: str) -> bool:
        """Record that class checks ran for `path`. False if already recorded."""
        with self._lock:
            if path in self._checked:
                return False
            self._checked.add(path)
            return True

    def unmark_checked(self, path: str) -> None:
        with self._lock:
            self._checked.discard(path)

    def is_checked(self, path: str) -> bool:
        with self._lock:
            return path in self._checked

    def should_check_dynamic_output(self, path: str) -> bool:
        unit = self.get(path)
        return unit is None or not unit.skip_dynamic_output_check
