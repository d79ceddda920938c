"""Top-level declaration dispatch and the per-file check entry point."""

from __future__ import annotations

import fnmatch
import logging
from pathlib import Path
from typing import Callable

from phpscope.checkers import ClassChecker, MethodChecker
from phpscope.config import (
    ClassDeclaration,
    Declaration,
    NamespaceDeclaration,
    OtherDeclaration,
    RawSource,
    SyntaxTree,
    UseDeclaration,
)
from phpscope.errors import MalformedNamespaceError
from phpscope.graph.source_unit import SourceUnit
from phpscope.graph.unit_registry import UnitRegistry
from phpscope.phases.parsing import ParseCache

logger = logging.getLogger(__name__)


class DeclarationWalker:
    """Routes namespace, use and class nodes into a SourceUnit.

    Walks the top level and one level inside each namespace block. Every
    namespace block in a file shares the file's single alias table.
    """

    def __init__(self, checker: ClassChecker | None = None) -> None:
        self.checker = checker

    def walk(self, tree: SyntaxTree, unit: SourceUnit, check_classes: bool) -> SourceUnit:
        check = check_classes and self.checker is not None
        for node in tree.nodes:
            match node:
                case ClassDeclaration():
                    if check:
                        self._check_class(node, "", unit)
                case NamespaceDeclaration():
                    self._walk_namespace(node, unit, check)
                case UseDeclaration():
                    self._add_uses(node, unit)
                case OtherDeclaration():
                    pass
        return unit

    def _walk_namespace(self, ns: NamespaceDeclaration, unit: SourceUnit, check: bool) -> None:
        for node in ns.body:
            match node:
                case ClassDeclaration():
                    if not ns.name:
                        raise MalformedNamespaceError(unit.path, node.line)
                    unit.namespace = ns.name
                    if check:
                        self._check_class(node, ns.name, unit)
                case UseDeclaration():
                    self._add_uses(node, unit)
                case NamespaceDeclaration() | OtherDeclaration():
                    pass

    def _add_uses(self, node: UseDeclaration, unit: SourceUnit) -> None:
        for clause in node.clauses:
            unit.add_alias(clause.alias, clause.name)

    def _check_class(self, node: ClassDeclaration, namespace: str, unit: SourceUnit) -> None:
        self.checker.check_class(node, namespace, unit.alias_snapshot(), unit.path)


def read_source(path: str) -> RawSource:
    with open(path, "rb") as f:
        return RawSource(path=path, content=f.read())


def matches_any(path: str, patterns: list[str]) -> bool:
    return any(fnmatch.fnmatch(path, p) or fnmatch.fnmatch(Path(path).name, p) for p in patterns)


class UnitBuilder:
    """Builds a SourceUnit for a file without running class checks."""

    def __init__(
        self,
        cache: ParseCache,
        skip_output_check: Callable[[str], bool] | None = None,
    ) -> None:
        self.cache = cache
        self.skip_output_check = skip_output_check
        self._walker = DeclarationWalker()

    def __call__(self, path: str) -> SourceUnit:
        source = read_source(path)
        tree = self.cache.get_or_parse(source.content, source.path)
        skip = self.skip_output_check(path) if self.skip_output_check else False
        unit = SourceUnit(path, skip_dynamic_output_check=skip)
        return self._walker.walk(tree, unit, check_classes=False)


class FileChecker:
    """Checks one file and publishes its SourceUnit into the registry."""

    def __init__(
        self,
        path: str,
        registry: UnitRegistry,
        cache: ParseCache,
        checker: ClassChecker | None = None,
        skip_dynamic_output_check: bool = False,
        method_checker: MethodChecker | None = None,
    ) -> None:
        self.path = path
        self.method_checker = method_checker
        self.registry = registry
        self.cache = cache
        self.walker = DeclarationWalker(checker)
        self.skip_dynamic_output_check = skip_dynamic_output_check

    def check(self, check_classes: bool = True) -> SourceUnit:
        """Walk the file and register its unit.

        Class checks run at most once per path; repeated calls return the
        registered unit. A file that was already resolved lazily keeps that
        unit, but still gets its class checks on the first real check.
        """
        registered = self.registry.get(self.path)
        if not check_classes:
            return registered or self.registry.get_or_build(self.path, self._build)

        if not self.registry.mark_checked(self.path):
            return registered or self.registry.get_or_build(self.path, self._build)

        try:
            unit = self._build(self.path, check_classes=True)
        except BaseException:
            self.registry.unmark_checked(self.path)
            raise
        return self.registry.publish(unit)

    def _build(self, path: str, check_classes: bool = False) -> SourceUnit:
        source = read_source(path)
        tree = self.cache.get_or_parse(source.content, source.path)
        unit = SourceUnit(path, skip_dynamic_output_check=self.skip_dynamic_output_check)
        return self.walker.walk(tree, unit, check_classes)

    def check_with_class(self, class_name: str) -> SyntaxTree:
        """Check the whole file as the body of a method of `class_name`.

        The statements run in no namespace and with no aliases, and the file
        is not registered.
        """
        if self.method_checker is None:
            raise RuntimeError(f"No method checker configured for {self.path}")
        source = read_source(self.path)
        tree = self.cache.get_or_parse(source.content, source.path)
        self.method_checker.check_method(class_name, tree, "", {}, self.path)
        return tree

    def get_absolute_class(self, name: str) -> str:
        unit = self.registry.get(self.path) or self.check(check_classes=False)
        return unit.get_absolute_class(name)
