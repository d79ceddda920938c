"""Class check collaborators invoked by the declaration walker."""

from __future__ import annotations

import threading
from typing import Mapping, Protocol, runtime_checkable

from phpscope.config import ClassDeclaration, ClassKind, ClassRecord, SyntaxTree
from phpscope.graph.knowledge_graph import KnowledgeGraph
from phpscope.graph.source_unit import SEPARATOR, resolve_absolute_class


@runtime_checkable
class ClassChecker(Protocol):
    """Receives every class-like declaration found while checking a file.

    `aliases` is a snapshot of the file's alias table at the point the class
    was reached. Raise ClassCheckError to abort the rest of the file.
    """

    def check_class(
        self,
        node: ClassDeclaration,
        namespace: str,
        aliases: Mapping[str, str],
        path: str,
    ) -> None:
        ...


@runtime_checkable
class MethodChecker(Protocol):
    """Checks a statement list as the body of a method on `class_name`.

    Used to check a file's top-level code as if it ran inside a class, for
    templates and scripts included from a method.
    """

    def check_method(
        self,
        class_name: str,
        tree: SyntaxTree,
        namespace: str,
        aliases: Mapping[str, str],
        path: str,
    ) -> None:
        ...


# Names that never refer to a declared class
_RESERVED = {"self", "static", "parent"}


class ClassInventory:
    """Records each class with its parents and interfaces resolved.

    Populates a KnowledgeGraph so inheritance can be queried across files.
    """

    def __init__(self, kg: KnowledgeGraph | None = None) -> None:
        self.kg = kg or KnowledgeGraph()
        self.records: list[ClassRecord] = []
        self._lock = threading.Lock()

    def check_class(
        self,
        node: ClassDeclaration,
        namespace: str,
        aliases: Mapping[str, str],
        path: str,
    ) -> None:
        fqcn = f"{namespace}{SEPARATOR}{node.name}" if namespace else node.name

        def resolve(name: str) -> str:
            if name.lower() in _RESERVED:
                return name
            return resolve_absolute_class(name, namespace or None, aliases)

        record = ClassRecord(
            fqcn=fqcn,
            kind=node.kind,
            file=path,
            line=node.line,
            extends=[resolve(n) for n in node.extends],
            implements=[resolve(n) for n in node.implements],
        )
        with self._lock:
            self.records.append(record)
            self.kg.add_class(record)

    def find(self, fqcn: str) -> ClassRecord | None:
        for record in self.records:
            if record.fqcn.lower() == fqcn.lower():
                return record
        return None

    def count(self, kind: ClassKind | None = None) -> int:
        if kind is None:
            return len(self.records)
        return sum(1 for r in self.records if r.kind == kind)
