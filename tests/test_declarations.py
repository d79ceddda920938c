"""Tests for the declaration walker and FileChecker."""

from __future__ import annotations

import pytest

from phpscope.checkers import ClassInventory
from phpscope.config import (
    ClassDeclaration,
    NamespaceDeclaration,
    OtherDeclaration,
    SyntaxTree,
    UseClause,
    UseDeclaration,
)
from phpscope.errors import ClassCheckError, MalformedNamespaceError, PhpSyntaxError
from phpscope.graph.source_unit import SourceUnit
from phpscope.graph.unit_registry import UnitRegistry
from phpscope.phases.declarations import DeclarationWalker, FileChecker, UnitBuilder
from phpscope.phases.parsing import ParseCache


class RecordingChecker:
    def __init__(self, fail_on: str | None = None) -> None:
        self.calls: list[tuple[str, str, dict, str]] = []
        self.fail_on = fail_on

    def check_class(self, node, namespace, aliases, path):
        self.calls.append((node.name, namespace, dict(aliases), path))
        if node.name == self.fail_on:
            raise ClassCheckError(path, node.line, f"{node.name} rejected")


def _use(line: int, *pairs: tuple[str, str]) -> UseDeclaration:
    return UseDeclaration(line=line, clauses=tuple(UseClause(n, a) for n, a in pairs))


class TestDeclarationWalker:
    def test_top_level_class_checked_with_empty_namespace(self):
        checker = RecordingChecker()
        tree = SyntaxTree(nodes=(
            _use(2, ("Foo\\Bar", "Bar")),
            ClassDeclaration(name="A", line=3),
        ))
        unit = DeclarationWalker(checker).walk(tree, SourceUnit("a.php"), check_classes=True)

        assert checker.calls == [("A", "", {"Bar": "Foo\\Bar"}, "a.php")]
        assert unit.namespace is None
        assert unit.aliases == {"Bar": "Foo\\Bar"}

    def test_check_classes_false_skips_checker(self):
        checker = RecordingChecker()
        tree = SyntaxTree(nodes=(ClassDeclaration(name="A", line=1),))
        DeclarationWalker(checker).walk(tree, SourceUnit("a.php"), check_classes=False)
        assert checker.calls == []

    def test_namespace_set_before_class_check(self):
        checker = RecordingChecker()
        tree = SyntaxTree(nodes=(
            NamespaceDeclaration(name="App", line=1, body=(
                _use(2, ("Lib\\Thing", "Thing")),
                ClassDeclaration(name="A", line=3),
            )),
        ))
        unit = DeclarationWalker(checker).walk(tree, SourceUnit("a.php"), check_classes=True)

        assert checker.calls == [("A", "App", {"Thing": "Lib\\Thing"}, "a.php")]
        assert unit.namespace == "App"
        assert unit.get_absolute_class("A") == "App\\A"
        assert unit.get_absolute_class("Thing") == "Lib\\Thing"

    def test_namespace_without_class_leaves_unit_global(self):
        tree = SyntaxTree(nodes=(
            NamespaceDeclaration(name="App", line=1, body=(_use(2, ("X\\Y", "Y")),)),
        ))
        unit = DeclarationWalker().walk(tree, SourceUnit("a.php"), check_classes=False)
        assert unit.namespace is None
        assert unit.aliases == {"Y": "X\\Y"}

    def test_alias_snapshot_taken_at_class(self):
        checker = RecordingChecker()
        tree = SyntaxTree(nodes=(
            NamespaceDeclaration(name="App", line=1, body=(
                ClassDeclaration(name="A", line=2),
                _use(3, ("Late\\Name", "Name")),
            )),
        ))
        unit = DeclarationWalker(checker).walk(tree, SourceUnit("a.php"), check_classes=True)
        assert checker.calls[0][2] == {}
        assert unit.aliases == {"Name": "Late\\Name"}

    def test_blocks_share_alias_table(self):
        tree = SyntaxTree(nodes=(
            NamespaceDeclaration(name="A", line=1, body=(_use(2, ("X\\One", "One")),)),
            NamespaceDeclaration(name="B", line=4, body=(
                _use(5, ("X\\Two", "Two")),
                ClassDeclaration(name="C", line=6),
            )),
        ))
        unit = DeclarationWalker().walk(tree, SourceUnit("a.php"), check_classes=False)
        assert unit.aliases == {"One": "X\\One", "Two": "X\\Two"}
        assert unit.namespace == "B"

    def test_duplicate_alias_last_wins(self):
        tree = SyntaxTree(nodes=(
            _use(1, ("First\\A", "A")),
            _use(2, ("Second\\A", "A")),
        ))
        unit = DeclarationWalker().walk(tree, SourceUnit("a.php"), check_classes=False)
        assert unit.get_absolute_class("A") == "Second\\A"

    def test_class_in_anonymous_namespace_is_malformed(self):
        tree = SyntaxTree(nodes=(
            NamespaceDeclaration(name=None, line=1, body=(ClassDeclaration(name="A", line=2),)),
        ))
        with pytest.raises(MalformedNamespaceError) as exc_info:
            DeclarationWalker().walk(tree, SourceUnit("a.php"), check_classes=False)
        assert exc_info.value.path == "a.php"
        assert exc_info.value.line == 2

    def test_anonymous_namespace_without_class_is_fine(self):
        tree = SyntaxTree(nodes=(
            NamespaceDeclaration(name=None, line=1, body=(OtherDeclaration("function_definition", 2),)),
        ))
        unit = DeclarationWalker().walk(tree, SourceUnit("a.php"), check_classes=False)
        assert unit.namespace is None

    def test_other_nodes_ignored(self):
        tree = SyntaxTree(nodes=(
            OtherDeclaration("expression_statement", 1),
            OtherDeclaration("function_definition", 2),
        ))
        unit = DeclarationWalker().walk(tree, SourceUnit("a.php"), check_classes=True)
        assert unit.namespace is None
        assert unit.aliases == {}

    def test_nested_namespace_nodes_not_descended(self):
        checker = RecordingChecker()
        tree = SyntaxTree(nodes=(
            NamespaceDeclaration(name="A", line=1, body=(
                NamespaceDeclaration(name="B", line=2, body=(ClassDeclaration(name="C", line=3),)),
            )),
        ))
        DeclarationWalker(checker).walk(tree, SourceUnit("a.php"), check_classes=True)
        assert checker.calls == []

    def test_checker_error_aborts_walk(self):
        checker = RecordingChecker(fail_on="A")
        tree = SyntaxTree(nodes=(
            ClassDeclaration(name="A", line=1),
            ClassDeclaration(name="B", line=2),
        ))
        with pytest.raises(ClassCheckError):
            DeclarationWalker(checker).walk(tree, SourceUnit("a.php"), check_classes=True)
        assert [c[0] for c in checker.calls] == ["A"]


def _write(tmp_path, name: str, body: str) -> str:
    path = tmp_path / name
    path.write_text(body)
    return str(path)


class TestFileChecker:
    @pytest.fixture(autouse=True)
    def setup(self, tmp_path):
        self.tmp_path = tmp_path
        self.cache = ParseCache()
        self.registry = UnitRegistry(builder=UnitBuilder(self.cache))

    def _checker(self, path: str, checker=None, **kwargs) -> FileChecker:
        return FileChecker(path, self.registry, self.cache, checker=checker, **kwargs)

    def test_check_registers_unit(self):
        path = _write(self.tmp_path, "User.php", "<?php\nnamespace App;\nuse Lib\\Clock;\nclass User {}\n")
        unit = self._checker(path).check()

        assert self.registry.get(path) is unit
        assert unit.frozen
        assert unit.namespace == "App"
        assert unit.aliases == {"Clock": "Lib\\Clock"}

    def test_check_twice_keeps_one_unit(self):
        path = _write(self.tmp_path, "User.php", "<?php\nnamespace App;\nclass User {}\n")
        checker = RecordingChecker()

        first = self._checker(path, checker).check()
        second = self._checker(path, checker).check()

        assert first is second
        assert len(self.registry) == 1
        assert len(checker.calls) == 1

    def test_check_after_lazy_build_runs_class_checks(self):
        path = _write(self.tmp_path, "User.php", "<?php\nnamespace App;\nclass User {}\n")
        lazy = self.registry.get_or_build(path)
        checker = RecordingChecker()

        unit = self._checker(path, checker).check()

        assert unit is lazy
        assert checker.calls == [("User", "App", {}, path)]
        assert self.registry.is_checked(path)

    def test_malformed_namespace_not_registered(self):
        path = _write(self.tmp_path, "Anon.php", "<?php\nnamespace {\n    class Anon {}\n}\n")
        with pytest.raises(MalformedNamespaceError) as exc_info:
            self._checker(path).check()
        assert exc_info.value.line == 3
        assert path not in self.registry
        assert not self.registry.is_checked(path)

    def test_get_absolute_class(self):
        path = _write(self.tmp_path, "User.php", "<?php\nnamespace App;\nuse Lib\\Clock as C;\nclass User {}\n")
        fc = self._checker(path)
        fc.check()
        assert fc.get_absolute_class("C") == "Lib\\Clock"
        assert fc.get_absolute_class("Post") == "App\\Post"
        assert fc.get_absolute_class("\\Post") == "Post"

    def test_skip_dynamic_output_check_flag(self):
        path = _write(self.tmp_path, "view.php", "<?php\necho 'hi';\n")
        self._checker(path, skip_dynamic_output_check=True).check()
        assert self.registry.get(path).skip_dynamic_output_check is True
        assert self.registry.should_check_dynamic_output(path) is False

    def test_inventory_checker_resolves_parents(self):
        path = _write(
            self.tmp_path,
            "User.php",
            "<?php\nnamespace App;\nuse Lib\\Base as Parent_;\n"
            "class User extends Parent_ implements \\Countable, Named {}\n",
        )
        inventory = ClassInventory()
        self._checker(path, inventory).check()

        record = inventory.find("App\\User")
        assert record is not None
        assert record.extends == ["Lib\\Base"]
        assert record.implements == ["Countable", "App\\Named"]
        assert inventory.kg.get_parents("App\\User") == ["Lib\\Base"]


class RecordingMethodChecker:
    def __init__(self) -> None:
        self.calls = []

    def check_method(self, class_name, tree, namespace, aliases, path):
        self.calls.append((class_name, tree, namespace, dict(aliases), path))


class TestCheckWithClass:
    @pytest.fixture(autouse=True)
    def setup(self, tmp_path):
        self.tmp_path = tmp_path
        self.cache = ParseCache()
        self.registry = UnitRegistry(builder=UnitBuilder(self.cache))

    def test_file_checked_as_method_body(self):
        path = _write(self.tmp_path, "view.php", "<?php\nuse Lib\\Html;\necho Html::escape($this->title);\n")
        method_checker = RecordingMethodChecker()
        fc = FileChecker(path, self.registry, self.cache, method_checker=method_checker)

        tree = fc.check_with_class("App\\View")

        assert len(method_checker.calls) == 1
        class_name, seen_tree, namespace, aliases, seen_path = method_checker.calls[0]
        assert class_name == "App\\View"
        assert seen_tree is tree
        assert isinstance(tree.nodes[0], UseDeclaration)
        assert namespace == ""
        assert aliases == {}
        assert seen_path == path
        assert path not in self.registry

    def test_requires_method_checker(self):
        path = _write(self.tmp_path, "view.php", "<?php echo 1;\n")
        with pytest.raises(RuntimeError):
            FileChecker(path, self.registry, self.cache).check_with_class("App\\View")

    def test_syntax_error_propagates(self):
        path = _write(self.tmp_path, "view.php", "<?php class {\n")
        fc = FileChecker(path, self.registry, self.cache, method_checker=RecordingMethodChecker())
        with pytest.raises(PhpSyntaxError):
            fc.check_with_class("App\\View")
