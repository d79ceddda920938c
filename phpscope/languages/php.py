"""PHP language analyser."""

from __future__ import annotations

import threading

import tree_sitter
import tree_sitter_php as ts_php

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
from phpscope.errors import PhpSyntaxError

# Map PHP AST node types to class-like kinds
_CLASS_KINDS = {
    "class_declaration": ClassKind.CLASS,
    "interface_declaration": ClassKind.INTERFACE,
    "trait_declaration": ClassKind.TRAIT,
    "enum_declaration": ClassKind.ENUM,
}

# Nodes with no meaning for declaration discovery
_NOISE_TYPES = {"php_tag", "text_interpolation", "text", "comment"}

_NAME_TYPES = ("name", "qualified_name", "relative_name", "namespace_name", "namespace_name_as_prefix")


def _text(node: tree_sitter.Node) -> str:
    # Legacy sources are often Latin-1; bad bytes become U+FFFD
    return node.text.decode("utf-8", errors="replace")


def _normalise(name: str) -> str:
    """Drop the leading separator and any whitespace inside a name."""
    return "".join(name.split()).lstrip("\\")


class PhpAnalyser:
    extensions = [".php", ".phtml", ".inc"]
    language_name = "php"

    def __init__(self) -> None:
        # tree-sitter parsers are not safe to share between threads
        self._local = threading.local()

    def get_language(self) -> tree_sitter.Language:
        return tree_sitter.Language(ts_php.language_php())

    def _parser(self) -> tree_sitter.Parser:
        parser = getattr(self._local, "parser", None)
        if parser is None:
            parser = tree_sitter.Parser(self.get_language())
            self._local.parser = parser
        return parser

    def parse(self, content: bytes, path: str = "") -> SyntaxTree:
        tree = self._parser().parse(content)
        root = tree.root_node
        if root.has_error:
            self._raise_syntax_error(root, path)
        try:
            return SyntaxTree(nodes=self._convert_program(root))
        except UnicodeError as e:
            raise PhpSyntaxError(path, 1, f"Undecodable source: {e}") from e

    def _raise_syntax_error(self, root: tree_sitter.Node, path: str) -> None:
        bad = self._first_error(root) or root
        line = bad.start_point[0] + 1
        if bad.is_missing:
            message = f"Syntax error, missing '{bad.type}'"
        else:
            snippet = _text(bad).strip().splitlines()
            token = snippet[0][:40] if snippet else ""
            message = f"Syntax error, unexpected '{token}'" if token else "Syntax error"
        raise PhpSyntaxError(path, line, message)

    def _first_error(self, node: tree_sitter.Node) -> tree_sitter.Node | None:
        """Depth-first search for the first ERROR or MISSING node."""
        if node.is_error or node.is_missing:
            return node
        for child in node.children:
            if child.has_error or child.is_missing:
                found = self._first_error(child)
                if found is not None:
                    return found
        return None

    def _convert_program(self, root: tree_sitter.Node) -> tuple[Declaration, ...]:
        nodes: list[Declaration] = []
        # Statements following `namespace Foo;` belong to that namespace
        open_ns: tuple[tree_sitter.Node, list[Declaration]] | None = None

        for child in root.named_children:
            if child.type in _NOISE_TYPES:
                continue

            if child.type == "namespace_definition":
                if open_ns is not None:
                    nodes.append(self._close_namespace(*open_ns))
                    open_ns = None
                if child.child_by_field_name("body") is None:
                    open_ns = (child, [])
                    continue
                nodes.append(self._convert_namespace(child))
                continue

            decl = self._convert(child)
            if open_ns is not None:
                open_ns[1].append(decl)
            else:
                nodes.append(decl)

        if open_ns is not None:
            nodes.append(self._close_namespace(*open_ns))
        return tuple(nodes)

    def _namespace_name(self, node: tree_sitter.Node) -> str | None:
        name_node = node.child_by_field_name("name")
        if name_node is None:
            return None
        name = _normalise(_text(name_node))
        return name or None

    def _close_namespace(
        self, node: tree_sitter.Node, body: list[Declaration]
    ) -> NamespaceDeclaration:
        return NamespaceDeclaration(
            name=self._namespace_name(node),
            line=node.start_point[0] + 1,
            body=tuple(body),
        )

    def _convert_namespace(self, node: tree_sitter.Node) -> NamespaceDeclaration:
        body_node = node.child_by_field_name("body")
        body: list[Declaration] = []
        if body_node is not None:
            for stmt in body_node.named_children:
                if stmt.type in _NOISE_TYPES:
                    continue
                body.append(self._convert(stmt))
        return self._close_namespace(node, body)

    def _convert(self, node: tree_sitter.Node) -> Declaration:
        line = node.start_point[0] + 1
        kind = _CLASS_KINDS.get(node.type)
        if kind is not None:
            return self._convert_class(node, kind)
        if node.type == "namespace_use_declaration":
            return UseDeclaration(line=line, clauses=self._use_clauses(node))
        if node.type == "namespace_definition":
            # Namespaces cannot nest; kept only so the walker can skip it
            return self._convert_namespace(node)
        return OtherDeclaration(kind=node.type, line=line)

    def _convert_class(self, node: tree_sitter.Node, kind: ClassKind) -> ClassDeclaration:
        name_node = node.child_by_field_name("name")
        extends: list[str] = []
        implements: list[str] = []
        for child in node.children:
            if child.type == "base_clause":
                extends.extend(self._clause_names(child))
            elif child.type == "class_interface_clause":
                implements.extend(self._clause_names(child))
        return ClassDeclaration(
            name=_text(name_node) if name_node else "",
            line=node.start_point[0] + 1,
            kind=kind,
            extends=tuple(extends),
            implements=tuple(implements),
        )

    def _clause_names(self, clause: tree_sitter.Node) -> list[str]:
        return [_text(c).strip() for c in clause.named_children if c.type in _NAME_TYPES]

    def _use_kind(self, node: tree_sitter.Node) -> str | None:
        """Return 'function' or 'const' for non-class imports."""
        type_node = node.child_by_field_name("type")
        if type_node is not None:
            return _text(type_node).lower()
        for child in node.children:
            if not child.is_named and _text(child).lower() in ("function", "const"):
                return _text(child).lower()
        return None

    def _use_clauses(self, decl: tree_sitter.Node) -> tuple[UseClause, ...]:
        if self._use_kind(decl) is not None:
            return ()

        clauses: list[UseClause] = []
        prefix = ""
        for child in decl.named_children:
            if child.type in _NAME_TYPES:
                # Prefix of a group use: use App\Models\{User, Post};
                prefix = _normalise(_text(child)).rstrip("\\")
            elif child.type in ("namespace_use_clause", "namespace_use_group_clause"):
                clause = self._use_clause(child, "")
                if clause is not None:
                    clauses.append(clause)
            elif child.type == "namespace_use_group":
                for member in child.named_children:
                    if member.type in ("namespace_use_clause", "namespace_use_group_clause"):
                        clause = self._use_clause(member, prefix)
                        if clause is not None:
                            clauses.append(clause)
        return tuple(clauses)

    def _use_clause(self, node: tree_sitter.Node, prefix: str) -> UseClause | None:
        if self._use_kind(node) is not None:
            return None

        name_node = None
        alias_node = node.child_by_field_name("alias")
        for child in node.named_children:
            if child.type in _NAME_TYPES and name_node is None:
                name_node = child
            elif child.type == "namespace_aliasing_clause":
                for alias_child in child.named_children:
                    if alias_child.type == "name":
                        alias_node = alias_child
        if name_node is None or name_node == alias_node:
            return None

        name = _normalise(_text(name_node))
        if prefix:
            name = f"{prefix}\\{name}"
        alias = _text(alias_node) if alias_node is not None else name.rsplit("\\", 1)[-1]
        return UseClause(name=name, alias=alias)
