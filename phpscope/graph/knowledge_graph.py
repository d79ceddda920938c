"""In-memory class graph backed by networkx.DiGraph."""

from __future__ import annotations

import networkx as nx

from phpscope.config import ClassRecord, FileNode


def _class_id(fqcn: str) -> str:
    # PHP class names are case-insensitive
    return f"class:{fqcn.lower()}"


class KnowledgeGraph:
    """Wrapper around networkx.DiGraph with typed node/edge methods."""

    def __init__(self) -> None:
        self.graph = nx.DiGraph()

    # --- Node addition ---

    def add_file(self, node: FileNode) -> None:
        self.graph.add_node(
            f"file:{node.path}",
            node_type="file",
            path=node.path,
            size=node.size,
            lines=node.lines,
        )

    def _ensure_class(self, fqcn: str) -> str:
        """Add a placeholder for a class referenced but not (yet) declared."""
        cid = _class_id(fqcn)
        if not self.graph.has_node(cid):
            self.graph.add_node(cid, node_type="class", fqcn=fqcn, declared=False)
        return cid

    def add_class(self, record: ClassRecord) -> None:
        cid = _class_id(record.fqcn)
        self.graph.add_node(
            cid,
            node_type="class",
            fqcn=record.fqcn,
            kind=record.kind.value,
            file=record.file,
            line=record.line,
            declared=True,
        )
        # DEFINES edge: file -> class
        self.graph.add_edge(f"file:{record.file}", cid, edge_type="DEFINES")
        for parent in record.extends:
            self.graph.add_edge(cid, self._ensure_class(parent), edge_type="EXTENDS")
        for iface in record.implements:
            self.graph.add_edge(cid, self._ensure_class(iface), edge_type="IMPLEMENTS")

    # --- Queries ---

    def get_files(self) -> list[dict]:
        return [
            data for _, data in self.graph.nodes(data=True) if data.get("node_type") == "file"
        ]

    def get_classes(self, declared_only: bool = True) -> list[dict]:
        return [
            data
            for _, data in self.graph.nodes(data=True)
            if data.get("node_type") == "class" and (data.get("declared") or not declared_only)
        ]

    def get_classes_in_file(self, path: str) -> list[dict]:
        file_id = f"file:{path}"
        if not self.graph.has_node(file_id):
            return []
        return [
            self.graph.nodes[target]
            for _, target, data in self.graph.out_edges(file_id, data=True)
            if data.get("edge_type") == "DEFINES"
        ]

    def _related(self, fqcn: str, edge_type: str, outgoing: bool) -> list[str]:
        cid = _class_id(fqcn)
        if not self.graph.has_node(cid):
            return []
        edges = self.graph.out_edges(cid, data=True) if outgoing else self.graph.in_edges(cid, data=True)
        result = []
        for src, tgt, data in edges:
            if data.get("edge_type") == edge_type:
                other = tgt if outgoing else src
                result.append(self.graph.nodes[other]["fqcn"])
        return sorted(result)

    def get_parents(self, fqcn: str) -> list[str]:
        return self._related(fqcn, "EXTENDS", outgoing=True)

    def get_interfaces(self, fqcn: str) -> list[str]:
        return self._related(fqcn, "IMPLEMENTS", outgoing=True)

    def get_subclasses(self, fqcn: str) -> list[str]:
        return self._related(fqcn, "EXTENDS", outgoing=False)

    def get_ancestors(self, fqcn: str) -> list[str]:
        """Every class or interface reachable through EXTENDS/IMPLEMENTS."""
        cid = _class_id(fqcn)
        if not self.graph.has_node(cid):
            return []
        hierarchy = self.graph.edge_subgraph(
            (u, v) for u, v, d in self.graph.edges(data=True)
            if d.get("edge_type") in ("EXTENDS", "IMPLEMENTS")
        )
        if not hierarchy.has_node(cid):
            return []
        return sorted(hierarchy.nodes[n]["fqcn"] for n in nx.descendants(hierarchy, cid))

    def get_inheritance_edges(self) -> list[dict]:
        return [
            {
                "from": self.graph.nodes[src]["fqcn"],
                "to": self.graph.nodes[tgt]["fqcn"],
                "type": data["edge_type"],
            }
            for src, tgt, data in self.graph.edges(data=True)
            if data.get("edge_type") in ("EXTENDS", "IMPLEMENTS")
        ]

    def find_inheritance_cycles(self) -> list[list[str]]:
        hierarchy = self.graph.edge_subgraph(
            (u, v) for u, v, d in self.graph.edges(data=True)
            if d.get("edge_type") == "EXTENDS"
        )
        return [
            [hierarchy.nodes[n]["fqcn"] for n in cycle]
            for cycle in nx.simple_cycles(hierarchy)
        ]

    def class_count(self) -> int:
        return sum(
            1 for _, d in self.graph.nodes(data=True)
            if d.get("node_type") == "class" and d.get("declared")
        )

    def file_count(self) -> int:
        return sum(1 for _, d in self.graph.nodes(data=True) if d.get("node_type") == "file")
