"""Namespace-to-file index built from registered source units."""

from __future__ import annotations

import threading


class NamespaceIndex:
    """Maps namespaces to files and tracks the names each file imports."""

    def __init__(self) -> None:
        self.ns_to_files: dict[str, list[str]] = {}
        self.file_to_ns: dict[str, list[str]] = {}
        self.file_imports: dict[str, list[str]] = {}
        self._lock = threading.Lock()

    def register(self, namespace: str, file_path: str) -> None:
        """Register that a file declares the given namespace."""
        with self._lock:
            files = self.ns_to_files.setdefault(namespace, [])
            if file_path not in files:
                files.append(file_path)

            namespaces = self.file_to_ns.setdefault(file_path, [])
            if namespace not in namespaces:
                namespaces.append(namespace)

    def get_files_for_namespace(self, namespace: str) -> list[str]:
        """Get all files that declare the given namespace."""
        return self.ns_to_files.get(namespace, [])

    def register_file_import(self, file_path: str, target: str) -> None:
        """Record that a file imports the given fully-qualified name."""
        with self._lock:
            imports = self.file_imports.setdefault(file_path, [])
            if target not in imports:
                imports.append(target)

    def get_imported_names(self, file_path: str) -> list[str]:
        """Get all fully-qualified names imported by a file."""
        return self.file_imports.get(file_path, [])

    def namespaces(self) -> dict[str, list[str]]:
        with self._lock:
            return {ns: sorted(files) for ns, files in sorted(self.ns_to_files.items())}
