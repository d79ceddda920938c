"""Tests for NamespaceIndex."""

from phpscope.graph.namespace_index import NamespaceIndex


class TestNamespaceIndex:
    def test_register_and_lookup(self):
        idx = NamespaceIndex()
        idx.register("App\\Models", "src/Models/User.php")
        assert idx.get_files_for_namespace("App\\Models") == ["src/Models/User.php"]

    def test_multiple_files_per_namespace(self):
        idx = NamespaceIndex()
        idx.register("App\\Models", "src/Models/User.php")
        idx.register("App\\Models", "src/Models/Post.php")
        files = idx.get_files_for_namespace("App\\Models")
        assert len(files) == 2
        assert "src/Models/User.php" in files
        assert "src/Models/Post.php" in files

    def test_no_match(self):
        idx = NamespaceIndex()
        assert idx.get_files_for_namespace("NonExistent") == []

    def test_file_imports(self):
        idx = NamespaceIndex()
        idx.register_file_import("src/Http/Controller.php", "App\\Models\\User")
        assert idx.get_imported_names("src/Http/Controller.php") == ["App\\Models\\User"]

    def test_no_duplicate_registrations(self):
        idx = NamespaceIndex()
        idx.register("App\\Models", "src/Models/User.php")
        idx.register("App\\Models", "src/Models/User.php")
        assert len(idx.get_files_for_namespace("App\\Models")) == 1

    def test_namespaces_sorted(self):
        idx = NamespaceIndex()
        idx.register("B", "b2.php")
        idx.register("B", "b1.php")
        idx.register("A", "a.php")
        assert idx.namespaces() == {"A": ["a.php"], "B": ["b1.php", "b2.php"]}
