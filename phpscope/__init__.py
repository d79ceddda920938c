"""phpscope - namespace and class-name resolution for PHP static analysis."""

__version__ = "0.1.0"
