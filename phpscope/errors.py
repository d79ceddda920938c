"""Exception taxonomy for phpscope."""

from __future__ import annotations


class PhpscopeError(Exception):
    """Base class for every error raised by phpscope."""

    kind = "error"


class PhpSyntaxError(PhpscopeError):
    """Source text could not be parsed."""

    kind = "syntax"

    def __init__(self, path: str, line: int, message: str) -> None:
        self.path = path
        self.line = line
        self.message = message
        super().__init__(f"{path}:{line}: {message}")


class MalformedNamespaceError(PhpscopeError):
    """A class was declared inside a namespace block that has no name."""

    kind = "malformed_namespace"

    def __init__(self, path: str, line: int) -> None:
        self.path = path
        self.line = line
        self.message = "Empty namespace"
        super().__init__(f"{path}:{line}: {self.message}")


class CacheFormatError(PhpscopeError):
    """A cache entry was written by an incompatible encoder or is corrupt."""

    kind = "cache_format"

    def __init__(self, key: str, reason: str) -> None:
        self.key = key
        self.reason = reason
        super().__init__(f"cache entry {key}: {reason}")


class ClassCheckError(PhpscopeError):
    """Raised by a class checker to abort checking the current file."""

    kind = "class_check"

    def __init__(self, path: str, line: int, message: str) -> None:
        self.path = path
        self.line = line
        self.message = message
        super().__init__(f"{path}:{line}: {message}")
