"""Per-file resolution context: current namespace plus alias table."""

from __future__ import annotations

import logging
from types import MappingProxyType
from typing import Mapping

logger = logging.getLogger(__name__)

SEPARATOR = "\\"
_RELATIVE_PREFIX = "namespace\\"


def resolve_absolute_class(
    name: str, namespace: str | None, aliases: Mapping[str, str]
) -> str:
    """Return the fully-qualified form of a class reference.

    Resolution order:
        1. ``\\Foo\\Bar`` is already fully qualified - strip the marker.
        2. ``namespace\\Foo`` is relative to the current namespace.
        3. The first segment matching an alias is replaced by its target.
        4. Otherwise the current namespace (if any) is prepended.

    An alias always wins over the enclosing namespace. Never raises; an
    unknown name falls through to namespace prefixing.
    """
    if not name:
        return name

    if name.startswith(SEPARATOR):
        return name[1:]

    if name[: len(_RELATIVE_PREFIX)].lower() == _RELATIVE_PREFIX:
        rest = name[len(_RELATIVE_PREFIX):]
        return f"{namespace}{SEPARATOR}{rest}" if namespace else rest

    first, sep, rest = name.partition(SEPARATOR)
    target = aliases.get(first)
    if target is not None:
        return f"{target}{SEPARATOR}{rest}" if sep else target

    if namespace:
        return f"{namespace}{SEPARATOR}{name}"
    return name


class FrozenUnitError(RuntimeError):
    """A published SourceUnit was mutated."""


class SourceUnit:
    """Resolution state for one file.

    Built by a single declaration walk, then frozen and shared read-only.
    """

    def __init__(self, path: str, skip_dynamic_output_check: bool = False) -> None:
        self.path = path
        self.skip_dynamic_output_check = skip_dynamic_output_check
        self._namespace: str | None = None
        self._aliases: dict[str, str] = {}
        self._frozen = False

    def __repr__(self) -> str:
        return (
            f"SourceUnit(path={self.path!r}, namespace={self._namespace!r}, "
            f"aliases={self._aliases!r}, frozen={self._frozen})"
        )

    @property
    def namespace(self) -> str | None:
        return self._namespace

    @namespace.setter
    def namespace(self, value: str | None) -> None:
        self._check_mutable()
        self._namespace = value

    @property
    def aliases(self) -> Mapping[str, str]:
        return MappingProxyType(self._aliases)

    @property
    def frozen(self) -> bool:
        return self._frozen

    def add_alias(self, alias: str, target: str) -> None:
        self._check_mutable()
        previous = self._aliases.get(alias)
        if previous is not None and previous != target:
            logger.debug(f"{self.path}: alias {alias} rebound from {previous} to {target}")
        self._aliases[alias] = target

    def alias_snapshot(self) -> dict[str, str]:
        """Copy of the alias table as it stands now."""
        return dict(self._aliases)

    def freeze(self) -> SourceUnit:
        self._frozen = True
        return self

    def get_absolute_class(self, name: str) -> str:
        return resolve_absolute_class(name, self._namespace, self._aliases)

    def _check_mutable(self) -> None:
        if self._frozen:
            raise FrozenUnitError(f"SourceUnit for {self.path} is frozen")
