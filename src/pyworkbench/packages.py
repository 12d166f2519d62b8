"""
Package State - which packages the current runtime instance already has.

The set is scoped to one runtime: when the worker is (re)initialized the
set is reset, since a fresh interpreter has none of the previous installs.
"""

import logging
import re

logger = logging.getLogger(__name__)

_SEPARATORS = re.compile(r"[-_.]+")


def normalize_package_name(name: str) -> str:
    """
    Normalize a package identifier for comparison.

    Case is folded and runs of "-", "_" and "." collapse to a single "-",
    so "Foo_Bar" and "foo-bar" name the same package.
    """
    return _SEPARATORS.sub("-", name.strip()).lower()


class InstalledPackageSet:
    """Normalized names of packages installed into the live runtime."""

    def __init__(self) -> None:
        self._names: set[str] = set()

    def add(self, name: str) -> str:
        normalized = normalize_package_name(name)
        self._names.add(normalized)
        logger.debug(f"Recorded installed package: {normalized}")
        return normalized

    def contains(self, name: str) -> bool:
        return normalize_package_name(name) in self._names

    def reset(self) -> None:
        if self._names:
            logger.debug(f"Resetting installed packages ({len(self._names)} recorded)")
        self._names.clear()

    def sorted(self) -> list[str]:
        return sorted(self._names)

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and self.contains(name)

    def __len__(self) -> int:
        return len(self._names)

    def __iter__(self):
        return iter(self.sorted())
