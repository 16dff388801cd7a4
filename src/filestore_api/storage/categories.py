"""The closed set of storage categories ("systems")."""

from typing import Iterable, Tuple

from filestore_api.errors import InvalidCategory


class CategoryRegistry:
    """
    Fixed, ordered set of valid categories.

    Built once from configuration and never mutated; every store operation
    checks its category here before touching the filesystem.
    """

    def __init__(self, categories: Iterable[str]):
        self._ordered: Tuple[str, ...] = tuple(dict.fromkeys(categories))
        if not self._ordered:
            raise ValueError("CategoryRegistry needs at least one category")
        self._members = frozenset(self._ordered)

    def is_valid_category(self, name: str) -> bool:
        return name in self._members

    def list_categories(self) -> Tuple[str, ...]:
        return self._ordered

    def require(self, name: str) -> str:
        """Return ``name`` unchanged, or raise :class:`InvalidCategory`."""
        if not self.is_valid_category(name):
            raise InvalidCategory(name)
        return name

    def __contains__(self, name: object) -> bool:
        return name in self._members

    def __iter__(self):
        return iter(self._ordered)

    def __len__(self) -> int:
        return len(self._ordered)
