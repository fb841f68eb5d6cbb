"""Value types for view definitions."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

# Query parameters understood by the store; passed through unchanged.
STORE_PARAMS: frozenset[str] = frozenset(
    [
        "key",
        "keys",
        "startkey",
        "endkey",
        "limit",
        "skip",
        "descending",
        "reduce",
        "group",
        "group_level",
        "stale",
        "include_docs",
        "inclusive_end",
    ]
)


@dataclass(frozen=True)
class IndexDefinition:
    """One named view inside a design document.

    Attributes:
        name: Canonical view name, e.g. ``by_user_id_and_date``.
        owner: Type identifier of the declaring model.
        map: JavaScript source of the map function.
        reduce: JavaScript source of the reduce function, if any.
        keys: Field names the view was declared over (empty for custom views).
        guards: Predicates the generated map function requires.
        defaults: Query parameters curried into every query of this view.
    """

    name: str
    owner: str
    map: str
    reduce: str | None = None
    keys: tuple[str, ...] = ()
    guards: tuple[str, ...] = ()
    defaults: dict[str, Any] = field(default_factory=dict)

    @property
    def can_reduce(self) -> bool:
        return bool(self.reduce and self.reduce.strip())

    def same_functions(self, other: IndexDefinition) -> bool:
        """True when both definitions publish identical map/reduce source."""
        return self.map == other.map and self.reduce == other.reduce

    def to_view(self) -> dict[str, str]:
        """Return the persisted ``{"map": ..., "reduce": ...}`` entry."""
        view = {"map": self.map}
        if self.can_reduce:
            view["reduce"] = self.reduce
        return view
