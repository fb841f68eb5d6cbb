"""Map function synthesis for field-keyed views.

``view_by("user_id", "date")`` on ``Post`` produces a view named
``by_user_id_and_date`` whose map function is::

    function(doc) {
      if ((doc["couchrest-type"] == "Post") && (doc["user_id"] != null) && (doc["date"] != null)) {
        emit([doc["user_id"], doc["date"]], null);
      }
    }

Rendering is deterministic so the same declaration always yields the same
design document and never triggers a needless republish.
"""

from __future__ import annotations

import json
import re
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import Any

from couchview.design.models import STORE_PARAMS, IndexDefinition

_FIELD_RE: re.Pattern[str] = re.compile(r"[A-Za-z_][A-Za-z0-9_]*")

# Options consumed by the synthesizer itself; everything else must be a query default.
_DECLARATION_OPTIONS: frozenset[str] = frozenset(
    ["name", "map", "reduce", "ducktype", "guards", "reduce_by_default"]
)


def view_name(keys: Sequence[str]) -> str:
    """Return the canonical view name for *keys*.

    Examples:
        ["date"]            -> "by_date"
        ["user_id", "date"] -> "by_user_id_and_date"
    """
    if not keys:
        raise ValueError("A view needs at least one key to derive its name")
    return "by_" + "_and_".join(keys)


def type_guard(type_key: str, model_type: str) -> str:
    """Predicate restricting a map function to documents of *model_type*."""
    return f"({_doc_ref(type_key)} == {json.dumps(model_type)})"


def _doc_ref(field_name: str) -> str:
    return f"doc[{json.dumps(field_name)}]"


@dataclass(frozen=True)
class MapFunction:
    """Typed builder for a generated map function.

    Attributes:
        guards: Predicates evaluated first, in order (type guard, extra guards).
        fields: Key fields; each must be present and non-null, emitted in order.
    """

    guards: tuple[str, ...] = ()
    fields: tuple[str, ...] = ()

    def conditions(self) -> list[str]:
        return list(self.guards) + [f"({_doc_ref(f)} != null)" for f in self.fields]

    def emit_key(self) -> str:
        if len(self.fields) == 1:
            return _doc_ref(self.fields[0])
        return "[" + ", ".join(_doc_ref(f) for f in self.fields) + "]"

    def render(self) -> str:
        """Return the JavaScript source of the map function."""
        if not self.fields:
            raise ValueError("MapFunction needs at least one field to emit")
        return "\n".join(
            [
                "function(doc) {",
                f"  if ({' && '.join(self.conditions())}) {{",
                f"    emit({self.emit_key()}, null);",
                "  }",
                "}",
            ]
        )


def synthesize(
    model_type: str,
    keys: Sequence[str],
    options: Mapping[str, Any] | None = None,
    *,
    type_key: str,
) -> IndexDefinition:
    """Build the IndexDefinition for a view declared on *model_type*.

    Args:
        model_type: Type identifier stored in each document under *type_key*.
        keys: Ordered field names to key the view on.
        options: Declaration options. ``name``, ``map``, ``reduce``,
            ``ducktype``, ``guards`` and ``reduce_by_default`` shape the
            definition; any store query parameter (``descending``, ``limit``,
            ...) becomes a default for every query of the view.
        type_key: Document field holding the type identifier.

    Returns:
        The synthesized IndexDefinition.

    Raises:
        ValueError: On an empty key list without an explicit name, a key that
            is not a plain field name, or an unknown option.
    """
    opts = dict(options or {})
    unknown = set(opts) - _DECLARATION_OPTIONS - STORE_PARAMS
    if unknown:
        raise ValueError(f"Unknown view option(s): {', '.join(sorted(unknown))}")

    keys = tuple(keys)
    name = opts.pop("name", None) or view_name(keys)
    map_source = opts.pop("map", None)
    reduce_source = opts.pop("reduce", None)
    ducktype = bool(opts.pop("ducktype", False))
    guards = list(opts.pop("guards", ()))
    reduce_by_default = bool(opts.pop("reduce_by_default", False))

    if map_source is None:
        for key in keys:
            if not isinstance(key, str) or not _FIELD_RE.fullmatch(key):
                raise ValueError(f"Invalid view key {key!r}: expected a field name")
        if not ducktype:
            guards.insert(0, type_guard(type_key, model_type))
        map_source = MapFunction(guards=tuple(guards), fields=keys).render()
    else:
        # A hand-written map function carries its own guards.
        guards = []

    defaults = dict(opts)
    if reduce_by_default:
        defaults["reduce"] = True

    return IndexDefinition(
        name=name,
        owner=model_type,
        map=map_source,
        reduce=reduce_source,
        keys=keys,
        guards=tuple(guards),
        defaults=defaults,
    )
