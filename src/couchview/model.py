"""Minimal document-backed model type with view support."""

from __future__ import annotations

from typing import Any

from couchview.views import Views


class Model(Views):
    """A document stored in the database, queried through declared views.

    Field values live in a plain dict and are readable as attributes.
    Persistence of arbitrary attributes is out of scope; ``to_document``
    only adds the type field the view guards rely on.

    Fields named like a class attribute (``database``, ``views``, ``id``,
    ``get``, ``type_key``, ...) are not reachable as attributes. The
    constructor rejects them; on instances built by ``from_document`` read
    them with ``get`` or ``[]``.
    """

    def __init__(self, **fields: Any) -> None:
        shadowed = sorted(name for name in fields if hasattr(type(self), name))
        if shadowed:
            raise ValueError(
                f"{type(self).__name__} field names clash with class attributes: "
                f"{', '.join(shadowed)}"
            )
        self._doc: dict[str, Any] = dict(fields)

    @classmethod
    def from_document(cls, doc: dict[str, Any]) -> Model:
        """Build an instance from a stored document (including _id/_rev)."""
        obj = cls.__new__(cls)
        obj._doc = dict(doc)
        return obj

    def to_document(self) -> dict[str, Any]:
        return {**self._doc, self.type_key: self.model_type()}

    @property
    def id(self) -> str | None:
        return self._doc.get("_id")

    @property
    def rev(self) -> str | None:
        return self._doc.get("_rev")

    def get(self, name: str, default: Any = None) -> Any:
        return self._doc.get(name, default)

    def __getitem__(self, name: str) -> Any:
        return self._doc[name]

    def __getattr__(self, name: str) -> Any:
        # Only called for names not found normally; _doc itself must not recurse.
        if name.startswith("_"):
            raise AttributeError(name)
        try:
            return self._doc[name]
        except KeyError:
            raise AttributeError(f"{type(self).__name__} has no field '{name}'") from None

    def __eq__(self, other: object) -> bool:
        if type(other) is not type(self):
            return NotImplemented
        return self._doc == other._doc

    __hash__ = None  # type: ignore[assignment]

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self._doc!r}>"
