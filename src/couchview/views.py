"""View declaration and dispatch for model types.

Declare views in the class body and query them by name::

    class Post(Model):
        views = (
            view_by("date", descending=True),
            view_by("user_id", "date"),
            view_by("tags", map=TAGS_MAP, reduce="_count"),
        )

    Post.view("by_date")                     # hydrated Post instances
    Post.view("by_date", {"raw": True})      # the store's response, untouched
    Post.view("by_tags", {"reduce": True})   # reduce rows, always raw
    Post.first_from_view("by_user_id_and_date", ["fred", "2024-01-01"])

Design documents are published lazily on the first query.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass, field, fields, replace
from typing import Any, ClassVar

from couchview.db.connection import Connection
from couchview.design.document import DesignDocument, registry_for
from couchview.design.functions import synthesize
from couchview.design.models import STORE_PARAMS, IndexDefinition
from couchview.errors import NoDatabase, ReduceNotSupported

DEFAULT_TYPE_KEY = "couchrest-type"


@dataclass
class ViewQuery:
    """Parameters for one view query.

    Store parameters left as None are not sent. ``raw`` returns the store
    response instead of model instances; ``database`` overrides the model's
    default connection.
    """

    key: Any = None
    keys: list[Any] | None = None
    startkey: Any = None
    endkey: Any = None
    limit: int | None = None
    skip: int | None = None
    descending: bool | None = None
    reduce: bool | None = None
    group: bool | None = None
    group_level: int | None = None
    stale: str | None = None
    include_docs: bool | None = None
    inclusive_end: bool | None = None
    raw: bool = False
    database: Connection | None = field(default=None, compare=False)

    @classmethod
    def coerce(cls, query: ViewQuery | Mapping[str, Any] | None) -> ViewQuery:
        """Return a fresh ViewQuery built from *query*; the input is never modified.

        Raises:
            TypeError: If a mapping contains an unknown option.
        """
        if query is None:
            return cls()
        if isinstance(query, ViewQuery):
            return replace(query)
        return cls(**dict(query))

    def params(self) -> dict[str, Any]:
        """Return the store parameters that were set, in declaration order."""
        return {
            f.name: getattr(self, f.name)
            for f in fields(self)
            if f.name in STORE_PARAMS and getattr(self, f.name) is not None
        }

    def with_defaults(self, defaults: Mapping[str, Any]) -> ViewQuery:
        """Return a copy with *defaults* filled in where nothing was set."""
        unset = {k: v for k, v in defaults.items() if getattr(self, k) is None}
        return replace(self, **unset)


@dataclass(frozen=True)
class ViewDeclaration:
    """A deferred ``declare_view`` call, collected from a class body."""

    keys: tuple[str, ...]
    options: dict[str, Any]


def view_by(*keys: str, **options: Any) -> ViewDeclaration:
    """Declare a view in a model's ``views`` tuple; see Views.declare_view."""
    return ViewDeclaration(keys=keys, options=options)


class Views:
    """View capabilities of a model type.

    Subclasses provide ``from_document`` to turn a stored document into an
    instance; everything else has a usable default.
    """

    type_key: ClassVar[str] = DEFAULT_TYPE_KEY
    design_namespace: ClassVar[str | None] = None
    database: ClassVar[Connection | None] = None
    views: ClassVar[Sequence[ViewDeclaration]] = ()

    def __init_subclass__(cls, **kwargs: Any) -> None:
        super().__init_subclass__(**kwargs)
        for declaration in cls.__dict__.get("views", ()):
            cls.declare_view(*declaration.keys, **declaration.options)

    @classmethod
    def model_type(cls) -> str:
        """Type identifier stored in documents of this model."""
        return cls.__name__

    @classmethod
    def from_document(cls, doc: dict[str, Any]) -> Any:
        """Build an instance from a stored document. Subclasses must override.

        Called once per result row by ``view`` and ``first_from_view`` unless
        the query is raw. Model provides an implementation.

        Raises:
            NotImplementedError: If the subclass does not override it.
        """
        raise NotImplementedError(f"{cls.__name__} must implement from_document()")

    @classmethod
    def use_database(cls, database: Connection | None) -> None:
        """Set the default connection for this model's queries."""
        cls.database = database

    @classmethod
    def design_document(cls) -> DesignDocument:
        return registry_for(cls.design_namespace or cls.__name__)

    # ------------------------------------------------------------------
    # Declaration
    # ------------------------------------------------------------------

    @classmethod
    def declare_view(cls, *keys: str, **options: Any) -> IndexDefinition:
        """Declare a view named ``by_<key>_and_<key>...`` on this model.

        Unless ``ducktype=True`` or a custom ``map`` is given, the generated
        map function only emits documents whose type field names this model.

        Args:
            keys: Field names to key the view on, in order.
            options: ``name``, ``map``, ``reduce``, ``ducktype``, ``guards``,
                ``reduce_by_default``, or query parameters used as defaults.

        Returns:
            The definition stored in the model's design document.
        """
        definition = synthesize(cls.model_type(), keys, options, type_key=cls.type_key)
        cls.design_document().define(definition)
        return definition

    @classmethod
    def has_view(cls, name: str) -> bool:
        return cls.design_document().has_view(name, owner=cls.model_type())

    @classmethod
    def can_reduce_view(cls, name: str) -> bool:
        """True if view *name* has a reduce function."""
        return cls.design_document().can_reduce_view(name, owner=cls.model_type())

    # ------------------------------------------------------------------
    # Dispatch
    # ------------------------------------------------------------------

    @classmethod
    def view(
        cls,
        name: str,
        query: ViewQuery | Mapping[str, Any] | None = None,
        consumer: Callable[[Any], None] | None = None,
    ) -> Any:
        """Query view *name*.

        Returns the store response for ``raw``, ``reduce`` or
        ``include_docs=False`` queries, otherwise a list of model instances
        in row order (rows without a document are skipped). With a
        *consumer*, each row or instance is passed to it and None is returned.

        Raises:
            NoDatabase: If neither ``database`` nor a model default is set.
            NotFound: If the model declares no view named *name*.
            ReduceNotSupported: If reduce is requested on a view without one.
        """
        q = ViewQuery.coerce(query)
        db = q.database if q.database is not None else cls.database
        if db is None:
            raise NoDatabase(cls.__name__)

        design = cls.design_document()
        owner = cls.model_type()
        definition = design.get(name, owner=owner)
        q = q.with_defaults(definition.defaults)
        if q.reduce is None and definition.can_reduce:
            q.reduce = False
        if q.reduce:
            if not definition.can_reduce:
                raise ReduceNotSupported(name)
            q.raw = True

        if q.raw or q.include_docs is False:
            response = design.query(db, name, q.params(), owner=owner)
            if consumer is None:
                return response
            for row in response.get("rows", []):
                consumer(row)
            return None

        q.include_docs = True
        response = design.query(db, name, q.params(), owner=owner)
        instances = (
            cls.from_document(row["doc"])
            for row in response.get("rows", [])
            if row.get("doc") is not None
        )
        if consumer is None:
            return list(instances)
        for instance in instances:
            consumer(instance)
        return None

    @classmethod
    def first_from_view(
        cls,
        name: str,
        key_or_options: Any = None,
        extra: Mapping[str, Any] | None = None,
    ) -> Any:
        """Return the first result of view *name*, or None.

        A string, number or list is used as the exact ``key``, merged into
        *extra*::

            Course.first_from_view("by_instructor", "Fred")

        A mapping or ViewQuery is used as the query itself::

            Course.first_from_view("by_instructor", {"startkey": "bbb", "endkey": "eee"})
        """
        if isinstance(key_or_options, ViewQuery):
            query = key_or_options.with_defaults({"limit": 1})
        elif isinstance(key_or_options, Mapping):
            query = ViewQuery.coerce({"limit": 1, **key_or_options})
        else:
            query = ViewQuery.coerce({"limit": 1, **(extra or {})})
            if key_or_options is not None:
                query.key = key_or_options

        result = cls.view(name, query)
        rows = result.get("rows", []) if isinstance(result, Mapping) else result
        return rows[0] if rows else None
