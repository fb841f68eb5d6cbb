"""Design documents: per-namespace registries of view definitions.

A DesignDocument owns every view declared for one namespace and publishes
them to a store lazily, at most once per connection until the set changes.
Several models may share a namespace; each keeps its own type guard.
"""

from __future__ import annotations

import logging
import threading
from typing import Any

from couchview.db.connection import Connection, WriteResult
from couchview.design.models import IndexDefinition
from couchview.errors import NotFound, PublishConflict

log = logging.getLogger(__name__)

ON_CONFLICT_POLICIES: frozenset[str] = frozenset(["overwrite", "raise"])
DEFAULT_ON_CONFLICT = "overwrite"


class DesignDocument:
    """Registry of view definitions for one namespace.

    Definitions and publication state are guarded by ``_lock``, which is
    never held across a network call. The write itself runs under
    ``_publish_lock``, so concurrent first queries publish exactly once while
    lookups and defines proceed.
    """

    def __init__(self, namespace: str, on_conflict: str = DEFAULT_ON_CONFLICT) -> None:
        """Create an empty, unpublished design document.

        Args:
            namespace: Owning namespace; the document id is ``_design/<namespace>``.
            on_conflict: ``overwrite`` (default) rewrites a differing stored
                design document; ``raise`` raises PublishConflict instead.
        """
        if on_conflict not in ON_CONFLICT_POLICIES:
            raise ValueError(f"on_conflict must be one of {sorted(ON_CONFLICT_POLICIES)}")
        self.namespace = namespace
        self.doc_id = f"_design/{namespace}"
        self.on_conflict = on_conflict
        self._definitions: dict[tuple[str, str], IndexDefinition] = {}
        self._published: set[str] = set()
        self._generation = 0
        self._lock = threading.RLock()
        self._publish_lock = threading.Lock()

    def __repr__(self) -> str:
        return f"<DesignDocument {self.doc_id} views={len(self._definitions)}>"

    # ------------------------------------------------------------------
    # Definitions
    # ------------------------------------------------------------------

    def define(self, definition: IndexDefinition) -> bool:
        """Insert *definition*; return True if the set of views changed.

        Redefining an owner's view with identical content is a no-op. Different
        content replaces the previous definition (last writer wins).
        """
        ident = (definition.owner, definition.name)
        with self._lock:
            current = self._definitions.get(ident)
            if current == definition:
                return False
            if current is not None:
                log.warning(
                    "redefining view %s for %s in %s", definition.name, definition.owner, self.doc_id
                )
            self._definitions[ident] = definition
            self._generation += 1
            self._published.clear()
            return True

    def get(self, name: str, owner: str | None = None) -> IndexDefinition:
        """Return the definition named *name* (for *owner*, if given).

        Raises:
            NotFound: If no such view is defined.
        """
        return self._resolve(name, owner)[0]

    def has_view(self, name: str, owner: str | None = None) -> bool:
        try:
            self._resolve(name, owner)
        except NotFound:
            return False
        return True

    def can_reduce_view(self, name: str, owner: str | None = None) -> bool:
        try:
            return self._resolve(name, owner)[0].can_reduce
        except NotFound:
            return False

    def definitions(self) -> list[IndexDefinition]:
        with self._lock:
            return list(self._definitions.values())

    def _resolve(self, name: str, owner: str | None) -> tuple[IndexDefinition, str]:
        with self._lock:
            if owner is not None:
                definition = self._definitions.get((owner, name))
            else:
                definition = next(
                    (d for d in self._definitions.values() if d.name == name), None
                )
            if definition is None:
                raise NotFound(name, self.doc_id)
            return definition, self._store_names()[(definition.owner, definition.name)]

    def _store_names(self) -> dict[tuple[str, str], str]:
        """Map (owner, name) to the view name used in the stored document.

        Among the owners of a name, the one that sorts first keeps the plain
        name, and owners with the same map/reduce source share it. Any other
        owner is stored as ``<name>__<owner>``. The result does not depend on
        the order in which models were declared.
        """
        holders: dict[str, IndexDefinition] = {}
        names: dict[tuple[str, str], str] = {}
        for owner, name in sorted(self._definitions):
            definition = self._definitions[(owner, name)]
            holder = holders.setdefault(name, definition)
            if holder is definition or holder.same_functions(definition):
                names[(owner, name)] = name
            else:
                names[(owner, name)] = f"{name}__{owner}"
        return names

    # ------------------------------------------------------------------
    # Serialization
    # ------------------------------------------------------------------

    def views(self) -> dict[str, dict[str, str]]:
        """Return the ``views`` object of the stored design document."""
        with self._lock:
            views: dict[str, dict[str, str]] = {}
            for ident, store_name in self._store_names().items():
                views.setdefault(store_name, self._definitions[ident].to_view())
            return dict(sorted(views.items()))

    def to_document(self) -> dict[str, Any]:
        """Return the full design document as it is written to the store."""
        return {"_id": self.doc_id, "language": "javascript", "views": self.views()}

    # ------------------------------------------------------------------
    # Publication
    # ------------------------------------------------------------------

    def is_published(self, connection: Connection) -> bool:
        with self._lock:
            return connection.url in self._published

    def invalidate(self) -> None:
        """Forget every publication; the next query republishes."""
        with self._lock:
            self._generation += 1
            self._published.clear()

    def publish(self, connection: Connection) -> bool:
        """Write the design document to *connection* unless already published.

        Returns:
            True if a write was attempted, False if already published.

        Raises:
            PublishConflict: If the stored document differs and the policy is
                ``raise``, or it keeps differing after an overwrite.
        """
        if self.is_published(connection):
            return False
        with self._publish_lock:
            with self._lock:
                if connection.url in self._published:
                    return False
                views = self.views()
                generation = self._generation

            result = connection.write_design_document(self.doc_id, views)
            if result is WriteResult.CONFLICT:
                if self.on_conflict == "raise":
                    raise PublishConflict(self.doc_id, connection.url)
                log.warning(
                    "design document %s on %s differs from local views; overwriting",
                    self.doc_id,
                    connection.url,
                )
                result = connection.write_design_document(self.doc_id, views, overwrite=True)
                if result is WriteResult.CONFLICT:
                    raise PublishConflict(self.doc_id, connection.url)
            if result is WriteResult.UNCHANGED:
                log.debug("design document %s on %s is up to date", self.doc_id, connection.url)
            else:
                log.info("published design %s to %s", self.doc_id, connection.url)

            with self._lock:
                # A define during the write leaves the document stale.
                if generation == self._generation:
                    self._published.add(connection.url)
            return True

    def query(
        self,
        connection: Connection,
        name: str,
        params: dict[str, Any],
        owner: str | None = None,
    ) -> dict[str, Any]:
        """Publish if needed, then run view *name* with *params*.

        Raises:
            NotFound: If *name* is not defined; nothing is published or queried.
        """
        _, store_name = self._resolve(name, owner)
        self.publish(connection)
        return connection.query_view(self.doc_id, store_name, params)


# ------------------------------------------------------------------
# Namespace table
# ------------------------------------------------------------------

_REGISTRY: dict[str, DesignDocument] = {}
_REGISTRY_LOCK = threading.Lock()


def registry_for(namespace: str) -> DesignDocument:
    """Return the process-wide DesignDocument for *namespace*, creating it once."""
    with _REGISTRY_LOCK:
        doc = _REGISTRY.get(namespace)
        if doc is None:
            doc = _REGISTRY[namespace] = DesignDocument(namespace)
        return doc


def registries() -> list[DesignDocument]:
    """Return every DesignDocument created so far, in creation order."""
    with _REGISTRY_LOCK:
        return list(_REGISTRY.values())
