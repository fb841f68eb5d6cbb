"""Store connection interface and the CouchDB adapter."""

from __future__ import annotations

import enum
import os
from typing import Any, Protocol

import couchdb


class WriteResult(enum.Enum):
    """Outcome of writing a design document."""

    CREATED = "created"
    UPDATED = "updated"
    UNCHANGED = "unchanged"
    CONFLICT = "conflict"


class Connection(Protocol):
    """The narrow store interface design documents and views depend on."""

    url: str

    def write_design_document(
        self, doc_id: str, views: dict[str, dict[str, str]], overwrite: bool = False
    ) -> WriteResult:
        """Store *views* in design document *doc_id*.

        Returns CONFLICT without writing when the stored views differ and
        *overwrite* is False.
        """
        ...

    def query_view(self, doc_id: str, view: str, params: dict[str, Any]) -> dict[str, Any]:
        """Run *view* of design document *doc_id*; return ``{"rows": [...], ...}``."""
        ...


class CouchDBConnection:
    """Connection backed by a ``couchdb.Database``.

    Transport errors (``couchdb.http.HTTPError`` and friends) propagate
    unchanged; retries belong to the couchdb session, not to this layer.
    """

    def __init__(self, database: couchdb.Database) -> None:
        """Wrap an open database.

        Args:
            database: A ``couchdb.Database``, e.g. ``couchdb.Server(url)["blog"]``.
        """
        self._db = database
        self.url = database.resource.url

    @classmethod
    def from_config(cls, url: str, database: str) -> CouchDBConnection:
        """Open *database* on the server at *url*.

        Credentials are read from COUCHDB_USER / COUCHDB_PASSWORD, never from
        config files.
        """
        server = couchdb.Server(url)
        user = os.environ.get("COUCHDB_USER")
        if user:
            server.resource.credentials = (user, os.environ.get("COUCHDB_PASSWORD", ""))
        return cls(server[database])

    def write_design_document(
        self, doc_id: str, views: dict[str, dict[str, str]], overwrite: bool = False
    ) -> WriteResult:
        existing = self._db.get(doc_id)
        if existing is None:
            self._db.save({"_id": doc_id, "language": "javascript", "views": views})
            return WriteResult.CREATED
        if existing.get("views") == views:
            return WriteResult.UNCHANGED
        if not overwrite:
            return WriteResult.CONFLICT
        existing["views"] = views
        existing["language"] = "javascript"
        self._db.save(existing)
        return WriteResult.UPDATED

    def query_view(self, doc_id: str, view: str, params: dict[str, Any]) -> dict[str, Any]:
        design = doc_id.split("/", 1)[1]
        results = self._db.view(f"{design}/{view}", **params)
        response: dict[str, Any] = {"rows": [dict(row) for row in results.rows]}
        if results.total_rows is not None:
            response["total_rows"] = results.total_rows
            response["offset"] = results.offset
        return response
