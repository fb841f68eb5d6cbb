"""couchview — declarative CouchDB views for document models."""

from couchview.db.connection import Connection, CouchDBConnection, WriteResult
from couchview.design.document import DesignDocument, registries, registry_for
from couchview.design.models import IndexDefinition
from couchview.errors import (
    CouchViewError,
    NoDatabase,
    NotFound,
    PublishConflict,
    ReduceNotSupported,
)
from couchview.model import Model
from couchview.views import ViewQuery, Views, view_by

__all__ = [
    "Connection",
    "CouchDBConnection",
    "CouchViewError",
    "DesignDocument",
    "IndexDefinition",
    "Model",
    "NoDatabase",
    "NotFound",
    "PublishConflict",
    "ReduceNotSupported",
    "ViewQuery",
    "Views",
    "WriteResult",
    "registries",
    "registry_for",
    "view_by",
]
