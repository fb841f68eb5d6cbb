"""couchview store connection layer."""

from couchview.db.connection import Connection, CouchDBConnection, WriteResult

__all__ = [
    "Connection",
    "CouchDBConnection",
    "WriteResult",
]
