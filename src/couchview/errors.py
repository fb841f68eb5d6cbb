"""Exception hierarchy for view declaration, publication and dispatch."""

from __future__ import annotations


class CouchViewError(Exception):
    """Base class for all couchview errors."""


class NoDatabase(CouchViewError):
    """Raised when a view query has no connection to run against."""

    def __init__(self, model: str) -> None:
        super().__init__(
            f"A view needs a database to operate on: pass database=... in the "
            f"query or call {model}.use_database(...)"
        )
        self.model = model


class NotFound(CouchViewError, KeyError):
    """Raised when an index name is unknown to a design document."""

    def __init__(self, name: str, doc_id: str) -> None:
        super().__init__(f"No view named '{name}' in {doc_id}")
        self.name = name
        self.doc_id = doc_id

    def __str__(self) -> str:
        # KeyError would repr() the message otherwise
        return self.args[0]


class ReduceNotSupported(CouchViewError):
    """Raised when reduce=True is requested on a view without a reduce function."""

    def __init__(self, name: str) -> None:
        super().__init__(f"View '{name}' has no reduce function and cannot be reduced")
        self.name = name


class PublishConflict(CouchViewError):
    """Raised when the stored design document differs and the policy is 'raise'."""

    def __init__(self, doc_id: str, url: str) -> None:
        super().__init__(
            f"Design document {doc_id} on {url} differs from the local view definitions"
        )
        self.doc_id = doc_id
        self.url = url
