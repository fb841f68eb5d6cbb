"""couchview design documents — view synthesis and the per-namespace registry."""

from couchview.design.document import DesignDocument, registries, registry_for
from couchview.design.functions import MapFunction, synthesize, type_guard, view_name
from couchview.design.models import STORE_PARAMS, IndexDefinition

__all__ = [
    "DesignDocument",
    "IndexDefinition",
    "MapFunction",
    "STORE_PARAMS",
    "registries",
    "registry_for",
    "synthesize",
    "type_guard",
    "view_name",
]
