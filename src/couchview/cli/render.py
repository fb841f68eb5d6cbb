"""couchview render — print the design documents a module declares.

Usage:
  couchview render blog.models
  couchview render blog.models --namespace Post
"""

from __future__ import annotations

import importlib
import json
import sys
from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console

from couchview.cli.errors import err_module_import, err_no_views
from couchview.design.document import DesignDocument, registries

console = Console()


def render_cmd(
    module: Annotated[
        str,
        typer.Argument(help="Dotted path of the module defining the models."),
    ],
    namespace: Annotated[
        str | None,
        typer.Option("--namespace", "-n", help="Only render this design namespace."),
    ] = None,
) -> None:
    """Print the design documents declared by MODULE as JSON."""
    docs = load_design_documents(module)
    if namespace is not None:
        docs = [d for d in docs if d.namespace == namespace]
    if not docs:
        console.print(err_no_views(module))
        raise typer.Exit(1)

    for doc in docs:
        console.print_json(json.dumps(doc.to_document()))


def load_design_documents(module: str) -> list[DesignDocument]:
    """Import *module* and return every non-empty design document, by id.

    Exits with status 1 if the import fails.
    """
    cwd = str(Path.cwd())
    if cwd not in sys.path:
        sys.path.insert(0, cwd)
    try:
        importlib.import_module(module)
    except ImportError as exc:
        console.print(err_module_import(module, str(exc)))
        raise typer.Exit(1) from exc

    return sorted((d for d in registries() if d.definitions()), key=lambda d: d.doc_id)
