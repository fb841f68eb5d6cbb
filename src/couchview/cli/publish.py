"""couchview publish — write declared design documents to CouchDB.

Publishing normally happens lazily on the first query; this command does it
up front, e.g. at deploy time so views start indexing before traffic arrives.

Usage:
  couchview publish blog.models --database blog
  couchview publish blog.models --url http://db:5984/ --on-conflict raise
"""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

import couchdb
import typer
from rich.console import Console

from couchview.cli.errors import (
    err_config,
    err_no_database,
    err_no_views,
    err_publish_conflict,
    err_store_unreachable,
)
from couchview.cli.render import load_design_documents
from couchview.config import ConfigError, load_config
from couchview.db.connection import CouchDBConnection
from couchview.errors import PublishConflict

console = Console()


def publish_cmd(
    module: Annotated[
        str,
        typer.Argument(help="Dotted path of the module defining the models."),
    ],
    url: Annotated[
        str | None,
        typer.Option("--url", help="CouchDB server URL (default: config server.url)."),
    ] = None,
    database: Annotated[
        str | None,
        typer.Option("--database", "-d", help="Database name (default: config server.database)."),
    ] = None,
    on_conflict: Annotated[
        str | None,
        typer.Option("--on-conflict", help="overwrite | raise (default: config views.on_conflict)."),
    ] = None,
    project_dir: Annotated[
        Path | None,
        typer.Option("--project-dir", hidden=True, help="Override couchview.yaml location (for testing)."),
    ] = None,
) -> None:
    """Publish the design documents declared by MODULE."""
    try:
        cfg = load_config(project_dir)
    except ConfigError as exc:
        console.print(err_config(str(exc)))
        raise typer.Exit(1) from exc

    server_url = url or cfg.server.url
    db_name = database or cfg.server.database
    policy = on_conflict or cfg.views.on_conflict
    if policy not in ("overwrite", "raise"):
        console.print(err_config(f"--on-conflict must be 'overwrite' or 'raise', got '{policy}'"))
        raise typer.Exit(1)
    if not db_name:
        console.print(err_no_database())
        raise typer.Exit(1)

    docs = load_design_documents(module)
    if not docs:
        console.print(err_no_views(module))
        raise typer.Exit(1)

    try:
        conn = CouchDBConnection.from_config(server_url, db_name)
        for doc in docs:
            doc.on_conflict = policy
            doc.publish(conn)
            console.print(f"[green]✓[/] {doc.doc_id}  ({len(doc.views())} views)")
    except PublishConflict as exc:
        console.print(err_publish_conflict(exc.doc_id, exc.url))
        raise typer.Exit(1) from exc
    except (couchdb.HTTPError, OSError) as exc:
        console.print(err_store_unreachable(server_url, str(exc)))
        raise typer.Exit(1) from exc
