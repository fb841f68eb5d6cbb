"""couchview CLI error messages — actionable feedback.

Every error shown to the user must contain:
  1. What went wrong (clear cause)
  2. The exact action the user should take to fix it

Usage:
    from couchview.cli.errors import err_no_database
    console.print(err_no_database())
    raise typer.Exit(1)
"""

from __future__ import annotations

from rich.markup import escape


def err_no_database() -> str:
    """No database name configured or given on the command line."""
    return (
        "[red]Error:[/] No database to publish to.\n"
        "  Use:  couchview publish MODULE --database <name>\n"
        "  or set server.database in couchview.yaml (or COUCHVIEW_DATABASE)."
    )


def err_module_import(module: str, reason: str) -> str:
    """The models module could not be imported."""
    return (
        f"[red]Error:[/] Could not import '{module}': {escape(reason)}\n"
        "  Run couchview from the directory containing the module, "
        "or install the package that provides it."
    )


def err_no_views(module: str) -> str:
    """The imported module declares no views."""
    return (
        f"[yellow]No views declared[/] after importing '{module}'.\n"
        "  Add view_by(...) declarations to a Model subclass's views tuple."
    )


def err_publish_conflict(doc_id: str, url: str) -> str:
    """The stored design document differs and on_conflict is 'raise'."""
    return (
        f"[red]Error:[/] Design document {doc_id} on {url} differs from the local views.\n"
        "  Use:  --on-conflict overwrite  to replace it with the local definitions."
    )


def err_store_unreachable(url: str, reason: str) -> str:
    """Transport error talking to the server."""
    return (
        f"[red]Error:[/] CouchDB request to '{url}' failed: {escape(reason)}\n"
        "  Check server.url in couchview.yaml (or COUCHVIEW_URL) and that the server is running."
    )


def err_config(reason: str) -> str:
    """Invalid configuration file."""
    return (
        f"[red]Error:[/] {escape(reason)}\n"
        "  Fix couchview.yaml and run the command again."
    )
