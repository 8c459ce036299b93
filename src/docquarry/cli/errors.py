"""docquarry rich error messages: actionable feedback.

Every error shown to the user must contain:
  1. What went wrong (clear cause)
  2. The exact action the user should take to fix it

Usage:
    from docquarry.cli.errors import err_source_not_found
    console.print(err_source_not_found(source_id))
    raise typer.Exit(1)
"""

from __future__ import annotations

from docquarry.errors import DocquarryError


def err_not_a_directory(path: str) -> str:
    """Source root does not exist or is not a directory."""
    return (
        f"[red]Error:[/] Not a directory: '{path}'\n"
        "  Pass the root folder of the documents to index."
    )


def err_already_registered(path: str, source_id: str) -> str:
    return (
        f"[red]Error:[/] '{path}' is already registered as source {source_id}.\n"
        f"  Run:  docquarry index {source_id}"
    )


def err_source_not_found(source_id: str) -> str:
    """Unknown source id."""
    return (
        f"[red]Error:[/] Source not found: '{source_id}'\n"
        "  Run:  docquarry sources list  to see registered sources."
    )


def err_source_removed(source_id: str) -> str:
    return (
        f"[red]Error:[/] Source '{source_id}' has been removed.\n"
        "  Re-register it with:  docquarry sources add <path>"
    )


def err_no_sources() -> str:
    return (
        "[yellow]No sources registered.[/]\n"
        "  Run:  docquarry sources add <path>"
    )


def err_no_api_key(message: str) -> str:
    """Embedding provider has no API key; *message* names the env var."""
    return f"[red]Error:[/] {message}"


def err_config(message: str) -> str:
    """Invalid or forbidden configuration value."""
    return (
        f"[red]Error:[/] Invalid configuration.\n"
        f"  {message}"
    )


def err_invalid_policy(message: str) -> str:
    return (
        f"[red]Error:[/] Invalid source policy: {message}\n"
        "  Check the --include / --exclude / --max-file-size / --max-depth options."
    )


def err_search_failed() -> str:
    return (
        "[red]Error:[/] Document search failed.\n"
        "  Re-run with --verbose for details, or run:  docquarry status"
    )


def err_unexpected(exc: DocquarryError) -> str:
    """Fallback for typed errors without a dedicated message."""
    return f"[red]Error:[/] {exc.message} [dim]({exc.code})[/]"


def message_for(exc: DocquarryError, source_id: str = "") -> str:
    """Map a typed error to its actionable message."""
    if exc.code == "SOURCE_NOT_FOUND":
        return err_source_not_found(source_id)
    if exc.code in ("SOURCE_REMOVED", "SOURCE_ALREADY_REMOVED"):
        return err_source_removed(source_id)
    if exc.code == "EMBEDDING_API_KEY_MISSING":
        return err_no_api_key(exc.message)
    if exc.code == "SEARCH_PROVIDER_ERROR":
        return err_search_failed()
    return err_unexpected(exc)
