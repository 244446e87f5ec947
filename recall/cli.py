"""
CLI interface for recall.

Usage:
    recall add "Buy sourdough starter"
    recall find "bread"
    recall pin 3
    recall provider fastembed
"""

import json
import os
from pathlib import Path
from typing import Optional

import typer
from typing_extensions import Annotated

from .api import Recall
from .errors import RecallError, log_exception
from .formatting import format_note_line, format_search_results
from .logging_config import configure_quiet_mode, enable_debug_mode
from .providers import get_registry

# Configure quiet mode by default (suppress verbose library output)
# Set RECALL_VERBOSE=1 to enable debug mode via environment
if os.environ.get("RECALL_VERBOSE") == "1":
    enable_debug_mode()
else:
    configure_quiet_mode(quiet=True)


def _version_callback(value: bool):
    if value:
        from importlib.metadata import version
        print(f"recall {version('recall-notes')}")
        raise typer.Exit()


def _verbose_callback(value: bool):
    if value:
        enable_debug_mode()


# Global state for CLI options
_json_output = False
_store_override: Optional[Path] = None


def _json_callback(value: bool):
    global _json_output
    _json_output = value


def _get_json_output() -> bool:
    return _json_output


def _store_callback(value: Optional[Path]):
    global _store_override
    if value is not None:
        _store_override = value


def _get_store_override() -> Optional[Path]:
    return _store_override


app = typer.Typer(
    name="recall",
    help="Semantic notes with pinned recall.",
    no_args_is_help=True,
    rich_markup_mode=None,
)


@app.callback()
def main_callback(
    verbose: Annotated[bool, typer.Option(
        "--verbose", "-v",
        help="Enable debug-level logging to stderr",
        callback=_verbose_callback,
        is_eager=True,
    )] = False,
    output_json: Annotated[bool, typer.Option(
        "--json", "-j",
        help="Output as JSON",
        callback=_json_callback,
        is_eager=True,
    )] = False,
    version: Annotated[Optional[bool], typer.Option(
        "--version",
        help="Show version and exit",
        callback=_version_callback,
        is_eager=True,
    )] = None,
    store: Annotated[Optional[Path], typer.Option(
        "--store", "-s",
        envvar="RECALL_STORE_PATH",
        help="Path to the store directory",
        callback=_store_callback,
        is_eager=True,
    )] = None,
):
    """Semantic notes with pinned recall."""


# -----------------------------------------------------------------------------
# Common Options
# -----------------------------------------------------------------------------

StoreOption = Annotated[
    Optional[Path],
    typer.Option(
        "--store", "-s",
        help="Path to the store directory (overrides the global option)",
    ),
]

NoteIdArgument = Annotated[int, typer.Argument(help="Note ID (see 'recall list')")]


def _get_recall(store: Optional[Path]) -> Recall:
    """Open the store, handling errors gracefully."""
    actual_store = store if store is not None else _get_store_override()
    try:
        return Recall(actual_store)
    except (RecallError, ValueError, OSError) as e:
        _fail(e, "open store")


def _fail(exc: Exception, context: str):
    """Log the traceback, show a clean message, exit 1."""
    log_exception(exc, context=f"recall {context}")
    typer.echo(f"Error: {exc}", err=True)
    raise typer.Exit(1)


def _not_found(id: int):
    typer.echo(f"Error: note {id} not found", err=True)
    raise typer.Exit(1)


def _echo_note(note, verb: str):
    if _get_json_output():
        typer.echo(json.dumps(note.to_dict(), indent=2))
    else:
        typer.echo(f"{verb} {note.id}: {note.preview(60)}")


# -----------------------------------------------------------------------------
# Notes
# -----------------------------------------------------------------------------

@app.command()
def add(
    text: Annotated[str, typer.Argument(help="Note text")],
    pin: Annotated[bool, typer.Option("--pin", "-p", help="Pin the note")] = False,
    store: StoreOption = None,
):
    """
    Add a note. Its embedding is computed by the next search or backfill.

    \b
    Examples:
        recall add "Dentist on Thursday at 3pm"
        recall add --pin "Allergic to penicillin"
    """
    with _get_recall(store) as rc:
        try:
            note = rc.add_note(text, pinned=pin)
        except (RecallError, ValueError) as e:
            _fail(e, "add")
        _echo_note(note, "Added")


@app.command("list")
def list_cmd(store: StoreOption = None):
    """
    List notes, newest first.

    Pinned notes are marked; '*' marks notes without an embedding yet.
    """
    with _get_recall(store) as rc:
        try:
            notes = rc.list_notes()
        except RecallError as e:
            _fail(e, "list")

    if _get_json_output():
        typer.echo(json.dumps([n.to_dict() for n in notes], indent=2))
        return
    if not notes:
        typer.echo("No notes.")
        return
    id_width = max(len(str(n.id)) for n in notes)
    for note in notes:
        typer.echo(format_note_line(note, id_width))


@app.command()
def edit(
    id: NoteIdArgument,
    text: Annotated[str, typer.Argument(help="New note text")],
    store: StoreOption = None,
):
    """Replace a note's text. Its embedding is recomputed lazily."""
    with _get_recall(store) as rc:
        try:
            note = rc.update_note(id, text)
        except (RecallError, ValueError) as e:
            _fail(e, "edit")
    if note is None:
        _not_found(id)
    _echo_note(note, "Updated")


@app.command()
def delete(id: NoteIdArgument, store: StoreOption = None):
    """Delete a note."""
    with _get_recall(store) as rc:
        try:
            deleted = rc.delete_note(id)
        except RecallError as e:
            _fail(e, "delete")
    if not deleted:
        _not_found(id)
    typer.echo(f"Deleted {id}")


def _set_pin(id: int, pinned: bool, store: Optional[Path]):
    with _get_recall(store) as rc:
        try:
            note = rc.set_pinned(id, pinned)
        except RecallError as e:
            _fail(e, "pin" if pinned else "unpin")
    if note is None:
        _not_found(id)
    _echo_note(note, "Pinned" if pinned else "Unpinned")


@app.command()
def pin(id: NoteIdArgument, store: StoreOption = None):
    """Pin a note: it is returned by every search."""
    _set_pin(id, True, store)


@app.command()
def unpin(id: NoteIdArgument, store: StoreOption = None):
    """Unpin a note."""
    _set_pin(id, False, store)


# -----------------------------------------------------------------------------
# Retrieval
# -----------------------------------------------------------------------------

@app.command()
def find(
    query: Annotated[str, typer.Argument(help="Search query text")],
    k: Annotated[Optional[int], typer.Option(
        "-k", "--limit",
        min=1,
        help="Number of unpinned results (default: retrieval.top_k)",
    )] = None,
    store: StoreOption = None,
):
    """
    Semantic search. Pinned notes always come first.

    \b
    Examples:
        recall find "what did I say about bread"
        recall find -k 5 "meetings"
    """
    with _get_recall(store) as rc:
        try:
            results = rc.find(query, k)
        except (RecallError, ValueError) as e:
            _fail(e, "find")

    if _get_json_output():
        typer.echo(json.dumps([r.to_dict() for r in results], indent=2))
    else:
        typer.echo(format_search_results(results), nl=False)


@app.command()
def backfill(store: StoreOption = None):
    """Compute embeddings for notes that have none."""
    with _get_recall(store) as rc:
        try:
            count = rc.backfill()
        except RecallError as e:
            _fail(e, "backfill")
    typer.echo(f"Embedded {count} notes")


@app.command()
def reindex(store: StoreOption = None):
    """Recompute every embedding with the current provider."""
    with _get_recall(store) as rc:
        try:
            count = rc.reindex()
        except RecallError as e:
            _fail(e, "reindex")
    typer.echo(f"Re-embedded {count} notes")


# -----------------------------------------------------------------------------
# Configuration
# -----------------------------------------------------------------------------

@app.command()
def provider(
    name: Annotated[Optional[str], typer.Argument(
        help="Provider to switch to (omit to show the current one)",
    )] = None,
    api_key: Annotated[Optional[str], typer.Option(
        "--api-key",
        help="API key for remote providers (not saved to config)",
    )] = None,
    store: StoreOption = None,
):
    """
    Show or switch the embedding provider.

    Existing embeddings are regenerated by the next search.

    \b
    Examples:
        recall provider
        recall provider fastembed
        recall provider openai --api-key sk-...
    """
    with _get_recall(store) as rc:
        if name is None:
            current = rc.config.embedding.name
            available = get_registry().list_embedding_providers()
            if _get_json_output():
                typer.echo(json.dumps({"provider": current, "available": available}, indent=2))
            else:
                typer.echo(f"Provider: {current}")
                typer.echo(f"Available: {', '.join(available)}")
            return
        try:
            rc.set_provider(name, api_key=api_key)
        except (RecallError, ValueError) as e:
            _fail(e, "provider")
        typer.echo(f"Provider: {rc.config.embedding.name} ({rc.engine.dimension}d)")


@app.command()
def config(store: StoreOption = None):
    """Show store location, provider and note counts."""
    with _get_recall(store) as rc:
        try:
            status = rc.status()
        except RecallError as e:
            _fail(e, "config")
        status["config_file"] = str(rc.config.config_path)

    if _get_json_output():
        typer.echo(json.dumps(status, indent=2))
        return
    typer.echo(f"Store:     {status['store']}")
    typer.echo(f"Config:    {status['config_file']}")
    typer.echo(f"Provider:  {status['provider']} ({status['state']})")
    typer.echo(f"Notes:     {status['notes']} ({status['missing_embeddings']} without embedding)")
    retrieval = f"top_k={status['top_k']}" if status["retrieval_enabled"] else "disabled"
    typer.echo(f"Retrieval: {retrieval}")


def main():
    try:
        app()
    except SystemExit:
        raise  # Let typer handle exit codes
    except KeyboardInterrupt:
        raise SystemExit(130)  # Standard exit code for Ctrl+C
    except Exception as e:
        # Log full traceback to file, show clean message to user
        log_path = log_exception(e, context="recall CLI")
        typer.echo(f"Error: {e}", err=True)
        typer.echo(f"Details logged to {log_path}", err=True)
        raise SystemExit(1)


if __name__ == "__main__":
    main()
