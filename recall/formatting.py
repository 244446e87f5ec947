"""
Human-readable rendering of notes and search results.
"""

from datetime import datetime

from .types import Note, SearchResult

PIN_MARKER = "\U0001F4CC"  # pushpin


def format_search_results(results: list[SearchResult]) -> str:
    """
    Render results as a numbered list for display or prompt context.

    Pinned notes carry a pin marker and no score; other notes show their
    similarity to two decimals.
    """
    lines = ["TOP RETRIEVAL RESULTS:"]
    if not results:
        lines.append("No matching notes found.")
        return "\n".join(lines) + "\n"

    for i, result in enumerate(results, start=1):
        if result.pinned:
            lines.append(f"{i}. {PIN_MARKER} {result.text}")
        else:
            lines.append(f"{i}. {result.text} (Score: {result.score:.2f})")
    return "\n".join(lines) + "\n"


def format_results_log(results: list[SearchResult], width: int = 30) -> str:
    """Compact multi-line rendering for debug logs."""
    lines = ["Search results:"]
    for i, result in enumerate(results, start=1):
        text = result.note.preview(width)
        if result.pinned:
            lines.append(f"{i}. [PINNED] {text}")
        else:
            lines.append(f"{i}. Score: {result.score:.4f} - {text}")
    return "\n".join(lines)


def format_note_line(note: Note, id_width: int = 0) -> str:
    """One line per note for list output: id, date, pin/embedding flags, text."""
    created = datetime.fromtimestamp(note.timestamp / 1000).strftime("%Y-%m-%d %H:%M")
    pin = PIN_MARKER if note.pinned else "  "
    # '*' marks notes still waiting for an embedding
    pending = " " if note.has_embedding else "*"
    return f"{str(note.id).rjust(id_width)} {created} {pin}{pending} {note.preview(70)}"
