"""Build Pattern objects from shorthand strings, dicts and JSON files."""

from __future__ import annotations

import json
import logging
from collections.abc import Iterable, Mapping
from dataclasses import replace
from pathlib import Path
from typing import Any

from rhythmtap.models import Note, NoteType, Pattern, TimeSignature

logger = logging.getLogger(__name__)

_SHORTHAND = {
    "W": NoteType.WHOLE,
    "H": NoteType.HALF,
    "Q": NoteType.QUARTER,
    "E": NoteType.EIGHTH,
    "S": NoteType.SIXTEENTH,
}


class PatternLoadError(Exception):
    """Raised when a pattern file cannot be parsed."""


def parse_token(token: str) -> Note:
    """Parse one shorthand token.

    ``Q H E S W`` are notes, an ``R`` prefix makes a rest (bare ``R`` is a
    quarter rest), a trailing ``.`` dots the note and a trailing ``~`` ties it
    to the next one. Unknown tokens become a quarter note.
    """
    text = token.strip().upper()
    tie = text.endswith("~")
    if tie:
        text = text[:-1]
    dotted = text.endswith(".")
    if dotted:
        text = text[:-1]

    rest = text.startswith("R")
    if rest:
        text = text[1:] or "Q"

    note_type = _SHORTHAND.get(text)
    if note_type is None:
        logger.warning("Unknown note token %r, defaulting to quarter", token)
        return Note(type=NoteType.QUARTER)
    return Note(type=note_type, rest=rest, dotted=dotted, tie_to_next=tie and not rest)


def parse_shorthand(text: str | Iterable[str]) -> tuple[Note, ...]:
    tokens = text.replace(",", " ").split() if isinstance(text, str) else list(text)
    return tuple(parse_token(t) for t in tokens)


def note_from_dict(data: Mapping[str, Any] | str) -> Note:
    if isinstance(data, str):
        return parse_token(data)
    raw_type = data.get("type", "quarter")
    try:
        note_type: NoteType | str = NoteType(raw_type)
    except ValueError:
        # kept as-is; timing falls back to a quarter-note duration
        note_type = str(raw_type)
    return Note(
        type=note_type,
        rest=bool(data.get("rest", False)),
        dotted=bool(data.get("dotted", False)),
        tie_to_next=bool(data.get("tieToNext", data.get("tie_to_next", False))),
    )


def pattern_from_dict(data: Mapping[str, Any]) -> Pattern:
    """Build a Pattern, filling in defaults for missing metadata.

    Missing ``bars`` means a single bar, missing time signature means 4/4,
    missing tags means none and a missing creator is ``"system"``.
    """
    sig = data.get("timeSignature") or data.get("time_signature") or {}
    raw_notes = data.get("pattern", data.get("notes", []))
    if isinstance(raw_notes, str):
        notes = parse_shorthand(raw_notes)
    else:
        notes = tuple(note_from_dict(n) for n in raw_notes)
    return Pattern(
        notes=notes,
        bars=max(1, int(data.get("bars") or 1)),
        time_signature=TimeSignature(
            numerator=max(1, int(sig.get("numerator") or 4)),
            denominator=max(1, int(sig.get("denominator") or 4)),
        ),
        tags=frozenset(data.get("tags") or ()),
        creator=str(data.get("creator") or "system"),
        name=str(data.get("name") or data.get("id") or ""),
    )


def load_pattern(file_path: str | Path) -> Pattern:
    """Load a pattern from a JSON file.

    Raises:
        PatternLoadError: If the file cannot be read or parsed.
    """
    path = Path(file_path)
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
        if not isinstance(data, Mapping):
            raise PatternLoadError(f"{path.name}: expected a JSON object")
        pattern = pattern_from_dict(data)
    except PatternLoadError:
        raise
    except Exception as exc:
        raise PatternLoadError(f"Failed to load {path.name}: {exc}") from exc
    if not pattern.name:
        pattern = replace(pattern, name=path.stem)
    return pattern
