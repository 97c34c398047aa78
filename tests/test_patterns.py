"""Tests for pattern parsing and loading."""

import json

import pytest

from rhythmtap.models import Note, NoteType, TimeSignature
from rhythmtap.patterns import (
    PatternLoadError,
    load_pattern,
    note_from_dict,
    parse_shorthand,
    parse_token,
    pattern_from_dict,
)
from rhythmtap.timing import note_duration


@pytest.mark.parametrize(
    "token,expected",
    [
        ("Q", Note(NoteType.QUARTER)),
        ("h", Note(NoteType.HALF)),
        ("E.", Note(NoteType.EIGHTH, dotted=True)),
        ("Q~", Note(NoteType.QUARTER, tie_to_next=True)),
        ("R", Note(NoteType.QUARTER, rest=True)),
        ("RE", Note(NoteType.EIGHTH, rest=True)),
        ("X", Note(NoteType.QUARTER)),
    ],
)
def test_parse_token(token, expected):
    assert parse_token(token) == expected


def test_parse_shorthand_accepts_commas():
    notes = parse_shorthand("Q, Q E E")
    assert [n.type for n in notes] == [NoteType.QUARTER, NoteType.QUARTER, NoteType.EIGHTH, NoteType.EIGHTH]


def test_dict_defaults():
    pattern = pattern_from_dict({"pattern": [{"type": "quarter"}, {"type": "quarter", "rest": True}]})
    assert pattern.bars == 1
    assert pattern.time_signature == TimeSignature(4, 4)
    assert pattern.tags == frozenset()
    assert pattern.creator == "system"
    assert len(pattern) == 2
    assert pattern.notes[1].rest


def test_dict_reads_tie_and_time_signature():
    pattern = pattern_from_dict({
        "name": "waltz",
        "bars": 2,
        "timeSignature": {"numerator": 3, "denominator": 4},
        "tags": ["triple"],
        "pattern": [{"type": "half", "tieToNext": True}, {"type": "quarter"}],
    })
    assert pattern.name == "waltz"
    assert pattern.time_signature.numerator == 3
    assert pattern.tags == frozenset({"triple"})
    assert pattern.notes[0].tie_to_next


def test_unknown_note_type_is_kept_and_timed_as_quarter():
    note = note_from_dict({"type": "thirtysecond"})
    assert note.type == "thirtysecond"
    assert note_duration(note, 500) == 500


def test_load_pattern_from_file(tmp_path):
    path = tmp_path / "basic_rock.json"
    path.write_text(json.dumps({"pattern": "Q Q R Q"}), encoding="utf-8")
    pattern = load_pattern(path)
    assert pattern.name == "basic_rock"
    assert [n.rest for n in pattern.notes] == [False, False, True, False]


@pytest.mark.parametrize("content", ["{not json", "[1, 2]"])
def test_load_pattern_rejects_bad_files(tmp_path, content):
    path = tmp_path / "bad.json"
    path.write_text(content, encoding="utf-8")
    with pytest.raises(PatternLoadError):
        load_pattern(path)


def test_load_pattern_missing_file(tmp_path):
    with pytest.raises(PatternLoadError):
        load_pattern(tmp_path / "nope.json")


def test_non_positive_time_signature_is_clamped():
    pattern = pattern_from_dict({"pattern": "Q Q", "timeSignature": {"numerator": 0, "denominator": -2}})
    assert pattern.time_signature.numerator >= 1
    assert pattern.time_signature.denominator >= 1
