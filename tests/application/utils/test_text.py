"""Tests for mneme.application.utils.text."""

import pytest

from mneme.application.utils.text import (
    edit_distance,
    fuzzy_match,
    normalize,
    similarity,
    tokenize,
)


# ---------- Normalization ----------


def test_normalize_strips_punctuation_and_case():
    assert normalize("  Hello,   World! ") == "hello world"


def test_normalize_none_and_empty():
    assert normalize(None) == ""
    assert normalize("   ") == ""
    assert normalize("?!.") == ""


def test_normalize_nfkc_fullwidth():
    # Full-width letters and digits fold to ASCII
    assert normalize("ＴＣＰ１") == "tcp1"


def test_normalize_keeps_hangul():
    assert normalize("연결-지향!") == "연결지향"


def test_normalize_idempotent():
    s = "  Mixed CASE,\tand\nspaces  "
    assert normalize(normalize(s)) == normalize(s)


def test_tokenize():
    assert tokenize("Page table, physical FRAME") == ["page", "table", "physical", "frame"]
    assert tokenize("") == []


# ---------- Edit distance ----------


@pytest.mark.parametrize(
    "a,b,expected",
    [
        ("", "", 0),
        ("abc", "", 3),
        ("", "abc", 3),
        ("kitten", "sitting", 3),
        ("atomicity", "atomicty", 1),
        ("same", "same", 0),
    ],
)
def test_edit_distance(a, b, expected):
    assert edit_distance(a, b) == expected


def test_edit_distance_symmetric():
    assert edit_distance("flaw", "lawn") == edit_distance("lawn", "flaw") == 2


def test_similarity_bounds():
    assert similarity("", "") == 1.0
    assert similarity("abc", "xyz") == 0.0
    assert similarity("atomicity", "atomicty") == pytest.approx(1 - 1 / 9)


# ---------- Fuzzy match ----------


def test_fuzzy_self_match():
    for s in ["atomicity", "Virtual Memory", "원자성", ""]:
        assert fuzzy_match(s, s, threshold=1.0)


def test_fuzzy_match_typo():
    assert fuzzy_match("atomicity", "atomicty", threshold=0.85)
    assert not fuzzy_match("atomicity", "atom", threshold=0.85)


def test_fuzzy_match_ignores_case_and_punctuation():
    assert fuzzy_match("Atomicity.", "atomicity", threshold=1.0)
