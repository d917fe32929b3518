import pytest

from mneme.application.grading.keywords import (
    build_keyword_groups,
    coerce_keyword_list,
    parse_threshold,
)


# ---------- coerce_keyword_list ----------


def test_coerce_list_passthrough():
    assert coerce_keyword_list(["a", " b ", "", None]) == ["a", "b"]


def test_coerce_nested_lists_become_alternatives():
    assert coerce_keyword_list([["process", "프로세스"], "thread"]) == ["process|프로세스", "thread"]


def test_coerce_json_array_string():
    assert coerce_keyword_list('["tcp", "udp|datagram"]') == ["tcp", "udp|datagram"]


def test_coerce_delimited_string():
    assert coerce_keyword_list("tcp, 연결지향; 신뢰성\nhandshake") == [
        "tcp",
        "연결지향",
        "신뢰성",
        "handshake",
    ]


def test_coerce_broken_json_falls_back_to_delimiters():
    assert coerce_keyword_list('["a", b') == ['["a"', "b"]


def test_coerce_mapping_variants():
    assert coerce_keyword_list({"keywords": ["a", "b"]}) == ["a", "b"]
    assert coerce_keyword_list({"items": "ignored"}) == ["ignored"]
    assert coerce_keyword_list({"x": "a", "y": "b"}) == ["a", "b"]


def test_coerce_unsupported_degrades_to_empty():
    assert coerce_keyword_list(None) == []
    assert coerce_keyword_list(42) == []
    assert coerce_keyword_list({"x": 1}) == []


# ---------- build_keyword_groups ----------


def test_groups_from_alternatives():
    groups = build_keyword_groups(["process|프로세스", "Thread"])
    assert [g.label for g in groups] == ["process", "Thread"]
    assert groups[0].texts == ["process", "프로세스"]
    assert groups[1].texts == ["thread"]


def test_regex_alternative_compiled_case_insensitive():
    (group,) = build_keyword_groups(["/dead ?lock/|교착"])
    assert group.patterns[0].search("DEADLOCK happens")
    assert group.texts == ["교착"]


def test_invalid_regex_is_skipped():
    (group,) = build_keyword_groups(["/[unclosed/|fallback"])
    assert group.patterns == []
    assert group.texts == ["fallback"]


def test_group_with_nothing_usable_is_dropped():
    assert build_keyword_groups(["/[bad/", "?!", "ok"])[0].label == "ok"
    assert len(build_keyword_groups(["/[bad/", "?!", "ok"])) == 1


# ---------- parse_threshold ----------


@pytest.mark.parametrize(
    "raw,count,expected",
    [
        (None, 4, 3),  # ceil(0.75 * 4)
        (None, 3, 3),  # ceil(2.25)
        ("default", 4, 3),
        (2, 4, 2),
        (2.5, 4, 3),  # half-up
        (0, 4, 1),
        (99, 4, 4),
        ("1/2", 5, 3),  # ceil(2.5)
        ("2/3", 3, 2),
        ("3", 4, 3),
        ("1/0", 4, 3),
        (True, 4, 3),
    ],
)
def test_parse_threshold(raw, count, expected):
    assert parse_threshold(raw, count) == expected


def test_parse_threshold_no_groups():
    assert parse_threshold(3, 0) == 0


def test_parse_threshold_always_in_bounds():
    for count in range(1, 8):
        for raw in [None, -5, 0, 1, 3.7, 100, "0/1", "9/1", "x", "2", float("nan")]:
            t = parse_threshold(raw, count)
            assert 1 <= t <= count


def test_parse_threshold_custom_ratio():
    assert parse_threshold(None, 10, default_ratio=0.7) == 7
