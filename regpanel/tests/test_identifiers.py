import math

import pytest
from regpanel.identifiers import NearMatchIndex, is_absent, normalize_identifier


@pytest.mark.parametrize("raw", [None, "", "  ", math.nan])
def test_is_absent(raw):
    assert is_absent(raw)
    assert normalize_identifier(raw) is None


@pytest.mark.parametrize("raw", [0, "0", "X"])
def test_is_not_absent(raw):
    assert not is_absent(raw)


@pytest.mark.parametrize("raw,kwargs,expected", [
    (123, {}, "123"),
    (123.0, {}, "123"),
    ("123", {}, "123"),
    (" 123 ", {}, "123"),
    ("A  B", {}, "A B"),
    (" 123 ", {"strip_whitespace": False}, " 123 "),
    ("AbC", {}, "AbC"),
    ("AbC", {"casefold": True}, "abc"),
    ("000123", {}, "000123"),
    ("000123", {"strip_leading_zeros": True}, "123"),
    ("000", {"strip_leading_zeros": True}, "0"),
    ("Jöns", {}, "Jons"),
])
def test_normalize_identifier(raw, kwargs, expected):
    assert normalize_identifier(raw, **kwargs) == expected


def test_int_and_string_spellings_share_a_key():
    assert normalize_identifier(1001) == normalize_identifier("1001") == normalize_identifier(1001.0)


def test_near_match_suggests_closest_key():
    index = NearMatchIndex(["A12345", "B99999"], threshold=80)
    best, score = index.suggest("A12354")
    assert best == "A12345"
    assert score >= 80


def test_near_match_below_threshold():
    index = NearMatchIndex(["A12345", "B99999"], threshold=80)
    assert index.suggest("ZZZZZZ") is None


def test_near_match_ignores_exact_key():
    index = NearMatchIndex(["A12345"], threshold=80)
    assert index.suggest("A12345") is None


def test_near_match_empty_index():
    index = NearMatchIndex([], threshold=80)
    assert len(index) == 0
    assert index.suggest("A12345") is None
