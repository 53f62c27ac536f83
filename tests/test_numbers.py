import pytest

from voice.numbers import (
    MAX_NUMBER,
    extract_order_number,
    number_to_words,
    parse_spoken_number,
)


def test_every_grammar_number_parses_back():
    for n in range(MAX_NUMBER + 1):
        assert parse_spoken_number(number_to_words(n)) == n, number_to_words(n)


@pytest.mark.parametrize("n, words", [
    (0, "zero"),
    (7, "seven"),
    (13, "thirteen"),
    (40, "forty"),
    (99, "ninety nine"),
    (100, "one hundred"),
    (110, "one hundred ten"),
    (567, "five hundred sixty seven"),
    (1000, "one thousand"),
])
def test_number_to_words(n, words):
    assert number_to_words(n) == words


@pytest.mark.parametrize("n", [-1, 1001])
def test_number_to_words_rejects_out_of_range(n):
    with pytest.raises(ValueError):
        number_to_words(n)


def test_homophones():
    assert parse_spoken_number("to") == 2
    assert parse_spoken_number("for") == 4


def test_real_number_word_beats_homophone():
    assert parse_spoken_number("go to twenty") == 20
    assert parse_spoken_number("for twelve") == 12


@pytest.mark.parametrize("text, expected", [
    ("thirty one", 31),
    ("two hundred", 200),
    ("five hundred and sixty seven", 567),
    ("nine hundred and nine", 909),
    ("one thousand", 1000),
    ("Twenty  Five", 25),
])
def test_compounds(text, expected):
    assert parse_spoken_number(text) == expected


def test_digits():
    assert parse_spoken_number("12") == 12
    assert parse_spoken_number("order 305 please") == 305
    assert parse_spoken_number("1000") == 1000


@pytest.mark.parametrize("text", ["1001", "2000", "99999"])
def test_values_above_limit_are_rejected(text):
    assert parse_spoken_number(text) is None


@pytest.mark.parametrize("text", [None, "", "   ", "banana", "next order"])
def test_no_number(text):
    assert parse_spoken_number(text) is None


@pytest.mark.parametrize("text, expected", [
    ("open order five", 5),
    ("go to 12", 12),
    ("go to two", 2),
    ("show number forty two", 42),
    ("select item three hundred and one", 301),
    ("open order zero", 0),
    ("show banana", None),
])
def test_extract_order_number(text, expected):
    assert extract_order_number(text) == expected
