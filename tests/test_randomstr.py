import pytest

from gamecatalog.randomstr import ALPHABET, random_string


@pytest.mark.parametrize("n", [1, 10, 64])
def test_length_matches_request(n):
    assert len(random_string(n)) == n


def test_zero_length_is_empty():
    assert random_string(0) == ""


def test_only_alphanumeric_characters():
    result = random_string(500)
    assert set(result) <= set(ALPHABET)


def test_alphabet_is_letters_and_digits():
    assert len(ALPHABET) == 62
    assert ALPHABET.isalnum()


def test_negative_length_rejected():
    with pytest.raises(ValueError):
        random_string(-1)


def test_results_vary():
    results = {random_string(32) for _ in range(5)}
    assert len(results) == 5