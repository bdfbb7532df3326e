import pytest

from pdf_text_utils import measure_width, truncate_to_width, wrap_text

FONT = "Helvetica"
SIZE = 10

SAMPLES = [
    "The quick brown fox jumps over the lazy dog",
    "Acme Underwriting Managing General Agency B.V. Keizersgracht 100 Amsterdam",
    "short",
    "double  spaced  words survive",
    "supercalifragilisticexpialidocious is a long word",
]


@pytest.mark.parametrize("text", SAMPLES)
@pytest.mark.parametrize("max_width", [20, 60, 150, 500])
def test_wrapped_lines_fit_or_are_single_words(text, max_width):
    lines = wrap_text(text, max_width, FONT, SIZE)

    for line in lines:
        assert measure_width(FONT, SIZE, line) <= max_width or " " not in line.strip()
    assert " ".join(lines) == text


def test_overlong_word_sits_alone_on_its_line():
    word = "x" * 40
    lines = wrap_text(f"a {word} b", 30, FONT, SIZE)
    assert lines == ["a", word, "b"]


def test_wrap_is_greedy():
    text = "aa bb cc"
    two_words = measure_width(FONT, SIZE, "aa bb")
    lines = wrap_text(text, two_words, FONT, SIZE)
    assert lines == ["aa bb", "cc"]


def test_wrap_empty_text_gives_no_lines():
    assert wrap_text("", 100, FONT, SIZE) == []


def test_wrap_rejects_non_positive_width():
    with pytest.raises(ValueError):
        wrap_text("text", 0, FONT, SIZE)


def test_truncate_keeps_fitting_text():
    assert truncate_to_width("Membership", 200, FONT, SIZE) == "Membership"


def test_truncate_clamps_with_ellipsis():
    text = "FASE Annual Membership (1/1/2026 - 1/1/2027) with a very long suffix"
    clamped = truncate_to_width(text, 120, FONT, SIZE)
    assert clamped.endswith("...")
    assert measure_width(FONT, SIZE, clamped) <= 120
    assert text.startswith(clamped[:-3])
