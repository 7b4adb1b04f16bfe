import pytest

from voiceai.text_segmenter import compile_delimiter_pattern, split_for_synthesis


def test_short_text_is_single_segment() -> None:
    assert split_for_synthesis("  Hello there.  ", 100) == ["Hello there."]


def test_blank_text_has_no_segments() -> None:
    assert split_for_synthesis("   ", 10) == []


def test_splits_at_sentence_boundaries_in_order() -> None:
    text = "First sentence. Second one here. Third!"

    segments = split_for_synthesis(text, 20)

    assert segments == ["First sentence.", "Second one here.", "Third!"]
    assert all(len(segment) <= 20 for segment in segments)


def test_falls_back_to_whitespace_then_hard_cut() -> None:
    assert split_for_synthesis("alpha beta gamma", 11) == ["alpha beta", "gamma"]
    assert split_for_synthesis("abcdefghij", 4) == ["abcd", "efgh", "ij"]


def test_long_text_respects_limit() -> None:
    text = " ".join(f"Sentence number {i}." for i in range(400))

    segments = split_for_synthesis(text, 250)

    assert all(len(segment) <= 250 for segment in segments)
    assert " ".join(segments) == text


def test_compile_delimiter_pattern_prefers_longest() -> None:
    pattern = compile_delimiter_pattern([".", ". "])

    assert pattern is not None
    assert pattern.match(". ").group(0) == ". "
    assert compile_delimiter_pattern([]) is None


def test_invalid_limit() -> None:
    with pytest.raises(ValueError):
        split_for_synthesis("text", 0)
