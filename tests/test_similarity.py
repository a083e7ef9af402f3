"""
Tests for text normalization and the similarity metric.
"""

import pytest
from ocr_pipeline.similarity import (
    collapse_whitespace,
    levenshtein_bounded,
    normalize_text,
    texts_are_similar,
)


class TestNormalization:

    def test_collapse_whitespace(self):
        assert collapse_whitespace("  hello   world \n\t") == "hello world"

    def test_strips_edge_punctuation_and_lowercases(self):
        assert normalize_text("《Hello, World!》") == "hello, world"

    def test_strips_cjk_punctuation(self):
        assert normalize_text("“你好。”") == "你好"

    def test_punctuation_only_is_empty(self):
        assert normalize_text(" ... !! ") == ""


class TestLevenshteinBounded:

    def test_exact(self):
        assert levenshtein_bounded("kitten", "kitten", 0) == 0

    def test_within_bound(self):
        assert levenshtein_bounded("kitten", "sitting", 3) == 3

    def test_exceeds_bound(self):
        assert levenshtein_bounded("abc", "xyz", 1) is None

    def test_length_gap_rejected_early(self):
        assert levenshtein_bounded("a", "abcdef", 2) is None

    def test_counts_unicode_scalars(self):
        assert levenshtein_bounded("吴昊菲菲", "昊昊菲菲", 1) == 1


class TestTextsAreSimilar:

    def test_exact_match(self):
        assert texts_are_similar("哥哥", "哥哥", 0.92)

    def test_short_substrings(self):
        assert texts_are_similar("关门", "关", 0.9)
        assert texts_are_similar("关", "关门", 0.9)

    def test_long_substrings(self):
        assert texts_are_similar("hello world", "hello worl", 0.9)
        assert texts_are_similar("这是一个长句子的开头", "这是一个长句子的开头和结尾", 0.8)

    def test_rejects_tiny_fragment_of_long_text(self):
        assert not texts_are_similar("这是一个非常长的句子", "一", 0.9)

    def test_short_cjk_one_char_difference(self):
        assert texts_are_similar("吴昊 菲菲", "昊昊 菲菲", 0.85)

    def test_short_cjk_two_char_difference(self):
        assert not texts_are_similar("吴昊 菲菲", "叶昊 爸爸", 0.85)

    def test_short_text_length_mismatch(self):
        assert not texts_are_similar("abcd", "abxde", 0.80)

    def test_long_text_typo(self):
        assert texts_are_similar("today we fight together", "today we fight togather", 0.92)

    def test_long_text_different(self):
        assert not texts_are_similar("today we fight together", "tomorrow we run away", 0.92)

    def test_threshold_one_rejects_non_identical_long_text(self):
        assert not texts_are_similar("today we fight together", "today we fight togather", 1.0)

    @pytest.mark.parametrize("a,b,threshold", [
        ("hello world", "hello worl", 0.9),
        ("吴昊 菲菲", "昊昊 菲菲", 0.85),
        ("today we fight together", "tomorrow we run away", 0.92),
        ("je suis une longue phrase", "je su1s unel0ngu phrase", 0.95),
        ("abc", "abcdefghij", 0.8),
    ])
    def test_symmetric(self, a, b, threshold):
        assert texts_are_similar(a, b, threshold) == texts_are_similar(b, a, threshold)
