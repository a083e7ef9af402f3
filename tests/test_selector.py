"""
Tests for segment text selection.
"""

from ocr_pipeline.selector import SegmentCandidate, select_segment_text


def candidate(text, confidence, key=None):
    return SegmentCandidate(key=key or text.lower(), text=text, confidence=confidence)


class TestSelectSegmentText:

    def test_empty_returns_none(self):
        assert select_segment_text([]) is None

    def test_prefers_highest_confidence_reading(self):
        selected = select_segment_text([
            candidate("hello", 0.82, key="hello"),
            candidate("hello!", 0.95, key="hello"),
            candidate("hullo", 0.90, key="hullo"),
        ])
        assert selected[0] == "hello!"
        assert abs(selected[1] - 0.95) < 1e-9

    def test_prefers_longer_when_confidence_is_close(self):
        selected = select_segment_text([
            candidate("关门", 0.961),
            candidate("关", 0.995),
            candidate("关门", 0.994),
        ])
        assert selected[0] == "关门"

    def test_prefers_frequent_when_confidence_is_close(self):
        selected = select_segment_text([
            candidate("A", 0.95),
            candidate("A", 0.95),
            candidate("A", 0.95),
            candidate("B", 0.96),
        ])
        assert selected[0] == "A"

    def test_reports_raw_confidence_not_score(self):
        selected = select_segment_text([candidate("Long subtitle line", 0.9)])
        assert selected == ("Long subtitle line", 0.9)
