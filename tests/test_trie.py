"""
Tests for the prefix matcher and overlap removal
"""

from hiwords.core.trie import Match, PrefixMatcher, is_word_char, remove_overlapping_matches


class TestPrefixMatcher:

    def test_finds_every_word_in_one_pass(self):
        matcher = PrefixMatcher([("apple", 1), ("banana", 2)])
        matches = sorted(matcher.find_all_matches("an apple and a banana"), key=lambda m: m.start)

        assert [(m.word, m.start, m.end, m.payload) for m in matches] == [
            ("apple", 3, 8, 1),
            ("banana", 15, 21, 2),
        ]

    def test_longest_match_per_start(self):
        matcher = PrefixMatcher([("공부", "noun"), ("공부하다", "verb")])
        matches = matcher.find_all_matches("공부하다")

        assert len(matches) == 1
        assert matches[0].word == "공부하다"
        assert matches[0].payload == "verb"

    def test_case_insensitive_reports_stored_word(self):
        matcher = PrefixMatcher([("Apple", None)])
        matches = matcher.find_all_matches("APPLE pie")

        assert len(matches) == 1
        assert matches[0].word == "Apple"
        assert (matches[0].start, matches[0].end) == (0, 5)

    def test_word_boundaries_for_latin_text(self):
        matcher = PrefixMatcher([("apple", None)])

        assert matcher.find_all_matches("pineapple") == []
        assert matcher.find_all_matches("apples") == []
        assert len(matcher.find_all_matches("apple, please")) == 1

    def test_hangul_ignores_word_boundaries(self):
        # Particles attach directly to Korean words
        matcher = PrefixMatcher([("학교", None), ("Apple", None)])
        matches = sorted(matcher.find_all_matches("학교에서Apple을"), key=lambda m: m.start)

        assert [(m.word, m.start, m.end) for m in matches] == [("학교", 0, 2), ("Apple", 4, 9)]

    def test_every_match_is_within_text(self):
        text = "공부하다 공부 하다"
        matcher = PrefixMatcher([("공부", None), ("하다", None), ("공부하다", None)])

        for match in matcher.find_all_matches(text):
            assert 0 <= match.start < match.end <= len(text)
            assert text[match.start:match.end].lower() == match.word.lower()

    def test_len_contains_and_clear(self):
        matcher = PrefixMatcher()
        matcher.add_word("먹다")
        matcher.add_word("먹다", "again")
        matcher.add_word("")

        assert len(matcher) == 1
        assert matcher.contains("먹다")
        assert not matcher.contains("먹")

        matcher.clear()
        assert len(matcher) == 0
        assert matcher.find_all_matches("먹다") == []

    def test_empty_text(self):
        assert PrefixMatcher([("a", None)]).find_all_matches("") == []


class TestOverlapRemoval:

    def test_keeps_earliest_then_longest(self):
        matches = [
            Match("bc", 1, 3),
            Match("abc", 0, 3),
            Match("ab", 0, 2),
            Match("cd", 3, 5),
        ]
        kept = remove_overlapping_matches(matches)

        assert [m.word for m in kept] == ["abc", "cd"]

    def test_result_is_sorted_and_disjoint(self):
        matches = [Match("x", 8, 10), Match("y", 0, 4), Match("z", 2, 6), Match("w", 4, 8)]
        kept = remove_overlapping_matches(matches)

        assert [m.start for m in kept] == sorted(m.start for m in kept)
        for left, right in zip(kept, kept[1:]):
            assert left.end <= right.start

    def test_single_and_empty(self):
        assert remove_overlapping_matches([]) == []
        only = Match("a", 0, 1)
        assert remove_overlapping_matches([only]) == [only]


def test_word_char_classification():
    assert is_word_char("a")
    assert is_word_char("7")
    assert not is_word_char("한")
    assert not is_word_char(" ")
    assert not is_word_char("")
