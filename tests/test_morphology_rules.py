"""
Tests for the compound rules and the rule-based ending table
"""

import pytest

from hiwords.core.morphology import RuleBasedAnalyzer
from hiwords.core.morphology_rules import (
    FINAL_BIEUP,
    FINAL_NIEUN,
    EndingRule,
    MorphologyAnalysisResult,
    Token,
    add_final_consonant,
    final_consonant,
    is_verb_or_adjective,
    match_compound,
    strip_ending,
    strip_final_consonant,
)


class TestRuleBasedFallback:

    @pytest.mark.parametrize("word,base", [
        ("공부했습니다", "공부하다"),
        ("공부합니다", "공부하다"),
        ("갑니다", "가다"),
        ("간다", "가다"),
        ("먹는다", "먹다"),
        ("먹어요", "먹다"),
        ("먹었어요", "먹다"),
        ("만들어진다", "만들어지다"),
        ("공부해요", "공부하다"),
    ])
    def test_known_endings(self, word, base):
        result = RuleBasedAnalyzer().analyze(word)

        assert result.base_form == base
        assert result.part_of_speech == "VV"
        assert result.confidence == pytest.approx(0.6)

    def test_unmatched_word_is_returned_as_is(self):
        result = RuleBasedAnalyzer().analyze("학교")

        assert result.base_form == "학교"
        assert result.part_of_speech == "UNKNOWN"
        assert result.confidence == pytest.approx(0.3)

    def test_final_consonant_condition(self):
        # ㄴ다 needs the ㄴ final on the stem syllable
        rule = EndingRule("다", final=FINAL_NIEUN)
        assert rule.apply("간다") == "가다"
        assert rule.apply("먹다") is None
        assert rule.label == "ㄴ다"

    def test_ending_alone_is_not_a_word(self):
        assert strip_ending("다") is None
        assert EndingRule("습니다").apply("습니다") is None


class TestHangulHelpers:

    def test_final_consonant_indexes(self):
        assert final_consonant("간") == FINAL_NIEUN
        assert final_consonant("갑") == FINAL_BIEUP
        assert final_consonant("가") == 0
        assert final_consonant("a") == -1

    def test_strip_and_add(self):
        assert strip_final_consonant("갑") == "가"
        assert strip_final_consonant("가") == "가"
        assert add_final_consonant("가", FINAL_NIEUN) == "간"
        assert add_final_consonant("각", FINAL_NIEUN) == "각"


class TestCompoundRules:

    def test_support_verb_absorbs_endings(self):
        tokens = [Token("공부", "공부", "NNG"), Token("했", "하", "XSV+EP"), Token("습니다", "습니다", "EF")]
        found = match_compound(tokens, 0)

        assert found.end == 3
        assert found.result.surface == "공부했습니다"
        assert found.result.base_form == "공부하다"
        assert found.result.confidence == pytest.approx(0.95)

    def test_passive_suffix_is_not_derivational(self):
        tokens = [Token("거론", "거론", "NNG"), Token("되", "되", "XSV")]
        found = match_compound(tokens, 0)

        assert found.result.base_form == "거론되다"
        assert found.result.confidence == pytest.approx(0.92)

    def test_ending_lookahead_is_bounded(self):
        endings = [Token(f"e{i}", f"e{i}", "EC") for i in range(8)]
        tokens = [Token("먹", "먹", "VV")] + endings

        found = match_compound(tokens, 0, max_lookahead=3)

        # core stem + first ending, then at most three more endings
        assert found.end == 5

    def test_no_compound_for_plain_nouns(self):
        tokens = [Token("학교", "학교", "NNG"), Token("도서관", "도서관", "NNG")]
        assert match_compound(tokens, 0) is None


def test_confidence_must_be_a_probability():
    with pytest.raises(ValueError):
        MorphologyAnalysisResult("먹다", "먹다", "VV", 1.2)
    with pytest.raises(ValueError):
        MorphologyAnalysisResult("먹다", "먹다", "VV", -0.1)


def test_verb_family_tags():
    assert is_verb_or_adjective("VV+EP")
    assert is_verb_or_adjective("xsa")
    assert not is_verb_or_adjective("NNG")
    assert not is_verb_or_adjective(None)
