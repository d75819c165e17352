"""
HiWords Korean Morphology Rules
Compound-pattern rules over normalized tokens and the rule-based ending table
used when no tokenizer backend is available
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Set, Tuple
import re

# Canonical infinitive marker of Korean verbs and adjectives
INFINITIVE_MARKER = "다"

# Base form of the bare support verb; never treated as a word of its own
EMPTY_SUPPORT_VERB = "하다"

KOREAN_PATTERN = re.compile(r'[가-힯ᄀ-ᇿꥠ-꥿ힰ-퟿]')
KOREAN_RUN_PATTERN = re.compile(r'[가-힯ᄀ-ᇿꥠ-꥿ힰ-퟿]+')

# Sejong / mecab-ko-dic part-of-speech tags
NOUN_TAGS = {"NNG", "NNP"}
ROOT_TAGS = {"XR", "NNG", "NNP"}
VERB_STEM_TAGS = {"VV", "VA"}
VERB_FAMILY_TAGS = ("VV", "VA", "VX", "XSV", "XSA", "VCN")
ENDING_TAGS = {"EP", "EF", "EC", "ETM", "ETN"}
DERIVING_SUFFIX_TAGS = {"XSA", "XSV"}

SUPPORT_VERB_STEMS = {"하"}
PASSIVE_SUFFIX_STEMS = {"되", "받", "당하"}
PASSIVE_CONNECTIVES = {"어", "아", "여"}

MAX_ENDING_LOOKAHEAD = 5

# Confidence levels
CONFIDENCE_VERB_TOKEN = 0.9
CONFIDENCE_FIRST_TOKEN = 0.7
CONFIDENCE_FALLBACK_MATCHED = 0.6
CONFIDENCE_FALLBACK_UNMATCHED = 0.3


@dataclass(frozen=True)
class Token:
    """Backend token reduced to the three fields the rules look at"""
    surface: str
    base: str
    pos: str

    @property
    def tags(self) -> List[str]:
        return [t for t in self.pos.upper().split("+") if t]

    @property
    def head_tag(self) -> str:
        tags = self.tags
        return tags[0] if tags else "UNKNOWN"

    @property
    def stem(self) -> str:
        """Base form without the infinitive marker"""
        if len(self.base) > 1 and self.base.endswith(INFINITIVE_MARKER):
            return self.base[:-1]
        return self.base


@dataclass(frozen=True)
class MorphologyAnalysisResult:
    """Result of analyzing one word or one compound"""
    surface: str
    base_form: str
    part_of_speech: str
    confidence: float

    def __post_init__(self):
        if not 0.0 <= self.confidence <= 1.0:
            raise ValueError(f"confidence must lie in [0, 1], got {self.confidence}")


@dataclass
class DocumentAnalysisResult:
    """Base form to observed surfaces, plus every kept analysis"""
    base_form_to_surfaces: Dict[str, Set[str]] = field(default_factory=dict)
    analysis_results: List[MorphologyAnalysisResult] = field(default_factory=list)

    def add(self, result: MorphologyAnalysisResult):
        self.base_form_to_surfaces.setdefault(result.base_form, set()).add(result.surface)
        self.analysis_results.append(result)


def is_korean_text(text: str) -> bool:
    return bool(text) and KOREAN_PATTERN.search(text) is not None


def is_verb_or_adjective(part_of_speech: Optional[str]) -> bool:
    if not part_of_speech or not isinstance(part_of_speech, str):
        return False
    return part_of_speech.upper().startswith(VERB_FAMILY_TAGS)


def is_ending(token: Token) -> bool:
    # Head tag only: a fused "VV+EP" token starts a new word
    return token.head_tag in ENDING_TAGS


def ensure_infinitive(base_form: str) -> str:
    if base_form.endswith(INFINITIVE_MARKER):
        return base_form
    return base_form + INFINITIVE_MARKER


# ==================== Hangul syllable arithmetic ====================

HANGUL_FIRST = 0xAC00
HANGUL_LAST = 0xD7A3
FINAL_NIEUN = 4   # ㄴ
FINAL_RIEUL = 8   # ㄹ
FINAL_BIEUP = 17  # ㅂ


def final_consonant(char: str) -> int:
    """Index of the syllable's final consonant (0 means none, -1 not a syllable)"""
    if not char or len(char) != 1:
        return -1
    code = ord(char)
    if code < HANGUL_FIRST or code > HANGUL_LAST:
        return -1
    return (code - HANGUL_FIRST) % 28


def has_final_consonant(char: str) -> bool:
    return final_consonant(char) > 0


def strip_final_consonant(char: str) -> str:
    index = final_consonant(char)
    if index <= 0:
        return char
    return chr(ord(char) - index)


def add_final_consonant(char: str, index: int) -> str:
    if final_consonant(char) != 0:
        return char
    return chr(ord(char) + index)


# ==================== Compound-pattern rules ====================

@dataclass
class CompoundMatch:
    result: MorphologyAnalysisResult
    end: int  # exclusive index of the last consumed token


class CompoundRule:
    """
    One linguistic pattern over a window of adjacent tokens.

    Subclasses implement match() returning how many core tokens the pattern
    covers, plus base_form(); apply() adds the bounded trailing-ending
    lookahead and builds the merged result.
    """

    name = "compound"
    confidence = 0.9

    def match(self, tokens: List[Token], start: int) -> Optional[int]:
        raise NotImplementedError

    def base_form(self, core: List[Token]) -> str:
        raise NotImplementedError

    def part_of_speech(self, core: List[Token]) -> str:
        return f"{core[0].head_tag}+{core[1].head_tag}"

    def apply(self, tokens: List[Token], start: int,
              max_lookahead: int = MAX_ENDING_LOOKAHEAD) -> Optional[CompoundMatch]:
        core_length = self.match(tokens, start)
        if not core_length:
            return None

        end = start + core_length
        core = tokens[start:end]

        trailing = 0
        while end < len(tokens) and trailing < max_lookahead and is_ending(tokens[end]):
            end += 1
            trailing += 1

        surface = "".join(t.surface for t in tokens[start:end])
        result = MorphologyAnalysisResult(
            surface=surface,
            base_form=self.base_form(core),
            part_of_speech=self.part_of_speech(core),
            confidence=self.confidence
        )
        return CompoundMatch(result=result, end=end)


class SupportVerbRule(CompoundRule):
    """Noun + support-verb suffix 하: 공부 + 했 + 다 -> 공부하다"""

    name = "support_verb"
    confidence = 0.95

    def match(self, tokens, start):
        if start + 1 >= len(tokens):
            return None
        noun, suffix = tokens[start], tokens[start + 1]
        if noun.head_tag in NOUN_TAGS and suffix.head_tag == "XSV" and suffix.stem in SUPPORT_VERB_STEMS:
            return 2
        return None

    def base_form(self, core):
        return core[0].surface + EMPTY_SUPPORT_VERB

    def part_of_speech(self, core):
        return "NNG+XSV"


class DerivationalSuffixRule(CompoundRule):
    """Word root + adjective/verb-deriving suffix: 깨끗 + 하 -> 깨끗하다, 자연 + 스럽 -> 자연스럽다"""

    name = "derivational_suffix"
    confidence = 0.93

    def match(self, tokens, start):
        if start + 1 >= len(tokens):
            return None
        root, suffix = tokens[start], tokens[start + 1]
        if root.head_tag not in ROOT_TAGS or suffix.head_tag not in DERIVING_SUFFIX_TAGS:
            return None
        if suffix.head_tag == "XSV" and suffix.stem in PASSIVE_SUFFIX_STEMS:
            return None
        return 2

    def base_form(self, core):
        return core[0].surface + ensure_infinitive(core[1].stem)


class PassiveVoiceRule(CompoundRule):
    """
    Passive constructions:
    noun + 되/받/당하 (거론 + 되 -> 거론되다) and
    verb stem + 어/아 + 지 (만들 + 어 + 지 -> 만들어지다)
    """

    name = "passive_voice"
    confidence = 0.92

    def match(self, tokens, start):
        if start + 1 >= len(tokens):
            return None
        first, second = tokens[start], tokens[start + 1]

        if (first.head_tag in ROOT_TAGS and second.head_tag == "XSV"
                and second.stem in PASSIVE_SUFFIX_STEMS):
            return 2

        if start + 2 < len(tokens) and first.head_tag in VERB_STEM_TAGS:
            third = tokens[start + 2]
            if (second.head_tag == "EC" and second.surface in PASSIVE_CONNECTIVES
                    and third.head_tag in ("VX", "VV") and third.stem == "지"):
                return 3

        return None

    def base_form(self, core):
        if len(core) == 3:
            return core[0].stem + core[1].surface + "지" + INFINITIVE_MARKER
        return core[0].surface + ensure_infinitive(core[1].stem)

    def part_of_speech(self, core):
        if len(core) == 3:
            return f"{core[0].head_tag}+EC+VX"
        return f"{core[0].head_tag}+XSV"


class InflectedStemRule(CompoundRule):
    """Verb/adjective stem followed by grammatical endings: 먹 + 었 + 어요 -> 먹다"""

    name = "inflected_stem"
    confidence = 0.90

    def match(self, tokens, start):
        if start + 1 >= len(tokens):
            return None
        stem, ending = tokens[start], tokens[start + 1]
        if stem.head_tag in VERB_STEM_TAGS and ending.head_tag in ENDING_TAGS:
            return 2
        return None

    def base_form(self, core):
        return ensure_infinitive(core[0].base)


# Priority order: the first rule that matches wins
COMPOUND_RULES: Tuple[CompoundRule, ...] = (
    SupportVerbRule(),
    DerivationalSuffixRule(),
    PassiveVoiceRule(),
    InflectedStemRule(),
)


def match_compound(tokens: List[Token], start: int,
                   max_lookahead: int = MAX_ENDING_LOOKAHEAD,
                   rules: Tuple[CompoundRule, ...] = COMPOUND_RULES) -> Optional[CompoundMatch]:
    """Try every rule at one token position, in priority order"""
    for rule in rules:
        found = rule.apply(tokens, start, max_lookahead)
        if found:
            return found
    return None


# ==================== Rule-based ending table ====================

@dataclass(frozen=True)
class EndingRule:
    """
    A grammatical ending and how to rebuild the infinitive from its stem.

    When final is set, the ending only matches if the syllable before the
    suffix carries that final consonant, which is removed (간다 -> 가다).
    """
    ending: str
    replacement: str = INFINITIVE_MARKER
    final: int = 0

    @property
    def label(self) -> str:
        if self.final == FINAL_NIEUN:
            return "ㄴ" + self.ending
        if self.final == FINAL_BIEUP:
            return "ㅂ" + self.ending
        return self.ending

    def apply(self, word: str) -> Optional[str]:
        if not word.endswith(self.ending):
            return None
        stem = word[:-len(self.ending)]

        if self.final:
            if not stem or final_consonant(stem[-1]) != self.final:
                return None
            stem = stem[:-1] + strip_final_consonant(stem[-1])

        if not stem:
            return None
        return stem + self.replacement


# Longest / most specific first
FALLBACK_ENDINGS: Tuple[EndingRule, ...] = (
    # Formal past
    EndingRule("했습니다", "하다"),
    EndingRule("었습니다"),
    EndingRule("았습니다"),
    EndingRule("였습니다"),
    # Polite past / future
    EndingRule("했어요", "하다"),
    EndingRule("었어요"),
    EndingRule("았어요"),
    EndingRule("였어요"),
    EndingRule("겠어요"),
    # Formal present
    EndingRule("습니다"),
    EndingRule("십니다"),
    EndingRule("니다", final=FINAL_BIEUP),
    # Polite present
    EndingRule("해요", "하다"),
    EndingRule("어요"),
    EndingRule("아요"),
    EndingRule("여요"),
    # Plain past / future
    EndingRule("했다", "하다"),
    EndingRule("었다"),
    EndingRule("았다"),
    EndingRule("였다"),
    EndingRule("겠다"),
    # Plain present
    EndingRule("진다", "지다"),
    EndingRule("친다", "치다"),
    EndingRule("는다"),
    EndingRule("다", final=FINAL_NIEUN),
    EndingRule("다"),
)


def strip_ending(word: str) -> Optional[Tuple[EndingRule, str]]:
    """Return the first matching ending rule and the rebuilt base form"""
    for rule in FALLBACK_ENDINGS:
        base_form = rule.apply(word)
        if base_form:
            return rule, base_form
    return None
