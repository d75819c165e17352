"""
HiWords Prefix Matcher
Character trie for finding many vocabulary words in one scan of a text
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional
import unicodedata


@dataclass
class Match:
    """A vocabulary hit inside a text"""
    word: str
    start: int
    end: int
    payload: Any = None

    @property
    def length(self) -> int:
        return self.end - self.start


@dataclass
class TrieNode:
    children: Dict[str, "TrieNode"] = field(default_factory=dict)
    is_terminal: bool = False
    payload: Any = None
    word: Optional[str] = None


def is_boundaryless_char(char: str) -> bool:
    """Scripts written without separating word boundaries (or with attached particles)"""
    code = ord(char)
    return (
        0xAC00 <= code <= 0xD7AF      # Hangul syllables
        or 0x1100 <= code <= 0x11FF   # Hangul jamo
        or 0x3130 <= code <= 0x318F   # Hangul compatibility jamo
        or 0xA960 <= code <= 0xA97F
        or 0xD7B0 <= code <= 0xD7FF
        or 0x3040 <= code <= 0x30FF   # Hiragana / Katakana
        or 0x3400 <= code <= 0x4DBF   # CJK extension A
        or 0x4E00 <= code <= 0x9FFF   # CJK unified ideographs
        or 0xF900 <= code <= 0xFAFF
    )


def is_word_char(char: str) -> bool:
    """Alphanumeric character of a script that separates words"""
    if not char:
        return False
    if is_boundaryless_char(char):
        return False
    return char.isalnum() or unicodedata.category(char) == "Mn"


class PrefixMatcher:
    """
    Multi-pattern matcher over lower-cased character paths.

    Payloads live on terminal nodes only; the original-case word is kept
    for match reporting. A matcher used for live matching is treated as
    immutable once built: refresh by building a new instance.
    """

    def __init__(self, words: Optional[Iterable] = None):
        self.root = TrieNode()
        self._word_count = 0
        if words:
            for word, payload in words:
                self.add_word(word, payload)

    def __len__(self) -> int:
        return self._word_count

    def add_word(self, word: str, payload: Any = None):
        """
        Add a word to the trie

        Args:
            word: Word as it should be reported
            payload: Data returned with every match of this word
        """
        if not word:
            return

        node = self.root
        for char in word:
            node = node.children.setdefault(char.lower(), TrieNode())

        if not node.is_terminal:
            self._word_count += 1
        node.is_terminal = True
        node.payload = payload
        node.word = word

    def contains(self, word: str) -> bool:
        node = self.root
        for char in word:
            node = node.children.get(char.lower())
            if node is None:
                return False
        return node.is_terminal

    def find_all_matches(self, text: str) -> List[Match]:
        """
        Find every boundary-respecting match, longest per start offset

        Args:
            text: Text to scan

        Returns:
            Unsorted list of Match objects (may overlap)
        """
        matches = []
        if not text:
            return matches

        lowered = [char.lower() for char in text]
        length = len(lowered)

        for i in range(length):
            node = self.root
            j = i
            longest = None

            while j < length:
                node = node.children.get(lowered[j])
                if node is None:
                    break
                j += 1

                if node.is_terminal and self._respects_boundaries(text, i, j):
                    longest = Match(
                        word=node.word or text[i:j],
                        start=i,
                        end=j,
                        payload=node.payload
                    )

            if longest:
                matches.append(longest)

        return matches

    @staticmethod
    def _respects_boundaries(text: str, start: int, end: int) -> bool:
        # A side only fails when both the match edge and its neighbour are
        # word characters of a boundary-separated script
        if start > 0 and is_word_char(text[start - 1]) and is_word_char(text[start]):
            return False
        if end < len(text) and is_word_char(text[end]) and is_word_char(text[end - 1]):
            return False
        return True

    def clear(self):
        """Discard every stored word"""
        self.root = TrieNode()
        self._word_count = 0


def remove_overlapping_matches(matches: List[Match]) -> List[Match]:
    """
    Keep earliest-and-longest matches so that no two spans overlap

    Args:
        matches: Candidate matches in any order

    Returns:
        New list sorted by start offset
    """
    if len(matches) <= 1:
        return list(matches)

    ordered = sorted(matches, key=lambda m: (m.start, -(m.end - m.start)))

    result = []
    last_end = 0
    for match in ordered:
        if match.start >= last_end:
            result.append(match)
            last_end = match.end

    return result
