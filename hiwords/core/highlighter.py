"""
HiWords Highlighter
Per-view matcher snapshots, debounced rematching and the registry that refreshes them
"""

from dataclasses import dataclass
from typing import Callable, List, Optional, Set
import logging
import time

from .debounce import Debouncer
from .sources import WordDefinition
from .trie import PrefixMatcher, remove_overlapping_matches
from .vocabulary import VocabularyStore

logger = logging.getLogger(__name__)

DEFAULT_DEBOUNCE_SECONDS = 0.3
PERFORMANCE_WARNING_MS = 100.0


@dataclass
class WordMatch:
    """A highlighted occurrence: the surface found plus the entry it belongs to"""
    word: str
    definition: WordDefinition
    start: int
    end: int
    color: Optional[str] = None
    base_form: Optional[str] = None

    def to_dict(self):
        return {
            "word": self.word,
            "start": self.start,
            "end": self.end,
            "color": self.color,
            "base_form": self.base_form,
            "definition": self.definition.definition,
            "etymology": self.definition.etymology,
            "source": self.definition.source,
            "node_id": self.definition.node_id
        }


class WordHighlighter:
    """
    Matches one text (a view) against an immutable matcher snapshot.

    Text updates are rematched after a debounce window; vocabulary changes
    go through force_update(), which builds a new matcher and swaps it in.
    """

    def __init__(self,
                 store: VocabularyStore,
                 registry: Optional["HighlighterRegistry"] = None,
                 debounce_seconds: float = DEFAULT_DEBOUNCE_SECONDS,
                 performance_warning_ms: float = PERFORMANCE_WARNING_MS,
                 on_update: Optional[Callable[[List[WordMatch]], None]] = None):
        self.store = store
        self.registry = registry
        self.performance_warning_ms = performance_warning_ms
        self.on_update = on_update

        self.text = ""
        self.matches: List[WordMatch] = []
        self._cached_text: Optional[str] = None
        self._matcher = self._build_matcher()
        self._debouncer = Debouncer(debounce_seconds, self._refresh, name="highlight refresh")

        if registry is not None:
            registry.register(self)

    def _build_matcher(self) -> PrefixMatcher:
        start = time.perf_counter()
        matcher = self.store.build_matcher()
        logger.debug(f"Built matcher with {len(matcher)} entries in "
                     f"{(time.perf_counter() - start) * 1000:.1f}ms")
        return matcher

    @property
    def matcher(self) -> PrefixMatcher:
        return self._matcher

    def find_word_matches(self, text: str, offset: int = 0) -> List[WordMatch]:
        """Non-overlapping matches in text, positions shifted by offset"""
        start = time.perf_counter()
        matcher = self._matcher

        found = []
        for match in remove_overlapping_matches(matcher.find_all_matches(text)):
            definition = match.payload
            if definition is None:
                continue
            found.append(WordMatch(
                word=match.word,
                definition=definition,
                start=offset + match.start,
                end=offset + match.end,
                color=definition.color,
                base_form=definition.word
            ))

        elapsed = (time.perf_counter() - start) * 1000
        if elapsed > self.performance_warning_ms:
            logger.warning(f"Slow match pass: {elapsed:.2f}ms for {len(text)} characters")
        return found

    def update(self, text: str):
        """Record new text and rematch once the debounce window passes"""
        self.text = text
        self._debouncer.trigger()

    def _refresh(self):
        if self._cached_text == self.text:
            return
        self.matches = self.find_word_matches(self.text)
        self._cached_text = self.text
        if self.on_update:
            self.on_update(self.matches)

    def force_update(self) -> List[WordMatch]:
        """Swap in a fresh matcher and rematch the current text now"""
        self._matcher = self._build_matcher()
        self._cached_text = None
        self._refresh()
        return self.matches

    async def flush(self):
        await self._debouncer.flush()

    def destroy(self):
        self._debouncer.cancel()
        if self.registry is not None:
            self.registry.unregister(self)
        self.matches = []


class HighlighterRegistry:
    """Active highlighters, refreshed together when vocabulary or mastery changes"""

    def __init__(self):
        self._highlighters: Set[WordHighlighter] = set()

    def register(self, highlighter: WordHighlighter):
        self._highlighters.add(highlighter)

    def unregister(self, highlighter: WordHighlighter):
        self._highlighters.discard(highlighter)

    def refresh_all(self):
        for highlighter in list(self._highlighters):
            try:
                highlighter.force_update()
            except Exception as e:
                logger.error(f"Failed to refresh highlighter: {e}")

    def clear(self):
        self._highlighters = set()

    def __len__(self):
        return len(self._highlighters)

    def __iter__(self):
        return iter(list(self._highlighters))
