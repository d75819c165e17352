"""
HiWords Vocabulary Store
Definitions from every vocabulary book, derived lookup caches, matcher
assembly and optimistic edits with debounced write-back
"""

import asyncio
import dataclasses
import logging
import time
from typing import Any, Callable, Dict, Iterable, List, Optional, Set

from .config import BookConfig, VocabularyConfig
from .debounce import Debouncer
from .morphology import MorphologyAnalyzer
from .morphology_index import MorphologyIndex
from .sources import (
    OP_CREATE,
    OP_DELETE,
    OP_UPDATE,
    TEMP_ID_PREFIX,
    SourceOperation,
    VocabularySource,
    WordDefinition,
    YamlVocabularySource,
    is_mastered_definition,
    normalize_color,
)
from .trie import Match, PrefixMatcher, remove_overlapping_matches

logger = logging.getLogger(__name__)

__all__ = ["VocabularyStore", "WordDefinition"]


def normalize_word(word: str) -> str:
    return (word or "").strip().lower()


class VocabularyStore:
    """
    Canonical word -> definition data across all vocabulary books

    Derived caches are rebuilt in one pass into local structures and
    swapped in together, so readers see either the complete previous state
    or the complete new one. Morphologically resolved surfaces are kept in
    a separate inflection cache and never enter the canonical caches.
    """

    def __init__(self,
                 config: Optional[VocabularyConfig] = None,
                 analyzer: Optional[MorphologyAnalyzer] = None,
                 index: Optional[MorphologyIndex] = None):
        self.config = config or VocabularyConfig()
        self.analyzer = analyzer or MorphologyAnalyzer()
        self.index = index or MorphologyIndex(self.analyzer)

        self._sources: Dict[str, VocabularySource] = {}
        self._definitions: Dict[str, List[WordDefinition]] = {}

        # Derived caches, valid only together
        self._cache_valid = False
        self._word_definition_cache: Dict[str, WordDefinition] = {}
        self._all_words_cache: List[str] = []
        self._source_words_cache: Dict[str, List[str]] = {}
        self._unmastered_words_cache: List[str] = []
        self._cache_generation = 0

        # Surface -> definition found through morphology
        self._inflection_cache: Dict[str, WordDefinition] = {}
        self._resolving: Set[str] = set()
        self._background_tasks: Set[asyncio.Task] = set()

        # Write-back
        self._pending_ops: Dict[str, List[SourceOperation]] = {}
        self._writers: Dict[str, Debouncer] = {}
        self._temp_counter = 0

        self._listeners: List[Callable[[], Any]] = []

        for book in self.config.books:
            self._register_book(book)

    # ==================== Sources ====================

    def _register_book(self, book: BookConfig):
        if not book.enabled:
            logger.debug(f"Skipping disabled vocabulary book {book.path}")
            return
        source = YamlVocabularySource(book.path, book.name, self.config.mastered_detection)
        self._sources[source.source_id] = source

    def register_source(self, source: VocabularySource):
        """Add a source (any VocabularySource implementation)"""
        self._sources[source.source_id] = source

    @property
    def source_ids(self) -> List[str]:
        return list(self._sources)

    def get_source(self, source_id: str) -> Optional[VocabularySource]:
        return self._sources.get(source_id)

    async def load_source(self, source_id: str) -> bool:
        source = self._sources.get(source_id)
        if source is None:
            logger.warning(f"Unknown vocabulary source: {source_id}")
            return False

        try:
            definitions = await asyncio.to_thread(source.load)
        except FileNotFoundError as e:
            logger.warning(str(e))
            return False
        except Exception as e:
            logger.error(f"Failed to load vocabulary book {source.name}: {e}")
            return False

        self._definitions[source_id] = list(definitions)
        self.invalidate_cache()
        return True

    async def load_all(self):
        """Load every registered source and rebuild the caches"""
        self._definitions = {}
        self.invalidate_cache()

        for source_id in list(self._sources):
            await self.load_source(source_id)

        self.rebuild_cache()
        logger.info(f"✅ Vocabulary loaded: {len(self._all_words_cache)} words "
                    f"from {len(self._definitions)} book(s)")
        self._notify()

    async def reload_source(self, source_id: str) -> bool:
        loaded = await self.load_source(source_id)
        if loaded:
            self._notify()
        return loaded

    # ==================== Caches ====================

    def invalidate_cache(self):
        self._cache_valid = False
        self._cache_generation += 1
        self._word_definition_cache = {}
        self._all_words_cache = []
        self._source_words_cache = {}
        self._unmastered_words_cache = []
        self._inflection_cache = {}

    def rebuild_cache(self) -> bool:
        """
        Rebuild every derived cache in a single pass

        Returns:
            True when the caches are valid afterwards
        """
        start = time.perf_counter()
        try:
            word_definitions: Dict[str, WordDefinition] = {}
            all_words: Dict[str, None] = {}
            source_words: Dict[str, List[str]] = {}

            for source_id, definitions in self._definitions.items():
                seen: Dict[str, None] = {}
                for definition in definitions:
                    key = normalize_word(definition.word)
                    if not key:
                        continue
                    word_definitions[key] = definition
                    all_words[key] = None
                    seen[key] = None
                source_words[source_id] = list(seen)

            unmastered = [w for w in all_words if not word_definitions[w].mastered]

            self._word_definition_cache = word_definitions
            self._all_words_cache = list(all_words)
            self._source_words_cache = source_words
            self._unmastered_words_cache = unmastered
            self._cache_valid = True
        except Exception as e:
            logger.error(f"Failed to rebuild vocabulary cache: {e}")
            self.invalidate_cache()
            return False

        elapsed = (time.perf_counter() - start) * 1000
        logger.debug(f"Vocabulary cache rebuilt: {len(self._all_words_cache)} words in {elapsed:.1f}ms")
        return True

    def _ensure_cache(self) -> bool:
        if self._cache_valid:
            return True
        return self.rebuild_cache()

    # ==================== Lookups ====================

    def get_definition(self, word: str) -> Optional[WordDefinition]:
        """
        Look up a word by its canonical form

        A Korean miss starts a background morphological resolution whose
        result serves later calls; this call still returns None.
        """
        key = normalize_word(word)
        if not key:
            return None

        self._ensure_cache()
        found = self._word_definition_cache.get(key) or self._inflection_cache.get(key)
        if found is not None:
            return found

        if self.analyzer.is_target_script(key):
            self._schedule_resolution(key)
        return None

    def _schedule_resolution(self, key: str):
        if key in self._resolving:
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            return

        self._resolving.add(key)
        task = loop.create_task(self.resolve_definition(key))
        self._background_tasks.add(task)

        def _done(t: asyncio.Task):
            self._background_tasks.discard(t)
            self._resolving.discard(key)

        task.add_done_callback(_done)

    async def resolve_definition(self, word: str,
                                 visited: Optional[Set[str]] = None) -> Optional[WordDefinition]:
        """Look up a word, following its morphological base form when needed"""
        key = normalize_word(word)
        visited = visited if visited is not None else set()
        if not key or key in visited:
            return None
        visited.add(key)

        self._ensure_cache()
        found = self._word_definition_cache.get(key) or self._inflection_cache.get(key)
        if found is not None:
            return found

        if not self.analyzer.is_target_script(key):
            return None

        generation = self._cache_generation
        try:
            result = await self.analyzer.analyze_word(key)
        except Exception as e:
            logger.error(f"Morphological lookup failed for '{key}': {e}")
            return None

        if result is None or normalize_word(result.base_form) == key:
            return None

        base_definition = await self.resolve_definition(result.base_form, visited)
        if base_definition is not None and generation == self._cache_generation:
            self._inflection_cache[key] = base_definition
        return base_definition

    def has_word(self, word: str) -> bool:
        self._ensure_cache()
        return normalize_word(word) in self._word_definition_cache

    def get_all_words(self) -> List[str]:
        self._ensure_cache()
        return list(self._all_words_cache)

    def get_words_for_highlight(self) -> List[str]:
        """Words to highlight: unmastered only when the mastered feature is on"""
        if not self.config.enable_mastered_feature:
            return self.get_all_words()
        self._ensure_cache()
        return list(self._unmastered_words_cache)

    def get_words_from_source(self, source_id: str) -> List[str]:
        self._ensure_cache()
        return list(self._source_words_cache.get(source_id, []))

    def get_definition_by_node_id(self, source_id: str, node_id: str) -> Optional[WordDefinition]:
        for definition in self._definitions.get(source_id, []):
            if definition.node_id == node_id:
                return definition
        return None

    def get_all_definitions(self) -> List[WordDefinition]:
        return [d for definitions in self._definitions.values() for d in definitions]

    def search_words(self, query: str, limit: int = 20) -> List[WordDefinition]:
        """Case-insensitive substring search over words and definitions"""
        needle = normalize_word(query)
        if not needle:
            return []
        results = []
        for definition in self.get_all_definitions():
            if needle in definition.word.lower() or needle in definition.definition.lower():
                results.append(definition)
                if len(results) >= limit:
                    break
        return results

    def get_all_inflections(self, base_form: str) -> Set[str]:
        return self.index.get_global_inflections(normalize_word(base_form))

    def get_stats(self) -> Dict[str, Any]:
        self._ensure_cache()
        definitions = self.get_all_definitions()
        return {
            "total_books": len(self.config.books) or len(self._sources),
            "enabled_books": len(self._sources),
            "total_words": len(definitions),
            "unique_words": len(self._all_words_cache),
            "mastered_words": sum(1 for d in definitions if d.mastered),
            "pending_writes": sum(len(ops) for ops in self._pending_ops.values())
        }

    # ==================== Matching ====================

    def build_matcher(self, words: Optional[Iterable[str]] = None) -> PrefixMatcher:
        """
        Build a fresh matcher over canonical words and their known inflections

        Args:
            words: Canonical words to include (default: words for highlight)
        """
        self._ensure_cache()
        if words is None:
            words = self.get_words_for_highlight()

        matcher = PrefixMatcher()
        for word in words:
            key = normalize_word(word)
            definition = self._word_definition_cache.get(key)
            if definition is None:
                continue

            matcher.add_word(definition.word, definition)
            for inflection in self.index.get_global_inflections(key):
                if inflection and inflection.lower() != key:
                    matcher.add_word(inflection, definition)

        return matcher

    def find_all_matches(self, text: str, matcher: Optional[PrefixMatcher] = None) -> List[Match]:
        """Non-overlapping matches of highlightable words, sorted by position"""
        matcher = matcher or self.build_matcher()
        return remove_overlapping_matches(matcher.find_all_matches(text))

    # ==================== Mutations ====================

    def _new_temp_id(self) -> str:
        self._temp_counter += 1
        return f"{TEMP_ID_PREFIX}{int(time.time() * 1000)}_{self._temp_counter}"

    def add_word(self, source_id: str, word: str, definition: str,
                 etymology: Optional[str] = None, color: Any = None) -> WordDefinition:
        """
        Add a word to a book; visible immediately, persisted after the write-back delay

        Raises:
            ValueError: Empty word or unknown source
        """
        word = (word or "").strip()
        if not word:
            raise ValueError("Word must not be empty")
        if source_id not in self._sources:
            raise ValueError(f"Unknown vocabulary source: {source_id}")

        definitions = self._definitions.setdefault(source_id, [])
        existing = next((d for d in definitions if normalize_word(d.word) == normalize_word(word)), None)

        new_definition = WordDefinition(
            word=word,
            definition=(definition or "").strip(),
            source=source_id,
            node_id=existing.node_id if existing else self._new_temp_id(),
            etymology=etymology or None,
            color=normalize_color(color)
        )

        if existing:
            new_definition.group = existing.group
            new_definition.mastered = existing.mastered
            definitions[definitions.index(existing)] = new_definition
            self._queue(source_id, SourceOperation(OP_UPDATE, new_definition.node_id, new_definition))
        else:
            definitions.append(new_definition)
            self._queue(source_id, SourceOperation(OP_CREATE, new_definition.node_id, new_definition))

        self._after_mutation()
        return new_definition

    def update_word(self, source_id: str, node_id: str, **changes) -> Optional[WordDefinition]:
        """
        Change fields of an existing entry (word, definition, etymology, color, group, mastered)

        Returns:
            The updated definition, or None if the node is unknown
        """
        definitions = self._definitions.get(source_id, [])
        for i, current in enumerate(definitions):
            if current.node_id != node_id:
                continue

            if "color" in changes:
                changes["color"] = normalize_color(changes["color"])
            if "word" in changes:
                changes["word"] = (changes["word"] or "").strip() or current.word
            updated = dataclasses.replace(current, **changes)
            if "mastered" not in changes:
                updated.mastered = is_mastered_definition(updated, self.config.mastered_detection)

            definitions[i] = updated
            self._queue(source_id, SourceOperation(OP_UPDATE, node_id, updated))
            self._after_mutation()
            return updated

        logger.warning(f"Node {node_id} not found in {source_id}")
        return None

    def delete_word(self, source_id: str, node_id: str) -> bool:
        definitions = self._definitions.get(source_id, [])
        for i, current in enumerate(definitions):
            if current.node_id == node_id:
                del definitions[i]
                self._queue(source_id, SourceOperation(OP_DELETE, node_id, current))
                self._after_mutation()
                return True

        logger.warning(f"Node {node_id} not found in {source_id}")
        return False

    def update_settings(self, config: VocabularyConfig):
        """Apply new vocabulary settings; mastery flags follow the detection mode"""
        mode_changed = config.mastered_detection != self.config.mastered_detection
        self.config = config

        if mode_changed:
            for source in self._sources.values():
                if hasattr(source, "mastered_detection"):
                    source.mastered_detection = config.mastered_detection
            for definition in self.get_all_definitions():
                definition.mastered = is_mastered_definition(definition, config.mastered_detection)

        self._after_mutation()

    def _after_mutation(self):
        self.invalidate_cache()
        self.rebuild_cache()
        self._notify()

    # ==================== Write-back ====================

    def _queue(self, source_id: str, op: SourceOperation):
        ops = self._pending_ops.setdefault(source_id, [])
        previous = next((o for o in ops if o.node_id == op.node_id), None)

        if previous is None:
            ops.append(op)
        elif previous.kind == OP_CREATE and op.kind == OP_DELETE:
            ops.remove(previous)
        elif previous.kind == OP_CREATE:
            previous.definition = op.definition
        else:
            ops[ops.index(previous)] = op

        if not ops:
            self._pending_ops.pop(source_id, None)
            return
        self._schedule_write(source_id)

    def _schedule_write(self, source_id: str):
        writer = self._writers.get(source_id)
        if writer is None:
            writer = Debouncer(
                self.config.write_back_delay,
                lambda: self._write_source(source_id),
                name=f"write-back {source_id}"
            )
            self._writers[source_id] = writer
        try:
            writer.trigger()
        except RuntimeError:
            logger.debug(f"No running loop; {source_id} changes wait for flush_pending_writes()")

    async def _write_source(self, source_id: str):
        ops = self._pending_ops.pop(source_id, [])
        source = self._sources.get(source_id)
        if not ops or source is None:
            return

        try:
            assigned = await asyncio.to_thread(source.apply, ops)
        except Exception as e:
            logger.error(f"Write-back to {source_id} failed: {e}")
            return

        if assigned:
            self._assign_node_ids(source_id, assigned)

    def _assign_node_ids(self, source_id: str, assigned: Dict[str, str]):
        for definition in self._definitions.get(source_id, []):
            if definition.node_id in assigned:
                definition.node_id = assigned[definition.node_id]
        for op in self._pending_ops.get(source_id, []):
            if op.node_id in assigned:
                op.node_id = assigned[op.node_id]

    async def flush_pending_writes(self):
        """Write every queued change now"""
        for writer in list(self._writers.values()):
            await writer.flush()
        for source_id in list(self._pending_ops):
            await self._write_source(source_id)

    # ==================== Listeners & lifecycle ====================

    def add_listener(self, callback: Callable[[], Any]):
        """Called after every change to the vocabulary"""
        self._listeners.append(callback)

    def remove_listener(self, callback: Callable[[], Any]):
        if callback in self._listeners:
            self._listeners.remove(callback)

    def _notify(self):
        for callback in list(self._listeners):
            try:
                callback()
            except Exception as e:
                logger.error(f"Vocabulary listener failed: {e}")

    def clear(self):
        self._definitions = {}
        self.invalidate_cache()

    def destroy(self):
        for writer in self._writers.values():
            writer.cancel()
        self._writers = {}
        for task in list(self._background_tasks):
            task.cancel()
        self._background_tasks = set()
        self._pending_ops = {}
        self._listeners = []
        self.clear()
        self.index.destroy()
