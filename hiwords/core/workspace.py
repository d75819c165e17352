"""
HiWords Workspace
Wires analyzer, index, vocabulary, documents and highlighters together
"""

import logging
from typing import Any, Dict, List, Optional

from .config import HiWordsConfig
from .debounce import Debouncer
from .documents import DocumentStore, DocumentSync
from .highlighter import HighlighterRegistry, WordHighlighter, WordMatch
from .mastered import MasteredService
from .morphology import MorphologyAnalysisResult, MorphologyAnalyzer
from .morphology_index import MorphologyIndex
from .sources import WordDefinition
from .vocabulary import VocabularyStore

logger = logging.getLogger(__name__)


class HiWordsWorkspace:
    """Composition root used by the CLI and the HTTP API"""

    def __init__(self, config: Optional[HiWordsConfig] = None, backend: Any = None):
        """
        Build every component

        Args:
            config: Configuration (defaults plus environment overrides)
            backend: Tokenizer to use instead of the spaCy pipeline
        """
        self.config = config or HiWordsConfig()

        self.analyzer = MorphologyAnalyzer(self.config.morphology, backend=backend)
        self.index = MorphologyIndex(self.analyzer, enabled=self.config.morphology.enabled)
        self.store = VocabularyStore(self.config.vocabulary, self.analyzer, self.index)
        self.mastered = MasteredService(self.store)

        self.registry = HighlighterRegistry()
        self.documents = DocumentStore(self.config.notes_dir)
        self.sync = DocumentSync(self.documents, self.index, on_change=self.schedule_refresh)

        self._refresher = Debouncer(
            self.config.matching.debounce_seconds,
            self.registry.refresh_all,
            name="matcher refresh"
        )
        self.store.add_listener(self.schedule_refresh)

        # Matcher snapshot serving one-off match requests
        self.highlighter: Optional[WordHighlighter] = None
        self.started = False

    async def start(self, index_documents: bool = True):
        """Load vocabulary books and index the notes directory"""
        await self.store.load_all()
        if index_documents:
            await self.sync.index_all()

        self.highlighter = self.create_highlighter()
        self.started = True
        logger.info("🚀 HiWords workspace ready")

    def create_highlighter(self, on_update=None) -> WordHighlighter:
        return WordHighlighter(
            self.store,
            registry=self.registry,
            debounce_seconds=self.config.matching.debounce_seconds,
            performance_warning_ms=self.config.matching.performance_warning_ms,
            on_update=on_update
        )

    def schedule_refresh(self):
        """Debounced rebuild of every registered highlighter"""
        try:
            self._refresher.trigger()
        except RuntimeError:
            self.registry.refresh_all()

    def refresh_now(self):
        self._refresher.cancel()
        self.registry.refresh_all()

    # ==================== Operations ====================

    def match_text(self, text: str) -> List[WordMatch]:
        if self.highlighter is None:
            self.highlighter = self.create_highlighter()
        return self.highlighter.find_word_matches(text)

    async def lookup(self, word: str) -> Optional[WordDefinition]:
        """Definition of a word or of its base form"""
        found = self.store.get_definition(word)
        if found is not None:
            return found
        return await self.store.resolve_definition(word)

    async def analyze(self, word: str) -> Optional[MorphologyAnalysisResult]:
        return await self.analyzer.analyze_word(word)

    async def index_document(self, doc_id: str, content: str, timestamp: Any) -> bool:
        changed = await self.index.index_document(doc_id, timestamp, content)
        if changed:
            self.refresh_now()
        return changed

    def remove_document(self, doc_id: str) -> bool:
        removed = self.index.remove_document(doc_id)
        if removed:
            self.refresh_now()
        return removed

    async def reindex(self) -> int:
        """Pick up note changes since the last poll"""
        events = await self.sync.sync()
        self.refresh_now()
        return len(events)

    def add_word(self, source_id: str, word: str, definition: str,
                 etymology: Optional[str] = None, color: Any = None) -> WordDefinition:
        added = self.store.add_word(source_id, word, definition, etymology, color)
        self.refresh_now()
        return added

    async def set_mastered(self, word: str, mastered: bool = True) -> bool:
        """Mark or unmark the entry a word (or one of its inflections) belongs to"""
        definition = await self.lookup(word)
        if definition is None:
            return False
        if mastered:
            changed = self.mastered.mark_mastered(definition.source, definition.node_id)
        else:
            changed = self.mastered.unmark_mastered(definition.source, definition.node_id)
        if changed:
            self.refresh_now()
        return changed

    def get_stats(self) -> Dict[str, Any]:
        return {
            "vocabulary": self.store.get_stats(),
            "morphology": self.index.get_stats(),
            "mastered": self.mastered.get_mastered_stats(),
            "highlighters": len(self.registry)
        }

    async def close(self):
        """Write pending changes and release everything"""
        await self.store.flush_pending_writes()
        self._refresher.cancel()
        if self.highlighter is not None:
            self.highlighter.destroy()
        self.registry.clear()
        self.store.destroy()
        self.started = False
