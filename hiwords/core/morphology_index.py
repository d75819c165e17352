"""
HiWords Morphology Index
Per-document and global base form -> observed surfaces maps
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterable, List, Mapping, Optional, Set
import logging

from .morphology import MorphologyAnalyzer

logger = logging.getLogger(__name__)


class IndexStatus(Enum):
    UNINDEXED = "unindexed"
    INDEXED = "indexed"
    STALE = "stale"
    REMOVED = "removed"


@dataclass
class DocumentIndexEntry:
    """What one document contributed to the global index"""
    doc_id: str
    timestamp: Any
    base_form_to_surfaces: Dict[str, Set[str]] = field(default_factory=dict)


class MorphologyIndex:
    """
    Incremental inflection index over a document collection.

    The global map is always the union of the live document entries: a
    re-index subtracts the old contribution before adding the new one, and
    a base form disappears once its last surface is gone.
    """

    def __init__(self, analyzer: MorphologyAnalyzer, enabled: bool = True):
        self.analyzer = analyzer
        self.enabled = enabled
        self._documents: Dict[str, DocumentIndexEntry] = {}
        self._global: Dict[str, Set[str]] = {}
        self._removed: Set[str] = set()
        # Latest request per document; older in-flight analyses are discarded
        self._generations: Dict[str, int] = {}

    # ==================== Indexing ====================

    async def index_document(self, doc_id: str, timestamp: Any, content: str) -> bool:
        """
        Index or re-index one document

        Args:
            doc_id: Document identifier
            timestamp: Last-modified stamp; an identical stored stamp makes this a no-op
            content: Full document text

        Returns:
            True when the index changed
        """
        if not self.enabled:
            return False

        existing = self._documents.get(doc_id)
        if existing is not None and existing.timestamp == timestamp:
            return False

        generation = self._generations.get(doc_id, 0) + 1
        self._generations[doc_id] = generation

        try:
            analysis = await self.analyzer.analyze_document(content)
        except Exception as e:
            logger.error(f"Failed to index document {doc_id}: {e}")
            return False

        if self._generations.get(doc_id) != generation or not self.enabled:
            logger.debug(f"Discarding superseded analysis for {doc_id}")
            return False

        local = {base: set(surfaces) for base, surfaces in analysis.base_form_to_surfaces.items() if surfaces}

        old = self._documents.pop(doc_id, None)
        if old is not None:
            self._subtract(old.base_form_to_surfaces)

        self._documents[doc_id] = DocumentIndexEntry(doc_id, timestamp, local)
        self._add(local)
        self._removed.discard(doc_id)

        logger.debug(f"Indexed {doc_id}: {len(local)} base forms")
        return True

    def remove_document(self, doc_id: str) -> bool:
        """Drop a document and everything it contributed"""
        # A pending analysis for this id must not resurrect it
        if doc_id in self._generations:
            self._generations[doc_id] += 1

        entry = self._documents.pop(doc_id, None)
        if entry is None:
            return False

        self._subtract(entry.base_form_to_surfaces)
        self._removed.add(doc_id)
        logger.debug(f"Removed {doc_id} from morphology index")
        return True

    async def rename_document(self, old_id: str, new_id: str, timestamp: Any, content: str) -> bool:
        self.remove_document(old_id)
        return await self.index_document(new_id, timestamp, content)

    def _add(self, contribution: Mapping[str, Set[str]]):
        for base, surfaces in contribution.items():
            self._global.setdefault(base, set()).update(surfaces)

    def _subtract(self, contribution: Mapping[str, Set[str]]):
        # Caller must already have dropped the contributing entry from _documents
        for base, surfaces in contribution.items():
            current = self._global.get(base)
            if current is None:
                continue
            current.difference_update(surfaces)
            if not current:
                del self._global[base]
        # Surfaces shared with other live documents must survive
        for base in contribution:
            for entry in self._documents.values():
                shared = entry.base_form_to_surfaces.get(base)
                if shared:
                    self._global.setdefault(base, set()).update(shared)

    def rebuild_global_index(self):
        """Recompute the global map from the stored document entries"""
        rebuilt: Dict[str, Set[str]] = {}
        for entry in self._documents.values():
            for base, surfaces in entry.base_form_to_surfaces.items():
                rebuilt.setdefault(base, set()).update(surfaces)
        self._global = rebuilt
        logger.info(f"🔄 Rebuilt global morphology index: {len(rebuilt)} base forms")

    # ==================== Lookups ====================

    def get_global_inflections(self, base_form: str) -> Set[str]:
        if not self.enabled:
            return {base_form}
        return set(self._global.get(base_form, ()))

    def get_document_inflections(self, base_form: str, doc_id: str) -> Set[str]:
        if not self.enabled:
            return set()
        entry = self._documents.get(doc_id)
        if entry is None:
            return set()
        return set(entry.base_form_to_surfaces.get(base_form, ()))

    def get_all_base_forms(self) -> List[str]:
        return sorted(self._global)

    def has_base_form(self, base_form: str) -> bool:
        return self.enabled and base_form in self._global

    def is_indexed(self, doc_id: str) -> bool:
        return doc_id in self._documents

    def status(self, doc_id: str, current_timestamp: Any = None) -> IndexStatus:
        entry = self._documents.get(doc_id)
        if entry is None:
            return IndexStatus.REMOVED if doc_id in self._removed else IndexStatus.UNINDEXED
        if current_timestamp is not None and current_timestamp != entry.timestamp:
            return IndexStatus.STALE
        return IndexStatus.INDEXED

    def documents_to_reindex(self, stamps: Mapping[str, Any]) -> List[str]:
        """Ids from a {doc_id: timestamp} snapshot that are unindexed or stale"""
        return [
            doc_id for doc_id, stamp in stamps.items()
            if self.status(doc_id, stamp) != IndexStatus.INDEXED
        ]

    def get_stats(self) -> Dict[str, Any]:
        return {
            "enabled": self.enabled,
            "documents": len(self._documents),
            "base_forms": len(self._global),
            "surfaces": sum(len(s) for s in self._global.values()),
            "backend_available": getattr(self.analyzer, "backend_available", False)
        }

    # ==================== Lifecycle ====================

    def set_enabled(self, enabled: bool):
        """Disabling clears every local and global entry"""
        if not enabled:
            self.clear()
        self.enabled = enabled
        logger.info(f"Morphology index {'enabled' if enabled else 'disabled'}")

    def clear(self):
        for doc_id in self._generations:
            self._generations[doc_id] += 1
        self._documents = {}
        self._global = {}
        self._removed = set()

    def destroy(self):
        self.clear()
        self.analyzer.destroy()

    def document_ids(self) -> Iterable[str]:
        return list(self._documents)

    def entry(self, doc_id: str) -> Optional[DocumentIndexEntry]:
        return self._documents.get(doc_id)
