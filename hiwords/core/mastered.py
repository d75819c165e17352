"""
HiWords Mastered Service
Marking vocabulary entries as learned so they drop out of highlighting
"""

from typing import Any, Dict, Iterable, List, Optional, Tuple
import logging

from .sources import MASTERED_COLOR, MASTERED_GROUP, WordDefinition
from .vocabulary import VocabularyStore

logger = logging.getLogger(__name__)


class MasteredService:
    """Mastery state changes, expressed as a group or a color depending on the detection mode"""

    def __init__(self, store: VocabularyStore):
        self.store = store

    @property
    def is_enabled(self) -> bool:
        return self.store.config.enable_mastered_feature

    @property
    def detection_mode(self) -> str:
        return self.store.config.mastered_detection

    def _changes_for(self, definition: WordDefinition, mastered: bool) -> Dict[str, Any]:
        changes: Dict[str, Any] = {"mastered": mastered}
        if self.detection_mode == "color":
            changes["color"] = MASTERED_COLOR if mastered else None
        elif mastered:
            changes["group"] = MASTERED_GROUP
        elif definition.group == MASTERED_GROUP:
            changes["group"] = None
        return changes

    def _set_mastered(self, source_id: str, node_id: str, mastered: bool) -> bool:
        if not self.is_enabled:
            logger.warning("Mastered feature is disabled")
            return False

        definition = self.store.get_definition_by_node_id(source_id, node_id)
        if definition is None:
            logger.error(f"Word definition not found: {node_id}")
            return False

        updated = self.store.update_word(source_id, node_id, **self._changes_for(definition, mastered))
        if updated is None:
            return False

        state = "mastered" if mastered else "not mastered"
        logger.info(f"✅ Marked '{updated.word}' as {state}")
        return True

    def mark_mastered(self, source_id: str, node_id: str) -> bool:
        return self._set_mastered(source_id, node_id, True)

    def unmark_mastered(self, source_id: str, node_id: str) -> bool:
        return self._set_mastered(source_id, node_id, False)

    def is_mastered(self, source_id: str, node_id: str) -> bool:
        if not self.is_enabled:
            return False
        definition = self.store.get_definition_by_node_id(source_id, node_id)
        return bool(definition and definition.mastered)

    def batch_mark_mastered(self, items: Iterable[Tuple[str, str]]) -> int:
        """Mark several (source_id, node_id) pairs; returns how many succeeded"""
        if not self.is_enabled:
            return 0
        return sum(1 for source_id, node_id in items if self.mark_mastered(source_id, node_id))

    def get_mastered_words(self, source_id: Optional[str] = None) -> List[WordDefinition]:
        if not self.is_enabled:
            return []
        return [
            d for d in self.store.get_all_definitions()
            if d.mastered and (source_id is None or d.source == source_id)
        ]

    def get_mastered_stats(self) -> Dict[str, Any]:
        if not self.is_enabled:
            return {"total_mastered": 0, "total_words": 0, "mastered_percentage": 0.0, "by_book": {}}

        definitions = self.store.get_all_definitions()
        by_book: Dict[str, Dict[str, int]] = {}
        for d in definitions:
            counts = by_book.setdefault(d.source, {"mastered": 0, "total": 0})
            counts["total"] += 1
            if d.mastered:
                counts["mastered"] += 1

        total_mastered = sum(c["mastered"] for c in by_book.values())
        return {
            "total_mastered": total_mastered,
            "total_words": len(definitions),
            "mastered_percentage": (total_mastered / len(definitions) * 100) if definitions else 0.0,
            "by_book": by_book
        }

    def sync_mastered_status(self, source_id: str) -> int:
        """
        Rewrite group/color markers of a book from the in-memory mastery flags

        Returns:
            Number of entries whose marker had drifted
        """
        if not self.is_enabled:
            return 0

        fixed = 0
        for definition in list(self.store.get_all_definitions()):
            if definition.source != source_id:
                continue
            if self.detection_mode == "color":
                marked = definition.color == MASTERED_COLOR
            else:
                marked = definition.group == MASTERED_GROUP
            if marked != definition.mastered:
                self.store.update_word(source_id, definition.node_id,
                                       **self._changes_for(definition, definition.mastered))
                fixed += 1
        return fixed
