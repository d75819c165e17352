"""
HiWords Document Store
Notes directory with modification stamps, change polling and index sync
"""

import asyncio
import hashlib
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Tuple

from .morphology_index import MorphologyIndex

logger = logging.getLogger(__name__)

EVENT_MODIFY = "modify"
EVENT_DELETE = "delete"
EVENT_RENAME = "rename"

DEFAULT_EXTENSIONS = (".md", ".txt")


@dataclass
class DocumentEvent:
    kind: str
    doc_id: str
    old_id: Optional[str] = None


class DocumentStore:
    """
    A directory of notes.

    Document ids are POSIX paths relative to the root; stamps are
    st_mtime_ns values.
    """

    def __init__(self, root: str, extensions: Tuple[str, ...] = DEFAULT_EXTENSIONS):
        self.root = Path(root)
        self.extensions = tuple(e.lower() for e in extensions)
        self._snapshot: Optional[Dict[str, int]] = None
        self._digests: Dict[str, str] = {}

    def _path(self, doc_id: str) -> Path:
        path = (self.root / doc_id).resolve()
        if self.root.resolve() not in path.parents:
            raise ValueError(f"Document id escapes the notes directory: {doc_id}")
        return path

    def scan(self) -> Dict[str, int]:
        """Current {doc_id: stamp} for every note under the root"""
        stamps = {}
        if not self.root.is_dir():
            return stamps

        for path in sorted(self.root.rglob("*")):
            if not path.is_file() or path.suffix.lower() not in self.extensions:
                continue
            try:
                stamps[path.relative_to(self.root).as_posix()] = path.stat().st_mtime_ns
            except OSError as e:
                logger.debug(f"Cannot stat {path}: {e}")
        return stamps

    def read(self, doc_id: str) -> str:
        return self._path(doc_id).read_text(encoding="utf-8")

    def stamp(self, doc_id: str) -> int:
        return self._path(doc_id).stat().st_mtime_ns

    def _digest(self, doc_id: str) -> Optional[str]:
        try:
            return hashlib.sha1(self.read(doc_id).encode("utf-8")).hexdigest()
        except (OSError, UnicodeDecodeError, ValueError) as e:
            logger.debug(f"Cannot read {doc_id}: {e}")
            return None

    def poll_changes(self) -> List[DocumentEvent]:
        """
        Diff the directory against the previous poll

        The first poll reports every document as modified. A deleted
        document whose content reappears under a new id is a rename.
        """
        current = self.scan()
        previous = self._snapshot or {}

        deleted = [doc_id for doc_id in previous if doc_id not in current]
        created = [doc_id for doc_id in current if doc_id not in previous]
        modified = [doc_id for doc_id in current
                    if doc_id in previous and previous[doc_id] != current[doc_id]]

        for doc_id in created + modified:
            digest = self._digest(doc_id)
            if digest:
                self._digests[doc_id] = digest

        events = []
        renamed_targets = set()
        for old_id in deleted:
            old_digest = self._digests.pop(old_id, None)
            target = next(
                (doc_id for doc_id in created
                 if doc_id not in renamed_targets and old_digest and self._digests.get(doc_id) == old_digest),
                None
            )
            if target:
                renamed_targets.add(target)
                events.append(DocumentEvent(EVENT_RENAME, target, old_id))
            else:
                events.append(DocumentEvent(EVENT_DELETE, old_id))

        for doc_id in created + modified:
            if doc_id not in renamed_targets:
                events.append(DocumentEvent(EVENT_MODIFY, doc_id))

        self._snapshot = current
        return events


class DocumentSync:
    """Applies document events to a MorphologyIndex"""

    def __init__(self, store: DocumentStore, index: MorphologyIndex,
                 on_change: Optional[Callable[[], Any]] = None):
        self.store = store
        self.index = index
        self.on_change = on_change

    async def _read(self, doc_id: str) -> Optional[Tuple[int, str]]:
        try:
            stamp = await asyncio.to_thread(self.store.stamp, doc_id)
            content = await asyncio.to_thread(self.store.read, doc_id)
        except (OSError, UnicodeDecodeError, ValueError) as e:
            logger.warning(f"Could not read {doc_id}: {e}")
            return None
        return stamp, content

    async def apply_event(self, event: DocumentEvent) -> bool:
        if event.kind == EVENT_DELETE:
            return self.index.remove_document(event.doc_id)

        loaded = await self._read(event.doc_id)
        if loaded is None:
            return False
        stamp, content = loaded

        if event.kind == EVENT_RENAME:
            return await self.index.rename_document(event.old_id, event.doc_id, stamp, content)
        return await self.index.index_document(event.doc_id, stamp, content)

    async def sync(self) -> List[DocumentEvent]:
        """Poll the store and bring the index up to date"""
        events = self.store.poll_changes()
        changed = False
        for event in events:
            if await self.apply_event(event):
                changed = True

        if events:
            logger.info(f"🔄 Applied {len(events)} document change(s)")
        if changed and self.on_change:
            self.on_change()
        return events

    async def index_all(self) -> int:
        """Index every unindexed or stale document; returns how many changed"""
        stamps = self.store.scan()
        count = 0
        for doc_id in self.index.documents_to_reindex(stamps):
            if await self.apply_event(DocumentEvent(EVENT_MODIFY, doc_id)):
                count += 1

        logger.info(f"📝 Indexed {count} of {len(stamps)} document(s)")
        if count and self.on_change:
            self.on_change()
        return count
