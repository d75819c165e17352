"""
HiWords Vocabulary Sources
YAML vocabulary books: loading definitions and applying batched edits
"""

from dataclasses import dataclass, asdict
from typing import Any, Dict, List, Optional
import logging
import os
import uuid

import yaml

logger = logging.getLogger(__name__)

MASTERED_GROUP = "Mastered"
MASTERED_COLOR = "4"
TEMP_ID_PREFIX = "temp_"

OP_CREATE = "create"
OP_UPDATE = "update"
OP_DELETE = "delete"


@dataclass
class WordDefinition:
    """A vocabulary entry as stored in a book"""
    word: str
    definition: str
    source: str
    node_id: str
    etymology: Optional[str] = None
    color: Optional[str] = None
    group: Optional[str] = None
    mastered: bool = False

    @property
    def is_pending(self) -> bool:
        """Created in memory and not yet written to its book"""
        return self.node_id.startswith(TEMP_ID_PREFIX)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class SourceOperation:
    """One queued write against a vocabulary book"""
    kind: str
    node_id: str
    definition: Optional[WordDefinition] = None


def normalize_color(color: Any) -> Optional[str]:
    """Book colors are the strings "1".."6"; anything else means no color"""
    if color is None or color == "":
        return None
    try:
        number = int(color)
    except (TypeError, ValueError):
        return None
    return str(number) if 1 <= number <= 6 else None


def is_mastered_definition(definition: WordDefinition, detection_mode: str) -> bool:
    if detection_mode == "color":
        return definition.color == MASTERED_COLOR
    return definition.group == MASTERED_GROUP


class VocabularySource:
    """Interface of a vocabulary book backend"""

    source_id: str = ""
    name: str = ""

    def load(self) -> List[WordDefinition]:
        raise NotImplementedError

    def apply(self, operations: List[SourceOperation]) -> Dict[str, str]:
        """
        Persist a batch of operations

        Returns:
            Mapping of temporary node ids to the ids assigned by the book
        """
        raise NotImplementedError


class YamlVocabularySource(VocabularySource):
    """
    A vocabulary book stored as YAML:

        name: Korean verbs
        nodes:
          - id: n1
            word: 공부하다
            definition: to study
            group: Mastered
    """

    def __init__(self, path: str, name: Optional[str] = None, mastered_detection: str = "group"):
        self.path = path
        self.source_id = path
        self.name = name or os.path.splitext(os.path.basename(path))[0]
        self.mastered_detection = mastered_detection

    def _read(self) -> Dict[str, Any]:
        with open(self.path, 'r', encoding='utf-8') as f:
            data = yaml.safe_load(f) or {}
        if not isinstance(data, dict):
            raise ValueError(f"Vocabulary book {self.path} must be a mapping")
        nodes = data.get('nodes') or []
        if not isinstance(nodes, list):
            raise ValueError(f"'nodes' in {self.path} must be a list")
        data['nodes'] = nodes
        return data

    def _write(self, data: Dict[str, Any]):
        directory = os.path.dirname(os.path.abspath(self.path))
        os.makedirs(directory, exist_ok=True)
        tmp_path = f"{self.path}.tmp"
        with open(tmp_path, 'w', encoding='utf-8') as f:
            yaml.safe_dump(data, f, allow_unicode=True, sort_keys=False, default_flow_style=False)
        os.replace(tmp_path, self.path)

    @staticmethod
    def _node_key(node: Dict[str, Any], index: int) -> str:
        # Nodes written by hand may lack an id; their position stands in for it
        node_id = node.get('id')
        return str(node_id) if node_id not in (None, '') else f"idx_{index}"

    def _definition_from_node(self, node: Dict[str, Any], index: int) -> Optional[WordDefinition]:
        word = str(node.get('word') or '').strip()
        if not word:
            return None

        etymology = node.get('etymology')
        group = node.get('group')
        definition = WordDefinition(
            word=word,
            definition=str(node.get('definition') or '').strip(),
            source=self.source_id,
            node_id=self._node_key(node, index),
            etymology=str(etymology) if etymology else None,
            color=normalize_color(node.get('color')),
            group=str(group) if group else None
        )
        definition.mastered = is_mastered_definition(definition, self.mastered_detection)
        return definition

    def load(self) -> List[WordDefinition]:
        """Parse every node of the book into a WordDefinition"""
        if not os.path.exists(self.path):
            raise FileNotFoundError(f"Vocabulary book not found: {self.path}")

        data = self._read()
        definitions = []
        for index, node in enumerate(data['nodes']):
            if not isinstance(node, dict):
                logger.debug(f"Skipping non-mapping node in {self.path}: {node!r}")
                continue
            definition = self._definition_from_node(node, index)
            if definition:
                definitions.append(definition)

        logger.info(f"📚 Loaded {len(definitions)} words from '{self.name}'")
        return definitions

    @staticmethod
    def _new_node_id() -> str:
        return f"node_{uuid.uuid4().hex[:12]}"

    def _node_from_definition(self, definition: WordDefinition,
                              node: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        node = dict(node or {})
        node['word'] = definition.word
        node['definition'] = definition.definition

        for key, value in (('etymology', definition.etymology), ('color', definition.color)):
            if value:
                node[key] = value
            else:
                node.pop(key, None)

        group = definition.group
        if self.mastered_detection == "group":
            if definition.mastered:
                group = MASTERED_GROUP
            elif group == MASTERED_GROUP:
                group = None
        if group:
            node['group'] = group
        else:
            node.pop('group', None)
        return node

    def apply(self, operations: List[SourceOperation]) -> Dict[str, str]:
        if os.path.exists(self.path):
            data = self._read()
        else:
            data = {'name': self.name, 'nodes': []}

        nodes = data['nodes']
        positions = {self._node_key(n, i): i for i, n in enumerate(nodes) if isinstance(n, dict)}
        assigned: Dict[str, str] = {}
        deleted = set()

        for op in operations:
            if op.kind == OP_CREATE:
                node_id = self._new_node_id()
                node = {'id': node_id}
                node.update(self._node_from_definition(op.definition))
                positions[node_id] = len(nodes)
                nodes.append(node)
                assigned[op.node_id] = node_id

            elif op.kind == OP_UPDATE:
                node_id = assigned.get(op.node_id, op.node_id)
                index = positions.get(node_id)
                if index is None:
                    logger.warning(f"Node {node_id} not found in {self.path}, skipping update")
                    continue
                nodes[index] = self._node_from_definition(op.definition, nodes[index])

            elif op.kind == OP_DELETE:
                node_id = assigned.get(op.node_id, op.node_id)
                if node_id not in positions:
                    logger.warning(f"Node {node_id} not found in {self.path}, skipping delete")
                    continue
                deleted.add(node_id)

            else:
                raise ValueError(f"Unknown source operation: {op.kind}")

        kept = []
        for i, node in enumerate(nodes):
            if not isinstance(node, dict):
                kept.append(node)
                continue
            key = self._node_key(node, i)
            if key in deleted:
                continue
            if key.startswith("idx_"):
                # Positional keys shift once nodes are removed: pin a real id
                rest = {k: v for k, v in node.items() if k != 'id'}
                node = {'id': self._new_node_id(), **rest}
                assigned[key] = node['id']
            kept.append(node)
        data['nodes'] = kept
        self._write(data)

        logger.info(f"💾 Wrote {len(operations)} change(s) to '{self.name}'")
        return assigned
