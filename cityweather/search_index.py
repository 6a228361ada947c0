# City Weather Service - City Name Search Index
# Compressed prefix trie over whole city names

import logging
from typing import Dict, Iterable, List

logger = logging.getLogger(__name__)


def fold(text: str) -> str:
    """Normalize text for matching. Case folding only."""
    return text.casefold()


class _Node:
    """
    Trie node reached over the edge ``label``.

    ``indices`` holds every record index stored at or below this node, in
    insertion order, so a prefix query never has to walk the subtree.
    """

    __slots__ = ("label", "children", "indices")

    def __init__(self, label: str, indices: List[int]):
        self.label = label
        self.children: Dict[str, "_Node"] = {}
        self.indices = indices


class PrefixSearchIndex:
    """
    Read-only prefix index from case-folded city names to record indices.

    Names are inserted whole, without splitting into words: a query matches
    a record only when it is a prefix of the record's full name. Results are
    returned in insertion order (catalog order when built with ``build``).

    Example:
        index = PrefixSearchIndex.build(records)
        index.search("ams")  # -> [0, 1]
    """

    def __init__(self):
        self._root = _Node("", [])
        self._size = 0
        self._node_count = 1

    @classmethod
    def build(cls, records: Iterable) -> "PrefixSearchIndex":
        """
        Build an index with one insertion per record, keyed by ``record.name``
        and valued by ``record.index``.
        """
        index = cls()
        for record in records:
            index._insert(record.name, record.index)
        logger.debug(f"Built prefix index: {index._size} names, {index._node_count} nodes")
        return index

    def _insert(self, name: str, value: int) -> None:
        key = fold(name)
        node = self._root
        node.indices.append(value)
        self._size += 1

        position = 0
        while position < len(key):
            child = node.children.get(key[position])
            if child is None:
                node.children[key[position]] = _Node(key[position:], [value])
                self._node_count += 1
                return

            label = child.label
            shared = 1
            limit = min(len(label), len(key) - position)
            while shared < limit and label[shared] == key[position + shared]:
                shared += 1

            if shared < len(label):
                # Split the edge: the new node covers exactly the old subtree.
                middle = _Node(label[:shared], list(child.indices))
                child.label = label[shared:]
                middle.children[child.label[0]] = child
                node.children[key[position]] = middle
                self._node_count += 1
                child = middle

            child.indices.append(value)
            node = child
            position += shared

    def search(self, query: str) -> List[int]:
        """
        Return indices of records whose case-folded name starts with the
        case-folded ``query``. An empty query matches nothing.

        Cost is bounded by the query length plus the number of matches.
        """
        if not query:
            return []

        key = fold(query)
        node = self._root
        position = 0

        while position < len(key):
            child = node.children.get(key[position])
            if child is None:
                return []

            label = child.label
            remaining = len(key) - position
            if remaining <= len(label):
                if label[:remaining] != key[position:]:
                    return []
                return list(child.indices)

            if not key.startswith(label, position):
                return []
            node = child
            position += len(label)

        return list(node.indices)

    @property
    def node_count(self) -> int:
        """Number of trie nodes, root included."""
        return self._node_count

    def __len__(self) -> int:
        return self._size

    def __repr__(self) -> str:
        return f"<PrefixSearchIndex(names={self._size}, nodes={self._node_count})>"
