"""
In-memory bookmark tree with the create/move/remove operations of a browser bookmark store
"""

import logging
from typing import Dict, List, Optional, Tuple

from bookmark_models import BookmarkNode, generate_id, now_ms

logger = logging.getLogger("bookmark_organizer.tree")


class BookmarkTree:
    """Ordered list of top-level nodes plus the mutations a browser bookmark API offers.

    Every mutation re-links ``parent_id`` and ``index`` of the affected sibling lists.
    """

    def __init__(self, roots: Optional[List[BookmarkNode]] = None):
        self.roots: List[BookmarkNode] = list(roots or [])
        self._relink(self.roots, None)

    def _relink(self, siblings: List[BookmarkNode], parent_id: Optional[str]):
        for i, node in enumerate(siblings):
            node.parent_id = parent_id
            node.index = i
            if node.children is not None:
                self._relink(node.children, node.id)

    def _siblings(self, parent_id: Optional[str]) -> List[BookmarkNode]:
        if parent_id is None:
            return self.roots
        parent = self.get(parent_id)
        if not parent.is_folder:
            raise ValueError(f"Node {parent_id} is a bookmark, not a folder")
        return parent.children

    def _locate(self, node_id: str) -> Tuple[List[BookmarkNode], int]:
        """Return (sibling list, position) of a node"""
        stack = [self.roots]
        while stack:
            siblings = stack.pop()
            for i, node in enumerate(siblings):
                if node.id == node_id:
                    return siblings, i
                if node.children:
                    stack.append(node.children)
        raise KeyError(f"Bookmark or folder not found (ID: {node_id})")

    def walk(self):
        for root in self.roots:
            yield from root.walk()

    def find(self, node_id: str) -> Optional[BookmarkNode]:
        for node in self.walk():
            if node.id == node_id:
                return node
        return None

    def get(self, node_id: str) -> BookmarkNode:
        node = self.find(node_id)
        if node is None:
            raise KeyError(f"Bookmark or folder not found (ID: {node_id})")
        return node

    def flatten(self) -> List[BookmarkNode]:
        return list(self.walk())

    def bookmarks(self) -> List[BookmarkNode]:
        return [node for node in self.walk() if not node.is_folder]

    def existing_folders(self) -> Dict[str, str]:
        """Map folder title -> id for every titled folder (later duplicates win)"""
        folders = {}
        for node in self.walk():
            if node.is_folder and node.title and node.title.strip():
                folders[node.title] = node.id
        return folders

    def find_folder_by_title(self, title: str) -> Optional[BookmarkNode]:
        for node in self.walk():
            if node.is_folder and node.title == title:
                return node
        return None

    def create(self, parent_id: Optional[str] = None, title: str = "", url: Optional[str] = None,
               index: Optional[int] = None) -> BookmarkNode:
        siblings = self._siblings(parent_id)
        node = BookmarkNode(id=generate_id(), title=title, url=url)
        if node.is_folder:
            node.date_group_modified = node.date_added
        position = len(siblings) if index is None else max(0, min(index, len(siblings)))
        siblings.insert(position, node)
        self._relink(siblings, parent_id)
        logger.debug(f"Created {'folder' if node.is_folder else 'bookmark'} {node.id} '{title}' under {parent_id}")
        return node

    def insert(self, node: BookmarkNode, parent_id: Optional[str] = None,
               index: Optional[int] = None) -> BookmarkNode:
        """Attach an existing node (and its subtree) to the tree"""
        if parent_id is not None:
            parent = self.find(parent_id)
            if parent is None or not parent.is_folder:
                logger.warning(f"Parent {parent_id} missing, inserting {node.id} at the top level")
                parent_id = None
        existing_ids = {n.id for n in self.walk()}
        for n in node.walk():
            if n.id in existing_ids:
                n.id = generate_id()
        siblings = self._siblings(parent_id)
        position = len(siblings) if index is None else max(0, min(index, len(siblings)))
        siblings.insert(position, node)
        self._relink(siblings, parent_id)
        return node

    def move(self, node_id: str, parent_id: Optional[str], index: Optional[int] = None) -> BookmarkNode:
        node = self.get(node_id)
        if parent_id is not None:
            if any(n.id == parent_id for n in node.walk()):
                raise ValueError(f"Cannot move {node_id} into itself or one of its descendants")
            target = self._siblings(parent_id)
        else:
            target = self.roots
        siblings, position = self._locate(node_id)
        siblings.pop(position)
        self._relink(siblings, node.parent_id)
        insert_at = len(target) if index is None else max(0, min(index, len(target)))
        target.insert(insert_at, node)
        self._relink(target, parent_id)
        if parent_id is not None:
            self.get(parent_id).date_group_modified = now_ms()
        return node

    def update(self, node_id: str, **changes) -> BookmarkNode:
        node = self.get(node_id)
        for key, value in changes.items():
            if key in ("id", "children", "parent_id", "index") or not hasattr(node, key):
                raise ValueError(f"Field cannot be updated: {key}")
            setattr(node, key, value)
        return node

    def _detach(self, node_id: str) -> Tuple[BookmarkNode, Optional[str], int]:
        siblings, position = self._locate(node_id)
        node = siblings.pop(position)
        parent_id = node.parent_id
        self._relink(siblings, parent_id)
        return node, parent_id, position

    def remove(self, node_id: str) -> Tuple[BookmarkNode, Optional[str], int]:
        """Remove a bookmark or an empty folder; returns (node, former parent id, former index)"""
        node = self.get(node_id)
        if node.is_folder and node.children:
            raise ValueError(f"Can't remove non-empty folder '{node.title}' (use remove_tree)")
        return self._detach(node_id)

    def remove_tree(self, node_id: str) -> Tuple[BookmarkNode, Optional[str], int]:
        return self._detach(node_id)

    def snapshot(self) -> List[dict]:
        return [root.to_dict() for root in self.roots]

    def restore(self, snapshot: List[dict]):
        self.roots = [BookmarkNode.from_dict(data) for data in snapshot]
        self._relink(self.roots, None)
