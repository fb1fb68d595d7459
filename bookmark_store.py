"""
Persistent state next to a bookmark file: link check results, trash and history
"""

import json
import logging
import os
from typing import Dict, List, Optional

from bookmark_models import HistoryRecord, LinkCheckResult, TrashItem
from link_checker import normalize_url

logger = logging.getLogger("bookmark_organizer.store")

HISTORY_LIMIT = 100


class BookmarkStore:
    """JSON file with ``link_checks``, ``trash`` and ``history`` sections.

    Trash and history are kept newest first. Changes are written on ``save()``.
    """

    def __init__(self, path: str, history_limit: int = HISTORY_LIMIT):
        self.path = path
        self.history_limit = history_limit
        self.link_checks: Dict[str, LinkCheckResult] = {}
        self.trash: List[TrashItem] = []
        self.history: List[HistoryRecord] = []
        self.load()

    def load(self):
        """Load state from file if it exists"""
        if not os.path.exists(self.path):
            return
        try:
            with open(self.path, 'r', encoding='utf-8') as f:
                data = json.load(f)
            self.link_checks = {
                url: LinkCheckResult.from_dict(item)
                for url, item in (data.get('link_checks') or {}).items()
            }
            self.trash = [TrashItem.from_dict(item) for item in data.get('trash') or []]
            self.history = [HistoryRecord.from_dict(item) for item in data.get('history') or []]
        except (OSError, ValueError, KeyError, TypeError, AttributeError) as e:
            logger.warning(f"Could not read state file {self.path}, starting empty: {e}")
            self.link_checks, self.trash, self.history = {}, [], []

    def save(self):
        data = {
            'link_checks': {url: result.to_dict() for url, result in self.link_checks.items()},
            'trash': [item.to_dict() for item in self.trash],
            'history': [record.to_dict() for record in self.history],
        }
        try:
            with open(self.path, 'w', encoding='utf-8') as f:
                json.dump(data, f, indent=2, ensure_ascii=False)
        except OSError as e:
            logger.error(f"Could not save state file {self.path}: {e}")
            raise

    # Link checks
    def get_link_result(self, url: str) -> Optional[LinkCheckResult]:
        return self.link_checks.get(normalize_url(url))

    def put_link_result(self, result: LinkCheckResult):
        self.link_checks[normalize_url(result.url)] = result

    def remove_link_result(self, url: str) -> bool:
        return self.link_checks.pop(normalize_url(url), None) is not None

    def clear_link_results(self):
        self.link_checks.clear()

    # Trash
    def add_trash(self, item: TrashItem):
        self.trash.insert(0, item)

    def get_trash(self, trash_id: str) -> TrashItem:
        for item in self.trash:
            if item.id == trash_id:
                return item
        raise KeyError(f"Trash item not found (ID: {trash_id})")

    def remove_trash(self, trash_id: str) -> TrashItem:
        item = self.get_trash(trash_id)
        self.trash.remove(item)
        return item

    def clear_trash(self) -> int:
        count = len(self.trash)
        self.trash.clear()
        return count

    # History
    def add_history(self, record_type: str, details: Optional[Dict] = None) -> HistoryRecord:
        record = HistoryRecord(type=record_type, details=details or {})
        self.history.insert(0, record)
        del self.history[self.history_limit:]
        return record

    def clear_history(self):
        self.history.clear()
