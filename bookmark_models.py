"""
Data model for bookmark trees, link checks, category rules and the trash
"""

import copy
import time
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterator, List, Optional


def now_ms() -> int:
    """Current time as a millisecond epoch"""
    return int(time.time() * 1000)


def generate_id(prefix: str = "bk") -> str:
    """Generate a unique node id like bk_1700000000000_a1b2c3d4e"""
    return f"{prefix}_{now_ms()}_{uuid.uuid4().hex[:9]}"


class ImportFormatError(ValueError):
    """Raised when a bookmark file cannot be parsed"""


class LinkStatus(str, Enum):
    NORMAL = "normal"
    BROKEN = "broken"
    REDIRECT = "redirect"
    TIMEOUT = "timeout"
    ERROR = "error"
    # Only ever set on a node while its check is running
    CHECKING = "checking"


# (attribute, JSON key) pairs for the optional scalar fields of a node
_OPTIONAL_NODE_FIELDS = [
    ("url", "url"),
    ("date_group_modified", "dateGroupModified"),
    ("index", "index"),
    ("parent_id", "parentId"),
    ("notes", "notes"),
    ("status_code", "statusCode"),
    ("error", "error"),
    ("redirect_url", "redirectUrl"),
]


@dataclass
class BookmarkNode:
    """A bookmark (has a url) or a folder (has children)"""
    id: str
    title: str = ""
    url: Optional[str] = None
    children: Optional[List["BookmarkNode"]] = None
    date_added: int = field(default_factory=now_ms)
    date_group_modified: Optional[int] = None
    index: Optional[int] = None
    parent_id: Optional[str] = None
    status: Optional[LinkStatus] = None
    tags: List[str] = field(default_factory=list)
    notes: Optional[str] = None
    status_code: Optional[int] = None
    error: Optional[str] = None
    redirect_url: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        if self.url is None and self.children is None:
            self.children = []
        if self.url is not None:
            self.children = None

    @property
    def is_folder(self) -> bool:
        return self.url is None

    def walk(self) -> Iterator["BookmarkNode"]:
        """Yield this node and all descendants in pre-order"""
        yield self
        for child in self.children or []:
            yield from child.walk()

    def clone(self) -> "BookmarkNode":
        return copy.deepcopy(self)

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to the camelCase layout used by the JSON export"""
        data: Dict[str, Any] = {
            "id": self.id,
            "title": self.title,
            "dateAdded": self.date_added,
        }
        for attr, key in _OPTIONAL_NODE_FIELDS:
            value = getattr(self, attr)
            if value is not None:
                data[key] = value
        if self.status is not None:
            data["status"] = self.status.value
        if self.tags:
            data["tags"] = list(self.tags)
        if self.metadata:
            data["metadata"] = dict(self.metadata)
        if self.children is not None:
            data["children"] = [child.to_dict() for child in self.children]
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "BookmarkNode":
        kwargs: Dict[str, Any] = {
            "id": data.get("id") or generate_id(),
            "title": data.get("title") or "",
        }
        for attr, key in _OPTIONAL_NODE_FIELDS:
            if data.get(key) is not None:
                kwargs[attr] = data[key]
        if data.get("dateAdded") is not None:
            kwargs["date_added"] = data["dateAdded"]
        if data.get("status"):
            kwargs["status"] = LinkStatus(data["status"])
        kwargs["tags"] = [t for t in (data.get("tags") or []) if str(t).strip()]
        kwargs["metadata"] = dict(data.get("metadata") or {})
        if kwargs.get("url") is None:
            kwargs["children"] = [cls.from_dict(child) for child in data.get("children") or []]
        return cls(**kwargs)


@dataclass
class LinkCheckResult:
    url: str
    status: LinkStatus
    status_code: Optional[int] = None
    redirect_url: Optional[str] = None
    error: Optional[str] = None
    check_time: int = field(default_factory=now_ms)

    def to_dict(self) -> Dict[str, Any]:
        data = {"url": self.url, "status": self.status.value, "checkTime": self.check_time}
        if self.status_code is not None:
            data["statusCode"] = self.status_code
        if self.redirect_url is not None:
            data["redirectUrl"] = self.redirect_url
        if self.error is not None:
            data["error"] = self.error
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "LinkCheckResult":
        return cls(
            url=data["url"],
            status=LinkStatus(data["status"]),
            status_code=data.get("statusCode"),
            redirect_url=data.get("redirectUrl"),
            error=data.get("error"),
            check_time=data.get("checkTime") or now_ms(),
        )


@dataclass
class CategoryRule:
    """Keyword/regex matcher that maps a bookmark to a target folder"""
    id: str
    name: str
    keywords: List[str]
    target_folder: str
    url_patterns: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "keywords": list(self.keywords),
            "urlPatterns": list(self.url_patterns),
            "targetFolder": self.target_folder,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CategoryRule":
        target = data.get("targetFolder") or data.get("target_folder") or data.get("name")
        if not target:
            raise ValueError(f"Category rule without a target folder: {data}")
        return cls(
            id=str(data.get("id") or target),
            name=data.get("name") or target,
            keywords=list(data.get("keywords") or []),
            target_folder=target,
            url_patterns=list(data.get("urlPatterns") or data.get("url_patterns") or []),
        )


@dataclass
class DuplicateInfo:
    url: str
    bookmarks: List[BookmarkNode]
    similarity: float


@dataclass
class TrashItem:
    """A soft-deleted node with enough context to put it back"""
    id: str
    bookmark: BookmarkNode
    deleted_at: int = field(default_factory=now_ms)
    original_parent_id: Optional[str] = None
    original_index: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "bookmark": self.bookmark.to_dict(),
            "deletedAt": self.deleted_at,
            "originalParentId": self.original_parent_id,
            "originalIndex": self.original_index,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TrashItem":
        return cls(
            id=data["id"],
            bookmark=BookmarkNode.from_dict(data["bookmark"]),
            deleted_at=data.get("deletedAt") or now_ms(),
            original_parent_id=data.get("originalParentId"),
            original_index=data.get("originalIndex"),
        )


@dataclass
class HistoryRecord:
    type: str
    details: Dict[str, Any] = field(default_factory=dict)
    timestamp: int = field(default_factory=now_ms)
    id: str = field(default_factory=lambda: generate_id("history"))

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "type": self.type, "timestamp": self.timestamp, "details": dict(self.details)}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "HistoryRecord":
        return cls(
            type=data["type"],
            details=dict(data.get("details") or {}),
            timestamp=data.get("timestamp") or now_ms(),
            id=data.get("id") or generate_id("history"),
        )


@dataclass
class OrganizeResult:
    organized_count: int = 0
    created_folders: List[str] = field(default_factory=list)
    moved_bookmarks: int = 0
    new_grouped_folders: List[str] = field(default_factory=list)
