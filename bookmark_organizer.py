"""
Rule-based categorization, duplicate detection and similarity grouping of bookmarks
"""

import logging
import re
import time
from typing import Dict, List, Optional, Tuple
from urllib.parse import urlparse, urlunparse

import requests
from bs4 import BeautifulSoup

from bookmark_models import BookmarkNode, CategoryRule, DuplicateInfo, OrganizeResult
from bookmark_tree import BookmarkTree
from organizer_config import (
    DEFAULT_CATEGORY_RULES,
    DOMAIN_CATEGORY_MAP,
    GROUP_NAME_PATTERNS,
    SIMILARITY_KEYWORDS,
    TITLE_KEYWORD_CATEGORIES,
    UNCATEGORIZED_GROUP,
)

logger = logging.getLogger("bookmark_organizer.organizer")

ROOT_FOLDER_PATH = "Root"
CONTENT_LIMIT = 5000

_TOKEN_SPLIT = re.compile(r'[/?&#=]')
_TITLE_SPLIT = re.compile(r'[\s\-_]+')

# Patterns that failed to compile; each is reported once
_bad_patterns = set()


def _compiled(pattern: str) -> Optional[re.Pattern]:
    if pattern in _bad_patterns:
        return None
    try:
        return re.compile(pattern)
    except re.error as e:
        _bad_patterns.add(pattern)
        logger.warning(f"Invalid URL pattern '{pattern}' ignored: {e}")
        return None


# ---------------------------------------------------------------------------
# Categorization
# ---------------------------------------------------------------------------

def matches_rule(node: BookmarkNode, rule: CategoryRule) -> bool:
    title = (node.title or "").lower()
    url = (node.url or "").lower()
    for keyword in rule.keywords:
        keyword = keyword.lower()
        if keyword and (keyword in title or keyword in url):
            return True
    if node.url:
        for pattern in rule.url_patterns:
            compiled = _compiled(pattern)
            if compiled is not None and compiled.search(node.url):
                return True
    return False


def categorize_node(node: BookmarkNode, rules: List[CategoryRule]) -> Optional[str]:
    """Target folder of the first matching rule, or None"""
    for rule in rules:
        if matches_rule(node, rule):
            return rule.target_folder
    return None


def _iter_bookmarks(nodes: List[BookmarkNode]):
    for root in nodes:
        for node in root.walk():
            if not node.is_folder:
                yield node


def categorize_bookmarks(nodes: List[BookmarkNode], rules: List[CategoryRule]) -> Dict[str, List[BookmarkNode]]:
    categorized: Dict[str, List[BookmarkNode]] = {}
    for node in _iter_bookmarks(nodes):
        folder = categorize_node(node, rules)
        if folder is not None:
            categorized.setdefault(folder, []).append(node)
    return categorized


def auto_categorize(nodes: List[BookmarkNode]) -> Dict[str, List[BookmarkNode]]:
    return categorize_bookmarks(nodes, DEFAULT_CATEGORY_RULES)


def _host(url: str) -> str:
    try:
        host = urlparse(url).hostname or ""
    except ValueError:
        return ""
    return host[4:] if host.startswith("www.") else host


def domain_category(url: str) -> Optional[str]:
    """Look up the host and then each parent domain in the domain map"""
    host = _host(url)
    parts = host.split(".")
    for i in range(len(parts) - 1):
        candidate = ".".join(parts[i:])
        if candidate in DOMAIN_CATEGORY_MAP:
            return DOMAIN_CATEGORY_MAP[candidate]
    return None


def keyword_category(text: str) -> Optional[str]:
    text = text.lower()
    for category, keywords in TITLE_KEYWORD_CATEGORIES:
        for keyword in keywords:
            if keyword in text:
                return category
    return None


def fetch_bookmark_content(url: str, session: requests.Session, cache: Dict[str, str],
                           timeout: float = 5.0) -> str:
    """Visible page text (scripts and styles dropped), cached per URL"""
    if url in cache:
        return cache[url]
    try:
        response = session.get(url, timeout=timeout)
        soup = BeautifulSoup(response.text, 'html.parser')
        for tag in soup(['script', 'style']):
            tag.decompose()
        text = ' '.join(soup.get_text(separator=' ').split())[:CONTENT_LIMIT]
    except requests.RequestException as e:
        logger.warning(f"Could not fetch content for {url}: {e}")
        return ""
    cache[url] = text
    return text


def smart_categorize(nodes: List[BookmarkNode], rules: Optional[List[CategoryRule]] = None,
                     session: Optional[requests.Session] = None,
                     content_cache: Optional[Dict[str, str]] = None) -> Dict[str, List[BookmarkNode]]:
    """Rules first, then the domain map, then title keywords.

    When a session is given, page text is fetched as a last resort for bookmarks
    nothing else could place.
    """
    categorized = categorize_bookmarks(nodes, rules if rules is not None else DEFAULT_CATEGORY_RULES)
    placed = {id(node) for group in categorized.values() for node in group}
    cache = content_cache if content_cache is not None else {}

    for node in _iter_bookmarks(nodes):
        if id(node) in placed:
            continue
        category = domain_category(node.url) or keyword_category(f"{node.title} {node.url}")
        if category is None and session is not None and node.url.startswith("http"):
            content = fetch_bookmark_content(node.url, session, cache)
            if content:
                category = keyword_category(content)
        if category is not None:
            categorized.setdefault(category, []).append(node)
    return categorized


# ---------------------------------------------------------------------------
# Duplicates
# ---------------------------------------------------------------------------

def normalize_url(url: str) -> str:
    try:
        parsed = urlparse(url)
        return urlunparse(parsed._replace(path=parsed.path or "/", fragment="")).lower()
    except ValueError:
        return url.lower()


def _url_tokens(url: str) -> set:
    return {token for token in _TOKEN_SPLIT.split(url) if len(token) > 2}


def calculate_url_similarity(url1: str, url2: str) -> float:
    norm1 = normalize_url(url1)
    norm2 = normalize_url(url2)
    if norm1 == norm2:
        return 1.0
    tokens1 = _url_tokens(norm1)
    tokens2 = _url_tokens(norm2)
    if not tokens1 or not tokens2:
        return 0.0
    return len(tokens1 & tokens2) / len(tokens1 | tokens2)


def find_duplicates(nodes: List[BookmarkNode], exact_match: bool = True, similar_match: bool = False,
                    threshold: float = 0.8) -> List[DuplicateInfo]:
    by_url: Dict[str, List[BookmarkNode]] = {}
    for node in _iter_bookmarks(nodes):
        by_url.setdefault(normalize_url(node.url), []).append(node)

    duplicates = []
    if exact_match:
        for url, group in by_url.items():
            if len(group) > 1:
                duplicates.append(DuplicateInfo(url=url, bookmarks=list(group), similarity=1.0))

    if similar_match:
        urls = list(by_url)
        for i, url1 in enumerate(urls):
            for url2 in urls[i + 1:]:
                similarity = calculate_url_similarity(url1, url2)
                if similarity > threshold:
                    duplicates.append(DuplicateInfo(
                        url=url1,
                        bookmarks=by_url[url1] + by_url[url2],
                        similarity=similarity,
                    ))
    logger.info(f"Duplicate scan found {len(duplicates)} groups")
    return duplicates


# ---------------------------------------------------------------------------
# Similarity grouping
# ---------------------------------------------------------------------------

def _jaccard(words1: set, words2: set) -> float:
    union = words1 | words2
    return len(words1 & words2) / len(union) if union else 0.0


def calculate_bookmark_similarity(a: BookmarkNode, b: BookmarkNode,
                                  content_cache: Optional[Dict[str, str]] = None) -> float:
    """Weighted score: title 0.4, domain 0.3, shared topic word 0.2, page text 0.1"""
    score = 0.0
    title1 = (a.title or "").lower()
    title2 = (b.title or "").lower()

    if title1 == title2:
        score += 0.4
    else:
        score += _jaccard(set(_TITLE_SPLIT.split(title1)), set(_TITLE_SPLIT.split(title2))) * 0.4

    if a.url and b.url:
        if _host(a.url) and _host(a.url) == _host(b.url):
            score += 0.3
        else:
            try:
                if urlparse(a.url).path == urlparse(b.url).path:
                    score += 0.15
            except ValueError:
                pass

    keywords1 = {k for k in SIMILARITY_KEYWORDS if k in title1}
    keywords2 = {k for k in SIMILARITY_KEYWORDS if k in title2}
    if keywords1 & keywords2:
        score += 0.2

    if content_cache and a.url in content_cache and b.url in content_cache:
        score += _jaccard(set(content_cache[a.url].split()), set(content_cache[b.url].split())) * 0.1

    return score


def generate_group_name(node: BookmarkNode) -> str:
    """Group name from the second-level domain label, not the first host label

    ``docs.python.org`` and ``www.python.org`` both give "Python", so subdomains
    of one site land in one group. A matching title pattern overrides it.
    """
    name = UNCATEGORIZED_GROUP
    if node.url:
        parts = _host(node.url).split(".")
        label = parts[-2] if len(parts) >= 2 else parts[0]
        if len(label) > 2:
            name = label.capitalize()
    for pattern, group in GROUP_NAME_PATTERNS:
        if pattern.search(node.title or ""):
            return group
    return name


def similarity_based_grouping(nodes: List[BookmarkNode], threshold: float = 0.5,
                              content_cache: Optional[Dict[str, str]] = None) -> Dict[str, List[BookmarkNode]]:
    """Greedy single pass: each unplaced bookmark starts a group and pulls in later similar ones"""
    groups: Dict[str, List[BookmarkNode]] = {}
    placed = set()
    for i, leader in enumerate(nodes):
        if id(leader) in placed:
            continue
        group = groups.setdefault(generate_group_name(leader), [])
        group.append(leader)
        placed.add(id(leader))
        for other in nodes[i + 1:]:
            if id(other) in placed:
                continue
            if calculate_bookmark_similarity(leader, other, content_cache) >= threshold:
                group.append(other)
                placed.add(id(other))
    return groups


def find_most_similar_folder(node: BookmarkNode, folders: Dict[str, str]) -> Optional[Tuple[str, str, float]]:
    """Best (folder_id, folder_name, score) for a bookmark among {folder_id: name}"""
    title = (node.title or "").lower()
    bare_url = re.sub(r'https?://|\.', '', node.url or "").lower()
    best = None
    best_score = 0.0
    for folder_id, folder_name in folders.items():
        name = folder_name.lower()
        score = 0.0
        if title and (name in title or title in name):
            score += 0.5
        if bare_url and bare_url in name:
            score += 0.3
        if score > best_score and score > 0.3:
            best_score = score
            best = (folder_id, folder_name, score)
    return best


# ---------------------------------------------------------------------------
# Organizing the tree
# ---------------------------------------------------------------------------

def _move_into_folder(tree: BookmarkTree, folder_name: str, bookmarks: List[BookmarkNode],
                      parent_id: Optional[str], existing: Dict[str, str], result: OrganizeResult,
                      grouped: bool = False):
    folder_id = existing.get(folder_name)
    if folder_id is None:
        folder = tree.create(parent_id=parent_id, title=folder_name)
        folder_id = folder.id
        existing[folder_name] = folder_id
        result.created_folders.append(folder_id)
        if grouped:
            result.new_grouped_folders.append(folder_id)
        logger.info(f"Created folder '{folder_name}' for {len(bookmarks)} bookmarks")
    for bookmark in bookmarks:
        try:
            tree.move(bookmark.id, folder_id)
            result.moved_bookmarks += 1
        except (KeyError, ValueError) as e:
            logger.warning(f"Failed to move bookmark {bookmark.id}: {e}")


def organize_bookmarks(tree: BookmarkTree, rules: Optional[List[CategoryRule]] = None,
                       group_similar: bool = True, parent_id: Optional[str] = None,
                       session: Optional[requests.Session] = None,
                       content_cache: Optional[Dict[str, str]] = None) -> OrganizeResult:
    """Sort the loose bookmarks directly under ``parent_id`` (top level by default) into folders"""
    siblings = tree.roots if parent_id is None else tree.get(parent_id).children
    loose = [node for node in siblings if not node.is_folder]
    result = OrganizeResult()
    if not loose:
        logger.info("No loose bookmarks to organize")
        return result

    existing = tree.existing_folders()
    categorized = smart_categorize(loose, rules, session=session, content_cache=content_cache)
    placed = {id(node) for group in categorized.values() for node in group}
    remaining = [node for node in loose if id(node) not in placed]

    for folder_name, bookmarks in categorized.items():
        if bookmarks:
            _move_into_folder(tree, folder_name, bookmarks, parent_id, existing, result)

    if group_similar and remaining:
        groups = similarity_based_grouping(remaining, content_cache=content_cache)
        for group_name, bookmarks in groups.items():
            if bookmarks:
                _move_into_folder(tree, group_name, bookmarks, parent_id, existing, result, grouped=True)

    result.organized_count = result.moved_bookmarks
    logger.info(f"Organized {result.organized_count} of {len(loose)} loose bookmarks")
    return result


def organize_by_folder(nodes: List[BookmarkNode]) -> Dict[str, List[BookmarkNode]]:
    """Group bookmarks by their folder path, e.g. 'Root/Dev/Python'"""
    folders: Dict[str, List[BookmarkNode]] = {}

    def visit(node: BookmarkNode, path: str):
        if node.is_folder:
            for child in node.children:
                visit(child, f"{path}/{node.title}")
        else:
            folders.setdefault(path, []).append(node)

    for node in nodes:
        visit(node, ROOT_FOLDER_PATH)
    return folders


def merge_bookmarks(source: List[BookmarkNode], target: List[BookmarkNode], strategy: str) -> List[BookmarkNode]:
    if strategy == 'replace':
        return list(source)
    if strategy == 'skip':
        return list(target)
    if strategy != 'merge':
        raise ValueError(f"Unknown merge strategy: {strategy}")

    in_target = {normalize_url(node.url) for node in _iter_bookmarks(target)}
    merged = []
    seen = set()
    for node in _iter_bookmarks(source):
        url = normalize_url(node.url)
        if url in seen:
            continue
        seen.add(url)
        if url not in in_target:
            merged.append(node)
    return merged + list(target)


def search_bookmarks(nodes: List[BookmarkNode], query: str, search_title: bool = True,
                     search_url: bool = True, search_tags: bool = True) -> List[BookmarkNode]:
    query = query.lower()
    results = []
    for root in nodes:
        for node in root.walk():
            if search_title and query in (node.title or "").lower():
                results.append(node)
            elif search_url and node.url and query in node.url.lower():
                results.append(node)
            elif search_tags and any(query in tag.lower() for tag in node.tags):
                results.append(node)
    return results


def find_outdated(nodes: List[BookmarkNode], days_threshold: int = 365) -> List[Tuple[BookmarkNode, int]]:
    """Bookmarks untouched for longer than the threshold, oldest first, as (node, days_old)"""
    current_ms = int(time.time() * 1000)
    day_ms = 24 * 60 * 60 * 1000
    outdated = []
    for node in _iter_bookmarks(nodes):
        last_activity = max(node.date_added or 0, node.date_group_modified or 0)
        if current_ms - last_activity > days_threshold * day_ms:
            outdated.append((node, (current_ms - last_activity) // day_ms))
    return sorted(outdated, key=lambda item: item[1], reverse=True)
