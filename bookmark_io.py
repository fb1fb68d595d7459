"""
Import and export of bookmark trees: Netscape HTML, JSON export files and Chrome profile files
"""

import html
import json
import logging
import os
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Set, Tuple

from bs4 import BeautifulSoup
from dateutil.parser import parse as parse_date

from bookmark_models import BookmarkNode, ImportFormatError, LinkStatus, generate_id

logger = logging.getLogger("bookmark_organizer.io")

EXPORT_VERSION = "1.0"
UNTITLED_BOOKMARK = "Untitled bookmark"

# Seconds between 1601-01-01 (Chrome/WebKit epoch) and 1970-01-01
CHROME_EPOCH_OFFSET_SECONDS = 11644473600

# Dates above this are already milliseconds (year 2286 in seconds)
_MS_THRESHOLD = 10_000_000_000

CHROME_ROOTS = [
    ('bookmark_bar', '1', 'Bookmarks bar'),
    ('other', '2', 'Other bookmarks'),
    ('synced', '3', 'Mobile bookmarks'),
]

ALLOWED_SCHEMES = ('http://', 'https://', 'ftp://')


def _html_date_to_ms(value: Optional[str]) -> Optional[int]:
    if not value:
        return None
    try:
        number = int(value.strip())
    except ValueError:
        logger.debug(f"Ignoring non-numeric date attribute: {value!r}")
        return None
    return number if number > _MS_THRESHOLD else number * 1000


def _date_to_ms(value: Any) -> Optional[int]:
    """Accept ms numbers, numeric strings or ISO dates from JSON imports"""
    if value is None or value == "":
        return None
    if isinstance(value, (int, float)):
        return int(value)
    text = str(value).strip()
    try:
        return int(float(text))
    except ValueError:
        pass
    try:
        parsed = parse_date(text)
    except (ValueError, OverflowError):
        logger.warning(f"Unparseable date value in import: {value!r}")
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return int(parsed.timestamp() * 1000)


def chrome_time_to_ms(value: Any) -> Optional[int]:
    """Convert a Chrome timestamp (microseconds since 1601) to a ms epoch"""
    try:
        micros = int(value)
    except (TypeError, ValueError):
        return None
    if micros <= 0:
        return None
    return micros // 1000 - CHROME_EPOCH_OFFSET_SECONDS * 1000


# ---------------------------------------------------------------------------
# Netscape HTML
# ---------------------------------------------------------------------------

def _items_of(dl) -> list:
    """H3 and A tags whose nearest enclosing DL is ``dl``"""
    items = []
    for tag in dl.find_all(['h3', 'a']):
        if tag.find_parent('dl') is dl:
            items.append(tag)
    return items


def _list_in_description(dd):
    # html.parser leaves <DD> open, so the folder's list ends up inside it
    for child in dd.find_all(True, recursive=False):
        if child.name == 'dl':
            return child
        if child.name in ('dt', 'h3', 'a'):
            return None
    return None


def _following_list(tag):
    """The DL after ``tag``, skipping <p> and Firefox's <DD> folder descriptions"""
    for sibling in tag.find_next_siblings():
        if sibling.name == 'dl':
            return sibling
        if sibling.name == 'dd':
            nested = _list_in_description(sibling)
            if nested is not None:
                return nested
            continue
        if sibling.name != 'p':
            return None
    return None


def _folder_list_of(h3):
    child_dl = _following_list(h3)
    if child_dl is not None:
        return child_dl
    # Some exporters wrap the heading in a DT that closes before the list
    dt = h3.parent
    if dt is not None and dt.name == 'dt':
        return _following_list(dt)
    return None


def _parse_dl(dl, parent_id: Optional[str]) -> List[BookmarkNode]:
    nodes = []
    for tag in _items_of(dl):
        if tag.name == 'h3':
            title = tag.get_text(strip=True)
            if not title:
                logger.debug("Skipping folder without a title and its contents")
                continue
            folder = BookmarkNode(id=generate_id(), title=title, parent_id=parent_id)
            folder.date_added = _html_date_to_ms(tag.get('add_date')) or folder.date_added
            folder.date_group_modified = _html_date_to_ms(tag.get('last_modified'))
            child_dl = _folder_list_of(tag)
            if child_dl is not None:
                folder.children = _parse_dl(child_dl, folder.id)
            nodes.append(folder)
        else:
            href = tag.get('href')
            if not href:
                continue
            bookmark = BookmarkNode(
                id=generate_id(),
                title=tag.get_text(strip=True) or UNTITLED_BOOKMARK,
                url=href,
                parent_id=parent_id,
            )
            bookmark.date_added = _html_date_to_ms(tag.get('add_date')) or bookmark.date_added
            if tag.get('tags'):
                bookmark.tags = [t.strip() for t in tag['tags'].split(',') if t.strip()]
            if tag.get('note'):
                bookmark.notes = tag['note']
            nodes.append(bookmark)
    for i, node in enumerate(nodes):
        node.index = i
    return nodes


def import_from_html(text: str) -> List[BookmarkNode]:
    """Parse a Netscape bookmark file into a list of top-level nodes"""
    soup = BeautifulSoup(text, 'html.parser')
    top_dl = None
    for dl in soup.find_all('dl'):
        if dl.find_parent('dl') is None:
            top_dl = dl
            break
    if top_dl is None:
        top_dl = soup.find('dl')
    if top_dl is None:
        logger.warning("No <DL> list found in HTML bookmark file")
        return []
    nodes = _parse_dl(top_dl, None)
    logger.info(f"Imported {sum(1 for n in nodes for _ in n.walk())} nodes from HTML")
    return nodes


def _escape(value: str) -> str:
    return html.escape(value or "", quote=True)


def _seconds(ms: Optional[int]) -> int:
    return int((ms or 0) // 1000)


def _html_lines(nodes: List[BookmarkNode], depth: int, include_broken: bool) -> List[str]:
    lines = []
    indent = '    ' * depth
    for node in nodes:
        if not include_broken and node.status == LinkStatus.BROKEN:
            continue
        if node.is_folder:
            modified = node.date_group_modified or node.date_added
            lines.append(f'{indent}<DT><H3 ADD_DATE="{_seconds(node.date_added)}" '
                         f'LAST_MODIFIED="{_seconds(modified)}">{_escape(node.title)}</H3>')
            lines.append(f'{indent}<DL><p>')
            lines.extend(_html_lines(node.children, depth + 1, include_broken))
            lines.append(f'{indent}</DL><p>')
        else:
            attrs = f'HREF="{_escape(node.url)}" ADD_DATE="{_seconds(node.date_added)}"'
            if node.tags:
                attrs += f' TAGS="{_escape(",".join(node.tags))}"'
            if node.notes:
                attrs += f' NOTE="{_escape(node.notes)}"'
            lines.append(f'{indent}<DT><A {attrs}>{_escape(node.title)}</A>')
    return lines


def select_folders(nodes: List[BookmarkNode], selected_folders: Optional[List[str]]) -> List[BookmarkNode]:
    """Subtrees rooted at the selected ids, in tree order; all nodes when nothing is selected"""
    if not selected_folders:
        return nodes
    wanted = set(selected_folders)
    selected = []

    def visit(siblings: List[BookmarkNode]):
        for node in siblings:
            if node.id in wanted:
                selected.append(node)
            elif node.children:
                visit(node.children)

    visit(nodes)
    return selected


def _drop_broken(nodes: List[BookmarkNode]) -> List[BookmarkNode]:
    kept = []
    for node in nodes:
        if node.status == LinkStatus.BROKEN:
            continue
        if node.is_folder:
            children = _drop_broken(node.children)
            node = node.clone()
            node.children = children
        kept.append(node)
    return kept


def export_to_html(nodes: List[BookmarkNode], include_broken: bool = True,
                   selected_folders: Optional[List[str]] = None) -> str:
    nodes = select_folders(nodes, selected_folders)
    lines = [
        '<!DOCTYPE NETSCAPE-Bookmark-file-1>',
        '<!-- This is an automatically generated file.',
        '     It will be read and overwritten.',
        '     DO NOT EDIT! -->',
        '<META HTTP-EQUIV="Content-Type" CONTENT="text/html; charset=UTF-8">',
        '<TITLE>Bookmarks</TITLE>',
        '<H1>Bookmarks</H1>',
        '<DL><p>',
    ]
    lines.extend(_html_lines(nodes, 1, include_broken))
    lines.append('</DL><p>')
    return '\n'.join(lines) + '\n'


# ---------------------------------------------------------------------------
# JSON export envelope
# ---------------------------------------------------------------------------

def export_to_json(nodes: List[BookmarkNode], include_broken: bool = True,
                   selected_folders: Optional[List[str]] = None) -> str:
    nodes = select_folders(nodes, selected_folders)
    if not include_broken:
        nodes = _drop_broken(nodes)
    payload = {
        'version': EXPORT_VERSION,
        'exportDate': datetime.now(timezone.utc).isoformat(),
        'bookmarks': [node.to_dict() for node in nodes],
    }
    return json.dumps(payload, indent=2, ensure_ascii=False)


def _node_from_json(data: Dict[str, Any], parent_id: Optional[str], index: int) -> BookmarkNode:
    if not isinstance(data, dict):
        raise ImportFormatError(f"invalid bookmark entry: {data!r}")
    cleaned = dict(data)
    cleaned.pop('children', None)
    for key in ('dateAdded', 'dateGroupModified'):
        if key in cleaned:
            cleaned[key] = _date_to_ms(cleaned[key])
    node = BookmarkNode.from_dict(cleaned)
    node.parent_id = parent_id
    node.index = index
    if node.is_folder:
        node.children = [_node_from_json(child, node.id, i)
                         for i, child in enumerate(data.get('children') or [])]
    return node


def import_from_json(text: str) -> List[BookmarkNode]:
    try:
        data = json.loads(text)
        if not isinstance(data, dict) or not isinstance(data.get('bookmarks'), list):
            raise ImportFormatError("invalid JSON format")
        return [_node_from_json(item, None, i) for i, item in enumerate(data['bookmarks'])]
    except ImportFormatError as e:
        if str(e) == "invalid JSON format":
            raise
        raise ImportFormatError(f"JSON parse failed: {e}") from e
    except (ValueError, TypeError, KeyError) as e:
        raise ImportFormatError(f"JSON parse failed: {e}") from e


# ---------------------------------------------------------------------------
# Chrome/Edge profile "Bookmarks" file
# ---------------------------------------------------------------------------

def _chrome_node(data: Dict[str, Any], parent_id: str, index: int) -> BookmarkNode:
    node_id = str(data.get('id') or generate_id())
    added = chrome_time_to_ms(data.get('date_added'))
    if data.get('type') == 'url':
        node = BookmarkNode(id=node_id, title=data.get('name') or UNTITLED_BOOKMARK, url=data.get('url', ''))
        modified = chrome_time_to_ms(data.get('date_last_used'))
    else:
        node = BookmarkNode(id=node_id, title=data.get('name') or '')
        modified = chrome_time_to_ms(data.get('date_modified'))
        node.children = [_chrome_node(child, node_id, i) for i, child in enumerate(data.get('children', []))]
    if added:
        node.date_added = added
    node.date_group_modified = modified
    node.parent_id = parent_id
    node.index = index
    if data.get('guid'):
        node.metadata['guid'] = data['guid']
    return node


def import_from_chrome(data: Dict[str, Any]) -> List[BookmarkNode]:
    roots = data.get('roots')
    if not isinstance(roots, dict):
        raise ImportFormatError("invalid Chrome bookmark file: missing roots")
    nodes = []
    for key, root_id, title in CHROME_ROOTS:
        root = roots.get(key)
        if not isinstance(root, dict):
            continue
        folder = BookmarkNode(id=root_id, title=title, index=len(nodes))
        added = chrome_time_to_ms(root.get('date_added'))
        if added:
            folder.date_added = added
        folder.children = [_chrome_node(child, root_id, i) for i, child in enumerate(root.get('children', []))]
        nodes.append(folder)
    return nodes


# ---------------------------------------------------------------------------
# Files
# ---------------------------------------------------------------------------

def detect_format(path: str, text: Optional[str] = None) -> str:
    """Guess 'html', 'chrome' or 'json' from the extension, then the content"""
    ext = os.path.splitext(path)[1].lower()
    if ext in ('.html', '.htm'):
        return 'html'
    if text is None:
        return 'json'
    stripped = text.lstrip()
    if stripped.startswith('<'):
        return 'html'
    try:
        data = json.loads(stripped)
    except ValueError:
        return 'json'
    if isinstance(data, dict) and 'roots' in data:
        return 'chrome'
    return 'json'


def parse_bookmarks(text: str, fmt: str) -> List[BookmarkNode]:
    if fmt == 'html':
        return import_from_html(text)
    if fmt == 'chrome':
        try:
            data = json.loads(text)
        except ValueError as e:
            raise ImportFormatError(f"JSON parse failed: {e}") from e
        return import_from_chrome(data)
    if fmt == 'json':
        return import_from_json(text)
    raise ValueError(f"Unsupported bookmark format: {fmt}")


def load_bookmark_file(path: str, fmt: Optional[str] = None) -> List[BookmarkNode]:
    with open(path, 'r', encoding='utf-8') as f:
        text = f.read()
    fmt = fmt or detect_format(path, text)
    logger.info(f"Loading {path} as {fmt}")
    return parse_bookmarks(text, fmt)


def save_bookmark_file(path: str, nodes: List[BookmarkNode], fmt: Optional[str] = None,
                       include_broken: bool = True, selected_folders: Optional[List[str]] = None) -> str:
    """Write nodes as HTML or JSON (Chrome files are written back as the JSON export layout)"""
    fmt = fmt or detect_format(path)
    if fmt == 'html':
        content = export_to_html(nodes, include_broken, selected_folders)
    else:
        content = export_to_json(nodes, include_broken, selected_folders)
    with open(path, 'w', encoding='utf-8') as f:
        f.write(content)
    logger.info(f"Saved bookmarks to {path} ({fmt})")
    return path


# ---------------------------------------------------------------------------
# Validation and cleanup
# ---------------------------------------------------------------------------

def validate_bookmarks(nodes: List[BookmarkNode]) -> Tuple[bool, List[str]]:
    errors = []

    def visit(siblings: List[BookmarkNode], path: List[str]):
        for node in siblings:
            if node.is_folder:
                here = path + [node.title or '(untitled)']
                if not node.title or not node.title.strip():
                    errors.append(f"Folder without a title: {' > '.join(here)}")
                visit(node.children, here)
            elif not node.url.startswith('http'):
                here = path + [node.title or UNTITLED_BOOKMARK]
                errors.append(f"Invalid URL '{node.url}': {' > '.join(here)}")

    visit(nodes, [])
    return not errors, errors


def clean_bookmarks(nodes: List[BookmarkNode]) -> List[BookmarkNode]:
    """Drop bookmarks with unsupported URL schemes and untitled folders"""
    cleaned = []
    for node in nodes:
        if node.is_folder:
            if not node.title or not node.title.strip():
                continue
            copy = node.clone()
            copy.children = clean_bookmarks(node.children)
            cleaned.append(copy)
        elif node.url.lower().startswith(ALLOWED_SCHEMES):
            cleaned.append(node.clone())
    return cleaned


def remove_duplicates(nodes: List[BookmarkNode], _seen_urls: Optional[Set[str]] = None) -> List[BookmarkNode]:
    """Drop repeated URLs anywhere and repeated titles within one folder; folders stay"""
    seen_urls = set() if _seen_urls is None else _seen_urls
    seen_titles = set()
    result = []
    for node in nodes:
        if node.is_folder:
            copy = node.clone()
            copy.children = remove_duplicates(node.children, seen_urls)
            result.append(copy)
            continue
        if node.url in seen_urls or node.title in seen_titles:
            continue
        seen_urls.add(node.url)
        seen_titles.add(node.title)
        result.append(node.clone())
    return result


def preview_import(nodes: List[BookmarkNode]) -> Dict[str, int]:
    folders = bookmarks = 0
    for root in nodes:
        for node in root.walk():
            if node.is_folder:
                folders += 1
            else:
                bookmarks += 1
    return {'count': folders + bookmarks, 'folders': folders, 'bookmarks': bookmarks}
