#!/usr/bin/env python3
"""
Browser Bookmark Management Tool
Manages bookmarks with duplicate detection, link checking, categorization, trash and backup features.
"""

import os
import sys
import shutil
import signal
import argparse
import logging
from datetime import datetime
from typing import Dict, List, Optional, Tuple

import requests

from bookmark_io import (
    clean_bookmarks,
    detect_format,
    load_bookmark_file,
    parse_bookmarks,
    preview_import,
    remove_duplicates,
    save_bookmark_file,
    validate_bookmarks,
)
from bookmark_models import (
    BookmarkNode,
    CategoryRule,
    DuplicateInfo,
    LinkCheckResult,
    LinkStatus,
    OrganizeResult,
    TrashItem,
    generate_id,
)
from bookmark_organizer import (
    auto_categorize,
    categorize_bookmarks,
    find_duplicates,
    find_outdated,
    merge_bookmarks,
    organize_bookmarks,
    organize_by_folder,
    search_bookmarks,
)
from bookmark_store import BookmarkStore
from bookmark_tree import BookmarkTree
from link_checker import LinkChecker, ProgressCallback, setup_logger
from organizer_config import UNCATEGORIZED_GROUP, OrganizerConfig, get_rules

logger = logging.getLogger("bookmark_organizer.manager")

# Chrome "Bookmarks bar" root; organizing happens there when present
CHROME_BAR_ID = '1'


class BookmarkManager:
    def __init__(self, bookmark_file: str, config: Optional[OrganizerConfig] = None):
        self.bookmark_file = bookmark_file
        self.config = config or OrganizerConfig.from_env()
        self.tree = BookmarkTree()
        self.file_format: Optional[str] = None
        self.session = requests.Session()
        self.session.headers.update({'User-Agent': self.config.user_agent})
        self.link_checker = LinkChecker(self.config, self.session)
        self.content_cache: Dict[str, str] = {}

        # Link results, trash and history survive between runs
        self.state_file = f"{bookmark_file}.state.json"
        self.store = BookmarkStore(self.state_file, self.config.history_limit)

        self._undo_stack: List[List[dict]] = []
        self._redo_stack: List[List[dict]] = []

    # -- files ---------------------------------------------------------------

    def load_bookmarks(self) -> List[BookmarkNode]:
        """Load bookmarks from an HTML export, JSON export or Chrome/Edge profile file"""
        with open(self.bookmark_file, 'r', encoding='utf-8') as f:
            text = f.read()
        self.file_format = detect_format(self.bookmark_file, text)
        nodes = parse_bookmarks(text, self.file_format)
        self.tree = BookmarkTree(nodes)
        self._apply_cached_results()
        logger.info(f"Loaded {len(self.tree.bookmarks())} bookmarks from {self.bookmark_file}")
        return self.tree.roots

    def save_bookmarks(self, path: Optional[str] = None, fmt: Optional[str] = None) -> str:
        path = path or self.bookmark_file
        if fmt is None and path == self.bookmark_file and self.file_format == 'html':
            fmt = 'html'
        return save_bookmark_file(path, self.tree.roots, fmt)

    def create_backup(self) -> str:
        """Create a backup of the original bookmark file"""
        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        backup_file = f"{self.bookmark_file}.backup_{timestamp}"
        shutil.copy2(self.bookmark_file, backup_file)
        logger.info(f"Backup created: {backup_file}")
        return backup_file

    def export(self, path: str, fmt: Optional[str] = None, include_broken: bool = True,
               selected_folders: Optional[List[str]] = None) -> str:
        save_bookmark_file(path, self.tree.roots, fmt, include_broken, selected_folders)
        self.store.add_history('export', {
            'file': path,
            'format': fmt or detect_format(path),
            'includeBroken': include_broken,
            'selectedFolders': list(selected_folders or []),
        })
        self.store.save()
        return path

    def import_file(self, path: str, strategy: str = 'merge', organize_by_type: bool = False) -> Dict[str, int]:
        """Import another bookmark file into the current tree (replace, merge or skip)"""
        return self.import_files([path], strategy, organize_by_type)

    def import_files(self, paths: List[str], strategy: str = 'merge',
                     organize_by_type: bool = False) -> Dict[str, int]:
        """Import several bookmark files: validate, clean, de-duplicate, then merge into the tree

        With ``organize_by_type`` the imported bookmarks are sorted into category
        folders, and the ones no category matches go to an "Uncategorized" folder.
        """
        nodes: List[BookmarkNode] = []
        for path in paths:
            imported = load_bookmark_file(path)
            logger.info(f"Imported {preview_import(imported)['count']} nodes from {path}")
            nodes.extend(imported)

        valid, errors = validate_bookmarks(nodes)
        if not valid:
            logger.warning(f"Import validation found {len(errors)} problems")
            for error in errors:
                logger.warning(f"  - {error}")

        total = preview_import(nodes)['count']
        nodes = clean_bookmarks(nodes)
        cleaned = preview_import(nodes)['count']
        nodes = remove_duplicates(nodes)
        preview = preview_import(nodes)
        preview['invalid'] = total - cleaned
        preview['duplicates'] = cleaned - preview['count']
        logger.info(f"Import cleanup removed {preview['invalid']} invalid and {preview['duplicates']} duplicate nodes")
        if not nodes:
            raise ValueError("No valid bookmarks in the imported files")

        self._push_undo()
        merged = merge_bookmarks(nodes, self.tree.roots, strategy)
        if strategy == 'merge':
            imported_roots = merged[:len(merged) - len(self.tree.roots)]
            used_ids = {node.id for node in self.tree.walk()}
        elif strategy == 'replace':
            imported_roots = merged
            used_ids = set()
        else:
            imported_roots, used_ids = [], set()
        for root in imported_roots:
            for node in root.walk():
                if node.id in used_ids:
                    node.id = generate_id()
                used_ids.add(node.id)
        self.tree = BookmarkTree(merged)

        if organize_by_type and imported_roots:
            preview['organized'] = self._organize_by_type(imported_roots)

        self.store.add_history('import', {
            'files': list(paths),
            'strategy': strategy,
            'byType': organize_by_type,
            **preview,
        })
        self.store.save()
        return preview

    def _organize_by_type(self, imported_roots: List[BookmarkNode]) -> int:
        """Move freshly imported bookmarks into category folders"""
        groups = auto_categorize(imported_roots)
        placed = {id(node) for group in groups.values() for node in group}
        rest = [node for root in imported_roots for node in root.walk()
                if not node.is_folder and id(node) not in placed]
        if rest:
            groups.setdefault(UNCATEGORIZED_GROUP, []).extend(rest)

        parent_id = self._organize_parent()
        moved = 0
        for name, bookmarks in groups.items():
            siblings = self.tree.roots if parent_id is None else self.tree.get(parent_id).children
            folder = next((node for node in siblings if node.is_folder and node.title == name), None)
            if folder is None:
                folder = self.tree.create(parent_id=parent_id, title=name)
            for bookmark in bookmarks:
                self.tree.move(bookmark.id, folder.id)
                moved += 1

        # Imported folders are left empty once their bookmarks have been sorted
        for root in imported_roots:
            if root.is_folder and self.tree.find(root.id) is not None \
                    and not any(not node.is_folder for node in root.walk()):
                self.tree.remove_tree(root.id)
        logger.info(f"Sorted {moved} imported bookmarks into {len(groups)} category folders")
        return moved

    # -- undo/redo -----------------------------------------------------------

    def _push_undo(self):
        self._undo_stack.append(self.tree.snapshot())
        del self._undo_stack[:-self.config.undo_limit]
        self._redo_stack.clear()

    def can_undo(self) -> bool:
        return bool(self._undo_stack)

    def can_redo(self) -> bool:
        return bool(self._redo_stack)

    def undo(self) -> bool:
        if not self._undo_stack:
            return False
        self._redo_stack.append(self.tree.snapshot())
        self.tree.restore(self._undo_stack.pop())
        return True

    def redo(self) -> bool:
        if not self._redo_stack:
            return False
        self._undo_stack.append(self.tree.snapshot())
        self.tree.restore(self._redo_stack.pop())
        return True

    # -- duplicates ----------------------------------------------------------

    def find_duplicates(self, exact_match: bool = True, similar_match: bool = False) -> List[DuplicateInfo]:
        duplicates = find_duplicates(self.tree.roots, exact_match, similar_match,
                                     self.config.similarity_threshold)
        self.store.add_history('duplicate', {
            'groups': len(duplicates),
            'bookmarks': sum(len(d.bookmarks) for d in duplicates),
            'similar': similar_match,
        })
        self.store.save()
        return duplicates

    def remove_duplicate_bookmarks(self) -> List[TrashItem]:
        """Keep the first copy of every exact duplicate, move the rest to the trash"""
        duplicates = find_duplicates(self.tree.roots, exact_match=True)
        if not duplicates:
            return []
        self._push_undo()
        trashed = []
        for group in duplicates:
            for node in group.bookmarks[1:]:
                trashed.append(self._trash_node(node.id))
        self.store.save()
        return trashed

    # -- link checking -------------------------------------------------------

    def _apply_result(self, node: BookmarkNode, result: LinkCheckResult):
        node.status = result.status
        node.status_code = result.status_code
        node.error = result.error
        node.redirect_url = result.redirect_url

    def _apply_cached_results(self):
        for node in self.tree.bookmarks():
            result = self.store.get_link_result(node.url)
            if result is not None:
                self._apply_result(node, result)

    def check_links(self, recheck: bool = False,
                    on_progress: Optional[ProgressCallback] = None) -> List[LinkCheckResult]:
        """Check every http(s) bookmark, reusing stored results unless recheck is set"""
        bookmarks = [node for node in self.tree.bookmarks() if node.url.startswith('http')]
        urls = list(dict.fromkeys(node.url for node in bookmarks))

        results: Dict[str, LinkCheckResult] = {}
        to_check = []
        for url in urls:
            cached = None if recheck else self.store.get_link_result(url)
            if cached is not None:
                results[url] = cached
            else:
                to_check.append(url)

        if results:
            print(f"Using cached results for {len(results)} URLs, checking {len(to_check)} new URLs")

        previous: Dict[int, Tuple] = {}
        for node in bookmarks:
            if node.url in to_check:
                previous[id(node)] = (node.status, node.status_code, node.error, node.redirect_url)
                node.status = LinkStatus.CHECKING

        for result in self.link_checker.check_urls(to_check, on_progress):
            self.store.put_link_result(result)
            results[result.url] = result

        for node in bookmarks:
            result = results.get(node.url)
            if result is not None:
                self._apply_result(node, result)
            elif id(node) in previous:
                # Cancelled, or another run was in progress
                node.status, node.status_code, node.error, node.redirect_url = previous[id(node)]

        counts: Dict[str, int] = {}
        for result in results.values():
            counts[result.status.value] = counts.get(result.status.value, 0) + 1
        self.store.add_history('linkcheck', {
            'total': len(urls),
            'checked': len(results) - (len(urls) - len(to_check)),
            'cached': len(urls) - len(to_check),
            'statuses': counts,
        })
        self.store.save()
        return [results[url] for url in urls if url in results]

    def pause_link_check(self):
        self.link_checker.pause()

    def resume_link_check(self):
        self.link_checker.resume()

    def cancel_link_check(self):
        self.link_checker.cancel()

    def remove_link_check_result(self, url: str) -> bool:
        removed = self.store.remove_link_result(url)
        self.store.save()
        return removed

    def clear_link_check_results(self):
        self.store.clear_link_results()
        self.store.save()

    # -- organizing ----------------------------------------------------------

    def categorize(self, rules: Optional[List[CategoryRule]] = None) -> Dict[str, List[BookmarkNode]]:
        return categorize_bookmarks(self.tree.roots, rules if rules is not None else get_rules(self.config))

    def _organize_parent(self) -> Optional[str]:
        bar = self.tree.find(CHROME_BAR_ID)
        if self.file_format == 'chrome' and bar is not None and bar.is_folder:
            return CHROME_BAR_ID
        return None

    def organize(self, strategy: str = 'smart', rules: Optional[List[CategoryRule]] = None) -> OrganizeResult:
        if strategy not in ('smart', 'simple'):
            raise ValueError(f"Unknown organize strategy: {strategy}")
        self._push_undo()
        if strategy == 'smart':
            result = organize_bookmarks(
                self.tree,
                rules if rules is not None else get_rules(self.config),
                parent_id=self._organize_parent(),
                content_cache=self.content_cache,
            )
        else:
            result = self._organize_simple()
        self.store.add_history('organize', {
            'strategy': strategy,
            'moved': result.moved_bookmarks,
            'createdFolders': len(result.created_folders),
        })
        self.store.save()
        return result

    def _organize_simple(self) -> OrganizeResult:
        """Gather the bookmarks of same-named folders into one folder of that name"""
        result = OrganizeResult()
        for path, bookmarks in organize_by_folder(self.tree.roots).items():
            if '/' not in path:
                continue
            title = path.rsplit('/', 1)[1]
            folder = self.tree.find_folder_by_title(title)
            if folder is None:
                folder = self.tree.create(title=title)
                result.created_folders.append(folder.id)
            for bookmark in bookmarks:
                if bookmark.parent_id == folder.id:
                    continue
                try:
                    self.tree.move(bookmark.id, folder.id)
                    result.moved_bookmarks += 1
                except (KeyError, ValueError) as e:
                    logger.warning(f"Failed to move bookmark {bookmark.id}: {e}")
        result.organized_count = result.moved_bookmarks
        return result

    def get_folder_stats(self) -> Dict[str, List[BookmarkNode]]:
        return organize_by_folder(self.tree.roots)

    def find_outdated(self, days_threshold: int = 365) -> List[Tuple[BookmarkNode, int]]:
        return find_outdated(self.tree.roots, days_threshold)

    def validate(self) -> Tuple[bool, List[str]]:
        return validate_bookmarks(self.tree.roots)

    def search(self, query: str) -> List[BookmarkNode]:
        return search_bookmarks(self.tree.roots, query)

    # -- trash ---------------------------------------------------------------

    def _trash_node(self, node_id: str) -> TrashItem:
        node = self.tree.get(node_id)
        item = TrashItem(
            id=generate_id('trash'),
            bookmark=node.clone(),
            original_parent_id=node.parent_id,
            original_index=node.index,
        )
        self.store.add_trash(item)
        try:
            if node.is_folder:
                self.tree.remove_tree(node_id)
            else:
                self.tree.remove(node_id)
        except (KeyError, ValueError):
            self.store.remove_trash(item.id)
            raise
        self.store.add_history('delete', {'id': node_id, 'title': node.title, 'trashId': item.id})
        return item

    def move_to_trash(self, node_id: str) -> TrashItem:
        self._push_undo()
        item = self._trash_node(node_id)
        self.store.save()
        return item

    def restore_from_trash(self, trash_id: str) -> BookmarkNode:
        item = self.store.get_trash(trash_id)
        self._push_undo()
        parent_id = item.original_parent_id
        if parent_id is not None and self.tree.find(parent_id) is None:
            logger.info(f"Original parent {parent_id} is gone, restoring {item.bookmark.id} at the top level")
            parent_id = None
        node = self.tree.insert(item.bookmark.clone(), parent_id, item.original_index)
        self.store.remove_trash(trash_id)
        self.store.add_history('restore', {'id': node.id, 'title': node.title, 'trashId': trash_id})
        self.store.save()
        return node

    def delete_from_trash(self, trash_id: str) -> TrashItem:
        item = self.store.remove_trash(trash_id)
        self.store.save()
        return item

    def clear_trash(self) -> int:
        count = self.store.clear_trash()
        self.store.save()
        return count

    # -- direct edits --------------------------------------------------------

    def delete_bookmarks(self, node_ids: List[str]) -> List[TrashItem]:
        self._push_undo()
        items = [self._trash_node(node_id) for node_id in node_ids]
        self.store.save()
        return items

    def move_bookmarks(self, node_ids: List[str], folder_id: str):
        self._push_undo()
        for node_id in node_ids:
            self.tree.move(node_id, folder_id)

    def create_folder(self, parent_id: Optional[str], title: str) -> BookmarkNode:
        self._push_undo()
        return self.tree.create(parent_id=parent_id, title=title)

    def find_or_create_folder(self, title: str, parent_id: Optional[str] = None) -> BookmarkNode:
        folder = self.tree.find_folder_by_title(title)
        if folder is not None:
            return folder
        return self.create_folder(parent_id, title)

    def update_bookmark(self, node_id: str, **changes) -> BookmarkNode:
        self._push_undo()
        return self.tree.update(node_id, **changes)

    def clean_invalid_folders(self) -> int:
        """Remove folders without a title (and their contents)"""
        invalid = [node.id for node in self.tree.walk()
                   if node.is_folder and not (node.title or '').strip()]
        if not invalid:
            return 0
        self._push_undo()
        removed = 0
        for node_id in invalid:
            if self.tree.find(node_id) is None:
                continue  # already gone with an untitled ancestor
            self.tree.remove_tree(node_id)
            removed += 1
        return removed


def confirm(prompt: str, assume_yes: bool) -> bool:
    if assume_yes:
        return True
    while True:
        answer = input(f"{prompt} (y/n): ").lower().strip()
        if answer in ['y', 'yes']:
            return True
        if answer in ['n', 'no']:
            return False
        print("Please enter 'y' or 'n'")


def print_summary(manager: BookmarkManager):
    stats = preview_import(manager.tree.roots)
    print(f"\n📊 Bookmark summary for {manager.bookmark_file}:")
    print(f"  Bookmarks: {stats['bookmarks']}")
    print(f"  Folders: {stats['folders']}")

    duplicates = find_duplicates(manager.tree.roots)
    print(f"  Duplicate groups: {len(duplicates)}")

    statuses: Dict[str, int] = {}
    for node in manager.tree.bookmarks():
        if node.status is not None:
            statuses[node.status.value] = statuses.get(node.status.value, 0) + 1
    if statuses:
        print("  Link status (cached): " + ", ".join(f"{k}={v}" for k, v in sorted(statuses.items())))
    else:
        print("  Link status: not checked yet (use --check-links)")
    print(f"  Items in trash: {len(manager.store.trash)}")

    folder_stats = manager.get_folder_stats()
    if folder_stats:
        print("\n📁 Largest folders:")
        for path, bookmarks in sorted(folder_stats.items(), key=lambda x: len(x[1]), reverse=True)[:10]:
            print(f"  {path}: {len(bookmarks)}")


def default_output_file(manager: BookmarkManager) -> str:
    """Chrome profile files are never overwritten with a different format"""
    if manager.file_format != 'chrome':
        return manager.bookmark_file
    base_name = os.path.splitext(manager.bookmark_file)[0]
    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    return f"{base_name}_organized_{timestamp}.json"


def run_link_check(manager: BookmarkManager, recheck: bool) -> List[LinkCheckResult]:
    # Ctrl+C stops the loop after the current URL instead of killing the run
    def handle_interrupt(signum, frame):
        print("\n⏹️ Cancelling link check...")
        manager.cancel_link_check()

    previous = signal.signal(signal.SIGINT, handle_interrupt)
    try:
        return manager.check_links(recheck=recheck)
    finally:
        signal.signal(signal.SIGINT, previous)


def main():
    parser = argparse.ArgumentParser(description="Browser Bookmark Management Tool")
    parser.add_argument("bookmark_file", help="Path to bookmark file (HTML export, JSON export or Chrome/Edge Bookmarks)")

    # Analysis
    parser.add_argument("--find-duplicates", action="store_true", help="Find duplicate bookmarks")
    parser.add_argument("--similar", action="store_true", help="Also report similar URLs as duplicates")
    parser.add_argument("--check-links", action="store_true", help="Check bookmark links for broken ones")
    parser.add_argument("--strict", action="store_true", help="Treat unverifiable links as errors")
    parser.add_argument("--recheck", action="store_true", help="Ignore cached link check results")
    parser.add_argument("--categorize", action="store_true", help="Show the category each bookmark would go to")
    parser.add_argument("--rules", help="JSON file with category rules")
    parser.add_argument("--find-outdated", action="store_true", help="List bookmarks not touched for a long time")
    parser.add_argument("--days-threshold", type=int, default=365, help="Age in days for --find-outdated")
    parser.add_argument("--validate", action="store_true", help="Validate bookmark URLs and folder titles")
    parser.add_argument("--search", help="Search titles, URLs and tags")

    # Mutations
    parser.add_argument("--import", dest="import_files", nargs="+", metavar="FILE",
                        help="Import bookmark files (HTML, JSON or Chrome) into the loaded bookmarks")
    parser.add_argument("--import-strategy", choices=["merge", "replace", "skip"], default="merge",
                        help="How imported bookmarks combine with the loaded ones")
    parser.add_argument("--by-type", action="store_true", help="Sort imported bookmarks into category folders")
    parser.add_argument("--organize", action="store_true", help="Move loose bookmarks into category folders")
    parser.add_argument("--strategy", choices=["smart", "simple"], default="smart", help="Organize strategy")
    parser.add_argument("--remove-duplicates", action="store_true", help="Move duplicate bookmarks to the trash")
    parser.add_argument("--clean", action="store_true", help="Remove folders without a title")
    parser.add_argument("--trash", metavar="ID", help="Move a bookmark or folder to the trash")
    parser.add_argument("--restore", metavar="ID", help="Restore an item from the trash")
    parser.add_argument("--empty-trash", action="store_true", help="Permanently delete everything in the trash")

    # Views
    parser.add_argument("--list-trash", action="store_true", help="List trash contents")
    parser.add_argument("--history", action="store_true", help="Show operation history")

    # Output
    parser.add_argument("--export-html", metavar="OUT", help="Export bookmarks as Netscape HTML")
    parser.add_argument("--export-json", metavar="OUT", help="Export bookmarks as JSON")
    parser.add_argument("--exclude-broken", action="store_true", help="Leave broken links out of exports")
    parser.add_argument("--output", "-o", help="Output file for modified bookmarks")
    parser.add_argument("--backup", action="store_true", help="Create backup before processing")
    parser.add_argument("--yes", "-y", action="store_true", help="Don't ask for confirmation")

    args = parser.parse_args()

    if not os.path.exists(args.bookmark_file):
        print(f"Error: Bookmark file '{args.bookmark_file}' not found.")
        sys.exit(1)

    config = OrganizerConfig.from_env()
    if args.strict:
        config.strict_mode = True
    if args.rules:
        config.rules_file = args.rules
    setup_logger(config.log_dir)

    manager = BookmarkManager(args.bookmark_file, config)
    try:
        manager.load_bookmarks()
    except (OSError, ValueError) as e:
        print(f"❌ Error loading bookmarks: {e}")
        sys.exit(1)
    print(f"📚 Loaded {len(manager.tree.bookmarks())} bookmarks from {args.bookmark_file}")

    if args.backup:
        backup_file = manager.create_backup()
        print(f"📄 Backup created: {backup_file}")

    analysis = (args.find_duplicates or args.check_links or args.categorize or args.find_outdated
                or args.validate or args.search)
    mutations = (args.import_files or args.organize or args.remove_duplicates or args.clean or args.trash or args.restore)
    views = args.list_trash or args.history or args.empty_trash
    exports = args.export_html or args.export_json
    modified = False

    if args.find_duplicates:
        duplicates = manager.find_duplicates(similar_match=args.similar)
        if duplicates:
            print(f"\n🔍 Found {len(duplicates)} sets of duplicate bookmarks:")
            for i, group in enumerate(duplicates, 1):
                print(f"\n--- Duplicate Set {i} (similarity {group.similarity:.2f}) ---")
                print(f"URL: {group.url}")
                for bookmark in group.bookmarks:
                    print(f"  {bookmark.title} [{bookmark.id}]")
        else:
            print("✅ No duplicate bookmarks found.")

    if args.check_links:
        print("🔍 Checking links...")
        results = run_link_check(manager, args.recheck)
        problems = [r for r in results if r.status not in (LinkStatus.NORMAL, LinkStatus.REDIRECT)]
        redirects = [r for r in results if r.status == LinkStatus.REDIRECT]
        print(f"\n🔗 Checked {len(results)} links: {len(results) - len(problems) - len(redirects)} ok, "
              f"{len(redirects)} redirected, {len(problems)} with problems")
        for result in problems:
            code = f" HTTP {result.status_code}" if result.status_code else ""
            print(f"  ❌ [{result.status.value}{code}] {result.url} - {result.error or ''}")
        for result in redirects:
            print(f"  ↪️ {result.url} -> {result.redirect_url}")

    if args.categorize:
        try:
            rules = get_rules(config)
            categorized = manager.categorize(rules)
        except (OSError, ValueError) as e:
            print(f"❌ Error loading rules: {e}")
            return
        categorized_count = sum(len(b) for b in categorized.values())
        print(f"\n🗂️ {categorized_count} of {len(manager.tree.bookmarks())} bookmarks matched a category:")
        for folder, bookmarks in categorized.items():
            print(f"\n📁 {folder} ({len(bookmarks)})")
            for bookmark in bookmarks[:5]:
                print(f"  - {bookmark.title}")
            if len(bookmarks) > 5:
                print(f"  ... and {len(bookmarks) - 5} more")

    if args.find_outdated:
        outdated = manager.find_outdated(args.days_threshold)
        print(f"\n⏰ Found {len(outdated)} bookmarks older than {args.days_threshold} days:")
        for bookmark, days_old in outdated[:20]:
            print(f"  {bookmark.title} - {days_old} days old")

    if args.validate:
        valid, errors = manager.validate()
        if valid:
            print("✅ All bookmarks are valid!")
        else:
            print(f"⚠️ Found {len(errors)} problems:")
            for error in errors:
                print(f"  - {error}")

    if args.search:
        matches = manager.search(args.search)
        print(f"\n🔎 {len(matches)} matches for '{args.search}':")
        for node in matches:
            print(f"  {node.title} {node.url or '(folder)'} [{node.id}]")

    if args.import_files:
        print(f"📥 Importing {len(args.import_files)} files ({args.import_strategy})...")
        try:
            preview = manager.import_files(args.import_files, args.import_strategy, args.by_type)
        except (OSError, ValueError) as e:
            print(f"❌ Error importing bookmarks: {e}")
            return
        print(f"✅ Imported {preview['bookmarks']} bookmarks in {preview['folders']} folders "
              f"({preview['invalid']} invalid and {preview['duplicates']} duplicate entries dropped)")
        if args.by_type:
            print(f"🗂️ Sorted {preview.get('organized', 0)} imported bookmarks into category folders")
        modified = modified or args.import_strategy != 'skip'

    if args.organize:
        if confirm(f"Organize bookmarks using the {args.strategy} strategy?", args.yes):
            try:
                result = manager.organize(args.strategy)
            except (OSError, ValueError) as e:
                print(f"❌ Error organizing bookmarks: {e}")
                return
            print(f"✅ Moved {result.moved_bookmarks} bookmarks, created "
                  f"{len(result.created_folders)} folders")
            modified = modified or result.moved_bookmarks > 0
        else:
            print("❌ Organize cancelled")

    if args.remove_duplicates:
        if confirm("Move duplicate bookmarks to the trash?", args.yes):
            trashed = manager.remove_duplicate_bookmarks()
            print(f"✅ Moved {len(trashed)} duplicate bookmarks to the trash")
            modified = modified or bool(trashed)

    if args.clean:
        removed = manager.clean_invalid_folders()
        print(f"✅ Removed {removed} folders without a title")
        modified = modified or removed > 0

    if args.trash:
        try:
            item = manager.move_to_trash(args.trash)
            print(f"🗑️ Moved '{item.bookmark.title}' to the trash (trash ID: {item.id})")
            modified = True
        except (KeyError, ValueError) as e:
            print(f"❌ Error: {e}")

    if args.restore:
        try:
            node = manager.restore_from_trash(args.restore)
            print(f"♻️ Restored '{node.title}'")
            modified = True
        except KeyError as e:
            print(f"❌ Error: {e}")

    if args.empty_trash:
        if confirm(f"Permanently delete {len(manager.store.trash)} items in the trash?", args.yes):
            print(f"✅ Deleted {manager.clear_trash()} items from the trash")

    if args.list_trash:
        print(f"\n🗑️ Trash ({len(manager.store.trash)} items):")
        for item in manager.store.trash:
            deleted = datetime.fromtimestamp(item.deleted_at / 1000).strftime("%Y-%m-%d %H:%M")
            kind = "folder" if item.bookmark.is_folder else item.bookmark.url
            print(f"  [{item.id}] {item.bookmark.title} ({kind}) deleted {deleted}")

    if args.history:
        print(f"\n📜 History ({len(manager.store.history)} records):")
        for record in manager.store.history:
            when = datetime.fromtimestamp(record.timestamp / 1000).strftime("%Y-%m-%d %H:%M")
            print(f"  {when} {record.type}: {record.details}")

    if modified or (args.output and mutations):
        output_file = args.output or default_output_file(manager)
        manager.save_bookmarks(output_file)
        print(f"💾 Bookmarks saved: {output_file}")

    for path, fmt in ((args.export_html, 'html'), (args.export_json, 'json')):
        if path:
            try:
                manager.export(path, fmt, include_broken=not args.exclude_broken)
                print(f"📄 Exported {fmt.upper()}: {path}")
            except OSError as e:
                print(f"❌ Error exporting bookmarks: {e}")

    if not (analysis or mutations or views or exports):
        print_summary(manager)


if __name__ == "__main__":
    main()
