#!/usr/bin/env python3

"""
Apply a saved category rule file to bookmarks and write the organized result
"""

import sys
import traceback

from bookmark_manager import BookmarkManager
from organizer_config import load_rules


def main():
    if len(sys.argv) != 4:
        print("Usage: python apply_rules.py <bookmarks_file> <rules.json> <output_file>")
        print("Example: python apply_rules.py bookmarks.html category_rules.json organized.html")
        sys.exit(1)

    bookmarks_file = sys.argv[1]
    rules_file = sys.argv[2]
    output_file = sys.argv[3]

    # Load the rules
    print(f"📄 Loading category rules from: {rules_file}")
    try:
        rules = load_rules(rules_file)
    except (OSError, ValueError) as e:
        print(f"❌ Failed to load rules from {rules_file}: {e}")
        sys.exit(1)
    print(f"📋 {len(rules)} rules loaded")

    # Initialize bookmark manager
    print(f"📚 Loading bookmarks from: {bookmarks_file}")
    manager = BookmarkManager(bookmarks_file)
    try:
        manager.load_bookmarks()
    except (OSError, ValueError) as e:
        print(f"❌ Failed to load bookmarks from {bookmarks_file}: {e}")
        sys.exit(1)

    print(f"📊 Total bookmarks found: {len(manager.tree.bookmarks())}")

    # Remove duplicates (like the main flow does)
    trashed = manager.remove_duplicate_bookmarks()
    if trashed:
        print(f"✂️ Moved {len(trashed)} duplicates to the trash")

    print("🗂️ Applying category rules...")
    try:
        result = manager.organize('smart', rules=rules)

        # Save the result
        print(f"💾 Saving organized bookmarks to: {output_file}")
        manager.save_bookmarks(output_file)

        print(f"✅ Moved {result.moved_bookmarks} bookmarks into "
              f"{len(result.created_folders)} new folders")
        print(f"📁 Output saved to: {output_file}")

    except (OSError, ValueError) as e:
        print(f"❌ Error applying rules: {e}")
        traceback.print_exc()
        sys.exit(1)


if __name__ == "__main__":
    main()
