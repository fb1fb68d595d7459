import sys
import os
import unittest

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from bookmark_models import BookmarkNode
from bookmark_tree import BookmarkTree


def build_tree():
    dev = BookmarkNode(id="dev", title="Dev", children=[
        BookmarkNode(id="gh", title="GitHub", url="https://github.com/"),
        BookmarkNode(id="py", title="Python", children=[
            BookmarkNode(id="pyorg", title="Python.org", url="https://python.org/"),
        ]),
    ])
    news = BookmarkNode(id="news", title="News", children=[])
    loose = BookmarkNode(id="loose", title="Example", url="https://example.com/")
    return BookmarkTree([dev, news, loose])


def assert_consistent(test, tree):
    """Every node's parent_id and index must match its position"""
    def check(siblings, parent_id):
        for i, node in enumerate(siblings):
            test.assertEqual(node.parent_id, parent_id, node.id)
            test.assertEqual(node.index, i, node.id)
            if node.children is not None:
                check(node.children, node.id)
    check(tree.roots, None)


class TestBookmarkTree(unittest.TestCase):
    def setUp(self):
        self.tree = build_tree()

    def test_initial_links(self):
        assert_consistent(self, self.tree)
        self.assertEqual(self.tree.get("pyorg").parent_id, "py")

    def test_get_unknown_raises(self):
        with self.assertRaises(KeyError):
            self.tree.get("missing")
        self.assertIsNone(self.tree.find("missing"))

    def test_create_at_top_level_and_in_folder(self):
        folder = self.tree.create(title="Reading")
        self.assertTrue(folder.is_folder)
        self.assertEqual(folder.index, 3)
        self.assertTrue(folder.id.startswith("bk_"))

        bookmark = self.tree.create(parent_id=folder.id, title="Blog", url="https://blog.example/", index=0)
        self.assertEqual(bookmark.parent_id, folder.id)
        self.assertEqual(self.tree.get(folder.id).children, [bookmark])
        assert_consistent(self, self.tree)

    def test_create_under_bookmark_rejected(self):
        with self.assertRaises(ValueError):
            self.tree.create(parent_id="gh", title="Nope")

    def test_move_reindexes_both_lists(self):
        self.tree.move("gh", "news", 0)
        self.assertEqual([n.id for n in self.tree.get("dev").children], ["py"])
        self.assertEqual([n.id for n in self.tree.get("news").children], ["gh"])
        assert_consistent(self, self.tree)

    def test_move_folder_into_descendant_rejected(self):
        with self.assertRaises(ValueError):
            self.tree.move("dev", "py")
        with self.assertRaises(ValueError):
            self.tree.move("dev", "dev")
        # Tree untouched
        self.assertEqual(self.tree.get("py").parent_id, "dev")

    def test_move_to_top_level(self):
        self.tree.move("pyorg", None, 0)
        self.assertEqual(self.tree.roots[0].id, "pyorg")
        assert_consistent(self, self.tree)

    def test_update(self):
        self.tree.update("gh", title="GitHub Home", tags=["code"])
        self.assertEqual(self.tree.get("gh").title, "GitHub Home")
        with self.assertRaises(ValueError):
            self.tree.update("gh", id="other")
        with self.assertRaises(ValueError):
            self.tree.update("gh", not_a_field=1)

    def test_remove_non_empty_folder_rejected(self):
        with self.assertRaises(ValueError):
            self.tree.remove("dev")
        node, parent_id, index = self.tree.remove("news")
        self.assertEqual((node.id, parent_id, index), ("news", None, 1))
        assert_consistent(self, self.tree)

    def test_remove_tree(self):
        node, parent_id, index = self.tree.remove_tree("py")
        self.assertEqual(parent_id, "dev")
        self.assertEqual(index, 1)
        self.assertIsNone(self.tree.find("pyorg"))
        self.assertEqual(node.children[0].id, "pyorg")

    def test_insert_unknown_parent_falls_back_to_top_level(self):
        node = BookmarkNode(id="new", title="New", url="https://new.example/")
        self.tree.insert(node, "gone", 1)
        self.assertIsNone(node.parent_id)
        self.assertEqual(self.tree.roots[1].id, "new")
        assert_consistent(self, self.tree)

    def test_insert_regenerates_colliding_ids(self):
        node = BookmarkNode(id="gh", title="Copy", url="https://github.com/")
        self.tree.insert(node, "news")
        self.assertNotEqual(node.id, "gh")
        self.assertEqual(self.tree.get("gh").title, "GitHub")

    def test_existing_folders_and_lookup(self):
        folders = self.tree.existing_folders()
        self.assertEqual(folders, {"Dev": "dev", "Python": "py", "News": "news"})
        self.assertEqual(self.tree.find_folder_by_title("News").id, "news")
        self.assertEqual(len(self.tree.bookmarks()), 3)
        self.assertEqual(len(self.tree.flatten()), 6)

    def test_snapshot_restore(self):
        snapshot = self.tree.snapshot()
        self.tree.remove_tree("dev")
        self.tree.restore(snapshot)
        self.assertEqual(self.tree.get("pyorg").parent_id, "py")
        assert_consistent(self, self.tree)


if __name__ == "__main__":
    unittest.main()
