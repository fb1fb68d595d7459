import sys
import os
import json
import shutil
import tempfile
import unittest

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from bookmark_io import (
    chrome_time_to_ms,
    clean_bookmarks,
    detect_format,
    export_to_html,
    export_to_json,
    import_from_chrome,
    import_from_html,
    import_from_json,
    load_bookmark_file,
    preview_import,
    remove_duplicates,
    save_bookmark_file,
    validate_bookmarks,
)
from bookmark_models import BookmarkNode, ImportFormatError, LinkStatus

NETSCAPE_SAMPLE = """<!DOCTYPE NETSCAPE-Bookmark-file-1>
<META HTTP-EQUIV="Content-Type" CONTENT="text/html; charset=UTF-8">
<TITLE>Bookmarks</TITLE>
<H1>Bookmarks</H1>
<DL><p>
    <DT><H3 ADD_DATE="1700000000" LAST_MODIFIED="1700000100">Dev</H3>
    <DL><p>
        <DT><A HREF="https://github.com/" ADD_DATE="1700000000" TAGS="code, git">GitHub</A>
        <DT><H3>Python</H3>
        <DL><p>
            <DT><A HREF="https://python.org/">Python</A>
        </DL><p>
    </DL><p>
    <DT><A HREF="https://example.com/" NOTE="read later"></A>
    <DT><H3></H3>
    <DL><p>
        <DT><A HREF="https://hidden.example/">Hidden</A>
    </DL><p>
    <DT><H3>Empty</H3>
</DL><p>
"""

CHROME_SAMPLE = {
    "checksum": "abc",
    "roots": {
        "bookmark_bar": {
            "children": [
                {"date_added": "13300000000000000", "guid": "g-1", "id": "5", "name": "Google",
                 "type": "url", "url": "https://google.com/"},
                {"children": [
                    {"id": "7", "name": "", "type": "url", "url": "https://docs.python.org/"},
                ], "id": "6", "name": "Docs", "type": "folder", "date_added": "13300000000000000",
                 "date_modified": "13300000001000000"},
            ],
            "id": "1", "name": "Bookmarks bar", "type": "folder",
        },
        "other": {"children": [], "id": "2", "name": "Other bookmarks", "type": "folder"},
        "synced": {"children": [], "id": "3", "name": "Mobile bookmarks", "type": "folder"},
    },
    "version": 1,
}


class TestHtmlImport(unittest.TestCase):
    def setUp(self):
        self.nodes = import_from_html(NETSCAPE_SAMPLE)

    def test_top_level_structure(self):
        self.assertEqual([n.title for n in self.nodes], ["Dev", "Untitled bookmark", "Empty"])
        self.assertEqual([n.index for n in self.nodes], [0, 1, 2])
        self.assertTrue(all(n.parent_id is None for n in self.nodes))

    def test_nested_folders(self):
        dev = self.nodes[0]
        self.assertEqual([c.title for c in dev.children], ["GitHub", "Python"])
        python = dev.children[1]
        self.assertTrue(python.is_folder)
        self.assertEqual(python.children[0].url, "https://python.org/")
        self.assertEqual(python.children[0].parent_id, python.id)
        self.assertEqual(python.parent_id, dev.id)

    def test_attributes(self):
        dev = self.nodes[0]
        github = dev.children[0]
        self.assertEqual(dev.date_added, 1700000000000)
        self.assertEqual(dev.date_group_modified, 1700000100000)
        self.assertEqual(github.date_added, 1700000000000)
        self.assertEqual(github.tags, ["code", "git"])
        self.assertEqual(self.nodes[1].notes, "read later")

    def test_untitled_folder_skipped_with_contents(self):
        urls = [n.url for root in self.nodes for n in root.walk() if n.url]
        self.assertNotIn("https://hidden.example/", urls)

    def test_folder_without_list_is_empty(self):
        self.assertTrue(self.nodes[2].is_folder)
        self.assertEqual(self.nodes[2].children, [])

    def test_folder_description_before_list(self):
        # Firefox writes a <DD> description between the heading and the folder's list
        text = ('<DL><p><DT><H3>Dev</H3>\n<DD>My dev links\n<DL><p>'
                '<DT><A HREF="https://github.com/">GitHub</A>'
                '<DT><A HREF="https://pypi.org/">PyPI</A></DL><p>'
                '<DT><A HREF="https://example.com/">Example</A></DL>')
        nodes = import_from_html(text)
        self.assertEqual([n.title for n in nodes], ["Dev", "Example"])
        self.assertEqual([n.title for n in nodes[0].children], ["GitHub", "PyPI"])
        self.assertEqual(nodes[0].children[1].parent_id, nodes[0].id)

    def test_millisecond_dates_kept(self):
        nodes = import_from_html('<DL><p><DT><A HREF="https://a.com/" ADD_DATE="1700000000123">A</A></DL>')
        self.assertEqual(nodes[0].date_added, 1700000000123)

    def test_no_list(self):
        self.assertEqual(import_from_html("<html><body>nothing</body></html>"), [])

    def test_fresh_ids(self):
        ids = [n.id for root in self.nodes for n in root.walk()]
        self.assertEqual(len(ids), len(set(ids)))


class TestHtmlExport(unittest.TestCase):
    def test_header_and_nesting(self):
        nodes = import_from_html(NETSCAPE_SAMPLE)
        output = export_to_html(nodes)
        self.assertTrue(output.startswith("<!DOCTYPE NETSCAPE-Bookmark-file-1>"))
        self.assertIn("<TITLE>Bookmarks</TITLE>", output)
        self.assertIn('<DT><H3 ADD_DATE="1700000000" LAST_MODIFIED="1700000100">Dev</H3>', output)
        self.assertIn('HREF="https://github.com/" ADD_DATE="1700000000" TAGS="code,git"', output)
        self.assertIn('NOTE="read later"', output)

        again = import_from_html(output)
        self.assertEqual([n.title for n in again], ["Dev", "Untitled bookmark", "Empty"])
        self.assertEqual(again[0].children[1].children[0].url, "https://python.org/")

    def test_escaping(self):
        node = BookmarkNode(id="a", title='A & B <c>', url='https://x.com/?q="1"&r=2')
        output = export_to_html([node])
        self.assertIn(">A &amp; B &lt;c&gt;</A>", output)
        self.assertIn('HREF="https://x.com/?q=&quot;1&quot;&amp;r=2"', output)
        self.assertEqual(import_from_html(output)[0].url, 'https://x.com/?q="1"&r=2')

    def test_exclude_broken(self):
        ok = BookmarkNode(id="ok", title="Ok", url="https://ok.com/")
        broken = BookmarkNode(id="bad", title="Bad", url="https://bad.com/", status=LinkStatus.BROKEN)
        folder = BookmarkNode(id="f", title="F", children=[ok, broken])
        self.assertIn("bad.com", export_to_html([folder]))
        self.assertNotIn("bad.com", export_to_html([folder], include_broken=False))
        data = json.loads(export_to_json([folder], include_broken=False))
        self.assertEqual([c["id"] for c in data["bookmarks"][0]["children"]], ["ok"])
        # The source tree is not modified
        self.assertEqual(len(folder.children), 2)

    def test_selected_folders(self):
        nodes = import_from_html(NETSCAPE_SAMPLE)
        python = nodes[0].children[1]
        data = json.loads(export_to_json(nodes, selected_folders=[python.id]))
        self.assertEqual(len(data["bookmarks"]), 1)
        self.assertEqual(data["bookmarks"][0]["title"], "Python")
        self.assertNotIn("github.com", export_to_html(nodes, selected_folders=[python.id]))


class TestJson(unittest.TestCase):
    def test_export_envelope(self):
        data = json.loads(export_to_json([BookmarkNode(id="a", title="A", url="https://a.com/")]))
        self.assertEqual(data["version"], "1.0")
        self.assertIn("exportDate", data)
        self.assertEqual(data["bookmarks"][0]["url"], "https://a.com/")

    def test_round_trip_keeps_structure(self):
        nodes = import_from_html(NETSCAPE_SAMPLE)
        restored = import_from_json(export_to_json(nodes))

        def shape(node):
            return (node.id, node.title, node.url, [shape(c) for c in node.children or []])

        self.assertEqual([shape(n) for n in restored], [shape(n) for n in nodes])

    def test_invalid_format(self):
        with self.assertRaises(ImportFormatError) as ctx:
            import_from_json('{"items": []}')
        self.assertEqual(str(ctx.exception), "invalid JSON format")

    def test_parse_failure(self):
        with self.assertRaises(ImportFormatError) as ctx:
            import_from_json("not json")
        self.assertTrue(str(ctx.exception).startswith("JSON parse failed"))

    def test_missing_ids_and_parent_links(self):
        text = json.dumps({"bookmarks": [
            {"title": "Folder", "children": [{"title": "A", "url": "https://a.com/", "parentId": "wrong"}]},
        ]})
        nodes = import_from_json(text)
        folder = nodes[0]
        self.assertTrue(folder.id)
        self.assertEqual(folder.children[0].parent_id, folder.id)
        self.assertEqual(folder.children[0].index, 0)

    def test_iso_and_string_dates(self):
        text = json.dumps({"bookmarks": [
            {"id": "a", "title": "A", "url": "https://a.com/", "dateAdded": "2024-01-01T00:00:00Z"},
            {"id": "b", "title": "B", "url": "https://b.com/", "dateAdded": "1700000000000"},
        ]})
        nodes = import_from_json(text)
        self.assertEqual(nodes[0].date_added, 1704067200000)
        self.assertEqual(nodes[1].date_added, 1700000000000)


class TestChrome(unittest.TestCase):
    def test_roots(self):
        nodes = import_from_chrome(CHROME_SAMPLE)
        self.assertEqual([(n.id, n.title) for n in nodes],
                         [("1", "Bookmarks bar"), ("2", "Other bookmarks"), ("3", "Mobile bookmarks")])
        google = nodes[0].children[0]
        self.assertEqual(google.url, "https://google.com/")
        self.assertEqual(google.parent_id, "1")
        self.assertEqual(google.date_added, 1655526400000)
        self.assertEqual(google.metadata["guid"], "g-1")
        docs = nodes[0].children[1]
        self.assertEqual(docs.children[0].title, "Untitled bookmark")

    def test_chrome_time(self):
        self.assertEqual(chrome_time_to_ms("11644473600000000"), 0)
        self.assertIsNone(chrome_time_to_ms("0"))
        self.assertIsNone(chrome_time_to_ms(None))

    def test_missing_roots(self):
        with self.assertRaises(ImportFormatError):
            import_from_chrome({"version": 1})


class TestFiles(unittest.TestCase):
    def setUp(self):
        self.tmp_dir = tempfile.mkdtemp()

    def tearDown(self):
        shutil.rmtree(self.tmp_dir)

    def test_detect_format(self):
        self.assertEqual(detect_format("x.html"), "html")
        self.assertEqual(detect_format("Bookmarks", json.dumps(CHROME_SAMPLE)), "chrome")
        self.assertEqual(detect_format("export.json", '{"bookmarks": []}'), "json")
        self.assertEqual(detect_format("bookmarks.txt", "<DL></DL>"), "html")

    def test_save_and_load(self):
        nodes = import_from_html(NETSCAPE_SAMPLE)
        html_path = os.path.join(self.tmp_dir, "out.html")
        json_path = os.path.join(self.tmp_dir, "out.json")
        save_bookmark_file(html_path, nodes)
        save_bookmark_file(json_path, nodes)
        self.assertEqual(len(load_bookmark_file(html_path)), 3)
        loaded = load_bookmark_file(json_path)
        self.assertEqual(loaded[0].id, nodes[0].id)

    def test_load_chrome_profile_file(self):
        path = os.path.join(self.tmp_dir, "Bookmarks")
        with open(path, "w", encoding="utf-8") as f:
            json.dump(CHROME_SAMPLE, f)
        self.assertEqual(load_bookmark_file(path)[0].title, "Bookmarks bar")


class TestCleanup(unittest.TestCase):
    def build(self):
        return [
            BookmarkNode(id="f", title="Dev", children=[
                BookmarkNode(id="a", title="A", url="https://a.com/"),
                BookmarkNode(id="js", title="Script", url="javascript:void(0)"),
                BookmarkNode(id="ftp", title="Files", url="ftp://files.example/"),
            ]),
            BookmarkNode(id="u", title="", children=[
                BookmarkNode(id="b", title="B", url="https://b.com/"),
            ]),
        ]

    def test_validate(self):
        valid, errors = validate_bookmarks(self.build())
        self.assertFalse(valid)
        self.assertIn("Invalid URL 'javascript:void(0)': Dev > Script", errors)
        self.assertIn("Invalid URL 'ftp://files.example/': Dev > Files", errors)
        self.assertTrue(any("Folder without a title" in e for e in errors))
        self.assertEqual(validate_bookmarks([BookmarkNode(id="x", title="X", url="https://x.com/")]), (True, []))

    def test_clean(self):
        cleaned = clean_bookmarks(self.build())
        self.assertEqual(len(cleaned), 1)
        self.assertEqual([c.id for c in cleaned[0].children], ["a", "ftp"])

    def test_clean_keeps_emptied_folders(self):
        nodes = [BookmarkNode(id="f", title="Scripts", children=[
            BookmarkNode(id="js", title="Script", url="javascript:alert(1)"),
        ])]
        cleaned = clean_bookmarks(nodes)
        self.assertEqual(cleaned[0].children, [])

    def test_remove_duplicates(self):
        nodes = [
            BookmarkNode(id="a1", title="A", url="https://a.com/"),
            BookmarkNode(id="a2", title="Other title", url="https://a.com/"),
            BookmarkNode(id="t2", title="A", url="https://different.com/"),
            BookmarkNode(id="f", title="Folder", children=[
                BookmarkNode(id="a3", title="A again", url="https://a.com/"),
                BookmarkNode(id="c", title="A", url="https://c.com/"),
            ]),
        ]
        result = remove_duplicates(nodes)
        self.assertEqual([n.id for n in result], ["a1", "f"])
        # Same title in another folder is allowed
        self.assertEqual([n.id for n in result[1].children], ["c"])

    def test_preview(self):
        self.assertEqual(preview_import(self.build()), {"count": 6, "folders": 2, "bookmarks": 4})


if __name__ == "__main__":
    unittest.main()
