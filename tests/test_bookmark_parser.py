import json

import pytest

from linkflow.services.bookmark_parser import (
    FolderNode,
    LinkNode,
    count_links,
    node_to_dict,
    nodes_from_payload,
    normalize_browser,
    parse_bookmark_file,
)
from linkflow.services.errors import ImportValidationError

NETSCAPE_EXPORT = """
<!DOCTYPE NETSCAPE-Bookmark-file-1>
<META HTTP-EQUIV="Content-Type" CONTENT="text/html; charset=UTF-8">
<TITLE>Bookmarks</TITLE>
<H1>Bookmarks</H1>
<DL><p>
  <DT><H3>Root Folder</H3>
  <DL><p>
    <DT><A HREF="https://example.com/a">A</A>
    <DT><H3>Inner Folder</H3>
    <DL><p>
      <DT><A HREF="https://example.com/b">B</A>
      <DT><A HREF="https://example.com/c#frag">C</A>
    </DL><p>
  </DL><p>
  <DT><A HREF="https://example.com/root">Root Link</A>
</DL><p>
"""


def test_parse_bookmark_file_builds_nested_forest():
    forest = parse_bookmark_file(NETSCAPE_EXPORT)

    assert len(forest) == 2
    root_folder, root_link = forest
    assert isinstance(root_folder, FolderNode)
    assert root_folder.title == "Root Folder"
    assert root_folder.identifier == "Root Folder"
    assert root_link == LinkNode(
        identifier="https://example.com/root",
        title="Root Link",
        url="https://example.com/root",
    )

    first, inner = root_folder.children
    assert first.url == "https://example.com/a"
    assert isinstance(inner, FolderNode)
    assert inner.title == "Inner Folder"
    assert [child.url for child in inner.children] == [
        "https://example.com/b",
        "https://example.com/c#frag",
    ]


def test_parse_bookmark_file_preserves_folder_order():
    html = """
<DL><p>
  <DT><H3>F1</H3>
  <DL><p>
    <DT><A HREF="https://one.example">L1</A>
  </DL><p>
  <DT><H3>F2</H3>
  <DL><p>
    <DT><A HREF="https://two.example">L2</A>
  </DL><p>
</DL><p>
"""
    forest = parse_bookmark_file(html)
    assert [node.title for node in forest] == ["F1", "F2"]
    assert [child.title for child in forest[0].children] == ["L1"]
    assert [child.title for child in forest[1].children] == ["L2"]


def test_parse_bookmark_file_single_link():
    forest = parse_bookmark_file('<DL><p><DT><A HREF="https://a.com">A</A></DL>')
    assert forest == [
        LinkNode(identifier="https://a.com", title="A", url="https://a.com")
    ]


@pytest.mark.parametrize(
    "html",
    ["", "   ", "<html><body><p>nothing to see</p></body></html>"],
)
def test_parse_bookmark_file_without_root_list_is_empty(html):
    assert parse_bookmark_file(html) == []


def test_parse_bookmark_file_keeps_links_without_href():
    html = """
<DL><p>
  <DT><A HREF="">Empty</A>
  <DT><A>Missing</A>
  <DT><A HREF="https://example.com/ok">   </A>
</DL><p>
"""
    forest = parse_bookmark_file(html)
    assert [(node.url, node.title) for node in forest] == [
        ("", "Empty"),
        ("", "Missing"),
        ("https://example.com/ok", ""),
    ]


def test_parse_bookmark_file_skips_unrecognized_items():
    html = """
<DL><p>
  <DT><H3>Heading without list</H3>
  <DT><span>just text</span>
  <DD>A description line
  <DT><A HREF="https://example.com/kept">Kept</A>
</DL><p>
"""
    forest = parse_bookmark_file(html)
    assert [node.url for node in forest] == ["https://example.com/kept"]


def test_parse_bookmark_file_handles_deep_nesting():
    depth = 40
    html = "<DL><p>"
    for level in range(depth):
        html += f"<DT><H3>Level {level}</H3><DL><p>"
    html += '<DT><A HREF="https://deep.example">Deep</A>'
    html += "</DL><p>" * (depth + 1)

    node = parse_bookmark_file(html)[0]
    for level in range(depth):
        assert isinstance(node, FolderNode)
        assert node.title == f"Level {level}"
        node = node.children[0]
    assert node.url == "https://deep.example"


def test_browser_hint_does_not_change_result():
    chrome = parse_bookmark_file(NETSCAPE_EXPORT, "chrome")
    for browser in ("firefox", "safari", "ie", "netscape", None):
        assert parse_bookmark_file(NETSCAPE_EXPORT, browser) == chrome


def test_normalize_browser_falls_back_to_chrome():
    assert normalize_browser("Firefox ") == "firefox"
    assert normalize_browser("opera") == "chrome"
    assert normalize_browser(None) == "chrome"


def test_nodes_from_payload_decodes_client_tree():
    raw = """[
      {"id": "Work", "title": "Work", "children": [
        {"id": "https://a.example", "title": "A", "url": "https://a.example"},
        {"title": "no shape"}
      ]},
      {"id": "x", "title": "Both", "url": "https://both.example", "children": []},
      "garbage"
    ]"""
    nodes = nodes_from_payload(raw)

    assert len(nodes) == 2
    work, both = nodes
    assert isinstance(work, FolderNode)
    assert work.children == [
        LinkNode(identifier="https://a.example", title="A", url="https://a.example")
    ]
    assert isinstance(both, LinkNode)
    assert count_links(nodes) == 2


@pytest.mark.parametrize("raw", ["{not json", '{"title": "object"}', "null"])
def test_nodes_from_payload_rejects_non_arrays(raw):
    with pytest.raises(ImportValidationError):
        nodes_from_payload(raw)


def test_node_to_dict_serializes_forest():
    forest = parse_bookmark_file(NETSCAPE_EXPORT)
    payload = [node_to_dict(node) for node in forest]
    assert payload[1] == {
        "id": "https://example.com/root",
        "title": "Root Link",
        "url": "https://example.com/root",
    }
    assert payload[0]["children"][1]["title"] == "Inner Folder"
    assert nodes_from_payload(json.dumps(payload)) == forest


def test_node_to_dict_handles_deep_folders():
    depth = 1500
    node = LinkNode(
        identifier="https://deep.example", title="Deep", url="https://deep.example"
    )
    for level in range(depth):
        node = FolderNode(identifier=f"F{level}", title=f"F{level}", children=[node])

    payload = node_to_dict(node)
    for _ in range(depth):
        payload = payload["children"][0]
    assert payload == {
        "id": "https://deep.example",
        "title": "Deep",
        "url": "https://deep.example",
    }


def test_nodes_from_payload_converts_nested_folders():
    depth = 300
    raw = '{"title": "F", "children": [' * depth
    raw += '{"title": "Leaf", "url": "https://leaf.example"}'
    raw += "]}" * depth

    node = nodes_from_payload(f"[{raw}]")[0]
    for _ in range(depth):
        assert isinstance(node, FolderNode)
        node = node.children[0]
    assert node.url == "https://leaf.example"
