from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Union, cast

from bs4 import BeautifulSoup, Tag

from linkflow.services.errors import ImportValidationError

BROWSER_CHROME = "chrome"
BROWSER_FIREFOX = "firefox"
BROWSER_SAFARI = "safari"
BROWSER_IE = "ie"
BROWSER_TYPES = (BROWSER_CHROME, BROWSER_FIREFOX, BROWSER_SAFARI, BROWSER_IE)

_FOLDER_HEADINGS = ["h3", "h2", "h1"]


@dataclass
class LinkNode:
    identifier: str
    title: str
    url: str


@dataclass
class FolderNode:
    identifier: str
    title: str
    children: list[BookmarkNode] = field(default_factory=list)


BookmarkNode = Union[LinkNode, FolderNode]


def normalize_browser(value: str | None) -> str:
    browser = (value or "").strip().lower()
    if browser not in BROWSER_TYPES:
        return BROWSER_CHROME
    return browser


def _iter_dt_entries(dl: Tag) -> list[Tag]:
    entries: list[Tag] = []
    for dt in dl.find_all("dt"):
        if not isinstance(dt, Tag):
            continue
        parent_dl = dt.find_parent("dl")
        if parent_dl is dl:
            entries.append(cast(Tag, dt))
    return entries


def _find_nested_dl(dt: Tag) -> Tag | None:
    for nested in dt.find_all("dl"):
        if isinstance(nested, Tag) and nested.find_parent("dt") is dt:
            return nested

    # lxml may close the <DT> before the folder's <DL>
    sibling = dt.next_sibling
    while sibling is not None:
        if isinstance(sibling, Tag):
            name = (sibling.name or "").lower()
            if name == "dl":
                return sibling
            if name == "dt":
                return None
        sibling = sibling.next_sibling
    return None


def _find_anchor_in_dt(dt: Tag) -> Tag | None:
    for anchor in dt.find_all("a"):
        if isinstance(anchor, Tag) and anchor.find_parent("dt") is dt:
            return anchor
    return None


def _find_folder_in_dt(dt: Tag) -> Tag | None:
    for folder in dt.find_all(_FOLDER_HEADINGS):
        if isinstance(folder, Tag) and folder.find_parent("dt") is dt:
            return folder
    return None


def _link_from_anchor(anchor: Tag) -> LinkNode:
    href_value = anchor.get("href")
    href = href_value.strip() if isinstance(href_value, str) else ""
    return LinkNode(identifier=href, title=anchor.get_text().strip(), url=href)


def parse_bookmark_file(
    html: str, browser: str | None = BROWSER_CHROME
) -> list[BookmarkNode]:
    """Parse a Netscape-format bookmark export into a forest of nodes.

    Every supported browser writes the same nested ``<DL>``/``<DT>`` layout,
    so ``browser`` only selects among aliases of one structural parser.
    Shapes that are neither a link nor a heading followed by a list are
    skipped; the function never raises on malformed markup.
    """
    if not html or not html.strip():
        return []

    soup = BeautifulSoup(html, "lxml")
    root = soup.find("dl")
    if not isinstance(root, Tag):
        return []

    forest: list[BookmarkNode] = []
    pending: list[tuple[Tag, list[BookmarkNode]]] = [(root, forest)]
    visited: set[int] = set()

    # explicit stack so folder depth is bounded by memory, not recursion
    while pending:
        dl, out = pending.pop()
        if id(dl) in visited:
            continue
        visited.add(id(dl))

        for dt in _iter_dt_entries(dl):
            anchor = _find_anchor_in_dt(dt)
            if anchor is not None:
                out.append(_link_from_anchor(anchor))
                continue

            heading = _find_folder_in_dt(dt)
            nested_dl = _find_nested_dl(dt)
            if heading is None or nested_dl is None:
                continue

            name = heading.get_text().strip()
            folder = FolderNode(identifier=name, title=name)
            out.append(folder)
            pending.append((nested_dl, folder.children))

    return forest


def _node_from_dict(item) -> BookmarkNode | None:
    if not isinstance(item, dict):
        return None
    title = str(item.get("title") or "").strip()
    if "url" in item and item["url"] is not None:
        url = str(item["url"])
        identifier = str(item.get("id") or url)
        return LinkNode(identifier=identifier, title=title, url=url)

    if isinstance(item.get("children"), list):
        return FolderNode(identifier=str(item.get("id") or title), title=title)
    return None


def _nodes_from_list(items: list) -> list[BookmarkNode]:
    nodes: list[BookmarkNode] = []
    pending: list[tuple[list, list[BookmarkNode]]] = [(items, nodes)]
    while pending:
        batch, out = pending.pop()
        for item in batch:
            node = _node_from_dict(item)
            if node is None:
                continue
            out.append(node)
            if isinstance(node, FolderNode):
                pending.append((item["children"], node.children))
    return nodes


def nodes_from_payload(raw: str) -> list[BookmarkNode]:
    """Decode a JSON array of ``{id, title, url?, children?}`` objects.

    A ``url`` key wins over ``children``; entries with neither are dropped.
    """
    try:
        data = json.loads(raw)
    except RecursionError as exc:
        raise ImportValidationError("bookmarks payload is nested too deeply") from exc
    except (TypeError, ValueError) as exc:
        raise ImportValidationError("bookmarks payload is not valid JSON") from exc
    if not isinstance(data, list):
        raise ImportValidationError("bookmarks payload must be a JSON array")
    return _nodes_from_list(data)


def node_to_dict(node: BookmarkNode) -> dict:
    root: dict = {}
    pending: list[tuple[BookmarkNode, dict]] = [(node, root)]
    while pending:
        current, out = pending.pop()
        if isinstance(current, LinkNode):
            out.update(id=current.identifier, title=current.title, url=current.url)
        elif isinstance(current, FolderNode):
            out.update(id=current.identifier, title=current.title, children=[])
            for child in current.children:
                child_out: dict = {}
                out["children"].append(child_out)
                pending.append((child, child_out))
        else:
            raise TypeError(f"unsupported bookmark node: {current!r}")
    return root


def count_links(nodes: list[BookmarkNode]) -> int:
    total = 0
    stack = list(nodes)
    while stack:
        node = stack.pop()
        if isinstance(node, LinkNode):
            total += 1
        elif isinstance(node, FolderNode):
            stack.extend(node.children)
    return total
