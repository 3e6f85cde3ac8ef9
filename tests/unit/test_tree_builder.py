import json
import logging

import pytest

from pagesense.core.exceptions import MalformedExtractionError
from pagesense.layers.sense.dom_tree import TEXT_TAG
from pagesense.layers.sense.identity import ElementIdentityProcessor
from pagesense.layers.sense.tree_builder import DomTreeBuilder
from pagesense.reporters.history_store import HistoryRecord


def _find(tree, tag):
    return next(node for node in tree.iter_subtree() if node.tag == tag)


def test_build_links_children_in_declared_order(raw_result):
    result = DomTreeBuilder().build_from_result(raw_result)
    root = result.dom_tree

    assert root.tag == "body"
    assert root.parent is None
    assert [child.tag for child in root.children] == ["div", "input"]
    div = root.children[0]
    assert [child.tag for child in div.children] == ["button", "a", TEXT_TAG]
    for node in root.iter_subtree():
        for child in node.children:
            assert child.parent is node


def test_tree_shape_matches_raw_map(raw_map):
    """Every element keeps its tag, xpath and declared children."""
    result = DomTreeBuilder().build(raw_map, "0")

    def shape_from_raw(node_id):
        data = raw_map[node_id]
        if data.get("type") == "TEXT_NODE":
            return (TEXT_TAG, data["text"])
        return (data["tagName"], data["xpath"], [shape_from_raw(c) for c in data["children"]])

    def shape_from_tree(node):
        if node.is_text:
            return (TEXT_TAG, node.text)
        return (node.tag, node.xpath, [shape_from_tree(c) for c in node.children])

    assert shape_from_tree(result.dom_tree) == shape_from_raw("0")


def test_text_nodes_use_reserved_shape(raw_result):
    tree = DomTreeBuilder().build_from_result(raw_result).dom_tree
    text = _find(tree, TEXT_TAG)

    assert text.attributes == {}
    assert text.xpath == ""
    assert text.is_interactive is False
    assert text.is_top_element is False
    assert text.is_in_viewport is True


def test_selector_map_points_at_tree_nodes(raw_result):
    result = DomTreeBuilder().build_from_result(raw_result)
    in_tree = {id(node) for node in result.dom_tree.iter_subtree()}

    assert sorted(result.selector_map) == [0, 1, 2]
    for index, node in result.selector_map.items():
        assert node.highlight_index == index
        assert id(node) in in_tree
    assert result.selector_map[0] is _find(result.dom_tree, "button")


def test_missing_child_is_skipped(raw_map, caplog):
    raw_map["1"]["children"] = ["2", "missing", "3"]

    with caplog.at_level(logging.WARNING):
        result = DomTreeBuilder().build(raw_map, "0")

    div = result.dom_tree.children[0]
    assert [child.tag for child in div.children] == ["button", "a"]
    assert "missing" in caplog.text


def test_missing_root_returns_fallback(raw_map, caplog):
    with caplog.at_level(logging.ERROR):
        result = DomTreeBuilder().build(raw_map, "does-not-exist")

    root = result.dom_tree
    assert root.tag == "body"
    assert root.xpath == "/body"
    assert root.children == []
    assert root.highlight_index is None
    assert root.is_visible and root.is_top_element and root.is_in_viewport
    assert result.selector_map == {}
    assert "does-not-exist" in caplog.text


def test_unparseable_entries_are_skipped(raw_map, caplog):
    raw_map["7"] = {"xpath": "html/body/nothing"}
    raw_map["1"]["children"].append("7")

    with caplog.at_level(logging.WARNING):
        result = DomTreeBuilder().build(raw_map, "0")

    assert len(list(result.dom_tree.iter_subtree())) == len(raw_map) - 1
    assert "Skipping node 7" in caplog.text


def test_orphans_are_not_attached(raw_map):
    raw_map["8"] = {"tagName": "button", "xpath": "html/body/button[9]", "children": [],
                    "isVisible": True, "isInteractive": True, "isTopElement": True,
                    "highlightIndex": 8}
    result = DomTreeBuilder().build(raw_map, "0")

    xpaths = {node.xpath for node in result.dom_tree.iter_subtree()}
    assert "html/body/button[9]" not in xpaths
    # Still indexed: the selector map is built before linking
    assert 8 in result.selector_map


def test_duplicate_highlight_index_keeps_first(raw_map, caplog):
    raw_map["3"]["highlightIndex"] = 0

    with caplog.at_level(logging.ERROR):
        result = DomTreeBuilder().build(raw_map, "0")

    assert result.selector_map[0].tag == "button"
    assert "Duplicate highlight index 0" in caplog.text


@pytest.mark.parametrize("bad", [
    None,
    [],
    {"rootId": "0"},
    {"map": {}},
    {"map": {}, "rootId": ""},
    {"map": [], "rootId": "0"},
])
def test_build_from_result_rejects_malformed(bad):
    with pytest.raises(MalformedExtractionError):
        DomTreeBuilder().build_from_result(bad)


def test_integer_ids_are_normalised():
    raw = {
        0: {"tagName": "body", "childIds": [1]},
        1: {"isText": True, "text": "hi"},
    }
    tree = DomTreeBuilder().build(raw, 0).dom_tree
    assert [child.text for child in tree.children] == ["hi"]


def test_to_dict_is_cycle_free(raw_result):
    tree = DomTreeBuilder().build_from_result(raw_result).dom_tree
    data = tree.to_dict()

    json.dumps(data)
    assert data["parent_slot"] is None
    for child in data["children"]:
        assert child["parent_slot"] == data["slot"]


def test_minimal_page_has_no_indexed_elements():
    raw = {
        "1": {"tagName": "body", "childIds": ["2"]},
        "2": {"tagName": "div", "childIds": ["3"]},
        "3": {"isText": True, "text": "Hello"},
    }
    result = DomTreeBuilder().build(raw, "1")

    body = result.dom_tree
    assert body.tag == "body"
    assert [child.tag for child in body.children] == ["div"]
    div = body.children[0]
    assert [child.text for child in div.children] == ["Hello"]
    assert div.children[0].parent is div
    assert result.selector_map == {}


def test_malformed_child_list_is_skipped_not_coerced(raw_map, caplog):
    raw_map["1"]["children"] = "01"

    with caplog.at_level(logging.WARNING):
        result = DomTreeBuilder().build(raw_map, "0")

    root = result.dom_tree
    assert [child.tag for child in root.children] == ["input"]
    assert "child list" in caplog.text


def test_non_numeric_highlight_index_does_not_abort_build(raw_map):
    raw_map["3"]["highlightIndex"] = "abc"

    result = DomTreeBuilder().build(raw_map, "0")

    assert sorted(result.selector_map) == [0, 2]
    div = result.dom_tree.children[0]
    assert [child.tag for child in div.children] == ["button", TEXT_TAG]


@pytest.mark.parametrize("mutate", [
    # div lists itself
    lambda raw: raw["1"]["children"].insert(0, "1"),
    # div lists the root
    lambda raw: raw["1"]["children"].append("0"),
    # input lists its sibling div
    lambda raw: raw["5"]["children"].append("1"),
    # button and anchor list each other
    lambda raw: (raw["2"]["children"].append("3"), raw["3"]["children"].append("2")),
    # a second parent claims the button
    lambda raw: raw["5"]["children"].append("2"),
])
def test_bad_links_keep_a_tree(raw_map, caplog, mutate):
    mutate(raw_map)

    with caplog.at_level(logging.WARNING):
        result = DomTreeBuilder().build(raw_map, "0")

    root = result.dom_tree
    assert root.parent is None
    nodes = list(root.iter_subtree())
    assert len(nodes) == 7
    for node in nodes:
        for child in node.children:
            assert child.parent is node
    for node in result.selector_map.values():
        # Terminates and reaches the root
        assert ElementIdentityProcessor.branch_path(node)[-1] == node.tag
        assert HistoryRecord.from_node(node).ancestor_tag_path[0] == "body"
    json.dumps(root.to_dict())
    assert "Ignoring link" in caplog.text


def test_detached_cycle_is_broken(raw_map, caplog):
    raw_map["7"] = {"tagName": "div", "xpath": "html/div[7]", "children": ["8"],
                    "highlightIndex": 7}
    raw_map["8"] = {"tagName": "span", "xpath": "html/div[7]/span", "children": ["8", "7"],
                    "highlightIndex": 8}

    with caplog.at_level(logging.WARNING):
        result = DomTreeBuilder().build(raw_map, "0")

    detached, inner = result.selector_map[7], result.selector_map[8]
    assert detached.parent is None
    assert inner.parent is detached
    assert inner.children == []
    assert ElementIdentityProcessor.branch_path(inner) == ["span"]
    assert caplog.text.count("Ignoring link") == 2
