import copy

import pytest
from unittest.mock import MagicMock

from pagesense.core.browser_bridge import BrowserBridge
from pagesense.layers.sense.dom_tree import ViewportInfo


PAGE_MAP = {
    "0": {"tagName": "body", "xpath": "html/body", "attributes": {},
          "children": ["1", "5"], "isVisible": True},
    "1": {"tagName": "div", "xpath": "html/body/div", "attributes": {"id": "menu"},
          "children": ["2", "3", "4"], "isVisible": True},
    "2": {"tagName": "button", "xpath": "html/body/div/button",
          "attributes": {"id": "save", "class": "btn primary"}, "children": ["6"],
          "isVisible": True, "isInteractive": True, "isTopElement": True,
          "isInViewport": True, "highlightIndex": 0},
    "3": {"tagName": "a", "xpath": "html/body/div/a", "attributes": {"href": "/help"},
          "children": [], "isVisible": True, "isInteractive": True, "isTopElement": True,
          "isInViewport": True, "highlightIndex": 1},
    "4": {"type": "TEXT_NODE", "text": "Menu", "isVisible": True},
    "5": {"tagName": "input", "xpath": "html/body/input",
          "attributes": {"name": "q", "type": "text", "placeholder": "Search"},
          "children": [], "isVisible": True, "isInteractive": True, "isTopElement": True,
          "isInViewport": True, "highlightIndex": 2},
    "6": {"type": "TEXT_NODE", "text": "Save", "isVisible": True},
}


@pytest.fixture
def raw_map():
    """Flat node map of a small page: a menu with two controls and a search box."""
    return copy.deepcopy(PAGE_MAP)


@pytest.fixture
def raw_result(raw_map):
    return {"rootId": "0", "map": raw_map}


@pytest.fixture
def make_buttons_result():
    """Factory for an extraction result with one clickable button per id."""
    def _make(button_ids, extra_attributes=None):
        raw = {"0": {"tagName": "body", "xpath": "html/body", "attributes": {},
                     "children": [], "isVisible": True}}
        for position, button_id in enumerate(button_ids):
            node_id = str(position + 1)
            attributes = {"id": button_id}
            attributes.update((extra_attributes or {}).get(button_id, {}))
            raw[node_id] = {
                "tagName": "button",
                "xpath": f"html/body/button[{position + 1}]",
                "attributes": attributes,
                "children": [],
                "isVisible": True,
                "isInteractive": True,
                "isTopElement": True,
                "isInViewport": True,
                "highlightIndex": position,
            }
            raw["0"]["children"].append(node_id)
        return {"rootId": "0", "map": raw}
    return _make


@pytest.fixture
def make_bridge():
    """Factory for a mocked browser bridge serving fixed extraction results."""
    def _make(result=None, url="https://example.com/", title="Example", geometry=None,
              viewport=None):
        bridge = MagicMock(spec=BrowserBridge)
        bridge.current_url.return_value = url
        bridge.title.return_value = title
        bridge.evaluate_dom_tree.return_value = result
        bridge.get_viewport_info.return_value = viewport or ViewportInfo()
        rects = geometry or {}
        bridge.get_element_geometry.side_effect = lambda xpath: rects.get(xpath)
        return bridge
    return _make
