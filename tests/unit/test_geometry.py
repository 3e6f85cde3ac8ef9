import logging

import pytest
from unittest.mock import MagicMock

from pagesense.core.browser_bridge import BrowserBridge
from pagesense.layers.sense.dom_tree import CoordinateSet, ViewportInfo
from pagesense.layers.sense.geometry import GeometryEnhancer
from pagesense.layers.sense.identity import ElementIdentityProcessor
from pagesense.layers.sense.tree_builder import DomTreeBuilder

BUTTON_RECT = {"left": 10, "top": 20, "right": 110, "bottom": 60,
               "width": 100, "height": 40, "scrollX": 0, "scrollY": 200}


@pytest.fixture
def built(raw_result):
    return DomTreeBuilder().build_from_result(raw_result)


def test_enhance_adds_page_and_viewport_coordinates(built, make_bridge):
    bridge = make_bridge(
        geometry={"html/body/div/button": BUTTON_RECT},
        viewport=ViewportInfo(scroll_x=0, scroll_y=200, width=1280, height=720),
    )

    GeometryEnhancer(bridge).enhance(built.dom_tree, previous_hashes=set())

    button = built.selector_map[0]
    assert button.page_coordinates.center.x == 60
    assert button.page_coordinates.center.y == 240
    assert button.page_coordinates.top_left.y == 220
    assert button.page_coordinates.width == 100
    assert button.viewport_coordinates.center.y == 40
    assert button.viewport_coordinates.bottom_right.x == 110
    assert button.viewport_info.width == 1280
    bridge.get_viewport_info.assert_called_once()


def test_element_not_found_keeps_no_coordinates(built, make_bridge):
    bridge = make_bridge(geometry={"html/body/div/button": BUTTON_RECT})

    GeometryEnhancer(bridge).enhance(built.dom_tree, previous_hashes=set())

    assert built.selector_map[0].page_coordinates is not None
    assert built.selector_map[1].page_coordinates is None
    assert built.selector_map[1].viewport_coordinates is None
    assert built.selector_map[1].identity_hash is not None


def test_geometry_exception_is_recovered(built):
    bridge = MagicMock(spec=BrowserBridge)
    bridge.get_viewport_info.return_value = ViewportInfo()

    def geometry(xpath):
        if xpath == "html/body/div/a":
            raise RuntimeError("stale element")
        return BUTTON_RECT

    bridge.get_element_geometry.side_effect = geometry

    result = GeometryEnhancer(bridge).enhance(built.dom_tree, previous_hashes=set())

    assert built.selector_map[0].page_coordinates is not None
    assert built.selector_map[1].page_coordinates is None
    assert built.selector_map[2].page_coordinates is not None
    assert len(result.current_hashes) == 3


def test_viewport_failure_skips_geometry(built, caplog):
    bridge = MagicMock(spec=BrowserBridge)
    bridge.get_viewport_info.side_effect = RuntimeError("no window")

    with caplog.at_level(logging.WARNING):
        result = GeometryEnhancer(bridge).enhance(built.dom_tree, previous_hashes=set())

    bridge.get_element_geometry.assert_not_called()
    assert all(node.page_coordinates is None for node in built.selector_map.values())
    assert len(result.current_hashes) == 3
    assert "Viewport query failed" in caplog.text


def test_current_hashes_match_clickable_hashes(built, make_bridge):
    result = GeometryEnhancer(make_bridge()).enhance(built.dom_tree, previous_hashes=set())

    assert result.enhanced_tree is built.dom_tree
    assert result.current_hashes == ElementIdentityProcessor.clickable_element_hashes(built.dom_tree)
    for node in built.selector_map.values():
        assert node.identity_hash.composite in result.current_hashes


def test_is_new_relative_to_previous_hashes(built, make_bridge):
    previous = {ElementIdentityProcessor.hash_element(built.selector_map[2])}

    GeometryEnhancer(make_bridge()).enhance(built.dom_tree, previous_hashes=previous)

    assert built.selector_map[0].is_new is True
    assert built.selector_map[1].is_new is True
    assert built.selector_map[2].is_new is False


def test_page_coordinates_from_geometry():
    coords = GeometryEnhancer.page_coordinates_from_geometry(BUTTON_RECT)
    assert isinstance(coords, CoordinateSet)
    assert coords.bottom_left.y == 260

    assert GeometryEnhancer.page_coordinates_from_geometry(None) is None
    assert GeometryEnhancer.page_coordinates_from_geometry({"left": 1}) is None


def test_to_viewport_coordinates_subtracts_scroll():
    page = CoordinateSet.from_rect(0, 500, 50, 550)
    viewport = ViewportInfo(scroll_x=0, scroll_y=480)

    coords = GeometryEnhancer.to_viewport_coordinates(page, viewport)

    assert coords.top_left.y == 20
    assert coords.center.x == 25
