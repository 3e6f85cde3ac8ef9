"""
Geometry Enhancer - Coordinates, identity and novelty for clickable elements.

Runs after tree building. Each clickable element gets its identity hash,
its bounding box in page and viewport space (when the browser can still find
it), and an ``is_new`` flag relative to the previous capture.
"""

from dataclasses import dataclass
from typing import Any, Dict, Optional, Set, TYPE_CHECKING
import logging

from pagesense.layers.sense.dom_tree import CoordinateSet, DomNode, ViewportInfo
from pagesense.layers.sense.identity import ElementIdentityProcessor

if TYPE_CHECKING:
    from pagesense.core.browser_bridge import BrowserBridge

logger = logging.getLogger(__name__)


@dataclass
class EnhancementResult:
    enhanced_tree: DomNode
    current_hashes: Set[str]


class GeometryEnhancer:
    """
    Annotates clickable nodes of a built tree.

    Geometry lookups are best-effort: an element the browser can no longer
    find simply keeps no coordinates, and a capture where no element could
    be located is still a valid capture.

    Example:
        >>> enhancer = GeometryEnhancer(bridge)
        >>> result = enhancer.enhance(tree, previous_hashes=set())
        >>> result.current_hashes
    """

    def __init__(self, bridge: "BrowserBridge"):
        """
        Args:
            bridge: Browser bridge used for viewport and geometry queries
        """
        self.bridge = bridge

    def enhance(self, tree: DomNode, previous_hashes: Set[str]) -> EnhancementResult:
        """
        Enhance ``tree`` in place.

        Args:
            tree: Root of the tree produced by the tree builder
            previous_hashes: Composite hashes of the previous capture

        Returns:
            EnhancementResult with the same tree and this capture's hash set
        """
        clickable = ElementIdentityProcessor.clickable_elements(tree)
        for node in clickable:
            node.identity_hash = ElementIdentityProcessor.identity_hash(node)

        self._add_coordinates(clickable)

        current_hashes = {node.identity_hash.composite for node in clickable}
        ElementIdentityProcessor.mark_new_elements(tree, previous_hashes)

        located = sum(1 for node in clickable if node.page_coordinates is not None)
        new_count = sum(1 for node in clickable if node.is_new)
        logger.debug(
            f"[GeometryEnhancer] {len(clickable)} clickable elements, "
            f"{located} located, {new_count} new"
        )
        return EnhancementResult(enhanced_tree=tree, current_hashes=current_hashes)

    def _add_coordinates(self, clickable) -> None:
        if not clickable:
            return
        try:
            viewport = self.bridge.get_viewport_info()
        except Exception as e:
            logger.warning(f"[GeometryEnhancer] Viewport query failed, skipping geometry: {e}")
            return

        for node in clickable:
            if not node.xpath:
                continue
            try:
                geometry = self.bridge.get_element_geometry(node.xpath)
            except Exception as e:
                logger.debug(f"[GeometryEnhancer] Geometry lookup failed for {node.xpath}: {e}")
                continue
            page_coordinates = self.page_coordinates_from_geometry(geometry)
            if page_coordinates is None:
                continue
            node.page_coordinates = page_coordinates
            node.viewport_coordinates = self.to_viewport_coordinates(page_coordinates, viewport)
            node.viewport_info = viewport

    @staticmethod
    def page_coordinates_from_geometry(geometry: Optional[Dict[str, Any]]) -> Optional[CoordinateSet]:
        """
        Convert a bounding rect plus scroll offset into page coordinates.

        Args:
            geometry: ``{left, top, right, bottom, scrollX, scrollY}`` or None

        Returns:
            CoordinateSet in page space, or None when the element was not found
        """
        if not geometry:
            return None
        try:
            return CoordinateSet.from_rect(
                left=float(geometry["left"]),
                top=float(geometry["top"]),
                right=float(geometry["right"]),
                bottom=float(geometry["bottom"]),
                offset_x=float(geometry.get("scrollX") or 0),
                offset_y=float(geometry.get("scrollY") or 0),
            )
        except (KeyError, TypeError, ValueError) as e:
            logger.debug(f"[GeometryEnhancer] Unusable geometry {geometry!r}: {e}")
            return None

    @staticmethod
    def to_viewport_coordinates(page_coordinates: CoordinateSet, viewport: ViewportInfo) -> CoordinateSet:
        return page_coordinates.shifted(-viewport.scroll_x, -viewport.scroll_y)
