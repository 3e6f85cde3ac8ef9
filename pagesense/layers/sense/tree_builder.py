"""
Tree Builder - Flat node map to linked DOM tree.

The extraction script returns every node keyed by an id, with children
referenced by id. Parents can appear before their children, so the tree is
built in two passes: materialise every node, then link them.
"""

from dataclasses import dataclass
from typing import Any, Dict, Mapping
import json
import logging

from pagesense.core.exceptions import MalformedExtractionError
from pagesense.layers.sense.dom_tree import TEXT_TAG, DomArena, DomNode, SelectorMap
from pagesense.layers.sense.raw_nodes import (
    RawElementRecord,
    RawTextRecord,
    UnparseableRecord,
    parse_raw_node,
)

logger = logging.getLogger(__name__)

ROOT_TAG = "body"


@dataclass
class TreeBuildResult:
    """A built tree and the interactive elements indexed by highlight index."""
    dom_tree: DomNode
    selector_map: SelectorMap


class DomTreeBuilder:
    """
    Converts the raw extraction map into a ``DomNode`` tree.

    Only the child lists declared by the extraction script are trusted: a node
    that no parent lists is left out of the tree even if it is in the map.

    Example:
        >>> result = DomTreeBuilder().build(raw["map"], raw["rootId"])
        >>> result.selector_map[0].tag
        'button'
    """

    def build_from_result(self, result: Any) -> TreeBuildResult:
        """
        Validate an extraction envelope and build its tree.

        Args:
            result: ``{"rootId": ..., "map": {...}, "perfMetrics": ...}``

        Raises:
            MalformedExtractionError: if ``map`` or ``rootId`` is missing
        """
        if not isinstance(result, Mapping):
            raise MalformedExtractionError(
                f"Extraction result must be an object, got {type(result).__name__}"
            )
        raw_map = result.get("map")
        root_id = result.get("rootId")
        if not isinstance(raw_map, Mapping):
            raise MalformedExtractionError("Extraction result has no node map")
        if root_id is None or root_id == "":
            raise MalformedExtractionError("Extraction result has no root id")
        return self.build(raw_map, root_id)

    def build(self, raw_map: Mapping[Any, Any], root_id: Any) -> TreeBuildResult:
        """
        Build the tree rooted at ``root_id``.

        Args:
            raw_map: Raw node records keyed by id
            root_id: Id of the root record

        Returns:
            TreeBuildResult with the root node and the selector map
        """
        arena = DomArena()
        nodes: Dict[str, DomNode] = {}
        child_ids: Dict[str, list] = {}
        selector_map: SelectorMap = {}

        # Pass 1: materialise
        for raw_id, data in raw_map.items():
            node_id = str(raw_id)
            record = parse_raw_node(data)
            if isinstance(record, UnparseableRecord):
                logger.warning(
                    f"[TreeBuilder] Skipping node {node_id}: {record.reason} "
                    f"({self._preview(record.raw)})"
                )
                continue

            node = arena.add(self._create_node(record))
            nodes[node_id] = node
            if isinstance(record, RawElementRecord):
                child_ids[node_id] = record.child_ids

            if node.highlight_index is not None:
                existing = selector_map.get(node.highlight_index)
                if existing is not None:
                    logger.error(
                        f"[TreeBuilder] Duplicate highlight index {node.highlight_index} "
                        f"on node {node_id}; keeping the first <{existing.tag}>"
                    )
                else:
                    selector_map[node.highlight_index] = node

        root = nodes.get(str(root_id))
        if root is None:
            logger.error(f"[TreeBuilder] Root node {root_id} not found in node map")
            return TreeBuildResult(dom_tree=self.create_empty_body_node(), selector_map={})

        # Pass 2: link. Each node gets at most one parent and the root none,
        # so the result is always a tree.
        for node_id, children in child_ids.items():
            parent = nodes[node_id]
            for child_id in children:
                child = nodes.get(child_id)
                if child is None:
                    logger.warning(
                        f"[TreeBuilder] Child node {child_id} of parent {node_id} not found"
                    )
                    continue
                linked = child.parent_slot is not None
                if child is root or linked or self._is_ancestor(child, parent):
                    logger.warning(
                        f"[TreeBuilder] Ignoring link {node_id} -> {child_id}: "
                        f"child is the root, already linked or an ancestor of its parent"
                    )
                    continue
                arena.link(parent, child)

        logger.debug(
            f"[TreeBuilder] Built tree with {len(arena)} nodes, "
            f"{len(selector_map)} indexed elements"
        )
        return TreeBuildResult(dom_tree=root, selector_map=selector_map)

    @staticmethod
    def create_empty_body_node() -> DomNode:
        """Fallback root used for blank pages and unusable extraction results."""
        arena = DomArena()
        return arena.add(DomNode(
            tag=ROOT_TAG,
            xpath=f"/{ROOT_TAG}",
            is_visible=True,
            is_interactive=False,
            is_top_element=True,
            is_in_viewport=True,
        ))

    @staticmethod
    def _is_ancestor(candidate: DomNode, node: DomNode) -> bool:
        """Whether ``candidate`` is ``node`` or one of its ancestors."""
        current = node
        while current is not None:
            if current is candidate:
                return True
            current = current.parent
        return False

    @staticmethod
    def _create_node(record) -> DomNode:
        if isinstance(record, RawTextRecord):
            return DomNode(
                tag=TEXT_TAG,
                text=record.text,
                is_visible=record.is_visible,
                is_interactive=False,
                is_top_element=False,
                is_in_viewport=True,
            )
        return DomNode(
            tag=record.tag_name,
            attributes=dict(record.attributes),
            xpath=record.xpath,
            is_visible=record.is_visible,
            is_interactive=record.is_interactive,
            is_top_element=record.is_top_element,
            is_in_viewport=record.is_in_viewport,
            highlight_index=record.highlight_index,
            has_shadow_root=record.has_shadow_root,
        )

    @staticmethod
    def _preview(raw: Any, limit: int = 120) -> str:
        try:
            text = json.dumps(raw, default=str)
        except (TypeError, ValueError):
            text = repr(raw)
        return text if len(text) <= limit else text[:limit] + "..."
