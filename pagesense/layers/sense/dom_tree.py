"""
DOM Tree - Typed, arena-backed page tree.

Nodes live in a flat ``DomArena`` and reference each other by slot index.
``DomNode.parent`` and ``DomNode.children`` are resolved through the arena,
which keeps the in-process API natural while ``to_dict()`` stays free of
back-references and can cross any serialization boundary.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Optional, TYPE_CHECKING

if TYPE_CHECKING:
    from pagesense.layers.sense.identity import IdentityHash


TEXT_TAG = "#text"


@dataclass(frozen=True)
class Point:
    """A single x/y position in CSS pixels."""
    x: float
    y: float

    def to_dict(self) -> Dict[str, float]:
        return {"x": self.x, "y": self.y}


@dataclass(frozen=True)
class CoordinateSet:
    """Four corners plus center of an element's bounding box."""
    top_left: Point
    top_right: Point
    bottom_left: Point
    bottom_right: Point
    center: Point
    width: float
    height: float

    @classmethod
    def from_rect(
        cls,
        left: float,
        top: float,
        right: float,
        bottom: float,
        offset_x: float = 0.0,
        offset_y: float = 0.0,
    ) -> "CoordinateSet":
        """
        Build the five reference points of a bounding rectangle.

        Args:
            left, top, right, bottom: Rectangle edges
            offset_x, offset_y: Added to every point (e.g. scroll offset)
        """
        width = right - left
        height = bottom - top
        return cls(
            top_left=Point(left + offset_x, top + offset_y),
            top_right=Point(right + offset_x, top + offset_y),
            bottom_left=Point(left + offset_x, bottom + offset_y),
            bottom_right=Point(right + offset_x, bottom + offset_y),
            center=Point(left + width / 2 + offset_x, top + height / 2 + offset_y),
            width=width,
            height=height,
        )

    def shifted(self, dx: float, dy: float) -> "CoordinateSet":
        """Return a copy with every point moved by (dx, dy)."""
        def move(point: Point) -> Point:
            return Point(point.x + dx, point.y + dy)

        return CoordinateSet(
            top_left=move(self.top_left),
            top_right=move(self.top_right),
            bottom_left=move(self.bottom_left),
            bottom_right=move(self.bottom_right),
            center=move(self.center),
            width=self.width,
            height=self.height,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "top_left": self.top_left.to_dict(),
            "top_right": self.top_right.to_dict(),
            "bottom_left": self.bottom_left.to_dict(),
            "bottom_right": self.bottom_right.to_dict(),
            "center": self.center.to_dict(),
            "width": self.width,
            "height": self.height,
        }


@dataclass(frozen=True)
class ViewportInfo:
    """Scroll offset and size of the browser viewport at one moment."""
    scroll_x: float = 0.0
    scroll_y: float = 0.0
    width: float = 1920.0
    height: float = 1080.0

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ViewportInfo":
        """Accept the camelCase shape returned by the page script."""
        default = cls()
        return cls(
            scroll_x=float(data.get("scrollX", data.get("scroll_x", default.scroll_x)) or 0),
            scroll_y=float(data.get("scrollY", data.get("scroll_y", default.scroll_y)) or 0),
            width=float(data.get("width", default.width) or 0),
            height=float(data.get("height", default.height) or 0),
        )

    def to_dict(self) -> Dict[str, float]:
        return {
            "scroll_x": self.scroll_x,
            "scroll_y": self.scroll_y,
            "width": self.width,
            "height": self.height,
        }


@dataclass(eq=False)
class DomNode:
    """
    A processed page node.

    Element nodes carry the flags reported by the extraction script; text
    nodes use the reserved ``#text`` tag. Geometry, identity and novelty are
    filled in later by the enhancement pass, and only for clickable elements.
    """
    tag: str
    attributes: Dict[str, str] = field(default_factory=dict)
    xpath: str = ""
    text: Optional[str] = None
    is_visible: bool = False
    is_interactive: bool = False
    is_top_element: bool = False
    is_in_viewport: bool = True
    highlight_index: Optional[int] = None
    has_shadow_root: bool = False
    is_new: Optional[bool] = None
    page_coordinates: Optional[CoordinateSet] = None
    viewport_coordinates: Optional[CoordinateSet] = None
    viewport_info: Optional[ViewportInfo] = None
    identity_hash: Optional["IdentityHash"] = None
    slot: int = field(default=-1, repr=False)
    parent_slot: Optional[int] = field(default=None, repr=False)
    child_slots: List[int] = field(default_factory=list, repr=False)
    arena: Optional["DomArena"] = field(default=None, repr=False)

    @property
    def parent(self) -> Optional["DomNode"]:
        if self.arena is None or self.parent_slot is None:
            return None
        return self.arena.nodes[self.parent_slot]

    @property
    def children(self) -> List["DomNode"]:
        if self.arena is None:
            return []
        return [self.arena.nodes[slot] for slot in self.child_slots]

    @property
    def is_text(self) -> bool:
        return self.tag == TEXT_TAG

    @property
    def is_clickable(self) -> bool:
        """Interactive, on top, and indexed by the extraction script."""
        return self.highlight_index is not None and self.is_interactive and self.is_top_element

    def iter_subtree(self) -> Iterator["DomNode"]:
        """Yield this node and its descendants in document (pre-)order."""
        seen = set()
        stack = [self]
        while stack:
            node = stack.pop()
            if id(node) in seen:
                continue
            seen.add(id(node))
            yield node
            stack.extend(reversed(node.children))

    def to_dict(self, include_children: bool = True) -> Dict[str, Any]:
        """Convert to a JSON-friendly dict; the parent appears as a slot index."""
        data: Dict[str, Any] = {
            "slot": self.slot,
            "parent_slot": self.parent_slot,
            "tag": self.tag,
            "attributes": dict(self.attributes),
            "xpath": self.xpath,
            "is_visible": self.is_visible,
            "is_interactive": self.is_interactive,
            "is_top_element": self.is_top_element,
            "is_in_viewport": self.is_in_viewport,
            "highlight_index": self.highlight_index,
            "has_shadow_root": self.has_shadow_root,
        }
        if self.text is not None:
            data["text"] = self.text
        if self.is_new is not None:
            data["is_new"] = self.is_new
        if self.page_coordinates:
            data["page_coordinates"] = self.page_coordinates.to_dict()
        if self.viewport_coordinates:
            data["viewport_coordinates"] = self.viewport_coordinates.to_dict()
        if self.viewport_info:
            data["viewport_info"] = self.viewport_info.to_dict()
        if self.identity_hash:
            data["identity_hash"] = self.identity_hash.to_dict()
        if include_children:
            data["children"] = [child.to_dict() for child in self.children]
        return data

    def __str__(self) -> str:
        """Short representation for logs and prompts."""
        if self.is_text:
            preview = (self.text or "")[:50]
            return f'"{preview}"'
        index = f"[{self.highlight_index}]" if self.highlight_index is not None else ""
        attrs = " ".join(
            f'{k}="{v}"' for k, v in self.attributes.items() if k in ("id", "class", "name", "type")
        )
        return f"{index}<{self.tag}{' ' + attrs if attrs else ''}>"


class DomArena:
    """Flat storage for the nodes of one capture."""

    def __init__(self):
        self.nodes: List[DomNode] = []

    def add(self, node: DomNode) -> DomNode:
        node.slot = len(self.nodes)
        node.arena = self
        self.nodes.append(node)
        return node

    def link(self, parent: DomNode, child: DomNode) -> None:
        """Append ``child`` to ``parent``'s children, keeping order."""
        child.parent_slot = parent.slot
        parent.child_slots.append(child.slot)

    def detach_parent(self, node: DomNode) -> None:
        node.parent_slot = None

    def __len__(self) -> int:
        return len(self.nodes)

    def __iter__(self) -> Iterator[DomNode]:
        return iter(self.nodes)


SelectorMap = Dict[int, DomNode]
